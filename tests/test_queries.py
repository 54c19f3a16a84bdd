import pytest
from sqlalchemy import func, select

from trafficdesk.core.constants import Priority, QueryCategory, QueryStatus
from trafficdesk.core.exceptions import NotFoundError, ValidationError
from trafficdesk.models.queries import QueryAttachment, QueryResponse
from trafficdesk.schemas.query import AttachmentCreate, QueryFilter, QueryUpdate, ResponseCreate
from trafficdesk.services.query_service import AttachmentService
from trafficdesk.services.storage import MockStorage


def attachment_for(query_id=None, response_id=None, name="photo.jpg", is_public=True):
    return AttachmentCreate(
        query_id=query_id,
        response_id=response_id,
        filename=name,
        original_name=name,
        file_size=1024,
        file_type="image/jpeg",
        url=f"https://files.example.com/{name}",
        uploaded_by="user-1",
        is_public=is_public,
    )


@pytest.mark.asyncio
async def test_create_query_defaults_and_round_trip(make_user, make_query, queries):
    user = await make_user()
    created = await make_query(user.id, category=QueryCategory.PAYMENT_ISSUES, tags=["payment"])

    assert created.status == QueryStatus.OPEN
    assert created.priority == Priority.MEDIUM
    assert created.responses == []
    assert created.attachments == []
    assert await queries.get_query(created.id) == created


@pytest.mark.asyncio
async def test_create_query_checks_references_and_lengths(make_user, make_query):
    with pytest.raises(NotFoundError):
        await make_query("user-missing")

    user = await make_user()
    with pytest.raises(NotFoundError) as exc:
        await make_query(user.id, case_id="case-missing")
    assert exc.value.entity == "Case"

    with pytest.raises(ValidationError) as exc:
        await make_query(user.id, subject="Hi", message="short")
    assert exc.value.errors == [
        "Subject must be at least 5 characters long",
        "Message must be at least 10 characters long",
    ]


@pytest.mark.asyncio
async def test_resolving_response_resolves_query(make_user, make_query, queries):
    user = await make_user()
    query = await make_query(user.id)

    response = await queries.create_response(query.id, ResponseCreate(
        message="Your fine has been waived.", responded_by="admin-1",
        is_from_admin=True, mark_as_resolved=True,
    ))

    fetched = await queries.get_query(query.id)
    assert fetched.status == QueryStatus.RESOLVED
    assert fetched.resolved_at is not None
    assert fetched.last_response_at == response.responded_at
    assert [r.id for r in fetched.responses] == [response.id]


@pytest.mark.asyncio
async def test_plain_response_moves_query_in_progress(make_user, make_query, queries):
    user = await make_user()
    query = await make_query(user.id)

    await queries.create_response(query.id, ResponseCreate(message="Looking into it", responded_by="admin-1"))
    fetched = await queries.get_query(query.id)
    assert fetched.status == QueryStatus.IN_PROGRESS
    assert fetched.resolved_at is None
    assert fetched.last_response_at is not None


@pytest.mark.asyncio
async def test_response_needs_existing_query_and_message(queries, make_user, make_query):
    with pytest.raises(NotFoundError):
        await queries.create_response("query-missing", ResponseCreate(message="Hello", responded_by="admin-1"))

    user = await make_user()
    query = await make_query(user.id)
    with pytest.raises(ValidationError):
        await queries.create_response(query.id, ResponseCreate(message="   ", responded_by="admin-1"))


@pytest.mark.asyncio
async def test_enrichment_keeps_every_response_once(make_user, make_query, queries):
    user = await make_user()
    first = await make_query(user.id)
    second = await make_query(user.id)
    untouched = await make_query(user.id)

    expected = {first.id: [], second.id: []}
    for i in range(3):
        for query_id in (first.id, second.id):
            reply = await queries.create_response(
                query_id, ResponseCreate(message=f"Reply number {i}", responded_by="admin-1"),
            )
            expected[query_id].append(reply.id)

    page = await queries.list_queries(limit=10)
    by_id = {q.id: q for q in page.data}
    assert [r.id for r in by_id[first.id].responses] == expected[first.id]
    assert [r.id for r in by_id[second.id].responses] == expected[second.id]
    assert by_id[untouched.id].responses == []

    every = [r.id for q in page.data for r in q.responses]
    assert len(every) == len(set(every)) == 6


@pytest.mark.asyncio
async def test_user_view_hides_admin_fields(make_user, make_query, queries, session):
    user = await make_user()
    query = await make_query(user.id)
    await queries.create_response(query.id, ResponseCreate(
        message="We checked the camera footage.", responded_by="admin-1", is_from_admin=True,
        template="dispute_review", priority=Priority.HIGH, internal_notes="Camera 4 was misaligned",
    ))
    attachments = AttachmentService(session, MockStorage())
    await attachments.add_attachment(attachment_for(query.id, name="public.jpg"))
    await attachments.add_attachment(attachment_for(query.id, name="internal.jpg", is_public=False))

    admin_view = await queries.get_query(query.id)
    assert admin_view.responses[0].internal_notes == "Camera 4 was misaligned"
    assert len(admin_view.attachments) == 2

    [user_view] = await queries.get_queries_by_user(user.id)
    reply = user_view.responses[0]
    assert reply.internal_notes is None
    assert reply.template is None
    assert reply.priority is None
    assert [a.original_name for a in user_view.attachments] == ["public.jpg"]


@pytest.mark.asyncio
async def test_update_query_stamps_resolved_at_once(make_user, make_query, queries):
    user = await make_user()
    query = await make_query(user.id)

    resolved = await queries.update_query(query.id, QueryUpdate(status=QueryStatus.RESOLVED))
    closed = await queries.update_query(query.id, QueryUpdate(status=QueryStatus.CLOSED, assigned_to="admin-2"))
    assert resolved.resolved_at is not None
    assert closed.resolved_at == resolved.resolved_at
    assert closed.assigned_to == "admin-2"

    assert await queries.update_query("query-missing", QueryUpdate(is_urgent=True)) is None


@pytest.mark.asyncio
async def test_update_query_rejects_null_required_fields(make_user, make_query, queries):
    user = await make_user()
    query = await make_query(user.id)

    with pytest.raises(ValidationError) as exc:
        await queries.update_query(query.id, QueryUpdate(subject=None, is_urgent=None))
    assert exc.value.errors == ["subject cannot be null", "is_urgent cannot be null"]

    cleared = await queries.update_query(query.id, QueryUpdate(assigned_to=None, tags=None))
    assert cleared.subject == query.subject
    assert cleared.assigned_to is None


@pytest.mark.asyncio
async def test_bulk_status_update(make_user, make_query, queries):
    user = await make_user()
    ids = [(await make_query(user.id)).id for _ in range(3)]

    result = await queries.bulk_update_status(ids, QueryStatus.RESOLVED)
    assert result.matched == 3
    assert result.modified == 3
    for query_id in ids:
        assert (await queries.get_query(query_id)).resolved_at is not None


@pytest.mark.asyncio
async def test_edit_response(make_user, make_query, queries):
    user = await make_user()
    query = await make_query(user.id)
    reply = await queries.create_response(query.id, ResponseCreate(message="First draft", responded_by=user.id))

    edited = await queries.edit_response(reply.id, "Corrected reply")
    assert edited.message == "Corrected reply"
    assert edited.is_edited is True
    assert edited.edited_at is not None
    assert await queries.edit_response("response-missing", "Anything") is None

    assert [r.message for r in await queries.get_responses(query.id)] == ["Corrected reply"]


@pytest.mark.asyncio
async def test_delete_query_cascades(make_user, make_query, queries, session):
    user = await make_user()
    doomed = await make_query(user.id)
    kept = await make_query(user.id)
    attachments = AttachmentService(session, MockStorage())

    reply = await queries.create_response(doomed.id, ResponseCreate(message="Reply", responded_by="admin-1"))
    await attachments.add_attachment(attachment_for(doomed.id))
    await attachments.add_attachment(attachment_for(response_id=reply.id))
    await queries.create_response(kept.id, ResponseCreate(message="Reply", responded_by="admin-1"))
    await attachments.add_attachment(attachment_for(kept.id))

    assert await queries.delete_query(doomed.id) is True
    assert await queries.get_query(doomed.id) is None

    async def count(model, column, value):
        return (await session.execute(select(func.count()).select_from(model).where(column == value))).scalar_one()

    assert await count(QueryResponse, QueryResponse.query_id, doomed.id) == 0
    assert await count(QueryAttachment, QueryAttachment.query_id, doomed.id) == 0
    assert await count(QueryAttachment, QueryAttachment.response_id, reply.id) == 0
    assert await count(QueryResponse, QueryResponse.query_id, kept.id) == 1
    assert await count(QueryAttachment, QueryAttachment.query_id, kept.id) == 1

    assert await queries.delete_query(doomed.id) is False


@pytest.mark.asyncio
async def test_list_queries_filters(make_user, make_query, queries, session):
    user = await make_user()
    other = await make_user()
    urgent = await make_query(user.id, subject="Payment failed twice", is_urgent=True,
                              category=QueryCategory.PAYMENT_ISSUES, priority=Priority.HIGH)
    await make_query(user.id)
    await make_query(other.id)
    await AttachmentService(session, MockStorage()).add_attachment(attachment_for(urgent.id))

    assert (await queries.list_queries(QueryFilter(user_id=user.id))).total == 2
    assert [q.id for q in (await queries.list_queries(QueryFilter(is_urgent=True))).data] == [urgent.id]
    assert [q.id for q in (await queries.list_queries(QueryFilter(search="FAILED"))).data] == [urgent.id]
    assert (await queries.list_queries(QueryFilter(category=QueryCategory.PAYMENT_ISSUES))).total == 1
    assert (await queries.list_queries(QueryFilter(priority=Priority.MEDIUM))).total == 2

    with_files = await queries.list_queries(QueryFilter(has_attachments=True))
    assert [q.id for q in with_files.data] == [urgent.id]
    assert len(with_files.data[0].attachments) == 1

    without = await queries.list_queries(QueryFilter(has_attachments=False), page=1, limit=1)
    assert without.total == 2
    assert without.totalPages == 2
    assert len(without.data) == 1

    assert await queries.has_attachments(urgent.id) is True
