import pytest

from trafficdesk.core.exceptions import NotFoundError, StorageError, ValidationError
from trafficdesk.schemas.query import AttachmentCreate, ResponseCreate
from trafficdesk.services.query_service import AttachmentService, QueryService
from trafficdesk.services.storage import MockStorage, UploadResult, get_storage


class FailingStorage(MockStorage):
    async def upload_file(self, data, filename, content_type, folder=None, on_progress=None):
        return UploadResult(success=False, error="Bucket unavailable")


@pytest.fixture
def storage():
    return MockStorage(base_url="https://mock-cloud-storage.com", default_folder="violations")


@pytest.fixture
def attachments(session, storage):
    return AttachmentService(session, storage)


@pytest.mark.asyncio
async def test_mock_storage_upload_contract(storage):
    progress = []
    result = await storage.upload_file(b"x" * 200, "speed-camera.jpg", "image/jpeg",
                                       folder="evidence", on_progress=progress.append)

    assert result.success is True
    assert result.url.startswith("https://mock-cloud-storage.com/evidence/")
    assert result.url.endswith("-speed-camera.jpg")
    assert result.public_id.startswith("evidence/")
    assert result.public_id.endswith("-speed-camera")
    assert result.type == "image"
    assert result.size == 200
    assert [p.percentage for p in progress] == list(range(10, 101, 10))
    assert progress[-1].loaded == 200

    assert await storage.delete_file(result.public_id) is True
    assert await storage.delete_file(result.public_id) is False


@pytest.mark.asyncio
async def test_mock_storage_resource_types(storage):
    video = await storage.upload_file(b"v", "clip.mp4", "video/mp4")
    raw = await storage.upload_file(b"r", "notes.pdf", "application/pdf")
    assert video.type == "video"
    assert raw.type == "raw"
    assert video.public_id.startswith("violations/")


def test_get_storage_selects_provider():
    assert isinstance(get_storage("mock"), MockStorage)
    with pytest.raises(ValueError):
        get_storage("s3")


@pytest.mark.asyncio
async def test_upload_attachment_persists_storage_url(make_user, make_query, attachments, storage, queries):
    user = await make_user()
    query = await make_query(user.id)

    saved = await attachments.upload_attachment(b"\xff\xd8" * 10, "dent.png", "image/png",
                                                uploaded_by=user.id, query_id=query.id)
    assert saved.url.startswith("https://mock-cloud-storage.com/violations/")
    assert saved.public_id in storage.files
    assert saved.file_size == 20
    assert saved.original_name == "dent.png"

    fetched = await queries.get_query(query.id)
    assert [a.id for a in fetched.attachments] == [saved.id]
    assert await attachments.get_attachment(saved.id) == saved


@pytest.mark.asyncio
async def test_upload_rejects_type_and_size(make_user, make_query, attachments, monkeypatch):
    from trafficdesk.core.config import settings

    user = await make_user()
    query = await make_query(user.id)

    with pytest.raises(ValidationError) as exc:
        await attachments.upload_attachment(b"%PDF", "letter.pdf", "application/pdf",
                                            uploaded_by=user.id, query_id=query.id)
    assert exc.value.errors == ["File type application/pdf is not allowed"]

    monkeypatch.setattr(settings, "MAX_ATTACHMENT_SIZE_MB", 0)
    with pytest.raises(ValidationError) as exc:
        await attachments.upload_attachment(b"too big", "big.jpg", "image/jpeg",
                                            uploaded_by=user.id, query_id=query.id)
    assert exc.value.errors == ["File size exceeds 0MB limit"]


@pytest.mark.asyncio
async def test_upload_failure_raises_storage_error(make_user, make_query, session):
    user = await make_user()
    query = await make_query(user.id)
    service = AttachmentService(session, FailingStorage())

    with pytest.raises(StorageError) as exc:
        await service.upload_attachment(b"img", "a.jpg", "image/jpeg", uploaded_by=user.id, query_id=query.id)
    assert exc.value.message == "Bucket unavailable"


@pytest.mark.asyncio
async def test_attachment_needs_exactly_one_context(make_user, make_query, attachments, queries):
    user = await make_user()
    query = await make_query(user.id)
    reply = await queries.create_response(query.id, ResponseCreate(message="See attached", responded_by=user.id))

    base = dict(filename="f.jpg", original_name="f.jpg", file_type="image/jpeg",
                url="https://files.example.com/f.jpg", uploaded_by=user.id)
    with pytest.raises(ValidationError):
        await attachments.add_attachment(AttachmentCreate(**base))
    with pytest.raises(ValidationError):
        await attachments.add_attachment(AttachmentCreate(query_id=query.id, response_id=reply.id, **base))
    with pytest.raises(NotFoundError):
        await attachments.add_attachment(AttachmentCreate(response_id="response-missing", **base))

    on_reply = await attachments.add_attachment(AttachmentCreate(response_id=reply.id, **base))
    assert [a.id for a in await attachments.get_response_attachments(reply.id)] == [on_reply.id]


@pytest.mark.asyncio
async def test_delete_attachment_removes_stored_file(make_user, make_query, attachments, storage):
    user = await make_user()
    query = await make_query(user.id)
    saved = await attachments.upload_attachment(b"img", "a.jpg", "image/jpeg",
                                                uploaded_by=user.id, query_id=query.id)

    assert await attachments.delete_attachment(saved.id) is True
    assert saved.public_id not in storage.files
    assert await attachments.get_attachment(saved.id) is None
    assert await attachments.delete_attachment(saved.id) is False


@pytest.mark.asyncio
async def test_upload_removes_stored_file_when_record_fails(make_user, make_query, attachments, storage,
                                                            monkeypatch):
    user = await make_user()
    query = await make_query(user.id)

    async def broken_insert(payload):
        raise RuntimeError("database unavailable")

    monkeypatch.setattr(attachments, "add_attachment", broken_insert)
    with pytest.raises(RuntimeError):
        await attachments.upload_attachment(b"img", "a.jpg", "image/jpeg",
                                            uploaded_by=user.id, query_id=query.id)
    assert storage.files == {}


@pytest.mark.asyncio
async def test_delete_query_removes_stored_files(make_user, make_query, session, attachments, storage):
    user = await make_user()
    query = await make_query(user.id)
    queries = QueryService(session, storage)
    reply = await queries.create_response(query.id, ResponseCreate(message="Photo attached", responded_by=user.id))

    on_query = await attachments.upload_attachment(b"q", "q.jpg", "image/jpeg",
                                                   uploaded_by=user.id, query_id=query.id)
    on_reply = await attachments.upload_attachment(b"r", "r.jpg", "image/jpeg",
                                                   uploaded_by=user.id, response_id=reply.id)
    assert set(storage.files) == {on_query.public_id, on_reply.public_id}

    assert await queries.delete_query(query.id) is True
    assert storage.files == {}
    assert await attachments.get_attachment(on_reply.id) is None
