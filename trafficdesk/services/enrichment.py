from collections import defaultdict
from typing import Dict, Iterable, List, Sequence, Tuple

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession

from trafficdesk.models.queries import QueryAttachment, QueryResponse, SupportQuery
from trafficdesk.schemas.query import QueryAttachmentOut, QueryOut, QueryResponseOut

ADMIN_ONLY_RESPONSE_FIELDS = ("template", "priority", "internal_notes")


async def load_relations(db: AsyncSession, query_ids: Iterable[str]) -> Tuple[
        Dict[str, List[QueryResponse]], Dict[str, List[QueryAttachment]]]:
    """Fetch responses and attachments for many queries, one IN query per relation."""
    ids = list(dict.fromkeys(query_ids))
    responses: Dict[str, List[QueryResponse]] = defaultdict(list)
    attachments: Dict[str, List[QueryAttachment]] = defaultdict(list)
    if not ids:
        return responses, attachments

    response_rows = await db.execute(
        select(QueryResponse)
        .where(QueryResponse.query_id.in_(ids))
        .order_by(QueryResponse.responded_at.asc(), QueryResponse.id.asc())
    )
    for response in response_rows.scalars():
        responses[response.query_id].append(response)

    attachment_rows = await db.execute(
        select(QueryAttachment)
        .where(QueryAttachment.query_id.in_(ids))
        .order_by(QueryAttachment.uploaded_at.asc(), QueryAttachment.id.asc())
    )
    for attachment in attachment_rows.scalars():
        attachments[attachment.query_id].append(attachment)

    return responses, attachments


def response_out(response: QueryResponse, for_admin: bool = True) -> QueryResponseOut:
    out = QueryResponseOut.model_validate(response)
    if not for_admin:
        out = out.model_copy(update={name: None for name in ADMIN_ONLY_RESPONSE_FIELDS})
    return out


def build_query_out(query: SupportQuery, responses: Sequence[QueryResponse],
                    attachments: Sequence[QueryAttachment], for_admin: bool = True) -> QueryOut:
    out = QueryOut.model_validate(query)
    out.responses = [response_out(r, for_admin) for r in responses]
    out.attachments = [
        QueryAttachmentOut.model_validate(a) for a in attachments if for_admin or a.is_public
    ]
    return out


async def enrich_queries(db: AsyncSession, queries: Sequence[SupportQuery],
                         for_admin: bool = True) -> List[QueryOut]:
    """Attach responses (oldest first) and attachments to each query."""
    responses, attachments = await load_relations(db, (q.id for q in queries))
    return [
        build_query_out(q, responses.get(q.id, []), attachments.get(q.id, []), for_admin)
        for q in queries
    ]
