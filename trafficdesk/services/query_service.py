import logging
from typing import List, Optional, Sequence

from sqlalchemy import delete, exists, func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from trafficdesk.core.config import settings
from trafficdesk.core.constants import (
    ALLOWED_IMAGE_TYPES,
    ALLOWED_VIDEO_TYPES,
    ATTACHMENT_ID_PREFIX,
    QUERY_ID_PREFIX,
    RESPONSE_ID_PREFIX,
    QueryStatus,
)
from trafficdesk.core.exceptions import NotFoundError, StorageError, ValidationError
from trafficdesk.core.ids import generate_id, utcnow
from trafficdesk.models.cases import Case
from trafficdesk.models.queries import QueryAttachment, QueryResponse, SupportQuery
from trafficdesk.models.user import User
from trafficdesk.schemas.common import BulkResult, Page
from trafficdesk.schemas.query import (
    AttachmentCreate,
    QueryAttachmentOut,
    QueryCreate,
    QueryFilter,
    QueryOut,
    QueryResponseOut,
    QueryUpdate,
    ResponseCreate,
)
from trafficdesk.services.enrichment import enrich_queries, response_out
from trafficdesk.services.pagination import build_page, paginate_list, paginate_query, resolve_paging
from trafficdesk.services.storage import ProgressCallback, StorageBackend, get_storage
from trafficdesk.services.transitions import QUERY_STATUS_TIMESTAMPS, apply_status
from trafficdesk.services.validation import raise_for_errors, validate_not_null, validate_query, validate_response

logger = logging.getLogger(__name__)

REQUIRED_QUERY_FIELDS = ("subject", "message", "category", "priority", "status", "is_urgent")


class QueryService:
    """Support queries and their response threads."""

    def __init__(self, db: AsyncSession, storage: Optional[StorageBackend] = None):
        self.db = db
        self.storage = storage or get_storage()

    async def _require_query(self, query_id: str) -> SupportQuery:
        query = await self.db.get(SupportQuery, query_id)
        if query is None:
            raise NotFoundError("Query", query_id)
        return query

    async def create_query(self, payload: QueryCreate) -> QueryOut:
        raise_for_errors(validate_query(payload.subject, payload.message))
        if await self.db.get(User, payload.user_id) is None:
            logger.warning("Rejected query for unknown user %s", payload.user_id)
            raise NotFoundError("User", payload.user_id)
        if payload.case_id and await self.db.get(Case, payload.case_id) is None:
            logger.warning("Rejected query for unknown case %s", payload.case_id)
            raise NotFoundError("Case", payload.case_id)

        now = utcnow()
        query = SupportQuery(
            id=generate_id(QUERY_ID_PREFIX),
            user_id=payload.user_id,
            case_id=payload.case_id or None,
            subject=payload.subject.strip(),
            message=payload.message.strip(),
            category=payload.category,
            priority=payload.priority,
            status=QueryStatus.OPEN,
            is_urgent=payload.is_urgent,
            tags=payload.tags or [],
            created_at=now,
            updated_at=now,
        )
        self.db.add(query)
        await self.db.commit()

        logger.info("Created query %s for user %s", query.id, query.user_id)
        return QueryOut.model_validate(query)

    async def get_query(self, query_id: str, for_admin: bool = True) -> Optional[QueryOut]:
        query = await self.db.get(SupportQuery, query_id)
        if query is None:
            return None
        return (await enrich_queries(self.db, [query], for_admin))[0]

    async def get_queries_by_user(self, user_id: str) -> List[QueryOut]:
        """A user's own queries, as the user sees them."""
        result = await self.db.execute(
            select(SupportQuery)
            .where(SupportQuery.user_id == user_id)
            .order_by(SupportQuery.created_at.desc(), SupportQuery.id.desc())
        )
        return await enrich_queries(self.db, result.scalars().all(), for_admin=False)

    async def update_query(self, query_id: str, payload: QueryUpdate) -> Optional[QueryOut]:
        fields = payload.model_dump(exclude_unset=True)
        raise_for_errors(validate_not_null(fields, REQUIRED_QUERY_FIELDS))
        raise_for_errors(validate_query(fields.get("subject"), fields.get("message"), partial=True))

        query = await self.db.get(SupportQuery, query_id)
        if query is None:
            return None

        now = utcnow()
        status = fields.pop("status", None)
        for name, value in fields.items():
            setattr(query, name, value)
        if status is not None:
            apply_status(query, status, QUERY_STATUS_TIMESTAMPS, now)
        query.updated_at = now
        await self.db.commit()

        logger.info("Updated query %s", query_id)
        return (await enrich_queries(self.db, [query]))[0]

    async def bulk_update_status(self, query_ids: Sequence[str], status: QueryStatus) -> BulkResult:
        queries = (await self.db.execute(
            select(SupportQuery).where(SupportQuery.id.in_(list(query_ids)))
        )).scalars().all()

        now = utcnow()
        modified = sum(1 for query in queries if apply_status(query, status, QUERY_STATUS_TIMESTAMPS, now))
        await self.db.commit()

        logger.info("Bulk query status %s: matched %d, modified %d", status.value, len(queries), modified)
        return BulkResult(matched=len(queries), modified=modified)

    async def delete_query(self, query_id: str) -> bool:
        """Delete a query with its responses and every attachment of either."""
        query = await self.db.get(SupportQuery, query_id)
        if query is None:
            return False

        response_ids = select(QueryResponse.id).where(QueryResponse.query_id == query_id)
        linked = or_(
            QueryAttachment.query_id == query_id,
            QueryAttachment.response_id.in_(response_ids),
        )
        try:
            public_ids = (await self.db.execute(
                select(QueryAttachment.public_id).where(linked, QueryAttachment.public_id.is_not(None))
            )).scalars().all()
            await self.db.execute(delete(QueryAttachment).where(linked))
            await self.db.execute(delete(QueryResponse).where(QueryResponse.query_id == query_id))
            await self.db.delete(query)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        # blobs go only after the rows are gone
        for public_id in public_ids:
            await self.storage.delete_file(public_id)

        logger.info("Deleted query %s with its responses and attachments", query_id)
        return True

    def _filtered_query(self, filters: QueryFilter):
        query = select(SupportQuery)
        if filters.user_id:
            query = query.where(SupportQuery.user_id == filters.user_id)
        if filters.case_id:
            query = query.where(SupportQuery.case_id == filters.case_id)
        if filters.status is not None:
            query = query.where(SupportQuery.status == filters.status)
        if filters.category is not None:
            query = query.where(SupportQuery.category == filters.category)
        if filters.priority is not None:
            query = query.where(SupportQuery.priority == filters.priority)
        if filters.is_urgent is not None:
            query = query.where(SupportQuery.is_urgent == filters.is_urgent)
        if filters.assigned_to:
            query = query.where(SupportQuery.assigned_to == filters.assigned_to)
        if filters.search:
            needle = filters.search.strip().lower()
            query = query.where(or_(
                func.lower(SupportQuery.subject).contains(needle, autoescape=True),
                func.lower(SupportQuery.message).contains(needle, autoescape=True),
            ))
        if filters.created_from is not None:
            query = query.where(SupportQuery.created_at >= filters.created_from)
        if filters.created_to is not None:
            query = query.where(SupportQuery.created_at <= filters.created_to)
        return query.order_by(SupportQuery.created_at.desc(), SupportQuery.id.desc())

    async def list_queries(self, filters: Optional[QueryFilter] = None, page: Optional[int] = None,
                           limit: Optional[int] = None, for_admin: bool = True) -> Page[QueryOut]:
        filters = filters or QueryFilter()
        page, limit = resolve_paging(page, limit)
        query = self._filtered_query(filters)

        if filters.has_attachments is None:
            queries, total = await paginate_query(self.db, query, page, limit)
            return build_page(await enrich_queries(self.db, queries, for_admin), total, page, limit)

        # Attachment presence is evaluated over the whole matching set before slicing
        candidates = (await self.db.execute(query)).scalars().all()
        with_attachments = set((await self.db.execute(
            select(QueryAttachment.query_id)
            .where(QueryAttachment.query_id.in_([q.id for q in candidates]))
            .distinct()
        )).scalars().all()) if candidates else set()
        matching = [q for q in candidates if (q.id in with_attachments) == filters.has_attachments]

        window = paginate_list(matching, page, limit)
        window.data = await enrich_queries(self.db, window.data, for_admin)
        return window

    async def create_response(self, query_id: str, payload: ResponseCreate) -> QueryResponseOut:
        """Add a reply and move the parent query along (in_progress, or resolved on request)."""
        raise_for_errors(validate_response(payload.message, payload.responded_by))
        query = await self._require_query(query_id)

        now = utcnow()
        response = QueryResponse(
            id=generate_id(RESPONSE_ID_PREFIX),
            query_id=query_id,
            message=payload.message.strip(),
            responded_by=payload.responded_by,
            responded_at=now,
            is_from_admin=payload.is_from_admin,
            template=payload.template,
            priority=payload.priority,
            internal_notes=payload.internal_notes,
            is_edited=False,
        )
        self.db.add(response)

        new_status = QueryStatus.RESOLVED if payload.mark_as_resolved else QueryStatus.IN_PROGRESS
        apply_status(query, new_status, QUERY_STATUS_TIMESTAMPS, now)
        query.last_response_at = now
        query.updated_at = now

        try:
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Added response %s to query %s (now %s)", response.id, query_id, query.status.value)
        return response_out(response)

    async def get_responses(self, query_id: str, for_admin: bool = True) -> List[QueryResponseOut]:
        result = await self.db.execute(
            select(QueryResponse)
            .where(QueryResponse.query_id == query_id)
            .order_by(QueryResponse.responded_at.asc(), QueryResponse.id.asc())
        )
        return [response_out(r, for_admin) for r in result.scalars()]

    async def edit_response(self, response_id: str, message: str) -> Optional[QueryResponseOut]:
        raise_for_errors(validate_response(message, partial=True))
        response = await self.db.get(QueryResponse, response_id)
        if response is None:
            return None

        response.message = message.strip()
        response.is_edited = True
        response.edited_at = utcnow()
        await self.db.commit()

        logger.info("Edited response %s", response_id)
        return response_out(response)

    async def has_attachments(self, query_id: str) -> bool:
        return bool((await self.db.execute(
            select(exists().where(QueryAttachment.query_id == query_id))
        )).scalar())


class AttachmentService:
    """Attachment records for queries and responses, backed by object storage."""

    def __init__(self, db: AsyncSession, storage: Optional[StorageBackend] = None):
        self.db = db
        self.storage = storage or get_storage()

    async def _check_context(self, query_id: Optional[str], response_id: Optional[str]) -> None:
        if bool(query_id) == bool(response_id):
            raise ValidationError(["Exactly one of query id or response id is required"])
        if query_id and await self.db.get(SupportQuery, query_id) is None:
            raise NotFoundError("Query", query_id)
        if response_id and await self.db.get(QueryResponse, response_id) is None:
            raise NotFoundError("Response", response_id)

    async def add_attachment(self, payload: AttachmentCreate) -> QueryAttachmentOut:
        """Record metadata for a file that has already been stored."""
        await self._check_context(payload.query_id, payload.response_id)

        attachment = QueryAttachment(
            id=generate_id(ATTACHMENT_ID_PREFIX),
            query_id=payload.query_id or None,
            response_id=payload.response_id or None,
            filename=payload.filename,
            original_name=payload.original_name,
            file_size=payload.file_size,
            file_type=payload.file_type,
            url=payload.url,
            public_id=payload.public_id,
            uploaded_at=utcnow(),
            uploaded_by=payload.uploaded_by,
            is_public=payload.is_public,
        )
        self.db.add(attachment)
        await self.db.commit()

        logger.info("Attached %s to %s", attachment.original_name, payload.query_id or payload.response_id)
        return QueryAttachmentOut.model_validate(attachment)

    async def upload_attachment(self, data: bytes, filename: str, content_type: str, uploaded_by: str,
                                query_id: Optional[str] = None, response_id: Optional[str] = None,
                                is_public: bool = True, folder: Optional[str] = None,
                                on_progress: Optional[ProgressCallback] = None) -> QueryAttachmentOut:
        """Validate and store a file, then record it against a query or response."""
        errors = []
        if content_type not in ALLOWED_IMAGE_TYPES + ALLOWED_VIDEO_TYPES:
            errors.append(f"File type {content_type} is not allowed")
        if len(data) > settings.max_attachment_size_bytes:
            errors.append(f"File size exceeds {settings.MAX_ATTACHMENT_SIZE_MB}MB limit")
        if errors:
            logger.warning("Rejected upload %s: %s", filename, "; ".join(errors))
            raise ValidationError(errors)
        await self._check_context(query_id, response_id)

        result = await self.storage.upload_file(data, filename, content_type, folder, on_progress)
        if not result.success:
            logger.warning("Storage rejected %s: %s", filename, result.error)
            raise StorageError(result.error or "Upload failed")

        try:
            return await self.add_attachment(AttachmentCreate(
                query_id=query_id,
                response_id=response_id,
                filename=result.file_name or filename,
                original_name=filename,
                file_size=result.size if result.size is not None else len(data),
                file_type=content_type,
                url=result.url,
                public_id=result.public_id,
                uploaded_by=uploaded_by,
                is_public=is_public,
            ))
        except Exception:
            await self.db.rollback()
            if result.public_id:
                await self.storage.delete_file(result.public_id)
            logger.warning("Removed stored file %s after failing to record it", result.public_id)
            raise

    async def get_attachment(self, attachment_id: str) -> Optional[QueryAttachmentOut]:
        attachment = await self.db.get(QueryAttachment, attachment_id)
        return QueryAttachmentOut.model_validate(attachment) if attachment else None

    async def get_response_attachments(self, response_id: str) -> List[QueryAttachmentOut]:
        result = await self.db.execute(
            select(QueryAttachment)
            .where(QueryAttachment.response_id == response_id)
            .order_by(QueryAttachment.uploaded_at.asc(), QueryAttachment.id.asc())
        )
        return [QueryAttachmentOut.model_validate(a) for a in result.scalars()]

    async def delete_attachment(self, attachment_id: str) -> bool:
        attachment = await self.db.get(QueryAttachment, attachment_id)
        if attachment is None:
            return False

        public_id = attachment.public_id
        await self.db.delete(attachment)
        await self.db.commit()
        if public_id:
            await self.storage.delete_file(public_id)

        logger.info("Deleted attachment %s", attachment_id)
        return True
