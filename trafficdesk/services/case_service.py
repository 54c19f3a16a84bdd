import logging
from datetime import timedelta
from typing import List, Optional, Sequence

from sqlalchemy import func, or_, select
from sqlalchemy.ext.asyncio import AsyncSession

from trafficdesk.core.config import settings
from trafficdesk.core.constants import CASE_ID_PREFIX, CaseStatus
from trafficdesk.core.exceptions import NotFoundError
from trafficdesk.core.ids import generate_id, parse_datetime, utcnow
from trafficdesk.models.cases import Case
from trafficdesk.models.user import User
from trafficdesk.schemas.case import CaseCreate, CaseFilter, CaseOut, CaseUpdate
from trafficdesk.schemas.common import BulkResult, Page
from trafficdesk.services.pagination import build_page, paginate_query, resolve_paging
from trafficdesk.services.transitions import CASE_STATUS_TIMESTAMPS, apply_status
from trafficdesk.services.validation import raise_for_errors, validate_case, validate_not_null

logger = logging.getLogger(__name__)

REQUIRED_CASE_FIELDS = ("violation_type", "violation", "fine", "proof_url", "location", "date", "status")


class CaseService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_case(self, payload: CaseCreate) -> CaseOut:
        raise_for_errors(validate_case(
            payload.violation, payload.fine, payload.proof_url,
            payload.location, payload.date, payload.due_date,
        ))
        if await self.db.get(User, payload.user_id) is None:
            logger.warning("Rejected case for unknown user %s", payload.user_id)
            raise NotFoundError("User", payload.user_id)

        occurred = parse_datetime(payload.date)
        due_date = parse_datetime(payload.due_date) or occurred + timedelta(days=settings.CASE_PAYMENT_DUE_DAYS)
        now = utcnow()

        case = Case(
            id=generate_id(CASE_ID_PREFIX),
            user_id=payload.user_id,
            violation_type=payload.violation_type,
            violation=payload.violation.strip(),
            fine=float(payload.fine),
            proof_url=payload.proof_url.strip(),
            location=payload.location.strip(),
            date=occurred,
            status=CaseStatus.PENDING,
            due_date=due_date,
            admin_notes=payload.admin_notes,
            evidence_urls=payload.evidence_urls,
            officer_id=payload.officer_id,
            vehicle_details=payload.vehicle_details.model_dump() if payload.vehicle_details else None,
            created_at=now,
            updated_at=now,
        )
        self.db.add(case)
        await self.db.commit()

        logger.info("Created case %s for user %s", case.id, case.user_id)
        return CaseOut.model_validate(case)

    async def get_case(self, case_id: str) -> Optional[CaseOut]:
        case = await self.db.get(Case, case_id)
        return CaseOut.model_validate(case) if case else None

    async def get_cases_by_user(self, user_id: str) -> List[CaseOut]:
        result = await self.db.execute(
            select(Case).where(Case.user_id == user_id).order_by(Case.created_at.desc(), Case.id.desc())
        )
        return [CaseOut.model_validate(case) for case in result.scalars()]

    async def update_case(self, case_id: str, payload: CaseUpdate) -> Optional[CaseOut]:
        fields = payload.model_dump(exclude_unset=True)
        raise_for_errors(validate_not_null(fields, REQUIRED_CASE_FIELDS))
        raise_for_errors(validate_case(
            fields.get("violation"), fields.get("fine"), fields.get("proof_url"),
            fields.get("location"), fields.get("date"), fields.get("due_date"), partial=True,
        ))

        case = await self.db.get(Case, case_id)
        if case is None:
            return None

        now = utcnow()
        status = fields.pop("status", None)
        for name in ("date", "due_date"):
            if fields.get(name) is not None:
                fields[name] = parse_datetime(fields[name])
        for name, value in fields.items():
            setattr(case, name, value)
        if status is not None:
            apply_status(case, status, CASE_STATUS_TIMESTAMPS, now)
        case.updated_at = now
        await self.db.commit()

        logger.info("Updated case %s", case_id)
        return CaseOut.model_validate(case)

    async def set_status(self, case_id: str, status: CaseStatus) -> Optional[CaseOut]:
        return await self.update_case(case_id, CaseUpdate(status=status))

    async def bulk_update_status(self, case_ids: Sequence[str], status: CaseStatus) -> BulkResult:
        cases = (await self.db.execute(select(Case).where(Case.id.in_(list(case_ids))))).scalars().all()

        now = utcnow()
        modified = sum(1 for case in cases if apply_status(case, status, CASE_STATUS_TIMESTAMPS, now))
        await self.db.commit()

        logger.info("Bulk case status %s: matched %d, modified %d", status.value, len(cases), modified)
        return BulkResult(matched=len(cases), modified=modified)

    async def delete_case(self, case_id: str) -> bool:
        case = await self.db.get(Case, case_id)
        if case is None:
            return False
        await self.db.delete(case)
        await self.db.commit()
        logger.info("Deleted case %s", case_id)
        return True

    async def list_cases(self, filters: Optional[CaseFilter] = None, page: Optional[int] = None,
                         limit: Optional[int] = None) -> Page[CaseOut]:
        filters = filters or CaseFilter()
        page, limit = resolve_paging(page, limit)

        query = select(Case)
        if filters.user_id:
            query = query.where(Case.user_id == filters.user_id)
        if filters.status is not None:
            query = query.where(Case.status == filters.status)
        if filters.violation_type is not None:
            query = query.where(Case.violation_type == filters.violation_type)
        if filters.search:
            needle = filters.search.strip().lower()
            query = query.where(or_(
                func.lower(Case.violation).contains(needle, autoescape=True),
                func.lower(Case.location).contains(needle, autoescape=True),
            ))
        if filters.min_fine is not None:
            query = query.where(Case.fine >= filters.min_fine)
        if filters.max_fine is not None:
            query = query.where(Case.fine <= filters.max_fine)
        if filters.date_from is not None:
            query = query.where(Case.date >= parse_datetime(filters.date_from))
        if filters.date_to is not None:
            query = query.where(Case.date <= parse_datetime(filters.date_to))
        if filters.is_paid is not None:
            paid = Case.status == CaseStatus.PAID
            query = query.where(paid if filters.is_paid else ~paid)
        if filters.is_disputed is not None:
            disputed = Case.status == CaseStatus.DISPUTED
            query = query.where(disputed if filters.is_disputed else ~disputed)
        query = query.order_by(Case.created_at.desc(), Case.id.desc())

        cases, total = await paginate_query(self.db, query, page, limit)
        return build_page([CaseOut.model_validate(case) for case in cases], total, page, limit)
