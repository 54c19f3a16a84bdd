import logging
from collections import defaultdict
from typing import Any, Dict, List, Optional, Sequence

from sqlalchemy import case, delete, func, or_, select
from sqlalchemy.exc import IntegrityError
from sqlalchemy.ext.asyncio import AsyncSession

from trafficdesk.core.config import settings
from trafficdesk.core.constants import USER_ID_PREFIX, CaseStatus, UserAction, UserRole, UserStatus
from trafficdesk.core.exceptions import ConflictError, ValidationError
from trafficdesk.core.ids import generate_id, utcnow
from trafficdesk.core.security import hash_password, verify_password
from trafficdesk.models.cases import Case
from trafficdesk.models.user import User
from trafficdesk.schemas.case import CaseOut
from trafficdesk.schemas.common import BulkResult, Page
from trafficdesk.schemas.user import (
    UserCreate,
    UserDetails,
    UserFilter,
    UserOut,
    UserUpdate,
    UserWithStats,
    ViolationStats,
)
from trafficdesk.services.pagination import build_page, paginate_list, paginate_query, resolve_paging
from trafficdesk.services.stats_service import rollup_cases
from trafficdesk.services.validation import raise_for_errors, validate_not_null, validate_user

logger = logging.getLogger(__name__)

DUPLICATE_USER_MESSAGE = "User with this email or number plate already exists"
REQUIRED_USER_FIELDS = (
    "name", "email", "password", "role", "status", "is_active", "email_verified", "phone_verified",
)

# status each account action moves a user to
ACTION_STATUS = {
    UserAction.SUSPEND: UserStatus.SUSPENDED,
    UserAction.ACTIVATE: UserStatus.ACTIVE,
    UserAction.DEACTIVATE: UserStatus.INACTIVE,
}
STATUS_ACTION = {status: action for action, status in ACTION_STATUS.items()}


def normalize_email(email: Optional[str]) -> Optional[str]:
    return email.strip().lower() if email else email


def normalize_number_plate(number_plate: Optional[str]) -> Optional[str]:
    if number_plate is None:
        return None
    return number_plate.strip().upper() or None


def _assign(record: Any, changes: Dict[str, Any]) -> bool:
    """Set only the attributes whose value differs; report whether any did."""
    changed = False
    for name, value in changes.items():
        if getattr(record, name) != value:
            setattr(record, name, value)
            changed = True
    return changed


def action_changes(action: UserAction, now, reason: Optional[str] = None,
                   performed_by: Optional[str] = None, role: Optional[UserRole] = None) -> Dict[str, Any]:
    """Field changes an account action applies to a user."""
    if action == UserAction.SUSPEND:
        return {
            "status": UserStatus.SUSPENDED,
            "is_active": False,
            "suspended_at": now,
            "suspended_reason": reason or "Suspended by admin",
            "suspended_by": performed_by or "system",
        }
    if action == UserAction.ACTIVATE:
        return {
            "status": UserStatus.ACTIVE,
            "is_active": True,
            "suspended_at": None,
            "suspended_reason": None,
            "suspended_by": None,
        }
    if action == UserAction.DEACTIVATE:
        return {"status": UserStatus.INACTIVE, "is_active": False}
    if action == UserAction.VERIFY_EMAIL:
        return {"email_verified": True}
    if action == UserAction.VERIFY_PHONE:
        return {"phone_verified": True}
    if action == UserAction.UPDATE_ROLE:
        if role is None:
            raise ValidationError(["Role is required to update a user's role"])
        return {"role": role}
    raise ValidationError([f"Unsupported user action: {action}"])


class UserService:
    def __init__(self, db: AsyncSession):
        self.db = db

    async def _commit_user_changes(self) -> None:
        try:
            await self.db.commit()
        except IntegrityError:
            await self.db.rollback()
            logger.warning("Rejected user write: duplicate email or number plate")
            raise ConflictError(DUPLICATE_USER_MESSAGE)

    async def _ensure_unique(self, email: Optional[str], number_plate: Optional[str],
                             exclude_id: Optional[str] = None) -> None:
        conditions = []
        if email:
            conditions.append(User.email == email)
        if number_plate:
            conditions.append(User.number_plate == number_plate)
        if not conditions:
            return

        query = select(User.id).where(or_(*conditions))
        if exclude_id:
            query = query.where(User.id != exclude_id)
        if (await self.db.execute(query.limit(1))).first() is not None:
            logger.warning("Rejected user write: %s / %s already taken", email, number_plate)
            raise ConflictError(DUPLICATE_USER_MESSAGE)

    async def _rollups(self, user_ids: Sequence[str]) -> Dict[str, ViolationStats]:
        """Violation rollup per user from one grouped aggregate."""
        if not user_ids:
            return {}
        paid = func.coalesce(func.sum(case((Case.status == CaseStatus.PAID, Case.fine), else_=0)), 0)
        rows = await self.db.execute(
            select(
                Case.user_id,
                func.count(Case.id).label("violation_count"),
                func.coalesce(func.sum(Case.fine), 0).label("total_fines"),
                paid.label("paid_fines"),
            )
            .where(Case.user_id.in_(list(user_ids)))
            .group_by(Case.user_id)
        )
        rollups = {}
        for row in rows:
            total = float(row.total_fines)
            paid_fines = float(row.paid_fines)
            rollups[row.user_id] = ViolationStats(
                violationCount=row.violation_count,
                totalFines=total,
                outstandingFines=total - paid_fines,
                paidFines=paid_fines,
            )
        return rollups

    async def create_user(self, payload: UserCreate) -> UserOut:
        raise_for_errors(validate_user(payload.name, payload.email, payload.password, payload.number_plate))

        email = normalize_email(payload.email)
        number_plate = normalize_number_plate(payload.number_plate)
        await self._ensure_unique(email, number_plate)

        now = utcnow()
        user = User(
            id=generate_id(USER_ID_PREFIX),
            name=payload.name.strip(),
            email=email,
            password=hash_password(payload.password),
            number_plate=number_plate,
            role=payload.role,
            status=UserStatus.ACTIVE,
            is_active=True,
            email_verified=False,
            phone_verified=False,
            phone_number=payload.phone_number,
            address=payload.address,
            notes=payload.notes,
            profile_picture=payload.profile_picture,
            created_at=now,
            updated_at=now,
        )
        self.db.add(user)
        await self._commit_user_changes()

        logger.info("Created user %s", user.id)
        return UserOut.model_validate(user)

    async def get_user(self, user_id: str) -> Optional[UserOut]:
        user = await self.db.get(User, user_id)
        return UserOut.model_validate(user) if user else None

    async def get_user_by_email(self, email: str) -> Optional[UserOut]:
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        user = result.scalar_one_or_none()
        return UserOut.model_validate(user) if user else None

    async def get_user_by_number_plate(self, number_plate: str) -> Optional[UserOut]:
        plate = normalize_number_plate(number_plate)
        if not plate:
            return None
        result = await self.db.execute(select(User).where(User.number_plate == plate))
        user = result.scalar_one_or_none()
        return UserOut.model_validate(user) if user else None

    async def authenticate(self, email: str, password: str) -> Optional[UserOut]:
        """Check credentials for an active account and stamp last_login."""
        result = await self.db.execute(select(User).where(User.email == normalize_email(email)))
        user = result.scalar_one_or_none()
        if user is None or not verify_password(password, user.password):
            logger.warning("Failed login for %s", email)
            return None
        if not user.is_active:
            logger.warning("Login refused for inactive user %s", user.id)
            return None

        user.last_login = utcnow()
        await self.db.commit()
        return UserOut.model_validate(user)

    async def search_users(self, term: str, limit: int = 10) -> List[UserOut]:
        """Case-insensitive match on name, email, number plate or phone."""
        term = (term or "").strip()
        if not term:
            return []
        query = (
            select(User)
            .where(self._search_clause(term))
            .order_by(User.name.asc(), User.id.asc())
            .limit(limit)
        )
        result = await self.db.execute(query)
        return [UserOut.model_validate(user) for user in result.scalars()]

    @staticmethod
    def _search_clause(term: str):
        needle = term.lower()
        return or_(
            func.lower(User.name).contains(needle, autoescape=True),
            func.lower(User.email).contains(needle, autoescape=True),
            func.lower(User.number_plate).contains(needle, autoescape=True),
            func.lower(User.phone_number).contains(needle, autoescape=True),
        )

    def _status_action(self, fields: Dict[str, Any]) -> Optional[UserAction]:
        """Map a status / is_active update onto the matching account action."""
        status = fields.pop("status", None)
        is_active = fields.pop("is_active", None)
        if status is not None:
            if is_active is not None and is_active != (status == UserStatus.ACTIVE):
                raise ValidationError(["Active flag must match the account status"])
            return STATUS_ACTION[status]
        if is_active is not None:
            return UserAction.ACTIVATE if is_active else UserAction.DEACTIVATE
        return None

    async def update_user(self, user_id: str, payload: UserUpdate,
                          performed_by: Optional[str] = None) -> Optional[UserOut]:
        fields = payload.model_dump(exclude_unset=True)
        raise_for_errors(validate_not_null(fields, REQUIRED_USER_FIELDS))
        raise_for_errors(validate_user(
            fields.get("name"), fields.get("email"), fields.get("password"),
            fields.get("number_plate"), partial=True,
        ))

        user = await self.db.get(User, user_id)
        if user is None:
            return None

        if "email" in fields:
            fields["email"] = normalize_email(fields["email"])
        if "number_plate" in fields:
            fields["number_plate"] = normalize_number_plate(fields["number_plate"])
        if "name" in fields:
            fields["name"] = fields["name"].strip()
        if "password" in fields:
            fields["password"] = hash_password(fields["password"])
        await self._ensure_unique(fields.get("email"), fields.get("number_plate"), exclude_id=user_id)

        now = utcnow()
        action = self._status_action(fields)
        if action is not None:
            fields.update(action_changes(action, now, performed_by=performed_by))
        _assign(user, fields)
        user.updated_at = now
        await self._commit_user_changes()

        logger.info("Updated user %s", user_id)
        return UserOut.model_validate(user)

    async def apply_action(self, user_id: str, action: UserAction, reason: Optional[str] = None,
                           performed_by: Optional[str] = None,
                           role: Optional[UserRole] = None) -> Optional[UserOut]:
        user = await self.db.get(User, user_id)
        if user is None:
            return None

        now = utcnow()
        if _assign(user, action_changes(action, now, reason, performed_by, role)):
            user.updated_at = now
            await self.db.commit()
            logger.info("Applied %s to user %s", action.value, user_id)
        return UserOut.model_validate(user)

    async def bulk_action(self, user_ids: Sequence[str], action: UserAction, reason: Optional[str] = None,
                          performed_by: Optional[str] = None, role: Optional[UserRole] = None) -> BulkResult:
        if not user_ids:
            raise ValidationError(["User IDs array is required"])

        now = utcnow()
        changes = action_changes(action, now, reason, performed_by, role)
        users = (await self.db.execute(select(User).where(User.id.in_(list(user_ids))))).scalars().all()

        modified = 0
        for user in users:
            if _assign(user, dict(changes)):
                user.updated_at = now
                modified += 1
        await self.db.commit()

        logger.info("Bulk %s: matched %d, modified %d users", action.value, len(users), modified)
        return BulkResult(matched=len(users), modified=modified)

    async def bulk_update(self, user_ids: Sequence[str], payload: UserUpdate) -> BulkResult:
        """Apply the same field update to many users; unique fields are not allowed."""
        if not user_ids:
            raise ValidationError(["User IDs array is required"])

        fields = payload.model_dump(exclude_unset=True)
        if fields.keys() & {"email", "number_plate", "password"}:
            raise ValidationError(["Email, number plate and password cannot be bulk updated"])
        raise_for_errors(validate_not_null(fields, REQUIRED_USER_FIELDS))
        raise_for_errors(validate_user(fields.get("name"), partial=True))

        now = utcnow()
        action = self._status_action(fields)
        if action is not None:
            fields.update(action_changes(action, now))

        users = (await self.db.execute(select(User).where(User.id.in_(list(user_ids))))).scalars().all()
        modified = 0
        for user in users:
            if _assign(user, dict(fields)):
                user.updated_at = now
                modified += 1
        await self.db.commit()

        logger.info("Bulk update: matched %d, modified %d users", len(users), modified)
        return BulkResult(matched=len(users), modified=modified)

    async def delete_user(self, user_id: str) -> bool:
        """Delete a user and their cases; refused while any case is unpaid."""
        user = await self.db.get(User, user_id)
        if user is None:
            return False

        outstanding = (await self.db.execute(
            select(func.count(Case.id)).where(Case.user_id == user_id, Case.status != CaseStatus.PAID)
        )).scalar_one()
        if outstanding:
            logger.warning("Refused to delete user %s: %d outstanding violations", user_id, outstanding)
            raise ConflictError(
                "Cannot delete user with outstanding violations",
                outstanding_violations=outstanding,
            )

        try:
            await self.db.execute(delete(Case).where(Case.user_id == user_id))
            await self.db.delete(user)
            await self.db.commit()
        except Exception:
            await self.db.rollback()
            raise

        logger.info("Deleted user %s and their cases", user_id)
        return True

    def _filtered_query(self, filters: UserFilter):
        query = select(User)
        if filters.search:
            query = query.where(self._search_clause(filters.search))
        if filters.role is not None:
            query = query.where(User.role == filters.role)
        if filters.status is not None:
            query = query.where(User.status == filters.status)
        if filters.is_active is not None:
            query = query.where(User.is_active == filters.is_active)
        if filters.email_verified is not None:
            query = query.where(User.email_verified == filters.email_verified)
        if filters.phone_verified is not None:
            query = query.where(User.phone_verified == filters.phone_verified)
        if filters.registered_after is not None:
            query = query.where(User.created_at >= filters.registered_after)
        if filters.registered_before is not None:
            query = query.where(User.created_at <= filters.registered_before)
        return query.order_by(User.created_at.desc(), User.id.desc())

    async def list_users(self, filters: Optional[UserFilter] = None, page: Optional[int] = None,
                         limit: Optional[int] = None) -> Page[UserWithStats]:
        filters = filters or UserFilter()
        page, limit = resolve_paging(page, limit)
        query = self._filtered_query(filters)

        def with_stats(user: User, rollups: Dict[str, ViolationStats]) -> UserWithStats:
            out = UserWithStats.model_validate(user)
            out.stats = rollups.get(user.id, ViolationStats())
            return out

        if filters.has_violations is None and filters.has_outstanding_fines is None:
            users, total = await paginate_query(self.db, query, page, limit)
            rollups = await self._rollups([u.id for u in users])
            data = [with_stats(u, rollups) for u in users]
            return build_page(data, total, page, limit)

        # Derived filters need every candidate's rollup before slicing
        candidates = (await self.db.execute(query)).scalars().all()
        rollups = await self._rollups([u.id for u in candidates])
        matching = []
        for user in candidates:
            stats = rollups.get(user.id, ViolationStats())
            if filters.has_violations is not None and filters.has_violations != (stats.violationCount > 0):
                continue
            if (filters.has_outstanding_fines is not None
                    and filters.has_outstanding_fines != (stats.outstandingFines > 0)):
                continue
            matching.append(user)

        return paginate_list(matching, page, limit, transform=lambda u: with_stats(u, rollups))

    async def get_details(self, user_id: str) -> Optional[UserDetails]:
        """User record with their violations rolled up and grouped."""
        user = await self.db.get(User, user_id)
        if user is None:
            return None

        cases = (await self.db.execute(
            select(Case).where(Case.user_id == user_id).order_by(Case.created_at.desc(), Case.id.desc())
        )).scalars().all()
        case_outs = [CaseOut.model_validate(c) for c in cases]

        by_status: Dict[str, List[CaseOut]] = defaultdict(list)
        for item in case_outs:
            by_status[item.status.value].append(item)

        return UserDetails(
            user=UserOut.model_validate(user),
            stats=rollup_cases(cases),
            violationsByStatus=dict(by_status),
            paidViolations=[c for c in case_outs if c.status == CaseStatus.PAID],
            pendingViolations=[c for c in case_outs if c.status != CaseStatus.PAID],
            recentViolations=case_outs[:settings.RECENT_VIOLATIONS_LIMIT],
        )
