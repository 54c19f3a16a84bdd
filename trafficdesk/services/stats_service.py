from typing import Dict, Iterable, List

from sqlalchemy import desc, func, select
from sqlalchemy.ext.asyncio import AsyncSession

from trafficdesk.core.constants import (
    CaseStatus,
    Priority,
    QueryCategory,
    QueryStatus,
    UserRole,
    UserStatus,
    ViolationType,
)
from trafficdesk.core.ids import utcnow
from trafficdesk.models.cases import Case
from trafficdesk.models.queries import SupportQuery
from trafficdesk.models.user import User
from trafficdesk.schemas.stats import CaseStats, DashboardStats, QueryStats, TopViolator, UserStats
from trafficdesk.schemas.user import ViolationStats


def _zeroed(members) -> Dict[str, int]:
    return {member.value: 0 for member in members}


def rollup_cases(cases: Iterable[Case]) -> ViolationStats:
    """Violation count and fine totals for a set of cases (usually one user's)."""
    stats = ViolationStats()
    for case in cases:
        stats.violationCount += 1
        stats.totalFines += case.fine
        if case.status == CaseStatus.PAID:
            stats.paidFines += case.fine
        else:
            stats.outstandingFines += case.fine
    return stats


class StatsService:
    """Summary figures for the dashboards. Each set is read with a single SELECT."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def user_stats(self) -> UserStats:
        rows = (await self.db.execute(
            select(User.role, User.status, User.is_active, User.email_verified,
                   User.phone_verified, User.created_at)
        )).all()

        now = utcnow()
        month_start = now.replace(day=1, hour=0, minute=0, second=0, microsecond=0)

        by_role = _zeroed(UserRole)
        by_status = _zeroed(UserStatus)
        for row in rows:
            by_role[row.role.value] += 1
            by_status[row.status.value] += 1

        return UserStats(
            totalUsers=len(rows),
            activeUsers=sum(1 for row in rows if row.is_active),
            newUsersThisMonth=sum(1 for row in rows if row.created_at >= month_start),
            usersByRole=by_role,
            usersByStatus=by_status,
            emailVerifiedUsers=sum(1 for row in rows if row.email_verified),
            phoneVerifiedUsers=sum(1 for row in rows if row.phone_verified),
        )

    async def case_stats(self) -> CaseStats:
        rows = (await self.db.execute(
            select(Case.status, Case.fine, Case.violation_type, Case.date)
        )).all()

        by_type = _zeroed(ViolationType)
        by_month: Dict[str, int] = {}
        for row in rows:
            by_type[row.violation_type.value] += 1
            key = row.date.strftime("%Y-%m")
            by_month[key] = by_month.get(key, 0) + 1

        total_fines = sum(row.fine for row in rows)
        collected = sum(row.fine for row in rows if row.status == CaseStatus.PAID)

        return CaseStats(
            totalCases=len(rows),
            pendingCases=sum(1 for row in rows if row.status == CaseStatus.PENDING),
            paidCases=sum(1 for row in rows if row.status == CaseStatus.PAID),
            disputedCases=sum(1 for row in rows if row.status == CaseStatus.DISPUTED),
            totalFines=total_fines,
            collectedFines=collected,
            outstandingFines=total_fines - collected,
            casesByType=by_type,
            casesByMonth=dict(sorted(by_month.items())),
        )

    async def query_stats(self) -> QueryStats:
        rows = (await self.db.execute(
            select(SupportQuery.status, SupportQuery.category, SupportQuery.priority,
                   SupportQuery.created_at, SupportQuery.resolved_at)
        )).all()

        by_category = _zeroed(QueryCategory)
        by_priority = _zeroed(Priority)
        for row in rows:
            by_category[row.category.value] += 1
            by_priority[row.priority.value] += 1

        resolved = [row for row in rows if row.status == QueryStatus.RESOLVED]
        elapsed = sum(
            (row.resolved_at - row.created_at).total_seconds()
            for row in resolved if row.resolved_at is not None
        )
        average_hours = elapsed / len(resolved) / 3600 if resolved else 0.0

        return QueryStats(
            totalQueries=len(rows),
            openQueries=sum(1 for row in rows if row.status == QueryStatus.OPEN),
            resolvedQueries=len(resolved),
            averageResponseTime=average_hours,
            queriesByCategory=by_category,
            queriesByPriority=by_priority,
        )

    async def top_violators(self, limit: int = 10) -> List[TopViolator]:
        """Users ranked by number of cases, with their total fines."""
        violation_count = func.count(Case.id).label("violation_count")
        grouped = (await self.db.execute(
            select(Case.user_id, violation_count, func.coalesce(func.sum(Case.fine), 0).label("total_fines"))
            .group_by(Case.user_id)
            .order_by(desc(violation_count), Case.user_id)
            .limit(limit)
        )).all()
        if not grouped:
            return []

        users = (await self.db.execute(
            select(User).where(User.id.in_([row.user_id for row in grouped]))
        )).scalars().all()
        users_by_id = {user.id: user for user in users}

        violators = []
        for row in grouped:
            user = users_by_id.get(row.user_id)
            violators.append(TopViolator(
                userId=row.user_id,
                userName=user.name if user else "Unknown User",
                userEmail=user.email if user else "Unknown Email",
                violationCount=row.violation_count,
                totalFines=float(row.total_fines),
            ))
        return violators

    async def dashboard(self) -> DashboardStats:
        return DashboardStats(
            users=await self.user_stats(),
            cases=await self.case_stats(),
            queries=await self.query_stats(),
        )
