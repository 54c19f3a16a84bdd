from datetime import timedelta

import pytest

from trafficdesk.core.constants import CaseStatus, Priority, QueryStatus, UserAction, UserRole, ViolationType
from trafficdesk.models.queries import SupportQuery
from trafficdesk.models.user import User
from trafficdesk.schemas.query import QueryUpdate
from trafficdesk.services.stats_service import StatsService, rollup_cases


@pytest.fixture
def stats(session):
    return StatsService(session)


@pytest.mark.asyncio
async def test_case_stats_totals(make_user, make_case, cases, stats):
    user = await make_user()
    await make_case(user.id, fine=100.0)
    await make_case(user.id, fine=200.0, violation_type=ViolationType.PARKING)
    paid = await make_case(user.id, fine=300.0, date="2024-03-15T09:00:00Z")
    await cases.set_status(paid.id, CaseStatus.PAID)

    result = await stats.case_stats()
    assert result.totalFines == 600
    assert result.collectedFines == 300
    assert result.outstandingFines == 300
    assert result.totalCases == 3
    assert result.pendingCases == 2
    assert result.paidCases == 1
    assert result.disputedCases == 0
    assert result.casesByMonth == {"2024-02": 2, "2024-03": 1}


@pytest.mark.asyncio
async def test_case_stats_list_every_violation_type(stats):
    result = await stats.case_stats()
    assert result.totalCases == 0
    assert result.casesByType == {t.value: 0 for t in ViolationType}
    assert result.casesByMonth == {}


@pytest.mark.asyncio
async def test_user_stats(make_user, users, stats, session):
    first = await make_user()
    await make_user(role=UserRole.ADMIN)
    old = await make_user()
    await users.apply_action(first.id, UserAction.SUSPEND)
    await users.apply_action(old.id, UserAction.VERIFY_EMAIL)

    row = await session.get(User, old.id)
    row.created_at = row.created_at.replace(day=1) - timedelta(days=40)
    await session.commit()

    result = await stats.user_stats()
    assert result.totalUsers == 3
    assert result.activeUsers == 2
    assert result.newUsersThisMonth == 2
    assert result.usersByRole == {"user": 2, "admin": 1, "super_admin": 0}
    assert result.usersByStatus == {"active": 2, "suspended": 1, "inactive": 0}
    assert result.emailVerifiedUsers == 1
    assert result.phoneVerifiedUsers == 0


@pytest.mark.asyncio
async def test_query_stats_average_resolution_hours(make_user, make_query, queries, stats, session):
    user = await make_user()
    fast = await make_query(user.id, priority=Priority.HIGH)
    slow = await make_query(user.id)
    await make_query(user.id)

    await queries.update_query(fast.id, QueryUpdate(status=QueryStatus.RESOLVED))
    await queries.update_query(slow.id, QueryUpdate(status=QueryStatus.RESOLVED))
    for query_id, hours in ((fast.id, 2), (slow.id, 4)):
        row = await session.get(SupportQuery, query_id)
        row.resolved_at = row.created_at + timedelta(hours=hours)
    await session.commit()

    result = await stats.query_stats()
    assert result.totalQueries == 3
    assert result.openQueries == 1
    assert result.resolvedQueries == 2
    assert result.averageResponseTime == pytest.approx(3.0)
    assert result.queriesByPriority == {"low": 0, "medium": 2, "high": 1}
    assert result.queriesByCategory["general_inquiry"] == 3


@pytest.mark.asyncio
async def test_query_stats_without_resolved_queries(stats):
    result = await stats.query_stats()
    assert result.averageResponseTime == 0
    assert set(result.queriesByCategory) == {
        "violation_dispute", "payment_issues", "technical_support", "general_inquiry",
    }


@pytest.mark.asyncio
async def test_top_violators(make_user, make_case, stats):
    heavy = await make_user(name="Heavy Foot")
    light = await make_user()
    for fine in (100.0, 50.0, 25.0):
        await make_case(heavy.id, fine=fine)
    await make_case(light.id, fine=500.0)

    ranking = await stats.top_violators()
    assert [v.userId for v in ranking] == [heavy.id, light.id]
    assert ranking[0].userName == "Heavy Foot"
    assert ranking[0].violationCount == 3
    assert ranking[0].totalFines == 175.0
    assert len(await stats.top_violators(limit=1)) == 1


@pytest.mark.asyncio
async def test_dashboard_combines_sets(make_user, make_case, stats):
    user = await make_user()
    await make_case(user.id)

    overview = await stats.dashboard()
    assert overview.users.totalUsers == 1
    assert overview.cases.totalCases == 1
    assert overview.queries.totalQueries == 0


def test_rollup_cases():
    class Row:
        def __init__(self, fine, status):
            self.fine = fine
            self.status = status

    rollup = rollup_cases([Row(100, CaseStatus.PENDING), Row(40, CaseStatus.PAID), Row(10, CaseStatus.DISPUTED)])
    assert rollup.violationCount == 3
    assert rollup.totalFines == 150
    assert rollup.outstandingFines == 110
    assert rollup.paidFines == 40
