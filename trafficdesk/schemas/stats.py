from typing import Dict

from pydantic import BaseModel


class UserStats(BaseModel):
    totalUsers: int
    activeUsers: int
    newUsersThisMonth: int
    usersByRole: Dict[str, int]
    usersByStatus: Dict[str, int]
    emailVerifiedUsers: int
    phoneVerifiedUsers: int


class CaseStats(BaseModel):
    totalCases: int
    pendingCases: int
    paidCases: int
    disputedCases: int
    totalFines: float
    collectedFines: float
    outstandingFines: float
    casesByType: Dict[str, int]
    casesByMonth: Dict[str, int]


class QueryStats(BaseModel):
    totalQueries: int
    openQueries: int
    resolvedQueries: int
    averageResponseTime: float  # hours
    queriesByCategory: Dict[str, int]
    queriesByPriority: Dict[str, int]


class TopViolator(BaseModel):
    userId: str
    userName: str
    userEmail: str
    violationCount: int
    totalFines: float


class DashboardStats(BaseModel):
    users: UserStats
    cases: CaseStats
    queries: QueryStats
