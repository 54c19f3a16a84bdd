from datetime import datetime
from typing import Dict, List, Optional

from pydantic import BaseModel

from trafficdesk.core.constants import UserRole, UserStatus
from trafficdesk.schemas.case import CaseOut
from trafficdesk.schemas.common import APIModel


class UserCreate(APIModel):
    name: str = ""
    email: str = ""
    password: str = ""
    number_plate: Optional[str] = None
    role: UserRole = UserRole.USER
    phone_number: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    profile_picture: Optional[str] = None


class UserUpdate(APIModel):
    name: Optional[str] = None
    email: Optional[str] = None
    password: Optional[str] = None
    number_plate: Optional[str] = None
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    is_active: Optional[bool] = None
    email_verified: Optional[bool] = None
    phone_verified: Optional[bool] = None
    phone_number: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    profile_picture: Optional[str] = None
    last_login: Optional[datetime] = None


class UserFilter(APIModel):
    role: Optional[UserRole] = None
    status: Optional[UserStatus] = None
    is_active: Optional[bool] = None
    email_verified: Optional[bool] = None
    phone_verified: Optional[bool] = None
    search: Optional[str] = None
    registered_after: Optional[datetime] = None
    registered_before: Optional[datetime] = None
    # derived from the user's cases
    has_violations: Optional[bool] = None
    has_outstanding_fines: Optional[bool] = None


class UserOut(APIModel):
    id: str
    name: str
    email: str
    number_plate: Optional[str] = None
    role: UserRole
    status: UserStatus
    is_active: bool
    email_verified: bool
    phone_verified: bool
    phone_number: Optional[str] = None
    address: Optional[str] = None
    notes: Optional[str] = None
    profile_picture: Optional[str] = None
    last_login: Optional[datetime] = None
    suspended_at: Optional[datetime] = None
    suspended_reason: Optional[str] = None
    suspended_by: Optional[str] = None
    created_at: datetime
    updated_at: datetime


class ViolationStats(BaseModel):
    violationCount: int = 0
    totalFines: float = 0.0
    outstandingFines: float = 0.0
    paidFines: float = 0.0


class UserWithStats(UserOut):
    stats: ViolationStats = ViolationStats()


class UserDetails(BaseModel):
    user: UserOut
    stats: ViolationStats
    violationsByStatus: Dict[str, List[CaseOut]]
    paidViolations: List[CaseOut]
    pendingViolations: List[CaseOut]
    recentViolations: List[CaseOut]
