from datetime import datetime
from typing import List, Optional, Union

from trafficdesk.core.constants import CaseStatus, ViolationType
from trafficdesk.schemas.common import APIModel


class VehicleDetails(APIModel):
    make: Optional[str] = None
    model: Optional[str] = None
    color: Optional[str] = None
    year: Optional[int] = None


class CaseCreate(APIModel):
    # Loose types so content rules report errors instead of failing parsing
    user_id: str = ""
    violation_type: ViolationType = ViolationType.OTHER
    violation: str = ""
    fine: Optional[float] = None
    proof_url: str = ""
    location: str = ""
    date: Optional[Union[datetime, str]] = None
    due_date: Optional[Union[datetime, str]] = None
    admin_notes: Optional[str] = None
    evidence_urls: Optional[List[str]] = None
    officer_id: Optional[str] = None
    vehicle_details: Optional[VehicleDetails] = None


class CaseUpdate(APIModel):
    violation_type: Optional[ViolationType] = None
    violation: Optional[str] = None
    fine: Optional[float] = None
    proof_url: Optional[str] = None
    location: Optional[str] = None
    date: Optional[Union[datetime, str]] = None
    due_date: Optional[Union[datetime, str]] = None
    status: Optional[CaseStatus] = None
    admin_notes: Optional[str] = None
    evidence_urls: Optional[List[str]] = None
    officer_id: Optional[str] = None
    vehicle_details: Optional[VehicleDetails] = None


class CaseFilter(APIModel):
    user_id: Optional[str] = None
    status: Optional[CaseStatus] = None
    violation_type: Optional[ViolationType] = None
    search: Optional[str] = None
    min_fine: Optional[float] = None
    max_fine: Optional[float] = None
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None
    is_paid: Optional[bool] = None
    is_disputed: Optional[bool] = None


class CaseOut(APIModel):
    id: str
    user_id: str
    violation_type: ViolationType
    violation: str
    fine: float
    proof_url: str
    location: str
    date: datetime
    status: CaseStatus
    due_date: Optional[datetime] = None
    paid_at: Optional[datetime] = None
    disputed_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    admin_notes: Optional[str] = None
    evidence_urls: Optional[List[str]] = None
    officer_id: Optional[str] = None
    vehicle_details: Optional[VehicleDetails] = None
    created_at: datetime
    updated_at: datetime
