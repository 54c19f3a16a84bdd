from datetime import datetime
from typing import Optional

from trafficdesk.core.constants import PaymentMethodType, PaymentStatus
from trafficdesk.schemas.common import APIModel


class PaymentMethod(APIModel):
    id: Optional[str] = None
    type: PaymentMethodType = PaymentMethodType.CREDIT_CARD
    provider: Optional[str] = None


class PaymentOut(APIModel):
    id: str
    violation_id: str
    amount: float
    currency: str
    status: PaymentStatus
    method: Optional[PaymentMethod] = None
    transaction_id: Optional[str] = None
    processing_fee: Optional[float] = None
    net_amount: Optional[float] = None
    paid_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
