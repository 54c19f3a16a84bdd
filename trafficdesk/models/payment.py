from sqlalchemy import JSON, Column, DateTime, Enum, Float, String

from trafficdesk.core.constants import PaymentStatus
from trafficdesk.models.base import Base, TimestampMixin


class PaymentTransaction(Base, TimestampMixin):
    __tablename__ = 'payments'

    id = Column(String(64), primary_key=True)
    violation_id = Column(String(64), nullable=False, index=True)  # cases.id

    amount = Column(Float, nullable=False)
    currency = Column(String(3), nullable=False, default="USD")
    status = Column(Enum(PaymentStatus), nullable=False, default=PaymentStatus.PENDING)
    method = Column(JSON)  # {"id", "type", "provider"}
    transaction_id = Column(String(100), unique=True)
    processing_fee = Column(Float, default=0.0)
    net_amount = Column(Float)
    paid_at = Column(DateTime)

    def __repr__(self):
        return f"<PaymentTransaction {self.transaction_id} - {self.status.value}>"
