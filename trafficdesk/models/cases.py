from sqlalchemy import JSON, Column, DateTime, Enum, Float, String, Text

from trafficdesk.core.constants import CaseStatus, ViolationType
from trafficdesk.models.base import Base, TimestampMixin


class Case(Base, TimestampMixin):
    __tablename__ = 'cases'

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)  # users.id, checked on create

    # Violation Details
    violation_type = Column(Enum(ViolationType), nullable=False, default=ViolationType.OTHER)
    violation = Column(Text, nullable=False)
    location = Column(String(255), nullable=False)
    date = Column(DateTime, nullable=False)
    proof_url = Column(String(512), nullable=False)
    evidence_urls = Column(JSON)  # extra evidence file URLs
    officer_id = Column(String(64))
    vehicle_details = Column(JSON)  # make/model/color/year

    # Fine & Status
    fine = Column(Float, nullable=False)
    status = Column(Enum(CaseStatus), nullable=False, default=CaseStatus.PENDING, index=True)
    due_date = Column(DateTime)
    paid_at = Column(DateTime)
    disputed_at = Column(DateTime)
    resolved_at = Column(DateTime)
    admin_notes = Column(Text)

    def __repr__(self):
        return f"<Case {self.id} - {self.violation_type.value}>"
