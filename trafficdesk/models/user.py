from sqlalchemy import Boolean, Column, DateTime, Enum, String, Text

from trafficdesk.core.constants import UserRole, UserStatus
from trafficdesk.models.base import Base, TimestampMixin


class User(Base, TimestampMixin):
    __tablename__ = 'users'

    id = Column(String(64), primary_key=True)

    # Personal Details
    name = Column(String(255), nullable=False)
    email = Column(String(255), unique=True, nullable=False)  # stored lower-cased
    password = Column(String(255), nullable=False)  # bcrypt hash, never serialized
    number_plate = Column(String(8), unique=True)  # stored upper-cased
    phone_number = Column(String(20))
    address = Column(String(255))
    profile_picture = Column(String(512))
    notes = Column(Text)

    # Account & Verification
    role = Column(Enum(UserRole), nullable=False, default=UserRole.USER)
    status = Column(Enum(UserStatus), nullable=False, default=UserStatus.ACTIVE, index=True)
    is_active = Column(Boolean, nullable=False, default=True)
    email_verified = Column(Boolean, nullable=False, default=False)
    phone_verified = Column(Boolean, nullable=False, default=False)
    last_login = Column(DateTime)

    # Suspension
    suspended_at = Column(DateTime)
    suspended_reason = Column(String(255))
    suspended_by = Column(String(64))

    def __repr__(self):
        return f"<User {self.email} ({self.role.value})>"
