from sqlalchemy import JSON, Boolean, Column, DateTime, Enum, Integer, String, Text

from trafficdesk.core.constants import Priority, QueryCategory, QueryStatus
from trafficdesk.core.ids import utcnow
from trafficdesk.models.base import Base, TimestampMixin


class SupportQuery(Base, TimestampMixin):
    """A support ticket raised by a user. Responses and attachments live in their own tables."""
    __tablename__ = 'queries'

    id = Column(String(64), primary_key=True)
    user_id = Column(String(64), nullable=False, index=True)
    case_id = Column(String(64), index=True)

    subject = Column(String(255), nullable=False)
    message = Column(Text, nullable=False)
    category = Column(Enum(QueryCategory), nullable=False, default=QueryCategory.GENERAL_INQUIRY)
    priority = Column(Enum(Priority), nullable=False, default=Priority.MEDIUM)
    status = Column(Enum(QueryStatus), nullable=False, default=QueryStatus.OPEN, index=True)
    assigned_to = Column(String(64))
    tags = Column(JSON)
    is_urgent = Column(Boolean, nullable=False, default=False)

    last_response_at = Column(DateTime)
    resolved_at = Column(DateTime)

    def __repr__(self):
        return f"<SupportQuery {self.id} ({self.status.value})>"


class QueryResponse(Base):
    __tablename__ = 'query_responses'

    id = Column(String(64), primary_key=True)
    query_id = Column(String(64), nullable=False, index=True)
    message = Column(Text, nullable=False)
    responded_by = Column(String(64), nullable=False)
    responded_at = Column(DateTime, nullable=False, default=utcnow)
    is_from_admin = Column(Boolean, nullable=False, default=False)

    # Admin-only fields
    template = Column(String(100))
    priority = Column(Enum(Priority))
    internal_notes = Column(Text)

    is_edited = Column(Boolean, nullable=False, default=False)
    edited_at = Column(DateTime)

    def __repr__(self):
        return f"<QueryResponse {self.id} for {self.query_id}>"


class QueryAttachment(Base):
    __tablename__ = 'query_attachments'

    id = Column(String(64), primary_key=True)
    # exactly one relation context is set
    query_id = Column(String(64), index=True)
    response_id = Column(String(64), index=True)

    filename = Column(String(255), nullable=False)
    original_name = Column(String(255), nullable=False)
    file_size = Column(Integer, nullable=False, default=0)
    file_type = Column(String(100), nullable=False)
    url = Column(String(512), nullable=False)
    public_id = Column(String(255))  # storage handle used for deletion
    uploaded_at = Column(DateTime, nullable=False, default=utcnow)
    uploaded_by = Column(String(64), nullable=False)
    is_public = Column(Boolean, nullable=False, default=True)

    def __repr__(self):
        return f"<QueryAttachment {self.original_name}>"
