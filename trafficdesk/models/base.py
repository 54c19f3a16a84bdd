from sqlalchemy import Column, DateTime
from sqlalchemy.orm import declarative_base

from trafficdesk.core.ids import utcnow

Base = declarative_base()


class TimestampMixin:
    created_at = Column(DateTime, default=utcnow, nullable=False, index=True)
    updated_at = Column(DateTime, default=utcnow, onupdate=utcnow, nullable=False)
