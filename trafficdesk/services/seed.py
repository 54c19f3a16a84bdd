"""
Sample data, plus a JSON-safe export/import of every table for backup and migration.
"""
import enum
import logging
from datetime import datetime
from typing import Any, Dict, List

from sqlalchemy import DateTime, Enum, delete, select
from sqlalchemy.ext.asyncio import AsyncSession

from trafficdesk.core.constants import (
    CaseStatus,
    Priority,
    QueryCategory,
    QueryStatus,
    UserRole,
    UserStatus,
    ViolationType,
)
from trafficdesk.core.ids import parse_datetime
from trafficdesk.core.security import hash_password
from trafficdesk.models.cases import Case
from trafficdesk.models.payment import PaymentTransaction
from trafficdesk.models.queries import QueryAttachment, QueryResponse, SupportQuery
from trafficdesk.models.user import User

logger = logging.getLogger(__name__)

# export order; import deletes in reverse
MODELS = (User, Case, SupportQuery, QueryResponse, QueryAttachment, PaymentTransaction)


def _sample_rows() -> Dict[type, List[Dict[str, Any]]]:
    return {
        User: [
            {
                "id": "user-1",
                "name": "John Doe",
                "email": "john@example.com",
                "password": hash_password("password123"),
                "number_plate": "ABC123",
                "role": UserRole.USER,
                "status": UserStatus.ACTIVE,
                "is_active": True,
                "phone_number": "+1234567890",
                "address": "123 Main St, City",
                "created_at": datetime(2024, 1, 15, 10, 30),
                "updated_at": datetime(2024, 1, 15, 10, 30),
            },
            {
                "id": "admin-1",
                "name": "Admin User",
                "email": "admin@example.com",
                "password": hash_password("admin123"),
                "number_plate": "ADMIN01",
                "role": UserRole.ADMIN,
                "status": UserStatus.ACTIVE,
                "is_active": True,
                "created_at": datetime(2024, 1, 1),
                "updated_at": datetime(2024, 1, 1),
            },
        ],
        Case: [
            {
                "id": "case-1",
                "user_id": "user-1",
                "violation_type": ViolationType.SPEEDING,
                "violation": "Exceeding speed limit by 20 km/h",
                "fine": 150.0,
                "proof_url": "/images/proof1.jpg",
                "location": "Main Street intersection",
                "date": datetime(2024, 2, 1, 14, 30),
                "status": CaseStatus.PENDING,
                "due_date": datetime(2024, 3, 1, 23, 59, 59),
                "officer_id": "officer-1",
                "created_at": datetime(2024, 2, 1, 15, 0),
                "updated_at": datetime(2024, 2, 1, 15, 0),
            },
        ],
        SupportQuery: [
            {
                "id": "query-1",
                "user_id": "user-1",
                "case_id": "case-1",
                "subject": "Dispute speeding violation",
                "message": "I believe this violation was issued in error...",
                "category": QueryCategory.VIOLATION_DISPUTE,
                "priority": Priority.MEDIUM,
                "status": QueryStatus.OPEN,
                "tags": ["dispute", "speeding"],
                "is_urgent": False,
                "created_at": datetime(2024, 2, 5, 10, 0),
                "updated_at": datetime(2024, 2, 5, 10, 0),
            },
        ],
    }


async def seed_sample_data(db: AsyncSession) -> Dict[str, int]:
    """Insert the sample users, case and query; rows that already exist are skipped."""
    inserted = {}
    for model, rows in _sample_rows().items():
        count = 0
        for row in rows:
            if await db.get(model, row["id"]) is None:
                db.add(model(**row))
                count += 1
        inserted[model.__tablename__] = count
    await db.commit()

    logger.info("Seeded sample data: %s", inserted)
    return inserted


def _to_json(value: Any) -> Any:
    if isinstance(value, datetime):
        return value.isoformat()
    if isinstance(value, enum.Enum):
        return value.value
    return value


def _from_json(column, value: Any) -> Any:
    if value is None:
        return None
    if isinstance(column.type, DateTime):
        return parse_datetime(value)
    if isinstance(column.type, Enum) and column.type.enum_class is not None:
        return column.type.enum_class(value)
    return value


async def export_data(db: AsyncSession) -> Dict[str, List[Dict[str, Any]]]:
    """Every row of every table, keyed by table name, as JSON-safe dicts."""
    snapshot = {}
    for model in MODELS:
        columns = list(model.__table__.columns)
        rows = (await db.execute(select(model).order_by(model.id))).scalars().all()
        snapshot[model.__tablename__] = [
            {column.name: _to_json(getattr(row, column.name)) for column in columns} for row in rows
        ]
    return snapshot


async def import_data(db: AsyncSession, data: Dict[str, List[Dict[str, Any]]]) -> Dict[str, int]:
    """Replace the contents of every table with an `export_data` snapshot."""
    try:
        for model in reversed(MODELS):
            await db.execute(delete(model))
        # rows loaded before the wipe must not shadow the imported ones
        db.expunge_all()

        imported = {}
        for model in MODELS:
            columns = {column.name: column for column in model.__table__.columns}
            rows = data.get(model.__tablename__, [])
            for row in rows:
                db.add(model(**{
                    name: _from_json(columns[name], value)
                    for name, value in row.items() if name in columns
                }))
            imported[model.__tablename__] = len(rows)
        await db.commit()
    except Exception:
        await db.rollback()
        raise

    logger.info("Imported data: %s", imported)
    return imported
