"""Status transition tables: which timestamp column a status stamps on entry."""
from datetime import datetime
from typing import Any, Dict, Optional

from trafficdesk.core.constants import CaseStatus, QueryStatus

CASE_STATUS_TIMESTAMPS: Dict[CaseStatus, str] = {
    CaseStatus.PAID: "paid_at",
    CaseStatus.DISPUTED: "disputed_at",
    CaseStatus.RESOLVED: "resolved_at",
}

QUERY_STATUS_TIMESTAMPS: Dict[QueryStatus, str] = {
    QueryStatus.RESOLVED: "resolved_at",
}


def apply_status(record: Any, new_status: Any, table: Dict[Any, str], now: datetime) -> bool:
    """
    Move `record` to `new_status`, stamping the table's timestamp on entry.

    Timestamps are never cleared. Returns False when the status is unchanged.
    """
    if record.status == new_status:
        return False

    record.status = new_status
    column: Optional[str] = table.get(new_status)
    if column is not None:
        setattr(record, column, now)
    record.updated_at = now
    return True
