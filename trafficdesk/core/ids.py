import secrets
import string
import time
from datetime import datetime, timezone
from typing import Optional, Union

_BASE36 = string.digits + string.ascii_lowercase


def generate_id(prefix: str) -> str:
    """Build `{prefix}-{epoch_millis}-{9 base36 chars}`."""
    millis = int(time.time() * 1000)
    suffix = "".join(secrets.choice(_BASE36) for _ in range(9))
    return f"{prefix}-{millis}-{suffix}"


def utcnow() -> datetime:
    """Current instant as a naive UTC datetime, the way it is stored."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def now_iso() -> str:
    return utcnow().isoformat()


def parse_datetime(value: Union[str, datetime, None]) -> Optional[datetime]:
    """
    Parse an ISO-8601 string (a trailing `Z` is accepted) to naive UTC.

    Returns None when the value is missing or unparseable.
    """
    if value is None:
        return None
    if isinstance(value, datetime):
        parsed = value
    else:
        text = str(value).strip()
        if not text:
            return None
        if text.endswith("Z") or text.endswith("z"):
            text = text[:-1] + "+00:00"
        try:
            parsed = datetime.fromisoformat(text)
        except ValueError:
            return None

    if parsed.tzinfo is not None:
        parsed = parsed.astimezone(timezone.utc).replace(tzinfo=None)
    return parsed
