"""
Payload validation helpers.

Every function returns a ValidationResult and never raises; services turn a
failed result into a ValidationError with `raise_for_errors`.
"""
import re
from dataclasses import dataclass, field
from typing import Any, Dict, Iterable, List, Optional

from trafficdesk.core.exceptions import ValidationError
from trafficdesk.core.ids import parse_datetime
from trafficdesk.core.security import MAX_PASSWORD_BYTES

EMAIL_PATTERN = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")
NUMBER_PLATE_PATTERN = re.compile(r"^[A-Z0-9]{3,8}$", re.IGNORECASE)


@dataclass
class ValidationResult:
    is_valid: bool = True
    errors: List[str] = field(default_factory=list)


def _result(errors: List[str]) -> ValidationResult:
    return ValidationResult(is_valid=not errors, errors=errors)


def _text(value: Any) -> str:
    return value.strip() if isinstance(value, str) else ""


def is_valid_email(email: Optional[str]) -> bool:
    return bool(email) and EMAIL_PATTERN.match(email) is not None


def is_valid_number_plate(number_plate: Optional[str]) -> bool:
    return bool(number_plate) and NUMBER_PLATE_PATTERN.match(number_plate.strip()) is not None


def validate_user(name: Any = None, email: Any = None, password: Any = None,
                  number_plate: Optional[str] = None, partial: bool = False) -> ValidationResult:
    """
    Check a user payload.

    With `partial=True` only the supplied (non-None) fields are checked, which
    is how updates are validated.
    """
    errors = []

    if not (partial and name is None) and len(_text(name)) < 2:
        errors.append("Name must be at least 2 characters long")

    if not (partial and email is None) and not is_valid_email(email):
        errors.append("Valid email is required")

    if not (partial and password is None) and len(password or "") < 6:
        errors.append("Password must be at least 6 characters long")
    elif isinstance(password, str) and len(password.encode("utf-8")) > MAX_PASSWORD_BYTES:
        errors.append(f"Password must be at most {MAX_PASSWORD_BYTES} bytes long")

    if number_plate and not is_valid_number_plate(number_plate):
        errors.append("Valid number plate is required")

    return _result(errors)


def validate_case(violation: Any = None, fine: Any = None, proof_url: Any = None,
                  location: Any = None, date: Any = None, due_date: Any = None,
                  partial: bool = False) -> ValidationResult:
    errors = []

    if not (partial and violation is None) and len(_text(violation)) < 5:
        errors.append("Violation description must be at least 5 characters long")

    if not (partial and fine is None):
        if not isinstance(fine, (int, float)) or isinstance(fine, bool) or fine <= 0:
            errors.append("Fine amount must be greater than 0")

    if not (partial and proof_url is None) and not _text(proof_url):
        errors.append("Proof URL is required")

    if not (partial and location is None) and len(_text(location)) < 3:
        errors.append("Location must be at least 3 characters long")

    if not (partial and date is None) and parse_datetime(date) is None:
        errors.append("Valid date is required")

    if due_date is not None and parse_datetime(due_date) is None:
        errors.append("Valid due date is required")

    return _result(errors)


def validate_query(subject: Any = None, message: Any = None, partial: bool = False) -> ValidationResult:
    errors = []

    if not (partial and subject is None) and len(_text(subject)) < 5:
        errors.append("Subject must be at least 5 characters long")

    if not (partial and message is None) and len(_text(message)) < 10:
        errors.append("Message must be at least 10 characters long")

    return _result(errors)


def validate_response(message: Any = None, responded_by: Any = None, partial: bool = False) -> ValidationResult:
    errors = []
    if not _text(message):
        errors.append("Response message is required")
    if not (partial and responded_by is None) and not _text(responded_by):
        errors.append("Responder is required")
    return _result(errors)


def validate_payment(amount: Any = None) -> ValidationResult:
    if not isinstance(amount, (int, float)) or isinstance(amount, bool) or amount <= 0:
        return _result(["Payment amount must be greater than 0"])
    return _result([])


def validate_not_null(fields: Dict[str, Any], required: Iterable[str]) -> ValidationResult:
    """Flag update fields that would clear a column which must always hold a value."""
    return _result([f"{name} cannot be null" for name in required if name in fields and fields[name] is None])


def validate_pagination(page: int, limit: int, max_limit: int) -> ValidationResult:
    errors = []
    if page < 1:
        errors.append("Page must be at least 1")
    if limit < 1 or limit > max_limit:
        errors.append(f"Limit must be between 1 and {max_limit}")
    return _result(errors)


def raise_for_errors(result: ValidationResult) -> None:
    if not result.is_valid:
        raise ValidationError(result.errors)
