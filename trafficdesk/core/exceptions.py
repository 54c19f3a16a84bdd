"""Error kinds raised by the services."""

from typing import Any, Dict, List, Optional


class TrafficDeskError(Exception):
    """Base error with a stable code and structured details."""

    code = "TRAFFICDESK_ERROR"

    def __init__(self, message: str, details: Optional[Dict[str, Any]] = None):
        super().__init__(message)
        self.message = message
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Serialize in the {success, error} envelope used by API callers."""
        result: Dict[str, Any] = {"success": False, "error": self.message}
        result.update(self.details)
        return result


class ValidationError(TrafficDeskError):
    """Payload failed shape or content rules. The caller can fix the input."""

    code = "VALIDATION_ERROR"

    def __init__(self, errors: List[str], message: Optional[str] = None):
        self.errors = list(errors)
        super().__init__(message or f"Validation failed: {', '.join(self.errors)}")


class ConflictError(TrafficDeskError):
    """Uniqueness violation, or a delete blocked by dependent records."""

    code = "CONFLICT"

    def __init__(self, message: str, **details: Any):
        super().__init__(message, details)

    def __getattr__(self, name: str) -> Any:
        # details such as outstanding_violations read as attributes
        details = self.__dict__.get("details", {})
        if name in details:
            return details[name]
        raise AttributeError(name)


class NotFoundError(TrafficDeskError):
    """Operation targets a missing record."""

    code = "NOT_FOUND"

    def __init__(self, entity: str, entity_id: str):
        self.entity = entity
        self.entity_id = entity_id
        super().__init__(f"{entity} not found", {"entityId": entity_id})


class StorageError(TrafficDeskError):
    """Object storage collaborator reported a failed upload."""

    code = "STORAGE_ERROR"
