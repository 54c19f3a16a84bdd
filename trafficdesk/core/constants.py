import enum


class UserRole(enum.Enum):
    USER = "user"
    ADMIN = "admin"
    SUPER_ADMIN = "super_admin"


class UserStatus(enum.Enum):
    ACTIVE = "active"
    SUSPENDED = "suspended"
    INACTIVE = "inactive"


class UserAction(enum.Enum):
    SUSPEND = "suspend"
    ACTIVATE = "activate"
    DEACTIVATE = "deactivate"
    VERIFY_EMAIL = "verify_email"
    VERIFY_PHONE = "verify_phone"
    UPDATE_ROLE = "update_role"


class ViolationType(enum.Enum):
    SPEEDING = "speeding"
    PARKING = "parking"
    TRAFFIC_LIGHT = "traffic_light"
    NO_HELMET = "no_helmet"
    WRONG_LANE = "wrong_lane"
    MOBILE_USE = "mobile_use"
    OTHER = "other"


class CaseStatus(enum.Enum):
    PENDING = "pending"
    PAID = "paid"
    DISPUTED = "disputed"
    RESOLVED = "resolved"
    CANCELLED = "cancelled"


class QueryCategory(enum.Enum):
    VIOLATION_DISPUTE = "violation_dispute"
    PAYMENT_ISSUES = "payment_issues"
    TECHNICAL_SUPPORT = "technical_support"
    GENERAL_INQUIRY = "general_inquiry"


class Priority(enum.Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"


class QueryStatus(enum.Enum):
    OPEN = "open"
    IN_PROGRESS = "in_progress"
    RESOLVED = "resolved"
    CLOSED = "closed"


class PaymentStatus(enum.Enum):
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class PaymentMethodType(enum.Enum):
    CREDIT_CARD = "credit_card"
    DEBIT_CARD = "debit_card"
    BANK_TRANSFER = "bank_transfer"
    DIGITAL_WALLET = "digital_wallet"


# Id prefixes per collection
USER_ID_PREFIX = "user"
CASE_ID_PREFIX = "case"
QUERY_ID_PREFIX = "query"
RESPONSE_ID_PREFIX = "response"
ATTACHMENT_ID_PREFIX = "attachment"
PAYMENT_ID_PREFIX = "payment"

ALLOWED_IMAGE_TYPES = (
    "image/jpeg",
    "image/jpg",
    "image/png",
    "image/gif",
    "image/webp",
)
ALLOWED_VIDEO_TYPES = (
    "video/mp4",
    "video/avi",
    "video/mov",
    "video/wmv",
    "video/flv",
    "video/webm",
)
