from datetime import datetime
from typing import List, Optional

from trafficdesk.core.constants import Priority, QueryCategory, QueryStatus
from trafficdesk.schemas.common import APIModel


class QueryCreate(APIModel):
    user_id: str = ""
    case_id: Optional[str] = None
    subject: str = ""
    message: str = ""
    category: QueryCategory = QueryCategory.GENERAL_INQUIRY
    priority: Priority = Priority.MEDIUM
    is_urgent: bool = False
    tags: Optional[List[str]] = None


class QueryUpdate(APIModel):
    subject: Optional[str] = None
    message: Optional[str] = None
    category: Optional[QueryCategory] = None
    priority: Optional[Priority] = None
    status: Optional[QueryStatus] = None
    assigned_to: Optional[str] = None
    is_urgent: Optional[bool] = None
    tags: Optional[List[str]] = None


class QueryFilter(APIModel):
    user_id: Optional[str] = None
    case_id: Optional[str] = None
    status: Optional[QueryStatus] = None
    category: Optional[QueryCategory] = None
    priority: Optional[Priority] = None
    is_urgent: Optional[bool] = None
    assigned_to: Optional[str] = None
    search: Optional[str] = None
    created_from: Optional[datetime] = None
    created_to: Optional[datetime] = None
    # derived from the attachments table
    has_attachments: Optional[bool] = None


class ResponseCreate(APIModel):
    message: str = ""
    responded_by: str = ""
    is_from_admin: bool = False
    template: Optional[str] = None
    priority: Optional[Priority] = None
    internal_notes: Optional[str] = None
    mark_as_resolved: bool = False


class AttachmentCreate(APIModel):
    query_id: Optional[str] = None
    response_id: Optional[str] = None
    filename: str
    original_name: str
    file_size: int = 0
    file_type: str
    url: str
    public_id: Optional[str] = None
    uploaded_by: str
    is_public: bool = True


class QueryAttachmentOut(APIModel):
    id: str
    query_id: Optional[str] = None
    response_id: Optional[str] = None
    filename: str
    original_name: str
    file_size: int
    file_type: str
    url: str
    public_id: Optional[str] = None
    uploaded_at: datetime
    uploaded_by: str
    is_public: bool


class QueryResponseOut(APIModel):
    id: str
    query_id: str
    message: str
    responded_by: str
    responded_at: datetime
    is_from_admin: bool
    is_edited: bool = False
    edited_at: Optional[datetime] = None
    # admin-only; blanked in user-facing views
    template: Optional[str] = None
    priority: Optional[Priority] = None
    internal_notes: Optional[str] = None


class QueryOut(APIModel):
    id: str
    user_id: str
    case_id: Optional[str] = None
    subject: str
    message: str
    category: QueryCategory
    priority: Priority
    status: QueryStatus
    assigned_to: Optional[str] = None
    tags: Optional[List[str]] = None
    is_urgent: bool
    last_response_at: Optional[datetime] = None
    resolved_at: Optional[datetime] = None
    created_at: datetime
    updated_at: datetime
    responses: List[QueryResponseOut] = []
    attachments: List[QueryAttachmentOut] = []
