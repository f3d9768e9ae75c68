from pydantic import BaseModel
from datetime import datetime
from typing import Any, Optional


class AuditLogResponse(BaseModel):
    id: str
    action: str
    resource_type: str
    resource_id: str
    changes: Optional[Any] = None
    user_id: str
    user_name: Optional[str] = None
    user_email: Optional[str] = None
    created_at: datetime

    model_config = {"from_attributes": True}


class AuditLogListResponse(BaseModel):
    """Paginated audit log list response."""

    items: list[AuditLogResponse]
    total: int
    page: int
    limit: int
    total_pages: int


class AuditCleanupResponse(BaseModel):
    deleted_count: int
    days: int
