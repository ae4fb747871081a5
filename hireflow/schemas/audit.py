from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel


class AuditLogOut(BaseModel):
    id: int
    company_id: Optional[int] = None
    user_id: Optional[int] = None
    role: Optional[str] = None
    method: str
    path: str
    entity_type: Optional[str] = None
    entity_id: Optional[int] = None
    action: str
    status_code: int
    request_id: Optional[str] = None
    payload_json: Optional[Dict[str, Any]] = None
    created_at: datetime

    class Config:
        from_attributes = True
