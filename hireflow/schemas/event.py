import json
from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, field_validator


class WorkflowEventOut(BaseModel):
    id: int
    entity_type: str
    entity_id: Optional[int] = None
    action_type: str
    from_status: Optional[str] = None
    to_status: Optional[str] = None
    performed_by: Optional[int] = None
    meta_json: Dict[str, Any] = {}
    created_at: datetime

    @field_validator("meta_json", mode="before")
    @classmethod
    def _parse_meta(cls, v: Any) -> Dict[str, Any]:
        if not v:
            return {}
        if isinstance(v, str):
            try:
                parsed = json.loads(v)
            except ValueError:
                return {"raw": v}
            return parsed if isinstance(parsed, dict) else {"value": parsed}
        return v

    class Config:
        from_attributes = True
