from typing import Any, Dict, Optional

from pydantic import BaseModel


class OutcomeOut(BaseModel):
    status: str
    entity_id: Optional[int] = None
    message: str
    data: Dict[str, Any] = {}
