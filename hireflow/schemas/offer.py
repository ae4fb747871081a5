from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict


class OfferCreateIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    application_id: int
    offer_details: Optional[Dict[str, Any]] = None


class OfferSendIn(BaseModel):
    esign_link: Optional[str] = None


class OfferOut(BaseModel):
    id: int
    application_id: int
    created_by: Optional[int] = None
    status: str
    offer_details: Optional[Dict[str, Any]] = None
    document_url: Optional[str] = None
    esign_link: Optional[str] = None
    sent_at: Optional[datetime] = None
    responded_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
