from datetime import datetime
from typing import Any, Dict, Optional

from pydantic import BaseModel, ConfigDict, Field


class InterviewCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    application_id: int
    interviewer_id: int
    scheduled_at: datetime
    duration_minutes: Optional[int] = None
    meeting_link: Optional[str] = None
    notes: Optional[str] = None


class InterviewUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    status: Optional[str] = None
    notes: Optional[str] = None


class InterviewOut(BaseModel):
    id: int
    application_id: int
    interviewer_id: int
    scheduled_at: datetime
    duration_minutes: int
    status: str
    meeting_link: Optional[str] = None
    notes: Optional[str] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class ScorecardCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    interview_id: int
    recommendation: str = Field(min_length=1)
    ratings: Optional[Dict[str, Any]] = None
    comments: Optional[str] = None


class ScorecardOut(BaseModel):
    id: int
    interview_id: int
    interviewer_id: int
    ratings: Optional[Dict[str, Any]] = None
    comments: Optional[str] = None
    recommendation: str
    is_final: int
    submitted_at: Optional[datetime] = None
    created_at: Optional[datetime] = None

    class Config:
        from_attributes = True
