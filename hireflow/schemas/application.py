from datetime import datetime
from typing import Dict, Optional

from pydantic import AliasChoices, BaseModel, ConfigDict, Field


class ApplyIn(BaseModel):
    model_config = ConfigDict(extra="forbid")

    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None


class ScreenIn(BaseModel):
    # "status" is accepted in place of "decision".
    decision: str = Field(validation_alias=AliasChoices("decision", "status"))


class MoveStageIn(BaseModel):
    status: str
    current_stage_id: Optional[int] = None


class FinalDecisionIn(BaseModel):
    decision: str = Field(validation_alias=AliasChoices("decision", "status"))


class ApplicationOut(BaseModel):
    id: int
    job_id: int
    candidate_id: int
    status: str
    current_stage_id: Optional[int] = None
    offer_recommended: int = 0
    resume_url: Optional[str] = None
    cover_letter: Optional[str] = None
    applied_at: Optional[datetime] = None
    screening_decision_at: Optional[datetime] = None
    final_decision_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class CandidateApplicationOut(BaseModel):
    id: int
    job_id: int
    job_title: str
    company_id: int
    status: str
    applied_at: Optional[datetime] = None


class ApplicationStatsOut(BaseModel):
    job_id: int
    total: int
    by_status: Dict[str, int]
