from datetime import date, datetime
from decimal import Decimal
from typing import Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator


class JobCreate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: str
    positions_count: int = Field(default=1, ge=1)
    description: Optional[str] = None
    requirements: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    employment_type: Optional[str] = None
    experience_level: Optional[str] = None
    salary_min: Optional[Decimal] = None
    salary_max: Optional[Decimal] = None
    application_deadline: Optional[date] = None

    @field_validator("title")
    @classmethod
    def _strip_title(cls, v: str) -> str:
        return v.strip()


class JobUpdate(BaseModel):
    model_config = ConfigDict(extra="forbid")

    title: Optional[str] = None
    positions_count: Optional[int] = Field(default=None, ge=1)
    description: Optional[str] = None
    requirements: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    employment_type: Optional[str] = None
    experience_level: Optional[str] = None
    salary_min: Optional[Decimal] = None
    salary_max: Optional[Decimal] = None
    application_deadline: Optional[date] = None


class JobSubmitIn(BaseModel):
    approver_id: int


class ApprovalDecisionIn(BaseModel):
    comments: Optional[str] = None


class JobOut(BaseModel):
    id: int
    company_id: int
    created_by: Optional[int] = None
    title: str
    description: Optional[str] = None
    requirements: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    employment_type: Optional[str] = None
    experience_level: Optional[str] = None
    salary_min: Optional[Decimal] = None
    salary_max: Optional[Decimal] = None
    application_deadline: Optional[date] = None
    status: str
    positions_count: int
    published_at: Optional[datetime] = None
    closed_at: Optional[datetime] = None
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PublicJobOut(BaseModel):
    id: int
    company_id: int
    title: str
    description: Optional[str] = None
    requirements: Optional[str] = None
    location: Optional[str] = None
    department: Optional[str] = None
    employment_type: Optional[str] = None
    experience_level: Optional[str] = None
    application_deadline: Optional[date] = None
    positions_count: int
    published_at: Optional[datetime] = None

    class Config:
        from_attributes = True


class PendingApprovalOut(BaseModel):
    approval_id: int
    job_id: int
    job_title: str
    job_status: str
    positions_count: int
    requested_by: Optional[int] = None
    created_at: Optional[datetime] = None
