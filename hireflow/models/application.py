from datetime import datetime

from sqlalchemy import DateTime, Integer, String, Text, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from hireflow.core.datetime_utils import utcnow_naive
from hireflow.core.workflow import ApplicationStatus
from hireflow.db.base import Base


class Application(Base):
    __tablename__ = "applications"
    __table_args__ = (UniqueConstraint("job_id", "candidate_id", name="uq_applications_job_candidate"),)

    id: Mapped[int] = mapped_column(Integer, primary_key=True, autoincrement=True)
    job_id: Mapped[int] = mapped_column(Integer, index=True)
    candidate_id: Mapped[int] = mapped_column(Integer, index=True)

    status: Mapped[str] = mapped_column(String(40), default=ApplicationStatus.APPLIED.value, index=True)
    current_stage_id: Mapped[int | None] = mapped_column(Integer, nullable=True)
    offer_recommended: Mapped[int] = mapped_column(Integer, default=0)

    resume_url: Mapped[str | None] = mapped_column(Text, nullable=True)
    cover_letter: Mapped[str | None] = mapped_column(Text, nullable=True)

    applied_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive)
    screening_decision_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    final_decision_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=utcnow_naive, onupdate=utcnow_naive)
