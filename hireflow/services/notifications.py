from __future__ import annotations

import html
import logging
from dataclasses import dataclass, field
from typing import Any, Awaitable, Callable, Mapping

from sqlalchemy import select
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker
from sqlalchemy.orm import aliased

from hireflow.core.roles import Role
from hireflow.core.workflow import ApprovalStatus
from hireflow.models.application import Application
from hireflow.models.company import Company
from hireflow.models.interview import Interview, Scorecard
from hireflow.models.job import JobApproval, JobRequisition
from hireflow.models.offer import Offer
from hireflow.models.user import User
from hireflow.services.collaborators import NotificationEvent
from hireflow.services.email import send_email
from hireflow.services.event_bus import EventBus, event_bus

logger = logging.getLogger("hireflow.notifications")

STATUS_LABELS = {
    "applied": "Applied",
    "interview": "Interview",
    "interview score submited": "Interview Score Submitted",
    "selected": "Selected",
    "offer_letter_sent": "Offer Letter Sent",
    "offer accecepted": "Offer Accepted",
    "hired": "Hired",
    "rejected": "Rejected",
}

TONE_COLORS = {
    "success": "#1a7f37",
    "danger": "#cf222e",
    "warning": "#9a6700",
    "info": "#0969da",
}


def status_label(status: str | None) -> str:
    if not status:
        return "Updated"
    return STATUS_LABELS.get(status, status.replace("_", " ").title())


def status_tone(status: str | None) -> str:
    if status in {"hired", "offer accecepted", "selected"}:
        return "success"
    if status == "rejected":
        return "danger"
    if status in {"interview", "interview score submited", "offer_letter_sent"}:
        return "warning"
    return "info"


@dataclass
class Notice:
    to: list[str]
    subject: str
    title: str
    greeting: str
    summary: str
    entity_type: str
    entity_id: int | None
    company_id: int | None
    company_name: str = "HireFlow"
    tone: str = "info"
    details: list[tuple[str, Any]] = field(default_factory=list)

    def template_context(self) -> dict[str, Any]:
        rows = "".join(
            '<tr><td style="padding:6px 0;color:#57606a;width:40%;">{}</td><td style="padding:6px 0;">{}</td></tr>'.format(
                html.escape(str(label)), html.escape(str(value))
            )
            for label, value in self.details
            if value not in (None, "")
        )
        return {
            "preheader": html.escape(self.summary),
            "accent": TONE_COLORS.get(self.tone, TONE_COLORS["info"]),
            "company_name": html.escape(self.company_name),
            "title": html.escape(self.title),
            "greeting": html.escape(self.greeting),
            "summary": html.escape(self.summary),
            "detail_rows": rows,
            "footer": html.escape(f"Best regards,\n{self.company_name} Hiring Team"),
        }


Candidate = aliased(User, name="candidate")
Interviewer = aliased(User, name="interviewer")


async def _application_notice(session: AsyncSession, ids: Mapping[str, Any], *, submitted: bool) -> Notice | None:
    row = (
        await session.execute(
            select(Application, JobRequisition, Company, Candidate)
            .join(JobRequisition, JobRequisition.id == Application.job_id)
            .outerjoin(Company, Company.id == JobRequisition.company_id)
            .join(Candidate, Candidate.id == Application.candidate_id)
            .where(Application.id == ids.get("application_id"))
        )
    ).first()
    if row is None:
        return None
    application, job, company, candidate = row
    company_name = company.name if company else "HireFlow"
    label = status_label(application.status)
    if submitted:
        subject = f"Application received: {job.title}"
        title = "Application Received"
        summary = f"Thank you for applying to {job.title}. Our team will review your application shortly."
        tone = "info"
    else:
        subject = f"Application update: {job.title} ({label})"
        title = "Application Status Updated"
        summary = f"Your application for {job.title} is now {label}."
        tone = status_tone(application.status)
    return Notice(
        to=[candidate.email],
        subject=subject,
        title=title,
        greeting=f"Hello {candidate.full_name},",
        summary=summary,
        entity_type="application",
        entity_id=application.id,
        company_id=job.company_id,
        company_name=company_name,
        tone=tone,
        details=[("Application ID", application.id), ("Job", job.title), ("Status", label)],
    )


async def _submitted_notice(session: AsyncSession, ids: Mapping[str, Any], actor_label: str) -> Notice | None:
    return await _application_notice(session, ids, submitted=True)


async def _status_changed_notice(session: AsyncSession, ids: Mapping[str, Any], actor_label: str) -> Notice | None:
    return await _application_notice(session, ids, submitted=False)


async def _interview_row(session: AsyncSession, interview_id: Any):
    return (
        await session.execute(
            select(Interview, Application, JobRequisition, Company, Candidate, Interviewer)
            .join(Application, Application.id == Interview.application_id)
            .join(JobRequisition, JobRequisition.id == Application.job_id)
            .outerjoin(Company, Company.id == JobRequisition.company_id)
            .join(Candidate, Candidate.id == Application.candidate_id)
            .join(Interviewer, Interviewer.id == Interview.interviewer_id)
            .where(Interview.id == interview_id)
        )
    ).first()


async def _interview_assigned_notice(session: AsyncSession, ids: Mapping[str, Any], actor_label: str) -> Notice | None:
    row = await _interview_row(session, ids.get("interview_id"))
    if row is None:
        return None
    interview, application, job, company, candidate, interviewer = row
    return Notice(
        to=[interviewer.email],
        subject=f"Interview Assigned: Application #{application.id}",
        title="Interview Assignment",
        greeting=f"Hello {interviewer.full_name},",
        summary="A new interview has been assigned to you.",
        entity_type="interview",
        entity_id=interview.id,
        company_id=job.company_id,
        company_name=company.name if company else "HireFlow",
        details=[
            ("Interview ID", interview.id),
            ("Candidate", candidate.full_name),
            ("Job", job.title),
            ("Scheduled At", interview.scheduled_at.strftime("%Y-%m-%d %H:%M UTC")),
            ("Meeting Link", interview.meeting_link),
            ("Notes", interview.notes),
            ("Assigned By", actor_label),
        ],
    )


async def _scorecard_reminder_notice(session: AsyncSession, ids: Mapping[str, Any], actor_label: str) -> Notice | None:
    row = await _interview_row(session, ids.get("interview_id"))
    if row is None:
        return None
    interview, application, job, company, candidate, interviewer = row
    return Notice(
        to=[interviewer.email],
        subject=f"Scorecard pending: {candidate.full_name}",
        title="Scorecard Reminder",
        greeting=f"Hello {interviewer.full_name},",
        summary="Your interview has ended but no final scorecard has been submitted yet.",
        entity_type="interview",
        entity_id=interview.id,
        company_id=job.company_id,
        company_name=company.name if company else "HireFlow",
        tone="warning",
        details=[("Interview ID", interview.id), ("Candidate", candidate.full_name), ("Job", job.title)],
    )


async def _company_recipients(session: AsyncSession, company_id: int, roles: tuple[Role, ...]) -> list[str]:
    rows = await session.execute(
        select(User.email).where(
            User.company_id == company_id,
            User.is_active == 1,
            User.role.in_([r.value for r in roles]),
        )
    )
    return [email for email in rows.scalars().all() if email]


async def _score_submitted_notice(session: AsyncSession, ids: Mapping[str, Any], actor_label: str) -> Notice | None:
    row = (
        await session.execute(
            select(Scorecard, Interview, Application, JobRequisition, Company, Candidate)
            .join(Interview, Interview.id == Scorecard.interview_id)
            .join(Application, Application.id == Interview.application_id)
            .join(JobRequisition, JobRequisition.id == Application.job_id)
            .outerjoin(Company, Company.id == JobRequisition.company_id)
            .join(Candidate, Candidate.id == Application.candidate_id)
            .where(Scorecard.id == ids.get("scorecard_id"))
        )
    ).first()
    if row is None:
        return None
    scorecard, interview, application, job, company, candidate = row
    recipients = await _company_recipients(session, job.company_id, (Role.HR, Role.COMPANY_ADMIN))
    return Notice(
        to=recipients,
        subject=f"Scorecard submitted: {candidate.full_name} for {job.title}",
        title="Interview Scorecard Submitted",
        greeting="Hello team,",
        summary=f"{actor_label} submitted a final scorecard. The application is ready for a decision.",
        entity_type="scorecard",
        entity_id=scorecard.id,
        company_id=job.company_id,
        company_name=company.name if company else "HireFlow",
        tone="warning",
        details=[
            ("Application ID", application.id),
            ("Candidate", candidate.full_name),
            ("Job", job.title),
            ("Recommendation", scorecard.recommendation),
        ],
    )


async def _offer_accepted_notice(session: AsyncSession, ids: Mapping[str, Any], actor_label: str) -> Notice | None:
    row = (
        await session.execute(
            select(Offer, Application, JobRequisition, Company, Candidate)
            .join(Application, Application.id == Offer.application_id)
            .join(JobRequisition, JobRequisition.id == Application.job_id)
            .outerjoin(Company, Company.id == JobRequisition.company_id)
            .join(Candidate, Candidate.id == Application.candidate_id)
            .where(Offer.id == ids.get("offer_id"))
        )
    ).first()
    if row is None:
        return None
    offer, application, job, company, candidate = row
    recipients = await _company_recipients(session, job.company_id, (Role.HIRING_MANAGER,))
    return Notice(
        to=recipients,
        subject=f"Offer accepted: {candidate.full_name} for {job.title}",
        title="Offer Accepted",
        greeting="Hello,",
        summary=f"{candidate.full_name} accepted the offer. A final hiring decision is now pending.",
        entity_type="offer",
        entity_id=offer.id,
        company_id=job.company_id,
        company_name=company.name if company else "HireFlow",
        tone="success",
        details=[("Offer ID", offer.id), ("Application ID", application.id), ("Job", job.title)],
    )


async def _approval_row(session: AsyncSession, ids: Mapping[str, Any]):
    return (
        await session.execute(
            select(JobApproval, JobRequisition, Company)
            .join(JobRequisition, JobRequisition.id == JobApproval.job_id)
            .outerjoin(Company, Company.id == JobRequisition.company_id)
            .where(JobApproval.id == ids.get("approval_id"))
        )
    ).first()


async def _approval_requested_notice(session: AsyncSession, ids: Mapping[str, Any], actor_label: str) -> Notice | None:
    row = await _approval_row(session, ids)
    if row is None:
        return None
    approval, job, company = row
    approver = await session.get(User, approval.approver_id)
    if approver is None:
        return None
    return Notice(
        to=[approver.email],
        subject=f"Approval requested: {job.title}",
        title="Job Approval Request",
        greeting=f"Hello {approver.full_name},",
        summary=f"{actor_label} submitted the requisition \"{job.title}\" for your approval.",
        entity_type="job",
        entity_id=job.id,
        company_id=job.company_id,
        company_name=company.name if company else "HireFlow",
        details=[("Job ID", job.id), ("Title", job.title), ("Openings", job.positions_count)],
    )


async def _approval_decided_notice(session: AsyncSession, ids: Mapping[str, Any], actor_label: str) -> Notice | None:
    row = await _approval_row(session, ids)
    if row is None:
        return None
    approval, job, company = row
    creator = await session.get(User, job.created_by) if job.created_by else None
    if creator is None:
        return None
    approved = approval.status == ApprovalStatus.APPROVED.value
    return Notice(
        to=[creator.email],
        subject=f"Job {'approved' if approved else 'rejected'}: {job.title}",
        title="Job Approval Decision",
        greeting=f"Hello {creator.full_name},",
        summary=f"{actor_label} {'approved' if approved else 'rejected'} the requisition \"{job.title}\".",
        entity_type="job",
        entity_id=job.id,
        company_id=job.company_id,
        company_name=company.name if company else "HireFlow",
        tone="success" if approved else "danger",
        details=[("Job ID", job.id), ("Decision", approval.status), ("Comments", approval.comments)],
    )


Composer = Callable[[AsyncSession, Mapping[str, Any], str], Awaitable[Notice | None]]

COMPOSERS: dict[str, Composer] = {
    NotificationEvent.APPLICATION_SUBMITTED.value: _submitted_notice,
    NotificationEvent.APPLICATION_STATUS_CHANGED.value: _status_changed_notice,
    NotificationEvent.INTERVIEW_ASSIGNED.value: _interview_assigned_notice,
    NotificationEvent.SCORE_SUBMITTED.value: _score_submitted_notice,
    NotificationEvent.OFFER_ACCEPTED.value: _offer_accepted_notice,
    NotificationEvent.JOB_APPROVAL_REQUESTED.value: _approval_requested_notice,
    NotificationEvent.JOB_APPROVAL_DECIDED.value: _approval_decided_notice,
    NotificationEvent.SCORECARD_REMINDER.value: _scorecard_reminder_notice,
}


class EmailNotifier:
    """Publishes each workflow notification on the event bus and emails the people it concerns."""

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession] | None = None,
        bus: EventBus | None = None,
    ) -> None:
        if session_factory is None:
            from hireflow.db.session import SessionLocal

            session_factory = SessionLocal
        self._session_factory = session_factory
        self._bus = bus or event_bus

    async def notify(self, event: str, entity_ids: Mapping[str, Any], actor_label: str) -> bool:
        try:
            composer = COMPOSERS.get(event)
            async with self._session_factory() as session:
                notice = await composer(session, entity_ids, actor_label) if composer else None
                await self._bus.publish(
                    {
                        "event": event,
                        "entity_ids": dict(entity_ids),
                        "company_id": notice.company_id if notice else entity_ids.get("company_id"),
                        "actor": actor_label,
                    }
                )
                if notice is None:
                    return False
                meta = await send_email(
                    session,
                    to_emails=notice.to,
                    subject=notice.subject,
                    template_name="notice",
                    context=notice.template_context(),
                    email_type=event,
                    entity_type=notice.entity_type,
                    entity_id=notice.entity_id,
                    company_id=notice.company_id,
                )
                await session.commit()
                return meta.get("status") == "sent"
        except Exception:  # noqa: BLE001
            logger.warning("notification_failed", extra={"event": event, "entity_ids": dict(entity_ids)}, exc_info=True)
            return False
