from __future__ import annotations

from typing import Any
from urllib.parse import urlparse

from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import AsyncSession
from sqlalchemy.orm import aliased

from hireflow.core.outcomes import (
    BusinessRuleViolation,
    ErrorCode,
    PreconditionFailed,
    WorkflowOutcome,
    WorkflowValidationError,
    outcome_boundary,
)
from hireflow.core.workflow import (
    APPLICATION_TABLE,
    LIVE_OFFER_STATES,
    OFFER_TABLE,
    PRE_OFFER_STATES,
    ApplicationEvent,
    ApplicationStatus,
    OfferEvent,
    OfferStatus,
)
from hireflow.db.gateway import atomic, lock_first, try_transition
from hireflow.models.application import Application
from hireflow.models.company import Company
from hireflow.models.job import JobRequisition
from hireflow.models.offer import Offer
from hireflow.models.user import User
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators, GeneratedDocument, NotificationEvent, OfferLetterContext
from hireflow.services.events import log_event
from hireflow.services.offer_letters import default_esign_link
from hireflow.services.scope import company_applications, company_of

OFFER_NOT_FOUND = "Offer not found"


def _clean_details(offer_details: Any) -> dict[str, Any]:
    if offer_details is None:
        return {}
    if not isinstance(offer_details, dict):
        raise WorkflowValidationError("offer_details must be an object")
    return {str(key): value for key, value in offer_details.items()}


def _clean_link(link: str | None) -> str | None:
    if link is None or not link.strip():
        return None
    link = link.strip()
    parsed = urlparse(link)
    if parsed.scheme not in {"http", "https"} or not parsed.netloc:
        raise WorkflowValidationError("esign_link must be an http(s) URL")
    return link


@outcome_boundary
async def create_offer(
    session: AsyncSession,
    *,
    actor: UserContext,
    application_id: int,
    collaborators: Collaborators,
    offer_details: dict[str, Any] | None = None,
) -> WorkflowOutcome:
    details = _clean_details(offer_details)
    company_id = company_of(actor, "Application not found")
    candidate = aliased(User, name="candidate")
    generated: GeneratedDocument | None = None
    try:
        async with atomic(session):
            row = await lock_first(
                session,
                select(Application, JobRequisition, candidate, Company)
                .join(JobRequisition, JobRequisition.id == Application.job_id)
                .join(candidate, candidate.id == Application.candidate_id)
                .join(Company, Company.id == JobRequisition.company_id)
                .where(Application.id == application_id, JobRequisition.company_id == company_id),
            )
            if row is None:
                raise PreconditionFailed("Application not found")
            application, job, candidate_user, company = row
            if APPLICATION_TABLE.coerce(application.status) not in PRE_OFFER_STATES:
                raise PreconditionFailed("Application not found")
            live = (
                await session.execute(
                    select(func.count(Offer.id)).where(
                        Offer.application_id == application_id,
                        Offer.status.in_([state.value for state in LIVE_OFFER_STATES]),
                    )
                )
            ).scalar_one()
            if live:
                raise BusinessRuleViolation(ErrorCode.CONFLICT, "Application already has a live offer")

            offer = Offer(
                application_id=application_id,
                created_by=actor.user_id,
                status=OfferStatus.DRAFT.value,
                offer_details=details,
            )
            session.add(offer)
            await session.flush()

            generated = await collaborators.documents.generate_offer_letter(
                OfferLetterContext(
                    offer_id=offer.id,
                    candidate_name=candidate_user.full_name,
                    candidate_email=candidate_user.email,
                    company_name=company.name,
                    job_title=job.title,
                    department=job.department,
                    location=job.location,
                    employment_type=job.employment_type,
                    offer_details=details,
                )
            )
            offer.document_url = generated.document_url
            offer.esign_link = default_esign_link(generated.document_url, offer.id)
            await session.flush()
            await log_event(
                session,
                entity_type="offer",
                entity_id=offer.id,
                company_id=company_id,
                action_type="offer_created",
                to_status=OfferStatus.DRAFT,
                performed_by=actor.user_id,
                meta_json={"application_id": application_id, "document_url": generated.document_url},
            )
            offer_id = offer.id
            document_url = offer.document_url
            esign_link = offer.esign_link
    except BaseException:
        if generated is not None:
            collaborators.documents.discard(generated)
        raise
    return WorkflowOutcome.success(offer_id, "Offer created", document_url=document_url, esign_link=esign_link)


@outcome_boundary
async def send_offer(
    session: AsyncSession,
    *,
    actor: UserContext,
    offer_id: int,
    collaborators: Collaborators,
    esign_link: str | None = None,
) -> WorkflowOutcome:
    override = _clean_link(esign_link)
    company_id = company_of(actor, OFFER_NOT_FOUND)
    async with atomic(session):
        row = await lock_first(
            session,
            select(Offer, Application)
            .join(Application, Application.id == Offer.application_id)
            .where(Offer.id == offer_id, Application.id.in_(company_applications(company_id))),
        )
        if row is None:
            raise PreconditionFailed(OFFER_NOT_FOUND)
        offer, application = row
        if not (
            OFFER_TABLE.can_fire(offer.status, OfferEvent.SEND)
            and APPLICATION_TABLE.can_fire(application.status, ApplicationEvent.SEND_OFFER)
        ):
            raise PreconditionFailed(OFFER_NOT_FOUND)
        link = override or offer.esign_link or default_esign_link(offer.document_url, offer.id)
        sent = await try_transition(
            session,
            Offer,
            offer.id,
            OFFER_TABLE.sources(OfferEvent.SEND),
            OfferStatus.SENT,
            values={"sent_at": func.now(), "esign_link": link},
        )
        moved = await try_transition(
            session,
            Application,
            application.id,
            APPLICATION_TABLE.sources(ApplicationEvent.SEND_OFFER),
            ApplicationStatus.OFFER_LETTER_SENT,
        )
        if sent != 1 or moved != 1:
            raise PreconditionFailed(OFFER_NOT_FOUND)
        from_status = application.status
        application_id = application.id
        await log_event(
            session,
            entity_type="offer",
            entity_id=offer_id,
            company_id=company_id,
            action_type="offer_sent",
            from_status=OfferStatus.DRAFT,
            to_status=OfferStatus.SENT,
            performed_by=actor.user_id,
            meta_json={"esign_link": link},
        )
        await log_event(
            session,
            entity_type="application",
            entity_id=application_id,
            company_id=company_id,
            action_type="offer_letter_sent",
            from_status=from_status,
            to_status=ApplicationStatus.OFFER_LETTER_SENT,
            performed_by=actor.user_id,
        )
    collaborators.notifications.dispatch(
        NotificationEvent.APPLICATION_STATUS_CHANGED,
        {"application_id": application_id, "offer_id": offer_id, "company_id": company_id},
        actor.label(),
    )
    return WorkflowOutcome.success(offer_id, "Offer sent", esign_link=link)


async def _respond(
    session: AsyncSession,
    *,
    actor: UserContext,
    offer_id: int,
    offer_event: OfferEvent,
    application_event: ApplicationEvent,
) -> tuple[int, int, str, str]:
    """Move the candidate's offer and its application together; both updates land or neither does."""
    async with atomic(session):
        row = await lock_first(
            session,
            select(Offer, Application, JobRequisition.company_id)
            .join(Application, Application.id == Offer.application_id)
            .join(JobRequisition, JobRequisition.id == Application.job_id)
            .where(Offer.id == offer_id, Application.candidate_id == actor.user_id),
        )
        if row is None:
            raise PreconditionFailed(OFFER_NOT_FOUND)
        offer, application, company_id = row
        offer_target = OFFER_TABLE.target(offer.status, offer_event)
        application_target = APPLICATION_TABLE.target(application.status, application_event)
        if offer_target is None or application_target is None:
            raise PreconditionFailed(OFFER_NOT_FOUND)
        offer_from = offer.status
        application_from = application.status
        application_id = application.id
        changed_offer = await try_transition(
            session,
            Offer,
            offer_id,
            OFFER_TABLE.sources(offer_event),
            offer_target,
            values={"responded_at": func.now()},
        )
        if changed_offer != 1:
            raise PreconditionFailed(OFFER_NOT_FOUND)
        changed_application = await try_transition(
            session,
            Application,
            application_id,
            APPLICATION_TABLE.sources(application_event),
            application_target,
        )
        if changed_application != 1:
            raise PreconditionFailed(OFFER_NOT_FOUND)
        await log_event(
            session,
            entity_type="offer",
            entity_id=offer_id,
            company_id=company_id,
            action_type=f"offer_{offer_target.value}",
            from_status=offer_from,
            to_status=offer_target,
            performed_by=actor.user_id,
        )
        await log_event(
            session,
            entity_type="application",
            entity_id=application_id,
            company_id=company_id,
            action_type=f"offer_{offer_target.value}",
            from_status=application_from,
            to_status=application_target,
            performed_by=actor.user_id,
        )
    return application_id, company_id, offer_target.value, application_target.value


@outcome_boundary
async def accept_offer(
    session: AsyncSession,
    *,
    actor: UserContext,
    offer_id: int,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    application_id, company_id, offer_status, application_status = await _respond(
        session,
        actor=actor,
        offer_id=offer_id,
        offer_event=OfferEvent.ACCEPT,
        application_event=ApplicationEvent.ACCEPT_OFFER,
    )
    collaborators.notifications.dispatch(
        NotificationEvent.OFFER_ACCEPTED,
        {"offer_id": offer_id, "application_id": application_id, "company_id": company_id},
        actor.label(),
    )
    return WorkflowOutcome.success(
        offer_id,
        "Offer accepted",
        status=offer_status,
        application_status=application_status,
    )


@outcome_boundary
async def decline_offer(
    session: AsyncSession,
    *,
    actor: UserContext,
    offer_id: int,
    collaborators: Collaborators,
) -> WorkflowOutcome:
    application_id, company_id, offer_status, application_status = await _respond(
        session,
        actor=actor,
        offer_id=offer_id,
        offer_event=OfferEvent.DECLINE,
        application_event=ApplicationEvent.DECLINE_OFFER,
    )
    collaborators.notifications.dispatch(
        NotificationEvent.APPLICATION_STATUS_CHANGED,
        {"offer_id": offer_id, "application_id": application_id, "company_id": company_id},
        actor.label(),
    )
    return WorkflowOutcome.success(
        offer_id,
        "Offer declined",
        status=offer_status,
        application_status=application_status,
    )


async def list_application_offers(session: AsyncSession, *, company_id: int, application_id: int) -> list[Offer]:
    rows = await session.execute(
        select(Offer)
        .where(Offer.application_id == application_id, Offer.application_id.in_(company_applications(company_id)))
        .order_by(Offer.id.desc())
    )
    return list(rows.scalars().all())


async def list_candidate_offers(session: AsyncSession, *, candidate_id: int) -> list[Offer]:
    rows = await session.execute(
        select(Offer)
        .join(Application, Application.id == Offer.application_id)
        .where(
            Application.candidate_id == candidate_id,
            Offer.status != OfferStatus.DRAFT.value,
        )
        .order_by(Offer.id.desc())
    )
    return list(rows.scalars().all())
