from __future__ import annotations

import asyncio
import logging
from dataclasses import dataclass
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any, Mapping, Protocol, Sequence

logger = logging.getLogger("hireflow.notifications")


class NotificationEvent(str, Enum):
    APPLICATION_SUBMITTED = "application_submitted"
    APPLICATION_STATUS_CHANGED = "application_status_changed"
    INTERVIEW_ASSIGNED = "interview_assigned"
    SCORE_SUBMITTED = "score_submitted"
    OFFER_ACCEPTED = "offer_accepted"
    JOB_APPROVAL_REQUESTED = "job_approval_requested"
    JOB_APPROVAL_DECIDED = "job_approval_decided"
    SCORECARD_REMINDER = "scorecard_reminder"


@dataclass(frozen=True)
class OfferLetterContext:
    offer_id: int
    candidate_name: str
    candidate_email: str | None
    company_name: str
    job_title: str
    department: str | None = None
    location: str | None = None
    employment_type: str | None = None
    offer_details: Mapping[str, Any] | None = None


@dataclass(frozen=True)
class GeneratedDocument:
    document_url: str
    file_path: Path


class Notifier(Protocol):
    async def notify(self, event: str, entity_ids: Mapping[str, int | None], actor_label: str) -> bool:
        """Deliver one notification. Never raises; returns whether anything was delivered."""


class DocumentGenerator(Protocol):
    async def generate_offer_letter(self, context: OfferLetterContext) -> GeneratedDocument:
        ...

    def discard(self, document: GeneratedDocument) -> None:
        ...


class MeetingProvider(Protocol):
    async def create_meeting(
        self,
        participants: Sequence[str],
        start_at: datetime,
        duration_minutes: int,
        summary: str,
    ) -> str:
        ...


class NotificationDispatcher:
    """Runs notifications as detached tasks once the transaction that caused them has committed."""

    def __init__(self, notifier: Notifier) -> None:
        self._notifier = notifier
        self._tasks: set[asyncio.Task] = set()

    @property
    def pending(self) -> int:
        return len(self._tasks)

    def dispatch(
        self,
        event: NotificationEvent | str,
        entity_ids: Mapping[str, int | None],
        actor_label: str,
    ) -> asyncio.Task:
        name = event.value if isinstance(event, NotificationEvent) else str(event)
        task = asyncio.create_task(self._deliver(name, dict(entity_ids), actor_label))
        self._tasks.add(task)
        task.add_done_callback(self._tasks.discard)
        return task

    async def _deliver(self, event: str, entity_ids: dict[str, int | None], actor_label: str) -> bool:
        try:
            delivered = await self._notifier.notify(event, entity_ids, actor_label)
        except Exception:  # noqa: BLE001
            logger.warning(
                "notification_failed",
                extra={"event": event, "entity_ids": entity_ids},
                exc_info=True,
            )
            return False
        if not delivered:
            logger.info("notification_not_delivered", extra={"event": event, "entity_ids": entity_ids})
        return bool(delivered)

    async def drain(self) -> None:
        while self._tasks:
            await asyncio.gather(*list(self._tasks), return_exceptions=True)


@dataclass
class Collaborators:
    notifications: NotificationDispatcher
    documents: DocumentGenerator
    meetings: MeetingProvider


def build_collaborators() -> Collaborators:
    from hireflow.services.calendar import GoogleMeetProvider
    from hireflow.services.notifications import EmailNotifier
    from hireflow.services.offer_letters import OfferLetterGenerator

    return Collaborators(
        notifications=NotificationDispatcher(EmailNotifier()),
        documents=OfferLetterGenerator(),
        meetings=GoogleMeetProvider(),
    )
