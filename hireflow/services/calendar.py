from __future__ import annotations

from datetime import datetime, timedelta, timezone
from functools import partial
from typing import Any, Sequence
from uuid import uuid4

import anyio
import google.auth
from google.oauth2.service_account import Credentials
from googleapiclient.discovery import build

from hireflow.core.config import settings
from hireflow.core.datetime_utils import to_utc_naive
from hireflow.core.outcomes import CollaboratorFailure
from hireflow.core.paths import resolve_repo_path


def _calendar_client(subject_email: str | None = None):
    scopes = ["https://www.googleapis.com/auth/calendar"]
    service_account_path = settings.google_application_credentials
    if service_account_path:
        credentials = Credentials.from_service_account_file(str(resolve_repo_path(service_account_path)), scopes=scopes)
        subject = subject_email or settings.gmail_sender_email
        if subject:
            credentials = credentials.with_subject(subject)
    else:
        credentials, _ = google.auth.default(scopes=scopes)
    return build("calendar", "v3", credentials=credentials, cache_discovery=False)


def _find_meeting_link(event: dict[str, Any]) -> str | None:
    link = event.get("hangoutLink")
    if link:
        return link
    conference = event.get("conferenceData") or {}
    for entry in conference.get("entryPoints", []) or []:
        if entry.get("entryPointType") == "video":
            return entry.get("uri")
    return None


def create_calendar_event(
    *,
    summary: str,
    description: str | None,
    start_at: datetime,
    end_at: datetime,
    attendees: Sequence[str],
    calendar_id: str | None = None,
    subject_email: str | None = None,
) -> dict[str, Any]:
    tz = settings.calendar_timezone or "UTC"
    start_iso = to_utc_naive(start_at).replace(tzinfo=timezone.utc).isoformat()
    end_iso = to_utc_naive(end_at).replace(tzinfo=timezone.utc).isoformat()

    body = {
        "summary": summary,
        "description": description or "",
        "start": {"dateTime": start_iso, "timeZone": tz},
        "end": {"dateTime": end_iso, "timeZone": tz},
        "attendees": [{"email": email} for email in attendees if email],
        "conferenceData": {
            "createRequest": {
                "conferenceSolutionKey": {"type": "hangoutsMeet"},
                "requestId": uuid4().hex,
            }
        },
    }

    service = _calendar_client(subject_email=subject_email)
    event = (
        service.events()
        .insert(
            calendarId=calendar_id or settings.calendar_id or "primary",
            body=body,
            conferenceDataVersion=1,
            sendUpdates="all",
        )
        .execute()
    )
    return {
        "status": "created",
        "event_id": event.get("id"),
        "meeting_link": _find_meeting_link(event),
    }


class GoogleMeetProvider:
    """Creates a Google Calendar event with a Meet conference and returns its join link."""

    async def create_meeting(
        self,
        participants: Sequence[str],
        start_at: datetime,
        duration_minutes: int,
        summary: str,
    ) -> str:
        if not settings.enable_calendar:
            raise CollaboratorFailure("Calendar integration is disabled; provide a meeting link")
        minutes = duration_minutes if duration_minutes and duration_minutes > 0 else settings.default_interview_minutes
        call = partial(
            create_calendar_event,
            summary=summary,
            description="Interview scheduled via HireFlow",
            start_at=start_at,
            end_at=start_at + timedelta(minutes=minutes),
            attendees=list(participants),
        )
        try:
            result = await anyio.to_thread.run_sync(call)
        except Exception as exc:  # noqa: BLE001
            raise CollaboratorFailure("Could not create a meeting link") from exc
        link = result.get("meeting_link")
        if not link:
            raise CollaboratorFailure("Calendar event was created without a meeting link")
        return link
