from __future__ import annotations

import asyncio
import json

from conftest import FailingNotifier
from hireflow.core.workflow import ApplicationStatus
from hireflow.models import WorkflowEvent
from hireflow.services.applications import apply_for_job
from hireflow.services.collaborators import Collaborators, NotificationDispatcher
from hireflow.services.event_bus import EventBus
from hireflow.services.notifications import EmailNotifier, status_label, status_tone


def test_status_labels_hide_stored_spelling():
    assert status_label("offer accecepted") == "Offer Accepted"
    assert status_label("interview score submited") == "Interview Score Submitted"
    assert status_label("on_hold") == "On Hold"
    assert status_tone(ApplicationStatus.HIRED.value) == "success"
    assert status_tone("rejected") == "danger"


async def test_dispatcher_swallows_notifier_failures():
    notifier = FailingNotifier()
    dispatcher = NotificationDispatcher(notifier)

    task = dispatcher.dispatch("application_submitted", {"application_id": 1}, "Casey (candidate)")
    await dispatcher.drain()

    assert notifier.attempts == 1
    assert task.result() is False
    assert dispatcher.pending == 0


async def test_failed_notification_does_not_change_the_outcome(db_session, seed, tenant, candidate, documents, meetings):
    notifier = FailingNotifier()
    collaborators = Collaborators(notifications=NotificationDispatcher(notifier), documents=documents, meetings=meetings)
    job_id = await seed.job(tenant.company_id, tenant.hr)

    outcome = await apply_for_job(db_session, actor=candidate, job_id=job_id, collaborators=collaborators)
    await collaborators.notifications.drain()

    assert outcome.ok
    assert notifier.attempts == 1


async def test_email_notifier_publishes_and_records_skipped_email(session_factory, seed, tenant, candidate):
    bus = EventBus(redis_url="")
    queue = await bus.subscribe()
    job_id = await seed.job(tenant.company_id, tenant.hr, title="QA Engineer")
    application_id = await seed.application(job_id, candidate)
    notifier = EmailNotifier(session_factory=session_factory, bus=bus)

    delivered = await notifier.notify(
        "application_submitted",
        {"application_id": application_id, "company_id": tenant.company_id},
        candidate.label(),
    )

    # gmail is disabled in tests, so nothing is delivered but the attempt is recorded
    assert delivered is False
    payload = json.loads(await asyncio.wait_for(queue.get(), timeout=1))
    assert payload["event"] == "application_submitted"
    assert payload["company_id"] == tenant.company_id
    assert payload["entity_ids"]["application_id"] == application_id

    emails = await seed.count(
        WorkflowEvent, WorkflowEvent.action_type == "email_sent", WorkflowEvent.entity_id == application_id
    )
    assert emails == 1
    await bus.close()


async def test_email_notifier_ignores_unknown_entities(session_factory):
    bus = EventBus(redis_url="")
    queue = await bus.subscribe()
    notifier = EmailNotifier(session_factory=session_factory, bus=bus)

    assert await notifier.notify("interview_assigned", {"interview_id": 404, "company_id": 9}, "x") is False
    payload = json.loads(queue.get_nowait())
    assert payload["company_id"] == 9
    await bus.close()


async def test_event_bus_routes_events_by_company():
    bus = EventBus(redis_url="", queue_size=2)
    acme = await bus.subscribe(1)
    globex = await bus.subscribe(2)
    everything = await bus.subscribe()

    for index in range(3):
        await bus.publish({"event": "application_submitted", "company_id": 1, "seq": index})

    assert globex.empty()
    assert [json.loads(acme.get_nowait())["seq"] for _ in range(acme.qsize())] == [1, 2]
    assert everything.qsize() == 2

    bus.unsubscribe(acme)
    await bus.publish({"event": "job_published", "company_id": 1})
    assert acme.empty()
    await bus.close()
