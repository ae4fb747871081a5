import os

os.environ.setdefault("HF_DATABASE_URL", "sqlite+aiosqlite:///:memory:")
os.environ.setdefault("HF_AUTH_MODE", "dev")
os.environ.setdefault("HF_ENABLE_SCHEDULER", "false")
os.environ.setdefault("HF_ENABLE_GMAIL", "false")
os.environ.setdefault("HF_ENABLE_CALENDAR", "false")
os.environ.setdefault("HF_REDIS_URL", "")

from dataclasses import dataclass
from datetime import datetime, timedelta
from pathlib import Path

import pytest
from sqlalchemy import func, select
from sqlalchemy.ext.asyncio import async_sessionmaker, create_async_engine
from sqlalchemy.pool import StaticPool

from hireflow.core.datetime_utils import utcnow_naive
from hireflow.core.outcomes import CollaboratorFailure
from hireflow.core.roles import Role
from hireflow.core.workflow import ApplicationStatus, InterviewStatus, JobStatus, OfferStatus
from hireflow.db.base import Base
from hireflow.models import Application, Company, Interview, JobRequisition, Offer, User
from hireflow.schemas.user import UserContext
from hireflow.services.collaborators import Collaborators, GeneratedDocument, NotificationDispatcher


class RecordingNotifier:
    def __init__(self) -> None:
        self.calls: list[tuple[str, dict, str]] = []

    async def notify(self, event, entity_ids, actor_label) -> bool:
        self.calls.append((event, dict(entity_ids), actor_label))
        return True

    def events(self) -> list[str]:
        return [event for event, _, _ in self.calls]


class FailingNotifier:
    def __init__(self) -> None:
        self.attempts = 0

    async def notify(self, event, entity_ids, actor_label) -> bool:
        self.attempts += 1
        raise RuntimeError("smtp down")


class TmpDocumentGenerator:
    def __init__(self, directory: Path) -> None:
        self.directory = directory
        self.generated: list[GeneratedDocument] = []
        self.discarded: list[GeneratedDocument] = []

    async def generate_offer_letter(self, context) -> GeneratedDocument:
        self.directory.mkdir(parents=True, exist_ok=True)
        path = self.directory / f"offer_{context.offer_id}.pdf"
        path.write_bytes(b"%PDF-1.4 test")
        document = GeneratedDocument(document_url=f"/generated/offer-letters/{path.name}", file_path=path)
        self.generated.append(document)
        return document

    def discard(self, document: GeneratedDocument) -> None:
        self.discarded.append(document)
        document.file_path.unlink(missing_ok=True)


class FailingDocumentGenerator(TmpDocumentGenerator):
    async def generate_offer_letter(self, context) -> GeneratedDocument:
        raise CollaboratorFailure("Offer letter generation failed")


class FakeMeetingProvider:
    def __init__(self, link: str = "https://meet.example.com/abc-defg-hij") -> None:
        self.link = link
        self.calls: list[dict] = []

    async def create_meeting(self, participants, start_at, duration_minutes, summary) -> str:
        self.calls.append(
            {
                "participants": list(participants),
                "start_at": start_at,
                "duration_minutes": duration_minutes,
                "summary": summary,
            }
        )
        return self.link


class FailingMeetingProvider:
    async def create_meeting(self, participants, start_at, duration_minutes, summary) -> str:
        raise CollaboratorFailure("Could not create a meeting link")


@pytest.fixture()
async def async_engine():
    engine = create_async_engine(
        "sqlite+aiosqlite:///:memory:",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    async with engine.begin() as conn:
        await conn.run_sync(Base.metadata.create_all)
    yield engine
    await engine.dispose()


@pytest.fixture()
def session_factory(async_engine):
    return async_sessionmaker(bind=async_engine, expire_on_commit=False, autoflush=False)


@pytest.fixture()
async def db_session(session_factory):
    async with session_factory() as session:
        yield session
        await session.rollback()


@pytest.fixture()
def notifier() -> RecordingNotifier:
    return RecordingNotifier()


@pytest.fixture()
def documents(tmp_path) -> TmpDocumentGenerator:
    return TmpDocumentGenerator(tmp_path / "offer-letters")


@pytest.fixture()
def meetings() -> FakeMeetingProvider:
    return FakeMeetingProvider()


@pytest.fixture()
def collaborators(notifier, documents, meetings) -> Collaborators:
    return Collaborators(
        notifications=NotificationDispatcher(notifier),
        documents=documents,
        meetings=meetings,
    )


def actor_for(user: User) -> UserContext:
    return UserContext(
        user_id=user.id,
        email=user.email,
        roles=[Role(user.role)],
        company_id=user.company_id,
        full_name=user.full_name,
    )


class Seeder:
    """Inserts fixture rows directly, bypassing the workflow managers, and returns their ids."""

    def __init__(self, session) -> None:
        self.session = session
        self._counter = 0

    async def _add(self, row) -> int:
        self.session.add(row)
        await self.session.commit()
        return row.id

    async def value(self, model, entity_id: int, column: str = "status"):
        return (
            await self.session.execute(select(getattr(model, column)).where(model.id == entity_id))
        ).scalar_one_or_none()

    async def count(self, model, *where) -> int:
        return (await self.session.execute(select(func.count(model.id)).where(*where))).scalar_one()

    async def company(self, name: str = "Acme") -> int:
        return await self._add(Company(name=name, domain=f"{name.lower()}.example.com", is_active=1))

    async def user(self, company_id: int | None, role: Role, *, first_name: str | None = None) -> UserContext:
        self._counter += 1
        user = User(
            company_id=company_id,
            email=f"{role.value}{self._counter}@example.com",
            first_name=first_name or role.value.replace("_", " ").title(),
            last_name=str(self._counter),
            role=role.value,
            is_active=1,
        )
        await self._add(user)
        return actor_for(user)

    async def job(
        self,
        company_id: int,
        creator: UserContext,
        *,
        status: JobStatus = JobStatus.PUBLISHED,
        positions_count: int = 1,
        title: str = "Backend Engineer",
    ) -> int:
        return await self._add(
            JobRequisition(
                company_id=company_id,
                created_by=creator.user_id,
                title=title,
                department="Engineering",
                location="Remote",
                status=status.value,
                positions_count=positions_count,
            )
        )

    async def application(
        self,
        job_id: int,
        candidate: UserContext,
        *,
        status: ApplicationStatus = ApplicationStatus.APPLIED,
    ) -> int:
        return await self._add(Application(job_id=job_id, candidate_id=candidate.user_id, status=status.value))

    async def interview(
        self,
        application_id: int,
        interviewer: UserContext,
        *,
        status: InterviewStatus = InterviewStatus.SCHEDULED,
        scheduled_at: datetime | None = None,
        duration_minutes: int = 60,
    ) -> int:
        return await self._add(
            Interview(
                application_id=application_id,
                interviewer_id=interviewer.user_id,
                scheduled_at=scheduled_at or utcnow_naive() + timedelta(days=1),
                duration_minutes=duration_minutes,
                status=status.value,
            )
        )

    async def offer(self, application_id: int, creator: UserContext, *, status: OfferStatus = OfferStatus.SENT) -> int:
        return await self._add(
            Offer(
                application_id=application_id,
                created_by=creator.user_id,
                status=status.value,
                offer_details={"designation": "Engineer"},
                document_url="/generated/offer-letters/offer.pdf",
            )
        )


@pytest.fixture()
def seed(db_session) -> Seeder:
    return Seeder(db_session)


@dataclass
class Tenant:
    company_id: int
    admin: UserContext
    hr: UserContext
    manager: UserContext
    interviewer: UserContext


@pytest.fixture()
async def tenant(seed) -> Tenant:
    company_id = await seed.company("Acme")
    return Tenant(
        company_id=company_id,
        admin=await seed.user(company_id, Role.COMPANY_ADMIN),
        hr=await seed.user(company_id, Role.HR),
        manager=await seed.user(company_id, Role.HIRING_MANAGER),
        interviewer=await seed.user(company_id, Role.INTERVIEWER),
    )


@pytest.fixture()
async def candidate(seed) -> UserContext:
    return await seed.user(None, Role.CANDIDATE, first_name="Casey")
