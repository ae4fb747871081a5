from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum
from typing import Generic, Iterable, Mapping, TypeVar


class JobStatus(str, Enum):
    DRAFT = "draft"
    PENDING = "pending"
    PUBLISHED = "published"
    REJECTED = "rejected"
    CLOSED = "closed"


class JobEvent(str, Enum):
    SUBMIT = "submit"
    APPROVE = "approve"
    REJECT = "reject"
    PUBLISH = "publish"
    CLOSE = "close"


class ApprovalStatus(str, Enum):
    PENDING = "pending"
    APPROVED = "approved"
    REJECTED = "rejected"


class ApprovalEvent(str, Enum):
    APPROVE = "approve"
    REJECT = "reject"
    RESET = "reset"


class ApplicationStatus(str, Enum):
    APPLIED = "applied"
    INTERVIEW = "interview"
    # Persisted labels. Reports and existing rows match these exact strings.
    SCORE_SUBMITTED = "interview score submited"
    SELECTED = "selected"
    OFFER_LETTER_SENT = "offer_letter_sent"
    OFFER_ACCEPTED = "offer accecepted"
    HIRED = "hired"
    REJECTED = "rejected"


class ApplicationEvent(str, Enum):
    SCREEN_ADVANCE = "screen_advance"
    SCREEN_REJECT = "screen_reject"
    SUBMIT_SCORE = "submit_score"
    SELECT = "select"
    FINAL_REJECT = "final_reject"
    SEND_OFFER = "send_offer"
    ACCEPT_OFFER = "accept_offer"
    DECLINE_OFFER = "decline_offer"
    HIRE = "hire"


class InterviewStatus(str, Enum):
    SCHEDULED = "scheduled"
    COMPLETED = "completed"
    CANCELLED = "cancelled"


class InterviewEvent(str, Enum):
    COMPLETE = "complete"
    CANCEL = "cancel"


class ScorecardState(int, Enum):
    # Stored in the is_final column.
    DRAFT = 0
    FINAL = 1


class ScorecardEvent(str, Enum):
    FINALIZE = "finalize"


class OfferStatus(str, Enum):
    DRAFT = "draft"
    SENT = "sent"
    ACCEPTED = "accepted"
    DECLINED = "declined"


class OfferEvent(str, Enum):
    SEND = "send"
    ACCEPT = "accept"
    DECLINE = "decline"


S = TypeVar("S", bound=Enum)
E = TypeVar("E", bound=Enum)


@dataclass(frozen=True)
class TransitionTable(Generic[S, E]):
    """Explicit `{(from_state, event): to_state}` diagram for one entity."""

    entity: str
    states: type[S]
    edges: Mapping[tuple[S, E], S]
    terminal: frozenset[S] = field(default_factory=frozenset)

    def coerce(self, raw: object) -> S | None:
        if isinstance(raw, self.states):
            return raw
        try:
            return self.states(raw)
        except ValueError:
            return None

    def target(self, state: object, event: E) -> S | None:
        current = self.coerce(state)
        if current is None:
            return None
        return self.edges.get((current, event))

    def can_fire(self, state: object, event: E) -> bool:
        return self.target(state, event) is not None

    def sources(self, event: E) -> frozenset[S]:
        return frozenset(src for (src, ev) in self.edges if ev == event)

    def events(self) -> frozenset[E]:
        return frozenset(ev for (_, ev) in self.edges)

    def is_terminal(self, state: object) -> bool:
        return self.coerce(state) in self.terminal


def _fan_in(sources: Iterable[S], event: E, target: S) -> dict[tuple[S, E], S]:
    return {(source, event): target for source in sources}


JOB_TABLE: TransitionTable[JobStatus, JobEvent] = TransitionTable(
    entity="job",
    states=JobStatus,
    edges={
        **_fan_in((JobStatus.DRAFT, JobStatus.PENDING), JobEvent.SUBMIT, JobStatus.PENDING),
        (JobStatus.PENDING, JobEvent.APPROVE): JobStatus.PUBLISHED,
        (JobStatus.PENDING, JobEvent.REJECT): JobStatus.REJECTED,
        **_fan_in((JobStatus.DRAFT, JobStatus.PENDING), JobEvent.PUBLISH, JobStatus.PUBLISHED),
        **_fan_in(
            (JobStatus.DRAFT, JobStatus.PENDING, JobStatus.PUBLISHED, JobStatus.REJECTED),
            JobEvent.CLOSE,
            JobStatus.CLOSED,
        ),
    },
    terminal=frozenset({JobStatus.CLOSED}),
)

# Edit is allowed exactly where a submission is.
EDITABLE_JOB_STATES: frozenset[JobStatus] = JOB_TABLE.sources(JobEvent.SUBMIT)


APPROVAL_TABLE: TransitionTable[ApprovalStatus, ApprovalEvent] = TransitionTable(
    entity="job_approval",
    states=ApprovalStatus,
    edges={
        (ApprovalStatus.PENDING, ApprovalEvent.APPROVE): ApprovalStatus.APPROVED,
        (ApprovalStatus.PENDING, ApprovalEvent.REJECT): ApprovalStatus.REJECTED,
        **_fan_in(tuple(ApprovalStatus), ApprovalEvent.RESET, ApprovalStatus.PENDING),
    },
)


APPLICATION_TABLE: TransitionTable[ApplicationStatus, ApplicationEvent] = TransitionTable(
    entity="application",
    states=ApplicationStatus,
    edges={
        (ApplicationStatus.APPLIED, ApplicationEvent.SCREEN_ADVANCE): ApplicationStatus.INTERVIEW,
        **_fan_in(
            (ApplicationStatus.APPLIED, ApplicationStatus.INTERVIEW),
            ApplicationEvent.SCREEN_REJECT,
            ApplicationStatus.REJECTED,
        ),
        (ApplicationStatus.INTERVIEW, ApplicationEvent.SUBMIT_SCORE): ApplicationStatus.SCORE_SUBMITTED,
        (ApplicationStatus.SCORE_SUBMITTED, ApplicationEvent.SELECT): ApplicationStatus.SELECTED,
        **_fan_in(
            (ApplicationStatus.SCORE_SUBMITTED, ApplicationStatus.SELECTED, ApplicationStatus.OFFER_ACCEPTED),
            ApplicationEvent.FINAL_REJECT,
            ApplicationStatus.REJECTED,
        ),
        **_fan_in(
            (ApplicationStatus.SCORE_SUBMITTED, ApplicationStatus.SELECTED),
            ApplicationEvent.SEND_OFFER,
            ApplicationStatus.OFFER_LETTER_SENT,
        ),
        (ApplicationStatus.OFFER_LETTER_SENT, ApplicationEvent.ACCEPT_OFFER): ApplicationStatus.OFFER_ACCEPTED,
        **_fan_in(
            (ApplicationStatus.OFFER_LETTER_SENT, ApplicationStatus.OFFER_ACCEPTED),
            ApplicationEvent.DECLINE_OFFER,
            ApplicationStatus.REJECTED,
        ),
        (ApplicationStatus.OFFER_ACCEPTED, ApplicationEvent.HIRE): ApplicationStatus.HIRED,
    },
    terminal=frozenset({ApplicationStatus.HIRED, ApplicationStatus.REJECTED}),
)

SCREEN_EVENTS: dict[ApplicationStatus, ApplicationEvent] = {
    ApplicationStatus.INTERVIEW: ApplicationEvent.SCREEN_ADVANCE,
    ApplicationStatus.REJECTED: ApplicationEvent.SCREEN_REJECT,
}

FINAL_DECISION_EVENTS: dict[ApplicationStatus, ApplicationEvent] = {
    ApplicationStatus.SELECTED: ApplicationEvent.SELECT,
    ApplicationStatus.REJECTED: ApplicationEvent.FINAL_REJECT,
    ApplicationStatus.HIRED: ApplicationEvent.HIRE,
}

# Statuses in which an offer may be drafted or sent.
PRE_OFFER_STATES: frozenset[ApplicationStatus] = APPLICATION_TABLE.sources(ApplicationEvent.SEND_OFFER)

# move-stage is a free jump between non-terminal statuses. Seats are only consumed by a hire decision.
MOVE_STAGE_SOURCES: frozenset[ApplicationStatus] = frozenset(ApplicationStatus) - APPLICATION_TABLE.terminal
MOVE_STAGE_TARGETS: frozenset[ApplicationStatus] = frozenset(ApplicationStatus) - {ApplicationStatus.HIRED}


def can_move_stage(from_status: object, to_status: object) -> bool:
    current = APPLICATION_TABLE.coerce(from_status)
    target = APPLICATION_TABLE.coerce(to_status)
    return current in MOVE_STAGE_SOURCES and target in MOVE_STAGE_TARGETS


INTERVIEW_TABLE: TransitionTable[InterviewStatus, InterviewEvent] = TransitionTable(
    entity="interview",
    states=InterviewStatus,
    edges={
        (InterviewStatus.SCHEDULED, InterviewEvent.COMPLETE): InterviewStatus.COMPLETED,
        (InterviewStatus.SCHEDULED, InterviewEvent.CANCEL): InterviewStatus.CANCELLED,
    },
    terminal=frozenset({InterviewStatus.COMPLETED, InterviewStatus.CANCELLED}),
)

INTERVIEW_STATUS_EVENTS: dict[InterviewStatus, InterviewEvent] = {
    InterviewStatus.COMPLETED: InterviewEvent.COMPLETE,
    InterviewStatus.CANCELLED: InterviewEvent.CANCEL,
}


SCORECARD_TABLE: TransitionTable[ScorecardState, ScorecardEvent] = TransitionTable(
    entity="scorecard",
    states=ScorecardState,
    edges={(ScorecardState.DRAFT, ScorecardEvent.FINALIZE): ScorecardState.FINAL},
    terminal=frozenset({ScorecardState.FINAL}),
)


OFFER_TABLE: TransitionTable[OfferStatus, OfferEvent] = TransitionTable(
    entity="offer",
    states=OfferStatus,
    edges={
        (OfferStatus.DRAFT, OfferEvent.SEND): OfferStatus.SENT,
        (OfferStatus.SENT, OfferEvent.ACCEPT): OfferStatus.ACCEPTED,
        **_fan_in((OfferStatus.SENT, OfferStatus.ACCEPTED), OfferEvent.DECLINE, OfferStatus.DECLINED),
    },
    terminal=frozenset({OfferStatus.DECLINED}),
)

LIVE_OFFER_STATES: frozenset[OfferStatus] = frozenset(OfferStatus) - {OfferStatus.DECLINED}


ALL_TABLES: tuple[TransitionTable, ...] = (
    JOB_TABLE,
    APPROVAL_TABLE,
    APPLICATION_TABLE,
    INTERVIEW_TABLE,
    SCORECARD_TABLE,
    OFFER_TABLE,
)
