from __future__ import annotations

import functools
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Awaitable, Callable, TypeVar

logger = logging.getLogger("hireflow.workflow")


class OutcomeStatus(str, Enum):
    OK = "ok"
    NOT_FOUND = "not_found"
    ERROR = "error"


class ErrorCode(str, Enum):
    VALIDATION = "validation"
    NO_OPENINGS = "no_openings"
    NOT_OPEN = "not_open"
    CONFLICT = "conflict"
    CONSISTENCY = "consistency"
    COLLABORATOR = "collaborator"


@dataclass(frozen=True)
class WorkflowOutcome:
    status: OutcomeStatus
    entity_id: int | None = None
    message: str | None = None
    error_code: ErrorCode | None = None
    data: dict[str, Any] = field(default_factory=dict)

    @property
    def ok(self) -> bool:
        return self.status == OutcomeStatus.OK

    @classmethod
    def success(cls, entity_id: int | None = None, message: str | None = None, **data: Any) -> "WorkflowOutcome":
        return cls(status=OutcomeStatus.OK, entity_id=entity_id, message=message, data=data)

    @classmethod
    def not_found(cls, message: str = "Not found") -> "WorkflowOutcome":
        return cls(status=OutcomeStatus.NOT_FOUND, message=message)

    @classmethod
    def failure(cls, code: ErrorCode, message: str) -> "WorkflowOutcome":
        return cls(status=OutcomeStatus.ERROR, message=message, error_code=code)


class WorkflowError(Exception):
    code: ErrorCode = ErrorCode.VALIDATION

    def __init__(self, message: str) -> None:
        super().__init__(message)
        self.message = message


class WorkflowValidationError(WorkflowError):
    """Malformed or missing input; raised before the database is touched."""

    code = ErrorCode.VALIDATION


class PreconditionFailed(WorkflowError):
    """The target is absent, out of scope, or not in an allowed state. Reported as not found."""


class BusinessRuleViolation(WorkflowError):
    def __init__(self, code: ErrorCode, message: str) -> None:
        super().__init__(message)
        self.code = code


class NoOpeningsLeft(BusinessRuleViolation):
    def __init__(self, message: str = "No openings left") -> None:
        super().__init__(ErrorCode.NO_OPENINGS, message)


class ConsistencyFault(WorkflowError):
    """A guarded update that must have matched one row matched none."""

    code = ErrorCode.CONSISTENCY


class CollaboratorFailure(WorkflowError):
    """An external collaborator whose result the transition depends on failed."""

    code = ErrorCode.COLLABORATOR


F = TypeVar("F", bound=Callable[..., Awaitable[WorkflowOutcome]])


def outcome_boundary(func: F) -> F:
    """Convert workflow exceptions raised by a manager operation into a WorkflowOutcome.

    Database errors are not part of the workflow taxonomy and propagate unchanged.
    """

    @functools.wraps(func)
    async def wrapper(*args: Any, **kwargs: Any) -> WorkflowOutcome:
        try:
            return await func(*args, **kwargs)
        except PreconditionFailed as exc:
            return WorkflowOutcome.not_found(exc.message)
        except ConsistencyFault as exc:
            logger.error(
                "workflow_consistency_fault",
                extra={"operation": func.__name__, "detail": exc.message},
            )
            return WorkflowOutcome.failure(exc.code, exc.message)
        except CollaboratorFailure as exc:
            logger.warning(
                "workflow_collaborator_failure",
                extra={"operation": func.__name__, "detail": exc.message},
                exc_info=exc.__cause__ is not None,
            )
            return WorkflowOutcome.failure(exc.code, exc.message)
        except WorkflowError as exc:
            return WorkflowOutcome.failure(exc.code, exc.message)

    return wrapper  # type: ignore[return-value]
