from fastapi import HTTPException, status

from hireflow.core.outcomes import ErrorCode, OutcomeStatus, WorkflowOutcome
from hireflow.schemas.common import OutcomeOut

_ERROR_STATUS = {
    ErrorCode.VALIDATION: status.HTTP_400_BAD_REQUEST,
    ErrorCode.NO_OPENINGS: status.HTTP_409_CONFLICT,
    ErrorCode.NOT_OPEN: status.HTTP_409_CONFLICT,
    ErrorCode.CONFLICT: status.HTTP_409_CONFLICT,
    ErrorCode.COLLABORATOR: status.HTTP_502_BAD_GATEWAY,
    ErrorCode.CONSISTENCY: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


def http_status_for(outcome: WorkflowOutcome) -> int:
    if outcome.status == OutcomeStatus.OK:
        return status.HTTP_200_OK
    if outcome.status == OutcomeStatus.NOT_FOUND:
        return status.HTTP_404_NOT_FOUND
    return _ERROR_STATUS.get(outcome.error_code, status.HTTP_400_BAD_REQUEST)


def outcome_or_raise(outcome: WorkflowOutcome) -> OutcomeOut:
    if not outcome.ok:
        raise HTTPException(status_code=http_status_for(outcome), detail=outcome.message or "Request failed")
    return OutcomeOut(
        status=outcome.status.value,
        entity_id=outcome.entity_id,
        message=outcome.message or "",
        data=outcome.data,
    )
