"""Conversion job lifecycle transition rules."""

from audiograb.errors import ApiError
from audiograb.schemas.job import JobStatus

_TERMINAL_STATES: set[JobStatus] = {
    JobStatus.FAILED,
    JobStatus.EXPIRED,
}

_IN_FLIGHT_STATES: set[JobStatus] = {
    JobStatus.PENDING,
    JobStatus.RUNNING,
}

_ALLOWED_TRANSITIONS: dict[JobStatus, set[JobStatus]] = {
    JobStatus.PENDING: {JobStatus.RUNNING, JobStatus.FAILED},
    JobStatus.RUNNING: {JobStatus.READY, JobStatus.FAILED},
    JobStatus.READY: {JobStatus.EXPIRED},
    JobStatus.FAILED: set(),
    JobStatus.EXPIRED: set(),
}


def is_terminal(status: JobStatus) -> bool:
    return status in _TERMINAL_STATES


def is_in_flight(status: JobStatus) -> bool:
    return status in _IN_FLIGHT_STATES


def allowed_next_statuses(status: JobStatus) -> list[JobStatus]:
    """Return deterministically ordered allowed successors for a status."""
    return sorted(_ALLOWED_TRANSITIONS.get(status, set()), key=lambda s: s.value)


def ensure_transition(old_status: JobStatus, new_status: JobStatus) -> None:
    """Validate transition according to lifecycle rules."""
    if old_status in _TERMINAL_STATES:
        raise ApiError(
            status_code=409,
            code="FSM_TERMINAL_IMMUTABLE",
            message="Terminal state cannot be mutated",
            details={
                "current_status": old_status,
                "attempted_status": new_status,
                "allowed_next_statuses": [],
            },
        )

    if new_status not in _ALLOWED_TRANSITIONS.get(old_status, set()):
        raise ApiError(
            status_code=409,
            code="FSM_TRANSITION_INVALID",
            message="Invalid status transition",
            details={
                "current_status": old_status,
                "attempted_status": new_status,
                "allowed_next_statuses": allowed_next_statuses(old_status),
            },
        )
