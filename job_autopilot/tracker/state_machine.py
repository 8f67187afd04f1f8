"""
Application status state machine.

Pipeline transitions move an application from QUEUED through submission to a
response. ARCHIVED and CANCELLED are administrative and may be applied from
any status that is not already archived or cancelled.
"""

from job_autopilot.core.models import ApplicationEventType, ApplicationStatus
from job_autopilot.errors import InvalidTransitionError


INITIAL_STATUS = ApplicationStatus.QUEUED

PIPELINE_TRANSITIONS = {
    ApplicationStatus.QUEUED: {ApplicationStatus.SUBMISSION_IN_PROGRESS},
    ApplicationStatus.SUBMISSION_IN_PROGRESS: {
        ApplicationStatus.SUBMITTED,
        ApplicationStatus.FAILED,
    },
    ApplicationStatus.SUBMITTED: {
        ApplicationStatus.CONFIRMED,
        ApplicationStatus.FAILED,
        ApplicationStatus.RESPONDED,
    },
    ApplicationStatus.CONFIRMED: {ApplicationStatus.RESPONDED},
    ApplicationStatus.FAILED: set(),
    ApplicationStatus.RESPONDED: set(),
    ApplicationStatus.ARCHIVED: set(),
    ApplicationStatus.CANCELLED: set(),
}

ADMINISTRATIVE_STATUSES = {ApplicationStatus.ARCHIVED, ApplicationStatus.CANCELLED}

STATUS_EVENT_TYPES = {
    ApplicationStatus.QUEUED: ApplicationEventType.APPLICATION_QUEUED,
    ApplicationStatus.SUBMISSION_IN_PROGRESS: ApplicationEventType.SUBMISSION_STARTED,
    ApplicationStatus.SUBMITTED: ApplicationEventType.SUBMISSION_SUCCEEDED,
    ApplicationStatus.CONFIRMED: ApplicationEventType.SUBMISSION_CONFIRMED,
    ApplicationStatus.FAILED: ApplicationEventType.SUBMISSION_FAILED,
    ApplicationStatus.RESPONDED: ApplicationEventType.RESPONSE_RECEIVED,
    ApplicationStatus.ARCHIVED: ApplicationEventType.APPLICATION_ARCHIVED,
    ApplicationStatus.CANCELLED: ApplicationEventType.APPLICATION_CANCELLED,
}


def _validate_tables() -> None:
    missing = set(ApplicationStatus) - set(STATUS_EVENT_TYPES)
    if missing:
        raise RuntimeError(f"No event type for statuses: {sorted(s.value for s in missing)}")

    missing = set(ApplicationStatus) - set(PIPELINE_TRANSITIONS)
    if missing:
        raise RuntimeError(f"No transitions for statuses: {sorted(s.value for s in missing)}")


_validate_tables()


def can_transition(current: ApplicationStatus, requested: ApplicationStatus) -> bool:
    """Whether an application may move from current to requested."""
    if requested in ADMINISTRATIVE_STATUSES:
        return current not in ADMINISTRATIVE_STATUSES
    return requested in PIPELINE_TRANSITIONS[current]


def ensure_transition(current: ApplicationStatus, requested: ApplicationStatus) -> None:
    if not can_transition(current, requested):
        raise InvalidTransitionError(current, requested)


def event_type_for(status: ApplicationStatus) -> ApplicationEventType:
    return STATUS_EVENT_TYPES[status]


def is_terminal(status: ApplicationStatus) -> bool:
    """No further pipeline progress is possible from this status."""
    return not PIPELINE_TRANSITIONS[status]
