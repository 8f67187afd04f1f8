"""
Exception types shared across the job autopilot packages.
"""


class JobAutopilotError(Exception):
    """Base class for all job autopilot errors."""


class ConfigError(JobAutopilotError):
    """Raised when configuration cannot be loaded or is invalid."""


class PostingValidationError(JobAutopilotError):
    """Raised when a scraped record is missing required fields."""


class ApplicationNotFoundError(JobAutopilotError):
    """Raised when an application id does not resolve for the given user."""


class InvalidTransitionError(JobAutopilotError):
    """Raised when a status change is not allowed by the state machine."""

    def __init__(self, current, requested):
        self.current = current
        self.requested = requested
        super().__init__(f"Cannot move application from {current.value} to {requested.value}")


class SubmissionError(JobAutopilotError):
    """Raised when an application cannot be submitted downstream."""


class QueueError(JobAutopilotError):
    """Raised for task queue failures."""


class UnknownQueueError(QueueError):
    """Raised when a queue name is not one of the configured queues."""


class ProfileNotFoundError(JobAutopilotError):
    """Raised when no candidate profile exists for a user."""
