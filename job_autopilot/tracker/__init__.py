"""
Application Tracker - Track applications through the submission lifecycle.
"""

from .application_tracker import ApplicationTracker
from .state_machine import (
    STATUS_EVENT_TYPES,
    can_transition,
    ensure_transition,
    event_type_for,
)

__all__ = [
    "ApplicationTracker",
    "STATUS_EVENT_TYPES",
    "can_transition",
    "ensure_transition",
    "event_type_for",
]
