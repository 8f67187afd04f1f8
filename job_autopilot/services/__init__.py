"""
Collaborating services: profiles, ranked job search, notifications and audit.
"""

from .audit import SqliteAuditLog
from .job_search import JobListing, JobSearchFilters, JobSearchService
from .notifications import NotificationDispatcher, NotificationPayload, SmtpSettings
from .profiles import JsonProfileProvider, ProfileProvider

__all__ = [
    "SqliteAuditLog",
    "JobListing",
    "JobSearchFilters",
    "JobSearchService",
    "NotificationDispatcher",
    "NotificationPayload",
    "SmtpSettings",
    "JsonProfileProvider",
    "ProfileProvider",
]
