"""
SQLite persistence for postings, applications, audit entries and queue jobs.
"""

from .database import Database
from .job_store import JobStore, PostingFilter, SqliteJobStore

__all__ = [
    "Database",
    "JobStore",
    "PostingFilter",
    "SqliteJobStore",
]
