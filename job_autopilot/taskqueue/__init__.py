"""
Durable task queues: scraping, application submission and notifications.
"""

from .broker import SqliteBroker
from .manager import QUEUE_NAMES, QueueManager, classify_health
from .models import Backoff, JobOptions, JobStatus, QueueTask
from .queue import Queue
from .worker import Worker

__all__ = [
    "SqliteBroker",
    "QUEUE_NAMES",
    "QueueManager",
    "classify_health",
    "Backoff",
    "JobOptions",
    "JobStatus",
    "QueueTask",
    "Queue",
    "Worker",
]
