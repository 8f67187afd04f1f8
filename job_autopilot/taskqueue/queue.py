"""
Named queue facade over the broker.
"""

from typing import Optional

from .broker import SqliteBroker
from .models import JobOptions, QueueTask


class Queue:
    """A named queue with default job options."""

    def __init__(self, name: str, broker: SqliteBroker, default_options: Optional[JobOptions] = None):
        self.name = name
        self.broker = broker
        self.default_options = default_options or JobOptions()

    def add(self, job_name: str, payload, options: Optional[JobOptions] = None) -> str:
        """
        Add a job to this queue.

        Args:
            job_name: Descriptive job name ("scrape:<query>:<location>", ...)
            payload: JSON-serializable job data
            options: Overrides for the queue's default options

        Returns:
            The job id ("repeat:<key>" for repeatable jobs)
        """
        return self.broker.add(self.name, job_name, payload, options or self.default_options)

    def options(self, **overrides) -> JobOptions:
        """Default options with the given fields replaced."""
        return self.default_options.merged(**overrides)

    def remove(self, job_id: str) -> bool:
        """Cancel a job before a worker picks it up."""
        return self.broker.remove(job_id)

    def get_job(self, job_id: str) -> Optional[QueueTask]:
        return self.broker.get_job(job_id)

    def get_job_counts(self) -> dict[str, int]:
        return self.broker.counts(self.name)

    def get_metrics(self) -> dict[str, int]:
        return self.broker.metrics(self.name)

    def get_repeatables(self) -> list[dict]:
        return self.broker.list_repeatables(self.name)
