"""
Task queue data models.
"""

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Optional


class JobStatus(Enum):
    """Lifecycle of a queued job."""
    WAITING = "waiting"
    DELAYED = "delayed"
    ACTIVE = "active"
    COMPLETED = "completed"
    FAILED = "failed"


@dataclass(frozen=True)
class Backoff:
    """Retry delay policy."""
    type: str = "exponential"  # exponential or fixed
    delay_ms: int = 5000

    def __post_init__(self):
        if self.type not in ("exponential", "fixed"):
            raise ValueError(f"Unsupported backoff type: {self.type}")

    def delay_for(self, attempt: int) -> float:
        """Seconds to wait before retrying after the given (1-based) attempt."""
        if self.type == "fixed":
            return self.delay_ms / 1000
        return self.delay_ms * 2 ** (max(attempt, 1) - 1) / 1000

    def to_dict(self) -> dict:
        return {"type": self.type, "delay_ms": self.delay_ms}


@dataclass(frozen=True)
class JobOptions:
    """
    Per-job queue options.

    Defaults: three attempts, exponential backoff from 5 seconds, the 1000
    most recent completed jobs kept and failed jobs always kept.
    """
    attempts: int = 3
    backoff: Backoff = field(default_factory=Backoff)
    delay_ms: int = 0
    job_id: Optional[str] = None
    repeat_every_ms: Optional[int] = None
    remove_on_complete: Optional[int] = 1000

    def __post_init__(self):
        if self.attempts < 1:
            raise ValueError("attempts must be at least 1")
        if self.repeat_every_ms is not None and self.repeat_every_ms <= 0:
            raise ValueError("repeat_every_ms must be positive")

    def merged(self, **overrides) -> "JobOptions":
        """Copy with the given non-None fields replaced."""
        return replace(self, **{key: value for key, value in overrides.items() if value is not None})

    def to_dict(self) -> dict:
        return {
            "attempts": self.attempts,
            "backoff": self.backoff.to_dict(),
            "delay_ms": self.delay_ms,
            "job_id": self.job_id,
            "repeat_every_ms": self.repeat_every_ms,
            "remove_on_complete": self.remove_on_complete,
        }

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> "JobOptions":
        data = dict(data or {})
        backoff = data.pop("backoff", None)
        if isinstance(backoff, dict):
            data["backoff"] = Backoff(**backoff)
        return cls(**data)


@dataclass
class QueueTask:
    """A job as stored by the broker."""
    id: str
    queue: str
    name: str
    payload: Any
    options: JobOptions
    status: JobStatus
    attempts_made: int = 0
    run_at: float = 0.0
    result: Any = None
    failed_reason: Optional[str] = None
    created_at: float = 0.0
    finished_at: Optional[float] = None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "queue": self.queue,
            "name": self.name,
            "payload": self.payload,
            "options": self.options.to_dict(),
            "status": self.status.value,
            "attempts_made": self.attempts_made,
            "result": self.result,
            "failed_reason": self.failed_reason,
        }
