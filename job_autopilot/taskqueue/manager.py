"""
Queue manager - owns the named queues and their workers.

The manager is constructed explicitly and passed to whoever needs it.
initialize() runs the bootstrap (worker registration, default schedules) at
most once per manager; shutdown() stops the workers, runs the shutdown hooks
the bootstrap registered and allows a later initialize() to run again.
"""

from typing import Callable, Optional
import logging
import threading

from job_autopilot.errors import UnknownQueueError
from .broker import SqliteBroker
from .models import JobOptions
from .queue import Queue
from .worker import Processor, Worker


QUEUE_NAMES = ("scraping", "applications", "notifications")

DEFAULT_CONCURRENCY = {
    "scraping": 2,
    "applications": 3,
    "notifications": 5,
}

BACKLOG_THRESHOLD = 50


def classify_health(counts: dict) -> str:
    """attention when anything failed, backlog when too much is waiting, else healthy."""
    if counts.get("failed", 0) > 0:
        return "attention"
    if counts.get("waiting", 0) > BACKLOG_THRESHOLD:
        return "backlog"
    return "healthy"


class QueueManager:
    """Named queues, one worker per queue and the one-time bootstrap."""

    def __init__(
        self,
        broker: SqliteBroker,
        default_options: Optional[JobOptions] = None,
        concurrency: Optional[dict[str, int]] = None,
        poll_interval: float = 1.0,
    ):
        self.broker = broker
        self.default_options = default_options or JobOptions()
        self.concurrency = {**DEFAULT_CONCURRENCY, **(concurrency or {})}
        self.poll_interval = poll_interval
        self.queues = {name: Queue(name, broker, self.default_options) for name in QUEUE_NAMES}
        self.workers: dict[str, Worker] = {}
        self.logger = logging.getLogger(self.__class__.__name__)

        self._initialized = False
        self._lock = threading.Lock()
        self._shutdown_hooks: list[Callable[[], None]] = []

    @property
    def initialized(self) -> bool:
        return self._initialized

    def get_queue(self, name: str) -> Queue:
        """
        Raises:
            UnknownQueueError: if the name is not a configured queue
        """
        try:
            return self.queues[name]
        except KeyError:
            raise UnknownQueueError(f"Unknown queue: {name}") from None

    def register_worker(self, name: str, processor: Processor, concurrency: Optional[int] = None) -> Worker:
        """Register the worker for a queue; a second registration returns the first worker."""
        queue = self.get_queue(name)
        if name in self.workers:
            return self.workers[name]

        worker = Worker(
            queue,
            processor,
            concurrency=concurrency or self.concurrency.get(name, 5),
            poll_interval=self.poll_interval,
        )
        self.workers[name] = worker
        return worker

    def initialize(self, bootstrap: Optional[Callable[["QueueManager"], None]] = None) -> bool:
        """
        Run the bootstrap once.

        Active jobs whose lease has run out (their worker died) are moved back
        to waiting first. Jobs held by a live worker in another process keep
        running there.

        Returns:
            True if this call did the initialization, False if already done
        """
        with self._lock:
            if self._initialized:
                return False

            self.broker.recover_stalled()
            if bootstrap:
                bootstrap(self)

            self._initialized = True
            self.logger.info(f"Initialized queues: {', '.join(QUEUE_NAMES)}")
            return True

    def on_shutdown(self, hook: Callable[[], None]) -> None:
        """Run hook on the next shutdown(), e.g. to undo what the bootstrap set up."""
        self._shutdown_hooks.append(hook)

    def start_workers(self) -> None:
        for worker in self.workers.values():
            worker.start()

    def drain(self) -> dict[str, int]:
        """Process every ready job on the calling thread, queue by queue."""
        processed = {name: 0 for name in self.workers}
        while True:
            rounds = {name: worker.drain() for name, worker in self.workers.items()}
            for name, count in rounds.items():
                processed[name] += count
            if not any(rounds.values()):
                return processed

    def shutdown(self, timeout: Optional[float] = 30.0) -> None:
        with self._lock:
            for worker in self.workers.values():
                worker.stop(timeout)
            self.workers = {}

            hooks, self._shutdown_hooks = self._shutdown_hooks, []
            for hook in hooks:
                try:
                    hook()
                except Exception as e:
                    self.logger.warning(f"Shutdown hook failed: {e}")

            self._initialized = False
            self.logger.info("Queues shut down")

    def status(self) -> list[dict]:
        """Counts, metrics and health for every queue; a broken queue reports its error."""
        details = []
        for name in QUEUE_NAMES:
            try:
                queue = self.get_queue(name)
                counts = queue.get_job_counts()
                details.append({
                    "queue": name,
                    "counts": counts,
                    "metrics": queue.get_metrics(),
                    "health": classify_health(counts),
                })
            except Exception as e:
                self.logger.warning(f"Unable to read status of {name}: {e}")
                details.append({"queue": name, "error": str(e) or "Unavailable"})
        return details
