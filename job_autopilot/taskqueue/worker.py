"""
Queue worker - runs a processor over a queue with bounded concurrency.
"""

from typing import Any, Callable, Optional
import logging
import threading

from .models import JobStatus, QueueTask
from .queue import Queue


Processor = Callable[[QueueTask], Any]


class Worker:
    """
    Pulls jobs from one queue and hands them to a processor.

    A processor that returns completes the job with its return value; one
    that raises fails the attempt and the broker decides whether to retry.
    While a job runs, a heartbeat thread keeps extending its lease.
    """

    def __init__(
        self,
        queue: Queue,
        processor: Processor,
        concurrency: int = 5,
        poll_interval: float = 1.0,
    ):
        if concurrency < 1:
            raise ValueError("concurrency must be at least 1")

        self.queue = queue
        self.processor = processor
        self.concurrency = concurrency
        self.poll_interval = poll_interval
        self.logger = logging.getLogger(f"{self.__class__.__name__}[{queue.name}]")

        self._stop = threading.Event()
        self._threads: list[threading.Thread] = []

    @property
    def running(self) -> bool:
        return any(thread.is_alive() for thread in self._threads)

    def process_next(self) -> bool:
        """
        Process one job if one is ready.

        Returns:
            True if a job was processed, False if the queue had nothing ready
        """
        task = self.queue.broker.claim(self.queue.name)
        if task is None:
            return False

        self.logger.debug(f"Processing {task.name} ({task.id}), attempt {task.attempts_made}")
        done = threading.Event()
        heartbeat = threading.Thread(target=self._heartbeat, args=(task, done), daemon=True)
        heartbeat.start()
        try:
            try:
                result = self.processor(task)
            finally:
                done.set()
                heartbeat.join()
        except Exception as e:
            status = self.queue.broker.fail(task, str(e) or e.__class__.__name__)
            if status == JobStatus.FAILED:
                self.logger.exception(f"Job {task.id} on {self.queue.name} failed permanently")
            return True

        self.queue.broker.complete(task, result)
        return True

    def _heartbeat(self, task: QueueTask, done: threading.Event) -> None:
        # Refresh well before the lease runs out.
        interval = max(self.queue.broker.lease_seconds / 3, 0.01)
        while not done.wait(interval):
            try:
                if not self.queue.broker.extend_lease(task):
                    return
            except Exception:
                self.logger.exception(f"Unable to extend lease of {task.id}")

    def drain(self, max_jobs: Optional[int] = None) -> int:
        """Process ready jobs on the calling thread until none are left."""
        processed = 0
        while max_jobs is None or processed < max_jobs:
            if not self.process_next():
                break
            processed += 1
        return processed

    def start(self) -> None:
        """Start the worker threads."""
        if self.running:
            return

        self._stop.clear()
        self._threads = [
            threading.Thread(target=self._run, name=f"{self.queue.name}-worker-{index}", daemon=True)
            for index in range(self.concurrency)
        ]
        for thread in self._threads:
            thread.start()
        self.logger.info(f"Started {self.concurrency} worker threads")

    def stop(self, timeout: Optional[float] = None) -> None:
        """Signal the worker threads to stop and wait for in-flight jobs."""
        self._stop.set()
        for thread in self._threads:
            thread.join(timeout)
        self._threads = []

    def _run(self) -> None:
        while not self._stop.is_set():
            try:
                processed = self.process_next()
            except Exception:
                self.logger.exception("Worker loop error")
                processed = False

            if not processed:
                self._stop.wait(self.poll_interval)
