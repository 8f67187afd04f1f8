from __future__ import annotations

import threading
import time

import pytest

from job_autopilot.errors import UnknownQueueError
from job_autopilot.store.database import Database
from job_autopilot.taskqueue.broker import SqliteBroker
from job_autopilot.taskqueue.manager import QueueManager, classify_health
from job_autopilot.taskqueue.models import Backoff, JobOptions, JobStatus
from job_autopilot.taskqueue.queue import Queue
from job_autopilot.taskqueue.worker import Worker


class ManualClock:
    def __init__(self, now: float = 1_000.0) -> None:
        self.now = now

    def __call__(self) -> float:
        return self.now

    def advance(self, seconds: float) -> None:
        self.now += seconds


@pytest.fixture
def clock() -> ManualClock:
    return ManualClock()


@pytest.fixture
def broker(db, clock) -> SqliteBroker:
    return SqliteBroker(db, clock=clock)


def no_backoff(**overrides) -> JobOptions:
    return JobOptions(backoff=Backoff(delay_ms=0), **overrides)


def test_backoff_delays() -> None:
    assert Backoff(delay_ms=5000).delay_for(1) == 5
    assert Backoff(delay_ms=5000).delay_for(3) == 20
    assert Backoff(type="fixed", delay_ms=1000).delay_for(4) == 1
    with pytest.raises(ValueError):
        Backoff(type="linear")


def test_options_round_trip_and_merge() -> None:
    options = JobOptions(attempts=5, job_id="x", repeat_every_ms=1000)

    assert JobOptions.from_dict(options.to_dict()) == options
    assert options.merged(attempts=2, job_id=None).job_id == "x"
    assert options.merged(attempts=2).attempts == 2


def test_failing_job_stops_after_configured_attempts(broker) -> None:
    queue = Queue("scraping", broker, no_backoff(attempts=3))
    calls = []

    def processor(task):
        calls.append(task.attempts_made)
        raise RuntimeError("board offline")

    job_id = queue.add("scrape:x", {"query": "x"})
    processed = Worker(queue, processor).drain()

    task = queue.get_job(job_id)
    assert processed == 3
    assert calls == [1, 2, 3]
    assert task.status == JobStatus.FAILED
    assert task.failed_reason == "board offline"
    assert queue.get_metrics() == {"processed": 3, "completed": 0, "failed": 1, "retried": 2}


def test_retry_waits_for_backoff(broker, clock) -> None:
    queue = Queue("scraping", broker, JobOptions(attempts=2, backoff=Backoff(delay_ms=5000)))
    outcomes = iter([RuntimeError("flaky"), None])

    def processor(task):
        error = next(outcomes)
        if error:
            raise error
        return {"ok": True}

    job_id = queue.add("scrape:x", {})
    worker = Worker(queue, processor)

    assert worker.drain() == 1
    assert queue.get_job(job_id).status == JobStatus.DELAYED
    assert worker.drain() == 0

    clock.advance(5)
    assert worker.drain() == 1
    task = queue.get_job(job_id)
    assert task.status == JobStatus.COMPLETED
    assert task.result == {"ok": True}


def test_job_id_is_idempotent(broker) -> None:
    queue = Queue("applications", broker)

    first = queue.add("submit", {"application_id": "a"}, queue.options(job_id="submit:a"))
    second = queue.add("submit", {"application_id": "a"}, queue.options(job_id="submit:a"))

    assert first == second == "submit:a"
    assert queue.get_job_counts()["waiting"] == 1


def test_delayed_job_is_released_when_due(broker, clock) -> None:
    queue = Queue("notifications", broker)
    job_id = queue.add("notify", {}, queue.options(delay_ms=2000))

    assert queue.get_job(job_id).status == JobStatus.DELAYED
    assert broker.claim("notifications") is None

    clock.advance(2)
    assert broker.claim("notifications").id == job_id


def test_repeatable_registration_is_idempotent_and_runs_on_schedule(broker, clock) -> None:
    queue = Queue("scraping", broker)
    options = queue.options(job_id="default:software-engineer:remote", repeat_every_ms=60_000)

    assert queue.add("scrape:se", {"query": "se"}, options) == "repeat:default:software-engineer:remote"
    queue.add("scrape:se", {"query": "se"}, options)
    assert len(queue.get_repeatables()) == 1

    first = broker.claim("scraping")
    assert first is not None
    assert first.payload == {"query": "se"}
    assert first.options.repeat_every_ms is None
    broker.complete(first)
    assert broker.claim("scraping") is None

    clock.advance(60)
    second = broker.claim("scraping")
    assert second is not None and second.id != first.id

    assert broker.remove_repeatable("scraping", "default:software-engineer:remote")
    assert queue.get_repeatables() == []


def test_remove_waiting_job(broker) -> None:
    queue = Queue("applications", broker)
    job_id = queue.add("submit", {})

    assert queue.remove(job_id) is True
    assert queue.get_job(job_id) is None


def test_remove_active_job_is_refused(broker) -> None:
    queue = Queue("applications", broker)
    job_id = queue.add("submit", {})
    broker.claim("applications")

    assert queue.remove(job_id) is False
    assert queue.get_job(job_id).status == JobStatus.ACTIVE


def test_recover_stalled_requeues_only_expired_leases(broker, clock) -> None:
    queue = Queue("applications", broker)
    job_id = queue.add("submit", {})
    broker.claim("applications")

    assert broker.recover_stalled() == 0
    clock.advance(broker.lease_seconds)
    assert broker.recover_stalled() == 1
    assert queue.get_job(job_id).status == JobStatus.WAITING


def test_extended_lease_is_not_recovered(broker, clock) -> None:
    queue = Queue("applications", broker)
    job_id = queue.add("submit", {})
    task = broker.claim("applications")

    clock.advance(broker.lease_seconds - 10)
    assert broker.extend_lease(task) is True
    clock.advance(20)

    assert broker.recover_stalled() == 0
    assert queue.get_job(job_id).status == JobStatus.ACTIVE

    broker.complete(task)
    assert broker.extend_lease(task) is False


def test_second_process_initialize_leaves_running_job_alone(tmp_path, clock) -> None:
    path = tmp_path / "queue.db"
    worker_db, api_db = Database(path), Database(path)
    try:
        worker_side = SqliteBroker(worker_db, clock=clock)
        api_manager = QueueManager(SqliteBroker(api_db, clock=clock))
        job_id = Queue("applications", worker_side).add("submit", {"application_id": "a"})

        task = worker_side.claim("applications")
        assert task.id == job_id

        assert api_manager.initialize() is True
        assert worker_side.claim("applications") is None
        assert api_manager.get_queue("applications").get_job(job_id).status == JobStatus.ACTIVE

        worker_side.complete(task, {"submitted": True})
        assert api_manager.get_queue("applications").get_job_counts()["completed"] == 1
    finally:
        worker_db.close()
        api_db.close()


def test_completed_jobs_are_trimmed(broker, clock) -> None:
    queue = Queue("notifications", broker, JobOptions(remove_on_complete=2))
    ids = [queue.add("notify", {"n": n}) for n in range(4)]

    for _ in ids:
        clock.advance(1)
        broker.complete(broker.claim("notifications"))

    assert queue.get_job_counts()["completed"] == 2
    assert queue.get_metrics()["completed"] == 4


def test_classify_health() -> None:
    assert classify_health({"failed": 1, "waiting": 100}) == "attention"
    assert classify_health({"failed": 0, "waiting": 51}) == "backlog"
    assert classify_health({"failed": 0, "waiting": 50}) == "healthy"


def test_manager_initializes_once(broker) -> None:
    manager = QueueManager(broker)
    calls = []

    assert manager.initialize(lambda m: calls.append(m)) is True
    assert manager.initialize(lambda m: calls.append(m)) is False
    assert calls == [manager]

    manager.shutdown()
    assert manager.initialize(lambda m: calls.append(m)) is True


def test_manager_registers_one_worker_per_queue(broker) -> None:
    manager = QueueManager(broker, concurrency={"scraping": 4})

    worker = manager.register_worker("scraping", lambda task: None)

    assert manager.register_worker("scraping", lambda task: "other") is worker
    assert worker.concurrency == 4
    with pytest.raises(UnknownQueueError):
        manager.get_queue("emails")


def test_manager_drain_and_status(broker) -> None:
    manager = QueueManager(broker, default_options=no_backoff(attempts=1))
    manager.register_worker("scraping", lambda task: {"ingested": 0})
    manager.register_worker("notifications", lambda task: 1 / 0)
    manager.get_queue("scraping").add("scrape", {})
    manager.get_queue("notifications").add("notify", {})

    assert manager.drain() == {"scraping": 1, "notifications": 1}

    status = {detail["queue"]: detail for detail in manager.status()}
    assert status["scraping"]["health"] == "healthy"
    assert status["notifications"]["health"] == "attention"
    assert status["applications"]["counts"]["waiting"] == 0


def test_shutdown_runs_hooks_once(broker) -> None:
    manager = QueueManager(broker)
    calls = []

    manager.initialize(lambda m: m.on_shutdown(lambda: calls.append("undo")))
    manager.shutdown()
    manager.shutdown()

    assert calls == ["undo"]


def wait_for(condition, timeout: float = 10.0) -> bool:
    deadline = time.monotonic() + timeout
    while time.monotonic() < deadline:
        if condition():
            return True
        time.sleep(0.01)
    return condition()


class ConcurrencyRecorder:
    """Processor that records every job it runs and the peak number running at once."""

    def __init__(self, duration: float = 0.02) -> None:
        self.duration = duration
        self.seen: list[str] = []
        self.running = 0
        self.peak = 0
        self._lock = threading.Lock()

    def __call__(self, task):
        with self._lock:
            self.seen.append(task.id)
            self.running += 1
            self.peak = max(self.peak, self.running)
        time.sleep(self.duration)
        with self._lock:
            self.running -= 1
        return {"done": task.id}


def test_worker_threads_process_each_job_once_within_concurrency(tmp_path) -> None:
    db = Database(tmp_path / "queue.db")
    try:
        queue = Queue("applications", SqliteBroker(db), no_backoff())
        ids = [queue.add("submit", {"n": n}) for n in range(12)]
        recorder = ConcurrencyRecorder()
        worker = Worker(queue, recorder, concurrency=3, poll_interval=0.01)

        worker.start()
        try:
            assert wait_for(lambda: queue.get_job_counts()["completed"] == len(ids))
        finally:
            worker.stop(timeout=5)

        assert not worker.running
        assert sorted(recorder.seen) == sorted(ids)
        assert 1 <= recorder.peak <= 3
        assert queue.get_metrics()["processed"] == len(ids)
    finally:
        db.close()


def test_manager_start_workers_runs_every_queue(tmp_path) -> None:
    db = Database(tmp_path / "queue.db")
    try:
        manager = QueueManager(SqliteBroker(db), default_options=no_backoff(), poll_interval=0.01)
        scraping = ConcurrencyRecorder(duration=0.01)
        notifications = ConcurrencyRecorder(duration=0.01)
        manager.register_worker("scraping", scraping, concurrency=2)
        manager.register_worker("notifications", notifications, concurrency=1)
        for n in range(5):
            manager.get_queue("scraping").add("scrape", {"n": n})
            manager.get_queue("notifications").add("notify", {"n": n})

        manager.start_workers()
        try:
            assert wait_for(lambda: all(
                manager.get_queue(name).get_job_counts()["completed"] == 5
                for name in ("scraping", "notifications")
            ))
        finally:
            manager.shutdown(timeout=5)

        assert len(set(scraping.seen)) == len(scraping.seen) == 5
        assert len(set(notifications.seen)) == len(notifications.seen) == 5
        assert scraping.peak <= 2
        assert notifications.peak == 1
        assert manager.workers == {}
    finally:
        db.close()
