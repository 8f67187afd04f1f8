"""
Durable job broker on top of the shared SQLite database.

Jobs survive process restarts. A job is handed to exactly one worker at a
time: claim() flips a single waiting row to active inside the database write
lock and stamps it with a lease. The worker keeps extending the lease while
the job runs, so only jobs whose lease has run out count as stalled.
Repeatable jobs are stored by key and materialized into ordinary jobs when
they fall due.
"""

from dataclasses import replace
from typing import Callable, Optional
import json
import logging
import sqlite3
import time
import uuid

from job_autopilot.store.database import Database
from .models import JobOptions, JobStatus, QueueTask


METRICS = ("processed", "completed", "failed", "retried")

LEASE_SECONDS = 60.0


class SqliteBroker:
    """Stores, schedules and hands out queue jobs."""

    def __init__(
        self,
        db: Database,
        clock: Callable[[], float] = time.time,
        lease_seconds: float = LEASE_SECONDS,
    ):
        self.db = db
        self.clock = clock
        self.lease_seconds = lease_seconds
        self.logger = logging.getLogger(self.__class__.__name__)

    def add(self, queue: str, name: str, payload, options: Optional[JobOptions] = None) -> str:
        """
        Add a job.

        A job id that already exists is not added again; the existing id is
        returned. Jobs with a repeat interval are stored as repeatables keyed by
        their job id (or name) and return "repeat:<key>".

        Returns:
            The job id
        """
        options = options or JobOptions()
        if options.repeat_every_ms:
            return self._add_repeatable(queue, name, payload, options)

        job_id = options.job_id or uuid.uuid4().hex
        now = self.clock()
        run_at = now + options.delay_ms / 1000
        status = JobStatus.DELAYED if options.delay_ms > 0 else JobStatus.WAITING

        with self.db.transaction() as conn:
            cursor = conn.execute(
                """
                INSERT OR IGNORE INTO queue_jobs (id, queue, name, payload, options, status, run_at, created_at)
                VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                """,
                (job_id, queue, name, json.dumps(payload), json.dumps(options.to_dict()), status.value, run_at, now),
            )

        if cursor.rowcount == 0:
            self.logger.debug(f"Job {job_id} already exists on {queue}")
        else:
            self.logger.debug(f"Added {name} ({job_id}) to {queue}")
        return job_id

    def _add_repeatable(self, queue: str, name: str, payload, options: JobOptions) -> str:
        key = options.job_id or name
        instance_options = replace(options, repeat_every_ms=None, job_id=None, delay_ms=0)

        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT OR IGNORE INTO queue_repeatables (queue, key, name, payload, options, every_ms, next_run_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (
                    queue,
                    key,
                    name,
                    json.dumps(payload),
                    json.dumps(instance_options.to_dict()),
                    options.repeat_every_ms,
                    self.clock() + options.delay_ms / 1000,
                ),
            )
        return f"repeat:{key}"

    def remove_repeatable(self, queue: str, key: str) -> bool:
        with self.db.transaction() as conn:
            cursor = conn.execute("DELETE FROM queue_repeatables WHERE queue = ? AND key = ?", (queue, key))
        return cursor.rowcount > 0

    def list_repeatables(self, queue: str) -> list[dict]:
        rows = self.db.query(
            "SELECT key, name, every_ms, next_run_at FROM queue_repeatables WHERE queue = ? ORDER BY key",
            (queue,),
        )
        return [dict(row) for row in rows]

    def promote_due(self, queue: str) -> int:
        """Materialize due repeatables and release delayed jobs whose time has come."""
        now = self.clock()
        created = 0

        with self.db.transaction() as conn:
            due = conn.execute(
                "SELECT * FROM queue_repeatables WHERE queue = ? AND next_run_at <= ?",
                (queue, now),
            ).fetchall()

            for row in due:
                run_at = row["next_run_at"]
                job_id = f"repeat:{row['key']}:{int(run_at * 1000)}"
                cursor = conn.execute(
                    """
                    INSERT OR IGNORE INTO queue_jobs (id, queue, name, payload, options, status, run_at, created_at)
                    VALUES (?, ?, ?, ?, ?, ?, ?, ?)
                    """,
                    (job_id, queue, row["name"], row["payload"], row["options"], JobStatus.WAITING.value, now, now),
                )
                created += cursor.rowcount

                every = row["every_ms"] / 1000
                next_run_at = run_at + every
                while next_run_at <= now:
                    next_run_at += every
                conn.execute(
                    "UPDATE queue_repeatables SET next_run_at = ? WHERE queue = ? AND key = ?",
                    (next_run_at, queue, row["key"]),
                )

            conn.execute(
                "UPDATE queue_jobs SET status = ? WHERE queue = ? AND status = ? AND run_at <= ?",
                (JobStatus.WAITING.value, queue, JobStatus.DELAYED.value, now),
            )

        return created

    def claim(self, queue: str) -> Optional[QueueTask]:
        """Hand the next waiting job to the caller, or None if there is none."""
        with self.db.transaction() as conn:
            self.promote_due(queue)
            row = conn.execute(
                """
                SELECT id FROM queue_jobs
                WHERE queue = ? AND status = ?
                ORDER BY run_at, created_at
                LIMIT 1
                """,
                (queue, JobStatus.WAITING.value),
            ).fetchone()
            if row is None:
                return None

            cursor = conn.execute(
                """
                UPDATE queue_jobs SET status = ?, attempts_made = attempts_made + 1, locked_until = ?
                WHERE id = ? AND status = ?
                """,
                (JobStatus.ACTIVE.value, self.clock() + self.lease_seconds, row["id"], JobStatus.WAITING.value),
            )
            if cursor.rowcount == 0:
                return None

            return self._load(conn, row["id"])

    def extend_lease(self, task: QueueTask) -> bool:
        """
        Push back the lease of a job that is still running.

        Returns:
            False if the job is no longer active
        """
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "UPDATE queue_jobs SET locked_until = ? WHERE id = ? AND status = ?",
                (self.clock() + self.lease_seconds, task.id, JobStatus.ACTIVE.value),
            )
        return cursor.rowcount > 0

    def complete(self, task: QueueTask, result=None) -> None:
        now = self.clock()
        with self.db.transaction() as conn:
            conn.execute(
                "UPDATE queue_jobs SET status = ?, result = ?, finished_at = ?, locked_until = NULL WHERE id = ?",
                (JobStatus.COMPLETED.value, json.dumps(result, default=str), now, task.id),
            )
            self._increment(conn, task.queue, "processed", "completed")
            self._trim_completed(conn, task)

    def fail(self, task: QueueTask, reason: str) -> JobStatus:
        """
        Record a failed attempt.

        The job is retried with backoff until it has used all its attempts,
        after which it stays in the failed set with the reason.

        Returns:
            The job's new status
        """
        now = self.clock()
        with self.db.transaction() as conn:
            self._increment(conn, task.queue, "processed")

            if task.attempts_made < task.options.attempts:
                delay = task.options.backoff.delay_for(task.attempts_made)
                status = JobStatus.DELAYED if delay > 0 else JobStatus.WAITING
                conn.execute(
                    "UPDATE queue_jobs SET status = ?, run_at = ?, failed_reason = ?, locked_until = NULL WHERE id = ?",
                    (status.value, now + delay, reason, task.id),
                )
                self._increment(conn, task.queue, "retried")
                self.logger.warning(
                    f"{task.queue}/{task.name} attempt {task.attempts_made} failed, retrying in {delay:.1f}s: {reason}"
                )
                return status

            conn.execute(
                "UPDATE queue_jobs SET status = ?, failed_reason = ?, finished_at = ?, locked_until = NULL WHERE id = ?",
                (JobStatus.FAILED.value, reason, now, task.id),
            )
            self._increment(conn, task.queue, "failed")

        self.logger.error(f"{task.queue}/{task.name} failed after {task.attempts_made} attempts: {reason}")
        return JobStatus.FAILED

    def remove(self, job_id: str) -> bool:
        """Cancel a job that no worker has picked up yet."""
        with self.db.transaction() as conn:
            cursor = conn.execute(
                "DELETE FROM queue_jobs WHERE id = ? AND status IN (?, ?)",
                (job_id, JobStatus.WAITING.value, JobStatus.DELAYED.value),
            )
        return cursor.rowcount > 0

    def recover_stalled(self, queue: Optional[str] = None) -> int:
        """
        Move active jobs whose lease has run out back to waiting.

        A job whose worker is alive keeps a lease in the future and is left
        alone, so calling this from a second process is safe.
        """
        sql = (
            "UPDATE queue_jobs SET status = ?, locked_until = NULL "
            "WHERE status = ? AND (locked_until IS NULL OR locked_until <= ?)"
        )
        params: tuple = (JobStatus.WAITING.value, JobStatus.ACTIVE.value, self.clock())
        if queue:
            sql += " AND queue = ?"
            params += (queue,)

        with self.db.transaction() as conn:
            cursor = conn.execute(sql, params)

        if cursor.rowcount:
            self.logger.warning(f"Recovered {cursor.rowcount} stalled jobs")
        return cursor.rowcount

    def get_job(self, job_id: str) -> Optional[QueueTask]:
        with self.db.transaction() as conn:
            return self._load(conn, job_id)

    def list_jobs(self, queue: str, status: JobStatus, limit: int = 50) -> list[QueueTask]:
        rows = self.db.query(
            "SELECT * FROM queue_jobs WHERE queue = ? AND status = ? ORDER BY created_at DESC LIMIT ?",
            (queue, status.value, limit),
        )
        return [self._to_task(row) for row in rows]

    def counts(self, queue: str) -> dict[str, int]:
        counts = {status.value: 0 for status in JobStatus}
        rows = self.db.query(
            "SELECT status, COUNT(*) AS total FROM queue_jobs WHERE queue = ? GROUP BY status",
            (queue,),
        )
        for row in rows:
            counts[row["status"]] = row["total"]
        return counts

    def metrics(self, queue: str) -> dict[str, int]:
        values = {metric: 0 for metric in METRICS}
        rows = self.db.query("SELECT metric, value FROM queue_metrics WHERE queue = ?", (queue,))
        for row in rows:
            values[row["metric"]] = row["value"]
        return values

    def _increment(self, conn, queue: str, *metrics: str) -> None:
        for metric in metrics:
            conn.execute(
                """
                INSERT INTO queue_metrics (queue, metric, value) VALUES (?, ?, 1)
                ON CONFLICT (queue, metric) DO UPDATE SET value = value + 1
                """,
                (queue, metric),
            )

    def _trim_completed(self, conn, task: QueueTask) -> None:
        keep = task.options.remove_on_complete
        if keep is None:
            return
        conn.execute(
            """
            DELETE FROM queue_jobs
            WHERE queue = ? AND status = ? AND id NOT IN (
                SELECT id FROM queue_jobs WHERE queue = ? AND status = ?
                ORDER BY finished_at DESC, created_at DESC LIMIT ?
            )
            """,
            (task.queue, JobStatus.COMPLETED.value, task.queue, JobStatus.COMPLETED.value, keep),
        )

    def _load(self, conn, job_id: str) -> Optional[QueueTask]:
        row = conn.execute("SELECT * FROM queue_jobs WHERE id = ?", (job_id,)).fetchone()
        return self._to_task(row) if row else None

    @staticmethod
    def _to_task(row: sqlite3.Row) -> QueueTask:
        return QueueTask(
            id=row["id"],
            queue=row["queue"],
            name=row["name"],
            payload=json.loads(row["payload"]),
            options=JobOptions.from_dict(json.loads(row["options"])),
            status=JobStatus(row["status"]),
            attempts_made=row["attempts_made"],
            run_at=row["run_at"],
            result=json.loads(row["result"]) if row["result"] else None,
            failed_reason=row["failed_reason"],
            created_at=row["created_at"],
            finished_at=row["finished_at"],
        )
