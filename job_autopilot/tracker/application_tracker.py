"""
Application Tracker - Manages job application lifecycle and status tracking.

Every status change goes through update_application_status(), which checks the
state machine, writes the new status and appends exactly one event in a single
transaction. Listeners are notified after the transaction commits.
"""

from datetime import datetime
from typing import Callable, Optional
import json
import logging
import sqlite3
import uuid

from job_autopilot.core.models import (
    Application,
    ApplicationEvent,
    ApplicationEventType,
    ApplicationStatus,
    parse_datetime,
)
from job_autopilot.errors import ApplicationNotFoundError
from job_autopilot.store.database import Database, utcnow
from .state_machine import INITIAL_STATUS, ensure_transition, event_type_for


StatusListener = Callable[[Application, ApplicationStatus, ApplicationEvent], None]

QUEUE_EVENT_LIMIT = 5


class ApplicationTracker:
    """Tracks and manages job applications throughout their lifecycle."""

    def __init__(self, db: Database, clock: Callable[[], datetime] = utcnow):
        """
        Initialize the application tracker.

        Args:
            db: Shared database
            clock: Source of timestamps for status changes and events
        """
        self.db = db
        self.clock = clock
        self.listeners: list[StatusListener] = []
        self.logger = logging.getLogger(self.__class__.__name__)

    def add_listener(self, listener: StatusListener) -> None:
        """Register a callback invoked after every committed status change."""
        self.listeners.append(listener)

    def remove_listener(self, listener: StatusListener) -> bool:
        try:
            self.listeners.remove(listener)
        except ValueError:
            return False
        return True

    def create_application(self, user_id: str, posting_id: int, priority: int = 0) -> Application:
        """
        Queue a new application for a stored posting.

        Args:
            user_id: Owner of the application
            posting_id: Stored posting being applied to
            priority: Initial queue priority

        Returns:
            Created Application in the QUEUED status
        """
        application_id = str(uuid.uuid4())
        now = self.clock().isoformat()

        with self.db.transaction() as conn:
            conn.execute(
                """
                INSERT INTO applications (id, user_id, posting_id, status, priority, created_at, updated_at)
                VALUES (?, ?, ?, ?, ?, ?, ?)
                """,
                (application_id, user_id, posting_id, INITIAL_STATUS.value, priority, now, now),
            )
            self._append_event(conn, application_id, event_type_for(INITIAL_STATUS), None, now)

        self.logger.info(f"Queued application {application_id} for posting {posting_id}")
        return self.get_application(user_id, application_id)

    def update_application_status(
        self,
        application_id: str,
        new_status: ApplicationStatus,
        metadata: Optional[dict] = None,
        user_id: Optional[str] = None,
    ) -> Application:
        """
        Move an application to a new status.

        Args:
            application_id: ID of the application
            new_status: Requested status
            metadata: Event payload; stored as response metadata when RESPONDED
            user_id: Restrict the lookup to this user's applications

        Returns:
            Updated Application

        Raises:
            ApplicationNotFoundError: if the application does not exist
            InvalidTransitionError: if the state machine forbids the change
        """
        now = self.clock().isoformat()

        with self.db.transaction() as conn:
            row = self._fetch_row(application_id, user_id, conn)
            previous = ApplicationStatus(row["status"])
            ensure_transition(previous, new_status)

            response_metadata = None
            if new_status == ApplicationStatus.RESPONDED:
                response_metadata = json.dumps(metadata if metadata is not None else {})

            conn.execute(
                "UPDATE applications SET status = ?, updated_at = ?, response_metadata = ? WHERE id = ?",
                (new_status.value, now, response_metadata, application_id),
            )
            event = self._append_event(conn, application_id, event_type_for(new_status), metadata, now)

        application = self.get_application(row["user_id"], application_id)
        self.logger.info(f"Application {application_id}: {previous.value} -> {new_status.value}")
        self._notify(application, previous, event)
        return application

    def add_note(self, user_id: str, application_id: str, note: str) -> ApplicationEvent:
        """Append a NOTE_ADDED event without touching the status."""
        with self.db.transaction() as conn:
            self._fetch_row(application_id, user_id, conn)
            return self._append_event(
                conn,
                application_id,
                ApplicationEventType.NOTE_ADDED,
                {"note": note, "user_id": user_id},
                self.clock().isoformat(),
            )

    def reorder_applications(self, user_id: str, ordered_ids: list[str]) -> None:
        """
        Set queue priorities from an explicit ordering.

        The first id gets the highest priority (len(ordered_ids)), the last
        gets 1. Status is never touched. An id that is not one of the user's
        applications rolls the whole reorder back.

        Raises:
            ApplicationNotFoundError: if any id does not belong to the user
        """
        now = self.clock().isoformat()
        total = len(ordered_ids)

        with self.db.transaction() as conn:
            for index, application_id in enumerate(ordered_ids):
                cursor = conn.execute(
                    "UPDATE applications SET priority = ?, updated_at = ? WHERE id = ? AND user_id = ?",
                    (total - index, now, application_id, user_id),
                )
                if cursor.rowcount == 0:
                    raise ApplicationNotFoundError(f"Application not found: {application_id}")

        self.logger.info(f"Reordered {total} applications for user {user_id}")

    def get_application(self, user_id: Optional[str], application_id: str) -> Application:
        """
        Get an application with its full event history.

        Raises:
            ApplicationNotFoundError: if the id does not resolve for the user
        """
        row = self._fetch_row(application_id, user_id)
        return self._to_application(row, self._events(application_id))

    def find_application(self, application_id: str) -> Optional[Application]:
        """Look up an application by id regardless of owner."""
        try:
            return self.get_application(None, application_id)
        except ApplicationNotFoundError:
            return None

    def list_application_queue(self, user_id: str) -> list[Application]:
        """
        A user's applications, highest priority first, then newest first.

        Each application carries its most recent events only.
        """
        rows = self.db.query(
            "SELECT * FROM applications WHERE user_id = ? ORDER BY priority DESC, created_at DESC",
            (user_id,),
        )
        return [
            self._to_application(row, self._events(row["id"], limit=QUEUE_EVENT_LIMIT))
            for row in rows
        ]

    def get_statistics(self, user_id: str) -> dict:
        """Counts by status and the share of submitted applications that got a response."""
        rows = self.db.query(
            "SELECT status, COUNT(*) AS total FROM applications WHERE user_id = ? GROUP BY status",
            (user_id,),
        )
        by_status = {row["status"]: row["total"] for row in rows}
        total = sum(by_status.values())

        submitted = sum(
            by_status.get(status.value, 0)
            for status in (ApplicationStatus.SUBMITTED, ApplicationStatus.CONFIRMED, ApplicationStatus.RESPONDED)
        )
        responded = by_status.get(ApplicationStatus.RESPONDED.value, 0)

        return {
            "total": total,
            "by_status": by_status,
            "response_rate": (responded / submitted * 100) if submitted else 0,
        }

    def _fetch_row(self, application_id: str, user_id: Optional[str], conn=None) -> sqlite3.Row:
        sql = "SELECT * FROM applications WHERE id = ?"
        params: tuple = (application_id,)
        if user_id is not None:
            sql += " AND user_id = ?"
            params = (application_id, user_id)

        row = conn.execute(sql, params).fetchone() if conn else self.db.query_one(sql, params)
        if row is None:
            raise ApplicationNotFoundError(f"Application not found: {application_id}")
        return row

    def _append_event(
        self,
        conn,
        application_id: str,
        event_type: ApplicationEventType,
        payload: Optional[dict],
        occurred_at: str,
    ) -> ApplicationEvent:
        cursor = conn.execute(
            "INSERT INTO application_events (application_id, type, payload, occurred_at) VALUES (?, ?, ?, ?)",
            (
                application_id,
                event_type.value,
                json.dumps(payload, default=str) if payload is not None else None,
                occurred_at,
            ),
        )
        return ApplicationEvent(
            id=cursor.lastrowid,
            application_id=application_id,
            type=event_type,
            payload=payload,
            occurred_at=parse_datetime(occurred_at),
        )

    def _events(self, application_id: str, limit: Optional[int] = None) -> list[ApplicationEvent]:
        if limit is None:
            rows = self.db.query(
                "SELECT * FROM application_events WHERE application_id = ? ORDER BY occurred_at, id",
                (application_id,),
            )
        else:
            rows = self.db.query(
                """
                SELECT * FROM (
                    SELECT * FROM application_events WHERE application_id = ?
                    ORDER BY occurred_at DESC, id DESC LIMIT ?
                ) ORDER BY occurred_at, id
                """,
                (application_id, limit),
            )

        return [
            ApplicationEvent(
                id=row["id"],
                application_id=row["application_id"],
                type=ApplicationEventType(row["type"]),
                payload=json.loads(row["payload"]) if row["payload"] else None,
                occurred_at=parse_datetime(row["occurred_at"]),
            )
            for row in rows
        ]

    def _notify(self, application: Application, previous: ApplicationStatus, event: ApplicationEvent) -> None:
        for listener in list(self.listeners):
            try:
                listener(application, previous, event)
            except Exception as e:
                self.logger.warning(f"Status listener failed for {application.id}: {e}")

    @staticmethod
    def _to_application(row: sqlite3.Row, events: list[ApplicationEvent]) -> Application:
        return Application(
            id=row["id"],
            user_id=row["user_id"],
            posting_id=row["posting_id"],
            status=ApplicationStatus(row["status"]),
            priority=row["priority"],
            response_metadata=json.loads(row["response_metadata"]) if row["response_metadata"] else None,
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
            events=events,
        )
