"""
Audit log of operator actions (scrape triggers, reorders, submissions).
"""

from typing import Optional
import json
import logging

from job_autopilot.store.database import Database, utcnow


class SqliteAuditLog:
    """Best-effort audit trail: a failed write is logged, never raised."""

    def __init__(self, db: Database):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    def record(
        self,
        user_id: Optional[str],
        action: str,
        resource: str,
        metadata: Optional[dict] = None,
    ) -> None:
        try:
            with self.db.transaction() as conn:
                conn.execute(
                    "INSERT INTO audit_log (user_id, action, resource, metadata, created_at) VALUES (?, ?, ?, ?, ?)",
                    (
                        user_id,
                        action,
                        resource,
                        json.dumps(metadata, default=str) if metadata is not None else None,
                        utcnow().isoformat(),
                    ),
                )
        except Exception as e:
            self.logger.warning(f"Failed to record audit log for {action}: {e}")

    def entries(self, limit: int = 50) -> list[dict]:
        rows = self.db.query("SELECT * FROM audit_log ORDER BY id DESC LIMIT ?", (limit,))
        return [
            {
                "user_id": row["user_id"],
                "action": row["action"],
                "resource": row["resource"],
                "metadata": json.loads(row["metadata"]) if row["metadata"] else None,
                "created_at": row["created_at"],
            }
            for row in rows
        ]
