"""
Job store - durable postings keyed by (board, external id).

Re-scraping a posting updates it in place, so storing the same scrape twice
leaves the store unchanged apart from timestamps.
"""

from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Optional
import json
import logging
import sqlite3

from job_autopilot.core.models import (
    JobBoard,
    JobPosting,
    SalaryRange,
    ScrapedPosting,
    map_board,
    parse_datetime,
    parse_salary,
)
from .database import Database, utcnow


UPDATABLE_FIELDS = (
    "url",
    "title",
    "company",
    "location",
    "salary_range",
    "description",
    "requirements",
    "benefits",
    "tags",
    "employment_type",
    "work_arrangement",
    "application_method",
    "posting_date",
    "scraper_metadata",
)

JSON_FIELDS = {"requirements", "benefits", "tags", "scraper_metadata"}


@dataclass
class PostingFilter:
    """Database-side filters applied before ranking."""
    query: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[str] = None
    board: Optional[JobBoard] = None
    limit: int = 50


def work_arrangement_for(location: Optional[str]) -> Optional[str]:
    """'Remote' when the location mentions remote, otherwise the location."""
    if location and "remote" in location.lower():
        return "Remote"
    return location


def scraped_posting_fields(posting: ScrapedPosting) -> dict:
    """Column values for a scraped posting."""
    return {
        "url": posting.application_url,
        "title": posting.title,
        "company": posting.company,
        "location": posting.location,
        "salary_range": posting.salary_range,
        "description": posting.description,
        "requirements": list(posting.requirements),
        "benefits": list(posting.benefits),
        "application_method": posting.application_method,
        "posting_date": posting.posted_at,
        "work_arrangement": work_arrangement_for(posting.location),
        "scraper_metadata": posting.metadata,
    }


class JobStore(ABC):
    """Persistence contract for job postings."""

    @abstractmethod
    def find_postings(self, posting_filter: Optional[PostingFilter] = None) -> list[JobPosting]:
        pass

    @abstractmethod
    def upsert_posting(self, board: JobBoard, external_id: str, fields: dict) -> JobPosting:
        pass

    @abstractmethod
    def get_posting(self, posting_id: int) -> Optional[JobPosting]:
        pass

    def store_scraped_postings(self, board: str, postings: list[ScrapedPosting]) -> list[JobPosting]:
        """
        Upsert scraped postings for one board.

        Args:
            board: Board identifier or alias ("linkedin", "indeed.com", ...)
            postings: Postings scraped from that board

        Returns:
            The stored postings
        """
        job_board = map_board(board)
        return [
            self.upsert_posting(job_board, posting.effective_external_id, scraped_posting_fields(posting))
            for posting in postings
        ]


class SqliteJobStore(JobStore):
    """Job store backed by the shared SQLite database."""

    def __init__(self, db: Database):
        self.db = db
        self.logger = logging.getLogger(self.__class__.__name__)

    def upsert_posting(self, board: JobBoard, external_id: str, fields: dict) -> JobPosting:
        unknown = set(fields) - set(UPDATABLE_FIELDS)
        if unknown:
            raise ValueError(f"Unknown posting fields: {', '.join(sorted(unknown))}")
        for required in ("url", "title", "company"):
            if not fields.get(required):
                raise ValueError(f"Posting field '{required}' is required")

        now = utcnow().isoformat()
        columns = list(fields)
        values = [self._to_column(name, fields[name]) for name in columns]
        assignments = ", ".join(f"{name} = excluded.{name}" for name in columns)

        with self.db.transaction() as conn:
            conn.execute(
                f"""
                INSERT INTO job_postings (board, external_id, {", ".join(columns)}, created_at, updated_at)
                VALUES (?, ?, {", ".join("?" for _ in columns)}, ?, ?)
                ON CONFLICT (board, external_id) DO UPDATE SET
                    {assignments},
                    updated_at = excluded.updated_at
                """,
                (board.value, external_id, *values, now, now),
            )
            row = conn.execute(
                "SELECT * FROM job_postings WHERE board = ? AND external_id = ?",
                (board.value, external_id),
            ).fetchone()

        return self._from_row(row)

    def get_posting(self, posting_id: int) -> Optional[JobPosting]:
        row = self.db.query_one("SELECT * FROM job_postings WHERE id = ?", (posting_id,))
        return self._from_row(row) if row else None

    def find_postings(self, posting_filter: Optional[PostingFilter] = None) -> list[JobPosting]:
        posting_filter = posting_filter or PostingFilter()
        clauses = []
        params: list = []

        if posting_filter.query:
            clauses.append("(LOWER(title) LIKE ? OR LOWER(description) LIKE ?)")
            pattern = f"%{posting_filter.query.lower()}%"
            params.extend([pattern, pattern])
        if posting_filter.location:
            clauses.append("LOWER(location) LIKE ?")
            params.append(f"%{posting_filter.location.lower()}%")
        if posting_filter.employment_type:
            clauses.append("employment_type = ?")
            params.append(posting_filter.employment_type)
        if posting_filter.board:
            clauses.append("board = ?")
            params.append(posting_filter.board.value)

        where = f"WHERE {' AND '.join(clauses)}" if clauses else ""
        rows = self.db.query(
            f"""
            SELECT * FROM job_postings {where}
            ORDER BY posting_date IS NULL, posting_date DESC, id DESC
            LIMIT ?
            """,
            (*params, posting_filter.limit),
        )
        return [self._from_row(row) for row in rows]

    def count(self) -> int:
        return self.db.query_one("SELECT COUNT(*) FROM job_postings")[0]

    @staticmethod
    def _to_column(name: str, value):
        if name in JSON_FIELDS:
            empty = {} if name == "scraper_metadata" else []
            return json.dumps(value if value is not None else empty, default=str)
        if name == "salary_range":
            salary = parse_salary(value)
            return json.dumps(salary.to_dict()) if salary else None
        if name == "posting_date":
            posted = parse_datetime(value)
            return posted.isoformat() if posted else None
        return value

    @staticmethod
    def _from_row(row: sqlite3.Row) -> JobPosting:
        salary = json.loads(row["salary_range"]) if row["salary_range"] else None
        return JobPosting(
            id=row["id"],
            board=JobBoard(row["board"]),
            external_id=row["external_id"],
            url=row["url"],
            title=row["title"],
            company=row["company"],
            location=row["location"],
            salary_range=SalaryRange.from_dict(salary),
            description=row["description"],
            requirements=json.loads(row["requirements"]),
            benefits=json.loads(row["benefits"]),
            tags=json.loads(row["tags"]),
            employment_type=row["employment_type"],
            work_arrangement=row["work_arrangement"],
            application_method=row["application_method"],
            posting_date=parse_datetime(row["posting_date"]),
            scraper_metadata=json.loads(row["scraper_metadata"]),
            created_at=parse_datetime(row["created_at"]),
            updated_at=parse_datetime(row["updated_at"]),
        )
