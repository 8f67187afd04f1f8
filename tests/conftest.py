from __future__ import annotations

from datetime import datetime, timedelta, timezone
import json

import pytest

from job_autopilot.core.models import ScrapedPosting
from job_autopilot.store.database import Database
from job_autopilot.store.job_store import SqliteJobStore
from job_autopilot.tracker.application_tracker import ApplicationTracker


class StepClock:
    """Returns a strictly increasing timestamp on every call."""

    def __init__(self, start: datetime | None = None) -> None:
        self.now = start or datetime(2024, 6, 1, tzinfo=timezone.utc)

    def __call__(self) -> datetime:
        self.now += timedelta(seconds=1)
        return self.now


@pytest.fixture
def db():
    database = Database(":memory:")
    yield database
    database.close()


@pytest.fixture
def job_store(db) -> SqliteJobStore:
    return SqliteJobStore(db)


@pytest.fixture
def tracker(db) -> ApplicationTracker:
    return ApplicationTracker(db, clock=StepClock())


@pytest.fixture
def posting(job_store):
    return job_store.store_scraped_postings("linkedin", [
        ScrapedPosting(
            source="LinkedIn",
            external_id="3901",
            title="Frontend Engineer",
            company="Acme",
            location="Remote",
            salary="$120k - $150k",
            requirements=("React", "TypeScript"),
            application_url="https://www.linkedin.com/jobs/view/3901",
            application_method="easy_apply",
        )
    ])[0]


@pytest.fixture
def profiles_dir(tmp_path):
    directory = tmp_path / "profiles"
    directory.mkdir()
    (directory / "alice.json").write_text(json.dumps({
        "skills": [{"name": "React", "proficiency": 5}, {"name": "TypeScript", "proficiency": 4}],
        "total_years_experience": 6,
        "remote_preferred": True,
        "applicant": {
            "first_name": "Alice",
            "last_name": "Ng",
            "email": "alice@example.com",
            "phone": "555-0100",
        },
    }))
    return directory
