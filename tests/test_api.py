from __future__ import annotations

import pytest
from fastapi.testclient import TestClient

from job_autopilot.api import create_app
from job_autopilot.core.models import ScrapedPosting
from job_autopilot.runtime import build_runtime
from job_autopilot.utils.config import Config


@pytest.fixture
def runtime(tmp_path, profiles_dir):
    config = Config(str(tmp_path / "config.json"))
    config.set("profiles.directory", str(profiles_dir))
    config.set("submission.latency_seconds", 0)
    config.set("api.scrape_rate_limit", 2)
    rt = build_runtime(config, ":memory:")
    yield rt
    rt.close()


@pytest.fixture
def client(runtime):
    return TestClient(create_app(runtime, schedule_defaults=False))


@pytest.fixture
def posting_id(runtime) -> int:
    stored = runtime.job_store.store_scraped_postings("linkedin", [
        ScrapedPosting(
            source="LinkedIn",
            external_id="3901",
            title="Frontend Engineer",
            company="Acme",
            location="Remote",
            requirements=("React",),
            application_url="https://www.linkedin.com/jobs/view/3901",
        )
    ])
    return stored[0].id


def test_queue_status(client) -> None:
    response = client.get("/queues/status")

    assert response.status_code == 200
    queues = response.json()["queues"]
    assert [queue["queue"] for queue in queues] == ["scraping", "applications", "notifications"]
    assert all(queue["health"] == "healthy" for queue in queues)


def test_scrape_trigger_enqueues_and_rate_limits(client, runtime) -> None:
    body = {"query": "python developer", "location": "Remote", "userId": "alice", "maxResults": 10}

    first = client.post("/jobs/scrape", json=body)
    client.post("/jobs/scrape", json=body)
    third = client.post("/jobs/scrape", json=body)

    assert first.status_code == 202
    job = runtime.queues.get_queue("scraping").get_job(first.json()["jobId"])
    assert job.payload == {"query": "python developer", "location": "Remote", "max_results": 10, "user_id": "alice"}
    assert third.status_code == 429
    assert runtime.audit.entries()[0]["action"] == "scrape.triggered"


def test_scrape_trigger_validates_body(client) -> None:
    assert client.post("/jobs/scrape", json={"query": "x"}).status_code == 422


def test_list_jobs_for_user(client, posting_id) -> None:
    response = client.get("/jobs", params={"userId": "alice", "remoteOnly": "true"})

    jobs = response.json()["jobs"]
    assert response.status_code == 200
    assert [job["id"] for job in jobs] == [posting_id]
    assert jobs[0]["match_score"] > 60


def test_list_jobs_unknown_profile(client, posting_id) -> None:
    assert client.get("/jobs", params={"userId": "nobody"}).status_code == 404


def test_application_lifecycle(client, runtime, posting_id) -> None:
    created = client.post("/applications", json={"userId": "alice", "postingId": posting_id})
    assert created.status_code == 201
    application_id = created.json()["id"]

    submitted = client.post(f"/applications/{application_id}/submit", json={"userId": "alice"})
    assert submitted.status_code == 202
    runtime.queues.drain()

    detail = client.get(f"/applications/{application_id}", params={"userId": "alice"}).json()
    assert detail["status"] == "SUBMITTED"
    assert [event["type"] for event in detail["events"]] == [
        "APPLICATION_QUEUED",
        "SUBMISSION_STARTED",
        "SUBMISSION_SUCCEEDED",
    ]

    again = client.post(f"/applications/{application_id}/submit", json={"userId": "alice"})
    assert again.status_code == 409

    responded = client.patch(
        f"/applications/{application_id}/status",
        json={"userId": "alice", "status": "RESPONDED", "metadata": {"outcome": "interview"}},
    )
    assert responded.json()["response_metadata"] == {"outcome": "interview"}


def test_create_application_for_missing_posting(client) -> None:
    response = client.post("/applications", json={"userId": "alice", "postingId": 999})

    assert response.status_code == 404


def test_invalid_status_change_is_conflict(client, posting_id) -> None:
    application_id = client.post("/applications", json={"userId": "alice", "postingId": posting_id}).json()["id"]

    response = client.patch(f"/applications/{application_id}/status", json={"userId": "alice", "status": "SUBMITTED"})

    assert response.status_code == 409
    assert "Cannot move application from QUEUED to SUBMITTED" in response.json()["error"]


def test_other_users_application_is_not_found(client, posting_id) -> None:
    application_id = client.post("/applications", json={"userId": "alice", "postingId": posting_id}).json()["id"]

    assert client.get(f"/applications/{application_id}", params={"userId": "bob"}).status_code == 404


def test_reorder_and_notes(client, posting_id) -> None:
    ids = [
        client.post("/applications", json={"userId": "alice", "postingId": posting_id}).json()["id"]
        for _ in range(2)
    ]

    assert client.patch("/applications/reorder", json={"userId": "alice", "order": ids}).json() == {"success": True}
    queue = client.get("/applications", params={"userId": "alice"}).json()["applications"]
    assert [item["id"] for item in queue] == ids

    note = client.post(f"/applications/{ids[0]}/notes", json={"userId": "alice", "note": "Recruiter called"})
    assert note.status_code == 201
    assert note.json()["type"] == "NOTE_ADDED"

    bad = client.patch("/applications/reorder", json={"userId": "alice", "order": [ids[0], "missing"]})
    assert bad.status_code == 404
