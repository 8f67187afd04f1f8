"""
Operational HTTP API.

Queue status, scrape triggers, ranked job listings and the application
queue. Long-running work is only enqueued here; workers started with
`job-autopilot worker` do the processing.
"""

from typing import Any, Optional

from fastapi import Depends, FastAPI, HTTPException, Query, Request
from fastapi.responses import JSONResponse
from pydantic import BaseModel, ConfigDict, Field

from job_autopilot.core.models import ApplicationStatus
from job_autopilot.errors import (
    ApplicationNotFoundError,
    InvalidTransitionError,
    ProfileNotFoundError,
)
from job_autopilot.runtime import Runtime
from job_autopilot.services.job_search import JobSearchFilters
from job_autopilot.taskqueue.tasks import (
    enqueue_application_submission,
    enqueue_scrape,
    initialize_queues,
)
from job_autopilot.utils.rate_limit import RateLimiter


class CamelModel(BaseModel):
    model_config = ConfigDict(populate_by_name=True)


class ScrapeTriggerRequest(CamelModel):
    query: str = Field(..., min_length=2, max_length=200)
    location: Optional[str] = Field(None, max_length=200)
    boards: Optional[list[str]] = None
    max_results: Optional[int] = Field(None, alias="maxResults", ge=1, le=200)
    user_id: Optional[str] = Field(None, alias="userId")


class ReorderRequest(CamelModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    order: list[str] = Field(..., min_length=1)


class CreateApplicationRequest(CamelModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    posting_id: int = Field(..., alias="postingId")
    priority: int = 0


class SubmitRequest(CamelModel):
    user_id: str = Field(..., alias="userId", min_length=1)


class StatusUpdateRequest(CamelModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    status: ApplicationStatus
    metadata: Optional[dict[str, Any]] = None


class NoteRequest(CamelModel):
    user_id: str = Field(..., alias="userId", min_length=1)
    note: str = Field(..., min_length=1, max_length=2000)


def create_app(runtime: Runtime, schedule_defaults: bool = True) -> FastAPI:
    """Build the API around a wired runtime."""
    app = FastAPI(title="Job Autopilot API", version="1.0.0")
    limiter = RateLimiter(
        limit=int(runtime.config.get("api.scrape_rate_limit", 10)),
        window_seconds=float(runtime.config.get("api.scrape_rate_window_seconds", 60)),
    )

    def queues_ready() -> Runtime:
        initialize_queues(runtime, schedule_defaults=schedule_defaults)
        return runtime

    @app.exception_handler(ApplicationNotFoundError)
    async def not_found(request: Request, exc: ApplicationNotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(ProfileNotFoundError)
    async def profile_not_found(request: Request, exc: ProfileNotFoundError):
        return JSONResponse(status_code=404, content={"error": str(exc)})

    @app.exception_handler(InvalidTransitionError)
    async def invalid_transition(request: Request, exc: InvalidTransitionError):
        return JSONResponse(status_code=409, content={"error": str(exc)})

    @app.get("/queues/status")
    def queue_status(rt: Runtime = Depends(queues_ready)):
        return {"queues": rt.queues.status()}

    @app.post("/jobs/scrape", status_code=202)
    def trigger_scrape(body: ScrapeTriggerRequest, request: Request, rt: Runtime = Depends(queues_ready)):
        client_key = body.user_id or (request.client.host if request.client else "anonymous")
        limit = limiter.consume(f"scrape:{client_key}")
        if not limit.success:
            raise HTTPException(status_code=429, detail="Too many scrape requests")

        payload = {"query": body.query, "location": body.location}
        if body.boards:
            payload["boards"] = body.boards
        if body.max_results:
            payload["max_results"] = body.max_results
        if body.user_id:
            payload["user_id"] = body.user_id

        job_id = enqueue_scrape(rt.queues, payload)
        rt.audit.record(body.user_id, "scrape.triggered", "scraping", {"job_id": job_id, **payload})
        return {"jobId": job_id}

    @app.get("/jobs")
    def list_jobs(
        user_id: str = Query(..., alias="userId"),
        query: Optional[str] = None,
        location: Optional[str] = None,
        employment_type: Optional[str] = Query(None, alias="employmentType"),
        remote_only: bool = Query(False, alias="remoteOnly"),
        min_salary: Optional[int] = Query(None, alias="minSalary"),
        max_salary: Optional[int] = Query(None, alias="maxSalary"),
        posted_within_days: Optional[int] = Query(None, alias="postedWithinDays"),
        limit: int = Query(50, ge=1, le=200),
        threshold: Optional[float] = Query(None, ge=0, le=1),
    ):
        filters = JobSearchFilters(
            query=query,
            location=location,
            employment_type=employment_type,
            remote_only=remote_only,
            min_salary=min_salary,
            max_salary=max_salary,
            posted_within_days=posted_within_days,
            limit=limit,
            threshold=threshold if threshold is not None else float(
                runtime.config.get("matching.search_threshold", 0.6)
            ),
        )
        listings = runtime.search.search_jobs_for_user(user_id, filters)
        return {"jobs": [listing.to_dict() for listing in listings]}

    @app.get("/applications")
    def application_queue(user_id: str = Query(..., alias="userId")):
        return {"applications": [item.to_dict() for item in runtime.tracker.list_application_queue(user_id)]}

    @app.post("/applications", status_code=201)
    def create_application(body: CreateApplicationRequest):
        if runtime.job_store.get_posting(body.posting_id) is None:
            raise HTTPException(status_code=404, detail=f"Posting {body.posting_id} not found")
        application = runtime.tracker.create_application(body.user_id, body.posting_id, body.priority)
        return application.to_dict()

    @app.get("/applications/{application_id}")
    def get_application(application_id: str, user_id: str = Query(..., alias="userId")):
        return runtime.tracker.get_application(user_id, application_id).to_dict()

    @app.patch("/applications/reorder")
    def reorder_applications(body: ReorderRequest):
        runtime.tracker.reorder_applications(body.user_id, body.order)
        runtime.audit.record(body.user_id, "applications.reordered", "applications", {"order": body.order})
        return {"success": True}

    @app.post("/applications/{application_id}/submit", status_code=202)
    def submit_application(application_id: str, body: SubmitRequest, rt: Runtime = Depends(queues_ready)):
        application = rt.tracker.get_application(body.user_id, application_id)
        if application.status != ApplicationStatus.QUEUED:
            raise InvalidTransitionError(application.status, ApplicationStatus.SUBMISSION_IN_PROGRESS)

        job_id = enqueue_application_submission(rt.queues, application_id)
        rt.audit.record(body.user_id, "application.submit", f"application:{application_id}", {"job_id": job_id})
        return {"jobId": job_id}

    @app.patch("/applications/{application_id}/status")
    def update_status(application_id: str, body: StatusUpdateRequest):
        application = runtime.tracker.update_application_status(
            application_id, body.status, body.metadata, user_id=body.user_id
        )
        return application.to_dict()

    @app.post("/applications/{application_id}/notes", status_code=201)
    def add_note(application_id: str, body: NoteRequest):
        event = runtime.tracker.add_note(body.user_id, application_id, body.note)
        return event.to_dict()

    return app
