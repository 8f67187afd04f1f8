"""
Queue producers, processors and the queue bootstrap.

Producers put scrape, application submission and notification jobs on their
queues. Processors are the work each queue's worker performs. The bootstrap
registers one worker per queue, schedules the recurring default scrapes and
wires application status changes to notifications.
"""

from collections import defaultdict
from typing import Callable, Optional
import logging
import time

from job_autopilot.core.models import (
    Application,
    ApplicationEvent,
    ApplicationStatus,
    ScrapeContext,
    slugify,
)
from job_autopilot.core.submission import SimulatedSubmitter
from job_autopilot.errors import ProfileNotFoundError, SubmissionError
from job_autopilot.integrations.pipeline import DEFAULT_BOARDS, ScrapePipeline
from job_autopilot.services.job_search import JobSearchFilters, JobSearchService
from job_autopilot.services.notifications import NotificationDispatcher, NotificationPayload
from job_autopilot.store.job_store import JobStore
from job_autopilot.tracker.application_tracker import ApplicationTracker
from .manager import QueueManager
from .models import QueueTask


logger = logging.getLogger(__name__)

DEFAULT_SCRAPE_CONFIGS = [
    {"query": "Software Engineer", "location": "Remote"},
    {"query": "Product Manager", "location": "Remote"},
    {"query": "Data Scientist", "location": "New York, NY"},
    {"query": "DevOps Engineer", "location": "Austin, TX"},
]

SCHEDULE_EVERY_MS = 45 * 60 * 1000
SCHEDULED_MAX_RESULTS = 50
DEFAULT_MAX_RESULTS = 40

NOTIFY_STATUSES = {ApplicationStatus.FAILED, ApplicationStatus.RESPONDED}


def default_scrape_job_id(query: str, location: Optional[str] = None) -> str:
    """Deterministic key of a default scrape schedule."""
    return f"default:{slugify(query)}:{slugify(location) if location else 'global'}"


# Producers

def enqueue_scrape(manager: QueueManager, payload: dict, **options) -> str:
    """
    Queue a scrape.

    Args:
        manager: Queue manager
        payload: {"query", "location"?, "boards"?, "max_results"?, "user_id"?}
        **options: JobOptions overrides (job_id, delay_ms, attempts, ...)

    Returns:
        The queue job id
    """
    queue = manager.get_queue("scraping")
    name = f"scrape:{payload['query']}:{payload.get('location') or 'global'}"
    return queue.add(name, payload, queue.options(**{"remove_on_complete": 200, **options}))


def enqueue_application_submission(manager: QueueManager, application_id: str, **options) -> str:
    queue = manager.get_queue("applications")
    return queue.add(
        f"application:{application_id}",
        {"application_id": application_id},
        queue.options(**{"remove_on_complete": 200, **options}),
    )


def enqueue_notification(manager: QueueManager, payload: NotificationPayload, **options) -> str:
    queue = manager.get_queue("notifications")
    return queue.add(
        f"notification:{int(time.time() * 1000)}",
        payload.to_dict(),
        queue.options(**{"remove_on_complete": 500, **options}),
    )


def schedule_default_scrapes(
    manager: QueueManager,
    searches: Optional[list[dict]] = None,
    boards: tuple = DEFAULT_BOARDS,
    every_ms: int = SCHEDULE_EVERY_MS,
) -> list[str]:
    """Register the recurring default scrapes; re-registering is a no-op."""
    queue = manager.get_queue("scraping")
    ids = []
    for search in searches or DEFAULT_SCRAPE_CONFIGS:
        job_id = default_scrape_job_id(search["query"], search.get("location"))
        payload = {
            "query": search["query"],
            "location": search.get("location"),
            "boards": list(boards),
            "max_results": SCHEDULED_MAX_RESULTS,
        }
        ids.append(queue.add(
            "scheduled-scrape",
            payload,
            queue.options(job_id=job_id, repeat_every_ms=every_ms, remove_on_complete=50),
        ))
    return ids


# Processors

class ScrapeProcessor:
    """Runs the scrape pipeline and upserts the results per board."""

    def __init__(
        self,
        pipeline: ScrapePipeline,
        job_store: JobStore,
        search: Optional[JobSearchService] = None,
        default_context: Callable[[], ScrapeContext] = ScrapeContext,
    ):
        self.pipeline = pipeline
        self.job_store = job_store
        self.search = search
        self.default_context = default_context
        self.logger = logging.getLogger(self.__class__.__name__)

    def __call__(self, task: QueueTask) -> dict:
        payload = task.payload or {}
        query = str(payload.get("query") or "").strip()
        if not query:
            return {"ingested": 0, "errors": ["Missing query"]}

        location = payload.get("location") or None
        boards = tuple(payload.get("boards") or DEFAULT_BOARDS)
        max_results = int(payload.get("max_results") or DEFAULT_MAX_RESULTS)

        defaults = self.default_context()
        overrides = payload.get("context") or {}
        context = ScrapeContext(
            proxy_rotation_secret=overrides.get("proxy_rotation_secret") or defaults.proxy_rotation_secret,
            captcha_api_key=overrides.get("captcha_api_key") or defaults.captcha_api_key,
        )

        result = self.pipeline.gather_jobs(query, location, max_results, context, boards)

        by_board = defaultdict(list)
        for posting in result.postings:
            by_board[posting.source.lower()].append(posting)
        for board, postings in by_board.items():
            self.job_store.store_scraped_postings(board, postings)

        summary = {"ingested": len(result.postings), "errors": list(result.errors)}

        user_id = payload.get("user_id")
        if user_id and self.search:
            try:
                listings = self.search.search_jobs_for_user(
                    user_id, JobSearchFilters(query=query, location=location, limit=30)
                )
                summary["matches"] = sum(1 for listing in listings if listing.match.passes_threshold)
            except ProfileNotFoundError as e:
                summary["errors"].append(str(e))

        self.logger.info(f"Scrape '{query}' ingested {summary['ingested']} postings")
        return summary


class SubmissionProcessor:
    """
    Drives an application through submission.

    QUEUED moves to SUBMISSION_IN_PROGRESS before the submitter runs. An
    application already in progress (a previous attempt crashed) is resumed.
    A submitter failure leaves the application FAILED; any other status means
    the work was already done and the job is a no-op.
    """

    def __init__(self, tracker: ApplicationTracker, job_store: JobStore, submitter: SimulatedSubmitter):
        self.tracker = tracker
        self.job_store = job_store
        self.submitter = submitter
        self.logger = logging.getLogger(self.__class__.__name__)

    def __call__(self, task: QueueTask) -> dict:
        application_id = (task.payload or {}).get("application_id")
        if not application_id:
            return {"error": "Missing application_id"}

        application = self.tracker.find_application(application_id)
        if application is None:
            return {"error": "Application not found"}

        if application.status == ApplicationStatus.QUEUED:
            application = self.tracker.update_application_status(
                application_id, ApplicationStatus.SUBMISSION_IN_PROGRESS, {"queue_job_id": task.id}
            )
        elif application.status != ApplicationStatus.SUBMISSION_IN_PROGRESS:
            self.logger.info(f"Application {application_id} is {application.status.value}, nothing to submit")
            return {"status": application.status.value, "skipped": True}

        try:
            posting = self.job_store.get_posting(application.posting_id)
            if posting is None:
                raise SubmissionError(f"Posting {application.posting_id} no longer exists")
            metadata = self.submitter.submit(application, posting)
        except Exception as e:
            self.logger.error(f"Submission of {application_id} failed: {e}")
            self.tracker.update_application_status(
                application_id, ApplicationStatus.FAILED, {"queue_job_id": task.id, "error": str(e)}
            )
            return {"status": "failed", "error": str(e)}

        self.tracker.update_application_status(
            application_id, ApplicationStatus.SUBMITTED, {"queue_job_id": task.id, **metadata}
        )
        return {"status": "submitted"}


class NotificationProcessor:
    """Delivers notifications; delivery failures are logged, not retried."""

    def __init__(self, dispatcher: NotificationDispatcher):
        self.dispatcher = dispatcher
        self.logger = logging.getLogger(self.__class__.__name__)

    def __call__(self, task: QueueTask) -> dict:
        payload = NotificationPayload.from_dict(task.payload or {})
        try:
            outcome = self.dispatcher.dispatch(payload.channels, payload)
        except Exception as e:
            self.logger.warning(f"Notification {task.id} failed: {e}")
            return {"delivered": False, "error": str(e)}
        return {"delivered": True, "channels": outcome}


def status_notifier(
    manager: QueueManager,
    channels: list[str],
    email_to: Optional[str] = None,
) -> Callable[[Application, ApplicationStatus, ApplicationEvent], None]:
    """Tracker listener that queues a notification on failure or response."""

    def notify(application: Application, previous: ApplicationStatus, event: ApplicationEvent) -> None:
        if application.status not in NOTIFY_STATUSES:
            return

        if application.status == ApplicationStatus.FAILED:
            subject = "Application submission failed"
            detail = (event.payload or {}).get("error", "unknown error")
            message = f"Application {application.id} failed: {detail}"
        else:
            subject = "Application received a response"
            message = f"Application {application.id} received a response"

        enqueue_notification(manager, NotificationPayload(
            channels=list(channels),
            subject=subject,
            message=message,
            email_to=email_to,
            metadata={"application_id": application.id, "status": application.status.value},
        ))

    return notify


def initialize_queues(runtime, schedule_defaults: bool = True) -> bool:
    """
    Register workers, default schedules and the status notifier once.

    Args:
        runtime: Wired application runtime (see job_autopilot.runtime)
        schedule_defaults: Whether to register the recurring default scrapes

    Returns:
        True if this call initialized the queues
    """

    def bootstrap(manager: QueueManager) -> None:
        manager.register_worker("scraping", ScrapeProcessor(
            runtime.pipeline, runtime.job_store, runtime.search, runtime.scrape_context,
        ))
        manager.register_worker("applications", SubmissionProcessor(
            runtime.tracker, runtime.job_store, runtime.submitter,
        ))
        manager.register_worker("notifications", NotificationProcessor(runtime.dispatcher))

        if schedule_defaults:
            schedule_default_scrapes(
                manager,
                runtime.config.get("scraping.default_searches"),
                tuple(runtime.config.get("scraping.boards", DEFAULT_BOARDS)),
                int(runtime.config.get("scraping.schedule_every_minutes", 45)) * 60 * 1000,
            )

        listener = status_notifier(
            manager,
            runtime.config.get("notifications.channels", ["log"]),
            runtime.config.get("notifications.email_to") or None,
        )
        runtime.tracker.add_listener(listener)
        manager.on_shutdown(lambda: runtime.tracker.remove_listener(listener))

    return runtime.queues.initialize(bootstrap)
