"""
Wires the stores, services, scrapers and queues from a Config.
"""

from dataclasses import dataclass
from typing import Optional
import logging

from job_autopilot.core.matcher import JobMatcher
from job_autopilot.core.models import ScrapeContext
from job_autopilot.core.submission import SimulatedSubmitter
from job_autopilot.integrations.pipeline import ScrapePipeline
from job_autopilot.integrations.registry import create_default_registry
from job_autopilot.services.audit import SqliteAuditLog
from job_autopilot.services.job_search import JobSearchService
from job_autopilot.services.notifications import NotificationDispatcher, SmtpSettings
from job_autopilot.services.profiles import JsonProfileProvider
from job_autopilot.store.database import Database
from job_autopilot.store.job_store import SqliteJobStore
from job_autopilot.taskqueue.broker import SqliteBroker
from job_autopilot.taskqueue.manager import QueueManager
from job_autopilot.taskqueue.models import Backoff, JobOptions
from job_autopilot.tracker.application_tracker import ApplicationTracker
from job_autopilot.utils.config import Config


logger = logging.getLogger(__name__)


@dataclass
class Runtime:
    """Everything the CLI, the HTTP API and the workers share."""
    config: Config
    db: Database
    job_store: SqliteJobStore
    tracker: ApplicationTracker
    matcher: JobMatcher
    profiles: JsonProfileProvider
    search: JobSearchService
    pipeline: ScrapePipeline
    submitter: SimulatedSubmitter
    dispatcher: NotificationDispatcher
    audit: SqliteAuditLog
    broker: SqliteBroker
    queues: QueueManager

    def scrape_context(self) -> ScrapeContext:
        """Proxy and CAPTCHA credentials from the environment or config."""
        return ScrapeContext(
            proxy_rotation_secret=self.config.get_secret("scraper_proxy_rotation_secret") or None,
            captcha_api_key=self.config.get_secret("captcha_api_key") or None,
        )

    def close(self) -> None:
        self.queues.shutdown()
        self.db.close()


def build_runtime(config: Optional[Config] = None, database_path: Optional[str] = None) -> Runtime:
    """
    Build a runtime from configuration.

    Args:
        config: Loaded configuration (defaults to ~/.job_autopilot/config.json)
        database_path: Override for database.path (":memory:" for tests)
    """
    config = config or Config()
    db = Database(database_path or config.get_database_path())

    job_store = SqliteJobStore(db)
    matcher = JobMatcher()
    profiles = JsonProfileProvider(config.get_profiles_dir())

    registry = create_default_registry(
        use_sample_fallback=bool(config.get("scraping.use_sample_fallback", False)),
        request_delay=tuple(config.get("scraping.request_delay", [2.0, 7.0])),
    )

    smtp = config.get_smtp_settings()
    dispatcher = NotificationDispatcher(
        slack_webhook_url=config.get_secret("slack_webhook_url") or None,
        smtp=SmtpSettings(
            host=smtp.get("host") or None,
            port=int(smtp.get("port", 587)),
            username=smtp.get("username") or None,
            password=smtp.get("password") or None,
            sender=smtp.get("sender") or SmtpSettings.sender,
            use_tls=bool(smtp.get("use_tls", True)),
        ),
    )

    broker = SqliteBroker(db, lease_seconds=float(config.get("queues.lease_seconds", 60)))
    queues = QueueManager(
        broker,
        default_options=JobOptions(
            attempts=int(config.get("queues.attempts", 3)),
            backoff=Backoff(delay_ms=int(config.get("queues.backoff_ms", 5000))),
            remove_on_complete=config.get("queues.remove_on_complete", 1000),
        ),
        concurrency=config.get("queues.concurrency"),
        poll_interval=float(config.get("queues.poll_interval", 1.0)),
    )

    logger.debug(f"Runtime using database {db.path}")
    return Runtime(
        config=config,
        db=db,
        job_store=job_store,
        tracker=ApplicationTracker(db),
        matcher=matcher,
        profiles=profiles,
        search=JobSearchService(job_store, profiles, matcher),
        pipeline=ScrapePipeline(registry),
        submitter=SimulatedSubmitter(
            latency_seconds=float(config.get("submission.latency_seconds", 1.5)),
            applicant_lookup=profiles.get_applicant,
        ),
        dispatcher=dispatcher,
        audit=SqliteAuditLog(db),
        broker=broker,
        queues=queues,
    )
