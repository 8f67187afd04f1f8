"""
Base classes for job board scrapers.

A scraper declares the boards it supports and turns a ScrapeRequest into a
ScrapeResult. Scrapers never raise: malformed records are dropped and logged,
and a failed page load is reported as an error string on the result.
"""

from abc import ABC, abstractmethod
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional
import logging
import math
import random
import re
import time

import requests
from bs4 import BeautifulSoup

from job_autopilot.core.models import (
    ScrapeContext,
    ScrapedPosting,
    ScrapeRequest,
    ScrapeResult,
)
from job_autopilot.errors import PostingValidationError


STEALTH_HEADERS = {
    "User-Agent": (
        "Mozilla/5.0 (Macintosh; Intel Mac OS X 10_15_7) AppleWebKit/537.36 "
        "(KHTML, like Gecko) Chrome/119.0.0.0 Safari/537.36"
    ),
    "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,image/avif,image/webp,*/*;q=0.8",
    "Accept-Language": "en-US,en;q=0.9",
}

# (connect, read) seconds for a single page load
DEFAULT_TIMEOUT = (10, 30)


def parse_relative_date(text: Optional[str], now: Optional[datetime] = None) -> Optional[datetime]:
    """
    Turn board date labels into timestamps.

    Handles ISO dates ("2024-05-01"), "Just posted", "Today" and
    "Posted 3 days ago" / "30+ days ago" / "2 weeks ago" style labels.
    """
    if not text:
        return None

    now = now or datetime.now(timezone.utc)
    label = text.strip().lower()

    try:
        parsed = datetime.fromisoformat(label.replace("z", "+00:00"))
        return parsed if parsed.tzinfo else parsed.replace(tzinfo=timezone.utc)
    except ValueError:
        pass

    if any(word in label for word in ("just posted", "today", "just now", "hour", "minute")):
        return now

    match = re.search(r"(\d+)\+?\s*(day|week|month)", label)
    if not match:
        return None

    amount = int(match.group(1))
    unit_days = {"day": 1, "week": 7, "month": 30}[match.group(2)]
    return now - timedelta(days=amount * unit_days)


class JobBoardScraper(ABC):
    """Abstract base class for job board scrapers."""

    #: Board identifiers handled by this scraper (lowercase)
    supported_boards: tuple = ()

    def __init__(
        self,
        session_factory: Callable[[], requests.Session] = requests.Session,
        request_delay: tuple[float, float] = (2.0, 7.0),
        timeout: tuple = DEFAULT_TIMEOUT,
        use_sample_fallback: bool = False,
    ):
        self.session_factory = session_factory
        self.request_delay = request_delay
        self.timeout = timeout
        self.use_sample_fallback = use_sample_fallback
        self.logger = logging.getLogger(self.__class__.__name__)

    @property
    @abstractmethod
    def name(self) -> str:
        """Human readable board name, used as the posting source."""
        pass

    def can_handle(self, board: str) -> bool:
        """Whether this scraper supports the given board identifier."""
        return (board or "").strip().lower() in self.supported_boards

    @abstractmethod
    def scrape(self, request: ScrapeRequest, context: ScrapeContext) -> ScrapeResult:
        """
        Fetch postings for a query.

        Args:
            request: Board, query, location, cursor and result cap
            context: Caller supplied proxy / CAPTCHA credentials

        Returns:
            ScrapeResult with postings, an optional next cursor and errors
        """
        pass

    def get_stealth_headers(self) -> dict:
        return dict(STEALTH_HEADERS)

    def get_proxies(self, context: ScrapeContext) -> Optional[dict]:
        if not context.proxy_rotation_secret:
            return None
        proxy = f"http://{context.proxy_rotation_secret}"
        return {"http": proxy, "https": proxy}

    def polite_delay(self) -> None:
        low, high = self.request_delay
        if high > 0:
            time.sleep(random.uniform(low, high))

    def normalize_posting(self, raw: dict) -> Optional[ScrapedPosting]:
        """Validate a raw record; malformed records are logged and dropped."""
        try:
            return ScrapedPosting.from_raw({"source": self.name, **raw})
        except (PostingValidationError, ValueError, TypeError) as e:
            self.logger.warning(f"Dropping malformed {self.name} record: {e}")
            return None

    def sample_posting(self, request: ScrapeRequest, context: ScrapeContext) -> ScrapedPosting:
        """Synthetic posting returned when extraction produced nothing."""
        return ScrapedPosting(
            source=self.name,
            external_id=f"{request.query}-{request.location or 'global'}-fallback",
            title=f"{request.query} Automation Specialist",
            company="Vector Dynamics",
            location=request.location or "Remote",
            salary="$110k - $140k",
            description=(
                "Drive job automation pipelines and orchestrate personalized campaign "
                "execution across enterprise accounts."
            ),
            requirements=("Python", "Automation"),
            benefits=("Remote", "Equity"),
            application_url=self.sample_url,
            application_method="direct",
            posted_at=datetime.now(timezone.utc),
            metadata={"context": context.to_dict(), "fallback": True},
        )

    @property
    def sample_url(self) -> str:
        return "https://example.com/jobs"


class HtmlBoardScraper(JobBoardScraper):
    """
    Scraper for boards that serve paginated HTML search results.

    Subclasses provide the page URL for an offset and extract raw records from
    a parsed page; pagination, validation and error capture live here.
    """

    PAGE_SIZE = 15
    DEFAULT_MAX_RESULTS = 40

    @abstractmethod
    def build_page_url(self, request: ScrapeRequest, start: int) -> str:
        """URL of the results page starting at the given offset."""
        pass

    @abstractmethod
    def extract_records(self, soup: BeautifulSoup) -> list[dict]:
        """Raw records found on a results page."""
        pass

    def scrape(self, request: ScrapeRequest, context: ScrapeContext) -> ScrapeResult:
        if not self.can_handle(request.board):
            return ScrapeResult(errors=[f"{self.__class__.__name__} cannot handle {request.board}"])

        max_results = request.max_results or self.DEFAULT_MAX_RESULTS
        start_cursor = self._parse_cursor(request.cursor)
        max_pages = max(1, math.ceil(max_results / self.PAGE_SIZE))

        postings: list[ScrapedPosting] = []
        errors: list[str] = []
        # Raw offset of the next record, dropped records included.
        consumed = start_cursor
        session = self.session_factory()

        try:
            for page_index in range(max_pages):
                start = start_cursor + page_index * self.PAGE_SIZE
                if page_index:
                    self.polite_delay()

                response = session.get(
                    self.build_page_url(request, start),
                    headers=self.get_stealth_headers(),
                    proxies=self.get_proxies(context),
                    timeout=self.timeout,
                )
                response.raise_for_status()

                soup = BeautifulSoup(response.text, "html.parser")
                records = self.extract_records(soup)
                if not records:
                    break

                for offset, record in enumerate(records, start=start + 1):
                    consumed = offset
                    record.setdefault("metadata", {})
                    record["metadata"].update({"start": start, "context": context.to_dict()})
                    posting = self.normalize_posting(record)
                    if posting:
                        postings.append(posting)
                    if len(postings) >= max_results:
                        break

                if len(postings) >= max_results:
                    break

        except requests.RequestException as e:
            self.logger.error(f"{self.name} scrape failed: {e}")
            errors.append(f"{self.name}: {e}")
        except Exception as e:
            self.logger.exception(f"{self.name} extraction failed")
            errors.append(f"{self.name}: extraction failed ({e})")
        finally:
            session.close()

        next_cursor = None
        if len(postings) >= max_results:
            next_cursor = str(consumed)

        if not postings and self.use_sample_fallback:
            postings.append(self.sample_posting(request, context))

        return ScrapeResult(
            postings=postings[:max_results],
            next_cursor=next_cursor,
            errors=errors,
        )

    @staticmethod
    def _parse_cursor(cursor: Optional[str]) -> int:
        try:
            return max(0, int(cursor)) if cursor else 0
        except ValueError:
            return 0

    @staticmethod
    def text_of(node, selector: str) -> Optional[str]:
        """Stripped text of the first element matching a CSS selector."""
        if node is None:
            return None
        element = node.select_one(selector)
        if element is None:
            return None
        text = " ".join(element.get_text(" ", strip=True).split())
        return text or None
