"""
Scrape pipeline - fans a query out to every board and merges the results.

Each board runs on its own thread. A board that fails (or raises) never takes
the others down: its failure is recorded as an error string on the aggregate
result while the remaining boards' postings are kept.
"""

from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import Optional
import logging

from job_autopilot.core.models import (
    ScrapeContext,
    ScrapedPosting,
    ScrapeRequest,
    ScrapeResult,
)
from .registry import ScraperRegistry, create_default_registry


DEFAULT_BOARDS = ("linkedin", "indeed", "glassdoor")


@dataclass
class BoardOutcome:
    """What happened on one board: either a result or an error."""
    board: str
    result: Optional[ScrapeResult] = None
    error: Optional[str] = None

    @property
    def ok(self) -> bool:
        return self.error is None


@dataclass
class AggregateScrapeResult:
    """Deduplicated postings across boards plus every collected error."""
    postings: list[ScrapedPosting] = field(default_factory=list)
    errors: list[str] = field(default_factory=list)
    outcomes: list[BoardOutcome] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "postings": [posting.to_dict() for posting in self.postings],
            "errors": self.errors,
            "boards": {
                outcome.board: len(outcome.result.postings) if outcome.result else 0
                for outcome in self.outcomes
            },
        }


def _normalize(value: Optional[str]) -> str:
    return " ".join((value or "").lower().split())


def dedupe_key(posting: ScrapedPosting) -> tuple:
    """Case and whitespace insensitive identity of a posting."""
    return (
        _normalize(posting.company),
        _normalize(posting.title),
        _normalize(posting.location) or "remote",
        _normalize(posting.application_url),
    )


def _prefer(existing: ScrapedPosting, candidate: ScrapedPosting) -> ScrapedPosting:
    if candidate.has_salary and not existing.has_salary:
        return candidate
    if candidate.has_salary and existing.has_salary:
        # Longer description wins between two salaried duplicates. This is a
        # carried-over heuristic; confirm with product before relying on it.
        if len(candidate.description) > len(existing.description):
            return candidate
    return existing


def dedupe_postings(postings: list[ScrapedPosting]) -> list[ScrapedPosting]:
    """
    Collapse duplicate postings.

    Duplicates share company, title, location (missing means remote) and
    application URL. The salaried candidate is preferred; output keeps the
    order in which each key was first seen.
    """
    unique: dict[tuple, ScrapedPosting] = {}
    for posting in postings:
        key = dedupe_key(posting)
        if key in unique:
            unique[key] = _prefer(unique[key], posting)
        else:
            unique[key] = posting
    return list(unique.values())


class ScrapePipeline:
    """Runs a query across several boards in parallel."""

    def __init__(self, registry: Optional[ScraperRegistry] = None, max_workers: Optional[int] = None):
        self.registry = registry or create_default_registry()
        self.max_workers = max_workers
        self.logger = logging.getLogger(self.__class__.__name__)

    def gather_jobs(
        self,
        query: str,
        location: Optional[str] = None,
        max_results: Optional[int] = None,
        context: Optional[ScrapeContext] = None,
        boards: tuple = DEFAULT_BOARDS,
    ) -> AggregateScrapeResult:
        """
        Scrape every board and merge the results.

        Args:
            query: Search keywords
            location: Location filter
            max_results: Per-board result cap
            context: Proxy / CAPTCHA credentials forwarded to each scraper
            boards: Board identifiers to scrape

        Returns:
            AggregateScrapeResult with deduplicated postings and all errors
        """
        context = context or ScrapeContext()
        boards = list(boards)
        if not boards:
            return AggregateScrapeResult()

        with ThreadPoolExecutor(max_workers=self.max_workers or len(boards)) as executor:
            futures = [
                (board, executor.submit(self._scrape_board, board, query, location, max_results, context))
                for board in boards
            ]
            outcomes = [self._collect(board, future) for board, future in futures]

        postings: list[ScrapedPosting] = []
        errors: list[str] = []
        for outcome in outcomes:
            if outcome.ok:
                postings.extend(outcome.result.postings)
                errors.extend(outcome.result.errors)
            else:
                errors.append(outcome.error)

        unique = dedupe_postings(postings)
        self.logger.info(
            f"Gathered {len(unique)} unique postings ({len(postings)} raw) from {len(boards)} boards"
        )
        return AggregateScrapeResult(postings=unique, errors=errors, outcomes=outcomes)

    def _scrape_board(
        self,
        board: str,
        query: str,
        location: Optional[str],
        max_results: Optional[int],
        context: ScrapeContext,
    ) -> ScrapeResult:
        request = ScrapeRequest(board=board, query=query, location=location, max_results=max_results)
        return self.registry.scrape(request, context)

    def _collect(self, board: str, future) -> BoardOutcome:
        try:
            result = future.result()
            self.logger.debug(f"{board}: Found {len(result.postings)} postings")
            return BoardOutcome(board=board, result=result)
        except Exception as e:
            self.logger.error(f"Failed to scrape {board}: {e}")
            return BoardOutcome(board=board, error=f"Failed to scrape {board}: {e}")
