"""
Scraper registry - dispatches scrape requests to the first capable scraper.
"""

from typing import Optional
import logging

from job_autopilot.core.models import ScrapeContext, ScrapeRequest, ScrapeResult
from .base import JobBoardScraper
from .glassdoor import GlassdoorScraper
from .indeed import IndeedScraper
from .linkedin import LinkedInScraper


class ScraperRegistry:
    """Ordered list of scrapers; the first one that can handle a board wins."""

    def __init__(self, scrapers: Optional[list[JobBoardScraper]] = None):
        self.scrapers: list[JobBoardScraper] = list(scrapers or [])
        self.logger = logging.getLogger(self.__class__.__name__)

    def register(self, scraper: JobBoardScraper) -> None:
        """Append a scraper to the dispatch list."""
        self.scrapers.append(scraper)

    def list_scrapers(self) -> list[JobBoardScraper]:
        return list(self.scrapers)

    def find(self, board: str) -> Optional[JobBoardScraper]:
        for scraper in self.scrapers:
            if scraper.can_handle(board):
                return scraper
        return None

    def scrape(self, request: ScrapeRequest, context: Optional[ScrapeContext] = None) -> ScrapeResult:
        """
        Run the scraper registered for the request's board.

        Returns:
            The scraper's result, or an empty result with an error when no
            scraper handles the board
        """
        scraper = self.find(request.board)
        if scraper is None:
            self.logger.warning(f"No scraper available for {request.board}")
            return ScrapeResult(errors=[f"No scraper available for {request.board}"])

        return scraper.scrape(request, context or ScrapeContext())


def create_default_registry(use_sample_fallback: bool = False, request_delay: tuple = (2.0, 7.0)) -> ScraperRegistry:
    """Registry with the built-in LinkedIn, Indeed and Glassdoor scrapers."""
    options = {"use_sample_fallback": use_sample_fallback, "request_delay": request_delay}
    return ScraperRegistry([
        LinkedInScraper(**options),
        IndeedScraper(**options),
        GlassdoorScraper(**options),
    ])
