"""
LinkedIn job board scraper.

Uses the public guest search endpoint, which returns result cards as an HTML
fragment. Each card carries a job posting URN whose numeric part is used as
the external id.
"""

from typing import Optional
from urllib.parse import urlencode, urlsplit, urlunsplit

from bs4 import BeautifulSoup

from job_autopilot.core.models import ScrapeRequest
from .base import HtmlBoardScraper, parse_relative_date


class LinkedInScraper(HtmlBoardScraper):
    """LinkedIn guest job search scraper."""

    BASE_URL = "https://www.linkedin.com"
    SEARCH_PATH = "/jobs-guest/jobs/api/seeMoreJobPostings/search"
    PAGE_SIZE = 25
    DEFAULT_MAX_RESULTS = 25

    supported_boards = ("linkedin", "linkedin.jobs")

    @property
    def name(self) -> str:
        return "LinkedIn"

    @property
    def sample_url(self) -> str:
        return f"{self.BASE_URL}/jobs"

    def build_page_url(self, request: ScrapeRequest, start: int) -> str:
        params = {"keywords": request.query, "start": start}
        if request.location:
            params["location"] = request.location
        return f"{self.BASE_URL}{self.SEARCH_PATH}?" + urlencode(params)

    def extract_records(self, soup: BeautifulSoup) -> list[dict]:
        return [self._parse_card(card) for card in soup.select("div.base-card")]

    def _parse_card(self, card) -> dict:
        link = card.select_one("a.base-card__full-link")
        posted = card.select_one("time")

        return {
            "external_id": self._job_id(card),
            "title": self.text_of(card, "h3.base-search-card__title"),
            "company": self.text_of(card, "h4.base-search-card__subtitle"),
            "location": self.text_of(card, "span.job-search-card__location"),
            "salary": self.text_of(card, "span.job-search-card__salary-info"),
            "description": self.text_of(card, "div.base-search-card__metadata") or "",
            "benefits": [
                item.get_text(" ", strip=True)
                for item in card.select("span.job-posting-benefits__text")
            ],
            "application_url": self._clean_url(link.get("href")) if link else None,
            "application_method": "easy_apply" if card.select_one(".job-search-card__easy-apply-label") else "direct",
            "posted_at": parse_relative_date(posted.get("datetime") if posted else None),
        }

    @staticmethod
    def _job_id(card) -> Optional[str]:
        urn = card.get("data-entity-urn") or ""
        job_id = urn.rsplit(":", 1)[-1]
        return job_id or None

    @staticmethod
    def _clean_url(href: Optional[str]) -> Optional[str]:
        if not href:
            return None
        # Tracking parameters change on every search
        parts = urlsplit(href)
        return urlunsplit((parts.scheme, parts.netloc, parts.path, "", ""))
