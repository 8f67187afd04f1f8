"""
Glassdoor job board scraper.

Provides job listings together with company ratings, which are kept in the
posting metadata.
"""

from typing import Optional
from urllib.parse import urlencode, urljoin

from bs4 import BeautifulSoup

from job_autopilot.core.models import ScrapeRequest
from .base import HtmlBoardScraper, parse_relative_date


class GlassdoorScraper(HtmlBoardScraper):
    """Glassdoor job listing scraper."""

    BASE_URL = "https://www.glassdoor.com"
    PAGE_SIZE = 15
    DEFAULT_MAX_RESULTS = 30

    supported_boards = ("glassdoor", "glassdoor.com")

    @property
    def name(self) -> str:
        return "Glassdoor"

    @property
    def sample_url(self) -> str:
        return self.BASE_URL

    def build_page_url(self, request: ScrapeRequest, start: int) -> str:
        params = {
            "keyword": request.query,
            "p": start // self.PAGE_SIZE + 1,
        }
        if request.location:
            params["locT"] = "C"
            params["locKeyword"] = request.location
        return f"{self.BASE_URL}/Job/jobs.htm?" + urlencode(params)

    def extract_records(self, soup: BeautifulSoup) -> list[dict]:
        return [self._parse_card(card) for card in soup.select("[data-test='jobListing']")]

    def _parse_card(self, card) -> dict:
        link = card.select_one("a[data-test='job-title']") or card.select_one("a[data-test='job-link']")
        href = urljoin(self.BASE_URL, link["href"]) if link and link.get("href") else None
        rating = self.text_of(card, "[data-test='rating']")

        return {
            "external_id": card.get("data-jobid") or self._id_from_url(href),
            "title": self.text_of(card, "[data-test='job-title']"),
            "company": self.text_of(card, "[data-test='employerName']"),
            "location": self.text_of(card, "[data-test='location']") or self.text_of(card, "[data-test='emp-location']"),
            "salary": self.text_of(card, "[data-test='detailSalary']"),
            "description": self.text_of(card, "[data-test='jobDescriptionText']") or "",
            "benefits": [li.get_text(" ", strip=True) for li in card.select("[data-test='benefits'] li")],
            "application_url": href,
            "application_method": "direct",
            "posted_at": parse_relative_date(self.text_of(card, "[data-test='job-age']")),
            "metadata": {"rating": rating} if rating else {},
        }

    @staticmethod
    def _id_from_url(href: Optional[str]) -> Optional[str]:
        if not href or "jobListingId=" not in href:
            return None
        return href.split("jobListingId=", 1)[1].split("&", 1)[0] or None
