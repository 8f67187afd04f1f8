"""
Indeed job board scraper.

Indeed serves search results as HTML cards keyed by a "job key" (data-jk).
The job key is stable across searches and is used as the external id.
"""

from typing import Optional
from urllib.parse import urlencode

from bs4 import BeautifulSoup

from job_autopilot.core.models import ScrapeRequest
from .base import HtmlBoardScraper, parse_relative_date


class IndeedScraper(HtmlBoardScraper):
    """Indeed search results scraper."""

    BASE_URL = "https://www.indeed.com"
    PAGE_SIZE = 15
    DEFAULT_MAX_RESULTS = 40

    supported_boards = ("indeed", "indeed.com")

    @property
    def name(self) -> str:
        return "Indeed"

    @property
    def sample_url(self) -> str:
        return self.BASE_URL

    def build_page_url(self, request: ScrapeRequest, start: int) -> str:
        params = {
            "q": request.query,
            "limit": self.PAGE_SIZE,
            "start": start,
        }
        if request.location:
            params["l"] = request.location
        return f"{self.BASE_URL}/jobs?" + urlencode(params)

    def extract_records(self, soup: BeautifulSoup) -> list[dict]:
        cards = soup.select("div.job_seen_beacon") or soup.select("[data-jk]")
        return [self._parse_card(card) for card in cards]

    def _parse_card(self, card) -> dict:
        job_key = self._job_key(card)

        title = (
            self.text_of(card, "h2.jobTitle span[title]")
            or self.text_of(card, "h2 a")
            or self.text_of(card, "h2")
        )
        company = (
            self.text_of(card, "[data-testid='company-name']")
            or self.text_of(card, "span.companyName")
            or self.text_of(card, "span.company")
        )
        location = (
            self.text_of(card, "[data-testid='text-location']")
            or self.text_of(card, "div.companyLocation")
            or self.text_of(card, "span.location")
        )
        salary = (
            self.text_of(card, "div.salary-snippet-container")
            or self.text_of(card, "div.salary-snippet")
        )
        posted = self.text_of(card, "span.date") or self.text_of(card, "span.result-date")

        return {
            "external_id": job_key,
            "title": title,
            "company": company,
            "location": location,
            "salary": salary,
            "description": self.text_of(card, "div.job-snippet") or "",
            "requirements": [li.get_text(" ", strip=True) for li in card.select("div.job-snippet ul li")],
            "benefits": [li.get_text(" ", strip=True) for li in card.select("div.benefits ul li")],
            "application_url": f"{self.BASE_URL}/viewjob?jk={job_key}" if job_key else None,
            "application_method": "direct",
            "posted_at": parse_relative_date(posted),
        }

    @staticmethod
    def _job_key(card) -> Optional[str]:
        if card.get("data-jk"):
            return card["data-jk"]
        keyed = card.select_one("[data-jk]")
        return keyed.get("data-jk") if keyed else None
