"""
Job board scrapers, the scraper registry and the multi-board scrape pipeline.
"""

from .base import HtmlBoardScraper, JobBoardScraper
from .indeed import IndeedScraper
from .linkedin import LinkedInScraper
from .glassdoor import GlassdoorScraper
from .registry import ScraperRegistry, create_default_registry
from .pipeline import (
    DEFAULT_BOARDS,
    AggregateScrapeResult,
    BoardOutcome,
    ScrapePipeline,
    dedupe_postings,
)

__all__ = [
    "JobBoardScraper",
    "HtmlBoardScraper",
    "IndeedScraper",
    "LinkedInScraper",
    "GlassdoorScraper",
    "ScraperRegistry",
    "create_default_registry",
    "DEFAULT_BOARDS",
    "AggregateScrapeResult",
    "BoardOutcome",
    "ScrapePipeline",
    "dedupe_postings",
]
