from __future__ import annotations

from job_autopilot.core.models import ScrapeContext, ScrapedPosting, ScrapeRequest, ScrapeResult
from job_autopilot.integrations.base import JobBoardScraper
from job_autopilot.integrations.pipeline import ScrapePipeline, dedupe_postings
from job_autopilot.integrations.registry import ScraperRegistry, create_default_registry


def mkposting(source: str = "LinkedIn", url: str = "https://x/1", salary=None, **overrides) -> ScrapedPosting:
    fields = {
        "source": source,
        "title": "Engineer",
        "company": "Acme",
        "location": "Remote",
        "application_url": url,
        "salary": salary,
    }
    fields.update(overrides)
    return ScrapedPosting(**fields)


class StaticScraper(JobBoardScraper):
    def __init__(self, board: str, postings: list[ScrapedPosting], errors: list[str] | None = None) -> None:
        super().__init__(request_delay=(0, 0))
        self.supported_boards = (board,)
        self.postings = postings
        self.errors = errors or []
        self.requests: list[ScrapeRequest] = []

    @property
    def name(self) -> str:
        return self.supported_boards[0].title()

    def scrape(self, request: ScrapeRequest, context: ScrapeContext) -> ScrapeResult:
        self.requests.append(request)
        return ScrapeResult(postings=list(self.postings), errors=list(self.errors))


class ExplodingScraper(StaticScraper):
    def scrape(self, request: ScrapeRequest, context: ScrapeContext) -> ScrapeResult:
        raise RuntimeError("captcha wall")


def test_registry_picks_first_capable_scraper() -> None:
    first = StaticScraper("linkedin", [mkposting()])
    second = StaticScraper("linkedin", [])
    registry = ScraperRegistry([first, second])

    result = registry.scrape(ScrapeRequest(board="LinkedIn", query="x"))

    assert len(result.postings) == 1
    assert first.requests and not second.requests


def test_registry_reports_unknown_board() -> None:
    result = ScraperRegistry([]).scrape(ScrapeRequest(board="monster", query="x"))

    assert result.postings == []
    assert result.errors == ["No scraper available for monster"]


def test_default_registry_covers_built_in_boards() -> None:
    registry = create_default_registry()

    assert [scraper.name for scraper in registry.list_scrapers()] == ["LinkedIn", "Indeed", "Glassdoor"]
    assert registry.find("glassdoor.com") is not None


def test_dedup_prefers_salaried_duplicate() -> None:
    plain = mkposting(salary=None)
    salaried = mkposting(source="Indeed", salary="$100k")

    unique = dedupe_postings([plain, salaried])

    assert len(unique) == 1
    assert unique[0].salary == "$100k"
    assert unique[0].source == "Indeed"


def test_dedup_is_case_insensitive_and_keeps_first_seen_order() -> None:
    postings = [
        mkposting(url="https://x/2", title="Designer"),
        mkposting(url="https://x/1"),
        mkposting(url="https://x/1", company="ACME ", title="engineer"),
    ]

    unique = dedupe_postings(postings)

    assert [posting.application_url for posting in unique] == ["https://x/2", "https://x/1"]


def test_missing_location_counts_as_remote() -> None:
    unique = dedupe_postings([mkposting(location=None), mkposting(location="remote")])

    assert len(unique) == 1


def test_gather_jobs_keeps_healthy_boards_when_one_fails() -> None:
    registry = ScraperRegistry([
        StaticScraper("linkedin", [mkposting()]),
        ExplodingScraper("indeed", []),
        StaticScraper("glassdoor", [mkposting(source="Glassdoor", url="https://x/3")], errors=["Glassdoor: page 2 timed out"]),
    ])
    pipeline = ScrapePipeline(registry)

    result = pipeline.gather_jobs("engineer", "Remote", 10)

    assert len(result.postings) == 2
    assert "Failed to scrape indeed: captcha wall" in result.errors
    assert "Glassdoor: page 2 timed out" in result.errors
    assert {outcome.board: outcome.ok for outcome in result.outcomes} == {
        "linkedin": True,
        "indeed": False,
        "glassdoor": True,
    }


def test_gather_jobs_dedupes_across_boards() -> None:
    registry = ScraperRegistry([
        StaticScraper("linkedin", [mkposting()]),
        StaticScraper("indeed", [mkposting(source="Indeed", salary="$100k")]),
    ])

    result = ScrapePipeline(registry).gather_jobs("engineer", boards=("linkedin", "indeed"))

    assert len(result.postings) == 1
    assert result.postings[0].has_salary
    assert result.to_dict()["boards"] == {"linkedin": 1, "indeed": 1}


def test_gather_jobs_with_no_boards() -> None:
    result = ScrapePipeline(ScraperRegistry([])).gather_jobs("engineer", boards=())

    assert result.postings == []
    assert result.errors == []
