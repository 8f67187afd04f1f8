"""
Core data models for the job autopilot pipeline.
"""

from dataclasses import dataclass, field
from datetime import datetime
from enum import Enum
from typing import Any, Optional, Union
import re

from job_autopilot.errors import PostingValidationError


class JobBoard(Enum):
    """Job boards a stored posting can originate from."""
    LINKEDIN = "linkedin"
    INDEED = "indeed"
    GLASSDOOR = "glassdoor"
    OTHER = "other"


BOARD_ALIASES = {
    "linkedin": JobBoard.LINKEDIN,
    "linkedin.jobs": JobBoard.LINKEDIN,
    "indeed": JobBoard.INDEED,
    "indeed.com": JobBoard.INDEED,
    "glassdoor": JobBoard.GLASSDOOR,
    "glassdoor.com": JobBoard.GLASSDOOR,
}


def map_board(board: str) -> JobBoard:
    """Map a board identifier (or alias) onto a JobBoard."""
    return BOARD_ALIASES.get((board or "").strip().lower(), JobBoard.OTHER)


def slugify(value: str) -> str:
    """Lowercase a value and collapse anything non-alphanumeric into dashes."""
    return re.sub(r"[^a-z0-9]+", "-", (value or "").lower()).strip("-")


@dataclass(frozen=True)
class SalaryRange:
    """Structured salary information."""
    min: Optional[int] = None
    max: Optional[int] = None
    label: Optional[str] = None

    @property
    def is_disclosed(self) -> bool:
        return self.min is not None or self.max is not None

    def to_dict(self) -> dict:
        return {"min": self.min, "max": self.max, "label": self.label}

    @classmethod
    def from_dict(cls, data: Optional[dict]) -> Optional["SalaryRange"]:
        if not data:
            return None
        return cls(min=data.get("min"), max=data.get("max"), label=data.get("label"))


SALARY_AMOUNT = re.compile(
    r"(?P<currency>[$£€])?\s*(?P<amount>\d+(?:\.\d+)?)\s*(?P<thousands>[kK]\b)?(?P<percent>\s*%)?"
)
HOURLY_RATE = re.compile(r"(?:/\s*|\bper\s+|\ban?\s+)(?:hour|hr)\b|\bhourly\b", re.IGNORECASE)
RETIREMENT_PLAN = re.compile(r"\b401\s*\(?k\)?", re.IGNORECASE)
HOURS_PER_YEAR = 2080


def parse_salary(value: Union[str, dict, SalaryRange, None]) -> Optional[SalaryRange]:
    """
    Parse salary text or a structured range.

    "$110k - $140k" becomes SalaryRange(110000, 140000, "$110k - $140k").
    Plain figures such as "$95,000 - $120,000 a year" are kept as-is.

    Only currency amounts ("$95,000") and thousands ("110k") count; other
    figures such as "10% bonus" or "401k" are ignored. Hourly rates
    ("$45 - $60 an hour") are annualized at 2080 hours. The result always
    has min <= max.
    """
    if not value:
        return None

    if isinstance(value, SalaryRange):
        return value

    if isinstance(value, dict):
        return SalaryRange(
            min=value.get("min") if isinstance(value.get("min"), (int, float)) else None,
            max=value.get("max") if isinstance(value.get("max"), (int, float)) else None,
            label=value.get("label"),
        )

    text = str(value)
    clean = RETIREMENT_PLAN.sub(" ", text.replace(",", ""))
    hourly = bool(HOURLY_RATE.search(clean))

    numbers = []
    for match in SALARY_AMOUNT.finditer(clean):
        if match.group("percent") or not (match.group("currency") or match.group("thousands")):
            continue

        number = float(match.group("amount"))
        if match.group("thousands"):
            number *= 1000
        elif hourly:
            number *= HOURS_PER_YEAR
        elif number < 1000:
            # "$110 - $140" on a board that drops the k
            number *= 1000
        numbers.append(int(number))

    if not numbers:
        return SalaryRange(label=text)

    if len(numbers) == 1:
        return SalaryRange(min=numbers[0], label=text)

    low, high = sorted(numbers[:2])
    return SalaryRange(min=low, max=high, label=text)


def to_string_list(value: Any) -> list[str]:
    """Coerce a list or a bulleted/comma separated string into a clean list."""
    if isinstance(value, (list, tuple)):
        return [str(item).strip() for item in value if str(item).strip()]

    if isinstance(value, str):
        return [item.strip() for item in re.split(r"[•*\n,;]", value) if item.strip()]

    return []


def parse_datetime(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return value
    try:
        return datetime.fromisoformat(str(value).replace("Z", "+00:00"))
    except ValueError:
        return None


@dataclass(frozen=True)
class ScrapedPosting:
    """A posting as extracted from a job board, before deduplication."""
    source: str
    title: str
    company: str
    application_url: str
    description: str = ""
    external_id: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[Union[str, SalaryRange]] = None
    requirements: tuple = ()
    benefits: tuple = ()
    application_method: Optional[str] = None
    posted_at: Optional[datetime] = None
    metadata: dict = field(default_factory=dict, hash=False, compare=False)

    @property
    def effective_external_id(self) -> str:
        """The source id, or a stable id derived from title and company."""
        if self.external_id:
            return self.external_id
        return f"{slugify(self.source)}-{slugify(self.title)}-{slugify(self.company)}"

    @property
    def has_salary(self) -> bool:
        if isinstance(self.salary, SalaryRange):
            return self.salary.is_disclosed or bool(self.salary.label)
        return bool(self.salary and str(self.salary).strip())

    @property
    def salary_range(self) -> Optional[SalaryRange]:
        return parse_salary(self.salary)

    @classmethod
    def from_raw(cls, raw: dict) -> "ScrapedPosting":
        """
        Build a posting from a raw scraped record.

        Raises:
            PostingValidationError: if title, company, source or URL are missing
        """
        missing = [
            name for name in ("source", "title", "company", "application_url")
            if not str(raw.get(name) or "").strip()
        ]
        if missing:
            raise PostingValidationError(f"Missing required fields: {', '.join(missing)}")

        url = str(raw["application_url"]).strip()
        if not url.startswith(("http://", "https://")):
            raise PostingValidationError(f"Invalid application URL: {url}")

        salary = raw.get("salary")
        if isinstance(salary, dict):
            salary = parse_salary(salary)

        return cls(
            source=str(raw["source"]).strip(),
            external_id=str(raw["external_id"]).strip() if raw.get("external_id") else None,
            title=" ".join(str(raw["title"]).split()),
            company=" ".join(str(raw["company"]).split()),
            location=(str(raw["location"]).strip() or None) if raw.get("location") else None,
            salary=salary or None,
            description=str(raw.get("description") or "").strip(),
            requirements=tuple(to_string_list(raw.get("requirements"))),
            benefits=tuple(to_string_list(raw.get("benefits"))),
            application_url=url,
            application_method=raw.get("application_method"),
            posted_at=parse_datetime(raw.get("posted_at")),
            metadata=dict(raw.get("metadata") or {}),
        )

    def to_dict(self) -> dict:
        salary = self.salary.to_dict() if isinstance(self.salary, SalaryRange) else self.salary
        return {
            "source": self.source,
            "external_id": self.effective_external_id,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "salary": salary,
            "description": self.description,
            "requirements": list(self.requirements),
            "benefits": list(self.benefits),
            "application_url": self.application_url,
            "application_method": self.application_method,
            "posted_at": self.posted_at.isoformat() if self.posted_at else None,
            "metadata": self.metadata,
        }


@dataclass
class ScrapeContext:
    """Cross-cutting credentials supplied by the caller of a scrape."""
    proxy_rotation_secret: Optional[str] = None
    captcha_api_key: Optional[str] = None

    def to_dict(self) -> dict:
        # Secrets never leave the process in payloads or metadata.
        return {
            "proxy": bool(self.proxy_rotation_secret),
            "captcha": bool(self.captcha_api_key),
        }


@dataclass
class ScrapeRequest:
    """A request for one board."""
    board: str
    query: str
    location: Optional[str] = None
    cursor: Optional[str] = None
    max_results: Optional[int] = None


@dataclass
class ScrapeResult:
    """Postings and per-source errors returned by one scraper."""
    postings: list[ScrapedPosting] = field(default_factory=list)
    next_cursor: Optional[str] = None
    errors: list[str] = field(default_factory=list)


@dataclass
class JobPosting:
    """A deduplicated posting persisted in the job store."""
    id: int
    board: JobBoard
    external_id: str
    url: str
    title: str
    company: str
    location: Optional[str] = None
    salary_range: Optional[SalaryRange] = None
    description: str = ""
    requirements: list[str] = field(default_factory=list)
    benefits: list[str] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)
    employment_type: Optional[str] = None
    work_arrangement: Optional[str] = None
    application_method: Optional[str] = None
    posting_date: Optional[datetime] = None
    scraper_metadata: dict = field(default_factory=dict)
    created_at: Optional[datetime] = None
    updated_at: Optional[datetime] = None

    @property
    def remote(self) -> bool:
        return "remote" in (self.work_arrangement or "").lower()

    @property
    def salary_min(self) -> Optional[int]:
        return self.salary_range.min if self.salary_range else None

    @property
    def salary_max(self) -> Optional[int]:
        return self.salary_range.max if self.salary_range else None

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "board": self.board.value,
            "external_id": self.external_id,
            "url": self.url,
            "title": self.title,
            "company": self.company,
            "location": self.location,
            "salary_range": self.salary_range.to_dict() if self.salary_range else None,
            "description": self.description,
            "requirements": self.requirements,
            "benefits": self.benefits,
            "tags": self.tags,
            "employment_type": self.employment_type,
            "work_arrangement": self.work_arrangement,
            "application_method": self.application_method,
            "posting_date": self.posting_date.isoformat() if self.posting_date else None,
        }


@dataclass
class CandidateSkill:
    """A skill on a candidate profile."""
    name: str
    proficiency: Optional[int] = None  # 1-5
    years_experience: Optional[float] = None

    def __post_init__(self):
        if self.proficiency is not None and not 1 <= self.proficiency <= 5:
            raise ValueError(f"Proficiency for {self.name} must be between 1 and 5")


@dataclass
class CandidateProfile:
    """Snapshot of a user's skills and preferences used for matching."""
    skills: list[CandidateSkill] = field(default_factory=list)
    total_years_experience: Optional[float] = None
    preferred_locations: list[str] = field(default_factory=list)
    minimum_salary: Optional[int] = None
    maximum_salary: Optional[int] = None
    remote_preferred: bool = False
    excluded_companies: list[str] = field(default_factory=list)
    excluded_keywords: list[str] = field(default_factory=list)

    @classmethod
    def from_dict(cls, data: dict) -> "CandidateProfile":
        skills = []
        for skill in data.get("skills", []):
            if isinstance(skill, str):
                skills.append(CandidateSkill(name=skill))
            else:
                skills.append(CandidateSkill(
                    name=skill["name"],
                    proficiency=skill.get("proficiency"),
                    years_experience=skill.get("years_experience"),
                ))

        return cls(
            skills=skills,
            total_years_experience=data.get("total_years_experience"),
            preferred_locations=list(data.get("preferred_locations", [])),
            minimum_salary=data.get("minimum_salary"),
            maximum_salary=data.get("maximum_salary"),
            remote_preferred=bool(data.get("remote_preferred", False)),
            excluded_companies=list(data.get("excluded_companies", [])),
            excluded_keywords=list(data.get("excluded_keywords", [])),
        )


@dataclass
class MatchResult:
    """Score of a posting against a candidate profile."""
    score: float = 0.0  # 0-1
    passes_threshold: bool = False
    breakdown: dict[str, float] = field(default_factory=lambda: {
        "skills": 0.0,
        "experience": 0.0,
        "location": 0.0,
        "salary": 0.0,
    })
    reasons: list[str] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "score": round(self.score, 4),
            "passes_threshold": self.passes_threshold,
            "breakdown": {key: round(value, 4) for key, value in self.breakdown.items()},
            "reasons": self.reasons,
        }


class ApplicationStatus(Enum):
    """Lifecycle status of an application."""
    QUEUED = "QUEUED"
    SUBMISSION_IN_PROGRESS = "SUBMISSION_IN_PROGRESS"
    SUBMITTED = "SUBMITTED"
    CONFIRMED = "CONFIRMED"
    FAILED = "FAILED"
    RESPONDED = "RESPONDED"
    ARCHIVED = "ARCHIVED"
    CANCELLED = "CANCELLED"


class ApplicationEventType(Enum):
    """Types of entries in an application's audit trail."""
    APPLICATION_QUEUED = "APPLICATION_QUEUED"
    SUBMISSION_STARTED = "SUBMISSION_STARTED"
    SUBMISSION_SUCCEEDED = "SUBMISSION_SUCCEEDED"
    SUBMISSION_CONFIRMED = "SUBMISSION_CONFIRMED"
    SUBMISSION_FAILED = "SUBMISSION_FAILED"
    RESPONSE_RECEIVED = "RESPONSE_RECEIVED"
    APPLICATION_ARCHIVED = "APPLICATION_ARCHIVED"
    APPLICATION_CANCELLED = "APPLICATION_CANCELLED"
    NOTE_ADDED = "NOTE_ADDED"


@dataclass(frozen=True)
class ApplicationEvent:
    """Immutable audit entry appended on every status change."""
    id: int
    application_id: str
    type: ApplicationEventType
    payload: Optional[dict]
    occurred_at: datetime

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "application_id": self.application_id,
            "type": self.type.value,
            "payload": self.payload,
            "occurred_at": self.occurred_at.isoformat(),
        }


@dataclass
class Application:
    """An application by a user to a stored posting."""
    id: str
    user_id: str
    posting_id: int
    status: ApplicationStatus = ApplicationStatus.QUEUED
    priority: int = 0
    response_metadata: Optional[dict] = None
    created_at: datetime = field(default_factory=datetime.now)
    updated_at: datetime = field(default_factory=datetime.now)
    events: list[ApplicationEvent] = field(default_factory=list)

    def to_dict(self) -> dict:
        return {
            "id": self.id,
            "user_id": self.user_id,
            "posting_id": self.posting_id,
            "status": self.status.value,
            "priority": self.priority,
            "response_metadata": self.response_metadata,
            "created_at": self.created_at.isoformat(),
            "updated_at": self.updated_at.isoformat(),
            "events": [event.to_dict() for event in self.events],
        }
