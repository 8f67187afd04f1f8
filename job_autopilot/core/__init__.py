"""Core models, matching and submission planning."""

from .models import (
    Application,
    ApplicationEvent,
    ApplicationEventType,
    ApplicationStatus,
    CandidateProfile,
    CandidateSkill,
    JobBoard,
    JobPosting,
    MatchResult,
    SalaryRange,
    ScrapeContext,
    ScrapedPosting,
    ScrapeRequest,
    ScrapeResult,
)
from .matcher import JobMatcher
from .submission import (
    ApplicantDetails,
    ApplicationForm,
    FormField,
    SimulatedSubmitter,
    SubmissionPlan,
    build_submission_plan,
)

__all__ = [
    "Application",
    "ApplicationEvent",
    "ApplicationEventType",
    "ApplicationStatus",
    "CandidateProfile",
    "CandidateSkill",
    "JobBoard",
    "JobPosting",
    "MatchResult",
    "SalaryRange",
    "ScrapeContext",
    "ScrapedPosting",
    "ScrapeRequest",
    "ScrapeResult",
    "JobMatcher",
    "ApplicantDetails",
    "ApplicationForm",
    "FormField",
    "SimulatedSubmitter",
    "SubmissionPlan",
    "build_submission_plan",
]
