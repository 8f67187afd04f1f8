"""
Ranked job search for a user.

Stored postings are narrowed in the database (query, location, employment
type), scored against the user's profile and then filtered on remote, salary
and age before being sorted by score.
"""

from dataclasses import dataclass, field
from datetime import datetime, timedelta, timezone
from typing import Callable, Optional

from job_autopilot.core.matcher import JobMatcher
from job_autopilot.core.models import JobPosting, MatchResult
from job_autopilot.store.job_store import JobStore, PostingFilter
from .profiles import ProfileProvider


DEFAULT_SEARCH_THRESHOLD = 0.6


@dataclass
class JobSearchFilters:
    query: Optional[str] = None
    location: Optional[str] = None
    employment_type: Optional[str] = None
    remote_only: bool = False
    min_salary: Optional[int] = None
    max_salary: Optional[int] = None
    posted_within_days: Optional[int] = None
    limit: int = 50
    threshold: float = DEFAULT_SEARCH_THRESHOLD


@dataclass
class JobListing:
    """A stored posting with its match against the searching user."""
    posting: JobPosting
    match: MatchResult

    @property
    def match_score(self) -> int:
        return round(self.match.score * 100)

    def to_dict(self) -> dict:
        return {
            **self.posting.to_dict(),
            "match_score": self.match_score,
            "match_breakdown": {key: round(value, 4) for key, value in self.match.breakdown.items()},
            "match_reasons": self.match.reasons,
            "passes_threshold": self.match.passes_threshold,
        }


class JobSearchService:
    """Searches stored postings and ranks them for a user."""

    def __init__(
        self,
        job_store: JobStore,
        profiles: ProfileProvider,
        matcher: Optional[JobMatcher] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.job_store = job_store
        self.profiles = profiles
        self.matcher = matcher or JobMatcher()
        self.clock = clock or (lambda: datetime.now(timezone.utc))

    def search_jobs_for_user(self, user_id: str, filters: Optional[JobSearchFilters] = None) -> list[JobListing]:
        """
        Ranked listings for a user, best match first.

        Raises:
            ProfileNotFoundError: if the user has no profile
        """
        filters = filters or JobSearchFilters()
        postings = self.job_store.find_postings(PostingFilter(
            query=filters.query,
            location=filters.location,
            employment_type=filters.employment_type,
            limit=filters.limit,
        ))
        if not postings:
            return []

        profile = self.profiles.build_match_profile(user_id)
        listings = [
            JobListing(posting=posting, match=match)
            for posting, match in self.matcher.rank_postings(profile, postings, filters.threshold)
        ]
        return [listing for listing in listings if self._keep(listing.posting, filters)]

    def _keep(self, posting: JobPosting, filters: JobSearchFilters) -> bool:
        if filters.remote_only and not posting.remote:
            return False

        if filters.posted_within_days and posting.posting_date:
            posted = posting.posting_date
            if posted.tzinfo is None:
                posted = posted.replace(tzinfo=timezone.utc)
            if self.clock() - posted > timedelta(days=filters.posted_within_days):
                return False

        # Postings without a disclosed bound are not excluded by salary filters
        if filters.min_salary and posting.salary_min is not None and posting.salary_min < filters.min_salary:
            return False
        if filters.max_salary and posting.salary_max is not None and posting.salary_max > filters.max_salary:
            return False

        return True
