"""
Job Matcher - Scoring algorithm for matching stored postings to candidate profiles.

Calculates four weighted sub-scores:
- Skill match: How many of the posting's requirements the candidate has, and how well
- Experience match: Years of experience, nudged by how fresh the posting is
- Location match: Remote compatibility and preferred locations
- Salary match: Whether the advertised range fits the candidate's floor and ceiling

Hard exclusions (excluded companies, excluded keywords) short-circuit scoring.
"""

from datetime import datetime, timezone
from typing import Callable, Iterable, Optional

from .models import CandidateProfile, CandidateSkill, JobPosting, MatchResult


def _normalize(value: Optional[str]) -> str:
    return (value or "").strip().lower()


def _intersects(source: Iterable[str], target: Iterable[str]) -> bool:
    source_set = {_normalize(item) for item in source}
    return any(_normalize(item) in source_set for item in target)


def _years_between(earlier: datetime, later: datetime) -> int:
    """Whole calendar years elapsed between two datetimes."""
    years = later.year - earlier.year
    if (later.month, later.day) < (earlier.month, earlier.day):
        years -= 1
    return years


class JobMatcher:
    """Scores stored postings against candidate profiles."""

    # Weights for the overall score
    WEIGHTS = {
        "skills": 0.40,
        "experience": 0.25,
        "location": 0.20,
        "salary": 0.15,
    }

    DEFAULT_THRESHOLD = 0.7
    DEFAULT_PROFICIENCY = 3

    def __init__(self, clock: Optional[Callable[[], datetime]] = None):
        self._clock = clock or (lambda: datetime.now(timezone.utc))

    def calculate_match(
        self,
        profile: CandidateProfile,
        posting: JobPosting,
        threshold: float = DEFAULT_THRESHOLD,
    ) -> MatchResult:
        """
        Score a posting for a profile.

        Args:
            profile: Candidate snapshot
            posting: Stored posting
            threshold: Minimum score for the posting to pass

        Returns:
            MatchResult with the overall score, per-dimension breakdown and reasons
        """
        excluded_companies = {_normalize(company) for company in profile.excluded_companies}
        if _normalize(posting.company) in excluded_companies:
            return MatchResult(reasons=["Company is part of the exclusion list"])

        if _intersects(
            profile.excluded_keywords,
            [posting.title, *posting.requirements, *posting.tags],
        ):
            return MatchResult(reasons=["Job contains excluded keywords"])

        breakdown = {
            "skills": self._skill_score(posting.requirements, profile.skills),
            "experience": self._experience_score(profile.total_years_experience, posting),
            "location": self._location_score(profile, posting),
            "salary": self._salary_score(profile, posting),
        }

        weight_total = sum(self.WEIGHTS.values())
        score = sum(breakdown[key] * weight for key, weight in self.WEIGHTS.items()) / weight_total

        reasons = [
            f"Skill match {breakdown['skills'] * 100:.0f}%",
            f"Experience {breakdown['experience'] * 100:.0f}%",
            f"Location {breakdown['location'] * 100:.0f}%",
            f"Salary {breakdown['salary'] * 100:.0f}%",
        ]

        return MatchResult(
            score=score,
            passes_threshold=score >= threshold,
            breakdown=breakdown,
            reasons=reasons,
        )

    def _skill_score(self, required: list[str], skills: list[CandidateSkill]) -> float:
        """Calculate skill match score (0-1)."""
        if not required:
            return 1.0

        proficiency = {
            _normalize(skill.name): skill.proficiency or self.DEFAULT_PROFICIENCY
            for skill in skills
        }

        matches = [skill for skill in required if _normalize(skill) in proficiency]
        if not matches:
            return 0.0

        match_ratio = len(matches) / len(required)
        average_proficiency = sum(proficiency[_normalize(skill)] for skill in matches) / (len(matches) * 5)

        return min(1.0, match_ratio * 0.7 + average_proficiency * 0.3)

    def _experience_score(self, years: Optional[float], posting: JobPosting) -> float:
        """Calculate experience score (0-1)."""
        if not years:
            return 0.5

        experience_ratio = min(1.0, years / 10)
        if not posting.posting_date:
            return experience_ratio

        posted = posting.posting_date
        now = self._clock()
        if posted.tzinfo is None:
            posted = posted.replace(tzinfo=timezone.utc)
        if now.tzinfo is None:
            now = now.replace(tzinfo=timezone.utc)

        age = max(0, _years_between(posted, now))
        recency_boost = 1.0 if age <= 0 else max(0.7, 1 - age * 0.05)

        return min(1.0, experience_ratio * 0.8 + recency_boost * 0.2)

    def _location_score(self, profile: CandidateProfile, posting: JobPosting) -> float:
        """Calculate location score (0-1)."""
        if posting.remote and profile.remote_preferred:
            return 1.0

        if not posting.location:
            return 0.6 if profile.remote_preferred else 0.4

        if not profile.preferred_locations:
            return 0.8

        job_location = _normalize(posting.location)
        for preferred in profile.preferred_locations:
            preferred = _normalize(preferred)
            if preferred and (preferred in job_location or job_location in preferred):
                return 1.0

        return 0.1

    def _salary_score(self, profile: CandidateProfile, posting: JobPosting) -> float:
        """Calculate salary score (0-1)."""
        expected_min = profile.minimum_salary
        expected_max = profile.maximum_salary

        if not expected_min and not expected_max:
            return 0.8

        job_min = posting.salary_min
        job_max = posting.salary_max
        if not job_min and not job_max:
            return 0.4

        top = job_max or job_min or 0
        bottom = job_min or job_max or expected_max

        meets_minimum = top >= expected_min if expected_min else True
        within_maximum = bottom <= expected_max if expected_max else True

        if meets_minimum and within_maximum:
            return 1.0
        if meets_minimum:
            return 0.75
        if within_maximum:
            return 0.5
        return 0.1

    def rank_postings(
        self,
        profile: CandidateProfile,
        postings: list[JobPosting],
        threshold: float = DEFAULT_THRESHOLD,
    ) -> list[tuple[JobPosting, MatchResult]]:
        """
        Rank postings by match score, best first.

        Args:
            profile: Candidate snapshot
            postings: Stored postings to score
            threshold: Pass threshold applied to every result

        Returns:
            List of (posting, result) tuples sorted by score
        """
        scored = [(posting, self.calculate_match(profile, posting, threshold)) for posting in postings]
        scored.sort(key=lambda item: item[1].score, reverse=True)
        return scored
