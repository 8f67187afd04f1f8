from __future__ import annotations

from datetime import datetime, timezone

import pytest

from job_autopilot.core.matcher import JobMatcher
from job_autopilot.core.models import (
    CandidateProfile,
    CandidateSkill,
    JobBoard,
    JobPosting,
    SalaryRange,
)


NOW = datetime(2024, 6, 1, tzinfo=timezone.utc)


def mkposting(posting_id: int = 1, **overrides) -> JobPosting:
    fields = {
        "id": posting_id,
        "board": JobBoard.LINKEDIN,
        "external_id": f"ext-{posting_id}",
        "url": f"https://x/{posting_id}",
        "title": "Frontend Engineer",
        "company": "Acme",
        "location": "Berlin",
        "requirements": ["React", "GraphQL"],
    }
    fields.update(overrides)
    return JobPosting(**fields)


def mkprofile(**overrides) -> CandidateProfile:
    fields = {
        "skills": [CandidateSkill("React", proficiency=5), CandidateSkill("TypeScript", proficiency=4)],
    }
    fields.update(overrides)
    return CandidateProfile(**fields)


def test_partial_skill_overlap_passes_half_threshold() -> None:
    matcher = JobMatcher(clock=lambda: NOW)

    result = matcher.calculate_match(mkprofile(), mkposting(), threshold=0.5)

    assert result.breakdown["skills"] == pytest.approx(0.65)
    assert result.breakdown["experience"] == 0.5
    assert result.breakdown["location"] == 0.8
    assert result.breakdown["salary"] == 0.8
    assert result.score == pytest.approx(0.665)
    assert result.passes_threshold is True


def test_more_matching_skills_never_lowers_score() -> None:
    matcher = JobMatcher(clock=lambda: NOW)
    posting = mkposting()

    before = matcher.calculate_match(mkprofile(), posting).score
    profile = mkprofile(skills=[
        CandidateSkill("React", proficiency=5),
        CandidateSkill("TypeScript", proficiency=4),
        CandidateSkill("GraphQL", proficiency=3),
    ])
    after = matcher.calculate_match(profile, posting).score

    assert after >= before


def test_excluded_company_scores_zero() -> None:
    matcher = JobMatcher(clock=lambda: NOW)

    result = matcher.calculate_match(mkprofile(excluded_companies=["  ACME "]), mkposting())

    assert result.score == 0
    assert result.passes_threshold is False
    assert result.reasons == ["Company is part of the exclusion list"]


def test_excluded_keyword_matches_requirements() -> None:
    matcher = JobMatcher(clock=lambda: NOW)

    result = matcher.calculate_match(mkprofile(excluded_keywords=["graphql"]), mkposting())

    assert result.score == 0
    assert result.reasons == ["Job contains excluded keywords"]


def test_remote_posting_for_remote_candidate() -> None:
    matcher = JobMatcher(clock=lambda: NOW)
    posting = mkposting(location=None, work_arrangement="remote")

    result = matcher.calculate_match(mkprofile(remote_preferred=True), posting)

    assert result.breakdown["location"] == 1.0


def test_salary_scores() -> None:
    matcher = JobMatcher(clock=lambda: NOW)
    profile = mkprofile(minimum_salary=100000, maximum_salary=160000)

    undisclosed = mkposting()
    fits = mkposting(salary_range=SalaryRange(min=120000, max=150000))
    too_low = mkposting(salary_range=SalaryRange(min=60000, max=80000))

    assert matcher.calculate_match(profile, undisclosed).breakdown["salary"] == 0.4
    assert matcher.calculate_match(profile, fits).breakdown["salary"] == 1.0
    assert matcher.calculate_match(profile, too_low).breakdown["salary"] == 0.5


def test_old_posting_gets_smaller_recency_boost() -> None:
    matcher = JobMatcher(clock=lambda: NOW)
    profile = mkprofile(total_years_experience=5)

    fresh = matcher.calculate_match(profile, mkposting(posting_date=datetime(2024, 5, 1))).breakdown["experience"]
    stale = matcher.calculate_match(profile, mkposting(posting_date=datetime(2020, 5, 1))).breakdown["experience"]

    assert fresh == pytest.approx(0.6)
    assert stale < fresh


def test_rank_postings_orders_best_first() -> None:
    matcher = JobMatcher(clock=lambda: NOW)
    weak = mkposting(1, requirements=["Go", "Rust"])
    strong = mkposting(2, requirements=["React"])

    ranked = matcher.rank_postings(mkprofile(), [weak, strong], threshold=0.5)

    assert [posting.id for posting, _ in ranked] == [2, 1]
    assert ranked[0][1].passes_threshold
