from __future__ import annotations

import pytest

from job_autopilot.core.models import SalaryRange, parse_salary


@pytest.mark.parametrize("text, expected", [
    ("$110k - $140k", (110000, 140000)),
    ("$120,000 - $150,000 a year", (120000, 150000)),
    ("$110 - $140", (110000, 140000)),
    ("$150k", (150000, None)),
])
def test_parse_salary_ranges(text, expected) -> None:
    salary = parse_salary(text)

    assert (salary.min, salary.max) == expected
    assert salary.label == text


def test_parse_salary_ignores_percentages_and_retirement_plans() -> None:
    bonus = parse_salary("$100K+ plus 10% bonus")
    benefits = parse_salary("$90k - $120k, 401(k) match up to 6%")

    assert (bonus.min, bonus.max) == (100000, None)
    assert (benefits.min, benefits.max) == (90000, 120000)


def test_parse_salary_annualizes_hourly_rates() -> None:
    salary = parse_salary("$45 - $60 an hour")

    assert (salary.min, salary.max) == (45 * 2080, 60 * 2080)
    assert parse_salary("$52.50/hr").min == 109200


def test_parse_salary_orders_min_and_max() -> None:
    salary = parse_salary("$140k - $110k")

    assert salary.min == 110000
    assert salary.max == 140000


def test_parse_salary_without_amounts_keeps_label() -> None:
    salary = parse_salary("Competitive, 15% bonus")

    assert salary == SalaryRange(label="Competitive, 15% bonus")
    assert not salary.is_disclosed
    assert parse_salary("") is None
