"""Search criteria validation."""

from __future__ import annotations

from datetime import datetime, timezone

from .models import JobSearchCriteria


class InvalidCriteriaError(ValueError):
    """Raised before any I/O when the search criteria cannot be run."""

    def __init__(self, problems: list[str]):
        self.problems = list(problems)
        super().__init__("; ".join(self.problems))


def validate_criteria(criteria: JobSearchCriteria, now: datetime | None = None) -> list[str]:
    """Return a list of human-readable problems; empty means valid."""
    problems: list[str] = []

    if not [t for t in criteria.titles if t and t.strip()]:
        problems.append("At least one job title must be specified")

    if criteria.max_per_site is not None and criteria.max_per_site <= 0:
        problems.append("Max per site must be greater than 0")

    if criteria.date_from is not None:
        date_from = criteria.date_from
        if now is None:
            now = datetime.now(timezone.utc) if date_from.tzinfo else datetime.now()
        if date_from > now:
            problems.append("Date from cannot be in the future")

    return problems


def ensure_valid(criteria: JobSearchCriteria) -> None:
    problems = validate_criteria(criteria)
    if problems:
        raise InvalidCriteriaError(problems)
