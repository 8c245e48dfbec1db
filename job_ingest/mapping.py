"""Map normalizer output onto the canonical JobOffer."""

from __future__ import annotations

from typing import Optional, Union

from .models import (
    GrossNet,
    JobOffer,
    JobSource,
    NormalizedJobData,
    RawJobOffer,
    SalaryBag,
    SalaryInfo,
    SalaryPeriod,
    YearsExperience,
)


def _parse_enum(enum_cls, value: Optional[str], default):
    if value is None or not str(value).strip():
        return default
    key = str(value).strip().lower()
    for member in enum_cls:
        if member.value == key:
            return member
    raise ValueError(f"unknown {enum_cls.__name__}: {value!r}")


def map_salary(salary: Union[str, SalaryBag, None]) -> Optional[SalaryInfo]:
    """Free text keeps only the text; a bag without currency is dropped."""
    if isinstance(salary, str):
        text = salary.strip()
        return SalaryInfo.from_text(text) if text else None
    if isinstance(salary, SalaryBag):
        currency = (salary.currency or "").strip()
        if not currency:
            return None
        return SalaryInfo.from_structured(
            salary.min,
            salary.max,
            currency,
            period=_parse_enum(SalaryPeriod, salary.period, SalaryPeriod.monthly),
            gross_net=_parse_enum(GrossNet, salary.gross_net, GrossNet.unspecified),
        )
    return None


def map_years_experience(value: Union[str, int, float, None]) -> Optional[YearsExperience]:
    """Text keeps only the text; a number becomes [n, n] truncated toward zero."""
    if isinstance(value, bool):
        return None
    if isinstance(value, str):
        text = value.strip()
        return YearsExperience.from_text(text) if text else None
    if isinstance(value, (int, float)):
        return YearsExperience.from_number(int(value))
    return None


def map_to_offer(data: NormalizedJobData, raw: RawJobOffer) -> JobOffer:
    """Build a JobOffer. Raises ValueError when the source cannot be resolved."""
    return JobOffer(
        link=data.link or raw.link,
        title=data.title,
        source=JobSource.parse(data.source),
        company=data.company,
        location=data.location,
        salary=map_salary(data.salary),
        years_experience=map_years_experience(data.years_experience),
        skills=list(data.skills),
        posted_date=data.posted_date,
        expiration_date=data.expiration_date,
        raw_text_snapshot=raw.description or None,
    )
