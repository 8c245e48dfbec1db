"""Data models for job ingestion."""

from __future__ import annotations

from datetime import datetime, timezone
from decimal import Decimal
from enum import Enum
from typing import Optional, Union

from pydantic import AliasChoices, BaseModel, ConfigDict, Field, field_validator, model_validator


class JobSource(str, Enum):
    justjoin = "justjoin"
    nofluffjobs = "nofluffjobs"
    pracuj = "pracuj"

    @classmethod
    def parse(cls, value: str) -> "JobSource":
        """Resolve a source by value or member name, ignoring case."""
        key = (value or "").strip().lower()
        for member in cls:
            if key in (member.value, member.name.lower()):
                return member
        raise ValueError(f"unknown job source: {value!r}")


class Seniority(str, Enum):
    junior = "junior"
    mid = "mid"
    senior = "senior"
    lead = "lead"


class SalaryPeriod(str, Enum):
    monthly = "monthly"
    yearly = "yearly"
    hourly = "hourly"


class GrossNet(str, Enum):
    gross = "gross"
    net = "net"
    unspecified = "unspecified"


class RawJobOffer(BaseModel):
    """Unparsed posting as scraped from one source."""

    title: str
    link: str
    source: JobSource
    company: Optional[str] = None
    location: Optional[str] = None
    salary_text: Optional[str] = None
    expiration_text: Optional[str] = None
    posted_text: Optional[str] = None
    description: str = ""


# --- Value objects ---


class SalaryInfo(BaseModel):
    """Salary as either raw text or a structured range, never both."""

    model_config = ConfigDict(frozen=True)

    raw_text: Optional[str] = None
    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    currency: Optional[str] = None
    period: Optional[SalaryPeriod] = None
    gross_net: Optional[GrossNet] = None

    @model_validator(mode="after")
    def _one_form_only(self) -> "SalaryInfo":
        structured = (self.min, self.max, self.currency, self.period, self.gross_net)
        if self.raw_text and any(v is not None for v in structured):
            raise ValueError("salary carries both raw text and structured fields")
        return self

    @classmethod
    def from_text(cls, text: str) -> "SalaryInfo":
        return cls(raw_text=text)

    @classmethod
    def from_structured(
        cls,
        min: Optional[Decimal],
        max: Optional[Decimal],
        currency: str,
        period: SalaryPeriod = SalaryPeriod.monthly,
        gross_net: GrossNet = GrossNet.unspecified,
    ) -> "SalaryInfo":
        return cls(min=min, max=max, currency=currency, period=period, gross_net=gross_net)

    @property
    def is_structured(self) -> bool:
        return self.currency is not None

    def display(self) -> str:
        if self.raw_text:
            return self.raw_text
        if self.min is not None and self.max is not None and self.currency:
            return f"{self.min}-{self.max} {self.currency}"
        return ""


class YearsExperience(BaseModel):
    """Required experience as raw text or a closed range [min, max]."""

    model_config = ConfigDict(frozen=True)

    raw_text: Optional[str] = None
    min: Optional[int] = None
    max: Optional[int] = None

    @model_validator(mode="after")
    def _check_form(self) -> "YearsExperience":
        if self.raw_text and (self.min is not None or self.max is not None):
            raise ValueError("experience carries both raw text and a numeric range")
        if self.min is not None and self.max is not None and self.min > self.max:
            raise ValueError(f"experience range is inverted: {self.min} > {self.max}")
        return self

    @classmethod
    def from_text(cls, text: str) -> "YearsExperience":
        return cls(raw_text=text)

    @classmethod
    def from_number(cls, years: int) -> "YearsExperience":
        return cls(min=years, max=years)

    @classmethod
    def from_range(cls, min: int, max: int) -> "YearsExperience":
        return cls(min=min, max=max)

    def display(self) -> str:
        if self.raw_text:
            return self.raw_text
        if self.min is not None and self.max is not None:
            if self.min == self.max:
                return f"{self.min} years"
            return f"{self.min}-{self.max} years"
        return ""


# --- Normalizer output ---


class SalaryBag(BaseModel):
    """Structured salary as returned by the normalizer. Currency may be missing."""

    model_config = ConfigDict(populate_by_name=True)

    min: Optional[Decimal] = None
    max: Optional[Decimal] = None
    currency: Optional[str] = None
    period: Optional[str] = None
    gross_net: Optional[str] = Field(
        default=None, validation_alias=AliasChoices("gross_net", "grossNet")
    )


class NormalizedJobData(BaseModel):
    """Best-effort canonical candidate produced from one RawJobOffer."""

    model_config = ConfigDict(populate_by_name=True)

    title: str
    link: str = ""
    salary: Union[str, SalaryBag, None] = None
    years_experience: Union[str, int, float, None] = Field(
        default=None,
        validation_alias=AliasChoices(
            "years_experience", "requiredYearsExperience", "RequiredYearsExperience"
        ),
    )
    skills: list[str] = Field(
        default_factory=list,
        validation_alias=AliasChoices("skills", "requiredSkills", "RequiredSkills"),
    )
    company: Optional[str] = None
    location: Optional[str] = None
    source: str = ""
    posted_date: Optional[datetime] = Field(
        default=None, validation_alias=AliasChoices("posted_date", "postedDate", "PostedDate")
    )
    expiration_date: Optional[datetime] = Field(
        default=None,
        validation_alias=AliasChoices("expiration_date", "expirationDate", "ExpirationDate"),
    )

    @field_validator("skills", mode="before")
    @classmethod
    def _null_skills(cls, value):
        return [] if value is None else value


# --- Canonical entity ---


class JobOffer(BaseModel):
    """Canonical, storage-ready job record. The link is its identity."""

    model_config = ConfigDict(frozen=True)

    link: str
    title: str
    source: JobSource
    company: Optional[str] = None
    location: Optional[str] = None
    salary: Optional[SalaryInfo] = None
    years_experience: Optional[YearsExperience] = None
    skills: list[str] = Field(default_factory=list)
    posted_date: Optional[datetime] = None
    expiration_date: Optional[datetime] = None
    raw_text_snapshot: Optional[str] = None
    ingested_at: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))


# --- Run inputs and outputs ---


class JobSearchCriteria(BaseModel):
    """What to search for across all sources."""

    titles: list[str] = Field(default_factory=list)
    locations: Optional[list[str]] = None
    seniorities: Optional[list[Seniority]] = None
    date_from: Optional[datetime] = None
    max_per_site: Optional[int] = None


class ScrapingProgress(BaseModel):
    """Transient status snapshot for progress sinks."""

    source: Optional[JobSource] = None
    activity: str = ""
    found: int = 0
    processed: int = 0
    failed: int = 0


class ScrapingResult(BaseModel):
    """Top-level outcome of an ingestion run."""

    model_config = ConfigDict(frozen=True)

    run_id: str
    timestamp: datetime = Field(default_factory=lambda: datetime.now(timezone.utc))
    total_found: int = 0
    processed: int = 0
    failed: int = 0
    skipped: int = 0
    duplicates: int = 0
    saved_count: int = 0
    persistence_failed: bool = False
    cancelled: bool = False
    dry_run: bool = False
    processed_by_source: dict[JobSource, int] = Field(default_factory=dict)
    failed_sources: list[JobSource] = Field(default_factory=list)
