"""Data models for extracted job records, confidence and learned corrections."""
from __future__ import annotations

import dataclasses
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

# Fields a human reviews and may correct on the form.
RECORD_FIELDS: tuple[str, ...] = (
    "company", "position", "salary", "hourly_rate", "location", "description", "notes",
)
REQUIRED_FIELDS: tuple[str, ...] = ("company", "position")


def _filled(value: Any) -> bool:
    return bool(value) and bool(str(value).strip())


@dataclass
class ExtractedJobRecord:
    company: str = ""
    position: str = ""
    salary: str | None = None
    hourly_rate: str | None = None
    location: str | None = None
    description: str | None = None
    notes: str | None = None
    source_url: str = ""
    diagnostic: str | None = None
    confidence: float | None = None

    @property
    def is_failure(self) -> bool:
        return not _filled(self.company) and not _filled(self.position)

    @property
    def error(self) -> str | None:
        """The diagnostic of a failure record; ``None`` for usable data."""
        return self.diagnostic if self.is_failure else None

    @property
    def is_complete(self) -> bool:
        return all(_filled(getattr(self, f)) for f in REQUIRED_FIELDS)

    def get(self, name: str) -> str | None:
        return getattr(self, name, None)

    def has_any_field(self) -> bool:
        return any(_filled(getattr(self, f)) for f in RECORD_FIELDS)

    def missing_fields(self) -> list[str]:
        return [f for f in REQUIRED_FIELDS if not _filled(getattr(self, f))]

    def fill_missing(self, other: ExtractedJobRecord) -> ExtractedJobRecord:
        """Copy *other*'s values into fields that are empty here. Returns self."""
        for name in RECORD_FIELDS:
            if not _filled(getattr(self, name)) and _filled(getattr(other, name)):
                setattr(self, name, getattr(other, name))
        if not self.source_url:
            self.source_url = other.source_url
        return self

    def fields(self) -> dict[str, str]:
        """Non-empty reviewable fields only."""
        return {f: str(getattr(self, f)).strip() for f in RECORD_FIELDS if _filled(getattr(self, f))}

    def copy(self) -> ExtractedJobRecord:
        return dataclasses.replace(self)

    def to_dict(self) -> dict[str, Any]:
        data = dataclasses.asdict(self)
        data["error"] = self.error
        return data

    @classmethod
    def failure(cls, url: str, message: str) -> ExtractedJobRecord:
        return cls(company="", position="", source_url=url, diagnostic=message)


@dataclass
class JobExtractionResult:
    success: bool
    data: ExtractedJobRecord | None = None
    error: str | None = None
    confidence: float | None = None


@dataclass
class JobListing:
    """A hit from a third-party job-search API."""
    title: str
    company: str
    url: str = ""
    location: str = ""
    description: str = ""
    salary: str | None = None
    hourly_rate: str | None = None
    source: str = "unknown"
    raw: dict = field(default_factory=dict)

    def to_record(self, source_url: str) -> ExtractedJobRecord:
        return ExtractedJobRecord(
            company=self.company,
            position=self.title,
            salary=self.salary,
            hourly_rate=self.hourly_rate,
            location=self.location or None,
            description=self.description[:1000] or None,
            source_url=source_url,
        )


@dataclass
class ConfidenceFactors:
    field_completeness: float = 0.0
    field_quality: float = 0.0
    pattern_match: float = 0.5
    user_history: float = 0.5
    website_reliability: float = 0.5
    extraction_strategy: float = 0.5
    consensus: float = 0.0

    def as_dict(self) -> dict[str, float]:
        return dataclasses.asdict(self)


@dataclass
class ConfidenceScore:
    overall: float
    factors: ConfidenceFactors
    breakdown: dict[str, float] = field(default_factory=dict)
    recommendations: list[str] = field(default_factory=list)


@dataclass
class FieldConfidence:
    field: str
    confidence: float
    reasons: list[str] = field(default_factory=list)
    suggestions: list[str] = field(default_factory=list)


@dataclass
class StrategyResult:
    strategy: str
    data: ExtractedJobRecord
    confidence: float
    weight: float
    details: str = ""


@dataclass
class EnsembleResult:
    data: ExtractedJobRecord
    confidence: float
    strategies: list[StrategyResult]
    consensus: bool
    field_consensus: dict[str, bool] = field(default_factory=dict)


@dataclass
class UserFeedback:
    id: str
    url: str
    domain: str
    original: dict[str, str]
    corrected: dict[str, str]
    strategy: str
    timestamp: str = field(
        default_factory=lambda: datetime.now(timezone.utc).isoformat(timespec="seconds")
    )


@dataclass
class LearnedPattern:
    domain: str
    field: str
    original_pattern: str
    corrected_pattern: str
    confidence: float = 0.5
    usage_count: int = 1


@dataclass
class DomainInsight:
    domain: str
    common_corrections: dict[str, list[str]] = field(default_factory=dict)
    field_accuracy: dict[str, float] = field(default_factory=dict)
    suggested_patterns: list[str] = field(default_factory=list)


@dataclass
class EnsembleReport:
    """Everything the review page shows after an ensemble run."""
    result: EnsembleResult
    score: ConfidenceScore
    field_confidence: dict[str, FieldConfidence] = field(default_factory=dict)
