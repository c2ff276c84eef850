"""Confidence scoring for extracted job records."""
from __future__ import annotations

import re
import threading

from job_extract.cleaning import domain_of
from job_extract.log import get_logger
from job_extract.models import ConfidenceFactors, ConfidenceScore, ExtractedJobRecord, FieldConfidence
from job_extract.patterns import vendor_for

log = get_logger(__name__)

FACTOR_WEIGHTS: dict[str, float] = {
    "field_completeness": 0.25,
    "field_quality": 0.25,
    "pattern_match": 0.15,
    "user_history": 0.10,
    "website_reliability": 0.10,
    "extraction_strategy": 0.10,
    "consensus": 0.05,
}

FACTOR_LABELS: dict[str, str] = {
    "field_completeness": "Field Completeness",
    "field_quality": "Field Quality",
    "pattern_match": "Pattern Match",
    "user_history": "User History",
    "website_reliability": "Website Reliability",
    "extraction_strategy": "Extraction Strategy",
    "consensus": "Consensus",
}

STRATEGY_RELIABILITY: dict[str, float] = {
    "universal": 0.7,
    "portal-specific": 0.9,
    "pattern-matching": 0.8,
    "user-history": 0.6,
    "url-pattern": 0.85,
    "job-search-api": 0.9,
    "text-pattern": 0.6,
    "ensemble": 0.85,
}
DEFAULT_RELIABILITY = 0.5
HISTORY_STEP = 0.1

SALARY_MIN, SALARY_MAX = 20_000, 1_000_000

_TITLE_KEYWORDS_RE = re.compile(
    r"engineer|developer|manager|analyst|specialist|coordinator|designer|scientist|architect", re.I
)
_GENERIC_TITLE_RE = re.compile(r"\b(?:job|position|role|title)\b", re.I)
_LEGAL_SUFFIX_RE = re.compile(r"\b(?:inc|corp|ltd|llc|company|co\.)", re.I)
_DESCRIPTION_KEYWORDS_RE = re.compile(r"experience|skills|requirements|responsibilities|benefits", re.I)

# Shapes values take on each known board; a miss hints the page layout moved.
_COMMON_SIGNATURES: list[tuple[str, str]] = [
    ("company", r"^[A-Z0-9][\w&.,'() -]{1,99}$"),
    ("position", r"^[A-Z0-9(][\w&.,'()/#+ -]{2,199}$"),
    ("salary", r"\$\s?\d|\d\s?[kK]\b|\d{2,3},\d{3}"),
    ("hourly_rate", r"\d"),
]
VENDOR_SIGNATURES: dict[str, list[tuple[str, str]]] = {
    "LinkedIn": _COMMON_SIGNATURES + [("location", r"^[\w .'-]+(?:,\s*[\w .'-]+)*$")],
    "Indeed": _COMMON_SIGNATURES + [("location", r"^[\w .'-]+(?:,\s*[A-Z]{2})?(?:\s+\d{5})?$|[Rr]emote")],
    "Glassdoor": _COMMON_SIGNATURES,
    "Wellfound": _COMMON_SIGNATURES,
    "AngelList": _COMMON_SIGNATURES,
    "Greenhouse": _COMMON_SIGNATURES,
    "Lever": _COMMON_SIGNATURES,
    "Workday": _COMMON_SIGNATURES,
    "ZipRecruiter": _COMMON_SIGNATURES,
    "Monster": _COMMON_SIGNATURES,
    "SimplyHired": _COMMON_SIGNATURES,
    "Dice": _COMMON_SIGNATURES,
    "CareerBuilder": _COMMON_SIGNATURES,
    "BambooHR": _COMMON_SIGNATURES,
    "SmartRecruiters": _COMMON_SIGNATURES,
    "Workable": _COMMON_SIGNATURES,
}


def _filled(value: str | None) -> bool:
    return bool(value) and bool(str(value).strip())


def _clamp(value: float) -> float:
    return max(0.0, min(1.0, value))


def salary_numbers(salary: str) -> list[int]:
    """Numeric amounts in a salary string; ``120k`` counts as 120000."""
    values: list[int] = []
    for digits, suffix in re.findall(r"(\d[\d,]*(?:\.\d+)?)\s?([kK]?)", salary):
        try:
            number = float(digits.replace(",", ""))
        except ValueError:
            continue
        values.append(int(number * 1000 if suffix else number))
    return values


def company_quality(company: str | None) -> float:
    if not _filled(company):
        return 0.0
    score = 0.5
    if 2 <= len(company) <= 100:
        score += 0.2
    if not company.strip().isdigit():
        score += 0.2
    if _LEGAL_SUFFIX_RE.search(company):
        score += 0.1
    return min(score, 1.0)


def position_quality(position: str | None) -> float:
    if not _filled(position):
        return 0.0
    score = 0.5
    if 3 <= len(position) <= 200:
        score += 0.2
    if _TITLE_KEYWORDS_RE.search(position):
        score += 0.2
    if not _GENERIC_TITLE_RE.search(position):
        score += 0.1
    return min(score, 1.0)


def salary_quality(salary: str | None) -> float:
    if not _filled(salary):
        return 0.0
    score = 0.5
    if "$" in salary:
        score += 0.2
    if re.search(r"\d", salary):
        score += 0.2
    numbers = salary_numbers(salary)
    if numbers and SALARY_MIN <= max(numbers) <= SALARY_MAX:
        score += 0.1
    return min(score, 1.0)


def description_quality(description: str | None) -> float:
    if not _filled(description):
        return 0.0
    score = 0.5
    if 10 <= len(description) <= 5000:
        score += 0.3
    if _DESCRIPTION_KEYWORDS_RE.search(description):
        score += 0.2
    return min(score, 1.0)


FIELD_QUALITY_CHECKS = {
    "company": company_quality,
    "position": position_quality,
    "salary": salary_quality,
    "description": description_quality,
    "notes": description_quality,
}


def field_completeness(data: ExtractedJobRecord) -> float:
    """70% required fields, 30% optional ones."""
    required = [data.company, data.position]
    optional = [data.salary or data.hourly_rate, data.location, data.description]
    required_score = sum(1 for v in required if _filled(v)) / len(required)
    optional_score = sum(1 for v in optional if _filled(v)) / len(optional)
    return required_score * 0.7 + optional_score * 0.3


def field_quality(data: ExtractedJobRecord) -> float:
    checks = [
        company_quality(data.company),
        position_quality(data.position),
        salary_quality(data.salary or data.hourly_rate),
        description_quality(data.description or data.notes),
    ]
    return sum(checks) / len(checks)


def pattern_match(data: ExtractedJobRecord, url: str) -> float:
    vendor = vendor_for(domain_of(url))
    signatures = VENDOR_SIGNATURES.get(vendor or "", [])
    if not signatures:
        return 0.5
    total, checks = 0.0, 0
    for name, value in data.fields().items():
        patterns = [p for f, p in signatures if f == name]
        if not patterns:
            continue
        hits = sum(1 for p in patterns if re.search(p, value))
        total += hits / len(patterns)
        checks += 1
    return total / checks if checks else 0.5


def overall_confidence(factors: ConfidenceFactors) -> float:
    """Fixed convex combination of the seven factors."""
    values = factors.as_dict()
    return sum(values[name] * weight for name, weight in FACTOR_WEIGHTS.items())


def recommendations_for(factors: ConfidenceFactors, overall: float) -> list[str]:
    recs: list[str] = []
    if factors.field_completeness < 0.5:
        recs.append("Consider adding more job details manually")
    if factors.field_quality < 0.6:
        recs.append("Review extracted fields for accuracy")
    if factors.pattern_match < 0.4:
        recs.append("Website structure may have changed - try manual entry")
    if factors.user_history < 0.3:
        recs.append("This website has low extraction accuracy - manual entry recommended")
    if overall < 0.5:
        recs.append("Low confidence extraction - please verify all fields")
    if overall > 0.8:
        recs.append("High confidence extraction - fields look good!")
    return recs


class ConfidenceScorer:
    """Scores records; keeps per-domain reliability and user-history running maps."""

    def __init__(self, strategy_reliability: dict[str, float] | None = None) -> None:
        self.strategy_reliability = dict(strategy_reliability or STRATEGY_RELIABILITY)
        self._website_reliability: dict[str, float] = {}
        self._user_history: dict[str, float] = {}
        self._lock = threading.Lock()

    # ── Running maps ──

    def website_reliability(self, url: str) -> float:
        with self._lock:
            return self._website_reliability.get(domain_of(url), DEFAULT_RELIABILITY)

    def user_history(self, url: str) -> float:
        with self._lock:
            return self._user_history.get(domain_of(url), DEFAULT_RELIABILITY)

    def _nudge(self, table: dict[str, float], url: str, up: bool) -> float:
        domain = domain_of(url)
        with self._lock:
            current = table.get(domain, DEFAULT_RELIABILITY)
            updated = round(_clamp(current + (HISTORY_STEP if up else -HISTORY_STEP)), 2)
            table[domain] = updated
        return updated

    def update_website_reliability(self, url: str, success: bool) -> float:
        value = self._nudge(self._website_reliability, url, success)
        log.debug("Website reliability for %s → %.2f", domain_of(url), value)
        return value

    def update_user_history(self, url: str, accurate: bool) -> float:
        value = self._nudge(self._user_history, url, accurate)
        log.debug("User-history accuracy for %s → %.2f", domain_of(url), value)
        return value

    # ── Scoring ──

    def strategy_confidence(self, strategy: str) -> float:
        return self.strategy_reliability.get(strategy, DEFAULT_RELIABILITY)

    def factors(self, data: ExtractedJobRecord, url: str, strategy: str, consensus: bool = False) -> ConfidenceFactors:
        return ConfidenceFactors(
            field_completeness=field_completeness(data),
            field_quality=field_quality(data),
            pattern_match=pattern_match(data, url),
            user_history=self.user_history(url),
            website_reliability=self.website_reliability(url),
            extraction_strategy=self.strategy_confidence(strategy),
            consensus=1.0 if consensus else 0.0,
        )

    def score(
        self,
        data: ExtractedJobRecord,
        url: str,
        strategy: str,
        consensus: bool = False,
    ) -> ConfidenceScore:
        factors = self.factors(data, url, strategy, consensus)
        overall = overall_confidence(factors)
        breakdown = {FACTOR_LABELS[k]: v for k, v in factors.as_dict().items()}
        return ConfidenceScore(
            overall=overall,
            factors=factors,
            breakdown=breakdown,
            recommendations=recommendations_for(factors, overall),
        )

    def field_confidence(self, field: str, value: str | None, url: str) -> FieldConfidence:
        value = (value or "").strip()
        check = FIELD_QUALITY_CHECKS.get(field)
        if check is not None:
            base = check(value)
        else:
            base = 0.7 if value else 0.0
        reliability = self.website_reliability(url)
        confidence = (base + reliability) / 2

        reasons: list[str] = []
        if not value:
            reasons.append("Field is empty")
        else:
            if len(value) < 2:
                reasons.append("Value is too short")
            if len(value) > 200 and field not in ("description", "notes"):
                reasons.append("Value is too long")
            if field == "company" and value.isdigit():
                reasons.append("Company name appears to be only numbers")
            if field in ("salary", "hourly_rate") and "$" not in value and not re.search(r"\d", value):
                reasons.append("Salary field doesn't contain currency or numbers")
            if reliability < 0.3:
                reasons.append("Website has low extraction reliability")

        suggestions: list[str] = []
        if confidence < 0.5:
            suggestions.append("Consider manually editing this field")
        if field == "company" and len(value) < 3:
            suggestions.append("Company name seems incomplete")
        if field == "position" and not _TITLE_KEYWORDS_RE.search(value):
            suggestions.append("Job title might be generic - consider adding more specific details")
        if field in ("salary", "hourly_rate") and value and "$" not in value:
            suggestions.append("Add currency symbol for clarity")

        return FieldConfidence(field=field, confidence=confidence, reasons=reasons, suggestions=suggestions)
