"""Run several extraction strategies over one posting and vote on each field."""
from __future__ import annotations

import math
from concurrent.futures import ThreadPoolExecutor, as_completed
from dataclasses import dataclass
from typing import Callable, Optional

from bs4 import BeautifulSoup

from job_extract.cleaning import (
    clean_text,
    domain_of,
    find_salary,
    is_valid_company_name,
    is_valid_job_title,
    normalize_value,
)
from job_extract.config import load_settings
from job_extract.html_extractor import DESCRIPTION_LIMIT, HtmlExtractor
from job_extract.learning import FeedbackLearningStore
from job_extract.log import get_logger
from job_extract.models import RECORD_FIELDS, EnsembleResult, ExtractedJobRecord, StrategyResult
from job_extract.patterns import parse_from_url
from job_extract.scorer import ConfidenceScorer
from job_extract.text_extractor import extract_from_text

log = get_logger(__name__)

CONSENSUS_FIELDS = ("company", "position")


class EnsembleError(Exception):
    """Every strategy raised; there is nothing to vote on."""


class StrategyUnavailable(Exception):
    """A strategy does not apply to this posting (no HTML, unsupported portal, no history)."""


# Per-portal CSS selectors, tried in order per field.
PORTAL_SELECTORS: list[tuple[str, str, dict[str, list[str]]]] = [
    ("linkedin.com", "LinkedIn", {
        "position": ['h1[data-test-id="job-title"]', ".job-details-jobs-unified-top-card__job-title",
                     ".top-card-layout__title"],
        "company": [".job-details-jobs-unified-top-card__company-name",
                    '[data-test-id="job-details-company-name"]', ".topcard__org-name-link"],
        "description": [".jobs-description-content__text", ".jobs-box__html-content", ".show-more-less-html__markup"],
        "location": [".job-details-jobs-unified-top-card__bullet", '[data-test-id="job-details-location"]',
                     ".topcard__flavor--bullet"],
        "salary": [".job-details-jobs-unified-top-card__salary", '[data-test-id="job-details-salary"]',
                   ".compensation__salary"],
    }),
    ("indeed.com", "Indeed", {
        "position": ['[data-testid="job-title"]', ".jobsearch-JobInfoHeader-title"],
        "company": ['[data-testid="company-name"]', '[data-company-name="true"]', ".jobsearch-CompanyInfoContainer a"],
        "description": ['[data-testid="job-description"]', "#jobDescriptionText", ".jobsearch-jobDescriptionText"],
        "location": ['[data-testid="job-location"]', '[data-testid="inlineHeader-companyLocation"]',
                     ".jobsearch-JobInfoHeader-subtitle"],
        "salary": ['[data-testid="job-salary"]', "#salaryInfoAndJobType", ".jobsearch-JobMetadataHeader-salary"],
    }),
    ("glassdoor.", "Glassdoor", {
        "position": ['[data-test="job-title"]', '[class*="JobDetails_jobTitle__"]'],
        "company": ['[data-test="employer-name"]', '[class*="JobDetails_employerName__"]'],
        "description": ['[data-test="job-description"]', '[class*="JobDetails_jobDescription__"]'],
        "location": ['[data-test="location"]', '[data-test="job-location"]', '[class*="JobDetails_location__"]'],
        "salary": ['[data-test="detailSalary"]', '[data-test="job-salary"]', '[class*="JobDetails_salary__"]'],
    }),
    ("wellfound.com", "Wellfound", {
        "position": [".job-title", "h1"],
        "company": [".company-name", ".startup-name"],
        "description": [".job-description", ".job-details"],
        "location": [".job-location", ".location"],
        "salary": [".job-salary", ".compensation"],
    }),
    ("angel.co", "AngelList", {
        "position": [".job-title", "h1"],
        "company": [".company-name", ".startup-name"],
        "description": [".job-description", ".job-details"],
        "location": [".job-location", ".location"],
        "salary": [".job-salary", ".compensation"],
    }),
    ("remote.co", "Remote.co", {
        "position": [".job_title", "h1"],
        "company": [".company_name", ".company"],
        "description": [".job_description", ".job-details"],
        "location": [".job_location", ".location"],
        "salary": [".job_salary", ".compensation"],
    }),
    ("greenhouse.io", "Greenhouse", {
        "position": [".app-title", ".job-post-title", ".job__title h1", "h1"],
        "company": [".company-name", ".posting-company h2"],
        "description": ["#content", ".job-post-description", ".job__description"],
        "location": [".location", ".job__location"],
        "salary": [".pay-range", ".pay-input"],
    }),
    ("lever.co", "Lever", {
        "position": [".posting-headline h2", "h1"],
        "company": [".posting-company h2", ".company-name"],
        "description": [".posting-description", '[data-qa="job-description"]', ".section-wrapper .content"],
        "location": [".posting-categories .location", ".location"],
        "salary": [".posting-salary", '[data-qa="salary-range"]'],
    }),
    ("myworkday", "Workday", {
        "position": ['h2[data-automation-id="jobPostingHeader"]', 'h1[data-automation-id="jobPostingHeader"]'],
        "company": [".company-name"],
        "description": ['[data-automation-id="jobPostingDescription"]', ".jobdescription"],
        "location": ['[data-automation-id="locations"] dd', '[data-automation-id="locations"]'],
        "salary": ['[data-automation-id="salary"]'],
    }),
]

_PORTAL_VALIDATORS: dict[str, Callable[[str], bool]] = {
    "position": is_valid_job_title,
    "company": is_valid_company_name,
}


def portal_for(url: str) -> tuple[str, dict[str, list[str]]] | None:
    host = domain_of(url)
    for needle, name, selectors in PORTAL_SELECTORS:
        if needle in host:
            return name, selectors
    return None


def extract_portal_specific(url: str, html: str | None) -> ExtractedJobRecord:
    """Vendor CSS selectors; raises :class:`StrategyUnavailable` off the supported portals."""
    portal = portal_for(url)
    if portal is None:
        raise StrategyUnavailable(f"no portal selectors for {domain_of(url)}")
    if not html:
        raise StrategyUnavailable("no HTML to read")
    name, selectors = portal
    soup = BeautifulSoup(html, "html.parser")
    record = ExtractedJobRecord(source_url=url)
    for field_name, field_selectors in selectors.items():
        for selector in field_selectors:
            element = soup.select_one(selector)
            if element is None:
                continue
            value = clean_text(element.get_text(" "))
            valid = _PORTAL_VALIDATORS.get(field_name)
            if value and (valid is None or valid(value)):
                if field_name == "description":
                    value = value[:DESCRIPTION_LIMIT]
                elif field_name == "salary":
                    salary, hourly = find_salary(value)
                    if hourly and not salary:
                        record.hourly_rate = hourly
                        break
                setattr(record, field_name, value)
                break
    log.debug("Portal selectors [%s] → %s", name, ", ".join(record.fields()) or "nothing")
    return record


@dataclass
class ExtractionStrategy:
    name: str
    weight: float
    extract: Callable[[str, Optional[str]], ExtractedJobRecord]


@dataclass
class _Candidate:
    value: str
    total: float


def merge_field(candidates: list[tuple[str, float]]) -> str | None:
    """Weighted vote over ``(value, weight)`` pairs; ties go to the first seen."""
    groups: dict[str, _Candidate] = {}
    for value, weight in candidates:
        key = normalize_value(value)
        if key not in groups:
            groups[key] = _Candidate(value=value, total=0.0)
        groups[key].total += weight
    best: _Candidate | None = None
    for candidate in groups.values():
        if best is None or candidate.total > best.total:
            best = candidate
    return best.value if best else None


def has_majority(values: list[str]) -> bool:
    """At least two values and a cluster of agreeing ones covering a majority."""
    if len(values) < 2:
        return False
    distinct = {normalize_value(v) for v in values}
    return len(distinct) <= math.ceil(len(values) / 2)


def combine_results(results: list[StrategyResult], url: str = "") -> EnsembleResult:
    data = ExtractedJobRecord(source_url=url)
    field_consensus: dict[str, bool] = {}
    for name in RECORD_FIELDS:
        candidates = [
            (str(r.data.get(name)).strip(), r.confidence * r.weight)
            for r in results
            if r.data.get(name) and str(r.data.get(name)).strip()
        ]
        if not candidates:
            continue
        setattr(data, name, merge_field(candidates))
        field_consensus[name] = has_majority([value for value, _ in candidates])

    total_weight = sum(r.weight for r in results)
    confidence = sum(r.confidence * r.weight for r in results) / total_weight if total_weight else 0.0
    consensus = all(field_consensus.get(name, False) for name in CONSENSUS_FIELDS)
    return EnsembleResult(
        data=data,
        confidence=confidence,
        strategies=results,
        consensus=consensus,
        field_consensus=field_consensus,
    )


class StrategyEnsemble:
    """Fans strategies out on a thread pool and merges their records by weighted vote."""

    def __init__(
        self,
        scorer: ConfidenceScorer | None = None,
        learning: FeedbackLearningStore | None = None,
        html_extractor: HtmlExtractor | None = None,
        fetcher=None,
        strategies: list[ExtractionStrategy] | None = None,
        max_workers: int | None = None,
    ) -> None:
        self.scorer = scorer or ConfidenceScorer()
        self.learning = learning or FeedbackLearningStore()
        self.html_extractor = html_extractor or HtmlExtractor()
        self.fetcher = fetcher
        self.max_workers = max_workers or int(load_settings()["ensemble"]["max_workers"])
        self.strategies = strategies if strategies is not None else self.default_strategies()

    def default_strategies(self) -> list[ExtractionStrategy]:
        return [
            ExtractionStrategy("url-pattern", 0.3, self._url_pattern),
            ExtractionStrategy("portal-specific", 0.4, extract_portal_specific),
            ExtractionStrategy("pattern-matching", 0.2, self._pattern_matching),
            ExtractionStrategy("text-pattern", 0.15, self._text_pattern),
            ExtractionStrategy("user-history", 0.1, self._user_history),
        ]

    # ── Strategies ──

    @staticmethod
    def _url_pattern(url: str, html: str | None) -> ExtractedJobRecord:
        return parse_from_url(url)

    def _pattern_matching(self, url: str, html: str | None) -> ExtractedJobRecord:
        if not html:
            raise StrategyUnavailable("no HTML to read")
        return self.html_extractor.extract(html, url)

    @staticmethod
    def _text_pattern(url: str, html: str | None) -> ExtractedJobRecord:
        if not html:
            raise StrategyUnavailable("no HTML to read")
        soup = BeautifulSoup(html, "html.parser")
        for tag in soup(["script", "style", "noscript"]):
            tag.decompose()
        record = extract_from_text(soup.get_text("\n"), source_url=url)
        if record.is_failure:
            # page text is not a note; keep whatever fields matched
            record.notes = record.diagnostic = None
        return record

    def _user_history(self, url: str, html: str | None) -> ExtractedJobRecord:
        domain = domain_of(url)
        patterns = self.learning.get_learned_patterns(domain)
        if not patterns:
            raise StrategyUnavailable(f"no corrections learned for {domain}")
        record = parse_from_url(url)
        if html:
            record.fill_missing(self.html_extractor.extract(html, url))
        # Biased: every learned correction counts here, not only the confident ones.
        for pattern in patterns:
            if (record.get(pattern.field) or "").strip() == pattern.original_pattern:
                setattr(record, pattern.field, pattern.corrected_pattern)
        return record

    # ── Fan-out / fan-in ──

    def _run(self, strategy: ExtractionStrategy, url: str, html: str | None) -> StrategyResult | None:
        try:
            data = strategy.extract(url, html)
        except StrategyUnavailable as exc:
            log.debug("[%s] skipped: %s", strategy.name, exc)
            return None
        except Exception as exc:
            log.warning("[%s] FAILED for %s: %s", strategy.name, url, exc)
            return None
        confidence = self.scorer.score(data, url, strategy.name).overall
        return StrategyResult(
            strategy=strategy.name,
            data=data,
            confidence=confidence,
            weight=strategy.weight,
            details=f"Extracted using {strategy.name}",
        )

    def combine(self, url: str, html: str | None = None) -> EnsembleResult:
        if html is None and self.fetcher is not None:
            html = self.fetcher.fetch(url).html

        order = {s.name: i for i, s in enumerate(self.strategies)}
        results: list[StrategyResult] = []
        workers = max(1, min(self.max_workers, len(self.strategies)))
        with ThreadPoolExecutor(max_workers=workers) as pool:
            futures = {pool.submit(self._run, s, url, html): s for s in self.strategies}
            for future in as_completed(futures):
                result = future.result()
                if result is not None:
                    results.append(result)

        if not results:
            raise EnsembleError(f"All {len(self.strategies)} extraction strategies failed for {url}")
        results.sort(key=lambda r: order[r.strategy])

        ensemble = combine_results(results, url)
        log.info(
            "Ensemble for %s: %d/%d strategies, confidence %.2f, consensus=%s",
            url, len(results), len(self.strategies), ensemble.confidence, ensemble.consensus,
        )
        return ensemble
