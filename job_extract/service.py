"""
Job-posting extraction pipeline.

Runs: cache → URL check → URL patterns → job-search API → proxy fetch + ensemble → failure record.
"""
from __future__ import annotations

import re
import threading
from pathlib import Path
from typing import Any

from job_extract.cleaning import domain_of, is_valid_url
from job_extract.config import get_env, load_settings
from job_extract.ensemble import EnsembleError, StrategyEnsemble
from job_extract.fetcher import ContentFetcher
from job_extract.html_extractor import HtmlExtractor
from job_extract.learning import FeedbackLearningStore, FieldSource, as_fields
from job_extract.log import get_logger
from job_extract.models import (
    RECORD_FIELDS,
    ConfidenceScore,
    EnsembleReport,
    ExtractedJobRecord,
    JobExtractionResult,
    JobListing,
    UserFeedback,
)
from job_extract.patterns import FALLBACK_SEARCH_QUERY, build_search_query, parse_from_url
from job_extract.scorer import ConfidenceScorer
from job_extract.sources import JobSearchBase, get_sources
from job_extract.text_extractor import extract_from_text

log = get_logger(__name__)

INVALID_URL_MESSAGE = "Invalid URL format. Please enter a valid job posting URL."
PARTIAL_MESSAGE = "Partial extraction. Please verify and fill missing fields."
FAILURE_MESSAGE = "Could not extract job details automatically. Please fill manually."
UNEXPECTED_MESSAGE = "Extraction failed. Please try again or fill manually."
LOW_CONFIDENCE_MESSAGE = "Low confidence extraction - please verify all fields."
EMPTY_EMAIL_MESSAGE = "No email content provided."
EMAIL_FAILURE_MESSAGE = "Failed to extract job data from email."

_WORD_RE = re.compile(r"[a-z0-9+#]+")


def _word_overlap_ratio(query: str, text: str) -> float:
    """Fraction of words in *query* that appear in *text*.

    Requires at least 2 overlapping words to be non-zero, preventing
    single-word false positives like "engineer" matching everything.
    """
    query_words = set(_WORD_RE.findall(query.lower())) - {"jobs", "job"}
    text_words = set(_WORD_RE.findall(text.lower()))
    overlap = query_words & text_words
    if len(overlap) < 2 and len(query_words) > 1:
        return 0.0
    if not query_words:
        return 0.0
    return len(overlap) / len(query_words)


def _same_url(a: str, b: str) -> bool:
    def norm(u: str) -> str:
        return u.strip().split("#")[0].rstrip("/").lower()
    return bool(a) and bool(b) and norm(a) == norm(b)


def listing_match_score(listing: JobListing, url: str, query: str) -> float:
    """How likely *listing* is the posting at *url*."""
    if _same_url(listing.url, url):
        return 1.0
    if query == FALLBACK_SEARCH_QUERY:
        return 0.0
    score = _word_overlap_ratio(query, f"{listing.title} {listing.company}")
    if listing.url and domain_of(listing.url) == domain_of(url):
        score += 0.2
    return min(score, 1.0)


class ExtractionService:
    """Owns the cache and every pipeline collaborator; one per application."""

    def __init__(
        self,
        fetcher: ContentFetcher | None = None,
        html_extractor: HtmlExtractor | None = None,
        sources: list[JobSearchBase] | None = None,
        scorer: ConfidenceScorer | None = None,
        learning: FeedbackLearningStore | None = None,
        ensemble: StrategyEnsemble | None = None,
        settings: dict[str, Any] | None = None,
        learning_path: Path | None = None,
    ) -> None:
        self.settings = settings or load_settings()
        api_cfg = self.settings["search_api"]
        self.fetcher = fetcher or ContentFetcher()
        self.html_extractor = html_extractor or HtmlExtractor()
        self.sources = sources if sources is not None else get_sources(get_env, float(api_cfg["timeout"]))
        self.scorer = scorer or ConfidenceScorer()
        self.learning = learning or FeedbackLearningStore()
        self.ensemble = ensemble or StrategyEnsemble(
            scorer=self.scorer,
            learning=self.learning,
            html_extractor=self.html_extractor,
            fetcher=self.fetcher,
            max_workers=int(self.settings["ensemble"]["max_workers"]),
        )
        self.match_threshold = float(api_cfg["match_threshold"])
        self.max_results = int(api_cfg["max_results"])
        self.low_confidence = float(self.settings["confidence"]["low_threshold"])
        self.learning_path = learning_path
        if learning_path is not None:
            self.learning.load(learning_path)

        self._cache: dict[str, ExtractedJobRecord] = {}
        self._cache_lock = threading.Lock()

    # ── Cache ──

    def _cached(self, url: str) -> ExtractedJobRecord | None:
        with self._cache_lock:
            hit = self._cache.get(url)
        return hit.copy() if hit is not None else None

    def _remember(self, url: str, record: ExtractedJobRecord) -> None:
        with self._cache_lock:
            self._cache[url] = record.copy()

    def clear_cache(self) -> None:
        with self._cache_lock:
            self._cache.clear()
        log.info("Extraction cache cleared")

    # ── URL extraction ──

    def extract_job_from_url(self, url: str) -> ExtractedJobRecord:
        """Best-effort record for *url*; never raises.

        Failure records carry empty company/position and an ``error``.
        """
        cached = self._cached(url)
        if cached is not None:
            log.debug("Cache hit: %s", url)
            return cached

        try:
            record, cacheable = self._extract(url)
        except Exception as exc:
            log.exception("Extraction crashed for %s: %s", url, exc)
            return ExtractedJobRecord.failure(url, UNEXPECTED_MESSAGE)

        if cacheable:
            self._remember(url, record)
        return record

    def _extract(self, url: str) -> tuple[ExtractedJobRecord, bool]:
        if not is_valid_url(url):
            log.info("Rejected invalid URL: %r", url)
            return ExtractedJobRecord.failure(url, INVALID_URL_MESSAGE), False

        url = url.strip()
        domain = domain_of(url)

        # 1. URL patterns (no network)
        from_url = self.learning.apply_learned_patterns(domain, parse_from_url(url))
        if from_url.is_complete:
            log.info("Extracted %s from URL pattern alone", url)
            return self._finalize(from_url, url, "url-pattern"), True

        # 2. Job-search API
        if self.sources:
            listing = self._search_api(url)
            if listing is not None:
                from_api = self.learning.apply_learned_patterns(domain, listing.to_record(url))
                if from_api.is_complete:
                    log.info("Matched %s via %s", url, listing.source)
                    return self._finalize(from_api.fill_missing(from_url), url, "job-search-api"), True
                from_url.fill_missing(from_api)

        # 3. Proxy fetch + ensemble over the HTML
        fetched = self.fetcher.fetch(url)
        if fetched.ok:
            strategy, consensus = "ensemble", False
            try:
                ensemble = self.ensemble.combine(url, fetched.html)
                record, consensus = ensemble.data, ensemble.consensus
            except EnsembleError as exc:
                log.warning("%s — falling back to metadata extraction", exc)
                record, strategy = self.html_extractor.extract(fetched.html, url), "pattern-matching"
            record = self.learning.apply_learned_patterns(domain, record.fill_missing(from_url))
            if record.has_any_field():
                return self._finalize(record, url, strategy, consensus), True
        else:
            log.info("No HTML for %s (%d proxy failure(s))", url, len(fetched.errors))

        # Partial data whose network step failed is returned, not cached
        if from_url.has_any_field():
            return self._finalize(from_url, url, "url-pattern"), False

        self.scorer.update_website_reliability(url, False)
        log.warning("Nothing extracted for %s", url)
        return ExtractedJobRecord.failure(url, FAILURE_MESSAGE), False

    def _search_api(self, url: str) -> JobListing | None:
        query = build_search_query(url)
        for source in self.sources:
            for listing in source.search(query, limit=self.max_results):
                score = listing_match_score(listing, url, query)
                if score >= self.match_threshold:
                    log.debug("API match %.2f for %r: %s @ %s", score, query, listing.title, listing.company)
                    return listing
        log.debug("No confident API match for %r", query)
        return None

    def _finalize(
        self,
        record: ExtractedJobRecord,
        url: str,
        strategy: str,
        consensus: bool = False,
    ) -> ExtractedJobRecord:
        record.source_url = url
        score = self.scorer.score(record, url, strategy, consensus)
        record.confidence = round(score.overall, 3)
        if not record.is_complete:
            record.diagnostic = PARTIAL_MESSAGE
            log.info("Partial extraction for %s, missing %s", url, ", ".join(record.missing_fields()))
        elif score.overall < self.low_confidence:
            record.diagnostic = LOW_CONFIDENCE_MESSAGE
        else:
            record.diagnostic = None
        self.scorer.update_website_reliability(url, record.is_complete)
        return record

    # ── Other entry points ──

    def extract_job_from_email(self, text: str) -> JobExtractionResult:
        if not text or not text.strip():
            return JobExtractionResult(success=False, error=EMPTY_EMAIL_MESSAGE)
        try:
            record = extract_from_text(text)
            confidence = round(self.scorer.score(record, "", "text-pattern").overall, 3)
        except Exception as exc:
            log.exception("Email extraction crashed: %s", exc)
            return JobExtractionResult(success=False, error=EMAIL_FAILURE_MESSAGE)
        record.confidence = confidence
        if record.is_failure:
            return JobExtractionResult(success=False, data=record, error=record.diagnostic, confidence=confidence)
        return JobExtractionResult(success=True, data=record, confidence=confidence)

    def extract_with_ensemble(self, url: str) -> EnsembleReport | None:
        """Full ensemble breakdown for *url*; ``None`` when it cannot run."""
        if not is_valid_url(url):
            log.info("Rejected invalid URL: %r", url)
            return None
        try:
            result = self.ensemble.combine(url)
        except EnsembleError as exc:
            log.warning("%s", exc)
            return None
        result.data = self.learning.apply_learned_patterns(domain_of(url), result.data)
        score = self.scorer.score(result.data, url, "ensemble", result.consensus)
        per_field = {
            name: self.scorer.field_confidence(name, result.data.get(name), url)
            for name in RECORD_FIELDS
            if name != "notes"
        }
        return EnsembleReport(result=result, score=score, field_confidence=per_field)

    def assess(self, record: ExtractedJobRecord, strategy: str = "universal") -> ConfidenceScore:
        return self.scorer.score(record, record.source_url, strategy)

    def learn_from_correction(
        self,
        url: str,
        original: FieldSource,
        corrected: FieldSource,
        strategy: str = "universal",
    ) -> UserFeedback:
        feedback = self.learning.record_feedback(url, original, corrected, strategy)
        before, after = as_fields(original), as_fields(corrected)
        reviewed = [name for name in after if name in before]
        accuracy = sum(1 for name in reviewed if before[name] == after[name]) / len(reviewed) if reviewed else 0.0
        self.scorer.update_user_history(url, accuracy > 0.7)
        with self._cache_lock:
            self._cache.pop(url, None)
        if self.learning_path is not None:
            self.learning.save(self.learning_path)
        return feedback
