import pytest

from job_extract.ensemble import EnsembleError
from job_extract.learning import FeedbackLearningStore
from job_extract.models import JobListing
from job_extract.patterns import FALLBACK_SEARCH_QUERY
from job_extract.service import (
    EMPTY_EMAIL_MESSAGE,
    FAILURE_MESSAGE,
    INVALID_URL_MESSAGE,
    PARTIAL_MESSAGE,
    UNEXPECTED_MESSAGE,
    ExtractionService,
    listing_match_score,
)
from job_extract.text_extractor import IDENTITY_MISSING_DIAGNOSTIC, UNSTRUCTURED_DIAGNOSTIC

from conftest import FakeSource

POSTING_URL = "https://careers.globex.example/openings/8812"
GREENHOUSE_URL = "https://boards.greenhouse.io/acme/jobs/12345"
LINKEDIN_URL = "https://www.linkedin.com/jobs/view/senior-software-engineer-at-acme-corp-3712345678"
SEARCHABLE_URL = "https://jobs.example.com/listing/senior-data-analyst-initech"


class ExplodingFetcher:
    def fetch(self, url):
        raise RuntimeError("socket on fire")


class FailingEnsemble:
    def combine(self, url, html=None):
        raise EnsembleError("every strategy failed")


def test_invalid_url_is_rejected_without_network(make_service):
    service, fetcher = make_service()
    record = service.extract_job_from_url("not a url")
    assert record.error == INVALID_URL_MESSAGE
    assert record.company == "" and record.position == ""
    assert fetcher.calls == []


def test_html_extraction_end_to_end(make_service, posting_html):
    service, fetcher = make_service(html=posting_html)
    record = service.extract_job_from_url(POSTING_URL)

    assert record.company == "Globex"
    assert record.position == "Senior Backend Engineer"
    assert record.salary == "$140,000 - $170,000 per year"
    assert record.location == "Austin, TX"
    assert record.error is None
    assert record.diagnostic is None
    assert 0.5 < record.confidence <= 1.0
    assert fetcher.calls == [POSTING_URL]
    assert service.scorer.website_reliability(POSTING_URL) == 0.6


def test_repeated_extraction_hits_the_cache(make_service, posting_html):
    service, fetcher = make_service(html=posting_html)
    first = service.extract_job_from_url(POSTING_URL)
    first.company = "Mutated"
    second = service.extract_job_from_url(POSTING_URL)

    assert second.company == "Globex"
    assert len(fetcher.calls) == 1

    service.clear_cache()
    service.extract_job_from_url(POSTING_URL)
    assert len(fetcher.calls) == 2


def test_total_failure_returns_failure_record(make_service):
    service, fetcher = make_service()
    url = "https://example.org/about-us"
    record = service.extract_job_from_url(url)

    assert record.is_failure
    assert record.error == FAILURE_MESSAGE
    assert record.source_url == url
    assert service.scorer.website_reliability(url) == 0.4

    service.extract_job_from_url(url)
    assert len(fetcher.calls) == 2


def test_partial_url_data_is_returned_but_not_cached(make_service):
    service, fetcher = make_service()
    record = service.extract_job_from_url(GREENHOUSE_URL)

    assert record.company == "Acme"
    assert record.position == ""
    assert record.diagnostic == PARTIAL_MESSAGE
    assert record.missing_fields() == ["position"]
    assert record.error is None

    service.extract_job_from_url(GREENHOUSE_URL)
    assert len(fetcher.calls) == 2


def test_unexpected_errors_never_escape():
    service = ExtractionService(fetcher=ExplodingFetcher(), sources=[], learning=FeedbackLearningStore())
    record = service.extract_job_from_url("https://example.org/about-us")
    assert record.error == UNEXPECTED_MESSAGE


def test_complete_url_pattern_skips_the_network(make_service):
    source = FakeSource()
    service, fetcher = make_service(sources=[source])
    record = service.extract_job_from_url(LINKEDIN_URL)

    assert record.company == "Acme"
    assert record.position == "Senior Software Engineer"
    assert fetcher.calls == []
    assert source.queries == []


def test_confident_api_match_skips_the_fetch(make_service, listing):
    source = FakeSource([listing])
    service, fetcher = make_service(sources=[source])
    record = service.extract_job_from_url(SEARCHABLE_URL)

    assert source.queries == ["Senior Data Analyst Initech"]
    assert record.company == "Initech"
    assert record.position == "Senior Data Analyst"
    assert record.salary == "$95,000 - $120,000"
    assert record.location == "Remote"
    assert record.source_url == SEARCHABLE_URL
    assert fetcher.calls == []


def test_weak_api_match_falls_through_to_fetch(make_service):
    barista = JobListing(title="Barista", company="Coffee Co", url="https://coffee.example/1", source="fake")
    service, fetcher = make_service(listings=[barista])
    record = service.extract_job_from_url(SEARCHABLE_URL)
    assert fetcher.calls == [SEARCHABLE_URL]
    assert record.error == FAILURE_MESSAGE


def test_listing_match_score(listing):
    assert listing_match_score(listing, "https://initech.example/apply/42/", FALLBACK_SEARCH_QUERY) == 1.0
    assert listing_match_score(listing, "https://other.example/jobs/1", FALLBACK_SEARCH_QUERY) == 0.0
    assert listing_match_score(listing, "https://other.example/jobs/1", "Senior Data Analyst") == 1.0
    assert listing_match_score(listing, "https://other.example/jobs/1", "Staff Welder Initech") == 0.0


def test_ensemble_failure_falls_back_to_metadata(make_service, posting_html):
    service, _ = make_service(html=posting_html, ensemble=FailingEnsemble())
    record = service.extract_job_from_url(POSTING_URL)
    assert record.company == "Globex"
    assert record.position == "Senior Backend Engineer"


def test_confident_learned_corrections_are_applied(make_service):
    learning = FeedbackLearningStore()
    for _ in range(4):
        learning.record_feedback(LINKEDIN_URL, {"company": "Acme"}, {"company": "Acme Corporation"})
    service, fetcher = make_service(learning=learning)

    record = service.extract_job_from_url(LINKEDIN_URL)
    assert record.company == "Acme Corporation"
    assert fetcher.calls == []


def test_learn_from_correction(make_service, posting_html, tmp_path):
    path = tmp_path / "learning.json"
    service, fetcher = make_service(html=posting_html, learning_path=path)
    record = service.extract_job_from_url(POSTING_URL)

    service.learn_from_correction(
        POSTING_URL,
        record,
        {"company": "Globex Corporation", "position": "Senior Backend Engineer"},
        "ensemble",
    )

    [pattern] = service.learning.get_learned_patterns("careers.globex.example")
    assert (pattern.original_pattern, pattern.corrected_pattern) == ("Globex", "Globex Corporation")
    assert service.scorer.user_history(POSTING_URL) == 0.4
    assert path.exists()

    service.extract_job_from_url(POSTING_URL)
    assert len(fetcher.calls) == 2

    reloaded = ExtractionService(fetcher=fetcher, sources=[], learning_path=path)
    assert reloaded.learning.get_learning_stats()["total_feedback"] == 1


def test_email_extraction(make_service):
    service, _ = make_service()
    result = service.extract_job_from_email("Company: Hooli\nPosition: Senior Data Engineer\nSalary: $150,000")
    assert result.success
    assert result.data.company == "Hooli"
    assert result.confidence == result.data.confidence
    assert 0.0 < result.confidence <= 1.0


@pytest.mark.parametrize("text", ["", "   \n"])
def test_empty_email(make_service, text):
    service, _ = make_service()
    result = service.extract_job_from_email(text)
    assert not result.success
    assert result.error == EMPTY_EMAIL_MESSAGE


def test_unstructured_email_keeps_notes(make_service):
    service, _ = make_service()
    result = service.extract_job_from_email("Thanks for your time yesterday, talk soon.")
    assert not result.success
    assert result.error == UNSTRUCTURED_DIAGNOSTIC
    assert result.data.notes == "Thanks for your time yesterday, talk soon."


def test_salary_only_email_explains_the_failure(make_service):
    service, _ = make_service()
    result = service.extract_job_from_email("Hi,\nSalary: $150,000\nThanks")
    assert not result.success
    assert result.error == IDENTITY_MISSING_DIAGNOSTIC
    assert result.data.diagnostic == IDENTITY_MISSING_DIAGNOSTIC
    assert result.data.salary == "$150,000"


def test_ensemble_report(make_service, posting_html):
    service, fetcher = make_service(html=posting_html)
    report = service.extract_with_ensemble(POSTING_URL)

    assert fetcher.calls == [POSTING_URL]
    assert report.result.data.company == "Globex"
    assert "pattern-matching" in [r.strategy for r in report.result.strategies]
    assert "notes" not in report.field_confidence
    assert report.field_confidence["company"].confidence > 0
    assert not report.result.consensus
    assert service.assess(report.result.data, "ensemble").overall == pytest.approx(report.score.overall)


def test_ensemble_report_rejects_invalid_url(make_service):
    service, fetcher = make_service()
    assert service.extract_with_ensemble("nope") is None
    assert fetcher.calls == []
