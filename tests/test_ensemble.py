import pytest

from job_extract.ensemble import (
    EnsembleError,
    ExtractionStrategy,
    StrategyEnsemble,
    StrategyUnavailable,
    extract_portal_specific,
    has_majority,
    merge_field,
)
from job_extract.learning import FeedbackLearningStore
from job_extract.models import ExtractedJobRecord

from conftest import FakeFetcher

GREENHOUSE_URL = "https://boards.greenhouse.io/acme/jobs/12345"
GREENHOUSE_HTML = """<html><head><title>Job Application for Platform Engineer at Acme</title></head>
<body>
<h1 class="app-title">Platform Engineer</h1>
<span class="company-name">Acme</span>
<div class="location">Remote</div>
<div id="content"><p>Requirements: 3 years experience with Go.</p></div>
</body></html>"""


def _returns(**fields):
    def extract(url, html):
        return ExtractedJobRecord(source_url=url, **fields)
    return extract


def _raises(exc):
    def extract(url, html):
        raise exc
    return extract


def test_weighted_vote_and_consensus():
    ensemble = StrategyEnsemble(strategies=[
        ExtractionStrategy("a", 0.3, _returns(company="Acme", position="Engineer")),
        ExtractionStrategy("b", 0.2, _returns(company="Acme", position="Engineer")),
        ExtractionStrategy("c", 0.4, _returns(company="Globex", position="Engineer")),
        ExtractionStrategy("boom", 1.0, _raises(RuntimeError("selector exploded"))),
    ], max_workers=4)
    result = ensemble.combine("https://example.com/jobs/1", "<html></html>")

    assert result.data.company == "Acme"
    assert result.data.position == "Engineer"
    assert result.field_consensus == {"company": True, "position": True}
    assert result.consensus
    assert [r.strategy for r in result.strategies] == ["a", "b", "c"]
    assert 0.0 < result.confidence <= 1.0


def test_no_consensus_without_agreement():
    ensemble = StrategyEnsemble(strategies=[
        ExtractionStrategy("a", 0.5, _returns(company="Acme", position="Engineer")),
        ExtractionStrategy("b", 0.5, _returns(company="Globex", position="Designer")),
    ])
    result = ensemble.combine("https://example.com/jobs/1", "")
    assert not result.consensus
    assert result.data.company == "Acme"


def test_all_strategies_failing_raises():
    ensemble = StrategyEnsemble(strategies=[
        ExtractionStrategy("a", 0.5, _raises(StrategyUnavailable("no HTML"))),
        ExtractionStrategy("b", 0.5, _raises(ValueError("bad markup"))),
    ])
    with pytest.raises(EnsembleError):
        ensemble.combine("https://example.com/jobs/1", None)


def test_merge_field_ties_go_to_first_seen():
    assert merge_field([("Acme", 0.5), ("Globex", 0.5)]) == "Acme"
    assert merge_field([("acme", 0.2), ("ACME", 0.2), ("Globex", 0.3)]) == "acme"
    assert merge_field([]) is None


def test_has_majority():
    assert has_majority(["Acme", "acme ", "Globex"])
    assert has_majority(["Acme", "Acme"])
    assert not has_majority(["Acme"])
    assert not has_majority(["Acme", "Globex"])


def test_default_strategies_on_greenhouse_posting():
    result = StrategyEnsemble().combine(GREENHOUSE_URL, GREENHOUSE_HTML)

    assert [r.strategy for r in result.strategies] == [
        "url-pattern", "portal-specific", "pattern-matching", "text-pattern",
    ]
    assert result.data.company == "Acme"
    assert result.data.position == "Platform Engineer"
    assert result.data.location == "Remote"
    assert result.consensus


def test_fetches_when_no_html_is_given():
    fetcher = FakeFetcher(GREENHOUSE_HTML)
    result = StrategyEnsemble(fetcher=fetcher).combine(GREENHOUSE_URL)
    assert fetcher.calls == [GREENHOUSE_URL]
    assert result.data.position == "Platform Engineer"


def test_user_history_applies_every_learned_correction():
    learning = FeedbackLearningStore()
    learning.record_feedback(GREENHOUSE_URL, {"company": "Acme"}, {"company": "Acme Holdings"})
    result = StrategyEnsemble(learning=learning).combine(GREENHOUSE_URL, None)

    by_name = {r.strategy: r for r in result.strategies}
    assert list(by_name) == ["url-pattern", "user-history"]
    assert by_name["user-history"].data.company == "Acme Holdings"
    assert result.data.company == "Acme"


def test_portal_selectors_need_a_known_portal_and_html():
    with pytest.raises(StrategyUnavailable):
        extract_portal_specific("https://example.com/jobs/1", GREENHOUSE_HTML)
    with pytest.raises(StrategyUnavailable):
        extract_portal_specific(GREENHOUSE_URL, None)


def test_portal_hourly_pay_goes_to_hourly_rate():
    html = """<html><body><h1 class="top-card-layout__title">Line Cook</h1>
    <div class="compensation__salary">$45/hr</div></body></html>"""
    record = extract_portal_specific("https://www.linkedin.com/jobs/view/123", html)
    assert record.position == "Line Cook"
    assert record.hourly_rate == "$45/hr"
    assert record.salary is None
