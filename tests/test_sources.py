import logging

import pytest
import requests

from job_extract.sources import JSearchSource, SerpApiSource, get_sources
from job_extract.sources.jsearch import hourly_from_hit, salary_from_hit

from conftest import FakeResponse, FakeSession


def _env(key, default=""):
    return {"JSEARCH_API_KEY": "js-key", "SERPAPI_KEY": "secret-serp"}.get(key, default)


JSEARCH_HIT = {
    "job_title": "Senior Data Analyst",
    "employer_name": "Initech",
    "job_apply_link": "https://initech.example/apply/42",
    "job_city": "Austin",
    "job_state": "TX",
    "job_country": "US",
    "job_description": "Analyze data for the TPS team.",
    "job_min_salary": 95000,
    "job_max_salary": 120000,
    "job_salary_currency": "USD",
    "job_salary_period": "YEAR",
}


def test_get_sources_registers_configured_apis():
    assert [s.name for s in get_sources(_env)] == ["jsearch", "serpapi"]
    assert get_sources(lambda key, default="": default) == []


def test_jsearch_maps_hits_to_listings():
    session = FakeSession([FakeResponse(200, payload={"data": [JSEARCH_HIT]})])
    source = JSearchSource(_env, timeout=3, session=session)
    [listing] = source.search("Senior Data Analyst Initech")

    assert listing.title == "Senior Data Analyst"
    assert listing.company == "Initech"
    assert listing.url == "https://initech.example/apply/42"
    assert listing.location == "Austin, TX, US"
    assert listing.salary == "$95,000 - $120,000"
    assert listing.hourly_rate is None
    assert listing.source == "jsearch"

    request = session.requests[0]
    assert request["params"]["query"] == "Senior Data Analyst Initech"
    assert request["headers"]["X-RapidAPI-Key"] == "js-key"
    assert request["timeout"] == 3


def test_jsearch_respects_limit():
    session = FakeSession([FakeResponse(200, payload={"data": [JSEARCH_HIT] * 5})])
    assert len(JSearchSource(_env, session=session).search("analyst", limit=2)) == 2


@pytest.mark.parametrize("outcome", [
    FakeResponse(429),
    FakeResponse(403),
    FakeResponse(500),
    FakeResponse(200, payload=None),
    requests.ConnectionError("refused"),
])
def test_jsearch_failures_return_no_listings(outcome):
    source = JSearchSource(_env, session=FakeSession([outcome]))
    assert source.search("analyst") == []


def test_jsearch_pay_helpers():
    assert hourly_from_hit({"job_salary_period": "HOUR", "job_min_salary": 40, "job_max_salary": 55}) == "$40 - $55/hr"
    assert salary_from_hit({"job_salary_period": "HOUR", "job_min_salary": 40, "job_max_salary": 55}) is None
    assert hourly_from_hit({"job_employment_type": "PARTTIME", "job_min_salary": 41600}) == "~$20.00/hr (estimated)"
    assert salary_from_hit({"job_description": "Pay range $80,000 - $100,000 per year"}) == "$80,000 - $100,000 per year"
    assert hourly_from_hit({"job_description": "Starts at $22/hr"}) == "$22/hr"


def test_serpapi_maps_hits_to_listings():
    hit = {
        "title": "Data Analyst",
        "company_name": "Globex",
        "location": "Remote",
        "description": "Dashboards and SQL.",
        "apply_options": [{"title": "Globex Careers", "link": "https://globex.example/apply/7"}],
        "share_link": "https://www.google.com/search?q=globex",
        "detected_extensions": {"salary": "90K–110K a year"},
    }
    session = FakeSession([FakeResponse(200, payload={"jobs_results": [hit]})])
    [listing] = SerpApiSource(_env, session=session).search("Data Analyst Globex")

    assert listing.company == "Globex"
    assert listing.url == "https://globex.example/apply/7"
    assert listing.salary == "90K–110K a year"
    assert listing.hourly_rate is None
    assert session.requests[0]["params"]["engine"] == "google_jobs"


def test_serpapi_hourly_extension():
    hit = {"title": "Barista", "company_name": "Central Perk", "detected_extensions": {"salary": "18–22 an hour"}}
    session = FakeSession([FakeResponse(200, payload={"jobs_results": [hit]})])
    [listing] = SerpApiSource(_env, session=session).search("barista")
    assert listing.salary is None
    assert listing.hourly_rate == "18–22 an hour"


def test_serpapi_errors_do_not_log_the_key(caplog):
    error = requests.ConnectionError("https://serpapi.com/search?api_key=secret-serp")
    source = SerpApiSource(_env, session=FakeSession([error]))
    with caplog.at_level(logging.WARNING):
        assert source.search("analyst") == []
    assert "ConnectionError" in caplog.text
    assert "secret-serp" not in caplog.text
