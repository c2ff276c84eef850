import os

os.environ.setdefault("LOG_TO_FILE", "false")

import pytest
import requests

from job_extract.fetcher import FetchResult
from job_extract.learning import FeedbackLearningStore
from job_extract.models import JobListing
from job_extract.scorer import ConfidenceScorer
from job_extract.service import ExtractionService

POSTING_HTML = """<!doctype html>
<html>
<head>
  <title>Senior Backend Engineer at Globex | LinkedIn</title>
  <meta property="og:description" content="Build the payments platform. Requirements: 5+ years experience.">
</head>
<body>
  <h1>Senior Backend Engineer</h1>
  <div class="job-location">Austin, TX</div>
  <div class="description">We build payments infrastructure. Requirements: Python, 5+ years of experience.
  Compensation: $140,000 - $170,000 per year.</div>
</body>
</html>"""


class FakeFetcher:
    """Stands in for ContentFetcher; counts calls and returns canned HTML."""

    def __init__(self, html=None):
        self.html = html
        self.calls = []

    def fetch(self, url):
        self.calls.append(url)
        if self.html is None:
            return FetchResult(errors=["allorigins: timeout after 5s", "corsproxy: HTTP 503"])
        return FetchResult(html=self.html, proxy="fake")


class FakeSource:
    name = "fake"

    def __init__(self, listings=None):
        self.listings = listings or []
        self.queries = []

    def search(self, query, limit=10):
        self.queries.append(query)
        return self.listings[:limit]


class FakeResponse:
    def __init__(self, status_code=200, text="", payload=None):
        self.status_code = status_code
        self.text = text
        self._payload = payload

    def json(self):
        if self._payload is None:
            raise ValueError("no JSON")
        return self._payload

    def raise_for_status(self):
        if not 200 <= self.status_code < 300:
            raise requests.HTTPError(f"{self.status_code} Error")


class FakeSession:
    """requests.Session double: pops one scripted outcome per GET."""

    def __init__(self, outcomes):
        self.outcomes = list(outcomes)
        self.headers = {}
        self.requests = []

    def get(self, url, params=None, headers=None, timeout=None):
        self.requests.append({"url": url, "params": params, "headers": headers, "timeout": timeout})
        outcome = self.outcomes.pop(0)
        if isinstance(outcome, Exception):
            raise outcome
        return outcome


@pytest.fixture
def posting_html():
    return POSTING_HTML


@pytest.fixture
def make_service():
    def _make(html=None, listings=None, sources=None, learning=None, **kwargs):
        fetcher = FakeFetcher(html)
        if sources is None:
            sources = [FakeSource(listings)] if listings is not None else []
        service = ExtractionService(
            fetcher=fetcher,
            sources=sources,
            scorer=ConfidenceScorer(),
            learning=learning or FeedbackLearningStore(),
            **kwargs,
        )
        return service, fetcher
    return _make


@pytest.fixture
def listing():
    return JobListing(
        title="Senior Data Analyst",
        company="Initech",
        url="https://initech.example/apply/42",
        location="Remote",
        salary="$95,000 - $120,000",
        source="fake",
    )
