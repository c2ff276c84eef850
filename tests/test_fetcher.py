import requests

from job_extract.fetcher import ContentFetcher, ProxyEndpoint, proxies_from_settings

from conftest import FakeResponse, FakeSession

PAGE = "<html><body>" + "Senior Engineer at Acme. " * 20 + "</body></html>"

PROXIES = [
    ProxyEndpoint(name="first", template="https://first.example/raw?url={url}"),
    ProxyEndpoint(name="second", template="https://second.example/?{url}"),
    ProxyEndpoint(name="third", template="https://third.example/fetch/{raw_url}"),
    ProxyEndpoint(name="fourth", template="https://fourth.example/?q={url}"),
]


def _fetcher(outcomes, proxies=PROXIES):
    session = FakeSession(outcomes)
    return ContentFetcher(proxies=proxies, timeout=5, min_content_length=100, session=session), session


def test_first_usable_body_wins_and_stops_the_cascade():
    fetcher, session = _fetcher([
        FakeResponse(200, "short"),
        FakeResponse(503, PAGE),
        FakeResponse(200, PAGE),
        FakeResponse(200, PAGE),
    ])
    result = fetcher.fetch("https://boards.greenhouse.io/acme/jobs/1")

    assert result.ok
    assert result.proxy == "third"
    assert result.html == PAGE
    assert len(session.requests) == 3
    assert result.errors == ["first: body too short (5 chars)", "second: HTTP 503"]


def test_every_failure_is_reported():
    fetcher, _ = _fetcher([
        requests.Timeout(),
        requests.ConnectionError("refused"),
        FakeResponse(404, "missing"),
        FakeResponse(200, ""),
    ])
    result = fetcher.fetch("https://example.com/jobs/1")

    assert not result.ok
    assert result.html is None
    assert len(result.errors) == 4
    assert result.errors[0] == "first: timeout after 5s"
    assert result.errors[1] == "second: refused"
    assert result.errors[2] == "third: HTTP 404"


def test_proxy_urls_encode_the_target():
    fetcher, session = _fetcher([FakeResponse(200, PAGE)])
    fetcher.fetch("https://example.com/jobs?id=7")
    request = session.requests[0]
    assert request["url"] == "https://first.example/raw?url=https%3A%2F%2Fexample.com%2Fjobs%3Fid%3D7"
    assert request["timeout"] == 5


def test_raw_url_template_keeps_the_target_verbatim():
    assert PROXIES[2].request_url("https://example.com/a") == "https://third.example/fetch/https://example.com/a"


def test_scrapingbee_goes_first_and_its_key_never_leaks():
    def env(key, default=""):
        return "secret-key" if key == "SCRAPINGBEE_API_KEY" else default

    settings = {"fetch": {"proxies": [{"name": "first", "template": "https://first.example/?{url}"}]}}
    proxies = proxies_from_settings(settings, env_getter=env)
    assert [p.name for p in proxies] == ["scrapingbee", "first"]

    fetcher, session = _fetcher(
        [requests.ConnectionError("https://app.scrapingbee.com/api/v1/?api_key=secret-key"), FakeResponse(200, PAGE)],
        proxies=proxies,
    )
    result = fetcher.fetch("https://example.com/jobs/1")

    assert result.proxy == "first"
    assert session.requests[0]["params"]["api_key"] == "secret-key"
    assert session.requests[0]["params"]["url"] == "https://example.com/jobs/1"
    assert result.errors == ["scrapingbee: ConnectionError"]
    assert all("secret-key" not in e for e in result.errors)


def test_no_scrapingbee_without_key():
    proxies = proxies_from_settings({"fetch": {"proxies": []}}, env_getter=lambda key, default="": default)
    assert proxies == []


def test_malformed_proxy_entries_are_skipped():
    settings = {"fetch": {"proxies": [{"name": "broken"}, {"name": "ok", "template": "https://ok/?{url}"}]}}
    proxies = proxies_from_settings(settings, env_getter=lambda key, default="": default)
    assert [p.name for p in proxies] == ["ok"]
