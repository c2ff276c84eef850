"""Fetch a posting's HTML through a sequential list of public CORS proxies."""
from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any
from urllib.parse import quote

import requests

from job_extract.config import get_env, load_settings
from job_extract.log import get_logger

log = get_logger(__name__)

USER_AGENT = (
    "Mozilla/5.0 (Windows NT 10.0; Win64; x64) AppleWebKit/537.36 "
    "(KHTML, like Gecko) Chrome/120.0.0.0 Safari/537.36"
)
SCRAPINGBEE_ENDPOINT = "https://app.scrapingbee.com/api/v1/"


@dataclass(frozen=True)
class ProxyEndpoint:
    name: str
    template: str
    params: tuple[tuple[str, str], ...] = ()

    def request_url(self, url: str) -> str:
        return self.template.format(url=quote(url, safe=""), raw_url=url)

    def request_params(self, url: str) -> dict[str, str] | None:
        if not self.params:
            return None
        return {k: (url if v == "{url}" else v) for k, v in self.params}


@dataclass
class FetchResult:
    html: str | None = None
    proxy: str | None = None
    errors: list[str] = field(default_factory=list)

    @property
    def ok(self) -> bool:
        return bool(self.html)


def proxies_from_settings(settings: dict[str, Any], env_getter=get_env) -> list[ProxyEndpoint]:
    proxies: list[ProxyEndpoint] = []
    scrapingbee_key = env_getter("SCRAPINGBEE_API_KEY")
    if scrapingbee_key:
        proxies.append(
            ProxyEndpoint(
                name="scrapingbee",
                template=SCRAPINGBEE_ENDPOINT,
                params=(("api_key", scrapingbee_key), ("url", "{url}"), ("render_js", "false")),
            )
        )
    for entry in settings.get("fetch", {}).get("proxies", []):
        try:
            proxies.append(ProxyEndpoint(name=entry["name"], template=entry["template"]))
        except (KeyError, TypeError):
            log.warning("Skipping malformed proxy entry in settings: %r", entry)
    return proxies


class ContentFetcher:
    """Tries each proxy in order; the first usable body wins."""

    def __init__(
        self,
        proxies: list[ProxyEndpoint] | None = None,
        timeout: float | None = None,
        min_content_length: int | None = None,
        session: requests.Session | None = None,
    ) -> None:
        settings = load_settings()
        fetch_cfg = settings["fetch"]
        self.proxies = proxies if proxies is not None else proxies_from_settings(settings)
        self.timeout: float = timeout if timeout is not None else float(fetch_cfg["timeout"])
        self.min_content_length: int = (
            min_content_length if min_content_length is not None
            else int(fetch_cfg["min_content_length"])
        )
        self.session = session or requests.Session()
        self.session.headers.update({
            "User-Agent": USER_AGENT,
            "Accept": "text/html,application/xhtml+xml,application/xml;q=0.9,*/*;q=0.8",
            "Accept-Language": "en-US,en;q=0.9",
        })

    def _try_proxy(self, proxy: ProxyEndpoint, url: str) -> str:
        r = self.session.get(
            proxy.request_url(url),
            params=proxy.request_params(url),
            timeout=self.timeout,
        )
        if not 200 <= r.status_code < 300:
            raise ValueError(f"HTTP {r.status_code}")
        body = r.text or ""
        if len(body.strip()) < self.min_content_length:
            raise ValueError(f"body too short ({len(body.strip())} chars)")
        return body

    def fetch(self, url: str) -> FetchResult:
        result = FetchResult()
        for proxy in self.proxies:
            try:
                html = self._try_proxy(proxy, url)
            except requests.Timeout:
                result.errors.append(f"{proxy.name}: timeout after {self.timeout:.0f}s")
                log.debug("Proxy %s timed out for %s", proxy.name, url)
                continue
            except (requests.RequestException, ValueError) as exc:
                # request errors echo the query string, which may hold an API key
                detail = type(exc).__name__ if proxy.params and not isinstance(exc, ValueError) else str(exc)
                result.errors.append(f"{proxy.name}: {detail}")
                log.debug("Proxy %s failed for %s: %s", proxy.name, url, detail)
                continue
            result.html, result.proxy = html, proxy.name
            log.info("Fetched %s via %s (%d chars)", url, proxy.name, len(html))
            return result

        log.warning("All %d proxies failed for %s", len(self.proxies), url)
        return result
