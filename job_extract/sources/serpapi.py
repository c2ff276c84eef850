"""SerpAPI Google Jobs lookup."""
from __future__ import annotations

import requests

from job_extract.cleaning import clean_text, find_salary
from job_extract.log import get_logger
from job_extract.models import JobListing
from job_extract.sources.base import JobSearchBase

log = get_logger(__name__)


def _best_apply_link(hit: dict) -> str:
    for opts_key in ("apply_options", "related_links"):
        opts = hit.get(opts_key, [])
        if opts and isinstance(opts, list):
            for opt in opts:
                link = opt.get("link", "")
                if link:
                    return link
    return hit.get("share_link", "") or hit.get("link", "")


def _pay(hit: dict) -> tuple[str | None, str | None]:
    """(salary, hourly) from Google's detected extensions, else the description."""
    detected = (hit.get("detected_extensions") or {}).get("salary")
    if detected:
        detected = clean_text(str(detected))
        if "hour" in detected.lower():
            return None, detected
        return detected, None
    return find_salary(hit.get("description", ""))


class SerpApiSource(JobSearchBase):
    name = "serpapi"

    def __init__(self, env_getter, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        super().__init__(env_getter, timeout, session)
        self.api_key: str = env_getter("SERPAPI_KEY")

    def _fetch(self, query: str, limit: int) -> list[JobListing]:
        r = self.session.get(
            "https://serpapi.com/search",
            params={"engine": "google_jobs", "q": query, "api_key": self.api_key},
            timeout=self.timeout,
        )
        r.raise_for_status()
        listings: list[JobListing] = []
        for hit in r.json().get("jobs_results", [])[:limit]:
            salary, hourly = _pay(hit)
            listings.append(
                JobListing(
                    title=clean_text(hit.get("title", "")),
                    company=clean_text(hit.get("company_name", "")),
                    url=_best_apply_link(hit),
                    location=clean_text(hit.get("location", "")),
                    description=clean_text(hit.get("description", "")),
                    salary=salary,
                    hourly_rate=hourly,
                    source=self.name,
                    raw=hit,
                )
            )
        return listings

    def search(self, query: str, limit: int = 10) -> list[JobListing]:
        try:
            listings = self._fetch(query, limit)
        except (requests.RequestException, ValueError) as exc:
            # the request URL carries api_key; log the exception type only
            log.warning("SerpAPI query=%r error: %s", query, type(exc).__name__)
            return []
        log.debug("SerpAPI query=%r returned %d listings", query, len(listings))
        return listings
