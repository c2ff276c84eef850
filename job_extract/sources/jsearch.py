"""JSearch API (RapidAPI) lookup of a posting by derived search terms."""
from __future__ import annotations

import requests

from job_extract.cleaning import HOURLY_RE, SALARY_RANGE_RE, clean_text
from job_extract.log import get_logger
from job_extract.models import JobListing
from job_extract.sources.base import JobSearchBase

log = get_logger(__name__)

HOURS_PER_YEAR = 2080


def _amount(value: float) -> str:
    return f"{value:,.0f}"


def salary_from_hit(hit: dict) -> str | None:
    low, high = hit.get("job_min_salary"), hit.get("job_max_salary")
    period = str(hit.get("job_salary_period") or "").upper()
    if low and high and period != "HOUR":
        symbol = "$" if hit.get("job_salary_currency") in ("USD", None, "") else ""
        return f"{symbol}{_amount(low)} - {symbol}{_amount(high)}"
    for match in SALARY_RANGE_RE.finditer(hit.get("job_description") or ""):
        value = clean_text(match.group(0))
        if ("-" in value or " to " in value) and not HOURLY_RE.search(value):
            return value
    return None


def hourly_from_hit(hit: dict) -> str | None:
    match = HOURLY_RE.search(hit.get("job_description") or "")
    if match and "$" in match.group(0):
        return clean_text(match.group(0))
    low = hit.get("job_min_salary")
    if str(hit.get("job_salary_period") or "").upper() == "HOUR" and low:
        high = hit.get("job_max_salary")
        return f"${low:g} - ${high:g}/hr" if high and high != low else f"${low:g}/hr"
    if hit.get("job_employment_type") == "PARTTIME" and low and low > 0:
        return f"~${low / HOURS_PER_YEAR:.2f}/hr (estimated)"
    return None


class JSearchSource(JobSearchBase):
    BASE = "https://jsearch.p.rapidapi.com"
    name = "jsearch"

    def __init__(self, env_getter, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        super().__init__(env_getter, timeout, session)
        self.api_key: str = env_getter("JSEARCH_API_KEY")

    def _fetch(self, query: str, limit: int) -> list[JobListing]:
        r = self.session.get(
            f"{self.BASE}/search",
            params={"query": query, "page": "1", "num_pages": "1", "date_posted": "month"},
            headers={
                "X-RapidAPI-Key": self.api_key,
                "X-RapidAPI-Host": "jsearch.p.rapidapi.com",
            },
            timeout=self.timeout,
        )
        if r.status_code == 403:
            log.warning("JSearch 403 — subscribe at https://rapidapi.com/letscrape-6bRDu3Sgupt/api/jsearch")
            return []
        if r.status_code == 429:
            log.warning("JSearch rate limit hit")
            return []
        r.raise_for_status()
        listings: list[JobListing] = []
        for hit in r.json().get("data", [])[:limit]:
            listings.append(
                JobListing(
                    title=clean_text(hit.get("job_title", "")),
                    company=clean_text(hit.get("employer_name", "")),
                    url=hit.get("job_apply_link") or hit.get("job_google_link") or "",
                    location=", ".join(
                        p for p in (hit.get("job_city"), hit.get("job_state"), hit.get("job_country")) if p
                    ),
                    description=clean_text(hit.get("job_description", "")),
                    salary=salary_from_hit(hit),
                    hourly_rate=hourly_from_hit(hit),
                    source=self.name,
                    raw=hit,
                )
            )
        return listings

    def search(self, query: str, limit: int = 10) -> list[JobListing]:
        try:
            listings = self._fetch(query, limit)
        except (requests.RequestException, ValueError) as exc:
            log.warning("JSearch query=%r error: %s", query, exc)
            return []
        log.debug("JSearch query=%r returned %d listings", query, len(listings))
        return listings
