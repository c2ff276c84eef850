"""Recover job fields from fetched HTML: title/Open Graph, JSON-LD, CSS classes.

Each field has an ordered cascade of small functions ``(page) -> str | None``;
the first one producing a valid value wins.
"""
from __future__ import annotations

import json
import math
import re
from dataclasses import dataclass
from functools import cached_property
from typing import Any, Callable

from bs4 import BeautifulSoup

from job_extract.cleaning import (
    PLATFORM_NAMES,
    clean_text,
    find_salary,
    is_valid_company_name,
    is_valid_job_title,
    is_valid_salary,
)
from job_extract.log import get_logger
from job_extract.models import ExtractedJobRecord

log = get_logger(__name__)

DESCRIPTION_LIMIT = 1000

COMPANY_CLASS_RE = re.compile(r"company|employer|organization|hiring-org", re.I)
TITLE_CLASS_RE = re.compile(r"job-?title|posting-headline|position-title|jobsearch-jobinfoheader-title", re.I)
SALARY_CLASS_RE = re.compile(r"salary|compensation|pay-range|payrange", re.I)
LOCATION_CLASS_RE = re.compile(r"location", re.I)
DESCRIPTION_CLASS_RE = re.compile(r"job-?description|posting-description|description", re.I)

_PHRASE_SEPARATORS: list[tuple[str, bool]] = [
    # (separator, company comes first)
    (" hiring ", True),
    (" at ", False),
]
_PIPE_RE = re.compile(r"\s+\|\s+")
_DASH_RE = re.compile(r"\s+[-–]\s+")


@dataclass
class Page:
    """Parsed document shared by every field cascade."""
    soup: BeautifulSoup
    url: str = ""

    def meta(self, key: str) -> str:
        tag = self.soup.find("meta", attrs={"property": key}) or self.soup.find("meta", attrs={"name": key})
        if tag is None:
            return ""
        return clean_text(tag.get("content", ""))

    @cached_property
    def title_text(self) -> str:
        og = self.meta("og:title")
        if og:
            return og
        if self.soup.title and self.soup.title.string:
            return clean_text(self.soup.title.string)
        return ""

    @cached_property
    def title_parts(self) -> tuple[str, str]:
        return split_title(self.title_text)

    @cached_property
    def job_posting(self) -> dict[str, Any]:
        for posting in iter_json_ld(self.soup):
            return posting
        return {}

    @cached_property
    def text(self) -> str:
        body = self.soup.body or self.soup
        return clean_text(body.get_text(" "))

    def by_class(self, pattern: re.Pattern, limit: int = 200) -> list[str]:
        values: list[str] = []
        for tag in self.soup.find_all(class_=pattern):
            if tag.name in ("script", "style", "meta", "link"):
                continue
            value = clean_text(tag.get_text(" "))
            if value and len(value) <= limit:
                values.append(value)
        return values


def _is_platform(part: str) -> bool:
    low = part.lower().strip()
    return low in PLATFORM_NAMES or low.endswith(".com")


def _strip_company_noise(name: str) -> str:
    return re.sub(r"\s+(?:careers|jobs|job board|hiring)$", "", name, flags=re.I).strip()


def _title_parts(text: str, pattern: re.Pattern) -> list[str]:
    parts = [p.strip() for p in pattern.split(text) if p.strip()]
    return [p for p in parts if not _is_platform(p)] or parts


def split_title(text: str) -> tuple[str, str]:
    """Split a page title into ``(position, company)``.

    ``"Acme hiring Senior Engineer in Austin, TX | LinkedIn"`` puts the company
    first; ``"Senior Engineer at Acme"``, ``"Senior Engineer | Acme"`` and
    ``"Senior Engineer - Acme | LinkedIn"`` put it last. Job-board names are
    dropped before the dash split.
    """
    if not text or not text.strip():
        return "", ""
    low = text.lower()
    for sep, company_first in _PHRASE_SEPARATORS:
        idx = low.find(sep)
        if idx <= 0:
            continue
        head, tail = text[:idx].strip(), text[idx + len(sep):].strip()
        if not tail:
            continue
        if company_first:
            position = re.split(r"\s+in\s+|\s+[|\-–]\s+", tail)[0]
            return position.strip(), _strip_company_noise(head)
        # Greenhouse: "Job Application for Senior Engineer at Acme"
        head = re.sub(r"^job application for\s+", "", head, flags=re.I)
        company = re.split(r"\s+[|\-–]\s+", tail)[0]
        return head, _strip_company_noise(company)

    kept = _title_parts(text.strip(), _PIPE_RE)
    if len(kept) == 1:
        kept = _title_parts(kept[0], _DASH_RE)
    company = _strip_company_noise(kept[1]) if len(kept) > 1 else ""
    return kept[0], company


def _walk_json_ld(node: Any):
    if isinstance(node, list):
        for item in node:
            yield from _walk_json_ld(item)
    elif isinstance(node, dict):
        node_type = node.get("@type")
        types = node_type if isinstance(node_type, list) else [node_type]
        if "JobPosting" in types:
            yield node
        if "@graph" in node:
            yield from _walk_json_ld(node["@graph"])


def iter_json_ld(soup: BeautifulSoup):
    """Yield every JSON-LD object typed ``JobPosting`` in the document."""
    for script in soup.find_all("script", attrs={"type": re.compile(r"ld\+json", re.I)}):
        raw = script.string or script.get_text() or ""
        if not raw.strip():
            continue
        try:
            data = json.loads(raw)
        except ValueError:
            log.debug("Skipping malformed JSON-LD block (%d chars)", len(raw))
            continue
        yield from _walk_json_ld(data)


def _money(value: Any, currency: str) -> str:
    try:
        number = float(str(value).replace(",", ""))
    except ValueError:
        return str(value)
    if not math.isfinite(number):
        return str(value)
    symbol = "$" if currency.upper() in ("USD", "") else ""
    amount = f"{number:,.2f}" if number < 1000 and number != int(number) else f"{number:,.0f}"
    return f"{symbol}{amount}" if symbol else f"{amount} {currency.upper()}"


def format_base_salary(base: Any) -> tuple[str | None, bool]:
    """Render a JSON-LD ``baseSalary``; returns ``(text, is_hourly)``."""
    if base in (None, "", {}):
        return None, False
    if isinstance(base, (str, int, float)):
        return clean_text(str(base)), False
    if not isinstance(base, dict):
        return None, False
    currency = str(base.get("currency") or "")
    value = base.get("value", base)
    unit = ""
    if isinstance(value, dict):
        unit = str(value.get("unitText") or "").upper()
        low, high = value.get("minValue"), value.get("maxValue")
        single = value.get("value")
        if low is not None and high is not None and low != high:
            text = f"{_money(low, currency)} - {_money(high, currency)}"
        elif single is not None or low is not None or high is not None:
            text = _money(single if single is not None else (low if low is not None else high), currency)
        else:
            return None, False
    else:
        text = _money(value, currency)
    hourly = unit == "HOUR"
    if unit:
        text += {"HOUR": " per hour", "YEAR": " per year", "MONTH": " per month"}.get(unit, "")
    return text, hourly


# ── Cascades ─────────────────────────────────────────────────────────────


def _position_from_title(page: Page) -> str | None:
    return page.title_parts[0] or None


def _position_from_json_ld(page: Page) -> str | None:
    return clean_text(str(page.job_posting.get("title", ""))) or None


def _position_from_css(page: Page) -> str | None:
    return next((v for v in page.by_class(TITLE_CLASS_RE) if is_valid_job_title(v)), None)


def _position_from_h1(page: Page) -> str | None:
    h1 = page.soup.find("h1")
    return clean_text(h1.get_text(" ")) if h1 else None


def _company_from_title(page: Page) -> str | None:
    return page.title_parts[1] or None


def _company_from_site_name(page: Page) -> str | None:
    name = page.meta("og:site_name")
    return _strip_company_noise(name) if name and not _is_platform(name) else None


def _company_from_json_ld(page: Page) -> str | None:
    org = page.job_posting.get("hiringOrganization")
    if isinstance(org, dict):
        org = org.get("name")
    return clean_text(str(org)) if org else None


def _company_from_css(page: Page) -> str | None:
    return next((v for v in page.by_class(COMPANY_CLASS_RE, limit=100) if is_valid_company_name(v)), None)


def _salary_from_json_ld(page: Page) -> str | None:
    text, hourly = format_base_salary(page.job_posting.get("baseSalary"))
    return None if hourly else text


def _salary_from_css(page: Page) -> str | None:
    for value in page.by_class(SALARY_CLASS_RE):
        salary, _ = find_salary(value)
        if salary:
            return salary
    return None


def _salary_from_text(page: Page) -> str | None:
    return find_salary(page.text)[0]


def _hourly_from_json_ld(page: Page) -> str | None:
    text, hourly = format_base_salary(page.job_posting.get("baseSalary"))
    return text if hourly else None


def _hourly_from_text(page: Page) -> str | None:
    return find_salary(page.text)[1]


def _location_from_json_ld(page: Page) -> str | None:
    loc = page.job_posting.get("jobLocation")
    if isinstance(loc, list):
        loc = loc[0] if loc else None
    if isinstance(loc, dict):
        address = loc.get("address", {})
        if isinstance(address, dict):
            parts = [address.get(k) for k in ("addressLocality", "addressRegion", "addressCountry")]
            text = ", ".join(str(p) for p in parts if p and not isinstance(p, dict))
            if text:
                return text
        elif address:
            return clean_text(str(address))
    if str(page.job_posting.get("jobLocationType", "")).upper() == "TELECOMMUTE":
        return "Remote"
    return None


def _location_from_css(page: Page) -> str | None:
    return next(iter(page.by_class(LOCATION_CLASS_RE, limit=100)), None)


def _description_from_json_ld(page: Page) -> str | None:
    raw = page.job_posting.get("description")
    if not raw:
        return None
    return clean_text(BeautifulSoup(str(raw), "html.parser").get_text(" ")) or None


def _description_from_css(page: Page) -> str | None:
    return next(iter(page.by_class(DESCRIPTION_CLASS_RE, limit=100_000)), None)


def _description_from_og(page: Page) -> str | None:
    return page.meta("og:description") or None


Cascade = list[Callable[[Page], "str | None"]]

FIELD_CASCADES: dict[str, tuple[Cascade, Callable[[str], bool]]] = {
    "position": (
        [_position_from_title, _position_from_json_ld, _position_from_css, _position_from_h1],
        is_valid_job_title,
    ),
    "company": (
        [_company_from_title, _company_from_json_ld, _company_from_site_name, _company_from_css],
        is_valid_company_name,
    ),
    "salary": ([_salary_from_json_ld, _salary_from_css, _salary_from_text], is_valid_salary),
    "hourly_rate": ([_hourly_from_json_ld, _hourly_from_text], bool),
    "location": ([_location_from_json_ld, _location_from_css], bool),
    "description": ([_description_from_json_ld, _description_from_css, _description_from_og], bool),
}


def first_match(page: Page, cascade: Cascade, valid: Callable[[str], bool]) -> str | None:
    for fn in cascade:
        try:
            value = fn(page)
        except (AttributeError, KeyError, TypeError, ValueError) as exc:
            log.debug("%s raised %s", fn.__name__, exc)
            continue
        if value and valid(value):
            return value
    return None


class HtmlExtractor:
    """Metadata-first extraction over arbitrary job-posting HTML."""

    def __init__(self, cascades: dict[str, tuple[Cascade, Callable[[str], bool]]] | None = None) -> None:
        self.cascades = cascades or FIELD_CASCADES

    def page(self, html: str, url: str = "") -> Page:
        return Page(soup=BeautifulSoup(html or "", "html.parser"), url=url)

    def extract(self, html: str, url: str = "") -> ExtractedJobRecord:
        record = ExtractedJobRecord(source_url=url)
        if not html or not html.strip():
            return record
        page = self.page(html, url)
        for name, (cascade, valid) in self.cascades.items():
            value = first_match(page, cascade, valid)
            if value:
                if name == "description":
                    value = value[:DESCRIPTION_LIMIT]
                setattr(record, name, value)
        log.debug(
            "HTML extraction %s → company=%r position=%r salary=%r",
            url, record.company, record.position, record.salary,
        )
        return record
