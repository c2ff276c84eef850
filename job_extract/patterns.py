"""Per-vendor URL parsers: decode company and title from a posting URL's path.

No network I/O happens here. Each vendor parser is a pure function over a
parsed URL and returns ``(company, position)`` raw strings (either may be
empty); :func:`parse_from_url` dispatches on hostname and runs the values
through :func:`clean_company` / :func:`clean_title`.
"""
from __future__ import annotations

import re
from dataclasses import dataclass
from typing import Callable
from urllib.parse import parse_qs, unquote, urlparse

from job_extract.cleaning import (
    JOB_ROLE_KEYWORDS,
    clean_company,
    clean_title,
    is_valid_company_name,
    is_valid_job_title,
    split_camel_case,
)
from job_extract.log import get_logger
from job_extract.models import ExtractedJobRecord

log = get_logger(__name__)

FALLBACK_SEARCH_QUERY = "software engineer jobs"
_HOST_NOISE = {"www", "jobs", "careers", "career", "boards", "job-boards", "apply", "en", "m"}
_US_STATES = {
    "al", "ak", "az", "ar", "ca", "co", "ct", "de", "fl", "ga", "hi", "id", "il", "in",
    "ia", "ks", "ky", "la", "me", "md", "ma", "mi", "mn", "ms", "mo", "mt", "ne", "nv",
    "nh", "nj", "nm", "ny", "nc", "nd", "oh", "ok", "or", "pa", "ri", "sc", "sd", "tn",
    "tx", "ut", "vt", "va", "wa", "wv", "wi", "wy", "dc",
}


@dataclass(frozen=True)
class ParsedUrl:
    hostname: str
    segments: tuple[str, ...]   # decoded, lower-cased
    raw_segments: tuple[str, ...]   # decoded, original case
    query: dict[str, list[str]]

    @property
    def first_label(self) -> str:
        labels = [p for p in self.hostname.split(".") if p not in _HOST_NOISE]
        return labels[0] if labels else ""

    def after(self, marker: str) -> str:
        """Segment following the first segment equal to *marker*."""
        for i, seg in enumerate(self.segments[:-1]):
            if seg == marker:
                return self.segments[i + 1]
        return ""

    def param(self, *names: str) -> str:
        for name in names:
            values = self.query.get(name)
            if values and values[0].strip():
                return values[0].strip()
        return ""


VendorParser = Callable[[ParsedUrl], "tuple[str, str]"]


def parse_url(url: str) -> ParsedUrl | None:
    try:
        parsed = urlparse(url.strip())
    except (ValueError, AttributeError):
        return None
    if not parsed.hostname:
        return None
    raw = tuple(unquote(s) for s in parsed.path.split("/") if s)
    return ParsedUrl(
        hostname=parsed.hostname.lower(),
        segments=tuple(s.lower() for s in raw),
        raw_segments=raw,
        query=parse_qs(parsed.query),
    )


def _strip_trailing_id(slug: str) -> str:
    """``senior-engineer-3712345678`` → ``senior-engineer``; also hex hashes."""
    slug = re.sub(r"[-_](?=[0-9a-f]*\d)[0-9a-f]{6,}$", "", slug)
    return re.sub(r"[-_]\d+$", "", slug)


def _strip_leading_id(slug: str) -> str:
    return re.sub(r"^\d+[-_]", "", slug)


def _is_id(segment: str) -> bool:
    return bool(re.fullmatch(r"[0-9a-f-]{6,}|\d+|[a-z]{0,3}\d{3,}[\w-]*", segment))


# ── Vendors ──────────────────────────────────────────────────────────────


def _linkedin(u: ParsedUrl) -> tuple[str, str]:
    # /jobs/view/senior-software-engineer-at-acme-corp-3712345678
    slug = u.after("view")
    if slug and "-at-" in slug:
        title, _, company = _strip_trailing_id(slug).rpartition("-at-")
        return company, title
    company = u.after("company")
    return company, ""


def _indeed(u: ParsedUrl) -> tuple[str, str]:
    # /cmp/Acme-Corp/jobs/Senior-Engineer-4f2a9b1c7d
    company = u.after("cmp")
    title = _strip_trailing_id(u.after("jobs")) if company else ""
    if not title:
        for seg in u.segments:
            # /q-software-engineer-l-austin,-tx-jobs.html
            m = re.match(r"q-(.+?)(?:-l-.+)?-jobs(?:\.html)?$", seg)
            if m:
                title = m.group(1)
                break
    if not title:
        title = u.param("q")
    return company, title


_GLASSDOOR_OFFSETS = re.compile(r"_ko(\d+),(\d+)(?:_ke(\d+),(\d+))?")


def _glassdoor(u: ParsedUrl) -> tuple[str, str]:
    # /job-listing/senior-engineer-acme-corp-JV_IC1147401_KO0,15_KE16,25.htm
    slug = u.after("job-listing") or (u.segments[-1] if u.segments else "")
    slug = re.sub(r"\.html?$", "", slug)
    head, sep, tail = slug.partition("-jv_")
    if not sep:
        return "", ""
    offsets = _GLASSDOOR_OFFSETS.search(tail)
    if offsets and offsets.group(3):
        title = head[int(offsets.group(1)):int(offsets.group(2))]
        company = head[int(offsets.group(3)):int(offsets.group(4))]
        if title and company:
            return company, title
    tokens = head.split("-")
    if len(tokens) < 3:
        return "", head
    return "-".join(tokens[-2:]), "-".join(tokens[:-2])


def _wellfound(u: ParsedUrl) -> tuple[str, str]:
    # /company/acme/jobs/123456-senior-engineer
    company = u.after("company")
    title = _strip_leading_id(u.after("jobs")) if u.after("jobs") else ""
    if not title and u.after("l"):
        # /l/senior-engineer/acme
        title = u.after("l")
    return company, title


def _greenhouse(u: ParsedUrl) -> tuple[str, str]:
    # boards.greenhouse.io/acme/jobs/12345 or acme.greenhouse.io
    if u.hostname.split(".")[0] in ("boards", "job-boards", "www", "app"):
        company = u.segments[0] if u.segments else ""
    else:
        company = u.hostname.split(".")[0]
    title = u.after("jobs")
    if _is_id(title):
        title = ""
    return company, title


def _lever(u: ParsedUrl) -> tuple[str, str]:
    # jobs.lever.co/acme/8c1f0e6a-...
    company = u.segments[0] if u.segments else ""
    return company, ""


def _workday(u: ParsedUrl) -> tuple[str, str]:
    # acme.wd5.myworkdayjobs.com/en-US/External/job/Remote-USA/Senior-Engineer_R-12345
    company = u.hostname.split(".")[0]
    title = ""
    if "job" in u.segments:
        tail = u.segments[u.segments.index("job") + 1:]
        if tail:
            title = tail[-1]
    return company, title


def _ziprecruiter(u: ParsedUrl) -> tuple[str, str]:
    # /c/Acme-Corp/Job/Senior-Engineer/-in-Austin,TX
    company = u.after("c")
    title = u.after("job") if company else ""
    if not company and u.after("jobs"):
        # /jobs/acme-corp-1a2b3c4d/senior-engineer-9f8e7d6c
        company = _strip_trailing_id(u.after("jobs"))
        idx = u.segments.index("jobs")
        if idx + 2 < len(u.segments):
            title = _strip_trailing_id(u.segments[idx + 2])
    return company, title


def _monster(u: ParsedUrl) -> tuple[str, str]:
    # /job-openings/senior-engineer-austin-tx--0f2a9c1e-...
    slug = u.after("job-openings")
    if not slug:
        return "", ""
    head = slug.split("--")[0]
    tokens = head.split("-")
    if len(tokens) > 2 and tokens[-1] in _US_STATES:
        tokens = tokens[:-2]
    return "", "-".join(tokens)


def _simplyhired(u: ParsedUrl) -> tuple[str, str]:
    return "", u.param("q")


def _dice(u: ParsedUrl) -> tuple[str, str]:
    # /jobs/detail/senior-engineer/acme-corp/abc123
    slug = u.after("detail")
    if not slug or _is_id(slug):
        return "", ""
    idx = u.segments.index("detail")
    company = u.segments[idx + 2] if idx + 2 < len(u.segments) else ""
    if company and _is_id(company):
        company = ""
    return company, slug


def _careerbuilder(u: ParsedUrl) -> tuple[str, str]:
    slug = u.after("jobs")
    if slug and not _is_id(slug):
        return "", slug
    return "", u.param("keywords")


def _bamboohr(u: ParsedUrl) -> tuple[str, str]:
    # acme.bamboohr.com/careers/123
    return u.hostname.split(".")[0], ""


def _smartrecruiters(u: ParsedUrl) -> tuple[str, str]:
    # jobs.smartrecruiters.com/AcmeCorp/743999-senior-software-engineer
    if not u.raw_segments:
        return "", ""
    company = split_camel_case(u.raw_segments[0])
    title = _strip_leading_id(u.segments[1]) if len(u.segments) > 1 else ""
    return company, title


def _workable(u: ParsedUrl) -> tuple[str, str]:
    # apply.workable.com/acme/j/ABC123/
    company = u.segments[0] if u.segments and u.segments[0] != "j" else ""
    if not company and u.hostname.split(".")[0] not in _HOST_NOISE:
        company = u.hostname.split(".")[0]
    return company, ""


def _generic_careers(u: ParsedUrl) -> tuple[str, str]:
    markers = [i for i, seg in enumerate(u.segments) if seg in ("careers", "jobs", "career", "job")]
    if not markers:
        return "", ""
    title = ""
    for seg in u.segments[markers[0] + 1:]:
        candidate = _strip_trailing_id(_strip_leading_id(seg))
        if _is_id(candidate) or len(candidate) < 3:
            continue
        if "-" in candidate or _has_role_keyword(candidate):
            title = candidate
    return u.first_label, title


# Order matters: first hostname substring match wins.
VENDOR_PARSERS: list[tuple[str, str, VendorParser]] = [
    ("linkedin.com", "LinkedIn", _linkedin),
    ("indeed.com", "Indeed", _indeed),
    ("glassdoor.", "Glassdoor", _glassdoor),
    ("wellfound.com", "Wellfound", _wellfound),
    ("angel.co", "AngelList", _wellfound),
    ("greenhouse.io", "Greenhouse", _greenhouse),
    ("lever.co", "Lever", _lever),
    ("myworkdayjobs.com", "Workday", _workday),
    ("myworkdaysite.com", "Workday", _workday),
    ("ziprecruiter.com", "ZipRecruiter", _ziprecruiter),
    ("monster.com", "Monster", _monster),
    ("simplyhired.com", "SimplyHired", _simplyhired),
    ("dice.com", "Dice", _dice),
    ("careerbuilder.com", "CareerBuilder", _careerbuilder),
    ("bamboohr.com", "BambooHR", _bamboohr),
    ("smartrecruiters.com", "SmartRecruiters", _smartrecruiters),
    ("workable.com", "Workable", _workable),
]


def vendor_for(url_or_host: str) -> str | None:
    """Name of the known job board serving *url_or_host*, if any."""
    host = url_or_host.lower()
    if "://" in host:
        parsed = parse_url(host)
        host = parsed.hostname if parsed else host
    for needle, name, _ in VENDOR_PARSERS:
        if needle in host:
            return name
    return None


def _has_role_keyword(text: str) -> bool:
    low = text.replace("-", " ").replace("_", " ").lower()
    return any(re.search(r"\b%s\b" % re.escape(k), low) for k in JOB_ROLE_KEYWORDS)


def parse_from_url(url: str) -> ExtractedJobRecord:
    """Decode company/position from the URL alone; all-empty when unknown."""
    record = ExtractedJobRecord(source_url=url)
    parsed = parse_url(url)
    if parsed is None:
        return record

    parser: VendorParser | None = None
    vendor = "generic"
    for needle, name, fn in VENDOR_PARSERS:
        if needle in parsed.hostname:
            parser, vendor = fn, name
            break
    if parser is None:
        parser = _generic_careers

    try:
        company, title = parser(parsed)
    except (IndexError, ValueError) as exc:
        log.debug("URL pattern parse failed for %s (%s): %s", vendor, url, exc)
        return record

    company = clean_company(company)
    title = clean_title(title)
    if company and is_valid_company_name(company):
        record.company = company
    if title and is_valid_job_title(title):
        record.position = title
    log.debug("URL pattern [%s] → company=%r position=%r", vendor, record.company, record.position)
    return record


def build_search_query(url: str) -> str:
    """Search terms for a job-search API derived from the posting URL."""
    parsed = parse_url(url)
    if parsed is None:
        return FALLBACK_SEARCH_QUERY

    terms: list[str] = []
    for name in ("q", "query", "keywords", "title", "position"):
        value = parsed.param(name)
        if value and value not in terms:
            terms.append(value)

    hint = parse_from_url(url)
    if hint.company:
        terms.append(hint.company)

    meaningful = [s for s in parsed.segments if len(s) > 2]
    role_segment = next((s for s in meaningful if _has_role_keyword(s)), "")
    if role_segment:
        terms.append(clean_title(role_segment))

    if terms:
        return " ".join(terms)[:200]

    if meaningful:
        last = meaningful[-1]
        if len(last) > 3 and not _is_id(last):
            return re.sub(r"[-_]", " ", last)[:100]

    return FALLBACK_SEARCH_QUERY
