"""Field cleaners, validators and shared regexes for extracted job data."""
from __future__ import annotations

import html
import re
from urllib.parse import urlparse

UPPERCASE_ACRONYMS: frozenset[str] = frozenset({
    "UI", "UX", "API", "SQL", "AWS", "QA", "IT", "HR", "VP", "CEO", "CTO", "CFO",
})

LEGAL_ENTITY_WORDS: tuple[str, ...] = (
    "inc", "incorporated", "llc", "llp", "ltd", "limited", "corp", "corporation",
    "co", "company", "plc", "gmbh", "lp",
)

# Words that make a string look like a job title rather than a company.
JOB_ROLE_KEYWORDS: tuple[str, ...] = (
    "engineer", "developer", "manager", "analyst", "designer", "specialist",
    "coordinator", "director", "scientist", "consultant", "architect",
    "administrator", "intern", "technician", "associate", "representative",
    "recruiter", "accountant", "assistant", "lead", "senior", "junior",
    "principal", "head of", "officer", "programmer", "writer", "nurse",
)

# Job boards and placeholder strings that are never the hiring company.
PLATFORM_NAMES: frozenset[str] = frozenset({
    "linkedin", "indeed", "glassdoor", "greenhouse", "lever", "workday",
    "ziprecruiter", "monster", "simplyhired", "dice", "careerbuilder",
    "bamboohr", "smartrecruiters", "workable", "wellfound", "angellist",
    "job boards", "careers", "jobs", "job", "home", "apply", "career site",
})

GENERIC_TITLES: frozenset[str] = frozenset({
    "job", "jobs", "position", "role", "title", "careers", "career",
    "job detail", "job details", "job opening", "job openings",
    "career opportunity", "open positions", "apply now", "home",
})

_REQ_ID_RE = re.compile(
    r"(?<![a-z0-9])(?:jv_?[a-z]*|r-?|req-?|jr-?|sr-?|job-?id-?)\d[\w]*\b",
    re.IGNORECASE,
)
_LONG_NUMBER_RE = re.compile(r"(?<![a-z0-9])\d{5,}\b", re.IGNORECASE)
_TLD_RE = re.compile(r"\.(?:com|io|co|net|org|ai|dev|app|us|uk)\b", re.IGNORECASE)
_LEGAL_RE = re.compile(r"\b(?:%s)\b\.?" % "|".join(LEGAL_ENTITY_WORDS), re.IGNORECASE)
_TAG_RE = re.compile(r"<[^>]*>")
_WS_RE = re.compile(r"\s+")

_AMOUNT = r"\$\s?\d[\d,]*(?:\.\d+)?\s?[kK]?"
SALARY_RANGE_RE = re.compile(
    _AMOUNT + r"(?:\s*(?:-|–|—|to)\s*\$?\s?\d[\d,]*(?:\.\d+)?\s?[kK]?)?"
    r"(?:\s*(?:/\s?|per\s+|an?\s+)(?:year|yr|annum|annually|hour|hr))?",
    re.IGNORECASE,
)
HOURLY_RE = re.compile(
    r"\$?\s?\d[\d.]*(?:\s*(?:-|–|to)\s*\$?\s?\d[\d.]*)?\s*(?:/\s?(?:hr|hour)\b|per\s+hour|an\s+hour|hourly)",
    re.IGNORECASE,
)


def clean_text(text: str | None) -> str:
    """Strip tags, decode entities and normalise whitespace."""
    if not text:
        return ""
    text = _TAG_RE.sub(" ", text)
    text = html.unescape(text)
    text = text.replace("\u201c", '"').replace("\u201d", '"').replace("\u00a0", " ")
    return _WS_RE.sub(" ", text).strip()


def _title_word(word: str) -> str:
    return word[:1].upper() + word[1:].lower()


def clean_company(text: str | None) -> str:
    """``acme-inc`` → ``Acme``; ``globex.com`` → ``Globex``."""
    if not text:
        return ""
    text = text.split("|")[0]
    text = re.sub(r"[-_]", " ", text)
    text = re.sub(r"\bcareers?\b", " ", text, flags=re.IGNORECASE)
    text = _TLD_RE.sub(" ", text)
    text = _LEGAL_RE.sub(" ", text)
    text = re.sub(r"[^\w\s&]", " ", text)
    words = [w for w in _WS_RE.split(text) if w]
    return " ".join(_title_word(w) for w in words)


def clean_title(text: str | None) -> str:
    """``senior-ui-engineer`` → ``Senior UI Engineer``."""
    if not text:
        return ""
    text = text.split("|")[0]
    text = _REQ_ID_RE.sub(" ", text)
    text = _LONG_NUMBER_RE.sub(" ", text)
    text = re.sub(r"[-_+]", " ", text)
    text = re.sub(r"[^\w\s()&,#]", " ", text)
    words = [w for w in _WS_RE.split(text) if w]
    cleaned: list[str] = []
    for word in words:
        if word.upper() in UPPERCASE_ACRONYMS:
            cleaned.append(word.upper())
        else:
            cleaned.append(_title_word(word))
    return " ".join(cleaned).strip(" ,")


def split_camel_case(text: str) -> str:
    return re.sub(r"(?<=[a-z])(?=[A-Z])", " ", text)


def looks_like_job_title(text: str) -> bool:
    low = text.lower()
    return any(re.search(r"\b%s\b" % re.escape(k), low) for k in JOB_ROLE_KEYWORDS)


def is_valid_company_name(name: str | None) -> bool:
    if not name:
        return False
    name = name.strip()
    if not 2 <= len(name) <= 100:
        return False
    if re.fullmatch(r"[\d\s.,#-]+", name):
        return False
    if name.lower() in PLATFORM_NAMES:
        return False
    # "Senior Software Engineer" picked up as a company
    if len(name.split()) >= 2 and looks_like_job_title(name):
        return False
    return True


def is_valid_job_title(title: str | None) -> bool:
    if not title:
        return False
    title = title.strip()
    if not 3 <= len(title) <= 200:
        return False
    if re.fullmatch(r"[\d\s.,#-]+", title):
        return False
    return title.lower() not in GENERIC_TITLES


def is_valid_salary(salary: str | None) -> bool:
    """An amount with a currency sign, a ``k`` suffix or an ISO currency code."""
    if not salary:
        return False
    return bool(
        re.search(r"[$£€]\s?\d", salary)
        or re.search(r"\d[\d,.]*\s?[kK]\b", salary)
        or re.search(r"\d[\d,.]*\s?(?:USD|EUR|GBP|CAD|AUD|INR)\b", salary)
    )


def find_salary(text: str) -> tuple[str | None, str | None]:
    """Return ``(salary, hourly_rate)`` found in free text; either may be None."""
    if not text:
        return None, None
    hourly = HOURLY_RE.search(text)
    hourly_value = clean_text(hourly.group(0)) if hourly and "$" in hourly.group(0) else None
    for match in SALARY_RANGE_RE.finditer(text):
        value = clean_text(match.group(0))
        if hourly_value and value in hourly_value:
            continue
        if re.search(r"(?:hour|hr)\b", value, re.IGNORECASE):
            hourly_value = hourly_value or value
            continue
        return value, hourly_value
    return None, hourly_value


def domain_of(url: str | None) -> str:
    """Hostname used as the key for learned corrections and reliability."""
    try:
        host = urlparse(url or "").hostname
    except ValueError:
        return "unknown"
    return host.lower() if host else "unknown"


def is_valid_url(url: str | None) -> bool:
    if not url or not isinstance(url, str):
        return False
    try:
        parsed = urlparse(url.strip())
    except ValueError:
        return False
    return parsed.scheme in ("http", "https") and bool(parsed.netloc) and " " not in url.strip()


def normalize_value(value: str) -> str:
    """Case/whitespace-insensitive key used when comparing candidates."""
    return _WS_RE.sub(" ", value).strip().lower()
