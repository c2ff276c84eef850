"""Pull job fields out of pasted text such as recruiter e-mails."""
from __future__ import annotations

import re
from typing import Callable, Optional

from job_extract.cleaning import (
    clean_text,
    find_salary,
    is_valid_company_name,
    is_valid_job_title,
    is_valid_salary,
    looks_like_job_title,
)
from job_extract.log import get_logger
from job_extract.models import ExtractedJobRecord

log = get_logger(__name__)

NOTES_LIMIT = 1000
UNSTRUCTURED_DIAGNOSTIC = (
    "No structured job fields found in the text; it was kept in notes. "
    "Please fill company and position manually."
)
IDENTITY_MISSING_DIAGNOSTIC = (
    "Company and position not found in the text; it was kept in notes. "
    "Please fill them manually."
)

_LINE_END = r"[ \t]*([^\n\r]+)"


def _label(*names: str) -> re.Pattern:
    return re.compile(r"^[ \t>*-]*(?:%s)[ \t]*:%s" % ("|".join(names), _LINE_END), re.I | re.M)


COMPANY_LABEL_RE = _label("company", "company name", "employer", "organization", "hiring company")
POSITION_LABEL_RE = _label("position", "role", "job title", "title", "opening")
SALARY_LABEL_RE = _label("salary", "compensation", "pay", "wage", "salary range", "base salary")
LOCATION_LABEL_RE = _label("location", "based in", "office", "work location")
LOOKING_FOR_RE = re.compile(
    r"(?:we are|we're)\s+(?:looking for|hiring|seeking)\s+(?:an?\s+)?([^\n\r.,;!]+)", re.I
)
AT_PHRASE_RE = re.compile(
    r"(?P<position>[A-Za-z][\w /&+,()-]{2,80}?)\s+(?:at|@)\s+(?P<company>[A-Z][\w&.' -]{1,60}?)"
    r"\s*(?:[!.,;:(]|\s-\s|$)",
    re.M,
)
SUBJECT_PREFIX_RE = re.compile(r"^\s*(?:subject|re|fwd?)\s*:\s*", re.I)
WORK_MODE_RE = re.compile(r"\b(remote|hybrid|on-?site)\b", re.I)

Extractor = Callable[[str], Optional[str]]


def _tidy(value: str) -> str:
    return clean_text(value).strip(" .,;:-")


def _labelled(pattern: re.Pattern) -> Extractor:
    def extract(text: str) -> str | None:
        match = pattern.search(text)
        return _tidy(match.group(1)) if match else None
    extract.__name__ = f"labelled_{pattern.pattern[:20]}"
    return extract


def _at_phrases(text: str):
    for line in text.splitlines():
        line = SUBJECT_PREFIX_RE.sub("", line)
        for match in AT_PHRASE_RE.finditer(line):
            position, company = _tidy(match.group("position")), _tidy(match.group("company"))
            if looks_like_job_title(position) and is_valid_company_name(company):
                yield position, company


def _company_from_at_phrase(text: str) -> str | None:
    return next((company for _, company in _at_phrases(text)), None)


def _position_from_at_phrase(text: str) -> str | None:
    return next((position for position, _ in _at_phrases(text)), None)


def _position_from_looking_for(text: str) -> str | None:
    match = LOOKING_FOR_RE.search(text)
    if not match:
        return None
    value = _tidy(match.group(1))
    # "We are looking for a Senior Engineer to join our team"
    value = re.split(r"\s+(?:to|who|with|for)\s+", value, maxsplit=1)[0]
    return value if looks_like_job_title(value) else None


_salary_label = _labelled(SALARY_LABEL_RE)


def _salary_from_label(text: str) -> str | None:
    value = _salary_label(text)
    if value and re.search(r"(?:hour|hr)\b", value, re.I):
        return None
    return value


def _salary_from_amounts(text: str) -> str | None:
    return find_salary(text)[0]


def _hourly_from_amounts(text: str) -> str | None:
    return find_salary(text)[1]


def _location_from_work_mode(text: str) -> str | None:
    match = WORK_MODE_RE.search(text)
    return match.group(1).capitalize() if match else None


FIELD_PATTERNS: dict[str, tuple[list[Extractor], Callable[[str], bool]]] = {
    "company": ([_labelled(COMPANY_LABEL_RE), _company_from_at_phrase], is_valid_company_name),
    "position": (
        [_labelled(POSITION_LABEL_RE), _position_from_at_phrase, _position_from_looking_for],
        is_valid_job_title,
    ),
    "salary": ([_salary_from_label, _salary_from_amounts], is_valid_salary),
    "hourly_rate": ([_hourly_from_amounts], bool),
    "location": ([_labelled(LOCATION_LABEL_RE), _location_from_work_mode], bool),
}


def extract_from_text(text: str, source_url: str = "") -> ExtractedJobRecord:
    """First matching pattern per field wins.

    When neither company nor position is found the leading text is kept in
    ``notes`` together with a diagnostic, so a failure record is never silent.
    """
    record = ExtractedJobRecord(source_url=source_url)
    text = text or ""
    for name, (extractors, valid) in FIELD_PATTERNS.items():
        for extractor in extractors:
            value = extractor(text)
            if value and valid(value):
                setattr(record, name, value)
                break

    if not any(record.get(f) for f in FIELD_PATTERNS):
        record.notes = text[:NOTES_LIMIT] or None
        record.diagnostic = UNSTRUCTURED_DIAGNOSTIC
        log.info("No structured fields in %d chars of text", len(text))
    elif record.is_failure:
        record.notes = text[:NOTES_LIMIT] or None
        record.diagnostic = IDENTITY_MISSING_DIAGNOSTIC
        log.info("Text gave %s but no company or position", ", ".join(record.fields()))
    else:
        log.debug("Text extraction found: %s", ", ".join(record.fields()))
    return record
