"""Store saved applications in per-table CSV files with file locking."""
from __future__ import annotations

import csv
import fcntl
import uuid
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Any

from job_extract.cleaning import is_valid_url
from job_extract.config import DATA_DIR
from job_extract.log import get_logger
from job_extract.models import ExtractedJobRecord

log = get_logger(__name__)

TABLES: dict[str, list[str]] = {
    "applications": [
        "id", "user_id", "company", "position", "salary", "hourly_rate", "location",
        "job_url", "status", "date_applied", "notes", "created_at", "updated_at",
    ],
}
STATUSES: tuple[str, ...] = ("Applied", "Interview", "Offer", "Rejected", "Withdrawn", "Archived")


class ApplicationValidationError(ValueError):
    """Raised before writing when an application is missing required data."""

    def __init__(self, errors: dict[str, str]) -> None:
        self.errors = errors
        super().__init__("; ".join(f"{k}: {v}" for k, v in errors.items()))


def _lock(f, exclusive: bool = True) -> None:
    """Advisory file lock (Unix fcntl)."""
    try:
        op = fcntl.LOCK_EX if exclusive else fcntl.LOCK_SH
        fcntl.flock(f.fileno(), op)
    except (OSError, AttributeError):
        pass


def _unlock(f) -> None:
    try:
        fcntl.flock(f.fileno(), fcntl.LOCK_UN)
    except (OSError, AttributeError):
        pass


def _now() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%d %H:%M")


def _headers(table: str) -> list[str]:
    try:
        return TABLES[table]
    except KeyError:
        raise ValueError(f"Unknown table: {table}") from None


def _table_path(table: str) -> Path:
    return DATA_DIR / f"{table}.csv"


def ensure_table(table: str) -> Path:
    headers = _headers(table)
    path = _table_path(table)
    path.parent.mkdir(parents=True, exist_ok=True)
    if not path.exists():
        with open(path, "w", newline="", encoding="utf-8") as f:
            _lock(f)
            csv.writer(f).writerow(headers)
            _unlock(f)
        log.info("Created %s table → %s", table, path.name)
    return path


def _read(table: str) -> list[dict[str, str]]:
    path = ensure_table(table)
    with open(path, "r", encoding="utf-8") as f:
        _lock(f, exclusive=False)
        rows = list(csv.DictReader(f))
        _unlock(f)
    return rows


def _write(table: str, rows: list[dict[str, str]]) -> None:
    path = ensure_table(table)
    with open(path, "w", newline="", encoding="utf-8") as f:
        _lock(f)
        w = csv.DictWriter(f, fieldnames=_headers(table))
        w.writeheader()
        w.writerows(rows)
        _unlock(f)


def create_record(table: str, fields: dict[str, Any]) -> dict[str, str]:
    headers = _headers(table)
    path = ensure_table(table)
    now = _now()
    row = {h: "" for h in headers}
    row.update({k: "" if v is None else str(v) for k, v in fields.items() if k in headers})
    row["id"] = row["id"] or uuid.uuid4().hex[:12]
    row["created_at"] = row["updated_at"] = now
    with open(path, "a", newline="", encoding="utf-8") as f:
        _lock(f)
        csv.DictWriter(f, fieldnames=headers).writerow(row)
        _unlock(f)
    log.debug("Created %s/%s", table, row["id"])
    return row


def query_records(table: str, filters: dict[str, Any] | None = None) -> list[dict[str, str]]:
    filters = {k: str(v) for k, v in (filters or {}).items()}
    return [r for r in _read(table) if all(r.get(k) == v for k, v in filters.items())]


def update_record(table: str, record_id: str, fields: dict[str, Any]) -> dict[str, str] | None:
    """Update one row; returns it, or None when no row has *record_id*."""
    headers = _headers(table)
    rows = _read(table)
    updated: dict[str, str] | None = None
    for r in rows:
        if r.get("id") == record_id:
            r.update({k: "" if v is None else str(v) for k, v in fields.items() if k in headers and k != "id"})
            r["updated_at"] = _now()
            updated = r
            break
    if updated is None:
        return None
    _write(table, rows)
    log.debug("Updated %s/%s", table, record_id)
    return updated


def delete_record(table: str, record_id: str) -> bool:
    rows = _read(table)
    kept = [r for r in rows if r.get("id") != record_id]
    if len(kept) == len(rows):
        return False
    _write(table, kept)
    log.debug("Deleted %s/%s", table, record_id)
    return True


def validate_application(fields: dict[str, Any]) -> dict[str, str]:
    """Field → message for every problem; empty when the application can be saved."""
    errors: dict[str, str] = {}
    if not str(fields.get("company") or "").strip():
        errors["company"] = "Company is required"
    if not str(fields.get("position") or "").strip():
        errors["position"] = "Position is required"
    job_url = str(fields.get("job_url") or "").strip()
    if job_url and not is_valid_url(job_url):
        errors["job_url"] = "Job URL must be a valid http(s) URL"
    status = fields.get("status")
    if status and status not in STATUSES:
        errors["status"] = f"Status must be one of: {', '.join(STATUSES)}"
    return errors


def save_application(
    user_id: str,
    record: ExtractedJobRecord | dict[str, Any],
    status: str = "Applied",
    date_applied: str | None = None,
) -> dict[str, str]:
    """Validate and store a reviewed extraction for *user_id*."""
    data = record.to_dict() if isinstance(record, ExtractedJobRecord) else dict(record)
    fields = {
        "user_id": user_id,
        "company": (data.get("company") or "").strip(),
        "position": (data.get("position") or "").strip(),
        "salary": data.get("salary") or "",
        "hourly_rate": data.get("hourly_rate") or "",
        "location": data.get("location") or "",
        "job_url": (data.get("job_url") or data.get("source_url") or "").strip(),
        "status": status,
        "date_applied": date_applied or date.today().isoformat(),
        "notes": data.get("notes") or "",
    }
    errors = validate_application(fields)
    if errors:
        raise ApplicationValidationError(errors)
    row = create_record("applications", fields)
    log.info("Saved application: %s @ %s [%s]", fields["position"], fields["company"], status)
    return row


def get_applications(user_id: str) -> list[dict[str, str]]:
    return query_records("applications", {"user_id": user_id})
