"""Logging setup for the extractor: console plus a daily file, with secrets masked."""
from __future__ import annotations

import logging
import os
import re
import sys
from datetime import datetime
from pathlib import Path

_LOG_DIR = Path(__file__).resolve().parent.parent / "logs"
_FORMAT = "%(asctime)s  %(levelname)-8s  %(name)s  %(message)s"
_DATE_FMT = "%Y-%m-%d %H:%M:%S"

# Env vars whose values must never reach a log line.
SECRET_ENV_VARS: tuple[str, ...] = ("SCRAPINGBEE_API_KEY", "SERPAPI_KEY", "JSEARCH_API_KEY")
NOISY_LOGGERS: tuple[str, ...] = ("urllib3", "charset_normalizer", "watchdog")

_QUERY_SECRET_RE = re.compile(r"((?:api_key|apikey|key|token)=)[^&\s'\"]+", re.I)
_configured = False


class RedactingFilter(logging.Filter):
    """Masks ``api_key=...`` query parameters and configured secret values."""

    def __init__(self, secrets: list[str] | None = None) -> None:
        super().__init__()
        self.secrets = secrets

    def redact(self, text: str) -> str:
        text = _QUERY_SECRET_RE.sub(r"\1***", text)
        secrets = self.secrets if self.secrets is not None else _env_secrets()
        for secret in (s for s in secrets if len(s) >= 4):
            text = text.replace(secret, "***")
        return text

    def filter(self, record: logging.LogRecord) -> bool:
        message = record.getMessage()
        redacted = self.redact(message)
        if redacted != message:
            record.msg, record.args = redacted, None
        return True


def _env_secrets() -> list[str]:
    return [v.strip() for v in (os.environ.get(k, "") for k in SECRET_ENV_VARS) if v.strip()]


def configure(level: str | None = None, to_file: bool | None = None, log_dir: Path | None = None) -> None:
    """(Re)build the root handlers. Entry points call this; libraries just use :func:`get_logger`."""
    global _configured
    level_name = (level or os.environ.get("LOG_LEVEL", "INFO")).upper()
    numeric = getattr(logging, level_name, logging.INFO)
    if to_file is None:
        to_file = os.environ.get("LOG_TO_FILE", "true").lower() in ("1", "true", "yes")

    root = logging.getLogger()
    root.setLevel(numeric)
    for handler in [h for h in root.handlers if getattr(h, "_job_extract", False)]:
        root.removeHandler(handler)
        handler.close()

    redactor = RedactingFilter()
    formatter = logging.Formatter(_FORMAT, datefmt=_DATE_FMT)

    console = logging.StreamHandler(sys.stdout)
    console.setLevel(numeric)
    handlers: list[logging.Handler] = [console]

    if to_file:
        directory = log_dir or _LOG_DIR
        try:
            directory.mkdir(parents=True, exist_ok=True)
            fh = logging.FileHandler(
                directory / f"extractor_{datetime.now().strftime('%Y-%m-%d')}.log", encoding="utf-8"
            )
            fh.setLevel(logging.DEBUG)
            handlers.append(fh)
        except OSError as exc:
            sys.stderr.write(f"File logging disabled: {exc}\n")

    for handler in handlers:
        handler.setFormatter(formatter)
        handler.addFilter(redactor)
        handler._job_extract = True
        root.addHandler(handler)

    for name in NOISY_LOGGERS:
        logging.getLogger(name).setLevel(max(numeric, logging.WARNING))
    _configured = True


def get_logger(name: str) -> logging.Logger:
    """Return a named logger; configures root handlers on first call."""
    if not _configured:
        configure()
    return logging.getLogger(name)
