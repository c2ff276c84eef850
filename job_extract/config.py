"""Load extraction settings and env configuration."""
from __future__ import annotations

import copy
import os
from pathlib import Path
from typing import Any

import yaml
from dotenv import load_dotenv

from job_extract.log import get_logger

load_dotenv()

log = get_logger(__name__)

ROOT_DIR: Path = Path(__file__).resolve().parent.parent
CONFIG_DIR: Path = ROOT_DIR / "config"
SETTINGS_PATH: Path = CONFIG_DIR / "settings.yaml"
DATA_DIR: Path = ROOT_DIR / "data"
LEARNING_PATH: Path = DATA_DIR / "learning.json"

DEFAULT_PROXIES: list[dict[str, str]] = [
    {"name": "allorigins", "template": "https://api.allorigins.win/raw?url={url}"},
    {"name": "corsproxy", "template": "https://corsproxy.io/?url={url}"},
    {"name": "codetabs", "template": "https://api.codetabs.com/v1/proxy?quest={url}"},
    {"name": "thingproxy", "template": "https://thingproxy.freeboard.io/fetch/{raw_url}"},
]

DEFAULT_SETTINGS: dict[str, Any] = {
    "fetch": {
        "timeout": 5.0,
        "min_content_length": 100,
        "proxies": DEFAULT_PROXIES,
    },
    "search_api": {
        "timeout": 10.0,
        "match_threshold": 0.6,
        "max_results": 10,
    },
    "ensemble": {
        "max_workers": 5,
    },
    "confidence": {
        "low_threshold": 0.5,
    },
}


def get_env(key: str, default: str = "") -> str:
    return os.environ.get(key, default).strip()


def _merge(base: dict[str, Any], override: dict[str, Any]) -> dict[str, Any]:
    merged = copy.deepcopy(base)
    for key, value in override.items():
        if isinstance(value, dict) and isinstance(merged.get(key), dict):
            merged[key] = _merge(merged[key], value)
        else:
            merged[key] = value
    return merged


def load_settings(path: Path | None = None) -> dict[str, Any]:
    """Defaults overlaid with ``config/settings.yaml`` when it exists."""
    path = path or SETTINGS_PATH
    if not path.exists():
        return copy.deepcopy(DEFAULT_SETTINGS)
    try:
        with open(path, "r", encoding="utf-8") as f:
            data = yaml.safe_load(f) or {}
    except (OSError, yaml.YAMLError) as exc:
        log.warning("Could not read %s (%s) — using defaults", path.name, exc)
        return copy.deepcopy(DEFAULT_SETTINGS)
    if not isinstance(data, dict):
        log.warning("Ignoring %s: expected a mapping at top level", path.name)
        return copy.deepcopy(DEFAULT_SETTINGS)
    return _merge(DEFAULT_SETTINGS, data)


def ensure_dirs() -> None:
    DATA_DIR.mkdir(parents=True, exist_ok=True)
