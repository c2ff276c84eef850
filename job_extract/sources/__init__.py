from .base import JobSearchBase
from .jsearch import JSearchSource
from .serpapi import SerpApiSource

from job_extract.log import get_logger

log = get_logger(__name__)

__all__ = ["JobSearchBase", "JSearchSource", "SerpApiSource", "get_sources"]


def get_sources(env_getter, timeout: float = 10.0) -> list[JobSearchBase]:
    sources: list[JobSearchBase] = []

    if env_getter("JSEARCH_API_KEY"):
        sources.append(JSearchSource(env_getter, timeout))
        log.info("Registered source: JSearch")

    if env_getter("SERPAPI_KEY"):
        sources.append(SerpApiSource(env_getter, timeout))
        log.info("Registered source: SerpAPI (Google Jobs)")

    if not sources:
        log.info("No job-search API keys found — API lookup disabled")

    return sources
