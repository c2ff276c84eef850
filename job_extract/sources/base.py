from abc import ABC, abstractmethod

import requests

from job_extract.models import JobListing


class JobSearchBase(ABC):
    name = "unknown"

    def __init__(self, env_getter, timeout: float = 10.0, session: requests.Session | None = None) -> None:
        self.env_getter = env_getter
        self.timeout = timeout
        self.session = session or requests.Session()

    @abstractmethod
    def search(self, query: str, limit: int = 10) -> list[JobListing]:
        pass
