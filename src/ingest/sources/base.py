from abc import ABC, abstractmethod
from datetime import datetime
from typing import Any, Dict, List

import httpx

from ingest.models import Platform, RepoRef, Repository

MANIFEST_FILENAME = "build.zig.zon"


class CredentialsError(RuntimeError):
    """Raised when a platform rejects (or is missing) the configured token."""


class UnsupportedSearchError(ValueError):
    """Raised when a platform's search API cannot express the requested query."""


def format_search_date(value: datetime) -> str:
    return value.strftime("%Y-%m-%dT%H:%M:%SZ")


class SourcePlatform(ABC):
    """
    One code-hosting platform.

    Implementations share a single normalization contract: `map_repo` always
    returns an `ingest.models.Repository`.
    """

    name: Platform
    supports_date_windows: bool = False

    def __init__(self, token: str):
        self.token = token

    @abstractmethod
    def headers(self) -> Dict[str, str]:
        ...

    @abstractmethod
    def top_url(self) -> str:
        """Search URL for the bounded "top" traversal."""

    def window_url(self, start: datetime, end: datetime) -> str:
        """Search URL for repositories created in [start, end]."""
        raise UnsupportedSearchError(f"{self.name} search has no creation-date filter")

    @abstractmethod
    def manifest_url(self, repo: RepoRef) -> str:
        ...

    @abstractmethod
    def extract_items(self, payload: Any) -> List[dict]:
        ...

    @abstractmethod
    def map_repo(self, item: dict) -> Repository:
        ...

    @abstractmethod
    async def check_credentials(self, http: httpx.AsyncClient) -> None:
        """Raise CredentialsError unless the token is accepted."""
