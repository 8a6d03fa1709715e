# src/ingest/sources/github/client.py

import asyncio
from datetime import datetime
from typing import Any, Dict, List
from urllib.parse import urlencode

import httpx
from github import Auth, BadCredentialsException, Github, GithubException

from ingest.mappers.github_repo_mapper import map_repo
from ingest.models import RepoRef, Repository
from ingest.sources.base import MANIFEST_FILENAME, CredentialsError, SourcePlatform, format_search_date
from core.logging.logger import get_logger


class GitHubPlatform(SourcePlatform):
    """
    GitHub REST search + raw.githubusercontent.com manifests.
    """

    name = "github"
    supports_date_windows = True

    SEARCH_URL = "https://api.github.com/search/repositories"
    RAW_URL = "https://raw.githubusercontent.com"
    TOP_QUERY = "language:zig"
    WINDOW_QUERY = "in:name,description,topics zig created:{start}..{end}"
    PER_PAGE = 100

    def __init__(self, token: str):
        super().__init__(token)
        self.logger = get_logger(__name__)

    def headers(self) -> Dict[str, str]:
        return {
            "Accept": "application/vnd.github+json",
            "X-GitHub-Api-Version": "2022-11-28",
            "Authorization": f"Bearer {self.token}",
        }

    def _search_url(self, query: str) -> str:
        params = {"q": query, "per_page": self.PER_PAGE, "page": 1}
        return f"{self.SEARCH_URL}?{urlencode(params)}"

    def top_url(self) -> str:
        return self._search_url(self.TOP_QUERY)

    def window_url(self, start: datetime, end: datetime) -> str:
        query = self.WINDOW_QUERY.format(start=format_search_date(start), end=format_search_date(end))
        return self._search_url(query)

    def manifest_url(self, repo: RepoRef) -> str:
        return f"{self.RAW_URL}/{repo.full_name}/{repo.default_branch}/{MANIFEST_FILENAME}"

    def extract_items(self, payload: Any) -> List[dict]:
        items = payload.get("items") if isinstance(payload, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]

    def map_repo(self, item: dict) -> Repository:
        return map_repo(item)

    def _rate_limit(self):
        client = Github(auth=Auth.Token(self.token))
        try:
            return client.get_rate_limit()
        finally:
            client.close()

    async def check_credentials(self, http: httpx.AsyncClient) -> None:
        # PyGithub is synchronous
        try:
            await asyncio.to_thread(self._rate_limit)
        except BadCredentialsException as e:
            raise CredentialsError(f"GitHub rejected GITHUB_TOKEN ({e.status})") from e
        except GithubException as e:
            raise CredentialsError(f"GitHub liveness check failed ({e.status}): {e}") from e
        self.logger.info("GitHub credentials accepted")
