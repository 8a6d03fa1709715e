# src/ingest/sources/codeberg/client.py

from typing import Any, Dict, List
from urllib.parse import urlencode

import httpx

from ingest.mappers.codeberg_repo_mapper import map_repo
from ingest.models import RepoRef, Repository
from ingest.sources.base import MANIFEST_FILENAME, CredentialsError, SourcePlatform
from core.logging.logger import get_logger


class CodebergPlatform(SourcePlatform):
    """
    Codeberg (Forgejo) search. The top query already returns every matching
    repository, so there is no date-window traversal.
    """

    name = "codeberg"
    supports_date_windows = False

    BASE_URL = "https://codeberg.org"
    QUERY = "zig"
    LIMIT = 50

    def __init__(self, token: str):
        super().__init__(token)
        self.logger = get_logger(__name__)

    def headers(self) -> Dict[str, str]:
        return {"Authorization": f"token {self.token}"}

    def top_url(self) -> str:
        params = {"q": self.QUERY, "includeDesc": "true", "page": 1, "limit": self.LIMIT}
        return f"{self.BASE_URL}/api/v1/repos/search?{urlencode(params)}"

    def manifest_url(self, repo: RepoRef) -> str:
        return f"{self.BASE_URL}/{repo.full_name}/raw/branch/{repo.default_branch}/{MANIFEST_FILENAME}"

    def extract_items(self, payload: Any) -> List[dict]:
        items = payload.get("data") if isinstance(payload, dict) else None
        return [item for item in items or [] if isinstance(item, dict)]

    def map_repo(self, item: dict) -> Repository:
        return map_repo(item)

    async def check_credentials(self, http: httpx.AsyncClient) -> None:
        try:
            response = await http.get(f"{self.BASE_URL}/api/v1/user", headers=self.headers())
        except httpx.HTTPError as e:
            raise CredentialsError(f"Codeberg liveness check failed: {e}") from e
        if response.status_code != 200:
            raise CredentialsError(f"Codeberg rejected CODEBERG_TOKEN ({response.status_code})")
        self.logger.info("Codeberg credentials accepted")
