import json
from dataclasses import dataclass
from typing import Any, Mapping

import httpx


@dataclass(frozen=True)
class FetchResult:
    url: str
    status: int
    headers: httpx.Headers
    text: str

    @property
    def ok(self) -> bool:
        return 200 <= self.status < 300

    def json(self) -> Any:
        return json.loads(self.text)


class HttpFetcher:
    """
    Thin async GET wrapper. Transport failures propagate as httpx.TransportError;
    every HTTP status (including 4xx/5xx) is returned to the caller.
    """

    def __init__(self, client: httpx.AsyncClient):
        self.client = client

    async def fetch(self, url: str, headers: Mapping[str, str]) -> FetchResult:
        response = await self.client.get(url, headers=dict(headers))
        return FetchResult(
            url=url,
            status=response.status_code,
            headers=response.headers,
            text=response.text,
        )
