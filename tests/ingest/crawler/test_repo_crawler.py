from unittest.mock import AsyncMock
from urllib.parse import parse_qs, urlparse

import httpx
import pytest

from ingest.crawler.backoff import BackoffPolicy
from ingest.crawler.fetcher import HttpFetcher
from ingest.crawler.repo_crawler import RepoCrawler, search_item
from ingest.sources.base import UnsupportedSearchError
from ingest.sources.platforms import build_platforms

SEARCH_URL = "https://api.github.com/search/repositories"


def make_github_item(full_name="ziglang/zig", **overrides):
    owner, name = full_name.split("/")
    base = {
        "id": abs(hash(full_name)) % 10_000_000,
        "full_name": full_name,
        "name": name,
        "owner": {"login": owner},
        "default_branch": "main",
        "description": "A Zig project",
        "homepage": "",
        "license": {"spdx_id": "MIT"},
        "language": "Zig",
        "stargazers_count": 42,
        "forks_count": 3,
        "fork": False,
        "archived": False,
        "created_at": "2023-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
        "pushed_at": "2024-01-02T00:00:00Z",
    }
    base.update(overrides)
    return base


def make_store(fresh=None):
    store = AsyncMock()
    store.fresh_manifest_keys.return_value = set(fresh or ())
    return store


def make_crawler(handler, clock, repo_queue, manifest_queue, store=None, **kwargs):
    client = httpx.AsyncClient(transport=httpx.MockTransport(handler))
    return RepoCrawler(
        platforms=build_platforms("gh-token", "cb-token"),
        fetcher=HttpFetcher(client),
        queue=repo_queue,
        manifest_queue=manifest_queue,
        store=store or make_store(),
        clock=clock,
        policy=kwargs.pop("policy", BackoffPolicy(page_delay=1.0, retry_base_delay=30, retry_max_attempts=3)),
        excluded_keywords=["zigbee"],
        **kwargs,
    )


def page_url(page: int) -> str:
    return f"{SEARCH_URL}?q=language%3Azig&per_page=100&page={page}"


class TestHandleSearch:
    @pytest.mark.asyncio
    async def test_pagination_enqueues_next_page_then_stops(self, clock, repo_queue, manifest_queue):
        def handler(request: httpx.Request):
            page = parse_qs(urlparse(str(request.url)).query)["page"][0]
            if page == "1":
                return httpx.Response(
                    200,
                    json={"items": [make_github_item("a/one")]},
                    headers={"link": f'<{page_url(2)}>; rel="next", <{page_url(2)}>; rel="last"'},
                )
            return httpx.Response(200, json={"items": [make_github_item("b/two")]})

        store = make_store()
        crawler = make_crawler(handler, clock, repo_queue, manifest_queue, store)

        await crawler.handle_search(search_item("github", "top", page_url(1)))

        assert len(repo_queue.enqueued) == 1
        next_item, delay = repo_queue.enqueued[0]
        assert next_item["url"] == page_url(2)
        assert next_item["mode"] == "top"
        assert delay == 1.0

        await crawler.handle_search(next_item)

        assert len(repo_queue.enqueued) == 1
        upserted = [call.args[0][0].full_name for call in store.upsert_repositories.call_args_list]
        assert upserted == ["a/one", "b/two"]

    @pytest.mark.asyncio
    async def test_sends_platform_auth_header(self, clock, repo_queue, manifest_queue):
        seen = {}

        def handler(request: httpx.Request):
            seen["auth"] = request.headers.get("authorization")
            return httpx.Response(200, json={"items": []})

        crawler = make_crawler(handler, clock, repo_queue, manifest_queue)
        await crawler.handle_search(search_item("github", "top", page_url(1)))

        assert seen["auth"] == "Bearer gh-token"

    @pytest.mark.asyncio
    async def test_schedules_manifest_fetches(self, clock, repo_queue, manifest_queue):
        def handler(request):
            return httpx.Response(200, json={"items": [make_github_item("zigzap/zap", default_branch="master")]})

        crawler = make_crawler(handler, clock, repo_queue, manifest_queue)
        await crawler.handle_search(search_item("github", "top", page_url(1)))

        assert manifest_queue.items == [{
            "kind": "manifest",
            "platform": "github",
            "full_name": "zigzap/zap",
            "default_branch": "master",
            "url": "https://raw.githubusercontent.com/zigzap/zap/master/build.zig.zon",
            "attempt": 0,
        }]

    @pytest.mark.asyncio
    async def test_excluded_keyword_is_stored_but_not_fetched(self, clock, repo_queue, manifest_queue):
        def handler(request):
            return httpx.Response(200, json={"items": [make_github_item("home/zigbee2mqtt")]})

        store = make_store()
        crawler = make_crawler(handler, clock, repo_queue, manifest_queue, store)
        await crawler.handle_search(search_item("github", "top", page_url(1)))

        store.upsert_repositories.assert_awaited_once()
        assert manifest_queue.enqueued == []

    @pytest.mark.asyncio
    async def test_fresh_manifest_is_not_refetched(self, clock, repo_queue, manifest_queue):
        def handler(request):
            return httpx.Response(200, json={"items": [make_github_item("a/fresh"), make_github_item("b/stale")]})

        store = make_store(fresh={("github", "a/fresh")})
        crawler = make_crawler(handler, clock, repo_queue, manifest_queue, store, manifest_max_age=100)
        await crawler.handle_search(search_item("github", "top", page_url(1)))

        assert [item["full_name"] for item in manifest_queue.items] == ["b/stale"]
        refs, cutoff = store.fresh_manifest_keys.call_args.args
        assert cutoff == int(clock.now()) - 100

    @pytest.mark.asyncio
    async def test_malformed_item_is_skipped(self, clock, repo_queue, manifest_queue):
        def handler(request):
            return httpx.Response(200, json={"items": [{"full_name": "broken"}, make_github_item("ok/repo")]})

        store = make_store()
        crawler = make_crawler(handler, clock, repo_queue, manifest_queue, store)
        await crawler.handle_search(search_item("github", "top", page_url(1)))

        repos = store.upsert_repositories.call_args.args[0]
        assert [r.full_name for r in repos] == ["ok/repo"]

    @pytest.mark.asyncio
    async def test_codeberg_page(self, clock, repo_queue, manifest_queue):
        def handler(request):
            return httpx.Response(200, json={"ok": True, "data": [{
                "id": 7,
                "full_name": "dude/lib",
                "name": "lib",
                "owner": {"login": "dude"},
                "default_branch": "main",
                "stars_count": 5,
                "created_at": "2024-01-01T00:00:00+01:00",
                "updated_at": "2024-02-01T00:00:00+01:00",
            }]})

        store = make_store()
        crawler = make_crawler(handler, clock, repo_queue, manifest_queue, store)
        await crawler.handle_search(search_item("codeberg", "top", crawler.platforms["codeberg"].top_url()))

        repo = store.upsert_repositories.call_args.args[0][0]
        assert (repo.platform, repo.stars) == ("codeberg", 5)
        assert manifest_queue.items[0]["url"] == "https://codeberg.org/dude/lib/raw/branch/main/build.zig.zon"


class TestHandleSearchFailures:
    @pytest.mark.asyncio
    async def test_rate_limit_requeues_same_item_until_reset(self, clock, repo_queue, manifest_queue):
        reset = int(clock.now()) + 300

        def handler(request):
            return httpx.Response(403, headers={"x-ratelimit-reset": str(reset)})

        store = make_store()
        crawler = make_crawler(handler, clock, repo_queue, manifest_queue, store)
        item = search_item("github", "all", page_url(3))
        await crawler.handle_search(item)

        assert repo_queue.enqueued == [(item, 300)]
        store.upsert_repositories.assert_not_called()

    @pytest.mark.asyncio
    async def test_429_is_rate_limit(self, clock, repo_queue, manifest_queue):
        crawler = make_crawler(
            lambda request: httpx.Response(429, headers={"retry-after": "60"}),
            clock, repo_queue, manifest_queue,
        )
        item = search_item("github", "top", page_url(1))
        await crawler.handle_search(item)

        assert repo_queue.enqueued == [(item, 60)]

    @pytest.mark.asyncio
    async def test_server_error_retries_with_backoff(self, clock, repo_queue, manifest_queue):
        crawler = make_crawler(lambda request: httpx.Response(502), clock, repo_queue, manifest_queue)
        item = search_item("github", "top", page_url(1))

        await crawler.handle_search(item)

        retried, delay = repo_queue.enqueued[0]
        assert retried["attempt"] == 1
        assert retried["url"] == item["url"]
        assert delay == 30

    @pytest.mark.asyncio
    async def test_server_error_gives_up_after_max_attempts(self, clock, repo_queue, manifest_queue):
        crawler = make_crawler(lambda request: httpx.Response(500), clock, repo_queue, manifest_queue)

        await crawler.handle_search({**search_item("github", "top", page_url(1)), "attempt": 2})

        assert repo_queue.enqueued == []

    @pytest.mark.asyncio
    async def test_transport_error_retries(self, clock, repo_queue, manifest_queue):
        def handler(request):
            raise httpx.ConnectError("connection refused", request=request)

        crawler = make_crawler(handler, clock, repo_queue, manifest_queue)
        await crawler.handle_search(search_item("github", "top", page_url(1)))

        assert repo_queue.items[0]["attempt"] == 1


class TestTraversalStart:
    @pytest.mark.asyncio
    async def test_start_top(self, clock, repo_queue, manifest_queue):
        crawler = make_crawler(lambda r: httpx.Response(200), clock, repo_queue, manifest_queue)
        await crawler.start_top("github")

        item = repo_queue.items[0]
        assert (item["platform"], item["mode"]) == ("github", "top")
        assert parse_qs(urlparse(item["url"]).query)["q"] == ["language:zig"]

    @pytest.mark.asyncio
    async def test_start_all_uses_date_window(self, clock, repo_queue, manifest_queue):
        crawler = make_crawler(lambda r: httpx.Response(200), clock, repo_queue, manifest_queue)
        await crawler.start_all("github")

        query = parse_qs(urlparse(repo_queue.items[0]["url"]).query)["q"][0]
        assert query == "in:name,description,topics zig created:2015-07-04T00:00:00Z..2017-09-02T00:00:00Z"

    @pytest.mark.asyncio
    async def test_start_recent_covers_last_day(self, clock, repo_queue, manifest_queue):
        crawler = make_crawler(lambda r: httpx.Response(200), clock, repo_queue, manifest_queue)
        await crawler.start_recent("github")

        query = parse_qs(urlparse(repo_queue.items[0]["url"]).query)["q"][0]
        # FakeClock: 2023-11-14T22:13:20Z
        assert query.endswith("created:2023-11-13T22:13:20Z..2023-11-14T22:13:20Z")
        assert repo_queue.items[0]["mode"] == "recent"

    @pytest.mark.asyncio
    async def test_codeberg_has_no_date_windows(self, clock, repo_queue, manifest_queue):
        crawler = make_crawler(lambda r: httpx.Response(200), clock, repo_queue, manifest_queue)
        with pytest.raises(UnsupportedSearchError):
            await crawler.start_all("codeberg")
