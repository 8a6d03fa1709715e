import re
from contextlib import asynccontextmanager
from datetime import datetime, timezone
from typing import AsyncIterator, Dict, List, Optional, Sequence, Set, Tuple

from pymongo import UpdateOne

from core.logging.logger import get_logger
from ingest.models import ManifestSnapshot, RepoRef, Repository
from ingest.storage.storage_indexes import (
    DEPENDENCIES_COLLECTION,
    MANIFESTS_COLLECTION,
    REPOSITORIES_COLLECTION,
    URL_DEPENDENCIES_COLLECTION,
    ensure_store_indexes,
)


class MongoStore:
    """
    Idempotent persistence for repositories, manifests and dependency edges.

    Every write is an upsert keyed on the natural key, so replaying a crawl
    converges to the same state. A manifest write (snapshot, url deps, edges,
    repo freshness) runs inside one transaction when transactions are enabled
    (requires a replica set).
    """

    def __init__(self, mongo, db_name: str, use_transactions: bool = False):
        self.client = mongo
        self.db = mongo[db_name]
        self.repos_col = self.db[REPOSITORIES_COLLECTION]
        self.manifests_col = self.db[MANIFESTS_COLLECTION]
        self.url_deps_col = self.db[URL_DEPENDENCIES_COLLECTION]
        self.deps_col = self.db[DEPENDENCIES_COLLECTION]
        self.use_transactions = use_transactions
        self.logger = get_logger(__name__)

    @asynccontextmanager
    async def _transaction(self):
        if not self.use_transactions:
            yield None
            return
        async with await self.client.start_session() as session:
            async with session.start_transaction():
                yield session

    async def ensure_indexes(self):
        await ensure_store_indexes(self.db)

    async def ping(self):
        await self.client.admin.command("ping")

    # ---------------------------------------------------------------------
    # repositories
    # ---------------------------------------------------------------------
    async def upsert_repositories(self, repos: Sequence[Repository]) -> int:
        """
        Insert-or-update on (platform, full_name). Descriptive fields always
        take the latest crawled values; manifest freshness is left alone.
        """
        if not repos:
            return 0

        now = datetime.now(timezone.utc)
        operations = [
            UpdateOne(
                {"platform": repo.platform, "full_name": repo.full_name},
                {
                    "$set": {**repo.model_dump(), "crawled_at": now},
                    "$setOnInsert": {"manifest_fetched_at": None},
                },
                upsert=True,
            )
            for repo in repos
        ]

        async with self._transaction() as session:
            result = await self.repos_col.bulk_write(operations, ordered=True, session=session)

        written = result.upserted_count + result.modified_count
        self.logger.debug(f"Upserted {len(repos)} repositories ({result.upserted_count} new)")
        return written

    async def fresh_manifest_keys(self, refs: Sequence[RepoRef], cutoff: int) -> Set[Tuple[str, str]]:
        """
        (platform, full_name) of refs whose manifest was fetched at or after cutoff.
        """
        if not refs:
            return set()

        cursor = self.repos_col.find(
            {
                "$or": [ref.key for ref in refs],
                "manifest_fetched_at": {"$gte": cutoff},
            },
            {"platform": 1, "full_name": 1, "_id": 0},
        )
        return {(doc["platform"], doc["full_name"]) async for doc in cursor}

    async def select_manifest_candidates(
        self,
        cutoff: int,
        limit: int,
        excluded_keywords: Sequence[str] = (),
    ) -> List[RepoRef]:
        """
        Repositories never fetched or fetched before cutoff, most stars first.
        """
        query: Dict = {
            "$or": [
                {"manifest_fetched_at": None},
                {"manifest_fetched_at": {"$lt": cutoff}},
            ]
        }
        if excluded_keywords:
            pattern = "|".join(re.escape(k) for k in excluded_keywords)
            query["$nor"] = [
                {"full_name": {"$regex": pattern, "$options": "i"}},
                {"description": {"$regex": pattern, "$options": "i"}},
            ]

        cursor = (
            self.repos_col.find(query, {"platform": 1, "full_name": 1, "default_branch": 1, "_id": 0})
            .sort("stars", -1)
            .limit(limit)
        )
        return [RepoRef(**doc) async for doc in cursor]

    # ---------------------------------------------------------------------
    # manifests
    # ---------------------------------------------------------------------
    def _manifest_document(self, ref: RepoRef, fetched_at: int, **fields) -> dict:
        document = {
            **ref.key,
            "default_branch": ref.default_branch,
            "exists": True,
            "name": None,
            "version": None,
            "minimum_zig_version": None,
            "paths": [],
            "content": None,
            "parse_error": None,
            "fetched_at": fetched_at,
        }
        document.update(fields)
        return document

    async def save_manifest(self, ref: RepoRef, snapshot: ManifestSnapshot, content: str, fetched_at: int):
        """
        Replace the repository's manifest snapshot and its dependency edges.

        - manifest row: replaced wholesale
        - url_dependencies: insert if the hash is unseen, never updated
        - dependencies: upsert current edges, delete edges no longer declared
        """
        now = datetime.now(timezone.utc)
        document = self._manifest_document(
            ref,
            fetched_at,
            name=snapshot.name,
            version=snapshot.version,
            minimum_zig_version=snapshot.minimum_zig_version,
            paths=list(snapshot.paths),
            content=content,
        )

        url_dep_ops = [
            UpdateOne(
                {"_id": dep.hash},
                {"$setOnInsert": {"name": dep.name, "url": dep.url, "created_at": now}},
                upsert=True,
            )
            for dep in snapshot.url_dependencies
        ]

        edge_ops = [
            UpdateOne(
                {**ref.key, "name": edge.name, "dependency_type": edge.dependency_type},
                {
                    "$set": {
                        "path": edge.path,
                        "url_dependency_hash": edge.url_dependency_hash,
                        "updated_at": now,
                    }
                },
                upsert=True,
            )
            for edge in snapshot.dependencies
        ]

        stale_edges: Dict = dict(ref.key)
        if snapshot.dependencies:
            stale_edges["$nor"] = [
                {"name": edge.name, "dependency_type": edge.dependency_type}
                for edge in snapshot.dependencies
            ]

        async with self._transaction() as session:
            await self.manifests_col.replace_one(ref.key, document, upsert=True, session=session)
            if url_dep_ops:
                await self.url_deps_col.bulk_write(url_dep_ops, ordered=False, session=session)
            await self.deps_col.delete_many(stale_edges, session=session)
            if edge_ops:
                await self.deps_col.bulk_write(edge_ops, ordered=True, session=session)
            await self._touch_repository(ref, fetched_at, session)

        self.logger.info(
            f"[{ref.platform}:{ref.full_name}] Saved manifest "
            f"({len(snapshot.dependencies)} deps, {len(snapshot.url_dependencies)} url deps)"
        )

    async def mark_manifest_absent(self, ref: RepoRef, fetched_at: int):
        """
        The repository has no build.zig.zon on its default branch.
        """
        document = self._manifest_document(ref, fetched_at, exists=False)
        async with self._transaction() as session:
            await self.manifests_col.replace_one(ref.key, document, upsert=True, session=session)
            await self.deps_col.delete_many(ref.key, session=session)
            await self._touch_repository(ref, fetched_at, session)

    async def record_manifest_error(self, ref: RepoRef, content: str, error: str, fetched_at: int):
        """
        Keep the raw content and the parse error; the last good snapshot and
        its edges stay in place.
        """
        async with self._transaction() as session:
            await self.manifests_col.update_one(
                ref.key,
                {
                    "$set": {
                        "default_branch": ref.default_branch,
                        "exists": True,
                        "content": content,
                        "parse_error": error,
                        "fetched_at": fetched_at,
                    }
                },
                upsert=True,
                session=session,
            )
            await self._touch_repository(ref, fetched_at, session)

    async def record_fetch_failure(self, ref: RepoRef, error: str, fetched_at: int):
        """
        The manifest could not be downloaded after all retries. Stored data is
        untouched; only freshness moves so the repository is not reselected
        until it goes stale again.
        """
        await self._touch_repository(ref, fetched_at, None, fetch_error=error)

    async def _touch_repository(self, ref: RepoRef, fetched_at: int, session, fetch_error: Optional[str] = None):
        await self.repos_col.update_one(
            ref.key,
            {"$set": {"manifest_fetched_at": fetched_at, "manifest_fetch_error": fetch_error}},
            session=session,
        )

    async def iter_stored_manifests(self) -> AsyncIterator[Tuple[RepoRef, str, int]]:
        """
        (ref, raw content, fetched_at) for every stored manifest with content.
        """
        cursor = self.manifests_col.find(
            {"exists": True, "content": {"$ne": None}},
            {"platform": 1, "full_name": 1, "default_branch": 1, "content": 1, "fetched_at": 1},
        )
        async for doc in cursor:
            ref = RepoRef(
                platform=doc["platform"],
                full_name=doc["full_name"],
                default_branch=doc.get("default_branch") or "main",
            )
            yield ref, doc["content"], doc["fetched_at"]

    # ---------------------------------------------------------------------
    # stats
    # ---------------------------------------------------------------------
    async def collection_counts(self) -> Dict[str, int]:
        return {
            "repositories": await self.repos_col.count_documents({}),
            "manifests": await self.manifests_col.count_documents({"exists": True}),
            "url_dependencies": await self.url_deps_col.count_documents({}),
            "dependencies": await self.deps_col.count_documents({}),
        }
