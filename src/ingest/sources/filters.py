# src/ingest/sources/filters.py

from typing import Iterable

from ingest.models import Repository


def is_ecosystem_repo(repo: Repository, excluded_keywords: Iterable[str]) -> bool:
    """
    Repo-level keyword filter for search noise (e.g. "zigbee" matches "zig").
    """
    haystack = f"{repo.full_name} {repo.description or ''}".lower()
    return not any(keyword.lower() in haystack for keyword in excluded_keywords)
