from typing import Dict

from ingest.sources.base import SourcePlatform
from ingest.sources.codeberg.client import CodebergPlatform
from ingest.sources.github.client import GitHubPlatform


def build_platforms(github_token: str, codeberg_token: str) -> Dict[str, SourcePlatform]:
    return {
        "github": GitHubPlatform(github_token),
        "codeberg": CodebergPlatform(codeberg_token),
    }
