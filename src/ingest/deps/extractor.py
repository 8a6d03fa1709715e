from typing import Any, Dict, List, Tuple

from ingest.models import DependencyEdge, ManifestSnapshot, UrlDependency
from core.logging.logger import get_logger

logger = get_logger(__name__)


def classify_dependencies(dependencies: Dict[str, Any]) -> Tuple[List[UrlDependency], List[DependencyEdge]]:
    """
    Split a manifest's `dependencies` map into url and path dependencies.

    - {url, hash} -> one url edge + one UrlDependency candidate
    - {path}      -> one path edge
    - anything else is skipped (fields this indexer does not understand)
    """
    url_deps: List[UrlDependency] = []
    deps: List[DependencyEdge] = []
    seen_hashes = set()

    for name, dep in dependencies.items():
        if not isinstance(dep, dict):
            logger.debug(f"Skipping dependency {name!r}: not a struct")
            continue

        if isinstance(dep.get("url"), str) and isinstance(dep.get("hash"), str):
            deps.append(
                DependencyEdge(
                    name=name,
                    dependency_type="url",
                    url_dependency_hash=dep["hash"],
                )
            )
            if dep["hash"] not in seen_hashes:
                seen_hashes.add(dep["hash"])
                url_deps.append(UrlDependency(hash=dep["hash"], name=name, url=dep["url"]))
        elif isinstance(dep.get("path"), str):
            deps.append(DependencyEdge(name=name, dependency_type="path", path=dep["path"]))
        else:
            logger.debug(f"Skipping dependency {name!r}: unknown shape {sorted(dep)}")

    return url_deps, deps


def _optional_str(value: Any):
    return None if value is None else str(value)


def extract_manifest(data: Any) -> ManifestSnapshot:
    """Build a manifest snapshot from a parsed build.zig.zon document."""
    if not isinstance(data, dict):
        raise ValueError(f"manifest root must be a struct, got {type(data).__name__}")

    paths = data.get("paths")
    paths = [str(p) for p in paths] if isinstance(paths, list) else []

    url_deps: List[UrlDependency] = []
    deps: List[DependencyEdge] = []
    if isinstance(data.get("dependencies"), dict):
        url_deps, deps = classify_dependencies(data["dependencies"])

    return ManifestSnapshot(
        name=_optional_str(data.get("name")),
        version=_optional_str(data.get("version")),
        minimum_zig_version=_optional_str(data.get("minimum_zig_version")),
        paths=paths,
        url_dependencies=url_deps,
        dependencies=deps,
    )
