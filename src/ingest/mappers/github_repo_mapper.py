from ingest.mappers.common import iso_to_unix, none_if_blank, spdx_id
from ingest.models import Repository


def map_repo(item: dict) -> Repository:
    """GitHub search item -> Repository."""
    return Repository(
        # --------------------
        # Identity
        # --------------------
        platform="github",
        full_name=item["full_name"],
        repo_id=item["id"],
        name=item["name"],
        owner=item["owner"]["login"],
        default_branch=item["default_branch"],

        # --------------------
        # Descriptive (nullable)
        # --------------------
        description=none_if_blank(item.get("description")),
        homepage=none_if_blank(item.get("homepage")),
        license=spdx_id(item.get("license")),
        language=none_if_blank(item.get("language")),

        # --------------------
        # Signals
        # --------------------
        stars=item.get("stargazers_count", 0),
        forks=item.get("forks_count", 0),
        is_fork=bool(item.get("fork", False)),
        is_archived=bool(item.get("archived", False)),

        # --------------------
        # Activity (unix seconds)
        # --------------------
        created_at=iso_to_unix(item.get("created_at")),
        updated_at=iso_to_unix(item.get("updated_at")),
        pushed_at=iso_to_unix(item.get("pushed_at")),
    )
