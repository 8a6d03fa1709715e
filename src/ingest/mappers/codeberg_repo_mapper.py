from ingest.mappers.common import iso_to_unix, none_if_blank, spdx_id
from ingest.models import Repository


def map_repo(item: dict) -> Repository:
    """Codeberg search item -> Repository."""
    return Repository(
        platform="codeberg",
        full_name=item["full_name"],
        repo_id=item["id"],
        name=item["name"],
        owner=item["owner"]["login"],
        default_branch=item["default_branch"],

        description=none_if_blank(item.get("description")),
        # codeberg reports "website", older versions "homepage"
        homepage=none_if_blank(item.get("website") or item.get("homepage")),
        license=spdx_id(item.get("license")),
        language=none_if_blank(item.get("language")),

        stars=item.get("stars_count", 0),
        forks=item.get("forks_count", 0),
        is_fork=bool(item.get("fork", False)),
        is_archived=bool(item.get("archived", False)),

        created_at=iso_to_unix(item.get("created_at")),
        updated_at=iso_to_unix(item.get("updated_at")),
        # no pushed_at on codeberg
        pushed_at=iso_to_unix(item.get("updated_at")),
    )
