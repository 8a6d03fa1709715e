from ingest.mappers.codeberg_repo_mapper import map_repo as map_codeberg_repo
from ingest.mappers.common import iso_to_unix
from ingest.mappers.github_repo_mapper import map_repo as map_github_repo
from ingest.models import RepoRef
from ingest.sources.filters import is_ecosystem_repo


def make_github_item(**overrides):
    base = {
        "id": 264010624,
        "full_name": "zigzap/zap",
        "name": "zap",
        "owner": {"login": "zigzap"},
        "default_branch": "master",
        "description": "blazingly fast backends in zig",
        "homepage": "",
        "license": {"key": "mit", "spdx_id": "MIT"},
        "language": "Zig",
        "stargazers_count": 2000,
        "forks_count": 80,
        "fork": False,
        "archived": False,
        "created_at": "2023-01-01T00:00:00Z",
        "updated_at": "2024-01-01T00:00:00Z",
        "pushed_at": "2024-01-02T00:00:00Z",
    }
    base.update(overrides)
    return base


def make_codeberg_item(**overrides):
    base = {
        "id": 42,
        "full_name": "ziglings/exercises",
        "name": "exercises",
        "owner": {"login": "ziglings"},
        "default_branch": "main",
        "description": "Learn Zig",
        "website": "https://ziglings.org",
        "language": "Zig",
        "stars_count": 500,
        "forks_count": 60,
        "fork": False,
        "archived": False,
        "created_at": "2023-02-01T10:00:00+01:00",
        "updated_at": "2024-03-01T10:00:00+01:00",
    }
    base.update(overrides)
    return base


class TestGithubMapper:
    def test_maps_fields(self):
        repo = map_github_repo(make_github_item())

        assert repo.platform == "github"
        assert repo.full_name == "zigzap/zap"
        assert repo.owner == "zigzap"
        assert repo.stars == 2000
        assert repo.license == "MIT"
        assert repo.homepage is None
        assert repo.pushed_at == iso_to_unix("2024-01-02T00:00:00Z")

    def test_missing_license(self):
        assert map_github_repo(make_github_item(license=None)).license is None

    def test_ref(self):
        ref = RepoRef.of(map_github_repo(make_github_item()))
        assert ref.key == {"platform": "github", "full_name": "zigzap/zap"}
        assert ref.default_branch == "master"


class TestCodebergMapper:
    def test_maps_fields(self):
        repo = map_codeberg_repo(make_codeberg_item())

        assert repo.platform == "codeberg"
        assert repo.stars == 500
        assert repo.homepage == "https://ziglings.org"
        assert repo.license is None
        # codeberg has no pushed_at
        assert repo.pushed_at == repo.updated_at == iso_to_unix("2024-03-01T09:00:00Z")


class TestIsoToUnix:
    def test_epoch(self):
        assert iso_to_unix("1970-01-01T00:00:00Z") == 0

    def test_missing(self):
        assert iso_to_unix(None) == 0


class TestEcosystemFilter:
    def test_zigbee_excluded(self):
        repo = map_github_repo(make_github_item(full_name="koenkk/zigbee2mqtt", name="zigbee2mqtt"))
        assert is_ecosystem_repo(repo, ["zigbee"]) is False

    def test_keyword_in_description(self):
        repo = map_github_repo(make_github_item(description="ZigBee bridge"))
        assert is_ecosystem_repo(repo, ["zigbee"]) is False

    def test_zig_repo_kept(self):
        assert is_ecosystem_repo(map_github_repo(make_github_item()), ["zigbee"]) is True
