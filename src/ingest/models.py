from typing import List, Literal, Optional

from pydantic import BaseModel, ConfigDict, Field

Platform = Literal["github", "codeberg"]
DependencyType = Literal["path", "url"]


class Repository(BaseModel):
    """
    Normalized repository record. Every platform mapper produces this shape:
    unix-second timestamps, None for missing optional fields.
    """

    model_config = ConfigDict(frozen=True)

    # identity
    platform: Platform
    full_name: str
    repo_id: int
    name: str
    owner: str
    default_branch: str

    # descriptive
    description: Optional[str] = None
    homepage: Optional[str] = None
    license: Optional[str] = None
    language: Optional[str] = None

    # signals
    stars: int = 0
    forks: int = 0
    is_fork: bool = False
    is_archived: bool = False

    # activity
    created_at: int
    updated_at: int
    pushed_at: int


class RepoRef(BaseModel):
    """What a manifest fetch needs to know about its repository."""

    model_config = ConfigDict(frozen=True)

    platform: Platform
    full_name: str
    default_branch: str

    @classmethod
    def of(cls, repo: Repository) -> "RepoRef":
        return cls(platform=repo.platform, full_name=repo.full_name, default_branch=repo.default_branch)

    @property
    def key(self) -> dict:
        return {"platform": self.platform, "full_name": self.full_name}


class UrlDependency(BaseModel):
    model_config = ConfigDict(frozen=True)

    hash: str
    name: str
    url: str


class DependencyEdge(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    dependency_type: DependencyType
    path: Optional[str] = None
    url_dependency_hash: Optional[str] = None

    @property
    def target(self) -> Optional[str]:
        return self.path if self.dependency_type == "path" else self.url_dependency_hash


class ManifestSnapshot(BaseModel):
    name: Optional[str] = None
    version: Optional[str] = None
    minimum_zig_version: Optional[str] = None
    paths: List[str] = Field(default_factory=list)
    url_dependencies: List[UrlDependency] = Field(default_factory=list)
    dependencies: List[DependencyEdge] = Field(default_factory=list)
