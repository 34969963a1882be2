"""Storage configuration model."""

from __future__ import annotations

from enum import Enum

from pydantic import BaseModel, Field


class BackendType(str, Enum):
    """Supported blob store backends."""

    GITHUB = "github"
    LOCAL = "local"


class StorageConfig(BaseModel):
    """Configuration for the reference library store.

    Attributes:
        backend: Which blob store to use.
        github_token: Token for the GitHub contents API.
        github_owner: Repository owner.
        github_repo: Repository name.
        github_branch: Branch holding the library.
        github_api_base: REST API base URL.
        github_raw_base: Unauthenticated raw content base URL.
        local_root: Root directory for the local backend.
        manifest_path: Repository-relative manifest path.
        strict_manifest: Raise on a corrupt manifest instead of resetting it (default on).
        timeout: HTTP timeout in seconds.
    """

    backend: BackendType = Field(default=BackendType.GITHUB, description="Blob store backend")
    github_token: str | None = Field(default=None, description="GitHub API token")
    github_owner: str | None = Field(default=None, description="GitHub repository owner")
    github_repo: str | None = Field(default=None, description="GitHub repository name")
    github_branch: str = Field(default="main", description="GitHub branch")
    github_api_base: str = Field(default="https://api.github.com", description="GitHub API base URL")
    github_raw_base: str = Field(
        default="https://raw.githubusercontent.com",
        description="GitHub raw content base URL",
    )
    local_root: str = Field(default="./output/library", description="Local store root directory")
    manifest_path: str = Field(default="manifest.json", description="Manifest path")
    strict_manifest: bool = Field(default=True, description="Raise on corrupt manifest")
    timeout: float = Field(default=30.0, gt=0, description="HTTP timeout in seconds")
