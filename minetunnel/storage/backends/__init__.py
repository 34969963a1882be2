"""Storage backends for blob I/O."""

from minetunnel.storage.backends.base import StorageBackend, StoredFile
from minetunnel.storage.backends.github import GitHubStorageBackend
from minetunnel.storage.backends.local import LocalStorageBackend
from minetunnel.storage.config import BackendType, StorageConfig


def build_backend(config: StorageConfig) -> StorageBackend:
    """Create the backend selected by config.

    Raises:
        ValueError: If the GitHub backend is selected without credentials.
    """
    if config.backend == BackendType.LOCAL:
        return LocalStorageBackend(config.local_root)

    if not (config.github_token and config.github_owner and config.github_repo):
        raise ValueError("GitHub backend requires github_token, github_owner and github_repo")
    return GitHubStorageBackend(
        token=config.github_token,
        owner=config.github_owner,
        repo=config.github_repo,
        branch=config.github_branch,
        api_base=config.github_api_base,
        raw_base=config.github_raw_base,
        timeout=config.timeout,
    )


__all__ = [
    "GitHubStorageBackend",
    "LocalStorageBackend",
    "StorageBackend",
    "StoredFile",
    "build_backend",
]
