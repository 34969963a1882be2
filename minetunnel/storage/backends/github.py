"""GitHub contents API storage backend.

A GitHub repository serves as the blob store: each file is versioned by its
blob SHA, which the contents API requires on update and delete. A stale SHA
is rejected, giving per-file optimistic concurrency.

GitHub REST docs: https://docs.github.com/en/rest/repos/contents

Examples:
    >>> from minetunnel.storage.backends.github import GitHubStorageBackend
    >>> backend = GitHubStorageBackend(token="ghp_...", owner="me", repo="ImageLibrary")
    >>> stored = await backend.read("manifest.json")
    >>> await backend.close()
"""

from __future__ import annotations

import base64
import logging
from typing import Any
from urllib.parse import quote

import httpx

from minetunnel.storage.backends.base import StorageBackend, StoredFile
from minetunnel.storage.errors import (
    AuthenticationError,
    ConflictError,
    IncompleteListingError,
    NotFoundError,
    StoreError,
    TransientError,
)

logger = logging.getLogger(__name__)

GITHUB_API_BASE = "https://api.github.com"
GITHUB_RAW_BASE = "https://raw.githubusercontent.com"
GITHUB_API_VERSION = "2022-11-28"


class GitHubStorageBackend(StorageBackend):
    """Blob store over a GitHub repository branch.

    Attributes:
        owner: Repository owner.
        repo: Repository name.
        branch: Branch that holds the library.
        timeout: Request timeout in seconds.
    """

    def __init__(
        self,
        token: str,
        owner: str,
        repo: str,
        branch: str = "main",
        api_base: str = GITHUB_API_BASE,
        raw_base: str = GITHUB_RAW_BASE,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.token = token
        self.owner = owner
        self.repo = repo
        self.branch = branch
        self.api_base = api_base.rstrip("/")
        self.raw_base = raw_base.rstrip("/")
        self.timeout = timeout
        self._transport = transport
        self._client: httpx.AsyncClient | None = None
        self._public_client: httpx.AsyncClient | None = None

    @property
    def client(self) -> httpx.AsyncClient:
        """Authenticated API client (lazy initialization)."""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(
                base_url=self.api_base,
                timeout=self.timeout,
                transport=self._transport,
                headers={
                    "Authorization": f"Bearer {self.token}",
                    "Accept": "application/vnd.github+json",
                    "X-GitHub-Api-Version": GITHUB_API_VERSION,
                },
            )
        return self._client

    @property
    def public_client(self) -> httpx.AsyncClient:
        """Unauthenticated raw content client (lazy initialization)."""
        if self._public_client is None or self._public_client.is_closed:
            self._public_client = httpx.AsyncClient(
                base_url=self.raw_base,
                timeout=self.timeout,
                transport=self._transport,
            )
        return self._public_client

    async def close(self) -> None:
        """Close the HTTP clients."""
        for client in (self._client, self._public_client):
            if client is not None and not client.is_closed:
                await client.aclose()
        self._client = None
        self._public_client = None

    async def __aenter__(self) -> "GitHubStorageBackend":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    def _contents_url(self, path: str) -> str:
        return f"/repos/{self.owner}/{self.repo}/contents/{quote(path)}"

    def _handle_error(self, response: httpx.Response, path: str | None) -> None:
        """Convert HTTP errors to store errors.

        Raises:
            NotFoundError: For 404.
            ConflictError: For 409 (stale sha) and 422 (create over existing file).
            AuthenticationError: For 401.
            TransientError: For 429, rate-limited 403, and 5xx.
            StoreError: For anything else.
        """
        status = response.status_code
        try:
            data = response.json()
            message = data.get("message", response.text) if isinstance(data, dict) else response.text
        except ValueError:
            message = response.text or response.reason_phrase

        if status == 404:
            raise NotFoundError(path or "", message)
        if status in (409, 422):
            raise ConflictError(message, path, status_code=status)
        if status == 401:
            raise AuthenticationError(path)
        if status == 429 or (status == 403 and response.headers.get("X-RateLimit-Remaining") == "0"):
            retry_after = response.headers.get("Retry-After")
            raise TransientError(
                "GitHub rate limit exceeded",
                path,
                status_code=status,
                retry_after=int(retry_after) if retry_after and retry_after.isdigit() else None,
            )
        if status >= 500:
            raise TransientError(f"GitHub server error: {message}", path, status_code=status)
        raise StoreError(f"GitHub API error: {message}", path, status_code=status)

    async def _request(
        self,
        client: httpx.AsyncClient,
        method: str,
        url: str,
        path: str | None,
        **kwargs: Any,
    ) -> httpx.Response:
        try:
            return await client.request(method, url, **kwargs)
        except httpx.TransportError as e:
            raise TransientError(f"Network error talking to GitHub: {e}", path) from e

    async def read(self, path: str) -> StoredFile | None:
        """Read a file via the contents API (None on 404)."""
        response = await self._request(
            self.client,
            "GET",
            self._contents_url(path),
            path,
            params={"ref": self.branch},
            headers={"Cache-Control": "no-cache"},
        )
        if response.status_code == 404:
            return None
        if response.status_code != 200:
            self._handle_error(response, path)

        data = response.json()
        if not isinstance(data, dict) or data.get("type", "file") != "file":
            raise StoreError("Path is not a file", path, status_code=response.status_code)

        sha = data["sha"]
        if data.get("encoding") == "base64" and data.get("content"):
            content = base64.b64decode(data["content"])
        elif data.get("size", 0) == 0:
            content = b""
        else:
            # Files over 1 MB come back without inline content
            content = await self._read_git_blob(sha, path)
        return StoredFile(content=content, revision=sha)

    async def _read_git_blob(self, sha: str, path: str) -> bytes:
        response = await self._request(
            self.client,
            "GET",
            f"/repos/{self.owner}/{self.repo}/git/blobs/{sha}",
            path,
        )
        if response.status_code != 200:
            self._handle_error(response, path)
        return base64.b64decode(response.json()["content"])

    async def _put(self, path: str, content: bytes, message: str, sha: str | None) -> None:
        payload: dict[str, Any] = {
            "message": message,
            "content": base64.b64encode(content).decode("ascii"),
            "branch": self.branch,
        }
        if sha is not None:
            payload["sha"] = sha
        response = await self._request(self.client, "PUT", self._contents_url(path), path, json=payload)
        if response.status_code not in (200, 201):
            self._handle_error(response, path)
        logger.info(f"GitHub commit: {message}")

    async def create(self, path: str, content: bytes, message: str) -> None:
        """Create a file (GitHub answers 422 if it already exists)."""
        await self._put(path, content, message, sha=None)

    async def update(self, path: str, content: bytes, revision: str, message: str) -> None:
        """Replace a file, guarded by its blob SHA."""
        await self._put(path, content, message, sha=revision)

    async def delete(self, path: str, revision: str, message: str) -> None:
        """Delete a file, guarded by its blob SHA."""
        response = await self._request(
            self.client,
            "DELETE",
            self._contents_url(path),
            path,
            json={"message": message, "sha": revision, "branch": self.branch},
        )
        if response.status_code != 200:
            self._handle_error(response, path)
        logger.info(f"GitHub commit: {message}")

    def public_url(self, path: str) -> str:
        """Public raw URL of a file on the configured branch."""
        return f"{self.raw_base}/{self.owner}/{self.repo}/{self.branch}/{quote(path)}"

    async def read_public(self, path: str) -> bytes:
        """Read file bytes from raw.githubusercontent.com without auth."""
        response = await self._request(self.public_client, "GET", self.public_url(path), path)
        if response.status_code != 200:
            self._handle_error(response, path)
        return response.content

    async def list_paths(self) -> list[str]:
        """List every blob on the branch via the recursive git tree.

        Raises:
            IncompleteListingError: If GitHub truncated the tree.
        """
        response = await self._request(
            self.client,
            "GET",
            f"/repos/{self.owner}/{self.repo}/git/trees/{quote(self.branch)}",
            None,
            params={"recursive": "1"},
        )
        if response.status_code in (404, 409):
            # Empty repository has no tree yet
            return []
        if response.status_code != 200:
            self._handle_error(response, None)

        data = response.json()
        if data.get("truncated"):
            raise IncompleteListingError("GitHub tree listing was truncated")
        return sorted(entry["path"] for entry in data.get("tree", []) if entry.get("type") == "blob")
