"""Local filesystem storage backend using pathlib.

Revision tags are git blob hashes of the file content, so a tag changes
exactly when the bytes do, as in the GitHub backend.
"""

from __future__ import annotations

import hashlib
import logging
from pathlib import Path

from minetunnel.storage.backends.base import StorageBackend, StoredFile
from minetunnel.storage.errors import ConflictError, NotFoundError

logger = logging.getLogger(__name__)


def git_blob_sha(content: bytes) -> str:
    """Compute the git blob SHA-1 of some content."""
    header = f"blob {len(content)}\0".encode("utf-8")
    return hashlib.sha1(header + content).hexdigest()


class LocalStorageBackend(StorageBackend):
    """Pathlib-based local filesystem blob store."""

    def __init__(self, root: str | Path) -> None:
        self.root = Path(root).resolve()

    def _resolve(self, path: str) -> Path:
        p = (self.root / path).resolve()
        if p == self.root or self.root not in p.parents:
            raise ValueError(f"Path escapes storage root: {path}")
        return p

    def _check_revision(self, path: str, p: Path, revision: str) -> None:
        if not p.is_file():
            raise NotFoundError(path)
        if git_blob_sha(p.read_bytes()) != revision:
            raise ConflictError("Revision does not match stored file", path)

    async def read(self, path: str) -> StoredFile | None:
        """Read a local file and hash it."""
        p = self._resolve(path)
        if not p.is_file():
            return None
        content = p.read_bytes()
        return StoredFile(content=content, revision=git_blob_sha(content))

    async def create(self, path: str, content: bytes, message: str) -> None:
        """Create a local file, refusing to overwrite."""
        p = self._resolve(path)
        if p.exists():
            raise ConflictError("File already exists", path, status_code=422)
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_bytes(content)
        logger.info(message)

    async def update(self, path: str, content: bytes, revision: str, message: str) -> None:
        """Replace a local file if its hash still matches."""
        p = self._resolve(path)
        self._check_revision(path, p, revision)
        p.write_bytes(content)
        logger.info(message)

    async def delete(self, path: str, revision: str, message: str) -> None:
        """Delete a local file if its hash still matches."""
        p = self._resolve(path)
        self._check_revision(path, p, revision)
        p.unlink()
        logger.info(message)

    async def read_public(self, path: str) -> bytes:
        """Read local file bytes (no separate public route locally)."""
        p = self._resolve(path)
        if not p.is_file():
            raise NotFoundError(path)
        return p.read_bytes()

    async def list_paths(self) -> list[str]:
        """List all files under the root as POSIX relative paths."""
        if not self.root.exists():
            return []
        return sorted(p.relative_to(self.root).as_posix() for p in self.root.rglob("*") if p.is_file())
