"""Abstract base class for blob store backends."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass


@dataclass(frozen=True)
class StoredFile:
    """Content of a stored file plus its revision tag.

    Attributes:
        content: Raw file bytes.
        revision: Opaque version token required to update or delete the file.
    """

    content: bytes
    revision: str


class StorageBackend(ABC):
    """Abstract blob store with per-path optimistic concurrency.

    Every file is versioned by an opaque revision tag returned on read and
    required on update/delete. Mutations carry a human-readable message that
    is recorded by the store and never read back.
    """

    @abstractmethod
    async def read(self, path: str) -> StoredFile | None:
        """Read a file.

        Args:
            path: Repository-relative path.

        Returns:
            The stored file, or None if the path does not exist.

        Raises:
            TransientError: On network or server failure.
        """

    async def revision(self, path: str) -> str | None:
        """Get the current revision tag of a path (None if absent)."""
        stored = await self.read(path)
        return stored.revision if stored else None

    @abstractmethod
    async def create(self, path: str, content: bytes, message: str) -> None:
        """Create a new file.

        Raises:
            ConflictError: If the path already exists.
            TransientError: On network or server failure.
        """

    @abstractmethod
    async def update(self, path: str, content: bytes, revision: str, message: str) -> None:
        """Replace an existing file.

        Raises:
            ConflictError: If revision no longer matches the stored file.
            NotFoundError: If the path no longer exists.
            TransientError: On network or server failure.
        """

    @abstractmethod
    async def delete(self, path: str, revision: str, message: str) -> None:
        """Delete a file.

        Raises:
            ConflictError: If revision no longer matches the stored file.
            NotFoundError: If the path no longer exists.
            TransientError: On network or server failure.
        """

    @abstractmethod
    async def read_public(self, path: str) -> bytes:
        """Read file bytes through the unauthenticated public route.

        Raises:
            NotFoundError: If the path does not exist.
            TransientError: On network or server failure.
        """

    @abstractmethod
    async def list_paths(self) -> list[str]:
        """List every file path in the store.

        Raises:
            IncompleteListingError: If only part of the listing is available.
        """

    async def close(self) -> None:
        """Release any held resources."""
