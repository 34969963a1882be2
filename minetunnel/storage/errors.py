"""Error hierarchy for the blob store and the manifest repository.

Remote failures are split by what the caller can do about them:

- TransientError: network or server trouble, retrying the workflow may help.
- ConflictError: an optimistic-concurrency check failed. Reload and redo.
- NotFoundError: the path does not exist (often non-fatal to the caller).

Validation errors (AlbumValidationError and subclasses) are raised before
any remote call is issued.

Examples:
    >>> try:
    ...     await repo.delete_album("normal")
    ... except ProtectedAlbumError as e:
    ...     print(e)
"""

from __future__ import annotations


class StoreError(Exception):
    """Base exception for blob store and manifest errors.

    Attributes:
        path: Repository-relative path involved (if any)
        status_code: HTTP status code (if applicable)
        retryable: Whether retrying the same workflow may succeed
    """

    def __init__(
        self,
        message: str,
        path: str | None = None,
        status_code: int | None = None,
        retryable: bool = False,
    ) -> None:
        super().__init__(message)
        self.path = path
        self.status_code = status_code
        self.retryable = retryable

    def __str__(self) -> str:
        parts = [self.args[0]]
        if self.status_code:
            parts.insert(0, f"({self.status_code})")
        if self.path:
            parts.append(f"[{self.path}]")
        return " ".join(parts)


class TransientError(StoreError):
    """Network or server-side failure (temporary, retrying may help)."""

    def __init__(
        self,
        message: str,
        path: str | None = None,
        status_code: int | None = None,
        retry_after: int | None = None,
    ) -> None:
        if retry_after:
            message += f", retry after {retry_after}s"
        super().__init__(message, path, status_code=status_code, retryable=True)
        self.retry_after = retry_after


class ConflictError(StoreError):
    """Optimistic-concurrency violation on write.

    Someone else wrote the path since it was last read, or a create hit an
    existing file. The caller must reload and redo the workflow.
    """

    def __init__(self, message: str, path: str | None = None, status_code: int | None = 409) -> None:
        super().__init__(message, path, status_code=status_code, retryable=False)


class NotFoundError(StoreError):
    """The path does not exist in the store."""

    def __init__(self, path: str, message: str | None = None) -> None:
        super().__init__(message or "File not found", path, status_code=404, retryable=False)


class AuthenticationError(StoreError):
    """The store rejected the configured credentials."""

    def __init__(self, path: str | None = None) -> None:
        super().__init__(
            "Authentication failed - check GITHUB_TOKEN",
            path,
            status_code=401,
            retryable=False,
        )


class CorruptManifestError(StoreError):
    """The manifest exists but cannot be decoded into albums."""

    def __init__(self, message: str, path: str | None = None) -> None:
        super().__init__(message, path, retryable=False)


class AlbumValidationError(StoreError):
    """Base class for album validation failures (no remote call issued)."""

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)


class InvalidRenameError(AlbumValidationError):
    """Rename target is empty, unchanged, reserved, or already taken."""


class ProtectedAlbumError(AlbumValidationError):
    """The reserved default album cannot be deleted or renamed."""


class InvalidAlbumNameError(AlbumValidationError):
    """Album name is empty after slugification, or already exists."""


class IncompleteListingError(StoreError):
    """The store returned a partial file listing.

    A partial listing makes live blobs look missing, so reconciliation
    refuses to run on one.
    """

    def __init__(self, message: str) -> None:
        super().__init__(message, retryable=False)
