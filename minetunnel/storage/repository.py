"""Manifest repository: the read-modify-write protocol over the blob store.

The manifest (manifest.json) indexes every live reference image by album.
Each workflow here re-reads it fresh, performs its blob operations one at a
time, then pushes a whole new manifest through commit(), which is the only
place manifest writes happen.

Consistency caveats (no multi-file transactions exist in the store):

- add_images uploads blobs before committing. If an upload or the commit
  fails, blobs already uploaded stay in the store as orphans.
- delete_image deletes the blob before committing. If the commit fails, the
  manifest keeps a dangling reference to a missing blob.
- rename_album copies then deletes file by file. A failure midway leaves
  images under both names; a blind retry stops with NotFoundError on the
  first image already moved.
- commit() re-reads the manifest revision right before writing, but another
  writer can still slip in between; the write then fails with ConflictError
  and nothing is retried or merged.

No workflow rolls back partial remote effects. reconcile() is the separate
maintenance pass that reports (and optionally repairs) orphans and dangling
references.

Examples:
    >>> from minetunnel.storage import ManifestRepository, UploadFile
    >>> repo = ManifestRepository(backend)
    >>> manifest = await repo.add_images("vehicles", [UploadFile("cart.jpg", data)])
    >>> manifest.album_names()
    ['normal', 'vehicles']
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Sequence
from dataclasses import dataclass, field
from datetime import datetime, timezone
from typing import Any

from minetunnel.storage.backends import StorageBackend, build_backend
from minetunnel.storage.config import StorageConfig
from minetunnel.storage.errors import (
    CorruptManifestError,
    InvalidAlbumNameError,
    InvalidRenameError,
    NotFoundError,
    ProtectedAlbumError,
    StoreError,
)
from minetunnel.storage.manifest import (
    DEFAULT_ALBUM,
    ImageRecord,
    Manifest,
    decode_manifest,
    encode_manifest,
)
from minetunnel.storage.naming import build_image_path, is_image_path, rename_image_path, slugify

logger = logging.getLogger(__name__)


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


@dataclass(frozen=True)
class UploadFile:
    """A file handed to add_images.

    Attributes:
        name: Original file name (used to derive the blob path).
        content: File bytes.
    """

    name: str
    content: bytes


@dataclass
class ReconcileReport:
    """Outcome of a reconciliation scan.

    Attributes:
        orphans: Image-shaped store paths (see is_image_path) that no record references.
        dangling: (album, path) records whose blob is missing from the store.
        repaired: Whether orphans were deleted and dangling records pruned.
    """

    orphans: list[str] = field(default_factory=list)
    dangling: list[tuple[str, str]] = field(default_factory=list)
    repaired: bool = False

    @property
    def clean(self) -> bool:
        return not self.orphans and not self.dangling


class ManifestRepository:
    """Owns the manifest and the workflows that mutate it.

    Attributes:
        backend: Blob store holding the manifest and the images.
        manifest_path: Repository-relative manifest path.
        strict: Raise CorruptManifestError on a corrupt manifest. When off, the
            manifest is reset to the bootstrap state (and overwritten by the
            next commit).
        manifest: Last manifest loaded or successfully committed (None before
            the first load). Workflows never trust it for writes.
    """

    def __init__(
        self,
        backend: StorageBackend,
        manifest_path: str = "manifest.json",
        strict: bool = True,
        clock: Callable[[], datetime] | None = None,
    ) -> None:
        self.backend = backend
        self.manifest_path = manifest_path
        self.strict = strict
        self._clock = clock or _utcnow
        self.manifest: Manifest | None = None

    @classmethod
    def from_config(cls, config: StorageConfig) -> "ManifestRepository":
        """Create a repository and its backend from config."""
        return cls(
            backend=build_backend(config),
            manifest_path=config.manifest_path,
            strict=config.strict_manifest,
        )

    async def close(self) -> None:
        await self.backend.close()

    async def __aenter__(self) -> "ManifestRepository":
        return self

    async def __aexit__(self, *exc_info: Any) -> None:
        await self.close()

    # ------------------------------------------------------------------
    # Read / write
    # ------------------------------------------------------------------

    async def load_manifest(self) -> Manifest:
        """Fetch and decode the manifest.

        A missing manifest yields the bootstrap state ({"normal": []}).
        The legacy {"images": [...]} shape is migrated in memory only.
        A corrupt manifest raises, unless strict is off, in which case it
        also yields the bootstrap state.

        Returns:
            The decoded manifest.

        Raises:
            CorruptManifestError: If the manifest is corrupt and strict is on.
            TransientError: On network or server failure.
        """
        stored = await self.backend.read(self.manifest_path)
        if stored is None:
            logger.info(f"No manifest at {self.manifest_path}, starting from an empty library")
            manifest = Manifest.bootstrap()
        else:
            try:
                manifest = decode_manifest(stored.content, self.manifest_path)
            except CorruptManifestError as e:
                if self.strict:
                    raise
                logger.warning(f"Corrupt manifest treated as empty library: {e}")
                manifest = Manifest.bootstrap()

        self.manifest = manifest
        return manifest

    async def commit(self, manifest: Manifest, summary: str) -> None:
        """Push a whole new manifest.

        The manifest revision is re-read right before writing; update is used
        when the file exists, create otherwise.

        Args:
            manifest: The new manifest value.
            summary: Human-readable description used in the commit message.

        Raises:
            ConflictError: If another writer changed the manifest in between.
        """
        content = encode_manifest(manifest)
        message = f"chore: update manifest ({summary})"
        revision = await self.backend.revision(self.manifest_path)
        if revision:
            await self.backend.update(self.manifest_path, content, revision, message)
        else:
            await self.backend.create(self.manifest_path, content, message)

        self.manifest = manifest
        logger.info(f"Manifest committed: {summary}")

    # ------------------------------------------------------------------
    # Workflows
    # ------------------------------------------------------------------

    async def add_images(self, target_album: str, files: Sequence[UploadFile]) -> Manifest:
        """Upload files into an album and record them.

        Each file gets a unique path stamped with the batch start time plus
        its index. Blobs are uploaded one by one before the manifest is
        touched; the first failure aborts the batch and propagates, leaving
        earlier uploads orphaned.

        Args:
            target_album: Album name (slugified; created if missing).
            files: Files to upload, in order.

        Returns:
            The committed manifest.

        Raises:
            InvalidAlbumNameError: If the album name slugifies to nothing.
        """
        album = slugify(target_album)
        if not album:
            raise InvalidAlbumNameError(f"Invalid album name: {target_album!r}")

        current = await self.load_manifest()
        if not files:
            return current

        batch_start = int(self._clock().timestamp() * 1000)
        uploaded: list[ImageRecord] = []
        for index, upload in enumerate(files):
            path = build_image_path(album, upload.name, batch_start + index)
            try:
                await self.backend.create(path, upload.content, f"feat: add file {path}")
            except StoreError:
                if uploaded:
                    logger.warning(
                        f"Upload of {path} failed; orphaned blobs left in store: "
                        f"{[record.path for record in uploaded]}"
                    )
                raise
            uploaded.append(ImageRecord(path=path, created_at=self._clock()))

        updated = current.clone()
        updated.albums.setdefault(album, []).extend(uploaded)
        await self.commit(updated, f"add {len(uploaded)} file(s) to {album}")
        return updated

    async def delete_image(self, album: str, path: str) -> Manifest:
        """Delete one image blob and its record.

        Args:
            album: Album holding the record.
            path: Exact path of the image.

        Returns:
            The committed manifest.

        Raises:
            NotFoundError: If the blob does not exist.
        """
        current = await self.load_manifest()
        revision = await self.backend.revision(path)
        if revision is None:
            raise NotFoundError(path, "Could not find file to delete")

        await self.backend.delete(path, revision, f"feat: delete file {path}")

        updated = current.clone()
        records = updated.albums.get(album, [])
        for i, record in enumerate(records):
            if record.path == path:
                del records[i]
                break
        else:
            logger.warning(f"Deleted blob {path} had no record in album {album}")

        await self.commit(updated, f"delete {path}")
        return updated

    async def delete_album(self, album: str) -> Manifest:
        """Delete an album and every blob in it.

        Blobs are deleted sequentially. Missing blobs are skipped so a
        partially deleted album can be finished; other errors abort.

        Raises:
            ProtectedAlbumError: For the default album.
            NotFoundError: If the album is not in the manifest.
        """
        if album == DEFAULT_ALBUM:
            raise ProtectedAlbumError(f"The default '{DEFAULT_ALBUM}' album cannot be deleted")

        current = await self.load_manifest()
        if album not in current.albums:
            raise NotFoundError(album, f"Album '{album}' does not exist")

        for record in current.albums[album]:
            await self._delete_if_present(record.path)

        updated = current.clone()
        del updated.albums[album]
        await self.commit(updated, f"delete album {album}")
        return updated

    async def rename_album(self, old_name: str, new_name: str) -> Manifest:
        """Rename an album by copying every blob to the new directory.

        Validation runs against the last loaded manifest before any remote
        call, then again against a fresh read. A repository that has not
        loaded a manifest yet refuses to rename. Each image is read, created
        under the new album, and its original deleted; createdAt is kept.

        Raises:
            InvalidRenameError: For the default album, an empty or unchanged
                name, a name already taken, or no loaded manifest.
            NotFoundError: If the album or one of its blobs is missing.
        """
        new_slug = slugify(new_name)
        self._validate_rename(old_name, new_slug, self.manifest)

        current = await self.load_manifest()
        self._validate_rename(old_name, new_slug, current)
        if old_name not in current.albums:
            raise NotFoundError(old_name, f"Album '{old_name}' does not exist")

        moved: list[ImageRecord] = []
        try:
            for record in current.albums[old_name]:
                new_path = rename_image_path(record.path, old_name, new_slug)
                stored = await self.backend.read(record.path)
                if stored is None:
                    raise NotFoundError(record.path, "Image to move is missing from the store")
                await self.backend.create(new_path, stored.content, f"feat: add file {new_path}")
                await self.backend.delete(record.path, stored.revision, f"feat: delete file {record.path}")
                moved.append(ImageRecord(path=new_path, created_at=record.created_at))
        except StoreError:
            if moved:
                logger.warning(
                    f"Rename {old_name} -> {new_slug} stopped after moving {len(moved)} image(s); "
                    f"moved blobs are not in the manifest: {[record.path for record in moved]}"
                )
            raise

        updated = current.clone()
        del updated.albums[old_name]
        updated.albums[new_slug] = moved
        await self.commit(updated, f"rename album {old_name} to {new_slug}")
        return updated

    async def add_album(self, name: str) -> Manifest:
        """Create an empty album.

        Raises:
            InvalidAlbumNameError: If the name is empty or already exists.
        """
        slug = slugify(name)
        if not slug:
            raise InvalidAlbumNameError(f"Invalid album name: {name!r}")
        if self.manifest is not None and slug in self.manifest.albums:
            raise InvalidAlbumNameError(f"Album '{slug}' already exists")

        current = await self.load_manifest()
        if slug in current.albums:
            raise InvalidAlbumNameError(f"Album '{slug}' already exists")

        updated = current.clone()
        updated.albums[slug] = []
        await self.commit(updated, f"add album {slug}")
        return updated

    async def fetch_reference(self, path: str) -> bytes:
        """Read a library image through the public route."""
        return await self.backend.read_public(path)

    # ------------------------------------------------------------------
    # Maintenance
    # ------------------------------------------------------------------

    async def reconcile(self, repair: bool = False) -> ReconcileReport:
        """Compare the manifest with the store contents.

        Only files shaped like uploaded images count as orphans; anything
        else kept in the repository is left alone.

        Args:
            repair: Delete orphans and prune dangling records.

        Returns:
            ReconcileReport describing what was found.

        Raises:
            IncompleteListingError: If the store cannot list every file.
                Nothing is reported or repaired in that case.
        """
        current = await self.load_manifest()
        stored_paths = set(await self.backend.list_paths())
        referenced = current.all_paths()

        report = ReconcileReport(
            orphans=sorted(p for p in stored_paths if is_image_path(p) and p not in referenced),
            dangling=[
                (album, record.path)
                for album in current.album_names()
                for record in current.albums[album]
                if record.path not in stored_paths
            ],
        )
        if report.orphans:
            logger.warning(f"Found {len(report.orphans)} orphaned blob(s)")
        if report.dangling:
            logger.warning(f"Found {len(report.dangling)} dangling manifest reference(s)")

        if not repair or report.clean:
            return report

        for path in report.orphans:
            await self._delete_if_present(path)

        if report.dangling:
            missing = {path for _, path in report.dangling}
            updated = current.clone()
            for album, records in updated.albums.items():
                updated.albums[album] = [r for r in records if r.path not in missing]
            await self.commit(updated, f"prune {len(missing)} dangling reference(s)")

        report.repaired = True
        return report

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    def _validate_rename(self, old_name: str, new_slug: str, manifest: Manifest | None) -> None:
        if old_name == DEFAULT_ALBUM:
            raise InvalidRenameError(f"The default '{DEFAULT_ALBUM}' album cannot be renamed")
        if not new_slug:
            raise InvalidRenameError("New album name is empty")
        if new_slug == old_name:
            raise InvalidRenameError("New album name is the same as the old one")
        if manifest is None:
            raise InvalidRenameError("No manifest loaded; call load_manifest() before renaming")
        if new_slug in manifest.albums:
            raise InvalidRenameError(f"Album '{new_slug}' already exists")

    async def _delete_if_present(self, path: str) -> bool:
        revision = await self.backend.revision(path)
        if revision is None:
            logger.warning(f"Skipping missing blob {path}")
            return False
        try:
            await self.backend.delete(path, revision, f"feat: delete file {path}")
        except NotFoundError:
            logger.warning(f"Blob {path} vanished before delete")
            return False
        return True
