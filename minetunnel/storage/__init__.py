"""Reference library storage for Mine Tunnel Studio.

A JSON manifest indexes image blobs kept in a GitHub repository (or a local
directory), with single-file optimistic concurrency as the only guarantee.

Examples:
    >>> from minetunnel.storage import ManifestRepository, StorageConfig
    >>> repo = ManifestRepository.from_config(StorageConfig(backend="local"))
    >>> manifest = await repo.load_manifest()
"""

from minetunnel.storage.config import BackendType, StorageConfig
from minetunnel.storage.errors import (
    AlbumValidationError,
    AuthenticationError,
    ConflictError,
    CorruptManifestError,
    IncompleteListingError,
    InvalidAlbumNameError,
    InvalidRenameError,
    NotFoundError,
    ProtectedAlbumError,
    StoreError,
    TransientError,
)
from minetunnel.storage.manifest import DEFAULT_ALBUM, ImageRecord, Manifest, decode_manifest, encode_manifest
from minetunnel.storage.naming import build_image_path, slugify
from minetunnel.storage.repository import ManifestRepository, ReconcileReport, UploadFile

__all__ = [
    "AlbumValidationError",
    "AuthenticationError",
    "BackendType",
    "ConflictError",
    "CorruptManifestError",
    "DEFAULT_ALBUM",
    "ImageRecord",
    "IncompleteListingError",
    "InvalidAlbumNameError",
    "InvalidRenameError",
    "Manifest",
    "ManifestRepository",
    "NotFoundError",
    "ProtectedAlbumError",
    "ReconcileReport",
    "StorageConfig",
    "StoreError",
    "TransientError",
    "UploadFile",
    "build_image_path",
    "decode_manifest",
    "encode_manifest",
    "slugify",
]
