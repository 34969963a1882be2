"""Manifest schema, decoding and encoding.

The manifest is the JSON index at the repository root mapping album name to
an ordered list of image records. It is the single source of truth for which
blobs are live.

Wire format:
    {"albums": {"normal": [{"path": "normal/...jpg", "createdAt": "...Z"}]}}

Legacy format (accepted on read only):
    {"images": [{"path": "...", "createdAt": "..."}]}

Examples:
    >>> from minetunnel.storage.manifest import decode_manifest
    >>> m = decode_manifest(b'{"images": []}')
    >>> m.albums
    {'normal': []}
"""

from __future__ import annotations

import json
from datetime import datetime, timezone
from typing import Any

from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_serializer, model_validator

from minetunnel.storage.errors import CorruptManifestError

DEFAULT_ALBUM = "normal"


class ImageRecord(BaseModel):
    """A single live reference image."""

    model_config = ConfigDict(frozen=True, populate_by_name=True)

    path: str
    created_at: datetime = Field(alias="createdAt")

    @field_serializer("created_at")
    def _serialize_created_at(self, value: datetime) -> str:
        if value.tzinfo is None:
            value = value.replace(tzinfo=timezone.utc)
        return value.astimezone(timezone.utc).isoformat(timespec="milliseconds").replace("+00:00", "Z")


class Manifest(BaseModel):
    """Album index over the blob store.

    Attributes:
        albums: Album name to ordered image records. Always holds "normal".
    """

    albums: dict[str, list[ImageRecord]] = Field(default_factory=dict)

    @model_validator(mode="after")
    def _ensure_default_album(self) -> "Manifest":
        self.albums.setdefault(DEFAULT_ALBUM, [])
        return self

    @classmethod
    def bootstrap(cls) -> "Manifest":
        """The state used when no manifest exists yet."""
        return cls(albums={DEFAULT_ALBUM: []})

    def album_names(self) -> list[str]:
        """Album names in presentation order (lexicographic)."""
        return sorted(self.albums)

    def images(self, album: str) -> list[ImageRecord]:
        return list(self.albums.get(album, []))

    def all_paths(self) -> set[str]:
        return {record.path for records in self.albums.values() for record in records}

    def clone(self) -> "Manifest":
        """Deep copy for building the next manifest value."""
        return self.model_copy(deep=True)

    def to_wire(self) -> dict[str, Any]:
        return self.model_dump(mode="json", by_alias=True)


def decode_manifest(raw: bytes | str, path: str | None = None) -> Manifest:
    """Decode manifest file content, migrating the legacy shape.

    Args:
        raw: File content.
        path: Manifest path, for error messages.

    Returns:
        Decoded Manifest.

    Raises:
        CorruptManifestError: If the content is not JSON or has no usable albums.
    """
    try:
        data = json.loads(raw)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise CorruptManifestError(f"Manifest is not valid JSON: {e}", path) from e

    if not isinstance(data, dict):
        raise CorruptManifestError("Manifest root is not an object", path)

    images = data.get("images")
    if isinstance(images, list):
        data = {"albums": {DEFAULT_ALBUM: images}}
    elif not isinstance(data.get("albums"), dict):
        raise CorruptManifestError("Manifest has no 'albums' mapping", path)

    try:
        return Manifest.model_validate({"albums": data["albums"]})
    except ValidationError as e:
        raise CorruptManifestError(f"Manifest albums are malformed: {e}", path) from e


def encode_manifest(manifest: Manifest) -> bytes:
    """Encode a manifest as 2-space indented UTF-8 JSON."""
    return json.dumps(manifest.to_wire(), indent=2, ensure_ascii=False).encode("utf-8")
