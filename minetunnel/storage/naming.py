"""Slug and blob path naming for the reference library.

Blob path format: {album}/{album_slug}_{epoch_millis}_{name_slug}.{ext}

Examples:
    >>> from minetunnel.storage.naming import slugify, build_image_path
    >>> slugify("Xe Goòng Mỏ")
    'xe-goong-mo'
    >>> build_image_path("vehicles", "Cart Photo.JPG", 1717000000000)
    'vehicles/vehicles_1717000000000_cart-photo.JPG'
"""

from __future__ import annotations

import re
import unicodedata


def slugify(text: str) -> str:
    """Convert free text into an album or file-name slug.

    Rules:
        - Decompose accents and drop combining marks
        - Lowercase and trim
        - Whitespace runs become a single hyphen
        - Strip everything except ASCII word characters and hyphens
        - Collapse multiple hyphens, strip leading/trailing hyphens

    Args:
        text: Raw text.

    Returns:
        Slug string, possibly empty.
    """
    if not text:
        return ""
    slug = unicodedata.normalize("NFD", str(text))
    slug = "".join(ch for ch in slug if not unicodedata.combining(ch))
    slug = slug.lower().strip()
    slug = re.sub(r"\s+", "-", slug)
    slug = re.sub(r"[^\w-]+", "", slug, flags=re.ASCII)
    slug = re.sub(r"-{2,}", "-", slug)
    return slug.strip("-")


def split_filename(filename: str) -> tuple[str, str]:
    """Split a file name into (base name, extension).

    A leading dot (".env") or no dot at all means there is no extension.
    """
    last_dot = filename.rfind(".")
    if last_dot <= 0:
        return filename, ""
    return filename[:last_dot], filename[last_dot + 1:]


def build_image_path(album: str, filename: str, timestamp_ms: int) -> str:
    """Build the repository path for an uploaded image.

    Args:
        album: Target album name (already a slug).
        filename: Original file name, e.g. "Cart Photo.jpg".
        timestamp_ms: Unique epoch-millisecond stamp for this file.

    Returns:
        Repository-relative path.
    """
    name, extension = split_filename(filename)
    stem = f"{slugify(album)}_{timestamp_ms}_{slugify(name)}"
    if extension:
        return f"{album}/{stem}.{extension}"
    return f"{album}/{stem}"


def rename_image_path(path: str, old_album: str, new_album: str) -> str:
    """Move a path from one album directory to another.

    Paths outside the old album's directory (legacy records) keep only
    their file name under the new album.
    """
    prefix = f"{old_album}/"
    if path.startswith(prefix):
        return f"{new_album}/{path[len(prefix):]}"
    return f"{new_album}/{path.rsplit('/', 1)[-1]}"


IMAGE_PATH_PATTERN = re.compile(r"^[a-z0-9_-]+/[a-z0-9_-]+_\d{10,}_[a-z0-9_-]*(\.[^/.]+)?$")


def is_image_path(path: str) -> bool:
    """Check whether a path has the shape build_image_path produces.

    The file-name prefix may differ from the directory, since renamed
    albums keep the original file names.
    """
    return IMAGE_PATH_PATTERN.match(path) is not None
