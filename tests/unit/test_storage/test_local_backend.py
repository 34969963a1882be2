"""Tests for minetunnel.storage.backends.local module.

Covers:
    - read / create / update / delete with hash revisions
    - ConflictError and NotFoundError mapping
    - Path traversal protection
    - list_paths ordering
"""

import pytest

from minetunnel.storage.backends.local import LocalStorageBackend, git_blob_sha
from minetunnel.storage.errors import ConflictError, NotFoundError


@pytest.fixture
def backend(tmp_path):
    return LocalStorageBackend(tmp_path / "library")


class TestGitBlobSha:
    """Tests for git_blob_sha()."""

    def test_matches_git(self):
        # `git hash-object` of an empty file
        assert git_blob_sha(b"") == "e69de29bb2d1d6434b8b29ae775ad8c2e48c5391"

    def test_changes_with_content(self):
        assert git_blob_sha(b"a") != git_blob_sha(b"b")


class TestLocalStorageBackend:
    """Tests for LocalStorageBackend."""

    @pytest.mark.asyncio
    async def test_read_missing(self, backend):
        assert await backend.read("manifest.json") is None
        assert await backend.revision("manifest.json") is None

    @pytest.mark.asyncio
    async def test_create_and_read(self, backend):
        await backend.create("vehicles/a.jpg", b"pixels", "feat: add file vehicles/a.jpg")

        stored = await backend.read("vehicles/a.jpg")
        assert stored.content == b"pixels"
        assert stored.revision == git_blob_sha(b"pixels")
        assert (backend.root / "vehicles" / "a.jpg").read_bytes() == b"pixels"

    @pytest.mark.asyncio
    async def test_create_existing_conflicts(self, backend):
        await backend.create("a.jpg", b"one", "m")

        with pytest.raises(ConflictError) as exc_info:
            await backend.create("a.jpg", b"two", "m")
        assert exc_info.value.status_code == 422
        assert (backend.root / "a.jpg").read_bytes() == b"one"

    @pytest.mark.asyncio
    async def test_update_with_current_revision(self, backend):
        await backend.create("manifest.json", b"{}", "m")
        revision = await backend.revision("manifest.json")

        await backend.update("manifest.json", b'{"albums": {}}', revision, "m")

        stored = await backend.read("manifest.json")
        assert stored.content == b'{"albums": {}}'
        assert stored.revision != revision

    @pytest.mark.asyncio
    async def test_update_with_stale_revision_conflicts(self, backend):
        await backend.create("manifest.json", b"{}", "m")
        stale = await backend.revision("manifest.json")
        await backend.update("manifest.json", b"[]", stale, "m")

        with pytest.raises(ConflictError):
            await backend.update("manifest.json", b"{}", stale, "m")

    @pytest.mark.asyncio
    async def test_update_missing(self, backend):
        with pytest.raises(NotFoundError):
            await backend.update("manifest.json", b"{}", "deadbeef", "m")

    @pytest.mark.asyncio
    async def test_delete(self, backend):
        await backend.create("normal/a.jpg", b"x", "m")
        revision = await backend.revision("normal/a.jpg")

        await backend.delete("normal/a.jpg", revision, "feat: delete file normal/a.jpg")

        assert await backend.read("normal/a.jpg") is None

    @pytest.mark.asyncio
    async def test_delete_stale_revision(self, backend):
        await backend.create("normal/a.jpg", b"x", "m")

        with pytest.raises(ConflictError):
            await backend.delete("normal/a.jpg", git_blob_sha(b"other"), "m")
        assert (backend.root / "normal" / "a.jpg").exists()

    @pytest.mark.asyncio
    async def test_delete_missing(self, backend):
        with pytest.raises(NotFoundError):
            await backend.delete("normal/a.jpg", "deadbeef", "m")

    @pytest.mark.asyncio
    async def test_read_public(self, backend):
        await backend.create("normal/a.jpg", b"x", "m")

        assert await backend.read_public("normal/a.jpg") == b"x"
        with pytest.raises(NotFoundError):
            await backend.read_public("normal/missing.jpg")

    @pytest.mark.asyncio
    async def test_rejects_path_traversal(self, backend):
        with pytest.raises(ValueError):
            await backend.read("../outside.txt")
        with pytest.raises(ValueError):
            await backend.create("../../etc/passwd", b"x", "m")

    @pytest.mark.asyncio
    async def test_list_paths(self, backend):
        assert await backend.list_paths() == []

        await backend.create("vehicles/b.jpg", b"b", "m")
        await backend.create("manifest.json", b"{}", "m")
        await backend.create("normal/a.jpg", b"a", "m")

        assert await backend.list_paths() == ["manifest.json", "normal/a.jpg", "vehicles/b.jpg"]
