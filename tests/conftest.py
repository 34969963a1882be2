"""
Pytest configuration and fixtures for Mine Tunnel Studio tests.

Repository tests run against an in-memory fake store; no network access
or credentials are needed.
"""
import sys
from pathlib import Path

import pytest

# Add project root to path
sys.path.insert(0, str(Path(__file__).parent.parent))

from minetunnel.storage import ManifestRepository
from tests.fixtures.fake_store import FIXED_NOW, FakeBlobStore


# ============================================
# Test Fixtures
# ============================================

@pytest.fixture
def clock():
    """Frozen clock for deterministic paths and timestamps."""
    return lambda: FIXED_NOW


@pytest.fixture
def store() -> FakeBlobStore:
    """Empty fake store (no manifest yet)."""
    return FakeBlobStore()


@pytest.fixture
def repo(store, clock) -> ManifestRepository:
    """Repository over the empty fake store."""
    return ManifestRepository(store, clock=clock)


@pytest.fixture(autouse=True)
def isolated_env(monkeypatch, tmp_path):
    """Keep developer .env files and credentials out of tests."""
    monkeypatch.chdir(tmp_path)
    for name in ("STORAGE_BACKEND", "GITHUB_TOKEN", "GITHUB_OWNER", "GITHUB_REPO", "GOOGLE_API_KEY"):
        monkeypatch.delenv(name, raising=False)


# ============================================
# Pytest Configuration
# ============================================

def pytest_configure(config):
    """Configure pytest with custom markers."""
    config.addinivalue_line(
        "markers", "fast: Fast unit tests (no external API calls)"
    )
