"""Test configuration and fixtures."""

import pytest

from imagediff.backend import BackendConfig
from imagediff.platforms import Platform, PlatformMatcher
from imagediff.store import ContentStore


@pytest.fixture
def store(tmp_path):
    """Empty content store under a temporary directory."""
    return ContentStore(tmp_path / "content")


@pytest.fixture
def backend_config(tmp_path):
    """Backend configuration rooted in a temporary directory."""
    return BackendConfig(root=tmp_path / "root", timeout=5)


@pytest.fixture
def amd64_matcher():
    return PlatformMatcher([Platform("linux", "amd64")])


# Pytest configuration
def pytest_configure(config):
    """Configure pytest markers and settings."""
    config.addinivalue_line(
        "markers", "integration: mark test as integration test using a local registry server"
    )
    config.addinivalue_line("markers", "unit: mark test as unit test (default)")
