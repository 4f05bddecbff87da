"""Unit tests for package metadata."""

import pytest

from coursereg import __version__, get_version


@pytest.mark.unit
def test_version_format():
    """Version follows semver format."""
    parts = __version__.split(".")
    assert len(parts) == 3
    assert all(part.isdigit() for part in parts)


@pytest.mark.unit
def test_get_version():
    """get_version returns the package version."""
    assert get_version() == __version__ == "0.1.0"
