"""Shared fixtures for the weaning cohort tests."""
import pytest

from synthetic_snapshot import SnapshotBuilder


@pytest.fixture
def snapshot():
    """Empty synthetic snapshot builder."""
    return SnapshotBuilder()
