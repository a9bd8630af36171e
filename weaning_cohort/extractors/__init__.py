"""
Snapshot Extractors
===================

Loading and schema validation of the derived input tables.
"""

from .snapshot_loader import (
    SnapshotLoader,
    validate_table,
    validate_tables,
)

__all__ = [
    'SnapshotLoader',
    'validate_table',
    'validate_tables',
]
