# Sync Vault - Sync Module
#
# Local vs. server file-state diffing with bounded snapshot history

from .diff_engine import (
    FileFingerprint,
    SyncDiffEngine,
    SyncDifferences,
    SyncSnapshot,
    calculate_differences,
    format_snapshot,
)

__all__ = [
    "FileFingerprint",
    "SyncDiffEngine",
    "SyncDifferences",
    "SyncSnapshot",
    "calculate_differences",
    "format_snapshot",
]
