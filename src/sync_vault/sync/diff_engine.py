"""Sync diff engine — classify local vs. server file state before reconciliation.

Given two maps of file metadata (path -> content hash + modification
time), the engine labels every path in their union:

    local only                        -> local_only
    server only                       -> server_only
    same hash (any mod time)          -> no entry (a touch is not a change)
    hash differs, mod time differs    -> modified  (needs sync; which side
                                         is newer is left to the reconciler)
    hash differs, mod time equal      -> conflicts (no timestamp signal to
                                         pick an authoritative side)

Detection only. Nothing here resolves a conflict or picks a winner.

Each classification is captured as an immutable ``SyncSnapshot`` and kept
in a bounded FIFO history (default 10) for debugging sync runs.
"""

import logging
from collections import deque
from dataclasses import dataclass, field
from datetime import datetime, timezone
from types import MappingProxyType
from typing import Any, Callable, Dict, List, Mapping, Optional, Tuple, Union

from ..core.audit_log import AuditLogger, EventSeverity, EventType, get_audit_logger
from ..core.config import DEFAULT_HISTORY_SIZE, VaultSettings, load_settings

logger = logging.getLogger(__name__)

Timestamp = Union[int, float]


# ── Data Models ─────────────────────────────────────────────────────


@dataclass(frozen=True)
class FileFingerprint:
    """Content hash and modification time of one file on one side."""

    path: str
    content_hash: str
    mod_time: Timestamp

    @classmethod
    def from_value(cls, path: str, value: Any) -> "FileFingerprint":
        """Normalize a map value into a FileFingerprint.

        Accepts a FileFingerprint, or a mapping with ``content_hash``/``hash``
        and ``mod_time``/``modTime`` keys (the shape remote listings use).
        The map key always wins as the path.
        """
        if isinstance(value, FileFingerprint):
            if value.path == path:
                return value
            return cls(path=path, content_hash=value.content_hash, mod_time=value.mod_time)

        if isinstance(value, Mapping):
            content_hash = value.get("content_hash", value.get("hash"))
            mod_time = value.get("mod_time", value.get("modTime"))
            if content_hash is None or mod_time is None:
                raise ValueError(f"File entry for {path!r} needs a content hash and a mod time")
            return cls(path=path, content_hash=content_hash, mod_time=mod_time)

        raise TypeError(f"Unsupported file entry for {path!r}: {type(value).__name__}")

    def to_dict(self) -> dict:
        return {"path": self.path, "content_hash": self.content_hash, "mod_time": self.mod_time}


@dataclass(frozen=True)
class SyncDifferences:
    """Classified differences; each category is a sorted tuple of paths."""

    local_only: Tuple[str, ...] = ()
    server_only: Tuple[str, ...] = ()
    modified: Tuple[str, ...] = ()
    conflicts: Tuple[str, ...] = ()

    @property
    def total(self) -> int:
        return len(self.local_only) + len(self.server_only) + len(self.modified) + len(self.conflicts)

    @property
    def is_empty(self) -> bool:
        return self.total == 0

    def to_dict(self) -> dict:
        return {
            "local_only": list(self.local_only),
            "server_only": list(self.server_only),
            "modified": list(self.modified),
            "conflicts": list(self.conflicts),
        }


@dataclass(frozen=True)
class SyncSnapshot:
    """Immutable record of one classification run.

    ``local_files``/``server_files`` are read-only views over private
    copies of the inputs; mutating the caller's maps has no effect.
    """

    timestamp: datetime
    local_files: Mapping[str, FileFingerprint]
    server_files: Mapping[str, FileFingerprint]
    differences: SyncDifferences = field(default_factory=SyncDifferences)

    def to_dict(self) -> dict:
        return {
            "timestamp": self.timestamp.isoformat(),
            "local_files": {p: f.to_dict() for p, f in self.local_files.items()},
            "server_files": {p: f.to_dict() for p, f in self.server_files.items()},
            "differences": self.differences.to_dict(),
        }


FileMap = Mapping[str, Union[FileFingerprint, Mapping[str, Any]]]


# ── Classification ──────────────────────────────────────────────────


def _normalize(files: FileMap) -> Dict[str, FileFingerprint]:
    return {path: FileFingerprint.from_value(path, value) for path, value in files.items()}


def calculate_differences(
    local_files: Mapping[str, FileFingerprint],
    server_files: Mapping[str, FileFingerprint],
) -> SyncDifferences:
    """Classify every path in the union of both maps.

    Pure function. Empty maps yield empty categories.
    """
    local_only: List[str] = []
    server_only: List[str] = []
    modified: List[str] = []
    conflicts: List[str] = []

    for path, local_info in local_files.items():
        server_info = server_files.get(path)
        if server_info is None:
            local_only.append(path)
        elif local_info.content_hash != server_info.content_hash:
            if local_info.mod_time != server_info.mod_time:
                modified.append(path)
            else:
                conflicts.append(path)

    for path in server_files:
        if path not in local_files:
            server_only.append(path)

    return SyncDifferences(
        local_only=tuple(sorted(local_only)),
        server_only=tuple(sorted(server_only)),
        modified=tuple(sorted(modified)),
        conflicts=tuple(sorted(conflicts)),
    )


def format_snapshot(snapshot: SyncSnapshot) -> str:
    """Render a snapshot as a human-readable report.

    Markers: ``-`` local only, ``+`` server only, ``M`` modified,
    ``!`` conflict.
    """
    diff = snapshot.differences
    lines = [
        "=== Sync State Snapshot ===",
        f"Time: {snapshot.timestamp.isoformat()}",
        f"Local files: {len(snapshot.local_files)}",
        f"Server files: {len(snapshot.server_files)}",
        "",
        "Differences:",
    ]
    for label, marker, paths in (
        ("Local only", "-", diff.local_only),
        ("Server only", "+", diff.server_only),
        ("Modified", "M", diff.modified),
        ("Conflicts", "!", diff.conflicts),
    ):
        lines.append(f"  {label}: {len(paths)}")
        lines.extend(f"    {marker} {path}" for path in paths)
    lines.append("===========================")
    return "\n".join(lines)


# ── Engine ──────────────────────────────────────────────────────────


class SyncDiffEngine:
    """Captures classified snapshots into a bounded FIFO history.

    Args:
        history_size: Maximum snapshots retained; oldest evicted first.
        clock: Returns the snapshot timestamp (default: UTC now).
        audit_logger: Used by log_snapshot() for conflict events
            (default: global singleton, resolved lazily).
    """

    def __init__(
        self,
        history_size: int = DEFAULT_HISTORY_SIZE,
        clock: Optional[Callable[[], datetime]] = None,
        audit_logger: Optional[AuditLogger] = None,
    ):
        if history_size < 1:
            raise ValueError("history_size must be at least 1")
        self.history_size = history_size
        self._snapshots: deque = deque(maxlen=history_size)
        self._clock = clock or (lambda: datetime.now(timezone.utc))
        self._audit_logger = audit_logger

    @classmethod
    def from_settings(cls, settings: Optional[VaultSettings] = None, **kwargs) -> "SyncDiffEngine":
        settings = settings or load_settings()
        return cls(history_size=settings.history_size, **kwargs)

    def capture_snapshot(self, local_files: FileMap, server_files: FileMap) -> SyncSnapshot:
        """Copy both maps, classify, append to history and return the snapshot."""
        local_copy = _normalize(local_files)
        server_copy = _normalize(server_files)

        snapshot = SyncSnapshot(
            timestamp=self._clock(),
            local_files=MappingProxyType(local_copy),
            server_files=MappingProxyType(server_copy),
            differences=calculate_differences(local_copy, server_copy),
        )

        if len(self._snapshots) == self.history_size:
            logger.debug("Snapshot history full (%d); evicting oldest", self.history_size)
        self._snapshots.append(snapshot)

        logger.debug(
            "Captured snapshot: %d local, %d server, %d differences",
            len(local_copy), len(server_copy), snapshot.differences.total,
        )
        return snapshot

    def get_latest_snapshot(self) -> Optional[SyncSnapshot]:
        """Most recent snapshot, or None if the history is empty."""
        if not self._snapshots:
            return None
        return self._snapshots[-1]

    def get_all_snapshots(self) -> List[SyncSnapshot]:
        """Copy of the history, oldest first (most recent last)."""
        return list(self._snapshots)

    def clear(self) -> None:
        self._snapshots.clear()

    def __len__(self) -> int:
        return len(self._snapshots)

    def log_snapshot(self, snapshot: SyncSnapshot) -> str:
        """Write the snapshot report to the log and audit any conflicts.

        Returns the rendered report.
        """
        report = format_snapshot(snapshot)
        logger.info("%s", report)

        audit = self._audit_logger or get_audit_logger()
        audit.log_sync_event(
            EventType.SYNC_SNAPSHOT_CAPTURED,
            f"{snapshot.differences.total} difference(s) between local and server",
            details={
                "local_files": len(snapshot.local_files),
                "server_files": len(snapshot.server_files),
                "counts": {k: len(v) for k, v in snapshot.differences.to_dict().items()},
            },
        )

        conflicts = snapshot.differences.conflicts
        if conflicts:
            audit.log_sync_event(
                EventType.SYNC_CONFLICT_DETECTED,
                f"{len(conflicts)} conflicting file(s) need manual review",
                severity=EventSeverity.INVESTIGATE,
                details={"conflicts": list(conflicts), "snapshot_time": snapshot.timestamp.isoformat()},
            )
        return report
