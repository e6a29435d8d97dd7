"""Tests for SyncDiffEngine — local vs. server classification + snapshot history.

Covers classification rules (local/server only, touch no-op, modified,
conflict), input normalization, defensive copies, bounded FIFO history,
and the snapshot report / audit output.
"""

import json
from datetime import datetime, timedelta, timezone

import pytest

from sync_vault.sync.diff_engine import (
    FileFingerprint,
    SyncDiffEngine,
    SyncDifferences,
    calculate_differences,
    format_snapshot,
)


def fp(path, content_hash, mod_time):
    return FileFingerprint(path=path, content_hash=content_hash, mod_time=mod_time)


@pytest.fixture
def engine():
    return SyncDiffEngine()


def _counting_clock():
    start = datetime(2024, 1, 1, tzinfo=timezone.utc)
    ticks = iter(range(1000))
    return lambda: start + timedelta(seconds=next(ticks))


# ── Classification ───────────────────────────────────────────────────


class TestClassification:
    def test_conflict_same_mod_time_different_hash(self, engine):
        snap = engine.capture_snapshot(
            {"a.md": fp("a.md", "h1", 100)},
            {"a.md": fp("a.md", "h2", 100)},
        )
        assert snap.differences.conflicts == ("a.md",)
        assert snap.differences.local_only == ()
        assert snap.differences.server_only == ()
        assert snap.differences.modified == ()

    def test_touch_without_content_change_is_not_a_difference(self, engine):
        snap = engine.capture_snapshot(
            {"b.md": fp("b.md", "h1", 100)},
            {"b.md": fp("b.md", "h1", 200)},
        )
        assert snap.differences == SyncDifferences()
        assert snap.differences.is_empty

    def test_server_only(self, engine):
        snap = engine.capture_snapshot({}, {"c.md": fp("c.md", "h", 1)})
        assert snap.differences.server_only == ("c.md",)
        assert snap.differences.total == 1

    def test_local_only(self, engine):
        snap = engine.capture_snapshot({"d.md": fp("d.md", "h", 1)}, {})
        assert snap.differences.local_only == ("d.md",)

    @pytest.mark.parametrize("local_time,server_time", [(200, 100), (100, 200)])
    def test_modified_regardless_of_direction(self, engine, local_time, server_time):
        snap = engine.capture_snapshot(
            {"e.md": fp("e.md", "h1", local_time)},
            {"e.md": fp("e.md", "h2", server_time)},
        )
        assert snap.differences.modified == ("e.md",)
        assert snap.differences.conflicts == ()

    def test_empty_maps(self, engine):
        snap = engine.capture_snapshot({}, {})
        assert snap.differences.is_empty
        assert snap.local_files == {}
        assert snap.server_files == {}

    def test_mixed_set_is_sorted(self):
        local = {
            "z.md": fp("z.md", "1", 1),
            "same.md": fp("same.md", "s", 5),
            "mod.md": fp("mod.md", "a", 1),
            "conf.md": fp("conf.md", "a", 7),
            "a.md": fp("a.md", "1", 1),
        }
        server = {
            "same.md": fp("same.md", "s", 9),
            "mod.md": fp("mod.md", "b", 2),
            "conf.md": fp("conf.md", "b", 7),
            "y.md": fp("y.md", "1", 1),
            "b.md": fp("b.md", "1", 1),
        }
        diff = calculate_differences(local, server)
        assert diff.local_only == ("a.md", "z.md")
        assert diff.server_only == ("b.md", "y.md")
        assert diff.modified == ("mod.md",)
        assert diff.conflicts == ("conf.md",)
        assert diff.total == 6


# ── Input normalization ──────────────────────────────────────────────


class TestInputShapes:
    def test_plain_dicts_with_remote_keys(self, engine):
        snap = engine.capture_snapshot(
            {"a.md": {"hash": "h1", "modTime": 100}},
            {"a.md": {"hash": "h2", "modTime": 100}},
        )
        assert snap.differences.conflicts == ("a.md",)
        assert snap.local_files["a.md"] == fp("a.md", "h1", 100)

    def test_plain_dicts_with_snake_case_keys(self, engine):
        snap = engine.capture_snapshot(
            {"a.md": {"content_hash": "h1", "mod_time": 1}},
            {"a.md": {"content_hash": "h1", "mod_time": 2}},
        )
        assert snap.differences.is_empty

    def test_map_key_wins_as_path(self, engine):
        snap = engine.capture_snapshot({"real.md": fp("other.md", "h", 1)}, {})
        assert snap.local_files["real.md"].path == "real.md"

    def test_entry_missing_fields_rejected(self, engine):
        with pytest.raises(ValueError):
            engine.capture_snapshot({"a.md": {"hash": "h1"}}, {})

    def test_unsupported_entry_type_rejected(self, engine):
        with pytest.raises(TypeError):
            engine.capture_snapshot({"a.md": ("h1", 1)}, {})


# ── Immutability ─────────────────────────────────────────────────────


class TestDefensiveCopies:
    def test_caller_mutation_does_not_affect_snapshot(self, engine):
        local = {"a.md": {"hash": "h1", "modTime": 1}}
        server = {"a.md": {"hash": "h1", "modTime": 1}}
        snap = engine.capture_snapshot(local, server)

        local["new.md"] = {"hash": "x", "modTime": 2}
        local["a.md"]["hash"] = "changed"
        del server["a.md"]

        assert set(snap.local_files) == {"a.md"}
        assert snap.local_files["a.md"].content_hash == "h1"
        assert set(snap.server_files) == {"a.md"}
        assert snap.differences.is_empty

    def test_snapshot_maps_are_read_only(self, engine):
        snap = engine.capture_snapshot({"a.md": fp("a.md", "h", 1)}, {})
        with pytest.raises(TypeError):
            snap.local_files["b.md"] = fp("b.md", "h", 1)

    def test_snapshot_is_frozen(self, engine):
        snap = engine.capture_snapshot({}, {})
        with pytest.raises(AttributeError):
            snap.differences = SyncDifferences(conflicts=("x",))


# ── History ──────────────────────────────────────────────────────────


class TestHistory:
    def test_empty_history(self, engine):
        assert engine.get_latest_snapshot() is None
        assert engine.get_all_snapshots() == []

    def test_latest_is_most_recent(self, engine):
        engine.capture_snapshot({"a": fp("a", "1", 1)}, {})
        second = engine.capture_snapshot({"b": fp("b", "1", 1)}, {})
        assert engine.get_latest_snapshot() is second

    def test_history_bounded_to_ten_oldest_evicted(self):
        engine = SyncDiffEngine(clock=_counting_clock())
        snaps = [engine.capture_snapshot({f"f{i}.md": fp(f"f{i}.md", "h", i)}, {}) for i in range(11)]

        history = engine.get_all_snapshots()
        assert len(history) == 10
        assert len(engine) == 10
        assert history == snaps[1:]
        assert history[0].differences.local_only == ("f1.md",)
        assert history[-1] is engine.get_latest_snapshot()
        assert [s.timestamp for s in history] == sorted(s.timestamp for s in history)

    def test_custom_history_size(self):
        engine = SyncDiffEngine(history_size=2)
        for i in range(5):
            engine.capture_snapshot({str(i): fp(str(i), "h", 1)}, {})
        assert [s.differences.local_only for s in engine.get_all_snapshots()] == [("3",), ("4",)]

    def test_invalid_history_size(self):
        with pytest.raises(ValueError):
            SyncDiffEngine(history_size=0)

    def test_get_all_returns_copy(self, engine):
        engine.capture_snapshot({}, {})
        engine.get_all_snapshots().clear()
        assert len(engine.get_all_snapshots()) == 1

    def test_clear(self, engine):
        engine.capture_snapshot({}, {})
        engine.clear()
        assert engine.get_all_snapshots() == []
        assert engine.get_latest_snapshot() is None


# ── Reporting ────────────────────────────────────────────────────────


class TestReporting:
    def test_format_snapshot_markers(self, engine):
        snap = engine.capture_snapshot(
            {"l.md": fp("l.md", "1", 1), "m.md": fp("m.md", "1", 1), "c.md": fp("c.md", "1", 5)},
            {"s.md": fp("s.md", "1", 1), "m.md": fp("m.md", "2", 2), "c.md": fp("c.md", "2", 5)},
        )
        report = format_snapshot(snap)
        assert "Local files: 3" in report
        assert "Server files: 3" in report
        assert "    - l.md" in report
        assert "    + s.md" in report
        assert "    M m.md" in report
        assert "    ! c.md" in report
        assert "  Conflicts: 1" in report

    def test_to_dict_is_json_serializable(self, engine):
        snap = engine.capture_snapshot({"a.md": fp("a.md", "h1", 1)}, {"a.md": fp("a.md", "h2", 1)})
        data = json.loads(json.dumps(snap.to_dict()))
        assert data["differences"]["conflicts"] == ["a.md"]
        assert data["local_files"]["a.md"]["content_hash"] == "h1"

    def test_log_snapshot_audits_conflicts(self, engine, audit_logger):
        snap = engine.capture_snapshot({"a.md": fp("a.md", "h1", 1)}, {"a.md": fp("a.md", "h2", 1)})
        report = engine.log_snapshot(snap)
        assert "! a.md" in report

        records = [json.loads(line) for line in audit_logger.log_file.read_text().splitlines() if line]
        types = [r["event_type"] for r in records]
        assert "sync.snapshot.captured" in types
        conflict = next(r for r in records if r["event_type"] == "sync.conflict.detected")
        assert conflict["details"]["conflicts"] == ["a.md"]
        assert conflict["severity"] == "investigate"

    def test_log_snapshot_without_conflicts(self, engine, audit_logger):
        snap = engine.capture_snapshot({"a.md": fp("a.md", "h1", 1)}, {})
        engine.log_snapshot(snap)
        types = [json.loads(line)["event_type"] for line in audit_logger.log_file.read_text().splitlines() if line]
        assert "sync.conflict.detected" not in types

    def test_capture_does_not_write_audit_log(self, engine, audit_logger):
        engine.capture_snapshot({"a.md": fp("a.md", "h1", 1)}, {"a.md": fp("a.md", "h2", 1)})
        assert audit_logger.log_file.read_text() == ""

    def test_history_size_from_settings(self):
        from sync_vault.core.config import VaultSettings

        engine = SyncDiffEngine.from_settings(VaultSettings(history_size=3))
        assert engine.history_size == 3
