"""Tests for validation_kit.db schema, lifecycle and row access."""

# pylint: disable=missing-class-docstring,missing-function-docstring,redefined-outer-name

from __future__ import annotations

import sqlite3
from collections.abc import Generator
from pathlib import Path

import pytest

from validation_kit.db import (
    count_failures,
    count_patterns,
    db_exists,
    db_path,
    fix_counts,
    get_failures,
    get_meta,
    get_pattern,
    get_patterns,
    get_validator_accuracy,
    init_db,
    insert_failures,
    mark_fix,
    prune_failures,
    prune_patterns,
    replace_patterns,
    reset_db,
    set_meta,
    touch,
    upsert_validator_accuracy,
)
from validation_kit.models import FailurePattern, FailureRecord


# ---------------------------------------------------------------------------
# Fixtures
# ---------------------------------------------------------------------------


@pytest.fixture()
def db(tmp_path: Path) -> Generator[sqlite3.Connection, None, None]:
    """Fresh learning.db in a temp .validation directory."""
    conn = init_db(tmp_path / ".validation")
    yield conn
    conn.close()


def _failure(fid: str, timestamp: str = "2024-01-01T00:00:00.000+00:00",
             pattern: str | None = "E1:boom") -> FailureRecord:
    return FailureRecord(id=fid, timestamp=timestamp, validator="eslint",
                         error_code="E1", error_message="boom", pattern=pattern)


def _pattern(name: str, occurrences: int, fix_rate: float = 0.0) -> FailurePattern:
    return FailurePattern(pattern=name, description=name, occurrences=occurrences,
                          fix_rate=fix_rate)


# ---------------------------------------------------------------------------
# Tests
# ---------------------------------------------------------------------------


class TestLifecycle:
    def test_init_creates_tables(self, db: sqlite3.Connection) -> None:
        tables = {r[0] for r in db.execute("SELECT name FROM sqlite_master WHERE type='table'")}
        assert {"failures", "patterns", "validator_accuracy", "meta"} <= tables

    def test_init_is_idempotent(self, tmp_path: Path) -> None:
        vdir = tmp_path / ".validation"
        init_db(vdir).close()
        conn = init_db(vdir)
        assert count_failures(conn) == 0
        conn.close()

    def test_exists_and_reset(self, tmp_path: Path) -> None:
        vdir = tmp_path / ".validation"
        assert not db_exists(vdir)
        init_db(vdir).close()
        assert db_exists(vdir)
        reset_db(vdir)
        assert not db_path(vdir).exists()


class TestMeta:
    def test_set_get_overwrite(self, db: sqlite3.Connection) -> None:
        assert get_meta(db, "k") is None
        set_meta(db, "k", "1")
        set_meta(db, "k", "2")
        assert get_meta(db, "k") == "2"

    def test_touch_sets_last_updated(self, db: sqlite3.Connection) -> None:
        touch(db)
        assert get_meta(db, "last_updated") is not None


class TestFailures:
    def test_insert_and_get_in_order(self, db: sqlite3.Connection) -> None:
        insert_failures(db, [
            _failure("b", "2024-01-02T00:00:00.000+00:00"),
            _failure("a", "2024-01-01T00:00:00.000+00:00"),
        ])
        assert [f.id for f in get_failures(db)] == ["a", "b"]

    def test_filters(self, db: sqlite3.Connection) -> None:
        insert_failures(db, [_failure("a"), _failure("b", pattern="other"), _failure("c")])
        mark_fix(db, ["c"], "npx eslint --fix", True)
        assert [f.id for f in get_failures(db, pattern="E1:boom")] == ["a", "c"]
        assert [f.id for f in get_failures(db, pattern="E1:boom", unfixed_only=True)] == ["a"]
        assert len(get_failures(db, limit=1)) == 1

    def test_mark_fix_and_counts(self, db: sqlite3.Connection) -> None:
        insert_failures(db, [_failure("a"), _failure("b"), _failure("c")])
        mark_fix(db, ["a"], "fix", True)
        mark_fix(db, ["b"], "fix", False)
        assert fix_counts(db) == (2, 1)
        fixed = {f.id: f.fix_succeeded for f in get_failures(db)}
        assert fixed == {"a": True, "b": False, "c": None}

    def test_fix_counts_empty(self, db: sqlite3.Connection) -> None:
        assert fix_counts(db) == (0, 0)

    def test_prune_expired_then_overflow(self, db: sqlite3.Connection) -> None:
        insert_failures(db, [
            _failure("old", "2024-01-01T00:00:00.000+00:00"),
            _failure("n1", "2024-03-01T00:00:00.000+00:00"),
            _failure("n2", "2024-03-02T00:00:00.000+00:00"),
            _failure("n3", "2024-03-03T00:00:00.000+00:00"),
        ])
        removed = prune_failures(db, "2024-02-01T00:00:00.000+00:00", keep=2)
        assert removed == 2
        assert [f.id for f in get_failures(db)] == ["n2", "n3"]


class TestPatterns:
    def test_replace_and_order(self, db: sqlite3.Connection) -> None:
        replace_patterns(db, [_pattern("a", 2), _pattern("b", 9)])
        assert [p.pattern for p in get_patterns(db)] == ["b", "a"]
        replace_patterns(db, [_pattern("c", 1)])
        assert count_patterns(db) == 1
        assert get_pattern(db, "a") is None
        assert get_pattern(db, "c") is not None

    def test_prune_weak_then_cap(self, db: sqlite3.Connection) -> None:
        replace_patterns(db, [
            _pattern("weak", 2, 0.1),
            _pattern("rare-but-fixed", 2, 0.5),
            _pattern("top", 10),
            _pattern("mid", 5),
        ])
        removed = prune_patterns(db, keep=2)
        assert removed == 2
        assert [p.pattern for p in get_patterns(db)] == ["top", "mid"]


class TestValidatorAccuracy:
    def test_upsert_counts_runs(self, db: sqlite3.Connection) -> None:
        upsert_validator_accuracy(db, "eslint", 0.9)
        upsert_validator_accuracy(db, "eslint", 0.8)
        db.commit()
        assert get_validator_accuracy(db) == {"eslint": 0.8}
        runs = db.execute("SELECT runs FROM validator_accuracy").fetchone()[0]
        assert runs == 2
