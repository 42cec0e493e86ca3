"""learning.db schema, lifecycle and row access.

SQLite DB at <project>/.validation/learning.db. Local state only: listed in
.validation/.gitignore and safe to delete (history restarts from zero).

Schema:
  - failures: one row per issue from a failed/errored validator run
  - patterns: failures grouped by normalised message (rebuilt after each run)
  - validator_accuracy: exponential moving average of validator outcomes
  - meta: key/value bookkeeping (last_updated)

Retention is handled by validation_kit.context (prune_* helpers here).
"""

from __future__ import annotations

import logging
import sqlite3
from pathlib import Path
from typing import Any

from .models import FailurePattern, FailureRecord, utc_now

log = logging.getLogger(__name__)

DB_FILENAME = "learning.db"

# ---------------------------------------------------------------------------
# Schema
# ---------------------------------------------------------------------------

_SCHEMA = """
PRAGMA journal_mode = WAL;
PRAGMA synchronous = NORMAL;
PRAGMA temp_store = MEMORY;

CREATE TABLE IF NOT EXISTS failures (
    id            TEXT PRIMARY KEY,
    timestamp     TEXT NOT NULL,
    validator     TEXT NOT NULL,
    error_code    TEXT NOT NULL,
    error_message TEXT NOT NULL,
    file          TEXT,
    line          INTEGER,
    pattern       TEXT,
    fix_applied   TEXT,
    fix_succeeded INTEGER,
    confidence    REAL DEFAULT 0.3
);

CREATE TABLE IF NOT EXISTS patterns (
    pattern        TEXT PRIMARY KEY,
    description    TEXT NOT NULL,
    occurrences    INTEGER NOT NULL DEFAULT 0,
    first_seen     TEXT,
    last_seen      TEXT,
    fix_rate       REAL NOT NULL DEFAULT 0,
    suggested_fix  TEXT,
    auto_fix_ready INTEGER NOT NULL DEFAULT 0
);

CREATE TABLE IF NOT EXISTS validator_accuracy (
    validator   TEXT PRIMARY KEY,
    accuracy    REAL NOT NULL,
    runs        INTEGER NOT NULL DEFAULT 0,
    updated_at  TEXT
);

CREATE TABLE IF NOT EXISTS meta (
    key   TEXT PRIMARY KEY,
    value TEXT
);

CREATE INDEX IF NOT EXISTS idx_failures_pattern ON failures(pattern);
CREATE INDEX IF NOT EXISTS idx_failures_timestamp ON failures(timestamp);
CREATE INDEX IF NOT EXISTS idx_patterns_occurrences ON patterns(occurrences DESC);
"""


# ---------------------------------------------------------------------------
# Database lifecycle
# ---------------------------------------------------------------------------


def db_path(validation_dir: str | Path) -> Path:
    """Return the learning.db path (may not exist yet)."""
    return Path(validation_dir) / DB_FILENAME


def db_exists(validation_dir: str | Path) -> bool:
    return db_path(validation_dir).exists()


def init_db(validation_dir: str | Path) -> sqlite3.Connection:
    """Open learning.db, creating the directory and schema if needed.

    The caller is responsible for closing the connection.
    """
    resolved = db_path(validation_dir)
    resolved.parent.mkdir(parents=True, exist_ok=True)
    conn = sqlite3.connect(str(resolved))
    conn.row_factory = sqlite3.Row
    conn.executescript(_SCHEMA)
    log.debug("learning.db initialised at %s", resolved)
    return conn


def reset_db(validation_dir: str | Path) -> None:
    """Delete learning.db and its WAL side files."""
    base = db_path(validation_dir)
    for p in (base, base.with_name(base.name + "-wal"), base.with_name(base.name + "-shm")):
        if p.exists():
            p.unlink()
            log.info("Deleted %s", p)


def vacuum(conn: sqlite3.Connection) -> None:
    """Reclaim space after pruning."""
    conn.commit()
    conn.execute("PRAGMA wal_checkpoint(TRUNCATE)")
    conn.execute("VACUUM")


# ---------------------------------------------------------------------------
# Meta
# ---------------------------------------------------------------------------


def set_meta(conn: sqlite3.Connection, key: str, value: str) -> None:
    conn.execute(
        """INSERT INTO meta (key, value) VALUES (?, ?)
           ON CONFLICT(key) DO UPDATE SET value = excluded.value""",
        (key, value),
    )
    conn.commit()


def get_meta(conn: sqlite3.Connection, key: str) -> str | None:
    row = conn.execute("SELECT value FROM meta WHERE key = ?", (key,)).fetchone()
    return row["value"] if row else None


def touch(conn: sqlite3.Connection) -> None:
    set_meta(conn, "last_updated", utc_now())


# ---------------------------------------------------------------------------
# Failures
# ---------------------------------------------------------------------------

_FAILURE_COLUMNS = (
    "id", "timestamp", "validator", "error_code", "error_message", "file",
    "line", "pattern", "fix_applied", "fix_succeeded", "confidence",
)


def insert_failures(conn: sqlite3.Connection, records: list[FailureRecord]) -> None:
    if not records:
        return
    placeholders = ", ".join("?" for _ in _FAILURE_COLUMNS)
    conn.executemany(
        f"INSERT OR REPLACE INTO failures ({', '.join(_FAILURE_COLUMNS)}) VALUES ({placeholders})",
        [tuple(r.to_dict()[c] for c in _FAILURE_COLUMNS) for r in records],
    )
    conn.commit()


def get_failures(conn: sqlite3.Connection, *, pattern: str | None = None,
                 unfixed_only: bool = False,
                 limit: int | None = None) -> list[FailureRecord]:
    """Failures, oldest first, optionally filtered by pattern."""
    sql = "SELECT * FROM failures"
    clauses: list[str] = []
    params: list[Any] = []
    if pattern is not None:
        clauses.append("pattern = ?")
        params.append(pattern)
    if unfixed_only:
        clauses.append("fix_applied IS NULL")
    if clauses:
        sql += " WHERE " + " AND ".join(clauses)
    sql += " ORDER BY timestamp, rowid"
    if limit is not None:
        sql += " LIMIT ?"
        params.append(limit)
    return [FailureRecord.from_dict(dict(row)) for row in conn.execute(sql, params)]


def mark_fix(conn: sqlite3.Connection, failure_ids: list[str], fix: str,
             succeeded: bool) -> None:
    conn.executemany(
        "UPDATE failures SET fix_applied = ?, fix_succeeded = ? WHERE id = ?",
        [(fix, int(succeeded), fid) for fid in failure_ids],
    )
    conn.commit()


def count_failures(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM failures").fetchone()[0]


def fix_counts(conn: sqlite3.Connection) -> tuple[int, int]:
    """Return (fixes applied, fixes that succeeded)."""
    row = conn.execute(
        """SELECT COUNT(*) AS applied,
                  COALESCE(SUM(CASE WHEN fix_succeeded = 1 THEN 1 ELSE 0 END), 0) AS ok
           FROM failures WHERE fix_applied IS NOT NULL"""
    ).fetchone()
    return row["applied"], row["ok"]


def prune_failures(conn: sqlite3.Connection, cutoff: str, keep: int) -> int:
    """Delete failures at or before *cutoff*, then all but the newest *keep*.

    Returns the number of rows removed.
    """
    expired = conn.execute("DELETE FROM failures WHERE timestamp <= ?", (cutoff,)).rowcount
    overflow = conn.execute(
        """DELETE FROM failures WHERE id NOT IN (
               SELECT id FROM failures ORDER BY timestamp DESC, rowid DESC LIMIT ?
           )""",
        (keep,),
    ).rowcount
    conn.commit()
    return expired + overflow


# ---------------------------------------------------------------------------
# Patterns
# ---------------------------------------------------------------------------


def get_patterns(conn: sqlite3.Connection) -> list[FailurePattern]:
    """All patterns, most frequent first."""
    rows = conn.execute(
        "SELECT * FROM patterns ORDER BY occurrences DESC, pattern"
    ).fetchall()
    return [FailurePattern.from_dict(dict(r)) for r in rows]


def get_pattern(conn: sqlite3.Connection, pattern: str) -> FailurePattern | None:
    row = conn.execute("SELECT * FROM patterns WHERE pattern = ?", (pattern,)).fetchone()
    return FailurePattern.from_dict(dict(row)) if row else None


def replace_patterns(conn: sqlite3.Connection, patterns: list[FailurePattern]) -> None:
    """Swap the whole patterns table for *patterns* in one transaction."""
    with conn:
        conn.execute("DELETE FROM patterns")
        conn.executemany(
            """INSERT INTO patterns (pattern, description, occurrences, first_seen,
                                     last_seen, fix_rate, suggested_fix, auto_fix_ready)
               VALUES (:pattern, :description, :occurrences, :first_seen,
                       :last_seen, :fix_rate, :suggested_fix, :auto_fix_ready)""",
            [p.to_dict() for p in patterns],
        )


def count_patterns(conn: sqlite3.Connection) -> int:
    return conn.execute("SELECT COUNT(*) FROM patterns").fetchone()[0]


def prune_patterns(conn: sqlite3.Connection, keep: int) -> int:
    """Drop weak patterns (<3 occurrences, <20% fixed), then keep the top *keep*.

    Returns the number of rows removed.
    """
    weak = conn.execute(
        "DELETE FROM patterns WHERE occurrences < 3 AND fix_rate < 0.2"
    ).rowcount
    overflow = conn.execute(
        """DELETE FROM patterns WHERE pattern NOT IN (
               SELECT pattern FROM patterns ORDER BY occurrences DESC, pattern LIMIT ?
           )""",
        (keep,),
    ).rowcount
    conn.commit()
    return weak + overflow


# ---------------------------------------------------------------------------
# Validator accuracy
# ---------------------------------------------------------------------------


def get_validator_accuracy(conn: sqlite3.Connection) -> dict[str, float]:
    rows = conn.execute("SELECT validator, accuracy FROM validator_accuracy ORDER BY validator")
    return {r["validator"]: r["accuracy"] for r in rows}


def upsert_validator_accuracy(conn: sqlite3.Connection, validator: str,
                              accuracy: float) -> None:
    conn.execute(
        """INSERT INTO validator_accuracy (validator, accuracy, runs, updated_at)
           VALUES (?, ?, 1, ?)
           ON CONFLICT(validator) DO UPDATE SET
             accuracy = excluded.accuracy,
             runs = validator_accuracy.runs + 1,
             updated_at = excluded.updated_at""",
        (validator, accuracy, utc_now()),
    )
