"""Layer 4 -- keep .validation/ small enough to feed back into an AI context.

Cleanup runs five steps in order:
  1. prune failures past retention (and cap the table)
  2. prune weak patterns (and cap the table)
  3. move reports older than archive_after_days into archive/
  4. gzip archive files older than compress_after_days
  5. delete archive files older than delete_after_days

Ages are file mtimes. Compression keeps the original mtime so a file's
age keeps counting towards deletion.
"""

from __future__ import annotations

import gzip
import logging
import os
import shutil
import time
from datetime import datetime, timedelta, timezone
from pathlib import Path

from . import VALIDATION_DIR
from .config import MAX_CONTEXT_TOKENS
from .db import DB_FILENAME, db_exists, init_db, prune_failures, prune_patterns, vacuum
from .models import CleanupConfig, CleanupReport, ContextMetrics, utc_now

log = logging.getLogger(__name__)

ACTIVE_FILES = (DB_FILENAME, "config.json")
MIN_FAILURES_KEPT = 100
_DAY = 86400


def _validation_dir(project_path: str | Path) -> Path:
    return Path(project_path) / VALIDATION_DIR


def _older_than(path: Path, days: int, now: float) -> bool:
    return path.stat().st_mtime < now - days * _DAY


def _files(directory: Path) -> list[Path]:
    if not directory.is_dir():
        return []
    return sorted(p for p in directory.iterdir() if p.is_file())


# ---------------------------------------------------------------------------
# Metrics
# ---------------------------------------------------------------------------


def context_metrics(validation_dir: str | Path) -> ContextMetrics:
    """Size of the active state and the archive under *validation_dir*."""
    vdir = Path(validation_dir)
    active = sum((vdir / name).stat().st_size
                 for name in ACTIVE_FILES if (vdir / name).is_file())
    archived = sum(p.stat().st_size for p in _files(vdir / "archive"))
    total = active + archived
    return ContextMetrics(
        total_size=total,
        active_size=active,
        archived_size=archived,
        compression_ratio=active / total if archived > 0 else 1.0,
        token_estimate=round(total / 4),
    )


def should_cleanup(metrics: ContextMetrics, config: CleanupConfig) -> bool:
    return (metrics.active_size > config.max_active_size
            or metrics.token_estimate > MAX_CONTEXT_TOKENS)


# ---------------------------------------------------------------------------
# Steps
# ---------------------------------------------------------------------------


def prune_old_failures(validation_dir: str | Path, config: CleanupConfig) -> int:
    if not db_exists(validation_dir):
        return 0
    cutoff = (datetime.now(timezone.utc) - timedelta(days=config.retention_days)
              ).isoformat(timespec="milliseconds")
    conn = init_db(validation_dir)
    try:
        removed = prune_failures(conn, cutoff, max(MIN_FAILURES_KEPT, config.max_failure_count))
        if removed:
            vacuum(conn)
    finally:
        conn.close()
    if removed:
        log.info("Pruned %d old failure records", removed)
    return removed


def prune_low_confidence_patterns(validation_dir: str | Path, config: CleanupConfig) -> int:
    if not db_exists(validation_dir):
        return 0
    conn = init_db(validation_dir)
    try:
        removed = prune_patterns(conn, config.max_pattern_count)
        if removed:
            vacuum(conn)
    finally:
        conn.close()
    if removed:
        log.info("Removed %d low-confidence patterns", removed)
    return removed


def archive_old_reports(validation_dir: str | Path, config: CleanupConfig,
                        now: float | None = None) -> int:
    vdir = Path(validation_dir)
    reports = _files(vdir / "reports")
    if not reports:
        return 0
    now = time.time() if now is None else now
    archive = vdir / "archive"
    archive.mkdir(parents=True, exist_ok=True)
    moved = 0
    for path in reports:
        if _older_than(path, config.archive_after_days, now):
            shutil.move(str(path), str(archive / path.name))
            moved += 1
    if moved:
        log.info("Archived %d old reports", moved)
    return moved


def compress_old_archives(validation_dir: str | Path, config: CleanupConfig,
                          now: float | None = None) -> int:
    now = time.time() if now is None else now
    compressed = 0
    for path in _files(Path(validation_dir) / "archive"):
        if path.suffix == ".gz" or not _older_than(path, config.compress_after_days, now):
            continue
        target = path.with_name(path.name + ".gz")
        stat = path.stat()
        try:
            with path.open("rb") as src, gzip.open(target, "wb") as dst:
                shutil.copyfileobj(src, dst)
        except OSError as exc:
            log.warning("Could not compress %s: %s", path, exc)
            target.unlink(missing_ok=True)
            continue
        os.utime(target, (stat.st_atime, stat.st_mtime))
        path.unlink()
        compressed += 1
    if compressed:
        log.info("Compressed %d archive files", compressed)
    return compressed


def delete_old_archives(validation_dir: str | Path, config: CleanupConfig,
                        now: float | None = None) -> int:
    now = time.time() if now is None else now
    deleted = 0
    for path in _files(Path(validation_dir) / "archive"):
        if _older_than(path, config.delete_after_days, now):
            path.unlink()
            deleted += 1
    if deleted:
        log.info("Deleted %d old archive files", deleted)
    return deleted


# ---------------------------------------------------------------------------
# Full cleanup
# ---------------------------------------------------------------------------


def run_cleanup(project_path: str | Path, config: CleanupConfig) -> CleanupReport:
    """Run every cleanup step and report before/after sizes."""
    vdir = _validation_dir(project_path)
    log.info("Running context optimization...")
    before = context_metrics(vdir)

    removed = prune_old_failures(vdir, config)
    removed += prune_low_confidence_patterns(vdir, config)
    archived = archive_old_reports(vdir, config)
    compressed = compress_old_archives(vdir, config)
    removed += delete_old_archives(vdir, config)

    after = context_metrics(vdir)
    return CleanupReport(
        timestamp=utc_now(),
        before=before,
        after=after,
        items_removed=removed,
        items_archived=archived,
        items_compressed=compressed,
        space_saved=before.total_size - after.total_size,
    )
