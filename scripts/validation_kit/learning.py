"""Layer 3 -- learning loop over validation failures.

Every issue from a failed or errored validator is stored as a failure.
Failures with the same normalised message form a pattern; a pattern that
keeps coming back and is reliably fixed becomes "auto-fix ready":

  auto_fix_ready = occurrences >= 3 and fix_rate >= 0.8

Auto-fixes run the owning validator's `fix_command` (eslint --fix,
biome --write). Validators without one are never auto-fixed.

Validator accuracy is an exponential moving average of run outcomes
(passed 1.0, failed 0.5, error 0.0; new validators start at 0.9).
Skipped runs carry no signal and leave accuracy untouched.
"""

from __future__ import annotations

import logging
import re
import sqlite3
import subprocess
import uuid
from collections import defaultdict
from pathlib import Path

from .db import (
    count_failures,
    count_patterns,
    fix_counts,
    get_failures,
    get_pattern,
    get_patterns,
    get_validator_accuracy,
    insert_failures,
    mark_fix,
    replace_patterns,
    touch,
    upsert_validator_accuracy,
)
from .models import (
    FailurePattern,
    FailureRecord,
    LearningMetrics,
    LearningReport,
    ValidationIssue,
    ValidationResult,
    ValidatorConfig,
    utc_now,
)
from .runner import run_command

log = logging.getLogger(__name__)

AUTO_FIX_MIN_OCCURRENCES = 3
AUTO_FIX_MIN_FIX_RATE = 0.8
AUTO_FIX_BATCH = 5
FREQUENT_PATTERN_OCCURRENCES = 5
LOW_ACCURACY = 0.8

DEFAULT_ACCURACY = 0.9
EMA_DECAY = 0.9
EMA_WEIGHT = 0.1
_OUTCOME_VALUE = {"passed": 1.0, "failed": 0.5, "error": 0.0}

_FIX_TIMEOUT = 300.0

# ---------------------------------------------------------------------------
# Pattern identification
# ---------------------------------------------------------------------------

_QUOTED_PATH_RE = re.compile(r"""['"`]/[^'"`]+['"`]""")
_LINE_RE = re.compile(r"line \d+", re.IGNORECASE)
_COLUMN_RE = re.compile(r"column \d+", re.IGNORECASE)
_IDENTIFIER_RE = re.compile(r"'[a-zA-Z_][a-zA-Z0-9_]*'")
_ANY_RE = re.compile(r"\bany\b")


def identify_pattern(issue: ValidationIssue) -> str:
    """Normalise an issue into `<code>:<message>` with specifics masked."""
    message = _QUOTED_PATH_RE.sub('"<path>"', issue.message)
    message = _LINE_RE.sub("line <N>", message)
    message = _COLUMN_RE.sub("column <N>", message)
    message = _IDENTIFIER_RE.sub("'<identifier>'", message)
    return f"{issue.code}:{message}"


def pattern_confidence(pattern: FailurePattern | None) -> float:
    """Confidence in a failure given what is known about its pattern."""
    if pattern is None:
        return 0.3
    base = min(0.9, 0.3 + pattern.occurrences * 0.1)
    return min(0.99, base + pattern.fix_rate * 0.2)


def suggest_fix(pattern: str) -> str | None:
    """Canned fix hint for well-known failure shapes."""
    text = pattern.lower()
    if "nullable" in text or "optional" in text:
        return "Add .nullable() or .optional() to Zod schema field"
    if _ANY_RE.search(text):
        return "Replace `any` type with specific type or `unknown`"
    if "unused" in text:
        return "Remove unused variable or prefix with underscore"
    if "import" in text:
        return "Check import path and ensure module exists"
    return None


def _is_auto_fix_ready(occurrences: int, fix_rate: float) -> bool:
    return occurrences >= AUTO_FIX_MIN_OCCURRENCES and fix_rate >= AUTO_FIX_MIN_FIX_RATE


# ---------------------------------------------------------------------------
# Recording
# ---------------------------------------------------------------------------


def record_results(conn: sqlite3.Connection, results: list[ValidationResult]) -> int:
    """Store failures from *results*, then refresh patterns and accuracy.

    Returns the number of failure records written.
    """
    timestamp = utc_now()
    known: dict[str, FailurePattern | None] = {}
    records: list[FailureRecord] = []
    for result in results:
        if result.status not in ("failed", "error"):
            continue
        for issue in result.issues:
            pattern = identify_pattern(issue)
            if pattern not in known:
                known[pattern] = get_pattern(conn, pattern)
            records.append(FailureRecord(
                id=uuid.uuid4().hex,
                timestamp=timestamp,
                validator=result.validator,
                error_code=issue.code,
                error_message=issue.message,
                file=issue.file,
                line=issue.line,
                pattern=pattern,
                confidence=pattern_confidence(known[pattern]),
            ))

    insert_failures(conn, records)
    detect_patterns(conn)
    update_validator_accuracy(conn, results)
    touch(conn)
    log.info("Recorded %d failures (%d patterns known)", len(records), count_patterns(conn))
    return len(records)


def detect_patterns(conn: sqlite3.Connection) -> list[FailurePattern]:
    """Rebuild the patterns table from the failures table.

    Suggested fixes already stored for a pattern are kept.
    """
    previous = {p.pattern: p for p in get_patterns(conn)}
    grouped: dict[str, list[FailureRecord]] = defaultdict(list)
    for failure in get_failures(conn):
        if failure.pattern:
            grouped[failure.pattern].append(failure)

    patterns: list[FailurePattern] = []
    for pattern, failures in grouped.items():
        fixed = sum(1 for f in failures if f.fix_succeeded)
        fix_rate = fixed / len(failures)
        first = failures[0]
        old = previous.get(pattern)
        patterns.append(FailurePattern(
            pattern=pattern,
            description=f"{first.validator}: {first.error_message[:100]}",
            occurrences=len(failures),
            first_seen=min(f.timestamp for f in failures),
            last_seen=max(f.timestamp for f in failures),
            fix_rate=fix_rate,
            suggested_fix=(old.suggested_fix if old and old.suggested_fix
                           else suggest_fix(pattern)),
            auto_fix_ready=_is_auto_fix_ready(len(failures), fix_rate),
        ))

    patterns.sort(key=lambda p: p.occurrences, reverse=True)
    replace_patterns(conn, patterns)
    return patterns


def update_validator_accuracy(conn: sqlite3.Connection,
                              results: list[ValidationResult]) -> None:
    current = get_validator_accuracy(conn)
    for result in results:
        value = _OUTCOME_VALUE.get(result.status)
        if value is None:
            continue
        previous = current.get(result.validator, DEFAULT_ACCURACY)
        upsert_validator_accuracy(
            conn, result.validator, previous * EMA_DECAY + value * EMA_WEIGHT)
    conn.commit()


# ---------------------------------------------------------------------------
# Reporting
# ---------------------------------------------------------------------------


def learning_metrics(conn: sqlite3.Connection) -> LearningMetrics:
    applied, succeeded = fix_counts(conn)
    return LearningMetrics(
        total_failures=count_failures(conn),
        unique_patterns=count_patterns(conn),
        auto_fixes_applied=applied,
        auto_fix_success_rate=succeeded / applied if applied else 0.0,
        validator_accuracy=get_validator_accuracy(conn),
    )


def generate_report(conn: sqlite3.Connection) -> LearningReport:
    """Metrics, patterns and recommendations from learning.db."""
    metrics = learning_metrics(conn)
    patterns = get_patterns(conn)
    recommendations: list[str] = []

    ready = [p for p in patterns if p.auto_fix_ready]
    if ready:
        recommendations.append(
            f"{len(ready)} patterns are ready for auto-fix. Run with --fix to apply.")
    frequent = [p for p in patterns if p.occurrences >= FREQUENT_PATTERN_OCCURRENCES]
    if frequent:
        recommendations.append(
            f"{len(frequent)} patterns occur frequently. Consider addressing root causes.")
    weak = [v for v, acc in metrics.validator_accuracy.items() if acc < LOW_ACCURACY]
    if weak:
        recommendations.append(
            f"{len(weak)} validators have low accuracy ({', '.join(sorted(weak))}). "
            "Review their configurations.")

    return LearningReport(
        timestamp=utc_now(),
        metrics=metrics,
        patterns=patterns,
        recommendations=recommendations,
    )


# ---------------------------------------------------------------------------
# Auto-fix
# ---------------------------------------------------------------------------


def _run_fix(command: str, project_path: str | Path) -> bool:
    try:
        proc = run_command(command, cwd=project_path, timeout=_FIX_TIMEOUT)
    except (subprocess.TimeoutExpired, OSError) as exc:
        log.warning("Fix command failed to run: %s (%s)", command, exc)
        return False
    if proc.returncode != 0:
        log.warning("Fix command exited %d: %s", proc.returncode, command)
    return proc.returncode == 0


def apply_auto_fixes(conn: sqlite3.Connection, project_path: str | Path,
                     validators: dict[str, ValidatorConfig]) -> tuple[int, int]:
    """Apply fixes for auto-fix-ready patterns.

    Up to AUTO_FIX_BATCH unfixed failures per pattern are handled. Each
    validator's fix command runs at most once per pattern; its exit code
    decides success for all failures it covers.

    Returns (applied, succeeded) failure counts.
    """
    applied = succeeded = 0
    for pattern in get_patterns(conn):
        if not pattern.auto_fix_ready or not pattern.suggested_fix:
            continue
        failures = get_failures(conn, pattern=pattern.pattern, unfixed_only=True,
                                limit=AUTO_FIX_BATCH)
        by_validator: dict[str, list[str]] = defaultdict(list)
        for failure in failures:
            by_validator[failure.validator].append(failure.id)

        for validator, ids in by_validator.items():
            cfg = validators.get(validator)
            if cfg is None or not cfg.fix_command:
                log.debug("No fix command for %s; skipping %s", validator, pattern.pattern)
                continue
            log.info("Applying fix for %s: %s", pattern.pattern[:60], pattern.suggested_fix)
            ok = _run_fix(cfg.fix_command, project_path)
            mark_fix(conn, ids, pattern.suggested_fix, ok)
            applied += len(ids)
            if ok:
                succeeded += len(ids)

    if applied:
        detect_patterns(conn)
        touch(conn)
    log.info("Auto-fix: applied %d, succeeded %d", applied, succeeded)
    return applied, succeeded
