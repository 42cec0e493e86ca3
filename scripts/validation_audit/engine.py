"""Codebase audit engine -- evidence-based dead code and bloat detection.

Runs each enabled tool, turns its candidates into findings and drops the
ones below min_confidence_to_report. Confidence adjustments:

  - target on the keep list           -20
  - backed by more than one evidence  +15
  - clamped to 0..100

Finding ids are stable across runs: <type>-<sha256(type:target)[:12]>.
"""

from __future__ import annotations

import hashlib
import json
import logging
import time
from fnmatch import fnmatch
from pathlib import Path
from typing import Callable

from validation_kit import VALIDATION_DIR
from validation_kit.models import utc_now

from . import __version__
from .models import (
    AuditConfig,
    AuditError,
    AuditReport,
    AuditSummary,
    Finding,
    KeepList,
    confidence_category,
)
from .tools import (
    Candidate,
    ToolFailure,
    find_stale_files,
    run_depcheck,
    run_jscpd,
    run_madge,
    run_ts_prune,
    run_unimported,
)

log = logging.getLogger(__name__)

KEEP_LIST_PENALTY = 20
MULTI_EVIDENCE_BONUS = 15

KEEP_FILENAME = "keep.json"


# ---------------------------------------------------------------------------
# Findings
# ---------------------------------------------------------------------------


def finding_id(finding_type: str, target: str) -> str:
    """Deterministic finding id so reruns and cleanup plans line up."""
    digest = hashlib.sha256(f"{finding_type}:{target}".encode()).hexdigest()[:12]
    return f"{finding_type}-{digest}"


def create_finding(candidate: Candidate, keep_list: KeepList) -> Finding:
    confidence = candidate.base_confidence
    if keep_list.contains(candidate.target):
        confidence -= KEEP_LIST_PENALTY
    if len(candidate.evidence) > 1:
        confidence += MULTI_EVIDENCE_BONUS
    confidence = max(0, min(100, confidence))
    return Finding(
        id=finding_id(candidate.type, candidate.target),
        type=candidate.type,
        target=candidate.target,
        confidence=confidence,
        category=confidence_category(confidence),
        recommendation=candidate.recommendation,
        evidence=list(candidate.evidence),
        metadata=dict(candidate.metadata),
    )


# ---------------------------------------------------------------------------
# Exclusions and keep list
# ---------------------------------------------------------------------------


def _relative(path: str, project: Path) -> str:
    p = Path(path)
    if p.is_absolute():
        try:
            return p.relative_to(project).as_posix()
        except ValueError:
            return p.as_posix()
    return p.as_posix().removeprefix("./")


def is_path_excluded(path: str, project: Path, config: AuditConfig) -> bool:
    """True for paths under an excluded directory or matching an excluded glob."""
    rel = _relative(path, project)
    for excluded in config.exclusions.get("paths", []):
        if rel.startswith(excluded) or f"/{excluded}" in rel:
            return True
    name = rel.rsplit("/", 1)[-1]
    return any(fnmatch(rel, pat) or fnmatch(name, pat)
               for pat in config.exclusions.get("patterns", []))


def is_package_excluded(package: str, config: AuditConfig) -> bool:
    return any(fnmatch(package, pat) for pat in config.exclusions.get("packages", []))


def load_keep_list(project_path: str | Path) -> KeepList:
    """Read .validation/keep.json; an absent or broken file means an empty list."""
    path = Path(project_path) / VALIDATION_DIR / KEEP_FILENAME
    if not path.exists():
        return KeepList()
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        log.warning("Ignoring unreadable keep list %s: %s", path, exc)
        return KeepList()
    if not isinstance(data, dict):
        log.warning("Ignoring keep list %s: not a JSON object", path)
        return KeepList()
    return KeepList.from_dict(data)


def _excluded(candidate: Candidate, project: Path, config: AuditConfig) -> bool:
    if candidate.type == "unused-dependency":
        return is_package_excluded(candidate.target, config)
    if candidate.type in ("unused-file", "stale-file"):
        return is_path_excluded(candidate.target, project, config)
    if candidate.type == "unused-export":
        return is_path_excluded(candidate.metadata.get("file", candidate.target), project, config)
    return False


# ---------------------------------------------------------------------------
# Audit
# ---------------------------------------------------------------------------


def _tool_runners(config: AuditConfig) -> list[tuple[str, Callable[[Path], list[Candidate]]]]:
    jscpd = config.tools.get("jscpd", {})
    return [
        ("depcheck", run_depcheck),
        ("ts-prune", run_ts_prune),
        ("unimported", run_unimported),
        ("jscpd", lambda p: run_jscpd(p, jscpd.get("min_lines", 10),
                                      jscpd.get("min_tokens", 50))),
        ("madge", run_madge),
    ]


def run_audit(project_path: str | Path, config: AuditConfig | None = None) -> AuditReport:
    """Run every enabled tool against *project_path* and collect findings."""
    project = Path(project_path).resolve()
    config = config or AuditConfig()
    keep_list = load_keep_list(project)
    start = time.monotonic()

    candidates: list[Candidate] = []
    tools_used: list[str] = []
    errors: list[AuditError] = []

    log.info("Starting evidence-based codebase audit of %s", project)
    for tool, runner in _tool_runners(config):
        if not config.tool_enabled(tool):
            continue
        log.info("Running %s...", tool)
        tools_used.append(tool)
        try:
            found = runner(project)
        except ToolFailure as exc:
            log.warning("%s failed: %s", tool, exc)
            errors.append(AuditError(tool=tool, message=str(exc), timestamp=utc_now()))
            continue
        log.info("  %s: %d candidates", tool, len(found))
        candidates.extend(found)

    stale_days = config.thresholds.get("stale_file_days", 180)
    try:
        stale = find_stale_files(project, stale_days)
    except OSError as exc:
        log.warning("Could not check stale files: %s", exc)
        stale = []
    log.info("  stale files (>%d days): %d", stale_days, len(stale))
    candidates.extend(stale)

    min_confidence = config.thresholds.get("min_confidence_to_report", 50)
    findings = [
        f for f in (create_finding(c, keep_list) for c in candidates
                    if not _excluded(c, project, config))
        if f.confidence >= min_confidence
    ]

    return AuditReport(
        version=__version__,
        timestamp=utc_now(),
        project_path=str(project),
        duration_ms=int((time.monotonic() - start) * 1000),
        summary=AuditSummary.from_findings(findings),
        findings=findings,
        tools_used=tools_used,
        errors=errors,
    )
