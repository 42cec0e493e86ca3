"""Report persistence and rendering.

Reports are saved as JSON under .validation/reports/<kind>-<timestamp>.json.
Renderers return strings; the CLI decides where they go.
"""

from __future__ import annotations

import json
import logging
from datetime import datetime, timezone
from pathlib import Path
from typing import Any

from . import VALIDATION_DIR
from .models import CleanupReport, LearningReport, SkepticalReport, ValidationReport

log = logging.getLogger(__name__)

_RULE = "=" * 60
_THIN = "-" * 60

_STATUS_LABEL = {
    "passed": "PASSED",
    "failed": "FAILED",
    "error": "ERROR",
    "skipped": "SKIPPED",
}
_CRITIQUE_MARK = {"critical": "[!!]", "warning": "[! ]", "suggestion": "[ i]"}


def format_bytes(size: int) -> str:
    """Human-readable byte count (B, KB, MB)."""
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"


def save_report(project_path: str | Path, kind: str, payload: dict[str, Any]) -> Path:
    """Write *payload* as reports/<kind>-<timestamp>.json and return the path."""
    reports_dir = Path(project_path) / VALIDATION_DIR / "reports"
    reports_dir.mkdir(parents=True, exist_ok=True)
    stamp = datetime.now(timezone.utc).isoformat(timespec="milliseconds")
    stamp = stamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")
    path = reports_dir / f"{kind}-{stamp}.json"
    path.write_text(json.dumps(payload, indent=2))
    log.debug("Saved %s report to %s", kind, path)
    return path


# ---------------------------------------------------------------------------
# Validation (layer 1)
# ---------------------------------------------------------------------------


def render_validation_text(report: ValidationReport) -> str:
    s = report.summary
    lines = [
        _RULE,
        "  VALIDATION REPORT",
        _RULE,
        f"  Status: {_STATUS_LABEL.get(report.status, report.status)}",
        f"  Score:  {report.score}/100",
        f"  Time:   {report.duration_ms}ms",
        _THIN,
        f"  Validators: {s.passed}/{s.total_validators} passed"
        f" ({s.failed} failed, {s.errors} errors, {s.skipped} skipped)",
        f"  Issues:     {s.total_issues} total"
        f" ({s.critical_issues} critical, {s.high_issues} high)",
    ]
    if report.optimization is not None and report.optimization.validators_skipped:
        lines.append(f"  Sparse:     {report.optimization.validators_skipped} validators skipped")
    lines.append(_RULE)

    flagged = report.flagged_issues()
    if flagged:
        lines.append("")
        lines.append("Flagged by consensus:")
        for ci in flagged[:20]:
            issue = ci.issue
            where = f"{issue.file}:{issue.line}" if issue.file and issue.line else issue.file or "-"
            lines.append(f"  [{issue.severity}] {issue.code} {where}")
            lines.append(f"      {issue.message}  ({', '.join(ci.validators)})")
        if len(flagged) > 20:
            lines.append(f"  ... and {len(flagged) - 20} more")
    return "\n".join(lines)


def render_validation_markdown(report: ValidationReport) -> str:
    s = report.summary
    lines = [
        "# Validation Report",
        "",
        f"**Status:** {_STATUS_LABEL.get(report.status, report.status)}  ",
        f"**Score:** {report.score}/100  ",
        f"**Generated:** {report.timestamp}",
        "",
        "## Validators",
        "",
        "| Validator | Status | Weight | Issues | Duration |",
        "|-----------|--------|--------|--------|----------|",
    ]
    for r in report.results:
        lines.append(
            f"| {r.validator} | {r.status} | {r.weight:.2f} | {len(r.issues)} | {r.duration_ms}ms |")
    lines += [
        "",
        "## Summary",
        "",
        f"- Validators passed: {s.passed}/{s.total_validators}",
        f"- Total issues: {s.total_issues}",
        f"- Critical issues: {s.critical_issues}",
        f"- High issues: {s.high_issues}",
    ]
    flagged = report.flagged_issues()
    if flagged:
        lines += ["", "## Flagged Issues", ""]
        for ci in flagged:
            issue = ci.issue
            where = f" `{issue.file}:{issue.line}`" if issue.file and issue.line else ""
            lines.append(
                f"- **{issue.severity}** `{issue.code}`{where}: {issue.message}"
                f" _(validators: {', '.join(ci.validators)})_")
    return "\n".join(lines) + "\n"


# ---------------------------------------------------------------------------
# Skeptical (layer 2)
# ---------------------------------------------------------------------------


def render_skeptical_text(report: SkepticalReport) -> str:
    a = report.assessment
    lines = [
        _RULE,
        "  SKEPTICAL REASONING REPORT",
        _RULE,
        f"  Recommendation: {a.recommendation.upper()}",
        _THIN,
        f"  Readiness Score:    {a.readiness_score}/100",
        f"  Scalability Score:  {a.scalability_score}/100",
        f"  Architecture Score: {a.architecture_score}/100",
        _THIN,
        f"  Critiques:    {len(report.critiques)}",
        f"  Blind Spots:  {len(report.blind_spots)}",
        f"  Tech Issues:  {len(report.tech_stack_issues)}",
        _RULE,
    ]
    if report.critiques:
        lines.append("")
        lines.append("Top critiques:")
        for c in report.critiques[:3]:
            lines.append(f"  {_CRITIQUE_MARK.get(c.severity, '[  ]')} {c.title}")
            lines.append(f"       -> {c.recommendation}")
    return "\n".join(lines)


def render_skeptical_markdown(report: SkepticalReport) -> str:
    a = report.assessment
    lines = [
        "# Skeptical Reasoning Report",
        "",
        f"**Recommendation:** {a.recommendation}",
        "",
        "| Score | Value |",
        "|-------|-------|",
        f"| Readiness | {a.readiness_score}/100 |",
        f"| Scalability | {a.scalability_score}/100 |",
        f"| Architecture | {a.architecture_score}/100 |",
    ]
    if report.critiques:
        lines += ["", "## Critiques", ""]
        for c in report.critiques:
            lines += [
                f"### [{c.severity}] {c.title}",
                "",
                f"- Concern: {c.concern}",
                f"- Breaks at: {json.dumps(c.breaks_at.to_dict())}",
                f"- Recommendation: {c.recommendation}",
                f"- Rationale: {c.rationale}",
                "",
            ]
    if report.growth_phases:
        lines += ["## Growth Phases", ""]
        for p in report.growth_phases:
            lines.append(
                f"- **Phase {p.phase}: {p.name}** ({p.timeline}), "
                f"{p.user_range[0]:,}-{p.user_range[1]:,} users, "
                f"{p.qps_range[0]:,}-{p.qps_range[1]:,} QPS")
            if p.bottlenecks:
                lines.append(f"  - Bottlenecks: {', '.join(p.bottlenecks)}")
            if p.changes_needed:
                lines.append(f"  - Changes: {', '.join(p.changes_needed)}")
        lines.append("")
    if report.blind_spots:
        lines += ["## Blind Spots", ""]
        for b in report.blind_spots:
            lines.append(
                f"- **{b.title}** ({b.impact}, {b.likelihood:.0%} likely): "
                f"{b.description}. Prevention: {b.prevention}")
        lines.append("")
    if report.tech_stack_issues:
        lines += ["## Tech Stack Issues", ""]
        for t in report.tech_stack_issues:
            lines.append(f"- **{t.component}** [{t.severity}]: {t.issue}. {t.recommendation}")
    return "\n".join(lines).rstrip() + "\n"


# ---------------------------------------------------------------------------
# Learning (layer 3) and cleanup (layer 4)
# ---------------------------------------------------------------------------


def render_learning_text(report: LearningReport) -> str:
    m = report.metrics
    lines = [
        _RULE,
        "  LEARNING REPORT",
        _RULE,
        f"  Total Failures:     {m.total_failures}",
        f"  Unique Patterns:    {m.unique_patterns}",
        f"  Auto-Fixes Applied: {m.auto_fixes_applied}",
        f"  Auto-Fix Success:   {m.auto_fix_success_rate * 100:.1f}%",
        _THIN,
    ]
    if report.patterns:
        lines.append("Top patterns:")
        for p in report.patterns[:5]:
            mark = "[ready]" if p.auto_fix_ready else "[ ... ]"
            lines.append(f"  {mark} {p.description[:50]}")
            lines.append(f"          occurrences: {p.occurrences}, fix rate: {p.fix_rate * 100:.0f}%")
    if report.recommendations:
        lines.append("")
        lines.append("Recommendations:")
        lines.extend(f"  - {rec}" for rec in report.recommendations)
    lines.append(_RULE)
    return "\n".join(lines)


def render_cleanup_text(report: CleanupReport) -> str:
    b, a = report.before, report.after
    return "\n".join([
        _RULE,
        "  CONTEXT OPTIMIZATION REPORT",
        _RULE,
        f"  Space Saved: {format_bytes(report.space_saved)}",
        _THIN,
        f"  Before: {format_bytes(b.total_size)} ({b.token_estimate:,} tokens)",
        f"  After:  {format_bytes(a.total_size)} ({a.token_estimate:,} tokens)",
        _THIN,
        f"  Items Removed:    {report.items_removed}",
        f"  Items Archived:   {report.items_archived}",
        f"  Items Compressed: {report.items_compressed}",
        _RULE,
    ])
