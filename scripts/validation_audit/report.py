"""Audit reports and cleanup plans.

Console and markdown renderers group findings by confidence: high
(safe to act on), medium (needs review), low (informational, capped).
The cleanup plan only ever acts on high-confidence findings and is
written as a shell script for a human to review before running.
"""

from __future__ import annotations

import json
import logging
import shlex
from pathlib import Path

from validation_kit import VALIDATION_DIR
from validation_kit.models import utc_now

from .models import AuditReport, CleanupAction, CleanupPlan, Finding

log = logging.getLogger(__name__)

CONSOLE_LOW_LIMIT = 10
MARKDOWN_LOW_LIMIT = 20

ARCHIVE_DIR = "_archive"
CLEANUP_SCRIPT = "cleanup.sh"

_RULE = "=" * 70
_THIN = "-" * 70


def _first_evidence(finding: Finding) -> tuple[str, str]:
    if not finding.evidence:
        return "unknown", "No output"
    return finding.evidence[0].tool, finding.evidence[0].output


def _format_finding(finding: Finding) -> list[str]:
    tool, _ = _first_evidence(finding)
    return [
        "",
        f"  {finding.type.upper()} [{finding.confidence}%]",
        f"     Target: {finding.target}",
        f"     -> {finding.recommendation}",
        f"     Evidence: {tool}",
    ]


# ---------------------------------------------------------------------------
# Console
# ---------------------------------------------------------------------------


def render_console_report(report: AuditReport) -> str:
    s = report.summary
    lines = [
        "",
        _RULE,
        "  EVIDENCE-BASED CODEBASE AUDIT REPORT",
        _RULE,
        f"  Project:   {report.project_path}",
        f"  Timestamp: {report.timestamp}",
        f"  Duration:  {report.duration_ms / 1000:.2f}s",
        _THIN,
        "",
        "SUMMARY",
        _THIN,
        f"  Total Findings:     {s.total_findings}",
        f"  High Confidence:    {s.high_confidence}",
        f"  Medium Confidence:  {s.medium_confidence}",
        f"  Low Confidence:     {s.low_confidence}",
        "",
        "  By Type:",
        f"    Unused Dependencies: {s.unused_dependencies}",
        f"    Unused Files:        {s.unused_files}",
        f"    Unused Exports:      {s.unused_exports}",
        f"    Duplicate Code:      {s.duplicate_blocks}",
        f"    Circular Deps:       {s.circular_dependencies}",
        f"    Stale Files:         {s.stale_files}",
        _THIN,
    ]

    for category, heading, limit in (
        ("high", "HIGH CONFIDENCE FINDINGS (safe to act on)", None),
        ("medium", "MEDIUM CONFIDENCE FINDINGS (needs human review)", None),
        ("low", "LOW CONFIDENCE FINDINGS (informational only)", CONSOLE_LOW_LIMIT),
    ):
        findings = report.by_category(category)
        if not findings:
            continue
        lines.extend(["", heading, _THIN])
        for finding in findings[:limit]:
            lines.extend(_format_finding(finding))
        if limit is not None and len(findings) > limit:
            lines.append(f"  ... and {len(findings) - limit} more {category} confidence findings")

    lines.extend(["", "TOOLS USED", _THIN, f"  {', '.join(report.tools_used) or 'none'}"])

    if report.errors:
        lines.extend(["", "ERRORS ENCOUNTERED", _THIN])
        for error in report.errors:
            lines.append(f"  {error.tool}: {error.message[:60]}")

    lines.extend([
        "",
        _RULE,
        "  Run 'validation-audit cleanup-plan' to preview cleanup actions",
        _RULE,
        "",
    ])
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Markdown
# ---------------------------------------------------------------------------


def render_markdown_report(report: AuditReport) -> str:
    s = report.summary
    lines = [
        "# Codebase Audit Report",
        "",
        f"**Project:** {report.project_path}  ",
        f"**Date:** {report.timestamp}  ",
        f"**Duration:** {report.duration_ms / 1000:.2f}s",
        "",
        "## Summary",
        "",
        "| Metric | Count |",
        "|--------|-------|",
        f"| Total Findings | {s.total_findings} |",
        f"| High Confidence | {s.high_confidence} |",
        f"| Medium Confidence | {s.medium_confidence} |",
        f"| Low Confidence | {s.low_confidence} |",
        "",
        "### By Type",
        "",
        "| Type | Count |",
        "|------|-------|",
        f"| Unused Dependencies | {s.unused_dependencies} |",
        f"| Unused Files | {s.unused_files} |",
        f"| Unused Exports | {s.unused_exports} |",
        f"| Duplicate Code | {s.duplicate_blocks} |",
        f"| Circular Dependencies | {s.circular_dependencies} |",
        f"| Stale Files | {s.stale_files} |",
        "",
    ]

    high = report.by_category("high")
    if high:
        lines.extend([
            "## High Confidence Findings",
            "",
            "> Backed by strong evidence and safe to act on.",
            "",
        ])
        for finding in high:
            tool, output = _first_evidence(finding)
            lines.extend([
                f"### {finding.target}",
                "",
                f"- **Type:** {finding.type}",
                f"- **Confidence:** {finding.confidence}%",
                f"- **Recommendation:** {finding.recommendation}",
                f"- **Evidence:** {tool}",
                "",
                "```",
                output,
                "```",
                "",
            ])

    medium = report.by_category("medium")
    if medium:
        lines.extend([
            "## Medium Confidence Findings",
            "",
            "> Needs human review before taking action.",
            "",
        ])
        lines.extend(f"- **{f.target}** ({f.confidence}%): {f.recommendation}" for f in medium)
        lines.append("")

    low = report.by_category("low")
    if low:
        lines.extend([
            "## Low Confidence Findings",
            "",
            "> Informational only. Do not act without investigation.",
            "",
        ])
        lines.extend(f"- {f.target}: {f.recommendation}" for f in low[:MARKDOWN_LOW_LIMIT])
        if len(low) > MARKDOWN_LOW_LIMIT:
            lines.append(f"- ... and {len(low) - MARKDOWN_LOW_LIMIT} more")
        lines.append("")

    lines.extend(["## Tools Used", ""])
    lines.extend(f"- {t}" for t in report.tools_used)
    lines.append("")
    return "\n".join(lines)


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def _reports_dir(report: AuditReport, output_dir: str | Path | None) -> Path:
    out = Path(output_dir) if output_dir else Path(report.project_path) / VALIDATION_DIR / "reports"
    out.mkdir(parents=True, exist_ok=True)
    return out


def _stamp(timestamp: str) -> str:
    return timestamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")


def save_json_report(report: AuditReport, output_dir: str | Path | None = None) -> Path:
    path = _reports_dir(report, output_dir) / f"audit-{_stamp(report.timestamp)}.json"
    path.write_text(json.dumps(report.to_dict(), indent=2))
    log.debug("Saved audit report to %s", path)
    return path


def save_markdown_report(report: AuditReport, output_dir: str | Path | None = None) -> Path:
    path = _reports_dir(report, output_dir) / f"audit-{_stamp(report.timestamp)}.md"
    path.write_text(render_markdown_report(report))
    log.debug("Saved audit markdown to %s", path)
    return path


# ---------------------------------------------------------------------------
# Cleanup plan
# ---------------------------------------------------------------------------


def _action_for(finding: Finding) -> CleanupAction | None:
    target = finding.target
    if finding.type == "unused-dependency":
        return CleanupAction("remove-dependency", target, finding,
                             f"npm uninstall {shlex.quote(target)}")
    if finding.type == "unused-file":
        return CleanupAction("archive-file", target, finding,
                             f"mkdir -p {ARCHIVE_DIR} && mv {shlex.quote(target)} {ARCHIVE_DIR}/")
    if finding.type == "unused-export":
        return CleanupAction("remove-export", target, finding,
                             f"# Manual: remove unused export from {target}")
    return None


def _comment(text: str) -> list[str]:
    return [f"# {line}" for line in (text.splitlines() or [""])]


def _banner(title: str) -> list[str]:
    bar = "# " + "=" * 63
    return [bar, f"# {title}", bar, ""]


def generate_cleanup_script(actions: list[CleanupAction], generated: str | None = None) -> str:
    """Shell script grouping actions by kind; exports are comments only."""
    lines = [
        "#!/bin/bash",
        "# Validation kit cleanup script",
        f"# Generated: {generated or utc_now()}",
        "# Review this script before running!",
        "",
        "set -e",
        "",
    ]

    deps = [a for a in actions if a.type == "remove-dependency"]
    files = [a for a in actions if a.type in ("archive-file", "delete-file")]
    exports = [a for a in actions if a.type == "remove-export"]

    if deps:
        lines.extend(_banner("REMOVE UNUSED DEPENDENCIES"))
        for action in deps:
            lines.extend(_comment(_first_evidence(action.finding)[1]))
            lines.extend([action.command or "", ""])

    if files:
        lines.extend(_banner("ARCHIVE UNUSED FILES"))
        lines.extend([f"mkdir -p {ARCHIVE_DIR}", ""])
        for action in files:
            lines.extend(_comment(_first_evidence(action.finding)[1]))
            lines.extend([action.command or "", ""])

    if exports:
        lines.extend(_banner("MANUAL: REMOVE UNUSED EXPORTS"))
        for action in exports:
            lines.extend(_comment(action.target))
            lines.extend(_comment(action.finding.recommendation))
            lines.append("")

    lines.append('echo "Cleanup complete!"')
    return "\n".join(lines) + "\n"


def generate_cleanup_plan(report: AuditReport) -> CleanupPlan:
    """Cleanup actions for high-confidence findings only."""
    actions = [a for a in (_action_for(f) for f in report.by_category("high")) if a is not None]
    timestamp = utc_now()
    return CleanupPlan(
        timestamp=timestamp,
        project_path=report.project_path,
        actions=actions,
        files_removed=sum(1 for a in actions if a.type in ("archive-file", "delete-file")),
        dependencies_removed=sum(1 for a in actions if a.type == "remove-dependency"),
        script=generate_cleanup_script(actions, timestamp),
    )


def save_cleanup_script(plan: CleanupPlan, output_dir: str | Path | None = None) -> Path:
    """Write the plan's script to .validation/cleanup.sh (mode 755)."""
    out = Path(output_dir) if output_dir else Path(plan.project_path) / VALIDATION_DIR
    out.mkdir(parents=True, exist_ok=True)
    path = out / CLEANUP_SCRIPT
    path.write_text(plan.script)
    path.chmod(0o755)
    log.debug("Saved cleanup script to %s", path)
    return path
