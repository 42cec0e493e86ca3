"""Tests for validation_audit.report -- renderers, persistence and cleanup plans."""

from __future__ import annotations

import json
import os
import stat
from pathlib import Path

from validation_audit.models import (
    AuditError,
    AuditReport,
    AuditSummary,
    Evidence,
    Finding,
    confidence_category,
)
from validation_audit.report import (
    generate_cleanup_plan,
    generate_cleanup_script,
    render_console_report,
    render_markdown_report,
    save_cleanup_script,
    save_json_report,
    save_markdown_report,
)

TS = "2024-01-01T10:00:00.000+00:00"


def _finding(ftype: str, target: str, confidence: int, output: str = "raw output") -> Finding:
    return Finding(
        id=f"{ftype}-{target}",
        type=ftype,
        target=target,
        confidence=confidence,
        category=confidence_category(confidence),
        recommendation=f"Handle {target}",
        evidence=[Evidence("tool", output, TS, 0)],
    )


def _report(project: Path, findings: list[Finding], **kwargs: object) -> AuditReport:
    return AuditReport(
        version="1.0.0",
        timestamp=TS,
        project_path=str(project),
        duration_ms=1500,
        summary=AuditSummary.from_findings(findings),
        findings=findings,
        tools_used=["depcheck", "unimported"],
        **kwargs,  # type: ignore[arg-type]
    )


# ---------------------------------------------------------------------------
# Renderers
# ---------------------------------------------------------------------------


def test_console_report_sections(tmp_path: Path) -> None:
    findings = [
        _finding("unused-dependency", "lodash", 85),
        _finding("unused-file", "src/old.ts", 70),
    ] + [_finding("stale-file", f"src/s{i}.ts", 55) for i in range(12)]
    errors = [AuditError("madge", "x" * 100, TS)]
    text = render_console_report(_report(tmp_path, findings, errors=errors))
    assert "EVIDENCE-BASED CODEBASE AUDIT REPORT" in text
    assert "Duration:  1.50s" in text
    assert "HIGH CONFIDENCE FINDINGS (safe to act on)" in text
    assert "  UNUSED-DEPENDENCY [85%]" in text
    assert "MEDIUM CONFIDENCE FINDINGS (needs human review)" in text
    assert "  ... and 2 more low confidence findings" in text
    assert "src/s11.ts" not in text
    assert "  depcheck, unimported" in text
    assert f"  madge: {'x' * 60}\n" in text
    assert "validation-audit cleanup-plan" in text


def test_console_report_empty(tmp_path: Path) -> None:
    text = render_console_report(_report(tmp_path, []))
    assert "HIGH CONFIDENCE" not in text
    assert "ERRORS ENCOUNTERED" not in text


def test_markdown_report(tmp_path: Path) -> None:
    findings = [
        _finding("unused-dependency", "lodash", 90, "Unused dependency: lodash"),
        _finding("unused-file", "src/old.ts", 65),
    ] + [_finding("stale-file", f"src/s{i}.ts", 50) for i in range(21)]
    md = render_markdown_report(_report(tmp_path, findings))
    assert md.startswith("# Codebase Audit Report")
    assert "| Total Findings | 23 |" in md
    assert "### lodash" in md
    assert "```\nUnused dependency: lodash\n```" in md
    assert "- **src/old.ts** (65%): Handle src/old.ts" in md
    assert "- ... and 1 more" in md
    assert md.rstrip().endswith("- unimported")


# ---------------------------------------------------------------------------
# Persistence
# ---------------------------------------------------------------------------


def test_save_reports(tmp_path: Path) -> None:
    report = _report(tmp_path, [_finding("unused-file", "src/old.ts", 85)])
    json_path = save_json_report(report)
    md_path = save_markdown_report(report)
    assert json_path.parent == tmp_path / ".validation" / "reports"
    assert json_path.name == "audit-2024-01-01T10-00-00-000Z.json"
    assert md_path.name == "audit-2024-01-01T10-00-00-000Z.md"
    data = json.loads(json_path.read_text())
    assert data["summary"]["unused_files"] == 1
    assert data["findings"][0]["evidence"][0]["exit_code"] == 0


def test_save_report_custom_dir(tmp_path: Path) -> None:
    out = tmp_path / "elsewhere"
    path = save_json_report(_report(tmp_path, []), out)
    assert path.parent == out


# ---------------------------------------------------------------------------
# Cleanup plan
# ---------------------------------------------------------------------------


def test_cleanup_plan_high_confidence_only(tmp_path: Path) -> None:
    findings = [
        _finding("unused-dependency", "left-pad", 85),
        _finding("unused-file", "src/my old.ts", 90),
        _finding("unused-export", "src/utils.ts:10", 80),
        _finding("circular-dependency", "a -> b", 90),
        _finding("unused-file", "src/maybe.ts", 70),
    ]
    plan = generate_cleanup_plan(_report(tmp_path, findings))
    assert [a.type for a in plan.actions] == ["remove-dependency", "archive-file",
                                              "remove-export"]
    assert plan.actions[0].command == "npm uninstall left-pad"
    assert plan.actions[1].command == "mkdir -p _archive && mv 'src/my old.ts' _archive/"
    assert plan.files_removed == 1
    assert plan.dependencies_removed == 1
    assert plan.to_dict()["estimated_impact"] == {"files_removed": 1, "dependencies_removed": 1}
    assert "src/maybe.ts" not in plan.script


def test_cleanup_script_layout(tmp_path: Path) -> None:
    findings = [
        _finding("unused-dependency", "lodash", 85, "Unused dependency: lodash\nsecond line"),
        _finding("unused-export", "src/utils.ts:10", 85),
    ]
    plan = generate_cleanup_plan(_report(tmp_path, findings))
    script = generate_cleanup_script(plan.actions, "then")
    lines = script.splitlines()
    assert lines[0] == "#!/bin/bash"
    assert "# Generated: then" in lines
    assert "set -e" in lines
    assert "# REMOVE UNUSED DEPENDENCIES" in lines
    assert "# second line" in lines
    assert "ARCHIVE UNUSED FILES" not in script
    assert "# MANUAL: REMOVE UNUSED EXPORTS" in lines
    assert "# src/utils.ts:10" in lines
    assert script.endswith('echo "Cleanup complete!"\n')


def test_save_cleanup_script(tmp_path: Path) -> None:
    plan = generate_cleanup_plan(_report(tmp_path, [_finding("unused-file", "src/a.ts", 95)]))
    path = save_cleanup_script(plan)
    assert path == tmp_path / ".validation" / "cleanup.sh"
    assert path.read_text() == plan.script
    assert os.stat(path).st_mode & stat.S_IXUSR
