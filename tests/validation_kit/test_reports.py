"""Tests for validation_kit.reports -- persistence and renderers."""

# pylint: disable=missing-class-docstring,missing-function-docstring

from __future__ import annotations

import json
import re
from pathlib import Path

from validation_kit.models import (
    CleanupReport,
    ConsensusIssue,
    ContextMetrics,
    FailurePattern,
    LearningMetrics,
    LearningReport,
    ValidationIssue,
    ValidationReport,
    ValidationResult,
    ValidationSummary,
)
from validation_kit.reports import (
    format_bytes,
    render_cleanup_text,
    render_learning_text,
    render_skeptical_markdown,
    render_skeptical_text,
    render_validation_markdown,
    render_validation_text,
    save_report,
)
from validation_kit.skeptical import run_skeptical_analysis


def _validation_report() -> ValidationReport:
    issue = ValidationIssue("critical", "ZOD001", "schema mismatch", file="src/a.ts", line=7)
    return ValidationReport(
        timestamp="2024-01-01T10:00:00.000+00:00",
        duration_ms=1234,
        status="failed",
        score=42,
        results=[
            ValidationResult("zod_schema_validation", "failed", 0.99, 10, [issue]),
            ValidationResult("eslint", "passed", 0.92, 20),
        ],
        consensus_issues=[ConsensusIssue(issue, ["zod_schema_validation"], 0.99, True)],
        summary=ValidationSummary(total_validators=2, passed=1, failed=1,
                                  total_issues=1, critical_issues=1),
    )


class TestFormatBytes:
    def test_units(self) -> None:
        assert format_bytes(512) == "512 B"
        assert format_bytes(2048) == "2.0 KB"
        assert format_bytes(3 * 1024 * 1024) == "3.0 MB"


class TestSaveReport:
    def test_filename_and_content(self, tmp_path: Path) -> None:
        path = save_report(tmp_path, "validation", {"score": 90})
        assert path.parent == tmp_path / ".validation" / "reports"
        assert re.fullmatch(r"validation-\d{4}-\d\d-\d\dT\d\d-\d\d-\d\d-\d{3}Z\.json", path.name)
        assert json.loads(path.read_text()) == {"score": 90}


class TestValidationRenderers:
    def test_text(self) -> None:
        text = render_validation_text(_validation_report())
        assert "Status: FAILED" in text
        assert "Score:  42/100" in text
        assert "ZOD001 src/a.ts:7" in text

    def test_markdown(self) -> None:
        md = render_validation_markdown(_validation_report())
        assert md.startswith("# Validation Report")
        assert "| eslint | passed | 0.92 | 0 | 20ms |" in md
        assert "## Flagged Issues" in md


class TestSkepticalRenderers:
    def test_text_and_markdown(self, tmp_path: Path) -> None:
        report = run_skeptical_analysis(tmp_path)
        text = render_skeptical_text(report)
        assert "Recommendation: PROCEED-WITH-CAUTION" in text
        md = render_skeptical_markdown(report)
        assert "## Growth Phases" in md
        assert "**Phase 1: MVP**" in md
        assert "## Blind Spots" in md


class TestLearningAndCleanupRenderers:
    def test_learning(self) -> None:
        report = LearningReport(
            timestamp="t",
            metrics=LearningMetrics(total_failures=4, unique_patterns=1,
                                    auto_fixes_applied=2, auto_fix_success_rate=0.5),
            patterns=[FailurePattern("p", "eslint: x unused", occurrences=4, fix_rate=0.5)],
            recommendations=["Consider addressing root causes."],
        )
        text = render_learning_text(report)
        assert "Auto-Fix Success:   50.0%" in text
        assert "eslint: x unused" in text
        assert "  - Consider addressing root causes." in text

    def test_cleanup(self) -> None:
        report = CleanupReport(timestamp="t",
                               before=ContextMetrics(total_size=4096, token_estimate=1024),
                               after=ContextMetrics(total_size=1024, token_estimate=256),
                               items_archived=3, space_saved=3072)
        text = render_cleanup_text(report)
        assert "Space Saved: 3.0 KB" in text
        assert "Items Archived:   3" in text
