"""Tests for validation_kit.models serialisation helpers."""

# pylint: disable=missing-class-docstring,missing-function-docstring

from __future__ import annotations

from validation_kit.models import (
    ConsensusIssue,
    FailurePattern,
    FailureRecord,
    GrowthPhase,
    OptimizationMetrics,
    ScaleThreshold,
    ValidationIssue,
    ValidationReport,
    ValidationResult,
    ValidatorConfig,
    utc_now,
)


class TestUtcNow:
    def test_iso_format_with_milliseconds(self) -> None:
        ts = utc_now()
        assert ts.endswith("+00:00")
        # 2024-01-01T10:00:00.123+00:00
        assert len(ts.split("T")[1].split("+")[0]) == 12


class TestValidatorConfig:
    def test_from_dict_defaults(self) -> None:
        cfg = ValidatorConfig.from_dict({"name": "x", "weight": 1, "command": "true"})
        assert cfg.timeout == 120.0
        assert cfg.enabled is True
        assert cfg.required is False
        assert cfg.fix_command is None

    def test_round_trip(self) -> None:
        cfg = ValidatorConfig("eslint", 0.95, "npx eslint .", 60.0, True, False, "npx eslint --fix")
        assert ValidatorConfig.from_dict(cfg.to_dict()) == cfg


class TestValidationIssue:
    def test_to_dict_drops_none(self) -> None:
        issue = ValidationIssue(severity="high", code="TS2322", message="bad")
        assert issue.to_dict() == {"severity": "high", "code": "TS2322", "message": "bad"}

    def test_consensus_key_includes_location(self) -> None:
        a = ValidationIssue("high", "E1", "msg", file="a.ts", line=3)
        b = ValidationIssue("low", "E1", "msg", file="a.ts", line=3)
        c = ValidationIssue("high", "E1", "msg", file="a.ts", line=4)
        assert a.consensus_key() == b.consensus_key()
        assert a.consensus_key() != c.consensus_key()

    def test_consensus_key_without_location(self) -> None:
        assert ValidationIssue("high", "E1", "msg").consensus_key() == "::E1:msg"


class TestValidationResult:
    def test_round_trip_with_issues(self) -> None:
        result = ValidationResult(
            validator="eslint", status="failed", weight=0.95, duration_ms=12,
            issues=[ValidationIssue("high", "no-unused-vars", "x unused", "a.ts", 1, 2)],
            metadata={"code": 1},
        )
        restored = ValidationResult.from_dict(result.to_dict())
        assert restored == result


class TestValidationReport:
    def test_flagged_issues_filters(self) -> None:
        flagged = ConsensusIssue(ValidationIssue("high", "A", "a"), ["x", "y"], 1.9, True)
        quiet = ConsensusIssue(ValidationIssue("low", "B", "b"), ["x"], 0.9, False)
        report = ValidationReport(timestamp="t", duration_ms=1, status="failed", score=50,
                                  consensus_issues=[flagged, quiet])
        assert report.flagged_issues() == [flagged]

    def test_optimization_only_when_present(self) -> None:
        report = ValidationReport(timestamp="t", duration_ms=1, status="passed", score=100)
        assert "optimization" not in report.to_dict()
        report.optimization = OptimizationMetrics(validators_skipped=2, escalated=False)
        assert report.to_dict()["optimization"]["validators_skipped"] == 2


class TestSkepticalModels:
    def test_scale_threshold_drops_none(self) -> None:
        assert ScaleThreshold(qps=500).to_dict() == {"qps": 500}

    def test_growth_phase_ranges_serialise_as_lists(self) -> None:
        phase = GrowthPhase(1, "MVP", (0, 1000), (0, 100))
        d = phase.to_dict()
        assert d["user_range"] == [0, 1000]
        assert d["qps_range"] == [0, 100]


class TestLearningModels:
    def test_failure_record_bool_stored_as_int(self) -> None:
        rec = FailureRecord(id="1", timestamp="t", validator="v", error_code="E",
                            error_message="m", fix_succeeded=True)
        assert rec.to_dict()["fix_succeeded"] == 1
        assert FailureRecord.from_dict(rec.to_dict()).fix_succeeded is True

    def test_failure_record_unfixed(self) -> None:
        rec = FailureRecord.from_dict({"id": "1", "timestamp": "t", "validator": "v"})
        assert rec.fix_succeeded is None
        assert rec.confidence == 0.3

    def test_pattern_auto_fix_flag(self) -> None:
        pattern = FailurePattern("TS2322:x", "desc", auto_fix_ready=True)
        d = pattern.to_dict()
        assert d["auto_fix_ready"] == 1
        assert FailurePattern.from_dict(d).auto_fix_ready is True
