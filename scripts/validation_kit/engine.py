"""Layer 1 -- run the configured validators and build a ValidationReport.

Each validator is a shell command. Its exit code and parsed output decide
the result status:

  exit 0            -> passed, or failed if any critical/high issue
  exit != 0, output -> failed if any issue parsed, else error
  timeout / spawn   -> error with a single critical VALIDATOR_ERROR issue
"""

from __future__ import annotations

import logging
import subprocess
import time
from pathlib import Path

from .config import KitConfig
from .consensus import (
    apply_consensus,
    calculate_score,
    determine_status,
    summarize_results,
)
from .models import (
    OptimizationMetrics,
    ValidationIssue,
    ValidationReport,
    ValidationResult,
    ValidatorConfig,
    utc_now,
)
from .parsers import parse_validator_output
from .runner import run_command

log = logging.getLogger(__name__)

_METADATA_CHARS = 1000

_STATUS_ICON = {"passed": "ok", "failed": "FAIL", "error": "ERR", "skipped": "skip"}


# ---------------------------------------------------------------------------
# Selection
# ---------------------------------------------------------------------------


def select_validators(validators: dict[str, ValidatorConfig],
                      names: list[str] | None = None) -> list[tuple[str, ValidatorConfig]]:
    """Validators to run, in configuration order.

    An empty or missing *names* selects all of them. Unknown names are
    logged and ignored.
    """
    if not names:
        return list(validators.items())
    for name in names:
        if name not in validators:
            log.warning("Unknown validator: %s", name)
    return [(name, cfg) for name, cfg in validators.items() if name in names]


def _skipped(name: str, cfg: ValidatorConfig, reason: str, **extra: object) -> ValidationResult:
    return ValidationResult(
        validator=name,
        status="skipped",
        weight=cfg.weight,
        metadata={"reason": reason, **extra},
    )


# ---------------------------------------------------------------------------
# Single validator
# ---------------------------------------------------------------------------


def run_validator(name: str, cfg: ValidatorConfig,
                  project_path: str | Path) -> ValidationResult:
    """Run one validator command and classify its outcome."""
    start = time.monotonic()

    def _elapsed() -> int:
        return int((time.monotonic() - start) * 1000)

    try:
        proc = run_command(cfg.command, cwd=project_path, timeout=cfg.timeout)
    except subprocess.TimeoutExpired:
        message = f"Validator failed to execute: timed out after {cfg.timeout:g}s"
        return _error_result(name, cfg, message, _elapsed())
    except OSError as exc:
        return _error_result(name, cfg, f"Validator failed to execute: {exc}", _elapsed())

    stdout = proc.stdout or ""
    stderr = proc.stderr or ""
    issues = parse_validator_output(name, stdout, stderr)

    if proc.returncode == 0:
        blocking = any(i.severity in ("critical", "high") for i in issues)
        return ValidationResult(
            validator=name,
            status="failed" if blocking else "passed",
            weight=cfg.weight,
            duration_ms=_elapsed(),
            issues=issues,
            metadata={
                "stdout": stdout[:_METADATA_CHARS],
                "stderr": stderr[:_METADATA_CHARS],
            },
        )

    # Linters exit non-zero when they find something
    metadata = {
        "error": f"Command failed with exit code {proc.returncode}",
        "code": proc.returncode,
    }
    if stdout or stderr:
        return ValidationResult(
            validator=name,
            status="failed" if issues else "error",
            weight=cfg.weight,
            duration_ms=_elapsed(),
            issues=issues,
            metadata=metadata,
        )
    return _error_result(
        name, cfg,
        f"Validator failed to execute: exit code {proc.returncode} with no output",
        _elapsed(),
    )


def _error_result(name: str, cfg: ValidatorConfig, message: str,
                  duration_ms: int) -> ValidationResult:
    log.warning("%s: %s", name, message)
    return ValidationResult(
        validator=name,
        status="error",
        weight=cfg.weight,
        duration_ms=duration_ms,
        issues=[ValidationIssue(severity="critical", code="VALIDATOR_ERROR", message=message)],
        metadata={"error": message},
    )


# ---------------------------------------------------------------------------
# Full run
# ---------------------------------------------------------------------------


def _initial_round_agrees(results: list[ValidationResult], threshold: float) -> bool:
    """True when the initial validators agree strongly enough to stop early."""
    ran = [r for r in results if r.status != "skipped"]
    if not ran:
        return False
    if any(r.status in ("failed", "error") for r in ran):
        return False
    total = sum(r.weight for r in ran)
    passed = sum(r.weight for r in ran if r.status == "passed")
    return total > 0 and passed / total >= threshold


def run_validation(project_path: str | Path, config: KitConfig,
                   names: list[str] | None = None, *,
                   include_disabled: bool = False,
                   sparse: bool = False) -> ValidationReport:
    """Run validators against *project_path* and score the results.

    Args:
        project_path: Working directory for every validator command.
        config: Effective configuration.
        names: Restrict to these validators (default: all configured).
        include_disabled: Run validators even when disabled in config.
        sparse: Run the initial validators first and skip the rest when
            they agree (see OptimizationConfig).
    """
    start = time.monotonic()
    selected = select_validators(config.validators, names)
    opt = config.optimization
    sparse = sparse and opt.sparse_debate_enabled

    log.info("Running %d validators...", len(selected))

    results: dict[str, ValidationResult] = {}

    def _run(name: str, cfg: ValidatorConfig) -> None:
        if not cfg.enabled and not include_disabled:
            results[name] = _skipped(name, cfg, "Validator disabled")
        else:
            log.info("  ... %s", name)
            results[name] = run_validator(name, cfg, project_path)
        r = results[name]
        log.info("  [%s] %s (%dms)", _STATUS_ICON.get(r.status, r.status), name, r.duration_ms)

    optimization: OptimizationMetrics | None = None
    if sparse:
        initial = [(n, c) for n, c in selected if n in opt.initial_validators]
        rest = [(n, c) for n, c in selected if n not in opt.initial_validators]
        for name, cfg in initial:
            _run(name, cfg)
        escalate = not _initial_round_agrees(
            [results[n] for n, _ in initial], opt.escalation_threshold)
        if escalate:
            for name, cfg in rest:
                _run(name, cfg)
        else:
            log.info("Initial validators agreed; skipping %d validators", len(rest))
            for name, cfg in rest:
                results[name] = _skipped(
                    name, cfg, "Sparse debate: initial validators agreed",
                    sparse_skipped=True)
        optimization = OptimizationMetrics(
            validators_skipped=0 if escalate else len(rest),
            escalated=escalate,
        )
    else:
        for name, cfg in selected:
            _run(name, cfg)

    ordered = [results[name] for name, _ in selected]
    consensus_issues = apply_consensus(ordered, config.consensus)
    duration_ms = int((time.monotonic() - start) * 1000)
    if optimization is not None:
        optimization.execution_time_ms = duration_ms

    report = ValidationReport(
        timestamp=utc_now(),
        duration_ms=duration_ms,
        status=determine_status(ordered, consensus_issues, config.validators),
        score=calculate_score(ordered, consensus_issues),
        results=ordered,
        consensus_issues=consensus_issues,
        summary=summarize_results(ordered),
        optimization=optimization,
    )
    log.info("Validation %s: score %d/100 (%d/%d validators passed)",
             report.status, report.score, report.summary.passed,
             report.summary.total_validators)
    return report
