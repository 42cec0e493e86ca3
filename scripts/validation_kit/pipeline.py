"""Layer orchestration for `validate` -- usable without the CLI.

  code layer:       run validators -> record in learning.db -> save report
                    -> auto-fix when asked and the run failed
  skeptical layer:  architecture critique -> save report
  always:           context cleanup when the thresholds are exceeded

Exit code is 1 when validation failed or the skeptical layer says
stop-and-fix, else 0.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass, field
from pathlib import Path

from . import VALIDATION_DIR
from .config import KitConfig
from .context import context_metrics, run_cleanup, should_cleanup
from .db import init_db
from .engine import run_validation
from .learning import apply_auto_fixes, record_results
from .models import CleanupReport, SkepticalReport, ValidationReport
from .reports import save_report
from .skeptical import run_skeptical_analysis

log = logging.getLogger(__name__)

LAYERS = ("code", "skeptical", "all")


@dataclass
class PipelineOutcome:
    validation: ValidationReport | None = None
    skeptical: SkepticalReport | None = None
    cleanup: CleanupReport | None = None
    fixes_applied: int = 0
    fixes_succeeded: int = 0
    saved: list[Path] = field(default_factory=list)
    exit_code: int = 0


def validate_project(project_path: str | Path, config: KitConfig, *,
                     validators: list[str] | None = None,
                     layer: str = "code",
                     fix: bool = False,
                     include_disabled: bool = False,
                     sparse: bool = False,
                     estimated_qps: int | None = None,
                     estimated_users: int | None = None) -> PipelineOutcome:
    """Run the requested layers against *project_path*.

    Args:
        project_path: Project root.
        config: Effective configuration (see config.load_config).
        validators: Restrict layer 1 to these validator names.
        layer: "code", "skeptical" or "all".
        fix: Apply auto-fixes after a failed code validation.
        include_disabled: Run validators disabled in config.
        sparse: Use sparse debate for layer 1.
        estimated_qps: Expected load for layer 2 (default from config).
        estimated_users: Expected users for layer 2 (default from config).
    """
    if layer not in LAYERS:
        raise ValueError(f"Unknown layer {layer!r}; expected one of {', '.join(LAYERS)}")

    project = Path(project_path)
    vdir = project / VALIDATION_DIR
    outcome = PipelineOutcome()

    if layer in ("code", "all"):
        report = run_validation(project, config, validators,
                                include_disabled=include_disabled, sparse=sparse)
        outcome.validation = report
        conn = init_db(vdir)
        try:
            record_results(conn, report.results)
            if report.status == "failed":
                outcome.exit_code = 1
            outcome.saved.append(save_report(project, "validation", report.to_dict()))
            if fix and report.status == "failed":
                log.info("Attempting auto-fixes...")
                outcome.fixes_applied, outcome.fixes_succeeded = apply_auto_fixes(
                    conn, project, config.validators)
        finally:
            conn.close()

    if layer in ("skeptical", "all"):
        qps = estimated_qps if estimated_qps is not None else config.skeptical["estimated_qps"]
        users = (estimated_users if estimated_users is not None
                 else config.skeptical["estimated_users"])
        skeptical = run_skeptical_analysis(project, qps, users)
        outcome.skeptical = skeptical
        if skeptical.assessment.recommendation == "stop-and-fix":
            outcome.exit_code = 1
        outcome.saved.append(save_report(project, "skeptical", skeptical.to_dict()))

    if should_cleanup(context_metrics(vdir), config.cleanup):
        log.warning("Context size threshold exceeded. Running cleanup...")
        outcome.cleanup = run_cleanup(project, config.cleanup)

    return outcome
