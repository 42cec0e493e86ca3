"""CLI entry point for the validation kit.

Usage:
  python -m validation_kit validate                      # Layer 1 (code validators)
  python -m validation_kit validate --layer all --ci     # Layers 1+2, exit 1 on failure
  python -m validation_kit validate --validator typescript,eslint --output json
  python -m validation_kit validate --sparse             # Sparse debate: stop early on agreement
  python -m validation_kit learn [--fix] [--json]        # Learning report, optional auto-fix
  python -m validation_kit cleanup [--json]              # Prune/archive/compress .validation/
  python -m validation_kit metrics [--json]              # Context size, cleanup due?
  python -m validation_kit init [--force]                # Scaffold .validation/

Global options: --project PATH (default: cwd), --config PATH, -v.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from validation_kit import VALIDATION_DIR, __version__
from validation_kit.config import config_path_for, default_project_config, load_config
from validation_kit.context import context_metrics, run_cleanup, should_cleanup
from validation_kit.db import db_exists, init_db
from validation_kit.learning import apply_auto_fixes, generate_report
from validation_kit.pipeline import LAYERS, validate_project
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

log = logging.getLogger(__name__)

_GITIGNORE = """\
# Learning data and archives are local state (can be large)
learning.db
learning.db-wal
learning.db-shm
archive/
reports/
cleanup.sh

# Keep config and keep list
!config.json
!keep.json
"""

_NPM_SCRIPTS = {
    "validate": "validation-kit validate",
    "validate:all": "validation-kit validate --all",
    "validate:architecture": "validation-kit validate --layer skeptical",
    "validate:learn": "validation-kit learn",
    "validate:cleanup": "validation-kit cleanup",
}


def _project(args: argparse.Namespace) -> Path:
    return Path(args.project or ".").resolve()


def _split_names(value: str | None) -> list[str] | None:
    if not value:
        return None
    return [n.strip() for n in value.split(",") if n.strip()]


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


def cmd_validate(args: argparse.Namespace) -> int:
    """Execute validation-kit validate."""
    project = _project(args)
    if not project.is_dir():
        print(f"Project directory not found: {project}", file=sys.stderr)
        return 1

    config = load_config(project, args.config)
    log.info("Validation kit v%s -- project: %s", __version__, project)

    outcome = validate_project(
        project,
        config,
        validators=_split_names(args.validator),
        layer=args.layer,
        fix=args.fix,
        include_disabled=args.all,
        sparse=args.sparse,
        estimated_qps=args.qps,
        estimated_users=args.users,
    )

    if args.output == "json":
        payload = {
            "validation": outcome.validation.to_dict() if outcome.validation else None,
            "skeptical": outcome.skeptical.to_dict() if outcome.skeptical else None,
            "cleanup": outcome.cleanup.to_dict() if outcome.cleanup else None,
            "fixes": {"applied": outcome.fixes_applied, "succeeded": outcome.fixes_succeeded},
            "reports": [str(p) for p in outcome.saved],
            "exit_code": outcome.exit_code,
        }
        print(json.dumps(payload))
    else:
        markdown = args.output == "markdown"
        if outcome.validation is not None:
            render = render_validation_markdown if markdown else render_validation_text
            print(render(outcome.validation), file=sys.stderr)
        if args.fix and outcome.validation is not None and outcome.validation.status == "failed":
            print(f"Auto-fix: applied {outcome.fixes_applied}, "
                  f"succeeded {outcome.fixes_succeeded}", file=sys.stderr)
        if outcome.skeptical is not None:
            render = render_skeptical_markdown if markdown else render_skeptical_text
            print(render(outcome.skeptical), file=sys.stderr)
        if outcome.cleanup is not None:
            print(render_cleanup_text(outcome.cleanup), file=sys.stderr)

    return outcome.exit_code if args.ci else 0


# ---------------------------------------------------------------------------
# learn
# ---------------------------------------------------------------------------


def cmd_learn(args: argparse.Namespace) -> int:
    """Execute validation-kit learn -- learning report, optional auto-fix."""
    project = _project(args)
    vdir = project / VALIDATION_DIR
    if not db_exists(vdir):
        print("No learning data found. Run 'validation-kit validate' first.", file=sys.stderr)
        return 1

    config = load_config(project, args.config)
    conn = init_db(vdir)
    try:
        applied = succeeded = 0
        if args.fix:
            applied, succeeded = apply_auto_fixes(conn, project, config.validators)
        report = generate_report(conn)
    finally:
        conn.close()

    save_report(project, "learning", report.to_dict())

    if args.json:
        out = report.to_dict()
        if args.fix:
            out["fixes"] = {"applied": applied, "succeeded": succeeded}
        print(json.dumps(out))
    else:
        print(render_learning_text(report), file=sys.stderr)
        if args.fix:
            print(f"Auto-fix: applied {applied}, succeeded {succeeded}", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# cleanup / metrics
# ---------------------------------------------------------------------------


def cmd_cleanup(args: argparse.Namespace) -> int:
    """Execute validation-kit cleanup."""
    project = _project(args)
    config = load_config(project, args.config)
    report = run_cleanup(project, config.cleanup)
    if args.json:
        print(json.dumps(report.to_dict()))
    else:
        print(render_cleanup_text(report), file=sys.stderr)
    return 0


def cmd_metrics(args: argparse.Namespace) -> int:
    """Execute validation-kit metrics -- context size and cleanup status."""
    project = _project(args)
    config = load_config(project, args.config)
    metrics = context_metrics(project / VALIDATION_DIR)
    due = should_cleanup(metrics, config.cleanup)
    if args.json:
        print(json.dumps({**metrics.to_dict(), "cleanup_due": due}))
    else:
        print(f"Active:   {format_bytes(metrics.active_size)}", file=sys.stderr)
        print(f"Archived: {format_bytes(metrics.archived_size)}", file=sys.stderr)
        print(f"Total:    {format_bytes(metrics.total_size)} "
              f"(~{metrics.token_estimate:,} tokens)", file=sys.stderr)
        print(f"Cleanup due: {'yes' if due else 'no'}", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


def _add_npm_scripts(package_json: Path) -> int:
    """Add validate* scripts to package.json without touching existing ones."""
    try:
        data = json.loads(package_json.read_text())
    except (json.JSONDecodeError, OSError) as exc:
        log.warning("Could not update %s: %s", package_json, exc)
        return 0
    if not isinstance(data, dict):
        return 0
    scripts = data.setdefault("scripts", {})
    added = 0
    for name, command in _NPM_SCRIPTS.items():
        if name not in scripts:
            scripts[name] = command
            added += 1
    if added:
        package_json.write_text(json.dumps(data, indent=2) + "\n")
    return added


def cmd_init(args: argparse.Namespace) -> int:
    """Execute validation-kit init -- scaffold .validation/."""
    project = _project(args)
    vdir = project / VALIDATION_DIR
    config_path = config_path_for(project)

    if config_path.exists() and not args.force:
        print("Validation kit already initialized. Use --force to overwrite.", file=sys.stderr)
        return 0

    for d in (vdir, vdir / "reports", vdir / "archive"):
        if not d.exists():
            d.mkdir(parents=True)
            print(f"  Created {d.relative_to(project)}/", file=sys.stderr)

    config_path.write_text(json.dumps(
        {"version": __version__, **default_project_config()}, indent=2) + "\n")
    print(f"  Created {config_path.relative_to(project)}", file=sys.stderr)

    (vdir / ".gitignore").write_text(_GITIGNORE)
    print(f"  Created {VALIDATION_DIR}/.gitignore", file=sys.stderr)

    package_json = project / "package.json"
    if package_json.exists():
        added = _add_npm_scripts(package_json)
        if added:
            print(f"  Added {added} npm scripts to package.json", file=sys.stderr)

    print("\nInitialization complete. Next steps:", file=sys.stderr)
    print(f"  1. Review {VALIDATION_DIR}/config.json", file=sys.stderr)
    print("  2. Run 'validation-kit validate' to validate your project", file=sys.stderr)
    print("  3. Run 'validation-kit validate --layer skeptical' for architecture review",
          file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="validation-kit",
        description="Multi-layer validation over existing static-analysis tools",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--project", help="Project root (default: current directory)")
    parser.add_argument("--config", help="Config file (default: <project>/.validation/config.json)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command")

    # validate
    validate_parser = sub.add_parser("validate", help="Run validation on the project")
    validate_parser.add_argument("--all", "-a", action="store_true",
                                 help="Run all validators including disabled ones")
    validate_parser.add_argument("--validator",
                                 help="Comma-separated list of validators to run")
    validate_parser.add_argument("--layer", "-l", choices=LAYERS, default="code",
                                 help="Layer to run (default: code)")
    validate_parser.add_argument("--output", "-o", choices=("text", "json", "markdown"),
                                 default="text", help="Output format (default: text)")
    validate_parser.add_argument("--ci", action="store_true",
                                 help="Exit with an error code on failure")
    validate_parser.add_argument("--fix", action="store_true",
                                 help="Attempt auto-fixes after a failed run")
    validate_parser.add_argument("--sparse", action="store_true",
                                 help="Skip remaining validators when the initial ones agree")
    validate_parser.add_argument("--qps", type=int, default=None,
                                 help="Expected queries per second (skeptical layer)")
    validate_parser.add_argument("--users", type=int, default=None,
                                 help="Expected users (skeptical layer)")

    # learn
    learn_parser = sub.add_parser("learn", help="Learning report and auto-fixes")
    learn_parser.add_argument("--fix", action="store_true",
                              help="Apply auto-fixes for high-confidence patterns")
    learn_parser.add_argument("--json", action="store_true", help="JSON output")

    # cleanup
    cleanup_parser = sub.add_parser("cleanup", help="Prune, archive and compress .validation/")
    cleanup_parser.add_argument("--json", action="store_true", help="JSON output")

    # metrics
    metrics_parser = sub.add_parser("metrics", help="Context size and cleanup status")
    metrics_parser.add_argument("--json", action="store_true", help="JSON output")

    # init
    init_parser = sub.add_parser("init", help="Initialize the validation kit in a project")
    init_parser.add_argument("--force", "-f", action="store_true",
                             help="Overwrite existing configuration")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the validation kit."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )

    if args.command == "validate":
        return cmd_validate(args)
    if args.command == "learn":
        return cmd_learn(args)
    if args.command == "cleanup":
        return cmd_cleanup(args)
    if args.command == "metrics":
        return cmd_metrics(args)
    if args.command == "init":
        return cmd_init(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
