"""CLI entry point for the codebase audit and SDK guardrails.

Usage:
  python -m validation_audit audit                     # Console report
  python -m validation_audit audit --json              # JSON report on stdout
  python -m validation_audit audit --save              # Also write JSON + markdown reports
  python -m validation_audit cleanup-plan [--json]     # Write .validation/cleanup.sh
  python -m validation_audit guardrails check [--format text|json|markdown] [--strict]
  python -m validation_audit guardrails template [--name NAME] [--force]

Global options: --project PATH (default: cwd), --config PATH, -v.
"""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path

from validation_kit import VALIDATION_DIR
from validation_kit.config import load_config

from validation_audit import __version__
from validation_audit.engine import run_audit
from validation_audit.guardrails import (
    GUARDRAIL_SEVERITIES,
    GuardrailsOptions,
    check_guardrails,
    create_template,
    render_guardrails,
)
from validation_audit.models import AuditConfig
from validation_audit.report import (
    generate_cleanup_plan,
    render_console_report,
    save_cleanup_script,
    save_json_report,
    save_markdown_report,
)

log = logging.getLogger(__name__)

TEMPLATE_FILENAME = "sdk-guardrails.json"


def _project(args: argparse.Namespace) -> Path:
    return Path(args.project or ".").resolve()


def _audit_config(project: Path, config_path: str | None) -> AuditConfig:
    return AuditConfig.from_dict(load_config(project, config_path).audit)


# ---------------------------------------------------------------------------
# audit / cleanup-plan
# ---------------------------------------------------------------------------


def cmd_audit(args: argparse.Namespace) -> int:
    """Execute validation-audit audit."""
    project = _project(args)
    if not project.is_dir():
        print(f"Project directory not found: {project}", file=sys.stderr)
        return 1

    config = _audit_config(project, args.config)
    if not config.enabled:
        print("Codebase audit is disabled in config.", file=sys.stderr)
        return 0

    report = run_audit(project, config)

    if args.save:
        json_path = save_json_report(report)
        md_path = save_markdown_report(report)
        log.info("Reports saved: %s, %s", json_path, md_path)

    if args.json:
        print(json.dumps(report.to_dict()))
    else:
        print(render_console_report(report), file=sys.stderr)
    return 0


def cmd_cleanup_plan(args: argparse.Namespace) -> int:
    """Execute validation-audit cleanup-plan -- script for high-confidence findings."""
    project = _project(args)
    if not project.is_dir():
        print(f"Project directory not found: {project}", file=sys.stderr)
        return 1

    report = run_audit(project, _audit_config(project, args.config))
    plan = generate_cleanup_plan(report)
    script_path = save_cleanup_script(plan)

    if args.json:
        print(json.dumps(plan.to_dict()))
        return 0

    if not plan.actions:
        print("No high-confidence findings; nothing to clean up.", file=sys.stderr)
    else:
        print(f"Cleanup plan: {len(plan.actions)} actions "
              f"({plan.dependencies_removed} dependencies, {plan.files_removed} files)",
              file=sys.stderr)
        for action in plan.actions:
            print(f"  {action.type:<18} {action.target}", file=sys.stderr)
    print(f"\nReview {script_path} before running it.", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# guardrails
# ---------------------------------------------------------------------------


def cmd_guardrails_check(args: argparse.Namespace) -> int:
    """Execute validation-audit guardrails check."""
    project = _project(args)
    options = GuardrailsOptions(
        config_path=args.guardrails,
        target_paths=list(args.path or []),
        severity_threshold=args.severity,
        fail_on_warning=args.fail_on_warning,
        strict=args.strict,
    )
    if args.exclude:
        options.exclude_paths.extend(args.exclude)

    try:
        result = check_guardrails(project, options)
    except (FileNotFoundError, ValueError) as exc:
        print(f"Error: {exc}", file=sys.stderr)
        return 1

    rendered = render_guardrails(result, args.format)
    if args.format == "json":
        print(rendered)
    else:
        print(rendered, file=sys.stderr)

    if result.status in ("failed", "error"):
        return 1
    if result.status == "warning" and args.fail_on_warning:
        return 1
    return 0


def cmd_guardrails_template(args: argparse.Namespace) -> int:
    """Execute validation-audit guardrails template."""
    project = _project(args)
    out = Path(args.output) if args.output else project / VALIDATION_DIR / TEMPLATE_FILENAME
    if out.exists() and not args.force:
        print(f"{out} already exists. Use --force to overwrite.", file=sys.stderr)
        return 1

    template = create_template(args.name or project.name)
    out.parent.mkdir(parents=True, exist_ok=True)
    out.write_text(json.dumps(template.to_dict(), indent=2) + "\n")
    print(f"Created {out}", file=sys.stderr)
    print("Replace the example schema with your verified data structures.", file=sys.stderr)
    return 0


# ---------------------------------------------------------------------------
# Entry point
# ---------------------------------------------------------------------------


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(
        prog="validation-audit",
        description="Evidence-based codebase audit and SDK guardrails",
    )
    parser.add_argument("--version", action="version", version=f"%(prog)s {__version__}")
    parser.add_argument("--project", help="Project root (default: current directory)")
    parser.add_argument("--config", help="Config file (default: <project>/.validation/config.json)")
    parser.add_argument("--verbose", "-v", action="store_true", help="Enable debug logging")

    sub = parser.add_subparsers(dest="command")

    # audit
    audit_parser = sub.add_parser("audit", help="Find dead code and bloat, with evidence")
    audit_parser.add_argument("--json", action="store_true", help="JSON output")
    audit_parser.add_argument("--save", "--markdown", dest="save", action="store_true",
                              help="Save JSON and markdown reports to .validation/reports/")

    # cleanup-plan
    plan_parser = sub.add_parser("cleanup-plan",
                                 help="Write a cleanup script for high-confidence findings")
    plan_parser.add_argument("--json", action="store_true", help="JSON output")

    # guardrails
    guard_parser = sub.add_parser("guardrails", help="SDK guardrails (verified schemas)")
    guard_sub = guard_parser.add_subparsers(dest="guardrails_command")

    check_parser = guard_sub.add_parser("check", help="Check code against verified schemas")
    check_parser.add_argument("--guardrails", help="Guardrails config (.json or .md)")
    check_parser.add_argument("--path", action="append",
                              help="File or directory to scan (repeatable; default: project)")
    check_parser.add_argument("--exclude", action="append",
                              help="Extra path fragment to skip (repeatable)")
    check_parser.add_argument("--severity", choices=GUARDRAIL_SEVERITIES,
                              help="Only report violations at or above this severity")
    check_parser.add_argument("--format", "-o", choices=("text", "json", "markdown"),
                              default="text", help="Output format (default: text)")
    check_parser.add_argument("--strict", action="store_true",
                              help="Fail on any violation")
    check_parser.add_argument("--fail-on-warning", action="store_true",
                              help="Treat warnings as failures")

    template_parser = guard_sub.add_parser("template", help="Write a starter guardrails config")
    template_parser.add_argument("--name", help="Project name (default: directory name)")
    template_parser.add_argument("--output", help=f"Output file (default: "
                                                  f"{VALIDATION_DIR}/{TEMPLATE_FILENAME})")
    template_parser.add_argument("--force", "-f", action="store_true",
                                 help="Overwrite an existing file")

    return parser


def main(argv: list[str] | None = None) -> int:
    """CLI entry point for the codebase audit."""
    parser = build_parser()
    args = parser.parse_args(argv)

    logging.basicConfig(
        level=logging.DEBUG if args.verbose else logging.INFO,
        format="%(message)s",
        stream=sys.stderr,
    )

    if args.command == "audit":
        return cmd_audit(args)
    if args.command == "cleanup-plan":
        return cmd_cleanup_plan(args)
    if args.command == "guardrails":
        if args.guardrails_command == "check":
            return cmd_guardrails_check(args)
        if args.guardrails_command == "template":
            return cmd_guardrails_template(args)
    parser.print_help()
    return 1


if __name__ == "__main__":
    sys.exit(main())
