"""Wrappers around the static-analysis tools behind the audit.

Each tool has a pure parser (tool output -> Candidate list) and a runner
that invokes the tool through npx and feeds the parser. Runners raise
ToolFailure when the tool could not produce usable output; the engine
records that as an AuditError and carries on with the other tools.

Base confidences reflect how often each tool is right in practice:
  madge 90, depcheck 85 (devDependencies 80), jscpd 85, ts-prune 75,
  unimported 70, stale files 40.
"""

from __future__ import annotations

import json
import logging
import os
import re
import shlex
import subprocess
import tempfile
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from validation_kit.models import utc_now
from validation_kit.runner import ensure_tool, run_command

from .models import Evidence

log = logging.getLogger(__name__)

TOOL_TIMEOUT = 300.0  # seconds

SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")

_TS_PRUNE_RE = re.compile(r"^(?P<file>.+):(?P<line>\d+)\s+-\s+(?P<name>.+)$")
_USED_IN_MODULE = "(used in module)"


class ToolFailure(RuntimeError):
    """A tool ran but produced nothing we can use."""


@dataclass
class Candidate:
    """A finding before keep-list and confidence adjustments."""

    type: str
    target: str
    evidence: list[Evidence]
    recommendation: str
    base_confidence: int
    metadata: dict[str, Any] = field(default_factory=dict)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def parse_depcheck(output: str, timestamp: str, exit_code: int | None = None) -> list[Candidate]:
    """depcheck --json: {"dependencies": [...], "devDependencies": [...], ...}."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise ToolFailure(f"depcheck produced invalid JSON: {exc}") from exc
    if not isinstance(data, dict):
        raise ToolFailure("depcheck produced unexpected JSON")

    candidates: list[Candidate] = []
    for section, label, confidence in (
        ("dependencies", "dependency", 85),
        ("devDependencies", "devDependency", 80),
    ):
        deps = data.get(section) or []
        if not isinstance(deps, list):
            raise ToolFailure(f"depcheck {section} is not a list")
        for dep in deps:
            if not isinstance(dep, str):
                continue
            candidates.append(Candidate(
                type="unused-dependency",
                target=dep,
                evidence=[Evidence("depcheck", f"Unused {label}: {dep}", timestamp, exit_code)],
                recommendation=f'Remove "{dep}" from {section} in package.json',
                base_confidence=confidence,
                metadata={"section": section},
            ))
    return candidates


def parse_ts_prune(output: str, timestamp: str) -> list[Candidate]:
    """ts-prune lines: `path/to/file.ts:10 - exportName`.

    Exports marked "(used in module)" are referenced locally and skipped.
    """
    candidates: list[Candidate] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line or _USED_IN_MODULE in line:
            continue
        m = _TS_PRUNE_RE.match(line)
        if not m:
            continue
        file, line_no, name = m.group("file"), int(m.group("line")), m.group("name").strip()
        candidates.append(Candidate(
            type="unused-export",
            target=f"{file}:{line_no}",
            evidence=[Evidence("ts-prune", line, timestamp, 0)],
            recommendation=f'Remove unused export "{name}" from {file}',
            base_confidence=75,
            metadata={"file": file, "export_name": name, "line_number": line_no},
        ))
    return candidates


def parse_unimported(output: str, timestamp: str) -> list[Candidate]:
    """unimported --show-unused-files: one path per line (plus decoration)."""
    candidates: list[Candidate] = []
    for raw_line in output.splitlines():
        # Table rows look like "  1 | src/old.ts"
        path = raw_line.split("|")[-1].strip()
        if not path or path.startswith("{") or not path.endswith(SOURCE_EXTENSIONS):
            continue
        candidates.append(Candidate(
            type="unused-file",
            target=path,
            evidence=[Evidence("unimported", f"Unreachable file: {path}", timestamp, 0)],
            recommendation=f'Archive or remove "{path}", not imported by any entry point',
            base_confidence=70,
        ))
    return candidates


def parse_jscpd(report: Any, timestamp: str) -> list[Candidate]:
    """jscpd JSON report: {"duplicates": [{firstFile, secondFile, lines, tokens}]}."""
    if not isinstance(report, dict):
        raise ToolFailure("jscpd report is not an object")
    duplicates = report.get("duplicates") or []
    if not isinstance(duplicates, list):
        raise ToolFailure("jscpd report duplicates is not a list")
    candidates: list[Candidate] = []
    for dup in duplicates:
        if not isinstance(dup, dict):
            continue
        first = dup.get("firstFile") if isinstance(dup.get("firstFile"), dict) else {}
        second = dup.get("secondFile") if isinstance(dup.get("secondFile"), dict) else {}
        lines, tokens = dup.get("lines", 0), dup.get("tokens", 0)
        target = f"{first.get('name')} <-> {second.get('name')}"
        output = (
            f"Duplicate code block: {lines} lines, {tokens} tokens\n"
            f"File 1: {first.get('name')} (lines {first.get('start')}-{first.get('end')})\n"
            f"File 2: {second.get('name')} (lines {second.get('start')}-{second.get('end')})"
        )
        candidates.append(Candidate(
            type="duplicate-code",
            target=target,
            evidence=[Evidence("jscpd", output, timestamp, 0)],
            recommendation="Refactor duplicate code into shared function/module",
            base_confidence=85,
            metadata={"lines": lines, "tokens": tokens,
                      "first_file": first, "second_file": second},
        ))
    return candidates


def parse_madge(output: str, timestamp: str) -> list[Candidate]:
    """madge --circular --json: a list of cycles, each a list of module paths."""
    try:
        data = json.loads(output)
    except json.JSONDecodeError as exc:
        raise ToolFailure(f"madge produced invalid JSON: {exc}") from exc
    cycles = data.get("circular", []) if isinstance(data, dict) else data
    if not isinstance(cycles, list):
        raise ToolFailure("madge output is not a list of cycles")
    candidates: list[Candidate] = []
    for cycle in cycles:
        if not isinstance(cycle, list):
            raise ToolFailure(f"madge cycle is not a list: {cycle!r}")
        if not cycle:
            continue
        cycle = [str(module) for module in cycle]
        chain = " -> ".join(cycle)
        candidates.append(Candidate(
            type="circular-dependency",
            target=chain,
            evidence=[Evidence("madge", f"Circular dependency detected:\n{chain} -> {cycle[0]}",
                               timestamp, 0)],
            recommendation=f"Break circular dependency cycle: {chain}",
            base_confidence=90,
            metadata={"cycle": list(cycle)},
        ))
    return candidates


def find_stale_files(project_path: str | Path, stale_days: int,
                     now: float | None = None) -> list[Candidate]:
    """Source files under src/ not modified for *stale_days* days."""
    project = Path(project_path)
    src = project / "src"
    if not src.is_dir():
        return []
    now = time.time() if now is None else now
    cutoff = now - stale_days * 86400
    timestamp = utc_now()
    candidates: list[Candidate] = []
    for root, dirs, files in os.walk(src):
        dirs[:] = sorted(d for d in dirs if d != "node_modules")
        for name in sorted(files):
            if not name.endswith(SOURCE_EXTENSIONS):
                continue
            path = Path(root) / name
            if path.stat().st_mtime >= cutoff:
                continue
            rel = path.relative_to(project).as_posix()
            candidates.append(Candidate(
                type="stale-file",
                target=rel,
                evidence=[Evidence("filesystem",
                                   f"File not modified in {stale_days}+ days: {rel}", timestamp)],
                recommendation=f'Review stale file "{rel}", not modified in {stale_days}+ days',
                base_confidence=40,
            ))
    return candidates


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------


def _invoke(tool: str, command: str, cwd: Path) -> subprocess.CompletedProcess[str]:
    if not ensure_tool(tool, cwd):
        raise ToolFailure(f"{tool} is not available and could not be installed")
    try:
        return run_command(command, cwd=cwd, timeout=TOOL_TIMEOUT)
    except subprocess.TimeoutExpired as exc:
        raise ToolFailure(f"{tool} timed out after {TOOL_TIMEOUT:g}s") from exc
    except OSError as exc:
        raise ToolFailure(f"{tool} failed to start: {exc}") from exc


def run_depcheck(project: Path) -> list[Candidate]:
    # depcheck exits 255 when it finds unused dependencies
    proc = _invoke("depcheck", f"npx depcheck {shlex.quote(str(project))} --json", project)
    if not proc.stdout.strip():
        raise ToolFailure(f"depcheck exited {proc.returncode}: {proc.stderr.strip()[:200]}")
    return parse_depcheck(proc.stdout, utc_now(), proc.returncode)


def run_ts_prune(project: Path) -> list[Candidate]:
    tsconfig = project / "tsconfig.json"
    proc = _invoke("ts-prune", f"npx ts-prune --project {shlex.quote(str(tsconfig))}", project)
    return parse_ts_prune(proc.stdout, utc_now())


def run_unimported(project: Path) -> list[Candidate]:
    proc = _invoke("unimported", "npx unimported --show-unused-files --no-cache", project)
    return parse_unimported(proc.stdout, utc_now())


def run_jscpd(project: Path, min_lines: int = 10, min_tokens: int = 50) -> list[Candidate]:
    """jscpd writes its JSON report to a file, not stdout."""
    with tempfile.TemporaryDirectory(prefix="jscpd-") as out_dir:
        command = (
            f"npx jscpd {shlex.quote(str(project / 'src'))} --reporters json"
            f" --output {shlex.quote(out_dir)}"
            f" --min-lines {int(min_lines)} --min-tokens {int(min_tokens)} --silent"
        )
        proc = _invoke("jscpd", command, project)
        report_path = Path(out_dir) / "jscpd-report.json"
        if not report_path.exists():
            raise ToolFailure(f"jscpd exited {proc.returncode} without writing a report")
        try:
            report = json.loads(report_path.read_text())
        except (json.JSONDecodeError, UnicodeDecodeError) as exc:
            raise ToolFailure(f"jscpd report is invalid JSON: {exc}") from exc
    return parse_jscpd(report, utc_now())


def run_madge(project: Path) -> list[Candidate]:
    proc = _invoke("madge", f"npx madge --circular --json {shlex.quote(str(project / 'src'))}",
                   project)
    if not proc.stdout.strip():
        raise ToolFailure(f"madge exited {proc.returncode}: {proc.stderr.strip()[:200]}")
    return parse_madge(proc.stdout, utc_now())
