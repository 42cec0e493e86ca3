"""Turn validator stdout/stderr into ValidationIssue lists.

Structured output is preferred: a JSON array, ESLint's `--format json`
file results, or an object carrying `results`/`errors`/`issues`.
Anything else is scanned line by line against known text formats.
"""

from __future__ import annotations

import json
import re
from typing import Any

from .models import ValidationIssue

# ---------------------------------------------------------------------------
# Severity
# ---------------------------------------------------------------------------

_SEVERITY_ALIASES = {
    "critical": "critical",
    "fatal": "critical",
    "high": "high",
    "error": "high",
    "medium": "medium",
    "warning": "medium",
    "warn": "medium",
    "low": "low",
    "minor": "low",
}

# ESLint message severity: 2 = error, 1 = warning
_NUMERIC_SEVERITY = {2: "high", 1: "medium"}


def normalize_severity(value: Any) -> str:
    """Map a tool's severity (string or ESLint number) to our scale."""
    if isinstance(value, int) and not isinstance(value, bool):
        return _NUMERIC_SEVERITY.get(value, "info")
    return _SEVERITY_ALIASES.get(str(value).strip().lower(), "info")


# ---------------------------------------------------------------------------
# Structured (JSON) output
# ---------------------------------------------------------------------------


def _first(item: dict[str, Any], *keys: str) -> Any:
    for key in keys:
        value = item.get(key)
        if value not in (None, ""):
            return value
    return None


def _as_int(value: Any) -> int | None:
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    return None


def normalize_issue(validator: str, item: Any) -> ValidationIssue:
    """Build a ValidationIssue from one JSON item of arbitrary shape."""
    if not isinstance(item, dict):
        item = {"message": str(item)}

    severity = _first(item, "severity", "level")
    code = _first(item, "code", "ruleId", "rule")
    message = _first(item, "message", "text", "description")
    file = _first(item, "file", "filePath")
    suggestion = _first(item, "suggestion", "fix")
    if isinstance(suggestion, dict):
        # ESLint fix objects are {range, text}
        suggestion = suggestion.get("text") or json.dumps(suggestion)

    return ValidationIssue(
        severity=normalize_severity(severity if severity is not None else "medium"),
        code=str(code) if code is not None else f"{validator.upper()}_ISSUE",
        message=str(message) if message is not None else "Unknown issue",
        file=str(file) if file is not None else None,
        line=_as_int(item.get("line")),
        column=_as_int(item.get("column")),
        suggestion=str(suggestion) if suggestion is not None else None,
    )


def _expand_items(validator: str, items: list[Any]) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for item in items:
        # ESLint file result: {"filePath": ..., "messages": [...]}
        if isinstance(item, dict) and isinstance(item.get("messages"), list):
            for msg in item["messages"]:
                if isinstance(msg, dict):
                    msg = {"filePath": item.get("filePath"), **msg}
                issues.append(normalize_issue(validator, msg))
            continue
        issues.append(normalize_issue(validator, item))
    return issues


def _parse_json(validator: str, output: str) -> list[ValidationIssue] | None:
    """Return issues from JSON output, or None if it isn't usable JSON."""
    try:
        data = json.loads(output)
    except (json.JSONDecodeError, ValueError):
        return None
    if isinstance(data, list):
        return _expand_items(validator, data)
    if isinstance(data, dict):
        for key in ("results", "errors", "issues"):
            items = data.get(key)
            if items is not None:
                return _expand_items(validator, items if isinstance(items, list) else [items])
    return None


# ---------------------------------------------------------------------------
# Text output
# ---------------------------------------------------------------------------

# Checked in order; the first pattern that matches a line wins.
_TS_RE = re.compile(
    r"^(?:(?P<file>[^\s(]+)\((?P<line>\d+),(?P<column>\d+)\):\s+)?"
    r".*?error\s+TS\d+:\s+(?P<message>.+)$",
    re.IGNORECASE,
)
_COMPILER_RE = re.compile(
    r"(?P<file>\S+):(?P<line>\d+):(?P<column>\d+):\s+(?P<kind>error|warning):\s+(?P<message>.+)",
    re.IGNORECASE,
)
_CROSS_RE = re.compile(r"✖\s+(?P<message>.+)")
_ERROR_RE = re.compile(r"ERROR:\s+(?P<message>.+)", re.IGNORECASE)

_TEXT_PATTERNS = (_TS_RE, _COMPILER_RE, _CROSS_RE, _ERROR_RE)


def _issue_from_match(validator: str, m: re.Match[str]) -> ValidationIssue:
    groups = m.groupdict()
    kind = (groups.get("kind") or "").lower()
    line = groups.get("line")
    column = groups.get("column")
    return ValidationIssue(
        severity="medium" if kind == "warning" else "high",
        code=f"{validator.upper()}_ERROR",
        message=groups["message"].strip(),
        file=groups.get("file") or None,
        line=int(line) if line else None,
        column=int(column) if column else None,
    )


def _parse_text(validator: str, output: str) -> list[ValidationIssue]:
    issues: list[ValidationIssue] = []
    for raw_line in output.splitlines():
        line = raw_line.strip()
        if not line:
            continue
        for pattern in _TEXT_PATTERNS:
            m = pattern.search(line)
            if m:
                issues.append(_issue_from_match(validator, m))
                break
    return issues


def parse_validator_output(validator: str, stdout: str, stderr: str) -> list[ValidationIssue]:
    """Parse a validator's combined output into issues.

    Args:
        validator: Validator name, used for fallback issue codes.
        stdout: Captured standard output.
        stderr: Captured standard error.
    """
    output = (stdout or "") + (stderr or "")
    structured = _parse_json(validator, output)
    if structured is not None:
        return structured
    return _parse_text(validator, output)
