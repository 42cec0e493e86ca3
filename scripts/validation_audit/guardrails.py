"""SDK guardrails -- flag code that relies on unverified data structures.

A guardrails config lists the schemas (tables, API payloads) whose fields
have been verified against a real source, plus fields known NOT to exist,
deprecated endpoints, historical mistakes and free-form regex rules. Source
files are scanned line by line:

  - access to a known non-existent field       critical  unverified_field
  - historical mistake (case-insensitive text)  high      assumption
  - deprecated endpoint path                    medium    deprecated_endpoint
  - field not in the verified schema            medium    assumption
  - deprecated field                            low       deprecated_field
  - regex rule                                  per rule  (rule id recorded)

Score: 100 - (25*critical + 10*high + 5*medium + 2*low + 0.5*info), floor 0.

Config lookup order when no path is given:
  .validation/sdk-guardrails.json
  .validation/sdk-guardrails.md
  SDK_GUARDRAILS.md
"""

from __future__ import annotations

import json
import logging
import math
import os
import re
import time
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from validation_kit import VALIDATION_DIR
from validation_kit.models import utc_now

log = logging.getLogger(__name__)

VIOLATION_TYPES = (
    "unverified_field",
    "wrong_type",
    "deprecated_field",
    "missing_required",
    "invalid_structure",
    "hardcoded_value",
    "assumption",
    "deprecated_endpoint",
)

GUARDRAIL_SEVERITIES = ("critical", "high", "medium", "low", "info")

SEVERITY_PENALTY = {"critical": 25, "high": 10, "medium": 5, "low": 2, "info": 0.5}

SOURCE_EXTENSIONS = (".ts", ".tsx", ".js", ".jsx")
DEFAULT_EXCLUDES = ("node_modules", ".git", "dist", "build")

STANDARD_LOCATIONS = (
    f"{VALIDATION_DIR}/sdk-guardrails.json",
    f"{VALIDATION_DIR}/sdk-guardrails.md",
    "SDK_GUARDRAILS.md",
)

# Generic names that commonly hold a schema row
_ROW_ALIASES = ("row", "record", "data", "item")

# Array/object members that never refer to a schema field
_COMMON_PROPS = frozenset({
    "length", "map", "filter", "foreach", "find", "reduce", "push", "pop",
    "tostring", "valueof",
})


# ---------------------------------------------------------------------------
# Config
# ---------------------------------------------------------------------------


@dataclass
class GuardrailField:
    name: str
    type: str = "unknown"
    required: bool = False
    nullable: bool = True
    description: str = ""
    deprecated: bool = False
    deprecated_reason: str = ""

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "name": self.name,
            "type": self.type,
            "required": self.required,
            "nullable": self.nullable,
        }
        if self.description:
            d["description"] = self.description
        if self.deprecated:
            d["deprecated"] = True
            d["deprecatedReason"] = self.deprecated_reason
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GuardrailField:
        return cls(
            name=str(d["name"]),
            type=str(d.get("type", "unknown")),
            required=bool(d.get("required", False)),
            nullable=bool(d.get("nullable", True)),
            description=d.get("description", ""),
            deprecated=bool(d.get("deprecated", False)),
            deprecated_reason=d.get("deprecatedReason", ""),
        )


@dataclass
class GuardrailSchema:
    name: str
    fields: list[GuardrailField] = field(default_factory=list)
    non_existent_fields: list[str] = field(default_factory=list)
    description: str = ""
    primary_key: str | None = None

    def field_names(self) -> set[str]:
        return {f.name.lower() for f in self.fields}

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "name": self.name,
            "fields": [f.to_dict() for f in self.fields],
            "nonExistentFields": list(self.non_existent_fields),
        }
        if self.description:
            d["description"] = self.description
        if self.primary_key:
            d["primaryKey"] = self.primary_key
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GuardrailSchema:
        return cls(
            name=str(d["name"]),
            fields=[GuardrailField.from_dict(f) for f in d.get("fields", [])],
            non_existent_fields=[str(n) for n in d.get("nonExistentFields", [])],
            description=d.get("description", ""),
            primary_key=d.get("primaryKey"),
        )


@dataclass
class GuardrailEndpoint:
    method: str
    path: str
    description: str = ""
    deprecated: bool = False
    deprecated_reason: str = ""
    replaced_by: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {"method": self.method, "path": self.path}
        if self.description:
            d["description"] = self.description
        if self.deprecated:
            d["deprecated"] = True
            d["deprecatedReason"] = self.deprecated_reason
            if self.replaced_by:
                d["replacedBy"] = self.replaced_by
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GuardrailEndpoint:
        return cls(
            method=str(d.get("method", "GET")).upper(),
            path=str(d["path"]),
            description=d.get("description", ""),
            deprecated=bool(d.get("deprecated", False)),
            deprecated_reason=d.get("deprecatedReason", ""),
            replaced_by=d.get("replacedBy"),
        )


@dataclass
class GuardrailRule:
    id: str
    description: str
    severity: str = "medium"
    pattern: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = {"id": self.id, "description": self.description, "severity": self.severity}
        if self.pattern:
            d["pattern"] = self.pattern
        return d


@dataclass
class GuardrailsConfig:
    version: str = "1.0.0"
    project_name: str = "Unknown"
    last_updated: str = ""
    source_files: list[dict[str, str]] = field(default_factory=list)
    schemas: list[GuardrailSchema] = field(default_factory=list)
    endpoints: list[GuardrailEndpoint] = field(default_factory=list)
    common_mistakes: list[dict[str, str]] = field(default_factory=list)
    rules: list[GuardrailRule] = field(default_factory=list)
    source: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "projectName": self.project_name,
            "lastUpdated": self.last_updated,
            "sourceFiles": list(self.source_files),
            "schemas": [s.to_dict() for s in self.schemas],
            "endpoints": [e.to_dict() for e in self.endpoints],
            "commonMistakes": list(self.common_mistakes),
            "rules": [r.to_dict() for r in self.rules],
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> GuardrailsConfig:
        """Build from the JSON layout; raises ValueError on malformed content."""
        if not isinstance(d, dict):
            raise ValueError("guardrails config must be a JSON object")
        try:
            rules = []
            for r in d.get("rules", []):
                severity = r.get("severity", "medium")
                if severity not in GUARDRAIL_SEVERITIES:
                    raise ValueError(f"rule {r.get('id')!r}: unknown severity {severity!r}")
                pattern = r.get("pattern")
                if pattern:
                    re.compile(pattern)
                rules.append(GuardrailRule(id=str(r["id"]), description=r.get("description", ""),
                                           severity=severity, pattern=pattern))
            return cls(
                version=str(d.get("version", "1.0.0")),
                project_name=str(d.get("projectName", "Unknown")),
                last_updated=str(d.get("lastUpdated", "")),
                source_files=list(d.get("sourceFiles", [])),
                schemas=[GuardrailSchema.from_dict(s) for s in d.get("schemas", [])],
                endpoints=[GuardrailEndpoint.from_dict(e) for e in d.get("endpoints", [])],
                common_mistakes=[m for m in d.get("commonMistakes", [])
                                 if isinstance(m, dict) and m.get("mistake")],
                rules=rules,
            )
        except (KeyError, TypeError, AttributeError, re.error) as exc:
            raise ValueError(f"invalid guardrails config: {exc}") from exc


_TITLE_RE = re.compile(
    r"^#\s+(.+?)(?:\s+SDK)?\s+(?:Integration\s+)?Guardrails", re.IGNORECASE | re.MULTILINE)
_TABLE_RE = re.compile(r"###\s+`?(\w+)`?\s+Table\s*\n(.*?)(?=###|\Z)", re.IGNORECASE | re.DOTALL)
_FIELD_ROW_RE = re.compile(r"\|\s*(\w+)\s*\|\s*(\w+)\s*\|\s*(Yes|No)\s*\|", re.IGNORECASE)
_NON_EXISTENT_RE = re.compile(
    r"❌\s*`?(\w+)`?\s*-?\s*(?:DOES NOT EXIST|doesn't exist)", re.IGNORECASE)
_MISTAKES_RE = re.compile(r"##\s*Historical Mistakes.*?(?=##|\Z)", re.IGNORECASE | re.DOTALL)
_MISTAKE_ROW_RE = re.compile(r"\|\s*(.+?)\s*\|\s*(.+?)\s*\|\s*(.+?)\s*\|")


def parse_markdown_config(content: str) -> GuardrailsConfig:
    """Read a hand-written SDK_GUARDRAILS.md.

    Recognized pieces:
      # <Project> [SDK] [Integration] Guardrails
      ### `table` Table         followed by | field | type | Yes/No | rows
      (cross mark) `field` - DOES NOT EXIST
      ## Historical Mistakes   followed by | mistake | why | correction | rows
    """
    config = GuardrailsConfig(last_updated=utc_now())

    m = _TITLE_RE.search(content)
    if m:
        config.project_name = m.group(1).strip()

    for table in _TABLE_RE.finditer(content):
        name, body = table.group(1), table.group(2)
        schema = GuardrailSchema(name=name)
        for row in _FIELD_ROW_RE.finditer(body):
            required = row.group(3).lower() == "yes"
            schema.fields.append(GuardrailField(
                name=row.group(1), type=row.group(2).lower(),
                required=required, nullable=not required,
            ))
        schema.non_existent_fields = [n.group(1) for n in _NON_EXISTENT_RE.finditer(body)]
        if schema.fields:
            config.schemas.append(schema)

    section = _MISTAKES_RE.search(content)
    if section:
        for row in _MISTAKE_ROW_RE.finditer(section.group(0)):
            mistake = row.group(1).strip()
            if "Mistake" in mistake or "---" in mistake:
                continue
            config.common_mistakes.append({"mistake": mistake,
                                           "correction": row.group(3).strip()})
    return config


def load_guardrails_config(path: str | Path) -> GuardrailsConfig:
    """Load a .json or .md guardrails config.

    Raises FileNotFoundError for a missing file and ValueError for an
    unsupported extension or unparseable content.
    """
    path = Path(path).resolve()
    if not path.is_file():
        raise FileNotFoundError(f"Guardrails config not found: {path}")
    content = path.read_text(encoding="utf-8")
    if path.suffix == ".json":
        try:
            data = json.loads(content)
        except json.JSONDecodeError as exc:
            raise ValueError(f"{path}: invalid JSON: {exc}") from exc
        config = GuardrailsConfig.from_dict(data)
    elif path.suffix == ".md":
        config = parse_markdown_config(content)
    else:
        raise ValueError(f"Unsupported guardrails config format: {path}")
    config.source = str(path)
    log.debug("Loaded guardrails config %s (%d schemas)", path, len(config.schemas))
    return config


def find_guardrails_config(project_path: str | Path) -> Path | None:
    project = Path(project_path)
    for rel in STANDARD_LOCATIONS:
        candidate = project / rel
        if candidate.is_file():
            return candidate
    return None


def create_template(project_name: str) -> GuardrailsConfig:
    """Starter config with one example of each section."""
    return GuardrailsConfig(
        version="1.0.0",
        project_name=project_name,
        last_updated=utc_now(),
        source_files=[
            {"path": "swagger_spec.json", "purpose": "API schema definitions"},
            {"path": "database_schema.sql", "purpose": "Database table definitions"},
        ],
        schemas=[GuardrailSchema(
            name="example_table",
            description="Example table - replace with your actual schema",
            fields=[
                GuardrailField("id", "uuid", True, False, "Primary key"),
                GuardrailField("name", "text", True, False, "Name field"),
                GuardrailField("created_at", "timestamp", True, False, "Creation timestamp"),
            ],
            primary_key="id",
            non_existent_fields=["field_that_does_not_exist"],
        )],
        endpoints=[GuardrailEndpoint(
            method="GET", path="/api/v1/example",
            description="Example endpoint - replace with your actual endpoints",
        )],
        common_mistakes=[{"mistake": "Example mistake pattern",
                          "correction": "Use the correct pattern instead"}],
        rules=[GuardrailRule(
            id="no-hardcoded-urls",
            description="Do not hardcode API URLs",
            severity="high",
            pattern=r"https?://[^\s]+\.com",
        )],
    )


# ---------------------------------------------------------------------------
# Scan
# ---------------------------------------------------------------------------


@dataclass
class GuardrailViolation:
    id: str
    type: str
    severity: str
    confidence: str
    file: str
    line: int
    code: str
    message: str
    evidence: str
    suggestion: str = ""
    schema: str | None = None
    field: str | None = None
    rule: str | None = None

    def to_dict(self) -> dict[str, Any]:
        d = {
            "id": self.id,
            "type": self.type,
            "severity": self.severity,
            "confidence": self.confidence,
            "file": self.file,
            "line": self.line,
            "code": self.code,
            "message": self.message,
            "suggestion": self.suggestion,
            "evidence": self.evidence,
        }
        for key in ("schema", "field", "rule"):
            value = getattr(self, key)
            if value is not None:
                d[key] = value
        return d


@dataclass
class GuardrailsOptions:
    config_path: str | None = None
    target_paths: list[str] = field(default_factory=list)
    exclude_paths: list[str] = field(default_factory=lambda: list(DEFAULT_EXCLUDES))
    severity_threshold: str | None = None
    fail_on_warning: bool = False
    strict: bool = False


@dataclass
class GuardrailsResult:
    status: str
    score: int
    duration_ms: int
    files_scanned: int
    violations: list[GuardrailViolation] = field(default_factory=list)
    config_file: str = "None"
    project_name: str = "Unknown"
    config_version: str = "0.0.0"
    schemas_checked: list[str] = field(default_factory=list)
    message: str = ""

    def count(self, severity: str) -> int:
        return sum(1 for v in self.violations if v.severity == severity)

    def by_type(self) -> dict[str, int]:
        return {t: sum(1 for v in self.violations if v.type == t) for t in VIOLATION_TYPES}

    def to_dict(self) -> dict[str, Any]:
        summary: dict[str, Any] = {s: self.count(s) for s in GUARDRAIL_SEVERITIES}
        summary["by_type"] = self.by_type()
        return {
            "status": self.status,
            "score": self.score,
            "duration_ms": self.duration_ms,
            "files_scanned": self.files_scanned,
            "violations_found": len(self.violations),
            "violations": [v.to_dict() for v in self.violations],
            "summary": summary,
            "verified_against": {
                "config_file": self.config_file,
                "project_name": self.project_name,
                "config_version": self.config_version,
                "schemas_checked": list(self.schemas_checked),
            },
            "message": self.message,
        }


def _relative(path: Path, project: Path) -> str:
    """*path* relative to *project*, with ../ segments for paths outside it."""
    return Path(os.path.relpath(path, project)).as_posix()


def collect_files(project: Path, options: GuardrailsOptions) -> list[Path]:
    """Source files under the target paths, minus excluded path fragments."""
    files: list[Path] = []
    targets = [project / t for t in options.target_paths] or [project]
    for target in targets:
        if target.is_file():
            files.append(target)
            continue
        if not target.is_dir():
            log.warning("Guardrails target not found: %s", target)
            continue
        for root, dirs, names in os.walk(target):
            root_path = Path(root)
            dirs[:] = sorted(
                d for d in dirs
                if not any(exc in _relative(root_path / d, project)
                           for exc in options.exclude_paths)
            )
            for name in sorted(names):
                path = root_path / name
                rel = _relative(path, project)
                if name.lower().endswith(SOURCE_EXTENSIONS) and \
                        not any(exc in rel for exc in options.exclude_paths):
                    files.append(path)
    return files


class _Scanner:
    """Line-by-line checks against one config; numbers violations sdk-1, sdk-2, ..."""

    def __init__(self, config: GuardrailsConfig) -> None:
        self.config = config
        self.violations: list[GuardrailViolation] = []
        self._rules = [(r, re.compile(r.pattern)) for r in config.rules if r.pattern]
        self._schema_access = []
        for schema in config.schemas:
            owners = "|".join(re.escape(n) for n in (schema.name, *_ROW_ALIASES))
            access = re.compile(rf"\b(?:{owners})\.([A-Za-z_][A-Za-z0-9_]*)", re.IGNORECASE)
            non_existent = [
                (name, [
                    re.compile(rf"\.{re.escape(name)}\b"),
                    re.compile(rf"\[['\"]{re.escape(name)}['\"]\]"),
                ])
                for name in schema.non_existent_fields
            ]
            deprecated = [(f, re.compile(rf"\.{re.escape(f.name)}\b"))
                          for f in schema.fields if f.deprecated]
            self._schema_access.append((schema, access, non_existent, deprecated))

    def _add(self, **kwargs: Any) -> None:
        self.violations.append(
            GuardrailViolation(id=f"sdk-{len(self.violations) + 1}", **kwargs))

    def scan_line(self, rel: str, lineno: int, line: str) -> None:
        code = line.strip()
        lowered = line.lower()

        for schema, access, non_existent, deprecated in self._schema_access:
            for name, patterns in non_existent:
                if any(p.search(line) for p in patterns):
                    self._add(
                        type="unverified_field", severity="critical", confidence="high",
                        file=rel, line=lineno, code=code,
                        message=f"Field '{name}' does not exist on '{schema.name}'",
                        suggestion=f"Remove reference to '{name}'. "
                                   "Check the verified schema for the correct field name.",
                        evidence=f"Verified schema for '{schema.name}' "
                                 f"lists '{name}' as non-existent",
                        schema=schema.name, field=name,
                    )

            for fld, pattern in deprecated:
                if pattern.search(line):
                    reason = f" ({fld.deprecated_reason})" if fld.deprecated_reason else ""
                    self._add(
                        type="deprecated_field", severity="low", confidence="medium",
                        file=rel, line=lineno, code=code,
                        message=f"Field '{fld.name}' on '{schema.name}' is deprecated{reason}",
                        suggestion=f"Migrate away from '{fld.name}'",
                        evidence=f"Verified schema for '{schema.name}' "
                                 f"marks '{fld.name}' deprecated",
                        schema=schema.name, field=fld.name,
                    )

            verified = schema.field_names()
            missing = {n.lower() for n in schema.non_existent_fields}
            for m in access.finditer(line):
                name = m.group(1)
                key = name.lower()
                if key in _COMMON_PROPS or key in missing or key in verified:
                    continue
                if len(name) <= 2 or name.startswith("_"):
                    continue
                self._add(
                    type="assumption", severity="medium", confidence="medium",
                    file=rel, line=lineno, code=code,
                    message=f"Field '{name}' not found in verified schema for '{schema.name}'",
                    suggestion=f"Verify that '{name}' exists. "
                               "If it does, add it to the guardrails config.",
                    evidence=f"'{name}' is not in the verified field list for '{schema.name}'",
                    schema=schema.name, field=name,
                )

        for endpoint in self.config.endpoints:
            if endpoint.deprecated and endpoint.path in line:
                replacement = (f"Use {endpoint.replaced_by} instead"
                               if endpoint.replaced_by else "Stop calling this endpoint")
                self._add(
                    type="deprecated_endpoint", severity="medium", confidence="high",
                    file=rel, line=lineno, code=code,
                    message=f"Deprecated endpoint {endpoint.method} {endpoint.path}",
                    suggestion=replacement,
                    evidence=endpoint.deprecated_reason or "Endpoint marked deprecated",
                )

        for mistake in self.config.common_mistakes:
            if mistake["mistake"].lower() in lowered:
                self._add(
                    type="assumption", severity="high", confidence="high",
                    file=rel, line=lineno, code=code,
                    message=f"Known mistake detected: {mistake['mistake']}",
                    suggestion=mistake.get("correction", ""),
                    evidence="This pattern has been recorded as a historical mistake",
                )

        for rule, pattern in self._rules:
            if pattern.search(line):
                self._add(
                    type="assumption", severity=rule.severity, confidence="medium",
                    file=rel, line=lineno, code=code,
                    message=rule.description or f"Rule {rule.id} matched",
                    evidence=f"Matched pattern /{rule.pattern}/",
                    rule=rule.id,
                )


def calculate_guardrails_score(violations: list[GuardrailViolation]) -> int:
    penalty = sum(SEVERITY_PENALTY.get(v.severity, 0) for v in violations)
    return max(0, math.floor(100 - penalty + 0.5))


def _status(violations: list[GuardrailViolation], options: GuardrailsOptions) -> str:
    severities = {v.severity for v in violations}
    if "critical" in severities or (options.strict and violations):
        return "failed"
    if "high" in severities or (options.fail_on_warning and violations):
        return "warning"
    return "passed"


def check_guardrails(project_path: str | Path,
                     options: GuardrailsOptions | None = None,
                     config: GuardrailsConfig | None = None) -> GuardrailsResult:
    """Scan *project_path* against a guardrails config.

    An explicit options.config_path that is missing or invalid raises; when
    no config can be found in the standard locations the result has
    status "error".
    """
    options = options or GuardrailsOptions()
    project = Path(project_path).resolve()
    start = time.monotonic()

    if config is None:
        if options.config_path:
            config = load_guardrails_config(Path(options.config_path))
        else:
            found = find_guardrails_config(project)
            if found is None:
                return GuardrailsResult(
                    status="error", score=0, files_scanned=0,
                    duration_ms=int((time.monotonic() - start) * 1000),
                    message="No SDK guardrails configuration found",
                )
            config = load_guardrails_config(found)

    scanner = _Scanner(config)
    files = collect_files(project, options)
    log.info("Checking %d files against %d verified schemas", len(files), len(config.schemas))
    for path in files:
        try:
            text = path.read_text(encoding="utf-8", errors="replace")
        except OSError as exc:
            log.warning("Could not read %s: %s", path, exc)
            continue
        rel = _relative(path, project)
        for lineno, line in enumerate(text.splitlines(), start=1):
            scanner.scan_line(rel, lineno, line)

    violations = scanner.violations
    if options.severity_threshold:
        limit = GUARDRAIL_SEVERITIES.index(options.severity_threshold)
        violations = [v for v in violations
                      if GUARDRAIL_SEVERITIES.index(v.severity) <= limit]

    return GuardrailsResult(
        status=_status(violations, options),
        score=calculate_guardrails_score(violations),
        duration_ms=int((time.monotonic() - start) * 1000),
        files_scanned=len(files),
        violations=violations,
        config_file=config.source or "None",
        project_name=config.project_name,
        config_version=config.version,
        schemas_checked=[s.name for s in config.schemas],
    )


# ---------------------------------------------------------------------------
# Reports
# ---------------------------------------------------------------------------


def render_guardrails_text(result: GuardrailsResult) -> str:
    rule = "=" * 60
    lines = [
        rule,
        "  SDK GUARDRAILS REPORT",
        rule,
        f"Status: {result.status.upper()}",
        f"Score: {result.score}/100",
        f"Files Scanned: {result.files_scanned}",
        f"Violations Found: {len(result.violations)}",
        f"Duration: {result.duration_ms}ms",
    ]
    if result.message:
        lines.append(result.message)
    lines.append("")
    lines.append("Summary:")
    lines.extend(f"  {s.capitalize()}: {result.count(s)}" for s in GUARDRAIL_SEVERITIES)
    if result.violations:
        lines.append("")
        lines.append("Violations:")
        lines.append("-" * 60)
        for v in result.violations:
            lines.append(f"[{v.severity.upper()}] {v.file}:{v.line}")
            lines.append(f"  {v.message}")
            if v.suggestion:
                lines.append(f"  -> {v.suggestion}")
            lines.append("")
    return "\n".join(lines)


def render_guardrails_markdown(result: GuardrailsResult) -> str:
    lines = [
        "# SDK Guardrails Report",
        "",
        f"**Status:** {result.status.upper()}  ",
        f"**Score:** {result.score}/100  ",
        f"**Files Scanned:** {result.files_scanned}  ",
        f"**Violations Found:** {len(result.violations)}  ",
        f"**Duration:** {result.duration_ms}ms",
        "",
        "## Summary",
        "",
        "| Severity | Count |",
        "|----------|-------|",
    ]
    lines.extend(f"| {s.capitalize()} | {result.count(s)} |" for s in GUARDRAIL_SEVERITIES)
    lines.append("")

    if result.violations:
        lines.extend(["## Violations", ""])
        for v in result.violations:
            lines.extend([
                f"### [{v.severity.upper()}] {v.file}:{v.line}",
                "",
                f"**Type:** {v.type}  ",
                f"**Message:** {v.message}",
                "",
                "```",
                v.code,
                "```",
                "",
            ])
            if v.suggestion:
                lines.extend([f"**Suggestion:** {v.suggestion}", ""])
            lines.extend([f"**Evidence:** {v.evidence}", "", "---", ""])

    lines.extend([
        "## Verified Against",
        "",
        f"- **Config:** {result.config_file}",
        f"- **Project:** {result.project_name}",
        f"- **Version:** {result.config_version}",
        f"- **Schemas:** {', '.join(result.schemas_checked) or 'None'}",
    ])
    return "\n".join(lines)


def render_guardrails(result: GuardrailsResult, fmt: str = "markdown") -> str:
    if fmt == "json":
        return json.dumps(result.to_dict(), indent=2)
    if fmt == "text":
        return render_guardrails_text(result)
    return render_guardrails_markdown(result)
