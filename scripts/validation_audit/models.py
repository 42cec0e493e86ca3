"""Data models for the codebase audit (layer 6).

Every finding carries the raw tool output that backs it (Evidence), so a
human can check the claim before acting on it.
"""

from __future__ import annotations

import copy
import logging
from dataclasses import asdict, dataclass, field
from typing import Any

log = logging.getLogger(__name__)

HIGH_CONFIDENCE = 80
MEDIUM_CONFIDENCE = 60


def confidence_category(confidence: int) -> str:
    """Bucket a 0-100 confidence score: high >= 80, medium >= 60, else low."""
    if confidence >= HIGH_CONFIDENCE:
        return "high"
    if confidence >= MEDIUM_CONFIDENCE:
        return "medium"
    return "low"


@dataclass
class Evidence:
    """Raw tool output supporting a finding."""

    tool: str
    output: str
    timestamp: str
    exit_code: int | None = None

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        if self.exit_code is None:
            del d["exit_code"]
        return d


@dataclass
class Finding:
    id: str
    type: str
    target: str
    confidence: int
    category: str
    recommendation: str
    evidence: list[Evidence] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "id": self.id,
            "type": self.type,
            "target": self.target,
            "confidence": self.confidence,
            "category": self.category,
            "recommendation": self.recommendation,
            "evidence": [e.to_dict() for e in self.evidence],
            "metadata": self.metadata,
        }


@dataclass
class AuditSummary:
    total_findings: int = 0
    high_confidence: int = 0
    medium_confidence: int = 0
    low_confidence: int = 0
    estimated_bloat_kb: int = 0
    unused_dependencies: int = 0
    unused_files: int = 0
    unused_exports: int = 0
    duplicate_blocks: int = 0
    circular_dependencies: int = 0
    stale_files: int = 0

    @classmethod
    def from_findings(cls, findings: list[Finding]) -> AuditSummary:
        def _count(**match: str) -> int:
            return sum(1 for f in findings
                       if all(getattr(f, k) == v for k, v in match.items()))

        return cls(
            total_findings=len(findings),
            high_confidence=_count(category="high"),
            medium_confidence=_count(category="medium"),
            low_confidence=_count(category="low"),
            unused_dependencies=_count(type="unused-dependency"),
            unused_files=_count(type="unused-file"),
            unused_exports=_count(type="unused-export"),
            duplicate_blocks=_count(type="duplicate-code"),
            circular_dependencies=_count(type="circular-dependency"),
            stale_files=_count(type="stale-file"),
        )

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AuditError:
    tool: str
    message: str
    timestamp: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class AuditReport:
    version: str
    timestamp: str
    project_path: str
    duration_ms: int
    summary: AuditSummary
    findings: list[Finding] = field(default_factory=list)
    tools_used: list[str] = field(default_factory=list)
    errors: list[AuditError] = field(default_factory=list)

    def by_category(self, category: str) -> list[Finding]:
        return [f for f in self.findings if f.category == category]

    def to_dict(self) -> dict[str, Any]:
        return {
            "version": self.version,
            "timestamp": self.timestamp,
            "project_path": self.project_path,
            "duration_ms": self.duration_ms,
            "summary": self.summary.to_dict(),
            "findings": [f.to_dict() for f in self.findings],
            "tools_used": list(self.tools_used),
            "errors": [e.to_dict() for e in self.errors],
        }


# ---------------------------------------------------------------------------
# Configuration
# ---------------------------------------------------------------------------

DEFAULT_TOOLS: dict[str, dict[str, Any]] = {
    "depcheck": {"enabled": True},
    "ts-prune": {"enabled": True},
    "unimported": {"enabled": True},
    "jscpd": {"enabled": True, "min_lines": 10, "min_tokens": 50},
    "madge": {"enabled": True},
}

DEFAULT_THRESHOLDS: dict[str, int] = {
    "min_confidence_to_report": 50,
    "min_confidence_to_recommend": 70,
    "stale_file_days": 180,
}

DEFAULT_EXCLUSIONS: dict[str, list[str]] = {
    "paths": ["node_modules/", "dist/", "build/", ".git/", "__tests__/", "__mocks__/",
              "migrations/"],
    "packages": ["@types/*"],
    "patterns": ["*.config.js", "*.config.ts", "*.d.ts", "*.test.ts", "*.spec.ts"],
}


@dataclass
class AuditConfig:
    """Which tools run, what gets reported, and what is never considered."""

    enabled: bool = True
    tools: dict[str, dict[str, Any]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_TOOLS))
    thresholds: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_THRESHOLDS))
    exclusions: dict[str, list[str]] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_EXCLUSIONS))

    def tool_enabled(self, tool: str) -> bool:
        return bool(self.tools.get(tool, {}).get("enabled", False))

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> AuditConfig:
        """Defaults overridden section by section from *d*.

        Values of the wrong type are logged and skipped, keeping the default.
        """
        cfg = cls()
        enabled = d.get("enabled", True)
        if isinstance(enabled, bool):
            cfg.enabled = enabled
        else:
            log.warning("Ignoring invalid audit option enabled: %r", enabled)
        for tool, opts in _section(d, "tools").items():
            if not isinstance(opts, dict):
                log.warning("Ignoring invalid audit tool options for %s: %r", tool, opts)
                continue
            merged = {**cfg.tools.get(tool, {})}
            for key, value in opts.items():
                default = merged.get(key)
                if key == "enabled" and not isinstance(value, bool):
                    log.warning("Ignoring invalid %s option enabled: %r", tool, value)
                elif isinstance(default, int) and not isinstance(default, bool):
                    number = _as_int(value)
                    if number is None:
                        log.warning("Ignoring invalid %s option %s: %r", tool, key, value)
                    else:
                        merged[key] = number
                else:
                    merged[key] = value
            cfg.tools[tool] = merged
        for key, value in _section(d, "thresholds").items():
            number = _as_int(value)
            if number is None:
                log.warning("Ignoring invalid audit threshold %s: %r", key, value)
            else:
                cfg.thresholds[key] = number
        for key, values in _section(d, "exclusions").items():
            if isinstance(values, list):
                cfg.exclusions[key] = [str(v) for v in values]
            else:
                log.warning("Ignoring invalid audit exclusions %s: %r", key, values)
        return cfg


def _section(d: dict[str, Any], name: str) -> dict[str, Any]:
    value = d.get(name)
    if value is None:
        return {}
    if not isinstance(value, dict):
        log.warning("Ignoring audit %s: expected an object, got %r", name, value)
        return {}
    return value


def _as_int(value: Any) -> int | None:
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        return int(value)
    except ValueError:
        return None


@dataclass
class KeepList:
    """Files and packages intentionally kept despite appearing unused.

    Stored in .validation/keep.json as
    {"description": ..., "files": [{"path", "reason"}], "packages": [{"name", "reason"}]}.
    """

    description: str = "Files and packages intentionally kept despite appearing unused"
    files: list[dict[str, str]] = field(default_factory=list)
    packages: list[dict[str, str]] = field(default_factory=list)

    def contains(self, target: str) -> bool:
        if any(entry.get("path") and entry["path"] in target for entry in self.files):
            return True
        return any(entry.get("name") == target for entry in self.packages)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> KeepList:
        return cls(
            description=d.get("description", cls.description),
            files=[f for f in d.get("files", []) if isinstance(f, dict)],
            packages=[p for p in d.get("packages", []) if isinstance(p, dict)],
        )


# ---------------------------------------------------------------------------
# Cleanup plan
# ---------------------------------------------------------------------------


@dataclass
class CleanupAction:
    type: str
    target: str
    finding: Finding
    command: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return {
            "type": self.type,
            "target": self.target,
            "finding_id": self.finding.id,
            "command": self.command,
        }


@dataclass
class CleanupPlan:
    timestamp: str
    project_path: str
    actions: list[CleanupAction] = field(default_factory=list)
    files_removed: int = 0
    dependencies_removed: int = 0
    script: str = ""

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "project_path": self.project_path,
            "actions": [a.to_dict() for a in self.actions],
            "estimated_impact": {
                "files_removed": self.files_removed,
                "dependencies_removed": self.dependencies_removed,
            },
            "script": self.script,
        }
