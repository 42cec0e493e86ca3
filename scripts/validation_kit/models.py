"""Data models for the validation kit.

Zero external dependencies -- pure Python dataclasses.

Grouped by layer:
  - Validation (layer 1): ValidatorConfig, ValidationIssue, ValidationResult,
    ConsensusIssue, ValidationSummary, ValidationReport
  - Skeptical reasoning (layer 2): ProjectProfile, ArchitectureCritique,
    GrowthPhase, BlindSpot, TechStackIssue, SkepticalAssessment, SkepticalReport
  - Learning (layer 3): FailureRecord, FailurePattern, LearningMetrics,
    LearningReport (rows of learning.db)
  - Context (layer 4): ContextMetrics, CleanupConfig, CleanupReport
  - Optimization (layer 5): OptimizationConfig, OptimizationMetrics
"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime, timezone
from typing import Any


def utc_now() -> str:
    """ISO 8601 timestamp in UTC, millisecond precision."""
    return datetime.now(timezone.utc).isoformat(timespec="milliseconds")


# ---------------------------------------------------------------------------
# Layer 1: validation
# ---------------------------------------------------------------------------


@dataclass
class ValidatorConfig:
    """One external validator: how to run it and how much its vote counts."""

    name: str
    weight: float
    command: str
    timeout: float = 120.0        # seconds
    required: bool = False
    enabled: bool = True
    fix_command: str | None = None

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ValidatorConfig:
        return cls(
            name=d["name"],
            weight=float(d["weight"]),
            command=d["command"],
            timeout=float(d.get("timeout", 120.0)),
            required=bool(d.get("required", False)),
            enabled=bool(d.get("enabled", True)),
            fix_command=d.get("fix_command"),
        )


@dataclass
class ValidationIssue:
    """A single normalised issue reported by a validator."""

    severity: str
    code: str
    message: str
    file: str | None = None
    line: int | None = None
    column: int | None = None
    suggestion: str | None = None

    def consensus_key(self) -> str:
        """Identity used to match the same issue across validators."""
        return f"{self.file or ''}:{self.line or ''}:{self.code}:{self.message}"

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ValidationIssue:
        return cls(
            severity=d.get("severity", "info"),
            code=d.get("code", ""),
            message=d.get("message", ""),
            file=d.get("file"),
            line=d.get("line"),
            column=d.get("column"),
            suggestion=d.get("suggestion"),
        )


@dataclass
class ValidationResult:
    """Outcome of running one validator."""

    validator: str
    status: str
    weight: float
    duration_ms: int = 0
    issues: list[ValidationIssue] = field(default_factory=list)
    metadata: dict[str, Any] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return {
            "validator": self.validator,
            "status": self.status,
            "weight": self.weight,
            "duration_ms": self.duration_ms,
            "issues": [i.to_dict() for i in self.issues],
            "metadata": self.metadata,
        }

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> ValidationResult:
        return cls(
            validator=d["validator"],
            status=d["status"],
            weight=float(d.get("weight", 0)),
            duration_ms=int(d.get("duration_ms", 0)),
            issues=[ValidationIssue.from_dict(i) for i in d.get("issues", [])],
            metadata=dict(d.get("metadata", {})),
        )


@dataclass
class ConsensusConfig:
    """When does an issue count as agreed upon?"""

    min_validators_to_flag: int = 2
    single_validator_threshold: float = 0.95


@dataclass
class ConsensusIssue:
    """An issue together with every validator that reported it."""

    issue: ValidationIssue
    validators: list[str] = field(default_factory=list)
    combined_weight: float = 0.0
    flagged_by_consensus: bool = False

    def to_dict(self) -> dict[str, Any]:
        return {
            "issue": self.issue.to_dict(),
            "validators": list(self.validators),
            "combined_weight": round(self.combined_weight, 4),
            "flagged_by_consensus": self.flagged_by_consensus,
        }


@dataclass
class ValidationSummary:
    total_validators: int = 0
    passed: int = 0
    failed: int = 0
    skipped: int = 0
    errors: int = 0
    total_issues: int = 0
    critical_issues: int = 0
    high_issues: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class OptimizationConfig:
    """Sparse debate (layer 5).

    The initial validators run first and the rest are skipped when they
    agree strongly enough.
    """

    sparse_debate_enabled: bool = True
    initial_validators: list[str] = field(
        default_factory=lambda: ["typescript", "zod_schema_validation", "eslint"])
    escalation_threshold: float = 0.8


@dataclass
class OptimizationMetrics:
    validators_skipped: int = 0
    execution_time_ms: int = 0
    escalated: bool = True

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ValidationReport:
    """Full layer-1 report across all validators."""

    timestamp: str
    duration_ms: int
    status: str
    score: int
    results: list[ValidationResult] = field(default_factory=list)
    consensus_issues: list[ConsensusIssue] = field(default_factory=list)
    summary: ValidationSummary = field(default_factory=ValidationSummary)
    optimization: OptimizationMetrics | None = None

    def flagged_issues(self) -> list[ConsensusIssue]:
        return [ci for ci in self.consensus_issues if ci.flagged_by_consensus]

    def to_dict(self) -> dict[str, Any]:
        d: dict[str, Any] = {
            "timestamp": self.timestamp,
            "duration_ms": self.duration_ms,
            "status": self.status,
            "score": self.score,
            "results": [r.to_dict() for r in self.results],
            "consensus_issues": [ci.to_dict() for ci in self.consensus_issues],
            "summary": self.summary.to_dict(),
        }
        if self.optimization is not None:
            d["optimization"] = self.optimization.to_dict()
        return d


# ---------------------------------------------------------------------------
# Layer 2: skeptical reasoning
# ---------------------------------------------------------------------------


@dataclass
class ScaleThreshold:
    """The load at which a concern is expected to bite."""

    users: int | None = None
    qps: int | None = None
    data_size: str | None = None
    connections: int | None = None

    def to_dict(self) -> dict[str, Any]:
        return {k: v for k, v in asdict(self).items() if v is not None}


@dataclass
class ArchitectureCritique:
    severity: str
    title: str
    concern: str
    breaks_at: ScaleThreshold
    recommendation: str
    rationale: str

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["breaks_at"] = self.breaks_at.to_dict()
        return d


@dataclass
class GrowthPhase:
    phase: int
    name: str
    user_range: tuple[int, int]
    qps_range: tuple[int, int]
    bottlenecks: list[str] = field(default_factory=list)
    changes_needed: list[str] = field(default_factory=list)
    timeline: str = ""

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["user_range"] = list(self.user_range)
        d["qps_range"] = list(self.qps_range)
        return d


@dataclass
class BlindSpot:
    title: str
    likelihood: float
    impact: str
    description: str
    prevention: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class TechStackIssue:
    component: str
    issue: str
    severity: str
    recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class SkepticalAssessment:
    readiness_score: int
    scalability_score: int
    architecture_score: int
    recommendation: str

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class ProjectProfile:
    """What the skeptical engine could infer about a project from its files."""

    has_database: bool = False
    database_type: str | None = None
    has_cache: bool = False
    cache_type: str | None = None
    has_message_queue: bool = False
    queue_type: str | None = None
    has_docker: bool = False
    has_kubernetes: bool = False
    has_load_balancer: bool = False
    estimated_qps: int = 100
    estimated_users: int = 1000
    dependencies: list[str] = field(default_factory=list)
    has_rate_limiting: bool = False
    has_circuit_breaker: bool = False
    has_async_processing: bool = False


@dataclass
class SkepticalReport:
    timestamp: str
    assessment: SkepticalAssessment
    critiques: list[ArchitectureCritique] = field(default_factory=list)
    growth_phases: list[GrowthPhase] = field(default_factory=list)
    blind_spots: list[BlindSpot] = field(default_factory=list)
    tech_stack_issues: list[TechStackIssue] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "assessment": self.assessment.to_dict(),
            "critiques": [c.to_dict() for c in self.critiques],
            "growth_phases": [p.to_dict() for p in self.growth_phases],
            "blind_spots": [b.to_dict() for b in self.blind_spots],
            "tech_stack_issues": [t.to_dict() for t in self.tech_stack_issues],
        }


# ---------------------------------------------------------------------------
# Layer 3: learning loop (rows of learning.db)
# ---------------------------------------------------------------------------


@dataclass
class FailureRecord:
    """One issue from a failed validator run, kept for pattern detection.

    Maps to the `failures` table.
    """

    id: str
    timestamp: str
    validator: str
    error_code: str
    error_message: str
    file: str | None = None
    line: int | None = None
    pattern: str | None = None
    fix_applied: str | None = None
    fix_succeeded: bool | None = None
    confidence: float = 0.3

    def to_dict(self) -> dict[str, Any]:
        """Serialise to a flat dict suitable for DB insertion."""
        d = asdict(self)
        if self.fix_succeeded is not None:
            d["fix_succeeded"] = int(self.fix_succeeded)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FailureRecord:
        """Reconstruct from a DB row dict."""
        fix_succeeded = d.get("fix_succeeded")
        return cls(
            id=d["id"],
            timestamp=d["timestamp"],
            validator=d["validator"],
            error_code=d.get("error_code", ""),
            error_message=d.get("error_message", ""),
            file=d.get("file"),
            line=d.get("line"),
            pattern=d.get("pattern"),
            fix_applied=d.get("fix_applied"),
            fix_succeeded=None if fix_succeeded is None else bool(fix_succeeded),
            confidence=float(d.get("confidence", 0.3)),
        )


@dataclass
class FailurePattern:
    """A recurring, normalised failure. Maps to the `patterns` table."""

    pattern: str
    description: str
    occurrences: int = 0
    first_seen: str = ""
    last_seen: str = ""
    fix_rate: float = 0.0
    suggested_fix: str | None = None
    auto_fix_ready: bool = False

    def to_dict(self) -> dict[str, Any]:
        d = asdict(self)
        d["auto_fix_ready"] = int(self.auto_fix_ready)
        return d

    @classmethod
    def from_dict(cls, d: dict[str, Any]) -> FailurePattern:
        return cls(
            pattern=d["pattern"],
            description=d.get("description", ""),
            occurrences=int(d.get("occurrences", 0)),
            first_seen=d.get("first_seen", ""),
            last_seen=d.get("last_seen", ""),
            fix_rate=float(d.get("fix_rate", 0)),
            suggested_fix=d.get("suggested_fix"),
            auto_fix_ready=bool(d.get("auto_fix_ready", False)),
        )


@dataclass
class LearningMetrics:
    """Aggregate view over learning.db -- computed, not stored."""

    total_failures: int = 0
    unique_patterns: int = 0
    auto_fixes_applied: int = 0
    auto_fix_success_rate: float = 0.0
    validator_accuracy: dict[str, float] = field(default_factory=dict)

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class LearningReport:
    timestamp: str
    metrics: LearningMetrics
    patterns: list[FailurePattern] = field(default_factory=list)
    recommendations: list[str] = field(default_factory=list)

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "metrics": self.metrics.to_dict(),
            "patterns": [asdict(p) for p in self.patterns],
            "recommendations": list(self.recommendations),
        }


# ---------------------------------------------------------------------------
# Layer 4: context optimization
# ---------------------------------------------------------------------------


@dataclass
class ContextMetrics:
    total_size: int = 0
    active_size: int = 0
    archived_size: int = 0
    compression_ratio: float = 1.0
    token_estimate: int = 0

    def to_dict(self) -> dict[str, Any]:
        return asdict(self)


@dataclass
class CleanupConfig:
    """Retention policy for .validation/ contents. Sizes in bytes."""

    max_active_size: int = 512_000
    max_failure_count: int = 1000
    max_pattern_count: int = 100
    retention_days: int = 30
    archive_after_days: int = 7
    compress_after_days: int = 14
    delete_after_days: int = 90


@dataclass
class CleanupReport:
    timestamp: str
    before: ContextMetrics
    after: ContextMetrics
    items_removed: int = 0
    items_archived: int = 0
    items_compressed: int = 0
    space_saved: int = 0

    def to_dict(self) -> dict[str, Any]:
        return {
            "timestamp": self.timestamp,
            "before": self.before.to_dict(),
            "after": self.after.to_dict(),
            "items_removed": self.items_removed,
            "items_archived": self.items_archived,
            "items_compressed": self.items_compressed,
            "space_saved": self.space_saved,
        }
