"""Default validators, thresholds and per-project overrides.

Defaults are module constants. A project may override any of them from
`.validation/config.json` (written by `validation-kit init`):

  {
    "validators": {"eslint": {"enabled": false}, "ruff": {"weight": 0.9, "command": "ruff check ."}},
    "consensus": {"min_validators_to_flag": 3},
    "cleanup": {"retention_days": 14},
    "optimization": {"sparse_debate_enabled": false},
    "skeptical": {"estimated_qps": 500},
    "audit": {...}
  }

Overrides are partial: only the listed keys change. The module constants are
never mutated.
"""

from __future__ import annotations

import copy
import json
import logging
from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any

from . import VALIDATION_DIR
from .models import (
    BlindSpot,
    CleanupConfig,
    ConsensusConfig,
    GrowthPhase,
    OptimizationConfig,
    ValidatorConfig,
)

log = logging.getLogger(__name__)

CONFIG_FILENAME = "config.json"

# ---------------------------------------------------------------------------
# Validators (ordered by weight, highest first)
# ---------------------------------------------------------------------------

DEFAULT_VALIDATORS: dict[str, ValidatorConfig] = {
    "zod_schema_validation": ValidatorConfig(
        name="zod_schema_validation",
        weight=0.99,
        command="node scripts/validate-schemas.js",
        timeout=30.0,
        required=True,
    ),
    "database_migration_check": ValidatorConfig(
        name="database_migration_check",
        weight=0.98,
        command="node scripts/validate-migrations.js",
        timeout=60.0,
        required=True,
    ),
    "typescript": ValidatorConfig(
        name="typescript",
        weight=0.96,
        command="npx tsc --noEmit",
        timeout=120.0,
        required=True,
    ),
    "biome": ValidatorConfig(
        name="biome",
        weight=0.94,
        command="npx biome check .",
        timeout=60.0,
        fix_command="npx biome check --write .",
    ),
    "jest_unit": ValidatorConfig(
        name="jest_unit",
        weight=0.93,
        command="npx jest --coverage --passWithNoTests",
        timeout=300.0,
        required=True,
    ),
    "eslint": ValidatorConfig(
        name="eslint",
        weight=0.92,
        command="npx eslint . --format json --max-warnings 0",
        timeout=120.0,
        fix_command="npx eslint . --fix",
    ),
    "api_contract_test": ValidatorConfig(
        name="api_contract_test",
        weight=0.91,
        command="npx jest --testPathPattern='\\.contract\\.test\\.ts$' --passWithNoTests",
        timeout=180.0,
    ),
    "docker_build_check": ValidatorConfig(
        name="docker_build_check",
        weight=0.90,
        command='docker build --dry-run . 2>/dev/null || echo "Docker not available"',
        timeout=300.0,
        enabled=False,
    ),
    "security_scan": ValidatorConfig(
        name="security_scan",
        weight=0.88,
        command="npx audit-ci --moderate || npm audit --audit-level=moderate",
        timeout=120.0,
    ),
    "performance_check": ValidatorConfig(
        name="performance_check",
        weight=0.85,
        command="node scripts/performance-check.js",
        timeout=180.0,
        enabled=False,
    ),
}

DEFAULT_CONSENSUS = ConsensusConfig()
DEFAULT_CLEANUP_CONFIG = CleanupConfig()
DEFAULT_OPTIMIZATION_CONFIG = OptimizationConfig()

SEVERITY_WEIGHTS: dict[str, float] = {
    "critical": 1.0,
    "high": 0.8,
    "medium": 0.5,
    "low": 0.2,
    "info": 0.1,
}

# Token estimate above which context cleanup is due (chars / 4)
MAX_CONTEXT_TOKENS = 100_000

DEFAULT_SKEPTICAL: dict[str, int] = {
    "estimated_qps": 100,
    "estimated_users": 1000,
}


# ---------------------------------------------------------------------------
# Effective configuration
# ---------------------------------------------------------------------------


@dataclass
class KitConfig:
    """Effective configuration after merging project overrides."""

    validators: dict[str, ValidatorConfig] = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_VALIDATORS))
    consensus: ConsensusConfig = field(
        default_factory=lambda: replace(DEFAULT_CONSENSUS))
    cleanup: CleanupConfig = field(
        default_factory=lambda: replace(DEFAULT_CLEANUP_CONFIG))
    optimization: OptimizationConfig = field(
        default_factory=lambda: copy.deepcopy(DEFAULT_OPTIMIZATION_CONFIG))
    skeptical: dict[str, int] = field(
        default_factory=lambda: dict(DEFAULT_SKEPTICAL))
    audit: dict[str, Any] = field(default_factory=dict)


def _coerce(default: Any, value: Any) -> Any:
    """Convert *value* to the type of *default*; raise TypeError/ValueError if it can't be."""
    if isinstance(default, bool):
        if not isinstance(value, bool):
            raise TypeError("expected true or false")
        return value
    if isinstance(default, (int, float)):
        if isinstance(value, bool) or not isinstance(value, (int, float, str)):
            raise TypeError("expected a number")
        return type(default)(value)
    if isinstance(default, list):
        if not isinstance(value, list):
            raise TypeError("expected a list")
        return [str(v) for v in value]
    if isinstance(default, str) or default is None:
        if not isinstance(value, str) and not (default is None and value is None):
            raise TypeError("expected a string")
        return value
    return value


def _override_dataclass(obj: Any, overrides: dict[str, Any], section: str) -> Any:
    """Return a copy of *obj* with known, well-typed keys from *overrides* applied."""
    known = {f.name for f in fields(obj)}
    changes: dict[str, Any] = {}
    for key, value in overrides.items():
        if key not in known:
            log.warning("Ignoring unknown %s option: %s", section, key)
            continue
        try:
            changes[key] = _coerce(getattr(obj, key), value)
        except (TypeError, ValueError):
            log.warning("Ignoring invalid %s option %s: %r", section, key, value)
    return replace(obj, **changes)


def _merge_validators(base: dict[str, ValidatorConfig],
                      overrides: dict[str, Any]) -> dict[str, ValidatorConfig]:
    merged = copy.deepcopy(base)
    for name, entry in overrides.items():
        if not isinstance(entry, dict):
            log.warning("Ignoring malformed validator override: %s", name)
            continue
        if name in merged:
            merged[name] = _override_dataclass(merged[name], entry, "validator")
            merged[name].name = name
        elif isinstance(entry.get("command"), str):
            template = ValidatorConfig(name=name, weight=0.9, command=entry["command"])
            merged[name] = _override_dataclass(template, entry, "validator")
            merged[name].name = name
        else:
            log.warning("Ignoring validator %s: no command configured", name)
    return merged


def config_path_for(project_path: str | Path) -> Path:
    """Return the default config.json location for a project."""
    return Path(project_path) / VALIDATION_DIR / CONFIG_FILENAME


def _read_overrides(path: Path) -> dict[str, Any]:
    if not path.exists():
        return {}
    try:
        data = json.loads(path.read_text())
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
        log.warning("Could not read %s (%s); using defaults", path, exc)
        return {}
    if not isinstance(data, dict):
        log.warning("%s is not a JSON object; using defaults", path)
        return {}
    return data


def load_config(project_path: str | Path,
                config_path: str | Path | None = None) -> KitConfig:
    """Build the effective configuration for *project_path*.

    Args:
        project_path: Project root. `.validation/config.json` is read from here.
        config_path: Explicit config file, replacing the project default.
    """
    path = Path(config_path) if config_path else config_path_for(project_path)
    overrides = _read_overrides(path)
    cfg = KitConfig()
    if not overrides:
        return cfg

    log.debug("Loaded config overrides from %s", path)
    if isinstance(overrides.get("validators"), dict):
        cfg.validators = _merge_validators(cfg.validators, overrides["validators"])
    if isinstance(overrides.get("consensus"), dict):
        cfg.consensus = _override_dataclass(cfg.consensus, overrides["consensus"], "consensus")
    if isinstance(overrides.get("cleanup"), dict):
        cfg.cleanup = _override_dataclass(cfg.cleanup, overrides["cleanup"], "cleanup")
    if isinstance(overrides.get("optimization"), dict):
        cfg.optimization = _override_dataclass(
            cfg.optimization, overrides["optimization"], "optimization")
    if isinstance(overrides.get("skeptical"), dict):
        for key, value in overrides["skeptical"].items():
            if key not in DEFAULT_SKEPTICAL:
                log.warning("Ignoring unknown skeptical option: %s", key)
                continue
            try:
                cfg.skeptical[key] = _coerce(DEFAULT_SKEPTICAL[key], value)
            except (TypeError, ValueError):
                log.warning("Ignoring invalid skeptical option %s: %r", key, value)
    if isinstance(overrides.get("audit"), dict):
        cfg.audit = dict(overrides["audit"])
    return cfg


def default_project_config() -> dict[str, Any]:
    """The config.json written by `init`: every default, ready for editing."""
    return {
        "validators": {
            name: {k: v for k, v in v_cfg.to_dict().items() if k != "name"}
            for name, v_cfg in DEFAULT_VALIDATORS.items()
        },
        "consensus": {
            "min_validators_to_flag": DEFAULT_CONSENSUS.min_validators_to_flag,
            "single_validator_threshold": DEFAULT_CONSENSUS.single_validator_threshold,
        },
        "cleanup": {f.name: getattr(DEFAULT_CLEANUP_CONFIG, f.name)
                    for f in fields(DEFAULT_CLEANUP_CONFIG)},
        "optimization": {
            "sparse_debate_enabled": DEFAULT_OPTIMIZATION_CONFIG.sparse_debate_enabled,
            "initial_validators": list(DEFAULT_OPTIMIZATION_CONFIG.initial_validators),
            "escalation_threshold": DEFAULT_OPTIMIZATION_CONFIG.escalation_threshold,
        },
        "skeptical": dict(DEFAULT_SKEPTICAL),
    }


# ---------------------------------------------------------------------------
# Skeptical reasoning reference data
# ---------------------------------------------------------------------------

GROWTH_PHASES: tuple[GrowthPhase, ...] = (
    GrowthPhase(
        phase=1,
        name="MVP",
        user_range=(100, 1000),
        qps_range=(10, 100),
        timeline="Month 1-2",
    ),
    GrowthPhase(
        phase=2,
        name="Early Growth",
        user_range=(1000, 50000),
        qps_range=(50, 500),
        bottlenecks=["Database connections", "Session management"],
        changes_needed=["Add Redis caching", "Connection pooling"],
        timeline="Month 4-5",
    ),
    GrowthPhase(
        phase=3,
        name="Scaling",
        user_range=(50000, 500000),
        qps_range=(500, 1000),
        bottlenecks=["Write throughput", "Search performance"],
        changes_needed=["Database replication", "Async processing", "CDN"],
        timeline="Month 9-10",
    ),
    GrowthPhase(
        phase=4,
        name="Production Scale",
        user_range=(500000, 10000000),
        qps_range=(1000, 10000),
        bottlenecks=["Multiple systems", "Global latency"],
        changes_needed=["Sharding", "Kafka/message queues", "Kubernetes", "Multi-region"],
        timeline="Month 15-17",
    ),
)

COMMON_BLIND_SPOTS: tuple[BlindSpot, ...] = (
    BlindSpot(
        title="Distributed Data Consistency",
        likelihood=0.95,
        impact="high",
        description="Data inconsistency across replicas during network partitions",
        prevention="Plan replication strategy from day 1, implement eventual consistency patterns",
    ),
    BlindSpot(
        title="Cascading Service Failures",
        likelihood=0.88,
        impact="critical",
        description="One service failure brings down dependent services",
        prevention="Implement circuit breakers, bulkheads, and graceful degradation",
    ),
    BlindSpot(
        title="Database Migration Hell",
        likelihood=0.92,
        impact="high",
        description="Schema changes become impossible without downtime",
        prevention="Build abstraction layer, use backward-compatible migrations",
    ),
    BlindSpot(
        title="Cost Explosion",
        likelihood=0.85,
        impact="high",
        description="Cloud costs grow faster than revenue",
        prevention="Monitor cost per user, set alerts on 50% growth, optimize early",
    ),
    BlindSpot(
        title="Operational Complexity",
        likelihood=0.90,
        impact="high",
        description="System becomes too complex for team to manage",
        prevention="Keep architecture simple, document all decisions, automate operations",
    ),
)
