"""Layer 2 -- skeptical reasoning: will this architecture survive 10x load?

Everything here is a heuristic over what can be seen from the file system:
declared dependencies (package.json, requirements.txt), Docker files and
Kubernetes manifests. Expected load is not discoverable, so it comes from
configuration or the CLI (--qps / --users).

Assessment formulas (c = critical, w = warning, h = high-impact blind
spots, t = tech stack issues; all floored at 0):
  - readiness     = 100 - 20c - 10w
  - scalability   = 100 - 25c - 15w
  - architecture  = 100 - 10h - 5t
"""

from __future__ import annotations

import copy
import json
import logging
import re
from pathlib import Path

from .config import COMMON_BLIND_SPOTS, GROWTH_PHASES
from .models import (
    ArchitectureCritique,
    BlindSpot,
    GrowthPhase,
    ProjectProfile,
    ScaleThreshold,
    SkepticalAssessment,
    SkepticalReport,
    TechStackIssue,
    utc_now,
)

log = logging.getLogger(__name__)

# ---------------------------------------------------------------------------
# Dependency signatures (npm + PyPI names)
# ---------------------------------------------------------------------------

# Checked in order: the first database/queue family found wins.
_DATABASES = (
    ("PostgreSQL", {"pg", "postgres", "@prisma/client", "psycopg2", "psycopg2-binary",
                    "psycopg", "asyncpg"}),
    ("MySQL", {"mysql", "mysql2", "pymysql", "mysqlclient"}),
    ("MongoDB", {"mongodb", "mongoose", "pymongo", "motor"}),
)
_CACHES = (
    ("Redis", {"redis", "ioredis"}),
)
_QUEUES = (
    ("RabbitMQ", {"amqplib", "rabbitmq", "pika", "aio-pika"}),
    ("Kafka", {"kafkajs", "kafka-node", "kafka-python", "confluent-kafka", "aiokafka"}),
    ("Bull (Redis)", {"bullmq", "bull"}),
)
_RATE_LIMITERS = {"express-rate-limit", "rate-limiter-flexible", "slowapi", "flask-limiter"}
_CIRCUIT_BREAKERS = {"opossum", "cockatiel", "pybreaker"}
_ASYNC_WORKERS = {"bullmq", "bull", "agenda", "celery", "rq", "dramatiq"}

_REQ_NAME_RE = re.compile(r"^\s*([A-Za-z0-9][A-Za-z0-9._-]*)")

# Critique thresholds
_CACHE_QPS = 100
_CIRCUIT_BREAKER_DEPS = 10
_DEPENDENCY_CHAIN_DEPS = 15
_UNTRACKED_DATABASE_DEPS = 5


# ---------------------------------------------------------------------------
# Project analysis
# ---------------------------------------------------------------------------


def _package_json_deps(project: Path) -> list[str]:
    pkg = project / "package.json"
    if not pkg.exists():
        return []
    try:
        data = json.loads(pkg.read_text(encoding="utf-8"))
    except (json.JSONDecodeError, OSError, UnicodeDecodeError) as exc:
        log.warning("Could not parse %s: %s", pkg, exc)
        return []
    if not isinstance(data, dict):
        log.warning("%s is not a JSON object; ignoring it", pkg)
        return []
    deps: list[str] = []
    for section in ("dependencies", "devDependencies"):
        entries = data.get(section)
        if entries is None:
            continue
        if not isinstance(entries, dict):
            log.warning("Ignoring %s in %s: expected an object", section, pkg)
            continue
        deps.extend(name for name in entries if name not in deps)
    return deps


def _requirements_deps(project: Path) -> list[str]:
    req = project / "requirements.txt"
    if not req.exists():
        return []
    try:
        text = req.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as exc:
        log.warning("Could not read %s: %s", req, exc)
        return []
    names: list[str] = []
    for raw_line in text.splitlines():
        line = raw_line.split("#", 1)[0].strip()
        if not line or line.startswith("-"):
            continue
        m = _REQ_NAME_RE.match(line)
        if m:
            names.append(m.group(1).lower().replace("_", "-"))
    return names


def _first_family(deps: set[str],
                  families: tuple[tuple[str, set[str]], ...]) -> str | None:
    for label, names in families:
        if deps & names:
            return label
    return None


def analyze_project(project_path: str | Path, estimated_qps: int = 100,
                    estimated_users: int = 1000) -> ProjectProfile:
    """Infer a ProjectProfile from the files in *project_path*."""
    project = Path(project_path)
    dependencies = _package_json_deps(project)
    for name in _requirements_deps(project):
        if name not in dependencies:
            dependencies.append(name)
    deps = set(dependencies)

    database = _first_family(deps, _DATABASES)
    cache = _first_family(deps, _CACHES)
    queue = _first_family(deps, _QUEUES)

    return ProjectProfile(
        has_database=database is not None,
        database_type=database,
        has_cache=cache is not None,
        cache_type=cache,
        has_message_queue=queue is not None,
        queue_type=queue,
        has_docker=(project / "Dockerfile").exists() or (project / "docker-compose.yml").exists(),
        has_kubernetes=(project / "k8s").exists() or (project / "kubernetes").exists(),
        estimated_qps=estimated_qps,
        estimated_users=estimated_users,
        dependencies=dependencies,
        has_rate_limiting=bool(deps & _RATE_LIMITERS),
        has_circuit_breaker=bool(deps & _CIRCUIT_BREAKERS),
        has_async_processing=bool(deps & _ASYNC_WORKERS),
    )


# ---------------------------------------------------------------------------
# Critiques
# ---------------------------------------------------------------------------


def generate_critiques(profile: ProjectProfile) -> list[ArchitectureCritique]:
    critiques: list[ArchitectureCritique] = []

    if not profile.has_cache and profile.estimated_qps > _CACHE_QPS:
        critiques.append(ArchitectureCritique(
            severity="critical",
            title="No Caching Layer Detected",
            concern=f"No cache detected but architecture suggests "
                    f"{profile.estimated_qps}+ QPS potential",
            breaks_at=ScaleThreshold(qps=500),
            recommendation="Add Redis caching with appropriate TTL for frequently accessed data",
            rationale="Caching reduces database load by 80-90% for read-heavy workloads",
        ))

    if not profile.has_rate_limiting:
        critiques.append(ArchitectureCritique(
            severity="warning",
            title="No Rate Limiting Detected",
            concern="APIs are vulnerable to abuse and DDoS without rate limiting",
            breaks_at=ScaleThreshold(qps=1000),
            recommendation="Implement rate limiting at API gateway or application level",
            rationale="Rate limiting protects against abuse and ensures fair resource distribution",
        ))

    if not profile.has_circuit_breaker and len(profile.dependencies) > _CIRCUIT_BREAKER_DEPS:
        critiques.append(ArchitectureCritique(
            severity="warning",
            title="No Circuit Breaker Pattern",
            concern="External service failures can cascade through the system",
            breaks_at=ScaleThreshold(connections=100),
            recommendation="Implement circuit breakers for all external service calls",
            rationale="Circuit breakers prevent cascading failures and improve resilience",
        ))

    if not profile.has_async_processing and not profile.has_message_queue:
        critiques.append(ArchitectureCritique(
            severity="suggestion",
            title="No Async Processing Detected",
            concern="Long-running tasks may block API responses",
            breaks_at=ScaleThreshold(users=10000),
            recommendation="Add a background job queue (BullMQ, Celery) for long-running work",
            rationale="Async processing keeps APIs responsive under load",
        ))

    if profile.database_type == "MongoDB":
        critiques.append(ArchitectureCritique(
            severity="warning",
            title="MongoDB Scalability Planning",
            concern="MongoDB requires sharding strategy for large datasets",
            breaks_at=ScaleThreshold(data_size="100GB", users=100000),
            recommendation="Plan sharding key and strategy before hitting 100GB",
            rationale="Retroactive sharding is extremely difficult and risky",
        ))

    if not profile.has_docker:
        critiques.append(ArchitectureCritique(
            severity="suggestion",
            title="No Containerization",
            concern="Deployment consistency and scaling will be challenging",
            breaks_at=ScaleThreshold(users=50000),
            recommendation="Add Dockerfile for consistent deployments",
            rationale="Containers ensure consistent environments and enable horizontal scaling",
        ))

    return critiques


def project_growth_phases(profile: ProjectProfile) -> list[GrowthPhase]:
    """Growth phases annotated with this project's missing pieces.

    Works on deep copies; GROWTH_PHASES itself is never modified.
    """
    phases = [copy.deepcopy(p) for p in GROWTH_PHASES]
    if not profile.has_cache:
        phases[1].bottlenecks.append("No caching - database overload")
        phases[1].changes_needed.append("Add Redis caching immediately")
    if not profile.has_message_queue:
        phases[2].bottlenecks.append("Synchronous processing bottleneck")
        phases[2].changes_needed.append("Add message queue for async tasks")
    if not profile.has_kubernetes:
        phases[3].bottlenecks.append("Manual scaling limitations")
        phases[3].changes_needed.append("Migrate to Kubernetes for auto-scaling")
    return phases


def detect_blind_spots(profile: ProjectProfile) -> list[BlindSpot]:
    blind_spots = [copy.copy(b) for b in COMMON_BLIND_SPOTS]
    if profile.database_type == "MongoDB" and not profile.has_cache:
        blind_spots.append(BlindSpot(
            title="MongoDB Read Amplification",
            likelihood=0.85,
            impact="high",
            description="Without caching, MongoDB will face read amplification at scale",
            prevention="Implement read-through caching pattern with Redis",
        ))
    if not profile.has_circuit_breaker and len(profile.dependencies) > _DEPENDENCY_CHAIN_DEPS:
        blind_spots.append(BlindSpot(
            title="Dependency Chain Failure",
            likelihood=0.90,
            impact="critical",
            description="Many dependencies increase risk of cascading failures",
            prevention="Implement circuit breakers and fallback strategies",
        ))
    return blind_spots


def validate_tech_stack(profile: ProjectProfile) -> list[TechStackIssue]:
    issues: list[TechStackIssue] = []
    if not profile.has_database and len(profile.dependencies) > _UNTRACKED_DATABASE_DEPS:
        issues.append(TechStackIssue(
            component="Database",
            issue="No database detected for a non-trivial application",
            severity="warning",
            recommendation="Ensure data persistence strategy is intentional",
        ))
    if profile.has_kubernetes and not profile.has_docker:
        issues.append(TechStackIssue(
            component="Deployment",
            issue="Kubernetes config found but no Dockerfile",
            severity="critical",
            recommendation="Add Dockerfile to enable Kubernetes deployment",
        ))
    return issues


# ---------------------------------------------------------------------------
# Assessment
# ---------------------------------------------------------------------------


def generate_assessment(critiques: list[ArchitectureCritique],
                        blind_spots: list[BlindSpot],
                        tech_stack_issues: list[TechStackIssue]) -> SkepticalAssessment:
    """Score the findings and pick a recommendation."""
    severities = [c.severity for c in critiques] + [t.severity for t in tech_stack_issues]
    critical = severities.count("critical")
    warnings = severities.count("warning")
    high_impact = sum(1 for b in blind_spots if b.impact in ("critical", "high"))

    if critical > 0:
        recommendation = "stop-and-fix"
    elif warnings > 2 or high_impact > 3:
        recommendation = "proceed-with-caution"
    else:
        recommendation = "proceed"

    return SkepticalAssessment(
        readiness_score=max(0, 100 - critical * 20 - warnings * 10),
        scalability_score=max(0, 100 - critical * 25 - warnings * 15),
        architecture_score=max(0, 100 - high_impact * 10 - len(tech_stack_issues) * 5),
        recommendation=recommendation,
    )


def run_skeptical_analysis(project_path: str | Path, estimated_qps: int = 100,
                           estimated_users: int = 1000) -> SkepticalReport:
    """Full layer-2 analysis of *project_path*."""
    log.info("Running skeptical reasoning analysis...")
    profile = analyze_project(project_path, estimated_qps, estimated_users)
    critiques = generate_critiques(profile)
    blind_spots = detect_blind_spots(profile)
    tech_stack_issues = validate_tech_stack(profile)
    report = SkepticalReport(
        timestamp=utc_now(),
        assessment=generate_assessment(critiques, blind_spots, tech_stack_issues),
        critiques=critiques,
        growth_phases=project_growth_phases(profile),
        blind_spots=blind_spots,
        tech_stack_issues=tech_stack_issues,
    )
    log.info("Skeptical recommendation: %s", report.assessment.recommendation)
    return report
