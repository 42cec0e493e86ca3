"""Tests for validation_kit.skeptical -- architecture heuristics."""

# pylint: disable=missing-class-docstring,missing-function-docstring

from __future__ import annotations

import json
import logging
from pathlib import Path

import pytest

from validation_kit.config import COMMON_BLIND_SPOTS, GROWTH_PHASES
from validation_kit.models import ArchitectureCritique, BlindSpot, ProjectProfile, ScaleThreshold
from validation_kit.skeptical import (
    analyze_project,
    detect_blind_spots,
    generate_assessment,
    generate_critiques,
    project_growth_phases,
    run_skeptical_analysis,
    validate_tech_stack,
)


def _package_json(project: Path, deps: dict[str, str], dev: dict[str, str] | None = None) -> None:
    (project / "package.json").write_text(json.dumps(
        {"name": "app", "dependencies": deps, "devDependencies": dev or {}}))


def _titles(items: list[ArchitectureCritique] | list[BlindSpot]) -> list[str]:
    return [i.title for i in items]


class TestAnalyzeProject:
    def test_empty_project(self, tmp_path: Path) -> None:
        profile = analyze_project(tmp_path)
        assert profile.has_database is False
        assert profile.dependencies == []
        assert profile.estimated_qps == 100

    def test_npm_dependencies(self, tmp_path: Path) -> None:
        _package_json(tmp_path, {"pg": "^8", "ioredis": "^5", "bullmq": "^4",
                                 "express-rate-limit": "^7"}, {"opossum": "^8"})
        profile = analyze_project(tmp_path, estimated_qps=700)
        assert profile.database_type == "PostgreSQL"
        assert profile.cache_type == "Redis"
        assert profile.queue_type == "Bull (Redis)"
        assert profile.has_rate_limiting is True
        assert profile.has_circuit_breaker is True
        assert profile.has_async_processing is True
        assert profile.estimated_qps == 700

    def test_requirements_txt(self, tmp_path: Path) -> None:
        (tmp_path / "requirements.txt").write_text(
            "# db\npsycopg2_binary==2.9\n-r base.txt\ncelery>=5  # workers\n")
        profile = analyze_project(tmp_path)
        assert profile.database_type == "PostgreSQL"
        assert profile.has_async_processing is True

    def test_docker_and_kubernetes(self, tmp_path: Path) -> None:
        (tmp_path / "Dockerfile").write_text("FROM node:20\n")
        (tmp_path / "k8s").mkdir()
        profile = analyze_project(tmp_path)
        assert profile.has_docker is True
        assert profile.has_kubernetes is True

    def test_broken_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("{oops")
        assert analyze_project(tmp_path).dependencies == []

    def test_non_object_package_json(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text("[]")
        assert analyze_project(tmp_path).dependencies == []

    def test_malformed_dependency_sections(self, tmp_path: Path,
                                           caplog: pytest.LogCaptureFixture) -> None:
        (tmp_path / "package.json").write_text(json.dumps(
            {"dependencies": ["react"], "devDependencies": {"ioredis": "^5"}}))
        with caplog.at_level(logging.WARNING, logger="validation_kit.skeptical"):
            profile = analyze_project(tmp_path)
        assert profile.dependencies == ["ioredis"]
        assert profile.has_cache is True
        assert "Ignoring dependencies" in caplog.text

    def test_undecodable_manifests(self, tmp_path: Path,
                                   caplog: pytest.LogCaptureFixture) -> None:
        (tmp_path / "package.json").write_bytes(b'{"dependencies": {"\xff": "1"}}')
        (tmp_path / "requirements.txt").write_bytes(b"celery\n\xff\xfe\n")
        with caplog.at_level(logging.WARNING, logger="validation_kit.skeptical"):
            profile = analyze_project(tmp_path)
        assert profile.dependencies == []
        assert "package.json" in caplog.text
        assert "requirements.txt" in caplog.text


class TestGenerateCritiques:
    def test_no_cache_critical_above_100_qps(self) -> None:
        critiques = generate_critiques(ProjectProfile(estimated_qps=101))
        assert critiques[0].title == "No Caching Layer Detected"
        assert critiques[0].severity == "critical"
        assert critiques[0].breaks_at == ScaleThreshold(qps=500)

    def test_no_cache_ok_at_100_qps(self) -> None:
        titles = _titles(generate_critiques(ProjectProfile(estimated_qps=100)))
        assert "No Caching Layer Detected" not in titles

    def test_circuit_breaker_needs_many_dependencies(self) -> None:
        few = ProjectProfile(dependencies=[f"d{i}" for i in range(10)])
        many = ProjectProfile(dependencies=[f"d{i}" for i in range(11)])
        assert "No Circuit Breaker Pattern" not in _titles(generate_critiques(few))
        assert "No Circuit Breaker Pattern" in _titles(generate_critiques(many))

    def test_mongodb_sharding(self) -> None:
        profile = ProjectProfile(has_database=True, database_type="MongoDB")
        assert "MongoDB Scalability Planning" in _titles(generate_critiques(profile))

    def test_well_equipped_project(self) -> None:
        profile = ProjectProfile(has_cache=True, has_rate_limiting=True, has_docker=True,
                                 has_async_processing=True, estimated_qps=1000)
        assert generate_critiques(profile) == []


class TestGrowthPhases:
    def test_annotates_copies_only(self) -> None:
        before = [list(p.bottlenecks) for p in GROWTH_PHASES]
        phases = project_growth_phases(ProjectProfile())
        assert "No caching - database overload" in phases[1].bottlenecks
        assert "Synchronous processing bottleneck" in phases[2].bottlenecks
        assert "Manual scaling limitations" in phases[3].bottlenecks
        assert [list(p.bottlenecks) for p in GROWTH_PHASES] == before

    def test_nothing_added_when_equipped(self) -> None:
        profile = ProjectProfile(has_cache=True, has_message_queue=True, has_kubernetes=True)
        phases = project_growth_phases(profile)
        assert phases[1].bottlenecks == GROWTH_PHASES[1].bottlenecks


class TestBlindSpots:
    def test_common_always_present(self) -> None:
        assert len(detect_blind_spots(ProjectProfile())) == len(COMMON_BLIND_SPOTS)

    def test_mongodb_without_cache(self) -> None:
        profile = ProjectProfile(database_type="MongoDB")
        assert "MongoDB Read Amplification" in _titles(detect_blind_spots(profile))

    def test_dependency_chain(self) -> None:
        profile = ProjectProfile(dependencies=[f"d{i}" for i in range(16)])
        assert "Dependency Chain Failure" in _titles(detect_blind_spots(profile))


class TestTechStack:
    def test_kubernetes_without_docker(self) -> None:
        issues = validate_tech_stack(ProjectProfile(has_kubernetes=True))
        assert [i.severity for i in issues] == ["critical"]

    def test_no_database(self) -> None:
        issues = validate_tech_stack(ProjectProfile(dependencies=[f"d{i}" for i in range(6)]))
        assert issues[0].component == "Database"


class TestAssessment:
    def test_critical_stops(self) -> None:
        critique = generate_critiques(ProjectProfile(estimated_qps=500,
                                                     has_rate_limiting=True,
                                                     has_docker=True,
                                                     has_async_processing=True))
        assessment = generate_assessment(critique, [], [])
        assert assessment.recommendation == "stop-and-fix"
        assert assessment.readiness_score == 80
        assert assessment.scalability_score == 75

    def test_many_high_impact_blind_spots_caution(self) -> None:
        assessment = generate_assessment([], list(COMMON_BLIND_SPOTS), [])
        assert assessment.recommendation == "proceed-with-caution"
        assert assessment.architecture_score == 50

    def test_clean_proceeds(self) -> None:
        assessment = generate_assessment([], [], [])
        assert assessment.recommendation == "proceed"
        assert (assessment.readiness_score, assessment.scalability_score,
                assessment.architecture_score) == (100, 100, 100)

    def test_scores_floor_at_zero(self) -> None:
        critique = ArchitectureCritique("critical", "t", "c", ScaleThreshold(), "r", "r")
        assessment = generate_assessment([critique] * 6, [], [])
        assert assessment.readiness_score == 0
        assert assessment.scalability_score == 0


class TestRunSkepticalAnalysis:
    def test_empty_project_report(self, tmp_path: Path) -> None:
        report = run_skeptical_analysis(tmp_path)
        assert report.assessment.recommendation == "proceed-with-caution"
        assert len(report.growth_phases) == 4
        d = report.to_dict()
        assert set(d) == {"timestamp", "assessment", "critiques", "growth_phases",
                          "blind_spots", "tech_stack_issues"}
