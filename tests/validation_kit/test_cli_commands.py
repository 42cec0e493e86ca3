"""Tests for the validation-kit CLI command handlers."""

# pylint: disable=missing-class-docstring,missing-function-docstring

from __future__ import annotations

import argparse
import json
import subprocess
from pathlib import Path
from typing import Any
from unittest.mock import patch

import pytest

from validation_kit.__main__ import (
    cmd_cleanup,
    cmd_init,
    cmd_learn,
    cmd_metrics,
    cmd_validate,
    main,
)
from validation_kit.db import init_db, insert_failures
from validation_kit.models import FailureRecord

TS_ERROR = "src/a.ts(3,5): error TS2304: Cannot find name 'x'."


def _proc(returncode: int = 0, stdout: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args="cmd", returncode=returncode, stdout=stdout, stderr="")


def _validate_args(project: Path, **overrides: Any) -> argparse.Namespace:
    values: dict[str, Any] = {
        "project": str(project),
        "config": None,
        "validator": "typescript",
        "layer": "code",
        "fix": False,
        "all": False,
        "sparse": False,
        "qps": None,
        "users": None,
        "output": "text",
        "ci": False,
    }
    values.update(overrides)
    return argparse.Namespace(**values)


# ---------------------------------------------------------------------------
# validate
# ---------------------------------------------------------------------------


class TestCmdValidate:
    def test_missing_project(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        assert cmd_validate(_validate_args(tmp_path / "nope")) == 1
        assert "Project directory not found" in capsys.readouterr().err

    def test_text_output(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("validation_kit.engine.run_command", return_value=_proc(0, "")):
            assert cmd_validate(_validate_args(tmp_path)) == 0
        captured = capsys.readouterr()
        assert "VALIDATION REPORT" in captured.err
        assert captured.out == ""

    def test_failure_exit_code_only_in_ci(self, tmp_path: Path) -> None:
        with patch("validation_kit.engine.run_command", return_value=_proc(2, TS_ERROR)):
            assert cmd_validate(_validate_args(tmp_path)) == 0
            assert cmd_validate(_validate_args(tmp_path, ci=True)) == 1

    def test_json_output(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        with patch("validation_kit.engine.run_command", return_value=_proc(0, "")):
            cmd_validate(_validate_args(tmp_path, output="json", layer="all"))
        data = json.loads(capsys.readouterr().out)
        assert data["validation"]["status"] == "passed"
        assert data["skeptical"]["assessment"]["recommendation"]
        assert len(data["reports"]) == 2
        assert data["exit_code"] == 0

    def test_markdown_skeptical(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        cmd_validate(_validate_args(tmp_path, layer="skeptical", output="markdown", qps=500))
        assert "# Skeptical Reasoning Report" in capsys.readouterr().err


# ---------------------------------------------------------------------------
# learn
# ---------------------------------------------------------------------------


class TestCmdLearn:
    def test_no_db(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        args = argparse.Namespace(project=str(tmp_path), config=None, fix=False, json=False)
        assert cmd_learn(args) == 1
        assert "No learning data found" in capsys.readouterr().err

    def test_json_report(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        conn = init_db(tmp_path / ".validation")
        insert_failures(conn, [FailureRecord("a", "2024-01-01T00:00:00.000+00:00",
                                             "eslint", "E", "boom")])
        conn.close()
        args = argparse.Namespace(project=str(tmp_path), config=None, fix=False, json=True)
        assert cmd_learn(args) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["metrics"]["total_failures"] == 1
        assert "fixes" not in data
        saved = list((tmp_path / ".validation" / "reports").glob("learning-*.json"))
        assert len(saved) == 1


# ---------------------------------------------------------------------------
# cleanup / metrics
# ---------------------------------------------------------------------------


class TestCmdCleanupAndMetrics:
    def test_cleanup_text(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        args = argparse.Namespace(project=str(tmp_path), config=None, json=False)
        assert cmd_cleanup(args) == 0
        assert "CONTEXT OPTIMIZATION REPORT" in capsys.readouterr().err

    def test_metrics_json(self, tmp_path: Path, capsys: pytest.CaptureFixture[str]) -> None:
        vdir = tmp_path / ".validation"
        vdir.mkdir()
        (vdir / "config.json").write_text("{}")
        args = argparse.Namespace(project=str(tmp_path), config=None, json=True)
        assert cmd_metrics(args) == 0
        data = json.loads(capsys.readouterr().out)
        assert data["active_size"] == 2
        assert data["cleanup_due"] is False


# ---------------------------------------------------------------------------
# init
# ---------------------------------------------------------------------------


class TestCmdInit:
    def test_scaffold(self, tmp_path: Path) -> None:
        (tmp_path / "package.json").write_text(json.dumps(
            {"name": "app", "scripts": {"validate": "custom"}}))
        assert cmd_init(argparse.Namespace(project=str(tmp_path), force=False)) == 0
        vdir = tmp_path / ".validation"
        assert (vdir / "reports").is_dir()
        assert (vdir / "archive").is_dir()
        assert "learning.db" in (vdir / ".gitignore").read_text()
        config = json.loads((vdir / "config.json").read_text())
        assert config["version"] == "1.0.0"
        scripts = json.loads((tmp_path / "package.json").read_text())["scripts"]
        assert scripts["validate"] == "custom"
        assert scripts["validate:learn"] == "validation-kit learn"
        assert len(scripts) == 5

    def test_already_initialized(self, tmp_path: Path,
                                 capsys: pytest.CaptureFixture[str]) -> None:
        args = argparse.Namespace(project=str(tmp_path), force=False)
        cmd_init(args)
        config_path = tmp_path / ".validation" / "config.json"
        config_path.write_text("{}")
        capsys.readouterr()
        assert cmd_init(args) == 0
        assert "already initialized" in capsys.readouterr().err
        assert config_path.read_text() == "{}"

    def test_force_overwrites(self, tmp_path: Path) -> None:
        cmd_init(argparse.Namespace(project=str(tmp_path), force=False))
        config_path = tmp_path / ".validation" / "config.json"
        config_path.write_text("{}")
        cmd_init(argparse.Namespace(project=str(tmp_path), force=True))
        assert "version" in json.loads(config_path.read_text())


class TestMain:
    def test_no_command_prints_help(self, capsys: pytest.CaptureFixture[str]) -> None:
        assert main([]) == 1
        assert "validation-kit" in capsys.readouterr().out

    def test_dispatch(self, tmp_path: Path) -> None:
        assert main(["--project", str(tmp_path), "init"]) == 0
        assert (tmp_path / ".validation" / "config.json").exists()
