"""Tests for validation_audit.tools -- parsers and tool runners."""

from __future__ import annotations

import json
import os
import subprocess
import time
from pathlib import Path
from unittest.mock import patch

import pytest

from validation_audit.tools import (
    ToolFailure,
    find_stale_files,
    parse_depcheck,
    parse_jscpd,
    parse_madge,
    parse_ts_prune,
    parse_unimported,
    run_depcheck,
    run_jscpd,
    run_madge,
)

TS = "2024-01-01T00:00:00.000+00:00"


def _proc(returncode: int = 0, stdout: str = "", stderr: str = "") -> subprocess.CompletedProcess[str]:
    return subprocess.CompletedProcess(args="npx", returncode=returncode,
                                       stdout=stdout, stderr=stderr)


# ---------------------------------------------------------------------------
# Parsers
# ---------------------------------------------------------------------------


def test_depcheck_sections_and_confidence() -> None:
    """Runtime dependencies score higher than devDependencies."""
    out = json.dumps({"dependencies": ["lodash"], "devDependencies": ["jest"], "missing": {}})
    found = parse_depcheck(out, TS, 255)
    assert [(c.target, c.base_confidence) for c in found] == [("lodash", 85), ("jest", 80)]
    assert found[0].evidence[0].output == "Unused dependency: lodash"
    assert found[0].evidence[0].exit_code == 255
    assert found[1].metadata == {"section": "devDependencies"}


def test_depcheck_invalid_json() -> None:
    with pytest.raises(ToolFailure, match="invalid JSON"):
        parse_depcheck("not json", TS)
    with pytest.raises(ToolFailure):
        parse_depcheck("[]", TS)


def test_ts_prune_skips_used_in_module() -> None:
    out = (
        "src/utils.ts:10 - formatDate\n"
        "src/api.ts:3 - Client (used in module)\n"
        "garbage line\n"
    )
    found = parse_ts_prune(out, TS)
    assert len(found) == 1
    assert found[0].target == "src/utils.ts:10"
    assert found[0].metadata == {"file": "src/utils.ts", "export_name": "formatDate",
                                 "line_number": 10}
    assert found[0].base_confidence == 75


def test_unimported_table_rows() -> None:
    out = (
        "summary               unimported v1.31.0\n"
        "       unresolved imports : 0\n"
        "  1 | src/old.ts\n"
        "  2 | src/legacy/widget.jsx\n"
        "  3 | README.md\n"
    )
    found = parse_unimported(out, TS)
    assert [c.target for c in found] == ["src/old.ts", "src/legacy/widget.jsx"]
    assert all(c.type == "unused-file" for c in found)


def test_jscpd_duplicates() -> None:
    report = {"duplicates": [{
        "lines": 12, "tokens": 80,
        "firstFile": {"name": "src/a.ts", "start": 1, "end": 12},
        "secondFile": {"name": "src/b.ts", "start": 5, "end": 16},
    }]}
    found = parse_jscpd(report, TS)
    assert found[0].target == "src/a.ts <-> src/b.ts"
    assert "12 lines, 80 tokens" in found[0].evidence[0].output
    assert parse_jscpd({}, TS) == []


def test_madge_list_and_object_forms() -> None:
    cycles = [["a.ts", "b.ts"], []]
    found = parse_madge(json.dumps(cycles), TS)
    assert len(found) == 1
    assert found[0].target == "a.ts -> b.ts"
    assert found[0].evidence[0].output.endswith("a.ts -> b.ts -> a.ts")
    assert len(parse_madge(json.dumps({"circular": [["x", "y"]]}), TS)) == 1


@pytest.mark.parametrize("output", [
    '["a.ts"]',
    '{"circular": "a.ts"}',
    '"a.ts -> b.ts"',
])
def test_madge_wrong_shape(output: str) -> None:
    with pytest.raises(ToolFailure, match="madge"):
        parse_madge(output, TS)


@pytest.mark.parametrize("report", [[], "dupes", {"duplicates": {"lines": 3}}])
def test_jscpd_wrong_shape(report: object) -> None:
    with pytest.raises(ToolFailure, match="jscpd report"):
        parse_jscpd(report, TS)


def test_jscpd_skips_malformed_entries() -> None:
    report = {"duplicates": ["junk", {"lines": 10, "tokens": 50,
                                      "firstFile": "a", "secondFile": {"name": "b"}}]}
    found = parse_jscpd(report, TS)
    assert [c.target for c in found] == ["None <-> b"]


def test_depcheck_wrong_section_shape() -> None:
    with pytest.raises(ToolFailure, match="depcheck dependencies is not a list"):
        parse_depcheck(json.dumps({"dependencies": "lodash"}), TS)
    found = parse_depcheck(json.dumps({"dependencies": ["lodash", {"x": 1}]}), TS)
    assert [c.target for c in found] == ["lodash"]
    assert found[0].target == "a.ts -> b.ts"
    assert found[0].evidence[0].output.endswith("a.ts -> b.ts -> a.ts")
    assert len(parse_madge(json.dumps({"circular": [["x", "y"]]}), TS)) == 1


def test_stale_files(tmp_path: Path) -> None:
    src = tmp_path / "src"
    (src / "node_modules").mkdir(parents=True)
    now = time.time()
    old = now - 200 * 86400
    for rel in ("old.ts", "notes.md", "node_modules/dep.js"):
        path = src / rel
        path.write_text("x")
        os.utime(path, (old, old))
    (src / "fresh.ts").write_text("x")
    found = find_stale_files(tmp_path, 180, now=now)
    assert [c.target for c in found] == ["src/old.ts"]
    assert found[0].evidence[0].tool == "filesystem"
    assert found[0].base_confidence == 40


def test_stale_files_without_src(tmp_path: Path) -> None:
    assert find_stale_files(tmp_path, 180) == []


# ---------------------------------------------------------------------------
# Runners
# ---------------------------------------------------------------------------


def test_depcheck_nonzero_exit_is_parsed(tmp_path: Path) -> None:
    out = json.dumps({"dependencies": ["left-pad"], "devDependencies": []})
    with patch("validation_audit.tools.ensure_tool", return_value=True), \
            patch("validation_audit.tools.run_command", return_value=_proc(255, out)):
        found = run_depcheck(tmp_path)
    assert [c.target for c in found] == ["left-pad"]


def test_runner_tool_unavailable(tmp_path: Path) -> None:
    with patch("validation_audit.tools.ensure_tool", return_value=False), \
            patch("validation_audit.tools.run_command") as run:
        with pytest.raises(ToolFailure, match="not available"):
            run_madge(tmp_path)
    run.assert_not_called()


def test_runner_timeout(tmp_path: Path) -> None:
    with patch("validation_audit.tools.ensure_tool", return_value=True), \
            patch("validation_audit.tools.run_command",
                  side_effect=subprocess.TimeoutExpired("npx", 300)):
        with pytest.raises(ToolFailure, match="timed out"):
            run_depcheck(tmp_path)


def test_madge_empty_output(tmp_path: Path) -> None:
    with patch("validation_audit.tools.ensure_tool", return_value=True), \
            patch("validation_audit.tools.run_command", return_value=_proc(1, "", "boom")):
        with pytest.raises(ToolFailure, match="madge exited 1: boom"):
            run_madge(tmp_path)


def test_jscpd_reads_report_file(tmp_path: Path) -> None:
    """The report lands in the --output directory named on the command line."""
    report = {"duplicates": [{"lines": 10, "tokens": 50,
                              "firstFile": {"name": "a"}, "secondFile": {"name": "b"}}]}

    def fake_run(command: str, **_: object) -> subprocess.CompletedProcess[str]:
        parts = command.split()
        out_dir = Path(parts[parts.index("--output") + 1])
        (out_dir / "jscpd-report.json").write_text(json.dumps(report))
        return _proc(0)

    with patch("validation_audit.tools.ensure_tool", return_value=True), \
            patch("validation_audit.tools.run_command", side_effect=fake_run):
        found = run_jscpd(tmp_path)
    assert [c.target for c in found] == ["a <-> b"]


def test_jscpd_missing_report(tmp_path: Path) -> None:
    with patch("validation_audit.tools.ensure_tool", return_value=True), \
            patch("validation_audit.tools.run_command", return_value=_proc(0)):
        with pytest.raises(ToolFailure, match="without writing a report"):
            run_jscpd(tmp_path)


def test_jscpd_list_report_is_tool_failure(tmp_path: Path) -> None:
    def fake_run(command: str, **_: object) -> subprocess.CompletedProcess[str]:
        parts = command.split()
        out_dir = Path(parts[parts.index("--output") + 1])
        (out_dir / "jscpd-report.json").write_text("[]")
        return _proc(0)

    with patch("validation_audit.tools.ensure_tool", return_value=True), \
            patch("validation_audit.tools.run_command", side_effect=fake_run):
        with pytest.raises(ToolFailure, match="not an object"):
            run_jscpd(tmp_path)
