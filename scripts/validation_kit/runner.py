"""Subprocess wrappers for validator and analysis-tool commands.

Validator commands come from configuration as shell strings (they may use
`||` fallbacks), so they run through the shell. Non-zero exits are normal
for linters and are returned, not raised.
"""

from __future__ import annotations

import logging
import os
import subprocess
from pathlib import Path

log = logging.getLogger(__name__)

_PROBE_TIMEOUT = 60.0      # seconds for `npx <tool> --version`
_INSTALL_TIMEOUT = 300.0   # seconds for `npm install -g <tool>`


def _tool_env() -> dict[str, str]:
    """Environment for wrapped tools: inherit, but disable ANSI colours."""
    env = dict(os.environ)
    env["FORCE_COLOR"] = "0"
    return env


def run_command(command: str, *, cwd: str | Path,
                timeout: float | None = None) -> subprocess.CompletedProcess[str]:
    """Run a shell command in *cwd* and capture its output.

    Never raises on a non-zero exit code. `subprocess.TimeoutExpired` and
    `OSError` (e.g. missing cwd) propagate to the caller.
    """
    log.debug("$ %s (cwd=%s, timeout=%s)", command, cwd, timeout)
    result = subprocess.run(
        command,
        shell=True,
        cwd=str(cwd),
        capture_output=True,
        text=True,
        timeout=timeout,
        env=_tool_env(),
        check=False,
    )
    log.debug("exit %d: %s", result.returncode, command)
    return result


def ensure_tool(tool: str, cwd: str | Path) -> bool:
    """Make sure `npx <tool>` works, installing it globally if needed.

    Returns True when the tool is usable afterwards.
    """
    try:
        probe = run_command(f"npx {tool} --version", cwd=cwd, timeout=_PROBE_TIMEOUT)
        if probe.returncode == 0:
            return True
        log.info("Installing %s...", tool)
        install = run_command(f"npm install -g {tool}", cwd=cwd, timeout=_INSTALL_TIMEOUT)
    except (subprocess.TimeoutExpired, OSError) as exc:
        log.warning("Could not provision %s: %s", tool, exc)
        return False
    if install.returncode != 0:
        log.warning("npm install -g %s failed: %s", tool, install.stderr.strip()[:200])
        return False
    return True
