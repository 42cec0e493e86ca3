"""Validation kit -- project quality orchestration over external tools.

Runs existing static-analysis tools (tsc, eslint, jest, ...) via subprocess,
normalises their output into one issue model and scores it.
No external dependencies beyond Python stdlib + the wrapped CLIs.

Modules:
  - models: Data classes (ValidationIssue, ValidationReport, FailurePattern, ...)
  - config: Default validators/thresholds + .validation/config.json overrides
  - runner: Subprocess wrapper for validator and tool commands
  - parsers: Tool stdout/stderr -> ValidationIssue
  - consensus: Cross-validator consensus flagging and scoring
  - engine: Layer 1 -- run validators, build the validation report
  - skeptical: Layer 2 -- architecture critique heuristics
  - db / learning: Layer 3 -- failure history, patterns, auto-fix tracking
  - context: Layer 4 -- pruning, archival and compression of .validation/
  - reports: Report persistence and text/markdown rendering
  - pipeline: Layer orchestration shared by the CLI and library callers
"""

from __future__ import annotations

__version__ = "1.0.0"

VALIDATION_DIR = ".validation"
"""Per-project state directory (config, learning.db, reports, archive)."""
