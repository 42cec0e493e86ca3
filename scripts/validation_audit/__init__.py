"""Validation audit -- evidence-based codebase audit and SDK guardrails.

Layer 6 (audit): depcheck, ts-prune, unimported, jscpd and madge findings,
each backed by the tool output that produced it, scored by confidence.
Layer 7 (guardrails): flags code that touches fields or endpoints that
are not in a verified schema.

Modules:
  - models: Finding, Evidence, AuditReport, AuditConfig, KeepList, CleanupPlan
  - tools: Tool runners and pure output parsers
  - engine: Audit orchestration, exclusions, keep list, confidence scoring
  - report: Console/markdown reports, cleanup plan and script
  - guardrails: Verified-schema checks over source files
"""

from __future__ import annotations

__version__ = "1.0.0"
