"""Consensus engine -- combine validator votes into flags, a score and a status.

An issue reported by several validators, or by validators whose combined
weight clears the single-validator threshold, is "flagged by consensus".
Only flagged issues cost points:

  score = passed_weight / total_weight * 100
          - 10 per flagged critical - 5 per flagged high

Rounded half-up and floored at 0.
"""

from __future__ import annotations

import logging
import math

from .models import (
    ConsensusConfig,
    ConsensusIssue,
    ValidationResult,
    ValidationSummary,
    ValidatorConfig,
)

log = logging.getLogger(__name__)

CRITICAL_DEDUCTION = 10
HIGH_DEDUCTION = 5


# ---------------------------------------------------------------------------
# Consensus
# ---------------------------------------------------------------------------


def apply_consensus(results: list[ValidationResult],
                    consensus: ConsensusConfig) -> list[ConsensusIssue]:
    """Group identical issues across validators and flag the agreed ones.

    Issues keep first-seen order. A validator reporting the same issue
    twice counts twice, as the tools themselves do.
    """
    by_key: dict[str, ConsensusIssue] = {}
    for result in results:
        for issue in result.issues:
            key = issue.consensus_key()
            existing = by_key.get(key)
            if existing is None:
                by_key[key] = ConsensusIssue(
                    issue=issue,
                    validators=[result.validator],
                    combined_weight=result.weight,
                )
            else:
                existing.validators.append(result.validator)
                existing.combined_weight += result.weight

    for ci in by_key.values():
        ci.flagged_by_consensus = (
            len(ci.validators) >= consensus.min_validators_to_flag
            or ci.combined_weight >= consensus.single_validator_threshold
        )
    return list(by_key.values())


# ---------------------------------------------------------------------------
# Scoring
# ---------------------------------------------------------------------------


def _scored(results: list[ValidationResult]) -> list[ValidationResult]:
    """Results that count towards the score.

    Validators skipped by sparse debate were never asked, so they neither
    add nor remove weight.
    """
    return [r for r in results if not r.metadata.get("sparse_skipped")]


def calculate_score(results: list[ValidationResult],
                    consensus_issues: list[ConsensusIssue]) -> int:
    """Weighted pass ratio minus consensus deductions, 0-100."""
    scored = _scored(results)
    total_weight = sum(r.weight for r in scored)
    if total_weight <= 0:
        return 0
    passed_weight = sum(r.weight for r in scored if r.status == "passed")
    base = passed_weight / total_weight * 100

    flagged = [ci for ci in consensus_issues if ci.flagged_by_consensus]
    critical = sum(1 for ci in flagged if ci.issue.severity == "critical")
    high = sum(1 for ci in flagged if ci.issue.severity == "high")
    deduction = critical * CRITICAL_DEDUCTION + high * HIGH_DEDUCTION

    return max(0, math.floor(base - deduction + 0.5))


def determine_status(results: list[ValidationResult],
                     consensus_issues: list[ConsensusIssue],
                     validators: dict[str, ValidatorConfig]) -> str:
    """Overall status: failed > error > passed.

    A failed required validator or a consensus-flagged critical issue
    fails the run. Otherwise any validator error makes it `error`.
    """
    for r in results:
        cfg = validators.get(r.validator)
        if cfg is not None and cfg.required and r.status == "failed":
            return "failed"
    if any(ci.flagged_by_consensus and ci.issue.severity == "critical"
           for ci in consensus_issues):
        return "failed"
    if any(r.status == "error" for r in results):
        return "error"
    return "passed"


def summarize_results(results: list[ValidationResult]) -> ValidationSummary:
    """Count validator outcomes and issue severities."""
    issues = [i for r in results for i in r.issues]
    return ValidationSummary(
        total_validators=len(results),
        passed=sum(1 for r in results if r.status == "passed"),
        failed=sum(1 for r in results if r.status == "failed"),
        skipped=sum(1 for r in results if r.status == "skipped"),
        errors=sum(1 for r in results if r.status == "error"),
        total_issues=len(issues),
        critical_issues=sum(1 for i in issues if i.severity == "critical"),
        high_issues=sum(1 for i in issues if i.severity == "high"),
    )
