"""Finding aggregation and risk scoring.

Pure functions over the post-filter finding multiset. The thresholds are
policy constants and are evaluated in a fixed precedence:

1. ``critical`` if any critical finding or more than 2 high findings
2. ``high`` if any high finding or more than 3 medium findings
3. ``medium`` if any medium finding
4. ``low`` otherwise

Examples
--------
>>> assess([]).score
100
"""
from __future__ import annotations

from dataclasses import dataclass
from typing import Dict, Iterable

from appguard.core.models.schema import SEVERITY_ORDER, Finding, RiskLevel, Severity

DEDUCTIONS: Dict[Severity, int] = {
    Severity.CRITICAL: 25,
    Severity.HIGH: 15,
    Severity.MEDIUM: 8,
    Severity.LOW: 3,
}

MAX_HIGH_BEFORE_CRITICAL = 2
MAX_MEDIUM_BEFORE_HIGH = 3


@dataclass(frozen=True)
class RiskAssessment:
    score: int
    risk_level: RiskLevel
    severity_counts: Dict[str, int]


def severity_histogram(findings: Iterable[Finding]) -> Dict[str, int]:
    counts = {severity.value: 0 for severity in SEVERITY_ORDER}
    for finding in findings:
        counts[Severity(finding.severity).value] += 1
    return counts


def security_score(findings: Iterable[Finding]) -> int:
    total = 100 - sum(DEDUCTIONS[Severity(f.severity)] for f in findings)
    return max(0, min(100, total))


def risk_level_from_counts(counts: Dict[str, int]) -> RiskLevel:
    critical = counts.get(Severity.CRITICAL.value, 0)
    high = counts.get(Severity.HIGH.value, 0)
    medium = counts.get(Severity.MEDIUM.value, 0)

    if critical > 0 or high > MAX_HIGH_BEFORE_CRITICAL:
        return RiskLevel.CRITICAL
    if high > 0 or medium > MAX_MEDIUM_BEFORE_HIGH:
        return RiskLevel.HIGH
    if medium > 0:
        return RiskLevel.MEDIUM
    return RiskLevel.LOW


def assess(findings: Iterable[Finding]) -> RiskAssessment:
    findings = list(findings)
    counts = severity_histogram(findings)
    return RiskAssessment(
        score=security_score(findings),
        risk_level=risk_level_from_counts(counts),
        severity_counts=counts,
    )


__all__ = [
    "DEDUCTIONS",
    "RiskAssessment",
    "severity_histogram",
    "security_score",
    "risk_level_from_counts",
    "assess",
]
