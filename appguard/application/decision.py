"""Publish/block decision policy."""
from __future__ import annotations

from dataclasses import dataclass
from typing import FrozenSet, Iterable, Optional, Tuple

from appguard.core.models.schema import Finding, RiskLevel, ScanResult, ScanStatus, Severity

ALWAYS_BLOCKING_TYPES: FrozenSet[str] = frozenset({
    "malware_pattern",
    "command_injection",
    "sql_injection",
    "tenancy_violation",
})

CRITICAL_RISK_REASON = "critical_risk_level"
_SEVERE = {Severity.HIGH, Severity.CRITICAL}

SCAN_FAILURE_REASON = "automated_scan_failure"
SCAN_FAILURE_RECOMMENDATION = "Manual review required due to scan failure"
SCAN_FAILED_PREFIX = "Scan failed: "


@dataclass(frozen=True)
class Decision:
    status: ScanStatus
    blocked_reasons: Tuple[str, ...] = ()


def should_block(risk_level: RiskLevel, findings: Iterable[Finding]) -> bool:
    if risk_level == RiskLevel.CRITICAL:
        return True
    if risk_level == RiskLevel.HIGH:
        return any(f.type in ALWAYS_BLOCKING_TYPES for f in findings)
    return False


def blocked_reasons(risk_level: RiskLevel, findings: Iterable[Finding]) -> Tuple[str, ...]:
    """``critical_risk_level`` first when it applies, then sorted per-type reasons."""
    reasons = sorted({
        f"{f.type}_vulnerability" for f in findings if Severity(f.severity) in _SEVERE
    })
    if risk_level == RiskLevel.CRITICAL:
        reasons.insert(0, CRITICAL_RISK_REASON)
    return tuple(reasons)


def decide(risk_level: RiskLevel, findings: Iterable[Finding]) -> Decision:
    """Map a risk level and the filtered findings to pass or block.

    Blocks when the risk level is critical, or when it is high and at least
    one finding has an always-blocking type. The result depends only on the
    risk level and the finding types and severities.
    """
    findings = list(findings)
    if not should_block(risk_level, findings):
        return Decision(status=ScanStatus.PASSED)
    return Decision(status=ScanStatus.BLOCKED, blocked_reasons=blocked_reasons(risk_level, findings))


def failed_result(package_id: Optional[int], message: str) -> ScanResult:
    """Result of a scan that could not produce a decision; always needs a human."""
    return ScanResult(
        package_id=package_id,
        status=ScanStatus.FAILED,
        risk_level=RiskLevel.UNKNOWN,
        score=0,
        recommendations=(SCAN_FAILURE_RECOMMENDATION,),
        blocked_reasons=(SCAN_FAILURE_REASON,),
        ai_analysis=SCAN_FAILED_PREFIX + message,
    )


__all__ = [
    "ALWAYS_BLOCKING_TYPES",
    "CRITICAL_RISK_REASON",
    "SCAN_FAILURE_REASON",
    "SCAN_FAILURE_RECOMMENDATION",
    "SCAN_FAILED_PREFIX",
    "failed_result",
    "Decision",
    "should_block",
    "blocked_reasons",
    "decide",
]
