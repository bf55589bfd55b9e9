"""Tests for the risk scorer: deductions, clamping, precedence."""

from __future__ import annotations

import itertools

import pytest

from appguard.application.scoring import (
    assess,
    risk_level_from_counts,
    security_score,
    severity_histogram,
)
from appguard.core.models.schema import RiskLevel

from conftest import make_finding

SEVERITIES = ["low", "medium", "high", "critical"]


def _findings(*severities):
    return [make_finding(severity=s) for s in severities]


def test_no_findings_scores_100_low():
    result = assess([])
    assert result.score == 100
    assert result.risk_level == RiskLevel.LOW
    assert result.severity_counts == {"critical": 0, "high": 0, "medium": 0, "low": 0}


@pytest.mark.parametrize("severity,expected", [
    ("critical", 75),
    ("high", 85),
    ("medium", 92),
    ("low", 97),
])
def test_single_deduction(severity, expected):
    assert security_score(_findings(severity)) == expected


def test_score_clamped_at_zero():
    assert security_score(_findings(*["critical"] * 5)) == 0


def test_adding_a_finding_never_increases_score():
    for size in range(0, 4):
        for combo in itertools.product(SEVERITIES, repeat=size):
            base = security_score(_findings(*combo))
            for extra in SEVERITIES:
                assert security_score(_findings(*combo, extra)) <= base


def test_one_critical_dominates_any_amount_of_lower_findings():
    for lows, mediums in itertools.product(range(0, 6), range(0, 6)):
        findings = _findings("critical", *["low"] * lows, *["medium"] * mediums)
        assert assess(findings).risk_level == RiskLevel.CRITICAL


def test_more_than_two_high_is_critical():
    assert assess(_findings("high", "high")).risk_level == RiskLevel.HIGH
    assert assess(_findings("high", "high", "high")).risk_level == RiskLevel.CRITICAL


def test_medium_boundary():
    assert assess(_findings(*["medium"] * 3)).risk_level == RiskLevel.MEDIUM
    assert assess(_findings(*["medium"] * 4)).risk_level == RiskLevel.HIGH


def test_lows_alone_stay_low():
    assert assess(_findings(*["low"] * 20)).risk_level == RiskLevel.LOW


def test_three_medium_dependency_findings():
    findings = [make_finding(type="vulnerable_dependency", severity="medium") for _ in range(3)]
    result = assess(findings)
    assert result.risk_level == RiskLevel.MEDIUM
    assert result.score == 76


def test_histogram_counts_each_severity():
    counts = severity_histogram(_findings("low", "low", "high", "critical"))
    assert counts == {"critical": 1, "high": 1, "medium": 0, "low": 2}


def test_risk_level_from_counts_ignores_missing_keys():
    assert risk_level_from_counts({}) == RiskLevel.LOW
    assert risk_level_from_counts({"medium": 1}) == RiskLevel.MEDIUM
