"""Remediation guidance.

Guidance is assembled in a fixed order and deduplicated, keeping the first
occurrence:

1. recommendations returned by the AI analyzer;
2. the baseline guidance of ``recommendations.yaml``;
3. context notes (peer-package compatibility, tier resource limits);
4. one template per distinct known finding type, in order of first
   appearance. Unknown types add nothing.
"""
from __future__ import annotations

from typing import Iterable, List, Optional

from appguard.core.models.schema import Finding, ScanContext
from appguard.rules import RecommendationTable, load_recommendations


def dedupe(items: Iterable[str]) -> List[str]:
    seen = set()
    out: List[str] = []
    for item in items:
        text = item.strip()
        if text and text not in seen:
            seen.add(text)
            out.append(text)
    return out


def context_notes(context: ScanContext, table: RecommendationTable) -> List[str]:
    notes: List[str] = []
    if context.installed_packages:
        names = ", ".join(pkg.name for pkg in context.installed_packages)
        notes.append(table.installed_packages.format(names=names))
    tier = context.tier
    if tier and tier in table.tiers:
        notes.append(table.tiers[tier])
    return notes


def type_guidance(findings: Iterable[Finding], table: RecommendationTable) -> List[str]:
    guidance: List[str] = []
    for finding_type in dedupe(f.type for f in findings):
        template = table.by_type.get(finding_type)
        if template:
            guidance.append(template)
    return guidance


def build_recommendations(
    findings: Iterable[Finding],
    context: ScanContext,
    ai_recommendations: Iterable[str] = (),
    table: Optional[RecommendationTable] = None,
) -> List[str]:
    table = table or load_recommendations()
    findings = list(findings)
    return dedupe([
        *ai_recommendations,
        *table.baseline,
        *context_notes(context, table),
        *type_guidance(findings, table),
    ])


__all__ = ["dedupe", "context_notes", "type_guidance", "build_recommendations"]
