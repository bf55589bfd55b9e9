"""Context-aware false-positive filter.

A finding is removed when any of these holds:

- its snippet matches one of the tenant-scoping idioms of the allow-list
  (tenant-scoped queries, tenant storage or cache, tenant accessors);
- its type is a framework-safe operation;
- its type is module-suppressed (``database_query``) and the submitting team
  already runs at least one module-style package.

The filter never edits a finding. It only partitions the input into kept
and removed, preserving order, so the policy can be tested on its own.
"""
from __future__ import annotations

from typing import Iterable, List, Optional, Tuple

from appguard.core.logging_config import get_logger
from appguard.core.models.schema import Finding, ScanContext
from appguard.rules import AllowlistPolicy, load_allowlist

logger = get_logger(__name__)


def suppression_reason(
    finding: Finding, context: ScanContext, policy: AllowlistPolicy
) -> Optional[str]:
    """Return why ``finding`` is a false positive, or None to keep it."""
    if policy.matches_idiom(finding.snippet):
        return "tenant_idiom"
    if finding.type in policy.framework_safe_types:
        return "framework_safe"
    if finding.type in policy.module_suppressed_types and any(
        pkg.type in policy.module_package_types for pkg in context.installed_packages
    ):
        return "module_environment"
    return None


def filter_false_positives(
    findings: Iterable[Finding],
    context: ScanContext,
    policy: Optional[AllowlistPolicy] = None,
) -> Tuple[List[Finding], List[Finding]]:
    """Split findings into ``(kept, removed)``.

    Parameters
    ----------
    findings : iterable of Finding
        Raw findings from every analyzer.
    context : ScanContext
        Tenant environment of the submitting team.
    policy : AllowlistPolicy, optional
        Defaults to the shipped ``allowlist.yaml``.
    """
    policy = policy or load_allowlist()
    kept: List[Finding] = []
    removed: List[Finding] = []
    for finding in findings:
        reason = suppression_reason(finding, context, policy)
        if reason is None:
            kept.append(finding)
        else:
            logger.debug("Suppressed %s in %s (%s)", finding.type, finding.file, reason)
            removed.append(finding)
    if removed:
        logger.info("False-positive filter removed %d of %d findings", len(removed), len(kept) + len(removed))
    return kept, removed


__all__ = ["suppression_reason", "filter_false_positives"]
