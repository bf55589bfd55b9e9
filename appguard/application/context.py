"""Tenant context assembly.

Builds the immutable :class:`ScanContext` for one scan from the package
registry. This stage never fails a scan: a registry error yields a minimal
context and a ``context_lookup`` warning that ends up in the narrative.
"""
from __future__ import annotations

from typing import Optional

from appguard.core.exceptions import AppGuardError, ContextLookupError
from appguard.core.logging_config import get_logger
from appguard.core.models.schema import (
    IsolationArchitecture,
    Package,
    ScanContext,
    ScanWarning,
)
from appguard.infra.registry import PackageRegistry

logger = get_logger(__name__)


def build_context(
    package: Package,
    registry: Optional[PackageRegistry],
    platform_version: str = "1.0.0",
    isolation: Optional[IsolationArchitecture] = None,
) -> ScanContext:
    """Snapshot the submitting team's environment.

    Parameters
    ----------
    package : Package
        Package being scanned; only ``team_id`` is consulted.
    registry : PackageRegistry or None
        Source of team and installed-package data.
    platform_version : str
        Recorded on the context for the prompts.
    isolation : IsolationArchitecture, optional
        Defaults to full multi-database isolation.

    Returns
    -------
    ScanContext
        ``tenant_id`` is None and the installed list empty when the package
        has no team, the team is unknown, or the lookup failed.
    """
    isolation = isolation or IsolationArchitecture()
    minimal = ScanContext(isolation=isolation, platform_version=platform_version)

    if package.team_id is None or registry is None:
        return minimal

    try:
        team = registry.get_team(package.team_id)
        if team is None:
            logger.info("Team %s not found; scanning without tenant context", package.team_id)
            return minimal
        installed = registry.list_installed_packages(team.id)
    except Exception as e:
        cause = e.message if isinstance(e, AppGuardError) else str(e)
        error = ContextLookupError(package.team_id, cause)
        logger.warning("%s", error.message)
        warning = ScanWarning(stage="context", code="context_lookup", message=error.message)
        return minimal.model_copy(update={"warnings": (warning,)})

    return ScanContext(
        tenant_id=team.tenant_id,
        team=team,
        installed_packages=tuple(installed),
        isolation=isolation,
        platform_version=platform_version,
    )


__all__ = ["build_context"]
