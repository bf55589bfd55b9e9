"""Infrastructure layer for AppGuard.

This package contains the infrastructure implementations: database access,
the package registry, the AI transport and the analyzers.
"""
from __future__ import annotations

__all__ = []
