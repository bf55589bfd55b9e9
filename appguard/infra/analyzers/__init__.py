"""Package analyzers.

Each analyzer implements :class:`~appguard.infra.analyzers.base.Analyzer`
and reports into a shared
:class:`~appguard.application.collector.FindingCollector`.

Modules
-------
malware : Dangerous-construct signatures
tenancy : Tenant-isolation violations
dependencies : Vulnerable composer/npm dependencies
configuration : Dangerous permissions and iframe sandboxing
ai : AI semantic review and package narrative
"""
from __future__ import annotations

from .ai import NARRATIVE_PLACEHOLDER, AiSemanticAnalyzer, parse_ai_response
from .base import Analyzer, PatternScanner, ScanTarget
from .configuration import ConfigurationAuditor
from .dependencies import DependencyScanner
from .malware import MalwareScanner
from .tenancy import TenancyScanner

__all__ = [
    "Analyzer",
    "PatternScanner",
    "ScanTarget",
    "MalwareScanner",
    "TenancyScanner",
    "DependencyScanner",
    "ConfigurationAuditor",
    "AiSemanticAnalyzer",
    "NARRATIVE_PLACEHOLDER",
    "parse_ai_response",
]
