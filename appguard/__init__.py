"""AppGuard - security scanning pipeline for marketplace app packages.

AppGuard decides whether an uploaded third-party application package is safe
to publish on a multi-tenant marketplace. It extracts the untrusted archive,
runs rule-based and AI-assisted analyzers, suppresses findings that are
legitimate multi-tenant idioms, and produces a reproducible publish/block
decision with remediation guidance.

The package provides:
- Safe archive extraction with zip-slip protection
- Malware, tenant-isolation, dependency and configuration scanners
- AI semantic review through a pluggable text-completion client
- Risk scoring, decision and recommendation engines
- Database-backed result storage and package registry
- A typer CLI for scanning, rescanning and admin review

Examples
--------
Scan an archive from the command line:
    $ python -m appguard scan ./uploads/crm-app.zip --name "CRM"

Scan a registered package:
    $ python -m appguard scan-package 42

See Also
--------
appguard.application.orchestrator : Pipeline orchestration
appguard.scanner_cli.cli : Command-line interface
appguard.core : Core domain models and exceptions
"""
from __future__ import annotations

__version__ = "1.0.0"
__license__ = "MIT"

__all__ = ["__version__", "__license__"]
