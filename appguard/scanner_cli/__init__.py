from __future__ import annotations

"""Command-line interface for AppGuard.

This package provides the CLI application built with Typer.

Modules
-------
cli : Main CLI implementation

Examples
--------
Run from command line:
    $ python -m appguard scan ./uploads/crm-app.zip

See Also
--------
appguard.application.orchestrator : Pipeline orchestration
"""

from .cli import app

__all__ = ["app"]
