"""Main entry point for running appguard as a module.

Examples
--------
$ python -m appguard --help
$ python -m appguard scan ./package.zip

See Also
--------
appguard.scanner_cli.cli : CLI implementation
"""
from __future__ import annotations

from .main import main


if __name__ == "__main__":
    main()
