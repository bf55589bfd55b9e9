from __future__ import annotations

"""Core data models for the package scanner.

This package contains the pydantic value objects passed through the
scanning pipeline and the ORM models used to persist results and read the
package registry.

Modules
-------
orm : SQLAlchemy ORM models
schema : Pydantic schema models

See Also
--------
appguard.infra.db : Database utilities
"""

from .schema import *
