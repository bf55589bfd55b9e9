"""Core domain logic for AppGuard.

This package contains the domain models, exceptions and logging
configuration shared by every other layer.
"""
from __future__ import annotations

from .exceptions import (
    AppGuardError,
    AiParseError,
    AiTransportError,
    ConfigurationError,
    ContextLookupError,
    DatabaseError,
    ExtractionError,
    ManifestParseError,
    RegistryError,
    RuleTableError,
    ValidationError,
)

__all__ = [
    "AppGuardError",
    "AiParseError",
    "AiTransportError",
    "ConfigurationError",
    "ContextLookupError",
    "DatabaseError",
    "ExtractionError",
    "ManifestParseError",
    "RegistryError",
    "RuleTableError",
    "ValidationError",
]
