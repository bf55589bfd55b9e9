"""Tenant-isolation violation scanner.

Flags code that steps outside its tenant: central database connections,
database config overrides, cross-tenant execution, manual tenancy
initialisation and non-tenant storage, disk, cache or session access. Each
finding carries the rule's remediation.
"""
from __future__ import annotations

from typing import Optional

from appguard.rules import PatternTable, load_pattern_table
from .base import PatternScanner


class TenancyScanner(PatternScanner):

    def __init__(self, table: Optional[PatternTable] = None, **kwargs) -> None:
        super().__init__(table or load_pattern_table("tenancy"), **kwargs)

    @property
    def name(self) -> str:
        return "tenancy"
