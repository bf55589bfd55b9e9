"""Malware and dangerous-construct signature scanner."""
from __future__ import annotations

from typing import Optional

from appguard.rules import PatternTable, load_pattern_table
from .base import PatternScanner


class MalwareScanner(PatternScanner):
    """Flags dynamic evaluation, shell invocation, remote inclusion and obfuscation."""

    def __init__(self, table: Optional[PatternTable] = None, **kwargs) -> None:
        super().__init__(table or load_pattern_table("malware"), **kwargs)

    @property
    def name(self) -> str:
        return "malware"
