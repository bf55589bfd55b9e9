"""Base classes for package analyzers.

Every analyzer receives the same :class:`ScanTarget` (extracted root, the
shared file walk, the package and its tenant context) and reports into a
:class:`~appguard.application.collector.FindingCollector`. Analyzers never
raise for bad input: unreadable files, malformed manifests and timeouts
become warnings on the collector.

Examples
--------
Implement a custom analyzer:

    >>> class TodoScanner(Analyzer):
    ...     @property
    ...     def name(self) -> str:
    ...         return 'todo'
    ...     def analyze(self, target, collector):
    ...         pass
"""
from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from pathlib import Path
from typing import List, Optional, Tuple

from appguard.application.collector import FindingCollector
from appguard.application.file import SourceFile
from appguard.application.pool import fan_out_processes
from appguard.core.logging_config import get_logger
from appguard.core.models.schema import Finding, Package, ScanContext
from appguard.rules import PatternTable

logger = get_logger(__name__)


@dataclass(frozen=True)
class ScanTarget:
    root: Path
    files: Tuple[SourceFile, ...]
    package: Package
    context: ScanContext


def sanitize_snippet(snippet: str, max_length: int = 240) -> str:
    cleaned = snippet.replace("\x00", "").strip()
    if len(cleaned) > max_length:
        return cleaned[: max_length - 3] + "..."
    return cleaned


def location_from_offset(text: str, start: int) -> Tuple[int, int]:
    """Return 1-based ``(line, column)`` of ``start`` in ``text``."""
    start = max(start, 0)
    line_number = text.count("\n", 0, start) + 1
    line_start = text.rfind("\n", 0, start) + 1
    return line_number, (start - line_start) + 1


class Analyzer(ABC):
    """Base class for all analyzers.

    Parameters
    ----------
    timeout_s : float, optional
        Per-unit time limit (one file, one AI call).
    max_workers : int, optional
        Worker pool size for per-file work.
    """

    DEFAULT_TIMEOUT_S: float = 5.0
    DEFAULT_MAX_WORKERS: int = 4

    def __init__(self, timeout_s: Optional[float] = None, max_workers: Optional[int] = None) -> None:
        self.timeout_s = timeout_s or self.DEFAULT_TIMEOUT_S
        self.max_workers = max_workers or self.DEFAULT_MAX_WORKERS

    @property
    @abstractmethod
    def name(self) -> str:
        """Stage name used in warnings and logs."""
        raise NotImplementedError

    @abstractmethod
    def analyze(self, target: ScanTarget, collector: FindingCollector) -> None:
        raise NotImplementedError


class PatternScanner(Analyzer):
    """Evaluates a signature table against every scannable text file.

    Reports at most one finding per rule per file, located at the first
    match, with the matched fragment as snippet. Binary files and files
    above ``max_file_bytes`` are skipped silently. Files are matched in
    worker processes and each gets ``timeout_s``; a file that runs out of
    time has its worker terminated, contributes no findings and leaves a
    ``scan_timeout`` warning. Subclasses must stay picklable.
    """

    def __init__(
        self,
        table: PatternTable,
        timeout_s: Optional[float] = None,
        max_workers: Optional[int] = None,
        max_file_bytes: int = 1024 * 1024,
    ) -> None:
        super().__init__(timeout_s=timeout_s, max_workers=max_workers)
        self.table = table
        self.max_file_bytes = max_file_bytes

    def scannable(self, files) -> List[SourceFile]:
        return [f for f in files if f.is_text and f.size <= self.max_file_bytes]

    def scan_text(self, text: str, relpath: str) -> List[Finding]:
        findings: List[Finding] = []
        for rule in self.table.rules:
            match = rule.regex.search(text)
            if match is None:
                continue
            line, column = location_from_offset(text, match.start())
            findings.append(
                Finding(
                    type=self.table.type,
                    severity=self.table.severity,
                    description=rule.description,
                    file=relpath,
                    line=line,
                    column=column,
                    snippet=sanitize_snippet(match.group(0)),
                    rule=rule.id,
                    remediation=rule.remediation,
                    metadata={"pattern": rule.pattern, "table_version": self.table.version},
                )
            )
        return findings

    def _scan_file(self, source: SourceFile) -> List[Finding]:
        return self.scan_text(source.read_text(), source.relpath)

    def analyze(self, target: ScanTarget, collector: FindingCollector) -> None:
        files = self.scannable(target.files)
        jobs = fan_out_processes(self._scan_file, files, self.max_workers, self.timeout_s, label=self.name)
        for outcome in jobs:
            source = outcome.item
            if outcome.timed_out:
                collector.warn(self.name, "scan_timeout", f"file scan exceeded {self.timeout_s}s", source.relpath)
            elif outcome.error is not None:
                collector.warn(self.name, "file_read", f"cannot scan file: {outcome.error}", source.relpath)
            else:
                collector.extend(outcome.value)
        logger.debug("%s scanned %d files", self.name, len(files))


__all__ = [
    "ScanTarget",
    "Analyzer",
    "PatternScanner",
    "sanitize_snippet",
    "location_from_offset",
]
