"""Thread-safe accumulator shared by all analyzers of one scan."""
from __future__ import annotations

from threading import Lock
from typing import Iterable, List, Optional, Tuple

from appguard.core.models.schema import Finding, ScanWarning


class FindingCollector:
    """Collects findings, warnings and AI recommendations under a single lock.

    Analyzers may append from worker threads; the single-threaded stages
    (filter, scorer, decision) read a snapshot once every analyzer returned.
    """

    def __init__(self) -> None:
        self._lock = Lock()
        self._findings: List[Finding] = []
        self._warnings: List[ScanWarning] = []
        self._recommendations: List[str] = []

    def add(self, finding: Finding) -> None:
        with self._lock:
            self._findings.append(finding)

    def extend(self, findings: Iterable[Finding]) -> None:
        findings = list(findings)
        with self._lock:
            self._findings.extend(findings)

    def warn(self, stage: str, code: str, message: str, file: Optional[str] = None) -> ScanWarning:
        warning = ScanWarning(stage=stage, code=code, message=message, file=file)
        with self._lock:
            self._warnings.append(warning)
        return warning

    def add_warnings(self, warnings: Iterable[ScanWarning]) -> None:
        warnings = list(warnings)
        with self._lock:
            self._warnings.extend(warnings)

    def recommend(self, recommendations: Iterable[str]) -> None:
        recommendations = [r for r in recommendations if r]
        with self._lock:
            self._recommendations.extend(recommendations)

    def snapshot(self) -> Tuple[List[Finding], List[ScanWarning], List[str]]:
        with self._lock:
            return list(self._findings), list(self._warnings), list(self._recommendations)


__all__ = ["FindingCollector"]
