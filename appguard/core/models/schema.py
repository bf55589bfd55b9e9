"""Pydantic schema models for data validation.

This module defines the value objects that flow through the scanning
pipeline: findings, warnings, the tenant scan context, the package being
reviewed and the final scan result.

Findings, warnings and results are frozen: once created they are never
mutated. The false-positive filter only removes findings, it never edits
them.

Classes
-------
Finding : A single detected issue
ScanWarning : A non-fatal problem recorded during a scan
InstalledPackage : A package already installed for the submitting team
TeamInfo : Submitting-team metadata
IsolationArchitecture : Fixed description of the platform's tenant isolation
ScanContext : Tenant environment snapshot for one scan
Package : The package under review
ScanResult : Outcome of one scan attempt
AiVulnerability : One vulnerability entry from an AI response
AiAnalysisPayload : Validated AI response body

Examples
--------
>>> finding = Finding(
...     type="malware_pattern",
...     severity="high",
...     description="Shell command execution",
...     file="src/run.php",
...     line=12,
... )
>>> finding.origin
<Origin.RULE: 'rule'>

See Also
--------
appguard.core.models.orm : Database ORM models
"""
from __future__ import annotations

import re
from datetime import datetime, timezone
from enum import Enum
from typing import Any, Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, field_validator


class Severity(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"


SEVERITY_ORDER: Tuple[Severity, ...] = (
    Severity.CRITICAL,
    Severity.HIGH,
    Severity.MEDIUM,
    Severity.LOW,
)


class Origin(str, Enum):
    RULE = "rule"
    AI = "ai"


class ApprovalStatus(str, Enum):
    DRAFT = "draft"
    SCANNING = "scanning"
    PASSED = "passed"
    BLOCKED = "blocked"
    FAILED = "failed"
    APPROVED_WITH_CONDITIONS = "approved_with_conditions"
    REJECTED = "rejected"


class ScanStatus(str, Enum):
    PASSED = "passed"
    BLOCKED = "blocked"
    FAILED = "failed"


class RiskLevel(str, Enum):
    LOW = "low"
    MEDIUM = "medium"
    HIGH = "high"
    CRITICAL = "critical"
    UNKNOWN = "unknown"


def now_utc() -> datetime:
    """Return the current UTC time as an aware datetime."""
    return datetime.now(timezone.utc)


class Finding(BaseModel):
    model_config = ConfigDict(frozen=True, use_enum_values=False)

    type: str
    severity: Severity
    description: str
    file: Optional[str] = None
    line: Optional[int] = None
    column: Optional[int] = None
    snippet: Optional[str] = None
    origin: Origin = Origin.RULE
    tenant_impact: Optional[str] = None
    rule: Optional[str] = None
    remediation: Optional[str] = None
    metadata: Dict[str, Any] = Field(default_factory=dict)


class ScanWarning(BaseModel):
    """A non-fatal problem recorded during a scan.

    ``stage`` names the pipeline stage (``extractor``, ``context``,
    ``malware``, ``dependencies``, ``ai``...), ``code`` is one of the fixed
    warning codes (``context_lookup``, ``manifest_parse``, ``ai_transport``,
    ``ai_parse``, ``ai_schema``, ``scan_timeout``, ``file_read``,
    ``entry_rejected``, ``analyzer_error``). Registry status-update
    failures happen after the result is written and are only logged.
    """

    model_config = ConfigDict(frozen=True)

    stage: str
    code: str
    message: str
    file: Optional[str] = None

    def render(self) -> str:
        where = f" ({self.file})" if self.file else ""
        return f"[{self.stage}:{self.code}] {self.message}{where}"


class InstalledPackage(BaseModel):
    model_config = ConfigDict(frozen=True)

    name: str
    type: str
    permissions: Tuple[str, ...] = ()
    version: Optional[str] = None


class TeamInfo(BaseModel):
    model_config = ConfigDict(frozen=True)

    id: int
    name: str
    tenant_id: Optional[str] = None
    tier: str = "free"
    member_count: int = 0


class IsolationArchitecture(BaseModel):
    """Fixed description of how the platform separates tenants."""

    model_config = ConfigDict(frozen=True)

    name: str = "multi-database-isolated"
    database_isolated: bool = True
    storage_isolated: bool = True
    cache_isolated: bool = True
    session_isolated: bool = True
    broadcasting_isolated: bool = True
    queue_isolated: bool = True

    def describe(self) -> List[str]:
        lines = []
        if self.database_isolated:
            lines.append("Database: Each tenant has an ISOLATED DATABASE (multi-database tenancy)")
        if self.storage_isolated:
            lines.append("Storage: Each tenant has ISOLATED storage buckets and file systems")
        if self.cache_isolated:
            lines.append("Cache: Tenant-specific cache tags and isolation")
        if self.session_isolated:
            lines.append("Sessions: Tenant-scoped sessions")
        if self.broadcasting_isolated:
            lines.append("Broadcasting: Tenant-aware channels")
        if self.queue_isolated:
            lines.append("Queue: Tenant context preserved in jobs")
        return lines


class ScanContext(BaseModel):
    """Tenant environment snapshot, built once per scan."""

    model_config = ConfigDict(frozen=True)

    tenant_id: Optional[str] = None
    team: Optional[TeamInfo] = None
    installed_packages: Tuple[InstalledPackage, ...] = ()
    isolation: IsolationArchitecture = Field(default_factory=IsolationArchitecture)
    platform_version: str = "1.0.0"
    warnings: Tuple[ScanWarning, ...] = ()

    @property
    def tier(self) -> Optional[str]:
        return self.team.tier if self.team else None


class Package(BaseModel):
    id: Optional[int] = None
    name: str
    type: str = "iframe"
    description: str = ""
    version: Optional[str] = None
    permissions: List[str] = Field(default_factory=list)
    iframe_config: Optional[Dict[str, Any]] = None
    team_id: Optional[int] = None
    approval_status: ApprovalStatus = ApprovalStatus.DRAFT
    archive_path: Optional[str] = None


class ScanResult(BaseModel):
    """Outcome of one scan attempt. Immutable once built."""

    model_config = ConfigDict(frozen=True)

    package_id: Optional[int] = None
    status: ScanStatus
    risk_level: RiskLevel
    score: int = Field(ge=0, le=100)
    findings: Tuple[Finding, ...] = ()
    recommendations: Tuple[str, ...] = ()
    blocked_reasons: Tuple[str, ...] = ()
    ai_analysis: str = ""
    warnings: Tuple[ScanWarning, ...] = ()
    severity_counts: Dict[str, int] = Field(default_factory=dict)
    scanned_at: datetime = Field(default_factory=now_utc)

    @property
    def is_blocked(self) -> bool:
        return self.status == ScanStatus.BLOCKED

    def summary(self, reviewed: bool = False) -> Dict[str, Any]:
        return {
            "total_findings": len(self.findings),
            "severity_counts": dict(self.severity_counts),
            "risk_level": self.risk_level.value,
            "score": self.score,
            "status": self.status.value,
            "is_blocked": self.is_blocked,
            "requires_admin_review": self.is_blocked and not reviewed,
            "scanned_at": self.scanned_at.isoformat(),
        }


_LINE_NUMBER = re.compile(r"\d+")


class AiVulnerability(BaseModel):
    """One entry of the ``vulnerabilities`` list in an AI response.

    Models answer loosely: ``line`` may be ``"42"``, ``"line 42"`` or
    ``"line_number"``, severity may be upper-cased. Anything that still
    does not fit raises a pydantic ``ValidationError`` and the entry is
    discarded by the caller.
    """

    model_config = ConfigDict(extra="ignore")

    type: str = Field(min_length=1)
    severity: Severity
    description: str = ""
    line: Optional[int] = None
    code_snippet: Optional[str] = None
    tenant_impact: Optional[str] = None

    @field_validator("type", mode="before")
    @classmethod
    def _normalise_type(cls, value):
        if isinstance(value, str):
            return value.strip().lower().replace(" ", "_")
        return value

    @field_validator("severity", mode="before")
    @classmethod
    def _lower_severity(cls, value):
        if isinstance(value, str):
            return value.strip().lower()
        return value

    @field_validator("line", mode="before")
    @classmethod
    def _lenient_line(cls, value):
        if value is None or isinstance(value, bool):
            return None
        if isinstance(value, int):
            return value if value > 0 else None
        if isinstance(value, str):
            match = _LINE_NUMBER.search(value)
            return int(match.group()) if match else None
        return None


class AiAnalysisPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    vulnerabilities: List[Any] = Field(default_factory=list)
    recommendations: List[str] = Field(default_factory=list)

    @field_validator("recommendations", mode="before")
    @classmethod
    def _only_strings(cls, value):
        if not isinstance(value, list):
            return []
        return [str(item) for item in value if isinstance(item, (str, int, float))]

    @field_validator("vulnerabilities", mode="before")
    @classmethod
    def _only_objects(cls, value):
        if not isinstance(value, list):
            return []
        return value


__all__ = [
    "Severity",
    "SEVERITY_ORDER",
    "Origin",
    "ApprovalStatus",
    "ScanStatus",
    "RiskLevel",
    "now_utc",
    "Finding",
    "ScanWarning",
    "InstalledPackage",
    "TeamInfo",
    "IsolationArchitecture",
    "ScanContext",
    "Package",
    "ScanResult",
    "AiVulnerability",
    "AiAnalysisPayload",
]
