# Copyright (c) 2025 Anush Krishna
# Licensed under the MIT License. See LICENSE file in the project root.

"""SQLAlchemy ORM models for database schema.

This module defines the database schema for the scanner's persisted
artifacts and for the package/team registry it reads from.

``scan_results`` is append-only: one row per scan attempt, keyed by package
id and timestamp. Admin decisions are stored in ``scan_reviews`` so a
written result is never updated.

Classes
-------
Base : SQLAlchemy declarative base
TeamRecord : Submitting team (tenant) metadata
PackageRecord : Marketplace package under review
InstalledPackageRecord : Package installed for a team
ScanResultRecord : Persisted outcome of one scan attempt
ScanReviewRecord : Admin approve/reject decision on a scan result

Examples
--------
Register a team and a package:
    >>> team = TeamRecord(name='Acme', tenant_id='acme', tier='pro')
    >>> package = PackageRecord(name='Invoices', type='iframe', team=team)

See Also
--------
appguard.infra.db : Database utilities
appguard.core.models.schema : Pydantic models
"""
from __future__ import annotations

from datetime import datetime, timezone

from sqlalchemy import (
    Column,
    Integer,
    String,
    ForeignKey,
    Text,
    JSON,
    Boolean,
    DateTime,
    Index,
)
from sqlalchemy.orm import relationship, declarative_base

from .schema import (
    Finding,
    RiskLevel,
    ScanResult,
    ScanStatus,
    ScanWarning,
)


Base = declarative_base()


def _utcnow() -> datetime:
    return datetime.now(timezone.utc)


class TeamRecord(Base):
    """
    A team (tenant) that submits packages and installs them.

    Attributes:
        id: Auto-incrementing primary key
        name: Display name
        tenant_id: Identifier of the tenant the team belongs to
        tier: Subscription tier (free, pro, enterprise)
        member_count: Number of users in the team
    """
    __tablename__ = "teams"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    tenant_id = Column(String, nullable=True)
    tier = Column(String, nullable=False, default="free")
    member_count = Column(Integer, nullable=False, default=0)

    packages = relationship("PackageRecord", back_populates="team")
    installed = relationship(
        "InstalledPackageRecord", back_populates="team", cascade="all, delete-orphan"
    )


class PackageRecord(Base):
    __tablename__ = "packages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False, default="iframe")
    description = Column(Text, nullable=True, default="")
    version = Column(String, nullable=True)
    permissions = Column(JSON, nullable=True)
    iframe_config = Column(JSON, nullable=True)
    archive_path = Column(String, nullable=True)
    approval_status = Column(String, nullable=False, default="draft")
    status_notes = Column(Text, nullable=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=True)

    team = relationship("TeamRecord", back_populates="packages")
    scan_results = relationship(
        "ScanResultRecord", back_populates="package", order_by="ScanResultRecord.id"
    )


class InstalledPackageRecord(Base):
    __tablename__ = "installed_packages"

    id = Column(Integer, primary_key=True, autoincrement=True)
    team_id = Column(Integer, ForeignKey("teams.id"), nullable=False)
    name = Column(String, nullable=False)
    type = Column(String, nullable=False)   # e.g. "iframe", "laravel_module"
    permissions = Column(JSON, nullable=True)
    version = Column(String, nullable=True)
    is_active = Column(Boolean, nullable=False, default=True)

    team = relationship("TeamRecord", back_populates="installed")


class ScanResultRecord(Base):
    """
    Persisted outcome of one scan attempt.

    Findings, warnings and the severity histogram are stored as JSON so the
    row mirrors the ScanResult value object exactly.
    """
    __tablename__ = "scan_results"

    id = Column(Integer, primary_key=True, autoincrement=True)
    package_id = Column(Integer, ForeignKey("packages.id"), nullable=True)
    status = Column(String, nullable=False)
    risk_level = Column(String, nullable=False)
    score = Column(Integer, nullable=False)
    findings = Column(JSON, nullable=False, default=list)
    recommendations = Column(JSON, nullable=False, default=list)
    blocked_reasons = Column(JSON, nullable=False, default=list)
    warnings = Column(JSON, nullable=False, default=list)
    severity_counts = Column(JSON, nullable=False, default=dict)
    ai_analysis = Column(Text, nullable=True)
    scanned_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    package = relationship("PackageRecord", back_populates="scan_results")
    reviews = relationship(
        "ScanReviewRecord", back_populates="scan_result", cascade="all, delete-orphan"
    )

    __table_args__ = (
        Index("ix_scan_results_package_scanned", "package_id", "scanned_at"),
    )

    @classmethod
    def from_result(cls, result: ScanResult) -> "ScanResultRecord":
        return cls(
            package_id=result.package_id,
            status=result.status.value,
            risk_level=result.risk_level.value,
            score=result.score,
            findings=[f.model_dump(mode="json") for f in result.findings],
            recommendations=list(result.recommendations),
            blocked_reasons=list(result.blocked_reasons),
            warnings=[w.model_dump(mode="json") for w in result.warnings],
            severity_counts=dict(result.severity_counts),
            ai_analysis=result.ai_analysis,
            scanned_at=result.scanned_at,
        )

    def to_result(self) -> ScanResult:
        scanned_at = self.scanned_at
        # SQLite drops tzinfo on the way back
        if scanned_at is not None and scanned_at.tzinfo is None:
            scanned_at = scanned_at.replace(tzinfo=timezone.utc)
        return ScanResult(
            package_id=self.package_id,
            status=ScanStatus(self.status),
            risk_level=RiskLevel(self.risk_level),
            score=self.score,
            findings=tuple(Finding.model_validate(f) for f in (self.findings or [])),
            recommendations=tuple(self.recommendations or []),
            blocked_reasons=tuple(self.blocked_reasons or []),
            ai_analysis=self.ai_analysis or "",
            warnings=tuple(ScanWarning.model_validate(w) for w in (self.warnings or [])),
            severity_counts=dict(self.severity_counts or {}),
            scanned_at=scanned_at,
        )


class ScanReviewRecord(Base):
    __tablename__ = "scan_reviews"

    id = Column(Integer, primary_key=True, autoincrement=True)
    scan_result_id = Column(Integer, ForeignKey("scan_results.id"), nullable=False)
    decision = Column(String, nullable=False)   # "approved" | "rejected"
    reason = Column(Text, nullable=False)
    reviewer = Column(String, nullable=True)
    reviewed_at = Column(DateTime(timezone=True), nullable=False, default=_utcnow)

    scan_result = relationship("ScanResultRecord", back_populates="reviews")
