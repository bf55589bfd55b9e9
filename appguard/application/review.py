"""Admin review of blocked or failed scans.

A reviewer can override a block (the package becomes
``approved_with_conditions``) or confirm it (``rejected``). The decision is
recorded in ``scan_reviews`` against the package's latest scan result; the
result row itself is never modified.
"""
from __future__ import annotations

from typing import Any, Dict, Optional, Tuple

from sqlalchemy import func, select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from appguard.core.exceptions import DatabaseError, ValidationError
from appguard.core.logging_config import get_logger
from appguard.core.models.orm import ScanResultRecord, ScanReviewRecord
from appguard.core.models.schema import ApprovalStatus, RiskLevel, ScanResult, ScanStatus
from appguard.infra.db.utils import session_scope
from appguard.infra.registry import PackageRegistry

logger = get_logger(__name__)

REASON_MIN_LENGTH = 10
REASON_MAX_LENGTH = 1000

APPROVED = "approved"
REJECTED = "rejected"

REVIEWABLE = {ScanStatus.BLOCKED, ScanStatus.FAILED}


def validate_reason(reason: Optional[str]) -> str:
    text = (reason or "").strip()
    if len(text) < REASON_MIN_LENGTH:
        raise ValidationError("reason", f"must be at least {REASON_MIN_LENGTH} characters")
    if len(text) > REASON_MAX_LENGTH:
        raise ValidationError("reason", f"must be at most {REASON_MAX_LENGTH} characters")
    return text


class ReviewService:
    """Reads scan history and records admin decisions.

    Parameters
    ----------
    session_factory : sessionmaker
        Sessions on the database holding ``scan_results``.
    registry : PackageRegistry
        Receives the post-review status transition.
    """

    def __init__(self, session_factory: sessionmaker, registry: PackageRegistry):
        self.session_factory = session_factory
        self.registry = registry

    def _latest(self, session, package_id: int) -> Optional[ScanResultRecord]:
        stmt = (
            select(ScanResultRecord)
            .where(ScanResultRecord.package_id == package_id)
            .order_by(ScanResultRecord.scanned_at.desc(), ScanResultRecord.id.desc())
            .limit(1)
        )
        return session.scalars(stmt).first()

    def latest(self, package_id: int) -> Optional[Tuple[ScanResult, bool]]:
        """Latest result of a package and whether it has been reviewed."""
        try:
            with session_scope(self.session_factory) as session:
                record = self._latest(session, package_id)
                if record is None:
                    return None
                return record.to_result(), bool(record.reviews)
        except SQLAlchemyError as e:
            raise DatabaseError("latest_result", str(e)) from e

    def latest_result(self, package_id: int) -> Optional[ScanResult]:
        latest = self.latest(package_id)
        return latest[0] if latest else None

    def summary(self, package_id: int) -> Optional[Dict[str, Any]]:
        latest = self.latest(package_id)
        if latest is None:
            return None
        result, reviewed = latest
        return result.summary(reviewed=reviewed)

    def _decide(self, package_id: int, decision: str, reason: str, reviewer: Optional[str]) -> ApprovalStatus:
        reason = validate_reason(reason)
        try:
            with session_scope(self.session_factory) as session:
                record = self._latest(session, package_id)
                if record is None:
                    raise ValidationError("package_id", f"package {package_id} has no scan result")
                if ScanStatus(record.status) not in REVIEWABLE:
                    raise ValidationError(
                        "package_id", f"latest scan of package {package_id} is {record.status}, not blocked or failed"
                    )
                session.add(
                    ScanReviewRecord(
                        scan_result_id=record.id,
                        decision=decision,
                        reason=reason,
                        reviewer=reviewer,
                    )
                )
                risk_level = record.risk_level
        except SQLAlchemyError as e:
            raise DatabaseError("record_review", str(e)) from e

        if decision == APPROVED:
            status = ApprovalStatus.APPROVED_WITH_CONDITIONS
            notes = f"Approved by admin despite security issues: {reason}"
        else:
            status = ApprovalStatus.REJECTED
            notes = f"Rejected by admin: {reason}"
        self.registry.update_approval_status(package_id, status, notes)
        logger.info(
            "Admin %s package %s (risk %s, reviewer %s)",
            decision, package_id, risk_level, reviewer or "unknown",
        )
        return status

    def approve(self, package_id: int, reason: str, reviewer: Optional[str] = None) -> ApprovalStatus:
        return self._decide(package_id, APPROVED, reason, reviewer)

    def reject(self, package_id: int, reason: str, reviewer: Optional[str] = None) -> ApprovalStatus:
        return self._decide(package_id, REJECTED, reason, reviewer)

    def stats(self) -> Dict[str, int]:
        """Counts for the review queue."""
        reviewed = select(ScanReviewRecord.scan_result_id)
        pending = (
            select(func.count(ScanResultRecord.id))
            .where(ScanResultRecord.status == ScanStatus.BLOCKED.value)
            .where(ScanResultRecord.id.not_in(reviewed))
        )
        try:
            with session_scope(self.session_factory) as session:
                decisions = dict(
                    session.execute(
                        select(ScanReviewRecord.decision, func.count(ScanReviewRecord.id))
                        .group_by(ScanReviewRecord.decision)
                    ).all()
                )
                return {
                    "pending_review": session.scalar(pending) or 0,
                    "critical_pending": session.scalar(
                        pending.where(ScanResultRecord.risk_level == RiskLevel.CRITICAL.value)
                    ) or 0,
                    "total_approved": decisions.get(APPROVED, 0),
                    "total_rejected": decisions.get(REJECTED, 0),
                }
        except SQLAlchemyError as e:
            raise DatabaseError("review_stats", str(e)) from e


__all__ = ["ReviewService", "validate_reason", "REASON_MIN_LENGTH", "APPROVED", "REJECTED"]
