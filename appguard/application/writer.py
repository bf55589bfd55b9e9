"""Result writer: persistence, status transition and working-dir cleanup.

The orchestrator calls the three operations in this order from nested
``finally`` blocks, so the later steps run even when an earlier one raises:

1. :meth:`ResultWriter.write` appends one ``scan_results`` row;
2. :meth:`ResultWriter.update_status` asks the registry to move the package
   to ``passed``/``blocked``/``failed``. This is fire-and-forget: a registry
   failure is logged under the ``registry_update`` code and is not added to
   ``ScanResult.warnings``, because the result is already finalized;
3. :meth:`ResultWriter.cleanup` deletes the scan's working directory.
"""
from __future__ import annotations

import shutil
from pathlib import Path
from typing import Optional, Union

from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from appguard.core.exceptions import AppGuardError, DatabaseError
from appguard.core.logging_config import get_logger
from appguard.core.models.orm import ScanResultRecord
from appguard.core.models.schema import ApprovalStatus, ScanResult, ScanStatus
from appguard.application.decision import SCAN_FAILED_PREFIX
from appguard.infra.db.utils import session_scope
from appguard.infra.registry import PackageRegistry

logger = get_logger(__name__)


def _reason(error: Exception) -> str:
    return error.message if isinstance(error, AppGuardError) else str(error)


STATUS_TRANSITIONS = {
    ScanStatus.PASSED: ApprovalStatus.PASSED,
    ScanStatus.BLOCKED: ApprovalStatus.BLOCKED,
    ScanStatus.FAILED: ApprovalStatus.FAILED,
}


def status_notes(result: ScanResult) -> str:
    if result.status == ScanStatus.BLOCKED:
        return "Automatically blocked due to security risks"
    if result.status == ScanStatus.PASSED:
        return "Security scan completed successfully"
    message = result.ai_analysis
    if message.startswith(SCAN_FAILED_PREFIX):
        message = message[len(SCAN_FAILED_PREFIX):]
    return f"Automated scan failure: {message}"


class ResultWriter:
    """Persists results and talks to the registry.

    Parameters
    ----------
    session_factory : sessionmaker, optional
        Database sessions; without one, results are not persisted.
    registry : PackageRegistry, optional
        Receives status transitions; without one, none are requested.
    """

    def __init__(
        self,
        session_factory: Optional[sessionmaker] = None,
        registry: Optional[PackageRegistry] = None,
    ):
        self.session_factory = session_factory
        self.registry = registry

    def mark_scanning(self, package_id: Optional[int]) -> None:
        if package_id is None or self.registry is None:
            return
        try:
            self.registry.update_approval_status(package_id, ApprovalStatus.SCANNING, "Security scan in progress")
        except Exception as e:
            logger.warning("Could not mark package %s as scanning: %s", package_id, _reason(e))

    def write(self, result: ScanResult) -> Optional[int]:
        """Append ``result`` to ``scan_results`` and return the new row id."""
        if self.session_factory is None:
            return None
        try:
            with session_scope(self.session_factory) as session:
                record = ScanResultRecord.from_result(result)
                session.add(record)
                session.flush()
                record_id = record.id
        except SQLAlchemyError as e:
            raise DatabaseError("write_scan_result", str(e)) from e
        logger.info(
            "Stored scan result %s for package %s (%s, score %d)",
            record_id, result.package_id, result.status.value, result.score,
        )
        return record_id

    def update_status(self, result: ScanResult) -> bool:
        """Request the registry transition; returns False when it failed."""
        if result.package_id is None or self.registry is None:
            return False
        status = STATUS_TRANSITIONS[result.status]
        try:
            self.registry.update_approval_status(result.package_id, status, status_notes(result))
        except Exception as e:
            logger.warning(
                "registry_update: package %s not moved to %s: %s",
                result.package_id, status.value, _reason(e),
            )
            return False
        return True

    def cleanup(self, work_dir: Optional[Union[str, Path]]) -> None:
        if work_dir is None:
            return
        shutil.rmtree(work_dir, ignore_errors=True)
        if Path(work_dir).exists():
            logger.warning("Working directory %s could not be fully removed", work_dir)
        else:
            logger.debug("Removed working directory %s", work_dir)


__all__ = ["ResultWriter", "STATUS_TRANSITIONS", "status_notes"]
