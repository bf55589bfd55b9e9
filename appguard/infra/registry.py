"""Package and team registry.

The scanner does not own packages or teams; it reads them from a registry
and asks the registry to move a package between approval states. The
:class:`PackageRegistry` protocol is that seam. :class:`SqlPackageRegistry`
implements it over the SQLAlchemy tables in :mod:`appguard.core.models.orm`.

Every SQLAlchemy failure is re-raised as :class:`RegistryError`.
"""
from __future__ import annotations

from typing import List, Optional, Protocol, Union

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.orm import sessionmaker

from appguard.core.exceptions import RegistryError
from appguard.core.logging_config import get_logger
from appguard.core.models.orm import InstalledPackageRecord, PackageRecord, TeamRecord
from appguard.core.models.schema import (
    ApprovalStatus,
    InstalledPackage,
    Package,
    TeamInfo,
)
from .db.utils import session_scope

logger = get_logger(__name__)


class PackageRegistry(Protocol):
    def get_package(self, package_id: int) -> Package: ...

    def get_team(self, team_id: int) -> Optional[TeamInfo]: ...

    def list_installed_packages(self, team_id: int) -> List[InstalledPackage]: ...

    def update_approval_status(
        self, package_id: int, status: Union[ApprovalStatus, str], notes: str
    ) -> None: ...


def _to_package(row: PackageRecord) -> Package:
    return Package(
        id=row.id,
        name=row.name,
        type=row.type,
        description=row.description or "",
        version=row.version,
        permissions=list(row.permissions or []),
        iframe_config=row.iframe_config,
        team_id=row.team_id,
        approval_status=ApprovalStatus(row.approval_status),
        archive_path=row.archive_path,
    )


class SqlPackageRegistry:
    """Registry backed by the ``packages``, ``teams`` and ``installed_packages`` tables."""

    def __init__(self, session_factory: sessionmaker):
        self._session_factory = session_factory

    def get_package(self, package_id: int) -> Package:
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(PackageRecord, package_id)
                if row is None:
                    raise RegistryError("get_package", f"package {package_id} not found")
                return _to_package(row)
        except SQLAlchemyError as e:
            raise RegistryError("get_package", str(e)) from e

    def get_team(self, team_id: int) -> Optional[TeamInfo]:
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(TeamRecord, team_id)
                if row is None:
                    return None
                return TeamInfo(
                    id=row.id,
                    name=row.name,
                    tenant_id=row.tenant_id,
                    tier=row.tier or "free",
                    member_count=row.member_count or 0,
                )
        except SQLAlchemyError as e:
            raise RegistryError("get_team", str(e)) from e

    def list_installed_packages(self, team_id: int) -> List[InstalledPackage]:
        stmt = (
            select(InstalledPackageRecord)
            .where(InstalledPackageRecord.team_id == team_id)
            .where(InstalledPackageRecord.is_active.is_(True))
            .order_by(InstalledPackageRecord.id)
        )
        try:
            with session_scope(self._session_factory) as session:
                return [
                    InstalledPackage(
                        name=row.name,
                        type=row.type,
                        permissions=tuple(row.permissions or ()),
                        version=row.version,
                    )
                    for row in session.scalars(stmt)
                ]
        except SQLAlchemyError as e:
            raise RegistryError("list_installed_packages", str(e)) from e

    def update_approval_status(
        self, package_id: int, status: Union[ApprovalStatus, str], notes: str
    ) -> None:
        status = ApprovalStatus(status)
        try:
            with session_scope(self._session_factory) as session:
                row = session.get(PackageRecord, package_id)
                if row is None:
                    raise RegistryError("update_approval_status", f"package {package_id} not found")
                row.approval_status = status.value
                row.status_notes = notes
        except SQLAlchemyError as e:
            raise RegistryError("update_approval_status", str(e)) from e
        logger.info("Package %s moved to %s", package_id, status.value)

    def register_package(self, package: Package) -> Package:
        """Insert a new package row and return it with its id."""
        try:
            with session_scope(self._session_factory) as session:
                row = PackageRecord(
                    name=package.name,
                    type=package.type,
                    description=package.description,
                    version=package.version,
                    permissions=list(package.permissions),
                    iframe_config=package.iframe_config,
                    team_id=package.team_id,
                    approval_status=package.approval_status.value,
                    archive_path=package.archive_path,
                )
                session.add(row)
                session.flush()
                return _to_package(row)
        except SQLAlchemyError as e:
            raise RegistryError("register_package", str(e)) from e


__all__ = ["PackageRegistry", "SqlPackageRegistry"]
