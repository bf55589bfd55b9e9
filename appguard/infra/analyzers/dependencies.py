"""Dependency vulnerability scanner.

Reads the PHP (``composer.json``) and JavaScript (``package.json``)
manifests of the package and checks each declared ``{package, version}``
pair against the curated ranges in ``dependencies.yaml``.

A declared constraint is reduced to the lowest version it admits: the first
alternative of ``a || b``, stability flags dropped, ``x``/``*`` wildcards
read as ``0``. ``^1.25`` therefore checks ``1.25``, ``~4.4.0`` checks
``4.4.0``. Constraints without any version number (``*``, ``latest``,
``dev-master``, git URLs) are not checked, nor are upper-bound-only
constraints such as ``<2.0``, whose lowest admitted version is unknown.

A manifest that cannot be parsed is skipped with a ``manifest_parse``
warning.
"""
from __future__ import annotations

import json
import re
from dataclasses import dataclass
from typing import Dict, List, Optional

from packaging.version import InvalidVersion, Version

from appguard.application.collector import FindingCollector
from appguard.application.file import find_manifest
from appguard.core.exceptions import ManifestParseError
from appguard.core.logging_config import get_logger
from appguard.core.models.schema import Finding
from appguard.rules import DependencyTable, load_dependency_table
from .base import Analyzer, ScanTarget

logger = get_logger(__name__)

_VERSION_TOKEN = re.compile(r"\d+(?:\.(?:\d+|[xX*]))*")
_PLATFORM_PACKAGE = re.compile(r"^(php|hhvm|composer(-plugin|-runtime)?-api|ext-.+|lib-.+)$", re.IGNORECASE)


@dataclass(frozen=True)
class ManifestFormat:
    ecosystem: str
    filename: str
    section: str


MANIFEST_FORMATS: Dict[str, ManifestFormat] = {
    "composer": ManifestFormat("composer", "composer.json", "require"),
    "npm": ManifestFormat("npm", "package.json", "dependencies"),
}


def declared_version(constraint: str) -> Optional[Version]:
    """Lowest concrete version admitted by a composer/npm constraint, if any."""
    if not isinstance(constraint, str):
        return None
    first = re.split(r"\|\|?", constraint, maxsplit=1)[0]
    first = first.split("@", 1)[0].strip()
    if first.startswith("<"):
        return None
    match = _VERSION_TOKEN.search(first)
    if match is None:
        return None
    parts = ["0" if p in ("x", "X", "*") else p for p in match.group().split(".")]
    try:
        return Version(".".join(parts))
    except InvalidVersion:
        return None


def read_manifest(path, fmt: ManifestFormat, relpath: str) -> Dict[str, str]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise ManifestParseError(relpath, str(e)) from e
    if not isinstance(payload, dict):
        raise ManifestParseError(relpath, "top-level JSON value is not an object")
    section = payload.get(fmt.section, {})
    if not isinstance(section, dict):
        raise ManifestParseError(relpath, f"'{fmt.section}' is not an object")
    return {str(k): v for k, v in section.items()}


class DependencyScanner(Analyzer):

    def __init__(
        self,
        table: Optional[DependencyTable] = None,
        manifest_formats: Optional[List[str]] = None,
        **kwargs,
    ) -> None:
        super().__init__(**kwargs)
        self.table = table or load_dependency_table()
        formats = manifest_formats if manifest_formats is not None else list(MANIFEST_FORMATS)
        self.formats = [MANIFEST_FORMATS[name] for name in formats if name in MANIFEST_FORMATS]

    @property
    def name(self) -> str:
        return "dependencies"

    def check(self, fmt: ManifestFormat, requirements: Dict[str, str], relpath: str) -> List[Finding]:
        findings: List[Finding] = []
        for package, constraint in requirements.items():
            if fmt.ecosystem == "composer" and _PLATFORM_PACKAGE.match(package):
                continue
            entry = self.table.lookup(fmt.ecosystem, package)
            if entry is None:
                continue
            version = declared_version(constraint)
            if version is None:
                logger.debug("Cannot resolve %s constraint %r; not checked", package, constraint)
                continue
            vulnerable_range = entry.matching_range(version)
            if vulnerable_range is None:
                continue
            findings.append(
                Finding(
                    type=self.table.type,
                    severity=self.table.severity,
                    description=f"Potentially vulnerable {fmt.ecosystem} package: {package} {constraint}",
                    file=relpath,
                    snippet=f'"{package}": "{constraint}"',
                    rule=f"{fmt.ecosystem}:{entry.package}",
                    remediation=f"Upgrade {package} to a release outside {vulnerable_range}",
                    metadata={
                        "package": package,
                        "version": str(constraint),
                        "resolved_version": str(version),
                        "manifest": relpath,
                        "ecosystem": fmt.ecosystem,
                        "vulnerable_range": vulnerable_range,
                    },
                )
            )
        return findings

    def analyze(self, target: ScanTarget, collector: FindingCollector) -> None:
        for fmt in self.formats:
            manifest = find_manifest(list(target.files), fmt.filename)
            if manifest is None:
                continue
            try:
                requirements = read_manifest(manifest.path, fmt, manifest.relpath)
            except ManifestParseError as e:
                logger.warning("%s", e.message)
                collector.warn(self.name, "manifest_parse", e.message, manifest.relpath)
                continue
            collector.extend(self.check(fmt, requirements, manifest.relpath))


__all__ = ["ManifestFormat", "MANIFEST_FORMATS", "declared_version", "read_manifest", "DependencyScanner"]
