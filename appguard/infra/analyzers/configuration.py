"""Configuration auditor: declared permissions and embedding policy.

Declarations are read from the package's ``app.json`` when it has one and
from the registry ``Package`` otherwise. Two issues are reported:

- ``excessive_permissions``: the declared permissions intersect the
  dangerous set of ``permissions.yaml``. Any critical permission makes it
  ``high``; many dangerous permissions, or a low-tier team asking for
  several, make it ``medium``; otherwise ``low``.
- ``insecure_iframe``: an iframe configuration with no ``sandbox``
  restriction (missing or empty), severity ``medium``.
"""
from __future__ import annotations

import json
from typing import Any, Dict, List, Optional, Tuple

from appguard.application.collector import FindingCollector
from appguard.application.file import find_manifest
from appguard.core.exceptions import ManifestParseError
from appguard.core.logging_config import get_logger
from appguard.core.models.schema import Finding, Package, ScanContext, Severity
from appguard.rules import PermissionPolicy, load_permission_policy
from .base import Analyzer, ScanTarget

logger = get_logger(__name__)

APP_MANIFEST = "app.json"


def permission_severity(dangerous: List[str], context: ScanContext, policy: PermissionPolicy) -> Severity:
    if any(p in policy.critical for p in dangerous):
        return Severity.HIGH
    if len(dangerous) >= policy.many_dangerous:
        return Severity.MEDIUM
    if context.tier in policy.low_tiers and len(dangerous) >= policy.low_tier_many_dangerous:
        return Severity.MEDIUM
    return Severity.LOW


def permission_remediation(dangerous: List[str], policy: PermissionPolicy) -> Optional[str]:
    parts = [policy.recommendations[p] for p in dangerous if p in policy.recommendations]
    return ". ".join(parts) or None


def load_app_manifest(path, relpath: str) -> Dict[str, Any]:
    try:
        payload = json.loads(path.read_text(encoding="utf-8"))
    except (OSError, UnicodeDecodeError, ValueError) as e:
        raise ManifestParseError(relpath, str(e)) from e
    if not isinstance(payload, dict):
        raise ManifestParseError(relpath, "top-level JSON value is not an object")
    return payload


class ConfigurationAuditor(Analyzer):

    def __init__(self, policy: Optional[PermissionPolicy] = None, **kwargs) -> None:
        super().__init__(**kwargs)
        self.policy = policy or load_permission_policy()

    @property
    def name(self) -> str:
        return "configuration"

    def declarations(
        self, target: ScanTarget, collector: FindingCollector
    ) -> Tuple[List[str], Optional[Dict[str, Any]], Optional[str]]:
        """Return ``(permissions, iframe_config, source file)`` for the package."""
        package: Package = target.package
        manifest = find_manifest(list(target.files), APP_MANIFEST)
        if manifest is None:
            return list(package.permissions), package.iframe_config, None

        try:
            payload = load_app_manifest(manifest.path, manifest.relpath)
        except ManifestParseError as e:
            logger.warning("%s; using registry declarations", e.message)
            collector.warn(self.name, "manifest_parse", e.message, manifest.relpath)
            return list(package.permissions), package.iframe_config, None

        permissions = payload.get("permissions")
        if not isinstance(permissions, list):
            permissions = list(package.permissions)
        iframe_config = payload.get("iframe_config", package.iframe_config)
        if iframe_config is not None and not isinstance(iframe_config, dict):
            iframe_config = {}
        return [str(p) for p in permissions], iframe_config, manifest.relpath

    def audit(
        self,
        permissions: List[str],
        iframe_config: Optional[Dict[str, Any]],
        context: ScanContext,
        source: Optional[str] = None,
    ) -> List[Finding]:
        findings: List[Finding] = []

        dangerous = [p for p in dict.fromkeys(permissions) if p in self.policy.dangerous]
        if dangerous:
            findings.append(
                Finding(
                    type="excessive_permissions",
                    severity=permission_severity(dangerous, context, self.policy),
                    description="App requests dangerous permissions: " + ", ".join(dangerous),
                    file=source,
                    remediation=permission_remediation(dangerous, self.policy),
                    metadata={"permissions": dangerous},
                )
            )

        if iframe_config is not None and not iframe_config.get("sandbox"):
            findings.append(
                Finding(
                    type="insecure_iframe",
                    severity=Severity.MEDIUM,
                    description="Iframe configuration lacks proper sandboxing",
                    file=source,
                    remediation=self.policy.iframe_sandbox or None,
                )
            )
        return findings

    def analyze(self, target: ScanTarget, collector: FindingCollector) -> None:
        permissions, iframe_config, source = self.declarations(target, collector)
        collector.extend(self.audit(permissions, iframe_config, target.context, source))


__all__ = ["ConfigurationAuditor", "permission_severity", "permission_remediation"]
