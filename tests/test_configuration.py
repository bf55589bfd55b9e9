"""Tests for the configuration auditor."""

from __future__ import annotations

import json

import pytest

from appguard.core.models.schema import Package, ScanContext, Severity, TeamInfo
from appguard.infra.analyzers import ConfigurationAuditor
from appguard.rules import PermissionPolicy


def _context(tier: str) -> ScanContext:
    return ScanContext(tenant_id="t1", team=TeamInfo(id=1, name="T", tier=tier))


@pytest.mark.parametrize(
    "permissions,tier,expected",
    [
        (["file_system_write"], "enterprise", Severity.LOW),
        (["file_system_write", "admin_access"], "enterprise", Severity.LOW),
        (["file_system_write", "admin_access"], "free", Severity.MEDIUM),
        (["system_commands"], "enterprise", Severity.HIGH),
        (["database_admin", "file_system_write"], "free", Severity.HIGH),
    ],
)
def test_permission_severity(permissions, tier, expected):
    findings = ConfigurationAuditor().audit(permissions, None, _context(tier))
    assert len(findings) == 1
    assert findings[0].type == "excessive_permissions"
    assert findings[0].severity == expected


def test_many_dangerous_permissions_are_medium_on_any_tier():
    policy = PermissionPolicy(
        version="test",
        dangerous=["a", "b", "c"],
        many_dangerous=3,
    )
    auditor = ConfigurationAuditor(policy=policy)
    assert auditor.audit(["a", "b"], None, _context("enterprise"))[0].severity == Severity.LOW
    assert auditor.audit(["a", "b", "c"], None, _context("enterprise"))[0].severity == Severity.MEDIUM


def test_duplicate_permissions_counted_once():
    finding = ConfigurationAuditor().audit(
        ["file_system_write", "read_contacts", "file_system_write"], None, _context("free")
    )[0]
    assert finding.metadata["permissions"] == ["file_system_write"]
    assert finding.severity == Severity.LOW


def test_safe_permissions_yield_nothing():
    assert ConfigurationAuditor().audit(["read_contacts", "notifications"], None, ScanContext()) == []


def test_remediation_joins_per_permission_advice():
    finding = ConfigurationAuditor().audit(["admin_access", "file_system_write"], None, ScanContext())[0]
    assert finding.remediation == (
        "Consider using role-based permissions instead of admin access. "
        "Use tenant-scoped file operations with Storage::disk('tenant')"
    )
    assert finding.description == "App requests dangerous permissions: admin_access, file_system_write"


@pytest.mark.parametrize("iframe_config", [{}, {"sandbox": []}, {"sandbox": ""}, {"width": 400}])
def test_iframe_without_sandbox(iframe_config):
    findings = ConfigurationAuditor().audit([], iframe_config, ScanContext())
    assert [(f.type, f.severity) for f in findings] == [("insecure_iframe", Severity.MEDIUM)]
    assert "sandbox" in findings[0].remediation


def test_sandboxed_iframe_and_no_iframe_are_fine():
    auditor = ConfigurationAuditor()
    assert auditor.audit([], {"sandbox": ["allow-scripts"]}, ScanContext()) == []
    assert auditor.audit([], None, ScanContext()) == []


def test_app_json_overrides_registry_declarations(make_target, collector):
    target = make_target(
        {"app.json": json.dumps({"permissions": ["system_commands"], "iframe_config": {"sandbox": ["allow-forms"]}})},
        package=Package(name="X", permissions=["read_contacts"], iframe_config={}),
    )
    ConfigurationAuditor().analyze(target, collector)
    findings, warnings, _ = collector.snapshot()
    assert warnings == []
    assert [(f.type, f.file) for f in findings] == [("excessive_permissions", "app.json")]


def test_registry_declarations_without_app_json(make_target, collector):
    target = make_target(
        {"index.php": "<?php"},
        package=Package(name="X", permissions=["admin_access"], iframe_config={"src": "/"}),
    )
    ConfigurationAuditor().analyze(target, collector)
    types = sorted(f.type for f in collector.snapshot()[0])
    assert types == ["excessive_permissions", "insecure_iframe"]


def test_malformed_app_json_falls_back_with_warning(make_target, collector):
    target = make_target(
        {"app.json": "{broken"},
        package=Package(name="X", permissions=["database_admin"]),
    )
    ConfigurationAuditor().analyze(target, collector)
    findings, warnings, _ = collector.snapshot()
    assert [f.severity for f in findings] == [Severity.HIGH]
    assert findings[0].file is None
    assert [(w.code, w.file) for w in warnings] == [("manifest_parse", "app.json")]
