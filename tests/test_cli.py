"""Tests for the typer command-line interface."""

from __future__ import annotations

import json
import os

import pytest
from typer.testing import CliRunner

from appguard.config import ConfigLoader
from appguard.core.models.schema import Package
from appguard.scanner_cli import app

from conftest import CLEAN_ARCHIVE_FILES

runner = CliRunner()


@pytest.fixture(autouse=True)
def cli_env(monkeypatch, tmp_path):
    for key in list(os.environ):
        if key.startswith(ConfigLoader.ENV_PREFIX):
            monkeypatch.delenv(key)
    monkeypatch.setenv("APPGUARD_SCANNER__WORK_DIR", str(tmp_path / "cli-work"))
    monkeypatch.setenv("APPGUARD_AI__TIMEOUT_S", "0.5")
    monkeypatch.setenv("APPGUARD_AI__NARRATIVE_TIMEOUT_S", "0.5")
    monkeypatch.setenv("APPGUARD_LOGGING__CONSOLE", "false")


def _invoke(db_url, *args):
    return runner.invoke(app, ["--db-url", db_url, "--no-ai", *args])


def test_rules_lists_versions(db_url):
    result = _invoke(db_url, "rules")
    assert result.exit_code == 0
    assert "malware" in result.output
    assert "2025.1" in result.output


def test_clean_scan_exits_zero(db_url, make_zip, tmp_path):
    out = tmp_path / "out" / "result.json"
    result = _invoke(db_url, "scan", str(make_zip(CLEAN_ARCHIVE_FILES)), "--name", "Notes", "--json-out", str(out))

    assert result.exit_code == 0, result.output
    assert "Status: PASSED" in result.output
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["summary"]["status"] == "passed"
    assert payload["result"]["score"] == 100
    assert payload["result"]["package_id"] is None
    assert list((tmp_path / "cli-work").iterdir()) == []


def test_malicious_scan_exits_one(db_url, make_zip, tmp_path):
    files = {
        "notes/src/index.php": "<?php echo 'hello';",
        "notes/src/run.php": "<?php echo shell_exec($_GET['cmd']);",
    }
    out = tmp_path / "blocked.json"

    result = _invoke(db_url, "scan", str(make_zip(files)), "-p", "system_commands", "--json-out", str(out))

    assert result.exit_code == 1, result.output
    payload = json.loads(out.read_text(encoding="utf-8"))
    assert payload["summary"]["is_blocked"] is True
    types = {f["type"] for f in payload["result"]["findings"]}
    assert types == {"malware_pattern", "excessive_permissions"}


def test_broken_archive_exits_two(db_url, tmp_path):
    archive = tmp_path / "broken.zip"
    archive.write_bytes(b"garbage")
    result = _invoke(db_url, "scan", str(archive))
    assert result.exit_code == 2
    assert "Status: FAILED" in result.output


def test_registered_package_review_flow(db_url, registry, make_zip):
    files = dict(CLEAN_ARCHIVE_FILES)
    files["notes/src/x.php"] = "<?php eval(base64_decode($p));"
    package = registry.register_package(Package(name="Notes", archive_path=str(make_zip(files))))

    scanned = _invoke(db_url, "scan-package", str(package.id))
    assert scanned.exit_code == 1, scanned.output

    short = _invoke(db_url, "review", str(package.id), "--approve", "--reason", "ok")
    assert short.exit_code == 2

    approved = _invoke(
        db_url, "review", str(package.id), "--approve", "--reason", "Vendor removed the payload upstream"
    )
    assert approved.exit_code == 0, approved.output
    assert "approved_with_conditions" in approved.output
    assert registry.get_package(package.id).approval_status.value == "approved_with_conditions"

    shown = _invoke(db_url, "show", str(package.id), "--json")
    assert shown.exit_code == 0
    assert '"requires_admin_review": false' in shown.output

    stats = _invoke(db_url, "stats")
    assert "total_approved: 1" in stats.output


def test_unknown_package_exits_two(db_url):
    result = _invoke(db_url, "scan-package", "4242")
    assert result.exit_code == 2
    assert "not found" in result.output


def test_invalid_config_exits_two(db_url, monkeypatch):
    monkeypatch.setenv("APPGUARD_SCANNER__MAX_WORKERS", "0")
    result = _invoke(db_url, "rules")
    assert result.exit_code == 2
