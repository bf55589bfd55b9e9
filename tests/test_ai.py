"""Tests for the AI semantic analyzer and its response parsing."""

from __future__ import annotations

import pytest

from appguard.core.exceptions import AiParseError
from appguard.core.models.schema import Origin, Package, Severity
from appguard.infra.analyzers import NARRATIVE_PLACEHOLDER, AiSemanticAnalyzer, parse_ai_response
from appguard.infra.analyzers.ai import PARSE_FAILURE_RECOMMENDATION

from conftest import HangingClient, StaticClient, TimeoutClient, json_reply


@pytest.mark.parametrize(
    "text",
    [
        '{"vulnerabilities": []}',
        'Sure! Here you go:\n```json\n{"vulnerabilities": []}\n```',
        'prefix {"vulnerabilities": [], "meta": {"nested": true}} suffix',
        'first {"vulnerabilities": []} then {"other": 1}',
    ],
)
def test_parse_recovers_embedded_object(text):
    assert parse_ai_response(text)["vulnerabilities"] == []


@pytest.mark.parametrize("text", ["", "no json here", "[1, 2, 3]", "{not: valid}"])
def test_parse_failure(text):
    with pytest.raises(AiParseError):
        parse_ai_response(text)


def _analyzer(client, **kwargs):
    kwargs.setdefault("timeout_s", 0.5)
    kwargs.setdefault("narrative_timeout_s", 0.5)
    return AiSemanticAnalyzer(client, **kwargs)


def test_valid_entries_become_ai_findings(make_target, collector, team_context):
    reply = json_reply({
        "vulnerabilities": [
            {
                "type": "SQL Injection",
                "severity": "CRITICAL",
                "description": "Raw query built from request input",
                "line": "line 12",
                "code_snippet": "DB::select(\"SELECT * FROM t WHERE id=$id\")",
                "tenant_impact": "none, tenant database only",
            },
            {"type": "xss", "description": "missing severity"},
            {"type": "xss", "severity": "urgent"},
            "not an object",
        ],
        "recommendations": ["Use parameter binding"],
    })
    target = make_target({"src/Report.php": "<?php // code"}, context=team_context)

    _analyzer(StaticClient(reply)).analyze(target, collector)
    findings, warnings, recommendations = collector.snapshot()

    assert len(findings) == 1
    finding = findings[0]
    assert finding.type == "sql_injection"
    assert finding.severity == Severity.CRITICAL
    assert finding.origin == Origin.AI
    assert finding.line == 12
    assert finding.file == "src/Report.php"
    assert finding.tenant_impact == "none, tenant database only"
    assert [w.code for w in warnings] == ["ai_schema"] * 3
    assert recommendations == ["Use parameter binding"]


def test_unparseable_reply_recommends_manual_review(make_target, collector):
    target = make_target({"a.php": "<?php", "b.js": "let x = 1;"})
    _analyzer(StaticClient("I could not analyze this file, sorry.")).analyze(target, collector)
    findings, warnings, recommendations = collector.snapshot()

    assert findings == []
    assert sorted(w.file for w in warnings) == ["a.php", "b.js"]
    assert {w.code for w in warnings} == {"ai_parse"}
    assert PARSE_FAILURE_RECOMMENDATION in recommendations


def test_transport_errors_are_warnings(make_target, collector):
    client = TimeoutClient()
    target = make_target({"a.php": "<?php", "b.php": "<?php", "readme.md": "# hi"})
    _analyzer(client).analyze(target, collector)
    findings, warnings, _ = collector.snapshot()

    assert findings == []
    assert len(client.calls) == 2
    assert sorted((w.code, w.file) for w in warnings) == [("ai_transport", "a.php"), ("ai_transport", "b.php")]


def test_hanging_call_is_abandoned(make_target, collector):
    target = make_target({"slow.php": "<?php"})
    _analyzer(HangingClient(delay=3.0), timeout_s=0.2).analyze(target, collector)
    findings, warnings, _ = collector.snapshot()
    assert findings == []
    assert [(w.stage, w.code) for w in warnings] == [("ai", "ai_transport")]


def test_file_selection_respects_limits(make_target):
    files = {f"src/f{i}.php": "<?php" for i in range(5)}
    files.update({"logo.png": b"\x89PNG\x00", "notes.txt": "words", "big.js": "x" * 5000})
    target = make_target(files)
    selected = _analyzer(StaticClient("{}"), max_files=3, max_file_bytes=1000).select_files(target.files)
    assert [f.relpath for f in selected] == ["src/f0.php", "src/f1.php", "src/f2.php"]


def test_file_prompt_carries_tenant_context(make_target, collector, team_context):
    client = StaticClient('{"vulnerabilities": []}')
    target = make_target({"a.php": "<?php " + "x" * 100}, context=team_context)
    _analyzer(client, content_budget=20).analyze(target, collector)

    prompt = client.prompts[0]
    assert "Tenant ID: acme" in prompt
    assert "CRM (laravel_module)" in prompt
    assert "File: a.php" in prompt
    assert "x" * 30 not in prompt


def test_narrative_success(make_target):
    client = StaticClient("  Low risk overall.  ")
    target = make_target({"app.json": '{"name": "CRM"}'}, package=Package(name="CRM", description="Contacts"))
    assert _analyzer(client).narrative(target) == "Low risk overall."
    assert "App Name: CRM" in client.prompts[0]
    assert "=== app.json ===" in client.prompts[0]


@pytest.mark.parametrize("client", [TimeoutClient(), StaticClient("   ")])
def test_narrative_placeholder(make_target, client):
    target = make_target({"a.php": "<?php"})
    assert _analyzer(client).narrative(target) == NARRATIVE_PLACEHOLDER


def test_narrative_placeholder_on_hang(make_target):
    target = make_target({"a.php": "<?php"})
    analyzer = _analyzer(HangingClient(delay=3.0), narrative_timeout_s=0.1)
    assert analyzer.narrative(target) == NARRATIVE_PLACEHOLDER
