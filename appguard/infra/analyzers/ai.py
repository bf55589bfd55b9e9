"""AI semantic analyzer.

Sends a bounded set of source files, each with the tenant context baked
into the prompt, to a :class:`TextCompletionClient` and turns the JSON it
answers with into ``origin=ai`` findings. A second package-level call
produces the free-text narrative stored as ``ai_analysis``.

Nothing here fails a scan:

- transport errors and timeouts record an ``ai_transport`` warning and the
  file contributes nothing;
- a response without a parseable JSON object records an ``ai_parse``
  warning and a "manual review" recommendation;
- vulnerability entries that do not validate are dropped with an
  ``ai_schema`` warning;
- a failed narrative call yields :data:`NARRATIVE_PLACEHOLDER`.

Severities are taken verbatim from the model.
"""
from __future__ import annotations

import json
import re
from typing import Any, Dict, List, Optional

from pydantic import ValidationError

from appguard.application.collector import FindingCollector
from appguard.application.file import SourceFile, find_manifest
from appguard.application.pool import fan_out
from appguard.core.exceptions import AiParseError, AiTransportError
from appguard.core.logging_config import get_logger
from appguard.core.models.schema import (
    AiAnalysisPayload,
    AiVulnerability,
    Finding,
    Origin,
    ScanContext,
)
from appguard.infra.ai_client import TextCompletionClient
from .base import Analyzer, ScanTarget, sanitize_snippet
from .prompts import build_file_prompt, build_narrative_prompt

logger = get_logger(__name__)

NARRATIVE_PLACEHOLDER = "AI narrative unavailable; decision based on rule-based analysis."
PARSE_FAILURE_RECOMMENDATION = "Manual code review recommended due to AI parsing failure"

# Slack on top of the client's own timeout before a call is abandoned
DEADLINE_GRACE_S = 1.0

STRUCTURE_ENTRIES = 50
SNIPPET_CHARS = 1000
KEY_MANIFESTS = ("app.json", "composer.json", "package.json")

_JSON_OBJECT = re.compile(r"\{.*\}", re.DOTALL)


def parse_ai_response(text: str) -> Dict[str, Any]:
    """Extract the first JSON object embedded in a model response.

    Tries the widest ``{...}`` span first, then scans for any decodable
    object.

    Raises
    ------
    AiParseError
        If no JSON object can be decoded from ``text``.
    """
    match = _JSON_OBJECT.search(text or "")
    if match:
        try:
            parsed = json.loads(match.group(0))
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass

    decoder = json.JSONDecoder()
    index = (text or "").find("{")
    while index != -1:
        try:
            parsed, _ = decoder.raw_decode(text, index)
            if isinstance(parsed, dict):
                return parsed
        except ValueError:
            pass
        index = text.find("{", index + 1)

    raise AiParseError("no JSON object found in AI response", {"response": (text or "")[:200]})


class AiSemanticAnalyzer(Analyzer):
    """Per-file AI review plus the package-level narrative.

    Parameters
    ----------
    client : TextCompletionClient
        Transport for completions.
    max_tokens : int
        Completion budget per call.
    timeout_s : float
        Per-file call timeout.
    narrative_timeout_s : float
        Timeout of the package-level call.
    max_workers : int
        Concurrent AI calls; small by default since calls are the bottleneck.
    content_budget : int
        Characters of each file included in its prompt.
    max_files : int
        Code files reviewed per package.
    max_file_bytes : int
        Larger files are not sent.
    """

    DEFAULT_TIMEOUT_S = 30.0
    DEFAULT_MAX_WORKERS = 2

    def __init__(
        self,
        client: TextCompletionClient,
        max_tokens: int = 2000,
        timeout_s: Optional[float] = None,
        narrative_timeout_s: float = 60.0,
        max_workers: Optional[int] = None,
        content_budget: int = 4000,
        max_files: int = 25,
        max_file_bytes: int = 1024 * 1024,
    ) -> None:
        super().__init__(timeout_s=timeout_s, max_workers=max_workers)
        self.client = client
        self.max_tokens = max_tokens
        self.narrative_timeout_s = narrative_timeout_s
        self.content_budget = content_budget
        self.max_files = max_files
        self.max_file_bytes = max_file_bytes

    @property
    def name(self) -> str:
        return "ai"

    def select_files(self, files) -> List[SourceFile]:
        code = [f for f in files if f.is_code and f.is_text and f.size <= self.max_file_bytes]
        return code[: self.max_files]

    def _complete(self, prompt: str, timeout: float) -> str:
        return self.client.complete(prompt, self.max_tokens, timeout)

    def to_findings(self, payload: Dict[str, Any], relpath: str, collector: FindingCollector) -> List[Finding]:
        try:
            parsed = AiAnalysisPayload.model_validate(payload)
        except ValidationError as e:
            collector.warn(self.name, "ai_schema", f"response rejected: {e.error_count()} errors", relpath)
            return []

        collector.recommend(parsed.recommendations)
        findings: List[Finding] = []
        for index, entry in enumerate(parsed.vulnerabilities):
            try:
                if not isinstance(entry, dict):
                    raise TypeError("entry is not an object")
                vuln = AiVulnerability.model_validate(entry)
            except (TypeError, ValidationError) as e:
                logger.debug("Discarding AI vulnerability %d for %s: %s", index, relpath, e)
                collector.warn(self.name, "ai_schema", f"vulnerability #{index} discarded: {e}", relpath)
                continue
            findings.append(
                Finding(
                    type=vuln.type,
                    severity=vuln.severity,
                    description=vuln.description or f"AI-reported {vuln.type}",
                    file=relpath,
                    line=vuln.line,
                    snippet=sanitize_snippet(vuln.code_snippet) if vuln.code_snippet else None,
                    origin=Origin.AI,
                    tenant_impact=vuln.tenant_impact,
                )
            )
        return findings

    def handle_response(self, text: str, relpath: str, collector: FindingCollector) -> None:
        try:
            payload = parse_ai_response(text)
        except AiParseError as e:
            logger.warning("AI response for %s not parseable", relpath)
            collector.warn(self.name, "ai_parse", e.message, relpath)
            collector.recommend([PARSE_FAILURE_RECOMMENDATION])
            return
        collector.extend(self.to_findings(payload, relpath, collector))

    def analyze(self, target: ScanTarget, collector: FindingCollector) -> None:
        files = self.select_files(target.files)
        context: ScanContext = target.context

        def review(source: SourceFile) -> str:
            prompt = build_file_prompt(source.read_text(), source.relpath, context, self.content_budget)
            return self._complete(prompt, self.timeout_s)

        deadline = self.timeout_s + DEADLINE_GRACE_S
        for outcome in fan_out(review, files, self.max_workers, deadline, label=self.name):
            relpath = outcome.item.relpath
            if outcome.timed_out:
                collector.warn(self.name, "ai_transport", f"AI call exceeded {self.timeout_s}s", relpath)
            elif isinstance(outcome.error, AiTransportError):
                logger.warning("AI call for %s failed: %s", relpath, outcome.error.message)
                collector.warn(self.name, "ai_transport", outcome.error.message, relpath)
            elif isinstance(outcome.error, OSError):
                collector.warn(self.name, "file_read", f"cannot read file: {outcome.error}", relpath)
            elif outcome.error is not None:
                logger.warning("AI call for %s raised %r", relpath, outcome.error)
                collector.warn(self.name, "ai_transport", f"AI call failed: {outcome.error}", relpath)
            else:
                self.handle_response(outcome.value, relpath, collector)
        logger.debug("AI reviewed %d files", len(files))

    def key_snippets(self, target: ScanTarget) -> str:
        parts = []
        for filename in KEY_MANIFESTS:
            manifest = find_manifest(list(target.files), filename)
            if manifest is None:
                continue
            try:
                content = manifest.read_text()[:SNIPPET_CHARS]
            except OSError as e:
                logger.debug("Skipping %s in narrative: %s", manifest.relpath, e)
                continue
            parts.append(f"=== {manifest.relpath} ===\n{content}")
        return "\n\n".join(parts)

    def narrative(self, target: ScanTarget) -> str:
        """Package-level free-text assessment, or the placeholder on any failure."""
        structure = [f.relpath for f in target.files[:STRUCTURE_ENTRIES]]
        prompt = build_narrative_prompt(target.package, target.context, structure, self.key_snippets(target))

        deadline = self.narrative_timeout_s + DEADLINE_GRACE_S

        def call(text: str) -> str:
            return self._complete(text, self.narrative_timeout_s)

        for outcome in fan_out(call, [prompt], 1, deadline, label="narrative"):
            if outcome.ok and isinstance(outcome.value, str) and outcome.value.strip():
                return outcome.value.strip()
            reason = "timed out" if outcome.timed_out else repr(outcome.error or "empty response")
            logger.warning("AI narrative unavailable: %s", reason)
        return NARRATIVE_PLACEHOLDER


__all__ = [
    "NARRATIVE_PLACEHOLDER",
    "PARSE_FAILURE_RECOMMENDATION",
    "parse_ai_response",
    "AiSemanticAnalyzer",
]
