"""Scan pipeline orchestration.

:class:`SecurityScanner` runs one package through the whole pipeline:

    extract -> context -> analyzers -> filter -> score -> decide
            -> recommend -> narrative -> write/update status -> cleanup

Only an extraction failure (or an unexpected pipeline error) produces a
``failed`` result; every analyzer problem degrades to a warning. The result
is written and the working directory removed on every path.

Examples
--------
>>> scanner = build_scanner(get_default_config())
>>> result = scanner.scan_package(Package(name="Invoices", archive_path="invoices.zip"))
>>> result.status
<ScanStatus.PASSED: 'passed'>
"""
from __future__ import annotations

import time
from pathlib import Path
from typing import Any, Callable, Dict, Iterable, List, Optional

from sqlalchemy.orm import sessionmaker

from appguard.application.collector import FindingCollector
from appguard.application.context import build_context
from appguard.application.decision import decide, failed_result
from appguard.application.extractor import allocate_work_dir, extract_archive
from appguard.application.file import collect_files
from appguard.application.filtering import filter_false_positives
from appguard.application.recommendations import build_recommendations
from appguard.application.scoring import assess
from appguard.application.writer import ResultWriter
from appguard.config.config_schema import Config
from appguard.core.exceptions import ExtractionError
from appguard.core.logging_config import LogContext, get_logger
from appguard.core.models.schema import (
    IsolationArchitecture,
    Package,
    ScanContext,
    ScanResult,
)
from appguard.infra.ai_client import TextCompletionClient, build_completion_client
from appguard.infra.analyzers import (
    NARRATIVE_PLACEHOLDER,
    AiSemanticAnalyzer,
    Analyzer,
    ConfigurationAuditor,
    DependencyScanner,
    MalwareScanner,
    ScanTarget,
    TenancyScanner,
)
from appguard.infra.registry import PackageRegistry
from appguard.rules import AllowlistPolicy, RecommendationTable

logger = get_logger(__name__)

# progress_cb(event, analyzer name, data)
ProgressCallback = Callable[[str, str, Dict[str, Any]], None]

PATTERN_SCANNERS = {
    "malware": MalwareScanner,
    "tenancy": TenancyScanner,
}


def compose_analysis(narrative: str, context: ScanContext) -> str:
    """Narrative plus any context-lookup warnings for the human reviewer."""
    if not context.warnings:
        return narrative
    lines = "\n".join(f"- {w.render()}" for w in context.warnings)
    return f"{narrative}\n\nContext warnings:\n{lines}"


class SecurityScanner:
    """Runs the scan pipeline for one package at a time.

    Parameters
    ----------
    analyzers : iterable of Analyzer
        Run in order over the same target and collector.
    writer : ResultWriter
        Persistence, status transitions and cleanup.
    registry : PackageRegistry, optional
        Team and installed-package lookups for the scan context.
    narrator : AiSemanticAnalyzer, optional
        Produces ``ai_analysis``; without one the placeholder is used.
    work_dir_base : str
        Parent of the per-scan working directories.
    max_extract_bytes : int, optional
        Ceiling on the extracted size of one archive.
    """

    def __init__(
        self,
        analyzers: Iterable[Analyzer],
        writer: ResultWriter,
        registry: Optional[PackageRegistry] = None,
        narrator: Optional[AiSemanticAnalyzer] = None,
        work_dir_base: str = "storage/temp_scans",
        max_extract_bytes: Optional[int] = None,
        platform_version: str = "1.0.0",
        isolation: Optional[IsolationArchitecture] = None,
        allowlist: Optional[AllowlistPolicy] = None,
        recommendation_table: Optional[RecommendationTable] = None,
    ) -> None:
        self.analyzers: List[Analyzer] = list(analyzers)
        self.writer = writer
        self.registry = registry
        self.narrator = narrator
        self.work_dir_base = work_dir_base
        self.max_extract_bytes = max_extract_bytes
        self.platform_version = platform_version
        self.isolation = isolation
        self.allowlist = allowlist
        self.recommendation_table = recommendation_table

    def _run_analyzer(
        self,
        analyzer: Analyzer,
        target: ScanTarget,
        collector: FindingCollector,
        progress_cb: Optional[ProgressCallback],
    ) -> None:
        if progress_cb:
            progress_cb("analyzer_start", analyzer.name, {})
        t0 = time.perf_counter()
        try:
            analyzer.analyze(target, collector)
        except Exception as e:
            logger.exception("Analyzer %s crashed", analyzer.name)
            collector.warn(analyzer.name, "analyzer_error", f"analyzer aborted: {e}")
        dt = time.perf_counter() - t0
        logger.debug("Analyzer %s finished in %.2fs", analyzer.name, dt)
        if progress_cb:
            progress_cb("analyzer_done", analyzer.name, {"duration_s": dt})

    def _run(self, package: Package, work_dir: Path, progress_cb: Optional[ProgressCallback]) -> ScanResult:
        if not package.archive_path:
            raise ExtractionError("<none>", "package has no archive")
        extraction = extract_archive(package.archive_path, work_dir, self.max_extract_bytes)
        context = build_context(package, self.registry, self.platform_version, self.isolation)

        target = ScanTarget(
            root=extraction.root,
            files=tuple(collect_files(extraction.root)),
            package=package,
            context=context,
        )
        collector = FindingCollector()
        collector.add_warnings(extraction.warnings)
        collector.add_warnings(context.warnings)

        for analyzer in self.analyzers:
            self._run_analyzer(analyzer, target, collector, progress_cb)

        raw, warnings, ai_recommendations = collector.snapshot()
        kept, _removed = filter_false_positives(raw, context, self.allowlist)
        assessment = assess(kept)
        decision = decide(assessment.risk_level, kept)
        recommendations = build_recommendations(kept, context, ai_recommendations, self.recommendation_table)
        narrative = self.narrator.narrative(target) if self.narrator else NARRATIVE_PLACEHOLDER

        return ScanResult(
            package_id=package.id,
            status=decision.status,
            risk_level=assessment.risk_level,
            score=assessment.score,
            findings=tuple(kept),
            recommendations=tuple(recommendations),
            blocked_reasons=decision.blocked_reasons,
            ai_analysis=compose_analysis(narrative, context),
            warnings=tuple(warnings),
            severity_counts=assessment.severity_counts,
        )

    def scan_package(self, package: Package, progress_cb: Optional[ProgressCallback] = None) -> ScanResult:
        """Scan ``package`` and return its finalized result.

        Raises
        ------
        DatabaseError
            If the result cannot be persisted. The status transition is
            still requested and the working directory removed.
        """
        log = LogContext(logger, package_id=package.id)
        log.info("Starting security scan of %s", package.name)
        self.writer.mark_scanning(package.id)

        work_dir: Optional[Path] = None
        result: Optional[ScanResult] = None
        try:
            work_dir = allocate_work_dir(self.work_dir_base)
            result = self._run(package, work_dir, progress_cb)
        except ExtractionError as e:
            log.error("%s", e.message)
            result = failed_result(package.id, e.message)
        except Exception as e:
            log.exception("Security scan failed")
            result = failed_result(package.id, str(e))
        finally:
            try:
                if result is not None:
                    try:
                        self.writer.write(result)
                    finally:
                        self.writer.update_status(result)
            finally:
                self.writer.cleanup(work_dir)

        log.info(
            "Scan finished: %s (risk %s, score %d, %d findings)",
            result.status.value, result.risk_level.value, result.score, len(result.findings),
        )
        return result


def build_analyzers(config: Config, client: TextCompletionClient) -> List[Analyzer]:
    """Instantiate the analyzers switched on by ``config.capabilities``."""
    caps = config.capabilities
    scanner_cfg = config.scanner
    analyzers: List[Analyzer] = []

    for table in caps.rule_tables:
        factory = PATTERN_SCANNERS.get(table)
        if factory is None:
            continue
        analyzers.append(
            factory(
                timeout_s=scanner_cfg.file_timeout_s,
                max_workers=scanner_cfg.max_workers,
                max_file_bytes=scanner_cfg.max_file_bytes,
            )
        )
    if caps.manifest_formats:
        analyzers.append(DependencyScanner(manifest_formats=list(caps.manifest_formats)))
    if caps.configuration_audit:
        analyzers.append(ConfigurationAuditor())

    analyzers.append(build_ai_analyzer(config, client))
    return analyzers


def build_ai_analyzer(config: Config, client: TextCompletionClient) -> AiSemanticAnalyzer:
    ai = config.ai
    return AiSemanticAnalyzer(
        client,
        max_tokens=ai.max_tokens,
        timeout_s=ai.timeout_s,
        narrative_timeout_s=ai.narrative_timeout_s,
        max_workers=ai.max_workers,
        content_budget=ai.content_budget,
        max_files=ai.max_files,
        max_file_bytes=config.scanner.max_file_bytes,
    )


def build_scanner(
    config: Config,
    session_factory: Optional[sessionmaker] = None,
    registry: Optional[PackageRegistry] = None,
    client: Optional[TextCompletionClient] = None,
) -> SecurityScanner:
    """Wire a :class:`SecurityScanner` from configuration.

    ``client`` overrides the transport described by ``config.ai``.
    """
    client = client or build_completion_client(config.ai)
    analyzers = build_analyzers(config, client)
    narrator = next(a for a in analyzers if isinstance(a, AiSemanticAnalyzer))
    return SecurityScanner(
        analyzers=analyzers,
        writer=ResultWriter(session_factory, registry),
        registry=registry,
        narrator=narrator,
        work_dir_base=config.scanner.work_dir,
        max_extract_bytes=config.scanner.max_extract_bytes,
    )


__all__ = [
    "ProgressCallback",
    "SecurityScanner",
    "compose_analysis",
    "build_analyzers",
    "build_ai_analyzer",
    "build_scanner",
]
