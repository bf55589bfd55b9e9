"""AppGuard CLI - Command Line Interface.

This module provides the command-line interface for AppGuard, the security
scanner for marketplace application packages. It scans uploaded archives,
stores the results and supports the admin review workflow.

Synopsis
--------
seed-db
    Create the database schema (optionally with a demo team)
scan
    Scan an archive directly, without a registered package
scan-package
    Scan a package registered in the database
rescan
    Re-run the scan of a registered package
review
    Approve or reject a blocked package
show
    Show the latest scan summary of a package
stats
    Show review queue counters
rules
    List rule tables and their versions

Options
-------
Global options (before the command):
    --config, -c
        YAML or TOML configuration file
    --log-level
        Override the configured log level
    --db-url
        Override the configured database URL
    --ai / --no-ai
        Switch the AI analyzer on or off

Exit Codes
----------
0 passed, 1 blocked, 2 failed (or the command could not run).

Examples
--------
Initialize database:
    $ python -m appguard seed-db

Scan an archive ad hoc:
    $ python -m appguard scan ./crm.zip --name CRM --permission file_system_write

Review a blocked package:
    $ python -m appguard review 42 --approve --reason "Vendor confirmed the eval call is dead code"

See Also
--------
appguard.application.orchestrator : Pipeline orchestration
appguard.infra.db.seed : Database initialization
"""
from __future__ import annotations

import json
from pathlib import Path
from typing import List, Optional

import typer
from tqdm import tqdm

from appguard.application.orchestrator import SecurityScanner, build_scanner
from appguard.application.review import ReviewService
from appguard.config import Config, ConfigLoader
from appguard.core.exceptions import AppGuardError
from appguard.core.logging_config import get_logger, setup_logging
from appguard.core.models.schema import Package, ScanResult, ScanStatus
from appguard.infra.db.connection import get_session_factory
from appguard.infra.db.seed import seed_database
from appguard.infra.registry import SqlPackageRegistry
from appguard.rules import TABLE_NAMES, rule_table_versions

logger = get_logger(__name__)

EXIT_CODES = {
    ScanStatus.PASSED: 0,
    ScanStatus.BLOCKED: 1,
    ScanStatus.FAILED: 2,
}

app = typer.Typer(
    help="AppGuard CLI - security scanning for marketplace app packages",
    add_completion=False,
)


def _config(ctx: typer.Context) -> Config:
    return ctx.obj


def _fail(message: str) -> None:
    typer.secho(message, fg=typer.colors.RED, err=True)
    raise typer.Exit(code=2)


def _scanner(config: Config, with_registry: bool = True) -> SecurityScanner:
    seed_database(config.database.url)
    session_factory = get_session_factory(config.database.url, config.database.echo)
    registry = SqlPackageRegistry(session_factory) if with_registry else None
    return build_scanner(config, session_factory=session_factory, registry=registry)


def _run_with_progress(scanner: SecurityScanner, package: Package) -> ScanResult:
    bar = tqdm(total=len(scanner.analyzers), desc="analyzers", unit="step", dynamic_ncols=True)

    def _cb(event: str, name: str, data: dict) -> None:
        if event == "analyzer_done":
            bar.update(1)
            bar.set_postfix_str(name, refresh=True)

    try:
        return scanner.scan_package(package, progress_cb=_cb)
    finally:
        bar.close()


def _print_result(result: ScanResult) -> None:
    colors = {
        ScanStatus.PASSED: typer.colors.GREEN,
        ScanStatus.BLOCKED: typer.colors.RED,
        ScanStatus.FAILED: typer.colors.YELLOW,
    }
    typer.echo("\n" + "=" * 60)
    typer.secho(f"Status: {result.status.value.upper()}", fg=colors[result.status], bold=True)
    typer.echo(f"Risk level: {result.risk_level.value}   Score: {result.score}/100")
    counts = ", ".join(f"{k}={v}" for k, v in result.severity_counts.items())
    typer.echo(f"Findings: {len(result.findings)} ({counts or 'none'})")
    for finding in result.findings:
        where = finding.file or "-"
        if finding.line:
            where += f":{finding.line}"
        typer.echo(f"  [{finding.severity.value}] {finding.type} {where} - {finding.description}")
    if result.blocked_reasons:
        typer.echo("Blocked reasons: " + ", ".join(result.blocked_reasons))
    if result.warnings:
        typer.echo(f"Warnings: {len(result.warnings)}")
        for warning in result.warnings:
            typer.echo(f"  {warning.render()}")
    typer.echo("Recommendations:")
    for rec in result.recommendations:
        typer.echo(f"  - {rec}")
    typer.echo("=" * 60)


def _write_json(result: ScanResult, json_out: Optional[str]) -> None:
    if not json_out:
        return
    out_path = Path(json_out)
    out_path.parent.mkdir(parents=True, exist_ok=True)
    payload = {"summary": result.summary(), "result": result.model_dump(mode="json")}
    out_path.write_text(json.dumps(payload, ensure_ascii=False, indent=2), encoding="utf-8")
    typer.echo(f"Result written to {out_path}")


def _finish(result: ScanResult, json_out: Optional[str] = None) -> None:
    _print_result(result)
    _write_json(result, json_out)
    raise typer.Exit(code=EXIT_CODES[result.status])


@app.callback()
def main(
    ctx: typer.Context,
    config_file: Optional[str] = typer.Option(None, "--config", "-c", help="YAML or TOML configuration file"),
    log_level: Optional[str] = typer.Option(None, "--log-level", help="DEBUG, INFO, WARNING, ERROR"),
    db_url: Optional[str] = typer.Option(None, "--db-url", help="SQLAlchemy database URL"),
    ai_enabled: Optional[bool] = typer.Option(None, "--ai/--no-ai", help="Enable the AI analyzer"),
) -> None:
    """Load configuration and set up logging for every command."""
    args = {"log_level": log_level, "db_url": db_url, "ai_enabled": ai_enabled}
    try:
        config = ConfigLoader().load_config(config_file=config_file, args=args)
    except AppGuardError as e:
        _fail(e.message)
    setup_logging(
        log_level=config.logging.level,
        log_file=config.logging.file,
        log_dir=config.logging.dir,
        console_output=config.logging.console,
        file_output=config.logging.file_output,
        max_bytes=config.logging.max_bytes,
        backup_count=config.logging.backup_count,
    )
    ctx.obj = config


@app.command("seed-db")
def seed_db(
    ctx: typer.Context,
    demo: bool = typer.Option(False, "--demo", help="Also create a demo team with an installed module"),
) -> None:
    """Create the database schema.

    Idempotent: existing tables and rows are left untouched.
    """
    config = _config(ctx)
    seed_database(config.database.url, demo=demo)
    typer.echo("Database seeded successfully.")


@app.command("scan")
def scan(
    ctx: typer.Context,
    archive: Path = typer.Argument(..., help="Zip or tar archive to scan"),
    name: Optional[str] = typer.Option(None, "--name", help="Package name (defaults to the archive name)"),
    package_type: str = typer.Option("iframe", "--type", help="Declared package type"),
    description: str = typer.Option("", "--description", help="Package description"),
    team_id: Optional[int] = typer.Option(None, "--team-id", help="Submitting team, for tenant context"),
    permissions: Optional[List[str]] = typer.Option(None, "--permission", "-p", help="Declared permission (repeatable)"),
    json_out: Optional[str] = typer.Option(None, "--json-out", help="Write the result as JSON to this path"),
) -> None:
    """Scan an archive that is not registered as a package.

    The result is stored without a package id and no status transition is
    requested.
    """
    config = _config(ctx)
    package = Package(
        name=name or archive.stem,
        type=package_type,
        description=description,
        permissions=list(permissions or []),
        team_id=team_id,
        archive_path=str(archive),
    )
    scanner = _scanner(config)
    _finish(_run_with_progress(scanner, package), json_out)


def _scan_registered(config: Config, package_id: int, json_out: Optional[str], rescan: bool) -> None:
    scanner = _scanner(config)
    try:
        package = scanner.registry.get_package(package_id)
    except AppGuardError as e:
        _fail(e.message)
    if not package.archive_path:
        _fail(f"Package {package_id} has no archive to scan")

    previous = None
    if rescan:
        reviews = ReviewService(scanner.writer.session_factory, scanner.registry)
        previous = reviews.latest_result(package_id)

    result = _run_with_progress(scanner, package)
    if rescan:
        logger.info(
            "Manual rescan of package %s: risk %s -> %s",
            package_id,
            previous.risk_level.value if previous else "none",
            result.risk_level.value,
        )
    _finish(result, json_out)


@app.command("scan-package")
def scan_package(
    ctx: typer.Context,
    package_id: int = typer.Argument(..., help="Registered package id"),
    json_out: Optional[str] = typer.Option(None, "--json-out", help="Write the result as JSON to this path"),
) -> None:
    """Run the full pipeline for a registered package."""
    _scan_registered(_config(ctx), package_id, json_out, rescan=False)


@app.command("rescan")
def rescan(
    ctx: typer.Context,
    package_id: int = typer.Argument(..., help="Registered package id"),
    json_out: Optional[str] = typer.Option(None, "--json-out", help="Write the result as JSON to this path"),
) -> None:
    """Scan a registered package again; a new result row is appended."""
    _scan_registered(_config(ctx), package_id, json_out, rescan=True)


def _review_service(config: Config) -> ReviewService:
    seed_database(config.database.url)
    session_factory = get_session_factory(config.database.url, config.database.echo)
    return ReviewService(session_factory, SqlPackageRegistry(session_factory))


@app.command("review")
def review(
    ctx: typer.Context,
    package_id: int = typer.Argument(..., help="Registered package id"),
    approve: Optional[bool] = typer.Option(None, "--approve/--reject", help="Override the block or confirm it"),
    reason: str = typer.Option(..., "--reason", help="Justification, at least 10 characters"),
    reviewer: Optional[str] = typer.Option(None, "--reviewer", help="Name recorded with the decision"),
) -> None:
    """Record an admin decision on the latest blocked or failed scan."""
    if approve is None:
        _fail("Pass either --approve or --reject")
    service = _review_service(_config(ctx))
    try:
        if approve:
            status = service.approve(package_id, reason, reviewer)
        else:
            status = service.reject(package_id, reason, reviewer)
    except AppGuardError as e:
        _fail(e.message)
    typer.secho(f"Package {package_id} is now {status.value}", fg=typer.colors.GREEN)


@app.command("show")
def show(
    ctx: typer.Context,
    package_id: int = typer.Argument(..., help="Registered package id"),
    as_json: bool = typer.Option(False, "--json", help="Print the summary as JSON"),
) -> None:
    """Show the latest scan summary of a package."""
    service = _review_service(_config(ctx))
    summary = service.summary(package_id)
    if summary is None:
        _fail(f"Package {package_id} has no scan result")
    if as_json:
        typer.echo(json.dumps(summary, ensure_ascii=False, indent=2))
        return
    for key, value in summary.items():
        typer.echo(f"{key}: {value}")


@app.command("stats")
def stats(ctx: typer.Context) -> None:
    """Show review queue counters."""
    for key, value in _review_service(_config(ctx)).stats().items():
        typer.echo(f"{key}: {value}")


@app.command("rules")
def rules() -> None:
    """List the shipped rule tables and their versions."""
    try:
        versions = rule_table_versions()
    except AppGuardError as e:
        _fail(e.message)
    for name in TABLE_NAMES:
        typer.echo(f"{name:<16} {versions[name]}")
