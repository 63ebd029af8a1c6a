# src/appstore_reports/tasks/cli.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""App Store reports CLI: download or parse App Store Connect reports.

Commands:
    analytics   Resolve an analytics report through its request chain.
    sales       Fetch a sales summary report.
    finance     Fetch a financial or finance-detail report.
    batch       Run several report jobs from a JSON file.

Operations:
    parse_report      Print each output item's JSON on its own line.
    download_report   Write the decompressed report into ``--output-dir``.

Environment:
    APPSTORE_ISSUER_ID     API key issuer id.
    APPSTORE_KEY_ID        API key id.
    APPSTORE_PRIVATE_KEY   PEM (with \\n escapes) or base64-encoded PEM.
    APPSTORE_BASE_URL      Defaults to https://api.appstoreconnect.apple.com
    APPSTORE_TIMEOUT_S     Per-request timeout in seconds.
    CONTINUE_ON_FAIL       Keep going when an item fails (batch runs).
    OUTPUT_DIR             Default download directory.
    LOG_LEVEL              Root log level (logs go to stderr as JSON).
"""

from __future__ import annotations

import asyncio
import json
from collections.abc import Callable, Mapping, Sequence
from pathlib import Path
from typing import Any

import typer

from appstore_reports.application.use_cases.fetch_reports import (
    FetchAppStoreReports,
    FetchReportsRequest,
)
from appstore_reports.config.settings import Settings, get_settings
from appstore_reports.domain.entities.report_item import ReportItem
from appstore_reports.domain.entities.report_request import ReportJob, ResolutionCriteria
from appstore_reports.domain.enums.report import (
    AccessType,
    FinanceReportType,
    Granularity,
    OperationMode,
    ReportFamily,
)
from appstore_reports.domain.exceptions.appstore import InvalidCriteria
from appstore_reports.domain.exceptions.base import DomainError
from appstore_reports.infrastructure.auth.token_signer import TokenSigner
from appstore_reports.infrastructure.external_apis.appstore.client import AppStoreConnectClient
from appstore_reports.infrastructure.external_apis.appstore.resolver import ResourceResolver
from appstore_reports.infrastructure.external_apis.appstore.retriever import PayloadRetriever
from appstore_reports.infrastructure.external_apis.appstore.settings import AppStoreSettings
from appstore_reports.infrastructure.logging.logger import configure_root_logging, get_json_logger

configure_root_logging()
log = get_json_logger(__name__)

app = typer.Typer(add_completion=False, no_args_is_help=True)


async def _execute(jobs: Sequence[ReportJob], settings: Settings) -> list[ReportItem]:
    """Build the pipeline, run it and close the transport."""
    api_settings = AppStoreSettings()
    client = AppStoreConnectClient(api_settings)
    try:
        use_case = FetchAppStoreReports(
            signer=TokenSigner(audience=api_settings.audience),
            resolver=ResourceResolver(client),
            retriever=PayloadRetriever(client),
        )
        return await use_case.execute(
            FetchReportsRequest(
                jobs=jobs,
                credential=settings.credential(),
                continue_on_fail=settings.continue_on_fail,
            )
        )
    finally:
        await client.aclose()


def _emit(items: Sequence[ReportItem], output_dir: Path) -> None:
    """Write attachments to disk and print JSON bodies, one item per line."""
    for item in items:
        for attachment in item.binary.values():
            output_dir.mkdir(parents=True, exist_ok=True)
            target = output_dir / attachment.file_name
            target.write_bytes(attachment.data)
            typer.echo(str(target))
            log.info(
                "cli.report.written",
                extra={"path": str(target), "bytes": attachment.size},
            )
        if item.json or not item.binary:
            typer.echo(json.dumps(item.json, ensure_ascii=False))


def _run(jobs: Sequence[ReportJob], output_dir: Path | None) -> None:
    """Run ``jobs`` and map domain failures to exit code 1."""
    settings = get_settings()
    try:
        items = asyncio.run(_execute(jobs, settings))
    except DomainError as exc:
        log.error("cli.run.failed", extra={"code": exc.code, "details": exc.details})
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=1) from exc
    _emit(items, output_dir or settings.output_dir)
    if any(item.failed for item in items):
        raise typer.Exit(code=1)


def _criteria(build: Callable[..., ResolutionCriteria], **selectors: Any) -> ResolutionCriteria:
    """Build criteria from command options; bad selectors exit with code 2."""
    try:
        return build(**selectors)
    except DomainError as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc


def _job(
    criteria: ResolutionCriteria,
    operation: OperationMode,
    result_field: str | None,
) -> ReportJob:
    return ReportJob(
        criteria=criteria,
        operation=operation,
        result_field=result_field or get_settings().result_field,
    )


@app.command("analytics")
def analytics(
    app_id: str = typer.Option(..., help="App Store app id."),  # noqa: B008
    report_date: str = typer.Option(..., help="Processing date (YYYY-MM-DD)."),  # noqa: B008
    category: str = typer.Option("APP_USAGE", help="Report category."),  # noqa: B008
    report_name: str = typer.Option(  # noqa: B008
        "App Store Installation and Deletion Standard", help="Report name."
    ),
    granularity: Granularity = typer.Option(Granularity.MONTHLY),  # noqa: B008
    access_type: AccessType = typer.Option(AccessType.ONGOING),  # noqa: B008
    operation: OperationMode = typer.Option(OperationMode.PARSE_REPORT),  # noqa: B008
    result_field: str | None = typer.Option(None, help="Output field for parsed rows."),  # noqa: B008
    output_dir: Path | None = typer.Option(None, help="Download directory."),  # noqa: B008
) -> None:
    """Fetch an analytics report for one app."""
    criteria = _criteria(
        ResolutionCriteria.analytics,
        app_id=app_id,
        report_date=report_date,
        category=category,
        report_name=report_name,
        granularity=granularity,
        access_type=access_type,
    )
    _run([_job(criteria, operation, result_field)], output_dir)


@app.command("sales")
def sales(
    vendor_number: str = typer.Option(..., help="Vendor number."),  # noqa: B008
    report_date: str = typer.Option(..., help="Report date (YYYY-MM-DD or YYYY-MM)."),  # noqa: B008
    frequency: Granularity = typer.Option(Granularity.MONTHLY),  # noqa: B008
    operation: OperationMode = typer.Option(OperationMode.PARSE_REPORT),  # noqa: B008
    result_field: str | None = typer.Option(None, help="Output field for parsed rows."),  # noqa: B008
    output_dir: Path | None = typer.Option(None, help="Download directory."),  # noqa: B008
) -> None:
    """Fetch a sales summary report."""
    criteria = _criteria(
        ResolutionCriteria.sales,
        vendor_number=vendor_number,
        report_date=report_date,
        frequency=frequency,
    )
    _run([_job(criteria, operation, result_field)], output_dir)


@app.command("finance")
def finance(
    vendor_number: str = typer.Option(..., help="Vendor number."),  # noqa: B008
    report_date: str = typer.Option(..., help="Fiscal month (YYYY-MM)."),  # noqa: B008
    region_code: str = typer.Option(..., help="Region code; ZZ or Z1 for all regions."),  # noqa: B008
    report_type: FinanceReportType = typer.Option(FinanceReportType.FINANCIAL),  # noqa: B008
    operation: OperationMode = typer.Option(OperationMode.PARSE_REPORT),  # noqa: B008
    result_field: str | None = typer.Option(None, help="Output field prefix."),  # noqa: B008
    output_dir: Path | None = typer.Option(None, help="Download directory."),  # noqa: B008
) -> None:
    """Fetch a financial or finance-detail report."""
    criteria = _criteria(
        ResolutionCriteria.finance,
        vendor_number=vendor_number,
        report_date=report_date,
        region_code=region_code,
        report_type=report_type,
    )
    _run([_job(criteria, operation, result_field)], output_dir)


def job_from_mapping(raw: Mapping[str, Any]) -> ReportJob:
    """Build a job from one batch entry.

    Entry keys: ``family``, ``entity_id``, ``params``, and optionally
    ``operation``, ``result_field`` and ``json`` (the input item body).

    Raises:
        InvalidCriteria: If ``params`` or ``json`` is not an object, or a
            selector is missing.
        ValueError: If ``family`` or ``operation`` is unknown.
    """
    params = raw.get("params") or {}
    input_json = raw.get("json") or {}
    if not isinstance(params, Mapping) or not isinstance(input_json, Mapping):
        raise InvalidCriteria(
            "Batch entry 'params' and 'json' must be objects.",
            details={"entry": dict(raw)},
        )
    criteria = ResolutionCriteria(
        entity_id=str(raw.get("entity_id", "")),
        family=ReportFamily(str(raw.get("family", "")).upper()),
        params=params,
    )
    return ReportJob(
        criteria=criteria,
        operation=OperationMode(raw.get("operation", OperationMode.PARSE_REPORT.value)),
        result_field=raw.get("result_field") or get_settings().result_field,
        input_json=input_json,
    )


@app.command("batch")
def batch(
    jobs_file: Path = typer.Argument(..., exists=True, dir_okay=False, help="JSON array of jobs."),  # noqa: B008
    output_dir: Path | None = typer.Option(None, help="Download directory."),  # noqa: B008
) -> None:
    """Run every job in ``jobs_file`` in order."""
    try:
        raw = json.loads(jobs_file.read_text(encoding="utf-8"))
    except ValueError as exc:
        typer.echo(f"Error: jobs file is not valid JSON: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    if not isinstance(raw, list) or not all(isinstance(entry, dict) for entry in raw):
        typer.echo("Error: jobs file must contain a JSON array of objects.", err=True)
        raise typer.Exit(code=2)
    try:
        jobs = [job_from_mapping(entry) for entry in raw]
    except (DomainError, ValueError) as exc:
        typer.echo(f"Error: {exc}", err=True)
        raise typer.Exit(code=2) from exc
    _run(jobs, output_dir)


def main() -> None:
    """Console-script entry point."""
    app()


if __name__ == "__main__":
    main()
