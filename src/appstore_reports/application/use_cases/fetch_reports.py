# src/appstore_reports/application/use_cases/fetch_reports.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Use case: Fetch App Store Connect reports for a batch of items.

Scope:
    * For every input item, in order:
        - Sign a fresh API token.
        - Resolve the report's artifact location.
        - Download and gunzip the artifact.
        - Either attach the raw bytes (``download_report``) or parse them and
          merge the sections into the item's JSON (``parse_report``).
    * Items are independent: each gets its own token, resolution chain and
      parsed sections.

Item state machine:
    INIT -> TOKEN_SIGNED -> RESOLVED -> RETRIEVED
         -> DOWNLOAD_OUTPUT | PARSED_OUTPUT -> DONE
    Any non-terminal state may move to FAILED.

Failure policy:
    * Fail-fast by default: the first failing item aborts the run.
    * With ``continue_on_fail`` the failing item is emitted as an error item
      and later items still run.
"""

from __future__ import annotations

import uuid
from collections.abc import Sequence
from dataclasses import dataclass, field
from enum import Enum

from appstore_reports.domain.entities.credential import Credential
from appstore_reports.domain.entities.report_item import BinaryAttachment, ReportItem
from appstore_reports.domain.entities.report_request import ReportJob, ResolutionCriteria
from appstore_reports.domain.enums.report import OperationMode, ReportFamily
from appstore_reports.domain.exceptions.appstore import AppStoreError
from appstore_reports.domain.services.tsv_report_parser import TabularReportParser
from appstore_reports.infrastructure.auth.token_signer import TokenSigner
from appstore_reports.infrastructure.external_apis.appstore.resolver import ResourceResolver
from appstore_reports.infrastructure.external_apis.appstore.retriever import PayloadRetriever
from appstore_reports.infrastructure.logging.logger import (
    clear_run_context,
    get_json_logger,
    set_run_context,
)
from appstore_reports.infrastructure.observability.metrics_appstore import (
    get_appstore_errors_total,
    get_appstore_items_total,
)

logger = get_json_logger(__name__)


class ItemState(str, Enum):
    """Lifecycle of one item."""

    INIT = "init"
    TOKEN_SIGNED = "token_signed"
    RESOLVED = "resolved"
    RETRIEVED = "retrieved"
    DOWNLOAD_OUTPUT = "download_output"
    PARSED_OUTPUT = "parsed_output"
    DONE = "done"
    FAILED = "failed"


_TRANSITIONS: dict[ItemState, frozenset[ItemState]] = {
    ItemState.INIT: frozenset({ItemState.TOKEN_SIGNED, ItemState.FAILED}),
    ItemState.TOKEN_SIGNED: frozenset({ItemState.RESOLVED, ItemState.FAILED}),
    ItemState.RESOLVED: frozenset({ItemState.RETRIEVED, ItemState.FAILED}),
    ItemState.RETRIEVED: frozenset(
        {ItemState.DOWNLOAD_OUTPUT, ItemState.PARSED_OUTPUT, ItemState.FAILED}
    ),
    ItemState.DOWNLOAD_OUTPUT: frozenset({ItemState.DONE, ItemState.FAILED}),
    ItemState.PARSED_OUTPUT: frozenset({ItemState.DONE, ItemState.FAILED}),
    ItemState.DONE: frozenset(),
    ItemState.FAILED: frozenset(),
}


@dataclass
class ItemRun:
    """Mutable progress record of one item."""

    index: int
    job: ReportJob
    state: ItemState = ItemState.INIT
    failed_at: ItemState | None = None
    history: list[ItemState] = field(default_factory=lambda: [ItemState.INIT])

    def advance(self, target: ItemState) -> None:
        """Move to ``target``.

        Raises:
            RuntimeError: If the transition is not allowed.
        """
        if target not in _TRANSITIONS[self.state]:
            raise RuntimeError(f"Illegal item transition {self.state.value} -> {target.value}")
        if target is ItemState.FAILED:
            self.failed_at = self.state
        self.state = target
        self.history.append(target)


@dataclass(frozen=True)
class FetchReportsRequest:
    """Input of one orchestrator run."""

    jobs: Sequence[ReportJob]
    credential: Credential
    continue_on_fail: bool = False


def download_file_name(criteria: ResolutionCriteria) -> str:
    """Return the attachment file name for a downloaded report.

    Analytics reports are named after category and report name and saved as
    ``.csv``; sales and finance reports after report type and vendor number,
    saved as ``.tsv``.
    """
    params = criteria.params
    if criteria.family is ReportFamily.ANALYTICS:
        name = "-".join(params["report_name"].split()).lower()
        return f"report_{params['category'].lower()}_{name}_{criteria.report_date}.csv"
    report_type = "sales" if criteria.family is ReportFamily.SALES else params["report_type"]
    return f"report_{report_type.lower()}_{params['vendor_number']}_{criteria.report_date}.tsv"


class FetchAppStoreReports:
    """Run the sign → resolve → retrieve → shape pipeline for each item.

    Args:
        signer: Token signer; a fresh token is minted for every item.
        resolver: Resolves criteria to an artifact location.
        retriever: Downloads and decompresses artifacts.
        parser: Tabular report parser used in ``parse_report`` mode.
    """

    def __init__(
        self,
        *,
        signer: TokenSigner,
        resolver: ResourceResolver,
        retriever: PayloadRetriever,
        parser: TabularReportParser | None = None,
    ) -> None:
        self._signer = signer
        self._resolver = resolver
        self._retriever = retriever
        self._parser = parser or TabularReportParser()

    async def execute(self, req: FetchReportsRequest) -> list[ReportItem]:
        """Process every job in input order.

        Returns:
            One output item per input item, in input order.

        Raises:
            AppStoreError: The first item failure, unless ``continue_on_fail``.
        """
        run_id = uuid.uuid4().hex
        set_run_context(run_id=run_id)
        logger.info("appstore.run.start", extra={"items": len(req.jobs)})

        items: list[ReportItem] = []
        try:
            for index, job in enumerate(req.jobs):
                set_run_context(item_index=index)
                run = ItemRun(index=index, job=job)
                try:
                    items.append(await self._run_item(run, req.credential))
                except AppStoreError as exc:
                    self._record_failure(run, exc)
                    if not req.continue_on_fail:
                        raise
                    items.append(
                        ReportItem(
                            json={**job.input_json, "error": exc.message},
                            paired_item=index,
                            error=exc.message,
                        )
                    )
        finally:
            logger.info(
                "appstore.run.end",
                extra={"items": len(items), "failed": sum(1 for i in items if i.failed)},
            )
            clear_run_context()

        return items

    async def _run_item(self, run: ItemRun, credential: Credential) -> ReportItem:
        """Drive one item through the state machine."""
        job = run.job
        criteria = job.criteria
        logger.info(
            "appstore.item.start",
            extra={"family": criteria.family.value, "operation": job.operation.value},
        )

        token = self._signer.sign(credential)
        run.advance(ItemState.TOKEN_SIGNED)

        location = await self._resolver.resolve(criteria, token)
        run.advance(ItemState.RESOLVED)

        payload = await self._retriever.retrieve(location, token)
        run.advance(ItemState.RETRIEVED)

        if job.operation is OperationMode.DOWNLOAD_REPORT:
            run.advance(ItemState.DOWNLOAD_OUTPUT)
            attachment = BinaryAttachment.for_file(payload, download_file_name(criteria))
            item = ReportItem(json={}, binary={"report": attachment}, paired_item=run.index)
        else:
            run.advance(ItemState.PARSED_OUTPUT)
            sections = self._parser.parse(payload, criteria.parse_strategy, job.result_field)
            item = ReportItem(json={**job.input_json, **sections}, paired_item=run.index)

        run.advance(ItemState.DONE)
        get_appstore_items_total().labels(
            criteria.family.value, job.operation.value, "success"
        ).inc()
        logger.info("appstore.item.done", extra={"state": run.state.value})
        return item

    @staticmethod
    def _record_failure(run: ItemRun, exc: AppStoreError) -> None:
        run.advance(ItemState.FAILED)
        failed_at = run.failed_at.value if run.failed_at else ItemState.INIT.value
        get_appstore_errors_total().labels(failed_at, exc.code).inc()
        get_appstore_items_total().labels(
            run.job.criteria.family.value, run.job.operation.value, "error"
        ).inc()
        logger.warning(
            "appstore.item.failed",
            extra={"failed_at": failed_at, "code": exc.code, "error": exc.message},
        )
