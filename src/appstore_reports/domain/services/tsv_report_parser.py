# src/appstore_reports/domain/services/tsv_report_parser.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Tabular report parser.

Purpose:
    Convert a decompressed, tab-separated App Store Connect report into
    structured records. Reports carry no explicit schema; sections are
    delimited by sentinel rows instead.

Strategies:
    * ``PLAIN`` (analytics, sales): line 0 is the header, every other line is
      a record. One section under ``<field>``.
    * ``FINANCE_STANDARD`` (finance ``FINANCIAL``): detail records until the
      ``Total_Rows`` sentinel, then 4-column aggregated records. Sections
      ``<field>_detailed`` and ``<field>_aggregated``.
    * ``FINANCE_DETAIL`` (finance ``FINANCE_DETAIL``): key/value metadata
      until ``Transaction Date``, detail records until ``Country Of Sale``,
      then aggregated records. Sections ``<field>_meta``,
      ``<field>_detailed`` and ``<field>_aggregated``.

Row policy:
    * Rows are zipped onto the header by position. Missing trailing values are
      absent keys; surplus values are ignored. Malformed rows never fail.
    * Aggregated rows with fewer than four columns are dropped.
    * Blank lines carry no data and are skipped.

Layer:
    domain/services
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Iterator, Sequence
from typing import Any, Final

from appstore_reports.domain.enums.report import ParseStrategy

logger = logging.getLogger(__name__)

TOTAL_ROWS_SENTINEL: Final[str] = "Total_Rows"
TRANSACTION_DATE_SENTINEL: Final[str] = "Transaction Date"
COUNTRY_OF_SALE_SENTINEL: Final[str] = "Country Of Sale"

AGGREGATED_COLUMNS: Final[tuple[str, ...]] = (
    "country",
    "currency",
    "quantity",
    "extendedPartnerShare",
)

Record = dict[str, str]
ParsedSections = dict[str, Any]


def split_fields(line: str) -> list[str]:
    """Split one report line into its tab-delimited fields."""
    return line.rstrip("\r").split("\t")


def zip_record(header: Sequence[str], row: Sequence[str]) -> Record:
    """Zip a row onto the header by position."""
    return dict(zip(header, row))


def aggregated_record(row: Sequence[str]) -> Record | None:
    """Return the aggregated record for ``row``, or None if it is too short."""
    if len(row) < len(AGGREGATED_COLUMNS):
        return None
    return dict(zip(AGGREGATED_COLUMNS, row))


def _lines(payload: bytes | str) -> list[str]:
    text = payload.decode("utf-8", errors="replace") if isinstance(payload, bytes) else payload
    return [line.rstrip("\r") for line in text.strip().split("\n") if line.strip()]


def _aggregate(lines: Iterator[str]) -> list[Record]:
    records: list[Record] = []
    dropped = 0
    for line in lines:
        record = aggregated_record(split_fields(line))
        if record is None:
            dropped += 1
            continue
        records.append(record)
    if dropped:
        logger.debug("report.parse.aggregated_rows_dropped", extra={"dropped": dropped})
    return records


def parse_plain(lines: Sequence[str], result_field: str) -> ParsedSections:
    """Header on line 0; every following line is one record."""
    if not lines:
        return {result_field: []}
    header = split_fields(lines[0])
    return {result_field: [zip_record(header, split_fields(line)) for line in lines[1:]]}


def parse_finance_standard(lines: Sequence[str], result_field: str) -> ParsedSections:
    """Detail rows up to ``Total_Rows``, aggregated rows after it.

    The sentinel row itself is skipped, and so is an aggregated-section header
    (``Country Of Sale ...``) immediately following it.
    """
    detailed: list[Record] = []
    aggregated: list[Record] = []
    header: list[str] = []
    in_aggregated = False
    skip_header = False

    for index, line in enumerate(lines):
        row = split_fields(line)

        if row[0] == TOTAL_ROWS_SENTINEL:
            in_aggregated = True
            skip_header = True
            continue

        if not in_aggregated:
            if index == 0:
                header = row
                continue
            detailed.append(zip_record(header, row))
            continue

        if skip_header:
            skip_header = False
            if line.startswith(COUNTRY_OF_SALE_SENTINEL):
                continue

        record = aggregated_record(row)
        if record is not None:
            aggregated.append(record)

    return {
        f"{result_field}_detailed": detailed,
        f"{result_field}_aggregated": aggregated,
    }


def parse_finance_detail(lines: Sequence[str], result_field: str) -> ParsedSections:
    """Metadata, then detail rows, then aggregated rows."""
    meta: dict[str, str] = {}
    detailed: list[Record] = []
    cursor = iter(lines)

    # Metadata phase.
    header_line: str | None = None
    for line in cursor:
        if "\t" in line and not line.startswith(TRANSACTION_DATE_SENTINEL):
            fields = split_fields(line)
            meta[fields[0].strip()] = fields[1].strip()
            continue
        header_line = line
        break

    # Detail phase.
    if header_line is not None:
        header = split_fields(header_line)
        for line in cursor:
            if line.startswith(COUNTRY_OF_SALE_SENTINEL):
                break
            detailed.append(zip_record(header, split_fields(line)))

    return {
        f"{result_field}_meta": meta,
        f"{result_field}_detailed": detailed,
        f"{result_field}_aggregated": _aggregate(cursor),
    }


_STRATEGIES: dict[ParseStrategy, Callable[[Sequence[str], str], ParsedSections]] = {
    ParseStrategy.PLAIN: parse_plain,
    ParseStrategy.FINANCE_STANDARD: parse_finance_standard,
    ParseStrategy.FINANCE_DETAIL: parse_finance_detail,
}


class TabularReportParser:
    """Dispatch a payload to the parsing strategy for its report layout.

    The parser is stateless; parsing the same payload twice yields equal
    output.
    """

    def parse(
        self,
        payload: bytes | str,
        strategy: ParseStrategy,
        result_field: str,
    ) -> ParsedSections:
        """Parse ``payload`` into named sections.

        Args:
            payload: Decompressed report bytes (UTF-8) or text.
            strategy: Tabular layout of the report.
            result_field: Output field name or prefix for the sections.

        Returns:
            Mapping of output field name to a list of records (or, for the
            finance-detail ``_meta`` section, a key/value mapping).
        """
        lines = _lines(payload)
        sections = _STRATEGIES[ParseStrategy(strategy)](lines, result_field)
        logger.debug(
            "report.parse.done",
            extra={
                "strategy": ParseStrategy(strategy).value,
                "lines": len(lines),
                "sections": {
                    name: len(value) for name, value in sections.items()
                },
            },
        )
        return sections
