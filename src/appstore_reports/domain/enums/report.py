# src/appstore_reports/domain/enums/report.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""
Report-related enumerations.

Purpose:
    Normalize the App Store Connect selector vocabulary (report families,
    finance report types, granularities, access types) and the internal
    pipeline vocabulary (operation modes, resolution stages, parse strategies).

Layer:
    domain

Notes:
    Values for remote-facing enums are the exact tokens the API expects in
    ``filter[...]`` query parameters.
"""

from __future__ import annotations

from enum import Enum


class ReportFamily(str, Enum):
    """Report family; determines both the access path and the parser."""

    ANALYTICS = "ANALYTICS"
    SALES = "SALES"
    FINANCE = "FINANCE"


class FinanceReportType(str, Enum):
    """Finance report types accepted by ``/v1/financeReports``."""

    FINANCIAL = "FINANCIAL"
    FINANCE_DETAIL = "FINANCE_DETAIL"


class Granularity(str, Enum):
    """Analytics instance granularity / sales report frequency."""

    DAILY = "DAILY"
    WEEKLY = "WEEKLY"
    MONTHLY = "MONTHLY"


class AccessType(str, Enum):
    """Analytics report request access type."""

    ONE_TIME_SNAPSHOT = "ONE_TIME_SNAPSHOT"
    ONGOING = "ONGOING"


class OperationMode(str, Enum):
    """What the orchestrator does with a retrieved payload."""

    DOWNLOAD_REPORT = "download_report"
    PARSE_REPORT = "parse_report"


class ResolutionStage(str, Enum):
    """One hop in the analytics resource chain, in traversal order."""

    REQUEST = "request"
    REPORT = "report"
    INSTANCE = "instance"
    SEGMENT = "segment"


class ParseStrategy(str, Enum):
    """Tabular layouts produced by the remote service."""

    PLAIN = "plain"
    FINANCE_STANDARD = "finance_standard"
    FINANCE_DETAIL = "finance_detail"
