# src/appstore_reports/domain/entities/report_request.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Report selection and resolution entities.

Purpose:
    Describe *which* report a caller wants (``ResolutionCriteria``), the
    transient nodes seen while walking the remote resource graph
    (``ResolutionChainNode``), and the terminal download location
    (``ArtifactLocation``).

Layer:
    domain

Notes:
    Selector keys are normalized snake_case names; infrastructure maps them
    onto the ``filter[...]`` query parameters the remote service expects.
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field
from typing import Any

from appstore_reports.domain.enums.report import (
    AccessType,
    FinanceReportType,
    Granularity,
    OperationMode,
    ParseStrategy,
    ReportFamily,
)
from appstore_reports.domain.exceptions.appstore import InvalidCriteria

DEFAULT_RESULT_FIELD = "report"

_REQUIRED_PARAMS: dict[ReportFamily, tuple[str, ...]] = {
    ReportFamily.ANALYTICS: (
        "category",
        "report_name",
        "granularity",
        "access_type",
        "report_date",
    ),
    ReportFamily.SALES: ("frequency", "vendor_number", "report_date"),
    ReportFamily.FINANCE: ("report_type", "vendor_number", "region_code", "report_date"),
}


@dataclass(frozen=True)
class ResolutionCriteria:
    """Entity identifier plus family-specific report selectors.

    Args:
        entity_id: App ID for analytics, vendor number for sales and finance.
        family: Report family.
        params: Family-specific selectors (see the ``analytics``, ``sales``
            and ``finance`` constructors for the expected keys).

    Raises:
        InvalidCriteria: If the entity id or a required selector is empty.
    """

    entity_id: str
    family: ReportFamily
    params: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Normalize and validate selectors."""
        entity_id = str(self.entity_id).strip()
        if not entity_id:
            raise InvalidCriteria(
                "entity_id must not be empty.",
                details={"family": self.family.value},
            )
        object.__setattr__(self, "entity_id", entity_id)

        normalized = {key: str(value).strip() for key, value in self.params.items()}
        missing = [key for key in _REQUIRED_PARAMS[self.family] if not normalized.get(key)]
        if missing:
            raise InvalidCriteria(
                f"Missing report selectors for {self.family.value}: {', '.join(missing)}",
                details={"family": self.family.value, "missing": missing},
            )
        object.__setattr__(self, "params", normalized)

    @classmethod
    def analytics(
        cls,
        *,
        app_id: str,
        report_date: str,
        category: str = "APP_USAGE",
        report_name: str = "App Store Installation and Deletion Standard",
        granularity: Granularity = Granularity.MONTHLY,
        access_type: AccessType = AccessType.ONGOING,
    ) -> ResolutionCriteria:
        """Build criteria for an analytics report of one app."""
        return cls(
            entity_id=app_id,
            family=ReportFamily.ANALYTICS,
            params={
                "category": category,
                "report_name": report_name,
                "granularity": Granularity(granularity).value,
                "access_type": AccessType(access_type).value,
                "report_date": report_date,
            },
        )

    @classmethod
    def sales(
        cls,
        *,
        vendor_number: str,
        report_date: str,
        frequency: Granularity = Granularity.MONTHLY,
    ) -> ResolutionCriteria:
        """Build criteria for a sales summary report."""
        return cls(
            entity_id=vendor_number,
            family=ReportFamily.SALES,
            params={
                "frequency": Granularity(frequency).value,
                "vendor_number": vendor_number,
                "report_date": report_date,
            },
        )

    @classmethod
    def finance(
        cls,
        *,
        vendor_number: str,
        report_date: str,
        region_code: str,
        report_type: FinanceReportType = FinanceReportType.FINANCIAL,
    ) -> ResolutionCriteria:
        """Build criteria for a finance report."""
        return cls(
            entity_id=vendor_number,
            family=ReportFamily.FINANCE,
            params={
                "report_type": FinanceReportType(report_type).value,
                "vendor_number": vendor_number,
                "region_code": region_code,
                "report_date": report_date,
            },
        )

    @property
    def report_date(self) -> str:
        """Return the report / processing date selector."""
        return self.params["report_date"]

    @property
    def parse_strategy(self) -> ParseStrategy:
        """Return the tabular layout this family produces."""
        if self.family is not ReportFamily.FINANCE:
            return ParseStrategy.PLAIN
        if self.params["report_type"] == FinanceReportType.FINANCE_DETAIL.value:
            return ParseStrategy.FINANCE_DETAIL
        return ParseStrategy.FINANCE_STANDARD


@dataclass(frozen=True)
class ResolutionChainNode:
    """One JSON:API resource seen while resolving the analytics chain."""

    id: str
    type: str
    attributes: Mapping[str, Any] = field(default_factory=dict)

    @classmethod
    def from_resource(cls, resource: Mapping[str, Any]) -> ResolutionChainNode:
        """Build a node from a JSON:API ``data`` element."""
        attributes = resource.get("attributes") or {}
        return cls(
            id=str(resource.get("id", "")),
            type=str(resource.get("type", "")),
            attributes=attributes if isinstance(attributes, Mapping) else {},
        )


@dataclass(frozen=True)
class ArtifactLocation:
    """Where the compressed report lives.

    Args:
        url: Absolute URL of the gzip artifact.
        authenticated: Whether the download needs the bearer token. Analytics
            segment URLs are pre-signed; sales and finance endpoints are not.
    """

    url: str = field(repr=False)
    authenticated: bool = False


@dataclass(frozen=True)
class ReportJob:
    """One unit of host input: what to fetch and how to shape the output.

    Args:
        criteria: Report selection criteria.
        operation: ``download_report`` or ``parse_report``.
        result_field: Output field (prefix) for parsed sections. Empty values
            fall back to ``report``.
        input_json: JSON body of the host's input item; parsed sections are
            merged into a copy of it.
    """

    criteria: ResolutionCriteria
    operation: OperationMode = OperationMode.PARSE_REPORT
    result_field: str = DEFAULT_RESULT_FIELD
    input_json: Mapping[str, Any] = field(default_factory=dict)

    def __post_init__(self) -> None:
        """Apply the result-field fallback."""
        object.__setattr__(self, "operation", OperationMode(self.operation))
        object.__setattr__(self, "result_field", self.result_field or DEFAULT_RESULT_FIELD)
