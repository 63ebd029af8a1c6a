# src/appstore_reports/infrastructure/external_apis/appstore/resolver.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Report resource resolver.

Purpose:
    Turn ``ResolutionCriteria`` into the ``ArtifactLocation`` of a compressed
    report.

Analytics chain (four authenticated GETs):
    1. request  ``/v1/apps/{appId}/analyticsReportRequests``
       keep ``analyticsReportRequests`` whose ``accessType`` matches.
    2. report   ``/v1/analyticsReportRequests/{id}/reports``
       ``filter[category]``, ``filter[name]``.
    3. instance ``/v1/analyticsReports/{id}/instances``
       ``filter[granularity]``, ``filter[processingDate]``.
    4. segment  ``/v1/analyticsReportInstances/{id}/segments``
       the segment's ``url`` attribute is the artifact location.

Sales and finance reports are served directly by ``/v1/salesReports`` and
``/v1/financeReports``; they resolve to an authenticated location without any
remote call.

Rules:
    * The first surviving candidate in server order wins; no secondary sort.
    * An empty candidate set stops the chain with ``StageNotFound`` for that
      stage; nothing downstream is requested.
    * Every call is made with a token that is still valid at call time.
"""

from __future__ import annotations

from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass
from typing import Any

import httpx

from appstore_reports.domain.entities.credential import SignedToken
from appstore_reports.domain.entities.report_request import (
    ArtifactLocation,
    ResolutionChainNode,
    ResolutionCriteria,
)
from appstore_reports.domain.enums.report import ReportFamily, ResolutionStage
from appstore_reports.domain.exceptions.appstore import CredentialError, StageNotFound
from appstore_reports.infrastructure.auth.token_signer import Clock, utc_now
from appstore_reports.infrastructure.external_apis.appstore.client import AppStoreConnectClient
from appstore_reports.infrastructure.external_apis.appstore.types import Resource, ResourceDocument
from appstore_reports.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

REPORT_REQUEST_TYPE = "analyticsReportRequests"


@dataclass(frozen=True)
class _StageSpec:
    """How to query and filter one resolution stage."""

    path: Callable[[str], str]
    query: Callable[[ResolutionCriteria], dict[str, str]]
    accept: Callable[[ResolutionChainNode, ResolutionCriteria], bool]
    not_found: Callable[[ResolutionCriteria], str]


def _accept_any(node: ResolutionChainNode, criteria: ResolutionCriteria) -> bool:
    return True


_STAGES: dict[ResolutionStage, _StageSpec] = {
    ResolutionStage.REQUEST: _StageSpec(
        path=lambda app_id: f"/v1/apps/{app_id}/analyticsReportRequests",
        query=lambda c: {},
        accept=lambda node, c: (
            node.type == REPORT_REQUEST_TYPE
            and node.attributes.get("accessType") == c.params["access_type"]
        ),
        not_found=lambda c: (
            f"No report found for this entity {c.entity_id} "
            f"(access type {c.params['access_type']})"
        ),
    ),
    ResolutionStage.REPORT: _StageSpec(
        path=lambda request_id: f"/v1/analyticsReportRequests/{request_id}/reports",
        query=lambda c: {
            "filter[category]": c.params["category"],
            "filter[name]": c.params["report_name"],
        },
        accept=_accept_any,
        not_found=lambda c: f"Report Name {c.params['report_name']} for {c.report_date} not found",
    ),
    ResolutionStage.INSTANCE: _StageSpec(
        path=lambda report_id: f"/v1/analyticsReports/{report_id}/instances",
        query=lambda c: {
            "filter[granularity]": c.params["granularity"],
            "filter[processingDate]": c.report_date,
        },
        accept=_accept_any,
        not_found=lambda c: (
            f"Instance not found for granularity {c.params['granularity']} "
            f"and processing date {c.report_date}"
        ),
    ),
    ResolutionStage.SEGMENT: _StageSpec(
        path=lambda instance_id: f"/v1/analyticsReportInstances/{instance_id}/segments",
        query=lambda c: {},
        accept=lambda node, c: bool(node.attributes.get("url")),
        not_found=lambda c: "Segment not found",
    ),
}


def sales_report_query(criteria: ResolutionCriteria) -> dict[str, str]:
    """Return the ``/v1/salesReports`` filters for sales criteria."""
    return {
        "filter[reportType]": "SALES",
        "filter[reportSubType]": "SUMMARY",
        "filter[frequency]": criteria.params["frequency"],
        "filter[reportDate]": criteria.report_date,
        "filter[vendorNumber]": criteria.params["vendor_number"],
    }


def finance_report_query(criteria: ResolutionCriteria) -> dict[str, str]:
    """Return the ``/v1/financeReports`` filters for finance criteria."""
    return {
        "filter[reportDate]": criteria.report_date,
        "filter[reportType]": criteria.params["report_type"],
        "filter[regionCode]": criteria.params["region_code"],
        "filter[vendorNumber]": criteria.params["vendor_number"],
    }


_DIRECT_ENDPOINTS: dict[
    ReportFamily, tuple[str, Callable[[ResolutionCriteria], dict[str, str]]]
] = {
    ReportFamily.SALES: ("/v1/salesReports", sales_report_query),
    ReportFamily.FINANCE: ("/v1/financeReports", finance_report_query),
}


class ResourceResolver:
    """Resolve report criteria into an artifact location.

    Args:
        client: App Store Connect transport client.
        clock: Source of the current time, used to refuse expired tokens.
    """

    def __init__(self, client: AppStoreConnectClient, *, clock: Clock = utc_now) -> None:
        self._client = client
        self._clock = clock

    async def resolve(
        self,
        criteria: ResolutionCriteria,
        token: SignedToken,
    ) -> ArtifactLocation:
        """Resolve ``criteria`` to the location of its compressed artifact.

        Raises:
            StageNotFound: When a stage has no candidate.
            TransportError: On any failed remote call.
            CredentialError: If ``token`` has expired before a call.
        """
        direct = _DIRECT_ENDPOINTS.get(criteria.family)
        if direct is not None:
            path, build_query = direct
            url = httpx.URL(f"{self._client.base_url}{path}", params=build_query(criteria))
            logger.info(
                "appstore.resolve.direct",
                extra={"family": criteria.family.value, "path": path},
            )
            return ArtifactLocation(url=str(url), authenticated=True)

        parent_id = criteria.entity_id
        for stage in (ResolutionStage.REQUEST, ResolutionStage.REPORT, ResolutionStage.INSTANCE):
            parent_id = (await self._resolve_stage(stage, parent_id, criteria, token)).id

        segment = await self._resolve_stage(ResolutionStage.SEGMENT, parent_id, criteria, token)
        return ArtifactLocation(url=str(segment.attributes["url"]))

    async def _resolve_stage(
        self,
        stage: ResolutionStage,
        parent_id: str,
        criteria: ResolutionCriteria,
        token: SignedToken,
    ) -> ResolutionChainNode:
        """Run one stage and return its selected node."""
        if not token.is_valid_at(self._clock()):
            raise CredentialError(
                "Signed token expired before the request could be issued.",
                details={"stage": stage.value},
            )

        stage_def = _STAGES[stage]
        path = stage_def.path(parent_id)
        document = await self._client.get_json(
            path,
            token=token,
            params=stage_def.query(criteria),
            endpoint=f"analytics.{stage.value}",
        )

        candidates = [
            node for node in _nodes(document) if stage_def.accept(node, criteria)
        ]
        logger.info(
            "appstore.resolve.stage",
            extra={"stage": stage.value, "path": path, "candidates": len(candidates)},
        )
        if not candidates:
            raise StageNotFound(
                stage,
                stage_def.not_found(criteria),
                details={"path": path, "selectors": dict(criteria.params)},
            )
        return candidates[0]


def _nodes(document: ResourceDocument) -> Sequence[ResolutionChainNode]:
    """Return chain nodes for a document's ``data`` member (list or single)."""
    data: Any = document.get("data")
    if isinstance(data, Mapping):
        data = [data]
    if not isinstance(data, list):
        return []
    resources: list[Resource] = [item for item in data if isinstance(item, Mapping)]
    return [ResolutionChainNode.from_resource(item) for item in resources]
