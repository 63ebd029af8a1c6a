# src/appstore_reports/infrastructure/external_apis/appstore/client.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Async HTTP transport for the App Store Connect API.

Responsibilities:

* GET requests over a shared or owned ``httpx.AsyncClient``, each bounded by
  the configured timeout.
* ``Authorization: Bearer`` from a caller-supplied ``SignedToken``.
* Every network error and non-2xx status becomes ``TransportError``.
* Latency and status metrics per logical endpoint.

Endpoints:
    * get_json: any JSON:API endpoint relative to the base URL.
    * get_bytes: absolute artifact URLs (pre-signed or authenticated).

Notes:
    * No retries: report generation is asynchronous on the remote side, so
      failures surface immediately and the caller re-invokes later.
    * Caller-facing exceptions are always domain exceptions; httpx types are
      never allowed to cross the boundary.
"""

from __future__ import annotations

import time
from collections.abc import Mapping
from contextlib import suppress
from typing import Any, Final, cast

import httpx

from appstore_reports.domain.entities.credential import SignedToken
from appstore_reports.domain.exceptions.appstore import TransportError
from appstore_reports.infrastructure.external_apis.appstore.settings import AppStoreSettings
from appstore_reports.infrastructure.external_apis.appstore.types import (
    ErrorDocument,
    ErrorObject,
    ResourceDocument,
)
from appstore_reports.infrastructure.logging.logger import get_json_logger
from appstore_reports.infrastructure.observability.metrics_appstore import (
    get_appstore_http_latency_seconds,
    get_appstore_http_status_total,
)

logger = get_json_logger(__name__)

_DEFAULT_TIMEOUT: Final[float] = 30.0


class AppStoreConnectClient:
    """Instrumented transport client for the App Store Connect API."""

    def __init__(
        self,
        settings: AppStoreSettings,
        *,
        http: httpx.AsyncClient | None = None,
        timeout_s: float | None = None,
    ) -> None:
        """Create the client.

        Args:
            settings: Base URL, user agent and default timeout.
            http: Shared ``httpx.AsyncClient``; when omitted this instance
                creates one and closes it in :meth:`aclose`.
            timeout_s: Overrides ``settings.timeout_s``.
        """
        self._settings = settings
        self._base_url = str(settings.base_url).rstrip("/")
        self._timeout = float(
            timeout_s if timeout_s is not None else getattr(settings, "timeout_s", _DEFAULT_TIMEOUT)
        )

        self._owns_client = http is None
        self._user_agent = settings.user_agent
        self._client = http or httpx.AsyncClient(
            timeout=self._timeout,
            headers={"User-Agent": self._user_agent},
        )

        self._latency = get_appstore_http_latency_seconds()
        self._status_total = get_appstore_http_status_total()

    @property
    def base_url(self) -> str:
        """Return the normalized API base URL."""
        return self._base_url

    async def aclose(self) -> None:
        """Close the HTTP client when it was created here."""
        if self._owns_client and not self._client.is_closed:
            await self._client.aclose()

    async def __aenter__(self) -> AppStoreConnectClient:
        return self

    async def __aexit__(self, *exc_info: object) -> None:
        await self.aclose()

    # ------------------------------------------------------------------ #
    # Public API
    # ------------------------------------------------------------------ #

    async def get_json(
        self,
        path: str,
        *,
        token: SignedToken,
        params: Mapping[str, str] | None = None,
        endpoint: str,
    ) -> ResourceDocument:
        """GET a JSON:API document relative to the base URL.

        Args:
            path: Path starting with ``/v1/...``.
            token: Signed bearer token.
            params: Query parameters (e.g. ``filter[name]``).
            endpoint: Logical endpoint name for logs and metrics.

        Raises:
            TransportError: On transport failures, non-2xx statuses or bodies
                that are not a JSON object.
        """
        url = f"{self._base_url}{path}"
        response = await self._get(
            url,
            headers={"Accept": "application/json", **_bearer(token)},
            params=params,
            endpoint=endpoint,
        )
        try:
            payload: Any = response.json()
        except ValueError as exc:
            raise TransportError(
                "App Store Connect response was not valid JSON.",
                details={"endpoint": endpoint, "path": path, "error": str(exc)},
            ) from exc

        if not isinstance(payload, Mapping):
            raise TransportError(
                "App Store Connect JSON response must be an object.",
                details={"endpoint": endpoint, "path": path, "type": type(payload).__name__},
            )
        return cast(ResourceDocument, payload)

    async def get_bytes(
        self,
        url: str,
        *,
        token: SignedToken | None = None,
        endpoint: str,
    ) -> bytes:
        """GET raw bytes from an absolute URL.

        Args:
            url: Absolute artifact URL.
            token: Bearer token, or ``None`` for pre-signed URLs.
            endpoint: Logical endpoint name for logs and metrics.

        Raises:
            TransportError: On transport failures or non-2xx statuses.
        """
        headers = {"Accept": "application/a-gzip, application/octet-stream", **_bearer(token)}
        response = await self._get(url, headers=headers, params=None, endpoint=endpoint)
        return response.content

    # ------------------------------------------------------------------ #
    # Internal helpers
    # ------------------------------------------------------------------ #

    async def _get(
        self,
        url: str,
        *,
        headers: Mapping[str, str],
        params: Mapping[str, str] | None,
        endpoint: str,
    ) -> httpx.Response:
        """Execute a single GET and map failures to ``TransportError``."""
        start = time.perf_counter()
        outcome = "error"
        try:
            try:
                response = await self._client.get(
                    url,
                    headers={"User-Agent": self._user_agent, **headers},
                    params=dict(params) if params else None,
                    timeout=self._timeout,
                )
            except httpx.RequestError as exc:
                raise TransportError(
                    f"App Store Connect transport failure: {exc}",
                    details={"endpoint": endpoint, "error": str(exc)},
                ) from exc

            with suppress(Exception):
                self._status_total.labels(endpoint, str(response.status_code)).inc()

            if not response.is_success:
                raise TransportError(
                    _error_message(response),
                    details={"endpoint": endpoint, "status": response.status_code},
                )
            outcome = "success"
            return response
        finally:
            elapsed = time.perf_counter() - start
            with suppress(Exception):
                self._latency.labels(endpoint=endpoint, outcome=outcome).observe(elapsed)
            logger.debug(
                "appstore.http.get",
                extra={"endpoint": endpoint, "outcome": outcome, "elapsed_s": round(elapsed, 4)},
            )


def _bearer(token: SignedToken | None) -> dict[str, str]:
    return {"Authorization": f"Bearer {token.value}"} if token is not None else {}


def _error_message(response: httpx.Response) -> str:
    """Build a readable message from a failed response.

    App Store Connect returns JSON:API ``errors``; their ``detail`` (or
    ``title``) is preserved when present.
    """
    base = f"App Store Connect request failed with HTTP {response.status_code}"
    try:
        body: Any = response.json()
    except ValueError:
        return base
    if not isinstance(body, Mapping):
        return base
    errors = cast(ErrorDocument, body).get("errors")
    if isinstance(errors, list) and errors and isinstance(errors[0], Mapping):
        first: ErrorObject = errors[0]
        detail = first.get("detail") or first.get("title")
        if detail:
            return f"{base}: {detail}"
    return base
