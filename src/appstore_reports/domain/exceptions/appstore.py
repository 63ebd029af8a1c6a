# src/appstore_reports/domain/exceptions/appstore.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""
App Store Connect domain exceptions.

Purpose:
    Error taxonomy for token signing, report resolution, payload retrieval and
    decompression failures.

Layer:
    domain/exceptions

Notes:
    - Every error here is fatal for the item being processed; nothing is
      retried. Report generation on the remote side is asynchronous, so a
      caller has to re-invoke later rather than retry immediately.
    - Infrastructure translates httpx/gzip errors into these types; transport
      exception classes never cross the client boundary.
"""

from __future__ import annotations

from typing import Any

from appstore_reports.domain.enums.report import ResolutionStage

from .base import DomainError


class AppStoreError(DomainError):
    """Base class for App Store Connect report errors."""

    code = "APPSTORE_ERROR"


class CredentialError(AppStoreError):
    """Private key material could not be decoded or loaded as an EC key."""

    code = "CREDENTIAL_INVALID"


class StageNotFound(AppStoreError):
    """A resolution stage returned no candidate after filtering.

    Args:
        stage: The resolution stage that came back empty.
        message: Human-readable description naming the stage and selectors.
        details: Optional diagnostic payload.
    """

    code = "STAGE_NOT_FOUND"

    def __init__(
        self,
        stage: ResolutionStage,
        message: str,
        *,
        details: dict[str, Any] | None = None,
    ) -> None:
        super().__init__(message, details={"stage": stage.value, **(details or {})})
        self.stage = stage


class TransportError(AppStoreError):
    """Network failure, non-2xx status or unreadable body on an outbound call."""

    code = "TRANSPORT_ERROR"


class DecompressionError(AppStoreError):
    """The downloaded artifact is not valid gzip data."""

    code = "DECOMPRESSION_FAILED"


class InvalidCriteria(AppStoreError):
    """Report selectors are missing or inconsistent with the report family."""

    code = "INVALID_CRITERIA"
