# src/appstore_reports/infrastructure/external_apis/appstore/retriever.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Report payload retriever.

Downloads the artifact at an ``ArtifactLocation`` and gunzips it. Pre-signed
analytics segment URLs are fetched without credentials; direct sales/finance
endpoints carry the bearer token.
"""

from __future__ import annotations

import gzip
import zlib

from appstore_reports.domain.entities.credential import SignedToken
from appstore_reports.domain.entities.report_request import ArtifactLocation
from appstore_reports.domain.exceptions.appstore import DecompressionError
from appstore_reports.infrastructure.external_apis.appstore.client import AppStoreConnectClient
from appstore_reports.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)


def decompress(data: bytes) -> bytes:
    """Gunzip ``data``.

    Raises:
        DecompressionError: If ``data`` is not a complete gzip stream.
    """
    try:
        return gzip.decompress(data)
    except (OSError, EOFError, zlib.error) as exc:
        raise DecompressionError(
            "Report payload is not valid gzip data.",
            details={"size": len(data), "error": str(exc)},
        ) from exc


class PayloadRetriever:
    """Fetch and decompress report artifacts."""

    def __init__(self, client: AppStoreConnectClient) -> None:
        self._client = client

    async def retrieve(
        self,
        location: ArtifactLocation,
        token: SignedToken | None = None,
    ) -> bytes:
        """Return the decompressed payload at ``location``.

        Args:
            location: Resolved artifact location.
            token: Bearer token; only sent when the location requires it.

        Raises:
            TransportError: If the download fails.
            DecompressionError: If the body is not gzip data.
        """
        compressed = await self._client.get_bytes(
            location.url,
            token=token if location.authenticated else None,
            endpoint="artifact",
        )
        payload = decompress(compressed)
        logger.info(
            "appstore.retrieve.done",
            extra={"compressed_bytes": len(compressed), "payload_bytes": len(payload)},
        )
        return payload
