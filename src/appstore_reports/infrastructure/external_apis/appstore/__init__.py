# src/appstore_reports/infrastructure/external_apis/appstore/__init__.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""App Store Connect external API package.

Purpose:
    Group App Store Connect infrastructure modules:

    * settings: Pydantic settings for the App Store Connect client.
    * client: Async HTTP client (bearer auth, error mapping, metrics).
    * resolver: Analytics resource-chain resolution and direct report URLs.
    * retriever: Artifact download and gzip decompression.
    * types: Typed JSON:API response fragments.
"""

from __future__ import annotations
