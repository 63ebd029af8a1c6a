# src/appstore_reports/infrastructure/external_apis/appstore/settings.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""App Store Connect client settings.

Purpose:
    Provide Pydantic-based configuration for the App Store Connect HTTP
    client: base URL, token audience, user agent and timeouts.

Layer:
    infrastructure

Notes:
    - Values are sourced from environment variables prefixed with ``APPSTORE_``.
    - Credentials are not part of this object; see ``config.settings``.
"""

from __future__ import annotations

from pydantic import Field
from pydantic_settings import BaseSettings, SettingsConfigDict


class AppStoreSettings(BaseSettings):
    """Configuration for the App Store Connect HTTP client.

    Read from ``APPSTORE_*`` variables:

    * ``APPSTORE_BASE_URL``
    * ``APPSTORE_AUDIENCE``
    * ``APPSTORE_USER_AGENT``
    * ``APPSTORE_TIMEOUT_S``
    """

    base_url: str = Field(
        "https://api.appstoreconnect.apple.com",
        description="Base URL of the App Store Connect API.",
    )
    audience: str = Field(
        "appstoreconnect-v1",
        description="Audience claim of signed API tokens.",
    )
    user_agent: str = Field(
        "arche-appstore-reports/0.1",
        description="User agent sent with every request.",
    )
    timeout_s: float = Field(
        30.0,
        gt=0,
        description="Per-request timeout in seconds; report downloads can be large.",
    )

    model_config: SettingsConfigDict = SettingsConfigDict(
        env_prefix="APPSTORE_",
        extra="ignore",
    )
