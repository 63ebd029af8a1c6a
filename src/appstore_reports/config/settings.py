# src/appstore_reports/config/settings.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Application Configuration (Pydantic Settings, v2)

Summary:
    Typed, validated configuration for report runs: the App Store Connect API
    key, run behavior and output locations. Only adapters (the CLI) read the
    process environment; the orchestrator receives values explicitly.

Design:
    - Pydantic v2 BaseSettings with explicit aliases per variable.
    - The private key is a ``SecretStr`` and never logged.
    - Singleton accessor ``get_settings()`` with LRU cache.
"""

from __future__ import annotations

import logging
from functools import lru_cache
from pathlib import Path

from pydantic import Field, SecretStr, ValidationError
from pydantic_settings import BaseSettings, SettingsConfigDict

from appstore_reports.domain.entities.credential import Credential
from appstore_reports.domain.exceptions.appstore import CredentialError

logger = logging.getLogger(__name__)


class Settings(BaseSettings):
    """Typed application configuration.

    Environment variables:

    * ``APPSTORE_ISSUER_ID`` / ``APPSTORE_KEY_ID`` / ``APPSTORE_PRIVATE_KEY``
    * ``CONTINUE_ON_FAIL``
    * ``OUTPUT_DIR``
    * ``RESULT_FIELD``
    """

    issuer_id: str = Field(
        default="",
        description="App Store Connect API issuer id.",
        validation_alias="APPSTORE_ISSUER_ID",
    )
    key_id: str = Field(
        default="",
        description="App Store Connect API key id (JWT 'kid').",
        validation_alias="APPSTORE_KEY_ID",
    )
    private_key: SecretStr = Field(
        default=SecretStr(""),
        description="PEM private key, with literal \\n escapes or base64-encoded.",
        validation_alias="APPSTORE_PRIVATE_KEY",
    )

    continue_on_fail: bool = Field(
        default=False,
        description=(
            "Record a failing item as an error item and keep processing the "
            "remaining items instead of aborting the run."
        ),
        validation_alias="CONTINUE_ON_FAIL",
    )
    output_dir: Path = Field(
        default=Path("."),
        description="Directory downloaded report files are written to.",
        validation_alias="OUTPUT_DIR",
    )
    result_field: str = Field(
        default="report",
        min_length=1,
        description="Default output field for parsed sections.",
        validation_alias="RESULT_FIELD",
    )

    model_config = SettingsConfigDict(
        env_file=".env",
        extra="ignore",
        case_sensitive=False,
    )

    def credential(self) -> Credential:
        """Return the configured API credential.

        Raises:
            CredentialError: If any credential field is empty.
        """
        private_key = self.private_key.get_secret_value()
        missing = [
            name
            for name, value in (
                ("APPSTORE_ISSUER_ID", self.issuer_id),
                ("APPSTORE_KEY_ID", self.key_id),
                ("APPSTORE_PRIVATE_KEY", private_key),
            )
            if not value.strip()
        ]
        if missing:
            raise CredentialError(
                f"Missing App Store Connect credentials: {', '.join(missing)}",
                details={"missing": missing},
            )
        return Credential(
            issuer_id=self.issuer_id.strip(),
            key_id=self.key_id.strip(),
            private_key=private_key,
        )


@lru_cache(maxsize=1)
def get_settings() -> Settings:
    """Return a cached singleton ``Settings`` instance.

    Raises:
        RuntimeError: If configuration is invalid.
    """
    try:
        settings = Settings()
    except ValidationError as exc:
        logger.error("Settings validation failed", extra={"errors": exc.errors()})
        raise RuntimeError(f"Invalid configuration: {exc}") from exc

    logger.info(
        "Settings initialized",
        extra={
            "has_issuer_id": bool(settings.issuer_id),
            "has_key_id": bool(settings.key_id),
            "has_private_key": bool(settings.private_key.get_secret_value()),
            "continue_on_fail": settings.continue_on_fail,
            "output_dir": str(settings.output_dir),
        },
    )
    return settings
