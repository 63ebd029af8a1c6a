# src/appstore_reports/domain/exceptions/base.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Base Domain Exceptions.

Summary:
    Canonical base class for domain/application exceptions so that hosts (the
    CLI, a workflow engine) can map failures deterministically.

Layer:
    domain/exceptions
"""

from __future__ import annotations

from typing import Any


class DomainError(Exception):
    """Base class for all domain/application exceptions.

    Attributes:
        code:
            Stable error code suitable for mapping to exit codes and metrics.
        message:
            Human-readable error message, safe to surface to callers.
        details:
            Optional machine-readable diagnostic payload used by adapters and
            logging code.
    """

    code: str = "DOMAIN_ERROR"

    def __init__(self, message: str = "", *, details: dict[str, Any] | None = None) -> None:
        """Initialize a DomainError instance.

        Args:
            message:
                Human-readable error message.
            details:
                Optional structured diagnostic payload for logs or adapters.
        """
        super().__init__(message)
        self.message = message
        self.details: dict[str, Any] = details or {}

    def __str__(self) -> str:
        return self.message
