# src/appstore_reports/domain/entities/credential.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""Credential and signed token entities.

Purpose:
    Hold the App Store Connect API key identity supplied by the host for one
    invocation, and the short-lived token minted from it.

Layer:
    domain

Notes:
    Neither object is persisted or cached by this package. A token is minted
    per item and discarded once the item completes.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from datetime import datetime


@dataclass(frozen=True)
class Credential:
    """App Store Connect API key identity.

    Args:
        issuer_id: Issuer ID from the App Store Connect "Keys" page.
        key_id: Identifier of the private key; embedded as ``kid``.
        private_key: PEM text (optionally with literal ``\\n`` escapes) or the
            base64 encoding of the PEM text.
    """

    issuer_id: str
    key_id: str
    private_key: str = field(repr=False)


@dataclass(frozen=True)
class SignedToken:
    """A signed bearer token and its validity window."""

    value: str = field(repr=False)
    issued_at: datetime
    expires_at: datetime

    @property
    def lifetime_seconds(self) -> int:
        """Return the validity window length in whole seconds."""
        return int((self.expires_at - self.issued_at).total_seconds())

    def is_valid_at(self, moment: datetime) -> bool:
        """Return True when ``moment`` falls strictly before expiry."""
        return moment < self.expires_at
