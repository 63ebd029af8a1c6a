# src/appstore_reports/infrastructure/auth/token_signer.py
# Copyright (c) Arche.
# SPDX-License-Identifier: MIT
"""App Store Connect API token signer (ES256).

Mints the short-lived bearer JWT that every App Store Connect API call needs.

Claims:
    * ``iss``: issuer id of the API key.
    * ``iat``: current epoch seconds (from the injected clock).
    * ``exp``: ``iat + 600``.
    * ``aud``: ``appstoreconnect-v1``.

Header:
    ``alg=ES256``, ``kid=<key id>``, ``typ=JWT``.

Notes:
    * Tokens are minted per item and never cached.
    * Key material is either PEM text (literal ``\\n`` escapes are expanded)
      or base64-encoded PEM text.
"""

from __future__ import annotations

import base64
import binascii
from collections.abc import Callable
from datetime import UTC, datetime
from typing import Final

from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec
from jose import jwt
from jose.exceptions import JOSEError

from appstore_reports.domain.entities.credential import Credential, SignedToken
from appstore_reports.domain.exceptions.appstore import CredentialError
from appstore_reports.infrastructure.logging.logger import get_json_logger

logger = get_json_logger(__name__)

APPSTORE_AUDIENCE: Final[str] = "appstoreconnect-v1"
TOKEN_TTL_SECONDS: Final[int] = 600
SIGNING_ALGORITHM: Final[str] = "ES256"

_PEM_MARKER: Final[str] = "-----BEGIN"

Clock = Callable[[], datetime]


def utc_now() -> datetime:
    """Return the current wall-clock time as an aware UTC datetime."""
    return datetime.now(tz=UTC)


def normalize_private_key(raw: str) -> str:
    """Return PEM text for ``raw`` key material.

    Args:
        raw: PEM text, possibly with literal ``\\n`` sequences, or base64 of PEM.

    Raises:
        CredentialError: If ``raw`` is neither PEM nor decodable base64 text.
    """
    if _PEM_MARKER in raw:
        return raw.replace("\\n", "\n")
    try:
        return base64.b64decode("".join(raw.split()), validate=True).decode("utf-8")
    except (binascii.Error, ValueError) as exc:
        raise CredentialError(
            "Private key is neither PEM text nor base64-encoded PEM.",
            details={"error": str(exc)},
        ) from exc


def load_ec_private_key(pem: str) -> ec.EllipticCurvePrivateKey:
    """Load an EC private key from PEM text.

    Raises:
        CredentialError: If the PEM cannot be parsed or is not an EC key.
    """
    try:
        key = serialization.load_pem_private_key(pem.encode("utf-8"), password=None)
    except (ValueError, TypeError) as exc:
        raise CredentialError(
            "Private key could not be parsed.",
            details={"error": str(exc)},
        ) from exc
    if not isinstance(key, ec.EllipticCurvePrivateKey):
        raise CredentialError(
            "Private key must be an elliptic-curve (P-256) key.",
            details={"key_type": type(key).__name__},
        )
    return key


class TokenSigner:
    """Sign App Store Connect bearer tokens.

    Args:
        audience: ``aud`` claim; defaults to the App Store Connect audience.
        ttl_seconds: Validity window; the API rejects tokens valid for longer
            than 20 minutes.
        clock: Source of the current time. Injected for deterministic tests.
    """

    def __init__(
        self,
        *,
        audience: str = APPSTORE_AUDIENCE,
        ttl_seconds: int = TOKEN_TTL_SECONDS,
        clock: Clock = utc_now,
    ) -> None:
        self._audience = audience
        self._ttl_seconds = ttl_seconds
        self._clock = clock

    def sign(self, credential: Credential) -> SignedToken:
        """Mint a fresh token for ``credential``.

        Raises:
            CredentialError: If the key material is malformed or not EC.
        """
        pem = normalize_private_key(credential.private_key)
        load_ec_private_key(pem)  # rejects malformed and non-EC keys

        issued_at = int(self._clock().timestamp())
        expires_at = issued_at + self._ttl_seconds
        claims = {
            "iss": credential.issuer_id,
            "iat": issued_at,
            "exp": expires_at,
            "aud": self._audience,
        }
        try:
            value = jwt.encode(
                claims,
                pem,
                algorithm=SIGNING_ALGORITHM,
                headers={"kid": credential.key_id, "typ": "JWT"},
            )
        except (JOSEError, ValueError, TypeError) as exc:
            raise CredentialError(
                "Token signing failed.",
                details={"key_id": credential.key_id, "error": str(exc)},
            ) from exc

        logger.debug(
            "appstore.token.signed",
            extra={"key_id": credential.key_id, "expires_at": expires_at},
        )
        return SignedToken(
            value=value,
            issued_at=datetime.fromtimestamp(issued_at, tz=UTC),
            expires_at=datetime.fromtimestamp(expires_at, tz=UTC),
        )
