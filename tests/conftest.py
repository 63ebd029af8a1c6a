# tests/conftest.py
from __future__ import annotations

import gzip
from collections.abc import Callable, Iterator
from datetime import UTC, datetime, timedelta

import pytest
from cryptography.hazmat.primitives import serialization
from cryptography.hazmat.primitives.asymmetric import ec

from appstore_reports.config.settings import get_settings
from appstore_reports.domain.entities.credential import Credential, SignedToken
from appstore_reports.infrastructure.external_apis.appstore.settings import AppStoreSettings
from appstore_reports.infrastructure.logging.logger import clear_run_context

BASE_URL = "https://api.appstoreconnect.apple.com"
FIXED_NOW = datetime(2025, 1, 15, 12, 0, 0, tzinfo=UTC)


@pytest.fixture(scope="session")
def ec_private_key() -> ec.EllipticCurvePrivateKey:
    """A throwaway P-256 key shared by the session."""
    return ec.generate_private_key(ec.SECP256R1())


@pytest.fixture(scope="session")
def ec_private_key_pem(ec_private_key: ec.EllipticCurvePrivateKey) -> str:
    return ec_private_key.private_bytes(
        encoding=serialization.Encoding.PEM,
        format=serialization.PrivateFormat.PKCS8,
        encryption_algorithm=serialization.NoEncryption(),
    ).decode("utf-8")


@pytest.fixture
def credential(ec_private_key_pem: str) -> Credential:
    return Credential(issuer_id="issuer-123", key_id="KEY123", private_key=ec_private_key_pem)


@pytest.fixture
def fixed_clock() -> Callable[[], datetime]:
    return lambda: FIXED_NOW


@pytest.fixture
def signed_token() -> SignedToken:
    """A token valid for ten minutes from ``FIXED_NOW``."""
    return SignedToken(
        value="signed.jwt.token",
        issued_at=FIXED_NOW,
        expires_at=FIXED_NOW + timedelta(seconds=600),
    )


@pytest.fixture
def appstore_settings() -> AppStoreSettings:
    return AppStoreSettings(base_url=BASE_URL, timeout_s=5.0)


@pytest.fixture
def gz() -> Callable[[str | bytes], bytes]:
    """Gzip text or bytes the way the remote service serves artifacts."""

    def _gz(payload: str | bytes) -> bytes:
        data = payload.encode("utf-8") if isinstance(payload, str) else payload
        return gzip.compress(data)

    return _gz


@pytest.fixture(autouse=True)
def _reset_state() -> Iterator[None]:
    """Keep cached settings and log context from leaking between tests."""
    get_settings.cache_clear()
    clear_run_context()
    yield
    get_settings.cache_clear()
    clear_run_context()
