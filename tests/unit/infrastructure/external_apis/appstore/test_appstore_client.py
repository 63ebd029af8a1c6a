# tests/unit/infrastructure/external_apis/appstore/test_appstore_client.py
from __future__ import annotations

import httpx
import pytest
import respx

from appstore_reports.domain.entities.credential import SignedToken
from appstore_reports.domain.exceptions.appstore import TransportError
from appstore_reports.infrastructure.external_apis.appstore.client import AppStoreConnectClient
from appstore_reports.infrastructure.external_apis.appstore.settings import AppStoreSettings


@pytest.mark.asyncio
@respx.mock
async def test_owned_client_sends_configured_user_agent() -> None:
    settings = AppStoreSettings(user_agent="reports-agent/1.0")
    url = "https://segments.example.com/r.gz"
    route = respx.get(url).mock(return_value=httpx.Response(200, content=b"x"))

    async with AppStoreConnectClient(settings) as client:
        assert await client.get_bytes(url, endpoint="analytics.segment") == b"x"

    assert route.calls.last.request.headers["User-Agent"] == "reports-agent/1.0"


@pytest.mark.asyncio
@respx.mock
async def test_get_json_happy_path_sends_bearer_and_filters(
    appstore_settings: AppStoreSettings, signed_token: SignedToken
) -> None:
    async with httpx.AsyncClient() as http:
        client = AppStoreConnectClient(appstore_settings, http=http)

        expected = {"data": [{"id": "r-1", "type": "analyticsReports"}]}
        route = respx.get(f"{client.base_url}/v1/analyticsReportRequests/q-1/reports").mock(
            return_value=httpx.Response(200, json=expected)
        )

        payload = await client.get_json(
            "/v1/analyticsReportRequests/q-1/reports",
            token=signed_token,
            params={"filter[category]": "APP_USAGE", "filter[name]": "Installs"},
            endpoint="analytics.report",
        )

        assert payload == expected
        request = route.calls.last.request
        assert request.headers["Authorization"] == "Bearer signed.jwt.token"
        assert request.headers["Accept"] == "application/json"
        assert request.headers["User-Agent"] == appstore_settings.user_agent
        assert request.url.params["filter[category]"] == "APP_USAGE"
        assert request.url.params["filter[name]"] == "Installs"


@pytest.mark.asyncio
@respx.mock
async def test_get_json_status_mapping_keeps_remote_detail(
    appstore_settings: AppStoreSettings, signed_token: SignedToken
) -> None:
    async with httpx.AsyncClient() as http:
        client = AppStoreConnectClient(appstore_settings, http=http)
        base = client.base_url

        respx.get(f"{base}/v1/apps/1/analyticsReportRequests").mock(
            return_value=httpx.Response(
                404,
                json={"errors": [{"status": "404", "title": "Not Found", "detail": "No app 1"}]},
            )
        )
        with pytest.raises(TransportError) as info:
            await client.get_json(
                "/v1/apps/1/analyticsReportRequests", token=signed_token, endpoint="x"
            )
        assert str(info.value) == "App Store Connect request failed with HTTP 404: No app 1"
        assert info.value.details["status"] == 404

        # Title is used when detail is missing.
        respx.get(f"{base}/v1/apps/2/analyticsReportRequests").mock(
            return_value=httpx.Response(401, json={"errors": [{"title": "Unauthorized"}]})
        )
        with pytest.raises(TransportError, match="HTTP 401: Unauthorized"):
            await client.get_json(
                "/v1/apps/2/analyticsReportRequests", token=signed_token, endpoint="x"
            )

        # Non-JSON error bodies keep the bare status message.
        respx.get(f"{base}/v1/apps/3/analyticsReportRequests").mock(
            return_value=httpx.Response(502, content=b"<html>bad gateway</html>")
        )
        with pytest.raises(TransportError) as info:
            await client.get_json(
                "/v1/apps/3/analyticsReportRequests", token=signed_token, endpoint="x"
            )
        assert str(info.value) == "App Store Connect request failed with HTTP 502"


@pytest.mark.asyncio
@respx.mock
async def test_get_json_rejects_unreadable_bodies(
    appstore_settings: AppStoreSettings, signed_token: SignedToken
) -> None:
    async with httpx.AsyncClient() as http:
        client = AppStoreConnectClient(appstore_settings, http=http)
        base = client.base_url

        respx.get(f"{base}/v1/a").mock(return_value=httpx.Response(200, content=b"not json"))
        with pytest.raises(TransportError, match="not valid JSON"):
            await client.get_json("/v1/a", token=signed_token, endpoint="x")

        respx.get(f"{base}/v1/b").mock(return_value=httpx.Response(200, json=[1, 2]))
        with pytest.raises(TransportError, match="must be an object"):
            await client.get_json("/v1/b", token=signed_token, endpoint="x")


@pytest.mark.asyncio
@respx.mock
async def test_network_failure_is_a_transport_error(
    appstore_settings: AppStoreSettings, signed_token: SignedToken
) -> None:
    async with httpx.AsyncClient() as http:
        client = AppStoreConnectClient(appstore_settings, http=http)
        respx.get(f"{client.base_url}/v1/down").mock(side_effect=httpx.ConnectError("refused"))

        with pytest.raises(TransportError) as info:
            await client.get_json("/v1/down", token=signed_token, endpoint="down")

        assert info.value.details["endpoint"] == "down"
        assert isinstance(info.value.__cause__, httpx.ConnectError)


@pytest.mark.asyncio
@respx.mock
async def test_get_bytes_sends_authorization_only_with_token(
    appstore_settings: AppStoreSettings, signed_token: SignedToken
) -> None:
    async with httpx.AsyncClient() as http:
        client = AppStoreConnectClient(appstore_settings, http=http)
        route = respx.get("https://segments.example.com/seg-1.gz").mock(
            return_value=httpx.Response(200, content=b"\x1f\x8b raw")
        )

        anonymous = await client.get_bytes("https://segments.example.com/seg-1.gz", endpoint="a")
        assert anonymous == b"\x1f\x8b raw"
        assert "Authorization" not in route.calls.last.request.headers

        await client.get_bytes(
            "https://segments.example.com/seg-1.gz", token=signed_token, endpoint="a"
        )
        assert route.calls.last.request.headers["Authorization"] == "Bearer signed.jwt.token"


@pytest.mark.asyncio
async def test_owned_client_is_closed_but_shared_client_is_not(
    appstore_settings: AppStoreSettings,
) -> None:
    async with AppStoreConnectClient(appstore_settings) as owned:
        inner = owned._client
    assert inner.is_closed

    async with httpx.AsyncClient() as http:
        async with AppStoreConnectClient(appstore_settings, http=http):
            pass
        assert not http.is_closed


def test_base_url_is_normalized() -> None:
    client = AppStoreConnectClient(AppStoreSettings(base_url="https://asc.example.com/"))

    assert client.base_url == "https://asc.example.com"
