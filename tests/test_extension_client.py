"""
ExtensionClient 測試
"""

import json

import httpx
import pytest

from browser_bridge.bridge.errors import ChannelTimeout, ChannelUnreachable
from browser_bridge.bridge.extension_client import ExtensionClient


def client_for(handler) -> ExtensionClient:
    return ExtensionClient("http://backend.test/", transport=httpx.MockTransport(handler))


@pytest.mark.asyncio
async def test_none_values_are_not_sent():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return httpx.Response(200, json={"success": True})

    client = client_for(handler)
    await client.get("/api/browser/console-logs", timeout=1, params={"level": "error", "limit": None})
    await client.post("/api/browser/click-element", timeout=1, json={"selector": "#a", "tabId": None})

    assert dict(seen[0].url.params) == {"level": "error"}
    assert json.loads(seen[1].content) == {"selector": "#a"}
    assert client.base_url == "http://backend.test"


@pytest.mark.asyncio
async def test_error_payload_is_returned_not_raised():
    client = client_for(lambda request: httpx.Response(404, json={"success": False, "error": "Tab not found"}))

    payload = await client.get("/api/browser/page-info", timeout=1)

    assert payload == {"success": False, "error": "Tab not found"}
    assert ExtensionClient.is_definitive(payload)


@pytest.mark.asyncio
async def test_refused_connection_is_unreachable():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ConnectError("Connection refused", request=request)

    with pytest.raises(ChannelUnreachable) as exc_info:
        await client_for(handler).get("/api/browser/tabs", timeout=1)

    assert not isinstance(exc_info.value, ChannelTimeout)


@pytest.mark.asyncio
async def test_timeout_is_channel_timeout():
    def handler(request: httpx.Request) -> httpx.Response:
        raise httpx.ReadTimeout("timed out", request=request)

    with pytest.raises(ChannelTimeout):
        await client_for(handler).post("/api/browser/screenshot", timeout=0.1)


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "response",
    [
        httpx.Response(502, text="Bad Gateway"),
        httpx.Response(200, json=["not", "an", "object"]),
    ],
)
async def test_malformed_response_is_unreachable(response):
    with pytest.raises(ChannelUnreachable):
        await client_for(lambda request: response).get("/api/browser/tabs", timeout=1)


def test_is_definitive():
    assert ExtensionClient.is_definitive({"success": True})
    assert ExtensionClient.is_definitive({"error": "Element not found: #x"})
    assert not ExtensionClient.is_definitive({"success": False})
    assert not ExtensionClient.is_definitive({})


@pytest.mark.asyncio
async def test_requests_share_one_client_until_closed():
    client = client_for(lambda request: httpx.Response(200, json={"success": True}))

    await client.get("/api/browser/tabs", timeout=1)
    shared = client._client
    await client.post("/api/browser/click-element", timeout=1, json={"selector": "#a"})

    assert shared is not None
    assert client._client is shared

    await client.close()

    assert shared.is_closed
    assert client._client is None

    # 關閉後再次呼叫會重新建立
    await client.get("/api/browser/tabs", timeout=1)
    assert client._client is not None and client._client is not shared


@pytest.mark.asyncio
async def test_bridge_close_releases_extension_client(make_bridge):
    bridge = make_bridge(routes={"/api/browser/tabs": {"success": True, "tabs": []}})
    await bridge.extension.get("/api/browser/tabs", timeout=1)
    shared = bridge.extension._client

    await bridge.close()

    assert shared.is_closed
    assert bridge.extension._client is None
