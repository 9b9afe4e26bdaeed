"""
MCP 端點、API Key 權限與 Tool Registry 測試
"""

from unittest.mock import AsyncMock

import pytest
from fastapi.testclient import TestClient

from browser_bridge import config
from browser_bridge.app import app
from browser_bridge.bridge import BridgeResult, browser_bridge
from browser_bridge.tools import registry

EXPECTED_TOOLS = {
    "browser_list_tabs",
    "browser_switch_tab",
    "browser_get_active_tab",
    "browser_rename_tab",
    "browser_open_url",
    "browser_get_page_info",
    "browser_click",
    "browser_fill",
    "browser_get_element_info",
    "browser_execute_script",
    "browser_get_console_logs",
    "browser_screenshot",
    "browser_capture_image",
    "browser_download_image",
    "browser_save_page",
    "browser_enable_network_capture",
    "browser_get_network_requests",
    "browser_get_network_response",
    "browser_clear_network_requests",
    "browser_download_file",
    "browser_get_downloads",
    "browser_cancel_download",
    "browser_get_bookmark_tree",
    "browser_search_bookmarks",
    "browser_create_bookmark",
    "browser_create_bookmark_folder",
    "browser_move_bookmark",
    "browser_delete_bookmark",
}


@pytest.fixture
def client(monkeypatch) -> TestClient:
    monkeypatch.setattr(config, "API_KEYS", {})
    return TestClient(app)


def rpc(client: TestClient, method: str, params: dict | None = None, headers: dict | None = None):
    body = {"jsonrpc": "2.0", "id": 1, "method": method, "params": params or {}}
    return client.post("/mcp", json=body, headers=headers or {})


# ═══════════════════════════════════════════════════════════════════════════════
# JSON-RPC
# ═══════════════════════════════════════════════════════════════════════════════


def test_initialize_reports_server_info(client):
    result = rpc(client, "initialize").json()["result"]

    assert result["serverInfo"]["name"] == "BROWSER-BRIDGE"
    assert "tools" in result["capabilities"]


def test_tools_list_contains_every_browser_tool(client):
    tools = rpc(client, "tools/list").json()["result"]["tools"]

    assert {tool["name"] for tool in tools} == EXPECTED_TOOLS
    assert all(tool["inputSchema"]["type"] == "object" for tool in tools)


def test_unknown_method_and_tool(client):
    assert rpc(client, "resources/list").json()["error"]["code"] == -32601
    missing = rpc(client, "tools/call", {"name": "browser_teleport", "arguments": {}}).json()
    assert missing["error"]["code"] == -32601


def test_missing_required_argument_is_invalid_params(client):
    response = rpc(client, "tools/call", {"name": "browser_open_url", "arguments": {}}).json()

    assert response["error"]["code"] == -32602


def test_invalid_json_is_parse_error(client):
    response = client.post("/mcp", content=b"{not json", headers={"Content-Type": "application/json"})

    assert response.json()["error"]["code"] == -32700


def test_health_check_reports_bridge_status(client):
    body = client.get("/mcp").json()

    assert body["status"] == "ok"
    assert body["tools_loaded"] == len(EXPECTED_TOOLS)
    assert "cdp" in body["bridge"]


# ═══════════════════════════════════════════════════════════════════════════════
# tools/call
# ═══════════════════════════════════════════════════════════════════════════════


def test_tool_result_carries_channel_and_addressing_mode(client, monkeypatch):
    outcome = BridgeResult.ok({"tagName": "BUTTON"}, "cdp")
    outcome.addressing_mode = "byUrl"
    monkeypatch.setattr(browser_bridge.executor, "click", AsyncMock(return_value=outcome))

    result = rpc(client, "tools/call", {"name": "browser_click", "arguments": {"selector": "#go"}}).json()["result"]

    assert result["isError"] is False
    assert result["metadata"]["channel"] == "cdp"
    assert result["metadata"]["addressingMode"] == "byUrl"
    assert "#go" in result["content"][0]["text"]


def test_failed_operation_is_reported_with_error_type(client, monkeypatch):
    outcome = BridgeResult.fail("Element not found: #go", "ApplicationError", "extension")
    monkeypatch.setattr(browser_bridge.executor, "click", AsyncMock(return_value=outcome))

    result = rpc(client, "tools/call", {"name": "browser_click", "arguments": {"selector": "#go"}}).json()["result"]

    assert result["isError"] is True
    assert "[ApplicationError] Element not found: #go" in result["content"][0]["text"]


def test_unexpected_handler_exception_becomes_error_result(client, monkeypatch):
    monkeypatch.setattr(browser_bridge.executor, "list_tabs", AsyncMock(side_effect=RuntimeError("kaboom")))

    result = rpc(client, "tools/call", {"name": "browser_list_tabs", "arguments": {}}).json()["result"]

    assert result["isError"] is True
    assert "Unexpected error in browser_list_tabs: kaboom" in result["content"][0]["text"]


def test_network_requests_hint_when_capture_not_enabled(client):
    result = rpc(client, "tools/call", {"name": "browser_get_network_requests", "arguments": {}}).json()["result"]

    assert result["isError"] is False
    assert "browser_enable_network_capture" in result["content"][0]["text"]


# ═══════════════════════════════════════════════════════════════════════════════
# API Key
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.fixture
def secured_client(monkeypatch) -> TestClient:
    monkeypatch.setattr(
        config,
        "API_KEYS",
        {
            "reader-key": {"tools": ["browser_list_*", "browser_get_*"], "exclude_tools": ["browser_get_downloads"]},
            "admin-key": {"tools": ["*"]},
        },
    )
    return TestClient(app)


def test_missing_or_malformed_authorization_is_401(secured_client):
    assert rpc(secured_client, "tools/list").status_code == 401
    assert rpc(secured_client, "tools/list", headers={"Authorization": "Token reader-key"}).status_code == 401


def test_unknown_key_is_403(secured_client):
    response = rpc(secured_client, "tools/list", headers={"Authorization": "Bearer nope"})

    assert response.status_code == 403


def test_tools_are_filtered_by_key_patterns(secured_client):
    reader = {"Authorization": "Bearer reader-key"}
    names = {tool["name"] for tool in rpc(secured_client, "tools/list", headers=reader).json()["result"]["tools"]}

    assert "browser_list_tabs" in names
    assert "browser_get_page_info" in names
    assert "browser_get_downloads" not in names
    assert "browser_click" not in names

    admin = {"Authorization": "Bearer admin-key"}
    assert len(rpc(secured_client, "tools/list", headers=admin).json()["result"]["tools"]) == len(EXPECTED_TOOLS)


def test_calling_disallowed_tool_is_denied(secured_client):
    response = rpc(
        secured_client,
        "tools/call",
        {"name": "browser_click", "arguments": {"selector": "#go"}},
        headers={"Authorization": "Bearer reader-key"},
    ).json()

    assert response["error"]["code"] == -32603
    assert "Permission denied" in response["error"]["message"]


def test_registry_count_matches_tool_modules():
    assert registry.get_tool_count() == len(EXPECTED_TOOLS)
