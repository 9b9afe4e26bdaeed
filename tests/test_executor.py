"""
DualChannelExecutor 測試

高保真通道可用時結果直接回傳；連線層級失敗時改走 CDP，結果形狀相同。
"""

import base64
import json
from pathlib import Path

import httpx
import pytest

from browser_bridge.bridge.errors import BOTH_CHANNELS_MESSAGE

from conftest import FakePage

PNG_BYTES = b"\x89PNG\r\n\x1a\nfake"
PNG_DATA_URL = "data:image/png;base64," + base64.b64encode(PNG_BYTES).decode()


def script_page(value) -> FakePage:
    page = FakePage("https://app.test", title="App", selectors={"#submit", "#email", "#hero"})
    page.tag_names = {"#submit": "BUTTON", "#email": "INPUT"}
    page.evaluate_result = {"ok": True, "value": value}
    return page


# ═══════════════════════════════════════════════════════════════════════════════
# 降級形狀一致
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
@pytest.mark.parametrize(
    "path, ext_response, call",
    [
        (
            "/api/browser/execute-script",
            {"success": True, "result": 42},
            lambda ex: ex.execute_script("6 * 7"),
        ),
        (
            "/api/browser/click-element",
            {"success": True, "tagName": "BUTTON"},
            lambda ex: ex.click("#submit"),
        ),
        (
            "/api/browser/fill-input",
            {"success": True, "tagName": "INPUT"},
            lambda ex: ex.fill("#email", "me@example.com"),
        ),
    ],
)
async def test_fallback_result_has_same_shape(make_bridge, path, ext_response, call):
    via_extension = make_bridge(pages=[script_page(42)], routes={path: ext_response})
    via_cdp = make_bridge(pages=[script_page(42)])

    ext_result = await call(via_extension.executor)
    cdp_result = await call(via_cdp.executor)

    assert ext_result.success and cdp_result.success
    assert ext_result.channel == "extension"
    assert cdp_result.channel == "cdp"
    assert ext_result.to_dict() == cdp_result.to_dict()


@pytest.mark.asyncio
async def test_click_fallback_clicks_on_resolved_page(make_bridge):
    page = script_page(None)
    bridge = make_bridge(pages=[page])

    result = await bridge.executor.click("#submit")

    assert result.success
    assert page.clicked == ["#submit"]
    assert result.addressing_mode == "byIndex"


@pytest.mark.asyncio
async def test_fill_fallback_fills_value(make_bridge):
    page = script_page(None)
    bridge = make_bridge(pages=[page])

    await bridge.executor.fill("#email", "me@example.com")

    assert page.filled == [("#email", "me@example.com")]


@pytest.mark.asyncio
async def test_element_info_fallback_drops_found_flag(make_bridge):
    page = FakePage("https://app.test")
    page.evaluate_result = {"found": True, "tagName": "div", "html": "<b>x</b>", "attributes": {"id": "main"}}
    bridge = make_bridge(pages=[page])

    result = await bridge.executor.get_element_info("#main", include_styles=False)

    assert result.success
    assert result.data == {"tagName": "div", "html": "<b>x</b>", "attributes": {"id": "main"}}
    _, args = page.evaluate_calls[0]
    assert args[0] == "#main"
    assert args[2] is False


@pytest.mark.asyncio
async def test_element_info_fallback_reports_missing_element(make_bridge):
    page = FakePage("https://app.test")
    page.evaluate_result = {"found": False}
    bridge = make_bridge(pages=[page])

    result = await bridge.executor.get_element_info("#nope")

    assert not result.success
    assert result.error == "Element not found: #nope"
    assert result.error_type == "ApplicationError"


@pytest.mark.asyncio
async def test_screenshot_fallback_writes_into_artifact_dir(make_bridge, tmp_path):
    page = FakePage("https://app.test")
    bridge = make_bridge(pages=[page])

    result = await bridge.executor.screenshot(full_page=True)

    assert result.success
    file_path = Path(result.data["filePath"])
    assert file_path.parent == tmp_path / "ai-images"
    assert file_path.name.startswith("screenshot-")
    assert file_path.read_bytes() == b"page-png"
    assert page.screenshots[0][1] is True


@pytest.mark.asyncio
async def test_capture_image_fallback_decodes_canvas_data(make_bridge):
    page = FakePage("https://app.test")
    page.evaluate_result = {"dataUrl": PNG_DATA_URL, "width": 2, "height": 3}
    bridge = make_bridge(pages=[page])

    result = await bridge.executor.capture_image(selector="#hero")

    assert result.success
    assert Path(result.data["filePath"]).read_bytes() == PNG_BYTES
    assert (result.data["width"], result.data["height"]) == (2, 3)


# ═══════════════════════════════════════════════════════════════════════════════
# 錯誤語意
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_extension_application_error_is_final(make_bridge):
    page = script_page(None)
    bridge = make_bridge(
        pages=[page],
        routes={"/api/browser/click-element": {"success": False, "error": "Element not found: #submit"}},
    )

    result = await bridge.executor.click("#submit")

    assert not result.success
    assert result.error == "Element not found: #submit"
    assert result.error_type == "ApplicationError"
    assert result.channel == "extension"
    assert page.clicked == []


@pytest.mark.asyncio
async def test_both_channels_down_reports_connection_unavailable(make_bridge):
    bridge = make_bridge(cdp_available=False)

    result = await bridge.executor.execute_script("1 + 1")

    assert not result.success
    assert result.error_type == "ConnectionUnavailable"
    assert result.error == BOTH_CHANNELS_MESSAGE


@pytest.mark.asyncio
async def test_extension_timeout_falls_back_to_cdp(make_bridge):
    page = script_page("done")
    bridge = make_bridge(
        pages=[page],
        routes={"/api/browser/execute-script": httpx.ReadTimeout("timed out")},
    )

    result = await bridge.executor.execute_script("'done'")

    assert result.success
    assert result.channel == "cdp"
    assert result.data == {"result": "done"}


@pytest.mark.asyncio
async def test_script_exception_becomes_failure_result(make_bridge):
    page = FakePage("https://app.test")
    page.evaluate_result = {"ok": False, "error": "boom is not defined"}
    bridge = make_bridge(pages=[page])

    result = await bridge.executor.execute_script("boom()")

    assert not result.success
    assert result.error == "Script error: boom is not defined"


@pytest.mark.asyncio
async def test_missing_selector_on_cdp_is_timeout(make_bridge):
    bridge = make_bridge(pages=[FakePage("https://app.test")])

    result = await bridge.executor.click("#missing")

    assert not result.success
    assert result.error_type == "ChannelTimeout"


@pytest.mark.asyncio
async def test_windows_file_path_is_converted_in_wsl(make_bridge):
    bridge = make_bridge(
        routes={"/api/browser/screenshot": {"success": True, "filePath": "C:\\Users\\me\\ai-images\\s.png"}},
        in_wsl=True,
    )

    result = await bridge.executor.screenshot()

    assert result.data["filePath"] == "/mnt/c/Users/me/ai-images/s.png"


@pytest.mark.asyncio
async def test_extension_only_operation_names_backend_when_unreachable(make_bridge):
    bridge = make_bridge()

    result = await bridge.executor.get_downloads()

    assert not result.success
    assert result.error_type == "ConnectionUnavailable"
    assert "http://backend.test" in result.error


@pytest.mark.asyncio
async def test_extension_only_operation_sends_defaults(make_bridge):
    calls: list[httpx.Request] = []
    bridge = make_bridge(
        routes={"/api/browser/bookmarks/create": {"success": True, "bookmark": {"id": "42"}}},
        calls=calls,
    )

    result = await bridge.executor.create_bookmark("https://a.test", "A")

    assert result.success
    assert result.data == {"bookmark": {"id": "42"}}
    assert json.loads(calls[0].content)["parentId"] == "1"


# ═══════════════════════════════════════════════════════════════════════════════
# 分頁操作
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_list_tabs_via_extension_remembers_ids_and_active_tab(make_bridge):
    tabs = [
        {"tabId": 501, "url": "https://a.test", "title": "A", "active": False},
        {"tabId": 502, "url": "https://b.test", "title": "B", "active": True},
    ]
    bridge = make_bridge(routes={"/api/browser/tabs": {"success": True, "tabs": tabs}})

    result = await bridge.executor.list_tabs()

    assert result.success
    assert result.data["total"] == 2
    assert bridge.session.url_for(501) == "https://a.test"
    assert bridge.session.current.tab_id == 502


@pytest.mark.asyncio
async def test_list_tabs_fallback_uses_positions(make_bridge):
    bridge = make_bridge(pages=[FakePage("https://a.test", "A"), FakePage("https://b.test", "B")])

    result = await bridge.executor.list_tabs()

    assert result.channel == "cdp"
    assert [tab["tabId"] for tab in result.data["tabs"]] == [1, 2]
    assert [tab["active"] for tab in result.data["tabs"]] == [True, False]


@pytest.mark.asyncio
async def test_rename_tab_shows_up_in_listing(make_bridge):
    bridge = make_bridge(pages=[FakePage("https://a.test", "A"), FakePage("https://b.test", "B")])

    renamed = await bridge.executor.rename_tab(2, "  Docs  ")
    listing = await bridge.executor.list_tabs()

    assert renamed.data == {"tabId": 2, "url": "https://b.test", "customName": "Docs"}
    assert listing.data["tabs"][1]["customName"] == "Docs"
    assert "customName" not in listing.data["tabs"][0]

    await bridge.executor.rename_tab(2, "")
    assert bridge.session.custom_name_for("https://b.test") is None


@pytest.mark.asyncio
async def test_rename_unknown_tab_explains_how_to_recover(make_bridge):
    bridge = make_bridge(cdp_available=False)

    result = await bridge.executor.rename_tab(77, "x")

    assert not result.success
    assert result.error == "Invalid tab ID: 77. List tabs first to get valid tab IDs"


@pytest.mark.asyncio
async def test_switch_tab_fallback_brings_page_to_front(make_bridge):
    pages = [FakePage("https://a.test"), FakePage("https://b.test")]
    bridge = make_bridge(pages=pages)

    result = await bridge.executor.switch_tab(2)
    invalid = await bridge.executor.switch_tab(5)

    assert result.data == {"tabId": 2, "url": "https://b.test"}
    assert pages[1].brought_to_front
    assert bridge.session.current.tab_id == 2
    assert invalid.error == "Invalid tab ID: 5. Available tabs: 1-2"


@pytest.mark.asyncio
async def test_open_url_fallback_opens_new_page_and_targets_it(make_bridge):
    bridge = make_bridge(pages=[FakePage("https://a.test")])

    result = await bridge.executor.open_url("https://new.test")

    assert result.success
    assert result.data == {"tabId": 2, "url": "https://new.test", "reused": False}
    assert bridge.session.current.url == "https://new.test"


@pytest.mark.asyncio
async def test_page_info_falls_back_when_extension_answer_lacks_url(make_bridge):
    bridge = make_bridge(
        pages=[FakePage("https://a.test", "A")],
        routes={"/api/browser/page-info": {"title": "?"}},
    )

    result = await bridge.executor.get_page_info()

    assert result.channel == "cdp"
    assert result.data == {"url": "https://a.test", "title": "A", "tabId": 1}


# ═══════════════════════════════════════════════════════════════════════════════
# 圖片下載
# ═══════════════════════════════════════════════════════════════════════════════


@pytest.mark.asyncio
async def test_download_image_fetches_https_url_directly(make_bridge):
    def fetch(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, content=PNG_BYTES, headers={"content-type": "image/png"})

    bridge = make_bridge(fetch_transport=httpx.MockTransport(fetch))

    result = await bridge.executor.download_image(url="https://img.test/cat.png")

    assert result.success
    assert result.channel == "fetch"
    assert result.data["size"] == len(PNG_BYTES)
    assert Path(result.data["filePath"]).suffix == ".png"


@pytest.mark.asyncio
async def test_download_image_rejects_non_image_content(make_bridge):
    def fetch(request: httpx.Request) -> httpx.Response:
        return httpx.Response(200, text="<html></html>", headers={"content-type": "text/html"})

    bridge = make_bridge(fetch_transport=httpx.MockTransport(fetch))

    result = await bridge.executor.download_image(url="https://img.test/page")

    assert not result.success
    assert result.error_type == "ApplicationError"
    assert "not an image" in result.error


@pytest.mark.asyncio
async def test_download_image_blob_url_uses_canvas_capture(make_bridge):
    page = FakePage("https://app.test")
    page.evaluate_result = {"dataUrl": PNG_DATA_URL, "width": 1, "height": 1}
    bridge = make_bridge(pages=[page])

    result = await bridge.executor.download_image(url="blob:https://app.test/1234")

    assert result.success
    assert result.channel == "cdp"
    _, args = page.evaluate_calls[-1]
    assert args == ["img", "blob:https://app.test/1234"]


@pytest.mark.asyncio
async def test_download_image_sends_resolved_url_to_extension(make_bridge):
    calls: list[httpx.Request] = []
    bridge = make_bridge(
        routes={"/api/browser/capture-image": {"success": True, "filePath": "/tmp/ai-images/image-1.png"}},
        calls=calls,
    )

    result = await bridge.executor.download_image(url="blob:https://app.test/1234", selector="#hero")

    assert result.success
    assert result.channel == "extension"
    body = json.loads(calls[-1].content)
    assert body["imageUrl"] == "blob:https://app.test/1234"
    assert body["selector"] == "#hero"
