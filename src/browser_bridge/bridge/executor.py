"""
雙通道操作執行器

每個自動化操作都先走高保真通道（Extension backend HTTP API），
只有在該通道於連線層級失敗時，才解析目標頁面並改用低階通道（CDP）執行等效操作。
高保真通道的任何明確回應（成功或應用層錯誤）都是最終結果。
"""

from __future__ import annotations

import base64
import binascii
import json
import logging
from collections.abc import Awaitable, Callable
from pathlib import Path
from typing import Any

import httpx
from playwright.async_api import Error as PlaywrightError
from playwright.async_api import TimeoutError as PlaywrightTimeoutError

from browser_bridge.base.data_structures import Channel, image_extension_for
from browser_bridge.base.platform_paths import to_consumer_path
from browser_bridge.bridge.artifacts import ArtifactRetention
from browser_bridge.bridge.errors import (
    BOTH_CHANNELS_MESSAGE,
    ApplicationError,
    BridgeError,
    ChannelTimeout,
    ChannelUnreachable,
    ConnectionUnavailable,
)
from browser_bridge.bridge.extension_client import ExtensionClient
from browser_bridge.bridge.models import BridgeResult, ResolvedPage, TabRecord
from browser_bridge.bridge.resolver import TabResolver
from browser_bridge.bridge.session_state import BridgeSession
from browser_bridge.config import CDP_SELECTOR_TIMEOUT_MS, CHANNEL_TIMEOUTS, IMAGE_FETCH_TIMEOUT

logger = logging.getLogger(__name__)

Fallback = Callable[[ResolvedPage], Awaitable[dict[str, Any]]]
PayloadCheck = Callable[[dict[str, Any]], bool]

# ═══════════════════════════════════════════════════════════════════════════════
# 頁面內執行的腳本
# ═══════════════════════════════════════════════════════════════════════════════
# 以間接 eval 執行使用者腳本，例外一律包成 {ok: false, error}
SCRIPT_WRAPPER = """
async (code) => {
  try {
    const value = await (0, eval)(code);
    return { ok: true, value: value === undefined ? null : value };
  } catch (e) {
    return { ok: false, error: e && e.message ? e.message : String(e) };
  }
}
"""

ELEMENT_INFO_SCRIPT = """
([sel, props, getStyles]) => {
  const el = document.querySelector(sel);
  if (!el) return { found: false };

  const rect = el.getBoundingClientRect();
  const attributes = {};
  for (const attr of el.attributes) attributes[attr.name] = attr.value;

  const styles = {};
  if (getStyles) {
    const computed = window.getComputedStyle(el);
    for (const prop of props) {
      const value = computed.getPropertyValue(prop.replace(/([A-Z])/g, '-$1').toLowerCase());
      if (value && !['none', 'normal', 'auto', '0px', 'rgba(0, 0, 0, 0)'].includes(value)) {
        styles[prop] = value;
      }
    }
  }

  let parentSelector = '';
  const parent = el.parentElement;
  if (parent) {
    if (parent.id) parentSelector = `#${parent.id}`;
    else if (typeof parent.className === 'string' && parent.className) parentSelector = `.${parent.className.split(' ')[0]}`;
    else parentSelector = parent.tagName.toLowerCase();
  }

  return {
    found: true,
    html: el.innerHTML,
    outerHTML: el.outerHTML,
    innerText: (el.innerText || '').slice(0, 500),
    tagName: el.tagName.toLowerCase(),
    attributes,
    bounds: {
      x: Math.round(rect.x), y: Math.round(rect.y),
      width: Math.round(rect.width), height: Math.round(rect.height),
      top: Math.round(rect.top), right: Math.round(rect.right),
      bottom: Math.round(rect.bottom), left: Math.round(rect.left),
    },
    styles,
    parentSelector,
    childCount: el.children.length,
  };
}
"""

# 透過 canvas 匯出圖片，適用於 blob: 等無法直接下載的暫時性 URL
CANVAS_CAPTURE_SCRIPT = """
async ([sel, targetUrl]) => {
  let img = null;
  if (targetUrl) img = Array.from(document.images).find((el) => el.src === targetUrl) || null;
  if (!img && sel) {
    const el = document.querySelector(sel);
    if (el && el.tagName === 'IMG') img = el;
    else if (el) img = el.querySelector('img');
  }
  if (!img) throw new Error('Could not find image element');

  if (!img.complete) {
    await new Promise((resolve, reject) => {
      img.onload = resolve;
      img.onerror = reject;
      setTimeout(reject, 5000);
    });
  }

  const canvas = document.createElement('canvas');
  canvas.width = img.naturalWidth || img.width;
  canvas.height = img.naturalHeight || img.height;
  const ctx = canvas.getContext('2d');
  if (!ctx) throw new Error('Could not get canvas context');
  ctx.drawImage(img, 0, 0);
  return { dataUrl: canvas.toDataURL('image/png'), width: canvas.width, height: canvas.height };
}
"""

# 找出頁面上面積最大（超過 40000 px²）的圖片
LARGEST_IMAGE_SCRIPT = """(() => {
  const imgs = Array.from(document.querySelectorAll('img'));
  const largest = imgs.reduce((best, img) => {
    const area = img.naturalWidth * img.naturalHeight;
    const bestArea = best ? best.naturalWidth * best.naturalHeight : 0;
    return area > bestArea && area > 40000 ? img : best;
  }, null);
  return largest ? largest.src : null;
})()"""

DEFAULT_STYLE_PROPERTIES = [
    # Layout
    "display", "position", "top", "right", "bottom", "left",
    "width", "height", "minWidth", "maxWidth", "minHeight", "maxHeight",
    "margin", "marginTop", "marginRight", "marginBottom", "marginLeft",
    "padding", "paddingTop", "paddingRight", "paddingBottom", "paddingLeft",
    "boxSizing", "overflow", "overflowX", "overflowY",
    # Flexbox
    "flexDirection", "flexWrap", "justifyContent", "alignItems", "alignContent",
    "flex", "flexGrow", "flexShrink", "flexBasis", "alignSelf", "gap",
    # Grid
    "gridTemplateColumns", "gridTemplateRows", "gridColumn", "gridRow", "gridGap",
    # Typography
    "fontFamily", "fontSize", "fontWeight", "fontStyle", "lineHeight",
    "textAlign", "textDecoration", "textTransform", "letterSpacing", "color",
    # Background
    "background", "backgroundColor", "backgroundImage", "backgroundSize", "backgroundPosition",
    # Border
    "border", "borderWidth", "borderStyle", "borderColor", "borderRadius",
    "borderTop", "borderRight", "borderBottom", "borderLeft",
    # Effects
    "boxShadow", "opacity", "transform", "transition", "zIndex",
    "cursor", "pointerEvents",
]


def _image_url_script(selector: str) -> str:
    return f"""(() => {{
  const el = document.querySelector({json.dumps(selector)});
  if (!el) return null;
  if (el.tagName === 'IMG') return el.src;
  const img = el.querySelector('img');
  return img ? img.src : null;
}})()"""


def _has_page_info(payload: dict[str, Any]) -> bool:
    return "url" in payload or bool(payload.get("error"))


class DualChannelExecutor:
    """
    雙通道操作執行器

    Attributes:
        session: 橋接 Session 狀態（CurrentTarget、自訂名稱、分頁列表）
        extension: 高保真通道客戶端
        resolver: 低階通道的分頁解析器
        retention: 擷取檔案的清理與命名
    """

    def __init__(
        self,
        session: BridgeSession,
        extension: ExtensionClient,
        resolver: TabResolver,
        retention: ArtifactRetention,
        in_wsl: bool | None = None,
        fetch_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session = session
        self.extension = extension
        self.resolver = resolver
        self.retention = retention
        self.in_wsl = in_wsl
        self._fetch_transport = fetch_transport

    # ═══════════════════════════════════════════════════════════════════════════════
    # 通道基礎
    # ═══════════════════════════════════════════════════════════════════════════════

    async def _via_extension(
        self,
        label: str,
        method: str,
        path: str,
        timeout_key: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
        is_definitive: PayloadCheck = ExtensionClient.is_definitive,
    ) -> dict[str, Any] | None:
        """呼叫高保真通道；無法連線或回應不明確時回傳 None 以觸發降級"""
        try:
            payload = await self.extension.request(
                method, path, timeout=CHANNEL_TIMEOUTS[timeout_key], params=params, json=json
            )
        except ChannelUnreachable as e:
            logger.warning(f"⚠️ [{label}] Extension API 無法使用，改用 CDP: {e.message}")
            return None
        if is_definitive(payload):
            return payload
        logger.warning(f"⚠️ [{label}] Extension API 回應不明確，改用 CDP")
        return None

    def _extension_result(self, payload: dict[str, Any]) -> BridgeResult:
        """將高保真通道的回應轉成 BridgeResult（檔案路徑轉為呼叫端格式）"""
        data = {key: value for key, value in payload.items() if key not in ("success", "error")}
        if data.get("filePath"):
            data["filePath"] = to_consumer_path(data["filePath"], self.in_wsl)
        elif data.get("wslPath") or data.get("windowsPath"):
            data["filePath"] = data.get("wslPath") or to_consumer_path(data["windowsPath"], self.in_wsl)

        if "success" in payload:
            succeeded = bool(payload["success"])
        else:
            succeeded = not payload.get("error")
        if succeeded:
            return BridgeResult.ok(data, Channel.EXTENSION)
        error = str(payload.get("error") or "Extension backend reported failure")
        return BridgeResult.fail(error, ApplicationError.kind, Channel.EXTENSION, data)

    async def _extension_only(
        self,
        label: str,
        method: str,
        path: str,
        timeout_key: str,
        *,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> BridgeResult:
        """只有高保真通道能完成的操作；無法連線時直接回報 ConnectionUnavailable"""
        try:
            payload = await self.extension.request(
                method, path, timeout=CHANNEL_TIMEOUTS[timeout_key], params=params, json=json
            )
        except ChannelUnreachable as e:
            message = (
                f"{label}: Cannot connect to backend at {self.extension.base_url}. "
                f"Make sure the backend is running and the Chrome extension is installed. ({e.message})"
            )
            logger.error(f"❌ {message}")
            return BridgeResult.from_error(ConnectionUnavailable(message), Channel.EXTENSION)
        return self._extension_result(payload)

    async def _with_page(self, label: str, tab_id: int | None, fallback: Fallback) -> BridgeResult:
        """
        低階通道執行

        解析目標頁面後執行 fallback；Playwright 錯誤轉為 ChannelTimeout / ApplicationError。
        """
        resolved = await self.resolver.resolve(tab_id)
        if resolved is None:
            logger.error(f"❌ [{label}] {BOTH_CHANNELS_MESSAGE}")
            return BridgeResult.from_error(ConnectionUnavailable(BOTH_CHANNELS_MESSAGE), Channel.CDP)

        try:
            data = await fallback(resolved)
        except PlaywrightTimeoutError as e:
            result = BridgeResult.from_error(ChannelTimeout(f"{label} timed out: {e.message}"), Channel.CDP)
        except PlaywrightError as e:
            result = BridgeResult.from_error(ApplicationError(e.message), Channel.CDP)
        except BridgeError as e:
            result = BridgeResult.from_error(e, Channel.CDP)
        else:
            logger.info(f"✅ [{label}] 已透過 CDP 完成 (mode={resolved.mode.value}, tabId={resolved.tab_id})")
            result = BridgeResult.ok(data, Channel.CDP)

        result.addressing_mode = resolved.mode.value
        return result

    async def _dual(
        self,
        label: str,
        path: str,
        payload: dict[str, Any],
        timeout_key: str,
        tab_id: int | None,
        fallback: Fallback,
    ) -> BridgeResult:
        response = await self._via_extension(label, "POST", path, timeout_key, json=payload)
        if response is not None:
            return self._extension_result(response)
        return await self._with_page(label, tab_id, fallback)

    # ═══════════════════════════════════════════════════════════════════════════════
    # 互動操作
    # ═══════════════════════════════════════════════════════════════════════════════

    async def execute_script(self, code: str, tab_id: int | None = None, all_frames: bool = False) -> BridgeResult:
        """在頁面中執行 JavaScript，腳本例外以失敗結果回傳"""

        async def fallback(resolved: ResolvedPage) -> dict[str, Any]:
            outcome = await resolved.page.evaluate(SCRIPT_WRAPPER, code)
            if not outcome.get("ok"):
                raise ApplicationError(f"Script error: {outcome.get('error')}")
            return {"result": outcome.get("value")}

        payload = {"code": code, "tabId": tab_id, "allFrames": all_frames or None}
        return await self._dual("execute_script", "/api/browser/execute-script", payload, "execute_script", tab_id, fallback)

    async def click(self, selector: str, tab_id: int | None = None) -> BridgeResult:
        """點擊元素"""

        async def fallback(resolved: ResolvedPage) -> dict[str, Any]:
            page = resolved.page
            element = await page.wait_for_selector(selector, timeout=CDP_SELECTOR_TIMEOUT_MS)
            tag_name = await element.evaluate("el => el.tagName") if element else None
            await page.click(selector)
            return {"tagName": tag_name}

        payload = {"selector": selector, "tabId": tab_id}
        return await self._dual("click", "/api/browser/click-element", payload, "click", tab_id, fallback)

    async def fill(self, selector: str, value: str, tab_id: int | None = None) -> BridgeResult:
        """填入輸入欄位"""

        async def fallback(resolved: ResolvedPage) -> dict[str, Any]:
            page = resolved.page
            element = await page.wait_for_selector(selector, timeout=CDP_SELECTOR_TIMEOUT_MS)
            tag_name = await element.evaluate("el => el.tagName") if element else None
            await page.fill(selector, value)
            return {"tagName": tag_name}

        payload = {"selector": selector, "value": value, "tabId": tab_id}
        return await self._dual("fill", "/api/browser/fill-input", payload, "fill", tab_id, fallback)

    async def get_element_info(
        self,
        selector: str,
        include_styles: bool = True,
        style_properties: list[str] | None = None,
        tab_id: int | None = None,
    ) -> BridgeResult:
        """取得元素的 HTML、屬性、位置與計算後樣式"""

        async def fallback(resolved: ResolvedPage) -> dict[str, Any]:
            info = await resolved.page.evaluate(
                ELEMENT_INFO_SCRIPT, [selector, style_properties or DEFAULT_STYLE_PROPERTIES, include_styles]
            )
            if not info.get("found"):
                raise ApplicationError(f"Element not found: {selector}")
            info.pop("found", None)
            return info

        payload = {
            "selector": selector,
            "tabId": tab_id,
            "includeStyles": include_styles,
            "styleProperties": style_properties,
        }
        return await self._dual("element_info", "/api/browser/get-element-info", payload, "element_info", tab_id, fallback)

    # ═══════════════════════════════════════════════════════════════════════════════
    # 擷取操作
    # ═══════════════════════════════════════════════════════════════════════════════

    async def screenshot(
        self,
        selector: str | None = None,
        full_page: bool = False,
        output_path: str | None = None,
        tab_id: int | None = None,
    ) -> BridgeResult:
        """截圖（可指定元素或整頁），回傳檔案路徑"""

        async def fallback(resolved: ResolvedPage) -> dict[str, Any]:
            page = resolved.page
            if selector:
                element = await page.query_selector(selector)
                if element is None:
                    raise ApplicationError(f"Element not found: {selector}")
                target = self.retention.prepare("screenshot-", ".png", output_path)
                await element.screenshot(path=str(target))
            else:
                target = self.retention.prepare("screenshot-", ".png", output_path)
                await page.screenshot(path=str(target), full_page=full_page)
            return {"filePath": to_consumer_path(target, self.in_wsl)}

        if full_page:
            path, timeout_key = "/api/browser/screenshot-full", "screenshot_full"
        else:
            path, timeout_key = "/api/browser/screenshot", "screenshot"
        payload = {"tabId": tab_id, "selector": selector}
        return await self._dual("screenshot", path, payload, timeout_key, tab_id, fallback)

    async def capture_image(
        self,
        selector: str | None = None,
        output_path: str | None = None,
        tab_id: int | None = None,
        image_url: str | None = None,
    ) -> BridgeResult:
        """以 canvas 擷取頁面上的圖片（適用於 blob: 等暫時性 URL）"""

        async def fallback(resolved: ResolvedPage) -> dict[str, Any]:
            captured = await resolved.page.evaluate(CANVAS_CAPTURE_SCRIPT, [selector or "img", image_url])
            data_url = captured.get("dataUrl") or ""
            _, _, encoded = data_url.partition("base64,")
            try:
                data = base64.b64decode(encoded, validate=True)
            except binascii.Error as e:
                raise ApplicationError(f"Canvas capture returned invalid data: {e}") from e
            target = self.retention.write("image-", data, ".png", output_path)
            return {
                "filePath": to_consumer_path(target, self.in_wsl),
                "width": captured.get("width"),
                "height": captured.get("height"),
            }

        payload = {"selector": selector, "tabId": tab_id, "outputPath": output_path, "imageUrl": image_url}
        return await self._dual("capture_image", "/api/browser/capture-image", payload, "capture_image", tab_id, fallback)

    async def download_image(
        self,
        selector: str | None = None,
        url: str | None = None,
        output_path: str | None = None,
        tab_id: int | None = None,
    ) -> BridgeResult:
        """
        下載頁面上的圖片

        順序：
        1. 未提供 URL 時以腳本取得（selector 內的 img，否則頁面上最大的圖片）
        2. 一般 https URL 直接下載
        3. 其餘（blob: 或直接下載失敗）改用 canvas 擷取
        """
        image_url = url
        if not image_url and selector:
            image_url = await self._extract_image_url(_image_url_script(selector), tab_id)
        if not image_url:
            image_url = await self._extract_image_url(LARGEST_IMAGE_SCRIPT, tab_id)

        if image_url and image_url.startswith("https://"):
            fetched = await self._fetch_image(image_url, output_path)
            if fetched is not None:
                return fetched

        result = await self.capture_image(selector=selector, output_path=output_path, tab_id=tab_id, image_url=image_url)
        if not result.success and not result.error:
            result.error = "Failed to download image. The image may be cross-origin or inaccessible."
        return result

    async def _extract_image_url(self, script: str, tab_id: int | None) -> str | None:
        result = await self.execute_script(script, tab_id)
        value = result.data.get("result")
        if result.success and isinstance(value, str) and value:
            return value
        return None

    async def _fetch_image(self, url: str, output_path: str | None) -> BridgeResult | None:
        """直接下載圖片；網路失敗回傳 None 讓呼叫端改用 canvas 擷取"""
        try:
            async with httpx.AsyncClient(
                timeout=IMAGE_FETCH_TIMEOUT, follow_redirects=True, transport=self._fetch_transport
            ) as client:
                response = await client.get(url)
                response.raise_for_status()
        except httpx.HTTPError as e:
            logger.warning(f"⚠️ 直接下載圖片失敗，改用 canvas 擷取: {e}")
            return None

        content_type = response.headers.get("content-type", "")
        if not content_type.lower().startswith("image/"):
            return BridgeResult.from_error(
                ApplicationError(f"URL is not an image (content-type: {content_type or 'unknown'}): {url}"),
                Channel.FETCH,
            )

        filename = Path(output_path).name if output_path else None
        suffix = Path(filename).suffix if filename and Path(filename).suffix else image_extension_for(content_type)
        target = self.retention.write("image-", response.content, suffix, output_path)
        return BridgeResult.ok(
            {"filePath": to_consumer_path(target, self.in_wsl), "url": url, "size": len(response.content)},
            Channel.FETCH,
        )

    # ═══════════════════════════════════════════════════════════════════════════════
    # 分頁操作
    # ═══════════════════════════════════════════════════════════════════════════════

    async def list_tabs(self) -> BridgeResult:
        """
        列出所有分頁

        高保真通道提供真實 tab ID 與正確的 active 狀態；
        降級時以 1-based 順序作為 tabId，active 以最後一次切換推測。
        """
        payload = await self._via_extension("list_tabs", "GET", "/api/browser/tabs", "tabs")
        if payload is not None:
            if not payload.get("success"):
                return self._extension_result(payload)
            tabs = [
                TabRecord(
                    tab_id=int(tab["tabId"]),
                    url=tab.get("url", ""),
                    title=tab.get("title", ""),
                    custom_name=self.session.custom_name_for(tab.get("url", "")),
                    active=bool(tab.get("active")),
                )
                for tab in payload.get("tabs") or []
            ]
            self.session.remember_listing(tabs)
            return BridgeResult.ok({"tabs": [tab.to_dict() for tab in tabs], "total": len(tabs)}, Channel.EXTENSION)

        pages = await self.resolver.live_pages()
        if pages is None:
            return BridgeResult.from_error(ConnectionUnavailable(BOTH_CHANNELS_MESSAGE), Channel.CDP)

        tabs = []
        try:
            for index, page in enumerate(pages, start=1):
                tabs.append(
                    TabRecord(
                        tab_id=index,
                        url=page.url,
                        title=await page.title(),
                        custom_name=self.session.custom_name_for(page.url),
                        active=index == self.session.current.tab_id,
                    )
                )
        except PlaywrightError as e:
            return BridgeResult.from_error(ApplicationError(e.message), Channel.CDP)
        return BridgeResult.ok({"tabs": [tab.to_dict() for tab in tabs], "total": len(tabs)}, Channel.CDP)

    async def switch_tab(self, tab_id: int) -> BridgeResult:
        """切換分頁並更新目前目標"""
        payload = await self._via_extension("switch_tab", "POST", "/api/browser/switch-tab", "switch_tab", json={"tabId": tab_id})
        if payload is not None:
            result = self._extension_result(payload)
            if result.success:
                self.session.set_current(tab_id, self.session.url_for(tab_id))
                active = await self.resolver.refresh_active_tab()
                result.data.update({"tabId": tab_id, "url": (active or {}).get("url", self.session.current.url)})
            return result

        pages = await self.resolver.live_pages()
        if pages is None:
            return BridgeResult.from_error(ConnectionUnavailable(BOTH_CHANNELS_MESSAGE), Channel.CDP)
        if not 1 <= tab_id <= len(pages):
            return BridgeResult.from_error(
                ApplicationError(f"Invalid tab ID: {tab_id}. Available tabs: 1-{len(pages)}"), Channel.CDP
            )

        page = pages[tab_id - 1]
        try:
            await page.bring_to_front()
        except PlaywrightError as e:
            return BridgeResult.from_error(ApplicationError(e.message), Channel.CDP)
        self.session.set_current(tab_id, page.url)
        return BridgeResult.ok({"tabId": tab_id, "url": page.url}, Channel.CDP)

    async def get_active_tab(self) -> BridgeResult:
        """取得使用者實際聚焦的分頁（僅高保真通道）"""
        result = await self._extension_only("get_active_tab", "GET", "/api/browser/active-tab", "active_tab")
        tab = result.data.get("tab")
        if result.success and isinstance(tab, dict) and tab.get("tabId") is not None:
            self.session.set_current(int(tab["tabId"]), tab.get("url"))
        return result

    async def rename_tab(self, tab_id: int, name: str) -> BridgeResult:
        """
        為分頁設定自訂名稱（以 URL 為鍵，空字串清除）

        依序以最近的分頁列表、重新列出的分頁、1-based 順序找出 URL。
        """
        url = self.session.url_for(tab_id)
        if not url:
            await self.list_tabs()
            url = self.session.url_for(tab_id)
        if not url:
            pages = await self.resolver.live_pages()
            if pages and 1 <= tab_id <= len(pages):
                url = pages[tab_id - 1].url

        if not url:
            known = list(self.session.tab_urls)
            hint = (
                f"Available tab IDs: {', '.join(str(i) for i in known)}"
                if known
                else "List tabs first to get valid tab IDs"
            )
            return BridgeResult.from_error(ApplicationError(f"Invalid tab ID: {tab_id}. {hint}"))

        self.session.rename(url, name)
        return BridgeResult.ok({"tabId": tab_id, "url": url, "customName": self.session.custom_name_for(url)})

    async def open_url(
        self,
        url: str,
        new_tab: bool = True,
        background: bool = False,
        reuse_existing: bool = True,
    ) -> BridgeResult:
        """開啟 URL；非背景開啟時會成為目前目標"""
        payload = {"url": url, "newTab": new_tab, "background": background, "reuseExisting": reuse_existing}
        response = await self._via_extension("open_url", "POST", "/api/browser/open-url", "open_url", json=payload)
        if response is not None:
            result = self._extension_result(response)
            opened_id = result.data.get("tabId")
            if result.success and opened_id is not None and not background:
                self.session.set_current(int(opened_id), result.data.get("url"))
            return result

        handle = await self.resolver.discovery.acquire()
        if handle is None:
            return BridgeResult.from_error(ConnectionUnavailable(BOTH_CHANNELS_MESSAGE), Channel.CDP)

        try:
            if new_tab or not handle.pages():
                contexts = handle.browser.contexts
                context = contexts[0] if contexts else await handle.browser.new_context()
                page = await context.new_page()
            else:
                resolved = await self.resolver.resolve(None)
                page = resolved.page if resolved else handle.pages()[0]
            await page.goto(url)
            if not background:
                await page.bring_to_front()
        except PlaywrightTimeoutError as e:
            return BridgeResult.from_error(ChannelTimeout(f"open_url timed out: {e.message}"), Channel.CDP)
        except PlaywrightError as e:
            return BridgeResult.from_error(ApplicationError(e.message), Channel.CDP)

        pages = handle.pages()
        index = next((i for i, candidate in enumerate(pages, start=1) if candidate is page), len(pages))
        if not background:
            self.session.set_current(index, page.url)
        return BridgeResult.ok({"tabId": index, "url": page.url, "reused": False}, Channel.CDP)

    async def get_page_info(self, tab_id: int | None = None) -> BridgeResult:
        """取得頁面的 URL、標題與 tabId"""
        response = await self._via_extension(
            "page_info", "GET", "/api/browser/page-info", "page_info",
            params={"tabId": tab_id}, is_definitive=_has_page_info,
        )
        if response is not None:
            return self._extension_result(response)

        async def fallback(resolved: ResolvedPage) -> dict[str, Any]:
            reported_id = tab_id if tab_id is not None else self.session.current.tab_id
            return {"url": resolved.page.url, "title": await resolved.page.title(), "tabId": reported_id}

        return await self._with_page("page_info", tab_id, fallback)

    # ═══════════════════════════════════════════════════════════════════════════════
    # 僅高保真通道：下載、頁面儲存、書籤、Console
    # ═══════════════════════════════════════════════════════════════════════════════

    async def download_file(self, url: str, filename: str | None = None, conflict_action: str = "uniquify") -> BridgeResult:
        payload = {"url": url, "filename": filename, "conflictAction": conflict_action or "uniquify"}
        return await self._extension_only("download_file", "POST", "/api/browser/download-file", "download_file", json=payload)

    async def get_downloads(self, limit: int = 20, state: str = "all") -> BridgeResult:
        params = {"limit": limit or 20, "state": state or "all"}
        return await self._extension_only("get_downloads", "GET", "/api/browser/downloads", "downloads", params=params)

    async def cancel_download(self, download_id: int) -> BridgeResult:
        payload = {"downloadId": download_id}
        return await self._extension_only("cancel_download", "POST", "/api/browser/cancel-download", "cancel_download", json=payload)

    async def save_page(self, tab_id: int | None = None, filename: str | None = None) -> BridgeResult:
        """將頁面儲存為 MHTML"""
        payload = {"tabId": tab_id, "filename": filename}
        return await self._extension_only("save_page", "POST", "/api/browser/save-page", "save_page", json=payload)

    async def get_bookmark_tree(self, folder_id: str | None = None, max_depth: int | None = None) -> BridgeResult:
        params = {"folderId": folder_id or None, "maxDepth": max_depth or None}
        return await self._extension_only("bookmark_tree", "GET", "/api/browser/bookmarks/tree", "bookmarks", params=params)

    async def search_bookmarks(self, query: str, limit: int | None = None) -> BridgeResult:
        params = {"query": query, "limit": limit or None}
        return await self._extension_only("search_bookmarks", "GET", "/api/browser/bookmarks/search", "bookmarks", params=params)

    async def create_bookmark(self, url: str, title: str, parent_id: str | None = None, index: int | None = None) -> BridgeResult:
        # 預設放在書籤列（id "1"）
        payload = {"url": url, "title": title, "parentId": parent_id or "1", "index": index}
        return await self._extension_only("create_bookmark", "POST", "/api/browser/bookmarks/create", "bookmarks", json=payload)

    async def create_bookmark_folder(self, title: str, parent_id: str | None = None, index: int | None = None) -> BridgeResult:
        payload = {"title": title, "parentId": parent_id or "1", "index": index}
        return await self._extension_only(
            "create_bookmark_folder", "POST", "/api/browser/bookmarks/create-folder", "bookmarks", json=payload
        )

    async def move_bookmark(self, bookmark_id: str, parent_id: str, index: int | None = None) -> BridgeResult:
        payload = {"id": bookmark_id, "parentId": parent_id, "index": index}
        return await self._extension_only("move_bookmark", "POST", "/api/browser/bookmarks/move", "bookmarks", json=payload)

    async def delete_bookmark(self, bookmark_id: str) -> BridgeResult:
        return await self._extension_only(
            "delete_bookmark", "POST", "/api/browser/bookmarks/delete", "bookmarks", json={"id": bookmark_id}
        )

    async def get_console_logs(
        self,
        level: str | None = None,
        limit: int | None = None,
        since: int | None = None,
        tab_id: int | None = None,
    ) -> BridgeResult:
        params = {"level": level, "limit": limit, "since": since, "tabId": tab_id}
        return await self._extension_only("console_logs", "GET", "/api/browser/console-logs", "console_logs", params=params)
