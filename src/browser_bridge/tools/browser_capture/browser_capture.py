"""
browser_capture Tools

截圖、圖片擷取 / 下載與頁面儲存。檔案預設寫入擷取目錄，回傳呼叫端作業系統可用的路徑。
"""

import logging
import time
from typing import Any

from browser_bridge.bridge import browser_bridge
from browser_bridge.schemas import ExecutionResult
from browser_bridge.tools.base import registry
from browser_bridge.tools.browser_tabs.browser_tabs import TAB_ID_PROPERTY
from browser_bridge.utils import to_execution_result

logger = logging.getLogger(__name__)

OUTPUT_PATH_PROPERTY = {"type": "string", "description": "自訂輸出路徑，省略時寫入擷取目錄"}


def _file_stdout(emoji: str, label: str, data: dict[str, Any]) -> str:
    lines = [f"{emoji} {label}: {data.get('filePath', '')}"]
    if data.get("width") and data.get("height"):
        lines.append(f"📐 {data['width']}×{data['height']}")
    lines.append("使用 Read 工具即可檢視此檔案")
    return "\n".join(lines)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_screenshot
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_screenshot",
    description="擷取目前可視範圍、整頁或單一元素的截圖，回傳檔案路徑。",
    input_schema={
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "只擷取此 CSS selector 的元素"},
            "fullPage": {"type": "boolean", "description": "是否擷取整頁（可捲動範圍）", "default": False},
            "outputPath": OUTPUT_PATH_PROPERTY,
            "tabId": TAB_ID_PROPERTY,
        },
        "required": [],
    },
)
async def handle_screenshot(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_screenshot 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.screenshot(
        selector=args.get("selector") or None,
        full_page=args.get("fullPage", False) is True,
        output_path=args.get("outputPath") or None,
        tab_id=args.get("tabId"),
    )
    stdout = _file_stdout("📸", "截圖已儲存", result.data) if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_capture_image
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_capture_image",
    description="以 canvas 擷取頁面上的圖片，適用於 blob: URL 或 AI 產生的圖片等無法直接下載的內容。",
    input_schema={
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "圖片（或包含圖片的元素）的 CSS selector", "default": "img"},
            "outputPath": OUTPUT_PATH_PROPERTY,
            "tabId": TAB_ID_PROPERTY,
        },
        "required": [],
    },
)
async def handle_capture_image(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_capture_image 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.capture_image(
        selector=args.get("selector") or None,
        output_path=args.get("outputPath") or None,
        tab_id=args.get("tabId"),
    )
    stdout = _file_stdout("🖼️", "圖片已擷取", result.data) if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_download_image
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_download_image",
    description=(
        "下載頁面上的圖片。未提供 url 時會從 selector 或頁面上最大的圖片取得網址；"
        "一般 https 網址直接下載，blob: 等暫時性網址改用 canvas 擷取。"
    ),
    input_schema={
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "圖片（或包含圖片的元素）的 CSS selector"},
            "url": {"type": "string", "description": "圖片網址"},
            "outputPath": OUTPUT_PATH_PROPERTY,
            "tabId": TAB_ID_PROPERTY,
        },
        "required": [],
    },
)
async def handle_download_image(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_download_image 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.download_image(
        selector=args.get("selector") or None,
        url=args.get("url") or None,
        output_path=args.get("outputPath") or None,
        tab_id=args.get("tabId"),
    )
    stdout = _file_stdout("⬇️", "圖片已下載", result.data) if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_save_page
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_save_page",
    description="將頁面（HTML、CSS、圖片）儲存為單一 MHTML 檔案（需要 Extension）。",
    input_schema={
        "type": "object",
        "properties": {
            "filename": {"type": "string", "description": "檔名（不含副檔名）"},
            "tabId": TAB_ID_PROPERTY,
        },
        "required": [],
    },
)
async def handle_save_page(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_save_page 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.save_page(tab_id=args.get("tabId"), filename=args.get("filename") or None)
    stdout = _file_stdout("💾", "頁面已儲存", result.data) if result.success else ""
    return to_execution_result(result, stdout, started)
