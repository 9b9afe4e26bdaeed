"""
browser_interaction Tools

點擊、填入、元素檢視、執行腳本與 Console 記錄。
"""

import json
import logging
import time
from typing import Any

from browser_bridge.bridge import browser_bridge
from browser_bridge.schemas import ExecutionResult
from browser_bridge.tools.base import registry
from browser_bridge.tools.browser_tabs.browser_tabs import TAB_ID_PROPERTY
from browser_bridge.utils import to_execution_result, truncate_string

logger = logging.getLogger(__name__)

MAX_RESULT_CHARS = 20000


def _require(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if not value:
        raise ValueError(f"{key} 為必填參數")
    return value


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_click
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_click",
    description="點擊符合 CSS selector 的元素。",
    input_schema={
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "CSS selector"},
            "tabId": TAB_ID_PROPERTY,
        },
        "required": ["selector"],
    },
)
async def handle_click(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_click 請求"""
    started = time.perf_counter()
    selector = _require(args, "selector")
    result = await browser_bridge.executor.click(selector, args.get("tabId"))
    tag = result.data.get("tagName")
    stdout = f"🖱️ 已點擊: {selector}" + (f" <{str(tag).lower()}>" if tag else "") if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_fill
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_fill",
    description="在輸入欄位中填入文字（會取代原有內容）。",
    input_schema={
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "CSS selector"},
            "value": {"type": "string", "description": "要填入的文字"},
            "tabId": TAB_ID_PROPERTY,
        },
        "required": ["selector", "value"],
    },
)
async def handle_fill(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_fill 請求"""
    started = time.perf_counter()
    selector = _require(args, "selector")
    value = str(args.get("value", ""))
    result = await browser_bridge.executor.fill(selector, value, args.get("tabId"))
    stdout = f"⌨️ 已填入 {selector}: {truncate_string(value, 50)}" if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_get_element_info
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_get_element_info",
    description="取得元素的 HTML、屬性、位置與計算後樣式，適合用來重建 UI 元件。",
    input_schema={
        "type": "object",
        "properties": {
            "selector": {"type": "string", "description": "CSS selector"},
            "includeStyles": {"type": "boolean", "description": "是否包含計算後樣式", "default": True},
            "styleProperties": {
                "type": "array",
                "items": {"type": "string"},
                "description": "要擷取的樣式屬性（camelCase），省略時使用預設清單",
            },
            "tabId": TAB_ID_PROPERTY,
        },
        "required": ["selector"],
    },
)
async def handle_get_element_info(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_get_element_info 請求"""
    started = time.perf_counter()
    selector = _require(args, "selector")
    result = await browser_bridge.executor.get_element_info(
        selector,
        include_styles=args.get("includeStyles", True) is not False,
        style_properties=args.get("styleProperties"),
        tab_id=args.get("tabId"),
    )
    if not result.success:
        return to_execution_result(result, "", started)

    data = result.data
    bounds = data.get("bounds") or {}
    lines = [
        f"# Element: `{selector}`",
        f"- Tag: <{data.get('tagName', '?')}>",
        f"- Size: {bounds.get('width', '?')}×{bounds.get('height', '?')} at ({bounds.get('x', '?')}, {bounds.get('y', '?')})",
        f"- Children: {data.get('childCount', 0)}",
    ]
    if data.get("parentSelector"):
        lines.append(f"- Parent: `{data['parentSelector']}`")
    if data.get("attributes"):
        lines.extend(["", "## Attributes", "```json", json.dumps(data["attributes"], ensure_ascii=False, indent=2), "```"])
    if data.get("styles"):
        lines.extend(["", "## Styles", "```css"])
        lines.extend(f"{prop}: {value};" for prop, value in data["styles"].items())
        lines.append("```")
    if data.get("outerHTML"):
        lines.extend(["", "## HTML", "```html", truncate_string(data["outerHTML"], 5000), "```"])
    return to_execution_result(result, "\n".join(lines), started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_execute_script
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_execute_script",
    description="在頁面中執行 JavaScript 並回傳結果（需可序列化為 JSON）。腳本例外會以錯誤回傳。",
    input_schema={
        "type": "object",
        "properties": {
            "code": {"type": "string", "description": "JavaScript 程式碼（最後一個運算式的值即為結果）"},
            "allFrames": {"type": "boolean", "description": "是否在所有 frame 執行", "default": False},
            "tabId": TAB_ID_PROPERTY,
        },
        "required": ["code"],
    },
)
async def handle_execute_script(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_execute_script 請求"""
    started = time.perf_counter()
    code = _require(args, "code")
    result = await browser_bridge.executor.execute_script(code, args.get("tabId"), args.get("allFrames", False) is True)
    if result.success:
        rendered = json.dumps(result.data.get("result"), ensure_ascii=False, indent=2, default=str)
        stdout = f"```json\n{truncate_string(rendered, MAX_RESULT_CHARS)}\n```"
    else:
        stdout = ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_get_console_logs
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_get_console_logs",
    description="取得瀏覽器 Console 記錄（需要 Extension）。",
    input_schema={
        "type": "object",
        "properties": {
            "level": {
                "type": "string",
                "enum": ["all", "log", "info", "warn", "error", "debug"],
                "description": "記錄層級",
                "default": "all",
            },
            "limit": {"type": "integer", "description": "最多回傳筆數", "default": 100},
            "since": {"type": "integer", "description": "只回傳此時間戳（毫秒）之後的記錄"},
            "tabId": TAB_ID_PROPERTY,
        },
        "required": [],
    },
)
async def handle_get_console_logs(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_get_console_logs 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.get_console_logs(
        level=args.get("level"),
        limit=args.get("limit"),
        since=args.get("since"),
        tab_id=args.get("tabId"),
    )
    logs = result.data.get("logs") or []
    if not result.success:
        stdout = ""
    elif not logs:
        stdout = "沒有 Console 記錄"
    else:
        lines = [f"# Console Logs ({len(logs)})", ""]
        for entry in logs:
            lines.append(f"- [{str(entry.get('level', 'log')).upper()}] {truncate_string(str(entry.get('message', '')), 500)}")
        stdout = "\n".join(lines)
    return to_execution_result(result, stdout, started)
