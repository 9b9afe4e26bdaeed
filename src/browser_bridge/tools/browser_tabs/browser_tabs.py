"""
browser_tabs Tools

分頁列表、切換、重新命名、開啟 URL 與頁面資訊。
"""

import logging
import time
from typing import Any

from browser_bridge.bridge import browser_bridge
from browser_bridge.schemas import ExecutionResult
from browser_bridge.tools.base import registry
from browser_bridge.utils import to_execution_result, truncate_string

logger = logging.getLogger(__name__)

TAB_ID_PROPERTY = {
    "type": "integer",
    "description": "目標分頁 ID（來自 browser_list_tabs）。省略時使用目前聚焦的分頁",
}


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_list_tabs
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_list_tabs",
    description=(
        "列出瀏覽器所有分頁。Extension 可用時回傳真實 tab ID 與使用者實際聚焦的分頁；"
        "否則回傳 1-based 順序編號（每次列出都可能改變）。"
    ),
    input_schema={"type": "object", "properties": {}, "required": []},
)
async def handle_list_tabs(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_list_tabs 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.list_tabs()
    tabs = result.data.get("tabs", [])

    if not result.success:
        stdout = ""
    elif not tabs:
        stdout = "沒有開啟的分頁"
    else:
        lines = [f"# 🗂️ Browser Tabs ({len(tabs)} open)", ""]
        for tab in tabs:
            marker = "👉 " if tab.get("active") else ""
            name = tab.get("customName") or truncate_string(tab.get("title") or "(untitled)", 80)
            lines.append(f"- {marker}**[{tab['tabId']}]** {name}")
            lines.append(f"  {truncate_string(tab.get('url', ''), 150)}")
        if result.channel != "extension":
            lines.extend(["", "⚠️ Extension 不可用，tabId 為順序編號"])
        stdout = "\n".join(lines)

    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_switch_tab
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_switch_tab",
    description="切換到指定分頁，之後未指定 tabId 的操作都會以它為目標。",
    input_schema={
        "type": "object",
        "properties": {"tabId": {"type": "integer", "description": "要切換的分頁 ID"}},
        "required": ["tabId"],
    },
)
async def handle_switch_tab(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_switch_tab 請求"""
    started = time.perf_counter()
    tab_id = int(args["tabId"])
    result = await browser_bridge.executor.switch_tab(tab_id)
    stdout = f"✅ 已切換到分頁 {tab_id}: {result.data.get('url', '')}" if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_get_active_tab
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_get_active_tab",
    description="取得使用者目前實際聚焦的分頁（需要 Extension）。",
    input_schema={"type": "object", "properties": {}, "required": []},
)
async def handle_get_active_tab(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_get_active_tab 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.get_active_tab()
    tab = result.data.get("tab") or {}
    stdout = f"👉 [{tab.get('tabId')}] {tab.get('title', '')}\n{tab.get('url', '')}" if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_rename_tab
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_rename_tab",
    description="為分頁設定自訂名稱（以 URL 記錄，頁面導航後名稱會遺失）。傳入空字串可清除名稱。",
    input_schema={
        "type": "object",
        "properties": {
            "tabId": {"type": "integer", "description": "分頁 ID"},
            "name": {"type": "string", "description": "自訂名稱，空字串表示清除"},
        },
        "required": ["tabId", "name"],
    },
)
async def handle_rename_tab(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_rename_tab 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.rename_tab(int(args["tabId"]), args.get("name", ""))
    if result.success:
        name = result.data.get("customName")
        stdout = f"🏷️ 分頁 {args['tabId']} 已命名為「{name}」" if name else f"🏷️ 已清除分頁 {args['tabId']} 的自訂名稱"
    else:
        stdout = ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_open_url
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_open_url",
    description="開啟 URL。預設在新分頁開啟並聚焦；若已有相同 URL 的分頁會直接切換過去。",
    input_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "要開啟的 URL"},
            "newTab": {"type": "boolean", "description": "是否在新分頁開啟", "default": True},
            "background": {"type": "boolean", "description": "是否在背景開啟（不改變目前目標）", "default": False},
            "reuseExisting": {"type": "boolean", "description": "是否重用已開啟相同 URL 的分頁", "default": True},
        },
        "required": ["url"],
    },
)
async def handle_open_url(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_open_url 請求"""
    started = time.perf_counter()
    url = args.get("url", "")
    if not url:
        raise ValueError("url 為必填參數")

    result = await browser_bridge.executor.open_url(
        url,
        new_tab=args.get("newTab", True) is not False,
        background=args.get("background", False) is True,
        reuse_existing=args.get("reuseExisting", True) is not False,
    )
    if result.success:
        verb = "已切換到既有分頁" if result.data.get("reused") else "已開啟"
        stdout = f"🌐 {verb}: {result.data.get('url', url)} (tabId={result.data.get('tabId')})"
    else:
        stdout = ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_get_page_info
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_get_page_info",
    description="取得頁面的 URL、標題與 tabId。",
    input_schema={"type": "object", "properties": {"tabId": TAB_ID_PROPERTY}, "required": []},
)
async def handle_get_page_info(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_get_page_info 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.get_page_info(args.get("tabId"))
    if result.success:
        stdout = "\n".join([
            f"📄 Title: {result.data.get('title', '')}",
            f"🔗 URL: {result.data.get('url', '')}",
            f"🆔 Tab ID: {result.data.get('tabId')}",
        ])
    else:
        stdout = ""
    return to_execution_result(result, stdout, started)
