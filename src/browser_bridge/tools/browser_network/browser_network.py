"""
browser_network Tools

網路擷取：啟用監聽、列出請求、取得 response body、清除紀錄。
紀錄只保留 5 分鐘、最多 500 筆；必須先啟用擷取才會開始記錄。
"""

import json
import logging
import time
from typing import Any

from browser_bridge.base.data_structures import Channel
from browser_bridge.bridge import BridgeResult, browser_bridge
from browser_bridge.schemas import ExecutionResult
from browser_bridge.tools.base import registry
from browser_bridge.tools.browser_tabs.browser_tabs import TAB_ID_PROPERTY
from browser_bridge.utils import format_bytes, to_execution_result, truncate_string

logger = logging.getLogger(__name__)


def _status_emoji(status: int | None) -> str:
    if status is None:
        return "⏳"
    if status < 300:
        return "✅"
    if status < 400:
        return "↪️"
    if status < 500:
        return "⚠️"
    return "❌"


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_enable_network_capture
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_enable_network_capture",
    description="開始記錄目標分頁的網路請求（需要 CDP）。重複呼叫不會重複記錄。",
    input_schema={"type": "object", "properties": {"tabId": TAB_ID_PROPERTY}, "required": []},
)
async def handle_enable_network_capture(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_enable_network_capture 請求"""
    started = time.perf_counter()
    result = await browser_bridge.network.enable(args.get("tabId"))
    if result.success:
        state = "已在記錄中" if result.data.get("alreadyEnabled") else "已開始記錄"
        stdout = f"📡 網路擷取{state}: {result.data.get('url', '')}\n請求紀錄保留 5 分鐘。"
    else:
        stdout = ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_get_network_requests
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_get_network_requests",
    description="列出已擷取的網路請求（新到舊），可依 URL、方法、狀態碼、資源類型與分頁篩選。",
    input_schema={
        "type": "object",
        "properties": {
            "urlPattern": {"type": "string", "description": "URL 正規表示式（不合法時以子字串比對）"},
            "method": {"type": "string", "description": "HTTP 方法，all 表示不篩選", "default": "all"},
            "statusMin": {"type": "integer", "description": "最小狀態碼（包含）"},
            "statusMax": {"type": "integer", "description": "最大狀態碼（包含）"},
            "resourceType": {"type": "string", "description": "資源類型（XHR、Fetch、Document...），all 表示不篩選", "default": "all"},
            "limit": {"type": "integer", "description": "每頁筆數", "default": 50},
            "offset": {"type": "integer", "description": "分頁起始位置", "default": 0},
            "tabId": {"type": "integer", "description": "只列出此分頁的請求"},
        },
        "required": [],
    },
)
async def handle_get_network_requests(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_get_network_requests 請求"""
    started = time.perf_counter()
    listing = browser_bridge.network.list(
        url_pattern=args.get("urlPattern") or None,
        method=args.get("method"),
        status_min=args.get("statusMin"),
        status_max=args.get("statusMax"),
        resource_type=args.get("resourceType"),
        tab_id=args.get("tabId"),
        limit=int(args.get("limit") or 50),
        offset=int(args.get("offset") or 0),
    )

    if not listing.capture_active and listing.total == 0:
        stdout = "⚠️ 網路擷取尚未啟用，請先呼叫 browser_enable_network_capture"
    elif not listing.records:
        stdout = f"沒有符合條件的請求（共 {listing.total} 筆）"
    else:
        lines = [f"# 🌐 Network Requests ({len(listing.records)} of {listing.total})", ""]
        for record in listing.records:
            status = record.status if record.status is not None else "pending"
            timing = f" {record.response_time_ms:.0f}ms" if record.response_time_ms is not None else ""
            lines.append(
                f"- {_status_emoji(record.status)} **{record.method}** {status} "
                f"[{record.resource_type}] {truncate_string(record.url, 120)}"
            )
            lines.append(f"  id: `{record.request_id}` | {format_bytes(record.encoded_byte_length)}{timing}")
        if listing.has_more:
            lines.extend(["", f"➡️ 還有更多紀錄，使用 offset={listing.next_offset} 取得下一頁"])
        stdout = "\n".join(lines)

    return to_execution_result(BridgeResult.ok(listing.to_dict(), Channel.CDP), stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_get_network_response
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_get_network_response",
    description="取得單一請求的完整資訊與 response body（超過 100KB 會截斷）。",
    input_schema={
        "type": "object",
        "properties": {"requestId": {"type": "string", "description": "請求 ID（來自 browser_get_network_requests）"}},
        "required": ["requestId"],
    },
)
async def handle_get_network_response(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_get_network_response 請求"""
    started = time.perf_counter()
    request_id = args.get("requestId")
    if not request_id:
        raise ValueError("requestId 為必填參數")

    result = await browser_bridge.network.get_body(str(request_id))
    if not result.success:
        return to_execution_result(result, "", started)

    request = result.data["request"]
    lines = [
        f"# {request['method']} {request['url']}",
        f"- Status: {request.get('status', 'pending')} {request.get('statusText', '')}".rstrip(),
        f"- Type: {request['resourceType']} | MIME: {request.get('mimeType', '-')}",
        f"- Size: {format_bytes(request.get('encodedDataLength'))}",
        "",
        "## Request Headers",
        "```json",
        json.dumps(request.get("requestHeaders", {}), ensure_ascii=False, indent=2),
        "```",
    ]
    if request.get("postData"):
        lines.extend(["", "## Request Body", "```", request["postData"], "```"])
    if request.get("responseHeaders"):
        lines.extend(["", "## Response Headers", "```json", json.dumps(request["responseHeaders"], ensure_ascii=False, indent=2), "```"])
    lines.extend(["", "## Response Body", "```", request.get("responseBody") or "", "```"])
    return to_execution_result(result, "\n".join(lines), started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_clear_network_requests
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_clear_network_requests",
    description="清除所有已擷取的網路請求（監聽保持啟用）。",
    input_schema={"type": "object", "properties": {}, "required": []},
)
async def handle_clear_network_requests(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_clear_network_requests 請求"""
    browser_bridge.network.clear()
    return ExecutionResult(success=True, stdout="🧹 已清除所有網路請求紀錄", metadata={"success": True})
