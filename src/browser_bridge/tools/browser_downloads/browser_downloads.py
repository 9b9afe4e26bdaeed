"""
browser_downloads Tools

透過瀏覽器下載管理員下載檔案、列出與取消下載（需要 Extension）。
"""

import logging
import time
from typing import Any

from browser_bridge.bridge import browser_bridge
from browser_bridge.schemas import ExecutionResult
from browser_bridge.tools.base import registry
from browser_bridge.utils import format_bytes, to_execution_result, truncate_string

logger = logging.getLogger(__name__)

STATE_EMOJI = {"complete": "✅", "in_progress": "⏳", "interrupted": "❌"}


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_download_file
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_download_file",
    description="使用瀏覽器下載檔案，回傳呼叫端可讀取的檔案路徑。",
    input_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "要下載的 URL"},
            "filename": {"type": "string", "description": "儲存的檔名（相對於瀏覽器下載目錄）"},
            "conflictAction": {
                "type": "string",
                "enum": ["uniquify", "overwrite", "prompt"],
                "description": "檔名衝突時的處理方式",
                "default": "uniquify",
            },
        },
        "required": ["url"],
    },
)
async def handle_download_file(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_download_file 請求"""
    started = time.perf_counter()
    url = args.get("url")
    if not url:
        raise ValueError("url 為必填參數")

    result = await browser_bridge.executor.download_file(
        url, filename=args.get("filename") or None, conflict_action=args.get("conflictAction", "uniquify")
    )
    if result.success:
        lines = [f"⬇️ 已下載: {result.data.get('filePath', '')}"]
        if result.data.get("windowsPath"):
            lines.append(f"🪟 Windows: {result.data['windowsPath']}")
        stdout = "\n".join(lines)
    else:
        stdout = ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_get_downloads
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_get_downloads",
    description="列出最近的下載項目。",
    input_schema={
        "type": "object",
        "properties": {
            "limit": {"type": "integer", "description": "最多回傳筆數", "default": 20},
            "state": {
                "type": "string",
                "enum": ["all", "in_progress", "complete", "interrupted"],
                "description": "依下載狀態篩選",
                "default": "all",
            },
        },
        "required": [],
    },
)
async def handle_get_downloads(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_get_downloads 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.get_downloads(limit=int(args.get("limit") or 20), state=args.get("state") or "all")
    downloads = result.data.get("downloads") or []
    if not result.success:
        stdout = ""
    elif not downloads:
        stdout = "沒有下載紀錄"
    else:
        lines = [f"# Downloads ({len(downloads)})", ""]
        for item in downloads:
            emoji = STATE_EMOJI.get(item.get("state", ""), "•")
            name = item.get("filename") or item.get("url", "")
            lines.append(f"- {emoji} [{item.get('id')}] {truncate_string(str(name), 120)} ({format_bytes(item.get('fileSize'))})")
        stdout = "\n".join(lines)
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_cancel_download
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_cancel_download",
    description="取消進行中的下載。",
    input_schema={
        "type": "object",
        "properties": {"downloadId": {"type": "integer", "description": "下載 ID（來自 browser_get_downloads）"}},
        "required": ["downloadId"],
    },
)
async def handle_cancel_download(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_cancel_download 請求"""
    started = time.perf_counter()
    download_id = int(args["downloadId"])
    result = await browser_bridge.executor.cancel_download(download_id)
    stdout = f"🛑 已取消下載 {download_id}" if result.success else ""
    return to_execution_result(result, stdout, started)
