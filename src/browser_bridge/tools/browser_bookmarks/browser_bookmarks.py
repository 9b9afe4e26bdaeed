"""
browser_bookmarks Tools

書籤樹、搜尋、建立、移動與刪除（需要 Extension）。
資料夾 ID "1" 為書籤列、"2" 為其他書籤。
"""

import logging
import time
from typing import Any

from browser_bridge.bridge import browser_bridge
from browser_bridge.schemas import ExecutionResult
from browser_bridge.tools.base import registry
from browser_bridge.utils import to_execution_result, truncate_string

logger = logging.getLogger(__name__)

PARENT_ID_PROPERTY = {"type": "string", "description": "父資料夾 ID（預設 \"1\" 書籤列）", "default": "1"}
INDEX_PROPERTY = {"type": "integer", "description": "在資料夾中的位置（省略則放在最後）"}


def _render_tree(nodes: list[dict[str, Any]], depth: int = 0) -> list[str]:
    lines: list[str] = []
    indent = "  " * depth
    for node in nodes:
        if node.get("url"):
            lines.append(f"{indent}- 🔖 [{node.get('id')}] {node.get('title') or node['url']}")
        else:
            lines.append(f"{indent}- 📁 [{node.get('id')}] {node.get('title') or '(root)'}")
            lines.extend(_render_tree(node.get("children") or [], depth + 1))
    return lines


def _require(args: dict[str, Any], key: str) -> str:
    value = args.get(key)
    if value in (None, ""):
        raise ValueError(f"{key} 為必填參數")
    return str(value)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_get_bookmark_tree
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_get_bookmark_tree",
    description="取得書籤樹（全部或指定資料夾）。",
    input_schema={
        "type": "object",
        "properties": {
            "folderId": {"type": "string", "description": "只取得此資料夾"},
            "maxDepth": {"type": "integer", "description": "最大深度"},
        },
        "required": [],
    },
)
async def handle_get_bookmark_tree(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_get_bookmark_tree 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.get_bookmark_tree(folder_id=args.get("folderId"), max_depth=args.get("maxDepth"))
    stdout = "\n".join(["# Bookmarks", "", *_render_tree(result.data.get("tree") or [])]) if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_search_bookmarks
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_search_bookmarks",
    description="依標題或 URL 搜尋書籤。",
    input_schema={
        "type": "object",
        "properties": {
            "query": {"type": "string", "description": "搜尋字串"},
            "limit": {"type": "integer", "description": "最多回傳筆數", "default": 20},
        },
        "required": ["query"],
    },
)
async def handle_search_bookmarks(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_search_bookmarks 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.search_bookmarks(_require(args, "query"), limit=args.get("limit"))
    bookmarks = result.data.get("bookmarks") or []
    if not result.success:
        stdout = ""
    elif not bookmarks:
        stdout = f"找不到符合「{args['query']}」的書籤"
    else:
        lines = [f"# Bookmarks matching \"{args['query']}\" ({len(bookmarks)})", ""]
        for item in bookmarks:
            lines.append(f"- 🔖 [{item.get('id')}] {item.get('title', '')}")
            if item.get("url"):
                lines.append(f"  {truncate_string(item['url'], 150)}")
        stdout = "\n".join(lines)
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_create_bookmark
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_create_bookmark",
    description="建立書籤。",
    input_schema={
        "type": "object",
        "properties": {
            "url": {"type": "string", "description": "書籤 URL"},
            "title": {"type": "string", "description": "書籤標題"},
            "parentId": PARENT_ID_PROPERTY,
            "index": INDEX_PROPERTY,
        },
        "required": ["url", "title"],
    },
)
async def handle_create_bookmark(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_create_bookmark 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.create_bookmark(
        _require(args, "url"), _require(args, "title"), parent_id=args.get("parentId"), index=args.get("index")
    )
    bookmark = result.data.get("bookmark") or {}
    stdout = f"🔖 已建立書籤 [{bookmark.get('id', '?')}] {args['title']}" if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_create_bookmark_folder
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_create_bookmark_folder",
    description="建立書籤資料夾。",
    input_schema={
        "type": "object",
        "properties": {
            "title": {"type": "string", "description": "資料夾名稱"},
            "parentId": PARENT_ID_PROPERTY,
            "index": INDEX_PROPERTY,
        },
        "required": ["title"],
    },
)
async def handle_create_bookmark_folder(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_create_bookmark_folder 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.create_bookmark_folder(
        _require(args, "title"), parent_id=args.get("parentId"), index=args.get("index")
    )
    folder = result.data.get("folder") or {}
    stdout = f"📁 已建立資料夾 [{folder.get('id', '?')}] {args['title']}" if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_move_bookmark
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_move_bookmark",
    description="將書籤或資料夾移到其他資料夾。",
    input_schema={
        "type": "object",
        "properties": {
            "id": {"type": "string", "description": "書籤或資料夾 ID"},
            "parentId": {"type": "string", "description": "目標資料夾 ID"},
            "index": INDEX_PROPERTY,
        },
        "required": ["id", "parentId"],
    },
)
async def handle_move_bookmark(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_move_bookmark 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.move_bookmark(
        _require(args, "id"), _require(args, "parentId"), index=args.get("index")
    )
    stdout = f"📦 已將 {args['id']} 移到資料夾 {args['parentId']}" if result.success else ""
    return to_execution_result(result, stdout, started)


# ═══════════════════════════════════════════════════════════════════════════════
# Tool: browser_delete_bookmark
# ═══════════════════════════════════════════════════════════════════════════════
@registry.register(
    name="browser_delete_bookmark",
    description="刪除書籤或資料夾（資料夾會連同內容一起刪除）。",
    input_schema={
        "type": "object",
        "properties": {"id": {"type": "string", "description": "書籤或資料夾 ID"}},
        "required": ["id"],
    },
)
async def handle_delete_bookmark(args: dict[str, Any]) -> ExecutionResult:
    """處理 browser_delete_bookmark 請求"""
    started = time.perf_counter()
    result = await browser_bridge.executor.delete_bookmark(_require(args, "id"))
    stdout = f"🗑️ 已刪除 {args['id']}" if result.success else ""
    return to_execution_result(result, stdout, started)
