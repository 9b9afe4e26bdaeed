"""
Browser Bridge MCP 端點

以 JSON-RPC（initialize / tools/list / tools/call）對外提供瀏覽器操作 Tools
"""

import logging
from contextlib import asynccontextmanager

from fastapi import FastAPI, HTTPException, Request, status
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse

from browser_bridge import config
from browser_bridge.bridge import browser_bridge
from browser_bridge.schemas import MCPError
from browser_bridge.security import filter_allowed_tools, is_tool_allowed, verify_api_key

# ═══════════════════════════════════════════════════════════════════════════════
# 載入所有 Tools（透過 tools/__init__.py 自動註冊）
# ═══════════════════════════════════════════════════════════════════════════════
from browser_bridge.tools import registry
from browser_bridge.utils import format_tool_result

logger = logging.getLogger(__name__)

SERVER_NAME = "BROWSER-BRIDGE"
SERVER_VERSION = "1.0.0"
PROTOCOL_VERSION = "2024-11-05"
FEATURES = [
    "dual_channel_automation",
    "tab_management",
    "network_capture",
    "screenshots",
    "bookmarks",
    "downloads",
]


# ═══════════════════════════════════════════════════════════════════════════════
# Lifespan 管理
# ═══════════════════════════════════════════════════════════════════════════════
@asynccontextmanager
async def lifespan(app: FastAPI):
    """
    啟動時初始化日誌；關閉時中斷 CDP 連線（不關閉使用者的瀏覽器）
    """
    from browser_bridge.base.logging_config import setup_logging

    setup_logging()
    logger.info("🚀 Browser Bridge 初始化中...")
    logger.info(f"🔌 Extension backend: {config.BACKEND_URL}")
    logger.info(f"🛠️ CDP Port: {config.CDP_PORT}（gateway: {config.CDP_GATEWAY_HOST}）")

    yield

    try:
        await browser_bridge.close()
    except Exception as e:
        logger.exception(f"關閉瀏覽器橋接時發生錯誤: {e}")


# ═══════════════════════════════════════════════════════════════════════════════
# FastAPI 應用實例
# ═══════════════════════════════════════════════════════════════════════════════
app = FastAPI(
    title=SERVER_NAME,
    description="Dual-channel browser automation bridge (extension API first, CDP fallback)",
    version=SERVER_VERSION,
    lifespan=lifespan,
)

app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_methods=["*"],
    allow_headers=["*"]
)


# ═══════════════════════════════════════════════════════════════════════════════
# HTTP 異常處理
# ═══════════════════════════════════════════════════════════════════════════════
@app.exception_handler(HTTPException)
async def http_exception_handler(request: Request, exc: HTTPException):
    """HTTP 異常也以 JSON-RPC error 格式回應"""
    return JSONResponse(
        status_code=exc.status_code,
        content={
            "jsonrpc": "2.0",
            "id": None,
            "error": {
                "code": -32000 if exc.status_code == status.HTTP_401_UNAUTHORIZED else -32001,
                "message": exc.detail,
                "status_code": exc.status_code,
            },
        },
        headers=exc.headers,
    )


def _rpc_error(req_id, code: int, message: str, data: dict | None = None) -> dict:
    error = {"code": code, "message": message}
    if data is not None:
        error["data"] = data
    return {"jsonrpc": "2.0", "id": req_id, "error": error}


# ═══════════════════════════════════════════════════════════════════════════════
# MCP 端點
# ═══════════════════════════════════════════════════════════════════════════════
@app.post("/mcp")
async def mcp_endpoint(req: Request) -> dict:
    """MCP 協議端點，受 Bearer Token 保護"""
    await verify_api_key(req)

    try:
        body = await req.json()
    except ValueError:
        logger.warning("請求 JSON 解析失敗")
        return _rpc_error(None, -32700, "Parse error: Invalid JSON")

    if not isinstance(body, dict):
        return _rpc_error(None, -32600, "Invalid Request")

    req_id = body.get("id")
    method = body.get("method")

    try:
        if method == "initialize":
            result = _handle_initialize()
        elif method == "tools/list":
            result = {"tools": filter_allowed_tools(req, registry.list_tools())}
        elif method == "tools/call":
            result = await _handle_tools_call(body, req)
        else:
            raise MCPError(-32601, f"Method not found: {method}")

        return {"jsonrpc": "2.0", "id": req_id, "result": result}

    except MCPError as e:
        return _rpc_error(req_id, e.code, e.message, e.data)
    except (ValueError, KeyError, TypeError) as e:
        logger.warning(f"參數錯誤: {e}")
        return _rpc_error(req_id, -32602, f"Invalid params: {e}")
    except Exception as e:
        logger.exception(f"處理請求失敗: {e}")
        return _rpc_error(req_id, -32603, f"Internal error: {e}")


def _handle_initialize() -> dict:
    """處理 initialize method"""
    return {
        "protocolVersion": PROTOCOL_VERSION,
        "capabilities": {"tools": {}},
        "serverInfo": {"name": SERVER_NAME, "version": SERVER_VERSION, "features": FEATURES},
    }


async def _handle_tools_call(body: dict, request: Request) -> dict:
    """
    處理 tools/call method - 檢查權限後委派給 registry

    Raises:
        MCPError: 權限不足或 Tool 不存在
    """
    params = body.get("params") or {}
    tool_name = params.get("name")
    args = params.get("arguments") or {}

    if not tool_name:
        raise ValueError("params.name 為必填欄位")

    if not is_tool_allowed(request, tool_name):
        logger.warning(f"Tool '{tool_name}' 權限不足")
        raise MCPError(
            code=-32603,
            message=f"Permission denied: Tool '{tool_name}' is not allowed for this API Key",
            data={"tool": tool_name},
        )

    exec_result = await registry.execute(tool_name, args, request)
    logger.info(f"✅ Tool {tool_name} 執行完成 (success={exec_result.success})")
    return format_tool_result(exec_result)


# ═══════════════════════════════════════════════════════════════════════════════
# 健康檢查端點
# ═══════════════════════════════════════════════════════════════════════════════
@app.get("/mcp")
async def mcp_get(req: Request) -> dict:
    """健康檢查端點，受 Bearer Token 保護"""
    await verify_api_key(req)

    return {
        "status": "ok",
        "authenticated": True,
        "protocol": f"MCP {PROTOCOL_VERSION}",
        "version": SERVER_VERSION,
        "features": FEATURES,
        "tools_loaded": registry.get_tool_count(),
        "security": {
            "api_key_required": bool(config.API_KEYS),
            "api_keys_count": len(config.API_KEYS),
            "auth_method": "Authorization: Bearer <token>" if config.API_KEYS else "None (Development Mode)",
        },
        "bridge": browser_bridge.status(),
        "artifacts": {
            "directory": str(config.ARTIFACT_DIR),
            "max_files": config.ARTIFACT_MAX_FILES,
            "max_age_hours": config.ARTIFACT_MAX_AGE_HOURS,
        },
    }
