"""
安全與認證模組

Bearer API Key 驗證，以及每組 Key 的 Tool 允許 / 排除清單（支援 fnmatch wildcard）
"""
import fnmatch
import logging

from fastapi import HTTPException, Request, status

from browser_bridge import config

logger = logging.getLogger(__name__)


def _client_host(request: Request) -> str:
    return request.client.host if request.client else "unknown"


def _matches(tool_name: str, patterns: list[str]) -> bool:
    return any(fnmatch.fnmatch(tool_name, pattern) for pattern in patterns)


async def verify_api_key(request: Request) -> list[str]:
    """
    驗證 API Key，並把該 Key 的允許 / 排除清單存入 request.state

    未設定任何 API Key 時視為開發模式，允許所有 Tools。

    Raises:
        HTTPException: 缺少或格式錯誤的 Header 回傳 401，未知的 Key 回傳 403
    """
    api_keys = config.API_KEYS
    if not api_keys:
        request.state.allowed_tools = ["*"]
        request.state.excluded_tools = []
        return ["*"]

    auth_header = request.headers.get("Authorization")
    if not auth_header:
        logger.warning(f"Authorization Header 缺失: {_client_host(request)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Missing Authorization Header. Expected format: 'Authorization: Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    scheme, _, token = auth_header.partition(" ")
    token = token.strip()
    if scheme.lower() != "bearer" or not token or " " in token:
        logger.warning(f"無效的 Authorization 格式: {_client_host(request)}")
        raise HTTPException(
            status_code=status.HTTP_401_UNAUTHORIZED,
            detail="Invalid Authorization format. Expected 'Bearer <token>'",
            headers={"WWW-Authenticate": "Bearer"},
        )

    key_config = api_keys.get(token)
    if key_config is None:
        logger.warning(f"無效的 API Key 嘗試: {_client_host(request)}")
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid API Key")

    allowed_tools: list[str] = key_config.get("tools", [])
    request.state.allowed_tools = allowed_tools
    request.state.excluded_tools = key_config.get("exclude_tools", [])
    return allowed_tools


def is_tool_allowed(request: Request, tool_name: str) -> bool:
    """
    檢查 Tool 是否允許執行

    排除清單優先於允許清單；``["*"]`` 表示全部允許，``["browser_*"]`` 等 wildcard 皆可使用。
    """
    if _matches(tool_name, getattr(request.state, "excluded_tools", [])):
        return False
    allowed_tools = getattr(request.state, "allowed_tools", ["*"])
    return "*" in allowed_tools or _matches(tool_name, allowed_tools)


def filter_allowed_tools(request: Request, all_tools: list[dict]) -> list[dict]:
    """依權限過濾 tools/list 的結果"""
    return [tool for tool in all_tools if is_tool_allowed(request, tool.get("name", ""))]
