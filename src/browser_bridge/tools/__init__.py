"""
Tools 模組入口

集中管理所有瀏覽器 Tools，自動載入並註冊到 Registry
"""

import logging

from browser_bridge.tools.base import ToolDefinition, ToolHandler, ToolRegistry, registry

# 自動載入所有 Tool 模組（副作用：自動註冊到 registry）
from browser_bridge.tools.browser_bookmarks import browser_bookmarks  # noqa: F401
from browser_bridge.tools.browser_capture import browser_capture  # noqa: F401
from browser_bridge.tools.browser_downloads import browser_downloads  # noqa: F401
from browser_bridge.tools.browser_interaction import browser_interaction  # noqa: F401
from browser_bridge.tools.browser_network import browser_network  # noqa: F401
from browser_bridge.tools.browser_tabs import browser_tabs  # noqa: F401

logger = logging.getLogger(__name__)
logger.info(f"🧰 已載入 {registry.get_tool_count()} 個 Tool")

__all__ = [
    "registry",
    "ToolRegistry",
    "ToolDefinition",
    "ToolHandler",
]
