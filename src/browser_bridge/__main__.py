"""
Browser Bridge 主入口

可透過 python -m browser_bridge 或 browser-bridge 指令啟動伺服器
"""

import logging
import sys

import uvicorn

from browser_bridge.base.logging_config import setup_logging
from browser_bridge.base.platform_paths import is_running_in_wsl
from browser_bridge.config import API_KEYS, ARTIFACT_DIR, BACKEND_URL, CDP_PORT, MCP_HOST, MCP_PORT


def main():
    """主函式"""
    setup_logging()

    from browser_bridge.app import SERVER_VERSION, app
    from browser_bridge.tools import registry

    logger = logging.getLogger(__name__)
    logger.info(f"🚀 Browser Bridge 啟動 [v{SERVER_VERSION}]")
    logger.info(f"🐍 Python: {sys.version}")
    logger.info(f"🔌 Extension backend: {BACKEND_URL}")
    logger.info(f"🛠️ CDP Port: {CDP_PORT}")
    logger.info(f"📂 擷取目錄: {ARTIFACT_DIR}")
    if is_running_in_wsl():
        logger.info("🐧 偵測到 WSL，Windows 路徑會轉換為 /mnt/<drive>/...")
    logger.info(f"🔧 已載入 {registry.get_tool_count()} 個 Tools")

    if API_KEYS:
        logger.info(f"🔐 API Key 認證: 已啟用，共 {len(API_KEYS)} 組 Key")
    else:
        logger.warning("⚠️ API Key 認證: 已停用（開發模式）")

    uvicorn.run(app, host=MCP_HOST, port=MCP_PORT)


if __name__ == "__main__":
    main()
