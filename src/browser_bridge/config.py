"""
環境設定與常數

集中管理所有配置項，從環境變數載入。
"""

import json
import logging
import os
from pathlib import Path
from typing import Any

from dotenv import load_dotenv

logger = logging.getLogger(__name__)

# ═══════════════════════════════════════════════════════════════════════════════
# 基本設定
# ═══════════════════════════════════════════════════════════════════════════════
# 專案根目錄
PROJECT_ROOT = Path(__file__).parent.parent.parent

# 載入 .env 檔案
ENV_PATH = PROJECT_ROOT / ".env"
if ENV_PATH.exists():
    load_dotenv(ENV_PATH)
    logger.info(f"📁 已載入環境設定檔: {ENV_PATH}")


class APIKeyManager:
    """API Keys 管理類別"""

    @staticmethod
    def _load_json_env(key: str, default: Any = None) -> Any:
        """從環境變數載入 JSON 格式的值（支援 Base64 編碼）"""
        import base64

        value = os.getenv(key, "")
        if not value:
            return default
        try:
            return json.loads(value)
        except json.JSONDecodeError:
            try:
                return json.loads(base64.b64decode(value).decode("utf-8"))
            except Exception:
                return default

    @classmethod
    def get_api_keys(cls) -> dict[str, dict]:
        """取得 MCP API Keys"""
        raw = cls._load_json_env("MCP_API_KEYS", [])
        if not raw:
            return {}
        return {item["api_key"]: {k: v for k, v in item.items() if k != "api_key"} for item in raw}


# ═══════════════════════════════════════════════════════════════════════════════
# 認證設定
# ═══════════════════════════════════════════════════════════════════════════════
API_KEYS = APIKeyManager.get_api_keys()

if API_KEYS:
    logger.info(f"🔐 API Key 認證已啟用，已設定 {len(API_KEYS)} 組 Key")

# ═══════════════════════════════════════════════════════════════════════════════
# 伺服器設定
# ═══════════════════════════════════════════════════════════════════════════════
MCP_HOST = os.getenv("MCP_HOST", "0.0.0.0")
MCP_PORT = int(os.getenv("MCP_PORT", "8000"))

# ═══════════════════════════════════════════════════════════════════════════════
# 高保真通道（Extension backend）設定
# ═══════════════════════════════════════════════════════════════════════════════
BACKEND_URL = os.getenv("BACKEND_URL", "http://localhost:8129").rstrip("/")

# 各操作類型的逾時（秒）：互動操作較短，整頁擷取較長
CHANNEL_TIMEOUTS: dict[str, float] = {
    "tabs": 5.0,
    "switch_tab": 5.0,
    "active_tab": 5.0,
    "page_info": 10.0,
    "console_logs": 10.0,
    "downloads": 10.0,
    "cancel_download": 10.0,
    "bookmarks": 10.0,
    "element_info": 15.0,
    "click": 20.0,
    "fill": 20.0,
    "open_url": 30.0,
    "execute_script": 30.0,
    "screenshot": 35.0,
    "capture_image": 35.0,
    "save_page": 60.0,
    "screenshot_full": 65.0,
    "download_file": 65.0,
}

# ═══════════════════════════════════════════════════════════════════════════════
# 低階通道（Remote Debugging Protocol）設定
# ═══════════════════════════════════════════════════════════════════════════════
CDP_PORT = int(os.getenv("BROWSER_CDP_PORT", "9222"))
CDP_GATEWAY_HOST = os.getenv("BROWSER_CDP_GATEWAY_HOST", "host.docker.internal")
CDP_PROBE_TIMEOUT = float(os.getenv("BROWSER_CDP_PROBE_TIMEOUT", "3.0"))
CDP_SHELL_EXECUTABLE = os.getenv("BROWSER_CDP_SHELL", "powershell.exe")
CDP_SHELL_TIMEOUT = float(os.getenv("BROWSER_CDP_SHELL_TIMEOUT", "5.0"))

# 低階通道等待元素出現的逾時（毫秒）
CDP_SELECTOR_TIMEOUT_MS = int(os.getenv("BROWSER_CDP_SELECTOR_TIMEOUT", "5000"))

# 瀏覽器內部頁面永遠不列入目標
INTERNAL_URL_PREFIXES = ("chrome://", "chrome-extension://", "chrome-error://", "devtools://")

# ═══════════════════════════════════════════════════════════════════════════════
# 擷取檔案（截圖 / 圖片）設定
# ═══════════════════════════════════════════════════════════════════════════════
ARTIFACT_DIR = Path(os.getenv("BROWSER_ARTIFACT_DIR", str(Path.home() / "ai-images"))).expanduser()
ARTIFACT_PREFIXES = ("screenshot-", "image-")
# 需大於 ARTIFACT_MAX_FILES 小時
ARTIFACT_MAX_AGE_HOURS = float(os.getenv("BROWSER_ARTIFACT_MAX_AGE_HOURS", "72"))
ARTIFACT_MAX_FILES = int(os.getenv("BROWSER_ARTIFACT_MAX_FILES", "50"))

# 直接下載圖片的逾時（秒）
IMAGE_FETCH_TIMEOUT = float(os.getenv("BROWSER_IMAGE_FETCH_TIMEOUT", "30"))

# ═══════════════════════════════════════════════════════════════════════════════
# 網路擷取快取設定
# ═══════════════════════════════════════════════════════════════════════════════
NETWORK_MAX_REQUESTS = 500
NETWORK_MAX_AGE_MS = 5 * 60 * 1000  # 5 分鐘
NETWORK_MAX_BODY_CHARS = 100 * 1024  # 100KB

logger.debug(f"🌐 Extension backend: {BACKEND_URL}, CDP Port: {CDP_PORT}")
