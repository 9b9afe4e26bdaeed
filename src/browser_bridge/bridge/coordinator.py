"""
橋接協調器

持有單一 BridgeSession 與各元件實例，取代行程層級的全域單例。
Tool 層透過模組層級的 ``browser_bridge`` 使用；測試可自行建立彼此隔離的實例。
"""

import logging
from typing import Any

import httpx

from browser_bridge.bridge.artifacts import ArtifactRetention
from browser_bridge.bridge.discovery import ConnectionDiscovery
from browser_bridge.bridge.executor import DualChannelExecutor
from browser_bridge.bridge.extension_client import ExtensionClient
from browser_bridge.bridge.network_capture import NetworkCaptureCache
from browser_bridge.bridge.resolver import TabResolver
from browser_bridge.bridge.session_state import BridgeSession

logger = logging.getLogger(__name__)


class BrowserBridge:
    """
    雙通道瀏覽器橋接

    Attributes:
        session: 目前目標、自訂名稱與分頁列表
        extension: 高保真通道客戶端
        discovery: CDP 連線探索
        resolver: 分頁識別解析
        retention: 擷取檔案保留策略
        executor: 雙通道操作執行器
        network: 網路擷取快取
    """

    def __init__(
        self,
        session: BridgeSession | None = None,
        extension: ExtensionClient | None = None,
        discovery: ConnectionDiscovery | None = None,
        retention: ArtifactRetention | None = None,
        in_wsl: bool | None = None,
        fetch_transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        self.session = session or BridgeSession()
        self.extension = extension or ExtensionClient()
        self.discovery = discovery or ConnectionDiscovery()
        self.retention = retention or ArtifactRetention()
        self.resolver = TabResolver(self.session, self.discovery, self.extension)
        self.executor = DualChannelExecutor(
            self.session,
            self.extension,
            self.resolver,
            self.retention,
            in_wsl=in_wsl,
            fetch_transport=fetch_transport,
        )
        self.network = NetworkCaptureCache(self.resolver)

    def status(self) -> dict[str, Any]:
        """連線與目前目標摘要（供健康檢查使用）"""
        return {
            "backend_url": self.extension.base_url,
            "cdp": self.discovery.status(),
            "current_tab": {"tabId": self.session.current.tab_id, "url": self.session.current.url},
            "network_capture_active": self.network.is_active,
        }

    async def close(self) -> None:
        """釋放低階連線與 HTTP client（不關閉使用者的瀏覽器）"""
        await self.discovery.close()
        await self.extension.close()
        logger.info("🔌 瀏覽器橋接已關閉")


# 全域橋接實例
browser_bridge = BrowserBridge()
