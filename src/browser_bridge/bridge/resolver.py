"""
分頁識別解析

在兩套不相容的定位方式之間轉換：
高保真通道的真實 tab ID（只有 Extension 知道）與低階通道的 Page（只能以 URL / 順序定位）。
URL 是兩者唯一共用的鍵；1-based 順序是最後手段，以數值大小與真實 ID 區分。
"""

from __future__ import annotations

import logging
from typing import Any

from browser_bridge.base.data_structures import AddressingMode
from browser_bridge.bridge.discovery import ConnectionDiscovery
from browser_bridge.bridge.errors import ChannelUnreachable
from browser_bridge.bridge.extension_client import ExtensionClient
from browser_bridge.bridge.models import ResolvedPage
from browser_bridge.bridge.session_state import BridgeSession
from browser_bridge.config import CHANNEL_TIMEOUTS

logger = logging.getLogger(__name__)


class TabResolver:
    """將 tabId（或目前目標）解析為低階通道的 Page"""

    def __init__(self, session: BridgeSession, discovery: ConnectionDiscovery, extension: ExtensionClient) -> None:
        self.session = session
        self.discovery = discovery
        self.extension = extension

    async def live_pages(self) -> list[Any] | None:
        """目前所有非內部頁面；低階通道不可用時回傳 None"""
        handle = await self.discovery.acquire()
        if handle is None:
            return None
        return handle.pages()

    async def refresh_active_tab(self) -> dict[str, Any] | None:
        """
        向高保真通道詢問使用者實際聚焦的分頁並更新 CurrentTarget

        Returns:
            分頁資訊 ``{tabId, url, title}``，通道不可用或回報錯誤時為 None
        """
        try:
            payload = await self.extension.get("/api/browser/active-tab", timeout=CHANNEL_TIMEOUTS["active_tab"])
        except ChannelUnreachable as e:
            logger.debug(f"無法從 Extension 取得目前分頁，沿用舊的目標: {e}")
            return None

        tab = payload.get("tab")
        if not payload.get("success") or not isinstance(tab, dict) or tab.get("tabId") is None:
            return None
        self.session.set_current(int(tab["tabId"]), tab.get("url"))
        return tab

    async def resolve(self, tab_id: int | None = None) -> ResolvedPage | None:
        """
        解析目標頁面

        優先順序：
        1. 指定 tabId：以最近一次分頁列表中的 URL 比對（byId）
        2. 未指定：先刷新使用者實際聚焦的分頁，再以其 URL 比對（byUrl）
        3. URL 比對失敗：將 tabId 視為 1-based 順序（byIndex）
        4. 未指定 tabId 時才退回第一個頁面（default）

        Args:
            tab_id: 目標 tabId，None 表示目前目標

        Returns:
            ResolvedPage，找不到時為 None
        """
        pages = await self.live_pages()
        if not pages:
            return None

        if tab_id is not None:
            target_url = self.session.url_for(tab_id)
            if target_url:
                page = _find_by_url(pages, target_url)
                if page is not None:
                    return ResolvedPage(page, AddressingMode.BY_ID, tab_id)
                logger.debug(f"tabId={tab_id} 的 URL 已無對應頁面: {target_url}")
            if 1 <= tab_id <= len(pages):
                return ResolvedPage(pages[tab_id - 1], AddressingMode.BY_INDEX, tab_id)
            return None

        await self.refresh_active_tab()
        current = self.session.current
        if current.url:
            page = _find_by_url(pages, current.url)
            if page is not None:
                return ResolvedPage(page, AddressingMode.BY_URL, current.tab_id)

        if 1 <= current.tab_id <= len(pages):
            return ResolvedPage(pages[current.tab_id - 1], AddressingMode.BY_INDEX, current.tab_id)

        return ResolvedPage(pages[0], AddressingMode.DEFAULT, 1)


def _find_by_url(pages: list[Any], url: str) -> Any | None:
    return next((page for page in pages if page.url == url), None)
