"""
橋接 Session 狀態

取代行程層級的全域變數：目前目標分頁、自訂分頁名稱、最近一次的分頁列表。
由 BrowserBridge 持有，測試可建立彼此隔離的實例。
"""

import logging
from dataclasses import dataclass, field

from browser_bridge.bridge.models import CurrentTarget, TabRecord

logger = logging.getLogger(__name__)


@dataclass
class BridgeSession:
    """
    單一橋接行程的可變狀態

    Attributes:
        current: 未指定 tabId 時的操作目標
        custom_names: URL -> 自訂名稱（以 URL 為鍵，導航後名稱會遺失）
        tab_urls: 最近一次分頁列表的 tabId -> URL
    """

    current: CurrentTarget = field(default_factory=CurrentTarget)
    custom_names: dict[str, str] = field(default_factory=dict)
    tab_urls: dict[int, str] = field(default_factory=dict)

    def set_current(self, tab_id: int, url: str | None = None) -> None:
        """切換目前目標分頁；未提供 URL 時保留舊值"""
        self.current.tab_id = tab_id
        if url:
            self.current.url = url
        logger.debug(f"目前目標分頁: tabId={tab_id}, url={self.current.url}")

    def remember_listing(self, tabs: list[TabRecord]) -> None:
        """以新的高保真分頁列表覆蓋 tabId -> URL 對照，並同步目前目標"""
        self.tab_urls.clear()
        for tab in tabs:
            self.tab_urls[tab.tab_id] = tab.url
        active = next((tab for tab in tabs if tab.active), None)
        if active is not None:
            self.set_current(active.tab_id, active.url)

    def url_for(self, tab_id: int) -> str | None:
        return self.tab_urls.get(tab_id)

    def custom_name_for(self, url: str) -> str | None:
        return self.custom_names.get(url)

    def rename(self, url: str, name: str) -> None:
        """設定自訂名稱；空字串代表清除"""
        name = name.strip()
        if name:
            self.custom_names[url] = name
        else:
            self.custom_names.pop(url, None)
