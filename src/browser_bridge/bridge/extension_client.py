"""
高保真通道客戶端

透過瀏覽器擴充功能的 backend HTTP API 操作瀏覽器。
只有連線層級的失敗會轉成 ChannelUnreachable；帶有 error 的回應是最終結果。
"""

from __future__ import annotations

import logging
from typing import Any

import httpx

from browser_bridge.bridge.errors import ChannelTimeout, ChannelUnreachable
from browser_bridge.config import BACKEND_URL

logger = logging.getLogger(__name__)


class ExtensionClient:
    """
    Extension backend 客戶端

    共用一個延遲建立的 httpx.AsyncClient，每次呼叫各自帶逾時。

    Attributes:
        base_url: backend 基礎 URL
    """

    def __init__(self, base_url: str = BACKEND_URL, transport: httpx.AsyncBaseTransport | None = None) -> None:
        """
        初始化客戶端

        Args:
            base_url: backend 基礎 URL
            transport: 自訂 httpx transport（測試時注入 MockTransport）
        """
        self.base_url = base_url.rstrip("/")
        self._transport = transport
        self._client: httpx.AsyncClient | None = None

    def _get_client(self) -> httpx.AsyncClient:
        """延遲建立共用的 AsyncClient（關閉後會重新建立）"""
        if self._client is None or self._client.is_closed:
            self._client = httpx.AsyncClient(base_url=self.base_url, transport=self._transport)
        return self._client

    async def close(self) -> None:
        """關閉共用的 AsyncClient"""
        if self._client:
            await self._client.aclose()
            self._client = None

    async def request(
        self,
        method: str,
        path: str,
        *,
        timeout: float,
        params: dict[str, Any] | None = None,
        json: dict[str, Any] | None = None,
    ) -> dict[str, Any]:
        """
        發送請求到 backend

        Args:
            method: HTTP 方法
            path: API 路徑（例如 /api/browser/tabs）
            timeout: 逾時秒數
            params: 查詢參數（None 值會被略過）
            json: JSON body

        Returns:
            backend 回應的 JSON 物件（可能帶有 error）

        Raises:
            ChannelTimeout: 請求逾時
            ChannelUnreachable: 無法連線或回應不是 JSON 物件
        """
        clean_params = {k: v for k, v in (params or {}).items() if v is not None} or None
        clean_json = {k: v for k, v in json.items() if v is not None} if json is not None else None

        try:
            response = await self._get_client().request(
                method, path, params=clean_params, json=clean_json, timeout=timeout
            )
        except httpx.TimeoutException as e:
            raise ChannelTimeout(f"Extension backend 請求逾時 ({timeout}s): {method} {path}") from e
        except httpx.TransportError as e:
            raise ChannelUnreachable(f"無法連線至 Extension backend {self.base_url}: {e}") from e

        try:
            payload = response.json()
        except ValueError as e:
            raise ChannelUnreachable(f"Extension backend 回應非 JSON (HTTP {response.status_code}): {method} {path}") from e

        if not isinstance(payload, dict):
            raise ChannelUnreachable(f"Extension backend 回應格式錯誤 (HTTP {response.status_code}): {method} {path}")

        logger.debug(f"Extension API {method} {path} -> HTTP {response.status_code}")
        return payload

    async def get(self, path: str, *, timeout: float, params: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("GET", path, timeout=timeout, params=params)

    async def post(self, path: str, *, timeout: float, json: dict[str, Any] | None = None) -> dict[str, Any]:
        return await self.request("POST", path, timeout=timeout, json=json)

    @staticmethod
    def is_definitive(payload: dict[str, Any]) -> bool:
        """成功或帶有應用層錯誤的回應都是最終結果"""
        return bool(payload.get("success")) or bool(payload.get("error"))
