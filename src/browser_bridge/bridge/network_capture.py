"""
網路擷取快取

以每個頁面一條 CDP session 監聽 Network domain 事件，
產生有上限、可淘汰的請求紀錄；response body 只在明確要求時才取回。
淘汰在每次讀寫時同步執行，沒有背景計時器。
"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
from collections.abc import Callable
from typing import Any

from playwright.async_api import Error as PlaywrightError

from browser_bridge.base.data_structures import CaptureState, Channel
from browser_bridge.bridge.errors import ApplicationError, BOTH_CHANNELS_MESSAGE, ConnectionUnavailable, StaleReference
from browser_bridge.bridge.models import BridgeResult, NetworkListing, NetworkRequestRecord
from browser_bridge.bridge.resolver import TabResolver
from browser_bridge.config import NETWORK_MAX_AGE_MS, NETWORK_MAX_BODY_CHARS, NETWORK_MAX_REQUESTS

logger = logging.getLogger(__name__)

STALE_BODY_MARKER = "No resource with given identifier"


class NetworkCaptureCache:
    """
    網路請求擷取快取

    狀態機（以頁面 URL 為鍵）：disabled -> enabling -> enabled，重複啟用不會重複掛監聽器。

    Attributes:
        max_requests: 紀錄數量上限，超過時由最舊的開始淘汰
        max_age_ms: 紀錄保留時間（毫秒）
        max_body_chars: response body 的截斷上限（字元）
    """

    def __init__(
        self,
        resolver: TabResolver,
        clock: Callable[[], float] = time.time,
        max_requests: int = NETWORK_MAX_REQUESTS,
        max_age_ms: float = NETWORK_MAX_AGE_MS,
        max_body_chars: int = NETWORK_MAX_BODY_CHARS,
    ) -> None:
        self.resolver = resolver
        self._clock = clock
        self.max_requests = max_requests
        self.max_age_ms = max_age_ms
        self.max_body_chars = max_body_chars
        self._records: dict[str, NetworkRequestRecord] = {}
        self._states: dict[str, CaptureState] = {}
        self._sessions: dict[str, Any] = {}
        # 啟用擷取時的 Page；重新連線或重開分頁後會是不同的物件
        self._pages: dict[str, Any] = {}

    @property
    def is_active(self) -> bool:
        return any(
            state is CaptureState.ENABLED and not self._pages[url].is_closed()
            for url, state in self._states.items()
        )

    def state_for(self, page_url: str) -> CaptureState:
        return self._states.get(page_url, CaptureState.DISABLED)

    def _now_ms(self) -> float:
        return self._clock() * 1000

    # ═══════════════════════════════════════════════════════════════════════════════
    # 啟用
    # ═══════════════════════════════════════════════════════════════════════════════

    async def enable(self, tab_id: int | None = None) -> BridgeResult:
        """
        為目標頁面啟用網路擷取

        Args:
            tab_id: 目標分頁，None 表示目前目標

        Returns:
            BridgeResult，data 含 ``url``、``tabId``、``alreadyEnabled``
        """
        resolved = await self.resolver.resolve(tab_id)
        if resolved is None:
            return BridgeResult.from_error(
                ConnectionUnavailable(f"No active page found. {BOTH_CHANNELS_MESSAGE}"), Channel.CDP
            )

        page = resolved.page
        page_url = page.url
        data = {"url": page_url, "tabId": resolved.tab_id}

        self._drop_stale(page_url, page)
        if self.state_for(page_url) is not CaptureState.DISABLED:
            return BridgeResult.ok({**data, "alreadyEnabled": True}, Channel.CDP)

        self._states[page_url] = CaptureState.ENABLING
        self._pages[page_url] = page
        try:
            session = await page.context.new_cdp_session(page)
            await session.send("Network.enable")
        except PlaywrightError as e:
            self._forget(page_url)
            logger.warning(f"⚠️ 啟用網路擷取失敗 {page_url}: {e}")
            return BridgeResult.from_error(ApplicationError(f"Failed to enable network capture: {e}"), Channel.CDP)

        self._attach_listeners(session, page_url, resolved.tab_id)
        self._sessions[page_url] = session
        self._states[page_url] = CaptureState.ENABLED
        logger.info(f"📡 [Network] 已啟用監聽: {page_url}")
        return BridgeResult.ok({**data, "alreadyEnabled": False}, Channel.CDP)

    def _drop_stale(self, page_url: str, page: Any) -> None:
        """
        捨棄已失效的擷取狀態

        已關閉的頁面（含瀏覽器斷線）一律移除；同一 URL 對應到不同 Page 物件時，
        舊的 session 不會收到新頁面的事件，也視為失效。
        """
        closed = [url for url, known in self._pages.items() if known.is_closed()]
        for url in closed:
            self._forget(url)
        if page_url in self._pages and self._pages[page_url] is not page:
            self._forget(page_url)
        if closed:
            logger.debug(f"[Network] 移除 {len(closed)} 個已關閉頁面的擷取狀態")

    def _forget(self, page_url: str) -> None:
        self._states.pop(page_url, None)
        self._sessions.pop(page_url, None)
        self._pages.pop(page_url, None)

    def _attach_listeners(self, session: Any, page_key: str, tab_id: int) -> None:
        def on_request(event: dict[str, Any]) -> None:
            request = event.get("request", {})
            self.record_request(
                NetworkRequestRecord(
                    request_id=event["requestId"],
                    url=request.get("url", ""),
                    method=request.get("method", "GET"),
                    resource_type=event.get("type") or "Other",
                    timestamp_ms=self._now_ms(),
                    tab_id=tab_id,
                    request_headers=dict(request.get("headers") or {}),
                    post_data=request.get("postData"),
                    page_key=page_key,
                )
            )

        def on_response(event: dict[str, Any]) -> None:
            record = self._records.get(event.get("requestId", ""))
            if record is None:
                return
            response = event.get("response", {})
            record.status = response.get("status")
            record.status_text = response.get("statusText")
            record.response_headers = dict(response.get("headers") or {})
            record.mime_type = response.get("mimeType")

        def on_finished(event: dict[str, Any]) -> None:
            record = self._records.get(event.get("requestId", ""))
            if record is None:
                return
            record.response_time_ms = self._now_ms() - record.timestamp_ms
            record.encoded_byte_length = event.get("encodedDataLength")

        session.on("Network.requestWillBeSent", on_request)
        session.on("Network.responseReceived", on_response)
        session.on("Network.loadingFinished", on_finished)

    # ═══════════════════════════════════════════════════════════════════════════════
    # 紀錄維護
    # ═══════════════════════════════════════════════════════════════════════════════

    def record_request(self, record: NetworkRequestRecord) -> None:
        """新增一筆請求紀錄（同一 requestId 會覆蓋，例如 redirect）"""
        self._evict()
        self._records[record.request_id] = record
        self._evict()

    def _evict(self) -> None:
        """先淘汰逾時紀錄，再由最舊的開始淘汰到數量上限"""
        cutoff = self._now_ms() - self.max_age_ms
        expired = [rid for rid, record in self._records.items() if record.timestamp_ms < cutoff]
        for rid in expired:
            del self._records[rid]

        overflow = len(self._records) - self.max_requests
        if overflow > 0:
            oldest = sorted(self._records.values(), key=lambda r: r.timestamp_ms)[:overflow]
            for record in oldest:
                del self._records[record.request_id]

        if expired or overflow > 0:
            logger.debug(f"[Network] 淘汰 {len(expired)} 筆逾時、{max(overflow, 0)} 筆超量紀錄")

    def clear(self) -> None:
        """清除所有紀錄（監聽器保持啟用）"""
        self._records.clear()
        logger.info("🧹 [Network] 已清除所有擷取紀錄")

    # ═══════════════════════════════════════════════════════════════════════════════
    # 查詢
    # ═══════════════════════════════════════════════════════════════════════════════

    def list(
        self,
        url_pattern: str | None = None,
        method: str | None = None,
        status_min: int | None = None,
        status_max: int | None = None,
        resource_type: str | None = None,
        tab_id: int | None = None,
        limit: int = 50,
        offset: int = 0,
    ) -> NetworkListing:
        """
        依條件篩選紀錄，新到舊排序後分頁

        url_pattern 以不分大小寫的正規表示式比對，不合法時改用字面子字串；
        method / resource_type 為 ``all`` 時不篩選；狀態碼範圍包含上下界。
        """
        self._evict()
        records = list(self._records.values())

        if url_pattern:
            try:
                regex = re.compile(url_pattern, re.IGNORECASE)
                records = [r for r in records if regex.search(r.url)]
            except re.error:
                records = [r for r in records if url_pattern in r.url]

        if method and method.lower() != "all":
            records = [r for r in records if r.method.upper() == method.upper()]
        if status_min is not None:
            records = [r for r in records if r.status is not None and r.status >= status_min]
        if status_max is not None:
            records = [r for r in records if r.status is not None and r.status <= status_max]
        if resource_type and resource_type.lower() != "all":
            records = [r for r in records if r.resource_type.lower() == resource_type.lower()]
        if tab_id is not None:
            records = [r for r in records if r.tab_id == tab_id]

        records.sort(key=lambda r: r.timestamp_ms, reverse=True)

        total = len(records)
        limit = limit or 50
        has_more = offset + limit < total
        return NetworkListing(
            records=records[offset : offset + limit],
            total=total,
            has_more=has_more,
            next_offset=offset + limit if has_more else None,
            capture_active=self.is_active,
        )

    async def get_body(self, request_id: str) -> BridgeResult:
        """
        取得單一請求的 response body（延遲取回並快取）

        不會拋出例外：未知或已失效的 requestId 都以錯誤結果回傳。
        """
        self._evict()
        record = self._records.get(request_id)
        if record is None:
            return BridgeResult.from_error(
                StaleReference(f"Request not found: {request_id}. Requests expire after 5 minutes."), Channel.CDP
            )

        if record.body is not None:
            return BridgeResult.ok({"request": record.to_dict(include_body=True)}, Channel.CDP)

        session = self._sessions.get(record.page_key)
        if session is None:
            return BridgeResult.from_error(
                StaleReference("Network session not available. Enable network capture first."), Channel.CDP
            )

        try:
            response = await session.send("Network.getResponseBody", {"requestId": request_id})
        except PlaywrightError as e:
            if STALE_BODY_MARKER in str(e):
                return BridgeResult.from_error(
                    StaleReference("Response body no longer available. The page may have navigated away."),
                    Channel.CDP,
                )
            return BridgeResult.from_error(ApplicationError(f"Failed to get response body: {e}"), Channel.CDP)

        body, truncated = self._decode_body(response.get("body", ""), bool(response.get("base64Encoded")))
        record.body = body
        record.body_truncated = truncated
        return BridgeResult.ok({"request": record.to_dict(include_body=True)}, Channel.CDP)

    def _decode_body(self, raw: str, base64_encoded: bool) -> tuple[str, bool]:
        body = raw
        if base64_encoded:
            try:
                body = base64.b64decode(raw).decode("utf-8")
            except (binascii.Error, UnicodeDecodeError):
                body = f"[Base64 encoded, {len(raw)} chars]"

        if len(body) > self.max_body_chars:
            remaining = len(body) - self.max_body_chars
            return f"{body[: self.max_body_chars]}\n\n[Truncated: {remaining} more characters]", True
        return body, False
