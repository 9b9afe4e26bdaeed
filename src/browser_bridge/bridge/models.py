"""
橋接層資料模型

TabRecord、CurrentTarget、NetworkRequestRecord 與統一的 BridgeResult。
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

from browser_bridge.base.data_structures import AddressingMode, Channel
from browser_bridge.bridge.errors import BridgeError


@dataclass
class TabRecord:
    """
    分頁資訊

    tab_id 在高保真通道可用時是瀏覽器真實的 tab ID；
    否則為低階頁面列表中的 1-based 位置，每次列出都可能改變。
    """

    tab_id: int
    url: str
    title: str
    custom_name: str | None = None
    active: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "tabId": self.tab_id,
            "url": self.url,
            "title": self.title,
            "active": self.active,
        }
        if self.custom_name:
            data["customName"] = self.custom_name
        return data


@dataclass
class CurrentTarget:
    """未指定 tabId 時操作的目標分頁"""

    tab_id: int = 1
    url: str = ""


@dataclass
class ResolvedPage:
    """TabResolver 的解析結果，附帶實際使用的定位方式"""

    page: Any
    mode: AddressingMode
    tab_id: int


@dataclass
class NetworkRequestRecord:
    """單一網路請求的擷取紀錄，隨 CDP 事件就地更新"""

    request_id: str
    url: str
    method: str
    resource_type: str
    timestamp_ms: float
    tab_id: int
    request_headers: dict[str, str] = field(default_factory=dict)
    post_data: str | None = None
    status: int | None = None
    status_text: str | None = None
    response_headers: dict[str, str] | None = None
    mime_type: str | None = None
    response_time_ms: float | None = None
    encoded_byte_length: int | None = None
    body: str | None = None
    body_truncated: bool | None = None
    # 擷取此請求的頁面（以啟用時的 URL 為鍵），用於取回 body
    page_key: str = field(default="", repr=False)

    def to_dict(self, include_body: bool = False) -> dict[str, Any]:
        data: dict[str, Any] = {
            "requestId": self.request_id,
            "url": self.url,
            "method": self.method,
            "resourceType": self.resource_type,
            "timestamp": self.timestamp_ms,
            "tabId": self.tab_id,
            "requestHeaders": self.request_headers,
        }
        optional = {
            "postData": self.post_data,
            "status": self.status,
            "statusText": self.status_text,
            "responseHeaders": self.response_headers,
            "mimeType": self.mime_type,
            "responseTime": self.response_time_ms,
            "encodedDataLength": self.encoded_byte_length,
        }
        if include_body:
            optional["responseBody"] = self.body
            optional["responseBodyTruncated"] = self.body_truncated
        data.update({key: value for key, value in optional.items() if value is not None})
        return data


@dataclass
class NetworkListing:
    """網路請求的分頁查詢結果"""

    records: list[NetworkRequestRecord]
    total: int
    has_more: bool
    next_offset: int | None = None
    capture_active: bool = False

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "requests": [record.to_dict() for record in self.records],
            "total": self.total,
            "hasMore": self.has_more,
            "captureActive": self.capture_active,
        }
        if self.next_offset is not None:
            data["nextOffset"] = self.next_offset
        return data


@dataclass
class BridgeResult:
    """
    所有橋接操作統一的回傳格式

    不論由哪個通道完成，形狀都相同；``to_dict()`` 展平成 ``{success, ...|error}``。
    """

    success: bool
    data: dict[str, Any] = field(default_factory=dict)
    error: str = ""
    error_type: str = ""
    channel: str = ""
    # 低階通道完成時實際使用的分頁定位方式
    addressing_mode: str = ""

    @classmethod
    def ok(cls, data: dict[str, Any] | None = None, channel: Channel | str = "") -> BridgeResult:
        return cls(success=True, data=dict(data or {}), channel=_channel_value(channel))

    @classmethod
    def fail(cls, error: str, error_type: str, channel: Channel | str = "", data: dict[str, Any] | None = None) -> BridgeResult:
        return cls(success=False, data=dict(data or {}), error=error, error_type=error_type, channel=_channel_value(channel))

    @classmethod
    def from_error(cls, exc: BridgeError, channel: Channel | str = "") -> BridgeResult:
        return cls.fail(exc.message, exc.kind, channel)

    def to_dict(self) -> dict[str, Any]:
        result: dict[str, Any] = {"success": self.success, **self.data}
        if not self.success:
            result["error"] = self.error
        return result


def _channel_value(channel: Channel | str) -> str:
    return channel.value if isinstance(channel, Channel) else channel
