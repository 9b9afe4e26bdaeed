"""
雙通道瀏覽器橋接

高保真通道（Extension backend）優先，連線失敗時降級為 CDP。
"""

from browser_bridge.bridge.coordinator import BrowserBridge, browser_bridge
from browser_bridge.bridge.errors import (
    ApplicationError,
    BridgeError,
    ChannelTimeout,
    ChannelUnreachable,
    ConnectionUnavailable,
    DiscoveryExhausted,
    StaleReference,
)
from browser_bridge.bridge.models import BridgeResult, NetworkListing, NetworkRequestRecord, TabRecord

__all__ = [
    "ApplicationError",
    "BridgeError",
    "BridgeResult",
    "BrowserBridge",
    "ChannelTimeout",
    "ChannelUnreachable",
    "ConnectionUnavailable",
    "DiscoveryExhausted",
    "NetworkListing",
    "NetworkRequestRecord",
    "StaleReference",
    "TabRecord",
    "browser_bridge",
]
