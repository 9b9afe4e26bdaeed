"""
橋接層錯誤分類

每個錯誤類別帶有 ``kind`` 字串，會原樣放進結果的 ``error_type``。
"""

# 兩個通道都不可用時回報的訊息（同時指出兩條路徑與環境修正方式）
BOTH_CHANNELS_MESSAGE = (
    "Neither Extension API nor CDP available. Make sure Chrome extension is installed "
    "or Chrome is running with --remote-debugging-port=9222"
)


class BridgeError(Exception):
    """橋接層錯誤基底類別"""

    kind = "BridgeError"

    def __init__(self, message: str):
        self.message = message
        super().__init__(message)


class ChannelUnreachable(BridgeError):
    """高保真通道在連線層級失敗（拒絕連線、非 JSON 回應等），會觸發降級"""

    kind = "ChannelUnreachable"


class ChannelTimeout(ChannelUnreachable):
    """通道呼叫逾時"""

    kind = "ChannelTimeout"


class ConnectionUnavailable(BridgeError):
    """所有可用通道皆無法連線，該次操作失敗"""

    kind = "ConnectionUnavailable"


class ApplicationError(BridgeError):
    """通道回報的應用層錯誤（找不到元素、不是圖片等），不重試"""

    kind = "ApplicationError"


class StaleReference(BridgeError):
    """requestId / response body 已失效（頁面已導航離開），需重新擷取"""

    kind = "StaleReference"


class DiscoveryExhausted(BridgeError):
    """所有候選主機都沒有回應除錯端點"""

    kind = "DiscoveryExhausted"
