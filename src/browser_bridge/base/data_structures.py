"""
資料結構模組

定義跨模組共用的 MIME 映射與列舉類別。
"""

from enum import Enum

# ═══════════════════════════════════════════════════════════════════════════════
# MIME 類型映射
# ═══════════════════════════════════════════════════════════════════════════════
IMG_MIME_TYPES = {
    ".png": "image/png",
    ".jpg": "image/jpeg",
    ".jpeg": "image/jpeg",
    ".gif": "image/gif",
    ".bmp": "image/bmp",
    ".webp": "image/webp",
    ".svg": "image/svg+xml",
    ".avif": "image/avif",
}

# 反向映射：MIME -> 副檔名（同一 MIME 取第一個）
IMG_EXTENSIONS: dict[str, str] = {}
for _ext, _mime in IMG_MIME_TYPES.items():
    IMG_EXTENSIONS.setdefault(_mime, _ext)


def image_extension_for(mime_type: str | None, default: str = ".png") -> str:
    """依 Content-Type 取得圖片副檔名，無法辨識時回傳預設值"""
    if not mime_type:
        return default
    return IMG_EXTENSIONS.get(mime_type.split(";")[0].strip().lower(), default)


# ═══════════════════════════════════════════════════════════════════════════════
# 列舉類別
# ═══════════════════════════════════════════════════════════════════════════════
class Channel(str, Enum):
    """完成操作的通道"""

    EXTENSION = "extension"
    CDP = "cdp"
    FETCH = "fetch"


class AddressingMode(str, Enum):
    """分頁定位方式，用於判斷走了哪一條降級路徑"""

    BY_ID = "byId"
    BY_URL = "byUrl"
    BY_INDEX = "byIndex"
    DEFAULT = "default"


class CaptureState(str, Enum):
    """單一頁面的網路擷取狀態"""

    DISABLED = "disabled"
    ENABLING = "enabling"
    ENABLED = "enabled"
