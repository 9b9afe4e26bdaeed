"""
跨作業系統路徑工具

偵測是否在 WSL 內執行，並將 Windows 路徑轉成目前作業系統可用的路徑。
"""

import logging
import os
import re
import sys
from pathlib import Path

logger = logging.getLogger(__name__)

_WIN_DRIVE_PATTERN = re.compile(r"^([A-Za-z]):\\(.*)$")


def is_running_in_wsl(proc_version_path: str = "/proc/version") -> bool:
    """判斷目前是否執行於 WSL"""
    if not sys.platform.startswith("linux"):
        return False
    if os.environ.get("WSL_DISTRO_NAME"):
        return True
    try:
        return "microsoft" in Path(proc_version_path).read_text(encoding="utf-8").lower()
    except OSError:
        return False


def windows_to_wsl_path(windows_path: str) -> str:
    """
    將 Windows 磁碟路徑轉為 WSL 掛載路徑

    例如 ``C:\\Users\\me\\ai-images\\a.png`` -> ``/mnt/c/Users/me/ai-images/a.png``，
    非 Windows 格式的路徑原樣回傳。
    """
    match = _WIN_DRIVE_PATTERN.match(windows_path)
    if not match:
        return windows_path
    drive = match.group(1).lower()
    rest = match.group(2).replace("\\", "/")
    return f"/mnt/{drive}/{rest}"


def to_consumer_path(path: str | Path, in_wsl: bool | None = None) -> str:
    """
    將通道回傳的檔案路徑轉成呼叫端作業系統的路徑格式

    Args:
        path: 通道回傳或本地寫入的路徑
        in_wsl: 是否在 WSL 內（None 表示自動偵測）
    """
    text = str(path)
    if in_wsl is None:
        in_wsl = is_running_in_wsl()
    if not in_wsl:
        return text
    converted = windows_to_wsl_path(text)
    if converted != text:
        logger.debug(f"路徑已轉換: {text} -> {converted}")
    return converted
