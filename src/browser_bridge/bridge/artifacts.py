"""
擷取檔案保留策略

在每次寫入新的截圖 / 圖片前清理舊檔：超過保留時間或超過數量上限（新到舊排序）的檔案會被刪除。
清理失敗只記錄，不會阻擋觸發它的擷取。
"""

from __future__ import annotations

import logging
import time
from collections.abc import Callable
from datetime import datetime, timezone
from pathlib import Path

from browser_bridge.config import ARTIFACT_DIR, ARTIFACT_MAX_AGE_HOURS, ARTIFACT_MAX_FILES, ARTIFACT_PREFIXES

logger = logging.getLogger(__name__)


class ArtifactRetention:
    """擷取檔案目錄的清理與命名"""

    def __init__(
        self,
        directory: Path = ARTIFACT_DIR,
        prefixes: tuple[str, ...] = ARTIFACT_PREFIXES,
        max_age_hours: float = ARTIFACT_MAX_AGE_HOURS,
        max_files: int = ARTIFACT_MAX_FILES,
        clock: Callable[[], float] = time.time,
    ) -> None:
        self.directory = Path(directory)
        self.prefixes = prefixes
        self.max_age_hours = max_age_hours
        self.max_files = max_files
        self._clock = clock

    def prune(self, reserve: int = 1) -> int:
        """
        清理舊的擷取檔案

        Args:
            reserve: 為即將寫入的檔案保留的名額

        Returns:
            刪除的檔案數量
        """
        if not self.directory.is_dir():
            return 0

        try:
            candidates = [
                (path, path.stat().st_mtime)
                for path in self.directory.iterdir()
                if path.is_file() and path.name.startswith(self.prefixes)
            ]
        except OSError as e:
            logger.warning(f"⚠️ 無法讀取擷取目錄 {self.directory}: {e}")
            return 0

        candidates.sort(key=lambda item: item[1], reverse=True)
        now = self._clock()
        max_age_seconds = self.max_age_hours * 3600
        keep = max(self.max_files - reserve, 0)

        deleted = 0
        for index, (path, mtime) in enumerate(candidates):
            if now - mtime > max_age_seconds or index >= keep:
                try:
                    path.unlink()
                    deleted += 1
                except OSError as e:
                    logger.debug(f"無法刪除 {path}: {e}")

        if deleted:
            logger.info(f"🧹 已清理 {deleted} 個舊的擷取檔案")
        return deleted

    def new_path(self, prefix: str, suffix: str = ".png") -> Path:
        """產生新的擷取檔案路徑，例如 ``screenshot-2026-10-18T08-30-00-123Z.png``"""
        stamp = datetime.fromtimestamp(self._clock(), tz=timezone.utc).isoformat(timespec="milliseconds")
        stamp = stamp.replace("+00:00", "Z").replace(":", "-").replace(".", "-")
        return self.directory / f"{prefix}{stamp}{suffix}"

    def prepare(self, prefix: str, suffix: str = ".png", output_path: str | Path | None = None) -> Path:
        """清理舊檔並回傳這次要寫入的路徑（目錄不存在時建立）"""
        self.prune()
        target = Path(output_path).expanduser() if output_path else self.new_path(prefix, suffix)
        target.parent.mkdir(parents=True, exist_ok=True)
        return target

    def write(self, prefix: str, data: bytes, suffix: str = ".png", output_path: str | Path | None = None) -> Path:
        """清理後寫入一個新的擷取檔案"""
        target = self.prepare(prefix, suffix, output_path)
        target.write_bytes(data)
        logger.info(f"💾 已儲存擷取檔案: {target}")
        return target
