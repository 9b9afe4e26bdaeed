"""
輔助函數工具箱

包含通用工具函數與格式化功能
"""
import logging
import time
from typing import Any

from browser_bridge.bridge.models import BridgeResult
from browser_bridge.schemas import ExecutionResult

logger = logging.getLogger(__name__)


def format_tool_result(result: ExecutionResult) -> dict[str, Any]:
    """
    格式化 ExecutionResult 為 MCP 回應格式

    Args:
        result: 執行結果

    Returns:
        MCP 格式的字典
    """
    text_output = result.to_text_output()
    response = {
        "content": [{"type": "text", "text": text_output}],
        "isError": not result.success
    }
    if result.metadata:
        response["metadata"] = result.metadata

    logger.info(
        f"📊 MCP 回覆格式化完成 | "
        f"文本長度: {len(text_output):,} 字符 | "
        f"成功: {result.success} | "
        f"通道: {result.metadata.get('channel') or 'n/a'}"
    )

    return response


def to_execution_result(result: BridgeResult, stdout: str, started: float) -> ExecutionResult:
    """
    將橋接層的 BridgeResult 轉為 Tool 的 ExecutionResult

    Args:
        result: 橋接操作結果
        stdout: 給呼叫端閱讀的 Markdown 文字
        started: ``time.perf_counter()`` 的起始值
    """
    metadata = {**result.to_dict(), "channel": result.channel}
    if result.addressing_mode:
        metadata["addressingMode"] = result.addressing_mode
    return ExecutionResult(
        success=result.success,
        stdout=stdout,
        execution_time=f"{time.perf_counter() - started:.3f}s",
        metadata=metadata,
        error_type=result.error_type,
        error_message=result.error,
    )


def truncate_string(text: str, max_length: int = 100, suffix: str = "...") -> str:
    """截斷過長的字串"""
    if len(text) > max_length:
        return text[:max_length] + suffix
    return text


def format_bytes(size: int | None) -> str:
    """將位元組數轉為易讀格式"""
    if size is None:
        return "-"
    if size < 1024:
        return f"{size} B"
    if size < 1024 * 1024:
        return f"{size / 1024:.1f} KB"
    return f"{size / (1024 * 1024):.1f} MB"
