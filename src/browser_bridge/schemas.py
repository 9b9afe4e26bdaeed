"""
資料模型定義

包含 Tool 層使用的 ExecutionResult、MCPError 等核心資料結構
"""
from dataclasses import dataclass, field
from typing import Any


@dataclass
class ExecutionResult:
    """Tool 統一的執行結果格式"""
    success: bool
    stdout: str = ""
    execution_time: str = "0.000s"
    metadata: dict[str, Any] = field(default_factory=dict)
    error_type: str = ""
    error_message: str = ""

    def to_text_output(self) -> str:
        """轉換為人類可讀的文字格式"""
        lines: list[str] = []
        channel = self.metadata.get("channel")
        if channel:
            lines.append(f"🔌 Channel: {channel}")
        lines.append(f"⏱️ Execution Time: {self.execution_time}")
        if not self.success:
            lines.append(f"❌ Error: [{self.error_type}] {self.error_message}")
        if self.stdout:
            lines.append(self.stdout)
        return "\n".join(lines)


class MCPError(Exception):
    """MCP 協議專用的錯誤類型"""
    def __init__(
        self,
        code: int,
        message: str,
        data: dict[str, Any] | None = None
    ):
        self.code = code
        self.message = message
        self.data = data
        super().__init__(message)
