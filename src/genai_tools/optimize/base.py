"""图片优化器 Protocol 与空实现"""

from __future__ import annotations

from dataclasses import dataclass
from pathlib import Path
from typing import Protocol

from ..models import OptimizerTool, OptimizationOutcome


@dataclass(frozen=True)
class ToolStatus:
    """可用性探测结果；不可用时 message 说明原因"""
    available: bool
    message: str = ""


class ImageOptimizer(Protocol):
    tool: OptimizerTool

    def probe(self) -> ToolStatus: ...

    def optimize(self, path: Path) -> OptimizationOutcome: ...


def file_size(path: Path) -> int:
    """每次都重新 stat，优化器可能已原地改写文件"""
    return path.stat().st_size


class NullOptimizer:
    """不做任何处理，始终成功且大小不变"""

    tool = OptimizerTool.NONE

    def probe(self) -> ToolStatus:
        return ToolStatus(available=True)

    def optimize(self, path: Path) -> OptimizationOutcome:
        try:
            size = file_size(path)
        except OSError:
            size = 0
        return OptimizationOutcome(
            tool=self.tool,
            attempted=False,
            succeeded=True,
            initial_size=size,
            final_size=size,
        )
