"""pngquant 优化器 — 调用命令行 pngquant 对 PNG 做有损压缩"""

from __future__ import annotations

import logging
import shutil
import subprocess
from pathlib import Path

from ..models import OptimizerTool, OptimizationOutcome
from .base import ToolStatus, file_size

logger = logging.getLogger("genai_tools.optimize.pngquant")

QUALITY_RANGE = "65-80"
# 98: 结果比原图大被跳过；99: 质量达不到下限。两者都不算失败
SUCCESS_EXIT_CODES = frozenset({0, 98, 99})


class PngquantOptimizer:
    tool = OptimizerTool.PNGQUANT

    def __init__(self, binary: str = "pngquant", allow_shell: bool = True, timeout: float = 60.0) -> None:
        self._binary = binary
        self._allow_shell = allow_shell
        self._timeout = timeout

    def _resolve_binary(self) -> str | None:
        return shutil.which(self._binary)

    def probe(self) -> ToolStatus:
        if not self._allow_shell:
            return ToolStatus(
                available=False,
                message="Shell execution is disabled in the configuration. PNG optimization is not available.",
            )
        if self._resolve_binary() is None:
            return ToolStatus(
                available=False,
                message="The pngquant utility could not be found on your server. PNG optimization is not available.",
            )
        return ToolStatus(available=True)

    def build_command(self, binary: str, path: Path) -> list[str]:
        return [
            binary,
            "--force",
            f"--quality={QUALITY_RANGE}",
            "--skip-if-larger",
            "--output",
            str(path),
            "--",
            str(path),
        ]

    def _failure(self, message: str, initial_size: int = 0) -> OptimizationOutcome:
        return OptimizationOutcome(
            tool=self.tool,
            attempted=True,
            succeeded=False,
            initial_size=initial_size,
            final_size=initial_size,
            message=message,
        )

    def optimize(self, path: Path) -> OptimizationOutcome:
        status = self.probe()
        if not status.available:
            logger.warning(status.message)
            return OptimizationOutcome(
                tool=self.tool,
                attempted=False,
                succeeded=False,
                message=status.message,
            )

        try:
            initial_size = file_size(path)
        except OSError:
            logger.error(f"无法读取文件大小: {path}")
            return self._failure("Could not read file size.")

        command = self.build_command(self._resolve_binary() or self._binary, path)
        try:
            completed = subprocess.run(
                command,
                capture_output=True,
                text=True,
                timeout=self._timeout,
                check=False,
            )
        except (OSError, subprocess.TimeoutExpired) as exc:
            logger.error(f"pngquant 执行失败: {exc}")
            return self._failure("pngquant execution failed.", initial_size)

        if completed.returncode not in SUCCESS_EXIT_CODES:
            output = "\n".join(filter(None, (completed.stdout, completed.stderr))).strip()
            logger.error(f"pngquant 优化失败，退出码 {completed.returncode}，输出: {output}")
            return self._failure("pngquant execution failed.", initial_size)

        final_size = file_size(path)
        logger.info(f"pngquant 优化完成: {initial_size:,} → {final_size:,} bytes")
        return OptimizationOutcome(
            tool=self.tool,
            attempted=True,
            succeeded=True,
            initial_size=initial_size,
            final_size=final_size,
        )
