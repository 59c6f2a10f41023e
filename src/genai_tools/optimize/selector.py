"""优化器选择 — 按配置选出唯一的优化器"""

from __future__ import annotations

from ..config import OptimizationSettings
from ..models import OptimizerTool
from .base import ImageOptimizer, NullOptimizer, ToolStatus
from .pillow import PillowOptimizer
from .pngquant import PngquantOptimizer


def build_optimizer(tool: OptimizerTool, settings: OptimizationSettings | None = None) -> ImageOptimizer:
    settings = settings or OptimizationSettings()
    if tool is OptimizerTool.PNGQUANT:
        return PngquantOptimizer(binary=settings.pngquant_path, allow_shell=settings.allow_shell)
    if tool is OptimizerTool.PILLOW:
        return PillowOptimizer()
    return NullOptimizer()


def select_optimizer(settings: OptimizationSettings) -> ImageOptimizer:
    """配置中选定的优化器；none 或未知取值返回 NullOptimizer"""
    return build_optimizer(settings.tool, settings)


def check_availability(tool: OptimizerTool, settings: OptimizationSettings | None = None) -> ToolStatus:
    return build_optimizer(tool, settings).probe()
