from .base import ImageOptimizer, NullOptimizer, ToolStatus
from .pillow import PillowOptimizer
from .pngquant import PngquantOptimizer
from .selector import build_optimizer, check_availability, select_optimizer

__all__ = [
    "ImageOptimizer",
    "NullOptimizer",
    "PillowOptimizer",
    "PngquantOptimizer",
    "ToolStatus",
    "build_optimizer",
    "check_availability",
    "select_optimizer",
]
