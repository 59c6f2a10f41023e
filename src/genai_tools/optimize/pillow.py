"""Pillow 优化器 — 用 Pillow 重新编码 PNG/JPEG 并去掉元数据"""

from __future__ import annotations

import logging
import os
import shutil
import tempfile
from pathlib import Path

from ..models import OptimizerTool, OptimizationOutcome
from .base import ToolStatus, file_size

logger = logging.getLogger("genai_tools.optimize.pillow")

JPEG_QUALITY = 82
PNG_COMPRESS_LEVEL = 9
PNG_PALETTE_COLORS = 256
METADATA_KEYS = ("icc_profile", "exif", "xmp", "XML:com.adobe.xmp", "comment")


class PillowOptimizer:
    """
    JPEG: quality=82 重新编码
    PNG: 量化到 256 色调色板，compress_level=9
    其他可写格式: 按原格式重存

    保存前从 info 中去掉 icc_profile/exif/xmp/comment，不传 pnginfo。
    先写同目录临时文件再 os.replace，失败时原文件保持不变。
    """

    tool = OptimizerTool.PILLOW

    def probe(self) -> ToolStatus:
        try:
            from PIL import features
        except ImportError:
            return ToolStatus(
                available=False,
                message="The Pillow library is not installed. Pillow optimization is not available.",
            )
        if not features.check_codec("zlib"):
            return ToolStatus(
                available=False,
                message="Pillow was built without zlib support. Pillow optimization is not available.",
            )
        return ToolStatus(available=True)

    @staticmethod
    def _strip_metadata(img) -> None:
        for key in METADATA_KEYS:
            img.info.pop(key, None)

    def _encode(self, source: Path, target: Path) -> str:
        """重新编码 source 写到 target，返回检测到的 MIME 类型"""
        from PIL import Image

        Image.init()
        with Image.open(source) as img:
            img.load()
            fmt = img.format or ""
            mime_type = Image.MIME.get(fmt, "")

            if mime_type == "image/jpeg":
                if img.mode not in ("RGB", "L", "CMYK"):
                    img = img.convert("RGB")
                self._strip_metadata(img)
                img.save(target, format="JPEG", quality=JPEG_QUALITY, optimize=True)
            elif mime_type == "image/png":
                if img.mode not in ("RGB", "RGBA"):
                    img = img.convert("RGBA" if "A" in img.getbands() or "transparency" in img.info else "RGB")
                method = Image.Quantize.FASTOCTREE if img.mode == "RGBA" else Image.Quantize.MEDIANCUT
                quantized = img.quantize(colors=PNG_PALETTE_COLORS, method=method)
                self._strip_metadata(quantized)
                quantized.save(target, format="PNG", optimize=True, compress_level=PNG_COMPRESS_LEVEL)
            elif fmt.upper() in Image.SAVE:
                # 其他格式按原格式重存，只去掉元数据
                self._strip_metadata(img)
                img.save(target, format=fmt, save_all=getattr(img, "n_frames", 1) > 1)
            else:
                raise ValueError(f"Unsupported image type: {mime_type or fmt}")
        return mime_type or fmt

    def optimize(self, path: Path) -> OptimizationOutcome:
        status = self.probe()
        if not status.available:
            logger.warning(status.message)
            return OptimizationOutcome(tool=self.tool, attempted=False, succeeded=False, message=status.message)

        try:
            initial_size = file_size(path)
        except OSError:
            logger.error(f"无法读取文件大小: {path}")
            return OptimizationOutcome(
                tool=self.tool, attempted=True, succeeded=False, message="Could not read file size."
            )

        fd, tmp_name = tempfile.mkstemp(prefix=f".{path.stem}-", suffix=path.suffix, dir=path.parent)
        os.close(fd)
        tmp_path = Path(tmp_name)
        try:
            mime_type = self._encode(path, tmp_path)
            shutil.copymode(path, tmp_path)
            os.replace(tmp_path, path)
        except Exception as exc:
            logger.error(f"Pillow 优化失败: {exc}", exc_info=True)
            return OptimizationOutcome(
                tool=self.tool,
                attempted=True,
                succeeded=False,
                initial_size=initial_size,
                final_size=initial_size,
                message=f"Pillow exception: {exc}",
            )
        finally:
            tmp_path.unlink(missing_ok=True)

        final_size = file_size(path)
        logger.info(f"Pillow 优化完成 ({mime_type}): {initial_size:,} → {final_size:,} bytes")
        return OptimizationOutcome(
            tool=self.tool,
            attempted=True,
            succeeded=True,
            initial_size=initial_size,
            final_size=final_size,
        )
