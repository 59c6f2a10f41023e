"""图片入库管道 — 解码 → 保存 → 优化 → 登记附件 → 设为特色图"""

from __future__ import annotations

import base64
import binascii
import logging
import re
import time
import unicodedata
from pathlib import Path

from .exceptions import AttachmentRegistrationError, LibraryError, StorageWriteError
from .library import MediaLibrary
from .models import (
    GeneratedImage,
    IngestionResult,
    IngestionStatus,
    OptimizationOutcome,
)
from .optimize.base import ImageOptimizer, NullOptimizer

logger = logging.getLogger("genai_tools.ingest")

SAVE_FAILED_MESSAGE = "Could not save image to media library."
ATTACHMENT_FAILED_MESSAGE = "Could not create attachment."
IMAGE_EXTENSION = ".png"


def decode_image_data(b64_data: str) -> bytes:
    """base64 解码；格式错误时按空字节处理"""
    try:
        return base64.b64decode(b64_data)
    except (binascii.Error, ValueError) as exc:
        logger.warning(f"图片 base64 解码失败，按空数据处理: {exc}")
        return b""


def slugify(text: str) -> str:
    normalized = unicodedata.normalize("NFKD", text).encode("ascii", "ignore").decode("ascii")
    slug = re.sub(r"[^a-z0-9]+", "-", normalized.lower()).strip("-")
    return slug or "image"


def build_filename(title: str, timestamp: float | None = None) -> str:
    """标题 slug + 秒级时间戳，避免同一文章多次生成时重名"""
    ts = int(timestamp if timestamp is not None else time.time())
    return f"{slugify(title)}-{ts}{IMAGE_EXTENSION}"


class ImageIngestionPipeline:
    def __init__(self, library: MediaLibrary, optimizer: ImageOptimizer | None = None) -> None:
        self._library = library
        self._optimizer = optimizer or NullOptimizer()

    def _run_optimizer(self, image_path: Path) -> OptimizationOutcome:
        """优化失败不影响后续步骤"""
        try:
            return self._optimizer.optimize(image_path)
        except Exception as exc:
            logger.error(f"图片优化异常: {exc}", exc_info=True)
            return OptimizationOutcome(
                tool=self._optimizer.tool,
                attempted=True,
                succeeded=False,
                message=f"Optimization failed: {exc}",
            )

    def ingest(self, image: GeneratedImage, article_id: int, title: str) -> IngestionResult:
        """
        执行入库步骤，返回 IngestionResult。

        Args:
            image: 服务商返回的图片
            article_id: 所属文章 ID
            title: 文章标题，用于文件名和附件标题

        Returns:
            成功时带 attachment_id 和优化结果；失败时只带错误信息
        """
        data = decode_image_data(image.b64_data)
        filename = build_filename(title)

        try:
            stored = self._library.write_file(filename, data)
        except StorageWriteError as exc:
            logger.error(f"图片保存失败: {exc}")
            return IngestionResult.error(SAVE_FAILED_MESSAGE)

        optimization = self._run_optimizer(stored.path)
        if optimization.attempted and not optimization.succeeded:
            logger.warning(f"图片优化未成功，继续创建附件: {optimization.message}")

        try:
            attachment_id = self._library.register_attachment(
                stored.path, stored.mime_type, title, article_id
            )
        except AttachmentRegistrationError as exc:
            logger.error(f"附件登记失败: {exc}")
            return IngestionResult.error(ATTACHMENT_FAILED_MESSAGE)

        try:
            self._library.generate_attachment_metadata(attachment_id)
            self._library.set_alt_text(attachment_id, f"{title} featured image.")
            self._library.set_featured_image(article_id, attachment_id)
        except (LibraryError, OSError) as exc:
            logger.error(f"设置特色图失败: {exc}")
            return IngestionResult.error(ATTACHMENT_FAILED_MESSAGE)

        logger.info(f"文章 {article_id} 特色图已设置: 附件 {attachment_id}")
        return IngestionResult(
            status=IngestionStatus.SUCCESS,
            attachment_id=attachment_id,
            optimization=optimization,
        )
