"""生成请求处理 — 校验请求、选择服务商、调用入库管道并返回固定结构"""

from __future__ import annotations

import logging
import re

from .config import Settings
from .ingest import ImageIngestionPipeline
from .library import MediaLibrary
from .models import Caller, GenerationRequest, IngestionStatus, ProviderName, ResponseEnvelope
from .prompts import build_article_context
from .providers import GeminiImageProvider, ImageProvider, OpenAIImageProvider
from .security import GENERATE_ACTION, NonceVerifier

logger = logging.getLogger("genai_tools.handler")

SUCCESS_MESSAGE = "Featured image generated and set!"
AUTHORIZATION_FAILED = "Authorization failed."
PERMISSION_DENIED = "Permission denied."
INVALID_PROVIDER = "Invalid provider selected."
UNKNOWN_ERROR = "An unknown error occurred."


def normalize_provider_name(raw: str) -> str:
    """小写并只保留 [a-z0-9_-]"""
    return re.sub(r"[^a-z0-9_\-]", "", (raw or "").lower())


def resolve_provider(raw_name: str, settings: Settings) -> ImageProvider | None:
    """按名称构造服务商客户端并注入对应 API Key；未知名称返回 None"""
    try:
        name = ProviderName(normalize_provider_name(raw_name))
    except ValueError:
        return None

    if name is ProviderName.GEMINI:
        cfg = settings.gemini
        return GeminiImageProvider(
            api_key=cfg.api_key,
            model=cfg.model,
            base_url=cfg.base_url,
            prompt_template=cfg.prompt,
            timeout=cfg.timeout,
        )
    cfg = settings.openai
    return OpenAIImageProvider(
        api_key=cfg.api_key,
        model=cfg.model,
        base_url=cfg.base_url,
        prompt_template=cfg.prompt,
        timeout=cfg.timeout,
    )


class GenerationRequestHandler:
    def __init__(
        self,
        settings: Settings,
        library: MediaLibrary,
        verifier: NonceVerifier,
        pipeline: ImageIngestionPipeline,
    ) -> None:
        self._settings = settings
        self._library = library
        self._verifier = verifier
        self._pipeline = pipeline

    async def handle(self, request: GenerationRequest, caller: Caller) -> ResponseEnvelope:
        """任何异常都不会抛出到调用方，统一转换为 ResponseEnvelope"""
        try:
            return await self._handle(request, caller)
        except Exception as exc:
            logger.error(f"处理生成请求时发生未预期错误: {exc}", exc_info=True)
            return ResponseEnvelope(success=False, message=UNKNOWN_ERROR)

    async def _handle(self, request: GenerationRequest, caller: Caller) -> ResponseEnvelope:
        if not self._verifier.verify(request.auth_token, GENERATE_ACTION, caller.user_id):
            logger.warning(f"令牌校验失败: user={caller.user_id}")
            return ResponseEnvelope(success=False, message=AUTHORIZATION_FAILED)

        if not self._library.user_can_edit(caller, request.article_id):
            logger.warning(f"无权编辑文章: user={caller.user_id} article={request.article_id}")
            return ResponseEnvelope(success=False, message=PERMISSION_DENIED)

        provider = resolve_provider(request.provider_name, self._settings)
        if provider is None:
            logger.warning(f"未知的服务商: {request.provider_name!r}")
            return ResponseEnvelope(success=False, message=INVALID_PROVIDER)

        article = self._library.get_article(request.article_id)
        if article is None:
            return ResponseEnvelope(success=False, message=PERMISSION_DENIED)

        logger.info(f"开始为文章 {article.id} 生成特色图 (provider={request.provider_name})")
        generated = await provider.generate(build_article_context(article))
        if not generated.ok:
            return ResponseEnvelope(success=False, message=generated.message)

        result = self._pipeline.ingest(generated.image, article.id, article.title)
        if result.status is IngestionStatus.SUCCESS:
            return ResponseEnvelope(
                success=True,
                message=SUCCESS_MESSAGE,
                attachment_id=result.attachment_id,
                optimization=result.optimization,
            )
        return ResponseEnvelope(success=False, message=result.message or UNKNOWN_ERROR)
