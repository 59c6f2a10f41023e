"""Gemini 图片生成 — 通过 Gemini 原生 generateContent 接口生成特色图"""

from __future__ import annotations

import logging

import httpx

from ..config import GEMINI_BASE_URL, GEMINI_MODEL
from ..exceptions import ProviderError
from ..models import ArticleContext, ErrorKind, GeneratedImage, ProviderName, ProviderResult
from ..prompts import prompt_template_for, render_prompt
from .base import NO_IMAGE_MESSAGE, extract_error_message

logger = logging.getLogger("genai_tools.providers.gemini")


class GeminiImageProvider:
    """
    使用 Gemini 原生 API 格式:
    POST /v1beta/models/{model}:generateContent?key={api_key}

    响应: candidates[0].content.parts[*].inlineData.data，取第一个
    """

    def __init__(
        self,
        api_key: str,
        model: str = GEMINI_MODEL,
        base_url: str = GEMINI_BASE_URL,
        prompt_template: str = "",
        timeout: float = 60.0,
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._base_url = base_url.rstrip("/")
        self._template = prompt_template_for(ProviderName.GEMINI, prompt_template)
        self._timeout = timeout

    @property
    def url(self) -> str:
        return f"{self._base_url}/v1beta/models/{self._model}:generateContent"

    def build_body(self, prompt: str) -> dict:
        return {
            "contents": [{"parts": [{"text": prompt}]}],
            "generationConfig": {"responseModalities": ["TEXT", "IMAGE"]},
        }

    @staticmethod
    def _find_inline_data(data: dict) -> tuple[str, str] | None:
        """按顺序扫描 parts，返回第一个 (base64, mimeType)"""
        candidates = data.get("candidates") or []
        if not candidates:
            return None
        parts = (candidates[0].get("content") or {}).get("parts") or []
        for part in parts:
            inline_data = part.get("inlineData") or {}
            b64_data = inline_data.get("data")
            if isinstance(b64_data, str) and b64_data:
                return b64_data, inline_data.get("mimeType", "image/png")
        return None

    async def _request(self, prompt: str) -> GeneratedImage:
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                response = await client.post(
                    self.url,
                    params={"key": self._api_key},
                    headers={"Content-Type": "application/json"},
                    json=self.build_body(prompt),
                )
            except httpx.RequestError as exc:
                raise ProviderError(ErrorKind.NETWORK_ERROR, f"HTTP request failed: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(
                ErrorKind.PROVIDER_ERROR,
                f"Gemini API Error (Code {response.status_code}): {extract_error_message(response)}",
            )

        try:
            found = self._find_inline_data(response.json())
        except (ValueError, AttributeError, TypeError, KeyError, IndexError) as exc:
            logger.warning(f"解析 Gemini 响应失败: {exc}")
            found = None

        if found is None:
            logger.error(f"Gemini 响应中没有图片数据，完整响应: {response.text}")
            raise ProviderError(ErrorKind.NO_IMAGE_RETURNED, NO_IMAGE_MESSAGE)

        b64_data, mime_type = found
        return GeneratedImage(b64_data=b64_data, mime_hint=mime_type, provider=ProviderName.GEMINI)

    async def generate(self, context: ArticleContext) -> ProviderResult:
        """生成一张特色图；任何失败都以 ProviderResult.failure 返回"""
        if not self._api_key:
            return ProviderResult.failure(ErrorKind.MISSING_CREDENTIAL, "Gemini API key is not set.")

        prompt = render_prompt(self._template, context)
        try:
            image = await self._request(prompt)
        except ProviderError as exc:
            logger.warning(f"Gemini 图片生成失败 [{exc.kind.value}]: {exc.message}")
            return ProviderResult.failure(exc.kind, exc.message)
        return ProviderResult.success(image)
