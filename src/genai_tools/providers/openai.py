"""OpenAI DALL-E 图片生成 — 通过 images/generations 接口生成特色图"""

from __future__ import annotations

import logging

import httpx

from ..config import OPENAI_BASE_URL, OPENAI_MODEL
from ..exceptions import ProviderError
from ..models import ArticleContext, ErrorKind, GeneratedImage, ProviderName, ProviderResult
from ..prompts import prompt_template_for, render_prompt
from .base import NO_IMAGE_MESSAGE, extract_error_message

logger = logging.getLogger("genai_tools.providers.openai")


class OpenAIImageProvider:
    """
    OpenAI 图片接口：
      endpoint: {base_url}/v1/images/generations
      认证: Authorization: Bearer {api_key}
      响应: data[0].b64_json

    DALL-E 3 出图较慢，默认超时 90 秒。
    """

    def __init__(
        self,
        api_key: str,
        model: str = OPENAI_MODEL,
        base_url: str = OPENAI_BASE_URL,
        prompt_template: str = "",
        timeout: float = 90.0,
        image_size: str = "1024x1024",
    ) -> None:
        self._api_key = api_key
        self._model = model
        self._template = prompt_template_for(ProviderName.OPENAI, prompt_template)
        self._timeout = timeout
        self._image_size = image_size
        base = base_url.rstrip("/")
        if base.endswith("/images/generations"):
            self._url = base
        else:
            self._url = f"{base}/v1/images/generations"

    @property
    def url(self) -> str:
        return self._url

    def build_body(self, prompt: str) -> dict:
        return {
            "model": self._model,
            "prompt": prompt,
            "n": 1,
            "size": self._image_size,
            "response_format": "b64_json",
        }

    async def _request(self, prompt: str) -> GeneratedImage:
        headers = {
            "Authorization": f"Bearer {self._api_key}",
            "Content-Type": "application/json",
        }
        async with httpx.AsyncClient(timeout=self._timeout) as client:
            try:
                response = await client.post(self._url, headers=headers, json=self.build_body(prompt))
            except httpx.RequestError as exc:
                raise ProviderError(ErrorKind.NETWORK_ERROR, f"HTTP request failed: {exc}") from exc

        if response.status_code != 200:
            raise ProviderError(
                ErrorKind.PROVIDER_ERROR,
                f"OpenAI API Error (Code {response.status_code}): {extract_error_message(response)}",
            )

        b64_data = None
        try:
            images = response.json().get("data") or []
            if images:
                b64_data = images[0].get("b64_json")
        except (ValueError, AttributeError, TypeError, KeyError, IndexError) as exc:
            logger.warning(f"解析 OpenAI 响应失败: {exc}")

        if not isinstance(b64_data, str) or not b64_data:
            logger.error(f"OpenAI 响应中没有图片数据，完整响应: {response.text}")
            raise ProviderError(ErrorKind.NO_IMAGE_RETURNED, NO_IMAGE_MESSAGE)

        return GeneratedImage(b64_data=b64_data, mime_hint="image/png", provider=ProviderName.OPENAI)

    async def generate(self, context: ArticleContext) -> ProviderResult:
        if not self._api_key:
            return ProviderResult.failure(ErrorKind.MISSING_CREDENTIAL, "OpenAI API key is not set.")

        prompt = render_prompt(self._template, context)
        try:
            image = await self._request(prompt)
        except ProviderError as exc:
            logger.warning(f"OpenAI 图片生成失败 [{exc.kind.value}]: {exc.message}")
            return ProviderResult.failure(exc.kind, exc.message)
        return ProviderResult.success(image)
