"""Provider Protocol 定义与共用的响应解析"""

from __future__ import annotations

import json
from typing import Protocol

import httpx

from ..models import ArticleContext, ProviderResult

NO_IMAGE_MESSAGE = (
    "API returned success, but no image data was found. The model may have returned text "
    "instead. Check server logs for the full API response."
)


class ImageProvider(Protocol):
    async def generate(self, context: ArticleContext) -> ProviderResult: ...


def extract_error_message(response: httpx.Response) -> str:
    """从服务商的 {"error": {"message": ...}} 结构中取错误信息"""
    try:
        data = response.json()
        message = data["error"]["message"]
    except (json.JSONDecodeError, ValueError, KeyError, TypeError):
        return "Could not parse error from API."
    return str(message) if message else "Could not parse error from API."
