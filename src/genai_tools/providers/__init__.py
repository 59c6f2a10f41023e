from .base import ImageProvider
from .gemini import GeminiImageProvider
from .openai import OpenAIImageProvider

__all__ = ["ImageProvider", "GeminiImageProvider", "OpenAIImageProvider"]
