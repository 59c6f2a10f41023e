"""自定义异常 — 组件内部抛出，在组件边界转换为结果对象"""

from __future__ import annotations

from .models import ErrorKind


class GenAIToolsError(Exception):
    """genai-tools 基础异常"""


class ConfigError(GenAIToolsError):
    """配置缺失或格式错误"""


class ProviderError(GenAIToolsError):
    """图片服务商调用失败，kind 区分失败类型"""

    def __init__(self, kind: ErrorKind, message: str) -> None:
        super().__init__(message)
        self.kind = kind
        self.message = message


class LibraryError(GenAIToolsError):
    """媒体库读写失败"""


class StorageWriteError(LibraryError):
    """图片文件写入媒体库失败"""


class AttachmentRegistrationError(LibraryError):
    """附件登记失败"""
