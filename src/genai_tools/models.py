"""核心数据模型 — 全部使用 frozen dataclass 保证不可变性"""

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from enum import Enum
from pathlib import Path
from typing import Any


class ProviderName(str, Enum):
    GEMINI = "gemini"
    OPENAI = "openai"


class OptimizerTool(str, Enum):
    NONE = "none"
    PNGQUANT = "pngquant"
    PILLOW = "pillow"

    @classmethod
    def parse(cls, value: str | None) -> OptimizerTool:
        """未知或未设置的取值一律视为 none"""
        try:
            return cls((value or "").strip().lower())
        except ValueError:
            return cls.NONE


class ErrorKind(str, Enum):
    MISSING_CREDENTIAL = "missing_credential"
    NETWORK_ERROR = "network_error"
    PROVIDER_ERROR = "provider_error"
    NO_IMAGE_RETURNED = "no_image_returned"
    STORAGE_WRITE_ERROR = "storage_write_error"
    ATTACHMENT_REGISTRATION_ERROR = "attachment_registration_error"
    OPTIMIZATION_FAILURE = "optimization_failure"
    AUTHORIZATION_FAILURE = "authorization_failure"
    PERMISSION_DENIED = "permission_denied"
    INVALID_PROVIDER = "invalid_provider"


class IngestionStatus(str, Enum):
    SUCCESS = "success"
    ERROR = "error"


@dataclass(frozen=True)
class Caller:
    """发起请求的用户身份"""
    user_id: str
    role: str = "author"             # "administrator" | "editor" | "author" | "subscriber"


@dataclass(frozen=True)
class GenerationRequest:
    """一次点击生成的请求，不持久化"""
    article_id: int
    provider_name: str
    auth_token: str


@dataclass(frozen=True)
class Article:
    """媒体库中的文章"""
    id: int
    title: str
    content: str
    tags: tuple[str, ...] = ()
    status: str = "draft"
    author_id: str = ""
    featured_image_id: int | None = None
    created_at: str = field(default_factory=lambda: datetime.now().isoformat())


@dataclass(frozen=True)
class ArticleContext:
    """从文章派生的只读提示词上下文"""
    title: str
    body_summary: str
    keywords: tuple[str, ...] = ()

    @property
    def keywords_string(self) -> str:
        return ", ".join(self.keywords)


@dataclass(frozen=True)
class GeneratedImage:
    """服务商返回的图片（base64 原文）"""
    b64_data: str
    mime_hint: str
    provider: ProviderName


@dataclass(frozen=True)
class ProviderResult:
    """ProviderClient.generate 的结果：image 与 error_kind 二选一"""
    image: GeneratedImage | None = None
    error_kind: ErrorKind | None = None
    message: str = ""

    @property
    def ok(self) -> bool:
        return self.image is not None

    @classmethod
    def success(cls, image: GeneratedImage) -> ProviderResult:
        return cls(image=image)

    @classmethod
    def failure(cls, kind: ErrorKind, message: str) -> ProviderResult:
        return cls(error_kind=kind, message=message)


@dataclass(frozen=True)
class StoredFile:
    """写入上传目录后的文件"""
    path: Path
    mime_type: str


@dataclass(frozen=True)
class OptimizationOutcome:
    """一次优化的结果；final_size 仅在 succeeded 时有意义"""
    tool: OptimizerTool
    attempted: bool
    succeeded: bool
    initial_size: int = 0
    final_size: int = 0
    message: str = ""

    @property
    def reduced(self) -> bool:
        return self.succeeded and self.final_size < self.initial_size

    def to_dict(self) -> dict[str, Any]:
        data = asdict(self)
        data["tool"] = self.tool.value
        return data


@dataclass(frozen=True)
class IngestionResult:
    """入库管道的终态结果"""
    status: IngestionStatus
    attachment_id: int | None = None
    message: str = ""
    optimization: OptimizationOutcome | None = None

    @classmethod
    def error(cls, message: str) -> IngestionResult:
        return cls(status=IngestionStatus.ERROR, message=message)


@dataclass(frozen=True)
class ResponseEnvelope:
    """返回给调用方的固定结构"""
    success: bool
    message: str
    attachment_id: int | None = None
    optimization: OptimizationOutcome | None = None

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {"message": self.message}
        if self.success:
            data["attachment_id"] = self.attachment_id
            data["optimization"] = self.optimization.to_dict() if self.optimization else None
        return {"success": self.success, "data": data}
