"""配置加载 — 支持 ${ENV_VAR} 与 ${ENV_VAR:-default} 语法替换环境变量"""

from __future__ import annotations

import os
import re
from dataclasses import dataclass, field
from pathlib import Path

import yaml
from dotenv import load_dotenv

from .exceptions import ConfigError
from .models import OptimizerTool

_ENV_VAR_RE = re.compile(r"\$\{([^}:]+)(?::-([^}]*))?\}")

GEMINI_BASE_URL = "https://generativelanguage.googleapis.com"
GEMINI_MODEL = "gemini-2.0-flash-preview-image-generation"
OPENAI_BASE_URL = "https://api.openai.com"
OPENAI_MODEL = "dall-e-3"
DEFAULT_MANIFEST_URL = "https://raw.githubusercontent.com/diffyweb/wp-genai-tools/main/info.json"


@dataclass(frozen=True)
class ProviderSettings:
    """单个图片服务商的配置；prompt 为空时使用内置模板"""
    api_key: str = ""
    model: str = ""
    base_url: str = ""
    prompt: str = ""
    timeout: float = 60.0


@dataclass(frozen=True)
class OptimizationSettings:
    tool: OptimizerTool = OptimizerTool.NONE
    allow_shell: bool = True
    pngquant_path: str = "pngquant"


@dataclass(frozen=True)
class Settings:
    gemini: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(model=GEMINI_MODEL, base_url=GEMINI_BASE_URL, timeout=60.0)
    )
    openai: ProviderSettings = field(
        default_factory=lambda: ProviderSettings(model=OPENAI_MODEL, base_url=OPENAI_BASE_URL, timeout=90.0)
    )
    optimization: OptimizationSettings = field(default_factory=OptimizationSettings)
    secret: str = ""
    library_path: Path = Path("./data/library.json")
    uploads_dir: Path = Path("./data/uploads")
    log_dir: Path = Path("./data/logs")
    manifest_url: str = DEFAULT_MANIFEST_URL


def _resolve_env_vars(value: object) -> object:
    """递归替换配置中的 ${ENV_VAR} 占位符"""
    if isinstance(value, str):
        def replace(m: re.Match) -> str:
            var, default = m.group(1), m.group(2)
            result = os.environ.get(var, "")
            if result:
                return result
            if default is not None:
                return default
            raise ValueError(f"环境变量未设置: {var}")
        return _ENV_VAR_RE.sub(replace, value)
    if isinstance(value, dict):
        return {k: _resolve_env_vars(v) for k, v in value.items()}
    if isinstance(value, list):
        return [_resolve_env_vars(item) for item in value]
    return value


def load_config(config_path: str | Path = "config.yaml") -> dict:
    """加载并返回配置字典（环境变量已替换）"""
    load_dotenv()
    path = Path(config_path)
    if not path.exists():
        raise FileNotFoundError(f"配置文件不存在: {path}")
    raw = yaml.safe_load(path.read_text(encoding="utf-8")) or {}
    if not isinstance(raw, dict):
        raise ConfigError(f"配置文件格式错误: {path}")
    return _resolve_env_vars(raw)


def _provider_settings(cfg: dict, model: str, base_url: str, timeout: float) -> ProviderSettings:
    return ProviderSettings(
        api_key=str(cfg.get("api_key") or "").strip(),
        model=cfg.get("model") or model,
        base_url=(cfg.get("base_url") or base_url).rstrip("/"),
        prompt=cfg.get("prompt") or "",
        timeout=float(cfg.get("timeout", timeout)),
    )


def load_settings(config_path: str | Path = "config.yaml") -> Settings:
    """加载配置文件并转换为 Settings"""
    config = load_config(config_path)
    providers = config.get("providers", {})
    optimization = config.get("optimization", {})
    library = config.get("library", {})
    output = config.get("output", {})

    return Settings(
        gemini=_provider_settings(providers.get("gemini", {}), GEMINI_MODEL, GEMINI_BASE_URL, 60.0),
        openai=_provider_settings(providers.get("openai", {}), OPENAI_MODEL, OPENAI_BASE_URL, 90.0),
        optimization=OptimizationSettings(
            tool=OptimizerTool.parse(optimization.get("tool")),
            allow_shell=bool(optimization.get("allow_shell", True)),
            pngquant_path=optimization.get("pngquant_path", "pngquant"),
        ),
        secret=str(config.get("security", {}).get("secret", "")),
        library_path=Path(library.get("path", "./data/library.json")),
        uploads_dir=Path(library.get("uploads_dir", "./data/uploads")),
        log_dir=Path(output.get("log_dir", "./data/logs")),
        manifest_url=config.get("update", {}).get("manifest_url", DEFAULT_MANIFEST_URL),
    )
