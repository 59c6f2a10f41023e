"""CLI 入口"""

from __future__ import annotations

import asyncio
import json
import logging
import secrets
from pathlib import Path

import click
import yaml
from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .config import Settings, load_settings
from .exceptions import ConfigError
from .models import OptimizationOutcome, OptimizerTool

console = Console()


def _setup_logging(log_dir: Path) -> None:
    """配置日志输出到文件和控制台"""
    root_logger = logging.getLogger("genai_tools")
    if root_logger.handlers:
        return

    log_dir.mkdir(parents=True, exist_ok=True)
    formatter = logging.Formatter(
        "%(asctime)s [%(levelname)s] %(message)s",
        datefmt="%Y-%m-%d %H:%M:%S",
    )

    file_handler = logging.FileHandler(log_dir / "genai-tools.log", encoding="utf-8")
    file_handler.setFormatter(formatter)

    stream_handler = logging.StreamHandler()
    stream_handler.setFormatter(formatter)
    stream_handler.setLevel(logging.WARNING)

    root_logger.setLevel(logging.INFO)
    root_logger.addHandler(file_handler)
    root_logger.addHandler(stream_handler)


def _load(config: str) -> Settings:
    try:
        return load_settings(config)
    except (FileNotFoundError, ValueError, ConfigError, yaml.YAMLError) as exc:
        console.print(f"[bold red]配置加载失败:[/] {escape(str(exc))}")
        raise SystemExit(1)


def _mask(key: str) -> str:
    if not key:
        return "[red]未设置[/]"
    return f"{key[:4]}…{key[-4:]}" if len(key) > 12 else "****"


def describe_optimization(outcome: OptimizationOutcome | None) -> str:
    """优化结果的一行摘要"""
    if outcome is None or not outcome.attempted:
        return ""
    if outcome.reduced:
        initial_kb = outcome.initial_size / 1024
        final_kb = outcome.final_size / 1024
        reduction = 100 - (outcome.final_size / outcome.initial_size * 100)
        return f"Optimized: {initial_kb:.1f} KB → {final_kb:.1f} KB ({reduction:.0f}% reduction)"
    if outcome.succeeded:
        return "Optimization ran, but did not reduce file size."
    return f"Optimization skipped: {outcome.message}"


@click.group()
def cli():
    """GenAI Tools — 为文章生成特色图"""
    pass


@cli.command()
@click.option("--article-id", type=int, required=True, help="文章 ID")
@click.option("--provider", default="gemini", show_default=True, help="图片服务商 (gemini | openai)")
@click.option("--user", "user_id", default="admin", show_default=True, help="调用者用户 ID")
@click.option("--role", default="administrator", show_default=True, help="调用者角色")
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
@click.option("--json", "as_json", is_flag=True, help="以 JSON 输出结果")
def generate(article_id: int, provider: str, user_id: str, role: str, config: str, as_json: bool):
    """为文章生成特色图并设置"""
    from .handler import GenerationRequestHandler
    from .ingest import ImageIngestionPipeline
    from .library import JsonMediaLibrary
    from .models import Caller, GenerationRequest
    from .optimize import select_optimizer
    from .security import GENERATE_ACTION, NonceVerifier

    settings = _load(config)
    _setup_logging(settings.log_dir)

    library = JsonMediaLibrary(settings.library_path, settings.uploads_dir)
    verifier = NonceVerifier(settings.secret or secrets.token_hex(16))
    pipeline = ImageIngestionPipeline(library, select_optimizer(settings.optimization))
    handler = GenerationRequestHandler(settings, library, verifier, pipeline)

    caller = Caller(user_id=user_id, role=role)
    request = GenerationRequest(
        article_id=article_id,
        provider_name=provider,
        auth_token=verifier.create(GENERATE_ACTION, user_id),
    )

    if not as_json:
        console.print("Generating, please wait...")
    envelope = asyncio.run(handler.handle(request, caller))

    if as_json:
        click.echo(json.dumps(envelope.to_dict(), ensure_ascii=False, indent=2))
    elif envelope.success:
        console.print(f"[green]{envelope.message}[/] 附件 ID: {envelope.attachment_id}")
        summary = describe_optimization(envelope.optimization)
        if summary:
            console.print(f"[dim]{summary}[/]")
    else:
        console.print(f"[bold red]Error:[/] {envelope.message}")

    if not envelope.success:
        raise SystemExit(1)


@cli.command("add-article")
@click.option("--title", required=True, help="文章标题")
@click.option("--content", default="", help="文章正文（可含 HTML）")
@click.option("--content-file", type=click.Path(exists=True, dir_okay=False), help="从文件读取正文")
@click.option("--tag", "tags", multiple=True, help="关键词，可重复")
@click.option("--author", default="admin", show_default=True, help="作者用户 ID")
@click.option("--status", default="draft", show_default=True)
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
def add_article(title: str, content: str, content_file: str | None, tags: tuple[str, ...],
                author: str, status: str, config: str):
    """向本地媒体库添加一篇文章"""
    from .library import JsonMediaLibrary

    settings = _load(config)
    if content_file:
        content = Path(content_file).read_text(encoding="utf-8")
    library = JsonMediaLibrary(settings.library_path, settings.uploads_dir)
    article = library.add_article(title, content, tags=tags, status=status, author_id=author)
    console.print(f"[green]文章已添加[/] ID: {article.id}")


@cli.command()
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
def status(config: str):
    """查看 API Key 与优化工具的可用状态"""
    from .optimize import check_availability

    settings = _load(config)

    keys = Table(title="图片服务商")
    keys.add_column("服务商")
    keys.add_column("模型")
    keys.add_column("API Key")
    keys.add_row("Google Gemini", settings.gemini.model, _mask(settings.gemini.api_key))
    keys.add_row("OpenAI DALL-E", settings.openai.model, _mask(settings.openai.api_key))
    console.print(keys)

    tools = Table(title="图片优化")
    tools.add_column("工具")
    tools.add_column("已选中")
    tools.add_column("状态")
    for tool in (OptimizerTool.PNGQUANT, OptimizerTool.PILLOW):
        tool_status = check_availability(tool, settings.optimization)
        state = "[green]可用[/]" if tool_status.available else f"[red]{tool_status.message}[/]"
        selected = "✓" if settings.optimization.tool is tool else ""
        tools.add_row(tool.value, selected, state)
    console.print(tools)
    if settings.optimization.tool is OptimizerTool.NONE:
        console.print("[dim]当前未启用图片优化[/]")


@cli.command("check-update")
@click.option("--config", default="config.yaml", show_default=True, help="配置文件路径")
def check_update(config: str):
    """检查是否有新版本"""
    from .updater import __version__, check_for_update

    settings = _load(config)
    info = asyncio.run(check_for_update(__version__, settings.manifest_url))
    if info is None:
        console.print(f"[green]已是最新版本[/] ({__version__})")
        return
    console.print(f"[yellow]发现新版本[/] {info.new_version}（当前 {__version__}）")
    if info.package_url:
        console.print(f"下载地址: {info.package_url}")


if __name__ == "__main__":
    cli()
