"""提示词模板 — 从文章构造上下文并替换占位符"""

from __future__ import annotations

import re

from bs4 import BeautifulSoup

from .models import Article, ArticleContext, ProviderName

SUMMARY_MAX_CHARS = 1000

_PLACEHOLDER_RE = re.compile(r"\{\{(?:post_title|keywords_string|post_content_summary)\}\}")

DEFAULT_GEMINI_PROMPT = (
    "Task: Generate a single photorealistic image. Do not return text. "
    "The image should be a high-quality featured image for a blog post, visually compelling "
    "and relevant to the content. Do not include any text, logos, or watermarks in the image.\n\n"
    "POST TITLE: {{post_title}}\n\n"
    "KEYWORDS: {{keywords_string}}\n\n"
    "CONTENT SUMMARY: {{post_content_summary}}"
)

DEFAULT_OPENAI_PROMPT = (
    "Generate a single, photorealistic, high-quality featured image for a blog post. "
    "The image must be visually compelling, relevant to the content, and contain no text, "
    "logos, or watermarks. The style should be suitable for a professional blog.\n\n"
    "POST TITLE: {{post_title}}\n\n"
    "KEYWORDS: {{keywords_string}}\n\n"
    "CONTENT SUMMARY: {{post_content_summary}}"
)

DEFAULT_PROMPTS = {
    ProviderName.GEMINI: DEFAULT_GEMINI_PROMPT,
    ProviderName.OPENAI: DEFAULT_OPENAI_PROMPT,
}


def strip_markup(content: str) -> str:
    """去掉 HTML 标签（含 script/style 内容），合并空白"""
    soup = BeautifulSoup(content, "html.parser")
    for tag in soup(["script", "style"]):
        tag.decompose()
    return " ".join(soup.get_text(" ").split())


def build_article_context(article: Article, max_chars: int = SUMMARY_MAX_CHARS) -> ArticleContext:
    text = strip_markup(article.content)
    return ArticleContext(
        title=article.title,
        body_summary=text[:max_chars] + "...",
        keywords=tuple(article.tags),
    )


def render_prompt(template: str, context: ArticleContext) -> str:
    """
    字面替换占位符，不做转义也不递归展开。

    所有占位符一次性替换，替换值里出现的占位符不会被再次展开。
    """
    placeholders = {
        "{{post_title}}": context.title,
        "{{keywords_string}}": context.keywords_string,
        "{{post_content_summary}}": context.body_summary,
    }
    return _PLACEHOLDER_RE.sub(lambda m: placeholders[m.group(0)], template)


def prompt_template_for(provider: ProviderName, override: str = "") -> str:
    return override or DEFAULT_PROMPTS[provider]
