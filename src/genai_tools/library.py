"""本地媒体库 — JSON 索引 + 上传目录，提供文章、附件与特色图存取"""

from __future__ import annotations

import json
import logging
import mimetypes
import os
from dataclasses import asdict
from datetime import datetime
from pathlib import Path
from typing import Any, Protocol

from .exceptions import AttachmentRegistrationError, LibraryError, StorageWriteError
from .models import Article, Caller, StoredFile

logger = logging.getLogger("genai_tools.library")

ALLOWED_MIME_TYPES = frozenset({"image/png", "image/jpeg", "image/gif", "image/webp"})
_EDIT_ANY_ROLES = frozenset({"administrator", "editor"})
_EDIT_OWN_ROLES = frozenset({"author", "contributor"})


class MediaLibrary(Protocol):
    def get_article(self, article_id: int) -> Article | None: ...

    def user_can_edit(self, caller: Caller, article_id: int) -> bool: ...

    def write_file(self, name: str, data: bytes) -> StoredFile: ...

    def register_attachment(self, path: Path, mime_type: str, title: str, owner_id: int) -> int: ...

    def generate_attachment_metadata(self, attachment_id: int) -> dict[str, Any]: ...

    def set_alt_text(self, attachment_id: int, alt_text: str) -> None: ...

    def set_featured_image(self, owner_id: int, attachment_id: int) -> None: ...


def _article_from_record(record: dict) -> Article:
    return Article(
        id=int(record["id"]),
        title=record.get("title", ""),
        content=record.get("content", ""),
        tags=tuple(record.get("tags", [])),
        status=record.get("status", "draft"),
        author_id=record.get("author_id", ""),
        featured_image_id=record.get("featured_image_id"),
        created_at=record.get("created_at", ""),
    )


class JsonMediaLibrary:
    """
    索引文件结构:
      {"next_id": 3, "articles": {"1": {...}}, "attachments": {"2": {...}}}

    文章与附件共用一个 ID 序列；上传文件按 uploads/YYYY/MM/ 存放。
    """

    def __init__(self, index_path: str | Path, uploads_dir: str | Path) -> None:
        self._index_path = Path(index_path)
        self._uploads_dir = Path(uploads_dir)

    @property
    def uploads_dir(self) -> Path:
        return self._uploads_dir

    # ─── 索引读写 ─────────────────────────────────────────

    def _load(self) -> dict:
        if not self._index_path.exists():
            return {"next_id": 1, "articles": {}, "attachments": {}}
        try:
            data = json.loads(self._index_path.read_text(encoding="utf-8"))
        except json.JSONDecodeError as exc:
            raise LibraryError(f"媒体库索引格式错误: {self._index_path}") from exc
        data.setdefault("next_id", 1)
        data.setdefault("articles", {})
        data.setdefault("attachments", {})
        return data

    def _save(self, data: dict) -> None:
        self._index_path.parent.mkdir(parents=True, exist_ok=True)
        tmp_path = self._index_path.with_suffix(self._index_path.suffix + ".tmp")
        tmp_path.write_text(json.dumps(data, ensure_ascii=False, indent=2), encoding="utf-8")
        os.replace(tmp_path, self._index_path)

    @staticmethod
    def _take_id(data: dict) -> int:
        new_id = int(data["next_id"])
        data["next_id"] = new_id + 1
        return new_id

    # ─── 文章 ─────────────────────────────────────────────

    def add_article(
        self,
        title: str,
        content: str,
        tags: tuple[str, ...] = (),
        status: str = "draft",
        author_id: str = "",
    ) -> Article:
        data = self._load()
        article = Article(
            id=self._take_id(data),
            title=title,
            content=content,
            tags=tuple(tags),
            status=status,
            author_id=author_id,
        )
        record = asdict(article)
        record["tags"] = list(article.tags)
        data["articles"][str(article.id)] = record
        self._save(data)
        return article

    def get_article(self, article_id: int) -> Article | None:
        record = self._load()["articles"].get(str(article_id))
        return _article_from_record(record) if record else None

    def list_articles(self) -> tuple[Article, ...]:
        records = self._load()["articles"].values()
        return tuple(sorted((_article_from_record(r) for r in records), key=lambda a: a.id))

    def user_can_edit(self, caller: Caller, article_id: int) -> bool:
        """administrator/editor 可编辑任意文章，author/contributor 只能编辑自己的"""
        article = self.get_article(article_id)
        if article is None:
            return False
        role = caller.role.lower()
        if role in _EDIT_ANY_ROLES:
            return True
        return role in _EDIT_OWN_ROLES and bool(caller.user_id) and caller.user_id == article.author_id

    # ─── 文件与附件 ───────────────────────────────────────

    def _unique_path(self, directory: Path, name: str) -> Path:
        candidate = directory / name
        stem, suffix = candidate.stem, candidate.suffix
        counter = 1
        while candidate.exists():
            candidate = directory / f"{stem}-{counter}{suffix}"
            counter += 1
        return candidate

    def write_file(self, name: str, data: bytes) -> StoredFile:
        mime_type, _ = mimetypes.guess_type(name)
        if mime_type not in ALLOWED_MIME_TYPES:
            raise StorageWriteError(f"不允许的文件类型: {name}")

        now = datetime.now()
        directory = self._uploads_dir / f"{now:%Y}" / f"{now:%m}"
        try:
            directory.mkdir(parents=True, exist_ok=True)
            path = self._unique_path(directory, name)
            path.write_bytes(data)
        except OSError as exc:
            raise StorageWriteError(f"写入文件失败: {exc}") from exc

        logger.info(f"图片已保存: {path} ({len(data):,} bytes)")
        return StoredFile(path=path, mime_type=mime_type)

    def register_attachment(self, path: Path, mime_type: str, title: str, owner_id: int) -> int:
        data = self._load()
        owner = data["articles"].get(str(owner_id))
        if owner is None:
            raise AttachmentRegistrationError(f"文章不存在: {owner_id}")
        if not Path(path).exists():
            raise AttachmentRegistrationError(f"附件文件不存在: {path}")

        attachment_id = self._take_id(data)
        data["attachments"][str(attachment_id)] = {
            "id": attachment_id,
            "file": str(path),
            "mime_type": mime_type,
            "title": title.strip(),
            "parent_id": owner_id,
            "status": "inherit",
            "parent_status": owner.get("status", "draft"),
            "alt_text": "",
            "metadata": {},
            "created_at": datetime.now().isoformat(),
        }
        try:
            self._save(data)
        except OSError as exc:
            raise AttachmentRegistrationError(f"附件登记失败: {exc}") from exc
        return attachment_id

    def get_attachment(self, attachment_id: int) -> dict | None:
        return self._load()["attachments"].get(str(attachment_id))

    def _update_attachment(self, attachment_id: int, **fields: Any) -> None:
        data = self._load()
        record = data["attachments"].get(str(attachment_id))
        if record is None:
            raise LibraryError(f"附件不存在: {attachment_id}")
        record.update(fields)
        self._save(data)

    def generate_attachment_metadata(self, attachment_id: int) -> dict[str, Any]:
        """读取图片宽高与文件大小，写回附件记录"""
        from PIL import Image, UnidentifiedImageError

        record = self.get_attachment(attachment_id)
        if record is None:
            raise LibraryError(f"附件不存在: {attachment_id}")
        path = Path(record["file"])

        metadata: dict[str, Any] = {"file": path.name, "filesize": path.stat().st_size}
        try:
            with Image.open(path) as img:
                metadata["width"], metadata["height"] = img.size
        except (UnidentifiedImageError, OSError) as exc:
            logger.warning(f"无法读取图片尺寸 {path}: {exc}")

        self._update_attachment(attachment_id, metadata=metadata)
        return metadata

    def set_alt_text(self, attachment_id: int, alt_text: str) -> None:
        self._update_attachment(attachment_id, alt_text=alt_text)

    def set_featured_image(self, owner_id: int, attachment_id: int) -> None:
        data = self._load()
        record = data["articles"].get(str(owner_id))
        if record is None:
            raise LibraryError(f"文章不存在: {owner_id}")
        record["featured_image_id"] = attachment_id
        self._save(data)
