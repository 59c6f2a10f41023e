"""自更新检查 — 拉取远程 manifest，比较版本号"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass

import httpx

logger = logging.getLogger("genai_tools.updater")

__version__ = "0.1.0"


@dataclass(frozen=True)
class UpdateInfo:
    new_version: str
    package_url: str
    url: str = ""


def parse_version(version: str) -> tuple[int, ...]:
    """'2.7.0' -> (2, 7, 0)；非数字部分被忽略"""
    return tuple(int(part) for part in re.findall(r"\d+", version))


async def fetch_manifest(manifest_url: str, timeout: float = 15.0) -> dict | None:
    try:
        async with httpx.AsyncClient(timeout=timeout, follow_redirects=True) as client:
            response = await client.get(manifest_url)
    except httpx.RequestError as exc:
        logger.warning(f"获取更新信息失败: {exc}")
        return None

    if response.status_code != 200:
        logger.warning(f"获取更新信息失败 HTTP {response.status_code}")
        return None
    try:
        data = response.json()
    except ValueError:
        logger.warning("更新信息不是合法 JSON")
        return None
    return data if isinstance(data, dict) else None


async def check_for_update(current_version: str, manifest_url: str) -> UpdateInfo | None:
    """
    远程版本高于当前版本时返回 UpdateInfo，否则返回 None。

    manifest 格式:
      {"version": "2.8.0", "download_url": "...", "sections": {"description": "..."}}
    """
    manifest = await fetch_manifest(manifest_url)
    if not manifest or "version" not in manifest:
        return None

    remote_version = str(manifest["version"])
    if parse_version(current_version) >= parse_version(remote_version):
        return None

    return UpdateInfo(
        new_version=remote_version,
        package_url=manifest.get("download_url", ""),
        url=(manifest.get("sections") or {}).get("description", ""),
    )
