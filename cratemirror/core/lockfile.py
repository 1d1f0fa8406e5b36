"""Cargo.lock 解析

同时兼容两种锁文件格式:
  - v1: 校验和存放在顶层 [metadata] 表，key 为
        "checksum {name} {version} ({source})"
  - v2+: 校验和直接写在 [[package]] 条目的 checksum 字段

每条记录的处理相互独立：单条记录非法只记录日志并跳过，不影响其余记录。
只有整个文件无法读取或无法解析时才抛出 LockFileError。
"""

from __future__ import annotations

import logging
import tomllib
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any

from cratemirror.core.canonical import source_from_git_url
from cratemirror.core.exceptions import GitUrlError, LockFileError
from cratemirror.core.models import CRATES_IO_INDEX, Krate, RegistrySource

logger = logging.getLogger(__name__)


@dataclass
class Package:
    """锁文件中的原始 [[package]] 记录"""

    name: str
    version: str
    source: str | None = None
    checksum: str | None = None


@dataclass
class LockContents:
    """锁文件内容：有序包列表 + 旧格式的校验和表"""

    packages: list[Package] = field(default_factory=list)
    metadata: dict[str, str] = field(default_factory=dict)


def metadata_key(name: str, version: str, source: str = CRATES_IO_INDEX) -> str:
    """旧格式 [metadata] 表中的校验和 key"""
    return f"checksum {name} {version} ({source})"


def parse_lock_contents(raw: str) -> LockContents:
    """把 TOML 文本解析为 LockContents，整体格式错误抛 LockFileError"""
    try:
        doc = tomllib.loads(raw)
    except tomllib.TOMLDecodeError as e:
        raise LockFileError(f"锁文件不是合法的 TOML: {e}") from e

    raw_packages = doc.get("package", [])
    if not isinstance(raw_packages, list):
        raise LockFileError("锁文件的 package 字段必须是数组")

    raw_metadata = doc.get("metadata", {})
    if not isinstance(raw_metadata, dict):
        raise LockFileError("锁文件的 metadata 字段必须是表")

    packages = [p for p in (_parse_package(i, item) for i, item in enumerate(raw_packages)) if p]
    metadata = {str(k): str(v) for k, v in raw_metadata.items() if isinstance(v, str)}
    return LockContents(packages=packages, metadata=metadata)


def _parse_package(index: int, item: Any) -> Package | None:
    if not isinstance(item, dict):
        logger.error("跳过第 %d 个 package：不是表", index)
        return None
    name = item.get("name")
    version = item.get("version")
    if not isinstance(name, str) or not isinstance(version, str):
        logger.error("跳过第 %d 个 package：缺少 name 或 version", index)
        return None
    source = item.get("source")
    checksum = item.get("checksum")
    return Package(
        name=name,
        version=version,
        source=source if isinstance(source, str) else None,
        checksum=checksum if isinstance(checksum, str) else None,
    )


def krates_from_contents(contents: LockContents) -> list[Krate]:
    """把锁文件内容转换为依赖列表，保持文件中的顺序"""
    # 旧格式查找是 "读取后删除"，只在本地副本上进行
    metadata = dict(contents.metadata)
    krates: list[Krate] = []

    for p in contents.packages:
        if p.source is None:
            logger.debug("跳过 path 依赖 %s-%s", p.name, p.version)
            continue

        if p.source == CRATES_IO_INDEX:
            checksum = p.checksum
            if checksum is None:
                checksum = metadata.pop(metadata_key(p.name, p.version), None)
            if checksum is None:
                logger.debug("%s-%s 没有可用的校验和，已丢弃", p.name, p.version)
                continue
            krates.append(Krate(p.name, p.version, RegistrySource(checksum)))
            continue

        # 仅支持带 rev 的 git 来源
        # 例: git+https://github.com/EmbarkStudios/rust-build-helper?rev=9135717#91357179ba2c...
        try:
            source = source_from_git_url(p.source)
        except GitUrlError as e:
            logger.error("无法使用 git 来源 %s (%s-%s): %s", p.source, p.name, p.version, e)
            continue
        krates.append(Krate(p.name, p.version, source))

    return krates


def parse_lock_file(raw: str) -> list[Krate]:
    return krates_from_contents(parse_lock_contents(raw))


def read_lock_file(path: str | Path) -> list[Krate]:
    """读取锁文件并返回依赖列表"""
    lock_path = Path(path)
    try:
        raw = lock_path.read_text(encoding="utf-8")
    except (OSError, UnicodeDecodeError) as e:
        raise LockFileError(f"无法读取锁文件 {lock_path}: {e}") from e

    krates = parse_lock_file(raw)
    logger.info("已从 %s 读取 %d 个依赖", lock_path, len(krates))
    return krates
