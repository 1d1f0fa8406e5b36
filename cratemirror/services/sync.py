"""本地同步 — 从对象存储取回已镜像的依赖到本地目录

本地布局（root_dir 下）:
  registry/cache/<索引 ident>/<name>-<version>.crate
  registry/index/<索引 ident>/                  索引快照解压目录
  git/checkouts/<ident>/<rev>/                  git 快照解压目录

已存在的文件 / 目录直接跳过；单个依赖失败只记录日志，不影响其他依赖。
"""

from __future__ import annotations

import logging
import shutil
import tarfile
from concurrent.futures import ThreadPoolExecutor
from pathlib import Path

from cratemirror.core.canonical import Canonicalized
from cratemirror.core.context import MirrorContext
from cratemirror.core.exceptions import CrateMirrorError, SyncError
from cratemirror.core.models import (
    TRANSFER_FETCH_FAILED,
    TRANSFER_OK,
    TRANSFER_SKIPPED,
    TRANSFER_WRITE_FAILED,
    GitSource,
    Krate,
    SyncSummary,
    TransferResult,
)
from cratemirror.services.mirror import CRATES_IO_INDEX_URL, dedup_krates, index_krate
from cratemirror.utils.archive import unpack_tarball

logger = logging.getLogger(__name__)


def _index_ident(index_url: str) -> str:
    return Canonicalized.from_url(index_url).ident()


def local_path(ctx: MirrorContext, krate: Krate, *, index_url: str = CRATES_IO_INDEX_URL) -> Path:
    """依赖在本地的落盘位置"""
    if isinstance(krate.source, GitSource):
        return ctx.git_dir / "checkouts" / krate.local_id / krate.source.rev
    return ctx.registry_dir / "cache" / _index_ident(index_url) / krate.local_id


def _write_file(path: Path, data: bytes) -> None:
    path.parent.mkdir(parents=True, exist_ok=True)
    tmp = path.with_name(path.name + ".tmp")
    tmp.write_bytes(data)
    tmp.replace(path)


def _unpack_into(path: Path, data: bytes) -> None:
    """先解压到 .partial 暂存目录，成功后再替换 path（含已有内容）"""
    staging = path.with_name(path.name + ".partial")
    if staging.exists():
        shutil.rmtree(staging)
    try:
        unpack_tarball(data, staging)
        if path.exists():
            shutil.rmtree(path)
        staging.replace(path)
    finally:
        if staging.exists():
            shutil.rmtree(staging, ignore_errors=True)


def _sync_one(ctx: MirrorContext, krate: Krate, target: Path) -> TransferResult:
    if target.exists():
        return TransferResult(krate=krate, status=TRANSFER_SKIPPED, message="本地已存在")

    try:
        data = ctx.backend.fetch(krate)
    except Exception as e:  # noqa: BLE001
        logger.error(
            "从存储下载失败 %s: %s", krate, e,
            exc_info=not isinstance(e, CrateMirrorError), extra={"krate": krate.cloud_id},
        )
        return TransferResult(krate=krate, status=TRANSFER_FETCH_FAILED, message=str(e))

    try:
        if krate.is_git:
            _unpack_into(target, data)
        else:
            _write_file(target, data)
    except (OSError, tarfile.TarError) as e:
        logger.error("写入本地失败 %s -> %s: %s", krate, target, e, extra={"krate": krate.cloud_id})
        return TransferResult(krate=krate, status=TRANSFER_WRITE_FAILED, message=str(e))

    logger.info("已同步 %s -> %s", krate, target)
    return TransferResult(krate=krate, status=TRANSFER_OK, size=len(data))


def sync_locked_crates(ctx: MirrorContext, *, index_url: str = CRATES_IO_INDEX_URL) -> SyncSummary:
    """把上下文中的依赖从存储同步到本地目录"""
    krates = dedup_krates(ctx.krates)
    summary = SyncSummary(total=len(krates))
    if not krates:
        return summary

    targets = [local_path(ctx, k, index_url=index_url) for k in krates]
    logger.info("同步 %d 个依赖到 %s", len(krates), ctx.root_dir)

    with ThreadPoolExecutor(max_workers=ctx.max_workers) as executor:
        futures = [executor.submit(_sync_one, ctx, k, t) for k, t in zip(krates, targets)]
        summary.results = [f.result() for f in futures]

    log = logger.warning if summary.failed else logger.info
    log(
        "同步汇总: %d 个成功, %d 个已存在, %d 个失败",
        summary.synced, summary.skipped, summary.failed,
    )
    return summary


def sync_registry_index(ctx: MirrorContext, *, index_url: str = CRATES_IO_INDEX_URL) -> Path:
    """下载索引快照并解压到 registry/index/<ident>/

    解压成功后才替换旧内容；快照损坏时保留原有索引并抛 SyncError。
    """
    krate = index_krate(index_url)
    target = ctx.registry_dir / "index" / _index_ident(index_url)
    data = ctx.backend.fetch(krate)

    try:
        _unpack_into(target, data)
    except (OSError, tarfile.TarError) as e:
        raise SyncError(f"索引快照解压失败 {target}: {e}") from e
    logger.info("索引已同步 -> %s", target)
    return target
