"""镜像引擎 — 把锁文件中的依赖同步到对象存储

两个相互独立的操作:
  - registry_index: 刷新 crates.io 索引快照（唯一的新鲜度缓存策略）
  - locked_crates:  对比远端已有 key，补齐缺失的依赖

locked_crates 流程:
  ListRemote -> ComputeDiff -> Dedup -> (Done | ParallelTransfer) -> Done

传输阶段每个依赖一个任务，任务之间不共享状态、不重试；
单个依赖拉取或上传失败只记录日志，不影响其他依赖，也不让整体调用失败。
"""

from __future__ import annotations

import bisect
import logging
from concurrent.futures import ThreadPoolExecutor
from datetime import datetime, timedelta, timezone

from cratemirror.core.canonical import Canonicalized
from cratemirror.core.context import MirrorContext
from cratemirror.core.exceptions import BackendError, CrateMirrorError
from cratemirror.core.models import (
    TRANSFER_FETCH_FAILED,
    TRANSFER_OK,
    TRANSFER_UPLOAD_FAILED,
    GitSource,
    Krate,
    MirrorSummary,
    TransferResult,
)

logger = logging.getLogger(__name__)

CRATES_IO_INDEX_URL = "git+https://github.com/rust-lang/crates.io-index.git"


def index_krate(index_url: str = CRATES_IO_INDEX_URL) -> Krate:
    """构造代表 registry 索引的虚拟依赖

    名称里的 "." 不是合法的 crate 名字符，因此不会与真实依赖冲突。
    rev 为空，cloud_id 固定为 "{ident}-"。
    """
    canonical = Canonicalized.from_url(index_url)
    return Krate(
        name="crates.io-index",
        version="1.0.0",
        source=GitSource(url=canonical.url, rev="", ident=canonical.ident()),
    )


def registry_index(
    ctx: MirrorContext,
    max_stale: timedelta,
    *,
    index_url: str = CRATES_IO_INDEX_URL,
    now: datetime | None = None,
) -> bool:
    """刷新索引快照；返回是否实际上传

    远端快照比 max_stale 新则跳过。读取时间戳失败视为已过期。
    拉取或上传失败会向上抛出。
    """
    krate = index_krate(index_url)

    try:
        last_updated = ctx.backend.updated(krate)
    except BackendError as e:
        logger.warning("无法读取索引更新时间，按过期处理: %s", e)
        last_updated = None

    if last_updated is not None:
        current = now or datetime.now(timezone.utc)
        if current - last_updated < max_stale:
            logger.info(
                "crates.io-index 最近更新于 %s，距今不足 %s，跳过刷新",
                last_updated.isoformat(), max_stale,
            )
            return False

    canonical_url = Canonicalized.from_url(index_url).url
    logger.info("拉取 registry 索引快照: %s", canonical_url)
    index = ctx.fetcher.registry_index(canonical_url)
    size = ctx.backend.upload(index, krate)
    logger.info("索引快照已上传: %s (%d 字节)", krate.cloud_id, size)
    return True


def missing_krates(krates: list[Krate], remote_keys: list[str]) -> list[Krate]:
    """返回 cloud_id 不在远端 key 列表中的依赖（保持输入顺序）"""
    names = sorted(remote_keys)
    missing = []
    for krate in krates:
        cid = krate.cloud_id
        i = bisect.bisect_left(names, cid)
        if i == len(names) or names[i] != cid:
            missing.append(krate)
    return missing


def dedup_krates(krates: list[Krate]) -> list[Krate]:
    """按 Source 排序并去掉相邻重复项（同一来源只保留一个）"""
    result: list[Krate] = []
    for krate in sorted(krates):
        if result and result[-1] == krate:
            logger.debug("%s 与 %s 来源相同，去重", krate, result[-1])
            continue
        result.append(krate)
    return result


def _transfer_one(ctx: MirrorContext, krate: Krate) -> TransferResult:
    try:
        data = ctx.fetcher.from_registry(krate)
    except Exception as e:  # noqa: BLE001
        logger.error(
            "拉取失败 %s: %s", krate, e,
            exc_info=not isinstance(e, CrateMirrorError), extra={"krate": krate.cloud_id},
        )
        return TransferResult(krate=krate, status=TRANSFER_FETCH_FAILED, message=str(e))

    try:
        size = ctx.backend.upload(data, krate)
    except Exception as e:  # noqa: BLE001
        logger.error(
            "上传失败 %s: %s", krate, e,
            exc_info=not isinstance(e, CrateMirrorError), extra={"krate": krate.cloud_id},
        )
        return TransferResult(krate=krate, status=TRANSFER_UPLOAD_FAILED, message=str(e))

    logger.info("已镜像 %s -> %s (%d 字节)", krate, krate.cloud_id, size)
    return TransferResult(krate=krate, status=TRANSFER_OK, size=size)


def locked_crates(ctx: MirrorContext) -> MirrorSummary:
    """补齐远端缺失的依赖，返回统计；list() 失败会向上抛出"""
    summary = MirrorSummary(total=len(ctx.krates))
    logger.info("镜像 %d 个依赖", len(ctx.krates))

    logger.info("检查远端已存储的依赖...")
    remote_keys = ctx.backend.list()

    to_mirror = missing_krates(ctx.krates, remote_keys)
    summary.already_present = len(ctx.krates) - len(to_mirror)

    # 去重，例如两个包来自同一 git 仓库的同一 revision
    deduped = dedup_krates(to_mirror)
    summary.duplicates = len(to_mirror) - len(deduped)

    if not deduped:
        logger.info("所有依赖均已上传")
        return summary

    logger.info("上传 %d 个依赖 (并行度 %d)...", len(deduped), ctx.max_workers)

    with ThreadPoolExecutor(max_workers=ctx.max_workers) as executor:
        futures = [executor.submit(_transfer_one, ctx, k) for k in deduped]
        summary.results = [f.result() for f in futures]

    log = logger.warning if summary.failed else logger.info
    log(
        "镜像汇总: %d 个已存在, %d 个重复, %d 个成功, %d 个失败",
        summary.already_present, summary.duplicates, summary.mirrored, summary.failed,
    )
    return summary
