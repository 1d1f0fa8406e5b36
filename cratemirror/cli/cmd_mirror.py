"""CLI — 镜像 / 同步 / 列表命令"""

from __future__ import annotations

import json
import logging
from datetime import timedelta

import click

from cratemirror.cli import _config, _fail
from cratemirror.core.config import Config, parse_duration
from cratemirror.core.context import MirrorContext
from cratemirror.core.exceptions import CrateMirrorError
from cratemirror.core.lockfile import read_lock_file

logger = logging.getLogger(__name__)


def register(group: click.Group) -> None:
    group.add_command(mirror)
    group.add_command(sync)
    group.add_command(list_krates)


def _build_context(cfg: Config, lock_file: str | None) -> MirrorContext:
    from cratemirror.services.backends import create_backend
    from cratemirror.services.fetch import HttpFetcher

    krates = read_lock_file(lock_file or cfg.lock_file)
    return MirrorContext(
        backend=create_backend(cfg),
        fetcher=HttpFetcher(cfg.download_url),
        krates=krates,
        root_dir=cfg.root_dir,
        max_workers=cfg.max_workers,
    )


@click.command()
@click.option("--lock-file", "-l", default=None, help="Cargo.lock 路径（默认取配置）")
@click.option("--max-stale", default=None, help="索引快照最大过期时长，如 1h、1d")
@click.option("--skip-index", is_flag=True, help="不刷新 registry 索引")
@click.option("--json", "as_json", is_flag=True, help="以 JSON 输出汇总")
@click.pass_context
def mirror(
    ctx: click.Context, lock_file: str | None, max_stale: str | None,
    skip_index: bool, as_json: bool,
) -> None:
    """把锁文件中的依赖镜像到存储

    索引刷新与依赖镜像相互独立：索引失败不影响依赖上传，但最终以非零码退出。
    """
    from cratemirror.services import mirror as engine

    cfg = _config(ctx)
    try:
        stale = parse_duration(max_stale) if max_stale else cfg.max_stale
        mctx = _build_context(cfg, lock_file)
    except CrateMirrorError as e:
        raise _fail(e) from e

    index_error: CrateMirrorError | None = None
    if not skip_index:
        try:
            engine.registry_index(mctx, timedelta(seconds=stale), index_url=cfg.index_url)
        except CrateMirrorError as e:
            logger.error("registry 索引刷新失败，继续镜像依赖: %s", e)
            index_error = e

    try:
        summary = engine.locked_crates(mctx)
    except CrateMirrorError as e:
        raise _fail(e) from e

    if as_json:
        click.echo(json.dumps(summary.to_dict(), ensure_ascii=False))
    else:
        click.echo(
            f"依赖总数: {summary.total}  已存在: {summary.already_present}  "
            f"重复: {summary.duplicates}  已镜像: {summary.mirrored}  失败: {summary.failed}"
        )
        for r in summary.results:
            if not r.success:
                click.echo(f"  [FAIL] {r.krate}: {r.message}")

    if index_error is not None:
        raise _fail(index_error)


@click.command()
@click.option("--lock-file", "-l", default=None, help="Cargo.lock 路径（默认取配置）")
@click.option("--skip-index", is_flag=True, help="不同步 registry 索引")
@click.option("--json", "as_json", is_flag=True, help="以 JSON 输出汇总")
@click.pass_context
def sync(ctx: click.Context, lock_file: str | None, skip_index: bool, as_json: bool) -> None:
    """从存储取回依赖到本地 registry / git 目录"""
    from cratemirror.services.sync import sync_locked_crates, sync_registry_index

    cfg = _config(ctx)
    try:
        mctx = _build_context(cfg, lock_file)
        mctx.prep_sync_dirs()
    except CrateMirrorError as e:
        raise _fail(e) from e

    index_error: CrateMirrorError | None = None
    if not skip_index:
        try:
            sync_registry_index(mctx, index_url=cfg.index_url)
        except CrateMirrorError as e:
            logger.error("registry 索引同步失败，继续同步依赖: %s", e)
            index_error = e

    summary = sync_locked_crates(mctx, index_url=cfg.index_url)

    if as_json:
        click.echo(json.dumps(summary.to_dict(), ensure_ascii=False))
    else:
        click.echo(
            f"依赖总数: {summary.total}  已同步: {summary.synced}  "
            f"已存在: {summary.skipped}  失败: {summary.failed}"
        )

    if index_error is not None:
        raise _fail(index_error)


@click.command(name="list")
@click.option("--lock-file", "-l", default=None, help="Cargo.lock 路径（默认取配置）")
@click.pass_context
def list_krates(ctx: click.Context, lock_file: str | None) -> None:
    """列出锁文件中可镜像的依赖及其存储 key"""
    cfg = _config(ctx)
    try:
        krates = read_lock_file(lock_file or cfg.lock_file)
    except CrateMirrorError as e:
        raise _fail(e) from e

    if not krates:
        click.echo("没有可镜像的依赖。")
        return
    for k in krates:
        click.echo(f"  {str(k):40s} {k.cloud_id:70s} {k.local_id}")
