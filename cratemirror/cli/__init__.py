"""crate-mirror 命令行接口

全局选项覆盖 YAML 配置文件中的同名项；子命令按领域拆分到子模块，
每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import os
from dataclasses import replace

import click

from cratemirror import __version__
from cratemirror.core.config import DEFAULT_CONFIG_FILE, Config, init_config
from cratemirror.core.exceptions import CrateMirrorError
from cratemirror.utils.logger import setup_logging


def _config(ctx: click.Context) -> Config:
    """获取当前命令的配置（已合并命令行覆盖项）"""
    cfg = ctx.find_root().obj
    if not isinstance(cfg, Config):
        raise click.ClickException("配置未初始化")
    return cfg


def _fail(e: CrateMirrorError) -> click.ClickException:
    return click.ClickException(f"[{e.code}] {e}")


@click.group()
@click.version_option(version=__version__)
@click.option("--config", "-c", "config_path", default=DEFAULT_CONFIG_FILE, help="配置文件路径")
@click.option("--root-dir", default=None, help="本地根目录（默认当前目录）")
@click.option("--backend", type=click.Choice(["fs", "s3"]), default=None, help="存储后端")
@click.option("--bucket", default=None, help="S3 bucket 名称")
@click.option("--prefix", default=None, help="存储 key 前缀")
@click.option("--fs-dir", default=None, help="fs 后端的存储目录")
@click.option("--workers", "-j", type=int, default=None, help="并行传输数")
@click.pass_context
def main(
    ctx: click.Context, config_path: str, root_dir: str | None,
    backend: str | None, bucket: str | None, prefix: str | None,
    fs_dir: str | None, workers: int | None,
) -> None:
    """crate-mirror - 把 Cargo.lock 中的依赖镜像到私有对象存储"""
    setup_logging(
        level=os.getenv("CRATE_MIRROR_LOG_LEVEL", "INFO"),
        json_output=os.getenv("CRATE_MIRROR_LOG_JSON", "") == "1",
    )
    try:
        cfg = init_config(config_path)
        overrides = {
            "root_dir": root_dir, "backend": backend, "bucket": bucket,
            "prefix": prefix, "fs_dir": fs_dir, "max_workers": workers,
        }
        cfg = replace(cfg, **{k: v for k, v in overrides.items() if v is not None})
    except CrateMirrorError as e:
        raise _fail(e) from e
    ctx.obj = cfg


# 注册各领域子命令
from cratemirror.cli.cmd_mirror import register as _reg_mirror  # noqa: E402

_reg_mirror(main)
