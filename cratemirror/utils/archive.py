"""tar.gz 打包 / 解包

git 快照与索引快照以 tar.gz 形式存储，不包含 .git 目录。
"""

from __future__ import annotations

import io
import tarfile
from pathlib import Path


def _exclude_git(info: tarfile.TarInfo) -> tarfile.TarInfo | None:
    parts = Path(info.name).parts
    if ".git" in parts:
        return None
    # 去掉本机属主信息，快照内容只取决于文件本身
    info.uid = info.gid = 0
    info.uname = info.gname = ""
    return info


def pack_directory(path: str | Path) -> bytes:
    """把目录打包为 tar.gz 字节串（排除 .git）"""
    buf = io.BytesIO()
    with tarfile.open(fileobj=buf, mode="w:gz") as tf:
        tf.add(str(path), arcname=".", filter=_exclude_git)
    return buf.getvalue()


def unpack_tarball(data: bytes, dest: str | Path) -> Path:
    """解压 tar.gz 字节串到 dest，返回目标目录"""
    target = Path(dest)
    target.mkdir(parents=True, exist_ok=True)
    with tarfile.open(fileobj=io.BytesIO(data), mode="r:gz") as tf:
        tf.extractall(path=str(target), filter="data")  # noqa: S202
    return target
