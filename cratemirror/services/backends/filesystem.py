"""本地目录存储后端 — 以目录模拟 bucket

key 布局: <base_dir>/<prefix><cloud_id>
最后修改时间取文件 mtime（UTC）。写入采用临时文件 + rename，保证按 key 原子覆盖。
"""

from __future__ import annotations

import logging
import os
import tempfile
from datetime import datetime, timezone
from pathlib import Path

from cratemirror.core.exceptions import BackendError
from cratemirror.core.models import Krate

logger = logging.getLogger(__name__)

_TMP_SUFFIX = ".tmp"


class FilesystemBackend:
    """本地文件系统存储"""

    def __init__(self, base_dir: str | Path) -> None:
        self.base_dir = Path(base_dir)
        self.prefix = ""
        try:
            self.base_dir.mkdir(parents=True, exist_ok=True)
        except OSError as e:
            raise BackendError(f"无法创建存储目录 {self.base_dir}: {e}") from e

    def set_prefix(self, prefix: str) -> None:
        if ".." in prefix.split("/"):
            raise BackendError(f"非法前缀: {prefix}")
        self.prefix = prefix.lstrip("/")

    def _path(self, krate: Krate) -> Path:
        key = krate.cloud_id
        # 拒绝路径穿越
        if not key or "/" in key or "\\" in key or key in (".", ".."):
            raise BackendError(f"非法存储 key: {key!r} ({krate})")
        return self.base_dir / f"{self.prefix}{key}"

    def fetch(self, krate: Krate) -> bytes:
        path = self._path(krate)
        try:
            return path.read_bytes()
        except OSError as e:
            raise BackendError(f"读取失败 {path}: {e}") from e

    def upload(self, data: bytes, krate: Krate) -> int:
        path = self._path(krate)
        try:
            path.parent.mkdir(parents=True, exist_ok=True)
            fd, tmp = tempfile.mkstemp(dir=str(path.parent), suffix=_TMP_SUFFIX)
            try:
                with os.fdopen(fd, "wb") as f:
                    f.write(data)
                os.replace(tmp, str(path))
            except OSError:
                Path(tmp).unlink(missing_ok=True)
                raise
        except OSError as e:
            raise BackendError(f"写入失败 {path}: {e}") from e
        logger.debug("本地存储: %s -> %s", krate, path)
        return len(data)

    def list(self) -> list[str]:
        if not self.base_dir.exists():
            return []
        keys = []
        for f in self.base_dir.rglob("*"):
            if not f.is_file() or f.name.endswith(_TMP_SUFFIX):
                continue
            rel = f.relative_to(self.base_dir).as_posix()
            if rel.startswith(self.prefix):
                keys.append(rel[len(self.prefix):])
        return keys

    def updated(self, krate: Krate) -> datetime | None:
        path = self._path(krate)
        try:
            mtime = path.stat().st_mtime
        except FileNotFoundError:
            return None
        except OSError as e:
            raise BackendError(f"读取元数据失败 {path}: {e}") from e
        return datetime.fromtimestamp(mtime, tz=timezone.utc)
