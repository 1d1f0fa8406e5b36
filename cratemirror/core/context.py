"""镜像运行上下文

一次调用内共享的只读状态：存储后端、上游拉取器、依赖列表与本地根目录。
"""

from __future__ import annotations

import logging
from pathlib import Path

from cratemirror.core.exceptions import ConfigError
from cratemirror.core.models import Krate
from cratemirror.core.protocols import FetchClient, StorageBackend

logger = logging.getLogger(__name__)

REGISTRY_DIR = "registry"
GIT_DIR = "git"


class MirrorContext:
    """镜像 / 同步操作的上下文"""

    def __init__(
        self,
        backend: StorageBackend,
        fetcher: FetchClient,
        krates: list[Krate] | None = None,
        *,
        root_dir: str | Path | None = None,
        max_workers: int = 4,
    ) -> None:
        self.backend = backend
        self.fetcher = fetcher
        self.krates = list(krates or [])
        self.root_dir = Path(root_dir) if root_dir else Path(".")
        self.max_workers = max(1, max_workers)

    @property
    def registry_dir(self) -> Path:
        return self.root_dir / REGISTRY_DIR

    @property
    def git_dir(self) -> Path:
        return self.root_dir / GIT_DIR

    def prep_sync_dirs(self) -> None:
        """创建 registry 与 git 两个根目录，失败视为致命错误"""
        for d in (self.registry_dir, self.git_dir):
            try:
                d.mkdir(parents=True, exist_ok=True)
            except OSError as e:
                raise ConfigError(f"无法创建目录 {d}: {e}") from e
        logger.debug("同步目录就绪: %s", self.root_dir)
