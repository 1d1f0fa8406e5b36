"""上游拉取器 — crates.io 下载与 git 快照

职责:
- 从 crates.io 下载 .crate 文件并按锁文件校验和验证
- git 依赖：clone + checkout 指定 revision，打包为 tar.gz
- registry 索引：浅克隆后打包为 tar.gz

每次拉取只尝试一次，不做重试。
"""

from __future__ import annotations

import hashlib
import logging
import tempfile
from pathlib import Path

from cratemirror.core.exceptions import ExecutionError, FetchError
from cratemirror.core.models import GitSource, Krate, RegistrySource
from cratemirror.utils.archive import pack_directory
from cratemirror.utils.net import DEFAULT_TIMEOUT, http_get
from cratemirror.utils.shell import CommandExecutor, run_git

logger = logging.getLogger(__name__)

DEFAULT_DOWNLOAD_URL = "https://static.crates.io/crates"

GIT_TIMEOUT = 1800


class HttpFetcher:
    """基于 HTTP + git 命令行的上游拉取器"""

    def __init__(
        self,
        download_url: str = DEFAULT_DOWNLOAD_URL,
        *,
        timeout: int = DEFAULT_TIMEOUT,
        executor: CommandExecutor | None = None,
    ) -> None:
        self.download_url = download_url.rstrip("/")
        self.timeout = timeout
        self.executor = executor

    def crate_url(self, krate: Krate) -> str:
        return f"{self.download_url}/{krate.name}/{krate.name}-{krate.version}.crate"

    def from_registry(self, krate: Krate) -> bytes:
        """拉取依赖内容：crates.io 包返回 .crate，git 依赖返回 tar.gz 快照"""
        if isinstance(krate.source, GitSource):
            return self._git_snapshot(krate.source)
        return self._download_crate(krate, krate.source)

    def registry_index(self, canonical_url: str) -> bytes:
        """浅克隆 registry 索引并打包"""
        with tempfile.TemporaryDirectory(prefix="crate-mirror-index-") as tmp:
            checkout = Path(tmp) / "index"
            logger.info("克隆索引: %s", canonical_url)
            self._git(["clone", "--quiet", "--depth", "1", canonical_url, str(checkout)])
            data = pack_directory(checkout)
        logger.info("索引快照打包完成 (%d 字节)", len(data))
        return data

    def _download_crate(self, krate: Krate, source: RegistrySource) -> bytes:
        url = self.crate_url(krate)
        data = http_get(url, timeout=self.timeout, context=f"crate download {krate}")
        actual = hashlib.sha256(data).hexdigest()
        if actual != source.checksum:
            raise FetchError(
                f"校验和不匹配 {krate}: 期望 {source.checksum}, 实际 {actual}"
            )
        logger.debug("已下载 %s (%d 字节)", krate, len(data))
        return data

    def _git_snapshot(self, source: GitSource) -> bytes:
        with tempfile.TemporaryDirectory(prefix="crate-mirror-git-") as tmp:
            checkout = Path(tmp) / source.ident
            self._git(["clone", "--quiet", source.url, str(checkout)])
            self._git(["checkout", "--quiet", source.rev], cwd=str(checkout))
            return pack_directory(checkout)

    def _git(self, args: list[str], cwd: str = ".") -> str:
        try:
            return run_git(args, cwd=cwd, timeout=GIT_TIMEOUT, executor=self.executor)
        except ExecutionError as e:
            raise FetchError(str(e)) from e
