"""核心数据模型 — 依赖身份

Krate 的相等、排序与哈希只由 Source 决定，与 name / version 无关：
同一个 git 仓库 + 同一 revision 被多个包引用时，镜像时只应上传一次。
因此 Krate 不使用 dataclass 自动生成的比较方法，而是显式比较 source。

Source 变体:
  - RegistrySource: crates.io 包，身份为内容校验和
  - GitSource:      固定 revision 的 git 仓库，身份为 (ident, rev)

派生标识:
  - cloud_id: 远端存储 key（校验和 / "{ident}-{rev}"）
  - local_id: 本地文件名（"{name}-{version}.crate" / ident）
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

CRATES_IO_INDEX = "registry+https://github.com/rust-lang/crates.io-index"


@dataclass(frozen=True, order=True)
class RegistrySource:
    """crates.io 来源"""

    checksum: str

    # 变体声明顺序：Registry 排在 Git 之前
    _rank = 0

    def sort_key(self) -> tuple[Any, ...]:
        return (self._rank, self.checksum)


@dataclass(frozen=True, order=True)
class GitSource:
    """git 来源（url 为规范化后的 URL 字符串，rev 为 7 位短哈希）"""

    url: str
    rev: str
    ident: str

    _rank = 1

    def sort_key(self) -> tuple[Any, ...]:
        return (self._rank, self.url, self.rev, self.ident)


Source = Union[RegistrySource, GitSource]


@dataclass(eq=False)
class Krate:
    """锁文件中的单个依赖"""

    name: str
    version: str  # 不做语义解析，视为不透明字符串
    source: Source

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Krate):
            return NotImplemented
        return self.source == other.source

    def __lt__(self, other: Krate) -> bool:
        return self.source.sort_key() < other.source.sort_key()

    def __le__(self, other: Krate) -> bool:
        return self.source.sort_key() <= other.source.sort_key()

    def __gt__(self, other: Krate) -> bool:
        return self.source.sort_key() > other.source.sort_key()

    def __ge__(self, other: Krate) -> bool:
        return self.source.sort_key() >= other.source.sort_key()

    def __hash__(self) -> int:
        return hash(self.source)

    @property
    def is_git(self) -> bool:
        return isinstance(self.source, GitSource)

    @property
    def cloud_id(self) -> str:
        """远端存储 key，对同一内容来源跨运行稳定"""
        if isinstance(self.source, GitSource):
            return f"{self.source.ident}-{self.source.rev}"
        return self.source.checksum

    @property
    def local_id(self) -> str:
        """本地文件名；git 来源故意忽略 revision"""
        if isinstance(self.source, GitSource):
            return self.source.ident
        return f"{self.name}-{self.version}.crate"

    def __str__(self) -> str:
        kind = "git" if self.is_git else "crates.io"
        return f"{self.name}-{self.version}({kind})"


# =========================================================================
# 传输结果模型
# =========================================================================

TRANSFER_OK = "ok"
TRANSFER_FETCH_FAILED = "fetch_failed"
TRANSFER_UPLOAD_FAILED = "upload_failed"
TRANSFER_WRITE_FAILED = "write_failed"
TRANSFER_SKIPPED = "skipped"


@dataclass
class TransferResult:
    """单个依赖的传输结果"""

    krate: Krate
    status: str
    size: int = 0
    message: str = ""

    @property
    def success(self) -> bool:
        return self.status in (TRANSFER_OK, TRANSFER_SKIPPED)


@dataclass
class MirrorSummary:
    """一次 locked_crates 镜像的统计"""

    total: int = 0
    already_present: int = 0
    duplicates: int = 0
    results: list[TransferResult] = field(default_factory=list)

    @property
    def mirrored(self) -> int:
        return sum(1 for r in self.results if r.status == TRANSFER_OK)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    @property
    def uploaded_bytes(self) -> int:
        return sum(r.size for r in self.results if r.status == TRANSFER_OK)

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "already_present": self.already_present,
            "duplicates": self.duplicates,
            "mirrored": self.mirrored,
            "failed": self.failed,
            "uploaded_bytes": self.uploaded_bytes,
        }


@dataclass
class SyncSummary:
    """一次本地同步的统计"""

    total: int = 0
    results: list[TransferResult] = field(default_factory=list)

    @property
    def synced(self) -> int:
        return sum(1 for r in self.results if r.status == TRANSFER_OK)

    @property
    def skipped(self) -> int:
        return sum(1 for r in self.results if r.status == TRANSFER_SKIPPED)

    @property
    def failed(self) -> int:
        return sum(1 for r in self.results if not r.success)

    def to_dict(self) -> dict[str, int]:
        return {
            "total": self.total,
            "synced": self.synced,
            "skipped": self.skipped,
            "failed": self.failed,
        }
