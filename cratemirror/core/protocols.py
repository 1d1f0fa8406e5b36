"""领域协议定义

集中定义镜像引擎所依赖的外部能力（Protocol）：
引擎只持有抽象能力，不依赖具体的云存储或下载实现，测试时可注入替身。

使用 typing.Protocol 而非 ABC，使得现有类无需修改继承关系即可满足协议。
"""

from __future__ import annotations

from datetime import datetime
from typing import Protocol

from cratemirror.core.models import Krate


# =========================================================================
# 对象存储协议
# =========================================================================

class StorageBackend(Protocol):
    """对象存储后端协议

    所有 key 都以 krate.cloud_id 为名，位于 set_prefix() 设定的命名空间下。
    失败统一抛 BackendError。
    """

    def fetch(self, krate: Krate) -> bytes:
        """读取依赖的存储内容"""
        ...

    def upload(self, data: bytes, krate: Krate) -> int:
        """按 cloud_id 覆盖写入，返回写入字节数"""
        ...

    def list(self) -> list[str]:
        """列出前缀下所有 key（已去掉前缀，顺序不限）"""
        ...

    def updated(self, krate: Krate) -> datetime | None:
        """返回对象最后修改时间（UTC），不存在则返回 None"""
        ...

    def set_prefix(self, prefix: str) -> None:
        """设定 key 命名空间根，必须在首次使用前调用"""
        ...


# =========================================================================
# 上游拉取协议
# =========================================================================

class FetchClient(Protocol):
    """上游拉取协议，失败统一抛 FetchError"""

    def from_registry(self, krate: Krate) -> bytes:
        """单次拉取依赖内容（crates.io 包或 git 快照）"""
        ...

    def registry_index(self, canonical_url: str) -> bytes:
        """单次拉取并打包完整的 registry 索引快照"""
        ...
