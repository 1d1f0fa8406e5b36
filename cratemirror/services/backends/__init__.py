"""存储后端

两种后端：
  - fs: 本地目录模拟 bucket（默认，适合自建镜像与测试）
  - s3: S3 / 兼容 S3 的对象存储
"""

from __future__ import annotations

from cratemirror.core.config import BACKEND_S3, Config
from cratemirror.core.protocols import StorageBackend
from cratemirror.services.backends.filesystem import FilesystemBackend


def create_backend(config: Config) -> StorageBackend:
    """根据配置创建存储后端，并在首次使用前设定前缀"""
    backend: StorageBackend
    if config.backend == BACKEND_S3:
        from cratemirror.services.backends.s3 import S3Backend
        backend = S3Backend(
            config.bucket,
            region=config.region,
            endpoint_url=config.endpoint_url,
        )
    else:
        backend = FilesystemBackend(config.fs_dir)
    backend.set_prefix(config.prefix)
    return backend


__all__ = ["FilesystemBackend", "create_backend"]
