"""测试公共替身：内存存储后端与上游拉取器"""

from __future__ import annotations

import threading
from datetime import datetime

import pytest

from cratemirror.core.exceptions import BackendError, FetchError
from cratemirror.core.models import Krate
from cratemirror.utils.logger import reset_logging


class MemoryBackend:
    """内存存储，按 cloud_id 存放字节串"""

    def __init__(self, objects: dict[str, bytes] | None = None) -> None:
        self.objects: dict[str, bytes] = dict(objects or {})
        self.times: dict[str, datetime] = {}
        self.prefix = ""
        self.uploads: list[str] = []
        self.fail_upload: set[str] = set()
        self.fail_list = False
        self.fail_updated = False
        self._lock = threading.Lock()

    def set_prefix(self, prefix: str) -> None:
        self.prefix = prefix

    def fetch(self, krate: Krate) -> bytes:
        try:
            return self.objects[krate.cloud_id]
        except KeyError:
            raise BackendError(f"不存在: {krate.cloud_id}") from None

    def upload(self, data: bytes, krate: Krate) -> int:
        if krate.cloud_id in self.fail_upload:
            raise BackendError(f"上传被拒绝: {krate.cloud_id}")
        with self._lock:
            self.objects[krate.cloud_id] = data
            self.uploads.append(krate.cloud_id)
        return len(data)

    def list(self) -> list[str]:
        if self.fail_list:
            raise BackendError("list 失败")
        return list(self.objects)

    def updated(self, krate: Krate) -> datetime | None:
        if self.fail_updated:
            raise BackendError("head 失败")
        return self.times.get(krate.cloud_id)


class StubFetcher:
    """按依赖名返回固定内容，记录每次调用"""

    def __init__(self, index_data: bytes = b"index") -> None:
        self.calls: list[Krate] = []
        self.index_calls: list[str] = []
        self.index_data = index_data
        self.fail_names: set[str] = set()
        self._lock = threading.Lock()

    def from_registry(self, krate: Krate) -> bytes:
        with self._lock:
            self.calls.append(krate)
        if krate.name in self.fail_names:
            raise FetchError(f"拉取失败: {krate.name}")
        return f"{krate.name}-{krate.version}".encode()

    def registry_index(self, canonical_url: str) -> bytes:
        self.index_calls.append(canonical_url)
        return self.index_data


@pytest.fixture()
def memory_backend() -> MemoryBackend:
    return MemoryBackend()


@pytest.fixture()
def stub_fetcher() -> StubFetcher:
    return StubFetcher()


@pytest.fixture(autouse=True)
def _clean_logging():
    yield
    reset_logging()
