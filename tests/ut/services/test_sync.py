"""本地同步测试"""

from __future__ import annotations

from pathlib import Path

import pytest

from cratemirror.core.canonical import Canonicalized
from cratemirror.core.context import MirrorContext
from cratemirror.core.exceptions import BackendError, SyncError
from cratemirror.core.models import (
    TRANSFER_FETCH_FAILED,
    TRANSFER_OK,
    TRANSFER_SKIPPED,
    TRANSFER_WRITE_FAILED,
    GitSource,
    Krate,
    RegistrySource,
)
from cratemirror.services.mirror import CRATES_IO_INDEX_URL, index_krate
from cratemirror.services.sync import local_path, sync_locked_crates, sync_registry_index
from cratemirror.utils.archive import pack_directory

INDEX_IDENT = Canonicalized.from_url(CRATES_IO_INDEX_URL).ident()

FOO = Krate("foo", "1.0.0", RegistrySource("abc123"))
BAR = Krate("bar", "0.1.0", GitSource("https://example.com/bar", "9135717", "bar-0011223344556677"))


def _snapshot(tmp_path: Path, files: dict[str, str]) -> bytes:
    src = tmp_path / "snapshot-src"
    for rel, text in files.items():
        p = src / rel
        p.parent.mkdir(parents=True, exist_ok=True)
        p.write_text(text)
    return pack_directory(src)


@pytest.fixture()
def ctx(tmp_path: Path, memory_backend, stub_fetcher) -> MirrorContext:
    c = MirrorContext(memory_backend, stub_fetcher, [FOO, BAR], root_dir=tmp_path / "cargo")
    c.prep_sync_dirs()
    return c


class TestLocalPath:
    def test_registry(self, ctx) -> None:
        assert local_path(ctx, FOO) == ctx.registry_dir / "cache" / INDEX_IDENT / "foo-1.0.0.crate"

    def test_git(self, ctx) -> None:
        assert local_path(ctx, BAR) == ctx.git_dir / "checkouts" / "bar-0011223344556677" / "9135717"


class TestSyncLockedCrates:
    def test_sync_all(self, ctx, memory_backend, tmp_path: Path) -> None:
        memory_backend.objects[FOO.cloud_id] = b"crate-bytes"
        memory_backend.objects[BAR.cloud_id] = _snapshot(tmp_path, {"src/lib.rs": "fn x() {}"})

        summary = sync_locked_crates(ctx)

        assert summary.synced == 2
        assert local_path(ctx, FOO).read_bytes() == b"crate-bytes"
        assert (local_path(ctx, BAR) / "src" / "lib.rs").read_text() == "fn x() {}"
        assert not local_path(ctx, BAR).with_name("9135717.partial").exists()

    def test_existing_skipped(self, ctx, memory_backend) -> None:
        target = local_path(ctx, FOO)
        target.parent.mkdir(parents=True)
        target.write_bytes(b"local")
        ctx.krates = [FOO]

        summary = sync_locked_crates(ctx)

        assert summary.results[0].status == TRANSFER_SKIPPED
        assert target.read_bytes() == b"local"

    def test_missing_object_isolated(self, ctx, memory_backend) -> None:
        memory_backend.objects[FOO.cloud_id] = b"crate-bytes"
        summary = sync_locked_crates(ctx)
        statuses = {r.krate.name: r.status for r in summary.results}
        assert statuses == {"foo": TRANSFER_OK, "bar": TRANSFER_FETCH_FAILED}

    def test_bad_snapshot_write_failed(self, ctx, memory_backend) -> None:
        memory_backend.objects[BAR.cloud_id] = b"not a tarball"
        ctx.krates = [BAR]
        summary = sync_locked_crates(ctx)
        assert summary.results[0].status == TRANSFER_WRITE_FAILED
        assert not local_path(ctx, BAR).exists()

    def test_dedup(self, ctx, memory_backend, tmp_path: Path) -> None:
        memory_backend.objects[BAR.cloud_id] = _snapshot(tmp_path, {"a": "1"})
        twin = Krate("bar-derive", "0.1.0", BAR.source)
        ctx.krates = [BAR, twin]
        summary = sync_locked_crates(ctx)
        assert summary.total == 1

    def test_empty(self, ctx) -> None:
        ctx.krates = []
        assert sync_locked_crates(ctx).total == 0


class TestSyncRegistryIndex:
    def test_unpacks(self, ctx, memory_backend, tmp_path: Path) -> None:
        memory_backend.objects[index_krate().cloud_id] = _snapshot(tmp_path, {"config.json": "{}"})
        target = sync_registry_index(ctx)
        assert target == ctx.registry_dir / "index" / INDEX_IDENT
        assert (target / "config.json").read_text() == "{}"

    def test_replaces_old(self, ctx, memory_backend, tmp_path: Path) -> None:
        old = ctx.registry_dir / "index" / INDEX_IDENT
        old.mkdir(parents=True)
        (old / "stale").write_text("x")
        memory_backend.objects[index_krate().cloud_id] = _snapshot(tmp_path, {"config.json": "{}"})

        target = sync_registry_index(ctx)

        assert not (target / "stale").exists()
        assert (target / "config.json").exists()

    def test_corrupt_snapshot_keeps_old(self, ctx, memory_backend) -> None:
        old = ctx.registry_dir / "index" / INDEX_IDENT
        old.mkdir(parents=True)
        (old / "config.json").write_text("old")
        memory_backend.objects[index_krate().cloud_id] = b"not a tarball"

        with pytest.raises(SyncError, match="解压失败"):
            sync_registry_index(ctx)

        assert (old / "config.json").read_text() == "old"
        assert not old.with_name(INDEX_IDENT + ".partial").exists()

    def test_missing_raises(self, ctx) -> None:
        with pytest.raises(BackendError):
            sync_registry_index(ctx)
