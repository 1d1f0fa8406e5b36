"""存储后端测试"""

from __future__ import annotations

import io
from datetime import datetime, timedelta, timezone
from pathlib import Path
from unittest.mock import MagicMock, patch

import pytest
from botocore.exceptions import ClientError, EndpointConnectionError

from cratemirror.core.config import Config
from cratemirror.core.exceptions import BackendError
from cratemirror.core.models import GitSource, Krate, RegistrySource
from cratemirror.services.backends import FilesystemBackend, create_backend
from cratemirror.services.backends.s3 import S3Backend, create_client

FOO = Krate("foo", "1.0.0", RegistrySource("abc123"))
BAR = Krate("bar", "0.1.0", GitSource("https://example.com/bar", "9135717", "bar-0011"))


def _client_error(code: str, op: str = "HeadObject") -> ClientError:
    return ClientError({"Error": {"Code": code, "Message": code}}, op)


class TestFilesystemBackend:
    def test_upload_fetch(self, tmp_path: Path) -> None:
        fs = FilesystemBackend(tmp_path / "bucket")
        assert fs.upload(b"data", FOO) == 4
        assert fs.fetch(FOO) == b"data"
        assert (tmp_path / "bucket" / "abc123").exists()

    def test_overwrite(self, tmp_path: Path) -> None:
        fs = FilesystemBackend(tmp_path)
        fs.upload(b"one", FOO)
        fs.upload(b"two", FOO)
        assert fs.fetch(FOO) == b"two"

    def test_list_with_prefix(self, tmp_path: Path) -> None:
        fs = FilesystemBackend(tmp_path)
        fs.set_prefix("mirror/")
        fs.upload(b"a", FOO)
        fs.upload(b"b", BAR)
        (tmp_path / "other.txt").write_text("x")
        assert sorted(fs.list()) == sorted([FOO.cloud_id, BAR.cloud_id])
        assert (tmp_path / "mirror" / "abc123").exists()

    def test_list_ignores_tmp(self, tmp_path: Path) -> None:
        fs = FilesystemBackend(tmp_path)
        (tmp_path / "partial.tmp").write_text("x")
        assert fs.list() == []

    def test_fetch_missing(self, tmp_path: Path) -> None:
        with pytest.raises(BackendError, match="读取失败"):
            FilesystemBackend(tmp_path).fetch(FOO)

    def test_updated(self, tmp_path: Path) -> None:
        fs = FilesystemBackend(tmp_path)
        assert fs.updated(FOO) is None
        fs.upload(b"x", FOO)
        ts = fs.updated(FOO)
        assert ts is not None
        assert ts.tzinfo is not None
        assert datetime.now(timezone.utc) - ts < timedelta(minutes=5)

    def test_prefix_traversal_rejected(self, tmp_path: Path) -> None:
        with pytest.raises(BackendError, match="非法前缀"):
            FilesystemBackend(tmp_path).set_prefix("../escape/")

    def test_bad_key_rejected(self, tmp_path: Path) -> None:
        evil = Krate("x", "1", RegistrySource("../../etc/passwd"))
        with pytest.raises(BackendError, match="非法存储 key"):
            FilesystemBackend(tmp_path).upload(b"x", evil)


class TestS3Backend:
    @pytest.fixture()
    def client(self) -> MagicMock:
        return MagicMock()

    def test_requires_bucket(self, client) -> None:
        with pytest.raises(BackendError, match="bucket"):
            S3Backend("", client=client)

    def test_upload(self, client) -> None:
        s3 = S3Backend("crates", client=client)
        s3.set_prefix("mirror/")
        assert s3.upload(b"abc", FOO) == 3
        client.put_object.assert_called_once_with(Bucket="crates", Key="mirror/abc123", Body=b"abc")

    def test_fetch(self, client) -> None:
        client.get_object.return_value = {"Body": io.BytesIO(b"payload")}
        s3 = S3Backend("crates", client=client)
        assert s3.fetch(BAR) == b"payload"
        client.get_object.assert_called_once_with(Bucket="crates", Key=BAR.cloud_id)

    def test_fetch_error(self, client) -> None:
        client.get_object.side_effect = _client_error("NoSuchKey", "GetObject")
        with pytest.raises(BackendError, match="下载失败"):
            S3Backend("crates", client=client).fetch(FOO)

    def test_list_strips_prefix(self, client) -> None:
        paginator = client.get_paginator.return_value
        paginator.paginate.return_value = [
            {"Contents": [{"Key": "mirror/aaa"}, {"Key": "mirror/bbb"}]},
            {"Contents": [{"Key": "mirror/ccc"}]},
            {},
        ]
        s3 = S3Backend("crates", client=client)
        s3.set_prefix("mirror/")
        assert s3.list() == ["aaa", "bbb", "ccc"]
        client.get_paginator.assert_called_once_with("list_objects_v2")
        paginator.paginate.assert_called_once_with(Bucket="crates", Prefix="mirror/")

    def test_list_no_prefix(self, client) -> None:
        client.get_paginator.return_value.paginate.return_value = [{"Contents": [{"Key": "k"}]}]
        assert S3Backend("crates", client=client).list() == ["k"]
        client.get_paginator.return_value.paginate.assert_called_once_with(Bucket="crates")

    def test_list_error(self, client) -> None:
        client.get_paginator.side_effect = EndpointConnectionError(endpoint_url="http://s3")
        with pytest.raises(BackendError, match="列举失败"):
            S3Backend("crates", client=client).list()

    def test_updated(self, client) -> None:
        ts = datetime(2024, 1, 1, tzinfo=timezone.utc)
        client.head_object.return_value = {"LastModified": ts}
        assert S3Backend("crates", client=client).updated(FOO) == ts

    @pytest.mark.parametrize("code", ["404", "NoSuchKey", "NotFound"])
    def test_updated_missing(self, client, code) -> None:
        client.head_object.side_effect = _client_error(code)
        assert S3Backend("crates", client=client).updated(FOO) is None

    def test_updated_denied(self, client) -> None:
        client.head_object.side_effect = _client_error("403")
        with pytest.raises(BackendError, match="读取元数据失败"):
            S3Backend("crates", client=client).updated(FOO)

    def test_create_client(self) -> None:
        session = MagicMock()
        create_client(region="eu-west-1", endpoint_url="http://minio:9000", session=session)
        session.client.assert_called_once_with(
            "s3", region_name="eu-west-1", endpoint_url="http://minio:9000",
        )


class TestCreateBackend:
    def test_fs(self, tmp_path: Path) -> None:
        backend = create_backend(Config(fs_dir=str(tmp_path / "b"), prefix="p/"))
        assert isinstance(backend, FilesystemBackend)
        assert backend.prefix == "p/"

    def test_s3(self) -> None:
        with patch("cratemirror.services.backends.s3.create_client") as m:
            backend = create_backend(Config(backend="s3", bucket="crates", region="us-east-1"))
        assert isinstance(backend, S3Backend)
        m.assert_called_once_with(region="us-east-1", endpoint_url="")
