"""S3 存储后端

基于 boto3 客户端；key 布局: s3://<bucket>/<prefix><cloud_id>
list() 分页遍历前缀下所有对象并去掉前缀；updated() 对不存在的对象返回 None。
"""

from __future__ import annotations

import logging
from datetime import datetime
from typing import Any

import boto3
from botocore.exceptions import BotoCoreError, ClientError

from cratemirror.core.exceptions import BackendError
from cratemirror.core.models import Krate

logger = logging.getLogger(__name__)

_NOT_FOUND_CODES = frozenset(("404", "NoSuchKey", "NotFound"))


def create_client(
    region: str = "", endpoint_url: str = "", session: boto3.Session | None = None,
) -> Any:
    """创建 S3 客户端，region / endpoint_url 为空时使用默认凭据链配置"""
    session = session or boto3.Session()
    kwargs: dict[str, str] = {}
    if region:
        kwargs["region_name"] = region
    if endpoint_url:
        kwargs["endpoint_url"] = endpoint_url
    return session.client("s3", **kwargs)


class S3Backend:
    """S3 对象存储"""

    def __init__(self, bucket: str, *, client: Any = None, region: str = "", endpoint_url: str = "") -> None:
        if not bucket:
            raise BackendError("S3 后端需要配置 bucket")
        self.bucket = bucket
        self.prefix = ""
        try:
            self.client = client or create_client(region=region, endpoint_url=endpoint_url)
        except (BotoCoreError, ClientError) as e:
            raise BackendError(f"无法创建 S3 客户端: {e}") from e

    def set_prefix(self, prefix: str) -> None:
        self.prefix = prefix.lstrip("/")

    def _key(self, krate: Krate) -> str:
        return f"{self.prefix}{krate.cloud_id}"

    def fetch(self, krate: Krate) -> bytes:
        key = self._key(krate)
        try:
            resp = self.client.get_object(Bucket=self.bucket, Key=key)
            return resp["Body"].read()
        except (BotoCoreError, ClientError) as e:
            raise BackendError(f"下载失败 s3://{self.bucket}/{key}: {e}") from e

    def upload(self, data: bytes, krate: Krate) -> int:
        key = self._key(krate)
        try:
            self.client.put_object(Bucket=self.bucket, Key=key, Body=data)
        except (BotoCoreError, ClientError) as e:
            raise BackendError(f"上传失败 s3://{self.bucket}/{key}: {e}") from e
        logger.debug("已上传 s3://%s/%s (%d 字节)", self.bucket, key, len(data))
        return len(data)

    def list(self) -> list[str]:
        keys: list[str] = []
        params: dict[str, str] = {"Bucket": self.bucket}
        if self.prefix:
            params["Prefix"] = self.prefix
        try:
            paginator = self.client.get_paginator("list_objects_v2")
            for page in paginator.paginate(**params):
                for item in page.get("Contents", []):
                    key = item["Key"]
                    if key.startswith(self.prefix):
                        keys.append(key[len(self.prefix):])
        except (BotoCoreError, ClientError) as e:
            raise BackendError(f"列举失败 s3://{self.bucket}/{self.prefix}: {e}") from e
        return keys

    def updated(self, krate: Krate) -> datetime | None:
        key = self._key(krate)
        try:
            resp = self.client.head_object(Bucket=self.bucket, Key=key)
        except ClientError as e:
            code = str(e.response.get("Error", {}).get("Code", ""))
            if code in _NOT_FOUND_CODES:
                return None
            raise BackendError(f"读取元数据失败 s3://{self.bucket}/{key}: {e}") from e
        except BotoCoreError as e:
            raise BackendError(f"读取元数据失败 s3://{self.bucket}/{key}: {e}") from e
        return resp.get("LastModified")
