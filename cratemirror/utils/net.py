"""网络工具 — URL 安全校验与单次 HTTP 下载"""

from __future__ import annotations

import http.client
import logging
import urllib.error
import urllib.request
from urllib.parse import urlparse

from cratemirror.core.exceptions import FetchError, ValidationError

logger = logging.getLogger(__name__)

_ALLOWED_SCHEMES = frozenset(("http", "https"))

USER_AGENT = "crate-mirror"
DEFAULT_TIMEOUT = 60


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验 URL 仅使用 http/https，防止 file:// 等非预期协议访问

    Raises:
        ValidationError: URL scheme 不在白名单内
    """
    parsed = urlparse(url)
    if parsed.scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{parsed.scheme}'{label}，"
            f"仅支持 http/https: {url}"
        )


def http_get(url: str, *, timeout: int = DEFAULT_TIMEOUT, context: str = "") -> bytes:
    """单次 GET 下载，不做重试；失败抛 FetchError"""
    validate_url_scheme(url, context=context)
    req = urllib.request.Request(url, headers={"User-Agent": USER_AGENT})
    logger.debug("GET %s", url)
    try:
        with urllib.request.urlopen(req, timeout=timeout) as resp:  # nosec B310
            return resp.read()
    except urllib.error.HTTPError as e:
        raise FetchError(f"HTTP 错误 {e.code}: {url}") from e
    except (urllib.error.URLError, http.client.HTTPException, OSError) as e:
        raise FetchError(f"下载失败: {url} - {e}") from e
