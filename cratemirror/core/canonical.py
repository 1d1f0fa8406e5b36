"""git 来源 URL 规范化

把 git URL + rev 归一为稳定的 (canonical_url, short_rev, ident)。

规范化规则（兼容性契约 — 任何改动都会改变所有已存储 git 依赖的 key）:
  1. 去掉 "git+" 前缀；scheme 转小写，仅允许 http/https/ssh/git/file
  2. 必须有 host（file 除外），host 转小写
  3. 去掉 user:password@
  4. 去掉 scheme 的默认端口（80/443/22/9418）
  5. 去掉 query 与 fragment
  6. 去掉路径尾部 "/"，再去掉一个 ".git" 后缀，再去掉尾部 "/"
  7. github.com: 路径转小写，scheme 统一为 https

ident = "{路径最后一段}-{sha256(规范 URL) 前 16 位十六进制}"
"""

from __future__ import annotations

import hashlib
import re
from dataclasses import dataclass
from urllib.parse import parse_qsl, urlsplit

from cratemirror.core.exceptions import GitUrlError
from cratemirror.core.models import GitSource

SHORT_REV_LEN = 7

_ALLOWED_SCHEMES = frozenset(("http", "https", "ssh", "git", "file"))
_DEFAULT_PORTS = {"http": 80, "https": 443, "ssh": 22, "git": 9418}
_UNSAFE_CHARS_RE = re.compile(r"[^A-Za-z0-9._-]")


@dataclass(frozen=True)
class Canonicalized:
    """规范化后的 git URL"""

    scheme: str
    host: str
    port: int | None
    path: str

    @classmethod
    def from_url(cls, url: str) -> Canonicalized:
        """解析并规范化 URL，失败抛 GitUrlError"""
        try:
            parts = urlsplit(url.strip())
            port = parts.port
        except ValueError as e:
            raise GitUrlError(f"无法解析 URL '{url}': {e}") from e

        scheme = parts.scheme.lower()
        if scheme.startswith("git+"):
            scheme = scheme[len("git+"):]
        if scheme not in _ALLOWED_SCHEMES:
            raise GitUrlError(f"不支持的 git URL 协议 '{parts.scheme}': {url}")

        host = (parts.hostname or "").lower()
        if not host and scheme != "file":
            raise GitUrlError(f"git URL 缺少 host: {url}")

        if port is not None and _DEFAULT_PORTS.get(scheme) == port:
            port = None

        path = parts.path.rstrip("/")
        if path.endswith(".git"):
            path = path[: -len(".git")].rstrip("/")

        if host == "github.com":
            scheme = "https"
            path = path.lower()

        return cls(scheme=scheme, host=host, port=port, path=path)

    @property
    def url(self) -> str:
        netloc = self.host if self.port is None else f"{self.host}:{self.port}"
        return f"{self.scheme}://{netloc}{self.path}"

    def ident(self) -> str:
        """文件系统 / 对象 key 安全的稳定标识"""
        name = self.path.rsplit("/", 1)[-1]
        name = _UNSAFE_CHARS_RE.sub("_", name) or "_empty"
        digest = hashlib.sha256(self.url.encode("utf-8")).hexdigest()[:16]
        return f"{name}-{digest}"

    def __str__(self) -> str:
        return self.url


def extract_rev(url: str) -> str:
    """从 query 中取 rev 并截断为 7 位；fragment 不参与校验

    支持三种写法:
      1. 7 位短哈希           ?rev=9135717
      2. 40 位完整 sha-1       ?rev=91357179ba2c...
      3. 短哈希 + 说明性片段   ?rev=9135717#91357179ba2c...
    """
    query = urlsplit(url).query
    revs = [v for k, v in parse_qsl(query, keep_blank_values=True) if k == "rev"]
    if not revs:
        raise GitUrlError(f"URL 中缺少 rev 参数: {url}")
    rev = revs[0]
    if len(rev) < SHORT_REV_LEN:
        raise GitUrlError(f"rev '{rev}' 过短，至少需要 {SHORT_REV_LEN} 位: {url}")
    return rev[:SHORT_REV_LEN]


def source_from_git_url(url: str) -> GitSource:
    """把锁文件中的 git 来源字符串转换为 GitSource"""
    rev = extract_rev(url)
    canonical = Canonicalized.from_url(url)
    return GitSource(url=canonical.url, rev=rev, ident=canonical.ident())
