"""集中配置管理

提供统一的配置入口：镜像根目录、索引新鲜度窗口、存储后端选择与凭据。
支持从 YAML 文件加载 + 编程式覆盖（CLI 参数）。
"""

from __future__ import annotations

import logging
import os
import re
from dataclasses import dataclass, field, fields

import yaml

from cratemirror.core.exceptions import ConfigError
from cratemirror.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

DEFAULT_CONFIG_FILE = "crate-mirror.yml"

BACKEND_FS = "fs"
BACKEND_S3 = "s3"
_BACKENDS = (BACKEND_FS, BACKEND_S3)

_DURATION_RE = re.compile(r"(\d+)\s*([smhd])")
_DURATION_UNITS = {"s": 1, "m": 60, "h": 3600, "d": 86400}


def parse_duration(value: str | int) -> int:
    """解析时长字符串为秒数，如 "1h30m"、"2d"、"90"（纯数字视为秒）"""
    if isinstance(value, bool) or not isinstance(value, (str, int)):
        raise ConfigError(f"时长必须是整数秒或字符串，实际为 {type(value).__name__}: {value!r}")
    if isinstance(value, int):
        if value < 0:
            raise ConfigError(f"时长不能为负数: {value}")
        return value
    text = value.strip().lower()
    if text.isdigit():
        return int(text)
    pos = 0
    total = 0
    for m in _DURATION_RE.finditer(text):
        if text[pos:m.start()].strip():
            break
        total += int(m.group(1)) * _DURATION_UNITS[m.group(2)]
        pos = m.end()
    if pos == 0 or text[pos:].strip():
        raise ConfigError(f"无法解析时长: '{value}'（示例: 90、15m、1h30m、2d）")
    return total


@dataclass
class Config:
    """镜像工具全局配置"""

    # 目录
    root_dir: str = "."
    lock_file: str = "Cargo.lock"

    # 执行
    max_stale: int = 3600  # 秒
    max_workers: int = field(default_factory=lambda: os.cpu_count() or 4)

    # 存储
    backend: str = BACKEND_FS
    bucket: str = ""
    prefix: str = ""
    region: str = ""
    endpoint_url: str = ""
    fs_dir: str = "data/bucket"

    # 上游
    download_url: str = "https://static.crates.io/crates"
    index_url: str = "git+https://github.com/rust-lang/crates.io-index.git"

    def __post_init__(self) -> None:
        if self.backend not in _BACKENDS:
            raise ConfigError(
                f"不支持的存储后端 '{self.backend}'，可选: {', '.join(_BACKENDS)}"
            )
        self.max_stale = parse_duration(self.max_stale)
        self.max_workers = max(1, int(self.max_workers))

    @classmethod
    def from_file(cls, path: str = DEFAULT_CONFIG_FILE) -> Config:
        """从 YAML 文件加载配置，不存在则返回默认；未知配置项记录警告后忽略"""
        try:
            data = load_yaml(path)
        except (yaml.YAMLError, ValueError, OSError) as e:
            raise ConfigError(f"无法加载配置文件 {path}: {e}") from e
        if not data:
            return cls()
        known = {f.name for f in fields(cls)}
        unknown = sorted(str(k) for k in data if k not in known)
        if unknown:
            logger.warning("配置文件 %s 中有未知配置项，已忽略: %s", path, ", ".join(unknown))
        try:
            return cls(**{k: v for k, v in data.items() if k in known})
        except (TypeError, ValueError) as e:
            raise ConfigError(f"配置文件 {path} 内容无效: {e}") from e


def init_config(path: str = DEFAULT_CONFIG_FILE) -> Config:
    """从文件加载配置（CLI 入口调用）"""
    cfg = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return cfg
