"""crate-mirror 日志配置

文本格式面向终端；JSON 格式每行一条记录，便于 CI 汇总逐个依赖的失败。
单个依赖相关的日志通过 extra={"krate": cloud_id} 附带依赖标识，JSON 中输出为 "krate" 字段。
"""

from __future__ import annotations

import json
import logging
import sys
from datetime import datetime, timezone
from typing import IO

TEXT_FORMAT = "%(asctime)s [%(levelname)-7s] %(name)s: %(message)s"

# 只在 DEBUG 排查时才需要的第三方日志
_QUIET_LOGGERS = ("botocore", "boto3", "urllib3", "s3transfer")


class JSONFormatter(logging.Formatter):
    """单行 JSON 日志，字段: timestamp / level / logger / message [/ krate] [/ exception]"""

    def format(self, record: logging.LogRecord) -> str:
        entry: dict[str, object] = {
            "timestamp": datetime.fromtimestamp(record.created, tz=timezone.utc).isoformat(),
            "level": record.levelname,
            "logger": record.name,
            "message": record.getMessage(),
        }
        krate = getattr(record, "krate", None)
        if krate is not None:
            entry["krate"] = krate
        if record.exc_info and record.exc_info[1]:
            entry["exception"] = self.formatException(record.exc_info)
        return json.dumps(entry, ensure_ascii=False)


def setup_logging(level: str = "INFO", json_output: bool = False, stream: IO[str] | None = None) -> None:
    """配置根日志器（重复调用只保留一个 handler）

    参数:
        level: 日志级别名，无法识别时按 INFO 处理
        json_output: 输出单行 JSON 而非文本
        stream: 输出流，默认 stderr
    """
    reset_logging()
    root = logging.getLogger()
    root.setLevel(logging.getLevelNamesMapping().get(level.upper(), logging.INFO))

    handler = logging.StreamHandler(stream or sys.stderr)
    handler.setFormatter(JSONFormatter() if json_output else logging.Formatter(TEXT_FORMAT))
    root.addHandler(handler)

    quiet_level = max(root.level, logging.WARNING)
    for name in _QUIET_LOGGERS:
        logging.getLogger(name).setLevel(quiet_level)


def reset_logging() -> None:
    """移除并关闭根日志器上的所有 handler"""
    root = logging.getLogger()
    for handler in list(root.handlers):
        root.removeHandler(handler)
        handler.close()
