"""外部命令执行工具 — 统一 git 子进程调用

通过 CommandExecutor 协议抽象子进程执行，测试时可注入替身，无需 patch subprocess。
"""

from __future__ import annotations

import logging
import subprocess
from dataclasses import dataclass
from typing import Protocol

from cratemirror.core.exceptions import ExecutionError

logger = logging.getLogger(__name__)


@dataclass
class CommandResult:
    """命令执行结果（与 subprocess 解耦）"""

    returncode: int
    stdout: str
    stderr: str

    @property
    def success(self) -> bool:
        return self.returncode == 0


class CommandExecutor(Protocol):
    """命令执行器协议"""

    def execute(
        self,
        args: list[str],
        *,
        cwd: str = ".",
        timeout: int | None = None,
    ) -> CommandResult:
        """执行命令并返回结果"""
        ...


class LocalExecutor:
    """本地子进程执行器（默认实现）"""

    def execute(
        self,
        args: list[str],
        *,
        cwd: str = ".",
        timeout: int | None = None,
    ) -> CommandResult:
        try:
            r = subprocess.run(
                args, capture_output=True, text=True,
                cwd=cwd, check=False, timeout=timeout,
            )
        except subprocess.TimeoutExpired as e:
            raise ExecutionError(f"命令超时 ({timeout}s): {' '.join(args)}") from e
        except FileNotFoundError as e:
            raise ExecutionError(f"命令不存在: {args[0]}") from e
        return CommandResult(
            returncode=r.returncode,
            stdout=r.stdout,
            stderr=r.stderr,
        )


def run_git(
    args: list[str], *, cwd: str = ".",
    timeout: int | None = None,
    executor: CommandExecutor | None = None,
) -> str:
    """执行 git 命令，失败抛 ExecutionError，返回 stdout"""
    cmd = ["git", *args]
    logger.debug("  git: %s (cwd=%s)", " ".join(args), cwd)
    r = (executor or LocalExecutor()).execute(cmd, cwd=cwd, timeout=timeout)
    if not r.success:
        raise ExecutionError(f"git {args[0]} 失败 (rc={r.returncode}): {r.stderr[:500]}")
    return r.stdout.strip()
