"""shell.py 命令执行器单元测试"""

from __future__ import annotations

import pytest

from cratemirror.core.exceptions import ExecutionError
from cratemirror.utils.shell import CommandResult, LocalExecutor, run_git


class RecordingExecutor:
    def __init__(self, result: CommandResult) -> None:
        self.result = result
        self.calls: list[tuple[list[str], str, int | None]] = []

    def execute(self, args, *, cwd=".", timeout=None) -> CommandResult:
        self.calls.append((args, cwd, timeout))
        return self.result


class TestLocalExecutor:
    def test_success(self, tmp_path) -> None:
        r = LocalExecutor().execute(["echo", "hello"], cwd=str(tmp_path))
        assert r.success
        assert "hello" in r.stdout

    def test_nonzero_returncode(self, tmp_path) -> None:
        r = LocalExecutor().execute(["false"], cwd=str(tmp_path))
        assert not r.success

    def test_missing_command(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="命令不存在"):
            LocalExecutor().execute(["no-such-binary-xyz"], cwd=str(tmp_path))

    def test_timeout(self, tmp_path) -> None:
        with pytest.raises(ExecutionError, match="命令超时"):
            LocalExecutor().execute(["sleep", "5"], cwd=str(tmp_path), timeout=1)


class TestRunGit:
    def test_prefixes_git(self) -> None:
        ex = RecordingExecutor(CommandResult(0, " abc \n", ""))
        out = run_git(["rev-parse", "HEAD"], cwd="/repo", timeout=9, executor=ex)
        assert out == "abc"
        assert ex.calls == [(["git", "rev-parse", "HEAD"], "/repo", 9)]

    def test_failure_raises(self) -> None:
        ex = RecordingExecutor(CommandResult(128, "", "fatal: not a repo"))
        with pytest.raises(ExecutionError, match="git checkout 失败.*not a repo"):
            run_git(["checkout", "abc"], executor=ex)

    def test_default_executor_runs_git(self, tmp_path) -> None:
        assert run_git(["--version"], cwd=str(tmp_path)).startswith("git version")
