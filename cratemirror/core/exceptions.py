"""统一异常体系

所有业务异常继承 CrateMirrorError。
输入错误（GitUrlError）只影响单条锁文件记录；其余异常由调用方决定是否中止。
CLI 层据此输出友好提示并返回非零退出码。
"""

from __future__ import annotations


class CrateMirrorError(Exception):
    """镜像工具基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(CrateMirrorError):
    """配置文件缺失或内容无效"""

    code = "CONFIG_ERROR"


class LockFileError(CrateMirrorError):
    """锁文件无法读取或整体解析失败"""

    code = "LOCKFILE_ERROR"


class GitUrlError(CrateMirrorError):
    """git 来源 URL 非法，或缺少 / 过短的 rev"""

    code = "GIT_URL_ERROR"


class BackendError(CrateMirrorError):
    """对象存储操作失败（list / fetch / upload / updated）"""

    code = "BACKEND_ERROR"


class FetchError(CrateMirrorError):
    """从公共 registry 或 git 仓库拉取失败"""

    code = "FETCH_ERROR"


class ExecutionError(CrateMirrorError):
    """外部命令（git 等）执行失败"""

    code = "EXECUTION_ERROR"


class ValidationError(CrateMirrorError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"


class SyncError(CrateMirrorError):
    """本地同步写入失败"""

    code = "SYNC_ERROR"
