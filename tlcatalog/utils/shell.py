"""Shell 执行工具 - 解包后处理脚本

条目的 postUnpack 是一段 shell 文本，原样交给 bash 执行，
$out 指向解包目标目录。
"""

from __future__ import annotations

import logging
import os
import subprocess
from dataclasses import dataclass
from pathlib import Path

from tlcatalog.core.exceptions import ExecutionError

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


def run_script(
    script: str,
    *,
    cwd: str | Path,
    env: dict[str, str] | None = None,
    label: str = "script",
    timeout: int | None = None,
) -> CommandResult:
    """用 bash 执行脚本文本，失败抛 ExecutionError

    Args:
        script: 脚本文本，原样执行
        cwd: 工作目录
        env: 追加到当前进程环境之上的变量
        label: 日志标签
    """
    logger.info("  %s (cwd=%s)", label, cwd)
    full_env = {**os.environ, **(env or {})}
    try:
        r = subprocess.run(
            ["bash", "-euc", script], capture_output=True, text=True,
            cwd=str(cwd), env=full_env, check=False, timeout=timeout,
        )
    except (OSError, subprocess.TimeoutExpired) as e:
        raise ExecutionError(f"{label}无法执行: {e}") from e
    result = CommandResult(returncode=r.returncode, stdout=r.stdout, stderr=r.stderr)
    if not result.success:
        raise ExecutionError(f"{label}失败 (rc={r.returncode}): {r.stderr[:500]}")
    return result
