"""tlcatalog 命令行接口

CLI 按领域拆分为子模块，每个模块注册自己的命令到 main group。
"""

from __future__ import annotations

import os
from typing import Any

import click

from tlcatalog import __version__
from tlcatalog.core.exceptions import TLCatalogError
from tlcatalog.services.container import get_container, reset_container
from tlcatalog.utils.logger import setup_logging


def _svc() -> Any:
    """获取全局服务容器的快捷方式"""
    return get_container()


class _Group(click.Group):
    """把业务异常转成带错误码的友好提示，而不是堆栈"""

    def invoke(self, ctx: click.Context) -> Any:
        try:
            return super().invoke(ctx)
        except TLCatalogError as e:
            raise click.ClickException(f"[{e.code}] {e}") from e


@click.group(cls=_Group)
@click.version_option(version=__version__)
@click.option("-c", "--config", "config_path", default=None, help="配置文件路径")
def main(config_path: str | None) -> None:
    """tlcatalog - TeX Live 包目录解析与环境组装"""
    setup_logging(
        level=os.getenv("TLCATALOG_LOG_LEVEL", "INFO"),
        json_output=os.getenv("TLCATALOG_LOG_JSON", "") == "1",
    )
    if config_path:
        from tlcatalog.core.config import init_config
        init_config(config_path)
        reset_container()


# 注册各领域子命令
from tlcatalog.cli.cmd_catalog import register as _reg_catalog  # noqa: E402
from tlcatalog.cli.cmd_env import register as _reg_env  # noqa: E402

_reg_catalog(main)
_reg_env(main)
