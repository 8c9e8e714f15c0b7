"""CLI - 环境组合与安装命令"""

from __future__ import annotations

import click

from tlcatalog.cli import _svc
from tlcatalog.core.catalog.models import Environment


def register(group: click.Group) -> None:
    group.add_command(list_bundles)
    group.add_command(bundle)
    group.add_command(combine_cmd)


def _finish(env: Environment, output: str | None, install: bool, dest: str | None) -> None:
    """输出清单摘要，按需写清单文件或落地安装"""
    svc = _svc().catalog
    fetchable = [a for a in env.artifacts if a.needs_fetch]
    click.echo(
        f"环境 {env.name}: 选择 {len(env.selected)} 个条目，"
        f"{len(env.artifacts)} 个制品（需下载 {len(fetchable)}）"
    )
    if output:
        path = svc.write_manifest(env, output)
        click.echo(f"清单已写出: {path}")
    if install:
        report = svc.install(env, dest)
        click.echo(f"已安装到: {report.root}  {report.summary()}")
        if report.trusted_on_first_use:
            click.echo(f"警告: {len(report.trusted_on_first_use)} 个制品未经预置哈希验证")


@click.command(name="bundles")
def list_bundles() -> None:
    """列出预定义的环境方案"""
    for b in _svc().catalog.list_bundles():
        click.echo(f"  {b['name']:20s} <- {b['scheme']}")


@click.command()
@click.argument("name")
@click.option("-o", "--output", default=None, help="清单输出路径 (YAML)")
@click.option("--install", is_flag=True, help="拉取并落地环境")
@click.option("--dest", default=None, help="安装目录（默认 output_dir/<环境名>）")
def bundle(name: str, output: str | None, install: bool, dest: str | None) -> None:
    """按预定义方案组合环境，如 combined-basic 或 scheme-full"""
    _finish(_svc().catalog.bundle(name), output, install, dest)


@click.command(name="combine")
@click.argument("names", nargs=-1, required=True)
@click.option("--name", "env_name", default="combined", help="环境名")
@click.option("-o", "--output", default=None, help="清单输出路径 (YAML)")
@click.option("--install", is_flag=True, help="拉取并落地环境")
@click.option("--dest", default=None, help="安装目录（默认 output_dir/<环境名>）")
def combine_cmd(
    names: tuple[str, ...], env_name: str,
    output: str | None, install: bool, dest: str | None,
) -> None:
    """组合任意条目为一个环境"""
    env = _svc().catalog.combine(list(names), env_name=env_name)
    _finish(env, output, install, dest)
