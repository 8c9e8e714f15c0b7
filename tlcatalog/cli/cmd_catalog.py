"""CLI - 目录查询与展开命令"""

from __future__ import annotations

import click

from tlcatalog.cli import _svc


def register(group: click.Group) -> None:
    group.add_command(list_packages)
    group.add_command(show)
    group.add_command(flatten)
    group.add_command(check)
    group.add_command(serve)


@click.command(name="packages")
@click.option("--prefix", default="", help="按名称前缀过滤，如 collection-")
def list_packages(prefix: str) -> None:
    """列出目录中的条目"""
    packages = _svc().catalog.list_packages(prefix=prefix)
    if not packages:
        click.echo("没有匹配的条目。")
        return
    for p in packages:
        variants = ",".join(p["variants"]) or "-"
        click.echo(
            f"  {p['name']:32s} {p['version']:10s} deps={p['deps']:<4d} [{variants}]"
        )


@click.command()
@click.argument("name")
def show(name: str) -> None:
    """显示单个条目（覆盖层处理后）"""
    info = _svc().catalog.describe(name)
    click.echo(f"{info['name']} {info['version']}")
    click.echo(f"  runfiles: {'是' if info['has_runfiles'] else '否'}")
    click.echo(f"  类别: {', '.join(info['variants']) or '-'}")
    click.echo(f"  二进制: {'是' if info['binary'] else '否'}")
    click.echo(f"  依赖 ({len(info['deps'])}): {' '.join(info['deps'])}")


@click.command()
@click.argument("name")
@click.option("--urls", is_flag=True, help="同时显示候选下载地址")
def flatten(name: str, urls: bool) -> None:
    """展开条目的传递闭包制品列表"""
    pkg = _svc().catalog.flatten(name)
    for a in pkg.artifacts:
        if a.placeholder:
            mark = "占位"
        elif a.needs_fetch:
            mark = "TOFU" if a.integrity.trust_on_first_use else a.integrity.algo
        else:
            mark = "bin"
        click.echo(f"  {a.tl_name:40s} [{mark}]")
        if urls:
            for u in a.urls:
                click.echo(f"      {u}")
    click.echo(f"共 {len(pkg.artifacts)} 个制品")


@click.command()
@click.option("-j", "--jobs", default=None, type=int, help="并行展开的线程数")
def check(jobs: int | None) -> None:
    """校验目录完整性并统计缺失哈希"""
    stats = _svc().catalog.check(max_workers=jobs)
    click.echo(
        f"条目 {stats['entries']}，制品 {stats['artifacts']}，"
        f"占位 {stats['placeholders']}，二进制 {stats['binaries']}"
    )
    missing = stats["missing_hashes"]
    if missing:
        click.echo(f"缺少哈希（首次使用信任）: {len(missing)} 个")
        for name in missing:
            click.echo(f"  {name}")
    else:
        click.echo("全部制品都有预置哈希。")


@click.command()
@click.option("--host", default="127.0.0.1", help="监听地址")
@click.option("--port", default=8888, type=int, help="监听端口")
def serve(host: str, port: int) -> None:
    """启动查询 API"""
    from tlcatalog.web.app import app
    click.echo(f"查询 API: http://{host}:{port}/api/bundles")
    app.run(host=host, port=port)
