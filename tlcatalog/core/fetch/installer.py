"""环境安装器

把组合好的环境落地为目录树:
  1. 并发拉取全部制品到各自的暂存目录（并发度可配置）
  2. 任一制品失败 → 整个环境构建失败（每个制品都是必需的）
  3. 按清单顺序把暂存目录并入环境根目录，已存在的文件不覆盖
  4. bin/ 下的程序设为可执行，写出 manifest.yml
"""

from __future__ import annotations

import logging
import os
import shutil
import stat
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from pathlib import Path

from tlcatalog.core.catalog.models import ArtifactDescriptor, Environment
from tlcatalog.core.exceptions import EnvironmentBuildError, FetchError
from tlcatalog.core.fetch.fetcher import ArtifactFetcher, FetchResult
from tlcatalog.core.fetch.unpack import is_within
from tlcatalog.utils.yaml_io import save_yaml

logger = logging.getLogger(__name__)

STAGING_DIR = ".staging"
MANIFEST_FILE = "manifest.yml"


@dataclass
class InstallReport:
    """环境安装结果"""

    name: str
    root: Path
    results: list[FetchResult] = field(default_factory=list)

    @property
    def trusted_on_first_use(self) -> list[str]:
        return [f"{r.name}.{r.variant}" for r in self.results if r.trusted_on_first_use]

    def summary(self) -> dict[str, int]:
        counts: dict[str, int] = {}
        for r in self.results:
            counts[r.status] = counts.get(r.status, 0) + 1
        return counts


def merge_tree(src: Path, dest: Path) -> int:
    """把 src 并入 dest，已存在的路径保留（先写者胜出），返回新增文件数

    先并入的符号链接可能指向目录，后续写入前确认实际落点仍在 dest 内；
    指向 dest 之外的符号链接不会被并入。
    """
    dest.mkdir(parents=True, exist_ok=True)
    root = os.path.realpath(dest)
    added = 0
    for current, dirs, files in os.walk(src):
        rel = Path(current).relative_to(src)
        target_dir = dest / rel
        if not is_within(root, os.path.realpath(target_dir)):
            raise EnvironmentBuildError(f"合并越出环境目录: {target_dir}")
        target_dir.mkdir(parents=True, exist_ok=True)
        for name in dirs:
            if (Path(current) / name).is_symlink():
                files.append(name)
        dirs[:] = [d for d in dirs if not (Path(current) / d).is_symlink()]
        for name in files:
            path = Path(current) / name
            target = target_dir / name
            if target.exists() or target.is_symlink():
                logger.debug("  已存在，跳过: %s", target)
                continue
            if path.is_symlink():
                link = os.readlink(path)
                resolved = os.path.normpath(os.path.join(os.path.realpath(target_dir), link))
                if os.path.isabs(link) or not is_within(root, resolved):
                    raise EnvironmentBuildError(f"符号链接越出环境目录: {path} -> {link}")
                os.symlink(link, target)
            else:
                shutil.copy2(path, target)
            added += 1
    return added


class EnvironmentInstaller:
    """环境安装器 - 并发拉取 + 顺序合并"""

    def __init__(self, fetcher: ArtifactFetcher, max_workers: int = 8) -> None:
        self.fetcher = fetcher
        self.max_workers = max(1, max_workers)

    def install(self, env: Environment, root: str | Path) -> InstallReport:
        root = Path(root)
        staging = root / STAGING_DIR
        staging.mkdir(parents=True, exist_ok=True)
        logger.info("安装环境 %s -> %s (%d 个制品)", env.name, root, len(env.artifacts))

        try:
            results = self._fetch_all(env.artifacts, staging)
            for artifact, result in zip(env.artifacts, results):
                added = merge_tree(result.path, root)
                logger.debug("  并入 %s.%s: %d 个文件", artifact.name, artifact.variant.value, added)
        finally:
            shutil.rmtree(staging, ignore_errors=True)

        self._make_bin_executable(root / "bin")
        report = InstallReport(name=env.name, root=root, results=results)
        manifest = env.to_dict()
        manifest["fetched"] = [
            {
                "name": r.name, "variant": r.variant, "status": r.status,
                "source_url": r.source_url, "content_hash": r.content_hash,
                "trusted_on_first_use": r.trusted_on_first_use,
            }
            for r in results
        ]
        save_yaml(root / MANIFEST_FILE, manifest)

        if report.trusted_on_first_use:
            logger.warning(
                "环境 %s 中 %d 个制品未经预置哈希验证: %s",
                env.name, len(report.trusted_on_first_use),
                ", ".join(report.trusted_on_first_use),
            )
        logger.info("环境 %s 安装完成: %s", env.name, report.summary())
        return report

    def _fetch_all(
        self, artifacts: tuple[ArtifactDescriptor, ...], staging: Path,
    ) -> list[FetchResult]:
        """并发拉取，结果与输入顺序一致；汇总全部失败后整体报错"""
        def work(artifact: ArtifactDescriptor) -> FetchResult | FetchError:
            dest = staging / f"{artifact.name}.{artifact.variant.value}"
            try:
                return self.fetcher.fetch(artifact, dest)
            except FetchError as e:
                logger.error("拉取失败: %s.%s - %s", artifact.name, artifact.variant.value, e)
                return e

        if self.max_workers == 1:
            outcomes = [work(a) for a in artifacts]
        else:
            with ThreadPoolExecutor(max_workers=self.max_workers) as executor:
                outcomes = list(executor.map(work, artifacts))

        failures = {
            f"{a.name}.{a.variant.value}": str(o)
            for a, o in zip(artifacts, outcomes) if isinstance(o, FetchError)
        }
        if failures:
            raise EnvironmentBuildError(
                f"{len(failures)}/{len(artifacts)} 个制品拉取失败: {', '.join(failures)}",
                failures,
            )
        return [o for o in outcomes if isinstance(o, FetchResult)]

    @staticmethod
    def _make_bin_executable(bin_dir: Path) -> None:
        if not bin_dir.is_dir():
            return
        for path in bin_dir.iterdir():
            if path.is_file() and not path.is_symlink():
                mode = path.stat().st_mode
                path.chmod(mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH)
