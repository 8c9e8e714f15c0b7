"""目录服务

CLI 和 Web 共用的门面：加载快照 → 覆盖层 → 展开 / 组合 / 安装。
目录在首次使用时加载一次，之后只读；每次 reload() 开启新一轮解析（新的备忘表）。
"""

from __future__ import annotations

import logging
import threading
import warnings
from pathlib import Path
from typing import Any

from tlcatalog.core.catalog.combine import BUNDLES, combine, combine_bundle
from tlcatalog.core.catalog.flatten import Flattener
from tlcatalog.core.catalog.graph import Catalog
from tlcatalog.core.catalog.models import Environment, FlattenedPackage, Variant
from tlcatalog.core.catalog.overrides import apply_overrides
from tlcatalog.core.catalog.registry import CatalogRegistry
from tlcatalog.core.config import Config
from tlcatalog.core.exceptions import MissingHashWarning, ValidationError
from tlcatalog.core.fetch.fetcher import ArtifactFetcher, Downloader
from tlcatalog.core.fetch.installer import EnvironmentInstaller, InstallReport
from tlcatalog.utils.yaml_io import save_yaml

logger = logging.getLogger(__name__)


class CatalogService:
    """目录解析服务"""

    def __init__(self, config: Config, *, downloader: Downloader | None = None) -> None:
        self.config = config
        self.registry = CatalogRegistry(
            catalog_path=config.catalog_file,
            bin_path=config.bin_file,
            fixed_hashes_path=config.fixed_hashes_file,
        )
        self._downloader = downloader
        self._flattener: Flattener | None = None
        self._lock = threading.Lock()

    @property
    def flattener(self) -> Flattener:
        if self._flattener is None:
            with self._lock:
                if self._flattener is None:
                    self._flattener = self._load()
        return self._flattener

    @property
    def catalog(self) -> Catalog:
        return self.flattener.catalog

    def _load(self) -> Flattener:
        catalog = apply_overrides(self.registry.load_raw(), self.config.texlive_year)
        return Flattener(
            catalog,
            bin_packages=self.registry.load_bin(),
            fixed_hashes=self.registry.load_fixed_hashes(self.config.use_fixed_hashes),
            url_prefixes=self.config.url_prefixes,
        )

    def reload(self) -> None:
        with self._lock:
            self._flattener = None

    # ---- 查询 ----

    def list_packages(self, prefix: str = "") -> list[dict[str, Any]]:
        return [
            {
                "name": e.name,
                "version": e.version,
                "has_runfiles": e.has_runfiles,
                "deps": len(e.deps),
                "variants": sorted(e.hashes),
            }
            for e in self.catalog.values()
            if e.name.startswith(prefix)
        ]

    def describe(self, name: str) -> dict[str, Any]:
        entry = self.catalog[name]
        return {
            "name": entry.name,
            "version": entry.version,
            "has_runfiles": entry.has_runfiles,
            "deps": sorted(entry.deps),
            "variants": sorted(entry.hashes),
            "strip_prefix": entry.strip_prefix,
            "binary": name in self.flattener.bin_packages,
        }

    @staticmethod
    def list_bundles() -> list[dict[str, str]]:
        return [{"name": k, "scheme": v} for k, v in sorted(BUNDLES.items())]

    # ---- 解析 ----

    def flatten(self, name: str) -> FlattenedPackage:
        return self.flattener.flatten(name)

    def combine(self, names: list[str], env_name: str = "combined") -> Environment:
        if not names:
            raise ValidationError("至少需要指定一个条目")
        selection = {n: self.catalog[n] for n in names}
        return combine(self.flattener, selection, env_name=env_name)

    def bundle(self, name: str) -> Environment:
        return combine_bundle(self.flattener, name)

    def check(self, max_workers: int | None = None) -> dict[str, Any]:
        """展开全部条目，统计制品和缺失哈希情况"""
        with warnings.catch_warnings():
            warnings.simplefilter("ignore", MissingHashWarning)
            flat = self.flattener.flatten_all(max_workers or self.config.max_workers)
        artifacts = {a.key: a for f in flat.values() for a in f.artifacts}
        fetchable = [a for a in artifacts.values() if a.needs_fetch]
        unknown = sorted(a.tl_name for a in fetchable if a.integrity.trust_on_first_use)
        return {
            "entries": len(self.catalog),
            "artifacts": len(artifacts),
            "placeholders": sum(1 for a in artifacts.values() if a.placeholder),
            "binaries": sum(1 for a in artifacts.values() if a.variant is Variant.BIN),
            "missing_hashes": unknown,
        }

    # ---- 落地 ----

    def write_manifest(self, env: Environment, path: str | Path) -> Path:
        out = Path(path)
        save_yaml(out, env.to_dict())
        logger.info("环境清单已写出: %s", out)
        return out

    def install(self, env: Environment, dest: str | Path | None = None) -> InstallReport:
        fetcher = ArtifactFetcher(
            self.config.cache_dir,
            attempts=self.config.fetch_attempts,
            timeout=self.config.fetch_timeout,
            downloader=self._downloader,
        )
        installer = EnvironmentInstaller(fetcher, max_workers=self.config.max_workers)
        root = Path(dest) if dest else Path(self.config.output_dir) / env.name
        return installer.install(env, root)
