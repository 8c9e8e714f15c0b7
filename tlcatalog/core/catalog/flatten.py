"""依赖展开器

将条目展开为其传递闭包中全部制品的去重列表:
  1. run 制品（无 runfiles 时为零内容占位）
  2. 声明了 doc / source 类别时的对应制品
  3. 外部二进制包提供的 bin 制品
  4. 全部依赖的展开结果
  5. 去重合并

按索引图做显式的迭代后序 DFS，结果按下标记入本轮的备忘表，
深依赖链不会耗尽调用栈。备忘表可被多线程共享：同一键并发重复计算
只是浪费，不影响正确性。
"""

from __future__ import annotations

import logging
import threading
from collections.abc import Mapping, Sequence
from concurrent.futures import ThreadPoolExecutor
from typing import Any

from tlcatalog.core.catalog.artifact import (
    bin_descriptor,
    build_descriptor,
    placeholder_descriptor,
)
from tlcatalog.core.catalog.graph import Catalog
from tlcatalog.core.catalog.merge import merge
from tlcatalog.core.catalog.models import (
    ArtifactDescriptor,
    CatalogEntry,
    FlattenedPackage,
    Variant,
)

logger = logging.getLogger(__name__)


class Flattener:
    """单轮解析的依赖展开器，持有本轮的备忘表"""

    def __init__(
        self,
        catalog: Catalog,
        *,
        bin_packages: Mapping[str, Mapping[str, Any]] | None = None,
        fixed_hashes: Mapping[str, str] | None = None,
        url_prefixes: Sequence[str] = (),
    ) -> None:
        self.catalog = catalog
        self.bin_packages = bin_packages or {}
        self.fixed_hashes = fixed_hashes or {}
        self.url_prefixes = tuple(url_prefixes)
        self._memo: dict[int, FlattenedPackage] = {}
        self._lock = threading.Lock()

    def own_artifacts(self, entry: CatalogEntry) -> list[ArtifactDescriptor]:
        """条目自身（不含依赖）的制品"""
        artifacts: list[ArtifactDescriptor] = []
        if entry.has_runfiles:
            artifacts.append(self._describe(entry, Variant.RUN))
        else:
            artifacts.append(placeholder_descriptor(entry))
        for variant in (Variant.DOC, Variant.SOURCE):
            if entry.declares(variant):
                artifacts.append(self._describe(entry, variant))
        bin_pkg = self.bin_packages.get(entry.name)
        if bin_pkg is not None:
            artifacts.append(bin_descriptor(entry.name, entry.version, bin_pkg))
        return artifacts

    def _describe(self, entry: CatalogEntry, variant: Variant) -> ArtifactDescriptor:
        return build_descriptor(
            entry, variant,
            fixed_hashes=self.fixed_hashes,
            url_prefixes=self.url_prefixes,
        )

    def flatten(self, name: str) -> FlattenedPackage:
        """展开目录中的具名条目（本轮内只计算一次）"""
        root = self.catalog.index_of(name)
        cached = self._memo.get(root)
        if cached is not None:
            return cached

        stack: list[tuple[int, bool]] = [(root, False)]
        while stack:
            idx, expanded = stack.pop()
            if idx in self._memo:
                continue
            deps = self.catalog.deps_of(idx)
            if not expanded:
                stack.append((idx, True))
                stack.extend((d, False) for d in deps if d not in self._memo)
                continue
            entry = self.catalog.entry_at(idx)
            result = FlattenedPackage(
                name=entry.name,
                artifacts=merge(
                    self.own_artifacts(entry),
                    *(self._memo[d].artifacts for d in deps),
                ),
            )
            with self._lock:
                self._memo.setdefault(idx, result)
        return self._memo[root]

    def flatten_entry(self, entry: CatalogEntry) -> FlattenedPackage:
        """展开一个条目对象；与目录中同名条目不同时（自定义选择）不入备忘表"""
        if entry.name in self.catalog and self.catalog[entry.name] == entry:
            return self.flatten(entry.name)
        deps = sorted(d for d in entry.deps if d != entry.name)
        return FlattenedPackage(
            name=entry.name,
            artifacts=merge(
                self.own_artifacts(entry),
                *(self.flatten(d).artifacts for d in deps),
            ),
        )

    def flatten_all(self, max_workers: int = 1) -> dict[str, FlattenedPackage]:
        """展开目录中全部条目；条目之间互不依赖顺序，可并行"""
        names = list(self.catalog)
        if max_workers <= 1:
            results = [self.flatten(n) for n in names]
        else:
            with ThreadPoolExecutor(max_workers=max_workers) as executor:
                results = list(executor.map(self.flatten, names))
        logger.info("已展开 %d 个条目", len(results))
        return dict(zip(names, results))

    @property
    def memo_size(self) -> int:
        return len(self._memo)
