"""目录覆盖层

对上游原始目录做固定的结构修补，然后放入索引图:
  1. 所有条目去掉指向自身的依赖
  2. 若干具名条目的硬编码修补（见 NAMED_OVERRIDES）

具名目标不存在说明上游目录格式变了，立即报 CatalogIntegrityError。
"""

from __future__ import annotations

import logging
from collections.abc import Callable, Mapping
from dataclasses import dataclass
from typing import Any

from tlcatalog.core.catalog.graph import Catalog
from tlcatalog.core.catalog.models import CatalogEntry
from tlcatalog.core.catalog.registry import parse_catalog
from tlcatalog.core.exceptions import CatalogIntegrityError

logger = logging.getLogger(__name__)

Patch = Callable[[CatalogEntry], CatalogEntry]


def without_runfiles(entry: CatalogEntry) -> CatalogEntry:
    return entry.evolve(has_runfiles=False)


def adding_deps(*names: str) -> Patch:
    def patch(entry: CatalogEntry) -> CatalogEntry:
        return entry.evolve(deps=entry.deps | frozenset(names))
    return patch


def removing_deps(*names: str) -> Patch:
    def patch(entry: CatalogEntry) -> CatalogEntry:
        return entry.evolve(deps=entry.deps - frozenset(names))
    return patch


@dataclass(frozen=True)
class Override:
    """一条具名修补；requires 列出补丁引入的、同样必须存在的条目"""

    target: str
    patch: Patch
    requires: tuple[str, ...] = ()


NAMED_OVERRIDES: tuple[Override, ...] = (
    # 只含 bin.core.doc 里已有的文档
    Override("dvidvi", without_runfiles),
    # 只含 tlmgr 的 *.po
    Override("texlive-msg-translations", without_runfiles),
    # 转换字体时需要
    Override("xdvi", adding_deps("metafont"), requires=("metafont",)),
    # 基础集合去掉重量级的引擎和查看器 ...
    Override("collection-basic", removing_deps("metafont", "xdvi")),
    # ... 挂到别的集合上，保证全部集合的并集仍覆盖所有包
    Override("collection-metapost", adding_deps("metafont"), requires=("metafont",)),
    Override("collection-plaingeneric", adding_deps("xdvi"), requires=("xdvi",)),
)


def remove_self_deps(entries: Mapping[str, CatalogEntry]) -> dict[str, CatalogEntry]:
    result: dict[str, CatalogEntry] = {}
    for name, entry in entries.items():
        if name in entry.deps:
            logger.debug("移除自依赖: %s", name)
            entry = entry.evolve(deps=entry.deps - {name})
        result[name] = entry
    return result


def apply_named_overrides(
    entries: Mapping[str, CatalogEntry],
    overrides: tuple[Override, ...] = NAMED_OVERRIDES,
) -> dict[str, CatalogEntry]:
    result = dict(entries)
    for ov in overrides:
        missing = [n for n in (ov.target, *ov.requires) if n not in result]
        if missing:
            raise CatalogIntegrityError(
                f"覆盖目标不存在 ({ov.target}): {', '.join(missing)}；上游目录格式可能已变化"
            )
        result[ov.target] = ov.patch(result[ov.target])
    return result


def apply_overrides(raw_catalog: Mapping[str, Any], default_version: str = "2018") -> Catalog:
    """原始目录 → 修补后的只读目录（含无环检查）"""
    entries = parse_catalog(raw_catalog, default_version)
    entries = remove_self_deps(entries)
    entries = apply_named_overrides(entries)
    catalog = Catalog(entries)
    logger.info("目录覆盖完成: %d 个条目", len(catalog))
    return catalog
