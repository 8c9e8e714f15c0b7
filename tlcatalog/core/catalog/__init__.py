"""TeX Live 目录解析

模块划分:
- models.py: 数据模型
- registry.py: 原始目录 / 二进制包 / 固定哈希表加载
- overrides.py: 覆盖层（自依赖移除 + 具名修补）
- graph.py: 只读索引图与无环检查
- artifact.py: 制品描述构建
- merge.py: 去重合并
- flatten.py: 依赖展开
- combine.py: 环境组合与预定义方案
"""

from tlcatalog.core.catalog.artifact import build_descriptor
from tlcatalog.core.catalog.combine import BUNDLES, combine, combine_bundle
from tlcatalog.core.catalog.flatten import Flattener
from tlcatalog.core.catalog.graph import Catalog
from tlcatalog.core.catalog.merge import merge
from tlcatalog.core.catalog.models import (
    ArtifactDescriptor,
    CatalogEntry,
    Environment,
    FlattenedPackage,
    Variant,
)
from tlcatalog.core.catalog.overrides import apply_overrides
from tlcatalog.core.catalog.registry import CatalogRegistry

__all__ = [
    "ArtifactDescriptor",
    "BUNDLES",
    "Catalog",
    "CatalogEntry",
    "CatalogRegistry",
    "Environment",
    "FlattenedPackage",
    "Flattener",
    "Variant",
    "apply_overrides",
    "build_descriptor",
    "combine",
    "combine_bundle",
    "merge",
]
