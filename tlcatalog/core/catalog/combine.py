"""环境组合器

把一组条目各自的展开结果合并为一个可安装环境。
选择以映射给出，可多个叠加；同名条目后者覆盖前者（属性不同时告警），
制品层面始终统一去重。
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping

from tlcatalog.core.catalog.flatten import Flattener
from tlcatalog.core.catalog.merge import merge
from tlcatalog.core.catalog.models import CatalogEntry, Environment
from tlcatalog.core.exceptions import DuplicateSelectionConflict, ValidationError

logger = logging.getLogger(__name__)

# 预定义方案，组合后的环境名为 "combined" + 去掉 "scheme" 前缀的部分
SCHEMES = (
    "scheme-basic",
    "scheme-context",
    "scheme-full",
    "scheme-gust",
    "scheme-medium",
    "scheme-minimal",
    "scheme-small",
    "scheme-tetex",
)

BUNDLES: dict[str, str] = {
    "combined" + scheme.removeprefix("scheme"): scheme for scheme in SCHEMES
}


def merge_selections(*selections: Mapping[str, CatalogEntry]) -> dict[str, CatalogEntry]:
    """从左到右合并选择；同名且属性不同记为冲突，后者胜出"""
    merged: dict[str, CatalogEntry] = {}
    for selection in selections:
        for name, entry in selection.items():
            previous = merged.get(name)
            if previous is not None and previous != entry:
                message = f"条目 '{name}' 被重复选择且属性不同，使用后一次的选择"
                logger.warning(message)
                warnings.warn(message, DuplicateSelectionConflict, stacklevel=3)
            merged[name] = entry
    return merged


def combine(
    flattener: Flattener,
    *selections: Mapping[str, CatalogEntry],
    env_name: str = "combined",
) -> Environment:
    """组合环境：展开每个选中条目，取去重并集"""
    selected = merge_selections(*selections)
    if not selected:
        raise ValidationError("组合环境至少需要选择一个条目")
    # 选中条目自身的制品排在各依赖闭包之前：去重时先出现者胜出，
    # 显式选择的属性不会被其他条目闭包里的目录版本顶替
    artifacts = merge(
        *(flattener.own_artifacts(e) for e in selected.values()),
        *(flattener.flatten_entry(e).artifacts for e in selected.values()),
    )
    env = Environment(name=env_name, selected=tuple(selected), artifacts=artifacts)
    logger.info(
        "环境 %s: %d 个条目 -> %d 个制品", env_name, len(selected), len(artifacts),
    )
    return env


def combine_bundle(flattener: Flattener, bundle: str) -> Environment:
    """按预定义方案组合环境；bundle 可写 combined-xxx 或 scheme-xxx"""
    scheme = BUNDLES.get(bundle, bundle)
    if scheme not in SCHEMES:
        raise ValidationError(
            f"未知方案: {bundle}。可用: {', '.join(sorted(BUNDLES))}"
        )
    env_name = "combined" + scheme.removeprefix("scheme")
    entry = flattener.catalog[scheme]
    return combine(flattener, {scheme: entry}, env_name=env_name)
