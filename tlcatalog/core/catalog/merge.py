"""去重合并器

两个制品 (name, variant) 相同即视为重复，保留先出现的那个。
做法: 拼接 → 按 (name, variant) 稳定排序 → 折叠相邻重复。
结果只取决于输入的制品集合，与列表顺序无关。
"""

from __future__ import annotations

from collections.abc import Iterable

from tlcatalog.core.catalog.models import ArtifactDescriptor


def sort_key(artifact: ArtifactDescriptor) -> tuple[str, int]:
    return (artifact.name, artifact.variant.rank)


def fast_unique(artifacts: Iterable[ArtifactDescriptor]) -> tuple[ArtifactDescriptor, ...]:
    """排序后折叠相邻的相同身份；sorted 是稳定的，因此先出现者胜出"""
    result: list[ArtifactDescriptor] = []
    for artifact in sorted(artifacts, key=sort_key):
        if result and result[-1].key == artifact.key:
            continue
        result.append(artifact)
    return tuple(result)


def merge(*lists: Iterable[ArtifactDescriptor]) -> tuple[ArtifactDescriptor, ...]:
    """合并多个制品列表为一个无重复的有序序列"""
    combined: list[ArtifactDescriptor] = []
    for items in lists:
        combined.extend(items)
    return fast_unique(combined)
