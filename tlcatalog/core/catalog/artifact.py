"""制品描述构建器

职责:
- 将 (条目, 类别) 解析为完整的拉取 + 校验 + 解包描述
- 两级哈希回退: 条目自带 sha512 → 固定哈希表 sha1 → 未知 (TOFU)
- 生成镜像候选 URL 列表（顺序即优先级）

只产出描述，不做任何 I/O。
"""

from __future__ import annotations

import logging
import warnings
from collections.abc import Mapping, Sequence
from typing import Any

from tlcatalog.core.catalog.models import (
    ArtifactDescriptor,
    CatalogEntry,
    Integrity,
    UnpackSpec,
    Variant,
)
from tlcatalog.core.exceptions import MissingHashWarning

logger = logging.getLogger(__name__)

ARCHIVE_SUFFIX = ".tar.xz"


def url_name(name: str, variant: Variant) -> str:
    """上游文件基名: run 为包名，其余为 包名.类别"""
    if variant is Variant.RUN:
        return name
    return f"{name}.{variant.value}"


def resolve_integrity(
    entry: CatalogEntry,
    variant: Variant,
    fixed_hashes: Mapping[str, str],
) -> Integrity:
    """按优先级解析期望哈希

    1. 条目自带的非空 sha512（校验下载的归档本身）
    2. 固定哈希表中以 tlName 为键的 sha1（校验解包后的目录树）
    3. 都没有 → 未知，拉取时以首次计算的目录树哈希作为指纹

    第 3 种情况不阻断解析，但对被篡改的源没有任何防护，因此必须告警。
    """
    declared = entry.hashes.get(variant.value) or ""
    if declared:
        return Integrity(algo="sha512", value=declared, mode="flat")

    tl_name = f"{url_name(entry.name, variant)}-{entry.version}"
    fixed = fixed_hashes.get(tl_name)
    if fixed:
        return Integrity(algo="sha1", value=fixed, mode="recursive")

    message = (
        f"TeX Live 制品 {tl_name} 缺少哈希，降级为首次使用信任模式"
        "（无法防御被篡改的镜像源）"
    )
    logger.warning(message)
    warnings.warn(message, MissingHashWarning, stacklevel=3)
    return Integrity(algo="sha1", value=None, mode="recursive")


def candidate_urls(
    entry: CatalogEntry,
    variant: Variant,
    url_prefixes: Sequence[str],
) -> tuple[str, ...]:
    """候选下载地址：条目显式 URL 优先，否则按镜像前缀顺序拼接"""
    if entry.urls:
        return tuple(entry.urls)
    prefixes = entry.url_prefixes if entry.url_prefixes is not None else url_prefixes
    base = url_name(entry.name, variant)
    return tuple(f"{p.rstrip('/')}/{base}{ARCHIVE_SUFFIX}" for p in prefixes)


def build_descriptor(
    entry: CatalogEntry,
    variant: Variant,
    *,
    fixed_hashes: Mapping[str, str] | None = None,
    url_prefixes: Sequence[str] = (),
) -> ArtifactDescriptor:
    """构建单个制品描述（纯函数）"""
    if variant is Variant.BIN:
        raise ValueError("bin 制品来自外部二进制包，不能从目录条目构建")
    return ArtifactDescriptor(
        name=entry.name,
        variant=variant,
        version=entry.version,
        integrity=resolve_integrity(entry, variant, fixed_hashes or {}),
        urls=candidate_urls(entry, variant, url_prefixes),
        unpack=UnpackSpec(
            strip_prefix=entry.strip_prefix,
            post_unpack=entry.post_unpack,
        ),
    )


def placeholder_descriptor(entry: CatalogEntry) -> ArtifactDescriptor:
    """零内容的 run 占位制品

    集合/方案类条目的 tarball 只含元数据；占位制品让它们作为图节点存在
    （例如用于过滤断字模式），但永远不触发下载。
    """
    return ArtifactDescriptor(
        name=entry.name,
        variant=Variant.RUN,
        version=entry.version,
        placeholder=True,
    )


def bin_descriptor(
    name: str,
    version: str,
    bin_package: Mapping[str, Any],
) -> ArtifactDescriptor:
    """由外部二进制包生成 bin 制品；合并其元数据，但 pname/tlType 强制为本条目"""
    metadata = dict(bin_package.get("metadata") or {})
    metadata.update({"pname": name, "tlType": Variant.BIN.value})
    return ArtifactDescriptor(
        name=name,
        variant=Variant.BIN,
        version=str(metadata.get("version", version)),
        files=tuple(str(f) for f in bin_package.get("files") or ()),
        metadata=metadata,
    )
