"""目录注册表加载

职责:
- 从 YAML 快照加载原始目录（name -> 属性）
- 加载外部二进制包清单和固定哈希表
- 将原始属性解析为 CatalogEntry（显式可选字段，不做结构合并）
"""

from __future__ import annotations

import logging
from collections.abc import Mapping
from pathlib import Path
from typing import Any

from tlcatalog.core.catalog.models import HASHED_VARIANTS, CatalogEntry
from tlcatalog.core.exceptions import ConfigError
from tlcatalog.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)


def _as_names(value: Any, *, field: str, owner: str) -> frozenset[str]:
    """deps 既可以是列表，也可以是映射（值忽略）"""
    if value is None:
        return frozenset()
    if isinstance(value, Mapping):
        return frozenset(str(k) for k in value)
    if isinstance(value, (list, tuple, set, frozenset)):
        return frozenset(str(v) for v in value)
    raise ConfigError(f"条目 '{owner}' 的 {field} 类型无效: {type(value).__name__}")


def _as_strings(value: Any) -> tuple[str, ...] | None:
    if value is None:
        return None
    if isinstance(value, str):
        return (value,)
    return tuple(str(v) for v in value)


def parse_entry(name: str, raw: Mapping[str, Any] | None, default_version: str) -> CatalogEntry:
    """将一条原始目录记录解析为 CatalogEntry"""
    raw = raw or {}
    hashes_raw = raw.get("sha512") or {}
    if not isinstance(hashes_raw, Mapping):
        raise ConfigError(f"条目 '{name}' 的 sha512 必须是映射")
    known = {v.value for v in HASHED_VARIANTS}
    hashes = {str(k): str(v or "") for k, v in hashes_raw.items() if k in known}

    urls = _as_strings(raw.get("urls"))
    if urls is None and raw.get("url"):
        urls = (str(raw["url"]),)

    try:
        strip_prefix = int(raw.get("stripPrefix", 1))
    except (TypeError, ValueError) as e:
        raise ConfigError(f"条目 '{name}' 的 stripPrefix 无效: {raw.get('stripPrefix')}") from e

    return CatalogEntry(
        name=name,
        version=str(raw.get("version") or default_version),
        has_runfiles=bool(raw.get("hasRunfiles", False)),
        deps=_as_names(raw.get("deps"), field="deps", owner=name),
        hashes=hashes,
        urls=urls,
        url_prefixes=_as_strings(raw.get("urlPrefixes")),
        strip_prefix=strip_prefix,
        post_unpack=str(raw.get("postUnpack") or ""),
    )


def parse_catalog(
    raw_catalog: Mapping[str, Any],
    default_version: str,
) -> dict[str, CatalogEntry]:
    return {
        str(name): parse_entry(str(name), info, default_version)
        for name, info in raw_catalog.items()
    }


class CatalogRegistry:
    """目录快照注册表 - 从 YAML 文件加载原始数据"""

    def __init__(
        self,
        catalog_path: str | Path,
        bin_path: str | Path = "",
        fixed_hashes_path: str | Path = "",
    ) -> None:
        self.catalog_path = Path(catalog_path)
        self.bin_path = Path(bin_path) if bin_path else None
        self.fixed_hashes_path = Path(fixed_hashes_path) if fixed_hashes_path else None

    def load_raw(self) -> dict[str, Any]:
        """加载原始目录；文件缺失视为配置错误"""
        if not self.catalog_path.exists():
            raise ConfigError(f"目录快照不存在: {self.catalog_path}")
        data = load_yaml(self.catalog_path)
        packages = data.get("packages", data)
        if not isinstance(packages, Mapping):
            raise ConfigError(f"目录快照格式无效: {self.catalog_path}")
        logger.info("已加载原始目录: %d 个条目 (%s)", len(packages), self.catalog_path)
        return dict(packages)

    def load_bin(self) -> dict[str, dict[str, Any]]:
        """加载外部二进制包清单 name -> {files, metadata}"""
        if self.bin_path is None or not self.bin_path.exists():
            return {}
        data = load_yaml(self.bin_path)
        packages = data.get("packages", data)
        result = {str(k): dict(v or {}) for k, v in packages.items()}
        logger.info("已加载二进制包: %d 个", len(result))
        return result

    def load_fixed_hashes(self, enabled: bool = True) -> dict[str, str]:
        """加载固定哈希表 tlName -> sha1；关闭或缺失时返回空表"""
        if not enabled:
            logger.info("固定哈希表已关闭")
            return {}
        if self.fixed_hashes_path is None or not self.fixed_hashes_path.exists():
            logger.warning("固定哈希表不存在: %s", self.fixed_hashes_path)
            return {}
        data = load_yaml(self.fixed_hashes_path)
        result = {str(k): str(v) for k, v in data.items() if v}
        logger.info("已加载固定哈希: %d 条", len(result))
        return result
