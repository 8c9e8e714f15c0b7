"""目录数据模型

数据类:
- Variant: 制品内容类别
- CatalogEntry: 单个目录条目（覆盖层处理后不可变）
- Integrity / UnpackSpec / ArtifactDescriptor: 单个可拉取制品的完整描述
- FlattenedPackage: 条目展开后的去重制品列表
- Environment: 一组条目合并后的可安装环境
"""

from __future__ import annotations

from collections.abc import Mapping
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any

# 上游 tarball 中的元数据目录，解包时排除
METADATA_EXCLUDES = ("tlpkg",)


class Variant(str, Enum):
    """制品内容类别，声明顺序即去重排序使用的全序"""

    RUN = "run"
    DOC = "doc"
    SOURCE = "source"
    BIN = "bin"

    @property
    def rank(self) -> int:
        return _VARIANT_RANK[self]


_VARIANT_RANK = {v: i for i, v in enumerate(Variant)}

# 可在目录里声明哈希的类别（bin 由外部二进制包提供）
HASHED_VARIANTS = (Variant.RUN, Variant.DOC, Variant.SOURCE)


@dataclass(frozen=True)
class CatalogEntry:
    """单个目录条目"""

    name: str
    version: str
    has_runfiles: bool = False
    deps: frozenset[str] = frozenset()
    hashes: Mapping[str, str] = field(default_factory=dict)  # variant -> sha512，可为空串
    urls: tuple[str, ...] | None = None
    url_prefixes: tuple[str, ...] | None = None
    strip_prefix: int = 1
    post_unpack: str = ""

    def declares(self, variant: Variant) -> bool:
        """条目是否声明了该类别（即便哈希值为空串）"""
        return variant.value in self.hashes

    def evolve(self, **changes: Any) -> CatalogEntry:
        return replace(self, **changes)


@dataclass(frozen=True)
class Integrity:
    """期望的完整性哈希

    mode:
      - flat: 下载得到的归档文件本身的哈希（上游 sha512）
      - recursive: 解包后目录树的哈希（固定哈希表 sha1）
    value 为 None 表示没有任何预置哈希，走首次使用信任 (TOFU)。
    """

    algo: str = "sha1"
    value: str | None = None
    mode: str = "recursive"

    @property
    def trust_on_first_use(self) -> bool:
        return self.value is None

    def to_dict(self) -> dict[str, Any]:
        return {"algo": self.algo, "value": self.value, "mode": self.mode}


@dataclass(frozen=True)
class UnpackSpec:
    """解包变换：剥离前缀、排除元数据目录、不覆盖已有文件、后处理脚本"""

    strip_prefix: int = 1
    excludes: tuple[str, ...] = METADATA_EXCLUDES
    keep_old_files: bool = True
    post_unpack: str = ""


@dataclass(frozen=True)
class ArtifactDescriptor:
    """单个 (name, variant) 制品的拉取 + 校验 + 解包描述"""

    name: str
    variant: Variant
    version: str
    integrity: Integrity = field(default_factory=Integrity)
    urls: tuple[str, ...] = ()
    unpack: UnpackSpec = field(default_factory=UnpackSpec)
    placeholder: bool = False
    files: tuple[str, ...] = ()
    metadata: Mapping[str, Any] = field(default_factory=dict)

    @property
    def key(self) -> tuple[str, Variant]:
        return (self.name, self.variant)

    @property
    def url_name(self) -> str:
        """上游使用的文件基名（不含 .tar.xz）"""
        if self.variant is Variant.RUN:
            return self.name
        return f"{self.name}.{self.variant.value}"

    @property
    def tl_name(self) -> str:
        """带版本的制品标识，也是固定哈希表的键"""
        return f"{self.url_name}-{self.version}"

    @property
    def needs_fetch(self) -> bool:
        return not self.placeholder and self.variant is not Variant.BIN

    def to_dict(self) -> dict[str, Any]:
        data: dict[str, Any] = {
            "name": self.name,
            "variant": self.variant.value,
            "version": self.version,
        }
        if self.placeholder:
            data["placeholder"] = True
            return data
        if self.variant is Variant.BIN:
            data["files"] = list(self.files)
            data["metadata"] = dict(self.metadata)
            return data
        data["integrity"] = self.integrity.to_dict()
        data["urls"] = list(self.urls)
        data["strip_prefix"] = self.unpack.strip_prefix
        if self.unpack.post_unpack:
            data["post_unpack"] = self.unpack.post_unpack
        return data


@dataclass(frozen=True)
class FlattenedPackage:
    """条目展开后的传递闭包（已去重、按合并器顺序）"""

    name: str
    artifacts: tuple[ArtifactDescriptor, ...] = ()

    def keys(self) -> set[tuple[str, Variant]]:
        return {a.key for a in self.artifacts}


@dataclass(frozen=True)
class Environment:
    """可安装环境：多个条目制品的去重并集"""

    name: str
    selected: tuple[str, ...] = ()
    artifacts: tuple[ArtifactDescriptor, ...] = ()

    def to_dict(self) -> dict[str, Any]:
        return {
            "name": self.name,
            "selected": list(self.selected),
            "artifacts": [a.to_dict() for a in self.artifacts],
        }
