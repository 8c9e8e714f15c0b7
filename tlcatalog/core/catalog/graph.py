"""目录索引图

覆盖层处理后的条目放入一个只读的索引数组：每个条目分配整数下标，
依赖边存为下标元组。构建时一次性检查未知引用和依赖环，
后续展开不再依赖递归深度来暴露环。
"""

from __future__ import annotations

import logging
from collections.abc import Iterator, Mapping

from tlcatalog.core.catalog.models import CatalogEntry
from tlcatalog.core.exceptions import CatalogIntegrityError, UnknownEntryError

logger = logging.getLogger(__name__)

_WHITE, _GREY, _BLACK = 0, 1, 2


class Catalog(Mapping[str, CatalogEntry]):
    """只读目录：name -> CatalogEntry，附带下标化的依赖边"""

    def __init__(self, entries: Mapping[str, CatalogEntry]) -> None:
        names = sorted(entries)
        self._entries = tuple(entries[n] for n in names)
        self._index = {n: i for i, n in enumerate(names)}

        edges: list[tuple[int, ...]] = []
        for entry in self._entries:
            unknown = sorted(d for d in entry.deps if d not in self._index)
            if unknown:
                raise UnknownEntryError(
                    f"条目 '{entry.name}' 依赖未知条目: {', '.join(unknown)}"
                )
            edges.append(tuple(sorted(self._index[d] for d in entry.deps)))
        self._edges = tuple(edges)

        self.check_acyclic()

    # ---- Mapping 接口 ----

    def __getitem__(self, name: str) -> CatalogEntry:
        try:
            return self._entries[self._index[name]]
        except KeyError:
            raise UnknownEntryError(f"目录中不存在条目: '{name}'") from None

    def __iter__(self) -> Iterator[str]:
        return (e.name for e in self._entries)

    def __len__(self) -> int:
        return len(self._entries)

    def __contains__(self, name: object) -> bool:
        return name in self._index

    def get(self, name: str, default: CatalogEntry | None = None) -> CatalogEntry | None:
        idx = self._index.get(name)
        return default if idx is None else self._entries[idx]

    # ---- 下标访问 ----

    def index_of(self, name: str) -> int:
        if name not in self._index:
            raise UnknownEntryError(f"目录中不存在条目: '{name}'")
        return self._index[name]

    def entry_at(self, idx: int) -> CatalogEntry:
        return self._entries[idx]

    def deps_of(self, idx: int) -> tuple[int, ...]:
        return self._edges[idx]

    def check_acyclic(self) -> None:
        """迭代式三色 DFS，发现回边即报告整条环路"""
        color = [_WHITE] * len(self._entries)
        for root in range(len(self._entries)):
            if color[root] != _WHITE:
                continue
            color[root] = _GREY
            path = [root]
            stack = [iter(self._edges[root])]
            while stack:
                child = next(stack[-1], None)
                if child is None:
                    stack.pop()
                    color[path.pop()] = _BLACK
                    continue
                if color[child] == _GREY:
                    cycle = path[path.index(child):] + [child]
                    names = " -> ".join(self._entries[i].name for i in cycle)
                    raise CatalogIntegrityError(f"目录存在依赖环: {names}")
                if color[child] == _WHITE:
                    color[child] = _GREY
                    path.append(child)
                    stack.append(iter(self._edges[child]))
        logger.debug("依赖图无环检查通过: %d 个条目", len(self._entries))
