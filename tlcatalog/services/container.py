"""服务容器 - 懒加载，CLI 和 Web 共享同一组服务实例

用法:
    from tlcatalog.services.container import get_container
    svc = get_container().catalog
"""

from __future__ import annotations

import logging
import threading
from typing import TYPE_CHECKING

if TYPE_CHECKING:
    from tlcatalog.core.config import Config
    from tlcatalog.services.catalog_service import CatalogService

logger = logging.getLogger(__name__)


class ServiceContainer:
    """懒加载服务容器；未显式传入配置时使用全局 get_config()"""

    def __init__(self, config: Config | None = None) -> None:
        self._instances: dict[str, object] = {}
        if config is None:
            from tlcatalog.core.config import get_config
            config = get_config()
        self._config = config

    @property
    def config(self) -> Config:
        return self._config

    @property
    def catalog(self) -> CatalogService:
        if "catalog" not in self._instances:
            from tlcatalog.services.catalog_service import CatalogService
            self._instances["catalog"] = CatalogService(self._config)
        return self._instances["catalog"]  # type: ignore[return-value]


_container: ServiceContainer | None = None
_container_lock = threading.Lock()


def get_container() -> ServiceContainer:
    """获取全局服务容器（线程安全）"""
    global _container  # noqa: PLW0603
    if _container is None:
        with _container_lock:
            if _container is None:
                _container = ServiceContainer()
    return _container


def reset_container() -> None:
    """重置全局容器（测试或重新加载配置时使用）"""
    global _container  # noqa: PLW0603
    with _container_lock:
        _container = None
