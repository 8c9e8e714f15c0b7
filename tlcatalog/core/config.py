"""集中配置管理

目录文件路径、镜像列表、并发度等统一从这里取。
支持从 YAML 文件加载 + 编程式覆盖。
"""

from __future__ import annotations

import logging
from dataclasses import asdict, dataclass, field

from tlcatalog.core.exceptions import ConfigError
from tlcatalog.utils.yaml_io import load_yaml

logger = logging.getLogger(__name__)

# 2018 快照的镜像前缀，顺序即优先级：前者失败才尝试后者
DEFAULT_URL_PREFIXES = [
    "https://cat3.de/texlive-2018/tlnet/archive",
    "http://mirror.ctan.org/tex-archive/systems/texlive/tlnet/archive",
]


@dataclass
class Config:
    """全局配置"""

    # 目录数据
    catalog_file: str = "data/catalog.yml"
    bin_file: str = "data/bin.yml"
    fixed_hashes_file: str = "data/fixed_hashes.yml"
    use_fixed_hashes: bool = True

    # 版本与镜像
    texlive_year: str = "2018"
    url_prefixes: list[str] = field(default_factory=lambda: list(DEFAULT_URL_PREFIXES))

    # 目录
    cache_dir: str = "cache/archives"
    output_dir: str = "environments"

    # 拉取
    max_workers: int = 8
    fetch_attempts: int = 3
    fetch_timeout: int = 300

    # 自定义扩展 (放不到字段里的配置项)
    extra: dict = field(default_factory=dict)

    @classmethod
    def from_file(cls, path: str = "configs/default.yml") -> Config:
        """从 YAML 文件加载配置，不存在则返回默认"""
        data = load_yaml(path)
        if not data:
            return cls()
        known = {f.name for f in cls.__dataclass_fields__.values()}
        matched = {k: v for k, v in data.items() if k in known and k != "extra"}
        extra = {k: v for k, v in data.items() if k not in known}
        try:
            cfg = cls(**matched)
        except TypeError as e:
            raise ConfigError(f"配置文件内容无效: {path} - {e}") from e
        cfg.extra = extra
        cfg.validate()
        return cfg

    def validate(self) -> None:
        if self.max_workers < 1:
            raise ConfigError(f"max_workers 必须 >= 1，实际 {self.max_workers}")
        if self.fetch_attempts < 1:
            raise ConfigError(f"fetch_attempts 必须 >= 1，实际 {self.fetch_attempts}")
        if not isinstance(self.url_prefixes, list):
            raise ConfigError("url_prefixes 必须是列表")

    def to_dict(self) -> dict:
        return asdict(self)


# 全局单例，首次 import 时不加载文件；由 CLI / Web 入口显式初始化
_current: Config | None = None


def get_config() -> Config:
    """获取当前配置（未初始化则返回默认值）"""
    global _current  # noqa: PLW0603
    if _current is None:
        _current = Config()
    return _current


def init_config(path: str = "configs/default.yml") -> Config:
    """从文件初始化全局配置"""
    global _current  # noqa: PLW0603
    _current = Config.from_file(path)
    logger.info("配置已加载: %s", path)
    return _current
