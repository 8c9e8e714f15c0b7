"""制品拉取与环境落地

- unpack.py: 解包与目录树哈希
- fetcher.py: 镜像回退 + 完整性校验
- installer.py: 并发拉取 + 先写者胜出合并
"""

from tlcatalog.core.fetch.fetcher import ArtifactFetcher, FetchResult
from tlcatalog.core.fetch.installer import EnvironmentInstaller, InstallReport
from tlcatalog.core.fetch.unpack import content_hash, unpack_archive

__all__ = [
    "ArtifactFetcher",
    "EnvironmentInstaller",
    "FetchResult",
    "InstallReport",
    "content_hash",
    "unpack_archive",
]
