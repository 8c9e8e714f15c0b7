"""制品拉取器

职责:
- 按镜像顺序下载（有限次数，先可用且校验通过者胜出）
- flat 模式: 下载后校验归档 sha512
- recursive 模式: 解包 + 后处理后校验目录树 sha1
- 无预置哈希: 首次使用信任，记录算出的指纹并告警
- 占位制品不拉取；bin 制品从外部二进制包复制，不走 URL
"""

from __future__ import annotations

import logging
import shutil
import urllib.error
import urllib.request
import uuid
from collections.abc import Callable
from dataclasses import dataclass
from pathlib import Path

from tlcatalog.core.catalog.models import ArtifactDescriptor, Variant
from tlcatalog.core.exceptions import ExecutionError, FetchError, ValidationError
from tlcatalog.core.fetch.unpack import content_hash, file_hash, unpack_archive
from tlcatalog.utils.net import validate_url_scheme
from tlcatalog.utils.shell import run_script

logger = logging.getLogger(__name__)

# (url, 目标文件, 超时秒数) -> None，失败抛 OSError / URLError
Downloader = Callable[[str, Path, int], None]


def urllib_download(url: str, dest: Path, timeout: int) -> None:
    with urllib.request.urlopen(url, timeout=timeout) as resp, open(dest, "wb") as out:  # nosec B310
        shutil.copyfileobj(resp, out)


@dataclass
class FetchResult:
    """单个制品的拉取结果"""

    name: str
    variant: str
    path: Path
    status: str  # "fetched", "cached", "placeholder", "bin"
    source_url: str = ""
    content_hash: str = ""
    trusted_on_first_use: bool = False


class ArtifactFetcher:
    """制品拉取器 - 镜像回退 + 完整性校验 + 解包"""

    def __init__(
        self,
        cache_dir: str | Path,
        *,
        attempts: int = 3,
        timeout: int = 300,
        downloader: Downloader | None = None,
    ) -> None:
        self.cache_dir = Path(cache_dir)
        self.attempts = max(1, attempts)
        self.timeout = timeout
        self._download = downloader or urllib_download

    def fetch(self, artifact: ArtifactDescriptor, dest: str | Path) -> FetchResult:
        """将制品落地到 dest 目录"""
        dest = Path(dest)
        if artifact.placeholder:
            dest.mkdir(parents=True, exist_ok=True)
            return FetchResult(artifact.name, artifact.variant.value, dest, "placeholder")
        if artifact.variant is Variant.BIN:
            return self._copy_bin(artifact, dest)

        urls = artifact.urls[:self.attempts]
        if not urls:
            raise FetchError(f"制品 {artifact.tl_name} 没有可用的下载地址", artifact.tl_name)

        errors: list[str] = []
        for url in urls:
            try:
                return self._fetch_from(artifact, url, dest)
            except (FetchError, ValidationError, ExecutionError) as e:
                logger.warning("  镜像失败 %s: %s", url, e)
                errors.append(f"{url}: {e}")
                shutil.rmtree(dest, ignore_errors=True)
        raise FetchError(
            f"制品 {artifact.tl_name} 在 {len(urls)} 个镜像上均失败: " + "; ".join(errors),
            artifact.tl_name,
        )

    def _fetch_from(self, artifact: ArtifactDescriptor, url: str, dest: Path) -> FetchResult:
        validate_url_scheme(url, context=f"fetch {artifact.tl_name}")
        integrity = artifact.integrity
        archive, keep, cached = self._download_archive(artifact, url)

        try:
            if integrity.mode == "flat" and integrity.value:
                actual = file_hash(archive, integrity.algo)
                if actual != integrity.value:
                    archive.unlink(missing_ok=True)
                    raise FetchError(
                        f"哈希不匹配 {artifact.tl_name}: 期望 {integrity.value[:16]}…, "
                        f"实际 {actual[:16]}…",
                        artifact.tl_name,
                    )

            unpack_archive(
                archive, dest,
                strip_prefix=artifact.unpack.strip_prefix,
                excludes=artifact.unpack.excludes,
                keep_old_files=artifact.unpack.keep_old_files,
            )
            if artifact.unpack.post_unpack:
                run_script(
                    artifact.unpack.post_unpack, cwd=dest,
                    env={"out": str(dest)}, label=f"postUnpack {artifact.tl_name}",
                )
        finally:
            if not keep:
                archive.unlink(missing_ok=True)

        tree_hash = content_hash(dest, "sha1")
        if integrity.mode == "recursive" and integrity.value and tree_hash != integrity.value:
            raise FetchError(
                f"目录树哈希不匹配 {artifact.tl_name}: 期望 {integrity.value}, 实际 {tree_hash}",
                artifact.tl_name,
            )
        if integrity.trust_on_first_use:
            logger.warning(
                "  首次使用信任 %s: 以下载内容的 sha1 %s 作为指纹（未经任何预置哈希验证）",
                artifact.tl_name, tree_hash,
            )
        logger.info("  已就绪: %s <- %s", artifact.tl_name, url)
        return FetchResult(
            artifact.name, artifact.variant.value, dest,
            "cached" if cached else "fetched",
            source_url=url, content_hash=tree_hash,
            trusted_on_first_use=integrity.trust_on_first_use,
        )

    def _download_archive(
        self, artifact: ArtifactDescriptor, url: str,
    ) -> tuple[Path, bool, bool]:
        """下载归档，返回 (路径, 是否保留在缓存中, 是否命中缓存)

        只有已知 flat 哈希的归档按哈希缓存；其余下载用完即删。
        """
        self.cache_dir.mkdir(parents=True, exist_ok=True)
        integrity = artifact.integrity
        if integrity.mode == "flat" and integrity.value:
            path = self.cache_dir / f"{artifact.tl_name}-{integrity.value[:32]}.tar.xz"
            if path.exists():
                logger.info("  缓存命中: %s", path.name)
                return path, True, True
            self._download_to(url, path, artifact)
            return path, True, False

        path = self.cache_dir / f"{artifact.tl_name}.{uuid.uuid4().hex[:8]}.partial"
        self._download_to(url, path, artifact)
        return path, False, False

    def _download_to(self, url: str, path: Path, artifact: ArtifactDescriptor) -> None:
        logger.info("  下载: %s", url)
        tmp = path.with_name(path.name + ".tmp")
        try:
            self._download(url, tmp, self.timeout)
            tmp.replace(path)
        except (urllib.error.URLError, OSError) as e:
            tmp.unlink(missing_ok=True)
            raise FetchError(f"下载失败: {url} - {e}", artifact.tl_name) from e

    def _copy_bin(self, artifact: ArtifactDescriptor, dest: Path) -> FetchResult:
        """bin 制品：复制外部二进制包声明的文件到 dest/bin"""
        bin_dir = dest / "bin"
        bin_dir.mkdir(parents=True, exist_ok=True)
        for f in artifact.files:
            src = Path(f)
            if not src.exists():
                raise FetchError(f"二进制包 {artifact.name} 缺少文件: {src}", artifact.tl_name)
            if src.is_dir():
                shutil.copytree(src, bin_dir / src.name, dirs_exist_ok=True)
            else:
                shutil.copy2(src, bin_dir / src.name)
        return FetchResult(artifact.name, artifact.variant.value, dest, "bin")
