"""制品拉取器测试 - 镜像回退、哈希校验、TOFU、占位与 bin"""

from __future__ import annotations

import hashlib
import shutil
import urllib.error
from pathlib import Path

import pytest

from tlcatalog.core.catalog.models import ArtifactDescriptor, Integrity, UnpackSpec, Variant
from tlcatalog.core.exceptions import FetchError
from tlcatalog.core.fetch.fetcher import ArtifactFetcher
from tlcatalog.core.fetch.unpack import content_hash, unpack_archive


class FakeDownloader:
    """按 URL 返回本地归档；未登记的 URL 视为不可达"""

    def __init__(self, sources: dict[str, Path]) -> None:
        self.sources = sources
        self.calls: list[str] = []

    def __call__(self, url: str, dest: Path, timeout: int) -> None:
        self.calls.append(url)
        if url not in self.sources:
            raise urllib.error.URLError("unreachable")
        shutil.copyfile(self.sources[url], dest)


def _sha512(path: Path) -> str:
    return hashlib.sha512(path.read_bytes()).hexdigest()


def _artifact(urls, integrity: Integrity, **kwargs) -> ArtifactDescriptor:
    return ArtifactDescriptor(
        name="amsfonts", variant=Variant.RUN, version="3.04",
        integrity=integrity, urls=tuple(urls), **kwargs,
    )


@pytest.fixture()
def archive(tmp_path: Path, tar_xz) -> Path:
    return tar_xz(tmp_path / "src" / "amsfonts.tar.xz", {
        "amsfonts/fonts/cmr10.pfb": b"font",
        "tlpkg/tlpobj/amsfonts.tlpobj": b"meta",
    })


class TestMirrorFallback:
    def test_first_mirror_wins(self, tmp_path: Path, archive: Path) -> None:
        dl = FakeDownloader({"https://a/x.tar.xz": archive, "https://b/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(["https://a/x.tar.xz", "https://b/x.tar.xz"],
                        Integrity("sha512", _sha512(archive), "flat"))
        result = fetcher.fetch(art, tmp_path / "out")
        assert result.source_url == "https://a/x.tar.xz"
        assert dl.calls == ["https://a/x.tar.xz"]
        assert (tmp_path / "out/fonts/cmr10.pfb").read_bytes() == b"font"
        assert not (tmp_path / "out/tlpobj").exists()

    def test_fallback_on_unreachable(self, tmp_path: Path, archive: Path) -> None:
        dl = FakeDownloader({"https://b/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(["https://a/x.tar.xz", "https://b/x.tar.xz"],
                        Integrity("sha512", _sha512(archive), "flat"))
        assert fetcher.fetch(art, tmp_path / "out").source_url == "https://b/x.tar.xz"

    def test_fallback_on_hash_mismatch(self, tmp_path: Path, archive: Path, tar_xz) -> None:
        tampered = tar_xz(tmp_path / "evil" / "x.tar.xz", {"amsfonts/evil": b"x"})
        dl = FakeDownloader({"https://a/x.tar.xz": tampered, "https://b/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(["https://a/x.tar.xz", "https://b/x.tar.xz"],
                        Integrity("sha512", _sha512(archive), "flat"))
        result = fetcher.fetch(art, tmp_path / "out")
        assert result.source_url == "https://b/x.tar.xz"
        assert not (tmp_path / "out/evil").exists()

    def test_attempts_bounded(self, tmp_path: Path) -> None:
        dl = FakeDownloader({})
        fetcher = ArtifactFetcher(tmp_path / "cache", attempts=2, downloader=dl)
        art = _artifact([f"https://m{i}/x.tar.xz" for i in range(5)],
                        Integrity("sha512", "h", "flat"))
        with pytest.raises(FetchError, match="2 个镜像上均失败"):
            fetcher.fetch(art, tmp_path / "out")
        assert len(dl.calls) == 2

    def test_disallowed_scheme_skipped(self, tmp_path: Path, archive: Path) -> None:
        dl = FakeDownloader({"https://b/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(["file:///etc/x.tar.xz", "https://b/x.tar.xz"],
                        Integrity("sha512", _sha512(archive), "flat"))
        assert fetcher.fetch(art, tmp_path / "out").source_url == "https://b/x.tar.xz"
        assert dl.calls == ["https://b/x.tar.xz"]


class TestIntegrityModes:
    def test_cache_hit(self, tmp_path: Path, archive: Path) -> None:
        dl = FakeDownloader({"https://a/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(["https://a/x.tar.xz"], Integrity("sha512", _sha512(archive), "flat"))
        assert fetcher.fetch(art, tmp_path / "o1").status == "fetched"
        assert fetcher.fetch(art, tmp_path / "o2").status == "cached"
        assert len(dl.calls) == 1

    def test_recursive_hash_verified(self, tmp_path: Path, archive: Path) -> None:
        expected_dir = tmp_path / "expected"
        unpack_archive(archive, expected_dir)
        expected = content_hash(expected_dir)
        dl = FakeDownloader({"https://a/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(["https://a/x.tar.xz"], Integrity("sha1", expected, "recursive"))
        result = fetcher.fetch(art, tmp_path / "out")
        assert result.content_hash == expected
        assert not result.trusted_on_first_use
        assert list((tmp_path / "cache").iterdir()) == []

    def test_recursive_hash_mismatch(self, tmp_path: Path, archive: Path) -> None:
        dl = FakeDownloader({"https://a/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(["https://a/x.tar.xz"], Integrity("sha1", "0" * 40, "recursive"))
        with pytest.raises(FetchError, match="目录树哈希不匹配"):
            fetcher.fetch(art, tmp_path / "out")
        assert not (tmp_path / "out").exists()

    def test_tofu_records_fingerprint(
        self, tmp_path: Path, archive: Path, caplog: pytest.LogCaptureFixture,
    ) -> None:
        dl = FakeDownloader({"https://a/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(["https://a/x.tar.xz"], Integrity("sha1", None, "recursive"))
        result = fetcher.fetch(art, tmp_path / "out")
        assert result.trusted_on_first_use
        assert result.content_hash == content_hash(tmp_path / "out")
        assert any("首次使用信任" in r.getMessage() for r in caplog.records)

    def test_post_unpack_hook(self, tmp_path: Path, archive: Path) -> None:
        dl = FakeDownloader({"https://a/x.tar.xz": archive})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = _artifact(
            ["https://a/x.tar.xz"], Integrity("sha512", _sha512(archive), "flat"),
            unpack=UnpackSpec(post_unpack='rm "$out/fonts/cmr10.pfb"; touch "$out/hooked"'),
        )
        fetcher.fetch(art, tmp_path / "out")
        assert (tmp_path / "out/hooked").exists()
        assert not (tmp_path / "out/fonts/cmr10.pfb").exists()


class TestNoNetwork:
    def test_placeholder_never_downloads(self, tmp_path: Path) -> None:
        dl = FakeDownloader({})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = ArtifactDescriptor("hyphen-base", Variant.RUN, "2018", placeholder=True)
        result = fetcher.fetch(art, tmp_path / "out")
        assert result.status == "placeholder"
        assert dl.calls == []

    def test_bin_copied_not_downloaded(self, tmp_path: Path) -> None:
        prog = tmp_path / "prebuilt" / "xdvi"
        prog.parent.mkdir()
        prog.write_text("#!/bin/sh\n")
        dl = FakeDownloader({})
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=dl)
        art = ArtifactDescriptor("xdvi", Variant.BIN, "2018", files=(str(prog),))
        result = fetcher.fetch(art, tmp_path / "out")
        assert result.status == "bin"
        assert (tmp_path / "out/bin/xdvi").exists()
        assert dl.calls == []

    def test_bin_missing_file(self, tmp_path: Path) -> None:
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=FakeDownloader({}))
        art = ArtifactDescriptor("xdvi", Variant.BIN, "2018", files=(str(tmp_path / "nope"),))
        with pytest.raises(FetchError, match="缺少文件"):
            fetcher.fetch(art, tmp_path / "out")

    def test_no_urls(self, tmp_path: Path) -> None:
        fetcher = ArtifactFetcher(tmp_path / "cache", downloader=FakeDownloader({}))
        with pytest.raises(FetchError, match="没有可用的下载地址"):
            fetcher.fetch(_artifact([], Integrity()), tmp_path / "out")
