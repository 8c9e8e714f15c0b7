"""目录注册表加载测试"""

from __future__ import annotations

from pathlib import Path

import pytest
import yaml

from tlcatalog.core.catalog.registry import CatalogRegistry, parse_entry
from tlcatalog.core.exceptions import ConfigError


def _write(path: Path, data: dict) -> Path:
    path.write_text(yaml.safe_dump(data), encoding="utf-8")
    return path


class TestParseEntry:
    def test_full_entry(self) -> None:
        e = parse_entry("epsf", {
            "version": "2.7.4",
            "hasRunfiles": True,
            "deps": {"tex": None, "knuth": None},
            "sha512": {"run": "r", "doc": "d", "bogus": "x"},
            "stripPrefix": 0,
            "postUnpack": "rm $out/a",
            "urlPrefixes": ["https://m"],
        }, "2018")
        assert e.version == "2.7.4"
        assert e.has_runfiles
        assert e.deps == frozenset({"tex", "knuth"})
        assert dict(e.hashes) == {"run": "r", "doc": "d"}
        assert e.strip_prefix == 0
        assert e.post_unpack == "rm $out/a"
        assert e.url_prefixes == ("https://m",)
        assert e.urls is None

    def test_defaults(self) -> None:
        e = parse_entry("hyphen-base", None, "2018")
        assert e.version == "2018"
        assert not e.has_runfiles
        assert e.deps == frozenset()
        assert dict(e.hashes) == {}
        assert e.strip_prefix == 1

    def test_single_url(self) -> None:
        assert parse_entry("x", {"url": "https://a/x.tar.xz"}, "2018").urls == ("https://a/x.tar.xz",)

    def test_null_hash_declares_variant(self) -> None:
        e = parse_entry("x", {"sha512": {"doc": None}}, "2018")
        assert "doc" in e.hashes
        assert e.hashes["doc"] == ""

    @pytest.mark.parametrize("raw", [
        {"deps": 42},
        {"sha512": ["run"]},
        {"stripPrefix": "many"},
    ])
    def test_invalid(self, raw: dict) -> None:
        with pytest.raises(ConfigError):
            parse_entry("bad", raw, "2018")


class TestCatalogRegistry:
    def test_load_raw_packages_section(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "catalog.yml", {"packages": {"a": {}, "b": {"deps": ["a"]}}})
        assert set(CatalogRegistry(path).load_raw()) == {"a", "b"}

    def test_load_raw_top_level(self, tmp_path: Path) -> None:
        path = _write(tmp_path / "catalog.yml", {"a": {}, "b": {}})
        assert set(CatalogRegistry(path).load_raw()) == {"a", "b"}

    def test_missing_catalog_is_config_error(self, tmp_path: Path) -> None:
        with pytest.raises(ConfigError, match="目录快照不存在"):
            CatalogRegistry(tmp_path / "none.yml").load_raw()

    def test_bin_and_fixed_hashes(self, tmp_path: Path) -> None:
        bin_path = _write(tmp_path / "bin.yml", {"xdvi": {"files": ["/b/xdvi"]}})
        fixed = _write(tmp_path / "fixed.yml", {"xdvi-2018": "abc", "empty-2018": ""})
        reg = CatalogRegistry(tmp_path / "c.yml", bin_path, fixed)
        assert reg.load_bin() == {"xdvi": {"files": ["/b/xdvi"]}}
        assert reg.load_fixed_hashes() == {"xdvi-2018": "abc"}
        assert reg.load_fixed_hashes(enabled=False) == {}

    def test_optional_files_absent(self, tmp_path: Path) -> None:
        reg = CatalogRegistry(tmp_path / "c.yml", tmp_path / "no-bin.yml", tmp_path / "no-fixed.yml")
        assert reg.load_bin() == {}
        assert reg.load_fixed_hashes() == {}
