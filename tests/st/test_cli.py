"""命令行端到端测试"""

from __future__ import annotations

import logging
from pathlib import Path

import pytest
import yaml
from click.testing import CliRunner

from tlcatalog.cli import main
from tlcatalog.utils.logger import reset_logging


@pytest.fixture()
def run(catalog_config, tmp_path: Path):
    """以 -c 指向样例配置调用 CLI"""
    config_file = tmp_path / "tlcatalog.yml"
    data = catalog_config.to_dict()
    data.pop("extra")
    config_file.write_text(yaml.safe_dump(data), encoding="utf-8")
    runner = CliRunner(env={"TLCATALOG_LOG_LEVEL": "WARNING"})

    def invoke(*args: str):
        return runner.invoke(main, ["-c", str(config_file), *args])

    yield invoke
    reset_logging()
    logging.captureWarnings(False)


class TestCatalogCommands:
    def test_packages(self, run) -> None:
        result = run("packages", "--prefix", "collection-")
        assert result.exit_code == 0
        assert "collection-plaingeneric" in result.output
        assert "metafont" not in result.output

    def test_packages_no_match(self, run) -> None:
        result = run("packages", "--prefix", "zzz")
        assert "没有匹配的条目" in result.output

    def test_show(self, run) -> None:
        result = run("show", "xdvi")
        assert result.exit_code == 0
        assert "二进制: 是" in result.output
        assert "metafont" in result.output

    def test_show_unknown(self, run) -> None:
        result = run("show", "ghost")
        assert result.exit_code == 1
        assert "UNKNOWN_ENTRY" in result.output

    def test_flatten(self, run) -> None:
        result = run("flatten", "collection-metapost", "--urls")
        assert result.exit_code == 0
        assert "metapost-2018" in result.output
        assert "https://mirror-a/archive/metafont.tar.xz" in result.output
        assert "共 3 个制品" in result.output

    def test_check(self, run) -> None:
        result = run("check", "-j", "2")
        assert result.exit_code == 0
        assert "条目 16" in result.output
        assert "全部制品都有预置哈希" in result.output


class TestEnvCommands:
    def test_bundles(self, run) -> None:
        result = run("bundles")
        assert "combined-medium" in result.output

    def test_bundle_with_manifest(self, run, tmp_path: Path) -> None:
        out = tmp_path / "env.yml"
        result = run("bundle", "combined-minimal", "-o", str(out))
        assert result.exit_code == 0
        assert "环境 combined-minimal" in result.output
        assert yaml.safe_load(out.read_text(encoding="utf-8"))["name"] == "combined-minimal"

    def test_combine_placeholder_install(self, run, tmp_path: Path) -> None:
        dest = tmp_path / "hy"
        result = run("combine", "hyphen-base", "--name", "hy", "--install", "--dest", str(dest))
        assert result.exit_code == 0
        assert (dest / "manifest.yml").exists()

    def test_unknown_bundle(self, run) -> None:
        result = run("bundle", "combined-huge")
        assert result.exit_code == 1
        assert "VALIDATION_ERROR" in result.output
