"""共享测试数据：一个覆盖全部具名修补目标的小型目录快照"""

from __future__ import annotations

import hashlib
import io
import tarfile
from pathlib import Path

import pytest

from tlcatalog.core.catalog.flatten import Flattener
from tlcatalog.core.catalog.overrides import apply_overrides


def _h(name: str) -> str:
    return hashlib.sha512(name.encode()).hexdigest()


def make_raw_catalog() -> dict:
    """小型原始目录；collection-basic 带自依赖，便于验证覆盖层"""
    return {
        "scheme-minimal": {"deps": ["collection-basic"]},
        "scheme-basic": {"deps": ["collection-basic", "collection-latex"]},
        "scheme-full": {
            "deps": [
                "collection-basic", "collection-latex",
                "collection-metapost", "collection-plaingeneric",
            ],
        },
        "collection-basic": {
            "deps": ["collection-basic", "metafont", "xdvi", "amsfonts", "hyphen-base",
                     "dvidvi", "texlive-msg-translations"],
        },
        "collection-latex": {"deps": ["latex", "amsfonts"]},
        "collection-metapost": {"deps": ["metapost"]},
        "collection-plaingeneric": {"deps": ["epsf"]},
        "metafont": {"hasRunfiles": True, "sha512": {"run": _h("metafont")}},
        "xdvi": {"hasRunfiles": True, "sha512": {"run": _h("xdvi")}},
        "dvidvi": {"hasRunfiles": True, "sha512": {"run": _h("dvidvi"), "doc": _h("dvidvi.doc")}},
        "texlive-msg-translations": {"hasRunfiles": True, "sha512": {"run": _h("msg")}},
        "amsfonts": {
            "version": "3.04",
            "hasRunfiles": True,
            "sha512": {
                "run": _h("amsfonts"), "doc": _h("amsfonts.doc"),
                "source": _h("amsfonts.source"),
            },
        },
        "hyphen-base": {},
        "latex": {"hasRunfiles": True, "deps": ["latex"], "sha512": {"run": _h("latex")}},
        "metapost": {"hasRunfiles": True, "sha512": {"run": _h("metapost")}},
        "epsf": {"hasRunfiles": True, "stripPrefix": 0, "sha512": {"run": _h("epsf")}},
    }


@pytest.fixture()
def raw_catalog() -> dict:
    return make_raw_catalog()


@pytest.fixture()
def catalog(raw_catalog: dict):
    return apply_overrides(raw_catalog, "2018")


@pytest.fixture()
def flattener(catalog) -> Flattener:
    return Flattener(catalog, url_prefixes=["https://mirror-a/archive", "https://mirror-b/archive"])


def make_tar_xz(path: Path, files: dict[str, bytes]) -> Path:
    """构造 .tar.xz 归档，files 的键为归档内路径"""
    path.parent.mkdir(parents=True, exist_ok=True)
    with tarfile.open(path, "w:xz") as tf:
        for name, data in files.items():
            info = tarfile.TarInfo(name)
            info.size = len(data)
            info.mode = 0o644
            tf.addfile(info, io.BytesIO(data))
    return path


@pytest.fixture()
def tar_xz():
    return make_tar_xz


@pytest.fixture()
def catalog_config(tmp_path: Path, monkeypatch: pytest.MonkeyPatch):
    """把样例目录写成 YAML 快照，并装入全局配置与服务容器"""
    import yaml

    import tlcatalog.core.config as cfgmod
    from tlcatalog.core.config import Config
    from tlcatalog.services.container import reset_container

    data_dir = tmp_path / "data"
    data_dir.mkdir()
    (data_dir / "catalog.yml").write_text(
        yaml.safe_dump({"packages": make_raw_catalog()}), encoding="utf-8",
    )
    prog = tmp_path / "prebuilt" / "xdvi"
    prog.parent.mkdir()
    prog.write_text("#!/bin/sh\n", encoding="utf-8")
    (data_dir / "bin.yml").write_text(yaml.safe_dump({
        "packages": {"xdvi": {"files": [str(prog)], "metadata": {"version": "22.87"}}},
    }), encoding="utf-8")
    (data_dir / "fixed_hashes.yml").write_text(
        yaml.safe_dump({"hyphen-base-2018": "b" * 40}), encoding="utf-8",
    )

    cfg = Config(
        catalog_file=str(data_dir / "catalog.yml"),
        bin_file=str(data_dir / "bin.yml"),
        fixed_hashes_file=str(data_dir / "fixed_hashes.yml"),
        url_prefixes=["https://mirror-a/archive"],
        cache_dir=str(tmp_path / "cache"),
        output_dir=str(tmp_path / "envs"),
        max_workers=2,
    )
    monkeypatch.setattr(cfgmod, "_current", cfg)
    reset_container()
    yield cfg
    reset_container()
