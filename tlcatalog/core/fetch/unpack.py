"""归档解包与目录树哈希

解包语义与上游 tar 调用一致:
  tar -xf ARCHIVE --strip-components=N --anchored --exclude=tlpkg --keep-old-files
排除规则按剥离前的成员路径锚定匹配；已存在的文件不覆盖（先写者胜出）。
"""

from __future__ import annotations

import hashlib
import logging
import os
import shutil
import tarfile
from collections.abc import Sequence
from pathlib import Path, PurePosixPath

from tlcatalog.core.exceptions import FetchError

logger = logging.getLogger(__name__)

_CHUNK = 64 * 1024


def _member_parts(name: str) -> tuple[str, ...]:
    return tuple(p for p in PurePosixPath(name).parts if p not in ("", "."))


def _is_excluded(parts: tuple[str, ...], excludes: Sequence[str]) -> bool:
    for pattern in excludes:
        prefix = _member_parts(pattern)
        if prefix and parts[:len(prefix)] == prefix:
            return True
    return False


def is_within(root: str, path: str) -> bool:
    return os.path.commonpath([root, path]) == root


def _safe_target(dest: Path, rel: tuple[str, ...], archive: Path) -> Path:
    if any(p == ".." for p in rel) or PurePosixPath(*rel).is_absolute():
        raise FetchError(f"归档包含不安全路径: {'/'.join(rel)} ({archive.name})")
    return dest.joinpath(*rel)


def unpack_archive(
    archive: str | Path,
    dest: str | Path,
    *,
    strip_prefix: int = 1,
    excludes: Sequence[str] = ("tlpkg",),
    keep_old_files: bool = True,
) -> list[Path]:
    """解包归档到 dest，返回实际写入的路径列表"""
    archive = Path(archive)
    dest = Path(dest)
    dest.mkdir(parents=True, exist_ok=True)
    root = os.path.realpath(dest)
    written: list[Path] = []
    extracted: dict[str, Path] = {}

    try:
        with tarfile.open(archive) as tf:
            for member in tf.getmembers():
                parts = _member_parts(member.name)
                if not parts or _is_excluded(parts, excludes):
                    continue
                rel = parts[strip_prefix:]
                if not rel:
                    continue
                target = _safe_target(dest, rel, archive)
                # 已解出的符号链接可能把后续成员的父目录带出 dest
                parent = os.path.realpath(target.parent)
                if not is_within(root, parent):
                    raise FetchError(f"归档成员经符号链接越出解包目录: {member.name} ({archive.name})")

                if member.isdir():
                    target.mkdir(parents=True, exist_ok=True)
                    continue
                if keep_old_files and (target.exists() or target.is_symlink()):
                    logger.debug("  保留已有文件: %s", target)
                    continue
                target.parent.mkdir(parents=True, exist_ok=True)

                if member.issym():
                    if os.path.isabs(member.linkname) or not is_within(
                        root, os.path.normpath(os.path.join(parent, member.linkname)),
                    ):
                        raise FetchError(f"归档包含越界符号链接: {member.name} ({archive.name})")
                    if target.is_symlink() or target.exists():
                        target.unlink()
                    os.symlink(member.linkname, target)
                elif member.islnk():
                    source = extracted.get(member.linkname)
                    if source is None:
                        logger.debug("  硬链接源未解出，跳过: %s", member.name)
                        continue
                    shutil.copy2(source, target)
                elif member.isfile():
                    src = tf.extractfile(member)
                    if src is None:
                        continue
                    if target.is_symlink():
                        target.unlink()
                    with src, open(target, "wb") as out:
                        shutil.copyfileobj(src, out, _CHUNK)
                    os.chmod(target, member.mode & 0o777 | 0o200)
                else:
                    continue
                extracted[member.name] = target
                written.append(target)
    except (OSError, tarfile.TarError) as e:
        raise FetchError(f"解包失败 {archive}: {e}") from e

    logger.debug("  解包 %s: %d 个文件", archive.name, len(written))
    return written


def file_hash(path: str | Path, algo: str = "sha512") -> str:
    """归档文件本身的哈希（flat 模式）"""
    h = hashlib.new(algo)
    with open(path, "rb") as f:
        for chunk in iter(lambda: f.read(_CHUNK), b""):
            h.update(chunk)
    return h.hexdigest()


def content_hash(root: str | Path, algo: str = "sha1") -> str:
    """解包后目录树的哈希（recursive 模式）

    按相对路径排序遍历；每个节点计入类型、路径、可执行位和内容，
    因此与解包顺序、时间戳无关。
    """
    root = Path(root)
    h = hashlib.new(algo)
    for path in sorted(root.rglob("*"), key=lambda p: p.relative_to(root).as_posix()):
        rel = path.relative_to(root).as_posix().encode("utf-8")
        if path.is_symlink():
            h.update(b"L\0" + rel + b"\0" + os.readlink(path).encode("utf-8") + b"\0")
        elif path.is_dir():
            h.update(b"D\0" + rel + b"\0")
        else:
            kind = b"X" if os.access(path, os.X_OK) else b"F"
            h.update(kind + b"\0" + rel + b"\0")
            with open(path, "rb") as f:
                for chunk in iter(lambda: f.read(_CHUNK), b""):
                    h.update(chunk)
            h.update(b"\0")
    return h.hexdigest()
