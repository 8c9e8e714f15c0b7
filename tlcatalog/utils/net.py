"""网络工具 - 镜像 URL 校验"""

from __future__ import annotations

from urllib.parse import urlparse

from tlcatalog.core.exceptions import ValidationError

# 镜像只允许 http/https/ftp，拒绝 file:// 等本地协议
_ALLOWED_SCHEMES = frozenset(("http", "https", "ftp"))


def validate_url_scheme(url: str, *, context: str = "") -> None:
    """校验镜像 URL 协议

    Raises:
        ValidationError: 协议不在白名单内
    """
    scheme = urlparse(url).scheme
    if scheme not in _ALLOWED_SCHEMES:
        label = f" ({context})" if context else ""
        raise ValidationError(
            f"不允许的 URL 协议 '{scheme}'{label}，"
            f"仅支持 {'/'.join(sorted(_ALLOWED_SCHEMES))}: {url}"
        )
