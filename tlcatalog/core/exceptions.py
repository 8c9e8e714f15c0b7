"""统一异常体系

所有业务异常继承 TLCatalogError。CLI 层据此输出友好提示，Web 层据此映射 HTTP 状态码。
两类可降级的情况（缺失哈希、重复选择）定义为 Warning，经 warnings + logging 上报。
"""

from __future__ import annotations


class TLCatalogError(Exception):
    """基础异常"""

    code: str = "UNKNOWN"

    def __init__(self, message: str) -> None:
        super().__init__(message)


class ConfigError(TLCatalogError):
    """配置文件或目录文件缺失、内容无效"""

    code = "CONFIG_ERROR"


class CatalogIntegrityError(TLCatalogError):
    """目录完整性错误：覆盖目标缺失、依赖环、引用未知条目

    致命错误，整个解析过程中止，不做恢复。
    """

    code = "CATALOG_INTEGRITY"


class UnknownEntryError(CatalogIntegrityError):
    """引用了目录中不存在的条目名"""

    code = "UNKNOWN_ENTRY"


class FetchError(TLCatalogError):
    """单个制品拉取失败：镜像耗尽、哈希不匹配、解包失败"""

    code = "FETCH_ERROR"

    def __init__(self, message: str, artifact: str = "") -> None:
        super().__init__(message)
        self.artifact = artifact


class EnvironmentBuildError(TLCatalogError):
    """环境构建失败：任一制品拉取失败即整体失败"""

    code = "ENVIRONMENT_BUILD_ERROR"

    def __init__(self, message: str, failures: dict[str, str] | None = None) -> None:
        super().__init__(message)
        self.failures = failures or {}


class ExecutionError(TLCatalogError):
    """外部命令（解包后处理脚本）执行失败"""

    code = "EXECUTION_ERROR"


class ValidationError(TLCatalogError):
    """输入数据校验失败"""

    code = "VALIDATION_ERROR"

    def __init__(self, message: str, details: list[str] | None = None) -> None:
        super().__init__(message)
        self.details = details or []


class MissingHashWarning(UserWarning):
    """制品没有任何预置哈希，降级为首次使用信任 (TOFU) 模式"""


class DuplicateSelectionConflict(UserWarning):
    """同一条目被重复选择且属性不同，后者覆盖前者"""
