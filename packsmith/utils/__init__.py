"""通用工具模块"""

from .logging import (
    configure_logging,
    LogStage,
    OutputLevel,
)

from .paths import (
    atomic_output,
    ensure_directory,
    format_size,
    get_cache_root,
    is_within,
    safe_path_join,
    safe_relative_path,
    to_posix,
)

__all__ = [
    # 日志相关
    "configure_logging",
    "LogStage",
    "OutputLevel",

    # 路径相关
    "atomic_output",
    "ensure_directory",
    "format_size",
    "get_cache_root",
    "is_within",
    "safe_path_join",
    "safe_relative_path",
    "to_posix",
]
