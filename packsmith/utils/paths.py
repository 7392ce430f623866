"""
路径工具

提供路径处理相关的工具函数。
"""

import os
import tempfile
from contextlib import contextmanager
from pathlib import Path, PurePosixPath
from typing import Iterator, Union

import platformdirs

APP_NAME = "packsmith"
CACHE_DIR_ENV = "PACKSMITH_CACHE_DIR"


def ensure_directory(path: Union[str, Path]) -> Path:
    """确保目录存在

    Args:
        path: 目录路径

    Returns:
        Path: 目录路径
    """
    dir_path = Path(path)
    dir_path.mkdir(parents=True, exist_ok=True)
    return dir_path


def to_posix(path: Union[str, Path, PurePosixPath]) -> str:
    """统一使用正斜杠"""
    return str(path).replace('\\', '/')


def safe_relative_path(path: Union[str, PurePosixPath]) -> PurePosixPath:
    """规范化暂存区内的相对路径（防止目录穿越）

    Args:
        path: 相对路径，允许使用反斜杠

    Returns:
        PurePosixPath: 去掉 "." 段后的相对路径

    Raises:
        ValueError: 绝对路径或包含 ".."
    """
    text = to_posix(path)
    if text.startswith('/') or (len(text) > 1 and text[1] == ':'):
        raise ValueError(f"不允许使用绝对路径: {path}")

    parts = [p for p in text.split('/') if p not in ('', '.')]
    if any(p == '..' for p in parts):
        raise ValueError(f"检测到目录穿越尝试: {path}")

    return PurePosixPath(*parts) if parts else PurePosixPath('.')


def safe_path_join(root: Union[str, Path], relative: Union[str, PurePosixPath]) -> Path:
    """安全的路径拼接，结果必然位于 root 之内

    Raises:
        ValueError: 检测到目录穿越尝试
    """
    rel = safe_relative_path(relative)
    if rel == PurePosixPath('.'):
        return Path(root)
    return Path(root).joinpath(*rel.parts)


def is_within(path: Union[str, Path], root: Union[str, Path]) -> bool:
    """判断 path 解析后是否位于 root 之内"""
    resolved = Path(path).resolve()
    root_resolved = Path(root).resolve()
    return resolved == root_resolved or root_resolved in resolved.parents


def get_cache_root() -> Path:
    """获取持久缓存根目录

    优先使用环境变量 PACKSMITH_CACHE_DIR，否则使用平台缓存目录。
    """
    override = os.environ.get(CACHE_DIR_ENV)
    if override:
        return Path(override).expanduser()
    return Path(platformdirs.user_cache_dir(APP_NAME))


@contextmanager
def atomic_output(dest: Union[str, Path], suffix: str = ".tmp") -> Iterator[Path]:
    """在目标目录中写临时文件，成功后原子重命名到 dest

    with 块内抛出异常时删除临时文件，dest 保持不变。
    """
    dest = Path(dest)
    ensure_directory(dest.parent)
    fd, tmp_name = tempfile.mkstemp(prefix=f".{dest.name}.", suffix=suffix, dir=dest.parent)
    os.close(fd)
    tmp_path = Path(tmp_name)
    try:
        yield tmp_path
        os.replace(tmp_path, dest)
    except BaseException:
        tmp_path.unlink(missing_ok=True)
        raise


def format_size(size_bytes: int) -> str:
    """格式化文件大小

    Args:
        size_bytes: 字节数

    Returns:
        str: 格式化的大小字符串
    """
    if size_bytes == 0:
        return "0 B"

    units = ["B", "KB", "MB", "GB", "TB"]
    unit_index = 0
    size = float(size_bytes)

    while size >= 1024.0 and unit_index < len(units) - 1:
        size /= 1024.0
        unit_index += 1

    if unit_index == 0:
        return f"{int(size)} {units[unit_index]}"
    return f"{size:.1f} {units[unit_index]}"
