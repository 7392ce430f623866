"""
动态库嵌入

通过 ldd 列出可执行文件依赖的动态库，并复制到暂存目录的 libs/ 下。
"""

import re
import shutil
from dataclasses import dataclass
from pathlib import Path
from typing import TYPE_CHECKING, Iterable, List, Optional, Union

from ..errors import FileCopyError
from ..utils.logging import LogStage, debug, info
from ..utils.paths import ensure_directory

if TYPE_CHECKING:
    from ..build.runner import ToolRunner

# libfoo.so.1 => /usr/lib/libfoo.so.1 (0x00007f...)
_LDD_LINE = re.compile(r'^\s*(\S+)\s+=>\s+(/\S+)\s+\(\S+\)\s*$')


@dataclass(frozen=True)
class LibraryRef:
    """ldd 解析出的一条依赖"""
    name: str
    path: Path


def parse_ldd_output(text: str) -> List[LibraryRef]:
    """解析 ldd 输出

    只接受 `name => /absolute/path (address)` 形式的行，其他行
    （linux-vdso、ld-linux、not found 等）全部跳过。
    """
    refs: List[LibraryRef] = []
    for line in text.splitlines():
        match = _LDD_LINE.match(line)
        if not match:
            continue
        refs.append(LibraryRef(name=match.group(1), path=Path(match.group(2))))
    return refs


def list_dependencies(executable: Union[str, Path], runner: "ToolRunner") -> List[LibraryRef]:
    """调用 ldd 列出依赖"""
    output = runner.capture("ldd", [str(executable)])
    return parse_ldd_output(output)


def copy_libraries(
    executables: Iterable[Union[str, Path]],
    libs_dir: Union[str, Path],
    runner: "ToolRunner",
    exclude_libs: Optional[Iterable[str]] = None,
) -> List[Path]:
    """把可执行文件依赖的动态库复制到 libs_dir/<name>

    Raises:
        FileCopyError: 复制失败
    """
    libs_dir = ensure_directory(libs_dir)
    excluded = set(exclude_libs or [])
    copied: List[Path] = []

    for executable in executables:
        for ref in list_dependencies(executable, runner):
            if ref.name in excluded:
                debug(f"跳过系统库 {ref.name}", stage=LogStage.LIBS)
                continue

            target = libs_dir / Path(ref.name).name
            if target in copied:
                continue
            try:
                shutil.copy2(ref.path, target)
            except OSError as e:
                raise FileCopyError(f"复制动态库失败 {ref.path}: {e}", ref.path) from e

            debug(f"{ref.name} <- {ref.path}", stage=LogStage.LIBS)
            copied.append(target)

    info(f"已嵌入 {len(copied)} 个动态库 -> {libs_dir}", stage=LogStage.LIBS)
    return copied
