"""
模式匹配器

在源目录下按 glob 模式查找文件，支持 *、?、[...]、递归 ** 和字面路径。
结果按路径排序，目录总在其子项之前。
"""

import fnmatch
import os
import re
from dataclasses import dataclass
from functools import lru_cache
from pathlib import Path, PurePosixPath
from typing import Iterable, Iterator, List, Optional, Pattern, Set, Tuple, Union

from ..errors import PatternError
from ..utils.paths import is_within, to_posix

_GLOB_CHARS = set('*?[')


def has_magic(text: str) -> bool:
    """判断字符串是否包含通配符"""
    return any(ch in _GLOB_CHARS for ch in text)


@lru_cache(maxsize=256)
def compile_glob(pattern: str) -> Pattern[str]:
    """把 glob 模式翻译为正则表达式

    ** 跨目录匹配（含零层），* 和 ? 不跨越 /。
    """
    i, n = 0, len(pattern)
    out = []
    while i < n:
        ch = pattern[i]
        if ch == '*':
            if pattern.startswith('**', i):
                at_segment_start = i == 0 or pattern[i - 1] == '/'
                i += 2
                if at_segment_start and i < n and pattern[i] == '/':
                    # "**/" 匹配零个或多个目录
                    out.append('(?:.*/)?')
                    i += 1
                else:
                    out.append('.*')
                continue
            out.append('[^/]*')
        elif ch == '?':
            out.append('[^/]')
        elif ch == '[':
            j = i + 1
            if j < n and pattern[j] in '!^':
                j += 1
            if j < n and pattern[j] == ']':
                j += 1
            while j < n and pattern[j] != ']':
                j += 1
            if j >= n:
                out.append(re.escape(ch))
            else:
                body = pattern[i + 1:j]
                if body[:1] in ('!', '^'):
                    body = '^' + body[1:]
                out.append('[' + body.replace('\\', '\\\\') + ']')
                i = j
        else:
            out.append(re.escape(ch))
        i += 1
    return re.compile('(?s:' + ''.join(out) + r')\Z')


def normalize_pattern(pattern: str) -> str:
    """规范化模式：统一正斜杠，去掉 ./ 前缀

    Raises:
        PatternError: 绝对路径或包含 ..
    """
    text = to_posix(pattern).strip()
    if not text:
        raise PatternError("模式不能为空", pattern)
    if text.startswith('/') or (len(text) > 1 and text[1] == ':'):
        raise PatternError(f"模式不能是绝对路径: {pattern}", pattern)

    parts = [p for p in text.split('/') if p not in ('', '.')]
    if any(p == '..' for p in parts):
        raise PatternError(f"模式不能包含 '..': {pattern}", pattern)
    if not parts:
        raise PatternError(f"模式没有指向任何路径: {pattern}", pattern)
    return '/'.join(parts)


def split_base(pattern: str) -> Tuple[PurePosixPath, Optional[str]]:
    """拆分出不含通配符的前缀目录（匹配根）和剩余的 glob 部分

    字面路径返回 (路径, None)。
    """
    parts = pattern.split('/')
    literal: List[str] = []
    for index, part in enumerate(parts):
        if has_magic(part):
            return PurePosixPath(*literal) if literal else PurePosixPath('.'), '/'.join(parts[index:])
        literal.append(part)
    return PurePosixPath(*parts), None


@dataclass(frozen=True)
class MatchedEntry:
    """匹配到的文件系统条目"""
    path: Path                  # 绝对路径（未解析符号链接）
    relative: PurePosixPath     # 相对于源根目录
    base: PurePosixPath         # 匹配根，相对于源根目录
    is_directory: bool

    @property
    def relative_to_base(self) -> PurePosixPath:
        if self.base == PurePosixPath('.'):
            return self.relative
        return self.relative.relative_to(self.base)


def _sort_key(entry: MatchedEntry) -> Tuple[str, ...]:
    return entry.relative.parts


class PatternMatcher:
    """模式匹配器

    符号链接会被跟随，但解析后位于源根目录之外的匹配项视为错误。
    """

    def __init__(self, root: Union[str, Path]):
        self.root = Path(root).absolute()

    def match(self, pattern: str) -> List[MatchedEntry]:
        """匹配模式

        Args:
            pattern: 相对 root 的 glob 模式或字面路径

        Returns:
            List[MatchedEntry]: 匹配结果，没有匹配时为空列表

        Raises:
            PatternError: 模式不安全，或匹配项逃逸出源根目录
        """
        normalized = normalize_pattern(pattern)
        base, glob_part = split_base(normalized)

        if glob_part is None:
            entries = self._match_literal(base, pattern)
        else:
            entries = self._match_glob(base, normalized, pattern)

        entries.sort(key=_sort_key)
        return entries

    def _absolute(self, relative: PurePosixPath) -> Path:
        if relative == PurePosixPath('.'):
            return self.root
        return self.root.joinpath(*relative.parts)

    def _check_inside(self, path: Path, pattern: str) -> None:
        if not is_within(path, self.root):
            raise PatternError(
                f"路径经符号链接解析后位于源目录之外: {path} -> {path.resolve()}",
                pattern,
            )

    def _match_literal(self, literal: PurePosixPath, pattern: str) -> List[MatchedEntry]:
        path = self._absolute(literal)
        if not path.exists():
            return []
        self._check_inside(path, pattern)

        if path.is_dir():
            # 字面目录：以目录自身为匹配根，收集全部子项
            results: List[MatchedEntry] = []
            for child, rel, is_dir in self._walk(literal, pattern):
                self._check_inside(child, pattern)
                results.append(MatchedEntry(path=child, relative=rel, base=literal, is_directory=is_dir))
            return results

        parent = literal.parent
        return [MatchedEntry(path=path, relative=literal, base=parent, is_directory=False)]

    def _match_glob(self, base: PurePosixPath, pattern: str, original: str) -> List[MatchedEntry]:
        base_path = self._absolute(base)
        if not base_path.is_dir():
            return []
        self._check_inside(base_path, original)

        regex = compile_glob(pattern)
        results: List[MatchedEntry] = []
        seen: Set[PurePosixPath] = set()
        matched_dirs: List[PurePosixPath] = []

        for path, rel, is_dir in self._walk(base, original):
            under_matched_dir = any(d in rel.parents for d in matched_dirs)
            if not regex.match(str(rel)) and not under_matched_dir:
                continue
            self._check_inside(path, original)
            if rel in seen:
                continue
            seen.add(rel)
            results.append(MatchedEntry(path=path, relative=rel, base=base, is_directory=is_dir))
            if is_dir:
                # 匹配到的目录连同其子项一起收集
                matched_dirs.append(rel)

        return results

    def _walk(self, start: PurePosixPath, pattern: str) -> Iterator[Tuple[Path, PurePosixPath, bool]]:
        """按排序顺序遍历 start 下的所有条目（不含 start 本身）

        跟随符号链接，按真实路径去重以避免循环。
        """
        start_path = self._absolute(start)
        visited: Set[str] = {os.path.realpath(start_path)}

        def walk_dir(dir_path: Path, dir_rel: PurePosixPath) -> Iterator[Tuple[Path, PurePosixPath, bool]]:
            try:
                names = sorted(os.listdir(dir_path))
            except OSError as e:
                raise PatternError(f"无法读取目录 {dir_path}: {e}", pattern) from e

            for name in names:
                child = dir_path / name
                child_rel = dir_rel / name if dir_rel != PurePosixPath('.') else PurePosixPath(name)
                is_dir = child.is_dir()
                yield child, child_rel, is_dir
                if is_dir:
                    real = os.path.realpath(child)
                    if real in visited:
                        continue
                    visited.add(real)
                    yield from walk_dir(child, child_rel)

        yield from walk_dir(start_path, start)


def matches_any(
    relative_path: Union[str, PurePosixPath],
    patterns: Iterable[str],
    is_directory: bool = False,
) -> bool:
    """检查相对路径是否命中任一排除模式

    - 不含 / 的模式匹配任意一级路径名（如 *.log、__pycache__）
    - 含 / 的模式匹配完整路径或其任一上级目录
    - 以 / 结尾的模式只匹配目录（及其内部的所有条目）
    """
    text = to_posix(relative_path).strip('/')
    if not text or text == '.':
        return False
    parts = text.split('/')
    prefixes = ['/'.join(parts[:i]) for i in range(1, len(parts) + 1)]

    for raw in patterns:
        pattern = to_posix(raw).strip()
        dir_only = pattern.endswith('/')
        pattern = pattern.strip('/')
        if pattern.startswith('./'):
            pattern = pattern[2:]
        if not pattern:
            continue

        if '/' not in pattern:
            candidates = parts if (is_directory or not dir_only) else parts[:-1]
            if any(fnmatch.fnmatch(part, pattern) for part in candidates):
                return True
        else:
            regex = compile_glob(pattern)
            candidates = prefixes if (is_directory or not dir_only) else prefixes[:-1]
            if any(regex.match(candidate) for candidate in candidates):
                return True

    return False
