"""file-set 模块

模式匹配、宏展开、file-set 解析与动态库嵌入。
"""

from .macro import MacroContext, MacroExpander, expand_build_id, expand_macros
from .pattern import MatchedEntry, PatternMatcher, matches_any
from .resolver import (
    CopyReport,
    FileSetResolver,
    ResolvedCopy,
    copy_resolved,
    first_non_empty,
    select_filesets,
    stage_filesets,
)
from .libs import LibraryRef, copy_libraries, parse_ldd_output

__all__ = [
    "MacroContext",
    "MacroExpander",
    "expand_build_id",
    "expand_macros",
    "MatchedEntry",
    "PatternMatcher",
    "matches_any",
    "CopyReport",
    "FileSetResolver",
    "ResolvedCopy",
    "copy_resolved",
    "first_non_empty",
    "select_filesets",
    "stage_filesets",
    "LibraryRef",
    "copy_libraries",
    "parse_ldd_output",
]
