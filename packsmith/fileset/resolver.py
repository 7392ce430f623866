"""
file-set 解析器

把声明式的 file-set 条目解析为具体的 源 → 目标 复制操作，并复制到暂存目录。
"""

import shutil
from dataclasses import dataclass, field
from pathlib import Path, PurePosixPath
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence, TypeVar, Union

from ..errors import FileCopyError, FilesNotSetError, PatternError
from ..utils.logging import LogStage, debug, info, success, warning
from ..utils.paths import ensure_directory, format_size, safe_path_join, safe_relative_path
from .macro import MacroContext, MacroExpander
from .pattern import MatchedEntry, PatternMatcher, matches_any, normalize_pattern, split_base

if TYPE_CHECKING:
    from ..config.schema import FileSetModel

T = TypeVar("T")


@dataclass(frozen=True)
class ResolvedCopy:
    """一次具体的复制操作"""
    source: Path                # 绝对路径
    destination: PurePosixPath  # 暂存目录内的相对路径
    is_directory: bool = False


@dataclass
class CopyReport:
    """复制结果统计"""
    copied: List[ResolvedCopy] = field(default_factory=list)
    failed: List[FileCopyError] = field(default_factory=list)
    total_size: int = 0

    @property
    def file_count(self) -> int:
        return sum(1 for c in self.copied if not c.is_directory)


def first_non_empty(*sources: Optional[Sequence[T]]) -> Optional[Sequence[T]]:
    """按顺序返回第一个非空来源，全部为空时返回 None"""
    for source in sources:
        if source:
            return source
    return None


def select_filesets(
    entry_level: Optional[Sequence["FileSetModel"]],
    target_level: Optional[Sequence["FileSetModel"]],
    target: Optional[str] = None,
) -> Sequence["FileSetModel"]:
    """选择生效的 file-set：目标自身的设置优先于所属平台的设置

    Raises:
        FilesNotSetError: 两层都没有设置
    """
    files = first_non_empty(entry_level, target_level)
    if files is None:
        raise FilesNotSetError(target)
    return files


def _destination_for(to: str, entry: MatchedEntry, literal_file: bool) -> PurePosixPath:
    """计算目标相对路径

    to 以 / 结尾（或为空）时视为目录，匹配项保持相对匹配根的结构放入其中；
    字面文件且 to 不以 / 结尾时，to 就是目标文件路径。
    """
    is_dir_target = to == '' or to.endswith('/') or to.endswith('\\')
    to_path = safe_relative_path(to) if to.strip('/\\') else PurePosixPath('.')

    if literal_file and not is_dir_target:
        return to_path

    relative = entry.relative_to_base
    if to_path == PurePosixPath('.'):
        return relative
    return to_path / relative


class FileSetResolver:
    """file-set 解析器

    src_root 必须显式传入，不依赖进程当前工作目录。
    """

    def __init__(self, src_root: Union[str, Path]):
        self.src_root = Path(src_root).absolute()
        self.matcher = PatternMatcher(self.src_root)

    def resolve(self, entries: Sequence[Any], context: MacroContext) -> List[ResolvedCopy]:
        """解析 file-set 条目

        Args:
            entries: 带 from_/to/exclude/optional 属性的条目
            context: 宏上下文

        Returns:
            List[ResolvedCopy]: 去重后的复制操作，目标冲突时后写入者胜出

        Raises:
            PatternError: 必需模式没有匹配，或目标路径逃逸出暂存目录
            MacroError: to 中存在未知宏
        """
        expander = MacroExpander(context)
        by_destination: Dict[PurePosixPath, ResolvedCopy] = {}

        for index, entry in enumerate(entries):
            pattern = entry.from_
            to = expander.expand(entry.to)
            excludes = list(getattr(entry, "exclude", None) or [])
            optional = bool(getattr(entry, "optional", False))

            literal, glob_part = split_base(normalize_pattern(pattern))
            matched = self.matcher.match(pattern)
            # 字面目录的子项 relative 总比 literal 更深，只有字面文件本身与之相等
            literal_file = (
                glob_part is None
                and len(matched) == 1
                and matched[0].relative == literal
                and not matched[0].is_directory
            )

            survivors = [
                m for m in matched
                if not (excludes and matches_any(m.relative_to_base, excludes, m.is_directory))
            ]

            if not survivors:
                if optional:
                    debug(f"可选条目 [{index}] {pattern} 没有匹配任何文件", stage=LogStage.RESOLVE)
                    continue
                raise PatternError(f"模式没有匹配到任何文件: {pattern}", pattern)

            for match in survivors:
                try:
                    destination = _destination_for(to, match, literal_file)
                except ValueError as e:
                    raise PatternError(f"目标路径不安全 ({entry.to} -> {to}): {e}", pattern) from e

                if destination == PurePosixPath('.'):
                    continue

                previous = by_destination.pop(destination, None)
                if previous is not None and not (previous.is_directory and match.is_directory):
                    warning(
                        f"目标冲突 {destination}: {previous.source} 被 {match.path} 覆盖",
                        stage=LogStage.RESOLVE,
                    )
                by_destination[destination] = ResolvedCopy(
                    source=match.path,
                    destination=destination,
                    is_directory=match.is_directory,
                )

        copies = sorted(by_destination.values(), key=lambda c: c.destination.parts)
        info(f"解析得到 {len(copies)} 个条目", stage=LogStage.RESOLVE)
        return copies


def copy_resolved(
    copies: Sequence[ResolvedCopy],
    staging_root: Union[str, Path],
    best_effort: bool = False,
) -> CopyReport:
    """把解析结果复制到暂存目录

    Args:
        copies: 复制操作
        staging_root: 暂存目录
        best_effort: 为 True 时单个文件失败只记录警告并继续

    Raises:
        FileCopyError: 复制失败（非 best_effort 模式）
    """
    staging_root = ensure_directory(staging_root)
    report = CopyReport()

    for copy in copies:
        target = safe_path_join(staging_root, copy.destination)
        try:
            if copy.is_directory:
                target.mkdir(parents=True, exist_ok=True)
                shutil.copystat(copy.source, target)
            else:
                target.parent.mkdir(parents=True, exist_ok=True)
                shutil.copy2(copy.source, target)
                report.total_size += target.stat().st_size
        except OSError as e:
            failure = FileCopyError(f"复制失败 {copy.source} -> {copy.destination}: {e}", copy.source)
            if not best_effort:
                raise failure from e
            warning(str(failure), stage=LogStage.STAGE)
            report.failed.append(failure)
            continue

        report.copied.append(copy)

    return report


def stage_filesets(
    entries: Sequence[Any],
    src_root: Union[str, Path],
    staging_root: Union[str, Path],
    context: MacroContext,
    best_effort: bool = False,
) -> CopyReport:
    """解析并复制 file-set 到暂存目录"""
    copies = FileSetResolver(src_root).resolve(entries, context)
    report = copy_resolved(copies, staging_root, best_effort=best_effort)
    success(
        f"暂存完成: {report.file_count} 个文件, {format_size(report.total_size)} -> {staging_root}",
        stage=LogStage.STAGE,
    )
    return report
