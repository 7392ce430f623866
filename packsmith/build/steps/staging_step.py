"""
暂存步骤模块

清空并重建暂存目录，把目标生效的 file-set 复制进去。
"""

import shutil

from ...errors import PackagerIOError
from ...fileset.resolver import stage_filesets
from ...utils.logging import LogStage, debug, info
from ...utils.paths import ensure_directory
from ..build_context import BuildContext, target_filesets
from .build_step import BuildStep


class PrepareStagingStep(BuildStep):
    """重建暂存目录"""

    def __init__(self):
        super().__init__("prepare", "准备暂存目录")

    def execute(self, context: BuildContext) -> None:
        staging_dir = context.staging_dir
        if staging_dir.exists():
            debug(f"清理旧的暂存目录: {staging_dir}", stage=LogStage.STAGE)
            try:
                shutil.rmtree(staging_dir)
            except OSError as e:
                raise PackagerIOError(f"无法清理暂存目录 {staging_dir}: {e}", staging_dir) from e
        ensure_directory(staging_dir)
        ensure_directory(context.output_dir)


class StageFilesStep(BuildStep):
    """复制 file-set 到暂存目录下的子目录"""

    def __init__(self, subdir: str):
        super().__init__("stage", f"暂存文件到 {subdir}/")
        self.subdir = subdir

    def execute(self, context: BuildContext) -> None:
        files = target_filesets(context.config, context.target)
        destination = ensure_directory(context.staging_dir / self.subdir)
        info(f"暂存 {len(files)} 个 file-set -> {destination}", stage=LogStage.STAGE)

        report = stage_filesets(
            files,
            context.src_root,
            destination,
            context.macros,
            best_effort=context.best_effort,
        )
        context.copy_report = report
        context.build_stats['total_files'] = report.file_count
        context.build_stats['total_size'] = report.total_size
