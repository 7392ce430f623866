"""
动态库嵌入步骤模块
"""

from ...fileset.libs import copy_libraries
from ...utils.logging import LogStage, info
from ..build_context import BuildContext, target_section
from .build_step import BuildStep


class EmbedLibsStep(BuildStep):
    """复制 exe_files 依赖的动态库到 <subdir>/libs"""

    def __init__(self, subdir: str):
        super().__init__("libs", "嵌入依赖的动态库")
        self.subdir = subdir

    def execute(self, context: BuildContext) -> None:
        section = target_section(context.config, context.target)
        if not section.embed_libs:
            info("embed_libs 已关闭，跳过", stage=LogStage.LIBS)
            return
        if not section.exe_files:
            info("未设置 exe_files，跳过", stage=LogStage.LIBS)
            return

        executables = [context.src_root / exe for exe in section.exe_files]
        context.embedded_libs = copy_libraries(
            executables,
            context.staging_dir / self.subdir / "libs",
            context.runner,
            exclude_libs=section.exclude_libs,
        )
