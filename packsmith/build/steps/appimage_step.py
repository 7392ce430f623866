"""
AppImage 构建步骤模块
"""

from pathlib import Path

from ...config.schema import Arch
from ...tools.acquirer import ToolAcquirer
from ...tools.manifest import load_manifest
from ...utils.logging import LogStage, info, success
from ..build_context import BuildContext, target_section
from ..targets.appimage import APPIMAGE_TOOL, appimage_arch, appimage_filename
from .build_step import BuildStep

APP_DIR = "AppDir"


class AppImageToolStep(BuildStep):
    """准备 appimagetool（下载到缓存或使用 PATH 中的版本）"""

    def __init__(self):
        super().__init__("appimage-tool", "准备 appimagetool")

    def execute(self, context: BuildContext) -> None:
        section = target_section(context.config, context.target)
        if not section.download_tool:
            info(f"使用 PATH 中的 {APPIMAGE_TOOL}", stage=LogStage.DOWNLOAD)
            context.tool_path = Path(APPIMAGE_TOOL)
            return

        # appimagetool 在本机运行，按本机架构选择
        manifest = context.manifest or load_manifest()
        spec = manifest.for_arch(APPIMAGE_TOOL, Arch.host() or context.arch)
        acquirer = context.acquirer or ToolAcquirer()
        context.tool_path = acquirer.ensure_or_raise(spec).path


class AppImageCompileStep(BuildStep):
    """调用 appimagetool 生成 .AppImage"""

    def __init__(self):
        super().__init__("appimage-compile", "执行 appimagetool")

    def execute(self, context: BuildContext) -> None:
        tool = context.tool_path or Path(APPIMAGE_TOOL)
        output = (context.output_dir / appimage_filename(context.config.metadata, context.arch)).resolve()
        context.runner.run(
            tool,
            [APP_DIR, output],
            cwd=context.staging_dir,
            env={"ARCH": appimage_arch(context.arch)},
        )
        context.artifacts.append(output)
        success(f"AppImage 已生成: {output}", stage=LogStage.BUILD)
