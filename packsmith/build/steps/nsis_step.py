"""
NSIS 构建步骤模块

没有自带脚本时根据暂存结果生成 app.nsi，然后调用 makensis。
"""

from pathlib import Path
from typing import Optional

from ...errors import BuildError, PatternError
from ...fileset.macro import MacroExpander
from ...utils.logging import LogStage, info, success
from ...utils.paths import safe_relative_path
from ..build_context import BuildContext, target_section
from ..targets.nsis import MAKENSIS, SCRIPT_NAME, render_script
from .build_step import BuildStep

NSIS_DIR = "nsis"


def _optional_path(value: Optional[str]) -> Optional[Path]:
    return Path(value).resolve() if value else None


def artifact_path(context: BuildContext) -> Path:
    """展开 artifact_name 得到安装器输出路径"""
    nsis = target_section(context.config, context.target)
    name = MacroExpander(context.macros).expand(nsis.artifact_name)
    try:
        relative = safe_relative_path(name)
    except ValueError as e:
        raise PatternError(f"artifact_name 不合法: {name}", nsis.artifact_name) from e
    return (context.output_dir / relative).resolve()


class NsisScriptStep(BuildStep):
    """生成 nsis/app.nsi"""

    def __init__(self):
        super().__init__("nsis-script", "生成 NSIS 脚本")

    def execute(self, context: BuildContext) -> None:
        nsis = target_section(context.config, context.target)
        report = context.copy_report
        files = [copy.destination for copy in report.copied if not copy.is_directory] if report else []

        output = artifact_path(context)
        script = render_script(
            context.config.metadata,
            nsis,
            context.arch,
            files,
            output,
            include=_optional_path(nsis.include),
            installer_icon=_optional_path(nsis.installer_icon),
            uninstaller_icon=_optional_path(nsis.uninstaller_icon),
        )
        script_path = context.staging_dir / NSIS_DIR / SCRIPT_NAME
        script_path.parent.mkdir(parents=True, exist_ok=True)
        script_path.write_text(script, encoding="utf-8")

        context.script_path = script_path
        context.artifacts.append(output)
        info(f"NSIS 脚本: {script_path} ({len(files)} 个文件)", stage=LogStage.BUILD)


class NsisCompileStep(BuildStep):
    """调用 makensis 编译脚本"""

    def __init__(self):
        super().__init__("nsis-compile", "执行 makensis")

    def execute(self, context: BuildContext) -> None:
        script_path = context.script_path
        if script_path is None:
            nsis = target_section(context.config, context.target)
            if not nsis.script:
                raise BuildError("缺少 NSIS 脚本")
            script_path = Path(nsis.script)
            context.script_path = script_path

        if not script_path.is_file():
            raise BuildError(f"NSIS 脚本不存在: {script_path}")

        context.runner.run(MAKENSIS, [script_path.resolve()], cwd=script_path.parent)
        for artifact in context.artifacts:
            success(f"安装器已生成: {artifact}", stage=LogStage.BUILD)
