"""
构建管道模块

使用管道模式协调单个目标的构建步骤。一个目标的步骤要么全部成功，要么整体失败。
"""

import time
from typing import Iterable, List, Optional

from ..config.schema import PackagerConfig, PlatformTarget
from ..errors import BuildError
from ..utils.logging import LogStage, debug, error, info, success
from ..utils.paths import format_size
from .build_context import BuildContext, target_section
from .steps import (
    APP_DIR,
    DATA_DIR,
    NSIS_DIR,
    ROOT_DIR,
    AppImageCompileStep,
    AppImageToolStep,
    BuildStep,
    DebAssembleStep,
    DebControlStep,
    EmbedLibsStep,
    NsisCompileStep,
    NsisScriptStep,
    PrepareStagingStep,
    RpmBuildStep,
    RpmSpecStep,
    StageFilesStep,
)


class BuildPipeline:
    """构建管道，负责协调构建步骤的执行"""

    def __init__(self, steps: Optional[Iterable[BuildStep]] = None):
        self._steps: List[BuildStep] = list(steps or [])

    def add_step(self, step: BuildStep, position: Optional[int] = None):
        """添加构建步骤"""
        if position is None:
            self._steps.append(step)
        else:
            self._steps.insert(position, step)

    def remove_step(self, step_name: str):
        """移除构建步骤"""
        self._steps = [step for step in self._steps if step.name != step_name]

    def get_steps(self) -> List[BuildStep]:
        """获取所有构建步骤"""
        return self._steps.copy()

    def execute(self, context: BuildContext) -> BuildContext:
        """执行构建管道

        Returns:
            BuildContext: 构建上下文，包含所有构建结果

        Raises:
            BuildError: 任一步骤失败
        """
        context.build_stats['start_time'] = time.time()

        try:
            info(f"开始构建 {context.label}", stage=LogStage.BUILD)
            debug(f"暂存目录: {context.staging_dir} 输出目录: {context.output_dir}", stage=LogStage.BUILD)

            for step in self._steps:
                info(f"执行步骤: {step.description}", stage=LogStage.BUILD)
                step.execute(context)

            context.build_stats['end_time'] = time.time()
            build_time = context.build_stats['end_time'] - context.build_stats['start_time']

            success(f"{context.label} 构建成功", stage=LogStage.DONE)
            info(f"构建时间: {build_time:.1f}秒")
            info(f"文件数量: {context.build_stats['total_files']}")
            info(f"原始大小: {format_size(context.build_stats['total_size'])}")
            for artifact in context.artifacts:
                info(f"产物: {artifact}")

            return context

        except Exception as e:
            context.build_stats['end_time'] = time.time()
            error(f"{context.label} 构建失败: {e}", stage=LogStage.BUILD)
            raise BuildError(f"{context.label} 构建失败: {e}") from e

    def validate_pipeline(self) -> List[str]:
        """验证构建管道的完整性

        Returns:
            List[str]: 验证错误列表，空列表表示验证通过
        """
        errors = []

        if not self._steps:
            errors.append("构建管道中没有步骤")
            return errors

        seen = set()
        for step in self._steps:
            if step.name in seen:
                errors.append(f"步骤 '{step.name}' 重复")
            seen.add(step.name)

        return errors


def create_pipeline(config: PackagerConfig, target: PlatformTarget) -> BuildPipeline:
    """按目标类型组装默认步骤"""
    target = PlatformTarget(target)

    if target == PlatformTarget.DEB:
        steps = [PrepareStagingStep(), StageFilesStep(DATA_DIR), DebControlStep(), DebAssembleStep()]
    elif target == PlatformTarget.RPM:
        steps = [PrepareStagingStep(), StageFilesStep(ROOT_DIR), RpmSpecStep(), RpmBuildStep()]
    elif target == PlatformTarget.APP_IMAGE:
        steps = [
            PrepareStagingStep(),
            StageFilesStep(APP_DIR),
            EmbedLibsStep(APP_DIR),
            AppImageToolStep(),
            AppImageCompileStep(),
        ]
    elif target_section(config, target).script:
        # 自带脚本时直接编译，不生成也不暂存
        steps = [PrepareStagingStep(), NsisCompileStep()]
    else:
        steps = [PrepareStagingStep(), StageFilesStep(NSIS_DIR), NsisScriptStep(), NsisCompileStep()]

    return BuildPipeline(steps)
