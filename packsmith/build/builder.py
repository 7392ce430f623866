"""
构建器主类

按 linux 目标 × 架构、windows 目标 × 架构的顺序依次构建，每个目标使用独立的暂存目录。
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import Callable, List, Optional, Sequence, Tuple

from ..config.schema import LINUX_TARGETS, WINDOWS_TARGETS, Arch, PackagerConfig, PlatformTarget
from ..errors import BuildError
from ..tools.acquirer import ToolAcquirer
from ..tools.manifest import ToolManifest
from ..utils.logging import LogStage, error, info, success, warning
from .build_context import BuildContext
from .build_pipeline import BuildPipeline, create_pipeline
from .runner import ToolRunner

PipelineFactory = Callable[[PackagerConfig, PlatformTarget], BuildPipeline]


@dataclass
class BuildOptions:
    """构建选项

    targets / arches 为 None 时表示配置中声明的全部目标和架构。
    """
    targets: Optional[Sequence[PlatformTarget]] = None
    arches: Optional[Sequence[Arch]] = None
    ignore_error: bool = False
    best_effort: bool = False


@dataclass
class TargetResult:
    """单个目标的构建结果"""
    target: PlatformTarget
    arch: Arch
    success: bool
    artifacts: List[Path] = field(default_factory=list)
    build_time: Optional[float] = None
    error: Optional[str] = None

    @property
    def label(self) -> str:
        return f"{self.target.value}-{self.arch.value}"


@dataclass
class BuildReport:
    """整体构建结果"""
    results: List[TargetResult] = field(default_factory=list)

    @property
    def succeeded(self) -> List[TargetResult]:
        return [r for r in self.results if r.success]

    @property
    def failed(self) -> List[TargetResult]:
        return [r for r in self.results if not r.success]

    @property
    def success(self) -> bool:
        return not self.failed

    @property
    def artifacts(self) -> List[Path]:
        return [artifact for r in self.succeeded for artifact in r.artifacts]


class Builder:
    """多目标构建器

    使用管道模式构建每个目标，提供统一的构建接口。
    """

    def __init__(
        self,
        runner: Optional[ToolRunner] = None,
        acquirer: Optional[ToolAcquirer] = None,
        manifest: Optional[ToolManifest] = None,
        pipeline_factory: PipelineFactory = create_pipeline,
    ):
        self.runner = runner or ToolRunner()
        self.acquirer = acquirer
        self.manifest = manifest
        self.pipeline_factory = pipeline_factory

    def plan(self, config: PackagerConfig, options: Optional[BuildOptions] = None) -> List[Tuple[PlatformTarget, Arch]]:
        """按选项过滤出需要构建的 (target, arch) 列表"""
        options = options or BuildOptions()
        wanted_targets = None if options.targets is None else {PlatformTarget(t) for t in options.targets}
        wanted_arches = None if options.arches is None else {Arch(a) for a in options.arches}

        plan: List[Tuple[PlatformTarget, Arch]] = []
        for section, allowed in ((config.linux, LINUX_TARGETS), (config.windows, WINDOWS_TARGETS)):
            if section is None:
                continue
            arches = [a for a in section.arch if wanted_arches is None or a in wanted_arches]
            for target in allowed:
                if target not in section.targets:
                    continue
                if wanted_targets is not None and target not in wanted_targets:
                    continue
                plan.extend((target, arch) for arch in arches)
        return plan

    def build(self, config: PackagerConfig, options: Optional[BuildOptions] = None) -> BuildReport:
        """构建全部目标

        Returns:
            BuildReport: 各目标的构建结果

        Raises:
            BuildError: 某个目标失败且未开启 ignore_error
        """
        options = options or BuildOptions()
        report = BuildReport()
        plan = self.plan(config, options)

        if not plan:
            warning("没有需要构建的目标", stage=LogStage.BUILD)
            return report

        info(f"构建计划: {', '.join(f'{t.value}-{a.value}' for t, a in plan)}", stage=LogStage.BUILD)

        for target, arch in plan:
            try:
                context = self.build_target(config, target, arch, best_effort=options.best_effort)
            except BuildError as e:
                if not options.ignore_error:
                    raise
                error(f"忽略失败的目标 {target.value}-{arch.value}: {e}", stage=LogStage.BUILD)
                report.results.append(TargetResult(target=target, arch=arch, success=False, error=str(e)))
                continue

            stats = context.build_stats
            report.results.append(TargetResult(
                target=target,
                arch=arch,
                success=True,
                artifacts=list(context.artifacts),
                build_time=stats['end_time'] - stats['start_time'],
            ))

        if report.success:
            success(f"全部 {len(report.results)} 个目标构建成功", stage=LogStage.DONE)
        else:
            warning(f"{len(report.failed)}/{len(report.results)} 个目标构建失败", stage=LogStage.DONE)
        return report

    def build_target(
        self,
        config: PackagerConfig,
        target: PlatformTarget,
        arch: Arch,
        best_effort: bool = False,
    ) -> BuildContext:
        """构建单个目标

        Raises:
            BuildError: 构建失败
        """
        context = BuildContext.create(
            config,
            target,
            arch,
            runner=self.runner,
            acquirer=self.acquirer,
            manifest=self.manifest,
            best_effort=best_effort,
        )
        try:
            pipeline = self.pipeline_factory(config, context.target)
        except Exception as e:
            raise BuildError(f"{context.label} 构建失败: {e}") from e
        return pipeline.execute(context)
