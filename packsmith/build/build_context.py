"""
构建上下文模块

定义单个目标（target × arch）构建过程中的共享数据。
"""

from dataclasses import dataclass, field
from pathlib import Path
from typing import TYPE_CHECKING, Any, Dict, List, Optional, Sequence

from ..config.schema import WINDOWS_TARGETS, Arch, FileSetModel, PackagerConfig, PlatformTarget
from ..errors import ConfigurationError
from ..fileset.macro import MacroContext
from ..fileset.resolver import select_filesets
from .runner import ToolRunner

if TYPE_CHECKING:
    from ..fileset.resolver import CopyReport
    from ..tools.acquirer import ToolAcquirer
    from ..tools.manifest import ToolManifest


def staging_dir_for(workdir: Path, target: PlatformTarget, arch: Arch) -> Path:
    """每个 target × arch 使用独立的暂存目录"""
    return Path(workdir) / f"{PlatformTarget(target).value}-{Arch(arch).value}"


@dataclass
class BuildContext:
    """构建上下文，包含构建过程中的共享数据"""
    config: PackagerConfig
    target: PlatformTarget
    arch: Arch
    staging_dir: Path
    output_dir: Path
    macros: MacroContext
    runner: ToolRunner = field(default_factory=ToolRunner)
    acquirer: Optional['ToolAcquirer'] = None
    manifest: Optional['ToolManifest'] = None
    best_effort: bool = False

    # 构建过程中生成的数据
    copy_report: Optional['CopyReport'] = None
    embedded_libs: List[Path] = field(default_factory=list)
    script_path: Optional[Path] = None
    tool_path: Optional[Path] = None
    artifacts: List[Path] = field(default_factory=list)

    # 统计信息
    build_stats: Dict[str, Any] = field(default_factory=lambda: {
        'start_time': 0,
        'end_time': 0,
        'total_files': 0,
        'total_size': 0,
    })

    @property
    def label(self) -> str:
        return f"{self.target.value}-{self.arch.value}"

    @property
    def src_root(self) -> Path:
        return self.config.src_root()

    @classmethod
    def create(
        cls,
        config: PackagerConfig,
        target: PlatformTarget,
        arch: Arch,
        **kwargs: Any,
    ) -> 'BuildContext':
        """按配置推导暂存目录、输出目录和宏上下文"""
        workdir = config.workdir()
        macros = MacroContext.from_metadata(config.metadata, arch, target)
        return cls(
            config=config,
            target=PlatformTarget(target),
            arch=Arch(arch),
            staging_dir=staging_dir_for(workdir, target, arch),
            output_dir=workdir,
            macros=macros,
            **kwargs,
        )


def platform_section(config: PackagerConfig, target: PlatformTarget) -> Any:
    """目标所属的平台配置（linux / windows）

    Raises:
        ConfigurationError: 平台未配置
    """
    target = PlatformTarget(target)
    section = config.windows if target in WINDOWS_TARGETS else config.linux
    if section is None:
        platform = "windows" if target in WINDOWS_TARGETS else "linux"
        raise ConfigurationError(f"目标 {target.value} 需要 {platform} 配置")
    return section


def target_section(config: PackagerConfig, target: PlatformTarget) -> Any:
    """目标自身的配置（deb / rpm / app_image / nsis）

    Raises:
        ConfigurationError: 目标配置缺失
    """
    target = PlatformTarget(target)
    section = getattr(platform_section(config, target), target.value, None)
    if section is None:
        raise ConfigurationError(f"缺少 {target.value} 配置")
    return section


def target_filesets(config: PackagerConfig, target: PlatformTarget) -> Sequence[FileSetModel]:
    """目标生效的 file-set：目标自身的 files 优先，其次是平台的 files

    Raises:
        FilesNotSetError: 两层都没有设置
    """
    return select_filesets(
        target_section(config, target).files,
        platform_section(config, target).files,
        target=PlatformTarget(target).value,
    )
