"""
Build 命令实现

按配置构建 deb / rpm / AppImage / NSIS 目标。
"""

import traceback
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ...config import Arch, ConfigError, ConfigValidationError, PlatformTarget, find_config_file, load_config
from ...config.schema import LINUX_TARGETS, WINDOWS_TARGETS
from ...errors import PackagerError
from ...utils.logging import OutputLevel, set_log_file, set_log_level


console = Console()

OS_TARGETS = {
    "linux": list(LINUX_TARGETS),
    "win": list(WINDOWS_TARGETS),
}


def parse_os_targets(os_names: Optional[List[str]]) -> Optional[List[PlatformTarget]]:
    """把 --os 取值转换为目标列表，未指定时返回 None（全部目标）"""
    if not os_names:
        return None
    targets: List[PlatformTarget] = []
    for name in os_names:
        if name not in OS_TARGETS:
            raise typer.BadParameter(f"无效的 --os {name}，可选值为 linux 或 win", param_hint="--os")
        targets.extend(t for t in OS_TARGETS[name] if t not in targets)
    return targets


def parse_arches(arch_names: Optional[List[str]]) -> Optional[List[Arch]]:
    if not arch_names:
        return None
    try:
        return [Arch(name) for name in arch_names]
    except ValueError as e:
        choices = ", ".join(a.value for a in Arch)
        raise typer.BadParameter(f"{e}，可选值为 {choices}", param_hint="--arch") from e


def build_command(
    config: Optional[str] = typer.Option(None, "--config", "-c", help="配置文件路径（默认 pkg/packsmith.yaml 或 packsmith.yaml）"),
    os_names: Optional[List[str]] = typer.Option(None, "--os", help="只构建指定平台: linux / win，可重复"),
    arch_names: Optional[List[str]] = typer.Option(None, "--arch", help="只构建指定架构: x86 / x86_64 / aarch64，可重复"),
    ignore_error: bool = typer.Option(False, "--ignore-error", help="某个目标失败时继续构建其余目标"),
    best_effort: bool = typer.Option(False, "--best-effort", help="单个文件复制失败时只警告"),
    log_file: Optional[str] = typer.Option(None, "--log-file", help="日志输出文件"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="输出详细调试日志 (DEBUG 级别)"),
) -> None:
    """构建安装包

    示例:
        packsmith build
        packsmith build -c pkg/packsmith.yaml --os linux --arch x86_64
        packsmith build --os win --ignore-error
    """
    from ...build.builder import Builder, BuildOptions

    # 初始化日志：在任何输出前设置
    set_log_level(OutputLevel.DEBUG if verbose else OutputLevel.INFO)
    if log_file:
        try:
            set_log_file(log_file)
        except OSError:
            console.print(f"[yellow]无法写入日志文件: {log_file}[/yellow]")

    options = BuildOptions(
        targets=parse_os_targets(os_names),
        arches=parse_arches(arch_names),
        ignore_error=ignore_error,
        best_effort=best_effort,
    )

    try:
        config_path = find_config_file(config)
        console.print(f"[cyan]正在加载配置文件[/cyan]: {config_path}")
        config_obj = load_config(config_path)

        report = Builder().build(config_obj, options)
    except ConfigValidationError as e:
        console.print("[red]配置验证失败:[/red]")
        console.print(e.format_errors())
        raise typer.Exit(1)
    except ConfigError as e:
        console.print(f"[red]配置错误[/red]: {e}")
        raise typer.Exit(1)
    except PackagerError as e:
        console.print(f"[red]✗ 构建失败[/red]: {e}")
        if verbose or log_file:
            console.print(f"[yellow]详细错误信息:[/yellow]\n{traceback.format_exc()}")
        raise typer.Exit(1)

    if not report.results:
        console.print("[yellow]没有匹配的构建目标[/yellow]")
        return

    table = Table(title="构建结果")
    table.add_column("目标", style="cyan")
    table.add_column("状态")
    table.add_column("产物 / 错误")
    for result in report.results:
        if result.success:
            table.add_row(result.label, "[green]✓ 成功[/green]", "\n".join(str(a) for a in result.artifacts) or "-")
        else:
            table.add_row(result.label, "[red]✗ 失败[/red]", result.error or "-")
    console.print(table)

    if not report.success:
        raise typer.Exit(1)
