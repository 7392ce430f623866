"""
Download 命令实现

预先下载清单中的外部工具到本地缓存。
"""

from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.table import Table

from ...config import Arch
from ...errors import ConfigurationError
from ...tools import ToolAcquirer, default_cache_dir, load_manifest
from .build import parse_arches


console = Console()


def download_command(
    arch_names: Optional[List[str]] = typer.Option(None, "--arch", help="只下载指定架构，可重复（默认全部）"),
    tool: Optional[str] = typer.Option(None, "--tool", help="只下载指定工具"),
    cache_dir: Optional[str] = typer.Option(None, "--cache-dir", help="工具缓存目录"),
) -> None:
    """下载构建所需的外部工具

    示例:
        packsmith download
        packsmith download --arch x86_64
    """
    try:
        manifest = load_manifest()
    except ConfigurationError as e:
        console.print(f"[red]工具清单错误: {e}[/red]")
        raise typer.Exit(1)

    arches = parse_arches(arch_names) or list(Arch)
    if tool is not None and tool not in manifest.names():
        console.print(f"[red]未知的工具: {tool}，可选: {', '.join(manifest.names())}[/red]")
        raise typer.Exit(1)

    specs = [spec for spec in manifest.specs(tool) if spec.architecture in arches]
    target_dir = Path(cache_dir) if cache_dir else default_cache_dir()
    console.print(f"工具缓存目录: [cyan]{target_dir}[/cyan]")

    results = ToolAcquirer(target_dir).ensure_all(specs)

    table = Table(title="工具下载结果")
    table.add_column("工具", style="cyan")
    table.add_column("架构")
    table.add_column("状态")
    table.add_column("路径 / 错误")
    for result in results:
        spec = result.spec
        if result.ok and result.tool is not None:
            status = "[green]✓ 已缓存[/green]" if result.from_cache else f"[green]✓ 已下载[/green] ({result.attempts} 次)"
            table.add_row(spec.name, spec.architecture.value, status, str(result.tool.path))
        else:
            table.add_row(spec.name, spec.architecture.value, f"[red]✗ 失败[/red] ({result.attempts} 次)", "\n".join(result.errors) or "-")
    console.print(table)

    if not all(result.ok for result in results):
        raise typer.Exit(1)
