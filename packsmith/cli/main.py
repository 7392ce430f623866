"""
packsmith CLI 主入口

提供命令行接口，支持 build/validate/download/inspect 等命令。
"""

import sys
from typing import Optional

import typer
from rich.console import Console
from rich.table import Table

from .. import __version__
from ..utils import configure_logging
from .commands import build, download, inspect, validate


# 创建主应用
app = typer.Typer(
    name="packsmith",
    help="packsmith - 多目标打包工具 (deb / rpm / AppImage / NSIS)",
    no_args_is_help=True,
    rich_markup_mode="rich",
    add_completion=False,
)

# 控制台输出
console = Console()


# 全局选项
def version_callback(value: bool) -> None:
    """显示版本信息"""
    if value:
        console.print(f"packsmith v{__version__}")
        raise typer.Exit()


def verbose_callback(verbose: bool) -> None:
    """配置详细输出"""
    configure_logging(level="DEBUG" if verbose else "INFO")


@app.callback()
def main(
    version: Optional[bool] = typer.Option(
        None,
        "--version",
        callback=version_callback,
        is_eager=True,
        help="显示版本信息"
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose", "-v",
        callback=verbose_callback,
        help="启用详细输出"
    )
) -> None:
    """packsmith - 多目标打包工具

    使用 --help 查看可用命令的详细信息。
    """
    pass


# 注册子命令
app.command("build", help="构建安装包")(build.build_command)
app.command("validate", help="验证配置文件")(validate.validate_command)
app.command("download", help="下载外部工具")(download.download_command)
app.command("inspect", help="查看归档内容")(inspect.inspect_command)


@app.command("info")
def info_command() -> None:
    """显示系统信息"""
    from ..build.compressor import CompressorFactory
    from ..config.schema import Arch
    from ..tools import default_cache_dir
    import zstandard

    console.print("[bold]packsmith 系统信息[/bold]")
    console.print()

    table = Table(title="版本信息")
    table.add_column("组件", style="cyan")
    table.add_column("版本", style="green")

    table.add_row("packsmith", __version__)
    table.add_row("Python", f"{sys.version_info.major}.{sys.version_info.minor}.{sys.version_info.micro}")
    table.add_row("zstandard", zstandard.__version__)
    console.print(table)
    console.print()

    env_table = Table(title="环境")
    env_table.add_column("项目", style="cyan")
    env_table.add_column("值", style="green")
    host = Arch.host()
    env_table.add_row("本机架构", host.value if host else "未知")
    env_table.add_row("工具缓存目录", str(default_cache_dir()))
    env_table.add_row(
        "tar 压缩方式",
        ", ".join(algo.value for algo in CompressorFactory.get_available_algorithms()),
    )
    console.print(env_table)


if __name__ == "__main__":
    app()
