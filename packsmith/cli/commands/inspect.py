"""
Inspect 命令实现

列出 tar / ar（.deb）归档中的条目。
"""

import json
from datetime import datetime
from pathlib import Path

import typer
from rich.console import Console
from rich.table import Table

from ...build.archive import AR_MAGIC, read_ar_members, read_tar_entries
from ...errors import PackagerError
from ...utils.paths import format_size


console = Console()


def inspect_command(
    archive: str = typer.Argument(..., help="归档文件路径（.tar*、.deb 或 ar）"),
    json_output: bool = typer.Option(False, "--json", help="输出 JSON 格式"),
) -> None:
    """检查归档内容

    示例:
        packsmith inspect target/demo_1.0.0_amd64.deb
        packsmith inspect target/deb-x86_64/data.tar.xz --json
    """
    archive_path = Path(archive)

    if not archive_path.is_file():
        console.print(f"[red]归档文件不存在: {archive_path}[/red]")
        raise typer.Exit(1)

    try:
        with open(archive_path, 'rb') as f:
            is_ar = f.read(len(AR_MAGIC)) == AR_MAGIC
        if is_ar:
            rows = [
                {"name": m.name, "size": m.size, "mode": oct(m.mode), "mtime": m.mtime}
                for m in read_ar_members(archive_path)
            ]
        else:
            rows = [
                {"name": e.path, "kind": e.kind.value, "size": e.size, "mode": oct(e.mode), "mtime": e.mtime}
                for e in read_tar_entries(archive_path)
            ]
    except (PackagerError, OSError, EOFError) as e:
        console.print(f"[red]读取归档失败: {e}[/red]")
        raise typer.Exit(1)

    if json_output:
        console.print(json.dumps({"file": str(archive_path), "format": "ar" if is_ar else "tar", "entries": rows},
                                 ensure_ascii=False, indent=2))
        return

    table = Table(title=f"{archive_path.name} ({'ar' if is_ar else 'tar'})")
    table.add_column("路径", style="cyan")
    if not is_ar:
        table.add_column("类型")
    table.add_column("大小", justify="right")
    table.add_column("权限")
    table.add_column("修改时间")
    for row in rows:
        cells = [row["name"]]
        if not is_ar:
            cells.append(row["kind"])
        cells += [
            format_size(row["size"]),
            row["mode"],
            datetime.fromtimestamp(row["mtime"]).strftime("%Y-%m-%d %H:%M:%S"),
        ]
        table.add_row(*cells)
    console.print(table)
