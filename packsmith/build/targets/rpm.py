"""
RPM spec 文件生成
"""

from pathlib import Path, PurePosixPath
from typing import Any, Iterable

from ...config.schema import Arch

RPM_ARCH_NAMES = {
    Arch.X86: "i686",
    Arch.X86_64: "x86_64",
    Arch.AARCH64: "aarch64",
}


def rpm_arch(arch: Arch) -> str:
    return RPM_ARCH_NAMES[Arch(arch)]


def _quote(path: PurePosixPath) -> str:
    return '"/' + str(path).replace('"', '\\"') + '"'


def render_spec(
    metadata: Any,
    rpm: Any,
    arch: Arch,
    root_dir: Path,
    files: Iterable[PurePosixPath],
) -> str:
    """生成 <name>.spec

    %install 阶段把暂存好的 root_dir 整体复制到 buildroot，%files 按暂存结果逐个列出。
    """
    summary = (metadata.description or metadata.name).strip().splitlines()[0]
    license_name = rpm.license or metadata.license or "Unknown"

    lines = [
        f"Name: {metadata.name}",
        f"Version: {metadata.version.replace('-', '_')}",
        f"Release: {metadata.build_id}",
        f"Summary: {summary}",
        f"License: {license_name}",
        f"BuildArch: {rpm_arch(arch)}",
        "AutoReqProv: no",
    ]
    if rpm.group:
        lines.append(f"Group: {rpm.group}")
    if metadata.homepage:
        lines.append(f"URL: {metadata.homepage}")
    for requirement in rpm.requires:
        lines.append(f"Requires: {requirement}")

    lines += [
        "",
        "%define _build_id_links none",
        "",
        "%description",
        metadata.description or metadata.name,
        "",
        "%install",
        "mkdir -p %{buildroot}",
        f"cp -a '{root_dir.as_posix()}/.' %{{buildroot}}/",
        "",
        "%files",
    ]
    lines += [_quote(path) for path in files]
    return "\n".join(lines) + "\n"
