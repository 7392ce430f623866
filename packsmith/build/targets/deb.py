"""
Debian 包元数据生成

control 与 md5sums 文本，以及 .deb 文件名。
"""

from typing import Any, Dict, List

from ...config.schema import Arch

DEBIAN_BINARY = b"2.0\n"
STANDARDS_VERSION = "3.9.4"

DEB_ARCH_NAMES = {
    Arch.X86: "i386",
    Arch.X86_64: "amd64",
    Arch.AARCH64: "arm64",
}


def deb_arch(arch: Arch) -> str:
    return DEB_ARCH_NAMES[Arch(arch)]


def deb_filename(metadata: Any, arch: Arch) -> str:
    return f"{metadata.name}_{metadata.version}_{deb_arch(arch)}.deb"


def installed_size_kib(total_bytes: int) -> int:
    """Installed-Size 以 KiB 为单位，向上取整"""
    return (total_bytes + 1023) // 1024


def _format_description(metadata: Any) -> str:
    # 首行为摘要，后续行缩进一格，空行写作 " ."
    text = (metadata.description or metadata.name).strip()
    lines = text.splitlines()
    result = [lines[0]]
    for line in lines[1:]:
        result.append(f" {line}" if line.strip() else " .")
    return "\n".join(result)


def render_control(metadata: Any, deb: Any, arch: Arch, installed_size: int) -> str:
    """生成 control 文件内容

    Args:
        metadata: MetadataModel
        deb: DebModel
        arch: 目标架构
        installed_size: 已安装大小（KiB）
    """
    fields: List[str] = [
        f"Package: {metadata.name}",
        f"Version: {metadata.version}",
        f"Architecture: {deb_arch(arch)}",
    ]
    if deb.section:
        fields.append(f"Section: {deb.section}")
    fields.append(f"Priority: {deb.priority}")
    fields.append(f"Standards-Version: {STANDARDS_VERSION}")
    fields.append(f"Maintainer: {metadata.author}")
    fields.append(f"Installed-Size: {installed_size}")
    if metadata.homepage:
        fields.append(f"Homepage: {metadata.homepage}")

    relations = (
        ("Depends", deb.depends),
        ("Conflicts", deb.conflicts),
        ("Breaks", deb.breaks),
        ("Replaces", deb.replaces),
        ("Provides", deb.provides),
    )
    for key, value in relations:
        if value:
            fields.append(f"{key}: {value}")

    fields.append(f"Description: {_format_description(metadata)}")
    return "\n".join(fields) + "\n"


def render_md5sums(sums: Dict[str, str]) -> str:
    """md5sums 每行为 "<md5>  <相对路径>" """
    return "".join(f"{digest}  {path}\n" for path, digest in sums.items())
