"""AppImage 命名与架构映射"""

from typing import Any

from ...config.schema import Arch

APPIMAGE_TOOL = "appimagetool"

# appimagetool 通过 ARCH 环境变量识别目标架构
APPIMAGE_ARCH_NAMES = {
    Arch.X86: "i686",
    Arch.X86_64: "x86_64",
    Arch.AARCH64: "aarch64",
}


def appimage_arch(arch: Arch) -> str:
    return APPIMAGE_ARCH_NAMES[Arch(arch)]


def appimage_filename(metadata: Any, arch: Arch) -> str:
    return f"{metadata.name}-{metadata.version}-{appimage_arch(arch)}.AppImage"
