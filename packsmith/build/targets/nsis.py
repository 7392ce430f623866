"""
NSIS 脚本生成

根据暂存结果生成 app.nsi：MUI2 界面、安装目录、版本信息以及安装/卸载段。
"""

from itertools import groupby
from pathlib import Path, PurePosixPath
from typing import Any, Iterable, List, Optional

from ...config.schema import Arch

SCRIPT_NAME = "app.nsi"
MAKENSIS = "makensis"


def _quoted(value: Any) -> str:
    return '"' + str(value).replace('"', '$\\"') + '"'


def _windows_path(path: PurePosixPath) -> str:
    return str(path).replace('/', '\\')


def _install_dir_lines(metadata: Any, nsis: Any, arch: Arch) -> List[str]:
    name = metadata.name
    if nsis.one_click:
        return [
            f'InstallDir "$LOCALAPPDATA\\Programs\\{name}"',
            "RequestExecutionLevel User",
            "SilentInstall silent",
        ]
    if nsis.per_machine:
        program_files = "$PROGRAMFILES" if Arch(arch) == Arch.X86 else "$PROGRAMFILES64"
        return [
            f'InstallDir "{program_files}\\{name}"',
            "RequestExecutionLevel Admin",
        ]
    return [
        f'InstallDir "$LOCALAPPDATA\\Programs\\{name}"',
        "RequestExecutionLevel User",
    ]


def render_script(
    metadata: Any,
    nsis: Any,
    arch: Arch,
    files: Iterable[PurePosixPath],
    output_file: Path,
    include: Optional[Path] = None,
    installer_icon: Optional[Path] = None,
    uninstaller_icon: Optional[Path] = None,
) -> str:
    """生成 NSIS 脚本

    Args:
        metadata: MetadataModel
        nsis: NsisModel
        arch: 目标架构
        files: 暂存目录中的文件（相对路径），按此顺序写入 File 指令
        output_file: 安装器输出路径
        include: 额外 !include 的脚本
        installer_icon: 安装器图标
        uninstaller_icon: 卸载器图标
    """
    lines: List[str] = ["# Generated by packsmith. DO NOT EDIT!", "", '!include "MUI2.nsh"', ""]

    if include is not None:
        lines += [f"!include {_quoted(include)}", ""]

    lines.append(f"Name {_quoted(metadata.get_product_name())}")
    lines.append(f"Unicode {'True' if nsis.unicode else 'False'}")
    lines.append(f"OutFile {_quoted(output_file)}")
    lines.append(f"SetCompressor /SOLID {nsis.compress_method}")
    lines.append("")

    if nsis.warnings_as_errors:
        lines.append("!define MUI_ABORTWARNING")
    if installer_icon is not None:
        lines.append(f"!define MUI_ICON {_quoted(installer_icon)}")
    if uninstaller_icon is not None:
        lines.append(f"!define MUI_UNICON {_quoted(uninstaller_icon)}")

    lines += _install_dir_lines(metadata, nsis, arch)
    lines.append("")

    if not nsis.one_click:
        if nsis.allow_to_change_installation_directory:
            lines.append("!insertmacro MUI_PAGE_DIRECTORY")
        lines += [
            "!insertmacro MUI_PAGE_INSTFILES",
            "!insertmacro MUI_UNPAGE_CONFIRM",
            "!insertmacro MUI_UNPAGE_INSTFILES",
            "",
        ]

    lines.append('!insertmacro MUI_LANGUAGE "English"')
    lines.append("")

    build_version = f"{metadata.version}.{metadata.build_id}"
    lines.append(f"VIProductVersion {_quoted(build_version)}")
    lines.append(f"VIFileVersion {_quoted(build_version)}")
    version_keys = [
        ("ProductName", metadata.get_product_name()),
        ("ProductVersion", metadata.version),
        ("FileDescription", metadata.description),
    ]
    if metadata.company:
        version_keys.append(("CompanyName", metadata.company))
    if metadata.copyright:
        version_keys.append(("LegalCopyright", metadata.copyright))
    version_keys.append(("FileVersion", build_version))
    for key, value in version_keys:
        lines.append(f"VIAddVersionKey /LANG=${{LANG_ENGLISH}} {_quoted(key)} {_quoted(value)}")

    lines += ["", 'Section "Install"']
    ordered = sorted(files, key=lambda p: (p.parent.parts, p.name))
    for parent, group in groupby(ordered, key=lambda p: p.parent):
        out_path = "$INSTDIR" if parent == PurePosixPath('.') else f"$INSTDIR\\{_windows_path(parent)}"
        lines.append(f"  SetOutPath {_quoted(out_path)}")
        for path in group:
            lines.append(f"  File {_quoted(_windows_path(path))}")
    lines += [
        '  SetOutPath "$INSTDIR"',
        '  WriteUninstaller "$INSTDIR\\Uninstall.exe"',
        "SectionEnd",
        "",
        'Section "Uninstall"',
        '  Delete "$INSTDIR\\Uninstall.exe"',
        '  RMDir /r "$INSTDIR"',
        "SectionEnd",
    ]
    return "\n".join(lines) + "\n"
