"""各打包目标的元数据与脚本生成"""

from .appimage import APPIMAGE_TOOL, appimage_arch, appimage_filename
from .deb import deb_arch, deb_filename, installed_size_kib, render_control, render_md5sums
from .nsis import MAKENSIS, SCRIPT_NAME, render_script
from .rpm import render_spec, rpm_arch

__all__ = [
    "APPIMAGE_TOOL",
    "appimage_arch",
    "appimage_filename",
    "deb_arch",
    "deb_filename",
    "installed_size_kib",
    "render_control",
    "render_md5sums",
    "MAKENSIS",
    "SCRIPT_NAME",
    "render_script",
    "render_spec",
    "rpm_arch",
]
