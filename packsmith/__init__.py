"""
packsmith - 多目标打包工具

根据声明式配置生成 deb、rpm、AppImage 和 NSIS 安装器。
"""

__version__ = "0.3.0"
__license__ = "GPL-3.0"

from .config.schema import PackagerConfig
from .build.builder import Builder, BuildOptions, BuildReport

__all__ = ["PackagerConfig", "Builder", "BuildOptions", "BuildReport", "__version__"]
