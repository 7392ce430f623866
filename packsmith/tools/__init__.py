"""外部工具清单与下载"""

from .manifest import LocalTool, ToolManifest, ToolSpec, load_manifest
from .acquirer import AcquisitionResult, ToolAcquirer, default_cache_dir

__all__ = [
    "LocalTool",
    "ToolManifest",
    "ToolSpec",
    "load_manifest",
    "AcquisitionResult",
    "ToolAcquirer",
    "default_cache_dir",
]
