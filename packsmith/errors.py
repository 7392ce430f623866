"""
异常层次

所有组件抛出的错误都继承自 PackagerError，调用方可以按类别捕获。
"""

from pathlib import Path
from typing import Optional, Union


class PackagerError(Exception):
    """packsmith 错误基类"""
    pass


class ConfigurationError(PackagerError):
    """配置缺失或相互矛盾"""
    pass


class FilesNotSetError(ConfigurationError):
    """任何层级都没有声明 file-set"""

    def __init__(self, target: Optional[str] = None):
        self.target = target
        if target:
            super().__init__(f"目标 {target} 未设置 files，且所属平台也未设置")
        else:
            super().__init__("未设置 files")


class PatternError(PackagerError):
    """不安全的模式，或必需的模式没有匹配到任何路径"""

    def __init__(self, message: str, pattern: Optional[str] = None):
        super().__init__(message)
        self.pattern = pattern


class MacroError(PackagerError):
    """宏展开错误"""
    pass


class UnknownMacroError(MacroError):
    """模板中出现无法识别的占位符"""

    def __init__(self, token: str, template: Optional[str] = None):
        self.token = token
        self.template = template
        super().__init__(f"未知的宏: ${{{token}}}")


class PackagerIOError(PackagerError):
    """复制、读取、写入失败（包装底层 OSError）"""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class FileCopyError(PackagerIOError):
    """复制单个文件失败"""
    pass


class ArchiveError(PackagerError):
    """归档构建错误（大小不符、不支持的条目类型等）"""

    def __init__(self, message: str, path: Optional[Union[str, Path]] = None):
        super().__init__(message)
        self.path = Path(path) if path is not None else None


class CompressionError(PackagerError):
    """压缩相关错误"""
    pass


class DigestMismatchError(PackagerError):
    """文件摘要与期望值不一致"""

    def __init__(self, path: Union[str, Path], expected: str, actual: str):
        self.path = Path(path)
        self.expected = expected
        self.actual = actual
        super().__init__(f"哈希不匹配 {self.path}: 期望 {expected}, 实际 {actual}")


class ToolAcquisitionError(PackagerError):
    """外部工具在重试次数用尽后仍未获取成功"""

    def __init__(self, tool: str, attempts: int, errors: Optional[list] = None):
        self.tool = tool
        self.attempts = attempts
        self.errors = errors or []
        super().__init__(f"获取工具 {tool} 失败，已尝试 {attempts} 次")


class ToolInvocationError(PackagerError):
    """外部工具执行失败（未找到或退出码非 0）"""

    def __init__(self, tool: str, returncode: Optional[int] = None, message: Optional[str] = None):
        self.tool = tool
        self.returncode = returncode
        if message is None:
            message = f"{tool} 执行失败，退出码 {returncode}"
        super().__init__(message)


class BuildError(PackagerError):
    """单个目标构建失败"""
    pass
