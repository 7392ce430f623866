"""
配置 Schema 定义

使用 Pydantic 定义严格的 YAML 配置模型，支持验证和类型检查。
"""

from __future__ import annotations

import platform
import re
from enum import Enum
from pathlib import Path
from typing import Any, Dict, List, Optional

from pydantic import BaseModel, Field, field_validator, model_validator


class Arch(str, Enum):
    """目标架构枚举"""
    X86 = "x86"
    X86_64 = "x86_64"
    AARCH64 = "aarch64"

    @classmethod
    def host(cls) -> Optional["Arch"]:
        """当前机器的架构，无法识别时返回 None"""
        machine = platform.machine().lower()
        return _HOST_ARCH_ALIASES.get(machine)


_HOST_ARCH_ALIASES = {
    "x86": Arch.X86,
    "i386": Arch.X86,
    "i686": Arch.X86,
    "x86_64": Arch.X86_64,
    "amd64": Arch.X86_64,
    "aarch64": Arch.AARCH64,
    "arm64": Arch.AARCH64,
}


class PlatformTarget(str, Enum):
    """打包目标枚举"""
    DEB = "deb"
    RPM = "rpm"
    APP_IMAGE = "app_image"
    NSIS = "nsis"


LINUX_TARGETS = (PlatformTarget.DEB, PlatformTarget.RPM, PlatformTarget.APP_IMAGE)
WINDOWS_TARGETS = (PlatformTarget.NSIS,)


class TarCompression(str, Enum):
    """tar 成员压缩方式"""
    NONE = "none"
    GZIP = "gz"
    XZ = "xz"
    ZSTD = "zst"


DEFAULT_EXCLUDE_LIBS = [
    "libc.so.6",
    "libdl.so.2",
    "libm.so.6",
    "libpthread.so.0",
]


class MetadataModel(BaseModel):
    """构建元数据模型"""
    name: str = Field(..., description="包名", min_length=1, max_length=100)
    product_name: Optional[str] = Field(None, description="产品显示名称")
    version: str = Field(..., description="版本号", min_length=1, max_length=40)
    build_id: str = Field("0", description="构建号，可包含 ${date} / ${timestamp}")
    author: str = Field("", description="维护者")
    description: str = Field("", description="描述")
    company: Optional[str] = Field(None, description="公司名称")
    copyright: Optional[str] = Field(None, description="版权信息")
    license: Optional[str] = Field(None, description="许可证")
    homepage: Optional[str] = Field(None, description="主页")
    workdir: str = Field("target", description="工作目录（暂存区和产物所在目录）")
    src_dir: str = Field(".", description="文件来源根目录")

    @field_validator('name')
    @classmethod
    def validate_name(cls, v: str) -> str:
        """包名只能包含字母数字和 . + - _"""
        if not re.match(r'^[A-Za-z0-9][A-Za-z0-9.+_-]*$', v):
            raise ValueError("包名只能包含字母、数字以及 . + - _，且必须以字母或数字开头")
        return v

    @field_validator('version')
    @classmethod
    def validate_version(cls, v: str) -> str:
        if not re.match(r'^\d[\w.+~-]*$', v):
            raise ValueError("版本号必须以数字开头，只能包含字母数字和 . + ~ - _")
        return v

    def get_product_name(self) -> str:
        return self.product_name or self.name


class FileSetModel(BaseModel):
    """file-set 条目：from 模式 → to 目标模板"""
    from_: str = Field(..., alias="from", description="源路径或 glob 模式（相对 src_dir）", min_length=1)
    to: str = Field(..., description="目标路径模板，以 / 结尾表示目录")
    exclude: List[str] = Field(default_factory=list, description="排除模式列表（glob 格式）")
    optional: bool = Field(False, description="允许模式不匹配任何文件")

    model_config = {
        "populate_by_name": True,
        "extra": "forbid",
    }

    @field_validator('from_')
    @classmethod
    def validate_from(cls, v: str) -> str:
        normalized = v.replace('\\', '/')
        if normalized.startswith('/') or '..' in normalized.split('/'):
            raise ValueError("from 必须是 src_dir 内的相对路径")
        return v

    @field_validator('to')
    @classmethod
    def validate_to(cls, v: str) -> str:
        normalized = v.replace('\\', '/')
        if normalized.startswith('/') or '..' in normalized.split('/'):
            raise ValueError("to 不能是绝对路径或包含 ..")
        return v


class DebModel(BaseModel):
    """Debian 包配置"""
    files: Optional[List[FileSetModel]] = Field(None, description="覆盖 linux.files")
    section: Optional[str] = Field(None, description="Section 字段")
    priority: str = Field("optional", description="Priority 字段")
    depends: Optional[str] = None
    conflicts: Optional[str] = None
    breaks: Optional[str] = None
    replaces: Optional[str] = None
    provides: Optional[str] = None
    compression: TarCompression = Field(TarCompression.XZ, description="control/data tar 压缩方式")


class RpmModel(BaseModel):
    """RPM 包配置"""
    files: Optional[List[FileSetModel]] = Field(None, description="覆盖 linux.files")
    license: Optional[str] = Field(None, description="License 字段（默认取 metadata.license）")
    group: Optional[str] = None
    requires: List[str] = Field(default_factory=list, description="Requires 字段")


class AppImageModel(BaseModel):
    """AppImage 配置"""
    exe_files: List[str] = Field(default_factory=list, description="ELF 可执行文件（相对 src_dir）")
    embed_libs: bool = Field(True, description="是否复制依赖的动态库到 AppDir/libs")
    files: Optional[List[FileSetModel]] = Field(None, description="覆盖 linux.files")
    exclude_libs: List[str] = Field(default_factory=lambda: list(DEFAULT_EXCLUDE_LIBS))
    download_tool: bool = Field(True, description="是否自动下载 appimagetool")


class LinuxModel(BaseModel):
    """Linux 平台配置"""
    arch: List[Arch] = Field(default_factory=lambda: [Arch.X86_64], min_length=1)
    targets: List[PlatformTarget] = Field(default_factory=lambda: [PlatformTarget.DEB])
    files: Optional[List[FileSetModel]] = None
    deb: Optional[DebModel] = None
    rpm: Optional[RpmModel] = None
    app_image: Optional[AppImageModel] = None

    @field_validator('targets')
    @classmethod
    def validate_targets(cls, v: List[PlatformTarget]) -> List[PlatformTarget]:
        for target in v:
            if target not in LINUX_TARGETS:
                raise ValueError(f"{target.value} 不是 Linux 目标")
        return v

    @model_validator(mode='after')
    def validate_sections(self) -> 'LinuxModel':
        """目标启用时补齐缺省的子配置"""
        if PlatformTarget.DEB in self.targets and self.deb is None:
            self.deb = DebModel()
        if PlatformTarget.RPM in self.targets and self.rpm is None:
            self.rpm = RpmModel()
        if PlatformTarget.APP_IMAGE in self.targets and self.app_image is None:
            raise ValueError("启用 app_image 目标时必须提供 app_image 配置")
        return self


class NsisModel(BaseModel):
    """NSIS 安装器配置"""
    files: Optional[List[FileSetModel]] = Field(None, description="覆盖 windows.files")
    script: Optional[str] = Field(None, description="自带的 .nsi 脚本，设置后不再生成")
    include: Optional[str] = Field(None, description="额外 !include 的脚本")
    unicode: bool = True
    artifact_name: str = Field("${name}-${version}-${arch}-setup.exe", description="输出文件名模板")
    compress_method: str = Field("lzma", description="SetCompressor 方法")
    warnings_as_errors: bool = False
    installer_icon: Optional[str] = None
    uninstaller_icon: Optional[str] = None
    one_click: bool = False
    per_machine: bool = False
    allow_to_change_installation_directory: bool = True

    @field_validator('compress_method')
    @classmethod
    def validate_compress_method(cls, v: str) -> str:
        if v.lower() not in ("zlib", "bzip2", "lzma"):
            raise ValueError("compress_method 只支持 zlib, bzip2, lzma")
        return v.lower()

    @model_validator(mode='after')
    def validate_install_mode(self) -> 'NsisModel':
        if self.one_click and self.per_machine:
            raise ValueError("one_click 和 per_machine 不能同时为 true")
        return self


class WindowsModel(BaseModel):
    """Windows 平台配置"""
    arch: List[Arch] = Field(default_factory=lambda: [Arch.X86_64], min_length=1)
    targets: List[PlatformTarget] = Field(default_factory=lambda: [PlatformTarget.NSIS])
    files: Optional[List[FileSetModel]] = None
    nsis: Optional[NsisModel] = None

    @field_validator('targets')
    @classmethod
    def validate_targets(cls, v: List[PlatformTarget]) -> List[PlatformTarget]:
        for target in v:
            if target not in WINDOWS_TARGETS:
                raise ValueError(f"{target.value} 不是 Windows 目标")
        return v

    @model_validator(mode='after')
    def validate_sections(self) -> 'WindowsModel':
        if PlatformTarget.NSIS in self.targets and self.nsis is None:
            self.nsis = NsisModel()
        return self


class ConfigModel(BaseModel):
    """配置元信息模型"""
    version: int = Field(1, description="配置 schema 版本", ge=1)

    @field_validator('version')
    @classmethod
    def validate_config_version(cls, v: int) -> int:
        SUPPORTED_VERSIONS = [1]
        if v not in SUPPORTED_VERSIONS:
            raise ValueError(f"不支持的配置版本 {v}，支持的版本: {SUPPORTED_VERSIONS}")
        return v


class PackagerConfig(BaseModel):
    """根配置模型"""

    config: ConfigModel = Field(default_factory=ConfigModel, description="配置元信息")
    metadata: MetadataModel = Field(..., description="构建元数据")
    linux: Optional[LinuxModel] = Field(None, description="Linux 平台配置")
    windows: Optional[WindowsModel] = Field(None, description="Windows 平台配置")

    model_config = {
        "extra": "forbid",
        "validate_assignment": True,
        "str_strip_whitespace": True,
    }

    @model_validator(mode='after')
    def validate_platforms(self) -> 'PackagerConfig':
        if self.linux is None and self.windows is None:
            raise ValueError("至少需要配置 linux 或 windows 其中之一")
        return self

    def to_dict(self) -> Dict[str, Any]:
        """转换为字典格式"""
        data = self.model_dump(exclude_none=True, by_alias=True)

        def convert_values(obj):
            if isinstance(obj, dict):
                return {k: convert_values(v) for k, v in obj.items()}
            elif isinstance(obj, list):
                return [convert_values(item) for item in obj]
            elif isinstance(obj, Enum):
                return obj.value
            elif isinstance(obj, Path):
                return str(obj)
            return obj

        return convert_values(data)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> 'PackagerConfig':
        return cls.model_validate(data)

    def src_root(self) -> Path:
        return Path(self.metadata.src_dir)

    def workdir(self) -> Path:
        return Path(self.metadata.workdir)


FileSetList = List[FileSetModel]
