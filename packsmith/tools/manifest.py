"""
工具清单

内置的外部工具列表（tools.yaml），每个工具按架构给出下载地址、文件名和 sha256。
"""

from dataclasses import dataclass
from importlib import resources
from pathlib import Path
from typing import Dict, List, Optional

from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..config.schema import Arch
from ..errors import ConfigurationError

MANIFEST_RESOURCE = "tools.yaml"


@dataclass(frozen=True)
class ToolSpec:
    """单个架构上的工具声明"""
    name: str
    architecture: Arch
    url: str
    filename: str
    expected_digest: str

    def cache_path(self, cache_dir: Path) -> Path:
        return Path(cache_dir) / self.filename


@dataclass
class LocalTool:
    """已缓存在本地的工具"""
    spec: ToolSpec
    path: Path
    verified: bool = False


class ToolManifest:
    """工具清单：工具名 -> 各架构的 ToolSpec"""

    def __init__(self, tools: Dict[str, List[ToolSpec]]):
        self.tools = tools

    def names(self) -> List[str]:
        return sorted(self.tools)

    def specs(self, name: Optional[str] = None) -> List[ToolSpec]:
        if name is None:
            return [spec for key in self.names() for spec in self.tools[key]]
        return list(self.tools.get(name, []))

    def for_arch(self, name: str, arch: Arch) -> ToolSpec:
        """查找指定架构的工具

        Raises:
            ConfigurationError: 清单中没有该工具或架构
        """
        for spec in self.tools.get(name, []):
            if spec.architecture == Arch(arch):
                return spec
        raise ConfigurationError(f"工具清单中没有 {name} ({Arch(arch).value})")


def _parse(data: object) -> ToolManifest:
    if not isinstance(data, dict):
        raise ConfigurationError("工具清单根级别必须是字典")

    tools: Dict[str, List[ToolSpec]] = {}
    for name, records in data.items():
        if not isinstance(records, list):
            raise ConfigurationError(f"工具 {name} 的声明必须是列表")
        specs = []
        for record in records:
            try:
                specs.append(ToolSpec(
                    name=str(name),
                    architecture=Arch(record["arch"]),
                    url=str(record["url"]),
                    filename=str(record["filename"]),
                    expected_digest=str(record["sha256"]).lower(),
                ))
            except (KeyError, TypeError, ValueError) as e:
                raise ConfigurationError(f"工具 {name} 的声明无效: {e}") from e
        tools[str(name)] = specs
    return ToolManifest(tools)


def load_manifest(text: Optional[str] = None) -> ToolManifest:
    """加载工具清单，默认读取包内的 tools.yaml"""
    if text is None:
        text = resources.files(__package__).joinpath(MANIFEST_RESOURCE).read_text(encoding="utf-8")
    try:
        data = YAML(typ="safe").load(text)
    except YAMLError as e:
        raise ConfigurationError(f"工具清单解析错误: {e}") from e
    return _parse(data)
