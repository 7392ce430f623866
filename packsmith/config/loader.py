"""
配置加载器

负责从 YAML 文件加载配置并进行验证。
"""

import copy
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

from pydantic import ValidationError
from ruamel.yaml import YAML
from ruamel.yaml.error import YAMLError

from ..errors import ConfigurationError, MacroError
from ..fileset.macro import expand_build_id
from .schema import PackagerConfig

DEFAULT_CONFIG_CANDIDATES = ("pkg/packsmith.yaml", "packsmith.yaml")


class ConfigError(ConfigurationError):
    """配置错误基类"""
    pass


class ConfigValidationError(ConfigError):
    """配置验证错误"""

    def __init__(self, message: str, errors: List[Dict[str, Any]]):
        super().__init__(message)
        self.errors = errors

    def format_errors(self) -> str:
        """格式化错误信息为人类可读的格式"""
        formatted = []
        for error in self.errors:
            loc = " -> ".join(str(item) for item in error.get('loc', []))
            msg = error.get('msg', '未知错误')
            if loc:
                formatted.append(f"字段 '{loc}': {msg}")
            else:
                formatted.append(f"根级别: {msg}")
        return "\n".join(formatted)


class ConfigLoader:
    """配置加载器"""

    def __init__(self, now: Optional[datetime] = None):
        self.yaml = YAML(typ="safe")
        self._now = now

    def load_from_file(self, config_path: Union[str, Path]) -> PackagerConfig:
        """从文件加载配置

        相对路径（src_dir、workdir、nsis 脚本和图标）以配置文件所在目录为基准。

        Raises:
            ConfigError: 配置加载或验证错误
        """
        config_path = Path(config_path)

        if not config_path.exists():
            raise ConfigError(f"配置文件不存在: {config_path}")
        if not config_path.is_file():
            raise ConfigError(f"配置路径不是文件: {config_path}")
        if config_path.suffix.lower() not in ('.yaml', '.yml'):
            raise ConfigError(f"配置文件必须是 .yaml 或 .yml 格式: {config_path}")

        try:
            with open(config_path, 'r', encoding='utf-8') as f:
                raw_data = self.yaml.load(f)
        except YAMLError as e:
            raise ConfigError(f"YAML 解析错误: {e}") from e
        except OSError as e:
            raise ConfigError(f"文件读取错误: {e}") from e

        if raw_data is None:
            raise ConfigError("配置文件为空")
        if not isinstance(raw_data, dict):
            raise ConfigError("配置文件根级别必须是对象/字典格式")

        return self.load_from_dict(raw_data, base_path=config_path.parent.resolve())

    def load_from_dict(self, data: Dict[str, Any], base_path: Optional[Path] = None) -> PackagerConfig:
        """从字典加载配置

        Raises:
            ConfigValidationError: 配置验证错误
        """
        data = copy.deepcopy(data)
        if base_path:
            self._resolve_relative_paths(data, Path(base_path))

        try:
            config = PackagerConfig.from_dict(data)
        except ValidationError as e:
            raise ConfigValidationError("配置验证失败", [error for error in e.errors()]) from e

        # build_id 只在加载时展开一次
        try:
            config.metadata.build_id = expand_build_id(config.metadata.build_id, self._now)
        except MacroError as e:
            raise ConfigError(f"build_id 无效: {e}") from e
        return config

    def save_to_file(self, config: PackagerConfig, output_path: Union[str, Path]) -> None:
        """保存配置到文件"""
        output_path = Path(output_path)
        output_path.parent.mkdir(parents=True, exist_ok=True)

        writer = YAML()
        writer.default_flow_style = False
        try:
            with open(output_path, 'w', encoding='utf-8') as f:
                writer.dump(config.to_dict(), f)
        except OSError as e:
            raise ConfigError(f"保存配置文件失败: {e}") from e

    def validate_file(self, config_path: Union[str, Path]) -> List[Dict[str, Any]]:
        """验证配置文件并返回错误列表，空列表表示验证通过"""
        try:
            self.load_from_file(config_path)
            return []
        except ConfigValidationError as e:
            return e.errors
        except ConfigError as e:
            return [{
                'loc': [],
                'msg': str(e),
                'type': 'config_error'
            }]

    def _resolve_relative_paths(self, data: Dict[str, Any], base_path: Path) -> None:
        """解析配置中的相对路径"""
        path_fields = [
            ('metadata', 'src_dir'),
            ('metadata', 'workdir'),
            ('windows', 'nsis', 'script'),
            ('windows', 'nsis', 'include'),
            ('windows', 'nsis', 'installer_icon'),
            ('windows', 'nsis', 'uninstaller_icon'),
        ]

        metadata = data.get('metadata')
        if isinstance(metadata, dict):
            metadata.setdefault('src_dir', '.')
            metadata.setdefault('workdir', 'target')

        for field_path in path_fields:
            self._resolve_field_path(data, field_path, base_path)

    def _resolve_field_path(self, data: Dict[str, Any], field_path: tuple, base_path: Path) -> None:
        current = data
        for key in field_path[:-1]:
            if key not in current or not isinstance(current[key], dict):
                return
            current = current[key]

        final_key = field_path[-1]
        path_value = current.get(final_key)
        if isinstance(path_value, str) and path_value:
            if not Path(path_value).is_absolute():
                current[final_key] = str((base_path / path_value).resolve())


def find_config_file(explicit: Optional[Union[str, Path]] = None, cwd: Optional[Path] = None) -> Path:
    """定位配置文件

    显式指定时直接使用，否则依次查找 pkg/packsmith.yaml 和 packsmith.yaml。
    """
    if explicit:
        return Path(explicit)

    base = cwd or Path.cwd()
    for candidate in DEFAULT_CONFIG_CANDIDATES:
        path = base / candidate
        if path.exists():
            return path
    raise ConfigError(f"未找到配置文件，已查找: {', '.join(DEFAULT_CONFIG_CANDIDATES)}")


config_loader = ConfigLoader()


def load_config(config_path: Union[str, Path]) -> PackagerConfig:
    """便捷函数：加载配置文件"""
    return config_loader.load_from_file(config_path)


def validate_config(config_path: Union[str, Path]) -> List[Dict[str, Any]]:
    """便捷函数：验证配置文件"""
    return config_loader.validate_file(config_path)


def save_config(config: PackagerConfig, output_path: Union[str, Path]) -> None:
    """便捷函数：保存配置文件"""
    config_loader.save_to_file(config, output_path)
