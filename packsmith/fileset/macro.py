"""
宏展开

把模板中的 ${field} 占位符替换为构建元数据。展开只做一遍，
替换进去的值不会再次展开；无法识别的占位符直接报错。
"""

import os
import re
from dataclasses import dataclass, field
from datetime import datetime
from types import MappingProxyType
from typing import Any, Dict, Iterable, Mapping, Optional

from ..errors import MacroError, UnknownMacroError

# $$ 转义、${token}、以及未闭合的 ${
_TOKEN_RE = re.compile(r'\$\$|\$\{([^{}]*)\}|\$\{')

ENV_PREFIX = "env."
BASE_FIELDS = ("name", "version", "build_id", "arch", "platform")


@dataclass(frozen=True)
class MacroContext:
    """构建元数据的只读视图"""
    name: str
    version: str
    build_id: str
    arch: str
    platform: str
    date: Optional[str] = None
    env: Mapping[str, str] = field(default_factory=dict)

    def __post_init__(self):
        object.__setattr__(self, "env", MappingProxyType(dict(self.env)))

    def fields(self) -> Dict[str, str]:
        """返回所有可识别的占位符及其值"""
        values = {key: str(getattr(self, key)) for key in BASE_FIELDS}
        if self.date is not None:
            values["date"] = self.date
        for key, value in self.env.items():
            values[f"{ENV_PREFIX}{key}"] = value
        return values

    @classmethod
    def from_metadata(
        cls,
        metadata: Any,
        arch: str,
        platform: str,
        enable_date: bool = False,
        env_names: Iterable[str] = (),
        environ: Optional[Mapping[str, str]] = None,
        now: Optional[datetime] = None,
    ) -> "MacroContext":
        """从配置元数据构建上下文

        Args:
            metadata: 带 name/version/build_id 属性的对象
            arch: 目标架构
            platform: 目标平台（deb、rpm、app_image、nsis）
            enable_date: 是否提供 ${date}
            env_names: 暴露为 ${env.NAME} 的环境变量名
            environ: 环境变量来源，默认 os.environ
            now: 当前时间，默认 datetime.now()
        """
        environ = os.environ if environ is None else environ
        env = {name: environ[name] for name in env_names if name in environ}
        date = None
        if enable_date:
            date = (now or datetime.now()).strftime("%Y%m%d")

        return cls(
            name=metadata.name,
            version=metadata.version,
            build_id=str(metadata.build_id),
            arch=_enum_value(arch),
            platform=_enum_value(platform),
            date=date,
            env=env,
        )


def _enum_value(value: Any) -> str:
    return str(getattr(value, "value", value))


def _substitute(template: str, values: Mapping[str, str]) -> str:
    def replace(match: "re.Match[str]") -> str:
        text = match.group(0)
        if text == "$$":
            return "$"
        token = match.group(1)
        if token is None:
            raise MacroError(f"未闭合的宏: {template!r}")
        if token not in values:
            raise UnknownMacroError(token, template)
        return values[token]

    return _TOKEN_RE.sub(replace, template)


class MacroExpander:
    """宏展开器"""

    def __init__(self, context: MacroContext):
        self.context = context
        self._values = context.fields()

    def expand(self, template: str) -> str:
        """展开模板

        Raises:
            UnknownMacroError: 出现无法识别的占位符
            MacroError: 占位符语法错误
        """
        return _substitute(template, self._values)

    def tokens(self) -> Dict[str, str]:
        return dict(self._values)


def expand_macros(template: str, context: MacroContext) -> str:
    """便捷函数：展开模板"""
    return MacroExpander(context).expand(template)


def expand_build_id(template: str, now: Optional[datetime] = None) -> str:
    """展开 build_id 中的时间宏

    支持 ${date}（YYYYMMDD）、${time}（HHMMSS）和 ${timestamp}（Unix 秒）。
    """
    now = now or datetime.now()
    values = {
        "date": now.strftime("%Y%m%d"),
        "time": now.strftime("%H%M%S"),
        "timestamp": str(int(now.timestamp())),
    }
    return _substitute(str(template), values)
