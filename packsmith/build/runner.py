"""
外部工具调用

以给定的工作目录和参数执行外部工具，退出码为 0 视为成功。
"""

import os
import subprocess
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Union

from ..errors import ToolInvocationError
from ..utils.logging import LogStage, debug, error, info


class ToolRunner:
    """外部工具执行器"""

    def run(
        self,
        tool: Union[str, Path],
        args: Sequence[Union[str, Path]] = (),
        cwd: Optional[Union[str, Path]] = None,
        env: Optional[Dict[str, str]] = None,
    ) -> None:
        """执行工具，输出直接透传到终端

        Raises:
            ToolInvocationError: 找不到工具或退出码非 0
        """
        command = self._command(tool, args)
        info(f"执行: {' '.join(command)}" + (f" (cwd={cwd})" if cwd else ""), stage=LogStage.COMPILE)

        merged_env = None
        if env:
            merged_env = dict(os.environ)
            merged_env.update(env)

        try:
            result = subprocess.run(command, cwd=cwd, env=merged_env)
        except OSError as e:
            raise ToolInvocationError(str(tool), message=f"无法启动 {tool}: {e}") from e

        if result.returncode != 0:
            error(f"{tool} 退出码 {result.returncode}", stage=LogStage.COMPILE)
            raise ToolInvocationError(str(tool), result.returncode)

    def capture(
        self,
        tool: Union[str, Path],
        args: Sequence[Union[str, Path]] = (),
        cwd: Optional[Union[str, Path]] = None,
    ) -> str:
        """执行工具并返回 stdout 文本

        Raises:
            ToolInvocationError: 找不到工具或退出码非 0
        """
        command = self._command(tool, args)
        debug(f"执行: {' '.join(command)}", stage=LogStage.COMPILE)

        try:
            result = subprocess.run(command, cwd=cwd, capture_output=True, text=True)
        except OSError as e:
            raise ToolInvocationError(str(tool), message=f"无法启动 {tool}: {e}") from e

        if result.returncode != 0:
            raise ToolInvocationError(
                str(tool),
                result.returncode,
                f"{tool} 退出码 {result.returncode}: {result.stderr.strip()}",
            )
        return result.stdout

    @staticmethod
    def _command(tool: Union[str, Path], args: Sequence[Union[str, Path]]) -> List[str]:
        return [str(tool)] + [str(arg) for arg in args]
