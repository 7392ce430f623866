"""
工具获取器

确保清单中的外部工具已下载到本地缓存并通过摘要校验。

- 缓存命中（文件存在且摘要一致）时不访问网络
- 每次尝试都写入缓存目录中独立的临时文件，校验通过后用 os.replace 原子替换，
  并发获取同一工具不会互相破坏
- 网络错误、写入错误和摘要不一致都会记录并重试，最多 max_attempts 次
"""

import os
import stat
import tempfile
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, List, Optional, Union

import requests

from ..errors import DigestMismatchError, PackagerIOError, ToolAcquisitionError
from ..build.hashing import HashVerifier
from ..utils.logging import LogStage, debug, error, info, success, warning
from ..utils.paths import ensure_directory, format_size, get_cache_root
from .manifest import LocalTool, ToolSpec

DEFAULT_MAX_ATTEMPTS = 3
DOWNLOAD_CHUNK_SIZE = 1 << 20
DEFAULT_TIMEOUT = 60


def default_cache_dir() -> Path:
    """工具缓存目录：<cache_root>/tools"""
    return get_cache_root() / "tools"


@dataclass
class AcquisitionResult:
    """获取结果"""
    ok: bool
    spec: ToolSpec
    tool: Optional[LocalTool] = None
    attempts: int = 0
    errors: List[str] = field(default_factory=list)
    from_cache: bool = False


class ToolAcquirer:
    """下载并校验外部工具"""

    def __init__(
        self,
        cache_dir: Optional[Union[str, Path]] = None,
        session: Optional[requests.Session] = None,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        timeout: float = DEFAULT_TIMEOUT,
    ):
        if max_attempts < 1:
            raise ValueError("max_attempts 必须大于 0")
        self.cache_dir = Path(cache_dir) if cache_dir is not None else default_cache_dir()
        self.session = session or requests.Session()
        self.max_attempts = max_attempts
        self.timeout = timeout
        self.verifier = HashVerifier("sha256")

    def ensure(self, spec: ToolSpec) -> AcquisitionResult:
        """确保工具可用，返回明确的成功/失败结果"""
        ensure_directory(self.cache_dir)
        target = spec.cache_path(self.cache_dir)

        if target.exists():
            try:
                if self.verifier.verify(target, spec.expected_digest):
                    info(f"使用已缓存的 {spec.filename}", stage=LogStage.DOWNLOAD)
                    _make_executable(target)
                    return AcquisitionResult(
                        ok=True,
                        spec=spec,
                        tool=LocalTool(spec=spec, path=target, verified=True),
                        from_cache=True,
                    )
                warning(f"缓存文件哈希不匹配，重新下载: {target}", stage=LogStage.DOWNLOAD)
            except (PackagerIOError, OSError) as e:
                warning(f"无法使用缓存文件 {target}: {e}", stage=LogStage.DOWNLOAD)

        errors: List[str] = []
        for attempt in range(1, self.max_attempts + 1):
            try:
                self._fetch(spec, target)
            except (requests.RequestException, OSError, PackagerIOError, DigestMismatchError) as e:
                error(f"第 {attempt}/{self.max_attempts} 次获取 {spec.filename} 失败: {e}", stage=LogStage.DOWNLOAD)
                errors.append(str(e))
                continue

            success(f"{spec.filename} 已就绪: {target}", stage=LogStage.DOWNLOAD)
            return AcquisitionResult(
                ok=True,
                spec=spec,
                tool=LocalTool(spec=spec, path=target, verified=True),
                attempts=attempt,
                errors=errors,
            )

        return AcquisitionResult(ok=False, spec=spec, attempts=self.max_attempts, errors=errors)

    def ensure_or_raise(self, spec: ToolSpec) -> LocalTool:
        """确保工具可用

        Raises:
            ToolAcquisitionError: 重试次数用尽
        """
        result = self.ensure(spec)
        if not result.ok or result.tool is None:
            raise ToolAcquisitionError(spec.name, result.attempts, result.errors)
        return result.tool

    def ensure_all(self, specs: Iterable[ToolSpec]) -> List[AcquisitionResult]:
        return [self.ensure(spec) for spec in specs]

    def _fetch(self, spec: ToolSpec, target: Path) -> None:
        """下载到临时文件，校验通过后提升到最终路径"""
        info(f"下载 {spec.url}", stage=LogStage.DOWNLOAD)
        fd, tmp_name = tempfile.mkstemp(prefix=f".{spec.filename}.", suffix=".part", dir=self.cache_dir)
        tmp_path = Path(tmp_name)
        try:
            with os.fdopen(fd, 'wb') as out:
                response = self.session.get(spec.url, stream=True, timeout=self.timeout)
                with response:
                    response.raise_for_status()
                    received = 0
                    for chunk in response.iter_content(chunk_size=DOWNLOAD_CHUNK_SIZE):
                        if not chunk:
                            continue
                        out.write(chunk)
                        received += len(chunk)
            debug(f"已接收 {format_size(received)}", stage=LogStage.DOWNLOAD)

            self.verifier.require(tmp_path, spec.expected_digest)
            _make_executable(tmp_path)
            os.replace(tmp_path, target)
        finally:
            if tmp_path.exists():
                tmp_path.unlink()


def _make_executable(path: Path) -> None:
    mode = path.stat().st_mode
    wanted = mode | stat.S_IXUSR | stat.S_IXGRP | stat.S_IXOTH
    if wanted != mode:
        path.chmod(wanted)
