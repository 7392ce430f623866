"""
哈希工具

流式计算文件摘要（常量内存），并与期望值比较。
"""

import hashlib
import hmac
from pathlib import Path
from typing import Dict, Union

from ..errors import DigestMismatchError, PackagerIOError
from ..utils.paths import to_posix

CHUNK_SIZE = 64 * 1024


class HashCalculator:
    """哈希计算器"""

    def __init__(self, algorithm: str = "sha256"):
        """初始化哈希计算器

        Args:
            algorithm: 哈希算法名称
        """
        self.algorithm = algorithm.lower()
        if self.algorithm not in hashlib.algorithms_available:
            raise ValueError(f"不支持的哈希算法: {algorithm}")

        self._hasher = hashlib.new(self.algorithm)

    def update(self, data: Union[bytes, str]) -> None:
        """更新哈希数据"""
        if isinstance(data, str):
            data = data.encode('utf-8')
        self._hasher.update(data)

    def update_from_file(self, file_path: Union[str, Path], chunk_size: int = CHUNK_SIZE) -> None:
        """从文件更新哈希

        Raises:
            PackagerIOError: 文件读取失败
        """
        try:
            with open(file_path, 'rb') as f:
                while True:
                    chunk = f.read(chunk_size)
                    if not chunk:
                        break
                    self._hasher.update(chunk)
        except OSError as e:
            raise PackagerIOError(f"读取文件失败 {file_path}: {e}", file_path) from e

    def hexdigest(self) -> str:
        """获取十六进制哈希值"""
        return self._hasher.hexdigest()

    @classmethod
    def hash_data(cls, data: Union[bytes, str], algorithm: str = "sha256") -> str:
        """便捷方法：计算数据哈希"""
        calculator = cls(algorithm)
        calculator.update(data)
        return calculator.hexdigest()

    @classmethod
    def hash_file(cls, file_path: Union[str, Path], algorithm: str = "sha256") -> str:
        """便捷方法：计算文件哈希"""
        calculator = cls(algorithm)
        calculator.update_from_file(file_path)
        return calculator.hexdigest()


class HashVerifier:
    """摘要校验器"""

    def __init__(self, algorithm: str = "sha256"):
        self.algorithm = algorithm

    def digest(self, path: Union[str, Path]) -> str:
        """计算文件的十六进制摘要"""
        return HashCalculator.hash_file(path, self.algorithm)

    def verify(self, path: Union[str, Path], expected: str) -> bool:
        """比较文件摘要与期望值（忽略大小写）"""
        actual = self.digest(path)
        return hmac.compare_digest(actual, expected.strip().lower())

    def require(self, path: Union[str, Path], expected: str) -> str:
        """校验摘要，不一致时抛出异常

        Raises:
            DigestMismatchError: 摘要不一致
        """
        actual = self.digest(path)
        if not hmac.compare_digest(actual, expected.strip().lower()):
            raise DigestMismatchError(path, expected, actual)
        return actual


def md5sums_for_tree(root: Union[str, Path]) -> Dict[str, str]:
    """计算目录下每个文件的 md5（用于 Debian md5sums）

    Returns:
        Dict[str, str]: 相对路径（正斜杠） -> md5，按路径排序
    """
    root = Path(root)
    result: Dict[str, str] = {}
    for path in sorted(root.rglob('*'), key=lambda p: p.relative_to(root).parts):
        if path.is_file():
            result[to_posix(path.relative_to(root))] = HashCalculator.hash_file(path, "md5")
    return result
