"""
tar 成员压缩器

为 control.tar / data.tar 提供统一的压缩流接口，支持 gzip、xz 和 zstd。
压缩输出不包含时间戳，保证相同输入得到相同字节。
"""

import gzip
import lzma
from abc import ABC, abstractmethod
from typing import BinaryIO, Optional

import zstandard as zstd

from ..config.schema import TarCompression
from ..errors import CompressionError

# 各压缩格式的魔术字节
_MAGIC = {
    TarCompression.GZIP: b'\x1f\x8b',
    TarCompression.XZ: b'\xfd7zXZ\x00',
    TarCompression.ZSTD: b'\x28\xb5\x2f\xfd',
}

# 读取损坏的压缩流时可能抛出的异常（gzip 的错误是 OSError 子类）
DECOMPRESSION_ERRORS = (OSError, EOFError, lzma.LZMAError, zstd.ZstdError)


class _NonClosingWriter:
    """不关闭底层流的透传写入器"""

    def __init__(self, raw: BinaryIO):
        self._raw = raw

    def write(self, data: bytes) -> int:
        return self._raw.write(data)

    def flush(self) -> None:
        self._raw.flush()

    def close(self) -> None:
        self._raw.flush()


class Compressor(ABC):
    """压缩器抽象基类"""

    @abstractmethod
    def open_writer(self, raw: BinaryIO) -> BinaryIO:
        """包装输出流；关闭返回的流不会关闭 raw"""
        pass

    @abstractmethod
    def open_reader(self, raw: BinaryIO) -> BinaryIO:
        """包装输入流用于解压"""
        pass

    @abstractmethod
    def get_algorithm(self) -> TarCompression:
        pass

    @property
    def extension(self) -> str:
        """tar 文件扩展名，例如 .tar.xz"""
        algorithm = self.get_algorithm()
        if algorithm == TarCompression.NONE:
            return ".tar"
        return f".tar.{algorithm.value}"


class PlainCompressor(Compressor):
    """不压缩"""

    def open_writer(self, raw: BinaryIO) -> BinaryIO:
        return _NonClosingWriter(raw)  # type: ignore[return-value]

    def open_reader(self, raw: BinaryIO) -> BinaryIO:
        return raw

    def get_algorithm(self) -> TarCompression:
        return TarCompression.NONE


class GzipCompressor(Compressor):
    """gzip 压缩器（头部 mtime 固定为 0）"""

    def __init__(self, level: int = 9):
        if not 1 <= level <= 9:
            raise CompressionError("gzip 压缩级别必须在 1-9 之间")
        self.level = level

    def open_writer(self, raw: BinaryIO) -> BinaryIO:
        return gzip.GzipFile(filename="", fileobj=raw, mode="wb", compresslevel=self.level, mtime=0)  # type: ignore[return-value]

    def open_reader(self, raw: BinaryIO) -> BinaryIO:
        return gzip.GzipFile(fileobj=raw, mode="rb")  # type: ignore[return-value]

    def get_algorithm(self) -> TarCompression:
        return TarCompression.GZIP


class XzCompressor(Compressor):
    """xz 压缩器"""

    def __init__(self, level: int = 6):
        if not 0 <= level <= 9:
            raise CompressionError("xz 压缩级别必须在 0-9 之间")
        self.level = level

    def open_writer(self, raw: BinaryIO) -> BinaryIO:
        return lzma.LZMAFile(raw, mode="wb", format=lzma.FORMAT_XZ, preset=self.level)  # type: ignore[return-value]

    def open_reader(self, raw: BinaryIO) -> BinaryIO:
        return lzma.LZMAFile(raw, mode="rb")  # type: ignore[return-value]

    def get_algorithm(self) -> TarCompression:
        return TarCompression.XZ


class ZstdCompressor(Compressor):
    """Zstd 压缩器"""

    def __init__(self, level: int = 19):
        if not 1 <= level <= 22:
            raise CompressionError("Zstd 压缩级别必须在 1-22 之间")
        self.level = level
        self._cctx = zstd.ZstdCompressor(level=level)
        self._dctx = zstd.ZstdDecompressor()

    def open_writer(self, raw: BinaryIO) -> BinaryIO:
        return self._cctx.stream_writer(raw, closefd=False)  # type: ignore[return-value]

    def open_reader(self, raw: BinaryIO) -> BinaryIO:
        return self._dctx.stream_reader(raw, closefd=False)  # type: ignore[return-value]

    def get_algorithm(self) -> TarCompression:
        return TarCompression.ZSTD


class CompressorFactory:
    """压缩器工厂"""

    @staticmethod
    def create_compressor(compression: TarCompression, level: Optional[int] = None) -> Compressor:
        """创建压缩器

        Raises:
            CompressionError: 不支持的压缩方式
        """
        try:
            compression = TarCompression(compression)
        except ValueError as e:
            raise CompressionError(f"不支持的压缩方式: {compression}") from e
        if compression == TarCompression.NONE:
            return PlainCompressor()
        if compression == TarCompression.GZIP:
            return GzipCompressor(level or 9)
        if compression == TarCompression.XZ:
            return XzCompressor(6 if level is None else level)
        if compression == TarCompression.ZSTD:
            return ZstdCompressor(level or 19)
        raise CompressionError(f"不支持的压缩方式: {compression}")

    @staticmethod
    def detect(header: bytes) -> TarCompression:
        """根据文件头魔术字节判断压缩方式"""
        for algorithm, magic in _MAGIC.items():
            if header.startswith(magic):
                return algorithm
        return TarCompression.NONE

    @staticmethod
    def get_available_algorithms() -> list:
        return list(TarCompression)
