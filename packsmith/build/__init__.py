"""构建服务模块

归档构建、压缩、哈希与外部工具调用。完整的多目标构建器见 packsmith.build.builder。
"""

from .archive import (
    ArchiveBuilder,
    ArchiveEntry,
    ArMember,
    EntryKind,
    read_ar_member_data,
    read_ar_members,
    read_tar_entries,
    walk_staging,
)
from .compressor import (
    Compressor,
    CompressorFactory,
    GzipCompressor,
    PlainCompressor,
    XzCompressor,
    ZstdCompressor,
)
from .hashing import HashCalculator, HashVerifier, md5sums_for_tree
from .runner import ToolRunner

__all__ = [
    # 归档
    "ArchiveBuilder",
    "ArchiveEntry",
    "ArMember",
    "EntryKind",
    "read_ar_member_data",
    "read_ar_members",
    "read_tar_entries",
    "walk_staging",

    # 压缩相关
    "Compressor",
    "CompressorFactory",
    "GzipCompressor",
    "PlainCompressor",
    "XzCompressor",
    "ZstdCompressor",

    # 哈希
    "HashCalculator",
    "HashVerifier",
    "md5sums_for_tree",

    "ToolRunner",
]
