"""
归档构建器

把暂存目录打包为 tar 或 ar 文件。

- 简单模式：递归添加目录，由 tarfile 填写默认元数据
- 确定性模式：按排序顺序遍历，目录条目先于其子项；每个文件头写入
  真实 mtime（秒）、精确大小和 POSIX 权限位，路径统一为正斜杠

输出先写入目标目录中的临时文件，成功后重命名，不会留下半成品。
"""

import os
import stat
import tarfile
from dataclasses import dataclass
from enum import Enum
from pathlib import Path, PurePosixPath
from typing import BinaryIO, List, Optional, Sequence, Tuple, Union

from ..config.schema import TarCompression
from ..errors import ArchiveError
from ..utils.logging import LogStage, debug, info, success
from ..utils.paths import atomic_output, format_size, to_posix
from .compressor import DECOMPRESSION_ERRORS, Compressor, CompressorFactory

DEFAULT_DIR_MODE = 0o755
DEFAULT_FILE_MODE = 0o644
HAS_POSIX_MODE = os.name != 'nt'

AR_MAGIC = b"!<arch>\n"
AR_HEADER_SIZE = 60
AR_NAME_MAX = 16
CHUNK_SIZE = 64 * 1024


class EntryKind(str, Enum):
    """归档条目类型"""
    FILE = "file"
    DIRECTORY = "directory"


@dataclass(frozen=True)
class ArchiveEntry:
    """归档条目"""
    path: str           # 相对路径，正斜杠
    kind: EntryKind
    size: int
    mode: int
    mtime: int

    @property
    def is_directory(self) -> bool:
        return self.kind == EntryKind.DIRECTORY


@dataclass(frozen=True)
class ArMember:
    """ar 成员：来源文件或内存数据二选一"""
    name: str
    source: Optional[Path] = None
    data: Optional[bytes] = None
    mtime: int = 0
    mode: int = 0o100644


class _CountingReader:
    """统计读取字节数的包装器"""

    def __init__(self, fileobj: BinaryIO):
        self._fileobj = fileobj
        self.count = 0

    def read(self, size: int = -1) -> bytes:
        data = self._fileobj.read(size)
        self.count += len(data)
        return data


def _file_mode(st: os.stat_result) -> int:
    if HAS_POSIX_MODE:
        return stat.S_IMODE(st.st_mode)
    return DEFAULT_FILE_MODE


def walk_staging(root: Union[str, Path]) -> List[Tuple[ArchiveEntry, Path]]:
    """按排序顺序遍历暂存目录（不含根目录 "." 本身）

    Raises:
        ArchiveError: 无法读取目录或遇到不支持的条目类型
    """
    root = Path(root)
    if not root.is_dir():
        raise ArchiveError(f"暂存目录不存在: {root}", root)

    entries: List[Tuple[ArchiveEntry, Path]] = []

    def visit(directory: Path, rel: PurePosixPath) -> None:
        try:
            names = sorted(os.listdir(directory))
        except OSError as e:
            raise ArchiveError(f"无法读取目录 {directory}: {e}", directory) from e

        for name in names:
            path = directory / name
            child_rel = rel / name if rel != PurePosixPath('.') else PurePosixPath(name)
            try:
                st = path.stat()
            except OSError as e:
                raise ArchiveError(f"无法读取 {path}: {e}", path) from e

            if stat.S_ISDIR(st.st_mode):
                entries.append((
                    ArchiveEntry(
                        path=to_posix(child_rel),
                        kind=EntryKind.DIRECTORY,
                        size=0,
                        mode=DEFAULT_DIR_MODE,
                        mtime=int(st.st_mtime),
                    ),
                    path,
                ))
                visit(path, child_rel)
            elif stat.S_ISREG(st.st_mode):
                entries.append((
                    ArchiveEntry(
                        path=to_posix(child_rel),
                        kind=EntryKind.FILE,
                        size=st.st_size,
                        mode=_file_mode(st),
                        mtime=int(st.st_mtime),
                    ),
                    path,
                ))
            else:
                raise ArchiveError(f"不支持的条目类型: {path}", path)

    visit(root, PurePosixPath('.'))
    return entries


def _tarinfo_for(entry: ArchiveEntry) -> tarfile.TarInfo:
    tarinfo = tarfile.TarInfo(entry.path)
    tarinfo.mtime = entry.mtime
    tarinfo.mode = entry.mode
    tarinfo.uid = 0
    tarinfo.gid = 0
    tarinfo.uname = "root"
    tarinfo.gname = "root"
    if entry.is_directory:
        tarinfo.type = tarfile.DIRTYPE
        tarinfo.size = 0
    else:
        tarinfo.type = tarfile.REGTYPE
        tarinfo.size = entry.size
    return tarinfo


class ArchiveBuilder:
    """归档构建器"""

    def __init__(
        self,
        compression: TarCompression = TarCompression.NONE,
        level: Optional[int] = None,
        deterministic: bool = True,
    ):
        self.compressor: Compressor = CompressorFactory.create_compressor(compression, level)
        self.deterministic = deterministic

    @property
    def tar_extension(self) -> str:
        return self.compressor.extension

    def build_tar(
        self,
        staging_dir: Union[str, Path],
        dest: Union[str, Path],
        deterministic: Optional[bool] = None,
    ) -> List[ArchiveEntry]:
        """把暂存目录打包为 tar

        Returns:
            List[ArchiveEntry]: 确定性模式下写入的条目，简单模式下为空列表

        Raises:
            ArchiveError: 读取源文件或写入失败，大小不一致
        """
        staging_dir = Path(staging_dir)
        dest = Path(dest)
        deterministic = self.deterministic if deterministic is None else deterministic
        info(f"tar {staging_dir} > {dest}", stage=LogStage.ARCHIVE)

        written: List[ArchiveEntry] = []
        try:
            with atomic_output(dest) as tmp_path, open(tmp_path, 'wb') as raw:
                writer = self.compressor.open_writer(raw)
                try:
                    with tarfile.open(fileobj=writer, mode='w|', format=tarfile.GNU_FORMAT) as tar:
                        if deterministic:
                            for entry, source in walk_staging(staging_dir):
                                self._append_entry(tar, entry, source)
                                written.append(entry)
                        else:
                            tar.add(str(staging_dir), arcname=".", recursive=True)
                finally:
                    writer.close()
        except ArchiveError:
            raise
        except OSError as e:
            raise ArchiveError(f"写入归档失败 {dest}: {e}", dest) from e

        success(f"tar 完成: {len(written)} 个条目, {format_size(dest.stat().st_size)}", stage=LogStage.ARCHIVE)
        return written

    def _append_entry(self, tar: tarfile.TarFile, entry: ArchiveEntry, source: Path) -> None:
        tarinfo = _tarinfo_for(entry)
        if entry.is_directory:
            tar.addfile(tarinfo)
            return

        try:
            handle = open(source, 'rb')
        except OSError as e:
            raise ArchiveError(f"无法读取源文件 {source}: {e}", source) from e

        with handle:
            reader = _CountingReader(handle)
            try:
                tar.addfile(tarinfo, reader)
            except OSError as e:
                raise ArchiveError(f"写入条目失败 {entry.path}: {e}", source) from e
            # 文件在遍历之后被改动时字节数与头部声明不一致
            if reader.count != entry.size or handle.read(1):
                raise ArchiveError(
                    f"文件大小与头部不一致 {entry.path}: 声明 {entry.size}, 实际读取 {reader.count}+",
                    source,
                )
        debug(f"{entry.path} size={entry.size} mode={oct(entry.mode)} mtime={entry.mtime}", stage=LogStage.ARCHIVE)

    def build_ar(self, members: Sequence[ArMember], dest: Union[str, Path]) -> None:
        """写 ar 归档（System V 公共格式）

        Raises:
            ArchiveError: 成员名过长或读取失败
        """
        dest = Path(dest)
        info(f"ar {[m.name for m in members]} > {dest}", stage=LogStage.ARCHIVE)

        try:
            with atomic_output(dest) as tmp_path, open(tmp_path, 'wb') as out:
                out.write(AR_MAGIC)
                for member in members:
                    self._write_ar_member(out, member)
        except ArchiveError:
            raise
        except OSError as e:
            raise ArchiveError(f"写入归档失败 {dest}: {e}", dest) from e

        success(f"ar 完成: {dest} ({format_size(dest.stat().st_size)})", stage=LogStage.ARCHIVE)

    def build_ar_from_dir(self, staging_dir: Union[str, Path], dest: Union[str, Path]) -> None:
        """把目录中的所有文件按遍历顺序写入 ar（ar 不支持目录，只保留文件名）"""
        members: List[ArMember] = []
        names = set()
        for entry, source in walk_staging(staging_dir):
            if entry.is_directory:
                continue
            name = PurePosixPath(entry.path).name
            if name in names:
                raise ArchiveError(f"ar 成员重名: {name}", source)
            names.add(name)
            members.append(ArMember(name=name, source=source, mtime=entry.mtime, mode=0o100000 | entry.mode))
        self.build_ar(members, dest)

    def _write_ar_member(self, out: BinaryIO, member: ArMember) -> None:
        name = member.name
        if len(name) > AR_NAME_MAX or '/' in name:
            raise ArchiveError(f"ar 成员名不合法（最多 {AR_NAME_MAX} 字符）: {name}")

        if member.data is not None:
            size = len(member.data)
        elif member.source is not None:
            try:
                size = member.source.stat().st_size
            except OSError as e:
                raise ArchiveError(f"无法读取源文件 {member.source}: {e}", member.source) from e
        else:
            raise ArchiveError(f"ar 成员 {name} 没有内容")

        header = (
            name.ljust(16)
            + str(int(member.mtime)).ljust(12)
            + "0".ljust(6)
            + "0".ljust(6)
            + format(member.mode, 'o').ljust(8)
            + str(size).ljust(10)
            + "`\n"
        ).encode("ascii")
        if len(header) != AR_HEADER_SIZE:
            raise ArchiveError(f"ar 头部长度错误: {name}")
        out.write(header)

        if member.data is not None:
            out.write(member.data)
            written = size
        else:
            written = 0
            try:
                with open(member.source, 'rb') as src:
                    while True:
                        chunk = src.read(CHUNK_SIZE)
                        if not chunk:
                            break
                        out.write(chunk)
                        written += len(chunk)
            except OSError as e:
                raise ArchiveError(f"无法读取源文件 {member.source}: {e}", member.source) from e

        if written != size:
            raise ArchiveError(f"ar 成员大小不一致 {name}: 声明 {size}, 实际 {written}", member.source)
        if size % 2 == 1:
            out.write(b"\n")


def read_tar_entries(path: Union[str, Path]) -> List[ArchiveEntry]:
    """列出 tar 文件中的条目（自动识别压缩方式）"""
    path = Path(path)
    entries: List[ArchiveEntry] = []
    try:
        with open(path, 'rb') as raw:
            compression = CompressorFactory.detect(raw.read(8))
            raw.seek(0)
            reader = CompressorFactory.create_compressor(compression).open_reader(raw)
            with tarfile.open(fileobj=reader, mode='r|') as tar:
                for member in tar:
                    if member.isdir():
                        kind = EntryKind.DIRECTORY
                    elif member.isfile():
                        kind = EntryKind.FILE
                    else:
                        raise ArchiveError(f"不支持的条目类型: {member.name}", path)
                    entries.append(ArchiveEntry(
                        path=member.name.rstrip('/'),
                        kind=kind,
                        size=member.size,
                        mode=member.mode,
                        mtime=int(member.mtime),
                    ))
    except (tarfile.TarError,) + DECOMPRESSION_ERRORS as e:
        raise ArchiveError(f"无法读取归档 {path}: {e}", path) from e
    return entries


@dataclass(frozen=True)
class ArMemberInfo:
    """ar 成员头部信息"""
    name: str
    mtime: int
    mode: int
    size: int
    offset: int     # 数据起始偏移


def read_ar_members(path: Union[str, Path]) -> List[ArMemberInfo]:
    """解析 ar 文件的成员列表

    Raises:
        ArchiveError: 不是 ar 文件或头部损坏
    """
    path = Path(path)
    members: List[ArMemberInfo] = []
    with open(path, 'rb') as f:
        if f.read(len(AR_MAGIC)) != AR_MAGIC:
            raise ArchiveError(f"不是 ar 文件: {path}", path)
        while True:
            header = f.read(AR_HEADER_SIZE)
            if not header:
                break
            if len(header) != AR_HEADER_SIZE or header[58:60] != b"`\n":
                raise ArchiveError(f"ar 头部损坏: {path}", path)
            try:
                text = header.decode("ascii")
                size = int(text[48:58].strip())
                mtime = int(text[16:28].strip() or 0)
                mode = int(text[40:48].strip() or "0", 8)
            except (UnicodeDecodeError, ValueError) as e:
                raise ArchiveError(f"ar 头部字段无效 {path}: {e}", path) from e
            if size < 0:
                raise ArchiveError(f"ar 成员大小无效 {path}: {size}", path)
            members.append(ArMemberInfo(
                name=text[0:16].strip().rstrip('/'),
                mtime=mtime,
                mode=mode,
                size=size,
                offset=f.tell(),
            ))
            f.seek(size + (size % 2), os.SEEK_CUR)
    return members


def read_ar_member_data(path: Union[str, Path], name: str) -> bytes:
    """读取 ar 文件中指定成员的数据"""
    for member in read_ar_members(path):
        if member.name == name:
            with open(path, 'rb') as f:
                f.seek(member.offset)
                return f.read(member.size)
    raise ArchiveError(f"ar 中不存在成员 {name}", path)
