"""
Debian 包构建步骤模块

control/md5sums 生成，以及 control.tar、data.tar 与最终 .deb 的组装。
"""

from ...utils.logging import LogStage, info, success
from ...utils.paths import ensure_directory, format_size
from ..archive import ArchiveBuilder, ArMember
from ..build_context import BuildContext, target_section
from ..hashing import md5sums_for_tree
from ..targets.deb import (
    DEBIAN_BINARY,
    deb_filename,
    installed_size_kib,
    render_control,
    render_md5sums,
)
from .build_step import BuildStep

DATA_DIR = "data"
CONTROL_DIR = "control"


class DebControlStep(BuildStep):
    """生成 control 和 md5sums"""

    def __init__(self):
        super().__init__("deb-control", "生成 Debian control 文件")

    def execute(self, context: BuildContext) -> None:
        deb = target_section(context.config, context.target)
        data_dir = ensure_directory(context.staging_dir / DATA_DIR)
        control_dir = ensure_directory(context.staging_dir / CONTROL_DIR)

        sums = md5sums_for_tree(data_dir)
        total_size = sum((data_dir / path).stat().st_size for path in sums)
        control = render_control(
            context.config.metadata,
            deb,
            context.arch,
            installed_size_kib(total_size),
        )

        (control_dir / "control").write_text(control, encoding="utf-8")
        (control_dir / "md5sums").write_text(render_md5sums(sums), encoding="utf-8")
        info(f"control: {len(sums)} 个文件, Installed-Size {installed_size_kib(total_size)} KiB", stage=LogStage.BUILD)


class DebAssembleStep(BuildStep):
    """打包 control.tar / data.tar 并组装 .deb"""

    def __init__(self):
        super().__init__("deb-assemble", "组装 .deb")

    def execute(self, context: BuildContext) -> None:
        deb = target_section(context.config, context.target)
        builder = ArchiveBuilder(compression=deb.compression, deterministic=True)
        staging_dir = context.staging_dir

        control_tar = staging_dir / f"control{builder.tar_extension}"
        data_tar = staging_dir / f"data{builder.tar_extension}"
        builder.build_tar(staging_dir / CONTROL_DIR, control_tar)
        builder.build_tar(staging_dir / DATA_DIR, data_tar)

        mtime = int(control_tar.stat().st_mtime)
        members = [
            ArMember(name="debian-binary", data=DEBIAN_BINARY, mtime=mtime),
            ArMember(name=control_tar.name, source=control_tar, mtime=mtime),
            ArMember(name=data_tar.name, source=data_tar, mtime=mtime),
        ]
        output = context.output_dir / deb_filename(context.config.metadata, context.arch)
        builder.build_ar(members, output)

        context.artifacts.append(output)
        success(f"deb 已生成: {output} ({format_size(output.stat().st_size)})", stage=LogStage.BUILD)
