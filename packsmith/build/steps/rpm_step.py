"""
RPM 构建步骤模块
"""

import shutil
from pathlib import PurePosixPath

from ...errors import BuildError, PackagerIOError
from ...utils.logging import LogStage, info, success
from ...utils.paths import ensure_directory
from ..archive import walk_staging
from ..build_context import BuildContext, target_section
from ..targets.rpm import render_spec, rpm_arch
from .build_step import BuildStep

ROOT_DIR = "root"
RPMBUILD = "rpmbuild"


class RpmSpecStep(BuildStep):
    """生成 SPECS/<name>.spec"""

    def __init__(self):
        super().__init__("rpm-spec", "生成 RPM spec 文件")

    def execute(self, context: BuildContext) -> None:
        rpm = target_section(context.config, context.target)
        root_dir = ensure_directory(context.staging_dir / ROOT_DIR)
        files = [
            PurePosixPath(entry.path)
            for entry, _ in walk_staging(root_dir)
            if not entry.is_directory
        ]

        spec = render_spec(context.config.metadata, rpm, context.arch, root_dir.resolve(), files)
        spec_path = ensure_directory(context.staging_dir / "SPECS") / f"{context.config.metadata.name}.spec"
        spec_path.write_text(spec, encoding="utf-8")
        context.script_path = spec_path
        info(f"spec: {spec_path} ({len(files)} 个文件)", stage=LogStage.BUILD)


class RpmBuildStep(BuildStep):
    """调用 rpmbuild -bb 并收集产物"""

    def __init__(self):
        super().__init__("rpm-build", "执行 rpmbuild")

    def execute(self, context: BuildContext) -> None:
        if context.script_path is None:
            raise BuildError("缺少 spec 文件")

        topdir = context.staging_dir.resolve()
        context.runner.run(
            RPMBUILD,
            [
                "-bb",
                "--define", f"_topdir {topdir}",
                "--target", rpm_arch(context.arch),
                context.script_path.resolve(),
            ],
            cwd=context.staging_dir,
        )

        produced = sorted((topdir / "RPMS").rglob("*.rpm"))
        if not produced:
            raise BuildError(f"rpmbuild 没有生成任何 rpm: {topdir / 'RPMS'}")

        for rpm_file in produced:
            output = context.output_dir / rpm_file.name
            try:
                shutil.copy2(rpm_file, output)
            except OSError as e:
                raise PackagerIOError(f"复制 rpm 失败 {rpm_file}: {e}", rpm_file) from e
            context.artifacts.append(output)
            success(f"rpm 已生成: {output}", stage=LogStage.BUILD)
