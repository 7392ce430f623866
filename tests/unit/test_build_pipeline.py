"""
构建管道单元测试

测试构建管道、构建步骤、构建上下文以及各目标的默认步骤组装。
"""

import io
import tarfile
from pathlib import Path
from unittest.mock import MagicMock

import pytest

from packsmith.build.archive import read_ar_member_data, read_ar_members, read_tar_entries
from packsmith.build.build_context import BuildContext, staging_dir_for, target_filesets
from packsmith.build.build_pipeline import BuildPipeline, create_pipeline
from packsmith.build.steps.build_step import BuildStep
from packsmith.config.loader import ConfigLoader
from packsmith.config.schema import Arch, PlatformTarget
from packsmith.errors import BuildError, ConfigurationError, FilesNotSetError
from packsmith.tools import LocalTool, ToolSpec


class MockBuildStep(BuildStep):
    """模拟构建步骤"""

    def __init__(self, name="MockStep", description="Mock step", fail=False):
        super().__init__(name, description)
        self.fail = fail
        self.execute_called = False
        self.execute_context = None

    def execute(self, context):
        self.execute_called = True
        self.execute_context = context
        if self.fail:
            raise RuntimeError("step failed")
        context.build_stats['mock_processed'] = True


@pytest.fixture
def project(tmp_path):
    root = tmp_path / "project"
    dist = root / "dist"
    (dist / "bin").mkdir(parents=True)
    (dist / "assets").mkdir()
    (dist / "bin" / "demo").write_bytes(b"#!/bin/sh\necho demo\n")
    (dist / "assets" / "icon.png").write_bytes(b"png-bytes")
    return root


def make_config(project, linux=None, windows=None, **metadata):
    data = {
        "metadata": {
            "name": "demo",
            "version": "1.0.0",
            "build_id": "3",
            "author": "Demo Team <team@example.com>",
            "description": "Demo app",
            "src_dir": "dist",
            "workdir": "target",
            **metadata,
        },
    }
    if linux is not None:
        data["linux"] = linux
    if windows is not None:
        data["windows"] = windows
    return ConfigLoader().load_from_dict(data, base_path=project)


LINUX_FILES = [
    {"from": "bin/demo", "to": "usr/bin/"},
    {"from": "assets/*.png", "to": "usr/share/${name}/"},
]


class TestBuildStep:
    """BuildStep 基类测试"""

    def test_build_step_interface(self):
        step = MockBuildStep("a", "step a")
        assert step.name == "a"
        assert step.description == "step a"
        assert "MockBuildStep" in repr(step)

    def test_abstract(self):
        with pytest.raises(TypeError):
            BuildStep("x", "y")


class TestBuildContext:
    """BuildContext 测试"""

    def test_create(self, project):
        config = make_config(project, linux={"targets": ["deb"], "files": LINUX_FILES})
        context = BuildContext.create(config, PlatformTarget.DEB, Arch.AARCH64)

        workdir = (project / "target").resolve()
        assert context.staging_dir == workdir / "deb-aarch64"
        assert context.output_dir == workdir
        assert context.label == "deb-aarch64"
        assert context.macros.platform == "deb"
        assert context.macros.arch == "aarch64"
        assert context.src_root == (project / "dist").resolve()

    def test_staging_dirs_are_distinct(self, tmp_path):
        dirs = {
            staging_dir_for(tmp_path, target, arch)
            for target in PlatformTarget
            for arch in Arch
        }
        assert len(dirs) == len(PlatformTarget) * len(Arch)

    def test_target_filesets_override(self, project):
        """测试目标自身的 files 覆盖平台的 files"""
        override = [{"from": "assets/icon.png", "to": "icon.png"}]
        config = make_config(project, linux={"targets": ["deb", "rpm"], "files": LINUX_FILES, "deb": {"files": override}})

        assert [f.from_ for f in target_filesets(config, PlatformTarget.DEB)] == ["assets/icon.png"]
        assert [f.from_ for f in target_filesets(config, PlatformTarget.RPM)] == ["bin/demo", "assets/*.png"]

    def test_target_filesets_missing(self, project):
        config = make_config(project, linux={"targets": ["deb"]})
        with pytest.raises(FilesNotSetError):
            target_filesets(config, PlatformTarget.DEB)

    def test_platform_missing(self, project):
        config = make_config(project, linux={"targets": ["deb"], "files": LINUX_FILES})
        with pytest.raises(ConfigurationError):
            target_filesets(config, PlatformTarget.NSIS)


class TestBuildPipeline:
    """BuildPipeline 测试"""

    def _context(self, project):
        config = make_config(project, linux={"targets": ["deb"], "files": LINUX_FILES})
        return BuildContext.create(config, PlatformTarget.DEB, Arch.X86_64)

    def test_steps_run_in_order(self, project):
        order = []

        class RecordingStep(MockBuildStep):
            def execute(self, context):
                order.append(self.name)

        pipeline = BuildPipeline([RecordingStep("a"), RecordingStep("b")])
        pipeline.add_step(RecordingStep("first"), position=0)
        pipeline.execute(self._context(project))

        assert order == ["first", "a", "b"]

    def test_step_failure_wrapped(self, project):
        """测试步骤异常被包装为 BuildError，后续步骤不再执行"""
        later = MockBuildStep("later")
        pipeline = BuildPipeline([MockBuildStep("boom", fail=True), later])

        with pytest.raises(BuildError) as exc_info:
            pipeline.execute(self._context(project))

        assert "deb-x86_64" in str(exc_info.value)
        assert isinstance(exc_info.value.__cause__, RuntimeError)
        assert not later.execute_called

    def test_stats(self, project):
        context = BuildPipeline([MockBuildStep()]).execute(self._context(project))
        assert context.build_stats['mock_processed']
        assert context.build_stats['end_time'] >= context.build_stats['start_time'] > 0

    def test_remove_and_validate(self):
        pipeline = BuildPipeline()
        assert pipeline.validate_pipeline() == ["构建管道中没有步骤"]

        pipeline.add_step(MockBuildStep("a"))
        pipeline.add_step(MockBuildStep("a"))
        assert len(pipeline.validate_pipeline()) == 1

        pipeline.remove_step("a")
        assert pipeline.get_steps() == []


class TestCreatePipeline:
    """默认步骤组装测试"""

    def _names(self, config, target):
        return [step.name for step in create_pipeline(config, target).get_steps()]

    def test_linux_targets(self, project):
        config = make_config(project, linux={
            "targets": ["deb", "rpm", "app_image"],
            "files": LINUX_FILES,
            "app_image": {"exe_files": ["bin/demo"]},
        })
        assert self._names(config, PlatformTarget.DEB) == ["prepare", "stage", "deb-control", "deb-assemble"]
        assert self._names(config, PlatformTarget.RPM) == ["prepare", "stage", "rpm-spec", "rpm-build"]
        assert self._names(config, PlatformTarget.APP_IMAGE) == [
            "prepare", "stage", "libs", "appimage-tool", "appimage-compile",
        ]

    def test_nsis(self, project):
        config = make_config(project, windows={"files": LINUX_FILES})
        assert self._names(config, PlatformTarget.NSIS) == ["prepare", "stage", "nsis-script", "nsis-compile"]

        (project / "installer.nsi").write_text("; custom")
        config = make_config(project, windows={"nsis": {"script": "installer.nsi"}})
        assert self._names(config, PlatformTarget.NSIS) == ["prepare", "nsis-compile"]


class TestDebPipeline:
    """deb 完整构建（不依赖外部工具）"""

    def test_build_deb(self, project):
        config = make_config(project, linux={
            "targets": ["deb"],
            "files": LINUX_FILES,
            "deb": {"compression": "gz", "depends": "libc6"},
        })
        context = BuildContext.create(config, PlatformTarget.DEB, Arch.X86_64)

        create_pipeline(config, PlatformTarget.DEB).execute(context)

        output = (project / "target" / "demo_1.0.0_amd64.deb").resolve()
        assert context.artifacts == [output]
        assert [m.name for m in read_ar_members(output)] == ["debian-binary", "control.tar.gz", "data.tar.gz"]
        assert read_ar_member_data(output, "debian-binary") == b"2.0\n"

        data_tar = project / "data.tar.gz"
        data_tar.write_bytes(read_ar_member_data(output, "data.tar.gz"))
        assert [e.path for e in read_tar_entries(data_tar)] == [
            "usr",
            "usr/bin",
            "usr/bin/demo",
            "usr/share",
            "usr/share/demo",
            "usr/share/demo/icon.png",
        ]

        control_blob = read_ar_member_data(output, "control.tar.gz")
        with tarfile.open(fileobj=io.BytesIO(control_blob)) as tar:
            control = tar.extractfile("control").read().decode("utf-8")
            md5sums = tar.extractfile("md5sums").read().decode("utf-8")

        assert "Package: demo\n" in control
        assert "Architecture: amd64\n" in control
        assert "Depends: libc6\n" in control
        assert "Installed-Size: 1\n" in control
        assert "  usr/bin/demo\n" in md5sums
        assert "  usr/share/demo/icon.png\n" in md5sums

    def test_rebuild_clears_staging(self, project):
        """测试重新构建前清空暂存目录"""
        config = make_config(project, linux={"targets": ["deb"], "files": LINUX_FILES})
        context = BuildContext.create(config, PlatformTarget.DEB, Arch.X86_64)
        stale = context.staging_dir / "data" / "stale.txt"
        stale.parent.mkdir(parents=True)
        stale.write_text("old")

        create_pipeline(config, PlatformTarget.DEB).execute(context)

        assert not stale.exists()

    def test_missing_required_pattern(self, project):
        config = make_config(project, linux={
            "targets": ["deb"],
            "files": [{"from": "missing/*.so", "to": "usr/lib/"}],
        })
        context = BuildContext.create(config, PlatformTarget.DEB, Arch.X86_64)

        with pytest.raises(BuildError):
            create_pipeline(config, PlatformTarget.DEB).execute(context)
        assert context.artifacts == []


class TestExternalToolPipelines:
    """依赖外部工具的目标，使用模拟的 runner"""

    def test_rpm(self, project):
        config = make_config(project, license="MIT", linux={"targets": ["rpm"], "files": LINUX_FILES})
        runner = MagicMock()
        context = BuildContext.create(config, PlatformTarget.RPM, Arch.X86_64, runner=runner)

        def fake_rpmbuild(tool, args, cwd=None, env=None):
            rpms = context.staging_dir.resolve() / "RPMS" / "x86_64"
            rpms.mkdir(parents=True)
            (rpms / "demo-1.0.0-3.x86_64.rpm").write_bytes(b"rpm")

        runner.run.side_effect = fake_rpmbuild
        create_pipeline(config, PlatformTarget.RPM).execute(context)

        spec_path = context.staging_dir / "SPECS" / "demo.spec"
        spec = spec_path.read_text(encoding="utf-8")
        assert '"/usr/bin/demo"' in spec
        assert '"/usr/share/demo/icon.png"' in spec
        assert "License: MIT" in spec

        tool, args = runner.run.call_args[0]
        assert tool == "rpmbuild"
        assert args[:2] == ["-bb", "--define"]
        assert "--target" in args and "x86_64" in args
        assert context.artifacts == [context.output_dir / "demo-1.0.0-3.x86_64.rpm"]
        assert context.artifacts[0].read_bytes() == b"rpm"

    def test_rpm_without_output(self, project):
        config = make_config(project, linux={"targets": ["rpm"], "files": LINUX_FILES})
        context = BuildContext.create(config, PlatformTarget.RPM, Arch.X86_64, runner=MagicMock())
        with pytest.raises(BuildError):
            create_pipeline(config, PlatformTarget.RPM).execute(context)

    def test_appimage_with_path_tool(self, project, tmp_path):
        """测试 AppImage：嵌入动态库并以 ARCH 环境变量调用 appimagetool"""
        lib = tmp_path / "libfoo.so.1"
        lib.write_bytes(b"lib")
        runner = MagicMock()
        runner.capture.return_value = f"\tlibfoo.so.1 => {lib} (0x0000)\n"
        config = make_config(project, linux={
            "targets": ["app_image"],
            "files": LINUX_FILES,
            "app_image": {"exe_files": ["bin/demo"], "download_tool": False},
        })
        context = BuildContext.create(config, PlatformTarget.APP_IMAGE, Arch.AARCH64, runner=runner)

        create_pipeline(config, PlatformTarget.APP_IMAGE).execute(context)

        app_dir = context.staging_dir / "AppDir"
        assert (app_dir / "usr" / "bin" / "demo").exists()
        assert (app_dir / "libs" / "libfoo.so.1").read_bytes() == b"lib"
        runner.capture.assert_called_once_with("ldd", [str(context.src_root / "bin" / "demo")])

        output = (context.output_dir / "demo-1.0.0-aarch64.AppImage").resolve()
        runner.run.assert_called_once_with(
            Path("appimagetool"),
            ["AppDir", output],
            cwd=context.staging_dir,
            env={"ARCH": "aarch64"},
        )
        assert context.artifacts == [output]

    def test_appimage_downloads_tool(self, project, tmp_path):
        tool_path = tmp_path / "appimagetool-x86_64.AppImage"
        acquirer = MagicMock()
        acquirer.ensure_or_raise.return_value = LocalTool(
            spec=MagicMock(spec=ToolSpec), path=tool_path, verified=True
        )
        config = make_config(project, linux={
            "targets": ["app_image"],
            "files": LINUX_FILES,
            "app_image": {"embed_libs": False},
        })
        runner = MagicMock()
        context = BuildContext.create(
            config, PlatformTarget.APP_IMAGE, Arch.X86_64, runner=runner, acquirer=acquirer
        )

        create_pipeline(config, PlatformTarget.APP_IMAGE).execute(context)

        acquirer.ensure_or_raise.assert_called_once()
        assert acquirer.ensure_or_raise.call_args[0][0].name == "appimagetool"
        assert runner.run.call_args[0][0] == tool_path
        runner.capture.assert_not_called()

    def test_nsis_generated_script(self, project):
        """测试 NSIS：生成脚本后在脚本目录调用 makensis"""
        runner = MagicMock()
        config = make_config(project, windows={"arch": ["x86"], "files": [{"from": "bin/demo", "to": "demo.exe"}]})
        context = BuildContext.create(config, PlatformTarget.NSIS, Arch.X86, runner=runner)

        create_pipeline(config, PlatformTarget.NSIS).execute(context)

        script_path = context.staging_dir / "nsis" / "app.nsi"
        script = script_path.read_text(encoding="utf-8")
        assert '  File "demo.exe"' in script
        output = (context.output_dir / "demo-1.0.0-x86-setup.exe").resolve()
        assert f'OutFile "{output}"' in script
        runner.run.assert_called_once_with("makensis", [script_path.resolve()], cwd=script_path.parent)
        assert context.artifacts == [output]

    def test_nsis_custom_script(self, project):
        (project / "installer.nsi").write_text("; custom")
        runner = MagicMock()
        config = make_config(project, windows={"nsis": {"script": "installer.nsi"}})
        context = BuildContext.create(config, PlatformTarget.NSIS, Arch.X86_64, runner=runner)

        create_pipeline(config, PlatformTarget.NSIS).execute(context)

        script = (project / "installer.nsi").resolve()
        runner.run.assert_called_once_with("makensis", [script], cwd=script.parent)

    def test_nsis_invalid_artifact_name(self, project):
        config = make_config(project, windows={
            "files": LINUX_FILES,
            "nsis": {"artifact_name": "../${name}.exe"},
        })
        context = BuildContext.create(config, PlatformTarget.NSIS, Arch.X86_64, runner=MagicMock())
        with pytest.raises(BuildError):
            create_pipeline(config, PlatformTarget.NSIS).execute(context)
