"""
构建器单元测试

测试构建计划、失败处理和多目标构建结果。
"""

import pytest

from packsmith.build.build_pipeline import BuildPipeline
from packsmith.build.builder import Builder, BuildOptions
from packsmith.build.steps.build_step import BuildStep
from packsmith.config.loader import ConfigLoader
from packsmith.config.schema import Arch, PlatformTarget
from packsmith.errors import BuildError


class ArtifactStep(BuildStep):
    """记录一个假的产物"""

    def __init__(self):
        super().__init__("artifact", "记录产物")

    def execute(self, context):
        context.artifacts.append(context.output_dir / f"{context.label}.pkg")


class FailingStep(BuildStep):
    def __init__(self):
        super().__init__("fail", "总是失败")

    def execute(self, context):
        raise RuntimeError("tool crashed")


def _config(tmp_path):
    return ConfigLoader().load_from_dict(
        {
            "metadata": {"name": "demo", "version": "1.0.0"},
            "linux": {
                "arch": ["x86_64", "aarch64"],
                "targets": ["rpm", "deb"],
                "files": [{"from": "bin/*", "to": "usr/bin/"}],
            },
            "windows": {"arch": ["x86"]},
        },
        base_path=tmp_path,
    )


def _factory(failing=()):
    def factory(config, target):
        if target in failing:
            return BuildPipeline([FailingStep()])
        return BuildPipeline([ArtifactStep()])
    return factory


class TestPlan:
    """构建计划测试"""

    def test_default_plan(self, tmp_path):
        """测试默认顺序：linux 目标按固定顺序 × 架构，然后是 windows"""
        plan = Builder().plan(_config(tmp_path))
        assert plan == [
            (PlatformTarget.DEB, Arch.X86_64),
            (PlatformTarget.DEB, Arch.AARCH64),
            (PlatformTarget.RPM, Arch.X86_64),
            (PlatformTarget.RPM, Arch.AARCH64),
            (PlatformTarget.NSIS, Arch.X86),
        ]

    def test_filtered_plan(self, tmp_path):
        options = BuildOptions(targets=[PlatformTarget.RPM], arches=[Arch.AARCH64])
        assert Builder().plan(_config(tmp_path), options) == [(PlatformTarget.RPM, Arch.AARCH64)]

    def test_filter_by_string(self, tmp_path):
        options = BuildOptions(targets=["nsis"], arches=["x86"])
        assert Builder().plan(_config(tmp_path), options) == [(PlatformTarget.NSIS, Arch.X86)]

    def test_unconfigured_arch(self, tmp_path):
        options = BuildOptions(targets=[PlatformTarget.NSIS], arches=[Arch.AARCH64])
        assert Builder().plan(_config(tmp_path), options) == []


class TestBuild:
    """多目标构建测试"""

    def test_all_succeed(self, tmp_path):
        builder = Builder(pipeline_factory=_factory())
        report = builder.build(_config(tmp_path))

        assert report.success
        assert len(report.results) == 5
        assert [r.label for r in report.results][:2] == ["deb-x86_64", "deb-aarch64"]
        assert report.artifacts[0].name == "deb-x86_64.pkg"
        assert all(r.build_time is not None for r in report.results)

    def test_failure_stops_build(self, tmp_path):
        """测试默认情况下第一个失败的目标中止构建"""
        builder = Builder(pipeline_factory=_factory(failing={PlatformTarget.DEB}))
        with pytest.raises(BuildError) as exc_info:
            builder.build(_config(tmp_path))
        assert "deb-x86_64" in str(exc_info.value)

    def test_ignore_error(self, tmp_path):
        """测试 ignore_error 时记录失败并继续构建其余目标"""
        builder = Builder(pipeline_factory=_factory(failing={PlatformTarget.RPM}))
        report = builder.build(_config(tmp_path), BuildOptions(ignore_error=True))

        assert not report.success
        assert [r.label for r in report.failed] == ["rpm-x86_64", "rpm-aarch64"]
        assert "tool crashed" in report.failed[0].error
        assert [r.label for r in report.succeeded] == ["deb-x86_64", "deb-aarch64", "nsis-x86"]
        assert len(report.artifacts) == 3

    def test_factory_error_wrapped(self, tmp_path):
        def broken_factory(config, target):
            raise ValueError("no pipeline")

        with pytest.raises(BuildError):
            Builder(pipeline_factory=broken_factory).build(_config(tmp_path))

    def test_empty_plan(self, tmp_path):
        options = BuildOptions(targets=[PlatformTarget.APP_IMAGE])
        report = Builder(pipeline_factory=_factory()).build(_config(tmp_path), options)
        assert report.results == []
        assert report.success
