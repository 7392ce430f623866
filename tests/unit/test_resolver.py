"""
file-set 解析器单元测试

测试模式解析、目标路径计算、排除、冲突处理和复制。
"""

import os
from pathlib import PurePosixPath
from types import SimpleNamespace
from unittest.mock import patch

import pytest

from packsmith.config.schema import FileSetModel
from packsmith.errors import FileCopyError, FilesNotSetError, PatternError
from packsmith.fileset.macro import MacroContext
from packsmith.fileset.resolver import (
    FileSetResolver,
    ResolvedCopy,
    copy_resolved,
    first_non_empty,
    select_filesets,
    stage_filesets,
)


@pytest.fixture
def src_root(tmp_path):
    root = tmp_path / "src"
    (root / "assets").mkdir(parents=True)
    (root / "assets" / "icon.png").write_bytes(b"icon-bytes")
    (root / "assets" / "logo.png").write_bytes(b"logo-bytes")
    (root / "assets" / "notes.txt").write_text("notes")
    (root / "bin").mkdir()
    (root / "bin" / "demo").write_bytes(b"#!/bin/sh\necho demo\n")
    (root / "docs" / "api").mkdir(parents=True)
    (root / "docs" / "index.md").write_text("# index")
    (root / "docs" / "api" / "ref.md").write_text("# ref")
    (root / "docs" / "api" / "draft.tmp").write_text("draft")
    return root


@pytest.fixture
def context():
    return MacroContext(name="demo", version="1.0.0", build_id="1", arch="x86_64", platform="deb")


def _entry(from_, to="", exclude=None, optional=False):
    return FileSetModel(**{"from": from_, "to": to, "exclude": exclude or [], "optional": optional})


def _raw_entry(from_, to):
    """绕过模型校验，直接构造条目"""
    return SimpleNamespace(from_=from_, to=to, exclude=[], optional=False)


def _destinations(copies):
    return [str(c.destination) for c in copies]


class TestSelectFilesets:
    """file-set 层级选择测试"""

    def test_first_non_empty(self):
        assert first_non_empty(None, [], [1]) == [1]
        assert first_non_empty([2], [1]) == [2]
        assert first_non_empty(None, []) is None

    def test_target_level_overrides_platform(self):
        target = [_entry("bin/demo")]
        platform = [_entry("assets/*.png")]
        assert select_filesets(target, platform) is target
        assert select_filesets(None, platform) is platform
        assert select_filesets([], platform) is platform

    def test_not_set(self):
        """测试两层都未设置时报错"""
        with pytest.raises(FilesNotSetError) as exc_info:
            select_filesets(None, [], target="deb")
        assert exc_info.value.target == "deb"


class TestFileSetResolver:
    """FileSetResolver 测试"""

    def test_glob_into_directory_with_macro(self, src_root, context):
        """测试 glob 展开到带宏的目标目录"""
        copies = FileSetResolver(src_root).resolve([_entry("assets/*.png", "data/${name}/")], context)

        assert _destinations(copies) == ["data/demo/icon.png", "data/demo/logo.png"]
        assert copies[0].source == src_root / "assets" / "icon.png"

    def test_literal_file_renamed(self, src_root, context):
        """测试字面文件且 to 不以 / 结尾时，to 即目标文件"""
        copies = FileSetResolver(src_root).resolve([_entry("bin/demo", "usr/bin/demo-cli")], context)
        assert _destinations(copies) == ["usr/bin/demo-cli"]

    def test_literal_file_into_directory(self, src_root, context):
        copies = FileSetResolver(src_root).resolve([_entry("bin/demo", "usr/bin/")], context)
        assert _destinations(copies) == ["usr/bin/demo"]

    def test_literal_directory_keeps_structure(self, src_root, context):
        """测试字面目录保留子结构，目录条目在子项之前"""
        copies = FileSetResolver(src_root).resolve([_entry("docs", "usr/share/doc/${name}/")], context)

        assert _destinations(copies) == [
            "usr/share/doc/demo/api",
            "usr/share/doc/demo/api/draft.tmp",
            "usr/share/doc/demo/api/ref.md",
            "usr/share/doc/demo/index.md",
        ]
        assert copies[0].is_directory

    def test_literal_directory_with_single_file(self, tmp_path, context):
        """测试只含一个文件的字面目录仍按目录处理，不会被当成字面文件改名"""
        root = tmp_path / "src"
        (root / "docs").mkdir(parents=True)
        (root / "docs" / "README").write_text("readme")

        copies = FileSetResolver(root).resolve([_entry("docs", "share/doc")], context)

        assert _destinations(copies) == ["share/doc/README"]
        assert not copies[0].is_directory

    @pytest.mark.skipif(os.name == "nt", reason="需要符号链接支持")
    def test_literal_directory_symlink_escape_rejected(self, tmp_path, context):
        root = tmp_path / "src"
        (root / "docs").mkdir(parents=True)
        (tmp_path / "secret").write_text("secret")
        (root / "docs" / "link").symlink_to(tmp_path / "secret")

        with pytest.raises(PatternError):
            FileSetResolver(root).resolve([_entry("docs", "share/doc/")], context)

    def test_exclude(self, src_root, context):
        """测试排除模式相对匹配根生效"""
        copies = FileSetResolver(src_root).resolve(
            [_entry("docs", "doc/", exclude=["*.tmp"])], context
        )
        assert "doc/api/draft.tmp" not in _destinations(copies)
        assert "doc/api/ref.md" in _destinations(copies)

    def test_required_zero_match_fails(self, src_root, context):
        with pytest.raises(PatternError) as exc_info:
            FileSetResolver(src_root).resolve([_entry("assets/*.jpg", "data/")], context)
        assert exc_info.value.pattern == "assets/*.jpg"

    def test_optional_zero_match_skipped(self, src_root, context):
        copies = FileSetResolver(src_root).resolve(
            [_entry("assets/*.jpg", "data/", optional=True), _entry("bin/demo", "bin/")],
            context,
        )
        assert _destinations(copies) == ["bin/demo"]

    def test_everything_excluded_counts_as_zero_match(self, src_root, context):
        with pytest.raises(PatternError):
            FileSetResolver(src_root).resolve([_entry("assets/*.png", "", exclude=["*.png"])], context)

    def test_last_writer_wins(self, src_root, context):
        """测试目标冲突时后声明的条目胜出"""
        with patch("packsmith.fileset.resolver.warning") as mock_warning:
            copies = FileSetResolver(src_root).resolve(
                [
                    _entry("assets/icon.png", "share/app.png"),
                    _entry("assets/logo.png", "share/app.png"),
                ],
                context,
            )

        assert len(copies) == 1
        assert copies[0].source == src_root / "assets" / "logo.png"
        mock_warning.assert_called_once()

    def test_destination_escape_rejected(self, src_root, context):
        with pytest.raises(PatternError):
            FileSetResolver(src_root).resolve([_raw_entry("bin/demo", "../outside")], context)

    def test_unsafe_pattern_rejected(self, src_root, context):
        with pytest.raises(PatternError):
            FileSetResolver(src_root).resolve([_raw_entry("../secret", "")], context)

    def test_resolution_is_deterministic(self, src_root, context):
        entries = [_entry("docs", "doc/"), _entry("assets/*", "data/")]
        resolver = FileSetResolver(src_root)
        assert resolver.resolve(entries, context) == resolver.resolve(entries, context)


class TestCopyResolved:
    """复制到暂存目录测试"""

    def test_stage_end_to_end(self, src_root, tmp_path, context):
        """测试 assets/*.png → data/${name}/ 的完整暂存"""
        staging = tmp_path / "staging"
        report = stage_filesets([_entry("assets/*.png", "data/${name}/")], src_root, staging, context)

        assert (staging / "data" / "demo" / "icon.png").read_bytes() == b"icon-bytes"
        assert (staging / "data" / "demo" / "logo.png").read_bytes() == b"logo-bytes"
        assert sorted(p.name for p in (staging / "data" / "demo").iterdir()) == ["icon.png", "logo.png"]
        assert report.file_count == 2
        assert report.total_size == len(b"icon-bytes") + len(b"logo-bytes")
        assert report.failed == []

    def test_missing_source_fails(self, tmp_path):
        copies = [ResolvedCopy(source=tmp_path / "gone", destination=PurePosixPath("x"))]
        with pytest.raises(FileCopyError):
            copy_resolved(copies, tmp_path / "staging")

    def test_best_effort_continues(self, src_root, tmp_path):
        """测试 best_effort 模式下单个失败不中断"""
        copies = [
            ResolvedCopy(source=tmp_path / "gone", destination=PurePosixPath("a")),
            ResolvedCopy(source=src_root / "bin" / "demo", destination=PurePosixPath("b")),
        ]
        report = copy_resolved(copies, tmp_path / "staging", best_effort=True)

        assert len(report.failed) == 1
        assert [str(c.destination) for c in report.copied] == ["b"]
        assert (tmp_path / "staging" / "b").exists()
