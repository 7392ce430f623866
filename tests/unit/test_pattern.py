"""
模式匹配器单元测试

测试 glob 翻译、字面路径、排序规则、符号链接逃逸和排除模式。
"""

import os
from pathlib import PurePosixPath

import pytest

from packsmith.errors import PatternError
from packsmith.fileset.pattern import (
    PatternMatcher,
    compile_glob,
    matches_any,
    normalize_pattern,
    split_base,
)


def _make_tree(root):
    (root / "assets").mkdir()
    (root / "assets" / "icon.png").write_bytes(b"icon")
    (root / "assets" / "logo.png").write_bytes(b"logo")
    (root / "assets" / "readme.txt").write_text("readme")
    (root / "assets" / "sub").mkdir()
    (root / "assets" / "sub" / "deep.png").write_bytes(b"deep")
    (root / "bin").mkdir()
    (root / "bin" / "app").write_bytes(b"\x7fELF")
    (root / "LICENSE").write_text("MIT")


class TestCompileGlob:
    """compile_glob 测试"""

    def test_star_does_not_cross_slash(self):
        """测试 * 不跨目录"""
        regex = compile_glob("assets/*.png")
        assert regex.match("assets/icon.png")
        assert not regex.match("assets/sub/deep.png")

    def test_double_star_matches_zero_or_more_dirs(self):
        """测试 **/ 匹配零层或多层目录"""
        regex = compile_glob("assets/**/*.png")
        assert regex.match("assets/icon.png")
        assert regex.match("assets/sub/deep.png")
        assert regex.match("assets/a/b/c.png")
        assert not regex.match("other/icon.png")

    def test_question_mark_and_char_class(self):
        """测试 ? 和字符类"""
        assert compile_glob("file?.txt").match("file1.txt")
        assert not compile_glob("file?.txt").match("file10.txt")
        assert compile_glob("file[0-9].txt").match("file7.txt")
        assert not compile_glob("file[!0-9].txt").match("file7.txt")
        assert compile_glob("file[!0-9].txt").match("fileX.txt")

    def test_anchored(self):
        """测试整串匹配"""
        assert not compile_glob("*.png").match("icon.png.bak")


class TestNormalizePattern:
    """normalize_pattern / split_base 测试"""

    def test_strips_dot_and_backslash(self):
        assert normalize_pattern("./assets\\*.png") == "assets/*.png"

    @pytest.mark.parametrize("pattern", ["/etc/passwd", "../secret", "assets/../../x", "C:/Windows", ""])
    def test_rejects_unsafe(self, pattern):
        """测试拒绝绝对路径和目录穿越"""
        with pytest.raises(PatternError):
            normalize_pattern(pattern)

    def test_split_base(self):
        assert split_base("assets/*.png") == (PurePosixPath("assets"), "*.png")
        assert split_base("a/b/**/c") == (PurePosixPath("a/b"), "**/c")
        assert split_base("*.txt") == (PurePosixPath("."), "*.txt")
        assert split_base("bin/app") == (PurePosixPath("bin/app"), None)


class TestPatternMatcher:
    """PatternMatcher 测试"""

    def test_glob_match(self, tmp_path):
        """测试基本 glob 匹配"""
        _make_tree(tmp_path)
        matches = PatternMatcher(tmp_path).match("assets/*.png")

        assert [str(m.relative) for m in matches] == ["assets/icon.png", "assets/logo.png"]
        assert all(m.base == PurePosixPath("assets") for m in matches)
        assert all(not m.is_directory for m in matches)
        assert matches[0].path == tmp_path / "assets" / "icon.png"
        assert matches[0].relative_to_base == PurePosixPath("icon.png")

    def test_recursive_glob(self, tmp_path):
        """测试递归 **"""
        _make_tree(tmp_path)
        matches = PatternMatcher(tmp_path).match("**/*.png")

        assert [str(m.relative) for m in matches] == [
            "assets/icon.png",
            "assets/logo.png",
            "assets/sub/deep.png",
        ]

    def test_literal_file(self, tmp_path):
        """测试字面文件：匹配根为其父目录"""
        _make_tree(tmp_path)
        matches = PatternMatcher(tmp_path).match("bin/app")

        assert len(matches) == 1
        assert matches[0].relative == PurePosixPath("bin/app")
        assert matches[0].base == PurePosixPath("bin")
        assert matches[0].relative_to_base == PurePosixPath("app")

    def test_literal_directory_yields_descendants(self, tmp_path):
        """测试字面目录：目录在子项之前"""
        _make_tree(tmp_path)
        matches = PatternMatcher(tmp_path).match("assets")

        relatives = [str(m.relative_to_base) for m in matches]
        assert relatives == ["icon.png", "logo.png", "readme.txt", "sub", "sub/deep.png"]
        assert [m.is_directory for m in matches] == [False, False, False, True, False]

    def test_matched_directory_includes_children(self, tmp_path):
        """测试 glob 匹配到的目录连同子项一起返回"""
        _make_tree(tmp_path)
        matches = PatternMatcher(tmp_path).match("assets/s*")

        assert [str(m.relative) for m in matches] == ["assets/sub", "assets/sub/deep.png"]
        assert matches[0].is_directory

    def test_zero_matches_is_empty(self, tmp_path):
        """测试无匹配返回空列表而不是报错"""
        _make_tree(tmp_path)
        matcher = PatternMatcher(tmp_path)
        assert matcher.match("assets/*.jpg") == []
        assert matcher.match("missing/file") == []
        assert matcher.match("missing/*.png") == []

    def test_order_is_stable(self, tmp_path):
        """测试重复匹配结果一致"""
        _make_tree(tmp_path)
        matcher = PatternMatcher(tmp_path)
        assert matcher.match("**") == matcher.match("**")

    @pytest.mark.skipif(os.name == "nt", reason="需要符号链接支持")
    def test_symlink_inside_root_is_followed(self, tmp_path):
        """测试根目录内的符号链接被跟随"""
        _make_tree(tmp_path)
        (tmp_path / "assets" / "alias.png").symlink_to(tmp_path / "assets" / "icon.png")

        matches = PatternMatcher(tmp_path).match("assets/alias.png")
        assert len(matches) == 1
        assert not matches[0].is_directory

    @pytest.mark.skipif(os.name == "nt", reason="需要符号链接支持")
    def test_symlink_escape_is_error(self, tmp_path):
        """测试指向根目录之外的符号链接报错"""
        root = tmp_path / "root"
        root.mkdir()
        outside = tmp_path / "outside.txt"
        outside.write_text("secret")
        (root / "link.txt").symlink_to(outside)

        with pytest.raises(PatternError):
            PatternMatcher(root).match("*.txt")
        with pytest.raises(PatternError):
            PatternMatcher(root).match("link.txt")

    @pytest.mark.skipif(os.name == "nt", reason="需要符号链接支持")
    def test_symlink_escape_inside_literal_directory(self, tmp_path):
        """测试字面目录下的子项指向根目录之外时同样报错"""
        root = tmp_path / "root"
        (root / "docs").mkdir(parents=True)
        (root / "docs" / "README").write_text("readme")
        outside = tmp_path / "outside"
        outside.mkdir()
        (outside / "secret").write_text("secret")
        (root / "docs" / "link").symlink_to(outside / "secret")

        with pytest.raises(PatternError):
            PatternMatcher(root).match("docs")

        (root / "docs" / "link").unlink()
        (root / "docs" / "nested").symlink_to(outside)
        with pytest.raises(PatternError):
            PatternMatcher(root).match("docs")


class TestMatchesAny:
    """排除模式测试"""

    def test_basename_pattern_matches_any_depth(self):
        assert matches_any("logs/app.log", ["*.log"])
        assert matches_any("a/__pycache__/x.pyc", ["__pycache__"])
        assert not matches_any("app.txt", ["*.log"])

    def test_path_pattern(self):
        assert matches_any("build/tmp/x.o", ["build/tmp"])
        assert matches_any("docs/api/index.html", ["docs/**/*.html"])
        assert not matches_any("src/build/x", ["build/tmp"])

    def test_directory_only_pattern(self):
        """测试以 / 结尾的模式只匹配目录及其内部"""
        assert matches_any("cache", ["cache/"], is_directory=True)
        assert matches_any("cache/data.bin", ["cache/"])
        assert not matches_any("cache", ["cache/"], is_directory=False)
