"""安全相关测试。

参数注入检查与路径穿越检查。
"""

import logging
import os
from pathlib import Path

import pytest

from py_magick_batch_mcp.config import SecurityDefaults
from py_magick_batch_mcp.core.path_validator import (
    validate_directory_path,
    validate_file_path,
    validate_number,
    validate_string,
)
from py_magick_batch_mcp.core.sanitizer import sanitize_argument, sanitize_arguments
from py_magick_batch_mcp.exceptions import (
    InjectionPatternError,
    InvalidPathError,
    InvalidTypeError,
    NullByteError,
    PathTraversalError,
    ValidationError,
)


class TestSanitizeArgument:
    """单个参数检查"""

    @pytest.mark.parametrize(
        "token",
        ["convert", "input.jpg", "-quality", "800x600", "800x600+10+20", "50%",
         "200x200!", "100x100^", "10000@", "1200x1200>", "-resize", ""],
    )
    def test_safe_tokens_returned_unchanged(self, token):
        """测试正常参数原样返回"""
        assert sanitize_argument(token) == token

    @pytest.mark.parametrize(
        "token",
        [
            "test | rm -rf /",
            "file.png|cat",
            "test; rm -rf /",
            "file.png;malicious",
            "test && rm -rf /",
            "test & malicious",
            "$(rm -rf /)",
            "file$(touch /tmp/pwn).png",
            "`rm -rf /`",
            "file`touch /tmp/pwn`.png",
        ],
    )
    def test_injection_patterns_rejected(self, token):
        """测试命令注入特征被拒绝"""
        with pytest.raises(InjectionPatternError) as exc_info:
            sanitize_argument(token)
        assert exc_info.value.token == token

    def test_null_byte_rejected(self):
        """测试空字节被拒绝"""
        with pytest.raises(NullByteError):
            sanitize_argument("test\x00.exe")

    @pytest.mark.parametrize("token", [None, 123, 1.5, {}, ["a"], b"bytes"])
    def test_non_string_rejected(self, token):
        """测试非字符串参数被拒绝"""
        with pytest.raises(InvalidTypeError):
            sanitize_argument(token)

    def test_risky_characters_warn_but_pass(self, caplog):
        """测试可疑字符只告警不拒绝"""
        with caplog.at_level(logging.WARNING):
            assert sanitize_argument("label:'hello'") == "label:'hello'"
            assert sanitize_argument("price$5") == "price$5"
        assert "特殊字符" in caplog.text

    def test_idempotent(self):
        """测试重复检查结果不变"""
        token = "800x600+10+20"
        assert sanitize_argument(sanitize_argument(token)) == sanitize_argument(token)

    def test_custom_risky_characters(self, caplog):
        """测试可配置的告警字符"""
        security = SecurityDefaults(RISKY_CHARACTERS=("#",))
        with caplog.at_level(logging.WARNING):
            sanitize_argument("#ff0000", security)
        assert "#" in caplog.text


class TestSanitizeArguments:
    """参数数组检查"""

    def test_safe_array(self):
        args = ["convert", "input.jpg", "-resize", "800x600", "output.jpg"]
        assert sanitize_arguments(args) == args

    def test_tuple_accepted(self):
        assert sanitize_arguments(("identify", "a.png")) == ["identify", "a.png"]

    def test_reports_offending_index(self):
        """测试错误中包含出错参数的位置"""
        args = ["convert", "in.jpg", "-resize", "800x600; rm -rf /", "out.jpg"]
        with pytest.raises(InjectionPatternError) as exc_info:
            sanitize_arguments(args)
        assert exc_info.value.index == 3
        assert "3" in str(exc_info.value)

    def test_null_byte_index(self):
        with pytest.raises(NullByteError) as exc_info:
            sanitize_arguments(["convert", "a\x00b"])
        assert exc_info.value.index == 1

    def test_non_list_rejected(self):
        """测试字符串不会被当作参数数组"""
        with pytest.raises(InvalidTypeError):
            sanitize_arguments("convert in.jpg out.jpg")

    def test_non_string_element_rejected(self):
        with pytest.raises(InvalidTypeError):
            sanitize_arguments(["convert", 42])


class TestValidateFilePath:
    """文件路径校验"""

    def test_traversal_outside_allowed_dir(self):
        """测试 .. 越出允许目录被拒绝"""
        with pytest.raises(PathTraversalError) as exc_info:
            validate_file_path("../../etc/passwd", "/home/user/images")
        assert exc_info.value.allowed_dir == "/home/user/images"

    def test_traversal_collapsed_before_check(self):
        """测试先折叠 .. 再检查"""
        with pytest.raises(PathTraversalError):
            validate_file_path("/home/user/images/../secret.txt", "/home/user/images")

    def test_sibling_prefix_rejected(self):
        """测试同前缀的兄弟目录不算在允许目录内"""
        with pytest.raises(PathTraversalError):
            validate_file_path("/home/user/images2/a.png", "/home/user/images")

    def test_inside_allowed_dir(self, tmp_path: Path):
        allowed = tmp_path / "images"
        result = validate_file_path(str(allowed / "sub" / "a.png"), str(allowed))
        assert result == Path(os.path.abspath(allowed / "sub" / "a.png"))
        assert result.is_absolute()

    def test_inner_dotdot_stays_inside(self, tmp_path: Path):
        allowed = tmp_path / "images"
        result = validate_file_path(str(allowed / "sub" / ".." / "a.png"), allowed)
        assert result == Path(os.path.abspath(allowed / "a.png"))

    def test_relative_resolved_against_cwd(self, tmp_path: Path, monkeypatch):
        """测试相对路径以当前工作目录为基准"""
        monkeypatch.chdir(tmp_path)
        result = validate_file_path("photos/a.png")
        assert result == Path(os.path.abspath("photos/a.png"))

    def test_does_not_touch_filesystem(self, tmp_path: Path):
        missing = tmp_path / "does" / "not" / "exist.png"
        assert validate_file_path(missing) == missing

    def test_dotdot_without_boundary_warns(self, caplog):
        """测试没有允许目录时 .. 只告警"""
        with caplog.at_level(logging.WARNING):
            result = validate_file_path("../images/a.png")
        assert result.is_absolute()
        assert ".." in caplog.text

    @pytest.mark.parametrize("value", ["", "   ", None, 123])
    def test_invalid_input(self, value):
        with pytest.raises(InvalidPathError):
            validate_file_path(value)


class TestOtherValidators:
    """目录与数值、字符串校验"""

    def test_directory_path_resolved(self, tmp_path: Path, monkeypatch):
        monkeypatch.chdir(tmp_path)
        assert validate_directory_path("out") == Path(os.path.abspath("out"))

    def test_directory_path_empty(self):
        with pytest.raises(InvalidPathError):
            validate_directory_path("")

    def test_number(self):
        assert validate_number(5, "quality", 1, 100) == 5.0
        assert validate_number("85", "quality", 1, 100) == 85.0

    @pytest.mark.parametrize("value", ["abc", 0, 101, float("nan")])
    def test_number_out_of_range(self, value):
        with pytest.raises(ValidationError):
            validate_number(value, "quality", 1, 100)

    def test_number_wrong_type(self):
        with pytest.raises(InvalidTypeError):
            validate_number(None, "quality")

    def test_string(self):
        assert validate_string("SouthEast", "gravity") == "SouthEast"
        with pytest.raises(InvalidTypeError):
            validate_string(3, "gravity")
        with pytest.raises(ValidationError):
            validate_string("x" * 11, "gravity", max_length=10)
