"""Tests for trackpull.utils module."""

from __future__ import annotations

from trackpull.utils import format_ms, format_size, get_extension, replace_extension


class TestGetExtension:
    def test_simple(self) -> None:
        assert get_extension("clip.mov") == ".mov"

    def test_last_extension_only(self) -> None:
        assert get_extension("archive.final.mkv") == ".mkv"

    def test_no_extension_uses_default(self) -> None:
        assert get_extension("README") == ".mp4"

    def test_custom_default(self) -> None:
        assert get_extension("README", default=".bin") == ".bin"

    def test_trailing_dot_has_no_extension(self) -> None:
        assert get_extension("clip.") == ".mp4"


class TestReplaceExtension:
    def test_replaces_last_extension(self) -> None:
        assert replace_extension("Town Hall.final.mp4", ".m4a") == "Town Hall.final.m4a"

    def test_appends_when_missing(self) -> None:
        assert replace_extension("clip", ".mp3") == "clip.mp3"

    def test_trailing_dot_is_not_doubled(self) -> None:
        assert replace_extension("clip.", ".mp3") == "clip.mp3"


class TestFormatSize:
    def test_bytes(self) -> None:
        assert format_size(512) == "512.0 B"

    def test_megabytes(self) -> None:
        assert format_size(25 * 1024 * 1024) == "25.0 MB"

    def test_terabytes(self) -> None:
        assert format_size(3 * 1024**4) == "3.0 TB"


class TestFormatMs:
    def test_sub_second(self) -> None:
        assert format_ms(850.4) == "850ms"

    def test_seconds(self) -> None:
        assert format_ms(12345) == "12.3s"
