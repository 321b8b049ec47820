"""Tests for trackpull.extract.artifact module."""

from __future__ import annotations

import asyncio

import pytest

from trackpull.exceptions import ArtifactAssemblyError
from trackpull.extract.artifact import VirtualFileScope, finalize, normalize_output
from trackpull.extract.probe import classify_codec
from trackpull.models import ExtractionMode, ExtractionTimings


class TestNormalizeOutput:
    def test_bytes(self) -> None:
        assert normalize_output(b"abc") == b"abc"

    def test_bytearray_and_memoryview(self) -> None:
        assert normalize_output(bytearray(b"abc")) == b"abc"
        assert normalize_output(memoryview(b"abc")) == b"abc"

    def test_text_is_encoded(self) -> None:
        assert normalize_output("é") == "é".encode("utf-8")

    def test_empty_raises(self) -> None:
        with pytest.raises(ArtifactAssemblyError):
            normalize_output(b"")

    def test_unknown_type_raises(self) -> None:
        with pytest.raises(ArtifactAssemblyError):
            normalize_output(12345)


class TestVirtualFileScope:
    def test_names_are_request_scoped(self, loaded_engine) -> None:
        scope = VirtualFileScope(loaded_engine, "abc123")
        assert scope.input_name(".mov") == "abc123_input.mov"
        assert scope.output_name(".m4a") == "abc123_output.m4a"
        assert scope.names == ["abc123_input.mov", "abc123_output.m4a"]

    def test_release_deletes_tracked_files_only(self, loaded_engine) -> None:
        async def run() -> None:
            await loaded_engine.write_file("other_input.mp4", b"keep")
            async with VirtualFileScope(loaded_engine, "mine") as scope:
                await loaded_engine.write_file(scope.input_name(".mp4"), b"data")

        asyncio.run(run())
        assert loaded_engine.files == {"other_input.mp4": b"keep"}

    def test_release_skips_missing_files(self, loaded_engine) -> None:
        async def run() -> VirtualFileScope:
            scope = VirtualFileScope(loaded_engine, "req")
            scope.output_name(".mp3")
            await scope.release()
            return scope

        scope = asyncio.run(run())
        assert scope.names == []

    def test_release_is_idempotent(self, loaded_engine) -> None:
        async def run() -> None:
            scope = VirtualFileScope(loaded_engine, "req")
            await loaded_engine.write_file(scope.input_name(".mp4"), b"x")
            await scope.release()
            await scope.release()

        asyncio.run(run())
        assert loaded_engine.deleted == ["req_input.mp4"]

    def test_release_continues_after_delete_error(self, loaded_engine) -> None:
        original_delete = loaded_engine.delete_file

        async def flaky_delete(name: str) -> None:
            if name.endswith(".m4a"):
                raise OSError("disk busy")
            await original_delete(name)

        loaded_engine.delete_file = flaky_delete

        async def run() -> None:
            scope = VirtualFileScope(loaded_engine, "req")
            await loaded_engine.write_file(scope.input_name(".mp4"), b"x")
            await loaded_engine.write_file(scope.output_name(".m4a"), b"y")
            await scope.release()

        asyncio.run(run())
        assert "req_input.mp4" not in loaded_engine.files


class TestFinalize:
    def _finalize(self, engine, raw, filename="Town Hall.final.mp4", codec="aac"):
        async def run():
            scope = VirtualFileScope(engine, "req")
            await engine.write_file(scope.input_name(".mp4"), b"video")
            await engine.write_file(scope.output_name(".m4a"), b"audio")
            return await finalize(
                scope,
                raw,
                classify_codec(codec),
                filename,
                ExtractionMode.COPY,
                ExtractionTimings(),
            )

        return asyncio.run(run())

    def test_builds_result(self, loaded_engine) -> None:
        result = self._finalize(loaded_engine, b"audio")
        assert result.data == b"audio"
        assert result.filename == "Town Hall.final.m4a"
        assert result.mime_type == "audio/mp4"
        assert result.codec == "aac"
        assert result.original_filename == "Town Hall.final.mp4"

    def test_filename_without_extension(self, loaded_engine) -> None:
        result = self._finalize(loaded_engine, b"audio", filename="clip", codec="opus")
        assert result.filename == "clip.mp3"
        assert result.mime_type == "audio/mpeg"

    def test_releases_files(self, loaded_engine) -> None:
        self._finalize(loaded_engine, b"audio")
        assert loaded_engine.files == {}

    def test_releases_files_when_assembly_fails(self, loaded_engine) -> None:
        with pytest.raises(ArtifactAssemblyError):
            self._finalize(loaded_engine, b"")
        assert loaded_engine.files == {}
