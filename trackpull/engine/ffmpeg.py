"""
trackpull.engine.ffmpeg - Engine backed by the ffmpeg executable.

Virtual files live in a private sandbox directory created by load() and
removed by close(). Each exec() runs ffmpeg as an asyncio subprocess inside
the sandbox; stderr lines are emitted as "log" events and the machine
readable ``-progress pipe:1`` stream is turned into "progress" events.
"""

from __future__ import annotations

import asyncio
import logging
import re
import shutil
import tempfile
from pathlib import Path

from trackpull.engine.base import Engine
from trackpull.exceptions import EngineError

logger = logging.getLogger(__name__)
engine_log = logging.getLogger("trackpull.engine.ffmpeg.output")

_DURATION_RE = re.compile(r"Duration:\s*(\d+):(\d{2}):(\d{2}(?:\.\d+)?)")


def parse_duration_us(line: str) -> int | None:
    """Parse an ffmpeg 'Duration: HH:MM:SS.ss' line into microseconds."""
    match = _DURATION_RE.search(line)
    if not match:
        return None
    hours, minutes, seconds = match.groups()
    total = int(hours) * 3600 + int(minutes) * 60 + float(seconds)
    return int(total * 1_000_000)


def parse_progress_line(line: str) -> tuple[str, str] | None:
    """Split a '-progress' key=value line; None for anything else."""
    key, sep, value = line.strip().partition("=")
    if not sep or not key:
        return None
    return key, value.strip()


class FFmpegEngine(Engine):
    """Engine implementation that shells out to ffmpeg."""

    def __init__(
        self,
        binary: str | None = None,
        sandbox_parent: Path | None = None,
        threads: int | None = None,
    ) -> None:
        super().__init__()
        self.binary = binary
        self.sandbox_parent = sandbox_parent
        self.threads = threads
        self.executable: str | None = None
        self.version: str | None = None
        self.sandbox: Path | None = None

    @property
    def loaded(self) -> bool:
        return self.sandbox is not None and self.sandbox.exists()

    async def load(self) -> None:
        executable = shutil.which(self.binary or "ffmpeg")
        if not executable:
            raise EngineError(f"FFmpeg not found: {self.binary or 'ffmpeg'}")

        try:
            proc = await asyncio.create_subprocess_exec(
                executable,
                "-version",
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
            stdout, stderr = await proc.communicate()
        except OSError as e:
            raise EngineError(f"Could not start {executable}: {e}") from e

        if proc.returncode != 0:
            raise EngineError(
                f"{executable} -version exited with {proc.returncode}: "
                f"{stderr.decode(errors='replace').strip()}"
            )

        version_line = stdout.decode(errors="replace").split("\n")[0]
        parts = version_line.split()
        self.version = parts[2] if len(parts) > 2 else "unknown"
        self.executable = executable

        if self.sandbox_parent:
            self.sandbox_parent.mkdir(parents=True, exist_ok=True)
        self.sandbox = Path(tempfile.mkdtemp(prefix="trackpull-", dir=self.sandbox_parent))
        logger.info(f"FFmpeg {self.version} loaded from {executable}, sandbox {self.sandbox}")

    def _path(self, name: str) -> Path:
        if not self.loaded:
            raise EngineError("Engine is not loaded")
        if not name or Path(name).name != name or name in (".", ".."):
            raise EngineError(f"Invalid virtual file name: {name!r}")
        return self.sandbox / name

    async def write_file(self, name: str, data: bytes) -> None:
        path = self._path(name)
        try:
            await asyncio.to_thread(path.write_bytes, data)
        except OSError as e:
            raise EngineError(f"Could not write {name}: {e}") from e

    async def read_file(self, name: str) -> bytes:
        path = self._path(name)
        if not path.exists():
            raise FileNotFoundError(name)
        try:
            return await asyncio.to_thread(path.read_bytes)
        except OSError as e:
            raise EngineError(f"Could not read {name}: {e}") from e

    async def delete_file(self, name: str) -> None:
        path = self._path(name)
        await asyncio.to_thread(path.unlink)

    async def list_files(self) -> list[str]:
        if not self.loaded:
            return []
        return sorted(p.name for p in self.sandbox.iterdir() if p.is_file())

    def build_command(self, args: list[str]) -> list[str]:
        cmd = [
            self.executable or self.binary or "ffmpeg",
            "-hide_banner",
            "-nostdin",
            "-nostats",
            "-y",
            "-progress",
            "pipe:1",
        ]
        if self.threads:
            cmd.extend(["-threads", str(self.threads)])
        cmd.extend(args)
        return cmd

    async def exec(self, args: list[str]) -> int:
        if not self.loaded:
            raise EngineError("Engine is not loaded")

        cmd = self.build_command(args)
        logger.debug(f"Running command: {' '.join(cmd)}")

        try:
            proc = await asyncio.create_subprocess_exec(
                *cmd,
                cwd=self.sandbox,
                stdin=asyncio.subprocess.DEVNULL,
                stdout=asyncio.subprocess.PIPE,
                stderr=asyncio.subprocess.PIPE,
            )
        except OSError as e:
            raise EngineError(f"Could not start ffmpeg: {e}") from e

        state: dict[str, int | None] = {"duration_us": None, "out_time_us": None}

        async def pump_log() -> None:
            while True:
                raw = await proc.stderr.readline()
                if not raw:
                    break
                message = raw.decode(errors="replace").rstrip()
                if not message:
                    continue
                if state["duration_us"] is None:
                    state["duration_us"] = parse_duration_us(message)
                engine_log.debug(message)
                self.emit("log", {"message": message})

        async def pump_progress() -> None:
            while True:
                raw = await proc.stdout.readline()
                if not raw:
                    break
                parsed = parse_progress_line(raw.decode(errors="replace"))
                if parsed is None:
                    continue
                key, value = parsed
                if key == "out_time_us" and value.lstrip("-").isdigit():
                    state["out_time_us"] = int(value)
                elif key == "progress":
                    self._emit_progress(state, finished=value == "end")

        try:
            await asyncio.gather(pump_log(), pump_progress())
            return await proc.wait()
        finally:
            if proc.returncode is None:
                logger.warning(f"Killing ffmpeg (pid {proc.pid}) after interrupted exec")
                proc.kill()
                await proc.wait()

    def _emit_progress(self, state: dict[str, int | None], finished: bool) -> None:
        out_time_us = state["out_time_us"] or 0
        if finished:
            self.emit("progress", {"progress": 1.0, "time": out_time_us})
            return
        duration_us = state["duration_us"]
        if not duration_us:
            return
        self.emit("progress", {"progress": out_time_us / duration_us, "time": out_time_us})

    async def close(self) -> None:
        if self.sandbox is not None:
            await asyncio.to_thread(shutil.rmtree, self.sandbox, True)
            self.sandbox = None
