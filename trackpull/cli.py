"""
trackpull.cli - Typer CLI entry point.

Provides the extract, probe, doctor and init-config subcommands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import Awaitable, Optional, TypeVar

import typer
from rich.console import Console
from rich.progress import BarColumn, Progress, TextColumn, TimeElapsedColumn
from rich.table import Table

from trackpull import __version__
from trackpull.capability import (
    detect_capabilities,
    engine_threads,
    engine_version,
    is_supported,
    should_extract,
)
from trackpull.config import (
    CONFIG_FILENAME,
    TrackpullConfig,
    create_default_config,
    load_config,
    write_config,
)
from trackpull.engine.loader import EngineLoader, get_default_loader
from trackpull.exceptions import (
    CapabilityUnsupportedError,
    ConfigError,
    TrackpullError,
)
from trackpull.logging import configure_logging
from trackpull.models import ExtractionRequest
from trackpull.progress import ProgressEvent
from trackpull.utils import format_ms, format_size

app = typer.Typer(
    name="trackpull",
    help="Extract compact, transcription-ready audio from video files.\n\n"
    "AAC and MP3 audio is stream-copied untouched; anything else is "
    "re-encoded to a small mono MP3.",
    add_completion=False,
)
console = Console()

_state: dict[str, Optional[Path]] = {"config_path": None}

T = TypeVar("T")


def build_loader(config: TrackpullConfig) -> EngineLoader:
    """Loader used by the CLI commands."""
    return get_default_loader(config)


async def run_and_discard(loader: EngineLoader, operation: Awaitable[T]) -> T:
    """Await operation, then close the engine so its sandbox is removed."""
    try:
        return await operation
    finally:
        await loader.discard()


def get_config() -> TrackpullConfig:
    try:
        return load_config(_state["config_path"])
    except ConfigError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def version_callback(value: bool) -> None:
    if value:
        console.print(f"trackpull {__version__}")
        raise typer.Exit()


@app.callback()
def main(
    version: bool = typer.Option(
        False,
        "--version",
        "-V",
        help="Show version and exit",
        callback=version_callback,
        is_eager=True,
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    config: Optional[Path] = typer.Option(
        None, "--config", "-c", help=f"Path to {CONFIG_FILENAME}"
    ),
) -> None:
    """trackpull - audio extraction for transcription."""
    configure_logging(verbose)
    _state["config_path"] = config


def _load_request(video: Path) -> ExtractionRequest:
    video_file = video.expanduser()
    if not video_file.is_file():
        console.print(f"[red]Error: File not found: {video}[/red]")
        raise typer.Exit(1)
    return ExtractionRequest.from_path(video_file)


@app.command("extract")
def extract_cmd(
    video: Path = typer.Argument(..., help="Video file to extract audio from"),
    output_dir: Optional[Path] = typer.Option(
        None, "--output-dir", "-o", help="Directory for the audio file (default: next to video)"
    ),
    force: bool = typer.Option(
        False, "--force", "-f", help="Extract even if the file is below the size threshold"
    ),
    report: Optional[Path] = typer.Option(
        None, "--report", "-r", help="Write result metadata and timings to a JSON file"
    ),
) -> None:
    """Extract the audio track of a video file."""
    from trackpull.extract.pipeline import extract_audio
    from trackpull.io import write_json

    config = get_config()
    capabilities = detect_capabilities(config.resolved_ffmpeg_binary)
    if not is_supported(capabilities):
        console.print("[red]Error: FFmpeg is not available on this system[/red]")
        console.print("[dim]Run 'trackpull doctor' for details[/dim]")
        raise typer.Exit(1)

    request = _load_request(video)

    if not force and not should_extract(request.size_bytes, config.extraction_threshold_bytes):
        console.print(
            f"[yellow]Skipped: {request.filename} is {format_size(request.size_bytes)}, "
            f"at or below the {format_size(config.extraction_threshold_bytes)} threshold. "
            "Upload it as-is or use --force.[/yellow]"
        )
        raise typer.Exit(0)

    loader = build_loader(config)

    with Progress(
        TextColumn("[cyan]{task.fields[stage]:<10}[/cyan]"),
        BarColumn(),
        TextColumn("{task.percentage:>3.0f}%"),
        TextColumn("[dim]{task.description}[/dim]"),
        TimeElapsedColumn(),
        console=console,
        transient=True,
    ) as progress:
        task = progress.add_task("Starting...", total=100, stage="")

        def on_progress(event: ProgressEvent) -> None:
            progress.update(
                task,
                completed=event.percent,
                description=event.message,
                stage=event.stage.value,
            )

        try:
            result = asyncio.run(
                run_and_discard(
                    loader,
                    extract_audio(
                        request,
                        on_progress=on_progress,
                        loader=loader,
                        config=config,
                        capabilities=capabilities,
                    ),
                )
            )
        except TrackpullError as e:
            progress.stop()
            console.print(f"[red]Error: {e}[/red]")
            raise typer.Exit(1)

    destination = output_dir or video.expanduser().resolve().parent
    saved = result.save(destination)

    table = Table(title="Audio Extraction")
    table.add_column("Stage", style="cyan")
    table.add_column("Time", style="green")
    for stage, elapsed in (
        ("Engine load", result.timings.engine_load),
        ("Write input", result.timings.write_input),
        ("Probe", result.timings.probe),
        ("Extract", result.timings.extract),
        ("Read output", result.timings.read_output),
        ("Total", result.timings.total),
    ):
        table.add_row(stage, format_ms(elapsed))
    console.print(table)

    console.print(
        f"[green]✓[/green] {saved.name} ({format_size(result.size_bytes)}, "
        f"{result.codec}, {result.mode.value} mode) "
        f"from {format_size(request.size_bytes)}"
    )
    console.print(f"[dim]  {saved}[/dim]")

    if report:
        data = result.to_dict()
        data["output_path"] = str(saved)
        data["input_size_bytes"] = request.size_bytes
        write_json(report, data)
        console.print(f"[dim]  Report written to {report}[/dim]")


@app.command("probe")
def probe_cmd(
    video: Path = typer.Argument(..., help="Video file to inspect"),
) -> None:
    """Show the detected audio codec and the extraction plan."""
    from trackpull.extract.pipeline import probe_request

    config = get_config()
    capabilities = detect_capabilities(config.resolved_ffmpeg_binary)
    request = _load_request(video)
    loader = build_loader(config)

    try:
        codec_info, extraction_plan = asyncio.run(
            run_and_discard(
                loader,
                probe_request(
                    request,
                    loader=loader,
                    config=config,
                    capabilities=capabilities,
                ),
            )
        )
    except TrackpullError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    table = Table(title=f"Probe: {request.filename}")
    table.add_column("Property", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Size", format_size(request.size_bytes))
    table.add_row("Audio codec", codec_info.codec)
    table.add_row(
        "Worth extracting",
        "yes" if should_extract(request.size_bytes, config.extraction_threshold_bytes) else "no",
    )
    if extraction_plan is None:
        table.add_row("Plan", "[red]no audio track[/red]")
        console.print(table)
        raise typer.Exit(1)

    table.add_row("Mode", extraction_plan.mode.value)
    table.add_row("Output", f"{extraction_plan.container.extension} ({codec_info.output_mime_type})")
    table.add_row("Engine args", " ".join(extraction_plan.codec_args))
    console.print(table)


@app.command("doctor")
def run_doctor() -> None:
    """Check that this host can run the extraction pipeline."""
    console.print("[cyan]Running preflight checks...[/cyan]\n")

    config = get_config()
    capabilities = detect_capabilities(config.resolved_ffmpeg_binary)

    table = Table(title="Host Capabilities")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Version/Details")

    all_passed = True

    try:
        version = engine_version(config.resolved_ffmpeg_binary)
        table.add_row("FFmpeg", "✓ Installed", f"{version} ({capabilities.engine_path})")
    except CapabilityUnsupportedError as e:
        table.add_row("FFmpeg", "✗ Missing", e.install_hint or "")
        all_passed = False

    threads = config.threads or engine_threads(capabilities)
    if capabilities.multithreading:
        table.add_row("Threading", "✓ Multi-threaded", f"threads={threads or 'auto'}")
    else:
        table.add_row("Threading", "Single-threaded", "Extraction will be slower")

    reencode = config.reencode
    table.add_row(
        "Re-encode target",
        "-",
        f"{reencode.encoder} {reencode.bitrate_kbps}k, "
        f"{reencode.sample_rate_hz} Hz, {reencode.channels} ch",
    )
    table.add_row(
        "Size threshold", "-", format_size(config.extraction_threshold_bytes)
    )

    console.print(table)

    if all_passed:
        console.print("\n[green]✓ All checks passed[/green]")
    else:
        console.print("\n[yellow]⚠ Some checks failed[/yellow]")
        raise typer.Exit(1)


@app.command("init-config")
def init_config(
    path: Path = typer.Option(Path("."), "--path", "-d", help="Directory to write the config in"),
) -> None:
    """Write a trackpull.yaml with default settings."""
    config_path = path / CONFIG_FILENAME
    if config_path.exists():
        console.print(f"[red]Error: {config_path} already exists[/red]")
        raise typer.Exit(1)

    write_config(create_default_config(), config_path)
    console.print(f"[green]✓[/green] Created {config_path}")


if __name__ == "__main__":
    app()
