"""
clipforge.cli - Typer CLI entry point.

Provides the export, estimate, validate and maintenance subcommands.
"""

from __future__ import annotations

import asyncio
from pathlib import Path

import typer
from rich.console import Console
from rich.markup import escape
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from clipforge import __version__
from clipforge.config import (
    CONFIG_FILENAME,
    ClipForgeConfig,
    create_default_config,
    find_config_dir,
    load_config,
    write_config,
)
from clipforge.exceptions import ProbeError, ValidationError
from clipforge.logging import configure_logging
from clipforge.models import ExportProgress, ExportSettings
from clipforge.timeline import Timeline, load_timeline
from clipforge.utils import format_duration, format_estimated_time, format_size

app = typer.Typer(
    name="clipforge",
    help="Timeline export toolkit.\n\n"
    "Trims, concatenates and renders multi-track timelines into a single "
    "video file with FFmpeg.",
    add_completion=False,
)
console = Console()


def version_callback(value: bool) -> None:
    if value:
        console.print(f"clipforge {__version__}")
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
    log_file: str | None = typer.Option(
        None, "--log-file", help="Write a DEBUG level log of the run to this file"
    ),
) -> None:
    """ClipForge - timeline export toolkit."""
    configure_logging(verbose, Path(log_file) if log_file else None)


def get_config() -> ClipForgeConfig:
    """Load clipforge.yaml from the nearest project directory, or use defaults."""
    project_dir = find_config_dir()
    if not project_dir:
        return ClipForgeConfig()
    try:
        return load_config(project_dir)
    except Exception as e:
        console.print(f"[red]Error: Invalid {CONFIG_FILENAME}: {e}[/red]")
        raise typer.Exit(1)


def get_timeline(timeline_file: str) -> Timeline:
    try:
        return load_timeline(Path(timeline_file).expanduser())
    except (FileNotFoundError, ValidationError) as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)


def get_settings(
    config: ClipForgeConfig,
    timeline: Timeline,
    preset: str | None,
    resolution: str | None,
    quality: str | None,
) -> ExportSettings:
    """Resolve preset < config < timeline document < command-line flags."""
    overrides = dict(timeline.settings)
    if resolution:
        overrides["resolution"] = resolution
    if quality:
        overrides["quality"] = quality
    try:
        return config.export_settings(preset, **overrides)
    except ValueError as e:
        console.print(f"[red]Error: Invalid export settings: {e}[/red]")
        raise typer.Exit(1)


@app.command("init")
def init_project(
    path: str = typer.Option(".", "--path", "-d", help="Directory to create config in"),
    preset: str = typer.Option(
        "standard", "--preset", "-p", help="Default export preset: draft, standard, or master"
    ),
) -> None:
    """Create a clipforge.yaml with default settings."""
    project_dir = Path(path)
    config_path = project_dir / CONFIG_FILENAME

    if config_path.exists():
        console.print(f"[red]Error: '{config_path}' already exists[/red]")
        raise typer.Exit(1)

    try:
        config = create_default_config(project_dir.resolve().name, preset)
        write_config(config, config_path)
    except Exception as e:
        console.print(f"[red]Error creating config: {e}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Created {config_path} with preset '{preset}'")


@app.command("export")
def export_timeline(
    timeline_file: str = typer.Argument(..., help="Timeline document (YAML or JSON)"),
    output_dir: str | None = typer.Option(None, "--output-dir", "-o", help="Output directory"),
    filename: str | None = typer.Option(None, "--filename", "-n", help="Output filename"),
    preset: str | None = typer.Option(None, "--preset", "-p", help="draft, standard, or master"),
    resolution: str | None = typer.Option(None, "--resolution", "-r", help="source, 1080p, 720p"),
    quality: str | None = typer.Option(None, "--quality", "-q", help="high, medium, low"),
    force: bool = typer.Option(False, "--force", "-f", help="Overwrite an existing output"),
    no_probe: bool = typer.Option(False, "--no-probe", help="Skip ffprobe source durations"),
    report: str | None = typer.Option(None, "--report", help="Write the result as JSON"),
) -> None:
    """Render a timeline to a single MP4 file.

    Trims clips that use part of their source, concatenates every track in
    (track, start time) order, and removes scratch files afterwards.
    """
    from clipforge.export.estimate import estimate_export
    from clipforge.export.executor import ExportExecutor, resolve_output_path
    from clipforge.io import write_json
    from clipforge.jobs import ExportRegistry
    from clipforge.validation import check_disk_space, validate_output_path

    config = get_config()
    timeline = get_timeline(timeline_file)
    settings = get_settings(config, timeline, preset, resolution, quality)

    target_dir = Path(output_dir) if output_dir else (timeline.output_dir or Path.cwd())
    target_name = filename or timeline.filename or Path(timeline_file).stem
    output_path = resolve_output_path(target_dir, target_name)

    problems = validate_output_path(output_path)
    if force:
        problems = [p for p in problems if p != "Output file already exists"]
    if problems:
        for problem in problems:
            console.print(f"[red]Error: {problem}: {output_path}[/red]")
        if "Output file already exists" in problems:
            console.print("[dim]Use --force to overwrite.[/dim]")
        raise typer.Exit(1)

    clips = timeline.clips
    if config.probe_sources and not no_probe:
        from clipforge.probe import attach_source_durations

        try:
            console.print("[dim]Probing source durations...[/dim]")
            clips = attach_source_durations(clips, config.ffprobe_path)
        except ProbeError as e:
            console.print(f"[red]Error: {e}[/red]")
            console.print("[dim]Use --no-probe to trust the timeline's trim points.[/dim]")
            raise typer.Exit(1)

    estimate = estimate_export(clips, settings)
    required_mb = estimate.estimated_file_size_bytes // (1024 * 1024) + 100
    disk = check_disk_space(target_dir, required_mb)
    if not disk["sufficient"]:
        console.print(
            f"[red]Error: Insufficient disk space. "
            f"Need ~{required_mb}MB, have {disk['available_mb']}MB[/red]"
        )
        raise typer.Exit(1)

    console.print(
        f"[cyan]Exporting {len(clips)} clip(s), "
        f"{format_duration(estimate.total_duration_seconds)} total "
        f"({settings.resolution}, {settings.quality})...[/cyan]"
    )

    registry = ExportRegistry()
    job_id = output_path.stem
    executor = ExportExecutor(config, registry=registry)
    with Progress(
        SpinnerColumn(),
        TextColumn("{task.description}"),
        BarColumn(),
        TaskProgressColumn(),
        console=console,
    ) as progress:
        task = progress.add_task("Preparing", total=100)

        def on_progress(event: ExportProgress) -> None:
            description = event.current_step.value
            if event.fps is not None:
                description += f" [dim]{event.fps:.0f} fps[/dim]"
            if event.estimated_time_remaining:
                description += f" [dim]~{format_duration(event.estimated_time_remaining)} left[/dim]"
            progress.update(task, completed=event.progress, description=description)

        result = asyncio.run(
            executor.export(
                clips,
                output_path.parent,
                output_path.name,
                settings,
                on_progress=on_progress,
                job_id=job_id,
            )
        )

    if report:
        final = registry.status(job_id)
        write_json(
            Path(report),
            {
                **result.model_dump(),
                "status": final.current_step.value,
                "progress": final.progress,
            },
        )

    if not result.success:
        console.print(f"[red]✗ Export failed: {escape(result.error_message or '')}[/red]")
        raise typer.Exit(1)

    console.print(f"[green]✓[/green] Exported to {result.output_path}")
    if output_path.exists():
        console.print(f"[dim]  {format_size(output_path.stat().st_size)}[/dim]")


@app.command("estimate")
def estimate_timeline(
    timeline_file: str = typer.Argument(..., help="Timeline document (YAML or JSON)"),
    preset: str | None = typer.Option(None, "--preset", "-p", help="draft, standard, or master"),
    resolution: str | None = typer.Option(None, "--resolution", "-r", help="source, 1080p, 720p"),
    quality: str | None = typer.Option(None, "--quality", "-q", help="high, medium, low"),
) -> None:
    """Estimate export time and output size."""
    from clipforge.export.estimate import estimate_export

    config = get_config()
    timeline = get_timeline(timeline_file)
    settings = get_settings(config, timeline, preset, resolution, quality)
    estimate = estimate_export(timeline.clips, settings)

    table = Table(title="Export Estimate")
    table.add_column("Metric", style="cyan")
    table.add_column("Value", style="green")
    table.add_row("Clips", str(estimate.clip_count))
    table.add_row("Timeline duration", format_duration(estimate.total_duration_seconds))
    table.add_row("Settings", f"{settings.resolution}, {settings.quality}")
    table.add_row("Estimated time", format_estimated_time(estimate.estimated_time_seconds))
    table.add_row("Estimated size", format_size(estimate.estimated_file_size_bytes))
    console.print(table)


@app.command("validate")
def validate_timeline_cmd(
    timeline_file: str = typer.Argument(..., help="Timeline document (YAML or JSON)"),
) -> None:
    """Validate a timeline document without exporting it."""
    from clipforge.export.executor import resolve_output_path
    from clipforge.validation import (
        validate_export_settings,
        validate_output_path,
        validate_sources,
        validate_timeline,
    )

    config = get_config()
    timeline = get_timeline(timeline_file)
    all_passed = True

    console.print(f"[cyan]Validating {timeline_file}...[/cyan]\n")

    checks = [
        ("settings", lambda: validate_export_settings(config.export_settings(**timeline.settings))),
        ("timeline", lambda: validate_timeline(timeline.clips, config.min_trim_duration)),
        ("sources", lambda: validate_sources(timeline.clips)),
    ]
    for name, check in checks:
        try:
            check()
            console.print(f"[green]✓[/green] {name}: Valid")
        except (ValidationError, ValueError) as e:
            console.print(f"[red]✗[/red] {name}: {escape(str(e))}")
            all_passed = False

    if timeline.output_dir:
        output_path = resolve_output_path(
            timeline.output_dir, timeline.filename or Path(timeline_file).stem
        )
        problems = validate_output_path(output_path)
        for problem in problems:
            if problem == "Output file already exists":
                console.print(f"[yellow]⚠[/yellow] output: {problem}")
            else:
                console.print(f"[red]✗[/red] output: {problem}")
                all_passed = False
        if not problems:
            console.print("[green]✓[/green] output: Valid")

    if all_passed:
        console.print("\n[green]✓ All validations passed[/green]")
    else:
        console.print("\n[yellow]⚠ Some validations failed[/yellow]")
        raise typer.Exit(1)


@app.command("doctor")
def run_doctor() -> None:
    """Check dependencies and environment setup."""
    console.print("[cyan]Running preflight checks...[/cyan]\n")

    from clipforge.exceptions import ArtifactIOError, DependencyError
    from clipforge.tempfiles import get_temp_dir
    from clipforge.validation import check_ffmpeg

    config = get_config()

    table = Table(title="Dependency Status")
    table.add_column("Component", style="cyan")
    table.add_column("Status", style="green")
    table.add_column("Version/Details")

    all_passed = True

    try:
        versions = check_ffmpeg(config.ffmpeg_path, config.ffprobe_path)
        table.add_row("FFmpeg", "✓ Installed", versions.get("ffmpeg_version", "unknown"))
        table.add_row("FFprobe", "✓ Installed", versions.get("ffprobe_version", "unknown"))
    except DependencyError as e:
        table.add_row(e.dependency, "✗ Missing", e.install_hint or "")
        all_passed = False

    try:
        temp_dir = get_temp_dir(config.temp_dir)
        table.add_row("Scratch directory", "✓ Writable", str(temp_dir))
    except ArtifactIOError as e:
        table.add_row("Scratch directory", "✗ Unavailable", str(e))
        all_passed = False

    console.print(table)

    if all_passed:
        console.print("\n[green]✓ All checks passed[/green]")
    else:
        console.print("\n[yellow]⚠ Some checks failed[/yellow]")
        raise typer.Exit(1)


@app.command("cleanup")
def cleanup_temp_files(
    older_than: float = typer.Option(
        60.0, "--older-than", "-m", help="Only remove entries older than this many minutes"
    ),
) -> None:
    """Remove scratch files left behind by interrupted exports."""
    from clipforge.exceptions import ArtifactIOError
    from clipforge.tempfiles import get_temp_dir, remove_stale_files

    config = get_config()
    try:
        temp_dir = get_temp_dir(config.temp_dir)
    except ArtifactIOError as e:
        console.print(f"[red]Error: {e}[/red]")
        raise typer.Exit(1)

    removed = remove_stale_files(temp_dir, older_than * 60)
    console.print(f"[green]✓[/green] Removed {len(removed)} stale entr{'y' if len(removed) == 1 else 'ies'}")
    console.print(f"[dim]  {temp_dir}[/dim]")


if __name__ == "__main__":
    app()
