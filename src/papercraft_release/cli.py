"""
Papercraft Release CLI - Command-line interface.

Build, package and publish Papercraft releases from the terminal.
"""

import logging
import os
from pathlib import Path
from typing import List, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from papercraft_release.core.config import PipelineConfig, PublisherKind
from papercraft_release.core.exceptions import ReleaseError, format_exception
from papercraft_release.core.models import (
    ExitCode,
    JobResult,
    Platform,
    ReleaseManifest,
)
from papercraft_release.orchestrator.aggregator import ReleaseSummary, persist_summary
from papercraft_release.orchestrator.pipeline import ReleasePipeline

app = typer.Typer(
    name="papercraft-release",
    help="Papercraft Release - multi-platform build, package and publish",
    no_args_is_help=True,
)
console = Console()


def _configure_logging(verbose: bool) -> None:
    level_name = "DEBUG" if verbose else os.getenv("PCR_LOG_LEVEL", "INFO")
    logging.basicConfig(
        level=getattr(logging, level_name.upper(), logging.INFO),
        format="%(asctime)s - %(name)s - %(levelname)s - %(message)s",
    )


def _load_config(
    config_file: Optional[Path],
    platforms: Optional[List[Platform]] = None,
    publisher: Optional[PublisherKind] = None,
    source_dir: Optional[Path] = None,
) -> PipelineConfig:
    try:
        return PipelineConfig.load(
            config_file,
            platforms=platforms or None,
            publisher=publisher,
            source_dir=source_dir,
        )
    except ReleaseError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(int(ExitCode.FAILURE))


def _status_cell(result: JobResult, summary: ReleaseSummary | None = None) -> str:
    missing = summary is not None and result.platform in summary.missing
    if result.is_success() and not missing:
        return "[green]succeeded[/green]"
    if missing:
        return "[red]missing[/red]"
    style = "yellow" if result.status.value == "cancelled" else "red"
    return f"[{style}]{result.status.value}[/{style}]"


@app.command()
def release(
    tag: str = typer.Argument(..., help="Release tag, e.g. v1.2.0"),
    platform: Optional[List[Platform]] = typer.Option(
        None, "--platform", "-p", help="Restrict to these platforms"
    ),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML configuration file"
    ),
    publisher: Optional[PublisherKind] = typer.Option(
        None, "--publisher", help="Where to publish the release"
    ),
    source_dir: Optional[Path] = typer.Option(
        None, "--source", "-s", help="Application source checkout"
    ),
    output: Optional[Path] = typer.Option(
        None, "--output", "-o", help="Directory for the JSON run summary"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Build every platform and publish the artifacts as one pre-release."""
    _configure_logging(verbose)
    config = _load_config(config_file, platform, publisher, source_dir)

    console.print(
        Panel.fit(
            f"[bold blue]Papercraft Release[/bold blue]\n"
            f"Tag: {tag}\n"
            f"Platforms: {', '.join(p.value for p in config.platforms)}\n"
            f"Publisher: {config.publisher.value}",
        )
    )

    pipeline = ReleasePipeline(
        config,
        on_job_complete=lambda r: console.print(
            f"  {r.platform.value}: {_status_cell(r)}"
        ),
    )
    try:
        summary = pipeline.run(tag)
    except ReleaseError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(int(ExitCode.FAILURE))

    table = Table(title=f"Release {summary.release_tag} ({summary.state.value})")
    table.add_column("Platform", style="cyan")
    table.add_column("Status")
    table.add_column("Artifact")
    table.add_column("Error", style="dim")

    for result in summary.jobs:
        error = result.error_message or ""
        if result.failed_stage:
            error = f"[{result.failed_stage.value}] {error}"
        table.add_row(
            result.platform.value,
            _status_cell(result, summary),
            result.artifact_name,
            error,
        )
    console.print(table)

    if summary.published:
        console.print(f"\n[green]Published pre-release:[/green] {summary.release_url}")
    elif summary.publish_error:
        console.print(f"\n[red]Publish failed:[/red] {summary.publish_error}")
    else:
        console.print("\n[red]Nothing published[/red]")

    if output:
        output_path = persist_summary(summary, output)
        console.print(f"[green]Summary saved to:[/green] {output_path}")

    exit_code = summary.exit_code
    if exit_code == ExitCode.PARTIAL:
        missing = ", ".join(p.value for p in summary.failed + summary.missing)
        console.print(f"[yellow]Missing platforms: {missing}[/yellow]")
    if exit_code != ExitCode.SUCCESS:
        raise typer.Exit(int(exit_code))


@app.command()
def build(
    tag: str = typer.Argument(..., help="Release tag, e.g. v1.2.0"),
    platform: Platform = typer.Argument(..., help="Platform to build"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML configuration file"
    ),
    source_dir: Optional[Path] = typer.Option(
        None, "--source", "-s", help="Application source checkout"
    ),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Debug logging"),
):
    """Build and package a single platform without publishing."""
    _configure_logging(verbose)
    config = _load_config(config_file, source_dir=source_dir)

    pipeline = ReleasePipeline(config)
    try:
        result = pipeline.run_single(tag, platform)
    except ReleaseError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(int(ExitCode.FAILURE))

    console.print(f"{result.platform.value}: {_status_cell(result)}")
    if not result.is_success():
        stage = result.failed_stage.value if result.failed_stage else "-"
        console.print(f"[red]Stage {stage}: {result.error_message}[/red]")
        raise typer.Exit(int(ExitCode.FAILURE))
    console.print(f"[green]Stored:[/green] {result.artifact_name}")


@app.command()
def names(
    tag: str = typer.Argument(..., help="Release tag, e.g. v1.2.0"),
    config_file: Optional[Path] = typer.Option(
        None, "--config", "-c", help="YAML configuration file"
    ),
):
    """Print the expected artifact names of a release."""
    config = _load_config(config_file)
    try:
        manifest = ReleaseManifest.for_platforms(tag, config.platforms, config.app_name)
    except ReleaseError as e:
        console.print(f"[red]{format_exception(e)}[/red]")
        raise typer.Exit(int(ExitCode.FAILURE))

    for name in manifest.names.values():
        console.print(name)


@app.command()
def platforms():
    """List supported platforms."""
    table = Table(title="Platforms")
    table.add_column("Platform", style="cyan")
    table.add_column("Target")
    table.add_column("Artifact suffix", style="green")

    for p in Platform:
        spec = p.spec
        table.add_row(p.value, spec.target_triple or "host", spec.artifact_suffix)

    console.print(table)


@app.command()
def version():
    """Show Papercraft Release version."""
    from papercraft_release import __version__

    console.print(f"Papercraft Release v{__version__}")


if __name__ == "__main__":
    app()
