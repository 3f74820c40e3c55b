"""
apkweaver CLI.

Command-line interface for repackaging a game project into an APK.
"""

from __future__ import annotations

import asyncio
from pathlib import Path
from typing import TYPE_CHECKING, Optional

import typer
from rich.console import Console
from rich.panel import Panel
from rich.progress import BarColumn, Progress, SpinnerColumn, TaskProgressColumn, TextColumn
from rich.table import Table

from .core.config import get_config
from .core.logging import setup_logging
from .core.types import BuildStage, ProgressEvent
from .models.project import Keystore

if TYPE_CHECKING:
    from .services import AlignerSigner, ToolLocator

app = typer.Typer(
    name="apkweaver",
    help="Repackage a WebGAL game project into an installable Android APK",
    add_completion=False,
)

console = Console()

STAGE_STYLES = {
    BuildStage.WARNING: "yellow",
    BuildStage.ERROR: "red",
    BuildStage.COMPLETED: "green",
}


def version_callback(value: bool) -> None:
    """Show version and exit."""
    if value:
        from . import __version__
        console.print(f"apkweaver v{__version__}")
        raise typer.Exit()


@app.command()
def build(
    project_path: Optional[Path] = typer.Argument(
        None,
        help="Path to the game project directory",
        show_default=False,
    ),
    output_dir: Optional[Path] = typer.Option(
        None,
        "--output",
        "-o",
        help="Output directory for the APK (default: Exported_Games/<project>/apk)",
    ),
    debug_sign: bool = typer.Option(
        False,
        "--debug-sign",
        help="Sign with the debug keystore when the project has no keystore",
    ),
    create_keystore: bool = typer.Option(
        False,
        "--create-keystore",
        help="Create the keystore described by key.properties before building",
    ),
    verbose: bool = typer.Option(
        False,
        "--verbose",
        help="Enable verbose logging",
    ),
    version: bool = typer.Option(
        False,
        "--version",
        "-v",
        callback=version_callback,
        is_eager=True,
        help="Show version and exit",
    ),
) -> None:
    """Build an APK from a game project.

    Decompiles the template APK, rewrites its identity to the project's,
    injects the game content, then rebuilds, aligns and signs it.
    """
    if project_path is None:
        console.print("[bold red]Error:[/bold red] missing argument PROJECT_PATH")
        console.print("Usage: apkweaver PROJECT_PATH [--output DIR] [--create-keystore] [--debug-sign]")
        raise typer.Exit(1)
    if not project_path.is_dir():
        console.print(f"[bold red]Error:[/bold red] project directory not found: {project_path}")
        raise typer.Exit(1)

    config = get_config()
    if verbose:
        config = config.model_copy(update={"log_level": "DEBUG"})
    setup_logging(config)

    project_path = project_path.resolve()

    async def run_async() -> None:
        from .orchestration import BuildPipeline
        from .services import AlignerSigner, ProcessRunner, ToolLocator
        from .storage import LocalProjectStore

        store = LocalProjectStore()
        project = await store.load_project_info(project_path)
        keystore = await store.load_keystore(project_path)

        console.print(Panel.fit(
            f"[bold blue]apkweaver[/bold blue]\n"
            f"{project.app_name or '?'} ({project.package_name or '?'}) "
            f"v{project.version_name or '?'} build {project.version_code}",
            border_style="blue",
        ))

        runner = ProcessRunner()
        locator = ToolLocator(config.tools)

        if create_keystore:
            keystore = await project_keystore(keystore, locator, AlignerSigner(runner, config.signing))

        if debug_sign and (keystore is None or not keystore.is_complete):
            keystore = await debug_keystore(locator, AlignerSigner(runner, config.signing))

        with Progress(
            SpinnerColumn(),
            TextColumn("[progress.description]{task.description}"),
            BarColumn(),
            TaskProgressColumn(),
            console=console,
        ) as progress:
            task = progress.add_task("Starting build...", total=100)

            def on_progress(event: ProgressEvent) -> None:
                style = STAGE_STYLES.get(event.stage)
                if event.stage == BuildStage.WARNING:
                    progress.console.print(f"[{style}]! {event.message}[/{style}]")
                description = f"[{style}]{event.message}[/{style}]" if style else event.message
                progress.update(task, description=description, completed=event.percentage)

            pipeline = BuildPipeline(config, on_progress, runner=runner, locator=locator)
            result = await pipeline.run(project_path, project, keystore, output_dir)

        if result.success:
            console.print("\n[bold green]✓ Build completed successfully![/bold green]\n")

            table = Table(title="Build Results")
            table.add_column("Item", style="cyan")
            table.add_column("Value", style="green")

            signed = result.output_path is not None and result.output_path.name.endswith("-signed.apk")
            table.add_row("Run ID", result.run_id)
            table.add_row("Duration", f"{result.duration_seconds:.1f}s")
            table.add_row("Signed", "[green]YES[/green]" if signed else "[yellow]NO[/yellow]")
            table.add_row("Output", str(result.output_path))

            console.print(table)
            for warning in result.warnings:
                console.print(f"[yellow]Warning:[/yellow] {warning}")
        else:
            console.print("\n[bold red]✗ Build failed![/bold red]")
            console.print(f"{result.message}")
            if result.failed_state:
                console.print(f"Failed at: {result.failed_state.value}")
            if verbose and result.error:
                console.print(f"[dim]{result.error}[/dim]")
            raise typer.Exit(1)

    asyncio.run(run_async())


async def project_keystore(keystore: Keystore | None, locator: ToolLocator, signer: AlignerSigner) -> Keystore:
    """Create the project's keystore from its stored credentials.

    An existing keystore file is reused. Any failure stops the command.
    """
    if keystore is None:
        console.print("[bold red]Error:[/bold red] key.properties not found, cannot create a keystore")
        raise typer.Exit(1)

    keytool = locator.locate("keytool")
    if keytool is None:
        console.print("[bold red]Error:[/bold red] keytool not found, cannot create the keystore")
        raise typer.Exit(1)

    result = await signer.create_project_keystore(keytool, keystore)
    if not result.success:
        console.print(f"[bold red]Error:[/bold red] {result.error}")
        raise typer.Exit(1)

    if result.metadata.get("created"):
        console.print(f"[green]Created keystore {keystore.store_file}[/green]")
    else:
        console.print(f"[dim]Keystore {keystore.store_file} already exists[/dim]")
    return result.data


async def debug_keystore(locator: ToolLocator, signer: AlignerSigner) -> Keystore | None:
    """Create (or reuse) the debug keystore in the lib directory."""
    keytool = locator.locate("keytool")
    if keytool is None:
        console.print("[yellow]keytool not found, cannot create the debug keystore[/yellow]")
        return None

    result = await signer.create_debug_keystore(keytool, locator.config.lib_path)
    if not result.success:
        console.print(f"[yellow]{result.error}[/yellow]")
        return None
    console.print(f"[dim]Using debug keystore {result.data.store_file}[/dim]")
    return result.data


def main() -> None:
    """Entry point for the CLI."""
    app()


if __name__ == "__main__":
    main()
