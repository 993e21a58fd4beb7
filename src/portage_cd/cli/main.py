"""
Portage CLI - Security pipeline orchestrator
Main entry point for the command-line interface

Usage:
    portage run code-scan          # Run source code scans
    portage run image-delivery     # Build, scan and publish an image
    portage run all                # Run every enabled stage
    portage config vars            # List configuration variables
    portage config show            # Show the effective configuration
"""

import typer
from rich.console import Console
from rich.panel import Panel

from portage_cd import __version__
from portage_cd.cli.commands import config, run
from portage_cd.shared.infrastructure.logging import configure_logging

app = typer.Typer(
    name="portage",
    help="Portage - security pipeline orchestrator for container images",
    add_completion=False,
    no_args_is_help=True,
)
console = Console()

app.add_typer(run.app, name="run", help="Run a pipeline")
app.add_typer(config.app, name="config", help="Inspect pipeline configuration")


@app.callback()
def setup(
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Enable debug logging"),
    silent: bool = typer.Option(False, "--silent", "-q", help="Only log errors"),
):
    """Configure logging before any command runs"""
    level = None
    if verbose:
        level = "DEBUG"
    elif silent:
        level = "ERROR"
    configure_logging(level=level)


@app.command()
def version():
    """Show Portage version information"""
    console.print(Panel.fit(
        "[bold cyan]Portage[/bold cyan]\n"
        f"[dim]Version:[/dim] {__version__}\n"
        "[dim]Image build, scan, publish and deploy pipelines[/dim]",
        title="About Portage",
        border_style="cyan"
    ))


def main():
    """Main entry point"""
    app()


if __name__ == "__main__":
    main()
