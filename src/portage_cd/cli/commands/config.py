"""
Portage configuration commands.
"""

import json
from pathlib import Path
from typing import Optional

import typer
import yaml
from rich import box
from rich.console import Console
from rich.table import Table

from portage_cd.pipeline.infrastructure.config_loader import CONFIG_FIELDS, default_value, load_pipeline_config
from portage_cd.shared.domain.exceptions import PortageError

app = typer.Typer(no_args_is_help=True)
console = Console()

FORMATS = ("yaml", "json")


@app.command("vars")
def list_vars():
    """List configuration keys, their environment variables and defaults"""
    table = Table(title="Portage Configuration", box=box.ROUNDED, show_lines=False)
    table.add_column("Key", style="cyan", no_wrap=True)
    table.add_column("Environment Variable", style="magenta")
    table.add_column("Default", style="green")
    table.add_column("Description")

    for field in CONFIG_FIELDS:
        default = default_value(field.key)
        if isinstance(default, list):
            default = ",".join(default)
        table.add_row(field.key, field.env, str(default), field.description)

    console.print(table)


@app.command("show")
def show(
    config_file: Optional[Path] = typer.Option(None, "--config", "-f", help="Portage config file (yaml or json)"),
    output_format: str = typer.Option("yaml", "--format", help="Output format: yaml or json"),
):
    """Print the effective configuration after file and environment loading"""
    if output_format not in FORMATS:
        console.print(f"[red]Error:[/red] unsupported format '{output_format}', use one of: {', '.join(FORMATS)}")
        raise typer.Exit(code=1)

    try:
        config = load_pipeline_config(config_file)
    except PortageError as e:
        console.print(f"[red]Configuration Error:[/red] {e}")
        raise typer.Exit(code=1)

    document = config.to_document()
    if output_format == "json":
        typer.echo(json.dumps(document, indent=2))
    else:
        typer.echo(yaml.safe_dump(document, sort_keys=False, default_flow_style=False), nl=False)
