"""Command-line interface for Swagger JMX.

This module provides a Click-based CLI that reads an OpenAPI/Swagger
file, compiles it into a JMeter test plan and writes the .jmx document.
"""

import json
import logging
import re
import sys
from pathlib import Path
from typing import Any, Optional

import click
import yaml
from rich.console import Console
from rich.panel import Panel
from rich.table import Table

from swagger_jmx import __version__
from swagger_jmx.core.compiler import JMXCompiler
from swagger_jmx.core.data_structures import CompileResult, GenerationConfig, GroupingStrategy
from swagger_jmx.core.operation_grouper import extract_operations, group_operations
from swagger_jmx.core.spec_normalizer import SpecNormalizer
from swagger_jmx.exceptions import FatalSpecException, InvalidConfigException

console = Console()

GROUPING_CHOICES = [s.value for s in GroupingStrategy]


def load_config_file(config_path: str) -> dict[str, Any]:
    """Load generation options from a YAML or JSON file.

    Args:
        config_path: Path to the config file

    Returns:
        Mapping of option names (camelCase or snake_case) to values

    Raises:
        InvalidConfigException: File content is not a mapping
    """
    with open(config_path, encoding="utf-8") as f:
        try:
            data = yaml.safe_load(f)
        except yaml.YAMLError as e:
            raise InvalidConfigException(f"Cannot parse config file {config_path}: {e}") from e

    if data is None:
        return {}
    if not isinstance(data, dict):
        raise InvalidConfigException(f"Config file {config_path} must contain a mapping")
    return data


def default_output_name(test_plan_name: str) -> str:
    """Derive a .jmx file name from the test plan name."""
    safe_name = re.sub(r"[^\w\s-]", "", test_plan_name.lower())
    safe_name = re.sub(r"[\s_-]+", "-", safe_name).strip("-")
    return f"{safe_name}.jmx" if safe_name else "test-plan.jmx"


def _display_diagnostics(result: CompileResult) -> None:
    """Print diagnostics as a table."""
    if not result.diagnostics:
        return

    table = Table(title="Diagnostics", show_header=True)
    table.add_column("Severity")
    table.add_column("Code", style="cyan")
    table.add_column("Context", style="dim")
    table.add_column("Message")

    for diagnostic in result.diagnostics:
        severity = (
            "[red]error[/red]" if diagnostic.severity == "error" else "[yellow]warning[/yellow]"
        )
        table.add_row(severity, diagnostic.code, diagnostic.context, diagnostic.message)

    console.print()
    console.print(table)


@click.group()
@click.version_option(version=__version__, prog_name="swagger-jmx")
def cli():
    """Swagger JMX - Compile OpenAPI/Swagger specifications into JMeter test plans.

    Reads an OpenAPI 3.x or Swagger 2.0 document (JSON or YAML) and writes a
    JMX file with thread groups, HTTP samplers, assertions, correlation
    extractors, auth managers and listeners.
    """
    pass


@cli.command()
@click.argument("spec", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--output",
    "-o",
    default=None,
    help="Output JMX file path (default: derived from the test plan name)",
    type=click.Path(dir_okay=False),
)
@click.option(
    "--config",
    "config_path",
    default=None,
    help="YAML or JSON file with generation options",
    type=click.Path(exists=True, dir_okay=False),
)
@click.option("--threads", default=None, type=click.IntRange(min=1), help="Virtual users per thread group (default: 10)")
@click.option("--rampup", default=None, type=click.IntRange(min=1), help="Ramp-up period in seconds (default: 60)")
@click.option("--loops", default=None, type=click.IntRange(min=1), help="Iterations per thread (default: 1)")
@click.option(
    "--duration",
    default=None,
    type=click.IntRange(min=1),
    help="Test duration in seconds (default: None for iteration-based)",
)
@click.option("--base-url", default=None, help="Override base URL from spec (e.g., https://staging.example.com/v1)")
@click.option("--name", default=None, help="Test plan name (default: API Performance Test)")
@click.option(
    "--group-by",
    default=None,
    type=click.Choice(GROUPING_CHOICES),
    help="Thread group strategy (default: by-tag)",
)
@click.option("--assertions/--no-assertions", default=None, help="Add status code and response time assertions")
@click.option("--correlation/--no-correlation", default=None, help="Add JSON extractors for id fields")
@click.option("--csv-config/--no-csv-config", default=None, help="Add a CSV Data Set Config per thread group")
@click.option("--reporting/--no-reporting", default=None, help="Add result listeners per thread group")
@click.option("--verbose", "-v", is_flag=True, help="Enable debug logging")
def generate(
    spec: str,
    output: Optional[str],
    config_path: Optional[str],
    threads: Optional[int],
    rampup: Optional[int],
    loops: Optional[int],
    duration: Optional[int],
    base_url: Optional[str],
    name: Optional[str],
    group_by: Optional[str],
    assertions: Optional[bool],
    correlation: Optional[bool],
    csv_config: Optional[bool],
    reporting: Optional[bool],
    verbose: bool,
):
    """Generate a JMeter JMX test plan from an OpenAPI specification.

    Command-line options override values from --config.

    Example:
        swagger-jmx generate openapi.yaml
        swagger-jmx generate openapi.yaml --output ./tests/api.jmx
        swagger-jmx generate swagger.json --threads 50 --rampup 10 --duration 300
        swagger-jmx generate openapi.yaml --group-by by-path --no-correlation
        swagger-jmx generate openapi.yaml --config load-profile.yaml
    """
    if verbose:
        logging.basicConfig(level=logging.DEBUG, format="%(levelname)s %(name)s: %(message)s")

    try:
        options: dict[str, Any] = load_config_file(config_path) if config_path else {}

        overrides = {
            "thread_count": threads,
            "ramp_up_time": rampup,
            "loop_count": loops,
            "duration": duration,
            "base_url": base_url,
            "test_plan_name": name,
            "grouping_strategy": group_by,
            "add_assertions": assertions,
            "add_correlation": correlation,
            "generate_csv_config": csv_config,
            "enable_reporting": reporting,
        }
        options.update({key: value for key, value in overrides.items() if value is not None})
        config = GenerationConfig.from_dict(options)
    except InvalidConfigException as e:
        console.print(f"\n[bold red]Configuration error:[/bold red] {e}")
        sys.exit(1)

    console.print(f"[bold]Compiling OpenAPI specification:[/bold] {spec}")
    spec_file = Path(spec)
    try:
        text = spec_file.read_text(encoding="utf-8")
    except UnicodeDecodeError as e:
        console.print(f"\n[bold red]Error:[/bold red] Cannot read {spec} as UTF-8: {e}")
        sys.exit(1)
    result = JMXCompiler().compile(text, config, content_type=spec_file.suffix.lower() or None)

    if not result.success:
        _display_diagnostics(result)
        error = result.errors[0]
        console.print(f"\n[bold red]Error:[/bold red] {error.message}")
        sys.exit(1)

    output_file = Path(output) if output else Path(default_output_name(config.test_plan_name))
    output_file.parent.mkdir(parents=True, exist_ok=True)
    output_file.write_text(result.xml, encoding="utf-8")

    if config.duration is not None:
        load_profile = f"{config.thread_count} threads, {config.ramp_up_time}s ramp-up, {config.duration}s duration"
    else:
        load_profile = (
            f"{config.thread_count} threads, {config.ramp_up_time}s ramp-up, "
            f"{config.loop_count} iteration(s)"
        )

    panel = Panel(
        f"[bold green]JMX file generated successfully![/bold green]\n\n"
        f"[cyan]File:[/cyan] {output_file.absolute()}\n"
        f"[cyan]Operations:[/cyan] {result.operation_count}\n"
        f"[cyan]Thread groups:[/cyan] {result.group_count}\n"
        f"[cyan]Load profile:[/cyan] {load_profile}\n"
        f"[cyan]Warnings:[/cyan] {len(result.warnings)}\n\n"
        f"[dim]Next step: Open in JMeter GUI or run headless[/dim]",
        title="Generation Complete",
        border_style="green",
    )
    console.print(panel)
    _display_diagnostics(result)


@cli.command()
@click.argument("spec", type=click.Path(exists=True, dir_okay=False))
@click.option(
    "--group-by",
    default=GroupingStrategy.BY_TAG.value,
    type=click.Choice(GROUPING_CHOICES),
    help="Thread group strategy (default: by-tag)",
)
@click.option("--json", "as_json", is_flag=True, help="Print operations as JSON")
def operations(spec: str, group_by: str, as_json: bool):
    """List the operations of a specification grouped into thread groups.

    Example:
        swagger-jmx operations openapi.yaml
        swagger-jmx operations openapi.yaml --group-by by-path
    """
    try:
        parsed = SpecNormalizer.load(spec)
    except FatalSpecException as e:
        console.print(f"\n[bold red]Error:[/bold red] {e}")
        sys.exit(1)
    except UnicodeDecodeError as e:
        console.print(f"\n[bold red]Error:[/bold red] Cannot read {spec} as UTF-8: {e}")
        sys.exit(1)

    groups = group_operations(extract_operations(parsed), group_by)

    if as_json:
        data = {name: [op.to_dict() for op in ops] for name, ops in groups.items()}
        click.echo(json.dumps(data, indent=2))
        return

    console.print(f"[green]✓[/green] Parsed {parsed.title} v{parsed.api_version} ({parsed.version})")

    table = Table(title=f"Operations ({group_by})", show_header=True)
    table.add_column("Thread Group", style="cyan")
    table.add_column("Method", style="bold")
    table.add_column("Path")
    table.add_column("Summary", style="dim")

    for name, ops in groups.items():
        for op in ops:
            table.add_row(f"{name} Tests", op.method.value, op.path, op.summary or "")

    console.print(table)
    console.print(
        f"\n[dim]{sum(len(ops) for ops in groups.values())} operation(s) in {len(groups)} thread group(s)[/dim]"
    )


def main():
    """Entry point for CLI application."""
    cli()


if __name__ == "__main__":
    main()
