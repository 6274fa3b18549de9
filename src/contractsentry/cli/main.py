"""Main CLI entry point for ContractSentry."""

import sys
from pathlib import Path
from typing import List, Optional

import click
from pydantic import ValidationError
from rich.console import Console
from rich.progress import Progress, SpinnerColumn, TextColumn
from rich.table import Table

from contractsentry import __version__
from contractsentry.config.logging import configure_logging
from contractsentry.config.settings import DEFAULT_DETECTOR_TYPES, ScanConfig, Settings, SeverityLevel
from contractsentry.core.errors import SourceTooLargeError
from contractsentry.core.pipeline import ScanPipeline, load_parsed_contract
from contractsentry.models.report import ScanReport


console = Console()

SEVERITY_COLORS = {
    "critical": "red",
    "high": "dark_orange",
    "medium": "yellow",
    "low": "blue",
    "info": "dim",
}


@click.group()
@click.version_option(version=__version__)
@click.option("--debug", is_flag=True, help="Verbose logging and full tracebacks")
@click.pass_context
def cli(ctx: click.Context, debug: bool) -> None:
    """ContractSentry - static vulnerability detection for Solidity.

    Scans parser output for reentrancy, access control, integer overflow,
    oracle manipulation, flash loan and unprotected state modification issues.
    """
    settings = Settings()
    if debug:
        settings = settings.model_copy(update={"log_level": "DEBUG"})
    configure_logging(settings)

    ctx.ensure_object(dict)
    ctx.obj["settings"] = settings
    ctx.obj["console"] = console
    ctx.obj["debug"] = debug


@cli.command()
@click.argument("parsed_json", type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option(
    "--detector",
    "-d",
    "detectors",
    multiple=True,
    type=click.Choice(DEFAULT_DETECTOR_TYPES),
    help="Vulnerability types to scan for (default: all enabled)",
)
@click.option(
    "--min-severity",
    type=click.Choice([s.value for s in SeverityLevel]),
    default=SeverityLevel.INFO.value,
    help="Minimum severity to report",
)
@click.option("--max-findings", type=click.IntRange(min=0), help="Report at most this many findings")
@click.option(
    "--format",
    "-f",
    type=click.Choice(["summary", "json"]),
    default="summary",
    help="Output format",
)
@click.option(
    "--output",
    "-o",
    type=click.Path(dir_okay=False, path_type=Path),
    help="Write the JSON report to this file",
)
@click.option("--sequential", is_flag=True, help="Run detectors one after another")
@click.option("--fail-on-critical", is_flag=True, help="Exit with status 2 when critical findings exist")
@click.pass_context
def scan(
    ctx: click.Context,
    parsed_json: Path,
    detectors: List[str],
    min_severity: str,
    max_findings: Optional[int],
    format: str,
    output: Optional[Path],
    sequential: bool,
    fail_on_critical: bool,
) -> None:
    """Scan a parsed contract for vulnerabilities.

    PARSED_JSON is the JSON document produced by the Solidity parser for one
    source unit.
    """
    settings: Settings = ctx.obj["settings"]
    defaults = settings.default_scan_config()

    config = ScanConfig(
        detectors=list(detectors) if detectors else defaults.detectors,
        parallel_detectors=not sequential,
        min_severity=SeverityLevel(min_severity),
        max_findings=max_findings,
        max_source_bytes=settings.max_source_bytes,
    )

    try:
        parsed = load_parsed_contract(parsed_json.read_text(encoding="utf-8"))
        pipeline = ScanPipeline(settings=settings)

        if format == "summary":
            console.print(f"\n[bold blue]ContractSentry[/bold blue] v{__version__}")
            console.print(f"Input: [yellow]{parsed_json}[/yellow]")
            with Progress(
                SpinnerColumn(),
                TextColumn("[progress.description]{task.description}"),
                console=console,
                transient=True,
            ) as progress:
                progress.add_task("Running detectors...", total=None)
                report = pipeline.run(parsed, config)
        else:
            report = pipeline.run(parsed, config)

    except (ValidationError, SourceTooLargeError, OSError) as e:
        console.print(f"\n[red]Error:[/red] {e}", style="bold red")
        if ctx.obj.get("debug"):
            console.print_exception()
        sys.exit(1)

    if output:
        pipeline.save_report(report, output)

    if format == "summary":
        display_summary(report)
        if output:
            console.print(f"\n[green]✓[/green] Report saved to: {output}")
    elif not output:
        click.echo(report.model_dump_json(indent=2))

    if fail_on_critical and report.has_critical_findings:
        sys.exit(2)


def display_summary(report: ScanReport) -> None:
    """Display scan summary in terminal."""
    console.print("\n[bold green]Scan Complete![/bold green]\n")
    console.print(report.to_summary())

    if not report.findings:
        return

    console.print("\n[bold]Findings:[/bold]\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("ID", style="dim", width=8)
    table.add_column("Severity", justify="center")
    table.add_column("Type", style="cyan")
    table.add_column("Title")
    table.add_column("Location")

    for finding in report.findings:
        color = SEVERITY_COLORS.get(finding.severity.value, "white")
        table.add_row(
            str(finding.id)[:8],
            f"[{color}]{finding.severity.value.upper()}[/{color}]",
            finding.vulnerability_type.value,
            finding.title[:50] + "..." if len(finding.title) > 50 else finding.title,
            finding.location,
        )

    console.print(table)


@cli.command()
@click.pass_context
def detectors(ctx: click.Context) -> None:
    """List registered detectors and whether they are enabled."""
    settings: Settings = ctx.obj["settings"]
    pipeline = ScanPipeline(settings=settings)

    console.print("\n[bold]Registered Detectors:[/bold]\n")

    table = Table(show_header=True, header_style="bold magenta")
    table.add_column("Detector", style="cyan")
    table.add_column("Type")
    table.add_column("SWC", justify="center")
    table.add_column("Description")
    table.add_column("Status", justify="center")

    for info in pipeline.registry.list_detectors():
        enabled = settings.get_detector_config(info["vuln_type"]).enabled
        status = "[green]Enabled[/green]" if enabled else "[red]Disabled[/red]"
        table.add_row(
            info["name"],
            info["vuln_type"],
            info["swc_id"] or "-",
            info["description"],
            status,
        )

    console.print(table)


if __name__ == "__main__":
    cli()
