"""
Evidence Fusion CLI

Command-line interface over the decision synthesis pipeline. Reads report
entities and extraction attempts from local JSON files and writes the
decision-support record as JSON.

Examples:

    # Synthesize from a stored report (draft and inputStatus inside it)
    evidence-fusion synthesize report.json

    # With fresh extraction attempts, written to a file
    evidence-fusion synthesize report.json --attempts attempts.json -o decision.json

    # Which nudge would this report show?
    evidence-fusion nudge report.json

    # Browse the verdict template catalog
    evidence-fusion templates --decision HOLD
"""

import sys
from pathlib import Path
from typing import Optional

import click
from loguru import logger
from rich.console import Console
from rich.table import Table

from .content.catalog import load_template_catalog
from .decision.decision_engine import Decision
from .exceptions import EvidenceFusionError
from .extractor.attempts import ExtractionAttempts
from .pipeline import DecisionSupportPipeline, DecisionSupportRecord, PipelineConfig
from .report.json_export import ExportConfig, RecordExporter


DECISION_STYLES = {
    Decision.GO: "bold green",
    Decision.HOLD: "bold yellow",
    Decision.NO: "bold red",
}


def setup_logging(verbose: bool = False, log_file: Optional[Path] = None):
    """Configure loguru logging."""
    logger.remove()

    logger.add(
        sys.stderr,
        format="<green>{time:HH:mm:ss}</green> | <level>{level: <8}</level> | <cyan>{message}</cyan>",
        level="DEBUG" if verbose else "WARNING",
        colorize=True,
    )

    if log_file:
        logger.add(
            log_file,
            format="{time:YYYY-MM-DD HH:mm:ss} | {level: <8} | {name}:{function}:{line} | {message}",
            level="DEBUG",
            rotation="10 MB",
        )


def _print_summary(console: Console, record: DecisionSupportRecord) -> None:
    decision = record.verdict.decision
    console.print(
        f"[{DECISION_STYLES[decision]}]{decision.display_name}[/] "
        f"confidence {record.verdict.confidence}/100 | template #{record.template.id}"
    )
    console.print(f"  {record.verdict_text}")

    table = Table(title="Evidence", show_header=True)
    table.add_column("Fact")
    table.add_column("State")
    table.add_column("Value")
    for name, fact in (
        ("Barcode", record.evidence.barcode),
        ("Label", record.evidence.label),
        ("Weight", record.evidence.weight),
        ("Origin", record.evidence.origin),
    ):
        table.add_row(name, fact.state.value, fact.display_value or "-")
    console.print(table)

    console.print(f"[bold]Next:[/] {record.nudge.action_text}")
    for warning in record.warnings:
        console.print(f"[yellow]! {warning}[/]")


def _load_inputs(exporter: RecordExporter, report_json: Path, attempts_json: Optional[Path]):
    report = exporter.read_json(report_json)
    attempts = None
    if attempts_json:
        attempts = ExtractionAttempts.from_dict(exporter.read_json(attempts_json))
    return report, attempts


@click.group()
def cli():
    """Evidence fusion and decision synthesis for product sourcing reports."""


@cli.command()
@click.argument('report_json', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--attempts', 'attempts_json', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help='Extraction attempts JSON')
@click.option('--output', '-o', 'output_path', type=click.Path(dir_okay=False, path_type=Path),
              default=None, help='Write the record here instead of stdout')
@click.option('--config', '-c', 'config_path', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help='Engine configuration YAML')
@click.option('--minimal', is_flag=True, help='Only the UI contract keys, no evidence/status/warnings')
@click.option('--attach', is_flag=True, help='Output the report with the record attached')
@click.option('--verbose', '-v', is_flag=True, help='Enable verbose logging')
@click.option('--log-file', type=click.Path(path_type=Path), default=None, help='Write logs to file')
def synthesize(
    report_json: Path,
    attempts_json: Optional[Path],
    output_path: Optional[Path],
    config_path: Optional[Path],
    minimal: bool,
    attach: bool,
    verbose: bool,
    log_file: Optional[Path],
):
    """Build the decision-support record for REPORT_JSON."""
    setup_logging(verbose=verbose, log_file=log_file)
    console = Console(stderr=True)
    exporter = RecordExporter(ExportConfig(include_supplemental=not minimal))

    try:
        report, attempts = _load_inputs(exporter, report_json, attempts_json)
        pipeline = DecisionSupportPipeline(PipelineConfig(engine_config_path=config_path))
        record = pipeline.run(report, attempts)
    except EvidenceFusionError as e:
        console.print(f"[bold red]Error: {e}[/]")
        raise SystemExit(1)

    payload = exporter.attach(report, record) if attach else record

    if output_path:
        exporter.write_record(payload, output_path)
        _print_summary(console, record)
        console.print(f"[green]✓ Record written to: {output_path}[/]")
    else:
        click.echo(exporter.dumps(payload))


@cli.command()
@click.argument('report_json', type=click.Path(exists=True, dir_okay=False, path_type=Path))
@click.option('--attempts', 'attempts_json', type=click.Path(exists=True, dir_okay=False, path_type=Path),
              default=None, help='Extraction attempts JSON')
def nudge(report_json: Path, attempts_json: Optional[Path]):
    """Show the one nudge REPORT_JSON would display."""
    setup_logging()
    exporter = RecordExporter()
    try:
        report, attempts = _load_inputs(exporter, report_json, attempts_json)
        record = DecisionSupportPipeline().run(report, attempts)
    except EvidenceFusionError as e:
        click.echo(f"Error: {e}", err=True)
        raise SystemExit(1)

    chosen = record.nudge
    click.echo(f"[{chosen.severity.value}] {chosen.action_key}")
    click.echo(chosen.action_text)
    click.echo(f"Tip: {chosen.tip_text}")


@cli.command()
@click.option('--decision', '-d', type=click.Choice([d.value for d in Decision], case_sensitive=False),
              default=None, help='Only templates for this decision')
def templates(decision: Optional[str]):
    """List the verdict template catalog."""
    setup_logging()
    catalog = load_template_catalog()
    selected = catalog.templates()
    if decision:
        selected = catalog.for_decision(Decision.parse(decision))

    table = Table(title=f"Verdict templates (catalog v{catalog.version})")
    table.add_column("ID", justify="right")
    table.add_column("Decision")
    table.add_column("Bucket")
    table.add_column("Statement")
    for template in sorted(selected, key=lambda t: t.id):
        table.add_row(str(template.id), template.decision.value, template.bucket, template.statement)

    Console(width=200).print(table)
    click.echo(f"{len(selected)} templates")


if __name__ == "__main__":
    cli()
