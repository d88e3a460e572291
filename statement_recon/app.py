#!/usr/bin/env python3
"""
CLI interface for the statement importer and invoice matcher.
"""
import json
from datetime import date, datetime
from pathlib import Path
from typing import List, Optional

import typer
from pydantic import ValidationError
from rich.console import Console
from rich.markup import escape
from rich.progress import Progress, SpinnerColumn, TextColumn

from .config import get_settings
from .core.detectors import TemplateDetector
from .core.errors import InvalidInvoiceError
from .core.index import import_statements, load_operation_index
from .core.loader import iter_documents
from .core.matcher import InvoiceMatcher
from .core.report import ReconciliationReporter, filter_invoices, load_invoices
from .logging_config import configure_logging
from .models.schema import OperationIndex, Statement
from .tools.debug_trace import render_trace, trace_lines

app = typer.Typer(help="Bank statement importer and invoice payment matcher")
console = Console()


def _setup_logging(verbose: bool) -> None:
    configure_logging("DEBUG" if verbose else get_settings().LOG_LEVEL)


@app.command("import")
def import_command(
    paths: List[Path] = typer.Argument(..., help="Statement files (.pdf, .txt or .zip)"),
    output: Optional[Path] = typer.Option(None, "--out", "-o", help="Directory for JSON artifacts"),
    template: Optional[str] = typer.Option(None, "--template", "-t", help="Template ID to use"),
    overwrite: bool = typer.Option(False, "--overwrite", help="Overwrite existing statement JSON files"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Verbose output")
):
    """Parse statements into JSON artifacts and rebuild the operations index."""
    _setup_logging(verbose)
    settings = get_settings()
    output = output or settings.STATEMENTS_OUTPUT_DIR

    missing = [path for path in paths if not path.exists()]
    if missing:
        console.print(f"[red]Error: input not found: {escape(', '.join(map(str, missing)))}[/red]")
        raise typer.Exit(1)

    with Progress(
        SpinnerColumn(),
        TextColumn("[progress.description]{task.description}"),
        console=console
    ) as progress:
        progress.add_task("Importing statements...", total=None)
        try:
            report = import_statements(paths, output, overwrite, template or settings.STATEMENT_TEMPLATE)
        except ValueError as e:
            console.print(f"[red]Error: {escape(str(e))}[/red]")
            raise typer.Exit(1)

    if not report.statements and not report.failures:
        console.print("No statement documents found, nothing to import.")
        return

    console.print(
        f"Processed {len(report.statements)} statement(s), "
        f"extracted {report.total_operations} operation(s)."
    )
    for item in report.statements:
        console.print(f"- {escape(item.statement.statement_id)}: {len(item.statement.operations)} operation(s) -> {escape(str(item.output_path))}")
    if report.index_path:
        console.print(f"[green]✓ Index written to: {escape(str(report.index_path))}[/green]")

    if report.failures:
        console.print(f"[red]Encountered {len(report.failures)} error(s):[/red]")
        for failure in report.failures:
            console.print(f"  • {escape(failure.label)} -> {escape(failure.error)}", highlight=False)

    raise typer.Exit(report.exit_code)


@app.command()
def match(
    invoices_path: Path = typer.Argument(..., help="JSON file with invoices"),
    index_path: Optional[Path] = typer.Option(None, "--index", "-i", help="Operations index JSON"),
    since: Optional[datetime] = typer.Option(None, "--since", formats=["%Y-%m-%d"], help="Only invoices dated on/after this date"),
    max_days: Optional[int] = typer.Option(None, "--max-days", help="Date window in days"),
    include_closed: bool = typer.Option(False, "--all", help="Also match paid invoices"),
    as_json: bool = typer.Option(False, "--json", help="Print the report as JSON"),
    verbose: bool = typer.Option(False, "--verbose", "-v", help="Show counterparty and communication")
):
    """Match invoices against statement operations."""
    _setup_logging(verbose)
    settings = get_settings()

    try:
        index = load_operation_index(index_path or settings.OPERATIONS_INDEX_PATH)
        invoices = load_invoices(invoices_path)
    except (OSError, ValueError) as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    matcher = InvoiceMatcher.from_index(
        index,
        max_days=max_days if max_days is not None else settings.INVOICE_MATCH_MAX_DAYS,
        max_candidates=settings.INVOICE_MATCH_MAX_CANDIDATES,
    )
    if not matcher.operations:
        console.print("[red]No credit operations found in statements index.[/red]")
        raise typer.Exit(1)

    since_date: Optional[date] = since.date() if since else None
    selected = filter_invoices(invoices, since=since_date, open_only=not include_closed)

    reporter = ReconciliationReporter(matcher, console=console, verbose=verbose)
    try:
        report = reporter.run(selected)
    except InvalidInvoiceError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    if as_json:
        typer.echo(reporter.render_json(report))
    else:
        reporter.render(report)


@app.command()
def trace(
    path: Path = typer.Argument(..., help="Statement file (.pdf, .txt or .zip)"),
    template: Optional[str] = typer.Option(None, "--template", "-t", help="Template ID to use")
):
    """Show how each statement line is classified by the parser."""
    detector = TemplateDetector()
    try:
        layout = detector.get_layout(template or get_settings().STATEMENT_TEMPLATE)
    except ValueError as e:
        console.print(f"[red]Error: {escape(str(e))}[/red]")
        raise typer.Exit(1)

    for document in iter_documents(path):
        console.print(f"[blue]{escape(document.label)}[/blue]")
        render_trace(trace_lines(document.read_lines(), layout), console)


@app.command()
def detect(
    path: Path = typer.Argument(..., help="Statement file (.pdf or .txt)")
):
    """Detect which template matches a statement."""
    detector = TemplateDetector()
    found = False
    for document in iter_documents(path):
        template = detector.detect_template(document.read_lines())
        if template:
            found = True
            console.print(f"[green]{escape(document.label)}: detected template {template}[/green]")
        else:
            console.print(f"[red]{escape(document.label)}: no matching template found[/red]")
    if not found:
        raise typer.Exit(1)


@app.command()
def templates():
    """List available layout templates."""
    detector = TemplateDetector()
    for template_id in detector.list_templates():
        template = detector.get_template(template_id)
        console.print(f"{template_id}: {template.get('description', '')}")


@app.command()
def validate(
    json_path: Path = typer.Argument(..., help="Statement or index JSON file to validate")
):
    """Validate a statement artifact or the operations index."""
    try:
        payload = json.loads(json_path.read_text(encoding="utf-8"))
        if "statementId" in payload:
            data = Statement.model_validate(payload)
            console.print("[green]✓ Statement JSON is valid[/green]")
            console.print(f"Statement: {data.statement_id}")
            console.print(f"Account: {data.account.iban}")
            console.print(f"Operations: {len(data.operations)}")
        else:
            index = OperationIndex.model_validate(payload)
            console.print("[green]✓ Index JSON is valid[/green]")
            console.print(f"Operations: {len(index.operations)}")
    except (OSError, ValueError, ValidationError) as e:
        console.print(f"[red]Validation failed: {escape(str(e))}[/red]")
        raise typer.Exit(1)


if __name__ == "__main__":
    app()
