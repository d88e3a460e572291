"""
Reconciliation reports: run the matcher over invoices and render the results.
"""
import json
from datetime import date, datetime, timezone
from pathlib import Path
from typing import Iterable, List, Optional
import logging

from rich.console import Console
from rich.markup import escape
from rich.table import Table

from .index import dump_json
from .matcher import InvoiceMatcher
from ..models.schema import Invoice, InvoiceMatch, MatchCandidate, ReconciliationReport

logger = logging.getLogger(__name__)


def load_invoices(path: Path) -> List[Invoice]:
    """
    Read invoices from a JSON file.

    Accepts a list, or an object with a "data" list as returned by the
    invoicing service. Records carrying service field names
    (invoice_number, invoice_date, client) are mapped accordingly.
    """
    payload = json.loads(Path(path).read_text(encoding="utf-8"))
    records = payload.get("data", []) if isinstance(payload, dict) else payload

    invoices = []
    for record in records:
        if "invoice_number" in record or "invoice_date" in record or "client" in record:
            invoices.append(Invoice.from_service_payload(record))
        else:
            invoices.append(Invoice.model_validate(record))
    return invoices


def filter_invoices(invoices: Iterable[Invoice], since: Optional[date] = None,
                    open_only: bool = True) -> List[Invoice]:
    """Keep open invoices dated on or after `since`."""
    selected = []
    for invoice in invoices:
        if open_only and not invoice.is_open:
            continue
        if since is not None:
            reference_date = invoice.reference_date
            if reference_date is None or reference_date < since:
                continue
        selected.append(invoice)
    return selected


class ReconciliationReporter:
    """Matches invoice batches and renders the candidates."""

    def __init__(self, matcher: InvoiceMatcher, console: Optional[Console] = None, verbose: bool = False):
        self.matcher = matcher
        self.console = console or Console()
        self.verbose = verbose

    def run(self, invoices: Iterable[Invoice]) -> ReconciliationReport:
        results = [
            InvoiceMatch(invoice=invoice, candidates=self.matcher.match(invoice))
            for invoice in invoices
        ]
        report = ReconciliationReport(
            generated_at=datetime.now(timezone.utc),
            max_days=self.matcher.max_days,
            results=results,
        )
        logger.info(f"Matched {len(report.matched)}/{len(results)} invoice(s)")
        return report

    def render(self, report: ReconciliationReport) -> None:
        if not report.results:
            self.console.print("No open or partially paid invoices retrieved.")
            return

        for result in report.matched:
            self.console.print(self._invoice_heading(result.invoice), highlight=False)
            self.console.print(self._candidate_table(result.candidates))
            if self.verbose:
                for index, candidate in enumerate(result.candidates, 1):
                    op = candidate.operation
                    self.console.print(
                        f"    {index}. counterparty: {escape(op.counterparty.name or 'n/a')} "
                        f"({escape(op.counterparty.account or '?')}) • communication: {escape(op.communication or 'n/a')}",
                        highlight=False,
                    )
            self.console.print()

        if not report.matched:
            self.console.print("No candidate payments found for unpaid or partially paid invoices.")
        elif report.unmatched:
            numbers = ", ".join(f"#{escape(result.invoice.display_number)}" for result in report.unmatched)
            self.console.print(f"[yellow]No match for {len(report.unmatched)} invoice(s):[/yellow] {numbers}")

    def render_json(self, report: ReconciliationReport) -> str:
        return dump_json(report)

    @staticmethod
    def _invoice_heading(invoice: Invoice) -> str:
        parts = [
            f"[bold]Invoice #{escape(invoice.display_number)}[/bold] ({escape(invoice.status_label)})",
            f"amount {invoice.amount or 0:.2f}",
            f"balance {invoice.balance:.2f}",
            f"issued {invoice.invoice_date or '?'}",
            f"due {invoice.due_date or '?'}",
        ]
        if invoice.client_name:
            parts.append(f"client {escape(invoice.client_name)}")
        return " • ".join(parts)

    @staticmethod
    def _candidate_table(candidates: List[MatchCandidate]) -> Table:
        table = Table(show_header=True, header_style="bold")
        for column in ("#", "Target", "Statement", "Seq", "Date", "Amount", "Δ", "Confidence", "Notes"):
            table.add_column(column)

        for index, candidate in enumerate(candidates, 1):
            op = candidate.operation
            notes = []
            if candidate.ref_score > 0:
                notes.append("reference match")
            if candidate.name_score > 0:
                notes.append(f"name overlap {candidate.name_score}")
            table.add_row(
                str(index),
                candidate.target_label,
                escape(op.statement_id or "?"),
                op.sequence or "?",
                str(op.matching_date or "?"),
                f"{op.amount:.2f}",
                f"{candidate.days_diff}d" if candidate.days_diff is not None else "?",
                f"{candidate.confidence}%",
                ", ".join(notes),
            )
        return table
