"""
Tests for invoice loading, filtering and reconciliation reports.
"""
import io
import json
import pytest
from datetime import date
from decimal import Decimal

from rich.console import Console

from ..core.index import ImportedStatement, build_operation_index
from ..core.matcher import InvoiceMatcher
from ..core.report import ReconciliationReporter, filter_invoices, load_invoices
from ..core.runner import parse_statement
from ..models.schema import Invoice

SERVICE_INVOICES = {
    "data": [
        {
            "id": 7,
            "invoice_number": "220006",
            "amount": "1500.00",
            "balance": "1500.00",
            "invoice_date": "2024-04-01",
            "due_date": "2024-05-01",
            "invoice_status_id": 2,
            "client": {"data": {"display_name": "Dupont & Fils"}},
        },
        {
            "id": 8,
            "invoice_number": "220007",
            "amount": "42.00",
            "balance": "42.00",
            "invoice_date": "2024-04-10",
            "invoice_status_id": 5,
            "client": {"name": "Martin Consulting"},
        },
        {
            "id": 9,
            "invoice_number": "220001",
            "amount": "300.00",
            "balance": "0",
            "invoice_date": "2024-02-01",
            "invoice_status_id": 6,
        },
    ]
}


@pytest.fixture
def invoices_path(tmp_path):
    path = tmp_path / "invoices.json"
    path.write_text(json.dumps(SERVICE_INVOICES), encoding="utf-8")
    return path


@pytest.fixture
def matcher(tmp_path, statement_lines):
    item = ImportedStatement(parse_statement(statement_lines), tmp_path / "547034-2024-004.json")
    return InvoiceMatcher.from_index(build_operation_index([item]))


class TestLoadInvoices:

    def test_service_payload(self, invoices_path):
        invoices = load_invoices(invoices_path)

        assert [invoice.number for invoice in invoices] == ["220006", "220007", "220001"]
        first = invoices[0]
        assert first.id == "7"
        assert first.amount == Decimal("1500.00")
        assert first.invoice_date == date(2024, 4, 1)
        assert first.due_date == date(2024, 5, 1)
        assert first.client_name == "Dupont & Fils"
        assert first.status_label == "Sent"
        assert invoices[1].client_name == "Martin Consulting"
        assert invoices[2].is_open is False

    def test_plain_list(self, tmp_path):
        path = tmp_path / "invoices.json"
        path.write_text(json.dumps([
            {"number": 31, "amount": 10.5, "balance": 10.5, "invoiceDate": "2024-04-01", "clientName": "Acme"},
        ]), encoding="utf-8")

        invoice = load_invoices(path)[0]

        assert invoice.number == "31"
        assert invoice.amount == Decimal("10.5")
        assert invoice.client_name == "Acme"
        assert invoice.status_label == "unknown"
        assert invoice.is_open


class TestFilterInvoices:

    def test_open_only(self, invoices_path):
        selected = filter_invoices(load_invoices(invoices_path))
        assert [invoice.number for invoice in selected] == ["220006", "220007"]

    def test_include_closed(self, invoices_path):
        assert len(filter_invoices(load_invoices(invoices_path), open_only=False)) == 3

    def test_since(self, invoices_path):
        selected = filter_invoices(load_invoices(invoices_path), since=date(2024, 4, 5))
        assert [invoice.number for invoice in selected] == ["220007"]

    def test_since_drops_undated(self):
        invoice = Invoice(number="1", amount=Decimal("1"), balance=Decimal("1"))
        assert filter_invoices([invoice], since=date(2024, 1, 1)) == []


class TestReconciliationReporter:

    @pytest.fixture
    def console(self):
        return Console(file=io.StringIO(), width=200)

    def test_run(self, matcher, invoices_path):
        report = ReconciliationReporter(matcher).run(filter_invoices(load_invoices(invoices_path)))

        assert report.max_days == 120
        assert [result.invoice.number for result in report.matched] == ["220006"]
        assert [result.invoice.number for result in report.unmatched] == ["220007"]
        top = report.matched[0].candidates[0]
        assert top.operation.sequence == "0015"
        assert top.days_diff == 3
        assert top.ref_score == 3
        assert top.name_score == 2
        assert top.confidence == 98

    def test_render(self, matcher, invoices_path, console):
        reporter = ReconciliationReporter(matcher, console=console, verbose=True)
        reporter.render(reporter.run(filter_invoices(load_invoices(invoices_path))))

        output = console.file.getvalue()
        assert "Invoice #220006 (Sent)" in output
        assert "547034-2024-004" in output
        assert "98%" in output
        assert "reference match" in output
        assert "counterparty: DUPONT & FILS SPRL" in output
        assert "No match for 1 invoice(s): #220007" in output

    def test_render_prints_bracketed_text_literally(self, matcher, console):
        reporter = ReconciliationReporter(matcher, console=console, verbose=True)
        invoices = [
            Invoice(number="220006", amount=Decimal("1500.00"), balance=Decimal("1500.00"),
                    invoice_date=date(2024, 4, 1), client_name="ACME [/b] SRL"),
            Invoice(number="[/i]77", amount=Decimal("12.34"), balance=Decimal("12.34")),
        ]

        reporter.render(reporter.run(invoices))

        output = console.file.getvalue()
        assert "client ACME [/b] SRL" in output
        assert "#[/i]77" in output

    def test_render_without_matches(self, matcher, console):
        reporter = ReconciliationReporter(matcher, console=console)
        invoice = Invoice(number="1", amount=Decimal("12.34"), balance=Decimal("12.34"))
        reporter.render(reporter.run([invoice]))
        assert "No candidate payments found" in console.file.getvalue()

    def test_render_empty(self, matcher, console):
        reporter = ReconciliationReporter(matcher, console=console)
        reporter.render(reporter.run([]))
        assert "No open or partially paid invoices" in console.file.getvalue()

    def test_render_json(self, matcher, invoices_path):
        reporter = ReconciliationReporter(matcher)
        payload = json.loads(reporter.render_json(reporter.run(load_invoices(invoices_path)[:1])))

        assert payload["maxDays"] == 120
        candidate = payload["results"][0]["candidates"][0]
        assert candidate["targetLabel"] == "invoice amount"
        assert candidate["daysDiff"] == 3
        assert candidate["operation"]["statementId"] == "547034-2024-004"
        assert candidate["operation"]["amount"] == 1500.0
