"""
Tests for the line classification trace.
"""
import io

from rich.console import Console

from ..tools.debug_trace import render_trace, trace_lines


def _labels(rows):
    return [(row.line, row.label) for row in rows]


class TestTraceLines:

    def test_roles(self, statement_lines, layout):
        labels = _labels(trace_lines(statement_lines, layout))

        assert ("BE68 5390 0754 7034 EUR", "account anchor") in labels
        assert ("N° Type d'opération", "operations header") in labels
        assert ("Date", "header") in labels
        assert ("01-04-2024", "booking date") in labels
        assert ("0015 Virement SEPA en votre faveur", "operation") in labels
        assert ("BE71 0961 2345 6769 EUR", "detail: counterparty_iban") in labels
        assert ("GKCCBEBB", "detail: counterparty_bic") in labels
        assert ("04-04 1.500,00 +", "value line") in labels
        assert ("...", "continuation") in labels
        assert ("Les dépôts sont protégés par le Fonds de garantie", "ignored") in labels

    def test_labelled_value_on_next_line_shares_label(self, statement_lines, layout):
        labels = _labels(trace_lines(statement_lines, layout))
        assert ("Référence donneur d'ordre", "detail: order_reference") in labels
        assert ("ENGIE-2024-04", "detail: order_reference") in labels

    def test_footer_after_table(self, statement_lines, layout):
        rows = trace_lines(statement_lines, layout)
        footer = [row.index for row in rows if row.label == "footer"]
        assert len(footer) == 1
        assert rows[footer[0]].line.startswith("Solde actuel")

    def test_one_row_per_normalized_line(self, statement_lines, layout):
        rows = trace_lines(statement_lines, layout)
        assert [row.index for row in rows] == list(range(len(rows)))
        assert len(rows) == len([line for line in statement_lines if line.strip()])

    def test_render_escapes_markup(self, layout):
        console = Console(file=io.StringIO(), width=120)
        render_trace(trace_lines(["[bold]0015 x[/bold]"], layout), console)
        assert "[bold]0015 x[/bold]" in console.file.getvalue()
