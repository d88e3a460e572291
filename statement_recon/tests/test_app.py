"""
Tests for the command line interface.
"""
import json
import pytest

from typer.testing import CliRunner

from ..app import app
from ..config import get_settings
from ..core.index import INDEX_FILE_NAME

runner = CliRunner()

INVOICES = [
    {
        "id": 7,
        "invoice_number": "220006",
        "amount": "1500.00",
        "balance": "1500.00",
        "invoice_date": "2024-04-01",
        "invoice_status_id": 2,
        "client": {"display_name": "Dupont & Fils"},
    },
    {
        "id": 9,
        "invoice_number": "220001",
        "amount": "1500.00",
        "balance": "0",
        "invoice_date": "2024-04-02",
        "invoice_status_id": 6,
    },
]


@pytest.fixture(autouse=True)
def quiet_settings(monkeypatch):
    monkeypatch.setenv("LOG_LEVEL", "WARNING")
    get_settings.cache_clear()
    yield
    get_settings.cache_clear()


@pytest.fixture
def statement_file(tmp_path, statement_lines):
    path = tmp_path / "avril.txt"
    path.write_text("\n".join(statement_lines), encoding="utf-8")
    return path


@pytest.fixture
def imported(tmp_path, statement_file):
    out = tmp_path / "out"
    result = runner.invoke(app, ["import", str(statement_file), "--out", str(out)])
    assert result.exit_code == 0, result.output
    return out


@pytest.fixture
def invoices_file(tmp_path):
    path = tmp_path / "invoices.json"
    path.write_text(json.dumps(INVOICES), encoding="utf-8")
    return path


def _json_output(result):
    return json.loads(result.stdout[result.stdout.index("{"):])


class TestImportCommand:

    def test_import(self, imported):
        assert (imported / "547034-2024-004.json").exists()
        assert (imported / INDEX_FILE_NAME).exists()

    def test_import_reports_counts(self, tmp_path, statement_file):
        result = runner.invoke(app, ["import", str(statement_file), "--out", str(tmp_path / "out")])
        assert "Processed 1 statement(s), extracted 4 operation(s)." in result.output

    def test_conflict_exits_nonzero(self, imported, statement_file):
        result = runner.invoke(app, ["import", str(statement_file), "--out", str(imported)])
        assert result.exit_code == 1
        assert "Encountered 1 error(s)" in result.output

    def test_overwrite(self, imported, statement_file):
        result = runner.invoke(app, ["import", str(statement_file), "--out", str(imported), "--overwrite"])
        assert result.exit_code == 0

    def test_broken_document_exits_nonzero(self, tmp_path, statement_file):
        broken = tmp_path / "broken.txt"
        broken.write_text("Relevé illisible", encoding="utf-8")
        out = tmp_path / "out"

        result = runner.invoke(app, ["import", str(broken), str(statement_file), "--out", str(out)])

        assert result.exit_code == 1
        assert "Encountered 1 error(s)" in result.output
        assert (out / INDEX_FILE_NAME).exists()

    def test_missing_input(self, tmp_path):
        result = runner.invoke(app, ["import", str(tmp_path / "absent.pdf"), "--out", str(tmp_path)])
        assert result.exit_code == 1
        assert "input not found" in result.output

    def test_unknown_template(self, tmp_path, statement_file):
        result = runner.invoke(app, ["import", str(statement_file), "--out", str(tmp_path), "--template", "nope"])
        assert result.exit_code == 1
        assert "Template not found" in result.output


class TestMatchCommand:

    def test_match_json(self, imported, invoices_file):
        result = runner.invoke(app, ["match", str(invoices_file), "--index", str(imported / INDEX_FILE_NAME), "--json"])

        assert result.exit_code == 0, result.output
        payload = _json_output(result)
        assert len(payload["results"]) == 1
        candidate = payload["results"][0]["candidates"][0]
        assert candidate["operation"]["sequence"] == "0015"
        assert candidate["refScore"] == 3
        assert candidate["confidence"] == 98

    def test_match_all_includes_paid_invoices(self, imported, invoices_file):
        result = runner.invoke(app, [
            "match", str(invoices_file), "--index", str(imported / INDEX_FILE_NAME), "--json", "--all",
        ])
        payload = _json_output(result)
        assert [r["invoice"]["number"] for r in payload["results"]] == ["220006", "220001"]

    def test_match_zero_day_window(self, imported, invoices_file):
        result = runner.invoke(app, [
            "match", str(invoices_file), "--index", str(imported / INDEX_FILE_NAME), "--json", "--max-days", "0",
        ])
        payload = _json_output(result)
        assert payload["maxDays"] == 0
        assert payload["results"][0]["candidates"] == []

    def test_match_since(self, imported, invoices_file):
        result = runner.invoke(app, [
            "match", str(invoices_file), "--index", str(imported / INDEX_FILE_NAME),
            "--json", "--all", "--since", "2024-04-02",
        ])
        payload = _json_output(result)
        assert [r["invoice"]["number"] for r in payload["results"]] == ["220001"]

    def test_match_table(self, imported, invoices_file):
        result = runner.invoke(app, ["match", str(invoices_file), "--index", str(imported / INDEX_FILE_NAME)])
        assert result.exit_code == 0
        assert "Invoice #220006" in result.output

    def test_missing_index(self, tmp_path, invoices_file):
        result = runner.invoke(app, ["match", str(invoices_file), "--index", str(tmp_path / INDEX_FILE_NAME)])
        assert result.exit_code == 1
        assert "Statements index not found" in result.output


class TestUtilityCommands:

    def test_templates(self):
        result = runner.invoke(app, ["templates"])
        assert result.exit_code == 0
        assert "belfius_fr" in result.output

    def test_detect(self, statement_file):
        result = runner.invoke(app, ["detect", str(statement_file)])
        assert result.exit_code == 0
        assert "detected template belfius_fr" in result.output

    def test_trace(self, statement_file):
        result = runner.invoke(app, ["trace", str(statement_file)])
        assert result.exit_code == 0

    def test_validate_statement(self, imported):
        result = runner.invoke(app, ["validate", str(imported / "547034-2024-004.json")])
        assert result.exit_code == 0
        assert "Statement JSON is valid" in result.output
        assert "Operations: 4" in result.output

    def test_validate_index(self, imported):
        result = runner.invoke(app, ["validate", str(imported / INDEX_FILE_NAME)])
        assert result.exit_code == 0
        assert "Index JSON is valid" in result.output

    def test_validate_rejects_invalid_file(self, tmp_path):
        path = tmp_path / "bad.json"
        path.write_text(json.dumps({"statementId": "x", "operations": []}), encoding="utf-8")
        result = runner.invoke(app, ["validate", str(path)])
        assert result.exit_code == 1
        assert "Validation failed" in result.output
