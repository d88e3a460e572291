"""
Per-statement artifacts, the aggregated operation index and batch imports.
"""
import json
from dataclasses import dataclass, field
from datetime import datetime, timezone
from pathlib import Path
from typing import Dict, Iterable, List, Optional
import logging

from .errors import IndexConflict
from .loader import SourceDocument, iter_documents
from .runner import StatementParser
from .detectors import DEFAULT_TEMPLATE_ID
from ..models.schema import OperationIndex, OperationIndexEntry, Statement, StatementSource

logger = logging.getLogger(__name__)

INDEX_FILE_NAME = "operations-index.json"


@dataclass
class ImportedStatement:
    """A parsed statement and the artifact it was written to."""
    statement: Statement
    output_path: Path


@dataclass
class ImportFailure:
    source_type: str
    origin_path: str
    error: str
    entry_name: Optional[str] = None

    @property
    def label(self) -> str:
        if self.entry_name:
            return f"{self.origin_path} :: {self.entry_name}"
        return self.origin_path


@dataclass
class ImportReport:
    """Outcome of one batch import."""
    statements: List[ImportedStatement] = field(default_factory=list)
    failures: List[ImportFailure] = field(default_factory=list)
    index_path: Optional[Path] = None

    @property
    def total_operations(self) -> int:
        return sum(len(item.statement.operations) for item in self.statements)

    @property
    def exit_code(self) -> int:
        return 1 if self.failures else 0


def dump_json(model) -> str:
    return json.dumps(model.model_dump(mode="json", by_alias=True), indent=2, ensure_ascii=False)


def write_statement_json(statement: Statement, output_dir: Path, overwrite: bool = False) -> Path:
    """
    Write one statement artifact.

    Args:
        statement: Parsed statement
        output_dir: Target directory
        overwrite: Replace an existing artifact

    Returns:
        Path of the written file

    Raises:
        IndexConflict: the artifact exists and overwrite is False
    """
    target_path = Path(output_dir) / f"{statement.statement_id}.json"
    if target_path.exists() and not overwrite:
        raise IndexConflict(target_path)

    target_path.write_text(dump_json(statement), encoding="utf-8")
    return target_path


def build_index_entries(statements: Iterable[ImportedStatement]) -> List[OperationIndexEntry]:
    """Denormalize every operation with its statement reference, in order."""
    entries = []

    for item in statements:
        statement = item.statement
        reference = {
            "statement_id": statement.statement_id,
            "statement_file": item.output_path.name,
            "account_iban": statement.account.iban,
            "account_name": statement.account.name,
            "statement_year": statement.statement_year,
            "statement_number": statement.statement_number,
        }
        for operation in statement.operations:
            fields = operation.model_dump(exclude={"raw_details"})
            entries.append(OperationIndexEntry(**reference, **fields))

    return entries


def build_operation_index(statements: Iterable[ImportedStatement],
                          generated_at: Optional[datetime] = None) -> OperationIndex:
    return OperationIndex(
        generated_at=generated_at or datetime.now(timezone.utc),
        operations=build_index_entries(statements),
    )


def write_operation_index(index: OperationIndex, output_dir: Path) -> Path:
    index_path = Path(output_dir) / INDEX_FILE_NAME
    index_path.write_text(dump_json(index), encoding="utf-8")
    return index_path


def load_operation_index(index_path: Path) -> OperationIndex:
    """
    Read an aggregated index artifact.

    Raises:
        FileNotFoundError: the index has not been built yet
    """
    resolved = Path(index_path).resolve()
    if not resolved.exists():
        raise FileNotFoundError(f"Statements index not found at {resolved}. Run the importer first.")

    return OperationIndex.model_validate_json(resolved.read_text(encoding="utf-8"))


class StatementImporter:
    """Parses documents, writes their artifacts and rebuilds the index."""

    def __init__(self, output_dir: Path, overwrite: bool = False,
                 template_id: str = DEFAULT_TEMPLATE_ID, parser: Optional[StatementParser] = None):
        self.output_dir = Path(output_dir)
        self.overwrite = overwrite
        self.parser = parser or StatementParser(template_id)

    def import_paths(self, paths: Iterable[Path]) -> ImportReport:
        """Import every document found in the given files."""
        report = ImportReport()
        documents = []

        for path in paths:
            path = Path(path)
            try:
                documents.extend(iter_documents(path))
            except Exception as e:
                logger.error(f"Could not read {path}: {e}")
                report.failures.append(ImportFailure("file", str(path), str(e)))

        return self.import_documents(documents, report)

    def import_documents(self, documents: Iterable[SourceDocument],
                         report: Optional[ImportReport] = None) -> ImportReport:
        """
        Parse and write each document; failures are recorded, never raised.

        The index is written once every document has settled, and only when
        at least one statement was imported.
        """
        report = report or ImportReport()
        self.output_dir.mkdir(parents=True, exist_ok=True)
        imported: Dict[str, ImportedStatement] = {}

        for document in documents:
            try:
                item = self._import_document(document, imported)
            except Exception as e:
                logger.error(f"{document.label} -> {e}")
                report.failures.append(ImportFailure(
                    source_type=document.source_type,
                    origin_path=document.origin_path,
                    entry_name=document.entry_name,
                    error=str(e),
                ))
                continue

            imported[item.statement.statement_id] = item
            logger.info(f"{item.statement.statement_id}: {len(item.statement.operations)} operation(s) -> {item.output_path}")

        report.statements.extend(imported.values())
        if report.statements:
            index = build_operation_index(report.statements)
            report.index_path = write_operation_index(index, self.output_dir)

        return report

    def _import_document(self, document: SourceDocument,
                         imported: Dict[str, ImportedStatement]) -> ImportedStatement:
        source = StatementSource(
            type=document.source_type,
            origin_path=document.origin_path,
            entry_name=document.entry_name,
        )
        statement = self.parser.parse(document.read_lines(), source)

        # Same id twice in one batch is a conflict like an existing artifact
        if statement.statement_id in imported:
            if not self.overwrite:
                raise IndexConflict(imported[statement.statement_id].output_path)
            del imported[statement.statement_id]

        output_path = write_statement_json(statement, self.output_dir, self.overwrite)
        return ImportedStatement(statement=statement, output_path=output_path)


def import_statements(paths: Iterable[Path], output_dir: Path, overwrite: bool = False,
                      template_id: str = DEFAULT_TEMPLATE_ID) -> ImportReport:
    """
    Import statement documents and rebuild the aggregated index.

    Args:
        paths: .pdf, .txt or .zip files
        output_dir: Directory for the JSON artifacts
        overwrite: Replace existing per-statement artifacts
        template_id: Layout template to parse with

    Returns:
        ImportReport with imported statements and failures
    """
    importer = StatementImporter(output_dir, overwrite, template_id)
    return importer.import_paths(paths)
