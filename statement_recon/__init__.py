"""
Bank statement parser and invoice payment matcher

Parses line-oriented text extracted from bank account statements into
structured operations, aggregates them into a searchable index and ranks
candidate payments for invoices with a confidence score.
"""

__version__ = "1.0.0"

from .core.runner import parse_statement, parse_operations, StatementParser
from .core.detectors import detect_template
from .core.index import import_statements, build_operation_index, load_operation_index
from .core.matcher import InvoiceMatcher, find_matches_for_invoice, compute_confidence
from .core.errors import ParseError, IndexConflict, InvalidInvoiceError
from .models.schema import Statement, Operation, OperationIndex, OperationIndexEntry, Invoice, MatchCandidate

__all__ = [
    "parse_statement",
    "parse_operations",
    "StatementParser",
    "detect_template",
    "import_statements",
    "build_operation_index",
    "load_operation_index",
    "InvoiceMatcher",
    "find_matches_for_invoice",
    "compute_confidence",
    "ParseError",
    "IndexConflict",
    "InvalidInvoiceError",
    "Statement",
    "Operation",
    "OperationIndex",
    "OperationIndexEntry",
    "Invoice",
    "MatchCandidate"
]
