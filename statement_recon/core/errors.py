"""
Exceptions raised by the statement parser, the index builder and the matcher.
"""
from pathlib import Path


class StatementReconError(Exception):
    """Base class for all errors raised by this package."""


class ParseError(StatementReconError):
    """A statement could not be parsed and must be rejected."""


class IndexConflict(StatementReconError):
    """A per-statement artifact already exists and overwrite was not requested."""

    def __init__(self, target_path: Path):
        self.target_path = Path(target_path)
        super().__init__(
            f"File already exists at {self.target_path}. Use --overwrite to replace it."
        )


class InvalidInvoiceError(StatementReconError, ValueError):
    """An invoice lacks the data needed to look for payments."""
