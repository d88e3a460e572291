"""
Line normalization for text extracted from statement documents.
"""
import re
from dataclasses import dataclass
from typing import Iterable, List, Tuple


@dataclass(frozen=True)
class NormalizedLines:
    """Parse-ready lines plus the original lines kept for audit."""
    lines: Tuple[str, ...]
    raw_lines: Tuple[str, ...]

    def __len__(self):
        return len(self.lines)


def split_text(text: str) -> List[str]:
    """Split extracted document text into lines."""
    if not text:
        return []

    return re.split(r'\r?\n', text)


def normalize_lines(lines: Iterable[str]) -> NormalizedLines:
    """
    Normalize extracted lines.

    Args:
        lines: Ordered text lines of one document

    Returns:
        NormalizedLines with trimmed non-blank lines for parsing and the
        original lines with only trailing whitespace removed
    """
    raw_lines = tuple(line.rstrip() for line in lines)
    trimmed = tuple(line.strip() for line in raw_lines if line.strip())
    return NormalizedLines(lines=trimmed, raw_lines=raw_lines)
