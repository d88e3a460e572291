"""
Anchor finding and statement header extraction.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from decimal import Decimal
from typing import Dict, List, Optional, Sequence, Tuple
import logging

from rapidfuzz import fuzz

from .cursor import LineCursor
from .errors import ParseError
from .normalize import normalize_date, normalize_signed_money

logger = logging.getLogger(__name__)

IBAN_ANCHOR_REGEX = re.compile(r'^[A-Z]{2}\d{2} ?[A-Z0-9]')
CURRENCY_REGEX = re.compile(r'^[A-Z]{3}$')
IBAN_GROUP_REGEX = re.compile(r'^[A-Z0-9]{1,4}$')
TITLE_REGEX = re.compile(r'Extrait N°\s*(\d{4})\s*-\s*(\d+)')
BALANCE_REGEX = re.compile(r'au\s+(\d{2}-\d{2}-\d{4})\s+([\d.,]+)\s*([+-])')


class AnchorMatch:
    """Represents a found anchor line with position and confidence."""
    def __init__(self, index: int, line: str, confidence: float, target: str):
        self.index = index
        self.line = line
        self.confidence = confidence
        self.target = target

    def __repr__(self):
        return f"AnchorMatch('{self.target}', confidence={self.confidence:.1f}, index={self.index})"


def find_anchor(lines: Sequence[str], target: str, fuzzy_threshold: float = 85,
                start: int = 0) -> Optional[AnchorMatch]:
    """
    Find the line introducing a section, tolerating extraction drift.

    An exact (case-insensitive) occurrence of the target wins; otherwise the
    best fuzzy match of at least fuzzy_threshold is returned.

    Args:
        lines: Lines to search through
        target: Target text to find
        fuzzy_threshold: Minimum confidence score (0-100)
        start: Index to start searching from

    Returns:
        AnchorMatch if found, None otherwise
    """
    needle = target.lower()
    best_match = None
    best_confidence = 0

    for index in range(start, len(lines)):
        line = lines[index]
        if needle in line.lower():
            return AnchorMatch(index, line, 100.0, target)

        # A line much shorter than the target would align fully inside it
        if len(line) < len(target) * 0.8:
            continue

        confidence = fuzz.partial_ratio(needle, line.lower())
        if confidence > best_confidence and confidence >= fuzzy_threshold:
            best_confidence = confidence
            best_match = AnchorMatch(index, line, confidence, target)

    if best_match:
        logger.warning(f"Anchor '{target}' matched fuzzily: {best_match.line!r} ({best_match.confidence:.1f})")
    return best_match


def find_anchors_in_lines(lines: Sequence[str], targets: List[str],
                          fuzzy_threshold: float = 85) -> Dict[str, AnchorMatch]:
    """
    Find multiple anchors in a statement.

    Returns:
        Dictionary mapping target strings to AnchorMatch objects
    """
    results = {}

    for target in targets:
        match = find_anchor(lines, target, fuzzy_threshold)
        if match:
            results[target] = match
            logger.debug(f"Found anchor '{target}' with confidence {match.confidence:.1f}")
        else:
            logger.debug(f"Anchor '{target}' not found")

    return results


def is_account_anchor(line: str, min_length: int = 14) -> bool:
    """An IBAN-shaped line: country code, check digits, more alphanumerics."""
    return bool(IBAN_ANCHOR_REGEX.match(line)) and len(line) > min_length


def parse_account_line(line: str) -> Tuple[str, Optional[str]]:
    """
    Split an account line into IBAN and optional currency.

    "BE68 5390 0754 7034 EUR" -> ("BE68539007547034", "EUR")
    "BE68539007547034 BELFIUS" -> ("BE68539007547034", None)
    """
    tokens = line.split()
    currency = None
    if len(tokens) > 1 and CURRENCY_REGEX.match(tokens[-1]):
        currency = tokens.pop()

    iban_parts = [tokens[0]]
    for token in tokens[1:]:
        if not IBAN_GROUP_REGEX.match(token):
            break
        iban_parts.append(token)

    return ''.join(iban_parts), currency


def parse_statement_title(line: Optional[str]) -> Tuple[Optional[int], Optional[int]]:
    """
    Read "Extrait N° YYYY-NNN".

    Returns:
        (statement_year, statement_number), both None when absent
    """
    if not line:
        return None, None

    match = TITLE_REGEX.search(line)
    if not match:
        return None, None

    return int(match.group(1)), int(match.group(2))


def parse_balance_line(line: Optional[str]) -> Tuple[Optional[date], Optional[Decimal]]:
    """Read "Solde ... au DD-MM-YYYY <amount><sign>"."""
    if not line:
        return None, None

    match = BALANCE_REGEX.search(line)
    if not match:
        return None, None

    date_part, amount_part, sign = match.groups()
    return normalize_date(date_part), normalize_signed_money(amount_part, sign)


@dataclass
class StatementHeader:
    """Metadata read from the lines around the account anchor."""
    iban: str
    account_name: Optional[str] = None
    currency: Optional[str] = None
    bic: Optional[str] = None
    statement_year: Optional[int] = None
    statement_number: Optional[int] = None
    opening_balance: Tuple[Optional[date], Optional[Decimal]] = (None, None)
    closing_balance: Tuple[Optional[date], Optional[Decimal]] = (None, None)
    anomalies: List[str] = field(default_factory=list)


def locate_account_anchor(cursor: LineCursor, min_length: int = 14) -> LineCursor:
    """Cursor at the IBAN-shaped account line; ParseError if there is none."""
    anchored = cursor.find(lambda line: is_account_anchor(line, min_length))
    if anchored is None:
        raise ParseError("missing account anchor")
    return anchored


def extract_header(cursor: LineCursor, layout) -> StatementHeader:
    """
    Extract statement metadata.

    Args:
        cursor: Cursor over the normalized statement lines
        layout: StatementLayout with the header markers

    Returns:
        StatementHeader

    Raises:
        ParseError: when no account anchor exists
    """
    anchored = locate_account_anchor(cursor, layout.anchor_min_length)
    iban, currency = parse_account_line(anchored.current)
    lines = cursor.lines

    def first_line(predicate):
        found = cursor.find(predicate)
        return found.current if found else None

    bic_line = first_line(lambda line: line.startswith(layout.bic_prefix))
    title_line = first_line(lambda line: layout.title_marker in line)
    closing_line = first_line(lambda line: line.startswith(layout.closing_balance_prefix))
    opening_line = first_line(lambda line: line.startswith(layout.opening_balance_prefix))

    statement_year, statement_number = parse_statement_title(title_line)
    header = StatementHeader(
        iban=iban,
        account_name=lines[anchored.position - 1] if anchored.position > 0 else None,
        currency=currency,
        bic=bic_line[len(layout.bic_prefix):].strip() if bic_line else None,
        statement_year=statement_year,
        statement_number=statement_number,
        opening_balance=parse_balance_line(opening_line),
        closing_balance=parse_balance_line(closing_line),
    )

    if title_line is None:
        header.anomalies.append("statement title missing")
    return header


def locate_operations_header(cursor: LineCursor, layout) -> LineCursor:
    """
    Cursor at the first operation-table line after the header row.

    Raises:
        ParseError: when the operations header is absent
    """
    match = find_anchor(cursor.lines, layout.operations_header,
                        layout.header_fuzzy_threshold, start=cursor.position)
    if match is None:
        raise ParseError("missing operations header")

    return cursor.seek(match.index + 1).skip_while(layout.is_header_continuation)
