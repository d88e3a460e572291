"""
Value normalization: European-formatted money, statement dates and text tokens.
"""
import re
import unicodedata
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import List, Optional
import logging

from rapidfuzz.utils import default_process

logger = logging.getLogger(__name__)

DATE_LINE_REGEX = re.compile(r'^(\d{2})-(\d{2})-(\d{4})$')
VALUE_LINE_REGEX = re.compile(r'^(\d{2})-(\d{2})(?:-(\d{4}))?\s+([\d.,]+)\s*([+-])$')
FILE_SAFE_REGEX = re.compile(r'[^A-Za-z0-9._-]')


def normalize_money(value: str) -> Decimal:
    """
    Normalize a money string printed with `.` thousands and `,` decimals.

    Args:
        value: Raw money string, e.g. "1.500,00"

    Returns:
        Decimal value, or 0 when the text cannot be parsed
    """
    if not value or not value.strip():
        return Decimal('0')

    cleaned = re.sub(r'[.\s]', '', value.strip()).replace(',', '.')

    try:
        return Decimal(cleaned)
    except InvalidOperation:
        logger.warning(f"Could not parse amount: {value}")
        return Decimal('0')


def normalize_signed_money(value: str, sign: str) -> Decimal:
    """Apply a trailing `+`/`-` sign to a European money string."""
    amount = normalize_money(value)
    return -amount if sign == '-' else amount


def normalize_date(value: Optional[str]) -> Optional[date]:
    """
    Normalize a DD-MM-YYYY date.

    Args:
        value: Raw date string

    Returns:
        Date object or None if the text is not a valid calendar date
    """
    if not value or not value.strip():
        return None

    match = DATE_LINE_REGEX.match(value.strip())
    if not match:
        return None

    day, month, year = (int(part) for part in match.groups())
    try:
        return date(year, month, day)
    except ValueError:
        logger.warning(f"Could not parse date: {value}")
        return None


def infer_value_date(day: str, month: str, year: Optional[str],
                     booking_date: Optional[date]) -> Optional[date]:
    """
    Resolve a value date that may omit its year.

    A month more than six months behind the booking month belongs to the
    next year, more than six months ahead to the previous one.

    Args:
        day, month: Two-digit day and month from the value line
        year: Four-digit year, or None when the line omits it
        booking_date: Current booking-date context

    Returns:
        Date object or None when the year cannot be determined
    """
    if year:
        resolved_year = int(year)
    elif booking_date:
        resolved_year = booking_date.year
        month_delta = int(month) - booking_date.month
        if month_delta < -6:
            resolved_year += 1
        elif month_delta > 6:
            resolved_year -= 1
    else:
        return None

    try:
        return date(resolved_year, int(month), int(day))
    except ValueError:
        logger.warning(f"Invalid value date: {day}-{month}-{resolved_year}")
        return None


def normalize_text(value: Optional[str]) -> str:
    """Trim and collapse internal whitespace."""
    if not value:
        return ""

    return re.sub(r'\s+', ' ', value.strip())


def fold_accents(value: str) -> str:
    """Strip diacritics, e.g. "Société" -> "Societe"."""
    decomposed = unicodedata.normalize('NFKD', value)
    return ''.join(char for char in decomposed if not unicodedata.combining(char))


def tokenize(value: Optional[str]) -> List[str]:
    """Lower-cased, accent-free alphanumeric tokens."""
    if not value:
        return []

    return default_process(fold_accents(value)).split()


def normalize_reference(value: Optional[str]) -> str:
    """Remove all whitespace and upper-case, for reference comparisons."""
    if not value:
        return ""

    return re.sub(r'\s+', '', value).upper()


def digits_only(value: Optional[str]) -> str:
    if not value:
        return ""

    return re.sub(r'\D+', '', value)


def build_file_safe_name(value: str) -> str:
    return FILE_SAFE_REGEX.sub('_', value)
