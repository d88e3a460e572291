"""
Detail-line classification for operation blocks.

Each detail line is classified into one variant of a closed set of field
kinds, then the sequence of classified fields is folded into the operation's
detail attributes.
"""
import re
from dataclasses import dataclass, field
from datetime import date
from enum import Enum
from typing import List, Optional, Sequence, Tuple
import logging

from .cursor import LineCursor
from .normalize import normalize_date

logger = logging.getLogger(__name__)

IBAN_MIN_LENGTH = 14
COUNTERPARTY_IBAN_REGEX = re.compile(r'^[A-Z]{2}\d{2}[A-Z0-9]+$')
CURRENCY_SUFFIX_REGEX = re.compile(r'^[A-Z]{3}$')
BIC_REGEX = re.compile(r'^[A-Z]{4}[A-Z]{2}[A-Z0-9]{2}(?:[A-Z0-9]{3})?$')


class DetailKind(str, Enum):
    EXECUTION_DATE = "execution_date"
    COMMUNICATION = "communication"
    BANK_REFERENCE = "bank_reference"
    ORDER_REFERENCE = "order_reference"
    COUNTERPARTY_IBAN = "counterparty_iban"
    COUNTERPARTY_BIC = "counterparty_bic"
    RESIDUAL = "residual"


LABELLED_KINDS = {
    DetailKind.EXECUTION_DATE.value: DetailKind.EXECUTION_DATE,
    DetailKind.COMMUNICATION.value: DetailKind.COMMUNICATION,
    DetailKind.BANK_REFERENCE.value: DetailKind.BANK_REFERENCE,
    DetailKind.ORDER_REFERENCE.value: DetailKind.ORDER_REFERENCE,
}


@dataclass(frozen=True)
class DetailField:
    """One classified detail line."""
    kind: DetailKind
    value: Optional[str]
    currency: Optional[str] = None


@dataclass
class OperationDetails:
    """Detail attributes of an operation after folding."""
    execution_date: Optional[date] = None
    communication: Optional[str] = None
    bank_reference: Optional[str] = None
    order_reference: Optional[str] = None
    counterparty_account: Optional[str] = None
    counterparty_currency: Optional[str] = None
    counterparty_bic: Optional[str] = None
    counterparty_name: Optional[str] = None
    counterparty_address: Optional[str] = None
    additional_details: List[str] = field(default_factory=list)


def parse_iban_line(line: str) -> Optional[Tuple[str, Optional[str]]]:
    """
    Recognise a counterparty account line.

    Returns:
        (iban, currency) if the line is IBAN-shaped, None otherwise
    """
    compact = re.sub(r'\s+', '', line)
    if len(compact) < IBAN_MIN_LENGTH or not COUNTERPARTY_IBAN_REGEX.match(compact):
        return None

    tokens = line.split()
    currency = tokens[-1] if len(tokens) > 1 and CURRENCY_SUFFIX_REGEX.match(tokens[-1]) else None
    if currency:
        return compact[:-len(currency)], currency
    return compact, None


def is_bic_line(line: str) -> bool:
    return bool(BIC_REGEX.match(line.strip()))


def inline_value(line: str, label: str) -> str:
    """Value printed on the label line itself: after the colon, else after the label."""
    if ':' in line:
        return line.split(':', 1)[1].strip()
    return line[len(label):].strip()


def awaits_next_line_value(line: str, layout) -> bool:
    """True for a bare labelled line whose value is printed on the following line."""
    labelled = layout.detail_label(line)
    if not labelled or labelled[0] not in LABELLED_KINDS:
        return False
    return not inline_value(line, labelled[1])


def consume_labelled_value(cursor: LineCursor, label: str) -> Tuple[str, LineCursor]:
    """
    Read the value of a labelled detail line.

    The value follows the colon on the label line; without one, the text
    after the label is used; failing that, the next line is taken unless it
    is itself labelled (contains a colon).

    Returns:
        (value, cursor positioned after the consumed lines)
    """
    value = inline_value(cursor.current, label)
    if value:
        return value, cursor.advance()

    following = cursor.peek()
    if following is not None and ':' not in following:
        return following.strip(), cursor.advance(2)
    return "", cursor.advance()


def classify_detail(cursor: LineCursor, layout) -> Tuple[DetailField, LineCursor]:
    """
    Classify the detail line under the cursor.

    Priority: labelled fields, counterparty IBAN, counterparty BIC, residual.

    Returns:
        (DetailField, cursor after the consumed lines)
    """
    line = cursor.current
    labelled = layout.detail_label(line)
    if labelled:
        kind_name, label = labelled
        kind = LABELLED_KINDS.get(kind_name)
        if kind is not None:
            value, cursor = consume_labelled_value(cursor, label)
            return DetailField(kind, value or None), cursor
        logger.debug(f"Ignoring unknown detail label kind: {kind_name}")

    iban_parts = parse_iban_line(line)
    if iban_parts:
        iban, currency = iban_parts
        return DetailField(DetailKind.COUNTERPARTY_IBAN, iban, currency), cursor.advance()

    if is_bic_line(line):
        return DetailField(DetailKind.COUNTERPARTY_BIC, line.strip()), cursor.advance()

    return DetailField(DetailKind.RESIDUAL, line), cursor.advance()


def classify_details(lines: Sequence[str], layout) -> List[DetailField]:
    """Classify every line of an operation's detail block."""
    fields = []
    cursor = LineCursor(tuple(lines))
    while not cursor.exhausted:
        detail, cursor = classify_detail(cursor, layout)
        fields.append(detail)
    return fields


def fold_details(fields: Sequence[DetailField]) -> OperationDetails:
    """
    Fold classified detail fields into operation attributes.

    Later non-empty values replace earlier ones. Residual lines fill the
    counterparty name, then its address, then additional details.
    """
    details = OperationDetails()
    residual = []

    for detail in fields:
        if detail.kind is DetailKind.EXECUTION_DATE:
            details.execution_date = normalize_date(detail.value)
        elif detail.kind is DetailKind.COMMUNICATION:
            details.communication = detail.value or details.communication
        elif detail.kind is DetailKind.BANK_REFERENCE:
            details.bank_reference = detail.value or details.bank_reference
        elif detail.kind is DetailKind.ORDER_REFERENCE:
            details.order_reference = detail.value or details.order_reference
        elif detail.kind is DetailKind.COUNTERPARTY_IBAN:
            details.counterparty_account = detail.value
            details.counterparty_currency = detail.currency or details.counterparty_currency
        elif detail.kind is DetailKind.COUNTERPARTY_BIC:
            details.counterparty_bic = detail.value
        else:
            residual.append(detail.value)

    if residual:
        details.counterparty_name = residual.pop(0)
    if residual:
        details.counterparty_address = residual.pop(0)
    details.additional_details.extend(residual)

    return details


def parse_detail_lines(lines: Sequence[str], layout) -> OperationDetails:
    return fold_details(classify_details(lines, layout))
