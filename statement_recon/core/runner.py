"""
Statement parsing: header extraction and the operation loop.
"""
import re
import time
from dataclasses import dataclass, field
from datetime import date, datetime, timezone
from decimal import Decimal
from pathlib import PurePath
from typing import Iterable, List, Optional, Tuple
import logging

from .anchors import StatementHeader, extract_header, locate_operations_header
from .cursor import LineCursor
from .detectors import DEFAULT_TEMPLATE_ID, StatementLayout, TemplateDetector
from .details import awaits_next_line_value, parse_detail_lines
from .lines import normalize_lines
from .normalize import (
    VALUE_LINE_REGEX, build_file_safe_name, infer_value_date, normalize_date, normalize_signed_money,
)
from ..models.schema import (
    Account, Balance, Balances, Counterparty, Operation, RawDetails, Statement, StatementSource,
)

logger = logging.getLogger(__name__)

OPERATION_LINE_REGEX = re.compile(r'^(0\d{3})\s+(.+)$')
VALUE_LINE_MISSING = "value line missing"


@dataclass
class ValueLine:
    """Settlement information read from an operation's value line."""
    value_date: Optional[date] = None
    amount: Optional[Decimal] = None
    direction: Optional[str] = None


@dataclass
class OperationBlock:
    """Lines belonging to one operation before interpretation."""
    sequence: str
    title: str
    booking_date: Optional[date]
    detail_lines: List[str] = field(default_factory=list)
    value_line: Optional[str] = None


def is_value_line(line: str) -> bool:
    return bool(VALUE_LINE_REGEX.match(line))


def is_operation_line(line: str) -> bool:
    return bool(OPERATION_LINE_REGEX.match(line))


def parse_value_line(line: Optional[str], booking_date: Optional[date] = None) -> ValueLine:
    """
    Interpret "DD-MM[-YYYY] <amount> <sign>".

    Args:
        line: Value line text, or None when the operation has none
        booking_date: Booking-date context used when the year is omitted

    Returns:
        ValueLine; all fields None when the line is missing or malformed
    """
    match = VALUE_LINE_REGEX.match(line) if line else None
    if not match:
        return ValueLine()

    day, month, year, amount_text, sign = match.groups()
    amount = normalize_signed_money(amount_text, sign)
    if amount > 0:
        direction = "credit"
    elif amount < 0:
        direction = "debit"
    else:
        # An unreadable amount defaults to zero, which has no direction
        direction = None

    return ValueLine(
        value_date=infer_value_date(day, month, year, booking_date),
        amount=amount,
        direction=direction,
    )


def consume_operation_block(cursor: LineCursor, layout: StatementLayout,
                            booking_date: Optional[date]) -> Tuple[OperationBlock, Optional[date], LineCursor]:
    """
    Consume one operation starting at its opening line.

    The detail block ends at a value line (consumed), the next operation
    line or a footer marker. Date lines inside the block update the
    booking-date context unless they follow a bare detail label.

    Returns:
        (block, booking-date context after the block, cursor after the block)
    """
    sequence, title = OPERATION_LINE_REGEX.match(cursor.current).groups()
    block = OperationBlock(sequence=sequence, title=title, booking_date=booking_date)
    cursor = cursor.advance()

    while not cursor.exhausted:
        line = cursor.current
        if layout.is_footer(line) or is_operation_line(line):
            break
        if layout.is_continuation(line):
            cursor = cursor.advance()
            continue
        context_date = normalize_date(line)
        # A date printed under a bare label is that field's value, not booking context
        if context_date and not (block.detail_lines and awaits_next_line_value(block.detail_lines[-1], layout)):
            booking_date = block.booking_date = context_date
            cursor = cursor.advance()
            continue
        if is_value_line(line):
            block.value_line = line
            return block, booking_date, cursor.advance()

        block.detail_lines.append(line)
        cursor = cursor.advance()

    value_line, cursor = consume_fallback_value_line(cursor, layout)
    block.value_line = value_line
    return block, booking_date, cursor


def consume_fallback_value_line(cursor: LineCursor, layout: StatementLayout) -> Tuple[Optional[str], LineCursor]:
    """Take the next substantive line if it is value-line shaped."""
    cursor = cursor.skip_while(layout.is_continuation)
    if not cursor.exhausted and is_value_line(cursor.current):
        return cursor.current, cursor.advance()
    return None, cursor


def build_operation(block: OperationBlock, layout: StatementLayout,
                    currency: Optional[str] = None) -> Operation:
    details = parse_detail_lines(block.detail_lines, layout)
    value = parse_value_line(block.value_line, block.booking_date)

    anomalies = []
    if block.value_line is None:
        anomalies.append(VALUE_LINE_MISSING)
        logger.warning(f"Operation {block.sequence} ({block.title}): {VALUE_LINE_MISSING}")

    return Operation(
        sequence=block.sequence,
        title=block.title,
        booking_date=block.booking_date or value.value_date,
        execution_date=details.execution_date,
        value_date=value.value_date,
        amount=value.amount,
        currency=currency,
        direction=value.direction,
        communication=details.communication,
        bank_reference=details.bank_reference,
        order_reference=details.order_reference,
        counterparty=Counterparty(
            account=details.counterparty_account,
            currency=details.counterparty_currency,
            bic=details.counterparty_bic,
            name=details.counterparty_name,
            address=details.counterparty_address,
        ),
        additional_details=details.additional_details,
        raw_details=RawDetails(
            detail_lines=block.detail_lines,
            value_line=block.value_line,
            anomalies=anomalies,
        ),
    )


def consume_operations(cursor: LineCursor, layout: StatementLayout,
                       booking_date: Optional[date] = None,
                       currency: Optional[str] = None) -> Tuple[List[Operation], LineCursor]:
    """
    Run the operation loop until a footer marker or the end of the lines.

    Returns:
        (operations, cursor at the footer or end)
    """
    operations = []

    while not cursor.exhausted:
        line = cursor.current
        if layout.is_footer(line):
            break
        if layout.is_continuation(line):
            cursor = cursor.advance()
            continue

        context_date = normalize_date(line)
        if context_date:
            booking_date = context_date
            cursor = cursor.advance()
            continue

        if not is_operation_line(line):
            cursor = cursor.advance()
            continue

        block, booking_date, cursor = consume_operation_block(cursor, layout, booking_date)
        operations.append(build_operation(block, layout, currency))

    return operations, cursor


def parse_operations(lines: Iterable[str], layout: Optional[StatementLayout] = None,
                     booking_date: Optional[date] = None,
                     currency: Optional[str] = None) -> List[Operation]:
    """
    Extract operations from lines that follow an operations header.

    Args:
        lines: Statement lines (normalized on the way in)
        layout: Statement layout, the default template when omitted
        booking_date: Initial booking-date context
        currency: Account currency applied to every operation

    Returns:
        List of Operation objects
    """
    layout = layout or TemplateDetector().get_layout(DEFAULT_TEMPLATE_ID)
    normalized = normalize_lines(lines)
    operations, _ = consume_operations(LineCursor(normalized.lines), layout, booking_date, currency)
    return operations


def build_statement_id(iban: Optional[str], statement_year: Optional[int],
                       statement_number: Optional[int], entry_name: Optional[str] = None,
                       origin_path: Optional[str] = None) -> str:
    """
    Stable statement key.

    "<last 6 IBAN chars>-<year>-<3-digit number>" when the title is known,
    else a file-safe name from the source, else a timestamp.
    """
    if statement_year and statement_number is not None:
        account_segment = iban[-6:] if iban else "account"
        return f"{account_segment}-{statement_year}-{statement_number:03d}"
    for name in (entry_name, origin_path):
        if name:
            return build_file_safe_name(PurePath(name).stem)
    return f"statement-{int(time.time() * 1000)}"


class StatementParser:
    """Main parser class that turns statement lines into a Statement."""

    def __init__(self, template_id: str = DEFAULT_TEMPLATE_ID, layout: Optional[StatementLayout] = None):
        self.template_id = template_id
        self.layout = layout or TemplateDetector().get_layout(template_id)

    def parse(self, lines: Iterable[str], source: Optional[StatementSource] = None) -> Statement:
        """
        Parse one statement.

        Args:
            lines: Extracted text lines of the document
            source: Where the lines came from

        Returns:
            Statement object

        Raises:
            ParseError: when the account anchor or operations header is missing
        """
        source = source or StatementSource(type="text")
        normalized = normalize_lines(lines)
        cursor = LineCursor(normalized.lines)

        header = extract_header(cursor, self.layout)
        for anomaly in header.anomalies:
            logger.info(f"{source.origin_path or 'statement'}: {anomaly}")

        table = locate_operations_header(cursor, self.layout)
        operations, _ = consume_operations(table, self.layout, currency=header.currency)
        logger.debug(f"Parsed {len(operations)} operation(s) for account {header.iban}")

        return Statement(
            statement_id=build_statement_id(
                header.iban, header.statement_year, header.statement_number,
                source.entry_name, source.origin_path,
            ),
            generated_at=datetime.now(timezone.utc),
            source=source,
            account=self._build_account(header),
            balances=Balances(
                opening=Balance(balance_date=header.opening_balance[0], amount=header.opening_balance[1]),
                closing=Balance(balance_date=header.closing_balance[0], amount=header.closing_balance[1]),
            ),
            statement_number=header.statement_number,
            statement_year=header.statement_year,
            operations=operations,
            raw_statement_lines=list(normalized.raw_lines),
        )

    @staticmethod
    def _build_account(header: StatementHeader) -> Account:
        return Account(
            iban=header.iban,
            name=header.account_name,
            currency=header.currency,
            bic=header.bic,
        )


def parse_statement(lines: Iterable[str], source: Optional[StatementSource] = None,
                    template_id: str = DEFAULT_TEMPLATE_ID) -> Statement:
    """
    Parse the text lines of one bank statement.

    Args:
        lines: Extracted text lines
        source: Document origin
        template_id: Layout template to use

    Returns:
        Statement object
    """
    parser = StatementParser(template_id)
    return parser.parse(lines, source)
