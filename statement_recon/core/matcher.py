"""
Invoice-to-payment matching and confidence scoring.
"""
import math
from dataclasses import dataclass
from datetime import date
from decimal import Decimal, ROUND_HALF_UP
from typing import Iterable, List, Optional, Sequence
import logging

from .errors import InvalidInvoiceError
from .normalize import digits_only, normalize_reference, tokenize
from ..models.schema import Invoice, MatchCandidate, MatchTarget, OperationIndex, OperationIndexEntry

logger = logging.getLogger(__name__)

DEFAULT_MAX_DAYS = 120
DEFAULT_MAX_CANDIDATES = 5
AMOUNT_TOLERANCE = Decimal("0.001")
PARTIAL_PAYMENT_THRESHOLD = Decimal("0.01")
CENT = Decimal("0.01")

INVOICE_AMOUNT_LABEL = "invoice amount"
PARTIAL_PAYMENT_LABEL = "recorded partial payment"

DATE_BONUSES = (
    (2, 30),
    (7, 25),
    (14, 22),
    (30, 15),
    (60, 10),
    (90, 6),
    (120, 4),
)
UNKNOWN_DATE_BONUS = 5
REFERENCE_BONUSES = {3: 15, 2: 12, 1: 8}
NAME_BONUSES = {2: 8, 1: 6}


@dataclass(frozen=True)
class ConfidenceInputs:
    days_diff: Optional[float]
    ref_score: int
    name_score: int
    target_label: str = INVOICE_AMOUNT_LABEL


def compute_confidence(inputs: ConfidenceInputs) -> int:
    """
    Score how likely a candidate operation pays the invoice.

    Starts at 50 and adds independent bonuses for date proximity,
    reference and name overlap, minus a penalty for partial-payment targets.

    Returns:
        Integer confidence clamped to [10, 99]
    """
    score = 50.0

    if inputs.days_diff is None:
        score += UNKNOWN_DATE_BONUS
    else:
        for limit, bonus in DATE_BONUSES:
            if inputs.days_diff <= limit:
                score += bonus
                break
        else:
            score += 1
            score -= min(10, max(0, inputs.days_diff - 120) * 0.1)

    if inputs.ref_score >= 3:
        score += REFERENCE_BONUSES[3]
    else:
        score += REFERENCE_BONUSES.get(inputs.ref_score, 0)

    if inputs.name_score >= 3:
        score += 10
    elif inputs.name_score == 0:
        score -= 2
    else:
        score += NAME_BONUSES[inputs.name_score]

    if "partial" in (inputs.target_label or "").lower():
        score -= 5

    return max(10, min(99, math.floor(score + 0.5)))


def round_currency(value: Decimal) -> Decimal:
    return Decimal(value).quantize(CENT, rounding=ROUND_HALF_UP)


def build_targets(invoice: Invoice) -> List[MatchTarget]:
    """
    Amounts a payment for this invoice may carry.

    Raises:
        InvalidInvoiceError: the invoice has no positive amount
    """
    if invoice.amount is None or invoice.amount <= 0:
        raise InvalidInvoiceError(f"Invoice {invoice.display_number} has no usable amount")

    targets = [MatchTarget(label=INVOICE_AMOUNT_LABEL, value=round_currency(invoice.amount))]
    paid_amount = invoice.amount - invoice.balance
    if paid_amount > PARTIAL_PAYMENT_THRESHOLD:
        targets.append(MatchTarget(label=PARTIAL_PAYMENT_LABEL, value=round_currency(paid_amount)))
    return targets


def build_reference_string(entry: OperationIndexEntry) -> str:
    return normalize_reference(" ".join(
        part for part in (entry.communication, entry.order_reference, entry.bank_reference) if part
    ))


def compute_reference_score(invoice_number: Optional[str], entry: OperationIndexEntry) -> int:
    """
    3 when the invoice number's digits appear in the operation references,
    2 when its normalized form does, 0 otherwise.
    """
    if not invoice_number:
        return 0

    reference = build_reference_string(entry)
    number_digits = digits_only(invoice_number)
    if number_digits and number_digits in reference:
        return 3
    normalized_number = normalize_reference(invoice_number)
    if normalized_number and normalized_number in reference:
        return 2
    return 0


def compute_name_score(client_name: Optional[str], counterparty_name: Optional[str]) -> int:
    """Number of distinct tokens shared by the client and counterparty names."""
    client_tokens = set(tokenize(client_name))
    counterparty_tokens = set(tokenize(counterparty_name))
    if not client_tokens or not counterparty_tokens:
        return 0
    return len(client_tokens & counterparty_tokens)


def days_between(first: Optional[date], second: Optional[date]) -> Optional[int]:
    if first is None or second is None:
        return None
    return abs((first - second).days)


def candidate_sort_key(candidate: MatchCandidate):
    days = math.inf if candidate.days_diff is None else candidate.days_diff
    return days, -candidate.ref_score, -candidate.name_score


class InvoiceMatcher:
    """Finds statement operations that may settle an invoice."""

    def __init__(self, operations: Sequence[OperationIndexEntry], max_days: int = DEFAULT_MAX_DAYS,
                 max_candidates: int = DEFAULT_MAX_CANDIDATES):
        self.operations = list(operations)
        self.max_days = max_days
        self.max_candidates = max_candidates

    @classmethod
    def from_index(cls, index: OperationIndex, **kwargs) -> "InvoiceMatcher":
        """Matcher over the credit operations of an index that carry an amount."""
        return cls(load_credit_operations(index), **kwargs)

    def match(self, invoice: Invoice) -> List[MatchCandidate]:
        """
        Rank candidate operations for one invoice.

        Returns:
            Up to max_candidates candidates, best first; empty when nothing matches

        Raises:
            InvalidInvoiceError: the invoice has no positive amount
        """
        invoice_date = invoice.reference_date
        candidates = []
        seen = set()

        for target in build_targets(invoice):
            for entry in self.operations:
                if entry.amount is None or entry.key in seen:
                    continue
                if abs(round_currency(entry.amount) - target.value) > AMOUNT_TOLERANCE:
                    continue

                days = days_between(invoice_date, entry.matching_date)
                if days is not None and days > self.max_days:
                    continue

                ref_score = compute_reference_score(invoice.number, entry)
                name_score = compute_name_score(invoice.client_name, entry.counterparty.name)
                candidates.append(MatchCandidate(
                    target_label=target.label,
                    operation=entry,
                    days_diff=days,
                    ref_score=ref_score,
                    name_score=name_score,
                    confidence=compute_confidence(ConfidenceInputs(days, ref_score, name_score, target.label)),
                ))
                seen.add(entry.key)

        candidates.sort(key=candidate_sort_key)
        logger.debug(f"Invoice {invoice.display_number}: {len(candidates)} candidate(s)")
        return candidates[:self.max_candidates]


def load_credit_operations(index: OperationIndex) -> List[OperationIndexEntry]:
    return [
        entry for entry in index.operations
        if entry.direction == "credit" and entry.amount is not None
    ]


def find_matches_for_invoice(invoice: Invoice, operations: Iterable[OperationIndexEntry],
                             max_days: int = DEFAULT_MAX_DAYS,
                             max_candidates: int = DEFAULT_MAX_CANDIDATES) -> List[MatchCandidate]:
    """
    Rank index operations that may pay an invoice.

    Args:
        invoice: Invoice to settle
        operations: Index entries to search
        max_days: Date window in days
        max_candidates: Maximum number of candidates returned

    Returns:
        Ranked MatchCandidate list, empty when nothing qualifies
    """
    matcher = InvoiceMatcher(list(operations), max_days=max_days, max_candidates=max_candidates)
    return matcher.match(invoice)
