"""
Pydantic models for parsed bank statements, the operation index and invoice matches.
"""
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Annotated, List, Optional, Dict, Any, Literal

from pydantic import BaseModel, ConfigDict, Field, PlainSerializer, field_validator, model_validator
from pydantic.alias_generators import to_camel


# Amounts stay Decimal in memory and become plain JSON numbers on disk.
Money = Annotated[Decimal, PlainSerializer(float, return_type=float, when_used="json")]

SEQUENCE_PATTERN = re.compile(r"^0\d{3}$")

STATUS_LABELS = {
    1: "Draft",
    2: "Sent",
    3: "Viewed",
    4: "Approved",
    5: "Partial",
    6: "Paid",
}
OPEN_STATUS_IDS = {1, 2, 3, 4, 5}


class CamelModel(BaseModel):
    """Base model serialised with camelCase keys."""
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)


class Account(CamelModel):
    """Statement account identity."""
    iban: str
    name: Optional[str] = None
    currency: Optional[str] = None
    bic: Optional[str] = None


class Balance(CamelModel):
    balance_date: Optional[date] = Field(None, alias="date")
    amount: Optional[Money] = None


class Balances(CamelModel):
    opening: Balance = Field(default_factory=Balance)
    closing: Balance = Field(default_factory=Balance)


class Counterparty(CamelModel):
    """The other side of an operation, as printed in its detail block."""
    account: Optional[str] = None
    currency: Optional[str] = None
    bic: Optional[str] = None
    name: Optional[str] = None
    address: Optional[str] = None


class RawDetails(CamelModel):
    """Lines an operation was built from, kept for audit."""
    detail_lines: List[str] = Field(default_factory=list)
    value_line: Optional[str] = None
    anomalies: List[str] = Field(default_factory=list)


class OperationFields(CamelModel):
    """Fields shared by statement operations and index entries."""
    sequence: str
    title: str
    booking_date: Optional[date] = None
    execution_date: Optional[date] = None
    value_date: Optional[date] = None
    amount: Optional[Money] = None
    currency: Optional[str] = None
    direction: Optional[Literal["credit", "debit"]] = None
    communication: Optional[str] = None
    bank_reference: Optional[str] = None
    order_reference: Optional[str] = None
    counterparty: Counterparty = Field(default_factory=Counterparty)
    additional_details: List[str] = Field(default_factory=list)

    @field_validator("sequence")
    @classmethod
    def validate_sequence(cls, v):
        if not SEQUENCE_PATTERN.match(v):
            raise ValueError(f"Operation sequence must be 4 digits starting with 0: {v!r}")
        return v

    @model_validator(mode="after")
    def validate_direction(self):
        """Credit operations carry a positive amount, debits a negative one."""
        if self.amount is None or self.direction is None:
            return self
        if (self.direction == "credit") != (self.amount > 0):
            raise ValueError(
                f"Direction {self.direction} does not match amount {self.amount} "
                f"(operation {self.sequence})"
            )
        return self

    @property
    def matching_date(self) -> Optional[date]:
        """Settlement date when known, else the booking date."""
        return self.value_date or self.booking_date


class Operation(OperationFields):
    """One line item of a statement."""
    raw_details: RawDetails = Field(default_factory=RawDetails)


class StatementSource(CamelModel):
    type: Literal["pdf", "zip", "text"]
    origin_path: Optional[str] = None
    entry_name: Optional[str] = None


class Statement(CamelModel):
    """Complete parsed statement, written as one JSON artifact."""
    statement_id: str
    generated_at: datetime
    source: StatementSource
    account: Account
    balances: Balances = Field(default_factory=Balances)
    statement_number: Optional[int] = None
    statement_year: Optional[int] = None
    operations: List[Operation] = Field(default_factory=list)
    raw_statement_lines: List[str] = Field(default_factory=list)

    @field_validator("operations")
    @classmethod
    def validate_unique_sequences(cls, v):
        seen = set()
        for operation in v:
            if operation.sequence in seen:
                raise ValueError(f"Duplicate operation sequence: {operation.sequence}")
            seen.add(operation.sequence)
        return v


class OperationIndexEntry(OperationFields):
    """An operation denormalised with a reference to its statement."""
    statement_id: str
    statement_file: Optional[str] = None
    account_iban: Optional[str] = None
    account_name: Optional[str] = None
    statement_year: Optional[int] = None
    statement_number: Optional[int] = None

    @property
    def key(self) -> str:
        return f"{self.statement_id}:{self.sequence}"


class OperationIndex(CamelModel):
    generated_at: datetime
    operations: List[OperationIndexEntry] = Field(default_factory=list)


def _parse_service_date(value: Any) -> Optional[date]:
    if not value:
        return None
    try:
        return date.fromisoformat(str(value)[:10])
    except ValueError:
        return None


def _parse_service_decimal(value: Any) -> Optional[Decimal]:
    if value is None or value == "":
        return None
    try:
        return Decimal(str(value))
    except InvalidOperation:
        return None


class Invoice(CamelModel):
    """Invoice as supplied by the invoicing service. Read-only here."""
    id: Optional[str] = None
    number: Optional[str] = None
    amount: Optional[Money] = None
    balance: Money = Decimal("0")
    invoice_date: Optional[date] = None
    due_date: Optional[date] = None
    client_name: Optional[str] = None
    status_id: Optional[int] = None

    @field_validator("id", "number", mode="before")
    @classmethod
    def coerce_identifier(cls, v):
        if v is None:
            return v
        return str(v)

    @field_validator("balance", mode="before")
    @classmethod
    def default_balance(cls, v):
        return Decimal("0") if v is None or v == "" else v

    @classmethod
    def from_service_payload(cls, payload: Dict[str, Any]) -> "Invoice":
        """Build an invoice from the invoicing service's raw JSON record."""
        client = payload.get("client") or {}
        if isinstance(client, dict) and "data" in client:
            client = client.get("data") or {}
        status_id = payload.get("invoice_status_id") or payload.get("status_id")
        return cls(
            id=payload.get("id"),
            number=payload.get("invoice_number") or payload.get("number"),
            amount=_parse_service_decimal(payload.get("amount")),
            balance=_parse_service_decimal(payload.get("balance")) or Decimal("0"),
            invoice_date=_parse_service_date(payload.get("invoice_date") or payload.get("date")),
            due_date=_parse_service_date(payload.get("due_date")),
            client_name=client.get("display_name") or client.get("name") or None,
            status_id=int(status_id) if status_id else None,
        )

    @property
    def display_number(self) -> str:
        return self.number or self.id or "?"

    @property
    def reference_date(self) -> Optional[date]:
        return self.invoice_date or self.due_date

    @property
    def status_label(self) -> str:
        if self.status_id is None:
            return "unknown"
        return STATUS_LABELS.get(self.status_id, f"status:{self.status_id}")

    @property
    def is_open(self) -> bool:
        """Unpaid or partially paid; invoices without a status count as open."""
        if self.status_id is not None and self.status_id not in OPEN_STATUS_IDS:
            return False
        return self.balance > Decimal("0.0001")


class MatchTarget(CamelModel):
    """An amount an incoming payment is expected to equal."""
    label: str
    value: Money


class MatchCandidate(CamelModel):
    target_label: str
    operation: OperationIndexEntry
    days_diff: Optional[int] = None
    ref_score: int = Field(0, ge=0, le=3)
    name_score: int = Field(0, ge=0)
    confidence: int = Field(..., ge=10, le=99)


class InvoiceMatch(CamelModel):
    invoice: Invoice
    candidates: List[MatchCandidate] = Field(default_factory=list)

    @property
    def matched(self) -> bool:
        return bool(self.candidates)


class ReconciliationReport(CamelModel):
    """Matcher results for a batch of invoices."""
    generated_at: datetime
    max_days: int
    results: List[InvoiceMatch] = Field(default_factory=list)

    @property
    def matched(self) -> List[InvoiceMatch]:
        return [result for result in self.results if result.matched]

    @property
    def unmatched(self) -> List[InvoiceMatch]:
        return [result for result in self.results if not result.matched]
