"""
Pydantic schemas for ledger entries.

ParsedEntry is what the classifier's JSON is validated into.
Field aliases match the keys the classifier is asked to return
(isValid, vchName, partyName ...), so model_validate() can take
the decoded JSON as-is.

LedgerRow is the immutable record appended to the ledger sheet.
"""

import enum
import re
from datetime import date, datetime
from decimal import Decimal, InvalidOperation

from pydantic import BaseModel, ConfigDict, Field, field_validator

DATE_FORMAT = "%d-%m-%Y"
ACCEPTED_DATE_FORMATS = ("%d-%m-%Y", "%d/%m/%Y", "%d.%m.%Y", "%Y-%m-%d")

# Column order of the ledger sheet. LedgerRow.to_values() follows it.
LEDGER_HEADERS = [
    "Date",
    "VCh Name",
    "VCh Number",
    "Description",
    "Debit",
    "Credit",
    "Balance",
    "Party Name / Remarks",
]
BALANCE_COLUMN = LEDGER_HEADERS.index("Balance")

_AMOUNT_NOISE = re.compile(r"(?i)(rs\.?|inr|rupees?|₹|\$|,|\s)")


def today_string() -> str:
    return date.today().strftime(DATE_FORMAT)


def to_amount(value) -> Decimal:
    """
    Turn a classifier amount into a Decimal.

    Accepts numbers and strings such as "₹1,200", "Rs.200" or
    "200 rupees". Empty values mean zero.
    """
    if value is None or value == "":
        return Decimal("0")
    if isinstance(value, bool):
        raise ValueError("amount must be a number")
    if isinstance(value, (int, Decimal)):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    cleaned = _AMOUNT_NOISE.sub("", str(value))
    if not cleaned:
        return Decimal("0")
    try:
        return Decimal(cleaned)
    except InvalidOperation:
        raise ValueError(f"not an amount: {value!r}")


def to_cell(amount: Decimal):
    """Sheet-friendly number: int when whole, float otherwise."""
    if amount == amount.to_integral_value():
        return int(amount)
    return float(amount)


class EntrySide(str, enum.Enum):
    """Which column an entry's amount goes to."""
    DEBIT = "Debit"
    CREDIT = "Credit"


class ParsedEntry(BaseModel):
    """A classifier result, validated and normalized."""

    model_config = ConfigDict(populate_by_name=True, frozen=True)

    is_valid: bool = Field(default=False, alias="isValid")
    date: str = Field(default_factory=today_string)
    voucher_name: str = Field(default="", alias="vchName")
    voucher_number: str | None = Field(default=None, alias="vchNumber")
    description: str = ""
    debit: Decimal = Field(default=Decimal("0"), ge=0)
    credit: Decimal = Field(default=Decimal("0"), ge=0)
    party_name: str = Field(default="", alias="partyName")
    confidence: float = Field(default=0.0, ge=0, le=1)
    reasoning: str = ""

    @field_validator(
        "voucher_name", "description", "party_name", "reasoning", mode="before"
    )
    @classmethod
    def none_to_empty(cls, v):
        if v is None:
            return ""
        return str(v).strip()

    @field_validator("voucher_number", mode="before")
    @classmethod
    def blank_voucher_number(cls, v):
        if v is None:
            return None
        v = str(v).strip()
        return v or None

    @field_validator("debit", "credit", mode="before")
    @classmethod
    def parse_amount(cls, v) -> Decimal:
        return to_amount(v)

    @field_validator("confidence", mode="before")
    @classmethod
    def missing_confidence(cls, v):
        return 0.0 if v is None or v == "" else v

    @field_validator("date", mode="before")
    @classmethod
    def normalize_date(cls, v) -> str:
        """Normalize to DD-MM-YYYY; a missing date means today."""
        if v is None or not str(v).strip():
            return today_string()
        raw = str(v).strip()
        for fmt in ACCEPTED_DATE_FORMATS:
            try:
                return datetime.strptime(raw, fmt).strftime(DATE_FORMAT)
            except ValueError:
                continue
        raise ValueError(f"unrecognized date: {raw!r}")

    @property
    def side(self) -> EntrySide | None:
        """The single non-zero side, or None if zero or both are set."""
        if self.debit > 0 and self.credit == 0:
            return EntrySide.DEBIT
        if self.credit > 0 and self.debit == 0:
            return EntrySide.CREDIT
        return None

    @property
    def amount(self) -> Decimal:
        return self.debit if self.side == EntrySide.DEBIT else self.credit

    def is_actionable(self, threshold: float) -> bool:
        """
        The confidence gate.

        An entry may be offered for confirmation only if the classifier
        marked it valid, is at least `threshold` confident, and put the
        amount on exactly one side.
        """
        return (
            self.is_valid
            and self.confidence >= threshold
            and self.side is not None
        )


class LedgerRow(BaseModel):
    """One appended sheet row. Balance is computed, never supplied by the user."""

    model_config = ConfigDict(frozen=True)

    date: str
    voucher_name: str
    voucher_number: str
    description: str
    debit: Decimal
    credit: Decimal
    balance: Decimal
    party_name: str

    @classmethod
    def from_entry(
        cls, entry: ParsedEntry, balance: Decimal, voucher_number: str
    ) -> "LedgerRow":
        return cls(
            date=entry.date,
            voucher_name=entry.voucher_name,
            voucher_number=entry.voucher_number or voucher_number,
            description=entry.description,
            debit=entry.debit,
            credit=entry.credit,
            balance=balance,
            party_name=entry.party_name,
        )

    def to_values(self) -> list:
        """Cell values in LEDGER_HEADERS order. Zero amounts stay blank."""
        return [
            self.date,
            self.voucher_name,
            self.voucher_number,
            self.description,
            to_cell(self.debit) if self.debit else "",
            to_cell(self.credit) if self.credit else "",
            to_cell(self.balance),
            self.party_name,
        ]
