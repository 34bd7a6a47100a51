# chat_ledger/core/models.py
from dataclasses import dataclass, field
from datetime import date, datetime, timedelta, timezone
from enum import Enum
from typing import Callable, Optional

UNCATEGORIZED = "Uncategorized"
NOT_FOUND = "Not Found"

DEFAULT_CATEGORIES = (
    "Accounts Receivable",
    "Body Care",
    "Cigarette",
    "Clothing",
    "Debt",
    "Donation",
    "Emergency Fund",
    "Family",
    "Food and Drink",
    "Healthcare",
    "Housing",
    "Instalment",
    "Lifestyle",
    "Savings",
    "Self Improvements",
    "Stock Investment",
    "Supplies",
    "Tax",
    "Transportation",
    "Utilities",
)


class Kind(str, Enum):
    SPENDING = "spending"
    INCOME = "income"


class Field(str, Enum):
    """Columns a transaction may have rewritten after creation."""

    CATEGORY = "category"
    TAG = "tag"
    AMOUNT = "amount"
    NOTE = "note"
    DESCRIPTION = "description"
    ACCOUNT = "account"


@dataclass
class Transaction:
    id: str
    date: date
    description: str
    kind: Kind
    amount: int
    category: str = UNCATEGORIZED
    tag: str = ""
    account: str = ""
    note: str = ""

    def to_row(self) -> dict:
        return {
            "id": self.id,
            "date": self.date.isoformat(),
            "description": self.description,
            "kind": self.kind.value,
            "category": self.category,
            "amount": self.amount,
            "tag": self.tag,
            "account": self.account,
            "note": self.note,
        }

    @classmethod
    def from_row(cls, data: dict) -> "Transaction":
        raw_date = data.get("date")
        if isinstance(raw_date, datetime):
            tx_date = raw_date.date()
        elif isinstance(raw_date, date):
            tx_date = raw_date
        else:
            tx_date = date.fromisoformat(str(raw_date).strip())
        return cls(
            id=str(data["id"]),
            date=tx_date,
            description=str(data.get("description") or ""),
            kind=Kind(str(data.get("kind") or Kind.SPENDING.value)),
            amount=int(float(data.get("amount") or 0)),
            category=str(data.get("category") or UNCATEGORIZED),
            tag=str(data.get("tag") or ""),
            account=str(data.get("account") or ""),
            note=str(data.get("note") or ""),
        )


@dataclass
class TransactionDraft:
    """Raw, unvalidated input for a new transaction."""

    description: object
    amount: object
    kind: Kind = Kind.SPENDING
    category: Optional[str] = None
    tag: Optional[str] = None
    note: Optional[str] = None
    account: Optional[str] = None
    date: Optional[str] = None


@dataclass
class CategoryMapping:
    description: str
    category: str
    tag: str = ""
    date_added: str = ""


@dataclass
class LocalClock:
    """Wall clock pinned to a fixed UTC offset (UTC+7 unless configured)."""

    offset_hours: int = 7
    now_fn: Callable[[], datetime] = field(default=lambda: datetime.now(timezone.utc))

    @property
    def tz(self) -> timezone:
        return timezone(timedelta(hours=self.offset_hours))

    def now(self) -> datetime:
        return self.now_fn().astimezone(self.tz)

    def today(self) -> date:
        return self.now().date()

    def offset_date(self, days: int) -> date:
        return self.today() + timedelta(days=days)
