# chat_ledger/operations.py
from __future__ import annotations

import logging
from dataclasses import dataclass, field
from datetime import date, timedelta
from typing import Callable, Dict, Iterable, List, Optional

from chat_ledger.core import validator
from chat_ledger.core.categorizer import CategoryResolver
from chat_ledger.core.errors import (
    DeleteVerificationFailed,
    InvalidAmount,
    InvalidDate,
    TransactionNotFound,
    UnknownField,
)
from chat_ledger.core.ids import DEFAULT_MAX_ATTEMPTS, generate_transaction_id
from chat_ledger.core.models import (
    DEFAULT_CATEGORIES,
    UNCATEGORIZED,
    Field,
    Kind,
    LocalClock,
    Transaction,
    TransactionDraft,
)
from chat_ledger.stores.base import RecordStore

logger = logging.getLogger(__name__)

FIELD_ALIASES: Dict[str, Field] = {
    "category": Field.CATEGORY,
    "cat": Field.CATEGORY,
    "tag": Field.TAG,
    "amount": Field.AMOUNT,
    "note": Field.NOTE,
    "description": Field.DESCRIPTION,
    "expensename": Field.DESCRIPTION,
    "expensesname": Field.DESCRIPTION,
    "incomename": Field.DESCRIPTION,
    "name": Field.DESCRIPTION,
    "account": Field.ACCOUNT,
}


def parse_field(raw: str) -> Field:
    """Map a wire-level field name onto :class:`Field`."""
    key = str(raw or "").strip().lower()
    if key not in FIELD_ALIASES:
        raise UnknownField(
            f"Unknown field: {raw}. Allowed: category, tag, amount, note, expenseName, account"
        )
    return FIELD_ALIASES[key]


@dataclass
class Report:
    start: date
    end: date
    transactions: List[Transaction] = field(default_factory=list)

    @property
    def total(self) -> int:
        return sum(tx.amount for tx in self.transactions)

    @property
    def empty(self) -> bool:
        return not self.transactions


class TransactionService:
    """
    Add, update, delete and query transactions against one record store.

    Methods raise :class:`~chat_ledger.core.errors.LedgerError` subclasses;
    nothing is written to the store unless validation succeeded first.
    """

    def __init__(
        self,
        store: RecordStore,
        resolver: CategoryResolver,
        categories: Iterable[str] = DEFAULT_CATEGORIES,
        clock: Optional[LocalClock] = None,
        id_strategy: str = "random",
        id_max_attempts: int = DEFAULT_MAX_ATTEMPTS,
        id_factory: Optional[Callable[[RecordStore], str]] = None,
    ):
        self.store = store
        self.resolver = resolver
        self.categories = list(categories)
        self.clock = clock or LocalClock()
        self._id_factory = id_factory or (
            lambda s: generate_transaction_id(s, strategy=id_strategy, max_attempts=id_max_attempts)
        )
        self._field_validators: Dict[Field, Callable] = {
            Field.CATEGORY: lambda v: validator.validate_category(v, self.categories),
            Field.TAG: validator.validate_tag,
            Field.AMOUNT: validator.validate_amount,
            Field.NOTE: validator.validate_note,
            Field.DESCRIPTION: validator.validate_description,
            Field.ACCOUNT: validator.validate_account,
        }

    # -- reads --------------------------------------------------------------

    def get(self, transaction_id: str) -> Transaction:
        row = self.store.lookup_by_key(transaction_id)
        if row is None:
            raise TransactionNotFound(transaction_id)
        return Transaction.from_row(row.data)

    def _all(self) -> List[Transaction]:
        out = []
        for row in self.store.rows():
            try:
                out.append(Transaction.from_row(row.data))
            except (KeyError, ValueError) as exc:
                logger.warning("Skipping unreadable row %s: %s", row.index, exc)
        return out

    def query_range(self, start: date, end: date, kind: Optional[Kind] = Kind.SPENDING) -> Report:
        if start > end:
            raise InvalidDate("The start date cannot be later than the end date.")
        txs = [
            tx for tx in self._all()
            if start <= tx.date <= end and (kind is None or tx.kind == kind)
        ]
        txs.sort(key=lambda tx: tx.date)
        logger.debug("Range %s..%s matched %d transaction(s)", start, end, len(txs))
        return Report(start=start, end=end, transactions=txs)

    def query_last_days(self, days: int, kind: Optional[Kind] = Kind.SPENDING) -> Report:
        if days <= 0:
            raise InvalidAmount("Number of days must be greater than 0")
        today = self.clock.today()
        try:
            start = today - timedelta(days=days - 1)
        except OverflowError:
            raise InvalidDate(f"Cannot report {days} days back from {today}.") from None
        return self.query_range(start, today, kind)

    def recent(self, count: int = 10, kind: Optional[Kind] = Kind.SPENDING) -> List[Transaction]:
        txs = [tx for tx in self._all() if kind is None or tx.kind == kind]
        latest = txs[-count:] if count > 0 else []
        return sorted(latest, key=lambda tx: tx.date)

    def last_transaction_id(self) -> Optional[str]:
        rows = self.store.rows()
        if not rows:
            return None
        return str(rows[-1].data.get("id") or "").strip() or None

    # -- writes -------------------------------------------------------------

    def add(self, draft: TransactionDraft, infer_category: bool = True) -> Transaction:
        """Validate and append a new transaction.

        With ``infer_category`` off, a draft without a category is stored as
        ``Uncategorized`` instead of going through the resolver.
        """
        clean = validator.validate_record(
            {
                "description": draft.description,
                "amount": draft.amount,
                "category": draft.category,
                "tag": draft.tag,
                "note": draft.note,
                "date": draft.date,
                "account": draft.account,
            },
            self.categories,
        )
        category, tag = clean["category"], clean["tag"]
        if not draft.category and infer_category:
            resolved = self.resolver.resolve(clean["description"])
            category = resolved.category or UNCATEGORIZED
            tag = tag or resolved.tag

        tx = Transaction(
            id=self._id_factory(self.store),
            date=date.fromisoformat(clean["date"]) if clean["date"] else self.clock.today(),
            description=clean["description"],
            kind=Kind(draft.kind),
            amount=clean["amount"],
            category=category,
            tag=tag,
            account=clean["account"],
            note=clean["note"],
        )
        self.store.append(tx.to_row())
        logger.info("Recorded %s %s: %s %d", tx.kind.value, tx.id, tx.description, tx.amount)
        return tx

    def add_legacy(self, name: str, amount, options: Optional[dict] = None,
                   kind: Kind = Kind.SPENDING) -> Transaction:
        """Adapter for the positional ``(name, amount, {category, tag, ...})`` shape."""
        opts = options or {}
        tx_date = opts.get("date")
        if isinstance(tx_date, date):
            tx_date = tx_date.isoformat()
        return self.add(TransactionDraft(
            description=name,
            amount=amount,
            kind=kind,
            category=opts.get("category") or None,
            tag=opts.get("tag") or None,
            note=opts.get("note") or None,
            account=opts.get("account") or None,
            date=tx_date or None,
        ))

    def update_field(self, transaction_id: str, field_name, value) -> Transaction:
        target = field_name if isinstance(field_name, Field) else parse_field(field_name)
        clean = self._field_validators[target](value)
        row = self.store.lookup_by_key(transaction_id)
        if row is None:
            raise TransactionNotFound(transaction_id)
        self.store.overwrite_range(row.index, {target.value: clean})
        self.store.flush()
        logger.info("Updated %s of %s", target.value, transaction_id)
        return self.get(transaction_id)

    def delete(self, transaction_id: str) -> None:
        row = self.store.lookup_by_key(transaction_id)
        if row is None:
            raise TransactionNotFound(transaction_id)
        before = self.store.row_count()

        self.store.delete_row(row.index)
        self.store.flush()

        after = self.store.row_count()
        if after >= before:
            logger.error(
                "Delete verification failed for %s: row count unchanged (%d)",
                transaction_id, before,
            )
            raise DeleteVerificationFailed(
                "Failed to delete transaction. Row may be protected or locked."
            )
        if self.store.lookup_by_key(transaction_id) is not None:
            logger.error("Delete verification failed for %s: record still present", transaction_id)
            raise DeleteVerificationFailed(
                "Transaction was not actually deleted. Data integrity error."
            )
        logger.info("Deleted transaction %s", transaction_id)
