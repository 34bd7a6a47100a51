# chat_ledger/dispatcher.py
import logging
from dataclasses import dataclass
from datetime import date
from enum import Enum
from typing import Callable, Dict, Optional

from chat_ledger import reports
from chat_ledger.access import AccessList
from chat_ledger.core.errors import AccessDenied, InvalidDate, LedgerError, TransactionNotFound
from chat_ledger.core.models import Kind
from chat_ledger.core.validator import validate_date_format
from chat_ledger.messages import MSG_INTENT_NOT_RECOGNIZED, failure
from chat_ledger.operations import TransactionService

logger = logging.getLogger(__name__)


class Intent(str, Enum):
    ADD_SPENDING = "ADD_SPENDING"
    ADD_INCOME = "ADD_INCOME"
    GET_REPORT = "GET_REPORT"
    DELETE_TRANSACTION = "DELETE_TRANSACTION"
    UPDATE_TRANSACTION = "UPDATE_TRANSACTION"
    UNKNOWN = "UNKNOWN"

    @classmethod
    def parse(cls, raw) -> "Intent":
        try:
            return cls(str(raw or "").strip().upper())
        except ValueError:
            return cls.UNKNOWN


@dataclass
class DispatchResult:
    success: bool
    message: str


class _Refused(Exception):
    """Raised by a handler when a presence check fails."""


class Dispatcher:
    """
    Maps an ``{intent, payload}`` pair onto one transaction operation.

    Handlers only check that the fields they need are present; semantic
    checks happen in the validator. Every failure, expected or not, comes
    back as ``DispatchResult(success=False, ...)``.
    """

    ACTIONS = {
        Intent.ADD_SPENDING: "add spending",
        Intent.ADD_INCOME: "add income",
        Intent.GET_REPORT: "generate report",
        Intent.DELETE_TRANSACTION: "delete transaction",
        Intent.UPDATE_TRANSACTION: "update transaction",
    }

    def __init__(self, service: TransactionService, access: AccessList, locale: str = "id"):
        self.service = service
        self.access = access
        self.locale = locale
        self._handlers: Dict[Intent, Callable[[dict], str]] = {
            Intent.ADD_SPENDING: lambda p: self._add(p, Kind.SPENDING, "expenseName"),
            Intent.ADD_INCOME: lambda p: self._add(p, Kind.INCOME, "incomeName"),
            Intent.GET_REPORT: self._report,
            Intent.DELETE_TRANSACTION: self._delete,
            Intent.UPDATE_TRANSACTION: self._update,
        }

    def dispatch(self, actor_id, intent, payload: Optional[dict]) -> DispatchResult:
        try:
            self.access.require(actor_id)
        except AccessDenied as exc:
            return DispatchResult(False, failure(exc.user_message()))

        parsed = Intent.parse(intent)
        handler = self._handlers.get(parsed)
        if handler is None:
            logger.info("Unrecognized intent %r", intent)
            return DispatchResult(False, MSG_INTENT_NOT_RECOGNIZED)

        action = self.ACTIONS[parsed]
        try:
            return DispatchResult(True, handler(payload or {}))
        except _Refused as exc:
            return DispatchResult(False, failure(str(exc)))
        except TransactionNotFound as exc:
            return DispatchResult(False, failure(exc.user_message()))
        except LedgerError as exc:
            logger.warning("Failed to %s: %s", action, exc)
            return DispatchResult(False, failure(f"Failed to {action}: {exc.user_message()}"))
        except Exception:
            logger.exception("Unexpected error while trying to %s", action)
            return DispatchResult(False, failure(f"Failed to {action}."))

    # -- handlers -----------------------------------------------------------

    def _date_from_offset(self, raw) -> Optional[date]:
        if raw in (None, "", 0):
            return None
        try:
            offset = int(raw)
        except (TypeError, ValueError):
            raise InvalidDate("dateOffset must be a whole number of days") from None
        return self.service.clock.offset_date(offset) if offset else None

    def _add(self, payload: dict, kind: Kind, name_key: str) -> str:
        name = payload.get(name_key) or payload.get("description")
        amount = payload.get("amount")
        if not name or not amount:
            raise _Refused(f"Missing required fields: {name_key} and amount")
        options = {
            "category": payload.get("category"),
            "tag": payload.get("tag"),
            "date": self._date_from_offset(payload.get("dateOffset")),
        }
        tx = self.service.add_legacy(name, amount, options, kind=kind)
        return reports.recorded_message(tx)

    def _report(self, payload: dict) -> str:
        start_raw, end_raw = payload.get("startDate"), payload.get("endDate")
        if not start_raw or not end_raw:
            raise _Refused("Missing required fields: startDate and endDate")
        start = date.fromisoformat(validate_date_format(start_raw))
        end = date.fromisoformat(validate_date_format(end_raw))

        report = self.service.query_range(start, end)
        if report.empty:
            return reports.empty_report_message(
                start, end, today=self.service.clock.today(), locale=self.locale
            )
        table = reports.render_table(report.transactions)
        prefix = payload.get("reportMessage")
        return f"{prefix}\n\n{table}" if prefix else table

    def _delete(self, payload: dict) -> str:
        tx_id = str(payload.get("transactionId") or "").strip()
        if len(tx_id) != 4:
            raise _Refused("Invalid transaction ID. Must be 4 characters.")
        self.service.delete(tx_id)
        return f"✅ Transaction '{tx_id}' deleted successfully."

    def _update(self, payload: dict) -> str:
        tx_id = str(payload.get("transactionId") or "").strip()
        field_name = payload.get("field")
        value = payload.get("newValue")
        if not tx_id or not field_name or value is None:
            raise _Refused("Missing required fields: transactionId, field, newValue")
        self.service.update_field(tx_id, field_name, str(value))
        return f"✅ Transaction '{tx_id}' updated successfully."
