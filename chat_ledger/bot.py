# chat_ledger/bot.py
import logging
from typing import Callable, Dict, Optional

from chat_ledger import reports
from chat_ledger.access import AccessList
from chat_ledger.commands import Command, FlagFormatError, parse_command, parse_update_flags
from chat_ledger.core.categorizer import CategoryResolver
from chat_ledger.core.errors import AccessDenied, LedgerError
from chat_ledger.core.models import Kind, LocalClock, TransactionDraft
from chat_ledger.dispatcher import Dispatcher, Intent
from chat_ledger.messages import (
    KB_MAIN_MENU,
    KB_SETTINGS_MENU,
    KB_TRANSACTION_ENTRY,
    KB_TRANSACTION_MENU,
    MSG_EXIT,
    MSG_HELP,
    MSG_INTERNAL_ERROR,
    MSG_NO_TRANSACTIONS,
    MSG_PONG,
    MSG_RECEIPT_LOW_CONFIDENCE,
    MSG_SETTINGS,
    MSG_START,
    MSG_UNKNOWN,
    MSG_UPDATE_COMMANDS,
    MSG_WHOAMI,
    Reply,
    failure,
)
from chat_ledger.operations import TransactionService
from chat_ledger.stores import get_store
from chat_ledger.wizard import WizardContext, WizardEngine, default_wizards

logger = logging.getLogger(__name__)

WIZARD_BUTTONS = {
    "add_spending": "add_spending",
    "add_income": "add_income",
    "view_spending": "view_spending",
    "add_category": "add_category",
}


class LedgerBot:
    """
    Routes one inbound chat event to a reply. Order: access check, wizard
    exit and entry, active wizard session, commands, then the classifier
    for free text.
    """

    def __init__(
        self,
        service: TransactionService,
        access: AccessList,
        classifier=None,
        locale: str = "id",
        session_ttl_minutes: int = 30,
        receipt_min_confidence: float = 0.6,
    ):
        self.service = service
        self.resolver: CategoryResolver = service.resolver
        self.clock: LocalClock = service.clock
        self.access = access
        self.classifier = classifier
        self.locale = locale
        self.receipt_min_confidence = receipt_min_confidence
        self.dispatcher = Dispatcher(service, access, locale=locale)
        self.wizards = WizardEngine(
            WizardContext(service, self.resolver, service.categories, self.clock),
            default_wizards(locale),
            ttl_minutes=session_ttl_minutes,
        )
        self._commands: Dict[str, Callable[..., Reply]] = {
            "start": self._on_start,
            "help": lambda actor, cmd, name: Reply(MSG_HELP, KB_MAIN_MENU, "HTML"),
            "ping": lambda actor, cmd, name: Reply(MSG_PONG),
            "whoiam": lambda actor, cmd, name: Reply(MSG_WHOAMI.format(name=name, chat_id=actor)),
            "update": self._on_update,
            "spending": lambda actor, cmd, name: self._on_add(cmd, Kind.SPENDING, name),
            "income": lambda actor, cmd, name: self._on_add(cmd, Kind.INCOME, name),
            "delete": lambda actor, cmd, name: self._dispatch(
                actor, Intent.DELETE_TRANSACTION, {"transactionId": cmd.args["id"]}
            ),
            "transactions": self._on_transactions,
            "delete_last": self._on_delete_last,
            "settings": lambda actor, cmd, name: Reply(MSG_SETTINGS, KB_SETTINGS_MENU),
            "main_menu": lambda actor, cmd, name: Reply("🏠 Main menu", KB_MAIN_MENU),
        }

    @classmethod
    def from_config(cls, config: dict, classifier=None) -> "LedgerBot":
        transactions = get_store(config["store"], config, "transactions")
        mappings = get_store(config["store"], config, "mappings")
        categories = config.get("categories") or []
        clock = LocalClock(offset_hours=int(config.get("timezone_offset_hours", 7)))
        if classifier is None and config.get("classifier", {}).get("enabled"):
            from chat_ledger.ai import Classifier
            classifier = Classifier()
        resolver = CategoryResolver(mappings, classifier, categories, clock)
        service = TransactionService(
            transactions,
            resolver,
            categories,
            clock,
            id_strategy=config.get("id_strategy", "random"),
            id_max_attempts=int(config.get("id_max_attempts", 50)),
        )
        return cls(
            service,
            AccessList.from_config(config),
            classifier=classifier,
            locale=config.get("locale", "id"),
            session_ttl_minutes=int(config.get("wizard_session_ttl_minutes", 30)),
            receipt_min_confidence=float(
                config.get("classifier", {}).get("receipt_min_confidence", 0.6)
            ),
        )

    # -- entry points -------------------------------------------------------

    def handle_text(self, actor_id, conversation_id, text: str, first_name: str = "") -> Reply:
        try:
            self.access.require(actor_id)
        except AccessDenied as exc:
            return Reply(exc.user_message())
        name = first_name or self.access.name_of(actor_id) or "there"
        try:
            return self._route(actor_id, conversation_id, text or "", name)
        except LedgerError as exc:
            logger.warning("Request from %s failed: %s", actor_id, exc)
            return Reply(failure(exc.user_message()), KB_MAIN_MENU)
        except Exception:
            logger.exception("Unhandled error for message from %s", actor_id)
            return Reply(MSG_INTERNAL_ERROR, KB_MAIN_MENU)

    def handle_photo(self, actor_id, conversation_id, image: bytes, mime_type: str = "image/jpeg",
                     first_name: str = "") -> Reply:
        try:
            self.access.require(actor_id)
        except AccessDenied as exc:
            return Reply(exc.user_message())
        if self.classifier is None:
            return Reply(failure("Receipt reading is not configured."))
        if not image:
            return Reply(failure("No photo detected. Please send it again."))
        try:
            result = self.classifier.read_receipt(image, mime_type, self.clock.today())
        except LedgerError as exc:
            logger.warning("Receipt reading failed for %s: %s", actor_id, exc)
            return Reply(failure("Could not process the receipt. Try a clearer photo."))

        logger.info("Receipt read with confidence %.2f: %s", result["confidence"], result["text"])
        if result["confidence"] < self.receipt_min_confidence:
            return Reply(MSG_RECEIPT_LOW_CONFIDENCE.format(text=result["text"]), parse_mode="Markdown")
        return self.handle_text(actor_id, conversation_id, result["text"], first_name)

    # -- routing ------------------------------------------------------------

    def _route(self, actor_id, conversation_id, text: str, name: str) -> Reply:
        cmd = parse_command(text)

        if cmd is not None and cmd.name in ("exit", "cancel"):
            self.wizards.cancel(conversation_id)
            return Reply(MSG_EXIT, KB_MAIN_MENU)
        if cmd is not None and cmd.name in WIZARD_BUTTONS:
            return self.wizards.enter(conversation_id, WIZARD_BUTTONS[cmd.name])

        reply = self.wizards.handle(conversation_id, text)
        if reply is not None:
            return reply

        if cmd is not None:
            return self._commands[cmd.name](actor_id, cmd, name)
        return self._natural_language(actor_id, text, name)

    def _natural_language(self, actor_id, text: str, name: str) -> Reply:
        if self.classifier is None or text.startswith("/"):
            return Reply(MSG_UNKNOWN, KB_MAIN_MENU)
        parsed = self.classifier.parse_message(text, self.clock.today())
        if parsed["intent"] == Intent.UNKNOWN.value:
            return Reply(
                f"Sorry {name}, I couldn't understand your request. "
                "Please try rephrasing it or use the menu options.",
                KB_MAIN_MENU,
            )
        result = self.dispatcher.dispatch(actor_id, parsed["intent"], parsed["payload"])
        if result.success:
            return Reply(result.message, KB_TRANSACTION_MENU, "Markdown")
        return Reply(result.message)

    def _dispatch(self, actor_id, intent: Intent, payload: dict) -> Reply:
        result = self.dispatcher.dispatch(actor_id, intent, payload)
        keyboard = KB_TRANSACTION_MENU if result.success else None
        return Reply(result.message, keyboard, "Markdown" if result.success else None)

    # -- commands -----------------------------------------------------------

    def _on_start(self, actor_id, cmd: Command, name: str) -> Reply:
        return Reply(MSG_START.format(name=name), KB_MAIN_MENU)

    def _on_add(self, cmd: Command, kind: Kind, name: str) -> Reply:
        tx_date = self.clock.offset_date(-1).isoformat() if cmd.args["backdate"] else None
        tx = self.service.add(TransactionDraft(
            description=cmd.args["name"],
            amount=cmd.args["amount"],
            kind=kind,
            date=tx_date,
        ))
        label = "expense" if kind == Kind.SPENDING else "income"
        return Reply(
            f"🤖 Alright {name}, I have recorded your {label}.\n\n{reports.transaction_card(tx)}",
            KB_TRANSACTION_ENTRY,
            "Markdown",
        )

    def _on_update(self, actor_id, cmd: Command, name: str) -> Reply:
        if not cmd.args:
            return Reply(f"🤖 Here are the valid update commands:\n{MSG_UPDATE_COMMANDS}",
                         parse_mode="Markdown")
        tx_id = cmd.args["id"]
        try:
            flags = parse_update_flags(cmd.args["text"])
        except FlagFormatError as exc:
            return Reply(f"⚠️ {exc.user_message()}", parse_mode="Markdown")
        if flags is None:
            return Reply(
                f"🤖 Invalid input. Please provide valid update commands.\n{MSG_UPDATE_COMMANDS}",
                parse_mode="Markdown",
            )
        field_name, value = flags
        tx = self.service.update_field(tx_id, field_name, value)
        return Reply(
            f"🤖 Transaction with ID {tx_id} has been updated:\n\n{reports.transaction_card(tx)}",
            parse_mode="Markdown",
        )

    def _on_transactions(self, actor_id, cmd: Command, name: str) -> Reply:
        recent = self.service.recent(cmd.args["count"] or 10)
        text = reports.render_table(recent) if recent else MSG_NO_TRANSACTIONS
        return Reply(text, KB_TRANSACTION_MENU, "Markdown")

    def _on_delete_last(self, actor_id, cmd: Command, name: str) -> Reply:
        last_id: Optional[str] = self.service.last_transaction_id()
        if last_id is None:
            return Reply(failure("There is no transaction to delete."), KB_MAIN_MENU)
        return self._dispatch(actor_id, Intent.DELETE_TRANSACTION, {"transactionId": last_id})
