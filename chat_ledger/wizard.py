# chat_ledger/wizard.py
"""Multi-step conversational flows as explicit state machines.

A wizard is a transition table mapping ``(state, event)`` to the next state
plus an effect that renders the reply. Each waiting state has a parser that
turns inbound text into an :class:`Event` and a value. Sessions live in
memory, one per conversation.
"""
import logging
import re
from dataclasses import dataclass, field
from datetime import datetime, timedelta
from enum import Enum
from typing import Callable, Dict, Optional, Tuple

from chat_ledger import reports
from chat_ledger.core.categorizer import CategoryResolver
from chat_ledger.core.errors import LedgerError
from chat_ledger.core.models import UNCATEGORIZED, Kind, LocalClock, TransactionDraft
from chat_ledger.core.validator import validate_amount, validate_category, validate_description
from chat_ledger.messages import (
    KB_CANCEL,
    KB_DRAFT_CONFIRM,
    KB_MAIN_MENU,
    KB_TRANSACTION_MENU,
    KB_VIEW_DAYS,
    KB_WIZARD_CONFIRM,
    MSG_INTERNAL_ERROR,
    MSG_NO_TRANSACTIONS,
    Reply,
    failure,
)
from chat_ledger.operations import TransactionService

logger = logging.getLogger(__name__)

CANCEL_WORDS = ("cancel", "/cancel", "batal")


class State(str, Enum):
    START = "START"
    ASK_NAME = "ASK_NAME"
    ASK_AMOUNT = "ASK_AMOUNT"
    ASK_CATEGORY = "ASK_CATEGORY"
    ASK_DAYS = "ASK_DAYS"
    CONFIRM = "CONFIRM"
    COMPLETED = "COMPLETED"
    CANCELLED = "CANCELLED"


TERMINAL = (State.COMPLETED, State.CANCELLED)


class Event(str, Enum):
    START = "START"
    INPUT = "INPUT"
    RETRY = "RETRY"
    ABORT = "ABORT"
    CANCEL = "CANCEL"
    CONFIRM = "CONFIRM"


@dataclass
class Session:
    wizard: str
    state: State
    draft: dict
    updated_at: datetime


@dataclass
class WizardContext:
    service: TransactionService
    resolver: CategoryResolver
    categories: list
    clock: LocalClock


Effect = Callable[[WizardContext, Session, object], Reply]
Parser = Callable[[WizardContext, str], Tuple[Event, object]]


@dataclass
class Transition:
    next_state: State
    effect: Effect


@dataclass
class Wizard:
    name: str
    parsers: Dict[State, Parser]
    table: Dict[Tuple[State, Event], Transition] = field(default_factory=dict)


def is_cancel(text: str) -> bool:
    raw = (text or "").strip().lower()
    return raw in CANCEL_WORDS or "❌" in raw


def say(keyboard=None, parse_mode=None) -> Effect:
    """Effect that replies with the parser's value as text."""
    return lambda ctx, session, value: Reply(str(value), keyboard, parse_mode)


def fixed(text: str, keyboard=None, parse_mode=None) -> Effect:
    return lambda ctx, session, value: Reply(text, keyboard, parse_mode)


# -----------------------------------------------------------------------------
# Add spending / add income
# -----------------------------------------------------------------------------

def _parse_name(ctx: WizardContext, text: str):
    raw = (text or "").strip()
    if not raw:
        return Event.RETRY, "Please enter a name or tap Cancel 🙂"
    if is_cancel(raw):
        return Event.CANCEL, None
    try:
        return Event.INPUT, validate_description(raw)
    except LedgerError as exc:
        return Event.RETRY, exc.user_message()


def _parse_amount(ctx: WizardContext, text: str):
    raw = (text or "").strip()
    if not raw or is_cancel(raw):
        return Event.CANCEL, None
    match = re.search(r"\d+", raw)
    if not match:
        return Event.ABORT, "I couldn’t find the amount 😅\nExample: 25000"
    try:
        return Event.INPUT, validate_amount(match.group())
    except LedgerError as exc:
        return Event.ABORT, exc.user_message()


def _parse_saved(ctx: WizardContext, text: str):
    raw = (text or "").lower()
    if is_cancel(raw):
        return Event.CANCEL, None
    if "saved" in raw:
        return Event.CONFIRM, None
    return Event.RETRY, "Please choose *Saved* or *Cancel* 🙂"


def transaction_wizard(kind: Kind) -> Wizard:
    label = "spending" if kind == Kind.SPENDING else "income"
    name_prompt = (
        "What did you spend on? 🛒\n\nExample: Coffee, Lunch, Gasoline\nOr tap *Cancel*."
        if kind == Kind.SPENDING else
        "What is the income from? 💼\n\nExample: Salary, Bonus, Freelance\nOr tap *Cancel*."
    )
    amount_prompt = (
        "How much did it cost? 💰\n\nExample: 25000\nOr tap *Cancel*."
        if kind == Kind.SPENDING else
        "How much did you receive? 💰\n\nExample: 5000000\nOr tap *Cancel*."
    )

    def start(ctx, session, value):
        session.draft.clear()
        return Reply(name_prompt, KB_CANCEL, "Markdown")

    def store_name(ctx, session, value):
        session.draft["description"] = value
        return Reply(amount_prompt, KB_CANCEL, "Markdown")

    def render_draft(ctx, session, value):
        session.draft["amount"] = value
        prediction = ctx.resolver.resolve_local(session.draft["description"])
        session.draft["category"] = prediction.category or UNCATEGORIZED
        session.draft["tag"] = prediction.tag
        d = session.draft
        text = (
            f"🧾 *{label.capitalize()} Draft*\n\n"
            f"Alright 👍 here’s the {label} I’m about to record.\n"
            "Please take a quick look 👇\n\n"
            f"• 🏷️ *Name*: {d['description']}\n"
            f"• 💰 *Amount*: {reports.format_amount(d['amount'])}\n"
            f"• 📂 *Category*: {d['category']}\n\n"
            "If everything looks good, tap *Saved*.\n"
            "Otherwise, you can cancel."
        )
        return Reply(text, KB_DRAFT_CONFIRM, "Markdown")

    def save(ctx, session, value):
        d = session.draft
        category = d.get("category")
        tx = ctx.service.add(
            TransactionDraft(
                description=d["description"],
                amount=d["amount"],
                kind=kind,
                category=category if category in ctx.categories else None,
                tag=d.get("tag") or None,
            ),
            infer_category=False,
        )
        card = Reply(f"*{label.capitalize()} Card:*\n\n" + reports.transaction_card(tx),
                     parse_mode="Markdown")
        return Reply(f"✅ All set! Your {label} has been saved.", KB_MAIN_MENU, "Markdown",
                     extra=[card])

    cancelled = fixed("❌ Cancelled.", KB_MAIN_MENU)
    return Wizard(
        name=f"add_{label}",
        parsers={
            State.ASK_NAME: _parse_name,
            State.ASK_AMOUNT: _parse_amount,
            State.CONFIRM: _parse_saved,
        },
        table={
            (State.START, Event.START): Transition(State.ASK_NAME, start),
            (State.ASK_NAME, Event.INPUT): Transition(State.ASK_AMOUNT, store_name),
            (State.ASK_NAME, Event.RETRY): Transition(State.ASK_NAME, say()),
            (State.ASK_NAME, Event.CANCEL): Transition(State.CANCELLED, cancelled),
            (State.ASK_AMOUNT, Event.INPUT): Transition(State.CONFIRM, render_draft),
            (State.ASK_AMOUNT, Event.ABORT): Transition(State.CANCELLED, say(KB_MAIN_MENU)),
            (State.ASK_AMOUNT, Event.CANCEL): Transition(State.CANCELLED, cancelled),
            (State.CONFIRM, Event.CONFIRM): Transition(State.COMPLETED, save),
            (State.CONFIRM, Event.RETRY): Transition(State.CONFIRM, say(parse_mode="Markdown")),
            (State.CONFIRM, Event.CANCEL): Transition(
                State.CANCELLED, fixed(f"❌ Okay, the {label} was not recorded.", KB_MAIN_MENU)
            ),
        },
    )


# -----------------------------------------------------------------------------
# Add default category mapping
# -----------------------------------------------------------------------------

def _parse_category(ctx: WizardContext, text: str):
    raw = (text or "").strip()
    if is_cancel(raw):
        return Event.CANCEL, None
    if not raw:
        return Event.RETRY, "Please enter a category 🙂"
    try:
        return Event.INPUT, validate_category(raw, ctx.categories)
    except LedgerError as exc:
        return Event.RETRY, exc.user_message()


def _parse_yes_no(ctx: WizardContext, text: str):
    raw = (text or "").strip().lower()
    if is_cancel(raw) or raw in ("tidak", "no"):
        return Event.CANCEL, None
    if "ya" in raw or "yes" in raw or "✅" in raw or "saved" in raw:
        return Event.CONFIRM, None
    return Event.RETRY, "Please choose *Ya* or *Tidak* 🙂"


def category_wizard() -> Wizard:
    def start(ctx, session, value):
        session.draft.clear()
        return Reply(
            "Enter the *expense name* 📝\n\nExample: Coffee, Nasi Kuning\nOr tap *Cancel*.",
            KB_CANCEL, "Markdown",
        )

    def store_name(ctx, session, value):
        session.draft["description"] = value
        return Reply("Enter the *category* 📂\n\nExample: Food and Drink", KB_CANCEL, "Markdown")

    def confirm(ctx, session, value):
        session.draft["category"] = value
        d = session.draft
        return Reply(
            f"Save this default category?\n\n• *Name*: {d['description']}\n• *Category*: {d['category']}",
            KB_WIZARD_CONFIRM, "Markdown",
        )

    def save(ctx, session, value):
        d = session.draft
        updated = ctx.resolver.save_mapping(d["description"], d["category"])
        verb = "updated" if updated else "saved"
        return Reply(f"✅ Default category {verb}: {d['description']} → {d['category']}", KB_MAIN_MENU)

    cancelled = fixed("❌ Cancelled.", KB_MAIN_MENU)
    return Wizard(
        name="add_category",
        parsers={
            State.ASK_NAME: _parse_name,
            State.ASK_CATEGORY: _parse_category,
            State.CONFIRM: _parse_yes_no,
        },
        table={
            (State.START, Event.START): Transition(State.ASK_NAME, start),
            (State.ASK_NAME, Event.INPUT): Transition(State.ASK_CATEGORY, store_name),
            (State.ASK_NAME, Event.RETRY): Transition(State.ASK_NAME, say()),
            (State.ASK_NAME, Event.CANCEL): Transition(State.CANCELLED, cancelled),
            (State.ASK_CATEGORY, Event.INPUT): Transition(State.CONFIRM, confirm),
            (State.ASK_CATEGORY, Event.RETRY): Transition(State.ASK_CATEGORY, say()),
            (State.ASK_CATEGORY, Event.CANCEL): Transition(State.CANCELLED, cancelled),
            (State.CONFIRM, Event.CONFIRM): Transition(State.COMPLETED, save),
            (State.CONFIRM, Event.RETRY): Transition(State.CONFIRM, say(parse_mode="Markdown")),
            (State.CONFIRM, Event.CANCEL): Transition(State.CANCELLED, cancelled),
        },
    )


# -----------------------------------------------------------------------------
# View spending
# -----------------------------------------------------------------------------

def _parse_days(ctx: WizardContext, text: str):
    raw = (text or "").strip()
    if is_cancel(raw):
        return Event.CANCEL, None
    match = re.fullmatch(r"(\d+)(?:\s*(?:days?|hari))?", raw, re.IGNORECASE)
    if not match or int(match.group(1)) <= 0:
        return Event.RETRY, "Please send a number of days, e.g. 7 🙂"
    return Event.INPUT, int(match.group(1))


def view_wizard(locale: str = "id") -> Wizard:
    def start(ctx, session, value):
        session.draft.clear()
        recent = ctx.service.recent(10)
        table = reports.render_table(recent) if recent else MSG_NO_TRANSACTIONS
        return Reply(
            f"{table}\n\nHow many days back would you like to see? 📅",
            KB_VIEW_DAYS, "Markdown",
        )

    def show(ctx, session, days):
        report = ctx.service.query_last_days(days)
        if report.empty:
            text = reports.empty_report_message(
                report.start, report.end, today=ctx.clock.today(), locale=locale
            )
        else:
            text = reports.render_table(report.transactions)
        return Reply(text, KB_TRANSACTION_MENU, "Markdown")

    return Wizard(
        name="view_spending",
        parsers={State.ASK_DAYS: _parse_days},
        table={
            (State.START, Event.START): Transition(State.ASK_DAYS, start),
            (State.ASK_DAYS, Event.INPUT): Transition(State.COMPLETED, show),
            (State.ASK_DAYS, Event.RETRY): Transition(State.ASK_DAYS, say()),
            (State.ASK_DAYS, Event.CANCEL): Transition(State.CANCELLED, fixed("❌ Cancelled.", KB_MAIN_MENU)),
        },
    )


def default_wizards(locale: str = "id") -> Dict[str, Wizard]:
    wizards = [
        transaction_wizard(Kind.SPENDING),
        transaction_wizard(Kind.INCOME),
        category_wizard(),
        view_wizard(locale),
    ]
    return {w.name: w for w in wizards}


# -----------------------------------------------------------------------------
# Engine
# -----------------------------------------------------------------------------

class WizardEngine:
    """Drives wizard sessions keyed by conversation id."""

    def __init__(self, context: WizardContext, wizards: Optional[Dict[str, Wizard]] = None,
                 ttl_minutes: int = 30):
        self.context = context
        self.wizards = wizards or default_wizards()
        self.ttl = timedelta(minutes=ttl_minutes)
        self.sessions: Dict[str, Session] = {}

    def _now(self) -> datetime:
        return self.context.clock.now()

    def session(self, conversation_id) -> Optional[Session]:
        key = str(conversation_id)
        session = self.sessions.get(key)
        if session is None:
            return None
        if self._now() - session.updated_at > self.ttl:
            logger.info("Wizard %s for %s expired in state %s", session.wizard, key, session.state.value)
            del self.sessions[key]
            return None
        return session

    def is_active(self, conversation_id) -> bool:
        return self.session(conversation_id) is not None

    def enter(self, conversation_id, name: str) -> Reply:
        """Start ``name`` for the conversation, replacing any running session."""
        if name not in self.wizards:
            raise KeyError(f"Unknown wizard '{name}'")
        key = str(conversation_id)
        previous = self.sessions.pop(key, None)
        if previous is not None:
            logger.info("Replacing wizard %s for %s", previous.wizard, key)
        session = Session(wizard=name, state=State.START, draft={}, updated_at=self._now())
        self.sessions[key] = session
        return self._fire(key, session, Event.START, None)

    def handle(self, conversation_id, text: str) -> Optional[Reply]:
        """Feed one message to the active session; None when there is none."""
        session = self.session(conversation_id)
        if session is None:
            return None
        parser = self.wizards[session.wizard].parsers[session.state]
        event, value = parser(self.context, text)
        return self._fire(str(conversation_id), session, event, value)

    def cancel(self, conversation_id) -> bool:
        return self.sessions.pop(str(conversation_id), None) is not None

    def _fire(self, key: str, session: Session, event: Event, value) -> Reply:
        wizard = self.wizards[session.wizard]
        transition = wizard.table[(session.state, event)]
        logger.debug("%s: %s --%s--> %s", wizard.name, session.state.value, event.value,
                     transition.next_state.value)
        try:
            reply = transition.effect(self.context, session, value)
        except LedgerError as exc:
            logger.warning("Wizard %s failed in state %s: %s", wizard.name, session.state.value, exc)
            self.sessions.pop(key, None)
            session.draft.clear()
            return Reply(failure(exc.user_message()), KB_MAIN_MENU)
        except Exception:
            logger.exception("Wizard %s crashed in state %s", wizard.name, session.state.value)
            self.sessions.pop(key, None)
            session.draft.clear()
            return Reply(MSG_INTERNAL_ERROR, KB_MAIN_MENU)

        if transition.next_state in TERMINAL:
            self.sessions.pop(key, None)
            session.draft.clear()
        else:
            session.updated_at = self._now()
        session.state = transition.next_state
        return reply
