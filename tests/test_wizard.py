import pytest

from chat_ledger.core.errors import IdGenerationExhausted
from chat_ledger.core.models import DEFAULT_CATEGORIES, TransactionDraft
from chat_ledger.messages import MSG_INTERNAL_ERROR
from chat_ledger.operations import TransactionService
from chat_ledger.stores.base import TRANSACTION_COLUMNS
from chat_ledger.stores.memory_store import MemoryStore
from chat_ledger.wizard import State, WizardContext, WizardEngine, is_cancel

CHAT = "chat-1"


@pytest.fixture
def engine(service, resolver, clock):
    return WizardEngine(WizardContext(service, resolver, list(DEFAULT_CATEGORIES), clock))


def test_add_spending_happy_path(engine, tx_store, mapping_store):
    mapping_store.append({"description": "Coffee", "category": "Food and Drink", "tag": "Snack"})

    reply = engine.enter(CHAT, "add_spending")
    assert "What did you spend on?" in reply.text
    assert engine.session(CHAT).state == State.ASK_NAME

    reply = engine.handle(CHAT, "Coffee")
    session = engine.session(CHAT)
    assert session.draft == {"description": "Coffee"}
    assert session.state == State.ASK_AMOUNT
    assert "How much" in reply.text

    reply = engine.handle(CHAT, "25000")
    session = engine.session(CHAT)
    assert session.state == State.CONFIRM
    assert session.draft["amount"] == 25000
    assert session.draft["category"] == "Food and Drink"
    assert "Spending Draft" in reply.text
    assert "Food and Drink" in reply.text

    reply = engine.handle(CHAT, "✅ Saved")
    assert reply.text.startswith("✅ All set!")
    assert "Transaction ID" in reply.extra[0].text
    assert engine.session(CHAT) is None
    assert session.state == State.COMPLETED
    assert session.draft == {}

    stored = tx_store.rows()[0].data
    assert stored["description"] == "Coffee"
    assert stored["amount"] == 25000
    assert stored["category"] == "Food and Drink"
    assert stored["tag"] == "Snack"


def test_preview_defaults_to_uncategorized(engine, tx_store):
    engine.enter(CHAT, "add_income")
    engine.handle(CHAT, "Bonus")
    reply = engine.handle(CHAT, "1500000 rupiah")
    assert "Uncategorized" in reply.text
    assert engine.session(CHAT).draft["amount"] == 1500000
    engine.handle(CHAT, "saved")
    assert tx_store.rows()[0].data["kind"] == "income"
    assert tx_store.rows()[0].data["category"] == "Uncategorized"


def test_empty_name_reprompts(engine):
    engine.enter(CHAT, "add_spending")
    reply = engine.handle(CHAT, "   ")
    assert "Please enter a name" in reply.text
    assert engine.session(CHAT).state == State.ASK_NAME


def test_too_long_name_reprompts(engine):
    engine.enter(CHAT, "add_spending")
    reply = engine.handle(CHAT, "x" * 300)
    assert "too long" in reply.text
    assert engine.session(CHAT).state == State.ASK_NAME


@pytest.mark.parametrize("word", ["cancel", "/cancel", "Batal", "❌ Cancel"])
def test_cancel_keywords(engine, word, tx_store):
    engine.enter(CHAT, "add_spending")
    engine.handle(CHAT, "Coffee")
    reply = engine.handle(CHAT, word)
    assert "Cancelled" in reply.text
    assert engine.session(CHAT) is None
    assert tx_store.row_count() == 0


def test_unparseable_amount_aborts(engine, tx_store):
    engine.enter(CHAT, "add_spending")
    engine.handle(CHAT, "Coffee")
    reply = engine.handle(CHAT, "twenty")
    assert "couldn’t find the amount" in reply.text
    assert engine.session(CHAT) is None
    assert tx_store.row_count() == 0


def test_out_of_range_amount_aborts(engine):
    engine.enter(CHAT, "add_spending")
    engine.handle(CHAT, "Car")
    reply = engine.handle(CHAT, "9999999999")
    assert "maximum" in reply.text
    assert engine.session(CHAT) is None


def test_confirm_step_reprompts_then_cancels(engine, tx_store):
    engine.enter(CHAT, "add_spending")
    engine.handle(CHAT, "Coffee")
    engine.handle(CHAT, "25000")
    reply = engine.handle(CHAT, "maybe")
    assert "Saved" in reply.text
    assert engine.session(CHAT).state == State.CONFIRM
    reply = engine.handle(CHAT, "❌ Cancel")
    assert "not recorded" in reply.text
    assert tx_store.row_count() == 0


def test_entering_replaces_existing_session(engine):
    engine.enter(CHAT, "add_spending")
    engine.handle(CHAT, "Coffee")
    engine.enter(CHAT, "add_income")
    session = engine.session(CHAT)
    assert session.wizard == "add_income"
    assert session.state == State.ASK_NAME
    assert session.draft == {}


def test_sessions_are_per_conversation(engine):
    engine.enter("a", "add_spending")
    engine.enter("b", "view_spending")
    assert engine.session("a").wizard == "add_spending"
    assert engine.session("b").wizard == "view_spending"
    assert engine.handle("c", "hello") is None


def test_sessions_expire(engine, now):
    engine.enter(CHAT, "add_spending")
    now.advance(minutes=29)
    assert engine.is_active(CHAT)
    engine.handle(CHAT, "Coffee")
    now.advance(minutes=31)
    assert engine.handle(CHAT, "25000") is None
    assert not engine.is_active(CHAT)


def test_save_failure_reports_and_clears(tx_store, resolver, clock):
    def exhausted(store):
        raise IdGenerationExhausted("no ids left")

    service = TransactionService(tx_store, resolver, DEFAULT_CATEGORIES, clock, id_factory=exhausted)
    engine = WizardEngine(WizardContext(service, resolver, list(DEFAULT_CATEGORIES), clock))
    engine.enter(CHAT, "add_spending")
    engine.handle(CHAT, "Coffee")
    engine.handle(CHAT, "25000")
    reply = engine.handle(CHAT, "Saved")
    assert reply.text == "❌ no ids left"
    assert engine.session(CHAT) is None
    assert tx_store.row_count() == 0


def test_add_category_flow(engine, resolver):
    engine.enter(CHAT, "add_category")
    engine.handle(CHAT, "Kopi")
    reply = engine.handle(CHAT, "Groceries")
    assert "Invalid category" in reply.text
    assert engine.session(CHAT).state == State.ASK_CATEGORY
    reply = engine.handle(CHAT, "Food and Drink")
    assert "Save this default category?" in reply.text
    reply = engine.handle(CHAT, "✅ Ya")
    assert reply.text.startswith("✅ Default category saved")
    assert resolver.resolve_local("Kopi").category == "Food and Drink"

    engine.enter(CHAT, "add_category")
    engine.handle(CHAT, "Kopi")
    engine.handle(CHAT, "Lifestyle")
    reply = engine.handle(CHAT, "yes")
    assert "updated" in reply.text
    assert len(resolver.list_mappings()) == 1


def test_add_category_declined(engine, resolver):
    engine.enter(CHAT, "add_category")
    engine.handle(CHAT, "Kopi")
    engine.handle(CHAT, "Food and Drink")
    engine.handle(CHAT, "❌ Tidak")
    assert resolver.list_mappings() == []
    assert engine.session(CHAT) is None


def test_view_spending(engine, service):
    service.add(TransactionDraft("Kopi", 25000))
    service.add(TransactionDraft("Nasi", 30000, date="2025-01-10"))

    reply = engine.enter(CHAT, "view_spending")
    assert "Kopi" in reply.text and "Nasi" in reply.text
    assert "How many days" in reply.text

    reply = engine.handle(CHAT, "abc")
    assert "number of days" in reply.text
    assert engine.session(CHAT).state == State.ASK_DAYS

    reply = engine.handle(CHAT, "3")
    assert "Kopi" in reply.text
    assert "Nasi" not in reply.text
    assert engine.session(CHAT) is None


def test_view_spending_empty(engine):
    reply = engine.enter(CHAT, "view_spending")
    assert "No transactions recorded yet." in reply.text
    reply = engine.handle(CHAT, "1")
    assert reply.text == "Belum ada transaksi hari ini."


def test_unknown_wizard(engine):
    with pytest.raises(KeyError):
        engine.enter(CHAT, "add_bookmark")


def test_is_cancel():
    assert is_cancel("CANCEL")
    assert is_cancel("❌ Tidak")
    assert not is_cancel("cancelled coffee")


class BrokenAppendStore(MemoryStore):
    def append(self, record):
        raise RuntimeError("quota exceeded")


def test_view_spending_huge_window_ends_session(engine):
    engine.enter(CHAT, "view_spending")
    reply = engine.handle(CHAT, "1000000")
    assert reply.text.startswith("❌ Cannot report 1000000 days back")
    assert engine.session(CHAT) is None


def test_unexpected_save_error_clears_session(resolver, clock):
    store = BrokenAppendStore(columns=TRANSACTION_COLUMNS)
    service = TransactionService(store, resolver, DEFAULT_CATEGORIES, clock)
    engine = WizardEngine(WizardContext(service, resolver, list(DEFAULT_CATEGORIES), clock))
    engine.enter(CHAT, "add_spending")
    engine.handle(CHAT, "Coffee")
    session = engine.session(CHAT)
    engine.handle(CHAT, "25000")
    reply = engine.handle(CHAT, "Saved")
    assert reply.text == MSG_INTERNAL_ERROR
    assert "quota" not in reply.text
    assert engine.session(CHAT) is None
    assert session.draft == {}
