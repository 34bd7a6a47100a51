from datetime import datetime, timedelta, timezone

import pytest

from chat_ledger.access import AccessList
from chat_ledger.core.categorizer import CategoryResolver
from chat_ledger.core.models import DEFAULT_CATEGORIES, LocalClock
from chat_ledger.operations import TransactionService
from chat_ledger.stores.base import MAPPING_COLUMNS, TRANSACTION_COLUMNS
from chat_ledger.stores.memory_store import MemoryStore

ACTOR = "1001"

# 10:00 on 2025-01-17 in UTC+7
FIXED_NOW = datetime(2025, 1, 17, 3, 0, tzinfo=timezone.utc)


class FakeNow:
    def __init__(self, value=FIXED_NOW):
        self.value = value

    def __call__(self):
        return self.value

    def advance(self, **kwargs):
        self.value += timedelta(**kwargs)


class FakeClassifier:
    """Stands in for chat_ledger.ai.Classifier."""

    def __init__(self, category=None, intent=None, receipt=None, error=None):
        self.category = category or {"category": "Food and Drink", "tag": "Snack"}
        self.intent = intent or {"intent": "UNKNOWN", "payload": {}}
        self.receipt = receipt or {"text": "#Spending Receipt 0", "confidence": 0.0}
        self.error = error
        self.calls = []

    def categorize(self, description, categories):
        self.calls.append(("categorize", description))
        if self.error:
            raise self.error
        return self.category

    def parse_message(self, text, today):
        self.calls.append(("parse_message", text))
        return self.intent

    def read_receipt(self, image, mime_type, today):
        self.calls.append(("read_receipt", mime_type))
        if self.error:
            raise self.error
        return self.receipt


@pytest.fixture
def now():
    return FakeNow()


@pytest.fixture
def clock(now):
    return LocalClock(offset_hours=7, now_fn=now)


@pytest.fixture
def tx_store():
    return MemoryStore(table="transactions", columns=TRANSACTION_COLUMNS)


@pytest.fixture
def mapping_store():
    return MemoryStore(table="mappings", columns=MAPPING_COLUMNS)


@pytest.fixture
def resolver(mapping_store, clock):
    return CategoryResolver(mapping_store, None, DEFAULT_CATEGORIES, clock)


@pytest.fixture
def service(tx_store, resolver, clock):
    return TransactionService(tx_store, resolver, DEFAULT_CATEGORIES, clock)


@pytest.fixture
def access():
    return AccessList([{"name": "Tester", "chat_id": ACTOR}])
