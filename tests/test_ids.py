import random

import pytest

from chat_ledger.core.errors import IdGenerationExhausted
from chat_ledger.core.ids import ALPHABET, generate_transaction_id, time_candidate
from chat_ledger.stores.base import Row, TRANSACTION_COLUMNS
from chat_ledger.stores.memory_store import MemoryStore


class AlwaysTaken:
    def __init__(self):
        self.lookups = 0

    def lookup_by_key(self, key):
        self.lookups += 1
        return Row(index=0, data={"id": key})


def test_generated_ids_never_collide_with_existing():
    rng = random.Random(42)
    store = MemoryStore(columns=TRANSACTION_COLUMNS)
    existing = set()
    for _ in range(300):
        tx_id = "".join(rng.choice(ALPHABET) for _ in range(4))
        existing.add(tx_id)
        store.append({"id": tx_id})

    gen_rng = random.Random(7)
    for _ in range(100):
        new_id = generate_transaction_id(store, rng=gen_rng)
        assert new_id not in existing
        assert len(new_id) == 4
        assert set(new_id) <= set(ALPHABET)


def test_exhaustion_raises_after_cap():
    store = AlwaysTaken()
    with pytest.raises(IdGenerationExhausted):
        generate_transaction_id(store, max_attempts=5, rng=random.Random(1))
    assert store.lookups == 5


def test_time_candidate_is_deterministic():
    assert time_candidate(0, 0) == "vqct"
    assert time_candidate(0, 1) == "uqct"


def test_time_strategy_skips_taken_candidate():
    store = MemoryStore(columns=TRANSACTION_COLUMNS)
    store.append({"id": time_candidate(0, 0)})
    assert generate_transaction_id(store, strategy="time", clock_ms=lambda: 0) == "uqct"


def test_unknown_strategy():
    with pytest.raises(ValueError):
        generate_transaction_id(MemoryStore(columns=TRANSACTION_COLUMNS), strategy="uuid")
