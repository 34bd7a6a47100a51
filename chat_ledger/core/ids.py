# chat_ledger/core/ids.py
import logging
import random
import time
from typing import Callable, Optional

from chat_ledger.core.errors import IdGenerationExhausted

logger = logging.getLogger(__name__)

ALPHABET = "abcdefghijklmnopqrstuvwxyz0123456789"
ID_LENGTH = 4
DEFAULT_MAX_ATTEMPTS = 50

_GOLDEN = 0x9E3779B97F4A7C15


def random_candidate(rng: random.Random) -> str:
    return "".join(rng.choice(ALPHABET) for _ in range(ID_LENGTH))


def time_candidate(timestamp_ms: int, attempt: int = 0) -> str:
    """Derive an id from a millisecond timestamp; ``attempt`` perturbs the seed."""
    seed = ((timestamp_ms + attempt) ^ _GOLDEN) & 0xFFFFFFFF
    return "".join(
        ALPHABET[((seed >> (i * 8)) & 0xFF) % len(ALPHABET)]
        for i in range(ID_LENGTH)
    )


def generate_transaction_id(
    store,
    strategy: str = "random",
    max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    rng: Optional[random.Random] = None,
    clock_ms: Callable[[], int] = lambda: int(time.time() * 1000),
) -> str:
    """Return an id not currently used by any row in ``store``."""
    if strategy not in ("random", "time"):
        raise ValueError(f"Unsupported id strategy '{strategy}'.")
    rng = rng or random.SystemRandom()
    for attempt in range(max_attempts):
        if strategy == "time":
            candidate = time_candidate(clock_ms(), attempt)
        else:
            candidate = random_candidate(rng)
        if store.lookup_by_key(candidate) is None:
            return candidate
        logger.debug("Transaction id collision on %s (attempt %d)", candidate, attempt + 1)
    raise IdGenerationExhausted(
        f"Could not generate a free transaction id after {max_attempts} attempts"
    )
