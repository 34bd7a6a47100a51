# chat_ledger/config.py
from __future__ import annotations

from pathlib import Path
from typing import Dict

import yaml

from chat_ledger.core.models import DEFAULT_CATEGORIES

DEFAULT_CONFIG: Dict[str, object] = {
    "store": "sqlite",
    "store_modules": {
        "memory": "chat_ledger.stores.memory_store.MemoryStore",
        "sqlite": "chat_ledger.stores.sqlite_store.SQLiteStore",
        "sheets": "chat_ledger.stores.sheets_store.SheetsStore",
    },
    "db_path": "chatledger.db",
    "google": {
        "service_account_file": "/path/to/service-account.json",
        "spreadsheet_id": "GOOGLE_SPREADSHEET_ID",
        "transactions_sheet": "Transactions",
        "mappings_sheet": "Mappings",
    },
    "categories": list(DEFAULT_CATEGORIES),
    "allowed_users": [],
    "locale": "id",
    "timezone_offset_hours": 7,
    "id_strategy": "random",
    "id_max_attempts": 50,
    "wizard_session_ttl_minutes": 30,
    "classifier": {
        "enabled": False,
        "receipt_min_confidence": 0.6,
    },
    "telegram": {
        "webhook_secret": "",
        "host": "0.0.0.0",
        "port": 8080,
    },
}


def _merge_defaults(current: Dict[str, object], defaults: Dict[str, object]) -> Dict[str, object]:
    """Merge missing default keys into the current config recursively."""
    merged = dict(current)
    for key, value in defaults.items():
        if key not in merged:
            merged[key] = value
        elif isinstance(value, dict) and isinstance(merged[key], dict):
            merged[key] = _merge_defaults(merged[key], value)
    return merged


def load_config(path: str | Path | None = None) -> Dict[str, object]:
    """Read ``path`` (if given and present) and fill in defaults."""
    data: Dict[str, object] = {}
    if path is not None and Path(path).exists():
        with open(path, "r") as f:
            data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValueError(f"Config file {path} must contain a mapping")
    return _merge_defaults(data, DEFAULT_CONFIG)
