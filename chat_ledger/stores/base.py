# chat_ledger/stores/base.py
from abc import ABC, abstractmethod
from dataclasses import dataclass
from re import Pattern
from typing import List, Optional, Sequence, Union

TRANSACTION_COLUMNS = (
    "id", "date", "description", "kind", "category", "amount", "tag", "account", "note",
)
MAPPING_COLUMNS = ("description", "category", "tag", "date_added")

TABLES = {
    "transactions": TRANSACTION_COLUMNS,
    "mappings": MAPPING_COLUMNS,
}


@dataclass
class Row:
    """A stored row: its backend-specific index plus column values."""

    index: int
    data: dict


class RecordStore(ABC):
    """Row-oriented table keyed by its first column."""

    def __init__(self, columns: Sequence[str]):
        self.columns = tuple(columns)
        self.key_column = self.columns[0]

    @abstractmethod
    def rows(self) -> List[Row]:
        """Return every live row in storage order."""

    @abstractmethod
    def append(self, record: dict) -> None:
        """Append one row; missing columns are stored empty."""

    @abstractmethod
    def overwrite_range(self, row_index: int, fields: dict) -> None:
        """Overwrite the named columns of an existing row in place."""

    @abstractmethod
    def delete_row(self, row_index: int) -> None:
        """Remove a row."""

    def flush(self) -> None:
        """Force pending writes to durable storage."""

    def row_count(self) -> int:
        return len(self.rows())

    def lookup_by_key(self, key: str) -> Optional[Row]:
        hits = self.search_by_column(self.key_column, key)
        return hits[0] if hits else None

    def search_by_column(self, column: str, value: Union[str, Pattern]) -> List[Row]:
        """Rows whose ``column`` equals ``value``, or matches it when a pattern."""
        if column not in self.columns:
            raise KeyError(f"Unknown column '{column}'")
        hits = []
        for row in self.rows():
            cell = str(row.data.get(column, "") or "")
            if isinstance(value, Pattern):
                if value.search(cell):
                    hits.append(row)
            elif cell == str(value):
                hits.append(row)
        return hits

    def _normalize(self, record: dict) -> dict:
        return {col: record.get(col, "") for col in self.columns}
