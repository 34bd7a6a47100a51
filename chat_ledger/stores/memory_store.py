# chat_ledger/stores/memory_store.py
import logging
from typing import List

from chat_ledger.stores.base import RecordStore, Row

logger = logging.getLogger(__name__)


class MemoryStore(RecordStore):
    """
    Process-local table. With ``deferred_deletes`` set, removals stay visible
    until :meth:`flush`, the way a spreadsheet batches writes.
    """

    def __init__(self, config=None, table="transactions", columns=(), deferred_deletes=False):
        super().__init__(columns)
        self.table = table
        self.deferred_deletes = deferred_deletes
        self._data: List[dict] = []
        self._pending_deletes: List[dict] = []

    def rows(self):
        return [Row(index=i, data=dict(rec)) for i, rec in enumerate(self._data)]

    def append(self, record):
        self._data.append(self._normalize(record))

    def overwrite_range(self, row_index, fields):
        rec = self._data[row_index]
        for col, value in fields.items():
            if col not in self.columns:
                raise KeyError(f"Unknown column '{col}'")
            rec[col] = value

    def delete_row(self, row_index):
        rec = self._data[row_index]
        if self.deferred_deletes:
            self._pending_deletes.append(rec)
            return
        del self._data[row_index]

    def flush(self):
        if not self._pending_deletes:
            return
        logger.debug("Flushing %d pending delete(s) on %s", len(self._pending_deletes), self.table)
        for rec in self._pending_deletes:
            self._data = [r for r in self._data if r is not rec]
        self._pending_deletes = []
