# chat_ledger/stores/sqlite_store.py
import sqlite3
from pathlib import Path

from chat_ledger.stores.base import RecordStore, Row


class SQLiteStore(RecordStore):
    """
    One SQLite table per logical table. ``rowid`` is the row index; columns
    are plain TEXT so the table mirrors the spreadsheet layout.
    """

    def __init__(self, config, table, columns):
        super().__init__(columns)
        self.table = table
        self.db_path = Path(config.get('db_path', 'chatledger.db'))
        self.db_path.parent.mkdir(parents=True, exist_ok=True)
        conn = self._connect()
        try:
            self._init_table(conn)
        finally:
            conn.close()

    def _connect(self) -> sqlite3.Connection:
        return sqlite3.connect(self.db_path)

    def _init_table(self, conn: sqlite3.Connection) -> None:
        cols = ", ".join(f"{col} TEXT" for col in self.columns)
        conn.execute(f"CREATE TABLE IF NOT EXISTS {self.table} ({cols})")
        conn.commit()

    def rows(self):
        conn = self._connect()
        try:
            cols = ", ".join(self.columns)
            result = conn.execute(
                f"SELECT rowid, {cols} FROM {self.table} ORDER BY rowid"
            ).fetchall()
        finally:
            conn.close()
        return [
            Row(index=r[0], data=dict(zip(self.columns, r[1:])))
            for r in result
        ]

    def append(self, record):
        values = self._normalize(record)
        placeholders = ", ".join("?" for _ in self.columns)
        conn = self._connect()
        try:
            conn.execute(
                f"INSERT INTO {self.table} ({', '.join(self.columns)}) VALUES ({placeholders})",
                [str(values[col]) for col in self.columns],
            )
            conn.commit()
        finally:
            conn.close()

    def overwrite_range(self, row_index, fields):
        unknown = [col for col in fields if col not in self.columns]
        if unknown:
            raise KeyError(f"Unknown column '{unknown[0]}'")
        assignments = ", ".join(f"{col} = ?" for col in fields)
        conn = self._connect()
        try:
            conn.execute(
                f"UPDATE {self.table} SET {assignments} WHERE rowid = ?",
                [str(v) for v in fields.values()] + [row_index],
            )
            conn.commit()
        finally:
            conn.close()

    def delete_row(self, row_index):
        conn = self._connect()
        try:
            conn.execute(f"DELETE FROM {self.table} WHERE rowid = ?", (row_index,))
            conn.commit()
        finally:
            conn.close()
