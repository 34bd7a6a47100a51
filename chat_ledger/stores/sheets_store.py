# chat_ledger/stores/sheets_store.py

import logging

import gspread
from gspread.utils import rowcol_to_a1
from google.oauth2.service_account import Credentials

from chat_ledger.stores.base import RecordStore, Row

logger = logging.getLogger(__name__)


class SheetsStore(RecordStore):
    """
    A worksheet used as a table:
      - Row 1 holds the column headers
      - Data starts at row 2; a row's index is its sheet row number
      - Values are written RAW so ISO dates stay plain strings
    """
    HEADER_ROWS = 1
    SCOPES = ['https://www.googleapis.com/auth/spreadsheets']

    def __init__(self, config, table, columns, worksheet=None):
        super().__init__(columns)
        self.table = table
        google_cfg = config.get('google', {})
        self.sheet_title = google_cfg.get(f'{table}_sheet', table.capitalize())
        self.ws = worksheet if worksheet is not None else self._open(google_cfg)

    def _open(self, google_cfg):
        creds = Credentials.from_service_account_file(
            google_cfg['service_account_file'], scopes=self.SCOPES
        )
        gc = gspread.authorize(creds)
        sh = gc.open_by_key(google_cfg['spreadsheet_id'])
        try:
            return sh.worksheet(self.sheet_title)
        except gspread.exceptions.WorksheetNotFound:
            logger.info("Creating worksheet %s", self.sheet_title)
            ws = sh.add_worksheet(title=self.sheet_title, rows=1000, cols=len(self.columns))
            ws.append_row(list(self.columns), value_input_option='RAW')
            return ws

    def rows(self):
        values = self.ws.get_all_values()
        out = []
        for offset, raw in enumerate(values[self.HEADER_ROWS:]):
            if not any(str(cell).strip() for cell in raw):
                continue
            padded = list(raw) + [''] * (len(self.columns) - len(raw))
            out.append(Row(
                index=offset + self.HEADER_ROWS + 1,
                data=dict(zip(self.columns, padded[:len(self.columns)])),
            ))
        return out

    def append(self, record):
        values = self._normalize(record)
        self.ws.append_row(
            [values[col] for col in self.columns],
            value_input_option='RAW',
        )

    def overwrite_range(self, row_index, fields):
        updates = []
        for col, value in fields.items():
            if col not in self.columns:
                raise KeyError(f"Unknown column '{col}'")
            cell = rowcol_to_a1(row_index, self.columns.index(col) + 1)
            updates.append({'range': cell, 'values': [[value]]})
        if updates:
            self.ws.batch_update(updates, value_input_option='RAW')

    def delete_row(self, row_index):
        if row_index <= self.HEADER_ROWS:
            raise ValueError(f"Refusing to delete header row {row_index}")
        self.ws.delete_rows(row_index)

