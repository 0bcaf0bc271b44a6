# services/sheets_connection.py
"""
Google Sheets connection and the row-store adapter.

A workspace is one spreadsheet; each logical table is one worksheet whose
first row holds the column names. Rows are addressed by their 1-based
position in the worksheet, so the first data row is position 2. Positions
are not identities: deleting a row shifts every later row up by one, and the
store offers no transactions, so a position read earlier may point at a
different row by the time it is used (see
``services.transactions_service.is_current``).
"""
import gspread
from gspread.utils import rowcol_to_a1
from dataclasses import dataclass, field
import logging
from typing import Optional, List, Dict, Any, Callable, Sequence

from config import google_credentials, SHEET_ID, USER_SHEET_MAP
from common.utils import clean_cell
from services.errors import (
    ConfigurationError, WorkspaceNotFound, TableNotFound,
    InvalidPosition, StoreError, WriteError
)

logger = logging.getLogger(__name__)

VALUE_INPUT_OPTION = 'USER_ENTERED'
ROW_NUMBER_KEY = "row_number"
FIRST_DATA_ROW = 2

# --- Cached authorization, reused across warm invocations ---
gc: Optional[gspread.Client] = None


@dataclass(frozen=True)
class RowRef:
    """A row position captured at read time. Only valid until the table is next modified."""
    table: str
    position: int


@dataclass
class TableSnapshot:
    """The headers and records of one table as read in a single call."""
    table: str
    headers: List[str]
    records: List[Dict[str, Any]] = field(default_factory=list)

    def find(self, predicate: Callable[[Dict[str, Any]], bool]) -> Optional[Dict[str, Any]]:
        for record in self.records:
            if predicate(record):
                return record
        return None

    def ref_for(self, record: Dict[str, Any]) -> RowRef:
        return RowRef(self.table, record[ROW_NUMBER_KEY])

    def values_for(self, record: Dict[str, Any]) -> List[str]:
        return [clean_cell(record.get(h, "")) for h in self.headers]


def resolve_workspace_id(user_email: Optional[str] = None) -> str:
    """Maps a user to the spreadsheet holding their books; without a user, the default SHEET_ID."""
    if user_email:
        sheet_id = USER_SHEET_MAP.get(user_email.strip().lower())
        if not sheet_id:
            logger.warning(f"No workspace configured for user '{user_email}'.")
            raise WorkspaceNotFound(f"No workspace configured for user: {user_email}")
        return sheet_id
    if not SHEET_ID:
        raise ConfigurationError("SHEET_ID is not configured.")
    return SHEET_ID


def get_client(credentials=None) -> gspread.Client:
    """Authorizes once and reuses the client."""
    global gc
    credentials = credentials or google_credentials
    if gc is not None:
        return gc
    if not credentials:
        logger.critical("Google credentials not available in config.")
        raise ConfigurationError("Google credentials are not configured.")
    gc = gspread.authorize(credentials)
    logger.info("Google Sheets client authorized.")
    return gc


def connect_to_workspace(sheet_id: Optional[str] = None, credentials=None) -> "SheetsStore":
    """Opens the spreadsheet identified by sheet_id and wraps it in a SheetsStore."""
    sheet_id = sheet_id or resolve_workspace_id()
    client = get_client(credentials)
    try:
        spreadsheet = client.open_by_key(sheet_id)
    except gspread.exceptions.SpreadsheetNotFound as e:
        logger.critical(f"Spreadsheet with ID '{sheet_id}' not found.")
        raise WorkspaceNotFound(f"Spreadsheet '{sheet_id}' not found") from e
    except Exception as e:
        logger.critical(f"Error opening spreadsheet '{sheet_id}': {e}", exc_info=True)
        raise StoreError(f"Could not open spreadsheet '{sheet_id}'") from e
    logger.info(f"Connected to spreadsheet '{sheet_id}'.")
    return SheetsStore(spreadsheet)


def apply_table_formatting(worksheet: gspread.Worksheet, num_headers: int) -> None:
    """Applies standard formatting (bold header, filter) to a worksheet."""
    if not worksheet:
        return
    try:
        header_format = {
            "backgroundColor": {"red": 0.85, "green": 0.85, "blue": 0.85},
            "textFormat": {"bold": True, "fontSize": 10},
            "horizontalAlignment": "CENTER"
        }
        worksheet.format(f"A1:{rowcol_to_a1(1, num_headers)}", header_format)
        worksheet.set_basic_filter()
        logger.info(f"Formatting and filter applied to '{worksheet.title}'.")
    except Exception:
        # Cosmetic only; the table is usable without it.
        logger.error(f"Error applying formatting to '{worksheet.title}'", exc_info=True)


def _trim_headers(row: Sequence[Any]) -> List[str]:
    headers = [clean_cell(h) for h in row]
    while headers and not headers[-1]:
        headers.pop()
    return headers


def _check_position(position: int) -> None:
    if isinstance(position, bool) or not isinstance(position, int) or position < FIRST_DATA_ROW:
        raise InvalidPosition(position)


class SheetsStore:
    """Row-store adapter over one spreadsheet.

    Every method talks to the API; nothing is cached between calls. Failures
    are not retried: reads raise ``StoreError``, mutations ``WriteError``.
    """

    def __init__(self, spreadsheet: gspread.Spreadsheet):
        self.spreadsheet = spreadsheet

    @property
    def workspace_id(self) -> str:
        return getattr(self.spreadsheet, "id", "")

    def _worksheet(self, table: str) -> gspread.Worksheet:
        try:
            return self.spreadsheet.worksheet(table)
        except gspread.exceptions.WorksheetNotFound as e:
            raise TableNotFound(table) from e
        except Exception as e:
            logger.error(f"Error accessing table '{table}': {e}", exc_info=True)
            raise StoreError(f"Could not access table '{table}'") from e

    def list_tables(self) -> List[str]:
        try:
            return [ws.title for ws in self.spreadsheet.worksheets()]
        except Exception as e:
            logger.error(f"Error listing tables: {e}", exc_info=True)
            raise StoreError("Could not list tables") from e

    def table_exists(self, table: str) -> bool:
        return table in self.list_tables()

    def read_headers(self, table: str) -> List[str]:
        """Returns the header row; an empty list means the table has no header yet."""
        worksheet = self._worksheet(table)
        try:
            return _trim_headers(worksheet.row_values(1))
        except Exception as e:
            logger.error(f"Error reading headers of '{table}': {e}", exc_info=True)
            raise StoreError(f"Could not read headers of '{table}'") from e

    def snapshot(self, table: str) -> TableSnapshot:
        """Reads the whole table once. Each record carries its 1-based 'row_number'."""
        worksheet = self._worksheet(table)
        try:
            values = worksheet.get_all_values()
        except Exception as e:
            logger.error(f"Error reading table '{table}': {e}", exc_info=True)
            raise StoreError(f"Could not read table '{table}'") from e
        if not values:
            return TableSnapshot(table, [], [])
        headers = _trim_headers(values[0])
        records = []
        for position, row in enumerate(values[1:], start=FIRST_DATA_ROW):
            cells = list(row) + [""] * max(0, len(headers) - len(row))
            if not any(clean_cell(cell) for cell in cells[:len(headers)]):
                continue
            record = {header: cells[i] for i, header in enumerate(headers) if header}
            record[ROW_NUMBER_KEY] = position
            records.append(record)
        return TableSnapshot(table, headers, records)

    def read_all(self, table: str) -> List[Dict[str, Any]]:
        return self.snapshot(table).records

    def write_headers(self, table: str, headers: Sequence[str]) -> None:
        """Overwrites row 1 with headers."""
        worksheet = self._worksheet(table)
        try:
            worksheet.update(
                range_name=f"A1:{rowcol_to_a1(1, len(headers))}",
                values=[list(headers)],
                value_input_option=VALUE_INPUT_OPTION
            )
        except Exception as e:
            logger.error(f"Error writing headers of '{table}': {e}", exc_info=True)
            raise WriteError(f"Could not write headers of '{table}'") from e
        logger.info(f"Headers of '{table}' set to {list(headers)}.")

    def append(self, table: str, values: Sequence[Any]) -> None:
        """Adds one row after the last one. Values must follow the table's header order."""
        worksheet = self._worksheet(table)
        try:
            worksheet.append_row(list(values), value_input_option=VALUE_INPUT_OPTION)
        except Exception as e:
            logger.error(f"Error appending row to '{table}': {e}", exc_info=True)
            raise WriteError(f"Could not append row to '{table}'") from e
        logger.info(f"Row appended to '{table}': {list(values)}")

    def update_at(self, table: str, position: int, values: Sequence[Any]) -> None:
        """Overwrites exactly the row at position."""
        _check_position(position)
        worksheet = self._worksheet(table)
        last_cell = rowcol_to_a1(position, max(1, len(values)))
        try:
            worksheet.update(
                range_name=f"A{position}:{last_cell}",
                values=[list(values)],
                value_input_option=VALUE_INPUT_OPTION
            )
        except Exception as e:
            logger.error(f"Error updating row {position} of '{table}': {e}", exc_info=True)
            raise WriteError(f"Could not update row {position} of '{table}'") from e
        logger.info(f"Row {position} of '{table}' updated: {list(values)}")

    def delete_at(self, table: str, position: int) -> None:
        """Removes the row at position. Every later row moves up one position."""
        _check_position(position)
        worksheet = self._worksheet(table)
        try:
            worksheet.delete_rows(position)
        except Exception as e:
            logger.error(f"Error deleting row {position} of '{table}': {e}", exc_info=True)
            raise WriteError(f"Could not delete row {position} of '{table}'") from e
        logger.info(f"Row {position} of '{table}' deleted.")

    def create_table(self, table: str, headers: Sequence[str]) -> gspread.Worksheet:
        logger.info(f"Table '{table}' not found. Creating...")
        try:
            worksheet = self.spreadsheet.add_worksheet(title=table, rows=1, cols=max(1, len(headers)))
            worksheet.append_row(list(headers), value_input_option=VALUE_INPUT_OPTION)
        except Exception as e:
            logger.error(f"Error creating table '{table}': {e}", exc_info=True)
            raise WriteError(f"Could not create table '{table}'") from e
        apply_table_formatting(worksheet, len(headers))
        return worksheet

    def ensure_table(self, table: str, headers: Sequence[str]) -> bool:
        """Creates the table if absent; otherwise forces row 1 to equal headers.

        Destructive for a non-conforming header row. Returns True when anything was written.
        """
        if not self.table_exists(table):
            self.create_table(table, headers)
            return True
        current = self.read_headers(table)
        if current[:len(headers)] == list(headers):
            return False
        logger.warning(f"Headers of '{table}' are {current}, expected {list(headers)}. Overwriting.")
        self.write_headers(table, headers)
        return True

    def row_values_at(self, table: str, position: int) -> List[str]:
        _check_position(position)
        worksheet = self._worksheet(table)
        try:
            return [clean_cell(v) for v in worksheet.row_values(position)]
        except Exception as e:
            logger.error(f"Error reading row {position} of '{table}': {e}", exc_info=True)
            raise StoreError(f"Could not read row {position} of '{table}'") from e

