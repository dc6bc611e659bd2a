"""
Google Sheets Storage Implementation

DESIGN DECISION: Google Sheets is the storage backend because:
1. The people sharing a ledger can open the sheet and read it directly
2. No database setup required
3. Existing ledgers written by the previous bot keep working

TRADEOFFS:
- No transactions (confirm/reject is serialized in-process instead)
- Row numbers shift after a delete; handles carry the row's identity
  cells and a write whose row moved fails with NotFoundError
- Limited query capabilities (we filter in Python)

gspread is synchronous, so every call runs in a worker thread.
Connect and reads are retried on transient failures; writes are
attempted once so a retry can never duplicate a row.
"""

import asyncio
from typing import Callable, Optional, TypeVar

import gspread
import requests
import structlog
from google.oauth2.service_account import Credentials
from tenacity import (
    retry,
    retry_if_exception_type,
    stop_after_attempt,
    wait_exponential,
)

from debtbot.config import GoogleSheetsSettings, get_settings
from debtbot.models.ledger import RowRef
from debtbot.services.storage.interface import (
    FatalStorageError,
    NotFoundError,
    RowStore,
    StorageConnectionError,
    StoredRow,
    TransientStorageError,
)
from debtbot.services.storage.schema import IDENTITY_COLUMNS


SCOPES = [
    "https://www.googleapis.com/auth/spreadsheets",
    "https://www.googleapis.com/auth/drive",
]

TRANSIENT_STATUS_CODES = {408, 429, 500, 502, 503, 504}

T = TypeVar("T")

logger = structlog.get_logger(__name__)

retry_transient = retry(
    retry=retry_if_exception_type(TransientStorageError),
    stop=stop_after_attempt(3),
    wait=wait_exponential(multiplier=1, min=2, max=10),
    reraise=True,
)


def translate_error(operation: str, error: Exception) -> Exception:
    """Map a gspread/requests failure onto the storage error hierarchy."""
    if isinstance(error, gspread.exceptions.APIError):
        status = getattr(error.response, "status_code", None)
        if status in TRANSIENT_STATUS_CODES:
            return TransientStorageError(f"{operation} failed ({status}): {error}")
        return FatalStorageError(f"{operation} failed ({status}): {error}")
    if isinstance(error, (requests.exceptions.ConnectionError, requests.exceptions.Timeout)):
        return TransientStorageError(f"{operation} failed: {error}")
    return FatalStorageError(f"{operation} failed: {error}")


class GoogleSheetsRowStore(RowStore):
    """
    Row store on top of one spreadsheet.

    Each logical table is one worksheet whose first row is the header.
    Row keys are 1-based sheet row numbers.
    """

    def __init__(
        self,
        settings: Optional[GoogleSheetsSettings] = None,
        client_factory: Optional[Callable[[Credentials], gspread.Client]] = None,
    ):
        self._settings = settings or get_settings().google_sheets
        self._client_factory = client_factory or gspread.authorize
        self._client: Optional[gspread.Client] = None
        self._spreadsheet: Optional[gspread.Spreadsheet] = None
        self._worksheets: dict[str, gspread.Worksheet] = {}
        self._headers: dict[str, list[str]] = {}

    async def _call(self, operation: str, func: Callable[..., T], *args, **kwargs) -> T:
        """Run a blocking gspread call in a thread and translate its errors."""
        try:
            return await asyncio.to_thread(func, *args, **kwargs)
        except (gspread.SpreadsheetNotFound, gspread.WorksheetNotFound):
            raise
        except (gspread.exceptions.GSpreadException, requests.exceptions.RequestException) as e:
            error = translate_error(operation, e)
            logger.warning(
                "sheets_call_failed",
                operation=operation,
                transient=isinstance(error, TransientStorageError),
                error=str(e),
            )
            raise error from e

    # =========================================================================
    # CONNECTION
    # =========================================================================

    @retry_transient
    async def connect(self) -> None:
        if self._spreadsheet is not None:
            return
        try:
            credentials = Credentials.from_service_account_file(
                self._settings.credentials_path,
                scopes=SCOPES,
            )
        except FileNotFoundError:
            raise FatalStorageError(
                f"Google credentials file not found: {self._settings.credentials_path}"
            )

        try:
            client = self._client_factory(credentials)
            client.set_timeout(self._settings.timeout_seconds)
            spreadsheet = await self._call(
                "open_spreadsheet", client.open_by_key, self._settings.spreadsheet_id
            )
        except gspread.SpreadsheetNotFound:
            raise FatalStorageError(
                f"Spreadsheet not found: {self._settings.spreadsheet_id}"
            )
        except TransientStorageError as e:
            raise StorageConnectionError(str(e)) from e

        self._client = client
        self._spreadsheet = spreadsheet
        logger.info("sheets_connected", spreadsheet_id=self._settings.spreadsheet_id)

    async def close(self) -> None:
        if self._client is not None:
            # gspread keeps a requests session on the HTTP client
            session = getattr(getattr(self._client, "http_client", None), "session", None)
            if session is not None:
                session.close()
        self._client = None
        self._spreadsheet = None
        self._worksheets.clear()
        self._headers.clear()

    def _require_spreadsheet(self) -> gspread.Spreadsheet:
        if self._spreadsheet is None:
            raise StorageConnectionError("Google Sheets store is not connected")
        return self._spreadsheet

    def _worksheet(self, table: str) -> gspread.Worksheet:
        self._require_spreadsheet()
        try:
            return self._worksheets[table]
        except KeyError:
            raise NotFoundError(f"Table not checked at startup: {table}")

    def _title(self, table: str) -> str:
        try:
            return self._settings.sheet_names()[table]
        except KeyError:
            raise NotFoundError(f"No worksheet configured for table: {table}")

    # =========================================================================
    # SCHEMA
    # =========================================================================

    @retry_transient
    async def ensure_schema(self, table: str, columns: list[str]) -> list[str]:
        spreadsheet = self._require_spreadsheet()
        title = self._title(table)

        try:
            sheet = await self._call("open_worksheet", spreadsheet.worksheet, title)
        except gspread.WorksheetNotFound:
            sheet = await self._call(
                "add_worksheet",
                spreadsheet.add_worksheet,
                title=title,
                rows=1000,
                cols=len(columns),
            )
            await self._call("write_header", sheet.append_row, columns)
            self._worksheets[table] = sheet
            self._headers[table] = list(columns)
            return list(columns)

        header = await self._call("read_header", sheet.row_values, 1)
        added = [column for column in columns if column not in header]
        if added:
            new_header = header + added
            if sheet.col_count < len(new_header):
                await self._call("add_columns", sheet.add_cols, len(new_header) - sheet.col_count)
            await self._call("write_header", sheet.update, values=[new_header], range_name="A1")
            header = new_header

        self._worksheets[table] = sheet
        self._headers[table] = header
        return added

    # =========================================================================
    # ROWS
    # =========================================================================

    async def append_row(self, table: str, values: dict[str, str]) -> None:
        sheet = self._worksheet(table)
        row = [values.get(column, "") for column in self._headers[table]]
        await self._call("append_row", sheet.append_row, row, value_input_option="RAW")

    @retry_transient
    async def read_rows(self, table: str) -> list[StoredRow]:
        sheet = self._worksheet(table)
        all_values = await self._call("read_rows", sheet.get_all_values)
        if not all_values:
            return []

        header = all_values[0]
        rows = []
        # Row 1 is the header; data starts at sheet row 2
        for row_number, cells in enumerate(all_values[1:], start=2):
            if not any(cell.strip() for cell in cells):
                continue
            values = dict(zip(header, cells + [""] * (len(header) - len(cells))))
            rows.append(
                StoredRow(
                    ref=RowRef(
                        table=table,
                        row_key=row_number,
                        identity=self._identity(table, values),
                    ),
                    values=values,
                )
            )
        return rows

    @staticmethod
    def _identity(table: str, values: dict[str, str]) -> tuple[str, ...]:
        return tuple(values.get(column, "") for column in IDENTITY_COLUMNS.get(table, []))

    async def _check_row(self, sheet: gspread.Worksheet, ref: RowRef) -> None:
        """
        Make sure `ref` still points at the row it was read from.

        Raises:
            NotFoundError: Row is gone or another row moved into its place
        """
        if ref.row_key < 2 or ref.row_key > sheet.row_count:
            raise NotFoundError(f"Row not found: {ref.table}#{ref.row_key}")
        if not ref.identity:
            return

        header = self._headers[ref.table]
        cells = await self._call("check_row", sheet.row_values, ref.row_key)
        current = dict(zip(header, cells + [""] * (len(header) - len(cells))))
        if self._identity(ref.table, current) != ref.identity:
            logger.warning(
                "sheets_row_moved",
                table=ref.table,
                row_key=ref.row_key,
            )
            raise NotFoundError(f"Row moved: {ref.table}#{ref.row_key}")

    async def update_row(self, ref: RowRef, values: dict[str, str]) -> None:
        sheet = self._worksheet(ref.table)
        header = self._headers[ref.table]

        cells = []
        for column, value in values.items():
            if column not in header:
                raise FatalStorageError(f"Unknown column {column} in {ref.table}")
            cells.append(gspread.Cell(row=ref.row_key, col=header.index(column) + 1, value=value))

        await self._check_row(sheet, ref)
        if cells:
            await self._call("update_row", sheet.update_cells, cells, value_input_option="RAW")

    async def delete_row(self, ref: RowRef) -> None:
        sheet = self._worksheet(ref.table)
        await self._check_row(sheet, ref)
        await self._call("delete_row", sheet.delete_rows, ref.row_key)
