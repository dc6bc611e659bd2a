"""
Tests for the row stores and typed repositories.

The Google Sheets store is exercised against mocked gspread objects;
nothing here talks to Google.
"""

import json
from datetime import datetime
from unittest.mock import MagicMock
from zoneinfo import ZoneInfo

import gspread
import pytest
import requests

from debtbot.models.ledger import RowRef, Transaction, TransactionKind, TransactionStatus
from debtbot.config import GoogleSheetsSettings
from debtbot.services.storage import (
    FatalStorageError,
    LedgerStorage,
    NotFoundError,
    StorageConnectionError,
    TransientStorageError,
    TABLE_SCHEMAS,
)
from debtbot.services.storage import google_sheets
from debtbot.services.storage.google_sheets import GoogleSheetsRowStore, translate_error
from debtbot.services.storage.repositories import parse_timestamp
from debtbot.services.storage.schema import TRANSACTION_COLUMNS, TRANSACTIONS

TZ = ZoneInfo("Asia/Ho_Chi_Minh")


LEGACY_TRANSACTION_COLUMNS = ["Date", "UserID", "Debtor", "Type", "Amount", "Content"]


def api_error(status: int) -> gspread.exceptions.APIError:
    response = requests.Response()
    response.status_code = status
    response._content = json.dumps(
        {"error": {"code": status, "message": "boom", "status": "ERROR"}}
    ).encode()
    return gspread.exceptions.APIError(response)


class TestInMemoryRowStore:
    """Tests for the in-memory backend."""

    async def test_requires_connection(self, store):
        """Test that calls before connect fail as connection errors."""
        with pytest.raises(StorageConnectionError):
            await store.read_rows(TRANSACTIONS)

    async def test_unknown_table(self, store):
        """Test that an unchecked table is not found."""
        await store.connect()
        with pytest.raises(NotFoundError):
            await store.append_row("nope", {"a": "1"})

    async def test_append_and_read_in_order(self, store):
        """Test that rows come back in insertion order with every column."""
        await store.connect()
        await store.ensure_schema("t", ["A", "B"])
        await store.append_row("t", {"A": "1"})
        await store.append_row("t", {"A": "2", "B": "x", "C": "ignored"})

        rows = await store.read_rows("t")
        assert [row.values for row in rows] == [{"A": "1", "B": ""}, {"A": "2", "B": "x"}]

    async def test_schema_evolution_keeps_rows(self, store):
        """Test that adding columns leaves existing data intact."""
        await store.connect()
        assert await store.ensure_schema("t", ["A"]) == ["A"]
        await store.append_row("t", {"A": "1"})

        assert await store.ensure_schema("t", ["A", "B"]) == ["B"]
        assert await store.ensure_schema("t", ["A", "B"]) == []

        rows = await store.read_rows("t")
        assert rows[0].values == {"A": "1", "B": ""}

    async def test_blank_rows_skipped(self, store):
        """Test that all-empty rows are not returned."""
        await store.connect()
        await store.ensure_schema("t", ["A"])
        await store.append_row("t", {})
        await store.append_row("t", {"A": "1"})
        assert len(await store.read_rows("t")) == 1

    async def test_update_and_delete(self, store):
        """Test update and delete by handle."""
        await store.connect()
        await store.ensure_schema("t", ["A", "B"])
        await store.append_row("t", {"A": "1"})
        await store.append_row("t", {"A": "2"})
        first, second = await store.read_rows("t")

        await store.update_row(first.ref, {"B": "y"})
        await store.delete_row(second.ref)

        rows = await store.read_rows("t")
        assert [row.values for row in rows] == [{"A": "1", "B": "y"}]

    async def test_stale_handle(self, store):
        """Test that a deleted row's handle is never reused."""
        await store.connect()
        await store.ensure_schema("t", ["A"])
        await store.append_row("t", {"A": "1"})
        (row,) = await store.read_rows("t")
        await store.delete_row(row.ref)
        await store.append_row("t", {"A": "2"})

        with pytest.raises(NotFoundError):
            await store.update_row(row.ref, {"A": "3"})
        with pytest.raises(NotFoundError):
            await store.delete_row(row.ref)


class TestRepositories:
    """Tests for typed conversion and legacy rows."""

    async def test_open_creates_every_table(self, storage, store):
        """Test that open() checks every schema."""
        for table, columns in TABLE_SCHEMAS.items():
            assert await store.ensure_schema(table, columns) == []

    async def test_open_is_idempotent(self, storage):
        """Test that a second open() is a no-op."""
        await storage.open()

    async def test_transaction_round_trip(self, storage):
        """Test that a pending entry is readable by code."""
        tx = Transaction(
            timestamp=datetime(2026, 10, 14, 9, 30, tzinfo=TZ),
            creator_id="1001",
            counterparty_label="Bao",
            kind=TransactionKind.DEBT,
            amount=50_000,
            note="tiền cơm",
            counterparty_id="2002",
            status=TransactionStatus.PENDING,
            confirmation_code="ABC123",
        )
        await storage.transactions.add(tx)

        stored = await storage.transactions.find_by_code("abc123")
        assert stored.record == tx
        assert await storage.transactions.existing_codes() == {"ABC123"}

        await storage.transactions.set_status(stored.ref, TransactionStatus.CONFIRMED)
        stored = await storage.transactions.find_by_code("ABC123")
        assert stored.record.status == TransactionStatus.CONFIRMED

    async def test_legacy_rows(self, store, audit_logger):
        """Test that rows from the six-column sheet still read."""
        await store.connect()
        await store.ensure_schema(TRANSACTIONS, LEGACY_TRANSACTION_COLUMNS)
        await store.append_row(TRANSACTIONS, {
            "Date": "10:30:00 14/10/2026",
            "UserID": "1001",
            "Debtor": "",
            "Type": "debt",
            "Amount": "50.000",
            "Content": "cafe",
        })

        storage = LedgerStorage(store, audit_logger=audit_logger)
        await storage.open()
        assert (await store.read_rows(TRANSACTIONS))[0].values.keys() == set(TRANSACTION_COLUMNS)

        (stored,) = await storage.transactions.list_all()
        tx = stored.record
        assert tx.status == TransactionStatus.CONFIRMED
        assert tx.counterparty_label == "Chung"
        assert tx.kind == TransactionKind.DEBT
        assert tx.amount == 50_000
        assert tx.timestamp == datetime(2026, 10, 14, 10, 30, tzinfo=TZ)
        assert tx.confirmation_code is None

    async def test_unreadable_rows_are_skipped(self, storage, store):
        """Test that a malformed row does not hide the others."""
        await store.append_row(TRANSACTIONS, {"Date": "garbage", "UserID": "1001", "Type": "DEBT", "Amount": "1"})
        await store.append_row(TRANSACTIONS, {
            "Date": "2026-10-14T09:30:00+07:00",
            "UserID": "1001",
            "Debtor": "Minh",
            "Type": "PAID",
            "Amount": "20000",
        })
        records = await storage.transactions.list_all()
        assert [s.record.counterparty_label for s in records] == ["Minh"]

    def test_parse_timestamp_formats(self):
        """Test ISO and legacy timestamp layouts."""
        assert parse_timestamp("14/10/2026", TZ) == datetime(2026, 10, 14, tzinfo=TZ)
        assert parse_timestamp("2026-10-14T09:30:00", TZ) == datetime(2026, 10, 14, 9, 30, tzinfo=TZ)
        with pytest.raises(ValueError):
            parse_timestamp("yesterday", TZ)

    async def test_alias_rename(self, storage):
        """Test renaming an alias row in place."""
        from debtbot.models.ledger import Alias

        await storage.aliases.add(Alias(party_id="1001", display_name="Tuan", created_at=datetime.now(TZ)))
        stored = await storage.aliases.get_by_party("1001")
        await storage.aliases.rename(stored.ref, "Tuấn")

        assert (await storage.aliases.get_by_party("1001")).record.display_name == "Tuấn"
        assert await storage.aliases.get_by_party("2002") is None


class TestTranslateError:
    """Tests for mapping gspread/requests failures."""

    @pytest.mark.parametrize("status", [429, 500, 503])
    def test_transient_status(self, status):
        """Test that throttling and server errors are transient."""
        assert isinstance(translate_error("read", api_error(status)), TransientStorageError)

    @pytest.mark.parametrize("status", [400, 403, 404])
    def test_fatal_status(self, status):
        """Test that client errors are fatal."""
        assert isinstance(translate_error("read", api_error(status)), FatalStorageError)

    def test_network_errors_are_transient(self):
        """Test that connection failures and timeouts are transient."""
        assert isinstance(translate_error("read", requests.exceptions.ConnectionError()), TransientStorageError)
        assert isinstance(translate_error("read", requests.exceptions.Timeout()), TransientStorageError)


@pytest.fixture
def sheets_settings():
    with pytest.warns(UserWarning):
        return GoogleSheetsSettings(
            credentials_path="/nonexistent/credentials.json",
            spreadsheet_id="sheet-1",
        )


@pytest.fixture
def fake_sheet():
    sheet = MagicMock()
    sheet.row_values.return_value = list(TRANSACTION_COLUMNS)
    sheet.col_count = len(TRANSACTION_COLUMNS)
    sheet.row_count = 3
    return sheet


@pytest.fixture
def fake_client(fake_sheet):
    client = MagicMock()
    client.open_by_key.return_value.worksheet.return_value = fake_sheet
    return client


@pytest.fixture
def sheets_store(sheets_settings, fake_client, monkeypatch):
    monkeypatch.setattr(
        google_sheets.Credentials,
        "from_service_account_file",
        MagicMock(return_value=object()),
    )
    return GoogleSheetsRowStore(sheets_settings, client_factory=lambda credentials: fake_client)


class TestGoogleSheetsRowStore:
    """Tests for the Sheets backend with gspread mocked out."""

    async def test_missing_credentials_is_fatal(self, sheets_settings):
        """Test that a missing credentials file fails without retry."""
        store = GoogleSheetsRowStore(sheets_settings, client_factory=MagicMock())
        with pytest.raises(FatalStorageError):
            await store.connect()

    async def test_missing_spreadsheet_is_fatal(self, sheets_store, fake_client):
        """Test that an unknown spreadsheet id is fatal."""
        fake_client.open_by_key.side_effect = gspread.SpreadsheetNotFound()
        with pytest.raises(FatalStorageError):
            await sheets_store.connect()

    async def test_connect_sets_timeout(self, sheets_store, fake_client):
        """Test that the configured timeout reaches the client."""
        await sheets_store.connect()
        fake_client.set_timeout.assert_called_once_with(30.0)
        fake_client.open_by_key.assert_called_once_with("sheet-1")

    async def test_calls_before_connect(self, sheets_store):
        """Test that row calls before connect are connection errors."""
        with pytest.raises(StorageConnectionError):
            await sheets_store.append_row(TRANSACTIONS, {"UserID": "1001"})

    async def test_creates_missing_worksheet(self, sheets_store, fake_client, fake_sheet):
        """Test that a missing worksheet is created with the full header."""
        spreadsheet = fake_client.open_by_key.return_value
        spreadsheet.worksheet.side_effect = gspread.WorksheetNotFound("Transactions")
        spreadsheet.add_worksheet.return_value = fake_sheet
        await sheets_store.connect()

        added = await sheets_store.ensure_schema(TRANSACTIONS, TRANSACTION_COLUMNS)

        assert added == TRANSACTION_COLUMNS
        spreadsheet.add_worksheet.assert_called_once_with(
            title="Transactions", rows=1000, cols=len(TRANSACTION_COLUMNS)
        )
        fake_sheet.append_row.assert_called_once_with(TRANSACTION_COLUMNS)

    async def test_adds_missing_columns(self, sheets_store, fake_sheet):
        """Test that an old header is extended in place."""
        fake_sheet.row_values.return_value = list(LEGACY_TRANSACTION_COLUMNS)
        fake_sheet.col_count = len(LEGACY_TRANSACTION_COLUMNS)
        await sheets_store.connect()

        added = await sheets_store.ensure_schema(TRANSACTIONS, TRANSACTION_COLUMNS)

        assert added == ["DebtorUserID", "Status", "DebtCode"]
        fake_sheet.add_cols.assert_called_once_with(3)
        fake_sheet.update.assert_called_once_with(values=[TRANSACTION_COLUMNS], range_name="A1")

    async def test_read_rows_pads_and_skips_blank(self, sheets_store, fake_sheet):
        """Test row keys, padding and blank rows."""
        fake_sheet.get_all_values.return_value = [
            list(TRANSACTION_COLUMNS),
            ["", "", ""],
            ["2026-10-14T09:30:00+07:00", "1001", "Minh", "DEBT", "50000", "cafe"],
        ]
        await sheets_store.connect()
        await sheets_store.ensure_schema(TRANSACTIONS, TRANSACTION_COLUMNS)

        (row,) = await sheets_store.read_rows(TRANSACTIONS)
        assert row.ref.row_key == 3
        assert row.ref.identity == ("2026-10-14T09:30:00+07:00", "1001", "")
        assert row.values["Debtor"] == "Minh"
        assert row.values["DebtCode"] == ""

    async def test_update_row_writes_cells(self, sheets_store, fake_sheet):
        """Test that an update touches only the named columns."""
        await sheets_store.connect()
        await sheets_store.ensure_schema(TRANSACTIONS, TRANSACTION_COLUMNS)

        await sheets_store.update_row(RowRef(table=TRANSACTIONS, row_key=3), {"Status": "CONFIRMED"})

        (cells,), kwargs = fake_sheet.update_cells.call_args
        assert [(c.row, c.col, c.value) for c in cells] == [(3, 8, "CONFIRMED")]
        assert kwargs == {"value_input_option": "RAW"}

    async def test_update_row_out_of_range(self, sheets_store, fake_sheet):
        """Test that a handle past the end is not found."""
        await sheets_store.connect()
        await sheets_store.ensure_schema(TRANSACTIONS, TRANSACTION_COLUMNS)
        with pytest.raises(NotFoundError):
            await sheets_store.update_row(RowRef(table=TRANSACTIONS, row_key=4), {"Status": "X"})
        with pytest.raises(NotFoundError):
            await sheets_store.delete_row(RowRef(table=TRANSACTIONS, row_key=1))

    @pytest.fixture
    async def pending_row(self, sheets_store, fake_sheet):
        pending = ["2026-10-14T09:30:00+07:00", "1001", "Bao", "DEBT", "50000", "cafe", "2002", "PENDING", "AAAAAA"]
        fake_sheet.get_all_values.return_value = [list(TRANSACTION_COLUMNS), pending]
        await sheets_store.connect()
        await sheets_store.ensure_schema(TRANSACTIONS, TRANSACTION_COLUMNS)
        (row,) = await sheets_store.read_rows(TRANSACTIONS)
        return row

    async def test_update_row_checks_identity(self, sheets_store, fake_sheet, pending_row):
        """Test that an unchanged row is re-read and then written."""
        fake_sheet.row_values.side_effect = lambda row: [pending_row.values[c] for c in TRANSACTION_COLUMNS]

        await sheets_store.update_row(pending_row.ref, {"Status": "CONFIRMED"})

        fake_sheet.row_values.assert_called_with(2)
        fake_sheet.update_cells.assert_called_once()

    async def test_update_row_after_shift(self, sheets_store, fake_sheet, pending_row):
        """Test that a row moved in by a delete is never overwritten."""
        other = ["2026-10-14T10:00:00+07:00", "3003", "Minh", "DEBT", "1000", "xang", "", "CONFIRMED", ""]
        fake_sheet.row_values.side_effect = lambda row: other

        with pytest.raises(NotFoundError):
            await sheets_store.update_row(pending_row.ref, {"Status": "CONFIRMED"})
        fake_sheet.update_cells.assert_not_called()

    async def test_delete_row_after_shift(self, sheets_store, fake_sheet, pending_row):
        """Test that delete refuses a row that is no longer the one read."""
        fake_sheet.row_values.side_effect = lambda row: ["2026-10-14T10:00:00+07:00", "3003"]

        with pytest.raises(NotFoundError):
            await sheets_store.delete_row(pending_row.ref)
        fake_sheet.delete_rows.assert_not_called()

    async def test_append_is_not_retried(self, sheets_store, fake_sheet):
        """Test that a failed write is attempted once and reported as transient."""
        fake_sheet.append_row.side_effect = api_error(503)
        await sheets_store.connect()
        await sheets_store.ensure_schema(TRANSACTIONS, TRANSACTION_COLUMNS)

        with pytest.raises(TransientStorageError):
            await sheets_store.append_row(TRANSACTIONS, {"UserID": "1001"})
        assert fake_sheet.append_row.call_count == 1
        row = fake_sheet.append_row.call_args.args[0]
        assert row[TRANSACTION_COLUMNS.index("UserID")] == "1001"

    async def test_fatal_read(self, sheets_store, fake_sheet):
        """Test that a client error on read is fatal."""
        fake_sheet.get_all_values.side_effect = api_error(403)
        await sheets_store.connect()
        await sheets_store.ensure_schema(TRANSACTIONS, TRANSACTION_COLUMNS)
        with pytest.raises(FatalStorageError):
            await sheets_store.read_rows(TRANSACTIONS)
        assert fake_sheet.get_all_values.call_count == 1

    async def test_close_resets(self, sheets_store):
        """Test that close forgets the spreadsheet."""
        await sheets_store.connect()
        await sheets_store.close()
        with pytest.raises(StorageConnectionError):
            await sheets_store.append_row(TRANSACTIONS, {"UserID": "1001"})
