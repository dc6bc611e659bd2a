"""
In-Memory Storage Implementation

Used by the test-suite and by the chat console when no spreadsheet is
configured. Row keys are stable integers that are never reused, so a
handle read before a delete cannot hit a different row afterwards.
"""

from itertools import count

from debtbot.models.ledger import RowRef
from debtbot.services.storage.interface import (
    NotFoundError,
    RowStore,
    StorageConnectionError,
    StoredRow,
)


class InMemoryRowStore(RowStore):
    """Row store backed by plain lists."""

    def __init__(self):
        self._headers: dict[str, list[str]] = {}
        self._rows: dict[str, list[tuple[int, dict[str, str]]]] = {}
        self._keys = count(1)
        self._connected = False

    def _require_connection(self) -> None:
        if not self._connected:
            raise StorageConnectionError("In-memory store is not connected")

    def _table(self, table: str) -> list[tuple[int, dict[str, str]]]:
        self._require_connection()
        if table not in self._rows:
            raise NotFoundError(f"Table not found: {table}")
        return self._rows[table]

    async def connect(self) -> None:
        self._connected = True

    async def close(self) -> None:
        self._connected = False

    async def ensure_schema(self, table: str, columns: list[str]) -> list[str]:
        self._require_connection()
        header = self._headers.setdefault(table, [])
        self._rows.setdefault(table, [])
        added = [column for column in columns if column not in header]
        header.extend(added)
        for _, values in self._rows[table]:
            for column in added:
                values.setdefault(column, "")
        return added

    async def append_row(self, table: str, values: dict[str, str]) -> None:
        rows = self._table(table)
        header = self._headers[table]
        rows.append((next(self._keys), {column: values.get(column, "") for column in header}))

    async def read_rows(self, table: str) -> list[StoredRow]:
        rows = self._table(table)
        return [
            StoredRow(ref=RowRef(table=table, row_key=key), values=dict(values))
            for key, values in rows
            if any(values.values())
        ]

    async def update_row(self, ref: RowRef, values: dict[str, str]) -> None:
        for key, stored in self._table(ref.table):
            if key == ref.row_key:
                stored.update(values)
                return
        raise NotFoundError(f"Row not found: {ref.table}#{ref.row_key}")

    async def delete_row(self, ref: RowRef) -> None:
        rows = self._table(ref.table)
        for index, (key, _) in enumerate(rows):
            if key == ref.row_key:
                del rows[index]
                return
        raise NotFoundError(f"Row not found: {ref.table}#{ref.row_key}")
