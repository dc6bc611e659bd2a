"""
Abstract Storage Interface

DESIGN DECISION: We define an abstract row-store interface.
This allows us to:
1. Keep Google Sheets as the backend non-technical users can read
2. Use in-memory storage for testing
3. Keep ledger logic decoupled from the store's native row objects

The interface is intentionally tiny - a table of string cells with
insertion order preserved. Typed conversion lives in the repositories.
"""

from abc import ABC, abstractmethod

from pydantic import BaseModel

from debtbot.models.ledger import RowRef


class StoredRow(BaseModel):
    """Raw cell values of one row, keyed by column name."""

    ref: RowRef
    values: dict[str, str]


class RowStore(ABC):
    """
    Abstract interface for a row-oriented table store.

    Any storage implementation (Google Sheets, SQLite, a CSV file...)
    must implement these methods. `read_rows` MUST return rows in
    insertion order: "most recent" semantics depend on it.
    """

    @abstractmethod
    async def connect(self) -> None:
        """
        Open the connection to the backend.

        Raises:
            StorageConnectionError: If the backend is unreachable
        """
        pass

    @abstractmethod
    async def close(self) -> None:
        """Release the connection. Safe to call twice."""
        pass

    @abstractmethod
    async def ensure_schema(self, table: str, columns: list[str]) -> list[str]:
        """
        Create the table or add missing columns without touching rows.

        Args:
            table: Logical table name
            columns: Columns the table must have, in order

        Returns:
            The columns that had to be added
        """
        pass

    @abstractmethod
    async def append_row(self, table: str, values: dict[str, str]) -> None:
        """
        Append one row. Columns missing from `values` are left empty.

        Raises:
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def read_rows(self, table: str) -> list[StoredRow]:
        """
        Read every non-empty row of a table in insertion order.

        Raises:
            StorageError: If the read fails
        """
        pass

    @abstractmethod
    async def update_row(self, ref: RowRef, values: dict[str, str]) -> None:
        """
        Overwrite the given cells of one row.

        Raises:
            NotFoundError: If the row no longer exists
            StorageError: If the write fails
        """
        pass

    @abstractmethod
    async def delete_row(self, ref: RowRef) -> None:
        """
        Delete one row.

        Raises:
            NotFoundError: If the row no longer exists
            StorageError: If the write fails
        """
        pass


class StorageError(Exception):
    """Base exception for storage operations."""
    pass


class TransientStorageError(StorageError):
    """Backend temporarily unavailable; the whole command may be retried."""
    pass


class FatalStorageError(StorageError):
    """Backend refused the operation; retrying will not help."""
    pass


class NotFoundError(FatalStorageError):
    """Row or table not found in storage."""
    pass


class StorageConnectionError(TransientStorageError):
    """Could not connect to storage backend."""
    pass
