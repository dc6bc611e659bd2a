"""
Storage Services Package

Provides the abstract row-store interface and its implementations.
Google Sheets is the production backend; the in-memory store backs tests
and the local chat console.
"""

from debtbot.services.storage.interface import (
    FatalStorageError,
    NotFoundError,
    RowStore,
    StorageConnectionError,
    StorageError,
    StoredRow,
    TransientStorageError,
)
from debtbot.services.storage.google_sheets import GoogleSheetsRowStore
from debtbot.services.storage.memory import InMemoryRowStore
from debtbot.services.storage.repositories import (
    AliasRepository,
    FriendLinkRepository,
    LedgerStorage,
    TransactionRepository,
)
from debtbot.services.storage.schema import SCHEMA_VERSION, TABLE_SCHEMAS

__all__ = [
    # Interfaces
    "RowStore",
    "StoredRow",
    # Exceptions
    "FatalStorageError",
    "NotFoundError",
    "StorageConnectionError",
    "StorageError",
    "TransientStorageError",
    # Implementations
    "GoogleSheetsRowStore",
    "InMemoryRowStore",
    # Repositories
    "AliasRepository",
    "FriendLinkRepository",
    "LedgerStorage",
    "TransactionRepository",
    # Schema
    "SCHEMA_VERSION",
    "TABLE_SCHEMAS",
]
