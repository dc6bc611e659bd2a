"""Ledger entries and the confirmation state machine."""

from debtbot.ledger.service import LedgerService, RecordedEntry, SearchResult

__all__ = ["LedgerService", "RecordedEntry", "SearchResult"]
