"""
Ledger & Confirmation State Machine

Entries naming a linked party start PENDING and need that party's
confirmation; everything else is recorded CONFIRMED on the creator's word.

    PENDING --confirm--> CONFIRMED
    PENDING --reject---> REJECTED

CONFIRMED and REJECTED are terminal. Confirm/reject for one code are
serialized in-process and the row is re-read under the lock, so two
concurrent confirmations give one success and one "already processed".
"""

import asyncio
import weakref
from datetime import datetime
from typing import Callable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from pydantic import BaseModel, ValidationError

from debtbot.audit.logger import AuditLogger
from debtbot.codes import generate_unique_code
from debtbot.directory.service import CounterpartyResolution, IdentityDirectory
from debtbot.errors import (
    AlreadyProcessedError,
    InvalidCommandError,
    NotAuthorizedError,
    RecordNotFoundError,
)
from debtbot.models.intent import RecordEntry
from debtbot.models.ledger import Transaction, TransactionStatus
from debtbot.parsing.normalize import fold_text
from debtbot.services.storage.repositories import LedgerStorage


SEARCH_LIMIT = 10


class RecordedEntry(BaseModel):
    """Result of recording a DEBT or PAID command."""

    transaction: Transaction
    counterparty: Optional[CounterpartyResolution] = None
    ambiguous: bool = False

    @property
    def newly_linked(self) -> bool:
        return self.counterparty is not None and self.counterparty.newly_linked


class SearchResult(BaseModel):
    """Newest matches first, capped; `total` counts every match."""

    matches: list[Transaction]
    total: int

    @property
    def remaining(self) -> int:
        return self.total - len(self.matches)


class LedgerService:
    """Creates, settles, deletes and lists ledger entries."""

    def __init__(
        self,
        storage: LedgerStorage,
        directory: IdentityDirectory,
        code_length: int = 6,
        shared_pool_label: str = "Chung",
        timezone: str = "Asia/Ho_Chi_Minh",
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._directory = directory
        self._code_length = code_length
        self._shared_pool_label = shared_pool_label
        self._tz = ZoneInfo(timezone)
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or (lambda: datetime.now(self._tz))
        self._locks: "weakref.WeakValueDictionary[str, asyncio.Lock]" = weakref.WeakValueDictionary()

    async def _resolve(
        self,
        creator_id: str,
        intent: RecordEntry,
        correlation_id: Optional[UUID],
    ) -> Optional[CounterpartyResolution]:
        if intent.counterparty_index is not None:
            linked = await self._directory.counterparty_by_index(creator_id, intent.counterparty_index)
            return CounterpartyResolution(party_id=linked.party_id, display_name=linked.display_name)
        if intent.counterparty_id:
            return CounterpartyResolution(
                party_id=intent.counterparty_id,
                display_name=intent.counterparty or self._shared_pool_label,
            )
        if intent.counterparty and not intent.ambiguous:
            return await self._directory.resolve_counterparty(
                creator_id, intent.counterparty, correlation_id
            )
        return None

    async def record_entry(
        self,
        creator_id: str,
        intent: RecordEntry,
        correlation_id: Optional[UUID] = None,
    ) -> RecordedEntry:
        """
        Record a DEBT or PAID entry.

        A linked counterparty makes the entry PENDING with a fresh
        confirmation code; a free-text or missing counterparty makes it
        CONFIRMED.

        Raises:
            RecordNotFoundError: `@<index>` out of range
            InvalidCommandError: Note or name too long to store
        """
        resolution = await self._resolve(creator_id, intent, correlation_id)
        ambiguous = intent.ambiguous
        if resolution is not None and resolution.ambiguous:
            resolution, ambiguous = None, True

        try:
            if resolution is not None:
                code = generate_unique_code(
                    await self._storage.transactions.existing_codes(), self._code_length
                )
                tx = Transaction(
                    timestamp=self._clock(),
                    creator_id=creator_id,
                    counterparty_label=resolution.display_name,
                    kind=intent.kind,
                    amount=intent.amount,
                    note=intent.note,
                    counterparty_id=resolution.party_id,
                    status=TransactionStatus.PENDING,
                    confirmation_code=code,
                )
            else:
                tx = Transaction(
                    timestamp=self._clock(),
                    creator_id=creator_id,
                    counterparty_label=intent.counterparty or self._shared_pool_label,
                    kind=intent.kind,
                    amount=intent.amount,
                    note=intent.note,
                )
        except ValidationError as e:
            raise InvalidCommandError("❌ Tên hoặc nội dung quá dài.") from e

        await self._storage.transactions.add(tx)
        await self._audit.log_entry_recorded(
            creator_id,
            tx.kind.value,
            tx.amount,
            tx.status.value,
            tx.confirmation_code,
            correlation_id,
        )
        return RecordedEntry(transaction=tx, counterparty=resolution, ambiguous=ambiguous)

    async def _settle(
        self,
        party_id: str,
        code: str,
        status: TransactionStatus,
        correlation_id: Optional[UUID],
    ) -> Transaction:
        code = code.strip().upper()
        lock = self._locks.get(code)
        if lock is None:
            # dropped from the map once no settle for this code holds it
            lock = self._locks[code] = asyncio.Lock()
        async with lock:
            stored = await self._storage.transactions.find_by_code(code)
            if stored is None:
                raise RecordNotFoundError("❌ Không tìm thấy giao dịch với mã này.")
            if not stored.record.is_pending:
                raise AlreadyProcessedError("⚠️ Giao dịch này đã được xử lý.")
            if stored.record.counterparty_id != party_id:
                verb = "xác nhận" if status == TransactionStatus.CONFIRMED else "từ chối"
                raise NotAuthorizedError(f"❌ Bạn không có quyền {verb} giao dịch này.")

            await self._storage.transactions.set_status(stored.ref, status)

        if status == TransactionStatus.CONFIRMED:
            await self._audit.log_entry_confirmed(party_id, code, correlation_id)
        else:
            await self._audit.log_entry_rejected(party_id, code, correlation_id)
        return stored.record.model_copy(update={"status": status})

    async def confirm(
        self,
        party_id: str,
        code: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """
        Confirm a pending entry addressed to `party_id`.

        Raises:
            RecordNotFoundError: Unknown code
            AlreadyProcessedError: Entry no longer pending
            NotAuthorizedError: `party_id` is not the entry's counterparty
        """
        return await self._settle(party_id, code, TransactionStatus.CONFIRMED, correlation_id)

    async def reject(
        self,
        party_id: str,
        code: str,
        correlation_id: Optional[UUID] = None,
    ) -> Transaction:
        """Reject a pending entry. Same checks as `confirm`."""
        return await self._settle(party_id, code, TransactionStatus.REJECTED, correlation_id)

    async def undo_last(
        self,
        party_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[Transaction]:
        """Delete the most recent entry created by `party_id`, whatever its status."""
        own = [
            stored
            for stored in await self._storage.transactions.list_all()
            if stored.record.creator_id == party_id
        ]
        if not own:
            return None
        last = own[-1]
        await self._storage.transactions.delete(last.ref)
        await self._audit.log_entry_undone(
            party_id, last.record.kind.value, last.record.amount, correlation_id
        )
        return last.record

    async def entries_visible_to(self, party_id: str) -> list[Transaction]:
        """Entries `party_id` created or is the linked counterparty of."""
        return [
            stored.record
            for stored in await self._storage.transactions.list_all()
            if stored.record.creator_id == party_id or stored.record.counterparty_id == party_id
        ]

    async def own_entries(self, party_id: str) -> list[Transaction]:
        return [
            stored.record
            for stored in await self._storage.transactions.list_all()
            if stored.record.creator_id == party_id
        ]

    async def pending_for(self, party_id: str) -> list[Transaction]:
        """Entries waiting for `party_id` to confirm or reject."""
        return [
            tx for tx in await self.entries_visible_to(party_id)
            if tx.is_pending and tx.counterparty_id == party_id
        ]

    async def search(
        self,
        party_id: str,
        keyword: str,
        limit: int = SEARCH_LIMIT,
    ) -> SearchResult:
        """Own entries whose note or counterparty contains `keyword`, accent-insensitive."""
        needle = fold_text(keyword)
        matches = [
            tx for tx in await self.own_entries(party_id)
            if needle in fold_text(tx.note) or needle in fold_text(tx.counterparty_label)
        ]
        return SearchResult(matches=list(reversed(matches))[:limit], total=len(matches))
