"""
Typed Repositories

Convert between raw rows and the ledger models. The row store only
knows strings; everything typed lives here.

Rows written by older versions of the bot are still readable: a missing
Status means CONFIRMED, a missing counterparty label means the shared
pool, and `dd/mm/yyyy` timestamps are parsed in the configured timezone.
Rows that cannot be parsed at all are skipped with a warning.
"""

import re
from datetime import datetime
from typing import Optional
from zoneinfo import ZoneInfo

import structlog
from pydantic import ValidationError

from debtbot.audit.logger import AuditLogger
from debtbot.models.ledger import (
    Alias,
    FriendLink,
    FriendLinkStatus,
    RowRef,
    Stored,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from debtbot.services.storage.interface import RowStore, StoredRow
from debtbot.services.storage.schema import (
    ALIASES,
    FRIEND_LINKS,
    SCHEMA_VERSION,
    TABLE_SCHEMAS,
    TRANSACTIONS,
)


logger = structlog.get_logger(__name__)

_LEGACY_DATE = re.compile(r"(\d{1,2})/(\d{1,2})/(\d{4})")
_LEGACY_TIME = re.compile(r"(\d{1,2}):(\d{2})(?::(\d{2}))?")


def format_timestamp(value: datetime) -> str:
    return value.isoformat(timespec="seconds")


def parse_timestamp(value: str, tz: ZoneInfo) -> datetime:
    """
    Parse a stored timestamp.

    Accepts ISO-8601 and the legacy `HH:MM:SS dd/mm/yyyy` layouts.
    Naive values are interpreted in `tz`.

    Raises:
        ValueError: If the value matches neither layout
    """
    value = value.strip()
    try:
        parsed = datetime.fromisoformat(value)
    except ValueError:
        date_match = _LEGACY_DATE.search(value)
        if not date_match:
            raise ValueError(f"Unrecognized timestamp: {value!r}")
        day, month, year = (int(part) for part in date_match.groups())
        hour = minute = second = 0
        time_match = _LEGACY_TIME.search(value)
        if time_match:
            hour, minute = int(time_match.group(1)), int(time_match.group(2))
            second = int(time_match.group(3) or 0)
        parsed = datetime(year, month, day, hour, minute, second)

    if parsed.tzinfo is None:
        parsed = parsed.replace(tzinfo=tz)
    return parsed


def _optional_timestamp(value: str, tz: ZoneInfo) -> Optional[datetime]:
    return parse_timestamp(value, tz) if value.strip() else None


class _Repository:
    table: str

    def __init__(self, store: RowStore, tz: ZoneInfo):
        self._store = store
        self._tz = tz

    async def _read(self, convert) -> list:
        records = []
        for row in await self._store.read_rows(self.table):
            try:
                records.append(Stored(ref=row.ref, record=convert(row)))
            except (ValueError, ValidationError) as e:
                logger.warning(
                    "row_skipped",
                    table=self.table,
                    row_key=row.ref.row_key,
                    error=str(e),
                )
        return records


class TransactionRepository(_Repository):
    """Debt and repayment entries, in creation order."""

    table = TRANSACTIONS

    def __init__(self, store: RowStore, tz: ZoneInfo, shared_pool_label: str = "Chung"):
        super().__init__(store, tz)
        self._shared_pool_label = shared_pool_label

    def _to_row(self, tx: Transaction) -> dict[str, str]:
        return {
            "Date": format_timestamp(tx.timestamp),
            "UserID": tx.creator_id,
            "Debtor": tx.counterparty_label,
            "Type": tx.kind.value,
            "Amount": str(tx.amount),
            "Content": tx.note,
            "DebtorUserID": tx.counterparty_id,
            "Status": tx.status.value,
            "DebtCode": tx.confirmation_code or "",
        }

    def _from_row(self, row: StoredRow) -> Transaction:
        values = row.values
        amount = values.get("Amount", "").replace(",", "").replace(".", "").strip()
        return Transaction(
            timestamp=parse_timestamp(values.get("Date", ""), self._tz),
            creator_id=values.get("UserID", ""),
            counterparty_label=values.get("Debtor", "").strip() or self._shared_pool_label,
            kind=TransactionKind(values.get("Type", "").strip().upper()),
            amount=int(amount),
            note=values.get("Content", ""),
            counterparty_id=values.get("DebtorUserID", ""),
            status=TransactionStatus(values.get("Status", "").strip().upper() or "CONFIRMED"),
            confirmation_code=values.get("DebtCode", "").strip().upper() or None,
        )

    async def list_all(self) -> list[Stored[Transaction]]:
        return await self._read(self._from_row)

    async def add(self, tx: Transaction) -> None:
        await self._store.append_row(self.table, self._to_row(tx))

    async def find_by_code(self, code: str) -> Optional[Stored[Transaction]]:
        """First entry carrying `code`, case-insensitive."""
        code = code.strip().upper()
        for stored in await self.list_all():
            if stored.record.confirmation_code == code:
                return stored
        return None

    async def existing_codes(self) -> set[str]:
        return {
            stored.record.confirmation_code
            for stored in await self.list_all()
            if stored.record.confirmation_code
        }

    async def set_status(self, ref: RowRef, status: TransactionStatus) -> None:
        await self._store.update_row(ref, {"Status": status.value})

    async def delete(self, ref: RowRef) -> None:
        await self._store.delete_row(ref)


class AliasRepository(_Repository):
    """One display name per party."""

    table = ALIASES

    def _to_row(self, alias: Alias) -> dict[str, str]:
        return {
            "UserID": alias.party_id,
            "Alias": alias.display_name,
            "CreatedAt": format_timestamp(alias.created_at),
        }

    def _from_row(self, row: StoredRow) -> Alias:
        values = row.values
        created = values.get("CreatedAt", "")
        return Alias(
            party_id=values.get("UserID", ""),
            display_name=values.get("Alias", ""),
            created_at=parse_timestamp(created, self._tz) if created.strip() else datetime.now(self._tz),
        )

    async def list_all(self) -> list[Stored[Alias]]:
        return await self._read(self._from_row)

    async def get_by_party(self, party_id: str) -> Optional[Stored[Alias]]:
        for stored in await self.list_all():
            if stored.record.party_id == party_id:
                return stored
        return None

    async def add(self, alias: Alias) -> None:
        await self._store.append_row(self.table, self._to_row(alias))

    async def rename(self, ref: RowRef, display_name: str) -> None:
        await self._store.update_row(ref, {"Alias": display_name})


class FriendLinkRepository(_Repository):
    """Share codes and peer links."""

    table = FRIEND_LINKS

    def _to_row(self, link: FriendLink) -> dict[str, str]:
        return {
            "UserID_A": link.party_a,
            "UserID_B": link.party_b,
            "AliasOfBForA": link.name_of_b_for_a,
            "AliasOfAForB": link.name_of_a_for_b,
            "Code": link.share_code,
            "Status": link.status.value,
            "CreatedAt": format_timestamp(link.created_at),
            "ExpiresAt": format_timestamp(link.expires_at) if link.expires_at else "",
        }

    def _from_row(self, row: StoredRow) -> FriendLink:
        values = row.values
        return FriendLink(
            party_a=values.get("UserID_A", ""),
            party_b=values.get("UserID_B", ""),
            name_of_b_for_a=values.get("AliasOfBForA", ""),
            name_of_a_for_b=values.get("AliasOfAForB", ""),
            share_code=values.get("Code", "").strip().upper(),
            status=FriendLinkStatus(values.get("Status", "").strip().upper() or "ACTIVE"),
            created_at=parse_timestamp(values.get("CreatedAt", ""), self._tz),
            expires_at=_optional_timestamp(values.get("ExpiresAt", ""), self._tz),
        )

    async def list_all(self) -> list[Stored[FriendLink]]:
        return await self._read(self._from_row)

    async def add(self, link: FriendLink) -> None:
        await self._store.append_row(self.table, self._to_row(link))

    async def save(self, ref: RowRef, link: FriendLink) -> None:
        """Overwrite every column of an existing link row."""
        await self._store.update_row(ref, self._to_row(link))


class LedgerStorage:
    """
    Owns the row store and the three repositories built on it.

    `open()` connects and checks every table schema exactly once;
    `close()` releases the connection.
    """

    def __init__(
        self,
        store: RowStore,
        timezone: str = "Asia/Ho_Chi_Minh",
        shared_pool_label: str = "Chung",
        audit_logger: Optional[AuditLogger] = None,
    ):
        tz = ZoneInfo(timezone)
        self.store = store
        self.transactions = TransactionRepository(store, tz, shared_pool_label)
        self.aliases = AliasRepository(store, tz)
        self.friend_links = FriendLinkRepository(store, tz)
        self._audit = audit_logger or AuditLogger()
        self._opened = False

    async def open(self) -> None:
        if self._opened:
            return
        await self.store.connect()
        for table, columns in TABLE_SCHEMAS.items():
            added = await self.store.ensure_schema(table, columns)
            await self._audit.log_schema_checked(table, added, SCHEMA_VERSION)
        self._opened = True

    async def close(self) -> None:
        await self.store.close()
        self._opened = False
