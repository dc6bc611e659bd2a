"""
Shared fixtures.

Every test runs against the in-memory row store with a controllable
clock. No test talks to Google.
"""

import os
from datetime import datetime, timedelta
from zoneinfo import ZoneInfo

import pytest

os.environ.setdefault("STORAGE_BACKEND", "memory")
os.environ.setdefault("GOOGLE_SHEETS_CREDENTIALS_PATH", "/nonexistent/credentials.json")
os.environ.setdefault("GOOGLE_SHEETS_SPREADSHEET_ID", "test-spreadsheet")

from debtbot.audit import AuditLogger
from debtbot.directory import IdentityDirectory
from debtbot.ledger import LedgerService
from debtbot.models.intent import InboundMessage
from debtbot.orchestrator import MessageFlow
from debtbot.services.profile import StaticProfileLookup
from debtbot.services.storage import InMemoryRowStore, LedgerStorage


TZ = ZoneInfo("Asia/Ho_Chi_Minh")

PARTY_A = "1001"
PARTY_B = "2002"
PARTY_C = "3003"


class FakeClock:
    """Callable clock that only moves when told to."""

    def __init__(self, now: datetime):
        self.now = now

    def __call__(self) -> datetime:
        return self.now

    def advance(self, **kwargs) -> None:
        self.now = self.now + timedelta(**kwargs)


@pytest.fixture
def clock() -> FakeClock:
    # A Wednesday
    return FakeClock(datetime(2026, 10, 14, 9, 30, tzinfo=TZ))


@pytest.fixture
def audit_logger() -> AuditLogger:
    return AuditLogger()


@pytest.fixture
def store() -> InMemoryRowStore:
    return InMemoryRowStore()


@pytest.fixture
async def storage(store, audit_logger) -> LedgerStorage:
    storage = LedgerStorage(store, audit_logger=audit_logger)
    await storage.open()
    yield storage
    await storage.close()


@pytest.fixture
def profiles() -> StaticProfileLookup:
    return StaticProfileLookup()


@pytest.fixture
def directory(storage, profiles, audit_logger, clock) -> IdentityDirectory:
    return IdentityDirectory(storage, profiles=profiles, audit_logger=audit_logger, clock=clock)


@pytest.fixture
def ledger(storage, directory, audit_logger, clock) -> LedgerService:
    return LedgerService(storage, directory, audit_logger=audit_logger, clock=clock)


@pytest.fixture
def flow(storage, directory, ledger, audit_logger, clock) -> MessageFlow:
    return MessageFlow(storage, directory, ledger, audit_logger=audit_logger, clock=clock)


@pytest.fixture
def send(flow):
    """send(party_id, text) -> BotReply"""
    async def _send(party_id: str, text: str):
        return await flow.handle(InboundMessage(party_id=party_id, text=text))
    return _send


@pytest.fixture
async def linked_pair(directory):
    """A is 'Tuan', B is 'Bao'; A knows B as 'Bao' and B knows A as 'Tuan'."""
    await directory.set_alias(PARTY_A, "Tuan")
    await directory.set_alias(PARTY_B, "Bao")
    link = await directory.create_share_code(PARTY_B)
    await directory.redeem_share_code(PARTY_A, link.share_code, "Bao")
    return PARTY_A, PARTY_B
