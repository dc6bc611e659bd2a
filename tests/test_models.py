"""
Tests for Debtbot models

Test strategy:
1. Unit tests for individual components (models, validators)
2. Integration tests for flows against the in-memory row store
3. No real API calls in tests (use mocks)
"""

import pytest
from datetime import datetime, timedelta, timezone
from unittest.mock import MagicMock
from uuid import uuid4

from debtbot.audit import AuditLogger
from debtbot.models.ledger import (
    MAX_AMOUNT,
    FriendLink,
    FriendLinkStatus,
    RowRef,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from debtbot.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)
from debtbot.models.intent import RecordEntry


NOW = datetime(2026, 10, 14, 9, 30, tzinfo=timezone.utc)


class TestTransactionModel:
    """Tests for ledger entries."""

    def test_free_text_entry_defaults_to_confirmed(self):
        """Test that a plain entry is CONFIRMED with no code."""
        tx = Transaction(
            timestamp=NOW,
            creator_id="1001",
            counterparty_label="  Minh  ",
            kind=TransactionKind.DEBT,
            amount=50_000,
        )
        assert tx.status == TransactionStatus.CONFIRMED
        assert tx.counts_toward_balance
        assert tx.confirmation_code is None
        assert tx.counterparty_label == "Minh"

    def test_pending_requires_counterparty_id(self):
        """Test that a pending entry without a party id is rejected."""
        with pytest.raises(ValueError):
            Transaction(
                timestamp=NOW,
                creator_id="1001",
                counterparty_label="Bao",
                kind=TransactionKind.DEBT,
                amount=50_000,
                status=TransactionStatus.PENDING,
                confirmation_code="ABC123",
            )

    def test_pending_requires_code(self):
        """Test that a pending entry without a code is rejected."""
        with pytest.raises(ValueError):
            Transaction(
                timestamp=NOW,
                creator_id="1001",
                counterparty_label="Bao",
                kind=TransactionKind.DEBT,
                amount=50_000,
                counterparty_id="2002",
                status=TransactionStatus.PENDING,
            )

    def test_pending_entry(self):
        """Test a valid pending entry."""
        tx = Transaction(
            timestamp=NOW,
            creator_id="1001",
            counterparty_label="Bao",
            kind=TransactionKind.PAID,
            amount=20_000,
            counterparty_id="2002",
            status=TransactionStatus.PENDING,
            confirmation_code="ABC123",
        )
        assert tx.is_pending
        assert not tx.counts_toward_balance

    @pytest.mark.parametrize("amount", [0, -1, MAX_AMOUNT + 1])
    def test_amount_bounds(self, amount):
        """Test that amounts outside (0, MAX_AMOUNT] are rejected."""
        with pytest.raises(ValueError):
            Transaction(
                timestamp=NOW,
                creator_id="1001",
                counterparty_label="Bao",
                kind=TransactionKind.DEBT,
                amount=amount,
            )

    def test_row_ref_is_hashable(self):
        """Test that row handles are frozen values."""
        ref = RowRef(table="transactions", row_key=2)
        assert {ref: 1}[RowRef(table="transactions", row_key=2)] == 1

    def test_record_entry_rejects_zero_index(self):
        """Test that @0 is not a valid counterparty index."""
        with pytest.raises(ValueError):
            RecordEntry(kind=TransactionKind.DEBT, amount=1, note="x", counterparty_index=0)


class TestFriendLinkModel:
    """Tests for the per-direction naming on links."""

    @pytest.fixture
    def link(self):
        return FriendLink(
            party_a="1001",
            party_b="2002",
            name_of_b_for_a="Bao",
            name_of_a_for_b="Tuan",
            status=FriendLinkStatus.ACTIVE,
            created_at=NOW,
        )

    def test_name_for_each_side(self, link):
        """Test that each side sees its own name for the other."""
        assert link.name_for("1001") == "Bao"
        assert link.name_for("2002") == "Tuan"

    def test_other_party(self, link):
        """Test other_party from both sides."""
        assert link.other_party("1001") == "2002"
        assert link.other_party("2002") == "1001"

    def test_connects_either_order(self, link):
        """Test that connects ignores argument order."""
        assert link.connects("1001", "2002")
        assert link.connects("2002", "1001")
        assert not link.connects("1001", "3003")

    def test_involves(self, link):
        """Test involves."""
        assert link.involves("2002")
        assert not link.involves("3003")

    def test_expiry(self):
        """Test is_expired around the boundary."""
        link = FriendLink(
            party_b="2002",
            share_code="ABC123",
            created_at=NOW,
            expires_at=NOW + timedelta(hours=24),
        )
        assert link.status == FriendLinkStatus.PENDING
        assert not link.is_expired(NOW + timedelta(hours=24))
        assert link.is_expired(NOW + timedelta(hours=24, seconds=1))

    def test_direct_link_never_expires(self, link):
        """Test that links without expiry never expire."""
        assert not link.is_expired(NOW + timedelta(days=3650))


class TestAuditModels:
    """Tests for audit models."""

    def test_audit_event_creation(self):
        """Test AuditEvent creation."""
        event = AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            description="Test event",
        )
        assert event.event_type == AuditEventType.MESSAGE_RECEIVED
        assert event.severity == AuditSeverity.INFO
        assert event.event_id is not None

    def test_audit_event_to_log_dict(self):
        """Test conversion to log dictionary."""
        event = AuditEvent(
            event_type=AuditEventType.ENTRY_CONFIRMED,
            description="Test event",
            party_id="2002",
            entity_ref="ABC123",
        )
        log_dict = event.to_log_dict()
        assert log_dict["event_type"] == "entry_confirmed"
        assert log_dict["party_id"] == "2002"
        assert log_dict["entity_ref"] == "ABC123"
        assert log_dict["correlation_id"] is None

    def test_builder_message_received_truncates_text(self):
        """Test that long messages are truncated in details."""
        cid = uuid4()
        event = AuditEventBuilder.message_received("1001", "x" * 500, cid)
        assert event.correlation_id == cid
        assert len(event.details["text"]) == 200

    def test_builder_entry_recorded(self):
        """Test the entry_recorded builder."""
        event = AuditEventBuilder.entry_recorded("1001", "DEBT", 50_000, "PENDING", "ABC123", None)
        assert event.event_type == AuditEventType.ENTRY_RECORDED
        assert event.entity_type == "transaction"
        assert event.entity_ref == "ABC123"
        assert event.details == {"kind": "DEBT", "amount": 50_000, "status": "PENDING"}

    def test_builder_refusal_is_warning(self):
        """Test that refusals are logged as warnings."""
        event = AuditEventBuilder.command_refused("1001", "ConflictError", "taken", uuid4())
        assert event.severity == AuditSeverity.WARNING
        assert event.error_message == "taken"

    def test_builder_storage_error(self):
        """Test the storage_error builder."""
        event = AuditEventBuilder.storage_error("append_row", "503", transient=True)
        assert event.severity == AuditSeverity.ERROR
        assert event.details["transient"] is True

    async def test_log_failure_returns_false(self, monkeypatch):
        """Test that a failing audit write is reported through structlog, not raised."""
        fallback = MagicMock()
        monkeypatch.setattr("debtbot.audit.logger.logger", fallback)
        audit = AuditLogger()
        audit._logger = MagicMock()
        audit._logger.info.side_effect = RuntimeError("sink down")
        event = AuditEvent(event_type=AuditEventType.MESSAGE_RECEIVED, description="Test event")

        assert await audit.log(event) is False
        fallback.error.assert_called_once_with(
            "audit_log_failed", error="sink down", event_id=str(event.event_id)
        )
