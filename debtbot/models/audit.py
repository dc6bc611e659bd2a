"""
Audit Models for Debtbot

Every significant action in the system produces a structured event.
This provides:
1. Traceability of what each command did
2. Debugging information when things go wrong
3. A single place that names every state change

DESIGN DECISION: Events are written to the structured local log only.
The ledger rows themselves are the durable record.
"""

from datetime import datetime, timezone
from enum import Enum
from typing import Any, Optional
from uuid import UUID, uuid4

from pydantic import BaseModel, Field


class AuditEventType(str, Enum):
    """
    Types of events we audit.
    """
    # Inbound
    MESSAGE_RECEIVED = "message_received"
    COMMAND_CLASSIFIED = "command_classified"
    COMMAND_NOT_UNDERSTOOD = "command_not_understood"
    COMMAND_REFUSED = "command_refused"

    # Identity
    ALIAS_ASSIGNED = "alias_assigned"
    SHARE_CODE_CREATED = "share_code_created"
    FRIEND_LINKED = "friend_linked"

    # Ledger
    ENTRY_RECORDED = "entry_recorded"
    ENTRY_CONFIRMED = "entry_confirmed"
    ENTRY_REJECTED = "entry_rejected"
    ENTRY_UNDONE = "entry_undone"

    # System events
    SCHEMA_CHECKED = "schema_checked"
    SYSTEM_ERROR = "system_error"
    STORAGE_ERROR = "storage_error"


class AuditSeverity(str, Enum):
    """Severity level for audit events."""
    DEBUG = "debug"
    INFO = "info"
    WARNING = "warning"
    ERROR = "error"
    CRITICAL = "critical"


class AuditEvent(BaseModel):
    """
    A single audit event.

    This is the core unit of our audit trail.
    Every significant action creates one of these.
    """

    # Identity
    event_id: UUID = Field(
        default_factory=uuid4,
        description="Unique event identifier"
    )
    timestamp: datetime = Field(
        default_factory=lambda: datetime.now(timezone.utc),
        description="When the event occurred (UTC)"
    )

    # Event classification
    event_type: AuditEventType = Field(
        ...,
        description="Type of event"
    )
    severity: AuditSeverity = Field(
        default=AuditSeverity.INFO,
        description="Event severity"
    )

    # Who and what
    party_id: Optional[str] = Field(
        default=None,
        description="Party whose message caused the event"
    )
    entity_type: Optional[str] = Field(
        default=None,
        description="Type of entity (e.g., 'transaction', 'alias', 'friend_link')"
    )
    entity_ref: Optional[str] = Field(
        default=None,
        description="Code or id of the entity this event relates to"
    )

    # Correlation - all events of one inbound message
    correlation_id: Optional[UUID] = None

    description: str = Field(
        ...,
        max_length=500,
        description="Human-readable description of what happened"
    )
    details: dict[str, Any] = Field(
        default_factory=dict,
        description="Additional event-specific data"
    )

    error_message: Optional[str] = None

    def to_log_dict(self) -> dict:
        """
        Convert to a dictionary suitable for structured logging.
        """
        return {
            "event_id": str(self.event_id),
            "timestamp": self.timestamp.isoformat(),
            "event_type": self.event_type.value,
            "severity": self.severity.value,
            "party_id": self.party_id,
            "entity_type": self.entity_type,
            "entity_ref": self.entity_ref,
            "correlation_id": str(self.correlation_id) if self.correlation_id else None,
            "description": self.description,
            "details": self.details,
            "error_message": self.error_message,
        }


class AuditEventBuilder:
    """
    Helper class to build audit events with common patterns.

    Usage:
        event = AuditEventBuilder.message_received(party_id, text, correlation_id)
        event = AuditEventBuilder.entry_confirmed(party_id, code, correlation_id)
    """

    @staticmethod
    def message_received(
        party_id: str,
        text: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.MESSAGE_RECEIVED,
            party_id=party_id,
            correlation_id=correlation_id,
            description="Message received",
            details={"text": text[:200]},
        )

    @staticmethod
    def command_classified(
        party_id: str,
        intent_type: str,
        tier: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_CLASSIFIED,
            party_id=party_id,
            correlation_id=correlation_id,
            description=f"Command classified as {intent_type}",
            details={"intent": intent_type, "tier": tier},
        )

    @staticmethod
    def command_not_understood(
        party_id: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_NOT_UNDERSTOOD,
            party_id=party_id,
            correlation_id=correlation_id,
            description="No intent recognized",
        )

    @staticmethod
    def command_refused(
        party_id: str,
        error_type: str,
        message: str,
        correlation_id: UUID
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.COMMAND_REFUSED,
            severity=AuditSeverity.WARNING,
            party_id=party_id,
            correlation_id=correlation_id,
            description=f"Command refused: {error_type}",
            details={"error_type": error_type},
            error_message=message,
        )

    @staticmethod
    def alias_assigned(
        party_id: str,
        alias: str,
        automatic: bool,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ALIAS_ASSIGNED,
            party_id=party_id,
            entity_type="alias",
            entity_ref=alias,
            correlation_id=correlation_id,
            description=f"Alias set to {alias}",
            details={"automatic": automatic},
        )

    @staticmethod
    def share_code_created(
        party_id: str,
        code: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SHARE_CODE_CREATED,
            party_id=party_id,
            entity_type="friend_link",
            entity_ref=code,
            correlation_id=correlation_id,
            description="Share code issued",
        )

    @staticmethod
    def friend_linked(
        party_id: str,
        friend_id: str,
        method: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.FRIEND_LINKED,
            party_id=party_id,
            entity_type="friend_link",
            entity_ref=friend_id,
            correlation_id=correlation_id,
            description=f"Linked via {method}",
            details={"friend_id": friend_id, "method": method},
        )

    @staticmethod
    def entry_recorded(
        party_id: str,
        kind: str,
        amount: int,
        status: str,
        code: Optional[str],
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_RECORDED,
            party_id=party_id,
            entity_type="transaction",
            entity_ref=code,
            correlation_id=correlation_id,
            description=f"{kind} of {amount} recorded as {status}",
            details={"kind": kind, "amount": amount, "status": status},
        )

    @staticmethod
    def entry_confirmed(
        party_id: str,
        code: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_CONFIRMED,
            party_id=party_id,
            entity_type="transaction",
            entity_ref=code,
            correlation_id=correlation_id,
            description="Pending entry confirmed",
        )

    @staticmethod
    def entry_rejected(
        party_id: str,
        code: str,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_REJECTED,
            party_id=party_id,
            entity_type="transaction",
            entity_ref=code,
            correlation_id=correlation_id,
            description="Pending entry rejected",
        )

    @staticmethod
    def entry_undone(
        party_id: str,
        kind: str,
        amount: int,
        correlation_id: Optional[UUID]
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.ENTRY_UNDONE,
            party_id=party_id,
            entity_type="transaction",
            correlation_id=correlation_id,
            description=f"Deleted last {kind} of {amount}",
            details={"kind": kind, "amount": amount},
        )

    @staticmethod
    def schema_checked(
        table: str,
        added_columns: list[str],
        schema_version: int
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SCHEMA_CHECKED,
            entity_type="table",
            entity_ref=table,
            description=f"Schema v{schema_version} checked for {table}",
            details={"added_columns": added_columns},
        )

    @staticmethod
    def system_error(
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.SYSTEM_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"System error: {error_type}",
            error_message=error_message,
            details=details or {},
            correlation_id=correlation_id,
        )

    @staticmethod
    def storage_error(
        operation: str,
        error_message: str,
        transient: bool,
        correlation_id: Optional[UUID] = None
    ) -> AuditEvent:
        return AuditEvent(
            event_type=AuditEventType.STORAGE_ERROR,
            severity=AuditSeverity.ERROR,
            description=f"Storage error during {operation}",
            error_message=error_message,
            details={"operation": operation, "transient": transient},
            correlation_id=correlation_id,
        )
