"""
Audit Logger

DESIGN DECISION: Every command, state change and storage failure is logged.
This provides:
1. Traceability of who changed which ledger entry
2. Debugging capability
3. A correlation ID tying all events of one inbound message together

The audit logger:
- Writes structured JSON lines through structlog
- Never raises (a logging failure must not fail a command)
- Keeps no persisted audit trail; the ledger rows are the record
"""

import logging
import sys
from typing import Optional
from uuid import UUID, uuid4

import structlog

from debtbot.models.audit import AuditEvent, AuditEventBuilder, AuditSeverity


def configure_logging(debug: bool = False) -> None:
    """Configure stdlib logging and structlog for JSON output."""
    level = logging.DEBUG if debug else logging.INFO
    logging.basicConfig(format="%(message)s", stream=sys.stdout, level=level)
    # basicConfig is a no-op once handlers exist
    logging.getLogger().setLevel(level)
    structlog.configure(
        processors=[
            structlog.stdlib.filter_by_level,
            structlog.stdlib.add_logger_name,
            structlog.stdlib.add_log_level,
            structlog.stdlib.PositionalArgumentsFormatter(),
            structlog.processors.TimeStamper(fmt="iso"),
            structlog.processors.StackInfoRenderer(),
            structlog.processors.format_exc_info,
            structlog.processors.UnicodeDecoder(),
            structlog.processors.JSONRenderer(ensure_ascii=False),
        ],
        wrapper_class=structlog.stdlib.BoundLogger,
        context_class=dict,
        logger_factory=structlog.stdlib.LoggerFactory(),
        cache_logger_on_first_use=True,
    )


configure_logging()

logger = structlog.get_logger(__name__)


class AuditLogger:
    """
    Central audit logging service.

    Handlers call the `log_*` helpers; each builds an `AuditEvent` and
    writes it at the level matching its severity.
    """

    def __init__(self, logger_name: str = "debtbot.audit"):
        self._logger = structlog.get_logger(logger_name)

    async def log(self, event: AuditEvent) -> bool:
        """
        Log an audit event.

        Returns False if the event could not be written.
        """
        try:
            log_dict = event.to_log_dict()
            if event.severity in (AuditSeverity.ERROR, AuditSeverity.CRITICAL):
                self._logger.error("audit_event", **log_dict)
            elif event.severity == AuditSeverity.WARNING:
                self._logger.warning("audit_event", **log_dict)
            elif event.severity == AuditSeverity.DEBUG:
                self._logger.debug("audit_event", **log_dict)
            else:
                self._logger.info("audit_event", **log_dict)
        except Exception as e:
            logger.error("audit_log_failed", error=str(e), event_id=str(event.event_id))
            return False
        return True

    # Inbound

    async def log_message_received(self, party_id: str, text: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.message_received(party_id, text, correlation_id))

    async def log_command_classified(
        self,
        party_id: str,
        intent_type: str,
        tier: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.command_classified(party_id, intent_type, tier, correlation_id)
        )

    async def log_command_not_understood(self, party_id: str, correlation_id: UUID) -> None:
        await self.log(AuditEventBuilder.command_not_understood(party_id, correlation_id))

    async def log_command_refused(
        self,
        party_id: str,
        error_type: str,
        message: str,
        correlation_id: UUID,
    ) -> None:
        await self.log(
            AuditEventBuilder.command_refused(party_id, error_type, message, correlation_id)
        )

    # Identity

    async def log_alias_assigned(
        self,
        party_id: str,
        alias: str,
        automatic: bool = False,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.alias_assigned(party_id, alias, automatic, correlation_id)
        )

    async def log_share_code_created(
        self,
        party_id: str,
        code: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.share_code_created(party_id, code, correlation_id))

    async def log_friend_linked(
        self,
        party_id: str,
        friend_id: str,
        method: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.friend_linked(party_id, friend_id, method, correlation_id)
        )

    # Ledger

    async def log_entry_recorded(
        self,
        party_id: str,
        kind: str,
        amount: int,
        status: str,
        code: Optional[str],
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.entry_recorded(party_id, kind, amount, status, code, correlation_id)
        )

    async def log_entry_confirmed(
        self,
        party_id: str,
        code: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_confirmed(party_id, code, correlation_id))

    async def log_entry_rejected(
        self,
        party_id: str,
        code: str,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_rejected(party_id, code, correlation_id))

    async def log_entry_undone(
        self,
        party_id: str,
        kind: str,
        amount: int,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(AuditEventBuilder.entry_undone(party_id, kind, amount, correlation_id))

    # System

    async def log_schema_checked(
        self,
        table: str,
        added_columns: list[str],
        schema_version: int,
    ) -> None:
        await self.log(AuditEventBuilder.schema_checked(table, added_columns, schema_version))

    async def log_error(
        self,
        error_type: str,
        error_message: str,
        details: Optional[dict] = None,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        """Log an unexpected error."""
        await self.log(
            AuditEventBuilder.system_error(
                error_type=error_type,
                error_message=error_message,
                details=details,
                correlation_id=correlation_id,
            )
        )

    async def log_storage_error(
        self,
        operation: str,
        error_message: str,
        transient: bool,
        correlation_id: Optional[UUID] = None,
    ) -> None:
        await self.log(
            AuditEventBuilder.storage_error(operation, error_message, transient, correlation_id)
        )


def create_correlation_id() -> UUID:
    """
    Create a new correlation ID for tracking related events.

    One per inbound message; pass it to every handler the message reaches.
    """
    return uuid4()
