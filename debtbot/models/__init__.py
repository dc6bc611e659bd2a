"""
Data Models Package

This package contains all Pydantic models used in Debtbot.
All data flowing through the system must conform to these schemas.
"""

from debtbot.models.ledger import (
    MAX_AMOUNT,
    Alias,
    FriendLink,
    FriendLinkStatus,
    LinkedCounterparty,
    RowRef,
    Stored,
    Transaction,
    TransactionKind,
    TransactionStatus,
)
from debtbot.models.intent import (
    BotReply,
    CheckBalance,
    ConfirmEntry,
    CreateShareCode,
    Help,
    InboundMessage,
    Intent,
    IntentType,
    LinkFriend,
    ListFriends,
    MyId,
    Notification,
    PendingList,
    RecordEntry,
    RejectEntry,
    Search,
    SetAlias,
    Stats,
    StatsPeriod,
    Undo,
)
from debtbot.models.audit import (
    AuditEvent,
    AuditEventBuilder,
    AuditEventType,
    AuditSeverity,
)

__all__ = [
    # Ledger models
    "MAX_AMOUNT",
    "Alias",
    "FriendLink",
    "FriendLinkStatus",
    "LinkedCounterparty",
    "RowRef",
    "Stored",
    "Transaction",
    "TransactionKind",
    "TransactionStatus",
    # Intents and messages
    "BotReply",
    "CheckBalance",
    "ConfirmEntry",
    "CreateShareCode",
    "Help",
    "InboundMessage",
    "Intent",
    "IntentType",
    "LinkFriend",
    "ListFriends",
    "MyId",
    "Notification",
    "PendingList",
    "RecordEntry",
    "RejectEntry",
    "Search",
    "SetAlias",
    "Stats",
    "StatsPeriod",
    "Undo",
    # Audit models
    "AuditEvent",
    "AuditEventBuilder",
    "AuditEventType",
    "AuditSeverity",
]
