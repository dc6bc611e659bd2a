"""
Intent and Message Models

The classifier turns one chat message into exactly one of these intents.
Handlers in the orchestrator switch on `IntentType`.
"""

from enum import Enum
from typing import Literal, Optional, Union

from pydantic import BaseModel, Field

from debtbot.models.ledger import TransactionKind


class IntentType(str, Enum):
    SET_ALIAS = "set_alias"
    CREATE_SHARE_CODE = "create_share_code"
    LINK_FRIEND = "link_friend"
    CONFIRM_ENTRY = "confirm_entry"
    REJECT_ENTRY = "reject_entry"
    PENDING_LIST = "pending_list"
    LIST_FRIENDS = "list_friends"
    MY_ID = "my_id"
    RECORD_ENTRY = "record_entry"
    CHECK_BALANCE = "check_balance"
    UNDO = "undo"
    SEARCH = "search"
    STATS = "stats"
    HELP = "help"


class StatsPeriod(str, Enum):
    TODAY = "today"
    THIS_WEEK = "this_week"
    LAST_WEEK = "last_week"
    THIS_MONTH = "this_month"
    LAST_MONTH = "last_month"


class SetAlias(BaseModel):
    type: Literal[IntentType.SET_ALIAS] = IntentType.SET_ALIAS
    name: str = Field(..., min_length=1)


class CreateShareCode(BaseModel):
    type: Literal[IntentType.CREATE_SHARE_CODE] = IntentType.CREATE_SHARE_CODE


class LinkFriend(BaseModel):
    type: Literal[IntentType.LINK_FRIEND] = IntentType.LINK_FRIEND
    code: str = Field(..., min_length=1)
    name: str = Field(..., min_length=1)


class ConfirmEntry(BaseModel):
    type: Literal[IntentType.CONFIRM_ENTRY] = IntentType.CONFIRM_ENTRY
    code: str = Field(..., min_length=1)


class RejectEntry(BaseModel):
    type: Literal[IntentType.REJECT_ENTRY] = IntentType.REJECT_ENTRY
    code: str = Field(..., min_length=1)


class PendingList(BaseModel):
    type: Literal[IntentType.PENDING_LIST] = IntentType.PENDING_LIST


class ListFriends(BaseModel):
    type: Literal[IntentType.LIST_FRIENDS] = IntentType.LIST_FRIENDS


class MyId(BaseModel):
    type: Literal[IntentType.MY_ID] = IntentType.MY_ID


class RecordEntry(BaseModel):
    """
    A DEBT or PAID command.

    At most one of `counterparty`, `counterparty_index` is set by the
    fixed grammar. The flexible scanner may also fill `counterparty_id`
    when the name matched exactly one linked friend, or set `ambiguous`
    when it matched several.
    """
    type: Literal[IntentType.RECORD_ENTRY] = IntentType.RECORD_ENTRY
    kind: TransactionKind
    amount: int = Field(..., gt=0)
    counterparty: Optional[str] = None
    counterparty_index: Optional[int] = Field(default=None, ge=0)
    counterparty_id: Optional[str] = None
    note: str
    ambiguous: bool = False


class CheckBalance(BaseModel):
    type: Literal[IntentType.CHECK_BALANCE] = IntentType.CHECK_BALANCE
    counterparty: Optional[str] = None
    counterparty_index: Optional[int] = Field(default=None, ge=0)
    only_owing: bool = False


class Undo(BaseModel):
    type: Literal[IntentType.UNDO] = IntentType.UNDO


class Search(BaseModel):
    type: Literal[IntentType.SEARCH] = IntentType.SEARCH
    keyword: str = Field(..., min_length=1)


class Stats(BaseModel):
    type: Literal[IntentType.STATS] = IntentType.STATS
    period: StatsPeriod


class Help(BaseModel):
    type: Literal[IntentType.HELP] = IntentType.HELP


Intent = Union[
    SetAlias,
    CreateShareCode,
    LinkFriend,
    ConfirmEntry,
    RejectEntry,
    PendingList,
    ListFriends,
    MyId,
    RecordEntry,
    CheckBalance,
    Undo,
    Search,
    Stats,
    Help,
]


# =============================================================================
# TRANSPORT BOUNDARY
# =============================================================================

class InboundMessage(BaseModel):
    """One chat message from a party. Bot echoes never reach the core."""

    party_id: str = Field(..., min_length=1)
    text: str


class Notification(BaseModel):
    """Out-of-band message for a party other than the sender."""

    target_party_id: str
    text: str


class BotReply(BaseModel):
    """Everything the transport has to deliver for one inbound message."""

    text: str
    notifications: list[Notification] = Field(default_factory=list)
