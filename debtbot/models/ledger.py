"""
Core Data Models for Debtbot

These models define the strict schemas for all records kept in the row store.
They are designed to:
1. Enforce type safety at runtime
2. Provide clear validation error messages
3. Be convertible to and from spreadsheet rows
4. Keep the confirmation invariant checkable in one place

DESIGN DECISION: We use Pydantic v2. Records are plain values; the handle
needed to update or delete a row travels next to the record in `Stored`,
never inside it.
"""

from datetime import datetime
from enum import Enum
from typing import Generic, Optional, TypeVar

from pydantic import (
    BaseModel,
    ConfigDict,
    Field,
    model_validator,
)


MAX_AMOUNT = 10**12


# =============================================================================
# ENUMS - Finite set of valid values
# =============================================================================

class TransactionKind(str, Enum):
    """Direction of a ledger entry from its creator's point of view."""
    DEBT = "DEBT"  # counterparty owes the creator
    PAID = "PAID"  # money went back the other way


class TransactionStatus(str, Enum):
    """
    Confirmation status of a ledger entry.

    CRITICAL: Only CONFIRMED entries count toward balances.
    PENDING moves to CONFIRMED or REJECTED exactly once.
    """
    CONFIRMED = "CONFIRMED"
    PENDING = "PENDING"
    REJECTED = "REJECTED"


class FriendLinkStatus(str, Enum):
    """Lifecycle of a peer link row."""
    PENDING = "PENDING"    # share code issued, not redeemed yet
    ACTIVE = "ACTIVE"      # both parties linked
    EXPIRED = "EXPIRED"    # share code found past its expiry


# =============================================================================
# ROW HANDLES
# =============================================================================

class RowRef(BaseModel):
    """
    Opaque handle to one stored row.

    Returned by reads and passed back into update/delete calls.
    `row_key` is only meaningful to the store that issued it. Stores
    whose keys can shift may record the row's identifying cells in
    `identity` and refuse a write when the row under the key changed.
    """
    model_config = ConfigDict(frozen=True)

    table: str
    row_key: int
    identity: tuple[str, ...] = ()


RecordT = TypeVar("RecordT", bound=BaseModel)


class Stored(BaseModel, Generic[RecordT]):
    """A record together with the handle of the row it was read from."""

    ref: RowRef
    record: RecordT


# =============================================================================
# LEDGER RECORDS
# =============================================================================

class Transaction(BaseModel):
    """
    One debt or repayment entry.

    `counterparty_id` is only set when the counterparty is a linked party;
    entries naming a free-text label are always CONFIRMED.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    timestamp: datetime = Field(
        ...,
        description="When the entry was created"
    )
    creator_id: str = Field(
        ...,
        min_length=1,
        description="Party who issued the command"
    )
    counterparty_label: str = Field(
        ...,
        min_length=1,
        max_length=200,
        description="Display name of the other side, or the shared pool label"
    )
    kind: TransactionKind
    amount: int = Field(
        ...,
        gt=0,
        le=MAX_AMOUNT,
        description="Amount in the smallest currency unit"
    )
    note: str = Field(
        default="",
        max_length=1000,
    )
    counterparty_id: str = Field(
        default="",
        description="Party id of a linked counterparty, empty otherwise"
    )
    status: TransactionStatus = TransactionStatus.CONFIRMED
    confirmation_code: Optional[str] = Field(
        default=None,
        description="Code the counterparty uses to confirm or reject"
    )

    @model_validator(mode='after')
    def validate_pending(self) -> 'Transaction':
        """A pending entry must be addressable by its counterparty."""
        if self.status == TransactionStatus.PENDING:
            if not self.counterparty_id:
                raise ValueError("Pending entry requires a counterparty id")
            if not self.confirmation_code:
                raise ValueError("Pending entry requires a confirmation code")
        return self

    @property
    def is_pending(self) -> bool:
        return self.status == TransactionStatus.PENDING

    @property
    def counts_toward_balance(self) -> bool:
        return self.status == TransactionStatus.CONFIRMED


class Alias(BaseModel):
    """A party's display name."""
    model_config = ConfigDict(str_strip_whitespace=True)

    party_id: str = Field(..., min_length=1)
    display_name: str = Field(..., min_length=1, max_length=100)
    created_at: datetime


class FriendLink(BaseModel):
    """
    A peer relationship between two parties.

    A PENDING row is an issued share code: `party_b` is the issuer and
    `party_a` stays empty until someone redeems it.
    """
    model_config = ConfigDict(str_strip_whitespace=True)

    party_a: str = ""
    party_b: str = Field(..., min_length=1)
    name_of_b_for_a: str = ""
    name_of_a_for_b: str = ""
    share_code: str = ""
    status: FriendLinkStatus = FriendLinkStatus.PENDING
    created_at: datetime
    expires_at: Optional[datetime] = None

    def involves(self, party_id: str) -> bool:
        return party_id in (self.party_a, self.party_b)

    def connects(self, first: str, second: str) -> bool:
        """True when this link joins the two parties, in either order."""
        return {self.party_a, self.party_b} == {first, second}

    def other_party(self, party_id: str) -> str:
        return self.party_b if self.party_a == party_id else self.party_a

    def name_for(self, party_id: str) -> str:
        """Name `party_id` uses for the other side of this link."""
        return self.name_of_b_for_a if self.party_a == party_id else self.name_of_a_for_b

    def is_expired(self, now: datetime) -> bool:
        return self.expires_at is not None and now > self.expires_at


class LinkedCounterparty(BaseModel):
    """A linked party as seen from one side of the link."""

    party_id: str
    display_name: str
