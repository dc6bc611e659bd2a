"""
Balance Aggregator

Folds CONFIRMED entries into per-counterparty balances from one party's
point of view. Positive means the counterparty owes this party.

One row is authored by one side but must net correctly for both:

    creator's view:       DEBT +amount    PAID -amount
    counterparty's view:  DEBT -amount    PAID +amount

Buckets are keyed by the normalized label, so "Bảo" and "bao" are the
same person; the first spelling seen is the one displayed.
"""

from typing import Iterable, Mapping, Optional

from pydantic import BaseModel, Field

from debtbot.directory.service import UNNAMED
from debtbot.models.ledger import Transaction, TransactionKind
from debtbot.parsing.normalize import normalize_name


RECENT_LIMIT = 5


class CounterpartyBalance(BaseModel):
    """Net position against one counterparty label."""

    label: str
    owed_to_me: int = 0  # debt-direction total after inversion
    paid: int = 0        # paid-direction total after inversion

    @property
    def balance(self) -> int:
        return self.owed_to_me - self.paid


class BalanceReport(BaseModel):
    """Result of `compute_balances`."""

    balances: list[CounterpartyBalance] = Field(default_factory=list)
    total: int = 0
    entry_count: int = 0
    filter_name: Optional[str] = None
    recent: list[Transaction] = Field(
        default_factory=list,
        description="Most recent entries of the filtered counterparty, newest first"
    )

    @property
    def detail(self) -> Optional[CounterpartyBalance]:
        """The filtered counterparty's bucket, if a filter was given and matched."""
        if self.filter_name is None or not self.balances:
            return None
        return self.balances[0]


def _viewpoint(
    party_id: str,
    tx: Transaction,
    counterparty_names: Mapping[str, str],
    aliases: Mapping[str, str],
) -> Optional[tuple[str, int]]:
    """(label, signed amount) of `tx` as seen by `party_id`, or None if not visible."""
    signed = tx.amount if tx.kind == TransactionKind.DEBT else -tx.amount
    if tx.creator_id == party_id:
        return tx.counterparty_label, signed
    if tx.counterparty_id == party_id:
        label = counterparty_names.get(tx.creator_id) or aliases.get(tx.creator_id) or UNNAMED
        return label, -signed
    return None


def compute_balances(
    party_id: str,
    transactions: Iterable[Transaction],
    counterparty_names: Optional[Mapping[str, str]] = None,
    aliases: Optional[Mapping[str, str]] = None,
    filter_name: Optional[str] = None,
    only_owing: bool = False,
) -> BalanceReport:
    """
    Per-counterparty and total balance for `party_id`.

    Args:
        party_id: Whose point of view
        transactions: Entries in creation order; non-CONFIRMED ones are ignored
        counterparty_names: Name `party_id` uses for each linked party
        aliases: Display names, used when a creator has no linked name
        filter_name: Restrict to one counterparty label
        only_owing: Keep only counterparties with a positive balance.
            The total is unaffected.
    """
    counterparty_names = counterparty_names or {}
    aliases = aliases or {}
    filter_key = normalize_name(filter_name) if filter_name else None

    buckets: dict[str, CounterpartyBalance] = {}
    rows_by_key: dict[str, list[Transaction]] = {}
    entry_count = 0

    for tx in transactions:
        if not tx.counts_toward_balance:
            continue
        seen = _viewpoint(party_id, tx, counterparty_names, aliases)
        if seen is None:
            continue
        label, signed = seen
        key = normalize_name(label)
        if filter_key is not None and key != filter_key:
            continue

        entry_count += 1
        bucket = buckets.setdefault(key, CounterpartyBalance(label=label))
        if signed > 0:
            bucket.owed_to_me += signed
        else:
            bucket.paid += -signed
        rows_by_key.setdefault(key, []).append(tx)

    balances = sorted(buckets.values(), key=lambda b: b.balance, reverse=True)
    total = sum(b.balance for b in balances)
    if only_owing:
        balances = [b for b in balances if b.balance > 0]

    recent: list[Transaction] = []
    if filter_key is not None and filter_key in rows_by_key:
        recent = list(reversed(rows_by_key[filter_key][-RECENT_LIMIT:]))

    return BalanceReport(
        balances=balances,
        total=total,
        entry_count=entry_count,
        filter_name=filter_name,
        recent=recent,
    )
