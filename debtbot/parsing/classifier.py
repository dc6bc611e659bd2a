"""
Command Classifier

Turns one chat message into one intent, or None.

Tier 1 is an ordered list of whole-message patterns; the first that
matches wins, so the order of `FIXED_MATCHERS` is significant ("huy"
alone is UNDO, "huy ABC123" is a rejection). Tier 2 only runs when
Tier 1 found nothing: it looks for a debt/paid keyword and an amount
anywhere in the sentence, e.g. "Bao no 50k tien com" or "50k tra Bao".

Everything here is a pure function of its arguments.
"""

import re
from typing import Callable, Optional, Sequence

from debtbot.models.intent import (
    CheckBalance,
    ConfirmEntry,
    CreateShareCode,
    Help,
    Intent,
    LinkFriend,
    ListFriends,
    MyId,
    PendingList,
    RecordEntry,
    RejectEntry,
    Search,
    SetAlias,
    Stats,
    StatsPeriod,
    Undo,
)
from debtbot.models.ledger import LinkedCounterparty, TransactionKind
from debtbot.parsing.amounts import parse_amount
from debtbot.parsing.normalize import fold_text, normalize_name


DEFAULT_NOTE = "Không có nội dung"

DEBT_KEYWORDS = frozenset({"no", "ghino"})
PAID_KEYWORDS = frozenset({"tra", "trano"})

_FLAGS = re.IGNORECASE | re.UNICODE

ALIAS_RE = re.compile(r"^(alias|ten|tên)\s+@?(\S+)$", _FLAGS)
SHARE_CODE_RE = re.compile(r"^(sharecode|taoma|tạo\s*mã|ma\s*ket\s*noi|mã\s*kết\s*nối)$", _FLAGS)
LINK_RE = re.compile(r"^(link|lienket|liên\s*kết)\s+([A-Za-z0-9]+)\s+@?(\S+)$", _FLAGS)
CONFIRM_RE = re.compile(r"^(ok|xn|xacnhan|xác\s*nhận|dong\s*y|đồng\s*ý)\s+([A-Za-z0-9]+)$", _FLAGS)
REJECT_RE = re.compile(r"^(huy|huỷ|hủy|reject|khong|không|tuchoi|từ\s*chối)\s+([A-Za-z0-9]+)$", _FLAGS)
PENDING_RE = re.compile(r"^(pending|cho|chờ|cho\s*xac\s*nhan|chờ\s*xác\s*nhận)$", _FLAGS)
FRIENDS_RE = re.compile(r"^(friends|banbe|bạn\s*bè|ds\s*ban|danh\s*sách\s*bạn)$", _FLAGS)
MY_ID_RE = re.compile(r"^(id|myid|ma\s*id)$", _FLAGS)
DEBT_RE = re.compile(r"^(no|nợ)\s+(\S+)\s*(.*)$", _FLAGS | re.DOTALL)
PAID_RE = re.compile(r"^(tra|trả)\s+(\S+)\s*(.*)$", _FLAGS | re.DOTALL)
CHECK_RE = re.compile(r"^(check|tong|tổng|show\s*no|xem\s*no|xem\s*nợ)\s*(conno|còn\s*nợ|@\S+)?$", _FLAGS)
UNDO_RE = re.compile(r"^(xoa|xóa|undo|huy|huỷ|hủy)$", _FLAGS)
SEARCH_RE = re.compile(r"^(tim|tìm|find|search)\s+(.+)$", _FLAGS | re.DOTALL)
HELP_RE = re.compile(r"^(help|huong\s*dan|hướng\s*dẫn|menu|\?)$", _FLAGS)
MENTION_RE = re.compile(r"^@(\S+)\s*(.*)$", re.DOTALL)
INDEX_RE = re.compile(r"^[0-9]+$")

# Matched against the folded text, so accented spellings need no entry.
STATS_PERIODS = {
    "hom nay": StatsPeriod.TODAY,
    "homnay": StatsPeriod.TODAY,
    "tuan nay": StatsPeriod.THIS_WEEK,
    "tuannay": StatsPeriod.THIS_WEEK,
    "tuan truoc": StatsPeriod.LAST_WEEK,
    "tuantruoc": StatsPeriod.LAST_WEEK,
    "thang nay": StatsPeriod.THIS_MONTH,
    "thangnay": StatsPeriod.THIS_MONTH,
    "thang truoc": StatsPeriod.LAST_MONTH,
    "thangtruoc": StatsPeriod.LAST_MONTH,
}


def _mention(token: str) -> tuple[Optional[str], Optional[int]]:
    """
    Split an `@name` token body into (name, index); `@3` is an index.

    The index is not range-checked here; `@0` reaches the directory and
    is refused there like any other unknown friend number.
    """
    if INDEX_RE.match(token):
        return None, int(token)
    return token.replace("_", " ").strip(), None


# =============================================================================
# TIER 1 - FIXED PATTERNS
# =============================================================================

def _match_alias(text: str) -> Optional[Intent]:
    match = ALIAS_RE.match(text)
    if match:
        name = match.group(2).lstrip("@")
        if name:
            return SetAlias(name=name)
    return None


def _match_share_code(text: str) -> Optional[Intent]:
    return CreateShareCode() if SHARE_CODE_RE.match(text) else None


def _match_link(text: str) -> Optional[Intent]:
    match = LINK_RE.match(text)
    if match:
        name = match.group(3).lstrip("@")
        if name:
            return LinkFriend(code=match.group(2).upper(), name=name)
    return None


def _match_confirm(text: str) -> Optional[Intent]:
    match = CONFIRM_RE.match(text)
    return ConfirmEntry(code=match.group(2).upper()) if match else None


def _match_reject(text: str) -> Optional[Intent]:
    match = REJECT_RE.match(text)
    return RejectEntry(code=match.group(2).upper()) if match else None


def _match_pending(text: str) -> Optional[Intent]:
    return PendingList() if PENDING_RE.match(text) else None


def _match_friends(text: str) -> Optional[Intent]:
    return ListFriends() if FRIENDS_RE.match(text) else None


def _match_my_id(text: str) -> Optional[Intent]:
    return MyId() if MY_ID_RE.match(text) else None


def _record_matcher(pattern: re.Pattern, kind: TransactionKind) -> Callable[[str], Optional[Intent]]:
    def match_record(text: str) -> Optional[Intent]:
        match = pattern.match(text)
        if not match:
            return None
        amount = parse_amount(match.group(2))
        if amount is None:
            return None

        remainder = match.group(3).strip()
        counterparty, index = None, None
        mention = MENTION_RE.match(remainder)
        if mention:
            counterparty, index = _mention(mention.group(1))
            remainder = mention.group(2).strip()

        return RecordEntry(
            kind=kind,
            amount=amount,
            counterparty=counterparty or None,
            counterparty_index=index,
            note=remainder or DEFAULT_NOTE,
        )

    return match_record


def _match_check(text: str) -> Optional[Intent]:
    match = CHECK_RE.match(text)
    if not match:
        return None
    param = match.group(2)
    if not param:
        return CheckBalance()
    if not param.startswith("@"):
        return CheckBalance(only_owing=True)
    name, index = _mention(param[1:])
    return CheckBalance(counterparty=name or None, counterparty_index=index)


def _match_undo(text: str) -> Optional[Intent]:
    return Undo() if UNDO_RE.match(text) else None


def _match_search(text: str) -> Optional[Intent]:
    match = SEARCH_RE.match(text)
    if match and match.group(2).strip():
        return Search(keyword=match.group(2).strip())
    return None


def _match_stats(text: str) -> Optional[Intent]:
    period = STATS_PERIODS.get(fold_text(text))
    return Stats(period=period) if period else None


def _match_help(text: str) -> Optional[Intent]:
    return Help() if HELP_RE.match(text) else None


FIXED_MATCHERS: list[Callable[[str], Optional[Intent]]] = [
    _match_alias,
    _match_share_code,
    _match_link,
    _match_confirm,
    _match_reject,
    _match_pending,
    _match_friends,
    _match_my_id,
    _record_matcher(DEBT_RE, TransactionKind.DEBT),
    _record_matcher(PAID_RE, TransactionKind.PAID),
    _match_check,
    _match_undo,
    _match_search,
    _match_stats,
    _match_help,
]


def match_fixed(text: str) -> Optional[Intent]:
    """Tier 1: first fixed pattern matching the whole message."""
    text = (text or "").strip()
    if not text:
        return None
    for matcher in FIXED_MATCHERS:
        intent = matcher(text)
        if intent is not None:
            return intent
    return None


# =============================================================================
# TIER 2 - FLEXIBLE SCAN
# =============================================================================

def _keyword_kind(token: str) -> Optional[TransactionKind]:
    folded = normalize_name(token)
    if folded in DEBT_KEYWORDS:
        return TransactionKind.DEBT
    if folded in PAID_KEYWORDS:
        return TransactionKind.PAID
    return None


def _linked_by_name(linked: Sequence[LinkedCounterparty]) -> dict[str, list[LinkedCounterparty]]:
    by_name: dict[str, list[LinkedCounterparty]] = {}
    for counterparty in linked:
        key = normalize_name(counterparty.display_name)
        if key:
            by_name.setdefault(key, []).append(counterparty)
    return by_name


def match_linked_name(
    span: Sequence[str],
    linked: Sequence[LinkedCounterparty],
) -> tuple[Optional[LinkedCounterparty], bool]:
    """
    Find a linked counterparty named by some contiguous part of `span`.

    Sub-spans are tried longest first. Returns (match, ambiguous): a
    sub-span naming two or more distinct parties is ambiguous and stops
    the search with no match.
    """
    by_name = _linked_by_name(linked)
    for length in range(len(span), 0, -1):
        for start in range(len(span) - length + 1):
            key = normalize_name(" ".join(span[start:start + length]))
            candidates = by_name.get(key)
            if not candidates:
                continue
            if len({c.party_id for c in candidates}) > 1:
                return None, True
            return candidates[0], False
    return None, False


def _leading_linked_name(
    tokens: Sequence[str],
    linked: Sequence[LinkedCounterparty],
) -> int:
    """Length of the longest prefix of `tokens` that is a linked name, or 0."""
    by_name = _linked_by_name(linked)
    for length in range(len(tokens), 0, -1):
        if normalize_name(" ".join(tokens[:length])) in by_name:
            return length
    return 0


def scan_flexible(
    text: str,
    linked: Sequence[LinkedCounterparty] = (),
) -> Optional[RecordEntry]:
    """
    Tier 2: free word order DEBT/PAID.

    The first debt/paid keyword anchors the command and the first amount
    after it anchors the amount. When no amount follows the keyword, the
    first amount before it is used instead ("50k Bao tra"). In that form,
    with nothing between amount and keyword, a linked name right after
    the keyword is taken as the counterparty ("50k tra Bao"); an unlinked
    word there stays part of the note.
    """
    tokens = (text or "").split()
    command_at, kind = None, None
    for position, token in enumerate(tokens):
        kind = _keyword_kind(token)
        if kind is not None:
            command_at = position
            break
    if command_at is None:
        return None

    amount_at, amount = None, None
    for position in range(command_at + 1, len(tokens)):
        amount = parse_amount(tokens[position])
        if amount is not None:
            amount_at = position
            break

    if amount_at is not None:
        if command_at > 0:
            span = tokens[:command_at]
        else:
            span = tokens[command_at + 1:amount_at]
        note_tokens = tokens[amount_at + 1:]
    else:
        for position in range(command_at):
            amount = parse_amount(tokens[position])
            if amount is not None:
                amount_at = position
                break
        if amount_at is None:
            return None
        span = tokens[amount_at + 1:command_at]
        note_tokens = tokens[command_at + 1:]
        if not span:
            # "50k tra Bao tien nha": a linked name may follow the command
            name_length = _leading_linked_name(note_tokens, linked)
            span, note_tokens = note_tokens[:name_length], note_tokens[name_length:]

    note = " ".join(note_tokens).strip() or DEFAULT_NOTE
    if not span:
        return RecordEntry(kind=kind, amount=amount, note=note)

    raw_label = " ".join(span).lstrip("@").replace("_", " ").strip()
    matched, ambiguous = match_linked_name(span, linked)
    if matched is not None:
        return RecordEntry(
            kind=kind,
            amount=amount,
            counterparty=matched.display_name,
            counterparty_id=matched.party_id,
            note=note,
        )
    return RecordEntry(
        kind=kind,
        amount=amount,
        counterparty=raw_label or None,
        note=note,
        ambiguous=ambiguous,
    )


def classify(
    text: str,
    linked: Sequence[LinkedCounterparty] = (),
) -> Optional[Intent]:
    """Run Tier 1, then Tier 2 with the sender's linked counterparties."""
    return match_fixed(text) or scan_flexible(text, linked)
