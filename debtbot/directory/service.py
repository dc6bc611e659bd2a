"""
Identity Directory

Who is who: display names (aliases) and the peer links between parties.

Every name comparison uses `normalize_name`, so "Tuấn", "tuan" and
"TUAN!" are the same name. A party sees each linked friend under the
name it chose for them; that name is stored per direction on the link.

Links are created two ways:
1. Share code: B issues a code, A redeems it with the name A uses for B
2. Direct: a debt command names someone whose alias matches exactly one
   other party, and the link is created on the spot
"""

from datetime import datetime, timedelta
from typing import Callable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from pydantic import BaseModel

from debtbot.audit.logger import AuditLogger
from debtbot.codes import generate_unique_code
from debtbot.errors import (
    AliasRequiredError,
    ConflictError,
    InvalidCommandError,
    RecordNotFoundError,
)
from debtbot.models.ledger import (
    Alias,
    FriendLink,
    FriendLinkStatus,
    LinkedCounterparty,
    Stored,
)
from debtbot.parsing.normalize import normalize_name
from debtbot.services.profile import ProfileLookup, StaticProfileLookup
from debtbot.services.storage.repositories import LedgerStorage


UNNAMED = "Không tên"


class CounterpartyResolution(BaseModel):
    """
    A counterparty label resolved to a linked party.

    `ambiguous` marks a label naming several linked friends; no party is
    chosen then and `party_id` is None.
    """

    party_id: Optional[str] = None
    display_name: str
    newly_linked: bool = False
    ambiguous: bool = False


class ShareCodeRedemption(BaseModel):
    """Outcome of redeeming a share code."""

    issuer_id: str
    issuer_alias: Optional[str] = None
    name: str


class IdentityDirectory:
    """
    Aliases and friend links on top of `LedgerStorage`.

    Lookups re-read the store on every call; nothing is cached between
    messages.
    """

    def __init__(
        self,
        storage: LedgerStorage,
        profiles: Optional[ProfileLookup] = None,
        share_code_ttl_hours: int = 24,
        code_length: int = 6,
        timezone: str = "Asia/Ho_Chi_Minh",
        audit_logger: Optional[AuditLogger] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._profiles = profiles or StaticProfileLookup()
        self._ttl = timedelta(hours=share_code_ttl_hours)
        self._code_length = code_length
        self._tz = ZoneInfo(timezone)
        self._audit = audit_logger or AuditLogger()
        self._clock = clock or (lambda: datetime.now(self._tz))

    # =========================================================================
    # LOOKUPS
    # =========================================================================

    async def _aliases(self) -> list[Stored[Alias]]:
        return await self._storage.aliases.list_all()

    async def _active_links(self) -> list[Stored[FriendLink]]:
        return [
            stored
            for stored in await self._storage.friend_links.list_all()
            if stored.record.status == FriendLinkStatus.ACTIVE and stored.record.party_a
        ]

    async def resolve_display_name(self, party_id: str) -> Optional[str]:
        stored = await self._storage.aliases.get_by_party(party_id)
        return stored.record.display_name if stored else None

    async def display_names(self) -> dict[str, str]:
        """Map of party id to alias for every party that has one."""
        return {s.record.party_id: s.record.display_name for s in await self._aliases()}

    async def resolve_party(self, name: str) -> Optional[str]:
        """Party whose alias equals `name` under normalization."""
        key = normalize_name(name)
        if not key:
            return None
        for stored in await self._aliases():
            if normalize_name(stored.record.display_name) == key:
                return stored.record.party_id
        return None

    async def linked_counterparties(self, party_id: str) -> list[LinkedCounterparty]:
        """
        Active links of `party_id`, in link creation order.

        The name is the one `party_id` chose for the friend, falling back
        to the friend's alias.
        """
        aliases = await self.display_names()
        counterparties = []
        for stored in await self._active_links():
            link = stored.record
            if not link.involves(party_id):
                continue
            other = link.other_party(party_id)
            name = link.name_for(party_id) or aliases.get(other) or UNNAMED
            counterparties.append(LinkedCounterparty(party_id=other, display_name=name))
        return counterparties

    async def counterparty_names(self, party_id: str) -> dict[str, str]:
        """Map of linked party id to the name `party_id` uses for it."""
        return {c.party_id: c.display_name for c in await self.linked_counterparties(party_id)}

    async def counterparty_by_index(self, party_id: str, index: int) -> LinkedCounterparty:
        """
        1-based lookup into `linked_counterparties`.

        Raises:
            RecordNotFoundError: If the index is out of range
        """
        counterparties = await self.linked_counterparties(party_id)
        if index < 1 or index > len(counterparties):
            raise RecordNotFoundError(
                f"❌ Không có bạn số {index}. Gõ \"friends\" để xem danh sách "
                f"({len(counterparties)} bạn)."
            )
        return counterparties[index - 1]

    # =========================================================================
    # ALIASES
    # =========================================================================

    async def set_alias(
        self,
        party_id: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> str:
        """
        Claim `name` as the party's display name.

        Raises:
            InvalidCommandError: If the name has no letters or digits
            ConflictError: If another party already uses the name
        """
        name = name.strip().lstrip("@").strip()
        key = normalize_name(name)
        if not key:
            raise InvalidCommandError("❌ Tên không hợp lệ. Ví dụ: alias @Tuan")

        own: Optional[Stored[Alias]] = None
        for stored in await self._aliases():
            if stored.record.party_id == party_id:
                own = own or stored
            elif normalize_name(stored.record.display_name) == key:
                raise ConflictError(f"❌ Alias @{name} đã được sử dụng bởi người khác.")

        if own is not None:
            await self._storage.aliases.rename(own.ref, name)
        else:
            await self._storage.aliases.add(
                Alias(party_id=party_id, display_name=name, created_at=self._clock())
            )
        await self._audit.log_alias_assigned(party_id, name, False, correlation_id)
        return name

    async def ensure_alias(
        self,
        party_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[str]:
        """
        Give a first-contact party a display name from its profile.

        Picks the first free of `Name`, `Name2`, `Name3`, ... Returns the
        party's alias, or None when it has none and the profile has no name.
        """
        aliases = await self._aliases()
        for stored in aliases:
            if stored.record.party_id == party_id:
                return stored.record.display_name

        given = await self._profiles.given_name(party_id)
        base = (given or "").strip().split(" ")[0] if given else ""
        if not normalize_name(base):
            return None
        base = base[0].upper() + base[1:]

        taken = {normalize_name(s.record.display_name) for s in aliases}
        candidate, suffix = base, 1
        while normalize_name(candidate) in taken:
            suffix += 1
            candidate = f"{base}{suffix}"

        await self._storage.aliases.add(
            Alias(party_id=party_id, display_name=candidate, created_at=self._clock())
        )
        await self._audit.log_alias_assigned(party_id, candidate, True, correlation_id)
        return candidate

    # =========================================================================
    # SHARE CODES
    # =========================================================================

    async def create_share_code(
        self,
        party_id: str,
        correlation_id: Optional[UUID] = None,
    ) -> FriendLink:
        """
        Issue a share code others can redeem to link with `party_id`.

        Raises:
            AliasRequiredError: If the party has no display name yet
        """
        if await self.resolve_display_name(party_id) is None:
            raise AliasRequiredError("⚠️ Bạn cần đặt alias trước!\nGõ: alias @TenCuaBan")

        taken = {s.record.share_code for s in await self._storage.friend_links.list_all()}
        now = self._clock()
        link = FriendLink(
            party_b=party_id,
            share_code=generate_unique_code(taken, self._code_length),
            status=FriendLinkStatus.PENDING,
            created_at=now,
            expires_at=now + self._ttl,
        )
        await self._storage.friend_links.add(link)
        await self._audit.log_share_code_created(party_id, link.share_code, correlation_id)
        return link

    async def redeem_share_code(
        self,
        party_id: str,
        code: str,
        name: str,
        correlation_id: Optional[UUID] = None,
    ) -> ShareCodeRedemption:
        """
        Link `party_id` with the issuer of `code`, who will be known as `name`.

        Raises:
            RecordNotFoundError: Unknown code
            ConflictError: Code used or expired, or the pair is already linked
            InvalidCommandError: The party redeemed its own code
        """
        code = code.strip().upper()
        name = name.strip().lstrip("@").replace("_", " ").strip()
        if not normalize_name(name):
            raise InvalidCommandError("❌ Tên không hợp lệ. Ví dụ: link ABC123 @Bao")

        links = await self._storage.friend_links.list_all()
        target = next((s for s in links if s.record.share_code == code), None)
        if target is None:
            raise RecordNotFoundError("❌ Mã không hợp lệ hoặc đã hết hạn.")

        link = target.record
        if link.status != FriendLinkStatus.PENDING:
            raise ConflictError("⚠️ Mã này đã được sử dụng hoặc đã hết hạn.")

        if link.is_expired(self._clock()):
            await self._storage.friend_links.save(
                target.ref, link.model_copy(update={"status": FriendLinkStatus.EXPIRED})
            )
            raise ConflictError("⏰ Mã đã hết hạn.")

        issuer_id = link.party_b
        if issuer_id == party_id:
            raise InvalidCommandError("❌ Bạn không thể liên kết với chính mình.")

        for stored in links:
            if stored.record.status == FriendLinkStatus.ACTIVE and stored.record.connects(party_id, issuer_id):
                raise ConflictError("⚠️ Hai bạn đã liên kết rồi.")

        own_alias = await self.resolve_display_name(party_id)
        await self._storage.friend_links.save(
            target.ref,
            link.model_copy(
                update={
                    "party_a": party_id,
                    "name_of_b_for_a": name,
                    "name_of_a_for_b": own_alias or "",
                    "status": FriendLinkStatus.ACTIVE,
                }
            ),
        )
        await self._audit.log_friend_linked(party_id, issuer_id, "share_code", correlation_id)
        return ShareCodeRedemption(
            issuer_id=issuer_id,
            issuer_alias=await self.resolve_display_name(issuer_id),
            name=name,
        )

    # =========================================================================
    # COUNTERPARTY RESOLUTION
    # =========================================================================

    async def resolve_counterparty(
        self,
        party_id: str,
        label: str,
        correlation_id: Optional[UUID] = None,
    ) -> Optional[CounterpartyResolution]:
        """
        Resolve a typed counterparty name to a party.

        Linked names win. Otherwise a unique match on another party's alias
        links the two parties directly. Returns None for free-text labels;
        a name matching several linked friends comes back `ambiguous`.
        """
        key = normalize_name(label)
        if not key:
            return None

        linked = [
            c for c in await self.linked_counterparties(party_id)
            if normalize_name(c.display_name) == key
        ]
        if len({c.party_id for c in linked}) > 1:
            return CounterpartyResolution(display_name=label.strip(), ambiguous=True)
        if linked:
            return CounterpartyResolution(
                party_id=linked[0].party_id,
                display_name=linked[0].display_name,
            )

        matches = [
            s.record
            for s in await self._aliases()
            if s.record.party_id != party_id and normalize_name(s.record.display_name) == key
        ]
        if len({alias.party_id for alias in matches}) != 1:
            return None
        other = matches[0]

        for stored in await self._active_links():
            if stored.record.connects(party_id, other.party_id):
                return CounterpartyResolution(
                    party_id=other.party_id,
                    display_name=stored.record.name_for(party_id) or other.display_name,
                )

        await self._storage.friend_links.add(
            FriendLink(
                party_a=party_id,
                party_b=other.party_id,
                name_of_b_for_a=label.strip(),
                name_of_a_for_b=await self.resolve_display_name(party_id) or "",
                status=FriendLinkStatus.ACTIVE,
                created_at=self._clock(),
            )
        )
        await self._audit.log_friend_linked(party_id, other.party_id, "direct", correlation_id)
        return CounterpartyResolution(
            party_id=other.party_id,
            display_name=label.strip(),
            newly_linked=True,
        )
