"""
Main Orchestrator for Debtbot

This module ties together all the components and defines the
end-to-end flow for one inbound chat message:

    message -> auto-name on first contact -> classify -> handler -> reply

DESIGN DECISION: The orchestrator enforces the boundaries:
- Refusals (bad input, wrong party, conflicts) become replies, never crashes
- Storage failures become a generic reply and an error log line
- Every message is audited under one correlation ID

The transport (webhook, chat console) only ever sees `BotReply`.
"""

from datetime import datetime
from typing import Awaitable, Callable, Optional
from uuid import UUID
from zoneinfo import ZoneInfo

from debtbot.audit import AuditLogger, configure_logging, create_correlation_id
from debtbot.config import Settings, get_settings
from debtbot.directory import IdentityDirectory
from debtbot.errors import DebtBotError
from debtbot.ledger import LedgerService
from debtbot.models.intent import (
    BotReply,
    CheckBalance,
    ConfirmEntry,
    InboundMessage,
    Intent,
    IntentType,
    LinkFriend,
    Notification,
    RecordEntry,
    RejectEntry,
    Search,
    SetAlias,
    Stats,
)
from debtbot.parsing.classifier import match_fixed, scan_flexible
from debtbot.queries import compute_balances, compute_stats
from debtbot.services.profile import ProfileLookup
from debtbot.services.storage import (
    GoogleSheetsRowStore,
    InMemoryRowStore,
    LedgerStorage,
    RowStore,
    StorageError,
    TransientStorageError,
)
from debtbot import responses


Handler = Callable[[str, Intent, UUID], Awaitable[BotReply]]


class MessageFlow:
    """
    Orchestrates the handling of one inbound message.

    Flow:
    1. Give a first-contact party a display name
    2. Tier 1 classification, then Tier 2 with the party's linked friends
    3. Dispatch to the intent's handler
    4. Map refusals and failures to replies
    """

    def __init__(
        self,
        storage: LedgerStorage,
        directory: IdentityDirectory,
        ledger: LedgerService,
        audit_logger: Optional[AuditLogger] = None,
        share_code_ttl_hours: int = 24,
        timezone: str = "Asia/Ho_Chi_Minh",
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self._storage = storage
        self._directory = directory
        self._ledger = ledger
        self._audit = audit_logger or AuditLogger()
        self._ttl_hours = share_code_ttl_hours
        self._tz = ZoneInfo(timezone)
        self._clock = clock or (lambda: datetime.now(self._tz))

        self._handlers: dict[IntentType, Handler] = {
            IntentType.SET_ALIAS: self._set_alias,
            IntentType.CREATE_SHARE_CODE: self._create_share_code,
            IntentType.LINK_FRIEND: self._link_friend,
            IntentType.CONFIRM_ENTRY: self._confirm,
            IntentType.REJECT_ENTRY: self._reject,
            IntentType.PENDING_LIST: self._pending_list,
            IntentType.LIST_FRIENDS: self._list_friends,
            IntentType.MY_ID: self._my_id,
            IntentType.RECORD_ENTRY: self._record_entry,
            IntentType.CHECK_BALANCE: self._check_balance,
            IntentType.UNDO: self._undo,
            IntentType.SEARCH: self._search,
            IntentType.STATS: self._stats,
            IntentType.HELP: self._help,
        }

    async def start(self) -> None:
        """Connect the row store and check table schemas."""
        await self._storage.open()

    async def stop(self) -> None:
        await self._storage.close()

    async def handle(self, message: InboundMessage) -> BotReply:
        """
        Handle one inbound message and return what to deliver.

        Never raises: every failure is turned into a reply.
        """
        party_id = message.party_id
        correlation_id = create_correlation_id()
        await self._audit.log_message_received(party_id, message.text, correlation_id)

        try:
            await self._directory.ensure_alias(party_id, correlation_id)

            intent, tier = match_fixed(message.text), "fixed"
            if intent is None:
                linked = await self._directory.linked_counterparties(party_id)
                intent, tier = scan_flexible(message.text, linked), "flexible"
            if intent is None:
                await self._audit.log_command_not_understood(party_id, correlation_id)
                return BotReply(text=responses.NOT_UNDERSTOOD)

            await self._audit.log_command_classified(
                party_id, intent.type.value, tier, correlation_id
            )
            return await self._handlers[intent.type](party_id, intent, correlation_id)

        except DebtBotError as e:
            await self._audit.log_command_refused(
                party_id, type(e).__name__, e.user_message, correlation_id
            )
            return BotReply(text=e.user_message)
        except TransientStorageError as e:
            await self._audit.log_storage_error("handle_message", str(e), True, correlation_id)
            return BotReply(text=responses.TRANSIENT_FAILURE)
        except StorageError as e:
            await self._audit.log_storage_error("handle_message", str(e), False, correlation_id)
            return BotReply(text=responses.FATAL_FAILURE)
        except Exception as e:
            await self._audit.log_error(
                error_type=type(e).__name__,
                error_message=str(e),
                details={"party_id": party_id},
                correlation_id=correlation_id,
            )
            return BotReply(text=responses.FATAL_FAILURE)

    # =========================================================================
    # IDENTITY HANDLERS
    # =========================================================================

    async def _set_alias(self, party_id: str, intent: SetAlias, correlation_id: UUID) -> BotReply:
        name = await self._directory.set_alias(party_id, intent.name, correlation_id)
        return BotReply(text=responses.alias_set(name))

    async def _create_share_code(self, party_id: str, intent: Intent, correlation_id: UUID) -> BotReply:
        link = await self._directory.create_share_code(party_id, correlation_id)
        alias = await self._directory.resolve_display_name(party_id)
        return BotReply(
            text=responses.share_code_created(link.share_code, alias or "", self._ttl_hours)
        )

    async def _link_friend(self, party_id: str, intent: LinkFriend, correlation_id: UUID) -> BotReply:
        redemption = await self._directory.redeem_share_code(
            party_id, intent.code, intent.name, correlation_id
        )
        own_alias = await self._directory.resolve_display_name(party_id)
        return BotReply(
            text=responses.linked_reply(redemption),
            notifications=[
                Notification(
                    target_party_id=redemption.issuer_id,
                    text=responses.linked_notification(own_alias),
                )
            ],
        )

    async def _list_friends(self, party_id: str, intent: Intent, correlation_id: UUID) -> BotReply:
        friends = await self._directory.linked_counterparties(party_id)
        own_alias = await self._directory.resolve_display_name(party_id)
        return BotReply(text=responses.friends_list(own_alias, friends))

    async def _my_id(self, party_id: str, intent: Intent, correlation_id: UUID) -> BotReply:
        alias = await self._directory.resolve_display_name(party_id)
        return BotReply(text=responses.my_id(party_id, alias))

    # =========================================================================
    # LEDGER HANDLERS
    # =========================================================================

    async def _record_entry(self, party_id: str, intent: RecordEntry, correlation_id: UUID) -> BotReply:
        result = await self._ledger.record_entry(party_id, intent, correlation_id)
        tx = result.transaction
        notifications = []
        if tx.is_pending:
            creator_alias = await self._directory.resolve_display_name(party_id)
            if result.newly_linked:
                notifications.append(
                    Notification(
                        target_party_id=tx.counterparty_id,
                        text=responses.linked_notification(creator_alias),
                    )
                )
            notifications.append(
                Notification(
                    target_party_id=tx.counterparty_id,
                    text=responses.pending_notification(tx, creator_alias),
                )
            )
        return BotReply(text=responses.entry_recorded(result), notifications=notifications)

    async def _confirm(self, party_id: str, intent: ConfirmEntry, correlation_id: UUID) -> BotReply:
        tx = await self._ledger.confirm(party_id, intent.code, correlation_id)
        creator_alias = await self._directory.resolve_display_name(tx.creator_id)
        return BotReply(
            text=responses.confirmed_reply(tx, creator_alias),
            notifications=[
                Notification(target_party_id=tx.creator_id, text=responses.confirmed_notification(tx))
            ],
        )

    async def _reject(self, party_id: str, intent: RejectEntry, correlation_id: UUID) -> BotReply:
        tx = await self._ledger.reject(party_id, intent.code, correlation_id)
        return BotReply(
            text=responses.rejected_reply(tx),
            notifications=[
                Notification(target_party_id=tx.creator_id, text=responses.rejected_notification(tx))
            ],
        )

    async def _pending_list(self, party_id: str, intent: Intent, correlation_id: UUID) -> BotReply:
        entries = await self._ledger.pending_for(party_id)
        aliases = await self._directory.display_names()
        return BotReply(text=responses.pending_list(entries, aliases))

    async def _undo(self, party_id: str, intent: Intent, correlation_id: UUID) -> BotReply:
        deleted = await self._ledger.undo_last(party_id, correlation_id)
        return BotReply(text=responses.undo_reply(deleted))

    async def _search(self, party_id: str, intent: Search, correlation_id: UUID) -> BotReply:
        result = await self._ledger.search(party_id, intent.keyword)
        return BotReply(text=responses.search_reply(intent.keyword, result))

    # =========================================================================
    # QUERY HANDLERS
    # =========================================================================

    async def _check_balance(self, party_id: str, intent: CheckBalance, correlation_id: UUID) -> BotReply:
        filter_name = intent.counterparty
        if intent.counterparty_index is not None:
            linked = await self._directory.counterparty_by_index(party_id, intent.counterparty_index)
            filter_name = linked.display_name

        report = compute_balances(
            party_id,
            await self._ledger.entries_visible_to(party_id),
            counterparty_names=await self._directory.counterparty_names(party_id),
            aliases=await self._directory.display_names(),
            filter_name=filter_name,
            only_owing=intent.only_owing,
        )
        return BotReply(text=responses.balance_report(report, intent.only_owing))

    async def _stats(self, party_id: str, intent: Stats, correlation_id: UUID) -> BotReply:
        stats = compute_stats(
            party_id,
            await self._ledger.own_entries(party_id),
            intent.period,
            self._clock(),
        )
        return BotReply(text=responses.stats_reply(stats))

    async def _help(self, party_id: str, intent: Intent, correlation_id: UUID) -> BotReply:
        return BotReply(text=responses.HELP_TEXT)


def create_app_components(
    settings: Optional[Settings] = None,
    store: Optional[RowStore] = None,
    profiles: Optional[ProfileLookup] = None,
) -> tuple[MessageFlow, LedgerStorage]:
    """
    Factory function to create all application components.

    Args:
        settings: Settings to use; defaults to `get_settings()`
        store: Row store to use; defaults to the configured backend
        profiles: Profile lookup for auto-naming new parties

    Returns:
        (message_flow, storage). Call `await message_flow.start()` before
        handling messages.
    """
    settings = settings or get_settings()
    app = settings.app
    configure_logging(app.debug_mode)
    audit_logger = AuditLogger()

    if store is None:
        if app.storage_backend == "memory":
            store = InMemoryRowStore()
        else:
            store = GoogleSheetsRowStore(settings.google_sheets)

    storage = LedgerStorage(
        store,
        timezone=app.timezone,
        shared_pool_label=app.shared_pool_label,
        audit_logger=audit_logger,
    )
    directory = IdentityDirectory(
        storage,
        profiles=profiles,
        share_code_ttl_hours=app.share_code_ttl_hours,
        code_length=app.code_length,
        timezone=app.timezone,
        audit_logger=audit_logger,
    )
    ledger = LedgerService(
        storage,
        directory,
        code_length=app.code_length,
        shared_pool_label=app.shared_pool_label,
        timezone=app.timezone,
        audit_logger=audit_logger,
    )
    flow = MessageFlow(
        storage,
        directory,
        ledger,
        audit_logger=audit_logger,
        share_code_ttl_hours=app.share_code_ttl_hours,
        timezone=app.timezone,
    )
    return flow, storage
