"""
Response rendering.

All user-facing Vietnamese text lives here. Amounts are shown with `.`
thousands separators and a `đ` suffix: 1.500.000đ.
"""

from typing import Mapping, Optional

from debtbot.directory.service import ShareCodeRedemption
from debtbot.ledger.service import RecordedEntry, SearchResult
from debtbot.models.intent import StatsPeriod
from debtbot.models.ledger import (
    LinkedCounterparty,
    Transaction,
    TransactionKind,
)
from debtbot.parsing.amounts import format_amount
from debtbot.queries.balances import BalanceReport
from debtbot.queries.stats import PeriodStats


RULE = "━━━━━━━━━━━━━━━━━━━━"

PERIOD_LABELS = {
    StatsPeriod.TODAY: "Hôm nay",
    StatsPeriod.THIS_WEEK: "Tuần này",
    StatsPeriod.LAST_WEEK: "Tuần trước",
    StatsPeriod.THIS_MONTH: "Tháng này",
    StatsPeriod.LAST_MONTH: "Tháng trước",
}

NOT_UNDERSTOOD = '❓ Không hiểu lệnh. Gõ "help" để xem hướng dẫn.'
TRANSIENT_FAILURE = "⏳ Hệ thống đang bận. Vui lòng gửi lại lệnh sau ít phút."
FATAL_FAILURE = "❌ Đã xảy ra lỗi. Vui lòng thử lại sau."

HELP_TEXT = f"""📚 HƯỚNG DẪN SỬ DỤNG

{RULE}
📝 GHI NỢ:
• no 50k @A tiền cơm
• nợ 1tr @B mua đồ
• Bao nợ 50k tiền cơm

{RULE}
💵 TRẢ NỢ:
• tra 20k @A
• trả 500k @2 (bạn số 2 trong friends)

{RULE}
📊 XEM NỢ:
• check - tất cả
• check @A - riêng A
• check conno - còn nợ
• pending - chờ xác nhận

{RULE}
🔗 LIÊN KẾT BẠN BÈ:
• alias @TenBan - đặt tên
• sharecode - tạo mã
• link ABC123 @Ban - liên kết
• friends - danh sách bạn
• id - xem ID của bạn

{RULE}
✅ XÁC NHẬN NỢ:
• ok MACODE - xác nhận
• huy MACODE - từ chối

{RULE}
🔧 KHÁC:
• xoa - xóa giao dịch cuối
• tim [từ] - tìm kiếm
• hom nay / tuan nay / tuan truoc / thang nay / thang truoc - thống kê"""


def money(amount: int) -> str:
    return f"{format_amount(amount)}đ"


def signed_money(amount: int) -> str:
    return f"-{money(-amount)}" if amount < 0 else money(amount)


def _kind_icon(kind: TransactionKind) -> str:
    return "🔴" if kind == TransactionKind.DEBT else "🟢"


def _kind_word(kind: TransactionKind) -> str:
    return "nợ" if kind == TransactionKind.DEBT else "trả"


# =============================================================================
# IDENTITY
# =============================================================================

def alias_set(name: str) -> str:
    return f"✅ Đã đặt alias: @{name}"


def share_code_created(code: str, alias: str, ttl_hours: int) -> str:
    return (
        f"🔗 MÃ KẾT NỐI: {code}\n\n"
        f"Gửi mã này cho bạn bè.\n"
        f"Họ sẽ gõ: link {code} @{alias}\n\n"
        f"⏰ Mã hết hạn sau {ttl_hours}h."
    )


def linked_reply(redemption: ShareCodeRedemption) -> str:
    return f"✅ Đã liên kết với @{redemption.name}!"


def linked_notification(alias: Optional[str]) -> str:
    return (
        f"🔗 @{alias or 'Người dùng'} đã liên kết với bạn!\n"
        f"Giờ các bạn có thể xác nhận nợ cho nhau."
    )


def friends_list(own_alias: Optional[str], friends: list[LinkedCounterparty]) -> str:
    lines = [
        "👥 DANH SÁCH BẠN BÈ",
        RULE,
        f"📛 Alias của bạn: @{own_alias or '(chưa đặt)'}",
        "",
    ]
    if not friends:
        lines += [
            "Chưa có bạn bè nào.",
            "",
            "💡 Để liên kết:",
            "1. Gõ: alias @TenBan",
            "2. Gõ: sharecode",
            "3. Gửi mã cho bạn bè",
        ]
    else:
        lines += [f"{i}. @{friend.display_name}" for i, friend in enumerate(friends, start=1)]
        lines += ["", '💡 Gõ "sharecode" để thêm bạn mới, "no 50k @1" để ghi nợ bạn số 1']
    return "\n".join(lines)


def my_id(party_id: str, alias: Optional[str]) -> str:
    return (
        f"🆔 ID của bạn: {party_id}\n"
        f"📛 Alias: @{alias or '(chưa đặt)'}\n\n"
        f'💡 Gõ "alias @TenBan" để đặt alias'
    )


# =============================================================================
# LEDGER
# =============================================================================

def entry_recorded(result: RecordedEntry) -> str:
    tx = result.transaction
    if tx.is_pending:
        text = (
            f"⏳ Đã gửi yêu cầu xác nhận đến @{tx.counterparty_label}\n"
            f"💰 Số tiền: {money(tx.amount)}\n"
            f"🔑 Mã: {tx.confirmation_code}"
        )
        if result.newly_linked:
            text += f"\n🔗 Đã tự động liên kết với @{tx.counterparty_label}."
        return text

    if tx.kind == TransactionKind.DEBT:
        text = (
            f"✅ Đã ghi nợ: {money(tx.amount)}\n"
            f"👤 Người nợ: @{tx.counterparty_label}\n"
            f"📝 Nội dung: {tx.note}"
        )
    else:
        text = (
            f"✅ Đã ghi trả: {money(tx.amount)}\n"
            f"👤 Người nhận: @{tx.counterparty_label}\n"
            f"📝 Nội dung: {tx.note}"
        )
    if result.ambiguous:
        text += (
            f"\n\n⚠️ Có nhiều bạn tên \"{tx.counterparty_label}\" nên chưa gửi xác nhận. "
            f'Gõ "friends" rồi dùng @số, ví dụ: no {format_amount(tx.amount)} @1'
        )
    return text


def pending_notification(tx: Transaction, creator_alias: Optional[str]) -> str:
    header = "📥 NỢ MỚI" if tx.kind == TransactionKind.DEBT else "📤 TRẢ NỢ"
    code = tx.confirmation_code
    return (
        f"{header} TỪ @{creator_alias or 'Ai đó'}\n"
        f"{RULE}\n"
        f"💰 Số tiền: {money(tx.amount)}\n"
        f"📝 Nội dung: {tx.note}\n"
        f"🔑 Mã: {code}\n\n"
        f"Trả lời:\n"
        f"• ok {code} - Xác nhận\n"
        f"• huy {code} - Từ chối"
    )


def confirmed_reply(tx: Transaction, creator_alias: Optional[str]) -> str:
    return (
        f"✅ Đã xác nhận {_kind_word(tx.kind)} {money(tx.amount)} "
        f"với @{creator_alias or 'người gửi'}."
    )


def confirmed_notification(tx: Transaction) -> str:
    return (
        f"✅ @{tx.counterparty_label} đã XÁC NHẬN!\n"
        f"{RULE}\n"
        f"💰 {money(tx.amount)}\n"
        f"📝 {tx.note}\n"
        f"🔑 Mã: {tx.confirmation_code}"
    )


def rejected_reply(tx: Transaction) -> str:
    return f"❌ Đã từ chối giao dịch {money(tx.amount)}."


def rejected_notification(tx: Transaction) -> str:
    return (
        f"❌ @{tx.counterparty_label} đã TỪ CHỐI!\n"
        f"{RULE}\n"
        f"💰 {money(tx.amount)}\n"
        f"📝 {tx.note}\n"
        f"🔑 Mã: {tx.confirmation_code}"
    )


def pending_list(entries: list[Transaction], aliases: Mapping[str, str]) -> str:
    if not entries:
        return "📋 Không có giao dịch nào chờ xác nhận."
    lines = [f"📋 GIAO DỊCH CHỜ XÁC NHẬN ({len(entries)})", RULE]
    for tx in entries:
        code = tx.confirmation_code
        label = "🔴 Nợ" if tx.kind == TransactionKind.DEBT else "🟢 Trả"
        lines += [
            f"{label} {money(tx.amount)}",
            f"👤 Từ: @{aliases.get(tx.creator_id) or 'Ai đó'}",
            f"📝 {tx.note}",
            f"🔑 Mã: {code}",
            f"→ ok {code} | huy {code}",
            "",
        ]
    return "\n".join(lines).strip()


def undo_reply(tx: Optional[Transaction]) -> str:
    if tx is None:
        return "📋 Không có giao dịch nào để xóa."
    label = "Nợ" if tx.kind == TransactionKind.DEBT else "Trả"
    return (
        f"🗑️ Đã xóa giao dịch:\n"
        f"{label} {money(tx.amount)} - @{tx.counterparty_label}\n"
        f"📝 {tx.note}"
    )


def search_reply(keyword: str, result: SearchResult) -> str:
    if result.total == 0:
        return f'🔍 Không tìm thấy giao dịch với "{keyword}"'
    lines = [f"🔍 Tìm thấy {result.total} giao dịch:", RULE]
    for i, tx in enumerate(result.matches, start=1):
        status = " ⏳" if tx.is_pending else ""
        lines.append(f"{i}. {_kind_icon(tx.kind)} {money(tx.amount)} @{tx.counterparty_label}{status}")
        if tx.note:
            lines.append(f"   📝 {tx.note}")
    if result.remaining > 0:
        lines += ["", f"... và {result.remaining} giao dịch khác"]
    return "\n".join(lines)


# =============================================================================
# QUERIES
# =============================================================================

def balance_report(report: BalanceReport, only_owing: bool = False) -> str:
    if report.filter_name is not None:
        detail = report.detail
        if detail is None:
            return f"📋 Không tìm thấy giao dịch của @{report.filter_name}"
        lines = [
            f"📊 CHI TIẾT @{detail.label}",
            RULE,
            f"🔴 Tổng nợ: {money(detail.owed_to_me)}",
            f"🟢 Đã trả: {money(detail.paid)}",
            f"💰 CÒN NỢ: {signed_money(detail.balance)}",
        ]
        if report.recent:
            lines += ["", "📋 Giao dịch gần nhất:"]
            lines += [
                f"{i}. {_kind_icon(tx.kind)} {money(tx.amount)} - {tx.note}"
                for i, tx in enumerate(report.recent, start=1)
            ]
        return "\n".join(lines)

    if report.entry_count == 0:
        return "📋 Bạn chưa có giao dịch nào."
    if only_owing and not report.balances:
        return "🎉 Không ai còn nợ bạn!"

    lines = ["📊 NGƯỜI CÒN NỢ" if only_owing else "📊 TỔNG HỢP NỢ", RULE]
    for bucket in report.balances:
        icon = "🔴" if bucket.balance > 0 else "🟢"
        lines.append(f"{icon} @{bucket.label}: {signed_money(bucket.balance)}")
    lines += [
        "",
        RULE,
        f"💰 TỔNG CÒN NỢ: {signed_money(report.total)}",
        "",
        '💡 Gõ "check @Tên" để xem chi tiết',
    ]
    return "\n".join(lines)


def stats_reply(stats: PeriodStats) -> str:
    label = PERIOD_LABELS[stats.period]
    if stats.count == 0:
        return f"📊 {label}: Không có giao dịch nào."
    return "\n".join([
        f"📊 THỐNG KÊ {label.upper()}",
        RULE,
        f"📈 Số giao dịch: {stats.count}",
        f"🔴 Nợ mới: {money(stats.total_debt)}",
        f"🟢 Đã trả: {money(stats.total_paid)}",
        f"💰 Chênh lệch: {signed_money(stats.difference)}",
    ])
