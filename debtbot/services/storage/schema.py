"""
Table Schemas

Column names match the spreadsheet the bot has always written to, so an
existing sheet keeps working. Bump SCHEMA_VERSION whenever a column is
added; `LedgerStorage.open()` adds missing columns once at startup.
"""

SCHEMA_VERSION = 2

TRANSACTIONS = "transactions"
ALIASES = "aliases"
FRIEND_LINKS = "friend_links"

TRANSACTION_COLUMNS = [
    "Date",
    "UserID",
    "Debtor",
    "Type",
    "Amount",
    "Content",
    "DebtorUserID",  # v2
    "Status",        # v2
    "DebtCode",      # v2
]

ALIAS_COLUMNS = [
    "UserID",
    "Alias",
    "CreatedAt",
]

FRIEND_LINK_COLUMNS = [
    "UserID_A",
    "UserID_B",
    "AliasOfBForA",
    "AliasOfAForB",
    "Code",
    "Status",
    "CreatedAt",
    "ExpiresAt",
]

TABLE_SCHEMAS: dict[str, list[str]] = {
    TRANSACTIONS: TRANSACTION_COLUMNS,
    ALIASES: ALIAS_COLUMNS,
    FRIEND_LINKS: FRIEND_LINK_COLUMNS,
}

# Cells that never change once a row is written. Stores with shifting
# row keys compare them before an update or delete.
IDENTITY_COLUMNS: dict[str, list[str]] = {
    TRANSACTIONS: ["Date", "UserID", "DebtCode"],
    ALIASES: ["UserID", "CreatedAt"],
    FRIEND_LINKS: ["UserID_B", "Code", "CreatedAt"],
}
