"""Identity directory: aliases and friend links."""

from debtbot.directory.service import (
    UNNAMED,
    CounterpartyResolution,
    IdentityDirectory,
    ShareCodeRedemption,
)

__all__ = [
    "UNNAMED",
    "CounterpartyResolution",
    "IdentityDirectory",
    "ShareCodeRedemption",
]
