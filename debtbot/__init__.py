"""
Debtbot - Source Package

A chat-driven personal debt ledger. Friends send short Vietnamese commands
("no 50k @Bao tiền cơm") and the bot keeps a per-pair running balance.

DESIGN PRINCIPLES:
1. Text in -> one typed intent -> one ledger operation -> one reply
2. Entries naming a linked friend need that friend's confirmation
3. Only confirmed entries count toward balances
4. The row store is the single source of truth
5. Storage layer is swappable
"""

__version__ = "2.0.0"
__author__ = "Debtbot Team"
