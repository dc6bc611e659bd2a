"""Chat text parsing: amounts, name normalization and command classification."""

from debtbot.parsing.amounts import format_amount, parse_amount
from debtbot.parsing.classifier import (
    DEFAULT_NOTE,
    classify,
    match_fixed,
    match_linked_name,
    scan_flexible,
)
from debtbot.parsing.normalize import fold_text, normalize_name, strip_accents

__all__ = [
    "DEFAULT_NOTE",
    "classify",
    "fold_text",
    "format_amount",
    "match_fixed",
    "match_linked_name",
    "normalize_name",
    "parse_amount",
    "scan_flexible",
    "strip_accents",
]
