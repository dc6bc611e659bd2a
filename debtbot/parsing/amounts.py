"""
Amount grammar.

Informal Vietnamese amounts as typed in chat:

    50000, 50.000, 50,000đ   -> 50_000
    50k                      -> 50_000
    50k5                     -> 50_500   (5 hundreds)
    2tr, 2trieu, 2triệu      -> 2_000_000
    2m                       -> 2_000_000

Separators are dropped, not interpreted: "1.5tr" reads as 15 million.
Anything else (signs, mixed letters, zero, over the ceiling) is not
an amount.
"""

import re
from typing import Optional

from debtbot.models.ledger import MAX_AMOUNT

_SEPARATORS = re.compile(r"[,.đ\s]")
_MILLION_WORD = re.compile(r"^(\d+)(triệu|trieu|tr)$")
_K_HUNDREDS = re.compile(r"^(\d+)k(\d+)$")
_DIGITS = re.compile(r"^\d+$")


def parse_amount(token: str, max_amount: int = MAX_AMOUNT) -> Optional[int]:
    """
    Parse one token as an amount.

    Returns None when the token is not a valid positive amount
    no larger than `max_amount`.
    """
    if not token:
        return None
    text = _SEPARATORS.sub("", token.lower())
    if not text:
        return None

    value: Optional[int] = None
    match = _MILLION_WORD.match(text)
    if match:
        value = int(match.group(1)) * 1_000_000
    else:
        match = _K_HUNDREDS.match(text)
        if match:
            value = int(match.group(1)) * 1000 + int(match.group(2)) * 100
        elif "k" in text and not text.endswith("k"):
            # "5k50x", "k5" and friends
            return None
        elif text.endswith("k") and _DIGITS.match(text[:-1]):
            value = int(text[:-1]) * 1000
        elif text.endswith("m") and _DIGITS.match(text[:-1]):
            value = int(text[:-1]) * 1_000_000
        elif _DIGITS.match(text):
            value = int(text)

    if value is None or value <= 0 or value > max_amount:
        return None
    return value


def format_amount(amount: int) -> str:
    """Render with `.` as thousands separator: 1500000 -> '1.500.000'."""
    return f"{amount:,}".replace(",", ".")
