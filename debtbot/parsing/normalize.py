"""
Text normalization for Vietnamese chat input.

People type the same name as "Tuấn", "tuan", "TUAN." or "Tuan_". Every
name comparison in the bot goes through `normalize_name`; keyword and
search matching go through `fold_text`, which keeps word boundaries.
"""

import re
import unicodedata

_NON_ALNUM = re.compile(r"[^a-z0-9]")
_WHITESPACE = re.compile(r"\s+")


def strip_accents(text: str) -> str:
    """Remove diacritics; `đ`/`Đ` become `d`/`D`."""
    decomposed = unicodedata.normalize("NFD", text)
    stripped = "".join(ch for ch in decomposed if not unicodedata.combining(ch))
    return stripped.replace("đ", "d").replace("Đ", "D")


def normalize_name(text: str) -> str:
    """
    Canonical comparison key for a display name.

    >>> normalize_name("Tuấn Anh!")
    'tuananh'
    """
    return _NON_ALNUM.sub("", strip_accents(text).lower())


def fold_text(text: str) -> str:
    """Accent-free, lower-case text with runs of whitespace collapsed."""
    return _WHITESPACE.sub(" ", strip_accents(text).lower()).strip()
