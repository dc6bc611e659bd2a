"""Short codes for share links and pending entries."""

import secrets
from typing import Container

MAX_ATTEMPTS = 50


def generate_code(length: int = 6) -> str:
    """Random upper-case hex code, e.g. '3FA91C'."""
    return secrets.token_hex((length + 1) // 2).upper()[:length]


def generate_unique_code(taken: Container[str], length: int = 6) -> str:
    """
    Generate a code not present in `taken`.

    Raises:
        RuntimeError: If no free code was found in MAX_ATTEMPTS tries
    """
    for _ in range(MAX_ATTEMPTS):
        code = generate_code(length)
        if code not in taken:
            return code
    raise RuntimeError(f"Could not generate a unique {length}-character code")
