"""Short Code Derivation — maps a link token to a human-typable display code.

Invariants:
    - derive_short_code is PURE and deterministic: same token, same code
    - Output is uppercase alphanumeric, at most SHORT_CODE_LENGTH characters
    - Display/fallback only: link redemption always keys on the full token

Design Decisions:
    - Prefix of the token's alphanumerics (separators stripped) instead of a hash:
      the code is readable straight off the URL, and the token's own entropy
      already spreads prefixes uniformly
"""

import re

SHORT_CODE_LENGTH: int = 6

_NON_ALNUM = re.compile(r"[^A-Za-z0-9]")
_INPUT_SEPARATORS = re.compile(r"[\s-]")


def derive_short_code(token: str) -> str:
    """Return the display short code for a link token."""
    return _NON_ALNUM.sub("", token).upper()[:SHORT_CODE_LENGTH]


def normalize_short_code(text: str) -> str:
    """Normalize user input: drop whitespace and hyphens, uppercase."""
    return _INPUT_SEPARATORS.sub("", text).upper()
