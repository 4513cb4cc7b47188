"""Credential Material — random human codes and opaque link tokens.

Invariants:
    - Human codes use CODE_ALPHABET only (no 0/O, 1/I/L look-alikes)
    - Human codes are compared case-insensitively: always normalized to uppercase
    - Link tokens carry >= 256 bits of entropy (the token alone grants join capability)

Design Decisions:
    - secrets over random: both shapes are bearer capabilities
    - token_urlsafe: embeds in a URL path without escaping
"""

import re
import secrets

CODE_ALPHABET: str = "ABCDEFGHJKMNPQRSTUVWXYZ23456789"
DEFAULT_CODE_LENGTH: int = 6
LINK_TOKEN_BYTES: int = 32

_CODE_SEPARATORS = re.compile(r"[\s-]")


def generate_human_code(length: int = DEFAULT_CODE_LENGTH) -> str:
    """Random fixed-length code from the ambiguity-free alphabet."""
    if length < 1:
        raise ValueError("code length must be positive")
    return "".join(secrets.choice(CODE_ALPHABET) for _ in range(length))


def normalize_human_code(text: str) -> str:
    """Canonical form of a typed code: no whitespace or hyphens, uppercase."""
    return _CODE_SEPARATORS.sub("", text).upper()


def generate_link_token() -> str:
    return secrets.token_urlsafe(LINK_TOKEN_BYTES)


def build_join_url(origin: str, token: str) -> str:
    """Shareable join URL — the token identifies both kitchen and credential."""
    return f"{origin.rstrip('/')}/join/{token}"
