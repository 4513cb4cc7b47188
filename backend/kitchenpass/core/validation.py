"""Credential Validation — decides whether a credential is usable at a given instant.

Invariants:
    - evaluate is PURE: no IO, no clock reads, no mutation
    - Check order is fixed: existence -> revoked -> expiry -> use limit
    - A credential is valid iff not revoked AND now < expires_at AND current_uses < max_uses
    - Same function serves pre-flight previews and the redemption path

Design Decisions:
    - Naive datetimes are read as UTC: SQLite drops tzinfo on DateTime(timezone=True)
      columns, and every timestamp this service writes is UTC
"""

from datetime import datetime, timezone

from kitchenpass.core.domain_types import CredentialStatus
from kitchenpass.core.repository_protocols import CredentialLike


def as_utc(moment: datetime) -> datetime:
    """Attach UTC to naive datetimes; convert aware ones to UTC."""
    if moment.tzinfo is None:
        return moment.replace(tzinfo=timezone.utc)
    return moment.astimezone(timezone.utc)


def evaluate(credential: CredentialLike | None, now: datetime) -> CredentialStatus:
    """Evaluate credential usability at `now`. Pure — no state mutation."""
    if credential is None:
        return CredentialStatus.NOT_FOUND
    if credential.revoked:
        return CredentialStatus.REVOKED
    if as_utc(now) >= as_utc(credential.expires_at):
        return CredentialStatus.EXPIRED
    if credential.current_uses >= credential.max_uses:
        return CredentialStatus.USE_LIMIT_REACHED
    return CredentialStatus.VALID


def remaining_uses(credential: CredentialLike) -> int:
    return max(0, credential.max_uses - credential.current_uses)


def format_time_remaining(expires_at: datetime, now: datetime) -> str:
    """Compact countdown for display: '1d 3h', '2h 5m', '45m' or 'Expired'."""
    delta = as_utc(expires_at) - as_utc(now)
    if delta.total_seconds() <= 0:
        return "Expired"

    minutes = int(delta.total_seconds() // 60)
    hours = minutes // 60
    days = hours // 24

    if days > 0:
        return f"{days}d {hours % 24}h"
    if hours > 0:
        return f"{hours}h {minutes % 60}m"
    return f"{minutes}m"
