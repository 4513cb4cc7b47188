"""Issuance Policy — default expiry and use limits chosen by the caller of issuance.

Invariants:
    - IssuanceService applies NO defaults; this module is where callers pick them
    - Owners/admins get the generous code policy, restricted members the tight one
    - Explicit request values always win over the defaults

Design Decisions:
    - Limits passed in as an IssuanceLimits value (built from Settings by the shell)
      so the core never reads configuration itself
"""

from dataclasses import dataclass
from datetime import timedelta
from uuid import UUID

from kitchenpass.core.domain_types import CredentialKind, MemberRole


@dataclass(frozen=True)
class IssuanceLimits:
    """Policy table: minutes and uses per issuer class and credential kind."""
    owner_code_expiry_minutes: int = 60
    owner_code_max_uses: int = 5
    member_code_expiry_minutes: int = 30
    member_code_max_uses: int = 2
    link_expiry_minutes: int = 1440
    link_max_uses: int = 1


@dataclass(frozen=True)
class IssuanceTerms:
    expiry: timedelta
    max_uses: int


def resolve_terms(
    kind: CredentialKind,
    issuer_role: MemberRole,
    limits: IssuanceLimits,
    expiry_minutes: int | None = None,
    max_uses: int | None = None,
) -> IssuanceTerms:
    """Fill unspecified limits from the policy for this issuer and kind."""
    default_minutes, default_uses = _defaults_for(kind, issuer_role, limits)
    minutes = expiry_minutes if expiry_minutes is not None else default_minutes
    uses = max_uses if max_uses is not None else default_uses
    return IssuanceTerms(expiry=timedelta(minutes=minutes), max_uses=uses)


def _defaults_for(
    kind: CredentialKind, issuer_role: MemberRole, limits: IssuanceLimits,
) -> tuple[int, int]:
    if kind is CredentialKind.LINK:
        return limits.link_expiry_minutes, limits.link_max_uses
    if issuer_role is MemberRole.OWNER or issuer_role is MemberRole.ADMIN:
        return limits.owner_code_expiry_minutes, limits.owner_code_max_uses
    if issuer_role is MemberRole.MEMBER:
        return limits.member_code_expiry_minutes, limits.member_code_max_uses
    raise ValueError(f"Unhandled role: {issuer_role}")


def issuer_of_record(
    kind: CredentialKind, issuer_role: MemberRole, issuer_id: UUID,
) -> UUID | None:
    """Owner-issued codes store issued_by=None (default policy); everything else keeps the id."""
    if kind is CredentialKind.CODE and issuer_role is MemberRole.OWNER:
        return None
    return issuer_id
