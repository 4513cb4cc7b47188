"""Boundary Protocols — contracts between core and shell.

Invariants:
    - Core NEVER imports from shell — dependency arrows point inward only
    - All IO operations accessed through Protocol types
    - consume_use_and_join is the ONLY way a use is consumed, and it is atomic:
      the guarded increment and the membership insert commit together or not at all

Design Decisions:
    - Protocol over ABC: structural subtyping, no inheritance hierarchy
    - Async in Protocol: boundary methods are async because implementations do IO,
      but core pure functions that USE the record protocols are never async
"""

from datetime import datetime
from typing import TYPE_CHECKING, Protocol, Sequence
from uuid import UUID

from kitchenpass.core.domain_types import (
    CredentialId, CredentialKind, KitchenId, MemberRole, UserId,
)

if TYPE_CHECKING:
    from kitchenpass.core.outcomes import JoinAttempt


class CredentialLike(Protocol):
    """Structural contract for credential records evaluated by core logic."""
    id: UUID
    kind: str
    kitchen_id: UUID
    issued_by: UUID | None
    human_code: str | None
    token: str | None
    short_code: str | None
    created_at: datetime
    expires_at: datetime
    max_uses: int
    current_uses: int
    revoked: bool


class MembershipLike(Protocol):
    """Structural contract for membership records used in authorization."""
    kitchen_id: UUID
    user_id: UUID
    role: str
    can_invite: bool
    created_at: datetime


class CredentialStore(Protocol):
    """Contract for credential and membership persistence — implemented by shell."""

    async def insert_credential(
        self,
        kind: CredentialKind,
        kitchen_id: KitchenId,
        issued_by: UserId | None,
        expires_at: datetime,
        max_uses: int,
        human_code: str | None = None,
        token: str | None = None,
        short_code: str | None = None,
    ) -> CredentialLike: ...

    async def human_code_exists(
        self, kitchen_id: KitchenId, human_code: str,
    ) -> bool: ...

    async def get_credential(
        self, credential_id: CredentialId,
    ) -> CredentialLike | None: ...

    async def get_by_token(self, token: str) -> CredentialLike | None: ...

    async def get_by_human_code(
        self, kitchen_id: KitchenId, human_code: str,
    ) -> CredentialLike | None: ...

    async def find_codes_anywhere(
        self, human_code: str,
    ) -> Sequence[CredentialLike]: ...

    async def find_links_by_short_code(
        self, short_code: str,
    ) -> Sequence[CredentialLike]: ...

    async def get_membership(
        self, kitchen_id: KitchenId, user_id: UserId,
    ) -> MembershipLike | None: ...

    async def list_active_credentials(
        self,
        kitchen_id: KitchenId,
        now: datetime,
        issued_by: UserId | None = None,
    ) -> Sequence[CredentialLike]: ...

    async def list_credentials_by_issuer(
        self, kitchen_id: KitchenId, issuer_id: UserId,
    ) -> Sequence[CredentialLike]: ...

    async def consume_use_and_join(
        self,
        credential_id: CredentialId,
        kitchen_id: KitchenId,
        user_id: UserId,
        role: MemberRole,
        can_invite: bool,
        now: datetime,
    ) -> "JoinAttempt": ...

    async def mark_revoked(
        self, credential_id: CredentialId, actor_id: UserId, now: datetime,
    ) -> bool: ...
