"""Revocation Service — invalidates a credential ahead of expiry or use exhaustion.

Invariants:
    - Only the issuer, the kitchen owner, or a kitchen admin may revoke
    - Idempotent: revoking a revoked credential succeeds (ALREADY_REVOKED)
    - Never deletes; never touches current_uses or existing memberships

Design Decisions:
    - Last-write-wins is acceptable: revocation is low-contention, and the
      guarded redemption UPDATE re-checks `revoked` at write time anyway
"""

import logging
from datetime import datetime, timezone

from kitchenpass.core.domain_types import CredentialId, RevocationOutcome, UserId
from kitchenpass.core.outcomes import RevocationResult
from kitchenpass.core.permissions import can_revoke
from kitchenpass.core.repository_protocols import CredentialStore

logger = logging.getLogger(__name__)


class RevocationService:
    """Revokes credentials on behalf of authorized actors."""

    def __init__(self, store: CredentialStore):
        self.store = store

    async def revoke(
        self,
        credential_id: CredentialId,
        actor_id: UserId,
        now: datetime | None = None,
    ) -> RevocationResult:
        credential = await self.store.get_credential(credential_id)
        if credential is None:
            return RevocationResult(RevocationOutcome.NOT_FOUND)

        membership = await self.store.get_membership(credential.kitchen_id, actor_id)
        if not can_revoke(credential, actor_id, membership):
            logger.warning(
                "Revocation refused",
                extra={
                    "credential_id": credential_id,
                    "kitchen_id": credential.kitchen_id,
                    "actor_id": actor_id,
                },
            )
            return RevocationResult(RevocationOutcome.UNAUTHORIZED, credential)

        if credential.revoked:
            return RevocationResult(RevocationOutcome.ALREADY_REVOKED, credential)

        changed = await self.store.mark_revoked(
            credential_id, actor_id, now or datetime.now(timezone.utc),
        )
        fresh = await self.store.get_credential(credential_id)
        outcome = RevocationOutcome.REVOKED if changed else RevocationOutcome.ALREADY_REVOKED
        logger.info(
            "Credential revoked",
            extra={
                "credential_id": credential_id,
                "kitchen_id": credential.kitchen_id,
                "actor_id": actor_id,
                "outcome": outcome.value,
            },
        )
        return RevocationResult(outcome, fresh)
