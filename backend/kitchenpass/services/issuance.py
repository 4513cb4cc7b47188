"""Issuance Service — creates new invite credentials with caller-specified limits.

Invariants:
    - New credentials start with current_uses=0 and revoked=False
    - No implicit defaults: expiry and max_uses always come from the caller
    - Code collisions inside a kitchen are retried up to max_attempts, then
      CodeSpaceExhaustedError; a lost insert race counts as a collision
    - Link credentials get their display short code derived exactly once, here
    - Store failures surface as IssuanceFailedError

Design Decisions:
    - Existence pre-check before insert: keeps the common collision path free of
      IntegrityError round-trips; the UNIQUE constraint still decides races
"""

import logging
from datetime import datetime, timedelta, timezone

from kitchenpass.core.credential_codes import (
    DEFAULT_CODE_LENGTH, generate_human_code, generate_link_token,
)
from kitchenpass.core.domain_types import CredentialKind, KitchenId, UserId
from kitchenpass.core.errors import (
    CodeSpaceExhaustedError, ErrorContext, InvalidIssuanceError,
    IssuanceFailedError, StoreConflictError, StoreFailureError,
)
from kitchenpass.core.repository_protocols import CredentialLike, CredentialStore
from kitchenpass.core.short_code import derive_short_code
from kitchenpass.core.validation import as_utc

logger = logging.getLogger(__name__)

DEFAULT_MAX_ATTEMPTS: int = 10


class IssuanceService:
    """Issues human codes and link tokens."""

    def __init__(
        self,
        store: CredentialStore,
        code_length: int = DEFAULT_CODE_LENGTH,
        max_attempts: int = DEFAULT_MAX_ATTEMPTS,
    ):
        self.store = store
        self.code_length = code_length
        self.max_attempts = max_attempts

    async def issue(
        self,
        kind: CredentialKind,
        kitchen_id: KitchenId,
        issuer_id: UserId | None,
        expiry: timedelta,
        max_uses: int,
        now: datetime | None = None,
    ) -> CredentialLike:
        """Create one credential of `kind` valid for `expiry` and `max_uses` redemptions."""
        _check_limits(expiry, max_uses)
        issued_at = as_utc(now or datetime.now(timezone.utc))
        expires_at = issued_at + expiry
        ctx = ErrorContext(kitchen_id=str(kitchen_id))

        try:
            if kind is CredentialKind.CODE:
                credential = await self._issue_code(
                    kitchen_id, issuer_id, expires_at, max_uses, ctx,
                )
            else:
                credential = await self._issue_link(
                    kitchen_id, issuer_id, expires_at, max_uses,
                )
        except (StoreFailureError, StoreConflictError) as e:
            logger.error(
                f"Issuance failed: {e.message}",
                extra={"kitchen_id": kitchen_id, "kind": kind.value, "error_code": e.code},
            )
            raise IssuanceFailedError(e.message, ctx) from e

        logger.info(
            "Credential issued",
            extra={
                "kitchen_id": kitchen_id,
                "credential_id": credential.id,
                "kind": kind.value,
                "short_code": credential.short_code,
                "user_id": issuer_id,
            },
        )
        return credential

    async def _issue_code(
        self,
        kitchen_id: KitchenId,
        issuer_id: UserId | None,
        expires_at: datetime,
        max_uses: int,
        ctx: ErrorContext,
    ) -> CredentialLike:
        for attempt in range(1, self.max_attempts + 1):
            candidate = generate_human_code(self.code_length)
            if await self.store.human_code_exists(kitchen_id, candidate):
                logger.info(
                    "Invite code collision, retrying",
                    extra={"kitchen_id": kitchen_id, "attempt": attempt},
                )
                continue
            try:
                return await self.store.insert_credential(
                    CredentialKind.CODE, kitchen_id, issuer_id,
                    expires_at, max_uses, human_code=candidate,
                )
            except StoreConflictError:
                logger.info(
                    "Invite code taken concurrently, retrying",
                    extra={"kitchen_id": kitchen_id, "attempt": attempt},
                )
        raise CodeSpaceExhaustedError(self.max_attempts, ctx)

    async def _issue_link(
        self,
        kitchen_id: KitchenId,
        issuer_id: UserId | None,
        expires_at: datetime,
        max_uses: int,
    ) -> CredentialLike:
        token = generate_link_token()
        return await self.store.insert_credential(
            CredentialKind.LINK, kitchen_id, issuer_id,
            expires_at, max_uses,
            token=token, short_code=derive_short_code(token),
        )


def _check_limits(expiry: timedelta, max_uses: int) -> None:
    if expiry <= timedelta(0):
        raise InvalidIssuanceError("expiry must be positive", "expiry")
    if max_uses < 1:
        raise InvalidIssuanceError("max_uses must be at least 1", "max_uses")
