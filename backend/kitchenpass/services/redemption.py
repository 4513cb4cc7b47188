"""Redemption Coordinator — validates a credential, consumes one use, establishes membership.

Invariants:
    - current_uses never exceeds max_uses, whatever the number of concurrent redeemers:
      the use is consumed only by the store's guarded conditional UPDATE
    - An existing member is never charged a use: membership is checked first and
      ALREADY_MEMBER is returned as success (idempotent retries)
    - Increment and membership insert commit together; a rolled-back insert
      rolls back the increment (no burned use without a member)
    - Codes and links go through the SAME path; only credential resolution differs
    - Expected failures (not found, revoked, expired, use limit, ambiguous code)
      are RedemptionResult values, never exceptions
    - StoreConflictError is retried with jittered backoff (safe: idempotent);
      StoreFailureError propagates immediately

Design Decisions:
    - Validation runs twice: evaluate() on the fetched row for a precise reason,
      then the same predicate inside the UPDATE for the authoritative decision.
      A zero-row UPDATE is re-read and classified, normally USE_LIMIT_REACHED
    - Ambiguous codes (same code live in several kitchens) are refused rather
      than guessed; the caller resends with kitchen_id
"""

import asyncio
import logging
import random
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Sequence

from kitchenpass.core.credential_codes import normalize_human_code
from kitchenpass.core.domain_types import (
    CredentialStatus, KitchenId, MemberRole, RedemptionOutcome, UserId,
)
from kitchenpass.core.errors import StoreConflictError
from kitchenpass.core.outcomes import RedemptionResult
from kitchenpass.core.permissions import grants_invite_capability
from kitchenpass.core.repository_protocols import CredentialLike, CredentialStore
from kitchenpass.core.short_code import normalize_short_code
from kitchenpass.core.validation import as_utc, evaluate

logger = logging.getLogger(__name__)


# ─── Credential references ───────────────────────────────────────

@dataclass(frozen=True)
class LinkRef:
    """Full link token, as embedded in /join/{token}."""
    token: str


@dataclass(frozen=True)
class CodeRef:
    """Human-typed code; kitchen_id optional (resolved when unambiguous)."""
    human_code: str
    kitchen_id: KitchenId | None = None


CredentialRef = LinkRef | CodeRef


@dataclass(frozen=True)
class CodeResolution:
    credential: CredentialLike | None
    ambiguous: bool = False


@dataclass(frozen=True)
class InvitePreview:
    """What a join screen shows before redeeming. Possibly stale."""
    credential: CredentialLike | None
    status: CredentialStatus
    ambiguous: bool = False


# ─── Coordinator ─────────────────────────────────────────────────

class RedemptionCoordinator:
    """Runs the redemption algorithm against a CredentialStore."""

    def __init__(
        self,
        store: CredentialStore,
        conflict_retries: int = 3,
        retry_base_delay_ms: int = 50,
    ):
        self.store = store
        self.conflict_retries = conflict_retries
        self.retry_base_delay_ms = retry_base_delay_ms

    async def redeem(
        self,
        ref: CredentialRef,
        user_id: UserId,
        role: MemberRole = MemberRole.MEMBER,
        now: datetime | None = None,
    ) -> RedemptionResult:
        """Redeem `ref` for `user_id`. Retries transient store conflicts."""
        for attempt in range(self.conflict_retries + 1):
            try:
                result = await self._redeem_once(ref, user_id, role, now)
                self._log_outcome(result, user_id)
                return result
            except StoreConflictError as e:
                await self._handle_conflict(e, attempt, user_id)

    async def _redeem_once(
        self,
        ref: CredentialRef,
        user_id: UserId,
        role: MemberRole,
        now: datetime | None,
    ) -> RedemptionResult:
        moment = as_utc(now or datetime.now(timezone.utc))

        # Known kitchen: the membership short-circuit needs no credential at all
        if isinstance(ref, CodeRef) and ref.kitchen_id is not None:
            existing = await self.store.get_membership(ref.kitchen_id, user_id)
            if existing is not None:
                return RedemptionResult(RedemptionOutcome.ALREADY_MEMBER, existing)

        resolution = await self._resolve(ref, moment)
        if resolution.ambiguous:
            return RedemptionResult(RedemptionOutcome.AMBIGUOUS_CODE)
        credential = resolution.credential
        if credential is None:
            return RedemptionResult(RedemptionOutcome.NOT_FOUND)

        existing = await self.store.get_membership(credential.kitchen_id, user_id)
        if existing is not None:
            return RedemptionResult(
                RedemptionOutcome.ALREADY_MEMBER, existing, credential,
            )

        status = evaluate(credential, moment)
        if status is not CredentialStatus.VALID:
            return RedemptionResult(
                RedemptionOutcome.from_status(status), credential=credential,
            )

        # A rolled-back write expires loaded rows; keep plain ids
        credential_id, kitchen_id = credential.id, credential.kitchen_id
        attempt = await self.store.consume_use_and_join(
            credential_id,
            kitchen_id,
            user_id,
            role,
            grants_invite_capability(role),
            moment,
        )
        fresh = await self.store.get_credential(credential_id)

        if attempt.consumed:
            return RedemptionResult(
                RedemptionOutcome.JOINED, attempt.membership, fresh,
            )
        if attempt.membership is not None:
            return RedemptionResult(
                RedemptionOutcome.ALREADY_MEMBER, attempt.membership, fresh,
            )

        # Guarded write matched nothing: someone else changed the row in between
        status = evaluate(fresh, moment)
        if status is CredentialStatus.VALID:
            outcome = RedemptionOutcome.USE_LIMIT_REACHED
        else:
            outcome = RedemptionOutcome.from_status(status)
        return RedemptionResult(outcome, credential=fresh)

    # ─── Resolution & pre-flight ─────────────────────────────────

    async def _resolve(self, ref: CredentialRef, moment: datetime) -> CodeResolution:
        if isinstance(ref, LinkRef):
            return CodeResolution(await self.store.get_by_token(ref.token))
        if ref.kitchen_id is not None:
            return CodeResolution(
                await self.store.get_by_human_code(
                    ref.kitchen_id, normalize_human_code(ref.human_code),
                ),
            )
        return await self.resolve_code(ref.human_code, moment)

    async def resolve_code(self, human_code: str, now: datetime) -> CodeResolution:
        """Find the kitchen a code belongs to when the caller did not say.

        One candidate: that one, whatever its state. Several: the single
        currently valid one; if more than one is valid the code is ambiguous;
        if none is, the newest candidate (so its failure reason is reported).
        """
        candidates: Sequence[CredentialLike] = await self.store.find_codes_anywhere(
            normalize_human_code(human_code),
        )
        if not candidates:
            return CodeResolution(None)
        if len(candidates) == 1:
            return CodeResolution(candidates[0])

        usable = [
            c for c in candidates
            if evaluate(c, now) is CredentialStatus.VALID
        ]
        if len(usable) == 1:
            return CodeResolution(usable[0])
        if len(usable) > 1:
            return CodeResolution(None, ambiguous=True)
        return CodeResolution(candidates[0])

    async def preview(
        self, ref: CredentialRef, now: datetime | None = None,
    ) -> InvitePreview:
        """Pre-flight check for join screens. May be stale; never mutates."""
        moment = as_utc(now or datetime.now(timezone.utc))
        resolution = await self._resolve(ref, moment)
        if resolution.ambiguous:
            return InvitePreview(None, CredentialStatus.NOT_FOUND, ambiguous=True)
        return InvitePreview(
            resolution.credential, evaluate(resolution.credential, moment),
        )

    async def resolve_short_code(
        self, short_code: str, now: datetime | None = None,
    ) -> CredentialLike | None:
        """Map a typed short code to a currently valid link (redeem by its token)."""
        moment = as_utc(now or datetime.now(timezone.utc))
        links = await self.store.find_links_by_short_code(
            normalize_short_code(short_code),
        )
        for link in links:
            if evaluate(link, moment) is CredentialStatus.VALID:
                return link
        return None

    # ─── Helpers ─────────────────────────────────────────────────

    async def _handle_conflict(
        self, e: StoreConflictError, attempt: int, user_id: UserId,
    ) -> None:
        """Back off before the next attempt, or re-raise once retries are spent."""
        if attempt >= self.conflict_retries:
            logger.error(
                "Redemption conflict retries exhausted",
                extra={"user_id": user_id, "attempt": attempt, "error_code": e.code},
            )
            raise e
        delay = self._backoff_seconds(attempt)
        logger.warning(
            f"Redemption conflict, retrying in {delay:.3f}s",
            extra={"user_id": user_id, "attempt": attempt, "error_code": e.code},
        )
        await asyncio.sleep(delay)

    def _backoff_seconds(self, attempt: int) -> float:
        """Exponential backoff with ±25% jitter."""
        base = self.retry_base_delay_ms * (2 ** attempt) / 1000
        return base * random.uniform(0.75, 1.25)

    def _log_outcome(self, result: RedemptionResult, user_id: UserId) -> None:
        credential = result.credential
        extra = {
            "user_id": user_id,
            "outcome": result.outcome.value,
            "credential_id": credential.id if credential else None,
            "kitchen_id": credential.kitchen_id if credential else None,
            "short_code": credential.short_code if credential else None,
        }
        if result.succeeded:
            logger.info("Redemption succeeded", extra=extra)
        else:
            logger.info("Redemption refused", extra=extra)
