"""Typed Results — expected business outcomes returned as values, never raised.

Invariants:
    - RedemptionResult.membership is set iff the outcome succeeded
    - JoinAttempt.consumed is True iff a use was consumed AND the membership committed
    - All results are frozen: shell code cannot mutate an outcome after the fact

Design Decisions:
    - Dataclasses over dicts: the redemption path is the hot contract, keep it typed
"""

from dataclasses import dataclass

from kitchenpass.core.domain_types import RedemptionOutcome, RevocationOutcome
from kitchenpass.core.repository_protocols import CredentialLike, MembershipLike


@dataclass(frozen=True)
class JoinAttempt:
    """What the store's atomic consume-and-join did.

    consumed=True               -> use consumed, membership created, committed
    consumed=False, member set  -> the user was already a member; nothing consumed
    consumed=False, member None -> guarded increment matched no row; nothing consumed
    """
    consumed: bool
    membership: MembershipLike | None = None


@dataclass(frozen=True)
class RedemptionResult:
    outcome: RedemptionOutcome
    membership: MembershipLike | None = None
    credential: CredentialLike | None = None

    @property
    def succeeded(self) -> bool:
        return self.outcome.succeeded


@dataclass(frozen=True)
class RevocationResult:
    outcome: RevocationOutcome
    credential: CredentialLike | None = None

    @property
    def ok(self) -> bool:
        return self.outcome in (RevocationOutcome.REVOKED, RevocationOutcome.ALREADY_REVOKED)


# User-facing messages for expected failures
OUTCOME_MESSAGES: dict[RedemptionOutcome, str] = {
    RedemptionOutcome.NOT_FOUND: "This invite is not valid.",
    RedemptionOutcome.REVOKED: "This invite has been revoked. Ask for a new one.",
    RedemptionOutcome.EXPIRED: "This invite has expired. Ask for a new one.",
    RedemptionOutcome.USE_LIMIT_REACHED: "This invite has already been used the maximum number of times.",
    RedemptionOutcome.AMBIGUOUS_CODE: "This code matches more than one kitchen. Pick the kitchen you are joining.",
}
