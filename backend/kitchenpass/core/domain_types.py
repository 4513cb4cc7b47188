"""Domain Types — rich types that replace bare primitives across the codebase.

Invariants:
    - KitchenId, UserId, CredentialId wrap UUIDs — never use bare UUID in domain logic
    - All valid states encoded as Enums — no raw string matching
    - MemberRole is closed: owner, admin, member (authorization checks are exhaustive)

Design Decisions:
    - NewType over dataclass wrappers: zero runtime cost, full type-checker support
    - str Enums: serialize to JSON and to DB string columns without custom encoders
"""

from enum import Enum
from typing import NewType
from uuid import UUID


# ─── Identity Types ──────────────────────────────────────────────

KitchenId = NewType("KitchenId", UUID)
UserId = NewType("UserId", UUID)
CredentialId = NewType("CredentialId", UUID)


# ─── Enums ───────────────────────────────────────────────────────

class CredentialKind(str, Enum):
    """The two credential shapes sharing one redemption contract."""
    CODE = "code"   # human-typed, unique per kitchen
    LINK = "link"   # opaque token embedded in a URL, globally unique


class MemberRole(str, Enum):
    """Kitchen membership roles — maps to DB `role` column."""
    OWNER = "owner"
    ADMIN = "admin"
    MEMBER = "member"


class CredentialStatus(str, Enum):
    """Result of evaluating a credential at a point in time."""
    VALID = "valid"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    EXPIRED = "expired"
    USE_LIMIT_REACHED = "use_limit_reached"


class RedemptionOutcome(str, Enum):
    """Every way a redemption can end without a store failure."""
    JOINED = "joined"
    ALREADY_MEMBER = "already_member"
    NOT_FOUND = "not_found"
    REVOKED = "revoked"
    EXPIRED = "expired"
    USE_LIMIT_REACHED = "use_limit_reached"
    AMBIGUOUS_CODE = "ambiguous_code"

    @property
    def succeeded(self) -> bool:
        return self in (RedemptionOutcome.JOINED, RedemptionOutcome.ALREADY_MEMBER)

    @classmethod
    def from_status(cls, status: CredentialStatus) -> "RedemptionOutcome":
        """Map a non-valid credential status to its failure outcome."""
        if status is CredentialStatus.NOT_FOUND:
            return cls.NOT_FOUND
        if status is CredentialStatus.REVOKED:
            return cls.REVOKED
        if status is CredentialStatus.EXPIRED:
            return cls.EXPIRED
        if status is CredentialStatus.USE_LIMIT_REACHED:
            return cls.USE_LIMIT_REACHED
        raise ValueError(f"{status} is not a failure status")


class RevocationOutcome(str, Enum):
    """Result of a revoke request."""
    REVOKED = "revoked"
    ALREADY_REVOKED = "already_revoked"
    UNAUTHORIZED = "unauthorized"
    NOT_FOUND = "not_found"
