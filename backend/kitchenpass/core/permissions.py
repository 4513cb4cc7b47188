"""Authorization Rules — who may issue and who may revoke credentials.

Invariants:
    - Every check handles all MemberRole values explicitly; an unknown role raises
    - Non-members (membership is None) may neither issue nor revoke,
      except the original issuer revoking their own credential
    - Functions are PURE: callers fetch memberships, these only decide

Design Decisions:
    - canInvite is meaningful for plain members only: owners and admins always may issue
"""

from uuid import UUID

from kitchenpass.core.domain_types import MemberRole
from kitchenpass.core.repository_protocols import CredentialLike, MembershipLike


def can_issue(membership: MembershipLike | None) -> bool:
    """Rule: owner/admin always; member only with can_invite."""
    if membership is None:
        return False
    role = MemberRole(membership.role)
    if role is MemberRole.OWNER:
        return True
    if role is MemberRole.ADMIN:
        return True
    if role is MemberRole.MEMBER:
        return bool(membership.can_invite)
    raise ValueError(f"Unhandled role: {role}")


def can_revoke(
    credential: CredentialLike,
    actor_id: UUID,
    membership: MembershipLike | None,
) -> bool:
    """Rule: the issuer, the kitchen owner, or an admin."""
    if credential.issued_by is not None and credential.issued_by == actor_id:
        return True
    if membership is None or membership.kitchen_id != credential.kitchen_id:
        return False
    role = MemberRole(membership.role)
    if role is MemberRole.OWNER:
        return True
    if role is MemberRole.ADMIN:
        return True
    if role is MemberRole.MEMBER:
        return False
    raise ValueError(f"Unhandled role: {role}")


def sees_all_credentials(membership: MembershipLike | None) -> bool:
    """Owners and admins list every credential; members only their own."""
    if membership is None:
        return False
    role = MemberRole(membership.role)
    if role is MemberRole.OWNER or role is MemberRole.ADMIN:
        return True
    if role is MemberRole.MEMBER:
        return False
    raise ValueError(f"Unhandled role: {role}")


def grants_invite_capability(role: MemberRole) -> bool:
    """can_invite flag stored on a membership created by redemption."""
    if role is MemberRole.OWNER or role is MemberRole.ADMIN:
        return True
    if role is MemberRole.MEMBER:
        return False
    raise ValueError(f"Unhandled role: {role}")
