"""Authorization Rules — verifies who may issue, revoke and list credentials.

Tests:
    - Owners and admins always issue; members only with can_invite; non-members never
    - Issuer may revoke their own credential, even without a membership
    - Owner/admin of the SAME kitchen may revoke; plain members may not
    - Memberships in another kitchen grant nothing
    - Unknown roles are rejected, never silently allowed
"""

from dataclasses import dataclass
from datetime import datetime, timezone
from uuid import UUID, uuid4

import pytest

from kitchenpass.core.domain_types import MemberRole
from kitchenpass.core.permissions import (
    can_issue, can_revoke, grants_invite_capability, sees_all_credentials,
)

KITCHEN = uuid4()


@dataclass
class _Membership:
    role: str
    can_invite: bool = False
    kitchen_id: UUID = KITCHEN
    user_id: UUID = uuid4()
    created_at: datetime = datetime(2026, 1, 1, tzinfo=timezone.utc)


@dataclass
class _Credential:
    issued_by: UUID | None
    kitchen_id: UUID = KITCHEN


@pytest.mark.parametrize("role", [MemberRole.OWNER, MemberRole.ADMIN])
def test_managers_always_issue(role):
    assert can_issue(_Membership(role=role.value, can_invite=False))


def test_member_issues_only_with_capability():
    assert can_issue(_Membership(role="member", can_invite=True))
    assert not can_issue(_Membership(role="member", can_invite=False))


def test_non_member_cannot_issue():
    assert not can_issue(None)


def test_issuer_revokes_own_credential():
    actor = uuid4()
    assert can_revoke(_Credential(issued_by=actor), actor, None)


def test_member_cannot_revoke_someone_elses_credential():
    membership = _Membership(role="member", can_invite=True)
    assert not can_revoke(_Credential(issued_by=uuid4()), uuid4(), membership)


@pytest.mark.parametrize("role", ["owner", "admin"])
def test_managers_revoke_any_credential_in_kitchen(role):
    assert can_revoke(_Credential(issued_by=None), uuid4(), _Membership(role=role))


def test_manager_of_other_kitchen_cannot_revoke():
    other = _Membership(role="owner", kitchen_id=uuid4())
    assert not can_revoke(_Credential(issued_by=uuid4()), uuid4(), other)


def test_owner_issued_code_revocable_by_admin():
    """issued_by=None (owner default policy) still revocable by managers."""
    assert can_revoke(_Credential(issued_by=None), uuid4(), _Membership(role="admin"))


def test_unknown_role_rejected():
    with pytest.raises(ValueError):
        can_issue(_Membership(role="chef"))


def test_listing_scope():
    assert sees_all_credentials(_Membership(role="owner"))
    assert sees_all_credentials(_Membership(role="admin"))
    assert not sees_all_credentials(_Membership(role="member", can_invite=True))
    assert not sees_all_credentials(None)


def test_invite_capability_for_redeemed_roles():
    assert grants_invite_capability(MemberRole.ADMIN)
    assert grants_invite_capability(MemberRole.OWNER)
    assert not grants_invite_capability(MemberRole.MEMBER)
