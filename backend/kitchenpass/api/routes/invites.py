"""Invite Routes — issue, list and revoke kitchen invite credentials.

Invariants:
    - Issuing requires can_issue (owner/admin, or a member with can_invite)
    - Omitted expiry/max_uses are filled from the issuance policy before the service runs
    - Owners and admins list every active credential; members only their own
    - /invites/mine lists what the caller issued in any state (revoked, expired, used up)
    - Revocation is idempotent: already_revoked is a 200, not an error

Design Decisions:
    - Authorization decisions come from core/permissions; routes only fetch and map
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, status

from kitchenpass.api.dependencies import (
    get_caller_id, get_issuance_service, get_revocation_service, get_store,
)
from kitchenpass.api.routes.invite_helpers import credential_summary, issued_response
from kitchenpass.config import Settings, get_settings
from kitchenpass.core.domain_types import (
    CredentialId, CredentialKind, KitchenId, MemberRole, RevocationOutcome, UserId,
)
from kitchenpass.core.errors import ErrorContext, ResourceNotFoundError, UnauthorizedError
from kitchenpass.core.issuance_policy import issuer_of_record, resolve_terms
from kitchenpass.core.permissions import can_issue, sees_all_credentials
from kitchenpass.schemas.invites import (
    CredentialSummary, IssuedCodeResponse, IssuedLinkResponse,
    IssueRequest, RevokeResponse,
)
from kitchenpass.services.credential_store import SqlCredentialStore
from kitchenpass.services.issuance import IssuanceService
from kitchenpass.services.revocation import RevocationService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1", tags=["invites"])


@router.post(
    "/kitchens/{kitchen_id}/invites",
    response_model=IssuedCodeResponse | IssuedLinkResponse,
    status_code=status.HTTP_201_CREATED,
)
async def issue_invite(
    kitchen_id: UUID,
    body: IssueRequest,
    caller_id: UserId = Depends(get_caller_id),
    store: SqlCredentialStore = Depends(get_store),
    issuance: IssuanceService = Depends(get_issuance_service),
    settings: Settings = Depends(get_settings),
):
    """Issue a join code or join link for a kitchen."""
    membership = await store.get_membership(KitchenId(kitchen_id), caller_id)
    if not can_issue(membership):
        raise UnauthorizedError(
            "issue invites for this kitchen",
            ErrorContext(kitchen_id=str(kitchen_id), user_id=str(caller_id)),
        )
    kind = CredentialKind(body.kind)
    role = MemberRole(membership.role)
    terms = resolve_terms(
        kind, role, settings.issuance_limits(),
        expiry_minutes=body.expiry_minutes, max_uses=body.max_uses,
    )
    credential = await issuance.issue(
        kind,
        KitchenId(kitchen_id),
        issuer_of_record(kind, role, caller_id),
        terms.expiry,
        terms.max_uses,
    )
    return issued_response(credential, settings.public_origin)


@router.get(
    "/kitchens/{kitchen_id}/invites",
    response_model=list[CredentialSummary],
)
async def list_invites(
    kitchen_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    store: SqlCredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Active (unrevoked, unexpired) credentials visible to the caller."""
    membership = await store.get_membership(KitchenId(kitchen_id), caller_id)
    if membership is None:
        raise UnauthorizedError(
            "view invites for this kitchen",
            ErrorContext(kitchen_id=str(kitchen_id), user_id=str(caller_id)),
        )
    now = datetime.now(timezone.utc)
    issued_by = None if sees_all_credentials(membership) else caller_id
    credentials = await store.list_active_credentials(
        KitchenId(kitchen_id), now, issued_by=issued_by,
    )
    return [
        credential_summary(c, settings.public_origin, now) for c in credentials
    ]


@router.get(
    "/kitchens/{kitchen_id}/invites/mine",
    response_model=list[CredentialSummary],
)
async def list_my_invites(
    kitchen_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    store: SqlCredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
):
    """Everything the caller issued in this kitchen, newest first, any state.

    Owner-issued codes carry no issuer of record; owners see them in the
    full listing.
    """
    membership = await store.get_membership(KitchenId(kitchen_id), caller_id)
    if membership is None:
        raise UnauthorizedError(
            "view invites for this kitchen",
            ErrorContext(kitchen_id=str(kitchen_id), user_id=str(caller_id)),
        )
    now = datetime.now(timezone.utc)
    credentials = await store.list_credentials_by_issuer(KitchenId(kitchen_id), caller_id)
    return [
        credential_summary(c, settings.public_origin, now) for c in credentials
    ]


@router.delete("/invites/{credential_id}", response_model=RevokeResponse)
async def revoke_invite(
    credential_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    revocation: RevocationService = Depends(get_revocation_service),
):
    """Revoke a credential. Existing members keep their membership."""
    result = await revocation.revoke(CredentialId(credential_id), caller_id)
    if result.outcome is RevocationOutcome.NOT_FOUND:
        raise ResourceNotFoundError(
            "Invite", str(credential_id),
            ErrorContext(credential_id=str(credential_id)),
        )
    if result.outcome is RevocationOutcome.UNAUTHORIZED:
        raise UnauthorizedError(
            "revoke this invite",
            ErrorContext(credential_id=str(credential_id), user_id=str(caller_id)),
        )
    return RevokeResponse(id=credential_id, status=result.outcome.value)
