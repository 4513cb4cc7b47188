"""Invite Route Helpers — response builders shared by the invite, join and kitchen routes.

Invariants:
    - Expected redemption failures become {"error": {code, message}} with a 4xx status
    - Responses are built explicitly from rows; ORM objects never reach the client

Design Decisions:
    - Extracted from the route modules so join.py and invites.py stay thin
"""

from datetime import datetime

from fastapi import status
from fastapi.responses import JSONResponse

from kitchenpass.core.credential_codes import build_join_url
from kitchenpass.core.domain_types import CredentialKind, RedemptionOutcome
from kitchenpass.core.outcomes import OUTCOME_MESSAGES
from kitchenpass.core.repository_protocols import CredentialLike, MembershipLike
from kitchenpass.core.validation import format_time_remaining, remaining_uses
from kitchenpass.schemas.invites import (
    CredentialSummary, IssuedCodeResponse, IssuedLinkResponse, MembershipResponse,
)

REFUSAL_STATUS: dict[RedemptionOutcome, int] = {
    RedemptionOutcome.NOT_FOUND: status.HTTP_404_NOT_FOUND,
    RedemptionOutcome.EXPIRED: status.HTTP_410_GONE,
    RedemptionOutcome.REVOKED: status.HTTP_410_GONE,
    RedemptionOutcome.USE_LIMIT_REACHED: status.HTTP_409_CONFLICT,
    RedemptionOutcome.AMBIGUOUS_CODE: status.HTTP_409_CONFLICT,
}


def refusal_response(outcome: RedemptionOutcome) -> JSONResponse:
    """4xx body for an expected redemption failure."""
    return JSONResponse(
        status_code=REFUSAL_STATUS[outcome],
        content={
            "error": {
                "code": outcome.name,
                "message": OUTCOME_MESSAGES[outcome],
            },
        },
    )


def membership_response(membership: MembershipLike) -> MembershipResponse:
    return MembershipResponse(
        kitchen_id=membership.kitchen_id,
        user_id=membership.user_id,
        role=membership.role,
        can_invite=membership.can_invite,
        created_at=membership.created_at,
    )


def issued_response(
    credential: CredentialLike, public_origin: str,
) -> IssuedCodeResponse | IssuedLinkResponse:
    if credential.kind == CredentialKind.CODE.value:
        return IssuedCodeResponse(
            id=credential.id,
            human_code=credential.human_code,
            expires_at=credential.expires_at,
            max_uses=credential.max_uses,
        )
    return IssuedLinkResponse(
        id=credential.id,
        token=credential.token,
        short_code=credential.short_code,
        join_url=build_join_url(public_origin, credential.token),
        expires_at=credential.expires_at,
        max_uses=credential.max_uses,
    )


def credential_summary(
    credential: CredentialLike, public_origin: str, now: datetime,
) -> CredentialSummary:
    join_url = None
    if credential.kind == CredentialKind.LINK.value:
        join_url = build_join_url(public_origin, credential.token)
    return CredentialSummary(
        id=credential.id,
        kind=credential.kind,
        human_code=credential.human_code,
        short_code=credential.short_code,
        join_url=join_url,
        issued_by=credential.issued_by,
        created_at=credential.created_at,
        expires_at=credential.expires_at,
        max_uses=credential.max_uses,
        current_uses=credential.current_uses,
        remaining_uses=remaining_uses(credential),
        time_remaining=format_time_remaining(credential.expires_at, now),
        revoked=credential.revoked,
    )
