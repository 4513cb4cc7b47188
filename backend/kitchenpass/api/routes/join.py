"""Join Routes — preview and redeem codes and links, resolve typed short codes.

Invariants:
    - Codes and links share one redemption path (RedemptionCoordinator.redeem)
    - Success is 200 {outcome, membership}; joined and already_member alike
    - Expected failures are 4xx {error: {code, message}}; store failures go
      through the global KitchenPassError handler
    - Previews never mutate and may be stale; a code shared by several
      kitchens previews as 409 AMBIGUOUS_CODE until kitchen_id is given

Design Decisions:
    - Preview is open to anonymous callers: join screens render before sign-in
"""

import logging
from datetime import datetime, timezone
from uuid import UUID

from fastapi import APIRouter, Depends, Query

from kitchenpass.api.dependencies import (
    get_caller_id, get_kitchen_service, get_redemption_coordinator,
)
from kitchenpass.api.routes.invite_helpers import membership_response, refusal_response
from kitchenpass.config import Settings, get_settings
from kitchenpass.core.credential_codes import build_join_url
from kitchenpass.core.domain_types import CredentialStatus, KitchenId, RedemptionOutcome, UserId
from kitchenpass.core.outcomes import RedemptionResult
from kitchenpass.core.validation import format_time_remaining, remaining_uses
from kitchenpass.schemas.invites import (
    CodeRedeemRequest, InvitePreviewResponse, RedeemResponse,
    ShortCodeResolveRequest, ShortCodeResolveResponse,
)
from kitchenpass.services.kitchens import KitchenService
from kitchenpass.services.redemption import (
    CodeRef, InvitePreview, LinkRef, RedemptionCoordinator,
)

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/join", tags=["join"])


def _redeem_response(result: RedemptionResult):
    if not result.succeeded:
        return refusal_response(result.outcome)
    return RedeemResponse(
        outcome=result.outcome.value,
        membership=membership_response(result.membership),
    )


async def _preview_response(preview: InvitePreview, kitchens: KitchenService):
    if preview.ambiguous:
        return refusal_response(RedemptionOutcome.AMBIGUOUS_CODE)
    credential = preview.credential
    if credential is None or preview.status is CredentialStatus.NOT_FOUND:
        return refusal_response(RedemptionOutcome.NOT_FOUND)
    kitchen = await kitchens.get_kitchen(KitchenId(credential.kitchen_id))
    return InvitePreviewResponse(
        kitchen_id=credential.kitchen_id,
        kitchen_name=kitchen.name if kitchen else None,
        kind=credential.kind,
        status=preview.status.value,
        expires_at=credential.expires_at,
        time_remaining=format_time_remaining(credential.expires_at, datetime.now(timezone.utc)),
        remaining_uses=remaining_uses(credential),
    )


@router.get("/links/{token}", response_model=InvitePreviewResponse)
async def preview_link(
    token: str,
    coordinator: RedemptionCoordinator = Depends(get_redemption_coordinator),
    kitchens: KitchenService = Depends(get_kitchen_service),
):
    """Show what a join link leads to before redeeming it."""
    return await _preview_response(await coordinator.preview(LinkRef(token)), kitchens)


@router.get("/codes/{human_code}", response_model=InvitePreviewResponse)
async def preview_code(
    human_code: str,
    kitchen_id: UUID | None = Query(None),
    coordinator: RedemptionCoordinator = Depends(get_redemption_coordinator),
    kitchens: KitchenService = Depends(get_kitchen_service),
):
    """Show which kitchen a typed code belongs to, and whether it still works."""
    ref = CodeRef(human_code, KitchenId(kitchen_id) if kitchen_id else None)
    return await _preview_response(await coordinator.preview(ref), kitchens)


@router.post("/links/{token}", response_model=RedeemResponse)
async def redeem_link(
    token: str,
    caller_id: UserId = Depends(get_caller_id),
    coordinator: RedemptionCoordinator = Depends(get_redemption_coordinator),
):
    """Join the kitchen behind a link token."""
    result = await coordinator.redeem(LinkRef(token), caller_id)
    return _redeem_response(result)


@router.post("/codes", response_model=RedeemResponse)
async def redeem_code(
    body: CodeRedeemRequest,
    caller_id: UserId = Depends(get_caller_id),
    coordinator: RedemptionCoordinator = Depends(get_redemption_coordinator),
):
    """Join a kitchen with a typed code; kitchen_id disambiguates shared codes."""
    kitchen_id = KitchenId(body.kitchen_id) if body.kitchen_id else None
    result = await coordinator.redeem(CodeRef(body.human_code, kitchen_id), caller_id)
    return _redeem_response(result)


@router.post("/short-codes/resolve", response_model=ShortCodeResolveResponse)
async def resolve_short_code(
    body: ShortCodeResolveRequest,
    coordinator: RedemptionCoordinator = Depends(get_redemption_coordinator),
    settings: Settings = Depends(get_settings),
):
    """Turn a short code read off a screen into the link token it belongs to."""
    link = await coordinator.resolve_short_code(body.short_code)
    if link is None:
        return refusal_response(RedemptionOutcome.NOT_FOUND)
    return ShortCodeResolveResponse(
        token=link.token,
        join_url=build_join_url(settings.public_origin, link.token),
        expires_at=link.expires_at,
    )
