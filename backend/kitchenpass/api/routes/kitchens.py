"""Kitchen Routes — kitchen bootstrap and the caller's membership.

Invariants:
    - The caller of POST /kitchens becomes its owner (role=owner, can_invite=True)
    - Membership lookup only ever reveals the caller's own membership
"""

import logging
from uuid import UUID

from fastapi import APIRouter, Depends, status

from kitchenpass.api.dependencies import get_caller_id, get_kitchen_service, get_store
from kitchenpass.api.routes.invite_helpers import membership_response
from kitchenpass.core.domain_types import KitchenId, UserId
from kitchenpass.core.errors import ErrorContext, ResourceNotFoundError
from kitchenpass.schemas.invites import MembershipResponse
from kitchenpass.schemas.kitchens import KitchenCreate, KitchenResponse
from kitchenpass.services.credential_store import SqlCredentialStore
from kitchenpass.services.kitchens import KitchenService

logger = logging.getLogger(__name__)
router = APIRouter(prefix="/api/v1/kitchens", tags=["kitchens"])


@router.post(
    "", response_model=KitchenResponse,
    status_code=status.HTTP_201_CREATED,
)
async def create_kitchen(
    body: KitchenCreate,
    caller_id: UserId = Depends(get_caller_id),
    kitchens: KitchenService = Depends(get_kitchen_service),
):
    """Create a kitchen owned by the caller."""
    kitchen, owner = await kitchens.create_kitchen(body.name, caller_id)
    return KitchenResponse(
        id=kitchen.id,
        name=kitchen.name,
        owner_id=kitchen.owner_id,
        created_at=kitchen.created_at,
        membership=membership_response(owner),
    )


@router.get("/{kitchen_id}/membership", response_model=MembershipResponse)
async def get_my_membership(
    kitchen_id: UUID,
    caller_id: UserId = Depends(get_caller_id),
    store: SqlCredentialStore = Depends(get_store),
):
    """The caller's role and invite capability in a kitchen."""
    membership = await store.get_membership(KitchenId(kitchen_id), caller_id)
    if membership is None:
        raise ResourceNotFoundError(
            "Membership", str(kitchen_id),
            ErrorContext(kitchen_id=str(kitchen_id), user_message="You are not a member of this kitchen."),
        )
    return membership_response(membership)
