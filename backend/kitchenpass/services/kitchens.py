"""Kitchen Service — bootstraps kitchens and answers membership lookups.

Invariants:
    - create_kitchen writes the kitchen AND its owner membership in one commit
    - The owner membership has role=owner, can_invite=True, joined_via=None

Design Decisions:
    - Kept minimal: kitchen editing, stations and shifts belong to other services
"""

import logging

from sqlalchemy import select
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenpass.core.domain_types import KitchenId, MemberRole, UserId
from kitchenpass.infrastructure.database import map_store_error
from kitchenpass.models.kitchen import Kitchen
from kitchenpass.models.membership import Membership

logger = logging.getLogger(__name__)


class KitchenService:
    """Kitchen bootstrap and membership reads."""

    def __init__(self, db: AsyncSession):
        self.db = db

    async def create_kitchen(self, name: str, owner_id: UserId) -> tuple[Kitchen, Membership]:
        kitchen = Kitchen(name=name, owner_id=owner_id)
        try:
            self.db.add(kitchen)
            await self.db.flush()  # Get kitchen ID
            owner = Membership(
                kitchen_id=kitchen.id,
                user_id=owner_id,
                role=MemberRole.OWNER.value,
                can_invite=True,
            )
            self.db.add(owner)
            await self.db.commit()
        except SQLAlchemyError as e:
            await self.db.rollback()
            raise map_store_error(e, "create_kitchen") from e

        logger.info(
            "Kitchen created",
            extra={"kitchen_id": kitchen.id, "user_id": owner_id},
        )
        return kitchen, owner

    async def get_kitchen(self, kitchen_id: KitchenId) -> Kitchen | None:
        try:
            result = await self.db.execute(
                select(Kitchen).where(Kitchen.id == kitchen_id),
            )
        except SQLAlchemyError as e:
            raise map_store_error(e, "get_kitchen") from e
        return result.scalar_one_or_none()
