"""Membership ORM — associates a user with a kitchen and a role.

Invariants:
    - Exactly one row per (kitchen_id, user_id) — UNIQUE constraint
    - role is owner | admin | member (MemberRole)
    - can_invite gates whether a plain member may issue credentials
    - joined_via records the credential consumed to create the row (NULL for owners)

Design Decisions:
    - user_id has no FK: users live in the external authentication service
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, DateTime, ForeignKey, String, UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from kitchenpass.db.base import Base


class Membership(Base):
    """Kitchen membership — one per user per kitchen."""
    __tablename__ = "kitchen_members"
    __table_args__ = (
        UniqueConstraint(
            "kitchen_id", "user_id", name="uq_kitchen_members_kitchen_user",
        ),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    kitchen_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("kitchens.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    user_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False, index=True)
    role: Mapped[str] = mapped_column(
        String(10), nullable=False, default="member",
    )
    can_invite: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    joined_via: Mapped[uuid.UUID | None] = mapped_column(
        Uuid, ForeignKey("credentials.id", ondelete="SET NULL"), nullable=True,
    )
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )

    def __repr__(self):
        return (
            f"<Membership(kitchen={self.kitchen_id}, user={self.user_id}, "
            f"role={self.role})>"
        )
