"""Kitchen ORM — the access-scoped workspace a credential grants entry to.

Invariants:
    - id is UUID primary key (client-side default)
    - owner_id is the user who bootstrapped the kitchen; the owner also holds
      a Membership row with role=owner

Design Decisions:
    - Deliberately minimal: stations, shifts and billing belong to other services;
      this table exists so credentials and memberships have a scope and a name
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import String, DateTime, Uuid
from sqlalchemy.orm import Mapped, mapped_column

from kitchenpass.db.base import Base


class Kitchen(Base):
    """Kitchen workspace — scope for credentials and memberships."""
    __tablename__ = "kitchens"

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    name: Mapped[str] = mapped_column(String(120), nullable=False)
    owner_id: Mapped[uuid.UUID] = mapped_column(Uuid, nullable=False)
    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
