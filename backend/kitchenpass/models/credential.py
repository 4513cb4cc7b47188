"""Credential ORM — one table for both invite shapes (human code and link token).

Invariants:
    - kind is 'code' or 'link' (CredentialKind), enforced by CHECK
    - code rows carry human_code and no token; link rows carry token and
      short_code and no human_code (ck_credentials_kind_shape)
    - human_code is uppercase and unique per kitchen; token is globally unique;
      short_code is derived and display-only
    - 0 <= current_uses <= max_uses, enforced by CHECK constraints as a backstop
      to the guarded increment
    - Rows are never deleted by the credential subsystem; revocation flips `revoked`

Design Decisions:
    - Single table with a kind tag: validation and redemption are written once
    - NULL human_code / token on the other kind: UNIQUE constraints ignore NULLs
    - Uuid (generic) over the postgresql-only UUID type: the same models run
      on PostgreSQL in production and SQLite in tests
"""

import uuid
from datetime import datetime, timezone

from sqlalchemy import (
    Boolean, CheckConstraint, DateTime, ForeignKey, Index, Integer, String,
    UniqueConstraint, Uuid,
)
from sqlalchemy.orm import Mapped, mapped_column

from kitchenpass.db.base import Base

# Each kind carries exactly its own lookup columns
_KIND_SHAPE = (
    "(kind = 'code' AND human_code IS NOT NULL AND token IS NULL)"
    " OR (kind = 'link' AND token IS NOT NULL AND short_code IS NOT NULL"
    " AND human_code IS NULL)"
)


class Credential(Base):
    """Issued invite credential — grants the capability to join a kitchen."""
    __tablename__ = "credentials"
    __table_args__ = (
        UniqueConstraint(
            "kitchen_id", "human_code", name="uq_credentials_kitchen_human_code",
        ),
        CheckConstraint("current_uses >= 0", name="ck_credentials_uses_non_negative"),
        CheckConstraint("current_uses <= max_uses", name="ck_credentials_uses_within_cap"),
        CheckConstraint("max_uses >= 1", name="ck_credentials_max_uses_positive"),
        CheckConstraint("kind IN ('code', 'link')", name="ck_credentials_kind"),
        CheckConstraint(_KIND_SHAPE, name="ck_credentials_kind_shape"),
        Index("ix_credentials_human_code", "human_code"),
        Index("ix_credentials_short_code", "short_code"),
    )

    id: Mapped[uuid.UUID] = mapped_column(
        Uuid, primary_key=True, default=uuid.uuid4,
    )
    kind: Mapped[str] = mapped_column(String(10), nullable=False)
    kitchen_id: Mapped[uuid.UUID] = mapped_column(
        Uuid, ForeignKey("kitchens.id", ondelete="CASCADE"),
        nullable=False, index=True,
    )
    # NULL = issued by the kitchen owner under default policy
    issued_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    human_code: Mapped[str | None] = mapped_column(String(16), nullable=True)
    token: Mapped[str | None] = mapped_column(
        String(128), nullable=True, unique=True,
    )
    short_code: Mapped[str | None] = mapped_column(String(16), nullable=True)

    created_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True),
        nullable=False,
        default=lambda: datetime.now(timezone.utc),
    )
    expires_at: Mapped[datetime] = mapped_column(
        DateTime(timezone=True), nullable=False,
    )
    max_uses: Mapped[int] = mapped_column(Integer, nullable=False)
    current_uses: Mapped[int] = mapped_column(
        Integer, nullable=False, default=0,
    )

    revoked: Mapped[bool] = mapped_column(
        Boolean, nullable=False, default=False,
    )
    revoked_at: Mapped[datetime | None] = mapped_column(
        DateTime(timezone=True), nullable=True,
    )
    revoked_by: Mapped[uuid.UUID | None] = mapped_column(Uuid, nullable=True)

    def __repr__(self):
        return (
            f"<Credential(id={self.id}, kind={self.kind}, "
            f"uses={self.current_uses}/{self.max_uses}, revoked={self.revoked})>"
        )
