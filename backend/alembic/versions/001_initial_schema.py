"""Initial schema — kitchens, credentials, kitchen_members.

Revision ID: 001_initial
Revises: None
Create Date: 2026-10-18

"""
from typing import Sequence, Union

from alembic import op
import sqlalchemy as sa

revision: str = "001_initial"
down_revision: Union[str, None] = None
branch_labels: Union[str, Sequence[str], None] = None
depends_on: Union[str, Sequence[str], None] = None


def upgrade() -> None:
    op.create_table(
        "kitchens",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("name", sa.String(120), nullable=False),
        sa.Column("owner_id", sa.Uuid, nullable=False),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
    )

    op.create_table(
        "credentials",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("kind", sa.String(10), nullable=False),
        sa.Column("kitchen_id", sa.Uuid, sa.ForeignKey("kitchens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("issued_by", sa.Uuid, nullable=True),
        sa.Column("human_code", sa.String(16), nullable=True),
        sa.Column("token", sa.String(128), nullable=True, unique=True),
        sa.Column("short_code", sa.String(16), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.Column("expires_at", sa.DateTime(timezone=True), nullable=False),
        sa.Column("max_uses", sa.Integer, nullable=False),
        sa.Column("current_uses", sa.Integer, nullable=False, server_default="0"),
        sa.Column("revoked", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("revoked_at", sa.DateTime(timezone=True), nullable=True),
        sa.Column("revoked_by", sa.Uuid, nullable=True),
        sa.UniqueConstraint("kitchen_id", "human_code", name="uq_credentials_kitchen_human_code"),
        sa.CheckConstraint("current_uses >= 0", name="ck_credentials_uses_non_negative"),
        sa.CheckConstraint("current_uses <= max_uses", name="ck_credentials_uses_within_cap"),
        sa.CheckConstraint("max_uses >= 1", name="ck_credentials_max_uses_positive"),
        sa.CheckConstraint("kind IN ('code', 'link')", name="ck_credentials_kind"),
        sa.CheckConstraint(
            "(kind = 'code' AND human_code IS NOT NULL AND token IS NULL)"
            " OR (kind = 'link' AND token IS NOT NULL AND short_code IS NOT NULL"
            " AND human_code IS NULL)",
            name="ck_credentials_kind_shape",
        ),
    )
    op.create_index("ix_credentials_kitchen_id", "credentials", ["kitchen_id"])
    op.create_index("ix_credentials_human_code", "credentials", ["human_code"])
    op.create_index("ix_credentials_short_code", "credentials", ["short_code"])

    op.create_table(
        "kitchen_members",
        sa.Column("id", sa.Uuid, primary_key=True),
        sa.Column("kitchen_id", sa.Uuid, sa.ForeignKey("kitchens.id", ondelete="CASCADE"), nullable=False),
        sa.Column("user_id", sa.Uuid, nullable=False),
        sa.Column("role", sa.String(10), nullable=False, server_default="member"),
        sa.Column("can_invite", sa.Boolean, nullable=False, server_default=sa.false()),
        sa.Column("joined_via", sa.Uuid, sa.ForeignKey("credentials.id", ondelete="SET NULL"), nullable=True),
        sa.Column("created_at", sa.DateTime(timezone=True), nullable=False, server_default=sa.func.now()),
        sa.UniqueConstraint("kitchen_id", "user_id", name="uq_kitchen_members_kitchen_user"),
    )
    op.create_index("ix_kitchen_members_kitchen_id", "kitchen_members", ["kitchen_id"])
    op.create_index("ix_kitchen_members_user_id", "kitchen_members", ["user_id"])


def downgrade() -> None:
    op.drop_table("kitchen_members")
    op.drop_table("credentials")
    op.drop_table("kitchens")
