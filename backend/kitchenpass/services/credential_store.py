"""Credential Store — SQLAlchemy implementation of the CredentialStore protocol.

Invariants:
    - The use count is only ever changed by ONE guarded UPDATE:
      SET current_uses = current_uses + 1
      WHERE id = ? AND NOT revoked AND expires_at > now AND current_uses < max_uses
      never by reading the count and writing back a computed value
    - The guarded increment and the membership insert share one transaction;
      if the insert does not happen, the increment is rolled back
    - Membership insert is ON CONFLICT (kitchen_id, user_id) DO NOTHING:
      a concurrent redemption by the same user cannot create a duplicate
    - Reads on the redemption path use populate_existing so the identity map
      never hands back a stale use count
    - Every SQLAlchemy exception leaves as StoreConflictError or StoreFailureError

Design Decisions:
    - One store per AsyncSession (per request / per unit of work): sessions are
      never shared between concurrent redemptions
    - Dialect-specific INSERT (postgresql / sqlite) for ON CONFLICT: both expose
      on_conflict_do_nothing with the same signature
"""

import logging
from contextlib import asynccontextmanager
from datetime import datetime
from typing import AsyncIterator, Sequence

from sqlalchemy import select, update
from sqlalchemy.exc import SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenpass.core.domain_types import (
    CredentialId, CredentialKind, KitchenId, MemberRole, UserId,
)
from kitchenpass.core.errors import StoreFailureError
from kitchenpass.core.outcomes import JoinAttempt
from kitchenpass.infrastructure.database import map_store_error
from kitchenpass.models.credential import Credential
from kitchenpass.models.membership import Membership

logger = logging.getLogger(__name__)


class SqlCredentialStore:
    """Persistent credentials and memberships on a single AsyncSession."""

    def __init__(self, db: AsyncSession):
        self.db = db

    @asynccontextmanager
    async def _translate_errors(self, operation: str) -> AsyncIterator[None]:
        """Roll back and map driver errors to the store taxonomy."""
        try:
            yield
        except SQLAlchemyError as e:
            await self.db.rollback()
            error = map_store_error(e, operation)
            logger.warning(
                f"Store {operation} failed: {e}",
                extra={"error_code": error.code},
            )
            raise error from e

    # ─── Writes ──────────────────────────────────────────────────

    async def insert_credential(
        self,
        kind: CredentialKind,
        kitchen_id: KitchenId,
        issued_by: UserId | None,
        expires_at: datetime,
        max_uses: int,
        human_code: str | None = None,
        token: str | None = None,
        short_code: str | None = None,
    ) -> Credential:
        """Insert a fresh credential (current_uses=0, not revoked) and commit."""
        credential = Credential(
            kind=kind.value,
            kitchen_id=kitchen_id,
            issued_by=issued_by,
            human_code=human_code,
            token=token,
            short_code=short_code,
            expires_at=expires_at,
            max_uses=max_uses,
            current_uses=0,
            revoked=False,
        )
        async with self._translate_errors("insert_credential"):
            self.db.add(credential)
            await self.db.commit()
            await self.db.refresh(credential)
        return credential

    async def consume_use_and_join(
        self,
        credential_id: CredentialId,
        kitchen_id: KitchenId,
        user_id: UserId,
        role: MemberRole,
        can_invite: bool,
        now: datetime,
    ) -> JoinAttempt:
        """Atomically consume one use and create the membership."""
        async with self._translate_errors("consume_use_and_join"):
            consumed = await self.db.execute(
                update(Credential)
                .where(
                    Credential.id == credential_id,
                    Credential.revoked.is_(False),
                    Credential.expires_at > now,
                    Credential.current_uses < Credential.max_uses,
                )
                .values(current_uses=Credential.current_uses + 1)
                .execution_options(synchronize_session=False)
            )
            if consumed.rowcount != 1:
                await self.db.rollback()
                return JoinAttempt(consumed=False)

            inserted = await self.db.execute(
                self._membership_insert()
                .values(
                    kitchen_id=kitchen_id,
                    user_id=user_id,
                    role=role.value,
                    can_invite=can_invite,
                    joined_via=credential_id,
                )
                .on_conflict_do_nothing(index_elements=["kitchen_id", "user_id"])
            )
            if inserted.rowcount != 1:
                # Same user joined concurrently; give the use back
                await self.db.rollback()
                existing = await self.get_membership(kitchen_id, user_id)
                return JoinAttempt(consumed=False, membership=existing)

            await self.db.commit()

        membership = await self.get_membership(kitchen_id, user_id)
        return JoinAttempt(consumed=True, membership=membership)

    async def mark_revoked(
        self, credential_id: CredentialId, actor_id: UserId, now: datetime,
    ) -> bool:
        """Flip revoked. Returns False when the credential was already revoked."""
        async with self._translate_errors("mark_revoked"):
            result = await self.db.execute(
                update(Credential)
                .where(
                    Credential.id == credential_id,
                    Credential.revoked.is_(False),
                )
                .values(revoked=True, revoked_at=now, revoked_by=actor_id)
                .execution_options(synchronize_session=False)
            )
            await self.db.commit()
        return result.rowcount == 1

    def _membership_insert(self):
        dialect = self.db.get_bind().dialect.name
        if dialect == "postgresql":
            from sqlalchemy.dialects.postgresql import insert
        elif dialect == "sqlite":
            from sqlalchemy.dialects.sqlite import insert
        else:
            raise StoreFailureError(
                f"dialect '{dialect}' has no ON CONFLICT support", "consume_use_and_join",
            )
        return insert(Membership)

    # ─── Reads ───────────────────────────────────────────────────

    async def _one(self, statement, operation: str):
        async with self._translate_errors(operation):
            result = await self.db.execute(
                statement.execution_options(populate_existing=True),
            )
            return result.scalar_one_or_none()

    async def _many(self, statement, operation: str) -> list:
        async with self._translate_errors(operation):
            result = await self.db.execute(
                statement.execution_options(populate_existing=True),
            )
            return list(result.scalars().all())

    async def get_credential(self, credential_id: CredentialId) -> Credential | None:
        return await self._one(
            select(Credential).where(Credential.id == credential_id),
            "get_credential",
        )

    async def get_by_token(self, token: str) -> Credential | None:
        return await self._one(
            select(Credential).where(
                Credential.kind == CredentialKind.LINK.value,
                Credential.token == token,
            ),
            "get_by_token",
        )

    async def get_by_human_code(
        self, kitchen_id: KitchenId, human_code: str,
    ) -> Credential | None:
        return await self._one(
            select(Credential).where(
                Credential.kind == CredentialKind.CODE.value,
                Credential.kitchen_id == kitchen_id,
                Credential.human_code == human_code,
            ),
            "get_by_human_code",
        )

    async def human_code_exists(self, kitchen_id: KitchenId, human_code: str) -> bool:
        return await self.get_by_human_code(kitchen_id, human_code) is not None

    async def find_codes_anywhere(self, human_code: str) -> Sequence[Credential]:
        """All code credentials with this code, across kitchens."""
        return await self._many(
            select(Credential)
            .where(
                Credential.kind == CredentialKind.CODE.value,
                Credential.human_code == human_code,
            )
            .order_by(Credential.created_at.desc()),
            "find_codes_anywhere",
        )

    async def find_links_by_short_code(self, short_code: str) -> Sequence[Credential]:
        """Unrevoked links whose derived short code matches, newest first."""
        return await self._many(
            select(Credential)
            .where(
                Credential.kind == CredentialKind.LINK.value,
                Credential.short_code == short_code,
                Credential.revoked.is_(False),
            )
            .order_by(Credential.created_at.desc())
            .limit(10),
            "find_links_by_short_code",
        )

    async def list_active_credentials(
        self,
        kitchen_id: KitchenId,
        now: datetime,
        issued_by: UserId | None = None,
    ) -> Sequence[Credential]:
        """Unrevoked, unexpired credentials of a kitchen, newest first."""
        query = select(Credential).where(
            Credential.kitchen_id == kitchen_id,
            Credential.revoked.is_(False),
            Credential.expires_at > now,
        )
        if issued_by is not None:
            query = query.where(Credential.issued_by == issued_by)
        return await self._many(
            query.order_by(Credential.created_at.desc()),
            "list_active_credentials",
        )

    async def list_credentials_by_issuer(
        self, kitchen_id: KitchenId, issuer_id: UserId,
    ) -> Sequence[Credential]:
        """Every credential an issuer created in a kitchen, any state."""
        return await self._many(
            select(Credential)
            .where(
                Credential.kitchen_id == kitchen_id,
                Credential.issued_by == issuer_id,
            )
            .order_by(Credential.created_at.desc()),
            "list_credentials_by_issuer",
        )

    async def get_membership(
        self, kitchen_id: KitchenId, user_id: UserId,
    ) -> Membership | None:
        return await self._one(
            select(Membership).where(
                Membership.kitchen_id == kitchen_id,
                Membership.user_id == user_id,
            ),
            "get_membership",
        )
