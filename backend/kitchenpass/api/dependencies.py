"""Request Dependencies — caller identity and per-request service construction.

Invariants:
    - Caller identity comes from the X-User-Id header (UUID), set by the upstream auth layer
    - Every service built here shares the request's single AsyncSession
      (FastAPI caches get_db per request)

Design Decisions:
    - Factories over module singletons: services hold a session, sessions are per request
"""

from uuid import UUID

from fastapi import Depends, Header
from sqlalchemy.ext.asyncio import AsyncSession

from kitchenpass.config import Settings, get_settings
from kitchenpass.core.domain_types import UserId
from kitchenpass.core.errors import UnauthenticatedError
from kitchenpass.infrastructure.database import get_db
from kitchenpass.services.credential_store import SqlCredentialStore
from kitchenpass.services.issuance import IssuanceService
from kitchenpass.services.kitchens import KitchenService
from kitchenpass.services.redemption import RedemptionCoordinator
from kitchenpass.services.revocation import RevocationService


async def get_caller_id(
    x_user_id: str | None = Header(None, alias="X-User-Id"),
) -> UserId:
    if not x_user_id:
        raise UnauthenticatedError("X-User-Id header is required")
    try:
        return UserId(UUID(x_user_id))
    except ValueError:
        raise UnauthenticatedError("X-User-Id must be a UUID") from None


def get_store(db: AsyncSession = Depends(get_db)) -> SqlCredentialStore:
    return SqlCredentialStore(db)


def get_issuance_service(
    store: SqlCredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> IssuanceService:
    return IssuanceService(
        store,
        code_length=settings.code_length,
        max_attempts=settings.code_max_attempts,
    )


def get_redemption_coordinator(
    store: SqlCredentialStore = Depends(get_store),
    settings: Settings = Depends(get_settings),
) -> RedemptionCoordinator:
    return RedemptionCoordinator(
        store,
        conflict_retries=settings.redeem_conflict_retries,
        retry_base_delay_ms=settings.redeem_retry_base_delay_ms,
    )


def get_revocation_service(
    store: SqlCredentialStore = Depends(get_store),
) -> RevocationService:
    return RevocationService(store)


def get_kitchen_service(db: AsyncSession = Depends(get_db)) -> KitchenService:
    return KitchenService(db)
