"""Redemption Coordinator — verifies the redemption algorithm end to end against SQLite.

Invariants:
    - current_uses never exceeds max_uses, even with concurrent redeemers
    - Re-redeeming as an existing member is ALREADY_MEMBER and consumes nothing
    - Expiry and revocation are reported ahead of the use limit
    - Codes shared by several kitchens are refused as AMBIGUOUS_CODE unless
      kitchen_id is given
    - Transient store conflicts are retried; hard failures propagate at once

Design Decisions:
    - Seeds go through test_db, the coordinator runs on its own session (store fixture)
    - The concurrency test uses a file-backed database with one session per
      redeemer so the database, not the test, serializes the writers
"""

import asyncio
from datetime import datetime, timedelta, timezone
from uuid import uuid4

import pytest
from sqlalchemy import func, select

from kitchenpass.core.domain_types import (
    CredentialKind, CredentialStatus, MemberRole, RedemptionOutcome,
)
from kitchenpass.core.errors import StoreConflictError, StoreFailureError
from kitchenpass.models.membership import Membership
from kitchenpass.services.credential_store import SqlCredentialStore
from kitchenpass.services.issuance import IssuanceService
from kitchenpass.services.redemption import CodeRef, LinkRef, RedemptionCoordinator
from kitchenpass.services.revocation import RevocationService
from tests.services.seed_data import seed_credential, seed_kitchen, seed_member

T0 = datetime.now(timezone.utc)


# ─── Scenarios ───────────────────────────────────────────────────

async def test_code_scenario_two_uses_then_limit(store, kitchen, owner_id):
    """Code {30 min, 2 uses} issued at T0, redeemed at T0+10m by three users."""
    credential = await IssuanceService(store).issue(
        CredentialKind.CODE, kitchen.id, owner_id,
        timedelta(minutes=30), 2, now=T0,
    )
    code, credential_id = credential.human_code, credential.id
    coordinator = RedemptionCoordinator(store)
    at = T0 + timedelta(minutes=10)
    ref = CodeRef(code, kitchen.id)

    first = await coordinator.redeem(ref, uuid4(), now=at)
    assert first.outcome is RedemptionOutcome.JOINED
    assert (await store.get_credential(credential_id)).current_uses == 1

    second = await coordinator.redeem(ref, uuid4(), now=at)
    assert second.outcome is RedemptionOutcome.JOINED
    assert (await store.get_credential(credential_id)).current_uses == 2

    third = await coordinator.redeem(ref, uuid4(), now=at)
    assert third.outcome is RedemptionOutcome.USE_LIMIT_REACHED
    assert third.membership is None
    assert (await store.get_credential(credential_id)).current_uses == 2


async def test_link_scenario_single_use_then_revoked(store, kitchen, owner_id):
    """Link {24 h, 1 use}: A joins, B is refused, revoke, A again is ALREADY_MEMBER."""
    credential = await IssuanceService(store).issue(
        CredentialKind.LINK, kitchen.id, owner_id, timedelta(minutes=1440), 1,
    )
    token, credential_id = credential.token, credential.id
    coordinator = RedemptionCoordinator(store)
    user_a, user_b = uuid4(), uuid4()

    assert (await coordinator.redeem(LinkRef(token), user_a)).outcome is RedemptionOutcome.JOINED
    assert (await coordinator.redeem(LinkRef(token), user_b)).outcome is RedemptionOutcome.USE_LIMIT_REACHED

    revoked = await RevocationService(store).revoke(credential_id, owner_id)
    assert revoked.ok

    again = await coordinator.redeem(LinkRef(token), user_a)
    assert again.outcome is RedemptionOutcome.ALREADY_MEMBER
    assert again.membership.user_id == user_a
    assert (await store.get_credential(credential_id)).current_uses == 1


# ─── Precedence & failures ───────────────────────────────────────

async def test_expired_rejected_even_with_uses_left(store, test_db, kitchen):
    credential = await seed_credential(
        test_db, kitchen.id, expires_at=T0 - timedelta(minutes=1), current_uses=0,
    )
    result = await RedemptionCoordinator(store).redeem(
        CodeRef(credential.human_code, kitchen.id), uuid4(), now=T0,
    )
    assert result.outcome is RedemptionOutcome.EXPIRED
    assert (await store.get_credential(credential.id)).current_uses == 0


async def test_revoked_rejected_even_when_unexpired(store, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id, revoked=True)
    result = await RedemptionCoordinator(store).redeem(
        CodeRef(credential.human_code, kitchen.id), uuid4(),
    )
    assert result.outcome is RedemptionOutcome.REVOKED
    assert (await store.get_credential(credential.id)).current_uses == 0


async def test_unknown_credentials_not_found(store, kitchen):
    coordinator = RedemptionCoordinator(store)
    assert (await coordinator.redeem(LinkRef("no-such-token"), uuid4())).outcome is RedemptionOutcome.NOT_FOUND
    assert (await coordinator.redeem(CodeRef("ZZZZZZ"), uuid4())).outcome is RedemptionOutcome.NOT_FOUND
    assert (await coordinator.redeem(CodeRef("ZZZZZZ", kitchen.id), uuid4())).outcome is RedemptionOutcome.NOT_FOUND


async def test_code_input_is_normalized(store, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id, human_code="ABC234")
    result = await RedemptionCoordinator(store).redeem(
        CodeRef("abc-234", kitchen.id), uuid4(),
    )
    assert result.outcome is RedemptionOutcome.JOINED
    assert result.credential.id == credential.id


# ─── Idempotence & membership ────────────────────────────────────

async def test_second_redemption_by_same_user_is_free(store, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id, max_uses=5)
    coordinator = RedemptionCoordinator(store)
    user = uuid4()
    ref = CodeRef(credential.human_code, kitchen.id)

    assert (await coordinator.redeem(ref, user)).outcome is RedemptionOutcome.JOINED
    second = await coordinator.redeem(ref, user)
    assert second.outcome is RedemptionOutcome.ALREADY_MEMBER
    assert (await store.get_credential(credential.id)).current_uses == 1


async def test_existing_member_short_circuits_exhausted_code(store, test_db, kitchen):
    """A member retrying with a used-up code still gets success."""
    member = await seed_member(test_db, kitchen.id)
    credential = await seed_credential(test_db, kitchen.id, current_uses=2, max_uses=2)
    result = await RedemptionCoordinator(store).redeem(
        CodeRef(credential.human_code, kitchen.id), member.user_id,
    )
    assert result.outcome is RedemptionOutcome.ALREADY_MEMBER


async def test_joined_membership_fields(store, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id)
    user = uuid4()
    result = await RedemptionCoordinator(store).redeem(
        CodeRef(credential.human_code, kitchen.id), user,
    )
    membership = result.membership
    assert membership.user_id == user
    assert membership.kitchen_id == kitchen.id
    assert membership.role == MemberRole.MEMBER.value
    assert membership.can_invite is False
    assert membership.joined_via == credential.id


async def test_admin_role_grants_invite_capability(store, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id)
    result = await RedemptionCoordinator(store).redeem(
        CodeRef(credential.human_code, kitchen.id), uuid4(), role=MemberRole.ADMIN,
    )
    assert result.membership.role == "admin"
    assert result.membership.can_invite is True


# ─── Code resolution across kitchens ─────────────────────────────

async def test_shared_live_code_is_ambiguous(store, test_db, kitchen):
    other = await seed_kitchen(test_db, uuid4(), name="Other")
    await seed_credential(test_db, kitchen.id, human_code="SHARED")
    await seed_credential(test_db, other.id, human_code="SHARED")
    coordinator = RedemptionCoordinator(store)

    result = await coordinator.redeem(CodeRef("SHARED"), uuid4())
    assert result.outcome is RedemptionOutcome.AMBIGUOUS_CODE

    pinned = await coordinator.redeem(CodeRef("SHARED", other.id), uuid4())
    assert pinned.outcome is RedemptionOutcome.JOINED
    assert pinned.membership.kitchen_id == other.id


async def test_only_valid_candidate_wins(store, test_db, kitchen):
    other = await seed_kitchen(test_db, uuid4(), name="Other")
    await seed_credential(
        test_db, kitchen.id, human_code="PICKME", expires_at=T0 - timedelta(hours=1),
    )
    await seed_credential(test_db, other.id, human_code="PICKME")

    result = await RedemptionCoordinator(store).redeem(CodeRef("PICKME"), uuid4())
    assert result.outcome is RedemptionOutcome.JOINED
    assert result.membership.kitchen_id == other.id


async def test_no_valid_candidate_reports_newest_reason(store, test_db, kitchen):
    other = await seed_kitchen(test_db, uuid4(), name="Other")
    await seed_credential(
        test_db, kitchen.id, human_code="DEADXX", expires_at=T0 - timedelta(hours=1),
    )
    await seed_credential(test_db, other.id, human_code="DEADXX", revoked=True)

    result = await RedemptionCoordinator(store).redeem(CodeRef("DEADXX"), uuid4())
    assert result.outcome is RedemptionOutcome.REVOKED


# ─── Preview & short codes ───────────────────────────────────────

async def test_preview_reports_status_without_consuming(store, test_db, kitchen):
    link = await seed_credential(test_db, kitchen.id, kind=CredentialKind.LINK, max_uses=1)
    coordinator = RedemptionCoordinator(store)

    found = await coordinator.preview(LinkRef(link.token))
    assert found.status is CredentialStatus.VALID
    assert found.credential.current_uses == 0

    missing = await coordinator.preview(LinkRef("nope"))
    assert missing.credential is None
    assert missing.status is CredentialStatus.NOT_FOUND


async def test_preview_code_flags_ambiguity(store, test_db, kitchen):
    other = await seed_kitchen(test_db, uuid4(), name="Other")
    await seed_credential(test_db, kitchen.id, human_code="BOTH22")
    await seed_credential(test_db, other.id, human_code="BOTH22")
    coordinator = RedemptionCoordinator(store)

    shared = await coordinator.preview(CodeRef("both-22"))
    assert shared.ambiguous
    assert shared.credential is None

    scoped = await coordinator.preview(CodeRef("BOTH22", kitchen.id))
    assert not scoped.ambiguous
    assert scoped.credential.kitchen_id == kitchen.id


async def test_resolve_short_code_finds_valid_link(store, test_db, kitchen):
    link = await seed_credential(
        test_db, kitchen.id, kind=CredentialKind.LINK, short_code="QWE123",
    )
    found = await RedemptionCoordinator(store).resolve_short_code("qwe-123")
    assert found is not None
    assert found.token == link.token


async def test_resolve_short_code_skips_unusable_links(store, test_db, kitchen):
    await seed_credential(
        test_db, kitchen.id, kind=CredentialKind.LINK, short_code="OLD999",
        expires_at=T0 - timedelta(minutes=1),
    )
    await seed_credential(
        test_db, kitchen.id, kind=CredentialKind.LINK, short_code="OLD999", revoked=True,
    )
    assert await RedemptionCoordinator(store).resolve_short_code("OLD999") is None


# ─── Store conflicts ─────────────────────────────────────────────

class _FlakyStore(SqlCredentialStore):
    """Raises StoreConflictError on the first `failures` membership lookups."""

    def __init__(self, db, failures: int, error=StoreConflictError):
        super().__init__(db)
        self.failures = failures
        self.error = error
        self.calls = 0

    async def get_membership(self, kitchen_id, user_id):
        self.calls += 1
        if self.calls <= self.failures:
            raise self.error("database is locked", "get_membership")
        return await super().get_membership(kitchen_id, user_id)


async def test_conflict_is_retried(store_db, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id)
    flaky = _FlakyStore(store_db, failures=2)
    coordinator = RedemptionCoordinator(flaky, conflict_retries=3, retry_base_delay_ms=0)

    result = await coordinator.redeem(CodeRef(credential.human_code, kitchen.id), uuid4())
    assert result.outcome is RedemptionOutcome.JOINED


async def test_conflict_retries_exhausted(store_db, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id)
    flaky = _FlakyStore(store_db, failures=100)
    coordinator = RedemptionCoordinator(flaky, conflict_retries=2, retry_base_delay_ms=0)

    with pytest.raises(StoreConflictError):
        await coordinator.redeem(CodeRef(credential.human_code, kitchen.id), uuid4())
    assert flaky.calls == 3


async def test_conflict_without_retries_raises_at_once(store_db, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id)
    flaky = _FlakyStore(store_db, failures=1)
    coordinator = RedemptionCoordinator(flaky, conflict_retries=0, retry_base_delay_ms=0)

    with pytest.raises(StoreConflictError):
        await coordinator.redeem(CodeRef(credential.human_code, kitchen.id), uuid4())
    assert flaky.calls == 1


async def test_store_failure_is_not_retried(store_db, test_db, kitchen):
    credential = await seed_credential(test_db, kitchen.id)
    flaky = _FlakyStore(store_db, failures=100, error=StoreFailureError)
    coordinator = RedemptionCoordinator(flaky, conflict_retries=3, retry_base_delay_ms=0)

    with pytest.raises(StoreFailureError):
        await coordinator.redeem(CodeRef(credential.human_code, kitchen.id), uuid4())
    assert flaky.calls == 1


def test_backoff_grows_with_jitter():
    coordinator = RedemptionCoordinator(store=None, retry_base_delay_ms=100)
    for attempt in range(3):
        delay = coordinator._backoff_seconds(attempt)
        base = 0.1 * (2 ** attempt)
        assert base * 0.75 <= delay <= base * 1.25


# ─── Concurrency ─────────────────────────────────────────────────

async def test_concurrent_redemptions_never_exceed_cap(race_session_factory):
    """10 users race for a 2-use code: exactly 2 join, the rest hit the limit."""
    owner = uuid4()
    async with race_session_factory() as setup:
        kitchen = await seed_kitchen(setup, owner)
        credential = await seed_credential(setup, kitchen.id, human_code="RACE22", max_uses=2)
        kitchen_id, credential_id = kitchen.id, credential.id

    async def redeem_as_new_user():
        async with race_session_factory() as session:
            coordinator = RedemptionCoordinator(
                SqlCredentialStore(session), conflict_retries=5, retry_base_delay_ms=10,
            )
            result = await coordinator.redeem(CodeRef("RACE22", kitchen_id), uuid4())
            return result.outcome

    outcomes = await asyncio.gather(*(redeem_as_new_user() for _ in range(10)))

    assert outcomes.count(RedemptionOutcome.JOINED) == 2
    assert outcomes.count(RedemptionOutcome.USE_LIMIT_REACHED) == 8

    async with race_session_factory() as check:
        store = SqlCredentialStore(check)
        assert (await store.get_credential(credential_id)).current_uses == 2
        members = await check.execute(
            select(func.count()).select_from(Membership).where(
                Membership.kitchen_id == kitchen_id,
                Membership.role == MemberRole.MEMBER.value,
            ),
        )
        assert members.scalar_one() == 2


async def test_same_user_racing_joins_once(race_session_factory):
    """One user double-submits a 5-use link: one use consumed, one membership."""
    async with race_session_factory() as setup:
        kitchen = await seed_kitchen(setup, uuid4())
        link = await seed_credential(setup, kitchen.id, kind=CredentialKind.LINK, max_uses=5)
        token, credential_id, kitchen_id = link.token, link.id, kitchen.id
    user = uuid4()

    async def redeem():
        async with race_session_factory() as session:
            coordinator = RedemptionCoordinator(
                SqlCredentialStore(session), conflict_retries=5, retry_base_delay_ms=10,
            )
            return (await coordinator.redeem(LinkRef(token), user)).outcome

    outcomes = await asyncio.gather(*(redeem() for _ in range(4)))

    assert outcomes.count(RedemptionOutcome.JOINED) == 1
    assert outcomes.count(RedemptionOutcome.ALREADY_MEMBER) == 3
    async with race_session_factory() as check:
        assert (await SqlCredentialStore(check).get_credential(credential_id)).current_uses == 1
        count = await check.execute(
            select(func.count()).select_from(Membership).where(
                Membership.kitchen_id == kitchen_id, Membership.user_id == user,
            ),
        )
        assert count.scalar_one() == 1
