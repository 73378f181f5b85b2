from __future__ import annotations

from datetime import datetime, timedelta, timezone

import pytest

from app.db.session import SessionLocal
from app.economy.balance.service import BalanceLedger
from app.economy.promo.errors import (
    PromoAlreadyRedeemedError,
    PromoConflictError,
    PromoInactiveError,
    PromoNotFoundError,
)
from app.economy.promo.registry import PromoCodeRegistry
from app.economy.promo.service import PromoService
from tests.integration.promo_fixtures import count_activations, create_code, read_balance

UTC = timezone.utc


@pytest.mark.asyncio
async def test_welcome_code_credits_each_user_once() -> None:
    registry = PromoCodeRegistry(SessionLocal)
    service = PromoService(SessionLocal)

    created = await registry.create_code(name="Welcome", keyword="WELCOME", quantity=100)
    assert created.active is True

    first = await service.redeem(user_id=42, keyword="WELCOME")
    assert first.balance == 100

    with pytest.raises(PromoAlreadyRedeemedError):
        await service.redeem(user_id=42, keyword="WELCOME")
    assert await read_balance(42) == 100

    second = await service.redeem(user_id=43, keyword="WELCOME")
    assert second.balance == 100

    code = await registry.find_by_keyword("WELCOME")
    assert await count_activations(promocode_id=code.id) == 2


@pytest.mark.asyncio
async def test_redeem_adds_to_existing_balance() -> None:
    now_utc = datetime.now(UTC)
    await create_code(keyword="FIRST", quantity=30, now_utc=now_utc)
    await create_code(keyword="SECOND", quantity=12, now_utc=now_utc)
    service = PromoService(SessionLocal)

    await service.redeem(user_id=7, keyword="FIRST")
    result = await service.redeem(user_id=7, keyword="SECOND")

    assert result.balance == 42


@pytest.mark.asyncio
async def test_expired_and_unknown_codes_do_not_touch_balance() -> None:
    now_utc = datetime.now(UTC)
    await create_code(
        keyword="EXPIRED",
        quantity=50,
        now_utc=now_utc,
        start_offset=timedelta(days=-10),
        end_offset=timedelta(days=-1),
    )
    service = PromoService(SessionLocal)

    with pytest.raises(PromoInactiveError):
        await service.redeem(user_id=42, keyword="EXPIRED")
    with pytest.raises(PromoNotFoundError):
        await service.redeem(user_id=42, keyword="NOPE")

    assert await read_balance(42) is None


@pytest.mark.asyncio
async def test_history_lists_newest_first() -> None:
    now_utc = datetime.now(UTC)
    await create_code(keyword="OLDER", quantity=1, now_utc=now_utc)
    await create_code(keyword="NEWER", quantity=2, now_utc=now_utc)
    service = PromoService(SessionLocal)

    await service.redeem(user_id=42, keyword="OLDER", now_utc=now_utc - timedelta(minutes=5))
    await service.redeem(user_id=42, keyword="NEWER", now_utc=now_utc)

    history = await service.list_redemptions(user_id=42)

    assert [record.keyword for record in history] == ["NEWER", "OLDER"]
    assert history[0].quantity == 2
    assert history[0].start_time is not None
    assert await service.list_redemptions(user_id=43) == []


@pytest.mark.asyncio
async def test_duplicate_keyword_is_a_conflict() -> None:
    registry = PromoCodeRegistry(SessionLocal)
    await registry.create_code(name="One", keyword="DUP", quantity=1)

    with pytest.raises(PromoConflictError):
        await registry.create_code(name="Two", keyword="DUP", quantity=2)


@pytest.mark.asyncio
async def test_balance_read_creates_row_lazily() -> None:
    ledger = BalanceLedger(SessionLocal)

    assert await ledger.read(555) == 0
    assert await read_balance(555) == 0
