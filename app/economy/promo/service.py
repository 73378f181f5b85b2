from __future__ import annotations

from datetime import datetime, timezone

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.errors import StorageError, is_unique_violation
from app.economy.balance.service import BalanceLedger
from app.economy.promo.codes import is_promo_code_active, normalize_keyword
from app.economy.promo.errors import (
    PromoAlreadyRedeemedError,
    PromoError,
    PromoInactiveError,
    PromoValidationError,
)
from app.economy.promo.registry import PromoCodeRegistry
from app.economy.promo.schema import PromoSchemaAdapter
from app.economy.promo.types import PromoRedeemResult, PromoRedemptionRecord, RedemptionStage

logger = structlog.get_logger(__name__)

ALREADY_REDEEMED_MESSAGE = "Promocode already activated by this user"


class PromoService:
    """Redeems promo codes: at most one redemption per (code, user).

    The prior-redemption check, the balance credit and the redemption insert
    share one transaction. The unique constraint on (promocode_id, user_id)
    settles races between concurrent requests; its violation is reported as
    ``PromoAlreadyRedeemedError``.
    """

    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        schema: PromoSchemaAdapter | None = None,
        registry: PromoCodeRegistry | None = None,
        ledger: BalanceLedger | None = None,
    ) -> None:
        self._session_factory = session_factory
        self._schema = schema or PromoSchemaAdapter()
        self._registry = registry or PromoCodeRegistry(session_factory, schema=self._schema)
        self._ledger = ledger or BalanceLedger(session_factory)

    async def redeem(
        self,
        *,
        user_id: int,
        keyword: str | None,
        now_utc: datetime | None = None,
    ) -> PromoRedeemResult:
        now_utc = now_utc or datetime.now(timezone.utc)
        normalized = normalize_keyword(keyword)
        log = logger.bind(user_id=user_id, keyword=normalized)
        if not normalized:
            raise PromoValidationError("Promocode keyword is required")

        code = await self._registry.find_by_keyword(normalized)
        if not is_promo_code_active(code, now_utc):
            log.info("promo_redeem_rejected", stage=RedemptionStage.VALIDATING.value, reason="inactive")
            raise PromoInactiveError("Promocode is not active")

        stage = RedemptionStage.CHECKING_PRIOR_REDEMPTION
        try:
            async with self._session_factory.begin() as session:
                if await self._schema.check_prior_redemption(session, code=code, user_id=user_id):
                    raise PromoAlreadyRedeemedError(ALREADY_REDEEMED_MESSAGE)

                stage = RedemptionStage.CREDITING
                await self._ledger.ensure(session, user_id)
                await self._ledger.credit(session, user_id, code.quantity)

                stage = RedemptionStage.RECORDING
                try:
                    await self._schema.record_redemption(
                        session,
                        code=code,
                        user_id=user_id,
                        activated_at=now_utc,
                    )
                except IntegrityError as exc:
                    if is_unique_violation(exc):
                        raise PromoAlreadyRedeemedError(ALREADY_REDEEMED_MESSAGE) from exc
                    raise
        except PromoError as exc:
            log.info(
                "promo_redeem_rejected",
                stage=stage.value,
                next_stage=RedemptionStage.ABORTED.value,
                reason=type(exc).__name__,
            )
            raise
        except StorageError:
            log.warning("promo_redeem_storage_failed", stage=stage.value)
            raise
        except (SQLAlchemyError, OSError) as exc:
            log.warning("promo_redeem_storage_failed", stage=stage.value, error=str(exc))
            raise StorageError("Failed to activate promocode", details=str(exc)) from exc

        log.info(
            "promo_redeem_accepted",
            stage=RedemptionStage.COMMITTED.value,
            promocode_id=code.id,
            quantity=code.quantity,
            schema=code.schema,
        )
        balance = await self._ledger.read(user_id)
        return PromoRedeemResult(
            promocode_id=code.id,
            keyword=code.keyword,
            quantity=code.quantity,
            balance=balance,
            activated_at=now_utc,
        )

    async def list_redemptions(self, *, user_id: int) -> list[PromoRedemptionRecord]:
        try:
            async with self._session_factory() as session:
                return await self._schema.list_redemptions_for_user(session, user_id=user_id)
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("Failed to fetch promocode activations", details=str(exc)) from exc
