from __future__ import annotations

from datetime import datetime, timedelta, timezone

import structlog
from sqlalchemy.exc import IntegrityError, SQLAlchemyError
from sqlalchemy.ext.asyncio import AsyncSession, async_sessionmaker

from app.db.errors import StorageError, is_unique_violation
from app.economy.promo.codes import (
    DEFAULT_ACTIVE_WINDOW,
    generate_keyword,
    is_promo_code_active,
    needs_generated_keyword,
    normalize_keyword,
    parse_quantity,
    resolve_active_window,
)
from app.economy.promo.errors import (
    PromoConflictError,
    PromoNotFoundError,
    PromoValidationError,
)
from app.economy.promo.schema import PromoSchemaAdapter
from app.economy.promo.types import (
    SCHEMA_LEGACY,
    CreatedPromoCode,
    NewPromoCode,
    PromoCodeRecord,
)

logger = structlog.get_logger(__name__)


class PromoCodeRegistry:
    def __init__(
        self,
        session_factory: async_sessionmaker[AsyncSession],
        *,
        schema: PromoSchemaAdapter | None = None,
        default_window: timedelta = DEFAULT_ACTIVE_WINDOW,
    ) -> None:
        self._session_factory = session_factory
        self._schema = schema or PromoSchemaAdapter()
        self._default_window = default_window

    @staticmethod
    def is_active(code: PromoCodeRecord, now_utc: datetime) -> bool:
        return is_promo_code_active(code, now_utc)

    async def create_code(
        self,
        *,
        name: str | None,
        keyword: str | None,
        quantity: object,
        start_time: datetime | str | None = None,
        end_time: datetime | str | None = None,
        is_active: bool = True,
        now_utc: datetime | None = None,
    ) -> CreatedPromoCode:
        now_utc = now_utc or datetime.now(timezone.utc)

        clean_name = (name or "").strip()
        if not clean_name:
            raise PromoValidationError("Name is required")
        quantity_value = parse_quantity(quantity)

        clean_keyword = normalize_keyword(keyword)
        if needs_generated_keyword(clean_keyword):
            clean_keyword = generate_keyword()

        window_start, window_end = resolve_active_window(
            start_time,
            end_time,
            now_utc=now_utc,
            default_window=self._default_window,
        )
        new_code = NewPromoCode(
            name=clean_name,
            keyword=clean_keyword,
            quantity=quantity_value,
            start_time=window_start,
            end_time=window_end,
            is_active=is_active,
        )

        try:
            async with self._session_factory.begin() as session:
                stored = await self._schema.insert_code(session, new_code)
        except IntegrityError as exc:
            if is_unique_violation(exc):
                logger.info("promo_code_keyword_conflict", keyword=clean_keyword)
                raise PromoConflictError("Promocode keyword already exists") from exc
            raise StorageError("Failed to create promocode", details=str(exc)) from exc
        except (SQLAlchemyError, OSError) as exc:
            raise StorageError("Failed to create promocode", details=str(exc)) from exc

        logger.info(
            "promo_code_created",
            promocode_id=stored.id,
            keyword=stored.keyword,
            quantity=stored.quantity,
            schema=stored.schema,
        )
        if stored.schema == SCHEMA_LEGACY:
            # Legacy rows have no active window; only the flag is stored.
            return CreatedPromoCode(
                keyword=stored.keyword,
                name=clean_name,
                quantity=stored.quantity,
                active=stored.enabled,
            )
        return CreatedPromoCode(
            keyword=stored.keyword,
            name=clean_name,
            quantity=stored.quantity,
            active=is_promo_code_active(stored, now_utc),
            start_time=stored.start_time,
            end_time=stored.end_time,
        )

    async def find_by_keyword(
        self,
        keyword: str,
        *,
        session: AsyncSession | None = None,
    ) -> PromoCodeRecord:
        if session is not None:
            code = await self._schema.find_code_by_keyword(session, keyword)
        else:
            try:
                async with self._session_factory() as own_session:
                    code = await self._schema.find_code_by_keyword(own_session, keyword)
            except (SQLAlchemyError, OSError) as exc:
                raise StorageError("Failed to fetch promocode", details=str(exc)) from exc

        if code is None:
            raise PromoNotFoundError("Promocode not found")
        return code
