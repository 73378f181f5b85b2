from __future__ import annotations

from dataclasses import dataclass
from datetime import datetime
from enum import Enum

SCHEMA_CURRENT = "current"
SCHEMA_LEGACY = "legacy"


class RedemptionStage(str, Enum):
    VALIDATING = "VALIDATING"
    CHECKING_PRIOR_REDEMPTION = "CHECKING_PRIOR_REDEMPTION"
    CREDITING = "CREDITING"
    RECORDING = "RECORDING"
    COMMITTED = "COMMITTED"
    ABORTED = "ABORTED"


@dataclass(slots=True)
class PromoCodeRecord:
    id: int
    keyword: str
    quantity: int
    name: str | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None
    created_at: datetime | None = None
    enabled: bool = True
    schema: str = SCHEMA_CURRENT


@dataclass(slots=True)
class NewPromoCode:
    name: str
    keyword: str
    quantity: int
    start_time: datetime
    end_time: datetime
    is_active: bool = True


@dataclass(slots=True)
class CreatedPromoCode:
    keyword: str
    name: str
    quantity: int
    active: bool
    start_time: datetime | None = None
    end_time: datetime | None = None


@dataclass(slots=True)
class PromoRedemptionRecord:
    promocode_id: int
    keyword: str
    quantity: int
    activated_at: datetime | None = None
    start_time: datetime | None = None
    end_time: datetime | None = None


@dataclass(slots=True)
class PromoRedeemResult:
    promocode_id: int
    keyword: str
    quantity: int
    balance: int
    activated_at: datetime
