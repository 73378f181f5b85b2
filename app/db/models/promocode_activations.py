from __future__ import annotations

from datetime import datetime

from sqlalchemy import BigInteger, DateTime, ForeignKey, Index, UniqueConstraint
from sqlalchemy.orm import Mapped, mapped_column

from app.db.models.base import Base


class PromoCodeActivation(Base):
    __tablename__ = "promocode_activation"
    __table_args__ = (
        UniqueConstraint("promocode_id", "user_id", name="uq_promocode_activation_code_user"),
        Index("idx_promocode_activation_user_enable_time", "user_id", "enable_time"),
    )

    id: Mapped[int] = mapped_column(BigInteger, primary_key=True)
    promocode_id: Mapped[int] = mapped_column(BigInteger, ForeignKey("promocode.id"), nullable=False)
    user_id: Mapped[int] = mapped_column(BigInteger, nullable=False)
    enable_time: Mapped[datetime] = mapped_column(DateTime(timezone=True), nullable=False)
    quantity: Mapped[int] = mapped_column(BigInteger, nullable=False)
