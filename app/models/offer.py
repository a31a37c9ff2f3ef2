from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from sqlalchemy import String, Boolean, DateTime, ForeignKey, Enum, Integer, Text, Numeric, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
import enum

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.order import Order


class OfferType(str, enum.Enum):
    PERCENTAGE = "percentage"
    FIXED_AMOUNT = "fixed-amount"
    BUY_ONE_GET_ONE = "buy-one-get-one"
    FREE_DELIVERY = "free-delivery"
    COMBO = "combo"


class Offer(Base):
    """優惠 / 折扣碼"""
    __tablename__ = "offers"

    id: Mapped[int] = mapped_column(primary_key=True)
    title: Mapped[str] = mapped_column(String(200))
    description: Mapped[str] = mapped_column(Text)
    image_url: Mapped[str | None] = mapped_column(String(500), nullable=True)
    type: Mapped[OfferType] = mapped_column(Enum(OfferType, values_callable=lambda e: [m.value for m in e]))
    value: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    start_date: Mapped[datetime] = mapped_column(DateTime)
    end_date: Mapped[datetime] = mapped_column(DateTime)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    priority: Mapped[int] = mapped_column(Integer, default=0)

    applied_to_items: Mapped[list] = mapped_column(JSON, default=list)  # FoodItem id
    applied_to_categories: Mapped[list] = mapped_column(JSON, default=list)  # Category id
    coupon_code: Mapped[str | None] = mapped_column(String(50), unique=True, nullable=True, index=True)
    min_order_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    max_discount_amount: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    usage_limit: Mapped[int | None] = mapped_column(Integer, nullable=True)
    usage_limit_per_user: Mapped[int] = mapped_column(Integer, default=1)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    usage_history: Mapped[list["OfferUsage"]] = relationship(
        back_populates="offer", cascade="all, delete-orphan", order_by="OfferUsage.used_at"
    )

    @property
    def usage_count(self) -> int:
        return len(self.usage_history)

    @property
    def remaining_uses(self) -> int | None:
        if self.usage_limit is None:
            return None
        return max(0, self.usage_limit - self.usage_count)

    @property
    def is_valid(self) -> bool:
        now = datetime.utcnow()
        if not self.is_active or not (self.start_date <= now <= self.end_date):
            return False
        return self.remaining_uses is None or self.remaining_uses > 0

    def user_usage_count(self, user_id: int) -> int:
        return len([u for u in self.usage_history if u.user_id == user_id])

    def can_user_use(self, user_id: int) -> bool:
        return self.is_valid and self.user_usage_count(user_id) < self.usage_limit_per_user


class OfferUsage(Base):
    """優惠使用紀錄"""
    __tablename__ = "offer_usages"

    id: Mapped[int] = mapped_column(primary_key=True)
    offer_id: Mapped[int] = mapped_column(ForeignKey("offers.id"), index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    order_id: Mapped[int | None] = mapped_column(ForeignKey("orders.id"), nullable=True)
    discount_amount: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    used_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)

    # Relationships
    offer: Mapped["Offer"] = relationship(back_populates="usage_history")
    user: Mapped["User"] = relationship()
    order: Mapped["Order | None"] = relationship()
