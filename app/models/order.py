from datetime import datetime
from decimal import Decimal
from typing import TYPE_CHECKING
from sqlalchemy import String, DateTime, ForeignKey, Enum, Integer, Text, Numeric, JSON
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base
import enum

if TYPE_CHECKING:
    from app.models.user import User
    from app.models.branch import Branch
    from app.models.catalog import FoodItem


class OrderStatus(str, enum.Enum):
    PENDING = "pending"
    CONFIRMED = "confirmed"
    PREPARING = "preparing"
    READY = "ready"
    OUT_FOR_DELIVERY = "out-for-delivery"
    DELIVERED = "delivered"
    CANCELLED = "cancelled"
    REFUNDED = "refunded"


class DeliveryType(str, enum.Enum):
    DELIVERY = "delivery"
    PICKUP = "pickup"


class PaymentMethod(str, enum.Enum):
    CASH_ON_DELIVERY = "cash-on-delivery"
    CASH_ON_DELIVERY_ALT = "cashOnDelivery"
    CARD = "card"
    PAYPAL = "paypal"
    STRIPE = "stripe"

    @property
    def is_cod(self) -> bool:
        return self in (PaymentMethod.CASH_ON_DELIVERY, PaymentMethod.CASH_ON_DELIVERY_ALT)


def _values(enum_cls):
    return [m.value for m in enum_cls]


class Order(Base):
    __tablename__ = "orders"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_number: Mapped[str] = mapped_column(String(30), unique=True, index=True)
    user_id: Mapped[int] = mapped_column(ForeignKey("users.id"), index=True)
    branch_id: Mapped[int] = mapped_column(ForeignKey("branches.id"), index=True)

    subtotal: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    delivery_fee: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    tax: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    discount: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)
    coupon_code: Mapped[str | None] = mapped_column(String(50), nullable=True)
    total: Mapped[Decimal] = mapped_column(Numeric(10, 2), default=0)

    payment_method: Mapped[PaymentMethod] = mapped_column(Enum(PaymentMethod, values_callable=_values))
    cod_type: Mapped[str | None] = mapped_column(String(10), nullable=True)  # cash, card
    delivery_type: Mapped[DeliveryType] = mapped_column(Enum(DeliveryType, values_callable=_values))
    delivery_address: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    special_instructions: Mapped[str | None] = mapped_column(Text, nullable=True)

    status: Mapped[OrderStatus] = mapped_column(Enum(OrderStatus, values_callable=_values), default=OrderStatus.PENDING, index=True)
    # [{"status": ..., "message": ..., "timestamp": ...}]
    tracking_updates: Mapped[list] = mapped_column(JSON, default=list)
    estimated_delivery_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    actual_delivery_time: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # 取消紀錄
    cancellation_reason: Mapped[str | None] = mapped_column(String(500), nullable=True)
    cancelled_by: Mapped[str | None] = mapped_column(String(20), nullable=True)  # customer, admin
    cancelled_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    # 評分
    rating_food: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_delivery: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_overall: Mapped[int | None] = mapped_column(Integer, nullable=True)
    rating_comment: Mapped[str | None] = mapped_column(String(500), nullable=True)
    rated_at: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, index=True)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    user: Mapped["User"] = relationship(back_populates="orders")
    branch: Mapped["Branch"] = relationship()
    items: Mapped[list["OrderItem"]] = relationship(
        back_populates="order", cascade="all, delete-orphan", order_by="OrderItem.position"
    )

    @property
    def is_rated(self) -> bool:
        return self.rating_overall is not None

    @property
    def estimated_time_remaining(self) -> int | None:
        """預估剩餘分鐘數"""
        if self.status in (OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED):
            return 0
        if not self.estimated_delivery_time:
            return None
        remaining = (self.estimated_delivery_time - datetime.utcnow()).total_seconds() / 60
        return max(0, int(remaining))

    @property
    def cancellation(self) -> dict | None:
        if not self.cancellation_reason:
            return None
        return {
            "reason": self.cancellation_reason,
            "cancelledBy": self.cancelled_by,
            "cancelledAt": self.cancelled_at,
        }

    @property
    def rating(self) -> dict | None:
        if not self.is_rated:
            return None
        return {
            "food": self.rating_food,
            "delivery": self.rating_delivery,
            "overall": self.rating_overall,
            "comment": self.rating_comment,
            "ratedAt": self.rated_at,
        }

    def add_tracking_update(self, status: OrderStatus, message: str):
        self.status = status
        # JSON 欄位需整個重新指派才會被偵測為變更
        self.tracking_updates = [
            *(self.tracking_updates or []),
            {"status": status.value, "message": message, "timestamp": datetime.utcnow().isoformat()},
        ]


class OrderItem(Base):
    """訂單品項（下單當下的快照）"""
    __tablename__ = "order_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    order_id: Mapped[int] = mapped_column(ForeignKey("orders.id"), index=True)
    food_item_id: Mapped[int] = mapped_column(ForeignKey("food_items.id"))
    position: Mapped[int] = mapped_column(Integer, default=0)
    item_name: Mapped[dict] = mapped_column(JSON)
    quantity: Mapped[int] = mapped_column(Integer)
    selected_meal_size: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    selected_extras: Mapped[list] = mapped_column(JSON, default=list)
    selected_addons: Mapped[list] = mapped_column(JSON, default=list)
    special_instructions: Mapped[str | None] = mapped_column(String(500), nullable=True)
    unit_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    total_price: Mapped[Decimal] = mapped_column(Numeric(10, 2))

    # Relationships
    order: Mapped["Order"] = relationship(back_populates="items")
    food_item: Mapped["FoodItem"] = relationship()
