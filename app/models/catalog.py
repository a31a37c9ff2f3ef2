from datetime import datetime
from decimal import Decimal, ROUND_HALF_UP
from sqlalchemy import String, Boolean, DateTime, Integer, ForeignKey, Numeric, JSON, Float
from sqlalchemy.orm import Mapped, mapped_column, relationship
from app.database import Base


class Category(Base):
    __tablename__ = "categories"

    id: Mapped[int] = mapped_column(primary_key=True)
    name: Mapped[dict] = mapped_column(JSON)  # {"en": ..., "es": ..., "ca": ..., "ar": ...}
    description: Mapped[dict | None] = mapped_column(JSON, nullable=True)
    image_url: Mapped[str] = mapped_column(String(500), default="")
    icon: Mapped[str] = mapped_column(String(20), default="🍔")
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    sort_order: Mapped[int] = mapped_column(Integer, default=0)
    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    items: Mapped[list["FoodItem"]] = relationship(back_populates="category")

    @property
    def items_count(self) -> int:
        return len(self.items)


class FoodItem(Base):
    __tablename__ = "food_items"

    id: Mapped[int] = mapped_column(primary_key=True)
    category_id: Mapped[int] = mapped_column(ForeignKey("categories.id"), index=True)
    name: Mapped[dict] = mapped_column(JSON)
    description: Mapped[dict] = mapped_column(JSON)
    price: Mapped[Decimal] = mapped_column(Numeric(10, 2))
    original_price: Mapped[Decimal | None] = mapped_column(Numeric(10, 2), nullable=True)
    image_url: Mapped[str] = mapped_column(String(500), default="")
    tags: Mapped[list] = mapped_column(JSON, default=list)

    # 飲食標記
    is_veg: Mapped[bool] = mapped_column(Boolean, default=False)
    is_vegan: Mapped[bool] = mapped_column(Boolean, default=False)
    is_gluten_free: Mapped[bool] = mapped_column(Boolean, default=False)
    is_nut_free: Mapped[bool] = mapped_column(Boolean, default=False)
    spice_level: Mapped[str] = mapped_column(String(10), default="none")
    allergens: Mapped[list] = mapped_column(JSON, default=list)

    is_featured: Mapped[bool] = mapped_column(Boolean, default=False)
    is_popular: Mapped[bool] = mapped_column(Boolean, default=False)
    is_active: Mapped[bool] = mapped_column(Boolean, default=True, index=True)
    is_available: Mapped[bool] = mapped_column(Boolean, default=True)
    available_from: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    available_until: Mapped[datetime | None] = mapped_column(DateTime, nullable=True)
    preparation_time: Mapped[int] = mapped_column(Integer, default=15)  # 分鐘

    rating_average: Mapped[float] = mapped_column(Float, default=0)
    rating_count: Mapped[int] = mapped_column(Integer, default=0)

    # 客製化選項：[{"name": ..., "additionalPrice": ...}] / [{"name": ..., "price": ...}]
    meal_sizes: Mapped[list] = mapped_column(JSON, default=list)
    extras: Mapped[list] = mapped_column(JSON, default=list)
    addons: Mapped[list] = mapped_column(JSON, default=list)
    ingredients: Mapped[list] = mapped_column(JSON, default=list)

    stock_quantity: Mapped[int] = mapped_column(Integer, default=0)
    low_stock_alert: Mapped[int] = mapped_column(Integer, default=10)
    total_sold: Mapped[int] = mapped_column(Integer, default=0)

    created_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow)
    updated_at: Mapped[datetime] = mapped_column(DateTime, default=datetime.utcnow, onupdate=datetime.utcnow)

    # Relationships
    category: Mapped["Category"] = relationship(back_populates="items")

    @property
    def discount_percentage(self) -> int:
        if self.original_price and self.original_price > self.price:
            return int(((self.original_price - self.price) / self.original_price * 100).quantize(Decimal("1"), rounding=ROUND_HALF_UP))
        return 0

    @property
    def availability_status(self) -> str:
        if not self.is_active or not self.is_available:
            return "unavailable"

        now = datetime.utcnow()
        if self.available_from and now < self.available_from:
            return "upcoming"
        if self.available_until and now > self.available_until:
            return "expired"
        if self.stock_quantity <= 0:
            return "out-of-stock"
        if self.stock_quantity <= self.low_stock_alert:
            return "low-stock"
        return "available"

    @property
    def is_orderable(self) -> bool:
        """可否下單（庫存不足交給 stock_service 判斷）"""
        return self.availability_status not in ("unavailable", "upcoming", "expired")
