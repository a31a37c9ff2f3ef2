from datetime import datetime
from decimal import Decimal
from pydantic import Field, field_validator, model_validator

from app.models.offer import OfferType
from app.models.order import DeliveryType
from app.schemas.common import CamelModel, Money, UtcDatetime
from app.schemas.order import OrderItemIn


def _upper_code(v):
    if v is None:
        return None
    v = v.strip().upper()
    return v or None


class OfferCreate(CamelModel):
    title: str = Field(min_length=1, max_length=200)
    description: str = Field(min_length=1)
    image_url: str | None = None
    type: OfferType
    value: Decimal = Field(Decimal("0"), ge=0)
    start_date: UtcDatetime
    end_date: UtcDatetime
    is_active: bool = True
    is_featured: bool = False
    priority: int = 0
    applied_to_items: list[int] = []
    applied_to_categories: list[int] = []
    coupon_code: str | None = Field(None, max_length=50)
    min_order_amount: Decimal | None = Field(None, ge=0)
    max_discount_amount: Decimal | None = Field(None, ge=0)
    usage_limit: int | None = Field(None, ge=1)
    usage_limit_per_user: int = Field(1, ge=1)

    @field_validator("coupon_code")
    @classmethod
    def normalize_code(cls, v):
        return _upper_code(v)

    @model_validator(mode="after")
    def check_dates(self):
        if self.end_date <= self.start_date:
            raise ValueError("End date must be after start date")
        if self.type == OfferType.PERCENTAGE and self.value > 100:
            raise ValueError("Percentage value cannot exceed 100")
        return self


class OfferUpdate(CamelModel):
    title: str | None = Field(None, min_length=1, max_length=200)
    description: str | None = Field(None, min_length=1)
    image_url: str | None = None
    type: OfferType | None = None
    value: Decimal | None = Field(None, ge=0)
    start_date: UtcDatetime | None = None
    end_date: UtcDatetime | None = None
    is_active: bool | None = None
    is_featured: bool | None = None
    priority: int | None = None
    applied_to_items: list[int] | None = None
    applied_to_categories: list[int] | None = None
    coupon_code: str | None = Field(None, max_length=50)
    min_order_amount: Decimal | None = Field(None, ge=0)
    max_discount_amount: Decimal | None = Field(None, ge=0)
    usage_limit: int | None = Field(None, ge=1)
    usage_limit_per_user: int | None = Field(None, ge=1)

    @field_validator("coupon_code")
    @classmethod
    def normalize_code(cls, v):
        return _upper_code(v)


class OrderDetails(CamelModel):
    items: list[OrderItemIn] = Field(min_length=1)
    delivery_type: DeliveryType
    delivery_fee: Decimal | None = Field(None, ge=0)
    subtotal: Decimal | None = Field(None, ge=0)


class ValidateCouponRequest(CamelModel):
    coupon_code: str = Field(min_length=1)
    order_details: OrderDetails

    @field_validator("coupon_code", mode="before")
    @classmethod
    def strip_code(cls, v):
        return v.strip() if isinstance(v, str) else v


class OfferOut(CamelModel):
    id: int
    title: str
    description: str
    image_url: str | None = None
    type: OfferType
    value: Money
    start_date: datetime
    end_date: datetime
    is_active: bool
    is_featured: bool
    priority: int
    applied_to_items: list[int]
    applied_to_categories: list[int]
    coupon_code: str | None = None
    min_order_amount: Money | None = None
    max_discount_amount: Money | None = None
    usage_limit: int | None = None
    usage_limit_per_user: int
    usage_count: int
    remaining_uses: int | None = None
    is_valid: bool
