from datetime import datetime
from decimal import Decimal
from typing import Literal
from pydantic import Field, field_validator, model_validator

from app.models.order import OrderStatus, DeliveryType, PaymentMethod
from app.schemas.common import CamelModel, Money, NamedOption


class OrderItemIn(CamelModel):
    food_item_id: int
    quantity: int = Field(ge=1, le=100)
    selected_meal_size: str | NamedOption | None = None
    selected_extras: list[str | NamedOption] = []
    selected_addons: list[str | NamedOption] = []
    special_instructions: str | None = Field(None, max_length=500)


class DeliveryAddressIn(CamelModel):
    address: str = Field(min_length=1)
    apartment: str | None = None
    instructions: str | None = None
    latitude: float | None = None
    longitude: float | None = None


class OrderCreate(CamelModel):
    items: list[OrderItemIn] = Field(min_length=1)
    delivery_type: DeliveryType
    payment_method: PaymentMethod
    cod_type: Literal["cash", "card"] | None = None
    branch_id: int
    delivery_address: DeliveryAddressIn | None = None
    address_id: int | None = None  # 使用已儲存的地址
    delivery_fee: Decimal | None = Field(None, ge=0)
    special_instructions: str | None = Field(None, max_length=1000)
    coupon_code: str | None = None
    total: Decimal | None = None  # 客戶端計算的總額，僅供比對

    @model_validator(mode="after")
    def check_conditionals(self):
        if self.delivery_type == DeliveryType.DELIVERY and not (self.delivery_address or self.address_id):
            raise ValueError("Delivery address is required for delivery orders")
        if self.payment_method.is_cod and not self.cod_type:
            raise ValueError("Cash on delivery type is required")
        return self


class StatusUpdate(CamelModel):
    status: OrderStatus
    message: str | None = None


class CancelRequest(CamelModel):
    reason: str = Field(min_length=1, max_length=500)

    @field_validator("reason", mode="before")
    @classmethod
    def strip_reason(cls, v):
        return v.strip() if isinstance(v, str) else v


class RatingRequest(CamelModel):
    food: int | None = Field(None, ge=1, le=5)
    delivery: int | None = Field(None, ge=1, le=5)
    overall: int = Field(ge=1, le=5)
    comment: str | None = Field(None, max_length=500)


class OrderItemOut(CamelModel):
    food_item_id: int
    item_name: str | dict
    quantity: int
    selected_meal_size: dict | None = None
    selected_extras: list[dict]
    selected_addons: list[dict]
    special_instructions: str | None = None
    unit_price: Money
    total_price: Money


class OrderOut(CamelModel):
    id: int
    order_number: str
    user_id: int
    branch_id: int
    items: list[OrderItemOut]
    subtotal: Money
    delivery_fee: Money
    tax: Money
    discount: Money
    coupon_code: str | None = None
    total: Money
    payment_method: PaymentMethod
    cod_type: str | None = None
    delivery_type: DeliveryType
    delivery_address: dict | None = None
    special_instructions: str | None = None
    status: OrderStatus
    tracking_updates: list[dict]
    estimated_delivery_time: datetime | None = None
    estimated_time_remaining: int | None = None
    actual_delivery_time: datetime | None = None
    cancellation: dict | None = None
    rating: dict | None = None
    created_at: datetime
