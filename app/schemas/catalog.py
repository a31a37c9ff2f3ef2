from datetime import datetime
from decimal import Decimal
from typing import Annotated, Literal
from pydantic import AfterValidator, Field

from app.schemas.common import CamelModel, Money
from app.services.i18n import normalize_text
from app.services.pricing import money

# 字串視為英文；dict 依語系存放
LocalizedText = Annotated[str | dict[str, str], AfterValidator(normalize_text)]

# 選項價格一律存到分
OptionPrice = Annotated[Decimal, Field(ge=0), AfterValidator(money)]

SpiceLevel = Literal["none", "mild", "medium", "hot", "very-hot"]
Allergen = Literal["nuts", "dairy", "eggs", "soy", "wheat", "fish", "shellfish", "sesame"]


class MealSize(CamelModel):
    name: str = Field(min_length=1)
    additional_price: OptionPrice = Decimal("0.00")


class Extra(CamelModel):
    name: str = Field(min_length=1)
    price: OptionPrice


class Addon(Extra):
    image_url: str = ""


class Ingredient(CamelModel):
    name: str = Field(min_length=1)
    optional: bool = False


class CategoryCreate(CamelModel):
    name: LocalizedText
    description: LocalizedText | None = None
    image_url: str = ""
    icon: str = "🍔"
    is_active: bool = True
    sort_order: int = Field(0, ge=0)


class CategoryUpdate(CamelModel):
    name: LocalizedText | None = None
    description: LocalizedText | None = None
    image_url: str | None = None
    icon: str | None = None
    is_active: bool | None = None
    sort_order: int | None = Field(None, ge=0)


class CategoryOut(CamelModel):
    id: int
    name: str | dict
    description: str | dict | None = None
    image_url: str
    icon: str
    is_active: bool
    sort_order: int
    items_count: int


class FoodItemCreate(CamelModel):
    name: LocalizedText
    description: LocalizedText
    price: Decimal = Field(ge=0)
    original_price: Decimal | None = Field(None, ge=0)
    image_url: str = ""
    category_id: int
    tags: list[str] = []
    is_veg: bool = False
    is_vegan: bool = False
    is_gluten_free: bool = False
    is_nut_free: bool = False
    spice_level: SpiceLevel = "none"
    allergens: list[Allergen] = []
    is_featured: bool = False
    is_popular: bool = False
    is_active: bool = True
    is_available: bool = True
    available_from: datetime | None = None
    available_until: datetime | None = None
    preparation_time: int = Field(15, ge=0)
    meal_sizes: list[MealSize] = []
    extras: list[Extra] = []
    addons: list[Addon] = []
    ingredients: list[Ingredient] = []
    stock_quantity: int = Field(0, ge=0)
    low_stock_alert: int = Field(10, ge=0)


class FoodItemUpdate(CamelModel):
    name: LocalizedText | None = None
    description: LocalizedText | None = None
    price: Decimal | None = Field(None, ge=0)
    original_price: Decimal | None = Field(None, ge=0)
    image_url: str | None = None
    category_id: int | None = None
    tags: list[str] | None = None
    is_veg: bool | None = None
    is_vegan: bool | None = None
    is_gluten_free: bool | None = None
    is_nut_free: bool | None = None
    spice_level: SpiceLevel | None = None
    allergens: list[Allergen] | None = None
    is_featured: bool | None = None
    is_popular: bool | None = None
    is_active: bool | None = None
    is_available: bool | None = None
    available_from: datetime | None = None
    available_until: datetime | None = None
    preparation_time: int | None = Field(None, ge=0)
    meal_sizes: list[MealSize] | None = None
    extras: list[Extra] | None = None
    addons: list[Addon] | None = None
    ingredients: list[Ingredient] | None = None
    stock_quantity: int | None = Field(None, ge=0)
    low_stock_alert: int | None = Field(None, ge=0)


class FoodItemOut(CamelModel):
    id: int
    name: str | dict
    description: str | dict
    price: Money
    original_price: Money | None = None
    discount_percentage: int
    image_url: str
    category_id: int
    category_name: str | dict | None = None
    tags: list[str]
    is_veg: bool
    is_vegan: bool
    is_gluten_free: bool
    is_nut_free: bool
    spice_level: str
    allergens: list[str]
    is_featured: bool
    is_popular: bool
    is_active: bool
    is_available: bool
    availability_status: str
    preparation_time: int
    rating_average: float
    rating_count: int
    meal_sizes: list[dict]
    extras: list[dict]
    addons: list[dict]
    ingredients: list[dict]
    stock_quantity: int
    total_sold: int
