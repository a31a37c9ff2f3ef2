"""訂單計價

單價一律以菜單資料為準，客戶端送來的價格只用來比對、不採用。
"""
from decimal import Decimal, ROUND_HALF_UP
from fastapi import HTTPException

from app.models.catalog import FoodItem
from app.services.i18n import localize

CENT = Decimal("0.01")


def money(value) -> Decimal:
    """四捨五入到分"""
    return Decimal(str(value or 0)).quantize(CENT, rounding=ROUND_HALF_UP)


def _find_option(options: list, name: str, kind: str, item: FoodItem) -> dict:
    for option in options or []:
        if option.get("name") == name:
            return option
    raise HTTPException(
        status_code=400,
        detail=f"{kind} '{name}' is not offered for {localize(item.name)}",
    )


def price_line(item: FoodItem, quantity: int, meal_size: str | None = None,
               extras: list[str] | None = None, addons: list[str] | None = None) -> dict:
    """計算單一品項：單價 = 基本價 + 尺寸加價 + 配料 + 加購"""
    unit_price = money(item.price)

    selected_size = None
    if meal_size:
        size = _find_option(item.meal_sizes, meal_size, "Meal size", item)
        selected_size = {"name": size["name"], "additionalPrice": str(money(size.get("additionalPrice")))}
        unit_price += money(size.get("additionalPrice"))

    selected_extras = []
    for name in extras or []:
        extra = _find_option(item.extras, name, "Extra", item)
        selected_extras.append({"name": extra["name"], "price": str(money(extra.get("price")))})
        unit_price += money(extra.get("price"))

    selected_addons = []
    for name in addons or []:
        addon = _find_option(item.addons, name, "Addon", item)
        selected_addons.append({
            "name": addon["name"],
            "price": str(money(addon.get("price"))),
            "imageUrl": addon.get("imageUrl", ""),
        })
        unit_price += money(addon.get("price"))

    return {
        "food_item_id": item.id,
        "category_id": item.category_id,
        "item_name": item.name,
        "quantity": quantity,
        "selected_meal_size": selected_size,
        "selected_extras": selected_extras,
        "selected_addons": selected_addons,
        "unit_price": money(unit_price),
        "total_price": money(unit_price * quantity),
        "preparation_time": item.preparation_time,
    }


def compute_totals(subtotal: Decimal, delivery_fee: Decimal, tax_rate: Decimal, discount: Decimal) -> dict:
    """total = subtotal + delivery_fee + tax - discount"""
    subtotal = money(subtotal)
    delivery_fee = money(delivery_fee)
    tax = money(subtotal * Decimal(str(tax_rate)))
    discount = money(discount)
    return {
        "subtotal": subtotal,
        "delivery_fee": delivery_fee,
        "tax": tax,
        "discount": discount,
        "total": subtotal + delivery_fee + tax - discount,
    }
