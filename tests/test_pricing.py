from decimal import Decimal

import pytest
from fastapi import HTTPException

from app.models import FoodItem
from app.services.pricing import money, price_line, compute_totals


def burger(**extra):
    return FoodItem(
        id=1,
        category_id=3,
        name={"en": "Classic Burger"},
        price=Decimal("10.00"),
        meal_sizes=[{"name": "Large", "additionalPrice": "2.00"}],
        extras=[{"name": "Cheese", "price": "1.50"}, {"name": "Bacon", "price": "2.25"}],
        addons=[{"name": "Fries", "price": "3.00", "imageUrl": "fries.png"}],
        preparation_time=15,
        **extra,
    )


def test_money_rounds_half_up_to_cents():
    assert money("0.125") == Decimal("0.13")
    assert money("2.675") == Decimal("2.68")
    assert money(None) == Decimal("0.00")
    assert money(7) == Decimal("7.00")


def test_line_price_with_one_extra():
    line = price_line(burger(), 2, extras=["Cheese"])

    assert line["unit_price"] == Decimal("11.50")
    assert line["total_price"] == Decimal("23.00")
    assert line["selected_extras"] == [{"name": "Cheese", "price": "1.50"}]
    assert line["category_id"] == 3


def test_line_price_adds_size_extras_and_addons():
    line = price_line(burger(), 3, meal_size="Large", extras=["Cheese", "Bacon"], addons=["Fries"])

    # 10.00 + 2.00 + 1.50 + 2.25 + 3.00
    assert line["unit_price"] == Decimal("18.75")
    assert line["total_price"] == Decimal("56.25")
    assert line["selected_meal_size"] == {"name": "Large", "additionalPrice": "2.00"}
    assert line["selected_addons"][0]["imageUrl"] == "fries.png"


def test_unknown_option_is_rejected():
    with pytest.raises(HTTPException) as exc:
        price_line(burger(), 1, extras=["Pineapple"])
    assert exc.value.status_code == 400
    assert "Pineapple" in exc.value.detail


def test_item_without_options_rejects_any_size():
    item = burger()
    item.meal_sizes = None
    with pytest.raises(HTTPException):
        price_line(item, 1, meal_size="Large")


def test_totals_scenario_without_fees():
    totals = compute_totals(Decimal("23.00"), Decimal("0"), Decimal("0"), Decimal("0"))
    assert totals["total"] == Decimal("23.00")
    assert totals["tax"] == Decimal("0.00")


def test_totals_include_fee_and_tax_minus_discount():
    totals = compute_totals(Decimal("23.00"), Decimal("2.50"), Decimal("0.10"), Decimal("5.00"))

    assert totals["tax"] == Decimal("2.30")
    assert totals["total"] == Decimal("22.80")
    assert totals["total"] == totals["subtotal"] + totals["delivery_fee"] + totals["tax"] - totals["discount"]
