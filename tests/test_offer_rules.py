from datetime import datetime, timedelta
from decimal import Decimal

from app.models import Offer, OfferUsage, OfferType
from app.services.offer_service import evaluate_offer, eligible_lines

NOW = datetime(2024, 6, 1, 12, 0)


def offer(**values):
    data = {
        "id": 1,
        "title": "Offer",
        "description": "Offer",
        "type": OfferType.PERCENTAGE,
        "value": Decimal("10"),
        "start_date": NOW - timedelta(days=1),
        "end_date": NOW + timedelta(days=1),
        "is_active": True,
        "applied_to_items": [],
        "applied_to_categories": [],
        "min_order_amount": None,
        "max_discount_amount": None,
        "usage_limit": None,
        "usage_limit_per_user": 1,
    }
    data.update(values)
    return Offer(**data)


def line(item_id, quantity, unit_price, category_id=1):
    unit_price = Decimal(unit_price)
    return {
        "food_item_id": item_id,
        "category_id": category_id,
        "quantity": quantity,
        "unit_price": unit_price,
        "total_price": unit_price * quantity,
    }


def context(lines, delivery_fee="0", delivery_type="delivery"):
    return {
        "subtotal": sum((l["total_price"] for l in lines), Decimal("0")),
        "delivery_fee": Decimal(delivery_fee),
        "delivery_type": delivery_type,
        "lines": lines,
    }


def evaluate(o, lines, user_id=7, **ctx):
    return evaluate_offer(o, user_id, context(lines, **ctx), now=NOW)


def test_percentage_on_fifty():
    result = evaluate(offer(), [line(1, 2, "25.00")])
    assert result == {"valid": True, "discount": Decimal("5.00"), "reason": None}


def test_percentage_is_capped():
    result = evaluate(offer(value=Decimal("50"), max_discount_amount=Decimal("20")), [line(1, 1, "100.00")])
    assert result["discount"] == Decimal("20.00")


def test_percentage_rounds_to_cents():
    result = evaluate(offer(value=Decimal("15")), [line(1, 1, "3.33")])
    assert result["discount"] == Decimal("0.50")


def test_fixed_amount_never_exceeds_subtotal():
    result = evaluate(offer(type=OfferType.FIXED_AMOUNT, value=Decimal("30")), [line(1, 2, "10.00")])
    assert result["discount"] == Decimal("20.00")


def test_bogo_gives_one_free_unit_per_pair():
    result = evaluate(offer(type=OfferType.BUY_ONE_GET_ONE), [line(1, 3, "4.00"), line(2, 4, "2.50")])
    # 3 份送 1 份、4 份送 2 份
    assert result["discount"] == Decimal("9.00")


def test_bogo_single_unit_gives_nothing():
    result = evaluate(offer(type=OfferType.BUY_ONE_GET_ONE), [line(1, 1, "4.00")])
    assert result["valid"] is False


def test_free_delivery_uses_delivery_fee():
    result = evaluate(offer(type=OfferType.FREE_DELIVERY), [line(1, 1, "9.00")], delivery_fee="3.50")
    assert result["discount"] == Decimal("3.50")


def test_free_delivery_not_for_pickup():
    result = evaluate(offer(type=OfferType.FREE_DELIVERY), [line(1, 1, "9.00")], delivery_type="pickup")
    assert result["valid"] is False
    assert "delivery orders" in result["reason"]


def test_combo_needs_every_item():
    combo = offer(type=OfferType.COMBO, value=Decimal("5"), applied_to_items=[1, 2])

    assert evaluate(combo, [line(1, 1, "8.00")])["valid"] is False
    result = evaluate(combo, [line(1, 1, "8.00"), line(2, 1, "3.00"), line(3, 1, "6.00")])
    assert result["discount"] == Decimal("5.00")


def test_inactive_and_out_of_window():
    assert evaluate(offer(is_active=False), [line(1, 1, "10")])["valid"] is False
    assert evaluate(offer(start_date=NOW + timedelta(hours=1)), [line(1, 1, "10")])["reason"] == "This offer has not started yet"
    assert evaluate(offer(end_date=NOW - timedelta(hours=1)), [line(1, 1, "10")])["reason"] == "This offer has expired"


def test_minimum_order_amount():
    o = offer(min_order_amount=Decimal("30"))
    assert evaluate(o, [line(1, 1, "29.99")])["valid"] is False
    assert evaluate(o, [line(1, 1, "30.00")])["valid"] is True


def test_per_user_limit():
    o = offer(usage_limit_per_user=1)
    o.usage_history.append(OfferUsage(user_id=7, discount_amount=Decimal("1.00"), used_at=NOW))

    assert evaluate(o, [line(1, 1, "10")], user_id=7)["reason"] == "You have already used this coupon"
    assert evaluate(o, [line(1, 1, "10")], user_id=8)["valid"] is True


def test_global_usage_limit():
    o = offer(usage_limit=1, usage_limit_per_user=5)
    o.usage_history.append(OfferUsage(user_id=3, discount_amount=Decimal("1.00"), used_at=NOW))

    assert evaluate(o, [line(1, 1, "10")])["reason"] == "This offer has reached its usage limit"


def test_eligibility_by_category():
    o = offer(applied_to_categories=[2])
    lines = [line(1, 1, "10.00", category_id=1), line(2, 1, "20.00", category_id=2)]

    assert [l["food_item_id"] for l in eligible_lines(o, lines)] == [2]
    assert evaluate(o, lines)["discount"] == Decimal("2.00")


def test_no_eligible_lines():
    result = evaluate(offer(applied_to_items=[99]), [line(1, 1, "10.00")])
    assert result["valid"] is False
