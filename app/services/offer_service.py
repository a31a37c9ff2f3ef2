"""優惠計算

evaluate_offer 只判斷能不能用、能折多少；使用紀錄由呼叫端在同一個交易內寫入。
"""
from datetime import datetime
from decimal import Decimal
from sqlalchemy import func
from sqlalchemy.orm import Session
import logging

from app.models.offer import Offer, OfferUsage, OfferType
from app.services.pricing import money

logger = logging.getLogger("offers")


def find_by_coupon_code(db: Session, code: str) -> Offer | None:
    if not code or not code.strip():
        return None
    return db.query(Offer).filter(func.upper(Offer.coupon_code) == code.strip().upper()).first()


def lock_offer(db: Session, offer: Offer) -> Offer:
    """鎖住優惠列到交易結束，使用次數的檢查與寫入之間不會有其他訂單插隊"""
    locked = db.query(Offer).filter(Offer.id == offer.id).with_for_update().populate_existing().one()
    # 使用紀錄要在拿到鎖之後重新讀取
    db.expire(locked, ["usage_history"])
    return locked


def _invalid(reason: str) -> dict:
    return {"valid": False, "discount": Decimal("0.00"), "reason": reason}


def eligible_lines(offer: Offer, lines: list[dict]) -> list[dict]:
    """符合指定品項或分類的訂單品項；都沒設定時整張訂單適用"""
    item_ids = {int(i) for i in offer.applied_to_items or []}
    category_ids = {int(c) for c in offer.applied_to_categories or []}
    if not item_ids and not category_ids:
        return list(lines)
    return [
        line for line in lines
        if line["food_item_id"] in item_ids or line.get("category_id") in category_ids
    ]


def calculate_discount(offer: Offer, context: dict, lines: list[dict]) -> Decimal:
    """依優惠類型計算折扣金額（已通過資格檢查）"""
    eligible_subtotal = money(sum((line["total_price"] for line in lines), Decimal("0")))
    value = money(offer.value)

    if offer.type == OfferType.PERCENTAGE:
        discount = eligible_subtotal * value / Decimal("100")
        if offer.max_discount_amount is not None:
            discount = min(discount, money(offer.max_discount_amount))
    elif offer.type == OfferType.FIXED_AMOUNT:
        discount = min(value, eligible_subtotal)
    elif offer.type == OfferType.BUY_ONE_GET_ONE:
        # 每兩份送一份，單數多出的一份照原價
        discount = sum((money(line["unit_price"]) * (line["quantity"] // 2) for line in lines), Decimal("0"))
    elif offer.type == OfferType.FREE_DELIVERY:
        discount = money(context.get("delivery_fee"))
    elif offer.type == OfferType.COMBO:
        discount = min(value, eligible_subtotal)
    else:
        discount = Decimal("0")

    return money(discount)


def evaluate_offer(offer: Offer, user_id: int | None, context: dict, now: datetime | None = None) -> dict:
    """檢查優惠資格並計算折扣

    context: {"subtotal", "delivery_fee", "delivery_type", "lines"}
    回傳 {"valid": bool, "discount": Decimal, "reason": str | None}
    """
    now = now or datetime.utcnow()

    if not offer.is_active:
        return _invalid("This offer is no longer active")
    if now < offer.start_date:
        return _invalid("This offer has not started yet")
    if now > offer.end_date:
        return _invalid("This offer has expired")
    if offer.remaining_uses is not None and offer.remaining_uses <= 0:
        return _invalid("This offer has reached its usage limit")
    if user_id is not None and offer.user_usage_count(user_id) >= offer.usage_limit_per_user:
        return _invalid("You have already used this coupon")

    lines = eligible_lines(offer, context.get("lines", []))
    if not lines:
        return _invalid("This offer does not apply to the items in your order")

    subtotal = money(context.get("subtotal"))
    if offer.min_order_amount is not None and subtotal < money(offer.min_order_amount):
        return _invalid(f"Minimum order amount of {money(offer.min_order_amount)} required")

    if offer.type == OfferType.FREE_DELIVERY and context.get("delivery_type") != "delivery":
        return _invalid("Free delivery only applies to delivery orders")

    if offer.type == OfferType.COMBO:
        cart_ids = {line["food_item_id"] for line in context.get("lines", [])}
        required = {int(i) for i in offer.applied_to_items or []}
        if not required.issubset(cart_ids):
            return _invalid("All combo items must be in your order")

    discount = calculate_discount(offer, context, lines)
    if discount <= 0:
        return _invalid("This offer gives no discount for your order")

    return {"valid": True, "discount": discount, "reason": None}


def record_usage(db: Session, offer: Offer, user_id: int, order_id: int | None, discount: Decimal) -> OfferUsage:
    """寫入使用紀錄（不 commit，由呼叫端決定交易邊界）"""
    usage = OfferUsage(
        offer_id=offer.id,
        user_id=user_id,
        order_id=order_id,
        discount_amount=money(discount),
        used_at=datetime.utcnow(),
    )
    db.add(usage)
    offer.usage_history.append(usage)
    logger.info(f"優惠使用：offer={offer.id}, user={user_id}, order={order_id}, 折扣={usage.discount_amount}")
    return usage


def get_offer_stats(offer: Offer) -> dict:
    history = offer.usage_history
    total_discount = money(sum((u.discount_amount for u in history), Decimal("0")))
    return {
        "total_usage": offer.usage_count,
        "remaining_uses": offer.remaining_uses,
        "total_discount_given": total_discount,
        "average_discount_per_use": money(total_discount / len(history)) if history else Decimal("0.00"),
        "unique_users": len({u.user_id for u in history}),
        "recent_usage": [
            {
                "user_id": u.user_id,
                "order_id": u.order_id,
                "discount_amount": u.discount_amount,
                "used_at": u.used_at,
            }
            for u in history[-10:]
        ],
    }
