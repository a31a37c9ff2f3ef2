"""訂單建立與狀態流程"""
from datetime import datetime, timedelta
from decimal import Decimal
from fastapi import HTTPException
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging
import random
import time

from app.config import get_settings
from app.models.address import Address
from app.models.branch import Branch
from app.models.catalog import FoodItem
from app.models.order import Order, OrderItem, OrderStatus, DeliveryType
from app.models.user import User
from app.schemas.common import option_name
from app.schemas.order import OrderCreate, OrderItemIn, RatingRequest
from app.services.offer_service import find_by_coupon_code, lock_offer, evaluate_offer, record_usage
from app.services.pricing import money, price_line, compute_totals
from app.services.stock_service import decrement_stock, restore_stock

logger = logging.getLogger("orders")

STATUS_FLOW = [
    OrderStatus.PENDING,
    OrderStatus.CONFIRMED,
    OrderStatus.PREPARING,
    OrderStatus.READY,
    OrderStatus.OUT_FOR_DELIVERY,
    OrderStatus.DELIVERED,
]
TERMINAL_STATUSES = {OrderStatus.DELIVERED, OrderStatus.CANCELLED, OrderStatus.REFUNDED}


def can_transition(current: OrderStatus, new: OrderStatus) -> bool:
    """狀態只能往前走（可跳過中間步驟）；取消限未完成的訂單；退款限已取消的訂單"""
    if new == OrderStatus.REFUNDED:
        return current == OrderStatus.CANCELLED
    if new == OrderStatus.CANCELLED:
        return current not in TERMINAL_STATUSES
    if current in (OrderStatus.CANCELLED, OrderStatus.REFUNDED):
        return False
    if new == current:
        return True
    return STATUS_FLOW.index(new) > STATUS_FLOW.index(current)


def generate_order_number() -> str:
    return f"ORD{int(time.time() * 1000)}{random.randint(0, 999):03d}"


def price_items(db: Session, items: list[OrderItemIn]) -> tuple[list[dict], Decimal]:
    """逐項查菜單計價，任何一項不可訂就整張拒絕（此時尚未動到庫存）"""
    lines = []
    subtotal = Decimal("0")

    for item_in in items:
        food_item = db.query(FoodItem).filter(FoodItem.id == item_in.food_item_id).first()
        if not food_item or not food_item.is_orderable:
            raise HTTPException(status_code=400, detail=f"Food item {item_in.food_item_id} is not available")

        line = price_line(
            food_item,
            item_in.quantity,
            meal_size=option_name(item_in.selected_meal_size),
            extras=[option_name(e) for e in item_in.selected_extras],
            addons=[option_name(a) for a in item_in.selected_addons],
        )
        line["special_instructions"] = item_in.special_instructions
        lines.append(line)
        subtotal += line["total_price"]

    return lines, money(subtotal)


def resolve_delivery_fee(delivery_type: DeliveryType, requested: Decimal | None) -> Decimal:
    if delivery_type != DeliveryType.DELIVERY:
        return Decimal("0.00")
    if requested is not None:
        return money(requested)
    return money(get_settings().default_delivery_fee)


def _resolve_delivery_address(db: Session, user: User, payload: OrderCreate) -> dict | None:
    if payload.delivery_type != DeliveryType.DELIVERY:
        return None
    if payload.address_id is not None:
        address = db.query(Address).filter(
            Address.id == payload.address_id,
            Address.user_id == user.id,
        ).first()
        if not address:
            raise HTTPException(status_code=404, detail="Address not found")
        return {
            "address": address.address,
            "apartment": address.apartment,
            "instructions": address.instructions,
            "latitude": address.latitude,
            "longitude": address.longitude,
        }
    return payload.delivery_address.model_dump(by_alias=True)


def create_order(db: Session, user: User, payload: OrderCreate) -> Order:
    """建立訂單

    先驗證並計價所有品項，再於同一個交易內扣庫存、寫入訂單與優惠使用紀錄，
    任何一步失敗整筆 rollback。
    """
    settings = get_settings()

    branch = db.query(Branch).filter(Branch.id == payload.branch_id).first()
    if not branch or not branch.is_active:
        raise HTTPException(status_code=400, detail="Branch is not available")

    delivery_address = _resolve_delivery_address(db, user, payload)
    lines, subtotal = price_items(db, payload.items)
    delivery_fee = resolve_delivery_fee(payload.delivery_type, payload.delivery_fee)

    offer = None
    discount = Decimal("0")
    coupon_code = None
    if payload.coupon_code and payload.coupon_code.strip():
        offer = find_by_coupon_code(db, payload.coupon_code)
        if not offer:
            raise HTTPException(status_code=400, detail="Invalid coupon code")
        offer = lock_offer(db, offer)
        result = evaluate_offer(offer, user.id, {
            "subtotal": subtotal,
            "delivery_fee": delivery_fee,
            "delivery_type": payload.delivery_type.value,
            "lines": lines,
        })
        if not result["valid"]:
            raise HTTPException(status_code=400, detail=result["reason"])
        discount = result["discount"]
        coupon_code = offer.coupon_code

    totals = compute_totals(subtotal, delivery_fee, settings.tax_rate, discount)

    if payload.total is not None and abs(money(payload.total) - totals["total"]) > Decimal("0.01"):
        logger.warning(
            f"客戶端總額不符：user={user.id}, client={money(payload.total)}, server={totals['total']}"
        )
        if settings.reject_total_mismatch:
            raise HTTPException(status_code=400, detail="Order total does not match, please refresh your cart")

    now = datetime.utcnow()
    prep_minutes = max(line["preparation_time"] or 0 for line in lines)
    if payload.delivery_type == DeliveryType.DELIVERY:
        prep_minutes += settings.delivery_time_minutes

    try:
        for line in lines:
            decrement_stock(db, line["food_item_id"], line["quantity"], strict=settings.enforce_stock)

        order = Order(
            order_number=generate_order_number(),
            user_id=user.id,
            branch_id=branch.id,
            subtotal=totals["subtotal"],
            delivery_fee=totals["delivery_fee"],
            tax=totals["tax"],
            discount=totals["discount"],
            coupon_code=coupon_code,
            total=totals["total"],
            payment_method=payload.payment_method,
            cod_type=payload.cod_type if payload.payment_method.is_cod else None,
            delivery_type=payload.delivery_type,
            delivery_address=delivery_address,
            special_instructions=payload.special_instructions,
            status=OrderStatus.PENDING,
            tracking_updates=[],
            estimated_delivery_time=now + timedelta(minutes=prep_minutes),
            created_at=now,
        )
        order.add_tracking_update(OrderStatus.PENDING, "Order placed")

        for position, line in enumerate(lines):
            order.items.append(OrderItem(
                food_item_id=line["food_item_id"],
                position=position,
                item_name=line["item_name"],
                quantity=line["quantity"],
                selected_meal_size=line["selected_meal_size"],
                selected_extras=line["selected_extras"],
                selected_addons=line["selected_addons"],
                special_instructions=line["special_instructions"],
                unit_price=line["unit_price"],
                total_price=line["total_price"],
            ))

        db.add(order)
        db.flush()

        if offer:
            record_usage(db, offer, user.id, order.id, totals["discount"])

        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(order)
    logger.info(
        f"訂單建立：{order.order_number}, user={user.id}, 品項={len(lines)}, "
        f"小計={order.subtotal}, 折扣={order.discount}, 總額={order.total}"
    )
    return order


def cancel_order(db: Session, order: Order, reason: str, cancelled_by: str) -> Order:
    """取消訂單並回補每個品項的庫存

    先以條件式 UPDATE 搶下取消（狀態仍未結束才會更新到一列），
    搶到的請求才回補庫存，同一張訂單不會被回補兩次。
    """
    if order.status in TERMINAL_STATUSES:
        raise HTTPException(status_code=400, detail="Order cannot be cancelled")

    try:
        claimed = db.execute(
            update(Order)
            .where(Order.id == order.id, Order.status.notin_(TERMINAL_STATUSES))
            .values(status=OrderStatus.CANCELLED)
            .execution_options(synchronize_session=False)
        )
        if claimed.rowcount == 0:
            raise HTTPException(status_code=400, detail="Order cannot be cancelled")

        order.cancellation_reason = reason
        order.cancelled_by = cancelled_by
        order.cancelled_at = datetime.utcnow()
        order.add_tracking_update(OrderStatus.CANCELLED, f"Order cancelled: {reason}")

        for item in order.items:
            restore_stock(db, item.food_item_id, item.quantity)

        db.commit()
    except Exception:
        db.rollback()
        raise

    logger.info(f"訂單取消：{order.order_number}, by={cancelled_by}, 原因={reason}")
    return order


def update_status(db: Session, order: Order, new_status: OrderStatus, message: str | None = None) -> Order:
    """更新訂單狀態，附加追蹤紀錄；送達時間只記錄第一次"""
    settings = get_settings()

    if settings.enforce_status_transitions and not can_transition(order.status, new_status):
        raise HTTPException(
            status_code=400,
            detail=f"Cannot change order status from {order.status.value} to {new_status.value}",
        )

    if new_status == OrderStatus.CANCELLED:
        return cancel_order(db, order, message or "Cancelled by staff", "admin")

    order.add_tracking_update(new_status, message or f"Order status updated to {new_status.value}")
    if new_status == OrderStatus.DELIVERED and not order.actual_delivery_time:
        order.actual_delivery_time = datetime.utcnow()

    db.commit()
    logger.info(f"訂單狀態：{order.order_number} → {new_status.value}")
    return order


def rate_order(db: Session, order: Order, payload: RatingRequest) -> Order:
    if order.status != OrderStatus.DELIVERED:
        raise HTTPException(status_code=400, detail="Can only rate delivered orders")
    if order.is_rated:
        raise HTTPException(status_code=400, detail="Order has already been rated")

    order.rating_food = payload.food
    order.rating_delivery = payload.delivery
    order.rating_overall = payload.overall
    order.rating_comment = payload.comment.strip() if payload.comment else None
    order.rated_at = datetime.utcnow()
    db.commit()
    return order
