from sqlalchemy.orm import Session
from sqlalchemy import func, desc
from datetime import datetime, timedelta
from decimal import Decimal
from typing import List, Dict

from app.models.order import Order, OrderItem, OrderStatus
from app.models.catalog import FoodItem
from app.schemas.common import naive_utc
from app.services.pricing import money

REVENUE_EXCLUDED = (OrderStatus.CANCELLED, OrderStatus.REFUNDED)


def _order_filters(start_date: datetime, end_date: datetime, branch_id: int | None) -> list:
    filters = [Order.created_at >= start_date, Order.created_at <= end_date]
    if branch_id:
        filters.append(Order.branch_id == branch_id)
    return filters


def get_order_stats(db: Session, start_date: datetime, end_date: datetime, branch_id: int | None = None) -> Dict:
    """
    訂單統計（後台用）

    Returns:
        {"total_orders", "total_revenue", "average_order_value", "by_status", "by_delivery_type"}
    """
    filters = _order_filters(start_date, end_date, branch_id)

    total_orders = db.query(func.count(Order.id)).filter(*filters).scalar() or 0

    revenue_row = db.query(
        func.count(Order.id),
        func.coalesce(func.sum(Order.total), 0),
    ).filter(
        *filters,
        Order.status.notin_(REVENUE_EXCLUDED),
    ).one()
    paid_orders, revenue = revenue_row[0], money(revenue_row[1])

    by_status = db.query(
        Order.status,
        func.count(Order.id),
    ).filter(*filters).group_by(Order.status).all()

    by_delivery_type = db.query(
        Order.delivery_type,
        func.count(Order.id),
    ).filter(*filters).group_by(Order.delivery_type).all()

    return {
        "total_orders": total_orders,
        "total_revenue": revenue,
        "average_order_value": money(revenue / paid_orders) if paid_orders else Decimal("0.00"),
        "by_status": {status.value: count for status, count in by_status},
        "by_delivery_type": {delivery_type.value: count for delivery_type, count in by_delivery_type},
    }


def get_top_items(db: Session, start_date: datetime, end_date: datetime,
                  branch_id: int | None = None, limit: int = 5) -> List[Dict]:
    """
    期間內最熱銷品項
    """
    results = db.query(
        FoodItem,
        func.sum(OrderItem.quantity).label('total_qty')
    ).join(
        OrderItem, OrderItem.food_item_id == FoodItem.id
    ).join(
        Order, Order.id == OrderItem.order_id
    ).filter(
        *_order_filters(start_date, end_date, branch_id),
        Order.status.notin_(REVENUE_EXCLUDED),
    ).group_by(
        FoodItem.id
    ).order_by(
        desc('total_qty')
    ).limit(limit).all()

    return [{"food_item": r[0], "count": int(r[1])} for r in results]


def default_window(start_date: datetime | None, end_date: datetime | None) -> tuple[datetime, datetime]:
    """未指定時預設最近 30 天；帶時區的查詢參數轉成 naive UTC 再和資料庫比較"""
    end_date = naive_utc(end_date) or datetime.utcnow()
    start_date = naive_utc(start_date) or end_date - timedelta(days=30)
    return start_date, end_date


def get_orders_in_window(db: Session, start_date: datetime, end_date: datetime,
                         branch_id: int | None = None) -> List[Order]:
    return db.query(Order).filter(
        *_order_filters(start_date, end_date, branch_id)
    ).order_by(Order.created_at.desc()).all()
