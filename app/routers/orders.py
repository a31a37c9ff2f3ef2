from datetime import datetime
from fastapi import APIRouter, Request, Depends, HTTPException, Query
from fastapi.responses import StreamingResponse
from sqlalchemy.orm import Session, selectinload
import logging

from app.database import get_db
from app.models.order import Order, OrderStatus
from app.models.user import User
from app.schemas.common import paginate
from app.schemas.order import OrderCreate, OrderOut, StatusUpdate, CancelRequest, RatingRequest
from app.services.auth import get_current_user, get_staff_user
from app.services.email_service import EmailDeliveryError, send_order_confirmation_email
from app.services.excel_service import export_orders_to_excel
from app.services.i18n import detect_language, localize
from app.services.order_service import create_order, cancel_order, update_status, rate_order
from app.services.stats_service import get_order_stats, get_top_items, get_orders_in_window, default_window

router = APIRouter()
logger = logging.getLogger("orders")


def order_to_out(order: Order, lang: str = "en") -> dict:
    data = OrderOut.model_validate(order).model_dump(by_alias=True, mode="json")
    for item_data, item in zip(data["items"], order.items):
        item_data["itemName"] = localize(item.item_name, lang)
    return data


def _get_order(db: Session, order_id: int) -> Order:
    order = db.query(Order).options(selectinload(Order.items)).filter(Order.id == order_id).first()
    if not order:
        raise HTTPException(status_code=404, detail="Order not found")
    return order


def _check_access(order: Order, user: User):
    """訂單本人或管理員/店長"""
    if order.user_id != user.id and not user.is_staff:
        raise HTTPException(status_code=403, detail="Not authorized to access this order")


@router.post("", status_code=201)
async def place_order(payload: OrderCreate, request: Request, db: Session = Depends(get_db)):
    """下單"""
    user = await get_current_user(request, db)
    lang = detect_language(request, user)

    order = create_order(db, user, payload)

    # 確認信寄送失敗不影響訂單
    try:
        await send_order_confirmation_email(user.email, user.first_name, order, lang)
    except EmailDeliveryError:
        logger.warning(f"訂單確認信寄送失敗：{order.order_number}")

    return {"success": True, "message": "Order placed successfully", "order": order_to_out(order, lang)}


@router.get("")
async def list_my_orders(
    request: Request,
    page: int = Query(1, ge=1),
    limit: int = Query(10, ge=1, le=50),
    status: OrderStatus | None = None,
    db: Session = Depends(get_db),
):
    """我的訂單"""
    user = await get_current_user(request, db)
    lang = detect_language(request, user)

    query = db.query(Order).filter(Order.user_id == user.id)
    if status:
        query = query.filter(Order.status == status)

    total = query.count()
    orders = query.options(selectinload(Order.items)).order_by(
        Order.created_at.desc(), Order.id.desc()
    ).offset((page - 1) * limit).limit(limit).all()

    return {
        "success": True,
        "count": len(orders),
        "totalOrders": total,
        **paginate(total, page, limit),
        "orders": [order_to_out(o, lang) for o in orders],
    }


@router.get("/stats")
async def order_stats(
    request: Request,
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    branch_id: int | None = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
):
    """訂單統計（管理員/店長）"""
    user = await get_staff_user(request, db)
    lang = detect_language(request, user)
    start_date, end_date = default_window(start_date, end_date)

    stats = get_order_stats(db, start_date, end_date, branch_id)
    top_items = get_top_items(db, start_date, end_date, branch_id)

    return {
        "success": True,
        "stats": {
            "startDate": start_date.isoformat(),
            "endDate": end_date.isoformat(),
            "totalOrders": stats["total_orders"],
            "totalRevenue": float(stats["total_revenue"]),
            "averageOrderValue": float(stats["average_order_value"]),
            "byStatus": stats["by_status"],
            "byDeliveryType": stats["by_delivery_type"],
            "topItems": [
                {"foodItemId": t["food_item"].id, "name": localize(t["food_item"].name, lang), "count": t["count"]}
                for t in top_items
            ],
        },
    }


@router.get("/export")
async def export_orders(
    request: Request,
    start_date: datetime | None = Query(None, alias="startDate"),
    end_date: datetime | None = Query(None, alias="endDate"),
    branch_id: int | None = Query(None, alias="branchId"),
    db: Session = Depends(get_db),
):
    """匯出訂單 Excel（管理員/店長）"""
    user = await get_staff_user(request, db)
    start_date, end_date = default_window(start_date, end_date)

    orders = get_orders_in_window(db, start_date, end_date, branch_id)
    output = export_orders_to_excel(orders, start_date, end_date, detect_language(request, user))
    filename = f"orders_{start_date.strftime('%Y%m%d')}_{end_date.strftime('%Y%m%d')}.xlsx"
    logger.info(f"匯出訂單：{len(orders)} 筆, by={user.email}")

    return StreamingResponse(
        output,
        media_type="application/vnd.openxmlformats-officedocument.spreadsheetml.sheet",
        headers={"Content-Disposition": f"attachment; filename={filename}"},
    )


@router.get("/{order_id}")
async def get_order(order_id: int, request: Request, db: Session = Depends(get_db)):
    user = await get_current_user(request, db)
    order = _get_order(db, order_id)
    _check_access(order, user)

    return {"success": True, "order": order_to_out(order, detect_language(request, user))}


@router.patch("/{order_id}/status")
async def change_status(order_id: int, payload: StatusUpdate, request: Request, db: Session = Depends(get_db)):
    """更新訂單狀態（管理員/店長）"""
    user = await get_staff_user(request, db)
    order = _get_order(db, order_id)

    order = update_status(db, order, payload.status, payload.message)
    return {
        "success": True,
        "message": "Order status updated successfully",
        "order": order_to_out(order, detect_language(request, user)),
    }


@router.patch("/{order_id}/cancel")
async def cancel(order_id: int, payload: CancelRequest, request: Request, db: Session = Depends(get_db)):
    """取消訂單：本人或管理員/店長"""
    user = await get_current_user(request, db)
    order = _get_order(db, order_id)
    _check_access(order, user)

    cancelled_by = "admin" if user.is_staff else "customer"
    order = cancel_order(db, order, payload.reason, cancelled_by)
    return {
        "success": True,
        "message": "Order cancelled successfully",
        "order": order_to_out(order, detect_language(request, user)),
    }


@router.post("/{order_id}/rating")
async def rate(order_id: int, payload: RatingRequest, request: Request, db: Session = Depends(get_db)):
    """評分：只限訂單本人、已送達、一次"""
    user = await get_current_user(request, db)
    order = _get_order(db, order_id)
    if order.user_id != user.id:
        raise HTTPException(status_code=403, detail="Not authorized to rate this order")

    order = rate_order(db, order, payload)
    return {
        "success": True,
        "message": "Thank you for your feedback",
        "rating": order.rating and {**order.rating, "ratedAt": order.rated_at.isoformat()},
    }
