from datetime import datetime
from fastapi import APIRouter, Request, Depends, HTTPException, Query
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.models.offer import Offer, OfferType
from app.schemas.common import paginate
from app.schemas.offer import OfferCreate, OfferUpdate, OfferOut, ValidateCouponRequest
from app.services.auth import get_current_user, get_current_user_optional, get_staff_user, get_admin_user
from app.services.offer_service import find_by_coupon_code, evaluate_offer, get_offer_stats
from app.services.order_service import price_items, resolve_delivery_fee

router = APIRouter()
logger = logging.getLogger("offers")


def offer_to_out(offer: Offer) -> dict:
    return OfferOut.model_validate(offer).model_dump(by_alias=True, mode="json")


def _get_offer(db: Session, offer_id: int) -> Offer:
    offer = db.query(Offer).filter(Offer.id == offer_id).first()
    if not offer:
        raise HTTPException(status_code=404, detail="Offer not found")
    return offer


def _current_offers(db: Session):
    now = datetime.utcnow()
    return db.query(Offer).filter(
        Offer.is_active == True,
        Offer.start_date <= now,
        Offer.end_date >= now,
    ).order_by(Offer.priority.desc(), Offer.is_featured.desc(), Offer.created_at.desc(), Offer.id.desc())


def _check_coupon_unique(db: Session, code: str | None, offer_id: int | None = None):
    if not code:
        return
    existing = find_by_coupon_code(db, code)
    if existing and existing.id != offer_id:
        raise HTTPException(status_code=400, detail="Coupon code already exists")


@router.get("")
async def list_offers(
    request: Request,
    featured: bool | None = None,
    type: OfferType | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(20, ge=1, le=50),
    db: Session = Depends(get_db),
):
    """進行中的優惠；登入時只列出自己還能用的"""
    user = await get_current_user_optional(request, db)

    query = _current_offers(db)
    if featured is not None:
        query = query.filter(Offer.is_featured == featured)
    if type:
        query = query.filter(Offer.type == type)

    offers = [o for o in query.all() if o.is_valid]
    if user:
        offers = [o for o in offers if o.can_user_use(user.id)]

    total = len(offers)
    page_offers = offers[(page - 1) * limit:page * limit]

    return {
        "success": True,
        "count": len(page_offers),
        "totalOffers": total,
        **paginate(total, page, limit),
        "offers": [offer_to_out(o) for o in page_offers],
    }


@router.get("/featured")
async def featured_offers(request: Request, db: Session = Depends(get_db)):
    """首頁精選優惠（最多 6 筆）；登入時只列出自己還能用的"""
    user = await get_current_user_optional(request, db)

    offers = [o for o in _current_offers(db).filter(Offer.is_featured == True).all() if o.is_valid]
    if user:
        offers = [o for o in offers if o.can_user_use(user.id)]
    offers = offers[:6]
    return {"success": True, "count": len(offers), "offers": [offer_to_out(o) for o in offers]}


@router.post("/validate-coupon")
async def validate_coupon(payload: ValidateCouponRequest, request: Request, db: Session = Depends(get_db)):
    """試算優惠券（不會記錄使用）"""
    user = await get_current_user(request, db)

    offer = find_by_coupon_code(db, payload.coupon_code)
    if not offer:
        raise HTTPException(status_code=404, detail="Invalid coupon code")

    details = payload.order_details
    lines, subtotal = price_items(db, details.items)
    delivery_fee = resolve_delivery_fee(details.delivery_type, details.delivery_fee)

    result = evaluate_offer(offer, user.id, {
        "subtotal": subtotal,
        "delivery_fee": delivery_fee,
        "delivery_type": details.delivery_type.value,
        "lines": lines,
    })
    if not result["valid"]:
        raise HTTPException(status_code=400, detail=result["reason"])

    return {
        "success": True,
        "message": "Coupon applied successfully",
        "offer": {
            "id": offer.id,
            "title": offer.title,
            "type": offer.type.value,
            "couponCode": offer.coupon_code,
        },
        "subtotal": float(subtotal),
        "discount": float(result["discount"]),
    }


@router.get("/{offer_id}")
async def get_offer(offer_id: int, request: Request, db: Session = Depends(get_db)):
    user = await get_current_user_optional(request, db)
    offer = _get_offer(db, offer_id)
    if not offer.is_active:
        raise HTTPException(status_code=404, detail="Offer not found")

    return {
        "success": True,
        "offer": offer_to_out(offer),
        "userCanUse": offer.can_user_use(user.id) if user else offer.is_valid,
    }


@router.post("", status_code=201)
async def create_offer(payload: OfferCreate, request: Request, db: Session = Depends(get_db)):
    await get_staff_user(request, db)
    _check_coupon_unique(db, payload.coupon_code)

    offer = Offer(**payload.model_dump())
    db.add(offer)
    db.commit()
    db.refresh(offer)
    logger.info(f"新增優惠：{offer.title} (id={offer.id}), type={offer.type.value}, code={offer.coupon_code}")

    return {"success": True, "message": "Offer created successfully", "offer": offer_to_out(offer)}


@router.put("/{offer_id}")
async def update_offer(offer_id: int, payload: OfferUpdate, request: Request, db: Session = Depends(get_db)):
    await get_staff_user(request, db)
    offer = _get_offer(db, offer_id)

    data = payload.model_dump(exclude_unset=True)
    if "coupon_code" in data:
        _check_coupon_unique(db, data["coupon_code"], offer.id)

    nullable = ("image_url", "coupon_code", "min_order_amount", "max_discount_amount", "usage_limit")
    for field, value in data.items():
        if value is None and field not in nullable:
            continue
        setattr(offer, field, value)

    if offer.end_date <= offer.start_date:
        raise HTTPException(status_code=400, detail="End date must be after start date")
    if offer.type == OfferType.PERCENTAGE and offer.value > 100:
        raise HTTPException(status_code=400, detail="Percentage value cannot exceed 100")

    db.commit()
    db.refresh(offer)
    return {"success": True, "message": "Offer updated successfully", "offer": offer_to_out(offer)}


@router.delete("/{offer_id}")
async def delete_offer(offer_id: int, request: Request, db: Session = Depends(get_db)):
    await get_admin_user(request, db)
    offer = _get_offer(db, offer_id)

    db.delete(offer)
    db.commit()
    logger.info(f"刪除優惠：id={offer_id}")
    return {"success": True, "message": "Offer deleted successfully"}


@router.get("/{offer_id}/stats")
async def offer_stats(offer_id: int, request: Request, db: Session = Depends(get_db)):
    await get_staff_user(request, db)
    offer = _get_offer(db, offer_id)
    stats = get_offer_stats(offer)

    return {
        "success": True,
        "stats": {
            "totalUsage": stats["total_usage"],
            "remainingUses": stats["remaining_uses"],
            "totalDiscountGiven": float(stats["total_discount_given"]),
            "averageDiscountPerUse": float(stats["average_discount_per_use"]),
            "uniqueUsers": stats["unique_users"],
            "recentUsage": [
                {
                    "userId": u["user_id"],
                    "orderId": u["order_id"],
                    "discountAmount": float(u["discount_amount"]),
                    "usedAt": u["used_at"].isoformat(),
                }
                for u in stats["recent_usage"]
            ],
        },
    }
