from decimal import Decimal
from fastapi import APIRouter, Request, Depends, HTTPException, Query
from sqlalchemy.orm import Session, joinedload
import logging

from app.database import get_db
from app.models.catalog import Category, FoodItem
from app.models.order import OrderItem
from app.schemas.catalog import FoodItemCreate, FoodItemUpdate, FoodItemOut
from app.schemas.common import paginate
from app.services.auth import get_current_user_optional, get_staff_user, get_admin_user
from app.services.i18n import detect_language, localize

router = APIRouter()
logger = logging.getLogger("catalog")

# 以 JSON 存放的客製化選項
OPTION_FIELDS = ("meal_sizes", "extras", "addons", "ingredients")

SORTS = {
    "price-low": [FoodItem.price.asc()],
    "price-high": [FoodItem.price.desc()],
    "rating": [FoodItem.rating_average.desc(), FoodItem.rating_count.desc()],
    "popular": [FoodItem.total_sold.desc()],
    "newest": [FoodItem.created_at.desc()],
}


def food_item_to_out(item: FoodItem, lang: str, raw: bool = False) -> dict:
    data = FoodItemOut.model_validate(item).model_dump(by_alias=True, mode="json")
    data["categoryName"] = item.category.name if item.category else None
    if not raw:
        data["name"] = localize(item.name, lang)
        data["description"] = localize(item.description, lang)
        data["categoryName"] = localize(data["categoryName"], lang)
    return data


def _item_data(payload: FoodItemCreate | FoodItemUpdate, exclude_unset: bool = False) -> dict:
    data = payload.model_dump(exclude_unset=exclude_unset)
    for field in OPTION_FIELDS:
        options = getattr(payload, field)
        if field in data and options is not None:
            data[field] = [option.model_dump(mode="json", by_alias=True) for option in options]
    return data


def _check_category(db: Session, category_id: int):
    if not db.query(Category).filter(Category.id == category_id).first():
        raise HTTPException(status_code=400, detail="Category does not exist")


def _get_item(db: Session, item_id: int) -> FoodItem:
    item = db.query(FoodItem).options(joinedload(FoodItem.category)).filter(FoodItem.id == item_id).first()
    if not item:
        raise HTTPException(status_code=404, detail="Food item not found")
    return item


def _active_items(db: Session):
    return db.query(FoodItem).options(joinedload(FoodItem.category)).filter(
        FoodItem.is_active == True,
        FoodItem.is_available == True,
    )


@router.get("")
async def list_food_items(
    request: Request,
    category: int | None = None,
    is_veg: bool | None = Query(None, alias="isVeg"),
    price_min: Decimal | None = Query(None, alias="priceMin", ge=0),
    price_max: Decimal | None = Query(None, alias="priceMax", ge=0),
    featured: bool | None = None,
    sort: str | None = None,
    page: int = Query(1, ge=1),
    limit: int = Query(12, ge=1, le=50),
    raw: bool = False,
    db: Session = Depends(get_db),
):
    """菜單列表（篩選、排序、分頁）"""
    user = await get_current_user_optional(request, db)
    lang = detect_language(request, user)

    query = _active_items(db)
    if category:
        query = query.filter(FoodItem.category_id == category)
    if is_veg is not None:
        query = query.filter(FoodItem.is_veg == is_veg)
    if price_min is not None:
        query = query.filter(FoodItem.price >= price_min)
    if price_max is not None:
        query = query.filter(FoodItem.price <= price_max)
    if featured is not None:
        query = query.filter(FoodItem.is_featured == featured)

    total = query.count()
    order_by = SORTS.get(sort, [FoodItem.is_featured.desc(), FoodItem.created_at.desc()])
    items = query.order_by(*order_by, FoodItem.id).offset((page - 1) * limit).limit(limit).all()

    return {
        "success": True,
        "count": len(items),
        "total": total,
        **paginate(total, page, limit),
        "foodItems": [food_item_to_out(item, lang, raw) for item in items],
    }


@router.get("/featured")
async def featured_items(request: Request, limit: int = Query(8, ge=1, le=50), db: Session = Depends(get_db)):
    user = await get_current_user_optional(request, db)
    lang = detect_language(request, user)

    items = _active_items(db).filter(FoodItem.is_featured == True).order_by(
        FoodItem.rating_average.desc(), FoodItem.id
    ).limit(limit).all()

    return {"success": True, "count": len(items), "foodItems": [food_item_to_out(i, lang) for i in items]}


@router.get("/popular")
async def popular_items(request: Request, limit: int = Query(8, ge=1, le=50), db: Session = Depends(get_db)):
    """熱門品項：標記為熱門者優先，再依銷量"""
    user = await get_current_user_optional(request, db)
    lang = detect_language(request, user)

    items = _active_items(db).order_by(
        FoodItem.is_popular.desc(), FoodItem.total_sold.desc(), FoodItem.id
    ).limit(limit).all()

    return {"success": True, "count": len(items), "foodItems": [food_item_to_out(i, lang) for i in items]}


@router.get("/{item_id}")
async def get_food_item(item_id: int, request: Request, raw: bool = False, db: Session = Depends(get_db)):
    user = await get_current_user_optional(request, db)
    item = _get_item(db, item_id)
    if not item.is_active and not (user and user.is_staff):
        raise HTTPException(status_code=404, detail="Food item not found")

    return {"success": True, "foodItem": food_item_to_out(item, detect_language(request, user), raw)}


@router.post("", status_code=201)
async def create_food_item(payload: FoodItemCreate, request: Request, db: Session = Depends(get_db)):
    await get_staff_user(request, db)
    _check_category(db, payload.category_id)

    item = FoodItem(**_item_data(payload))
    db.add(item)
    db.commit()
    item = _get_item(db, item.id)
    logger.info(f"新增品項：{localize(item.name)} (id={item.id}), 價格={item.price}, 庫存={item.stock_quantity}")

    return {"success": True, "message": "Food item created successfully", "foodItem": food_item_to_out(item, "en", raw=True)}


@router.put("/{item_id}")
async def update_food_item(item_id: int, payload: FoodItemUpdate, request: Request, db: Session = Depends(get_db)):
    await get_staff_user(request, db)
    item = _get_item(db, item_id)

    data = _item_data(payload, exclude_unset=True)
    if data.get("category_id") is not None:
        _check_category(db, data["category_id"])

    for field, value in data.items():
        # 可清空的欄位才接受 null
        if value is None and field not in ("original_price", "available_from", "available_until"):
            continue
        setattr(item, field, value)

    db.commit()
    item = _get_item(db, item_id)
    return {"success": True, "message": "Food item updated successfully", "foodItem": food_item_to_out(item, "en", raw=True)}


@router.delete("/{item_id}")
async def delete_food_item(item_id: int, request: Request, db: Session = Depends(get_db)):
    await get_admin_user(request, db)
    item = _get_item(db, item_id)

    # 已有訂單引用的品項只下架，保留訂單快照的關聯
    if db.query(OrderItem).filter(OrderItem.food_item_id == item.id).first():
        item.is_active = False
        db.commit()
        logger.info(f"下架品項：id={item_id}")
        return {"success": True, "message": "Food item has orders and was deactivated instead"}

    db.delete(item)
    db.commit()
    logger.info(f"刪除品項：id={item_id}")
    return {"success": True, "message": "Food item deleted successfully"}
