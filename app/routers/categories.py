from fastapi import APIRouter, Request, Depends, HTTPException
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.models.catalog import Category, FoodItem
from app.schemas.catalog import CategoryCreate, CategoryUpdate, CategoryOut
from app.services.auth import get_current_user_optional, get_staff_user, get_admin_user
from app.services.i18n import detect_language, localize

router = APIRouter()
logger = logging.getLogger("catalog")


def category_to_out(category: Category, lang: str, raw: bool = False) -> dict:
    data = CategoryOut.model_validate(category).model_dump(by_alias=True, mode="json")
    if not raw:
        data["name"] = localize(category.name, lang)
        data["description"] = localize(category.description, lang)
    return data


def _get_category(db: Session, category_id: int) -> Category:
    category = db.query(Category).filter(Category.id == category_id).first()
    if not category:
        raise HTTPException(status_code=404, detail="Category not found")
    return category


@router.get("")
async def list_categories(request: Request, raw: bool = False, db: Session = Depends(get_db)):
    """啟用中的分類，依排序與名稱"""
    user = await get_current_user_optional(request, db)
    lang = detect_language(request, user)

    categories = db.query(Category).filter(Category.is_active == True).order_by(Category.sort_order, Category.id).all()
    categories.sort(key=lambda c: (c.sort_order, localize(c.name, lang).lower()))

    return {
        "success": True,
        "count": len(categories),
        "categories": [category_to_out(c, lang, raw) for c in categories],
    }


@router.get("/{category_id}")
async def get_category(category_id: int, request: Request, raw: bool = False, db: Session = Depends(get_db)):
    user = await get_current_user_optional(request, db)
    category = _get_category(db, category_id)
    if not category.is_active:
        raise HTTPException(status_code=404, detail="Category not found")

    return {"success": True, "category": category_to_out(category, detect_language(request, user), raw)}


@router.post("", status_code=201)
async def create_category(payload: CategoryCreate, request: Request, db: Session = Depends(get_db)):
    await get_staff_user(request, db)

    category = Category(**payload.model_dump())
    db.add(category)
    db.commit()
    db.refresh(category)
    logger.info(f"新增分類：{localize(category.name)} (id={category.id})")

    return {"success": True, "message": "Category created successfully", "category": category_to_out(category, "en", raw=True)}


@router.put("/{category_id}")
async def update_category(category_id: int, payload: CategoryUpdate, request: Request, db: Session = Depends(get_db)):
    await get_staff_user(request, db)
    category = _get_category(db, category_id)

    for field, value in payload.model_dump(exclude_unset=True).items():
        if value is None and field in ("name", "image_url", "icon", "is_active", "sort_order"):
            continue
        setattr(category, field, value)

    db.commit()
    db.refresh(category)
    return {"success": True, "message": "Category updated successfully", "category": category_to_out(category, "en", raw=True)}


@router.delete("/{category_id}")
async def delete_category(category_id: int, request: Request, db: Session = Depends(get_db)):
    """刪除分類（底下還有品項時不可刪）"""
    await get_admin_user(request, db)
    category = _get_category(db, category_id)

    item_count = db.query(FoodItem).filter(FoodItem.category_id == category.id).count()
    if item_count:
        raise HTTPException(
            status_code=400,
            detail=f"Cannot delete category with {item_count} food items. Move or delete them first.",
        )

    db.delete(category)
    db.commit()
    logger.info(f"刪除分類：id={category_id}")
    return {"success": True, "message": "Category deleted successfully"}
