"""庫存異動

每次異動都是單一條件式 UPDATE，由資料庫原子地完成，不先讀再寫。
"""
from fastapi import HTTPException
from sqlalchemy import update, case
from sqlalchemy.orm import Session
import logging

from app.models.catalog import FoodItem

logger = logging.getLogger("stock")


def decrement_stock(db: Session, item_id: int, quantity: int, strict: bool = False):
    """扣庫存並累加銷售數

    strict=False 時庫存不足會歸零；strict=True 時庫存不足直接拒絕。
    """
    stmt = update(FoodItem).where(FoodItem.id == item_id)
    if strict:
        stmt = stmt.where(FoodItem.stock_quantity >= quantity).values(
            stock_quantity=FoodItem.stock_quantity - quantity,
        )
    else:
        stmt = stmt.values(
            stock_quantity=case(
                (FoodItem.stock_quantity >= quantity, FoodItem.stock_quantity - quantity),
                else_=0,
            ),
        )
    stmt = stmt.values(total_sold=FoodItem.total_sold + quantity)

    result = db.execute(stmt.execution_options(synchronize_session=False))
    if result.rowcount == 0:
        if strict:
            logger.info(f"庫存不足：item={item_id}, 需求={quantity}")
            raise HTTPException(status_code=400, detail=f"Food item {item_id} is out of stock")
        raise HTTPException(status_code=400, detail=f"Food item {item_id} is not available")

    logger.debug(f"扣庫存：item={item_id}, -{quantity}")


def restore_stock(db: Session, item_id: int, quantity: int) -> bool:
    """回補庫存（取消訂單時使用），品項已被刪除則略過"""
    stmt = (
        update(FoodItem)
        .where(FoodItem.id == item_id)
        .values(
            stock_quantity=FoodItem.stock_quantity + quantity,
            total_sold=case(
                (FoodItem.total_sold >= quantity, FoodItem.total_sold - quantity),
                else_=0,
            ),
        )
        .execution_options(synchronize_session=False)
    )
    result = db.execute(stmt)
    if result.rowcount == 0:
        logger.warning(f"回補庫存失敗，品項不存在：item={item_id}")
        return False

    logger.debug(f"回補庫存：item={item_id}, +{quantity}")
    return True
