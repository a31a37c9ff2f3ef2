from fastapi import APIRouter, Request, Depends, HTTPException, Query
from sqlalchemy import update
from sqlalchemy.orm import Session
import logging

from app.database import get_db
from app.models.address import Address
from app.models.user import User
from app.schemas.address import AddressCreate, AddressUpdate, AddressOut, ValidateAddressRequest
from app.services.auth import get_current_user
from app.services.geo_service import check_delivery, autocomplete, place_details

router = APIRouter()
logger = logging.getLogger("address")


def address_to_out(address: Address) -> dict:
    return AddressOut.model_validate(address).model_dump(by_alias=True, mode="json")


def _get_address(db: Session, address_id: int, user: User) -> Address:
    address = db.query(Address).filter(Address.id == address_id, Address.user_id == user.id).first()
    if not address:
        raise HTTPException(status_code=404, detail="Address not found")
    return address


def _ensure_deliverable(latitude: float, longitude: float):
    result = check_delivery(latitude, longitude)
    if not result["can_deliver"]:
        raise HTTPException(status_code=400, detail={
            "message": f"Sorry, we only deliver within {result['max_distance']}km of our location",
            "distance": f"{result['distance_km']:.1f}",
        })


def _clear_defaults(db: Session, user_id: int):
    """清掉該使用者所有預設地址（不 commit，和設定新預設在同一個交易）"""
    db.execute(
        update(Address)
        .where(Address.user_id == user_id, Address.is_default == True)
        .values(is_default=False)
        .execution_options(synchronize_session="evaluate")
    )


def _user_addresses(db: Session, user: User) -> list[Address]:
    return db.query(Address).filter(Address.user_id == user.id).order_by(
        Address.is_default.desc(), Address.created_at.desc(), Address.id.desc()
    ).all()


@router.get("")
async def list_addresses(request: Request, db: Session = Depends(get_db)):
    """我的地址，預設地址排最前"""
    user = await get_current_user(request, db)
    addresses = _user_addresses(db, user)
    return {"success": True, "count": len(addresses), "addresses": [address_to_out(a) for a in addresses]}


@router.post("", status_code=201)
async def create_address(payload: AddressCreate, request: Request, db: Session = Depends(get_db)):
    user = await get_current_user(request, db)
    _ensure_deliverable(payload.latitude, payload.longitude)

    # 第一個地址自動設為預設
    has_addresses = db.query(Address).filter(Address.user_id == user.id).first() is not None
    is_default = payload.is_default or not has_addresses

    try:
        if is_default:
            _clear_defaults(db, user.id)
        address = Address(user_id=user.id, **payload.model_dump(exclude={"is_default"}), is_default=is_default)
        db.add(address)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(address)
    logger.info(f"新增地址：user={user.id}, address={address.id}, default={address.is_default}")
    return {"success": True, "message": "Address added successfully", "address": address_to_out(address)}


@router.put("/{address_id}")
async def update_address(address_id: int, payload: AddressUpdate, request: Request, db: Session = Depends(get_db)):
    user = await get_current_user(request, db)
    address = _get_address(db, address_id, user)
    data = payload.model_dump(exclude_unset=True)

    latitude = data.get("latitude") if data.get("latitude") is not None else address.latitude
    longitude = data.get("longitude") if data.get("longitude") is not None else address.longitude
    if (latitude, longitude) != (address.latitude, address.longitude):
        _ensure_deliverable(latitude, longitude)

    try:
        if data.get("is_default") and not address.is_default:
            _clear_defaults(db, user.id)
        for field, value in data.items():
            if value is None and field not in ("apartment", "instructions"):
                continue
            setattr(address, field, value)
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(address)
    return {"success": True, "message": "Address updated successfully", "address": address_to_out(address)}


@router.delete("/{address_id}")
async def delete_address(address_id: int, request: Request, db: Session = Depends(get_db)):
    """刪除地址；刪的是預設地址時，改由最新的一筆接手"""
    user = await get_current_user(request, db)
    address = _get_address(db, address_id, user)
    was_default = address.is_default

    try:
        db.delete(address)
        db.flush()
        if was_default:
            replacement = db.query(Address).filter(Address.user_id == user.id).order_by(
                Address.created_at.desc(), Address.id.desc()
            ).first()
            if replacement:
                replacement.is_default = True
        db.commit()
    except Exception:
        db.rollback()
        raise

    return {"success": True, "message": "Address deleted successfully"}


@router.patch("/{address_id}/default")
async def set_default_address(address_id: int, request: Request, db: Session = Depends(get_db)):
    user = await get_current_user(request, db)
    address = _get_address(db, address_id, user)

    try:
        _clear_defaults(db, user.id)
        address.is_default = True
        db.commit()
    except Exception:
        db.rollback()
        raise

    db.refresh(address)
    return {"success": True, "message": "Default address updated", "address": address_to_out(address)}


@router.post("/validate")
async def validate_address(payload: ValidateAddressRequest, request: Request, db: Session = Depends(get_db)):
    """檢查座標是否在外送範圍內"""
    await get_current_user(request, db)
    result = check_delivery(payload.latitude, payload.longitude)
    return {
        "success": True,
        "distance": f"{result['distance_km']:.1f}",
        "canDeliver": result["can_deliver"],
        "maxDistance": result["max_distance"],
    }


@router.get("/autocomplete")
async def address_autocomplete(request: Request, input: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    await get_current_user(request, db)
    return await autocomplete(input)


@router.get("/place-details")
async def address_place_details(request: Request, place_id: str = Query(..., min_length=1), db: Session = Depends(get_db)):
    await get_current_user(request, db)
    return await place_details(place_id)
