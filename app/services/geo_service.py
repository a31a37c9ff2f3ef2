import math
import httpx
import logging
from fastapi import HTTPException

from app.config import get_settings

logger = logging.getLogger("address")

EARTH_RADIUS_KM = 6371
PLACES_URL = "https://maps.googleapis.com/maps/api/place"


def validate_coordinates(latitude, longitude) -> bool:
    try:
        lat = float(latitude)
        lng = float(longitude)
    except (TypeError, ValueError):
        return False
    return -90 <= lat <= 90 and -180 <= lng <= 180


def calculate_distance(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine 大圓距離（公里）"""
    d_lat = math.radians(lat2 - lat1)
    d_lng = math.radians(lng2 - lng1)
    a = (
        math.sin(d_lat / 2) ** 2
        + math.cos(math.radians(lat1)) * math.cos(math.radians(lat2)) * math.sin(d_lng / 2) ** 2
    )
    return EARTH_RADIUS_KM * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


def check_delivery(latitude: float, longitude: float) -> dict:
    """計算與店面的距離並判斷是否在外送範圍內"""
    settings = get_settings()
    if not validate_coordinates(latitude, longitude):
        raise HTTPException(status_code=400, detail="Invalid coordinates")

    distance = calculate_distance(settings.shop_latitude, settings.shop_longitude, float(latitude), float(longitude))
    return {
        "distance_km": distance,
        "can_deliver": distance <= settings.max_delivery_distance_km,
        "max_distance": settings.max_delivery_distance_km,
    }


async def _places_request(endpoint: str, params: dict) -> dict:
    settings = get_settings()
    params = {**params, "key": settings.google_api_key}
    try:
        async with httpx.AsyncClient(timeout=10) as client:
            response = await client.get(f"{PLACES_URL}/{endpoint}/json", params=params)
            response.raise_for_status()
            return response.json()
    except httpx.HTTPError as e:
        logger.error(f"Google Places 呼叫失敗：{endpoint}, {e}")
        raise HTTPException(status_code=502, detail="Failed to reach the mapping service")


async def autocomplete(text: str) -> dict:
    """地址自動完成（轉發 Google 回應）"""
    return await _places_request("autocomplete", {
        "input": text,
        "language": "en",
        "components": "country:es",
    })


async def place_details(place_id: str) -> dict:
    data = await _places_request("details", {"place_id": place_id, "fields": "geometry"})
    if data.get("status") != "OK":
        raise HTTPException(status_code=400, detail=data.get("error_message") or "Failed to fetch place details")
    return data
