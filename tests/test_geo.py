import pytest
from fastapi import HTTPException

from app.services.geo_service import calculate_distance, check_delivery, validate_coordinates

SHOP = (41.3995, 2.1909)
KM_PER_DEGREE_LAT = 6371 * 3.141592653589793 / 180


def test_distance_to_itself_is_zero():
    assert calculate_distance(*SHOP, *SHOP) == 0


def test_distance_along_meridian():
    north = SHOP[0] + 7.2 / KM_PER_DEGREE_LAT
    assert calculate_distance(*SHOP, north, SHOP[1]) == pytest.approx(7.2, abs=0.01)


def test_far_point_cannot_be_delivered():
    result = check_delivery(SHOP[0] + 7.2 / KM_PER_DEGREE_LAT, SHOP[1])

    assert result["can_deliver"] is False
    assert round(result["distance_km"], 1) == 7.2
    assert result["max_distance"] == 6


def test_near_point_can_be_delivered():
    result = check_delivery(SHOP[0] + 1 / KM_PER_DEGREE_LAT, SHOP[1])
    assert result["can_deliver"] is True


@pytest.mark.parametrize("lat, lng", [(91, 0), (-90.5, 0), (0, 181), (0, -180.1), ("abc", 0), (None, 2)])
def test_invalid_coordinates(lat, lng):
    assert validate_coordinates(lat, lng) is False


def test_check_delivery_rejects_invalid_coordinates():
    with pytest.raises(HTTPException) as exc:
        check_delivery(100, 2)
    assert exc.value.status_code == 400
