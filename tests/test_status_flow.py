import pytest

from app.models import OrderStatus as S
from app.services.order_service import can_transition


@pytest.mark.parametrize("current, new", [
    (S.PENDING, S.CONFIRMED),
    (S.PENDING, S.DELIVERED),
    (S.PREPARING, S.OUT_FOR_DELIVERY),
    (S.READY, S.READY),
    (S.DELIVERED, S.DELIVERED),
    (S.PENDING, S.CANCELLED),
    (S.OUT_FOR_DELIVERY, S.CANCELLED),
    (S.CANCELLED, S.REFUNDED),
])
def test_allowed(current, new):
    assert can_transition(current, new) is True


@pytest.mark.parametrize("current, new", [
    (S.DELIVERED, S.PENDING),
    (S.READY, S.CONFIRMED),
    (S.DELIVERED, S.CANCELLED),
    (S.CANCELLED, S.CANCELLED),
    (S.CANCELLED, S.PENDING),
    (S.PENDING, S.REFUNDED),
    (S.REFUNDED, S.DELIVERED),
])
def test_rejected(current, new):
    assert can_transition(current, new) is False
