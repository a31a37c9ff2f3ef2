from datetime import datetime, timedelta

from app.models import Offer, OfferType
from app.services.offer_service import lock_offer

from conftest import auth_headers, make_item, make_offer, order_payload


def coupon_request(code, item, quantity=2, delivery_type="pickup", **details):
    return {
        "couponCode": code,
        "orderDetails": {
            "items": [{"foodItemId": item.id, "quantity": quantity}],
            "deliveryType": delivery_type,
            **details,
        },
    }


def test_validate_coupon_percentage(client, db, user, category):
    item = make_item(db, category, name="Pizza", price="25.00")
    make_offer(db, coupon_code="WELCOME10")

    res = client.post(
        "/api/v1/offers/validate-coupon",
        json=coupon_request("welcome10", item),
        headers=auth_headers(user),
    )
    assert res.status_code == 200
    body = res.json()
    assert body["subtotal"] == 50.0
    assert body["discount"] == 5.0
    assert body["offer"]["couponCode"] == "WELCOME10"


def test_validate_coupon_errors(client, db, user, burger):
    assert client.post("/api/v1/offers/validate-coupon", json=coupon_request("X", burger)).status_code == 401

    res = client.post("/api/v1/offers/validate-coupon", json=coupon_request("MISSING", burger), headers=auth_headers(user))
    assert res.status_code == 404

    make_offer(db, coupon_code="BIGSPEND", min_order_amount=100)
    res = client.post("/api/v1/offers/validate-coupon", json=coupon_request("BIGSPEND", burger), headers=auth_headers(user))
    assert res.status_code == 400
    assert res.json()["message"].startswith("Minimum order amount")


def test_validate_free_delivery(client, db, user, burger):
    make_offer(db, coupon_code="SHIPFREE", type=OfferType.FREE_DELIVERY, value=0)

    res = client.post(
        "/api/v1/offers/validate-coupon",
        json=coupon_request("SHIPFREE", burger, delivery_type="delivery", deliveryFee=3.5),
        headers=auth_headers(user),
    )
    assert res.json()["discount"] == 3.5

    res = client.post("/api/v1/offers/validate-coupon", json=coupon_request("SHIPFREE", burger), headers=auth_headers(user))
    assert res.status_code == 400


def test_validate_does_not_record_usage(client, db, user, burger):
    offer = make_offer(db, coupon_code="ONCE")
    for _ in range(2):
        res = client.post("/api/v1/offers/validate-coupon", json=coupon_request("ONCE", burger), headers=auth_headers(user))
        assert res.status_code == 200

    db.refresh(offer)
    assert offer.usage_count == 0


def test_list_current_offers(client, db, user, branch, burger):
    now = datetime.utcnow()
    make_offer(db, title="Low", priority=1)
    make_offer(db, title="High", priority=5, coupon_code="HIGH")
    make_offer(db, title="Old", end_date=now - timedelta(hours=1), start_date=now - timedelta(days=3))
    make_offer(db, title="Off", is_active=False)

    body = client.get("/api/v1/offers").json()
    assert body["totalOffers"] == 2
    assert [o["title"] for o in body["offers"]] == ["High", "Low"]
    assert "usageHistory" not in body["offers"][0]

    # 用過的優惠不再出現在自己的列表
    place = client.post("/api/v1/orders", json=order_payload(branch, burger, couponCode="HIGH"), headers=auth_headers(user))
    assert place.status_code == 201
    body = client.get("/api/v1/offers", headers=auth_headers(user)).json()
    assert [o["title"] for o in body["offers"]] == ["Low"]


def test_featured_offers(client, db):
    for i in range(8):
        make_offer(db, title=f"Featured {i}", is_featured=True)
    make_offer(db, title="Plain")

    body = client.get("/api/v1/offers/featured").json()
    assert body["count"] == 6
    assert all(o["isFeatured"] for o in body["offers"])


def test_get_offer(client, db, user):
    offer = make_offer(db)
    inactive = make_offer(db, title="Hidden", is_active=False)

    res = client.get(f"/api/v1/offers/{offer.id}", headers=auth_headers(user))
    assert res.status_code == 200
    assert res.json()["userCanUse"] is True
    assert res.json()["offer"]["type"] == "percentage"

    assert client.get(f"/api/v1/offers/{inactive.id}").status_code == 404


def test_offer_admin_crud(client, db, user, manager, admin):
    now = datetime.utcnow()
    payload = {
        "title": "Combo deal",
        "description": "Burger and fries",
        "type": "combo",
        "value": 4,
        "startDate": now.isoformat(),
        "endDate": (now + timedelta(days=7)).isoformat(),
        "couponCode": " combo4 ",
        "appliedToItems": [1, 2],
    }

    assert client.post("/api/v1/offers", json=payload, headers=auth_headers(user)).status_code == 403

    res = client.post("/api/v1/offers", json=payload, headers=auth_headers(manager))
    assert res.status_code == 201
    offer = res.json()["offer"]
    assert offer["couponCode"] == "COMBO4"
    assert offer["usageCount"] == 0

    assert client.post("/api/v1/offers", json=payload, headers=auth_headers(manager)).status_code == 400

    bad_dates = {**payload, "couponCode": None, "endDate": (now - timedelta(days=1)).isoformat()}
    res = client.post("/api/v1/offers", json=bad_dates, headers=auth_headers(manager))
    assert res.status_code == 400

    too_much = {**payload, "couponCode": None, "type": "percentage", "value": 150}
    assert client.post("/api/v1/offers", json=too_much, headers=auth_headers(manager)).status_code == 400

    res = client.put(f"/api/v1/offers/{offer['id']}", json={"value": 6, "isFeatured": True}, headers=auth_headers(manager))
    assert res.status_code == 200
    assert res.json()["offer"]["value"] == 6.0

    assert client.delete(f"/api/v1/offers/{offer['id']}", headers=auth_headers(manager)).status_code == 403
    assert client.delete(f"/api/v1/offers/{offer['id']}", headers=auth_headers(admin)).status_code == 200
    assert db.query(Offer).count() == 0


def test_offer_stats(client, db, user, other_user, admin, branch, burger):
    offer = make_offer(db, coupon_code="STATS", usage_limit=10)
    for customer in (user, other_user):
        res = client.post("/api/v1/orders", json=order_payload(branch, burger, couponCode="STATS"), headers=auth_headers(customer))
        assert res.status_code == 201

    stats = client.get(f"/api/v1/offers/{offer.id}/stats", headers=auth_headers(admin)).json()["stats"]
    assert stats["totalUsage"] == 2
    assert stats["remainingUses"] == 8
    assert stats["totalDiscountGiven"] == 4.6
    assert stats["averageDiscountPerUse"] == 2.3
    assert stats["uniqueUsers"] == 2
    assert len(stats["recentUsage"]) == 2


def test_offer_dates_accept_utc_offsets(client, db, manager):
    payload = {
        "title": "New year",
        "description": "Starts at midnight UTC",
        "type": "fixed-amount",
        "value": 3,
        "startDate": "2030-01-01T00:00:00Z",
        "endDate": "2030-02-01T00:00:00",
    }
    res = client.post("/api/v1/offers", json=payload, headers=auth_headers(manager))
    assert res.status_code == 201
    offer = res.json()["offer"]
    assert offer["startDate"] == "2030-01-01T00:00:00"

    url = f"/api/v1/offers/{offer['id']}"
    res = client.put(url, json={"startDate": "2030-01-05T10:00:00+02:00"}, headers=auth_headers(manager))
    assert res.status_code == 200
    assert res.json()["offer"]["startDate"] == "2030-01-05T08:00:00"

    res = client.put(url, json={"startDate": "2030-03-01T00:00:00Z"}, headers=auth_headers(manager))
    assert res.status_code == 400
    assert res.json()["message"] == "End date must be after start date"

    bad_dates = {**payload, "endDate": "2029-12-31T23:00:00-02:00"}
    res = client.post("/api/v1/offers", json=bad_dates, headers=auth_headers(manager))
    assert res.status_code == 201

    bad_dates = {**payload, "endDate": "2029-12-31T23:00:00Z"}
    res = client.post("/api/v1/offers", json=bad_dates, headers=auth_headers(manager))
    assert res.status_code == 400
    assert "End date must be after start date" in res.json()["errors"][0]["message"]


def test_locked_offer_sees_usage_from_other_sessions(client, db, user, branch, burger):
    offer = make_offer(db, coupon_code="ONCE")
    assert offer.usage_count == 0

    res = client.post("/api/v1/orders", json=order_payload(branch, burger, couponCode="ONCE"), headers=auth_headers(user))
    assert res.status_code == 201

    # 這個 session 先前讀過的使用紀錄已過期，鎖定後要重新讀取
    locked = lock_offer(db, offer)
    assert locked.usage_count == 1
    assert locked.can_user_use(user.id) is False
    db.rollback()


def test_featured_offers_hide_used_coupons(client, db, user, other_user, branch, burger):
    make_offer(db, title="Weekend", is_featured=True, priority=5, coupon_code="WEEKEND")
    make_offer(db, title="Lunch", is_featured=True)

    res = client.post("/api/v1/orders", json=order_payload(branch, burger, couponCode="WEEKEND"), headers=auth_headers(user))
    assert res.status_code == 201

    mine = client.get("/api/v1/offers/featured", headers=auth_headers(user)).json()
    assert [o["title"] for o in mine["offers"]] == ["Lunch"]

    theirs = client.get("/api/v1/offers/featured", headers=auth_headers(other_user)).json()
    assert [o["title"] for o in theirs["offers"]] == ["Weekend", "Lunch"]

    anonymous = client.get("/api/v1/offers/featured").json()
    assert anonymous["count"] == 2
