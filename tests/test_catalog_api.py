from app.models import Category, FoodItem

from conftest import auth_headers, make_item


def test_categories_are_localized(client, category):
    res = client.get("/api/v1/categories", params={"lang": "es"})
    assert res.status_code == 200
    assert res.headers["content-language"] == "es"
    assert res.json()["categories"][0]["name"] == "Hamburguesas"

    res = client.get("/api/v1/categories", headers={"Accept-Language": "ca"})
    assert res.json()["categories"][0]["name"] == "Burgers"

    res = client.get("/api/v1/categories", params={"raw": "true"})
    assert res.json()["categories"][0]["name"] == {"en": "Burgers", "es": "Hamburguesas"}


def test_inactive_category_is_hidden(client, db, category):
    category.is_active = False
    db.commit()

    assert client.get("/api/v1/categories").json()["count"] == 0
    assert client.get(f"/api/v1/categories/{category.id}").status_code == 404


def test_category_admin_permissions(client, user, manager, admin):
    payload = {"name": {"en": "Drinks", "es": "Bebidas"}, "sortOrder": 2}

    assert client.post("/api/v1/categories", json=payload).status_code == 401
    assert client.post("/api/v1/categories", json=payload, headers=auth_headers(user)).status_code == 403

    res = client.post("/api/v1/categories", json=payload, headers=auth_headers(manager))
    assert res.status_code == 201
    category_id = res.json()["category"]["id"]

    assert client.delete(f"/api/v1/categories/{category_id}", headers=auth_headers(manager)).status_code == 403
    assert client.delete(f"/api/v1/categories/{category_id}", headers=auth_headers(admin)).status_code == 200


def test_category_requires_english_name(client, admin):
    res = client.post("/api/v1/categories", json={"name": {"es": "Postres"}}, headers=auth_headers(admin))
    assert res.status_code == 400
    assert res.json()["errors"][0]["field"].startswith("name")


def test_category_with_items_cannot_be_deleted(client, admin, burger, category):
    res = client.delete(f"/api/v1/categories/{category.id}", headers=auth_headers(admin))
    assert res.status_code == 400
    assert "1 food items" in res.json()["message"]


def test_food_item_filters_and_sorting(client, db, category):
    make_item(db, category, name="Cheap", price="5.00", is_veg=True)
    make_item(db, category, name="Mid", price="9.00")
    make_item(db, category, name="Pricey", price="15.00", is_featured=True)
    make_item(db, category, name="Hidden", price="1.00", is_active=False)

    res = client.get("/api/v1/food-items", params={"sort": "price-low"})
    body = res.json()
    assert body["total"] == 3
    assert [i["name"] for i in body["foodItems"]] == ["Cheap", "Mid", "Pricey"]
    assert body["foodItems"][0]["price"] == 5.0

    res = client.get("/api/v1/food-items", params={"priceMax": "10", "isVeg": "true"})
    assert [i["name"] for i in res.json()["foodItems"]] == ["Cheap"]

    res = client.get("/api/v1/food-items", params={"limit": 2, "page": 2, "sort": "price-high"})
    body = res.json()
    assert body["totalPages"] == 2
    assert body["currentPage"] == 2
    assert [i["name"] for i in body["foodItems"]] == ["Cheap"]

    res = client.get("/api/v1/food-items/featured")
    assert [i["name"] for i in res.json()["foodItems"]] == ["Pricey"]


def test_food_item_detail(client, burger):
    res = client.get(f"/api/v1/food-items/{burger.id}", params={"lang": "es"})
    assert res.status_code == 200
    item = res.json()["foodItem"]
    assert item["name"] == "Classic Burger ES"
    assert item["categoryName"] == "Hamburguesas"
    assert item["availabilityStatus"] == "available"
    assert item["extras"][0] == {"name": "Cheese", "price": "1.50"}

    assert client.get("/api/v1/food-items/9999").status_code == 404


def test_availability_status(db, category):
    assert make_item(db, category, name="Low", stock=3).availability_status == "low-stock"
    assert make_item(db, category, name="None", stock=0).availability_status == "out-of-stock"
    assert make_item(db, category, name="Off", is_available=False).availability_status == "unavailable"


def test_discount_percentage(db, category):
    from decimal import Decimal

    item = make_item(db, category, price="7.50", original_price=Decimal("10.00"))
    assert item.discount_percentage == 25


def test_create_and_update_food_item(client, db, admin, category):
    payload = {
        "name": {"en": "Veggie Wrap", "ca": "Wrap vegetal"},
        "description": "Fresh vegetables",
        "price": 8.5,
        "categoryId": category.id,
        "isVeg": True,
        "mealSizes": [{"name": "Large", "additionalPrice": 1.5}],
        "extras": [{"name": "Avocado", "price": 1.25}],
        "stockQuantity": 20,
    }
    res = client.post("/api/v1/food-items", json=payload, headers=auth_headers(admin))
    assert res.status_code == 201
    item = res.json()["foodItem"]
    assert item["name"] == {"en": "Veggie Wrap", "ca": "Wrap vegetal"}
    assert item["description"] == {"en": "Fresh vegetables"}
    assert item["mealSizes"] == [{"name": "Large", "additionalPrice": "1.50"}]

    res = client.put(f"/api/v1/food-items/{item['id']}", json={"price": 9, "stockQuantity": 5}, headers=auth_headers(admin))
    assert res.status_code == 200

    stored = db.query(FoodItem).filter(FoodItem.id == item["id"]).one()
    assert str(stored.price) == "9.00"
    assert stored.stock_quantity == 5
    assert stored.name["ca"] == "Wrap vegetal"


def test_create_food_item_unknown_category(client, admin):
    payload = {"name": "Ghost", "description": "Nothing", "price": 1, "categoryId": 999}
    res = client.post("/api/v1/food-items", json=payload, headers=auth_headers(admin))
    assert res.status_code == 400


def test_delete_food_item(client, db, admin, burger):
    res = client.delete(f"/api/v1/food-items/{burger.id}", headers=auth_headers(admin))
    assert res.status_code == 200
    assert db.query(FoodItem).count() == 0
    assert db.query(Category).count() == 1
