import os

os.environ["DATABASE_URL"] = "sqlite://"
os.environ.setdefault("SECRET_KEY", "test-secret-key")
os.environ["RATE_LIMIT_ENABLED"] = "false"

from datetime import datetime, timedelta
from decimal import Decimal

import pytest
from fastapi.testclient import TestClient
from sqlalchemy import create_engine
from sqlalchemy.orm import sessionmaker
from sqlalchemy.pool import StaticPool

from app.config import get_settings
from app.database import Base, get_db
from app.main import app
from app.models import User, UserRole, Branch, Category, FoodItem, Offer, OfferType
from app.services import email_service
from app.services.auth import hash_password, create_access_token

PASSWORD = "password123"
PASSWORD_HASH = hash_password(PASSWORD)


@pytest.fixture
def engine():
    engine = create_engine(
        "sqlite://",
        connect_args={"check_same_thread": False},
        poolclass=StaticPool,
    )
    Base.metadata.create_all(bind=engine)
    yield engine
    Base.metadata.drop_all(bind=engine)
    engine.dispose()


@pytest.fixture
def session_factory(engine):
    return sessionmaker(autocommit=False, autoflush=False, bind=engine)


@pytest.fixture
def db(session_factory):
    session = session_factory()
    yield session
    session.close()


@pytest.fixture
def client(session_factory):
    def override_get_db():
        session = session_factory()
        try:
            yield session
        finally:
            session.close()

    app.dependency_overrides[get_db] = override_get_db
    yield TestClient(app)
    app.dependency_overrides.clear()


@pytest.fixture(autouse=True)
def outbox(monkeypatch):
    """攔截寄信，改存到 list"""
    sent = []

    def fake_send_email(to, subject, html):
        sent.append({"to": to, "subject": subject, "html": html})

    monkeypatch.setattr(email_service, "send_email", fake_send_email)
    return sent


@pytest.fixture
def settings(monkeypatch):
    """測試內可直接改設定，結束後自動還原"""
    current = get_settings()

    class Patcher:
        def set(self, **values):
            for key, value in values.items():
                monkeypatch.setattr(current, key, value)

    return Patcher()


def make_user(db, email="user@example.com", role=UserRole.USER, phone="+34600000001", **extra) -> User:
    user = User(
        first_name=extra.pop("first_name", "Test"),
        last_name=extra.pop("last_name", "User"),
        email=email,
        phone=phone,
        password_hash=PASSWORD_HASH,
        role=role,
        email_verified=extra.pop("email_verified", True),
        **extra,
    )
    db.add(user)
    db.commit()
    db.refresh(user)
    return user


def auth_headers(user: User) -> dict:
    return {"Authorization": f"Bearer {create_access_token(user)}"}


@pytest.fixture
def user(db):
    return make_user(db)


@pytest.fixture
def other_user(db):
    return make_user(db, email="other@example.com", phone="+34600000002")


@pytest.fixture
def admin(db):
    return make_user(db, email="admin@example.com", role=UserRole.ADMIN, phone="+34600000003")


@pytest.fixture
def manager(db):
    return make_user(db, email="manager@example.com", role=UserRole.MANAGER, phone="+34600000004")


@pytest.fixture
def branch(db):
    branch = Branch(name="Poblenou", address="Carrer de Pujades 1", is_active=True)
    db.add(branch)
    db.commit()
    db.refresh(branch)
    return branch


@pytest.fixture
def category(db):
    category = Category(name={"en": "Burgers", "es": "Hamburguesas"}, sort_order=1)
    db.add(category)
    db.commit()
    db.refresh(category)
    return category


def make_item(db, category, name="Classic Burger", price="10.00", stock=10, **extra) -> FoodItem:
    item = FoodItem(
        category_id=category.id,
        name=extra.pop("localized_name", {"en": name, "es": f"{name} ES"}),
        description={"en": f"{name} description"},
        price=Decimal(price),
        meal_sizes=extra.pop("meal_sizes", [{"name": "Large", "additionalPrice": "2.00"}]),
        extras=extra.pop("extras", [{"name": "Cheese", "price": "1.50"}, {"name": "Bacon", "price": "2.25"}]),
        addons=extra.pop("addons", [{"name": "Fries", "price": "3.00", "imageUrl": ""}]),
        ingredients=[],
        stock_quantity=stock,
        low_stock_alert=extra.pop("low_stock_alert", 5),
        **extra,
    )
    db.add(item)
    db.commit()
    db.refresh(item)
    return item


@pytest.fixture
def burger(db, category):
    return make_item(db, category)


def make_offer(db, **values) -> Offer:
    now = datetime.utcnow()
    data = {
        "title": "Ten percent off",
        "description": "Save on every order",
        "type": OfferType.PERCENTAGE,
        "value": Decimal("10"),
        "start_date": now - timedelta(days=1),
        "end_date": now + timedelta(days=1),
        "is_active": True,
        "applied_to_items": [],
        "applied_to_categories": [],
        "usage_limit_per_user": 1,
    }
    data.update(values)
    offer = Offer(**data)
    db.add(offer)
    db.commit()
    db.refresh(offer)
    return offer


def order_payload(branch, item, quantity=2, **extra) -> dict:
    payload = {
        "items": [{"foodItemId": item.id, "quantity": quantity, "selectedExtras": ["Cheese"]}],
        "deliveryType": "pickup",
        "paymentMethod": "card",
        "branchId": branch.id,
    }
    payload.update(extra)
    return payload
