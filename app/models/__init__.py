from app.models.user import User, UserRole
from app.models.address import Address
from app.models.branch import Branch
from app.models.catalog import Category, FoodItem
from app.models.order import Order, OrderItem, OrderStatus, DeliveryType, PaymentMethod
from app.models.offer import Offer, OfferUsage, OfferType

__all__ = [
    "User",
    "UserRole",
    "Address",
    "Branch",
    "Category",
    "FoodItem",
    "Order",
    "OrderItem",
    "OrderStatus",
    "DeliveryType",
    "PaymentMethod",
    "Offer",
    "OfferUsage",
    "OfferType",
]
