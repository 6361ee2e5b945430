# ------ delivery_api/model/__init__.py ------

from .user import User
from .restaurant import Restaurant, Product, Address
from .types import GUID
from .coupon import Coupon, CouponKind, CouponUsage
from .order import Order, OrderItem, OrderStatus

__all__ = [
    "User",
    "Restaurant",
    "Product",
    "Address",
    "GUID",
    "Coupon",
    "CouponKind",
    "CouponUsage",
    "Order",
    "OrderItem",
    "OrderStatus",
]
