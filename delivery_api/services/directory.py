# delivery_api/services/directory.py
"""
Read-only lookups the order/coupon core needs from the rest of the
marketplace: ownership, catalog and order history.
"""
from dataclasses import dataclass
from sqlalchemy import func

from ..extensions import db
from ..model import Address, Order, Product, Restaurant
from ..model.types import as_uuid
from ..utils.money import D, Money


@dataclass(frozen=True)
class ProductInfo:
    id: object
    name: str
    price: Money
    available: bool
    restaurant_id: object


@dataclass(frozen=True)
class RestaurantInfo:
    id: object
    active: bool
    delivery_fee: Money


# ---- ownership ----

def restaurant_belongs_to(restaurant_id, user_id) -> bool:
    rid, uid = as_uuid(restaurant_id), as_uuid(user_id)
    if rid is None or uid is None:
        return False
    q = db.session.query(Restaurant.id).filter(Restaurant.id == rid, Restaurant.owner_id == uid)
    return db.session.query(q.exists()).scalar()

def address_belongs_to(address_id, user_id) -> bool:
    aid, uid = as_uuid(address_id), as_uuid(user_id)
    if aid is None or uid is None:
        return False
    q = db.session.query(Address.id).filter(Address.id == aid, Address.user_id == uid)
    return db.session.query(q.exists()).scalar()

def owned_restaurant_ids(user_id) -> list:
    uid = as_uuid(user_id)
    if uid is None:
        return []
    return [rid for (rid,) in db.session.query(Restaurant.id).filter(Restaurant.owner_id == uid).all()]


# ---- catalog ----

def get_product(product_id) -> ProductInfo | None:
    pid = as_uuid(product_id)
    p = db.session.get(Product, pid) if pid else None
    if not p:
        return None
    return ProductInfo(id=p.id, name=p.name, price=D(p.price), available=bool(p.available),
                       restaurant_id=p.restaurant_id)

def get_restaurant(restaurant_id) -> RestaurantInfo | None:
    rid = as_uuid(restaurant_id)
    r = db.session.get(Restaurant, rid) if rid else None
    if not r:
        return None
    return RestaurantInfo(id=r.id, active=bool(r.active), delivery_fee=D(r.delivery_fee))


# ---- order history ----

def count_prior_orders(user_id, exclude_order_id=None) -> int:
    uid = as_uuid(user_id)
    if uid is None:
        return 0
    q = db.session.query(func.count(Order.id)).filter(Order.customer_id == uid)
    if exclude_order_id is not None:
        q = q.filter(Order.id != as_uuid(exclude_order_id))
    return int(q.scalar() or 0)
