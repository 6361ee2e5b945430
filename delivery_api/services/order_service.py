# delivery_api/services/order_service.py
from __future__ import annotations
from flask import current_app
from sqlalchemy import update

from ..extensions import db
from ..errors import (
    AddressNotOwned, CannotCancelAfterConfirmation, CouponInvalid,
    IllegalTransition, InvalidQuantity, NotOwner, OrderNotFound, ProductUnavailable,
    RestaurantUnavailable, ValidationError,
)
from ..logger import get_logger
from ..model import Order, OrderItem, OrderStatus
from ..model.order import MILESTONE_COLUMNS, can_transition
from ..model.types import as_uuid
from ..model.user import ROLE_ADMIN, ROLE_OWNER
from ..utils.dates import utcnow
from . import directory
from .coupon_service import validate_coupon
from .ledger import apply_coupon
from .pricing import PricingLine, price_lines

log = get_logger(__name__)

MAX_NOTE_LENGTH = 500
MAX_ITEM_NOTE_LENGTH = 255


# ---- input shape ------------------------------------------------------------

def normalize_items(raw_items, max_items: int = 50) -> list[dict]:
    """
    Check the requested items before touching storage.
    Body shape: [{"product_id": uuid, "quantity": int, "note"?: str}, ...]
    """
    if not isinstance(raw_items, list) or not raw_items:
        raise ValidationError("items must be a non-empty list")
    if len(raw_items) > max_items:
        raise ValidationError(f"at most {max_items} items per order")
    items = []
    for raw in raw_items:
        if not isinstance(raw, dict):
            raise ValidationError("each item must be an object")
        pid = as_uuid(raw.get("product_id"))
        if pid is None:
            raise ValidationError("each item needs a valid product_id")
        qty = raw.get("quantity")
        if isinstance(qty, bool) or not isinstance(qty, int) or qty <= 0:
            raise InvalidQuantity(pid, qty)
        note = (str(raw.get("note")).strip() or None) if raw.get("note") else None
        if note and len(note) > MAX_ITEM_NOTE_LENGTH:
            raise ValidationError(f"item note must be at most {MAX_ITEM_NOTE_LENGTH} characters")
        items.append({"product_id": pid, "quantity": qty, "note": note})
    return items


# ---- creation ---------------------------------------------------------------

def create_order(customer_id, restaurant_id, delivery_address_id, items, note=None, coupon_code=None) -> Order:
    """
    Price and persist a new order in AWAITING_RESTAURANT.

    Products are priced at their current catalog price, which is frozen on
    each line item. When ``coupon_code`` is given the discount is quoted, the
    order is written, and the coupon is applied to it in the same transaction:
    either all of it is committed or none of it is.
    """
    items = normalize_items(items, current_app.config.get("MAX_ITEMS_PER_ORDER", 50))
    if note is not None and len(str(note)) > MAX_NOTE_LENGTH:
        raise ValidationError(f"note must be at most {MAX_NOTE_LENGTH} characters")

    restaurant = directory.get_restaurant(restaurant_id)
    if restaurant is None or not restaurant.active:
        raise RestaurantUnavailable(restaurant_id)
    if not directory.address_belongs_to(delivery_address_id, customer_id):
        raise AddressNotOwned(delivery_address_id)

    lines, names = [], {}
    for it in items:
        product = directory.get_product(it["product_id"])
        if product is None or product.restaurant_id != restaurant.id or not product.available:
            raise ProductUnavailable(it["product_id"])
        names[product.id] = product.name
        lines.append(PricingLine(product_id=product.id, quantity=it["quantity"], unit_price=product.price))

    quote = price_lines(lines, restaurant.delivery_fee)

    if coupon_code:
        check = validate_coupon(coupon_code, customer_id, quote.subtotal, restaurant.id)
        if not check.valid:
            raise CouponInvalid(check.reason, check.failure)
        quote = quote.with_discount(check.discount)

    order = Order(
        customer_id=as_uuid(customer_id),
        restaurant_id=restaurant.id,
        delivery_address_id=as_uuid(delivery_address_id),
        status=OrderStatus.AWAITING_RESTAURANT.value,
        subtotal=quote.subtotal,
        discount=quote.discount,
        delivery_fee=quote.delivery_fee,
        total=quote.total,
        note=(str(note).strip() or None) if note else None,
    )
    for pos, (line, it) in enumerate(zip(quote.lines, items)):
        order.items.append(OrderItem(
            position=pos,
            product_id=line.product_id,
            name=names.get(line.product_id),
            unit_price=line.unit_price,
            quantity=line.quantity,
            line_total=line.line_total,
            note=it["note"],
        ))

    try:
        db.session.add(order)
        db.session.flush()
        if coupon_code:
            applied = apply_coupon(coupon_code, customer_id, order.id, quote.subtotal, restaurant.id)
            if applied.discount != quote.discount:
                priced = quote.with_discount(applied.discount)
                order.discount, order.total = priced.discount, priced.total
        db.session.commit()
    except Exception:
        db.session.rollback()
        raise

    log.info("order {} created for customer {} at restaurant {} (total {})",
             order.id, order.customer_id, order.restaurant_id, order.total)
    return order


# ---- lookups ----------------------------------------------------------------

def _load(order_id) -> Order:
    oid = as_uuid(order_id)
    order = db.session.get(Order, oid) if oid else None
    if order is None:
        raise OrderNotFound(order_id)
    return order

def get_order(order_id, user) -> Order:
    """Customers see their own orders, owners their restaurants' orders, admins everything."""
    order = _load(order_id)
    if user.role == ROLE_ADMIN:
        return order
    if user.role == ROLE_OWNER and directory.restaurant_belongs_to(order.restaurant_id, user.id):
        return order
    if order.customer_id == user.id:
        return order
    raise NotOwner()

def list_customer_orders(customer_id):
    return (Order.query.filter(Order.customer_id == as_uuid(customer_id))
            .order_by(Order.created_at.desc())
            .all())

def list_restaurant_orders(restaurant_id, user, status=None):
    if status:
        parsed = OrderStatus.parse(status)
        if parsed is None:
            raise ValidationError(f"unknown status '{status}'")
        status = parsed
    if user.role != ROLE_ADMIN and not directory.restaurant_belongs_to(restaurant_id, user.id):
        raise NotOwner("restaurant not found or not yours")
    q = Order.query.filter(Order.restaurant_id == as_uuid(restaurant_id))
    if status:
        q = q.filter(Order.status == status.value)
    return q.order_by(Order.created_at.desc()).all()


# ---- state machine ----------------------------------------------------------

def _move(order: Order, requested: OrderStatus) -> Order:
    """
    Compare-and-set the status: the UPDATE only matches while the row still
    holds the status we validated against, so two racing requests from the
    same state cannot both win.
    """
    current = OrderStatus(order.status)
    if not can_transition(current, requested):
        raise IllegalTransition(current, requested)

    now = utcnow()
    stmt = (
        update(Order)
        .where(Order.id == order.id, Order.status == current.value)
        .values({"status": requested.value, MILESTONE_COLUMNS[requested]: now, "updated_at": now})
        .execution_options(synchronize_session=False)
    )
    try:
        matched = db.session.execute(stmt).rowcount == 1
        if matched:
            db.session.commit()
    except Exception:
        db.session.rollback()
        raise
    if not matched:
        db.session.rollback()
        db.session.refresh(order)
        raise IllegalTransition(order.status, requested)
    db.session.refresh(order)
    return order

def transition_order(order_id, restaurant_id, new_status, actor) -> Order:
    requested = OrderStatus.parse(new_status)
    if requested is None:
        raise ValidationError(f"unknown status '{new_status}'")
    if actor.role != ROLE_ADMIN and not directory.restaurant_belongs_to(restaurant_id, actor.id):
        raise NotOwner("restaurant not found or not yours")
    order = _load(order_id)
    if order.restaurant_id != as_uuid(restaurant_id):
        raise NotOwner("order does not belong to this restaurant")

    previous = order.status
    order = _move(order, requested)
    log.info("order {} moved {} -> {} by {}", order.id, previous, order.status, actor.id)
    return order

def cancel_order(order_id, customer_id) -> Order:
    """Customer-side cancel; only before the restaurant has acted on the order."""
    order = _load(order_id)
    if order.customer_id != as_uuid(customer_id):
        raise NotOwner()
    if order.status != OrderStatus.AWAITING_RESTAURANT.value:
        raise CannotCancelAfterConfirmation(order.status)
    try:
        order = _move(order, OrderStatus.CANCELLED)
    except IllegalTransition as e:
        # the restaurant got there first
        raise CannotCancelAfterConfirmation(e.current)
    log.info("order {} cancelled by customer {}", order.id, customer_id)
    return order
