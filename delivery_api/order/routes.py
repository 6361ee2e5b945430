# delivery_api/order/routes.py
from flask import request

from ..services import order_service
from ..utils.api import ok, err
from ..utils.decorators import current_user, login_required, role_required
from ..model.user import ROLE_ADMIN, ROLE_CUSTOMER, ROLE_OWNER
from . import bp


@bp.post("")
@role_required(ROLE_CUSTOMER, message="Only customers can place orders")
def create_order():
    """
    Body:
      {
        "restaurant_id": uuid,
        "delivery_address_id": uuid,
        "items": [{"product_id": uuid, "quantity": int, "note"?: str}],
        "note"?: str,
        "coupon_code"?: str
      }
    """
    data = request.get_json(silent=True) or {}
    restaurant_id = data.get("restaurant_id")
    address_id = data.get("delivery_address_id")
    if not restaurant_id or not address_id or not data.get("items"):
        return _missing("restaurant_id, delivery_address_id and items are required")

    user = current_user()
    order = order_service.create_order(
        user.id,
        restaurant_id,
        address_id,
        data.get("items"),
        note=data.get("note"),
        coupon_code=(data.get("coupon_code") or "").strip() or None,
    )
    resp = ok("order created", {"order": order.as_api()}, status=201)
    resp.headers["X-Order-Id"] = str(order.id)
    return resp

@bp.get("/mine")
@login_required
def my_orders():
    user = current_user()
    orders = order_service.list_customer_orders(user.id)
    return ok("orders", {"items": [o.as_api() for o in orders]})

@bp.get("/<uuid:order_id>")
@login_required
def get_order(order_id):
    order = order_service.get_order(order_id, current_user())
    return ok("order", {"order": order.as_api()})

@bp.get("/restaurant/<uuid:restaurant_id>")
@role_required(ROLE_OWNER, ROLE_ADMIN)
def restaurant_orders(restaurant_id):
    """
    Query params:
      - status=AWAITING_RESTAURANT|CONFIRMED|PREPARING|READY|OUT_FOR_DELIVERY|DELIVERED|CANCELLED
    """
    orders = order_service.list_restaurant_orders(
        restaurant_id, current_user(), status=request.args.get("status")
    )
    return ok("orders", {"items": [o.as_api() for o in orders]})

@bp.patch("/<uuid:order_id>/restaurant/<uuid:restaurant_id>/status")
@role_required(ROLE_OWNER, ROLE_ADMIN)
def update_status(order_id, restaurant_id):
    """Body: { "status": "CONFIRMED" }"""
    data = request.get_json(silent=True) or {}
    if not data.get("status"):
        return _missing("status is required")
    order = order_service.transition_order(order_id, restaurant_id, data["status"], current_user())
    return ok("order status updated", {"order": order.as_api()})

@bp.patch("/<uuid:order_id>/cancel")
@login_required
def cancel_order(order_id):
    order = order_service.cancel_order(order_id, current_user().id)
    return ok("order cancelled", {"order": order.as_api()})


def _missing(msg):
    return err(msg, 400, {"error": "ValidationError"})
