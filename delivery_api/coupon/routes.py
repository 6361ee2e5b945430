# delivery_api/coupon/routes.py
from __future__ import annotations
from flask import request

from ..services import coupon_service
from ..utils.api import ok, err
from ..utils.decorators import current_user, login_required, role_required
from ..utils.money import parse_bool, parse_money
from ..model.user import ROLE_ADMIN, ROLE_OWNER
from . import bp


# ---- public -----------------------------------------------------------------

@bp.get("/public")
def list_public():
    coupons = coupon_service.list_public_coupons(request.args.get("restaurant_id"))
    return ok("coupons", {"items": [c.as_api() for c in coupons]})

@bp.get("/code/<code>")
def get_by_code(code: str):
    c = coupon_service.get_coupon_by_code(code)
    return ok("coupon", {"coupon": c.as_api()})

# ---- customers --------------------------------------------------------------

@bp.post("/validate")
@login_required
def validate():
    """
    Body: { "code": "WELCOME10", "order_subtotal": 42.5, "restaurant_id"?: uuid }
    A coupon that does not qualify still answers 200 with valid=false.
    """
    data = request.get_json(silent=True) or {}
    code = (data.get("code") or "").strip()
    if not code:
        return err("code is required", 400, {"error": "ValidationError"})
    try:
        subtotal = parse_money(data.get("order_subtotal"), "order_subtotal")
    except ValueError as e:
        return err(str(e), 400, {"error": "ValidationError"})
    if subtotal < 0:
        return err("order_subtotal must be >= 0", 400, {"error": "ValidationError"})

    check = coupon_service.validate_coupon(code, current_user().id, subtotal, data.get("restaurant_id"))
    return ok(check.reason, {"result": check.as_api()})

@bp.get("/my-history")
@login_required
def my_history():
    usages = coupon_service.usage_history(current_user().id)
    return ok("coupon usage history", {"items": [u.as_api(with_order=True) for u in usages]})

# ---- owners / admins --------------------------------------------------------

@bp.get("")
@role_required(ROLE_OWNER, ROLE_ADMIN)
def list_coupons():
    """
    Query params:
      - restaurant_id=<uuid>
      - active=true|false
    """
    coupons = coupon_service.list_coupons_for(
        current_user(),
        restaurant_id=request.args.get("restaurant_id"),
        active=parse_bool(request.args.get("active")),
    )
    return ok("coupons", {"items": [c.as_api() for c in coupons]})

@bp.get("/admin/most-used")
@role_required(ROLE_ADMIN)
def most_used():
    try:
        limit = min(max(int(request.args.get("limit", 10)), 1), 100)
    except ValueError:
        limit = 10
    coupons = coupon_service.most_used_coupons(limit)
    return ok("coupons", {"items": [c.as_api() for c in coupons]})

@bp.get("/<uuid:coupon_id>")
@role_required(ROLE_OWNER, ROLE_ADMIN)
def get_coupon(coupon_id):
    c, recent = coupon_service.get_coupon(coupon_id, current_user())
    return ok("coupon", {
        "coupon": c.as_api(),
        "recent_usages": [u.as_api(with_order=True) for u in recent],
    })

@bp.post("")
@role_required(ROLE_OWNER, ROLE_ADMIN)
def create_coupon():
    """
    Body:
      {
        "code": "WELCOME10", "kind": "PERCENTAGE"|"FIXED", "value": 10,
        "expires_at": ISO8601, "description"?, "min_order_subtotal"?,
        "max_discount"?, "max_uses"?, "max_uses_per_user"?,
        "restaurant_id"?, "first_order_only"?, "active"?
      }
    """
    data = request.get_json(silent=True) or {}
    c = coupon_service.create_coupon(data, current_user())
    return ok("Coupon created", {"coupon": c.as_api()}, status=201)

@bp.put("/<uuid:coupon_id>")
@role_required(ROLE_OWNER, ROLE_ADMIN)
def update_coupon(coupon_id):
    data = request.get_json(silent=True) or {}
    c = coupon_service.update_coupon(coupon_id, data, current_user())
    return ok("Coupon updated", {"coupon": c.as_api()})
