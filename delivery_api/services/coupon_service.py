# delivery_api/services/coupon_service.py
from __future__ import annotations
from dataclasses import dataclass
from flask import current_app
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import CouponCodeTaken, CouponNotFound, NotOwner, ValidationError
from ..logger import get_logger
from ..model import Coupon, CouponKind, CouponUsage, Restaurant
from ..model.types import as_uuid
from ..utils.dates import utcnow, parse_iso8601
from ..utils.money import D, Money, ZERO, round_money, parse_bool, parse_money
from . import directory

log = get_logger(__name__)

# failure names reported by validate_coupon, in check order
NOT_FOUND = "CouponNotFound"
INACTIVE = "CouponInactive"
EXPIRED = "CouponExpired"
EXHAUSTED = "CouponExhausted"
WRONG_RESTAURANT = "WrongRestaurant"
BELOW_MINIMUM = "BelowMinimum"
NOT_FIRST_ORDER = "NotFirstOrder"
PER_USER_LIMIT = "PerUserLimitReached"

HUNDRED = D(100)
MAX_CODE_LENGTH = 64
MAX_DESCRIPTION_LENGTH = 255


def canonical_code(code) -> str:
    return (code or "").strip().upper()


# ---- discount rules ---------------------------------------------------------

@dataclass(frozen=True)
class PercentageRule:
    value: Money
    cap: Money | None = None

    def discount_for(self, subtotal: Money) -> Money:
        amount = round_money(D(subtotal) * self.value / HUNDRED)
        if self.cap is not None and amount > self.cap:
            amount = round_money(self.cap)
        return amount


@dataclass(frozen=True)
class FixedRule:
    value: Money

    def discount_for(self, subtotal: Money) -> Money:
        # never more than the goods themselves
        return round_money(min(self.value, max(D(subtotal), ZERO)))


def rule_for(coupon: Coupon):
    kind = CouponKind(coupon.kind)
    if kind is CouponKind.PERCENTAGE:
        cap = D(coupon.max_discount) if coupon.max_discount is not None else None
        return PercentageRule(value=D(coupon.value), cap=cap)
    return FixedRule(value=D(coupon.value))


# ---- validation -------------------------------------------------------------

@dataclass(frozen=True)
class CouponCheck:
    valid: bool
    discount: Money | None = None
    reason: str | None = None
    failure: str | None = None
    coupon: Coupon | None = None

    def as_api(self):
        return {
            "valid": self.valid,
            "discount": float(self.discount) if self.discount is not None else None,
            "reason": self.reason,
            "failure": self.failure,
            "coupon_id": str(self.coupon.id) if self.coupon is not None else None,
        }

def _fail(failure: str, reason: str, coupon=None) -> CouponCheck:
    return CouponCheck(valid=False, reason=reason, failure=failure, coupon=coupon)

def find_coupon(code) -> Coupon | None:
    code = canonical_code(code)
    if not code:
        return None
    return Coupon.query.filter(Coupon.code == code).first()

def user_usage_count(coupon_id, user_id) -> int:
    return (db.session.query(func.count(CouponUsage.id))
            .filter(CouponUsage.coupon_id == coupon_id, CouponUsage.user_id == as_uuid(user_id))
            .scalar() or 0)

def validate_coupon(code, user_id, order_subtotal, restaurant_id=None, *, exclude_order_id=None) -> CouponCheck:
    """
    Decide whether ``code`` may be used by ``user_id`` on an order worth
    ``order_subtotal`` at ``restaurant_id``. Never writes anything.

    An invalid coupon is a normal outcome: the result carries ``valid=False``
    plus the failure name and a readable reason. ``exclude_order_id`` keeps the
    order being paid for out of the first-order count.
    """
    subtotal = round_money(order_subtotal)
    c = find_coupon(code)
    if c is None:
        return _fail(NOT_FOUND, "Coupon not found")
    if not c.active:
        return _fail(INACTIVE, "Coupon is inactive", c)
    if c.expires_at is None or utcnow() >= c.expires_at:
        return _fail(EXPIRED, "Coupon has expired", c)
    if c.max_uses is not None and c.usage_count >= c.max_uses:
        return _fail(EXHAUSTED, "Coupon usage limit reached", c)
    if c.restaurant_id is not None and c.restaurant_id != as_uuid(restaurant_id):
        return _fail(WRONG_RESTAURANT, "Coupon is not valid for this restaurant", c)
    if c.min_order_subtotal is not None and subtotal < D(c.min_order_subtotal):
        return _fail(BELOW_MINIMUM, f"Minimum order subtotal is {round_money(c.min_order_subtotal):.2f}", c)
    if c.first_order_only and directory.count_prior_orders(user_id, exclude_order_id=exclude_order_id) > 0:
        return _fail(NOT_FIRST_ORDER, "Coupon is only valid on a first order", c)
    if c.max_uses_per_user is not None and user_usage_count(c.id, user_id) >= c.max_uses_per_user:
        return _fail(PER_USER_LIMIT, f"You have already used this coupon {c.max_uses_per_user} time(s)", c)

    return CouponCheck(valid=True, discount=rule_for(c).discount_for(subtotal), reason="Coupon is valid", coupon=c)


# ---- administration ---------------------------------------------------------

_UNSET = object()

def _opt_int(data: dict, key: str):
    v = data.get(key)
    if v is None or (isinstance(v, str) and v.strip() == ""):
        return None
    if isinstance(v, bool):
        raise ValidationError(f"{key} must be an integer")
    try:
        n = int(v)
    except (TypeError, ValueError):
        raise ValidationError(f"{key} must be an integer")
    if n <= 0:
        raise ValidationError(f"{key} must be > 0")
    return n

def _money(data: dict, key: str, *, required: bool = False):
    try:
        amount = parse_money(data.get(key), key, allow_none=not required)
    except ValueError as e:
        raise ValidationError(str(e))
    if amount is not None and amount < 0:
        raise ValidationError(f"{key} must be >= 0")
    return amount

def _expiry(data: dict):
    raw = data.get("expires_at")
    if not raw:
        raise ValidationError("expires_at is required")
    dt = parse_iso8601(raw)
    if dt is None:
        raise ValidationError("Invalid datetime format for expires_at")
    return dt

def _description(data: dict):
    text = (data.get("description") or "").strip() or None
    if text and len(text) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    return text

def _check_value(kind: CouponKind, value: Money):
    if kind is CouponKind.PERCENTAGE and not (ZERO < value <= HUNDRED):
        raise ValidationError("percentage value must be > 0 and <= 100")
    if kind is CouponKind.FIXED and value <= 0:
        raise ValidationError("fixed value must be > 0")

def _parse_kind(raw) -> CouponKind:
    try:
        return CouponKind(str(raw or "").strip().upper())
    except ValueError:
        raise ValidationError("kind must be 'PERCENTAGE' or 'FIXED'")

def _can_manage(actor, coupon: Coupon) -> bool:
    if actor.is_admin:
        return True
    return coupon.restaurant_id is not None and directory.restaurant_belongs_to(coupon.restaurant_id, actor.id)

def create_coupon(data: dict, actor) -> Coupon:
    code = canonical_code(data.get("code"))
    if not code:
        raise ValidationError("code is required")
    if len(code) > MAX_CODE_LENGTH:
        raise ValidationError(f"code must be at most {MAX_CODE_LENGTH} characters")
    kind = _parse_kind(data.get("kind"))
    value = _money(data, "value", required=True)
    _check_value(kind, value)
    max_discount = _money(data, "max_discount")
    if max_discount is not None and kind is not CouponKind.PERCENTAGE:
        raise ValidationError("max_discount only applies to PERCENTAGE coupons")
    expires_at = _expiry(data)

    restaurant_id = None
    if data.get("restaurant_id"):
        restaurant_id = as_uuid(data.get("restaurant_id"))
        if restaurant_id is None or db.session.get(Restaurant, restaurant_id) is None:
            raise ValidationError("restaurant not found")
        if not actor.is_admin and not directory.restaurant_belongs_to(restaurant_id, actor.id):
            raise NotOwner("restaurant does not belong to you")
    elif not actor.is_admin:
        raise ValidationError("restaurant_id is required for restaurant owners")

    if Coupon.query.filter(Coupon.code == code).first():
        raise CouponCodeTaken(code)

    c = Coupon(
        code=code,
        description=_description(data),
        kind=kind.value,
        value=value,
        min_order_subtotal=_money(data, "min_order_subtotal"),
        max_discount=max_discount,
        expires_at=expires_at,
        max_uses=_opt_int(data, "max_uses"),
        max_uses_per_user=_opt_int(data, "max_uses_per_user"),
        restaurant_id=restaurant_id,
        first_order_only=parse_bool(data.get("first_order_only"), False),
        active=parse_bool(data.get("active"), True),
        usage_count=0,
    )
    db.session.add(c)
    try:
        db.session.commit()
    except IntegrityError:
        db.session.rollback()
        raise CouponCodeTaken(code)
    log.info("coupon {} created by {} ({} {})", c.code, actor.id, c.kind, c.value)
    return c

def update_coupon(coupon_id, data: dict, actor) -> Coupon:
    c = db.session.get(Coupon, as_uuid(coupon_id)) if as_uuid(coupon_id) else None
    if not c:
        raise CouponNotFound(coupon_id)
    if not _can_manage(actor, c):
        raise NotOwner()
    try:
        _apply_changes(c, data)
    except ValidationError:
        db.session.rollback()
        raise
    db.session.commit()
    log.info("coupon {} updated by {}", c.code, actor.id)
    return c

def _apply_changes(c: Coupon, data: dict):
    kind = CouponKind(c.kind)
    if "value" in data:
        value = _money(data, "value", required=True)
        _check_value(kind, value)
        c.value = value
    if "max_discount" in data:
        max_discount = _money(data, "max_discount")
        if max_discount is not None and kind is not CouponKind.PERCENTAGE:
            raise ValidationError("max_discount only applies to PERCENTAGE coupons")
        c.max_discount = max_discount
    if "min_order_subtotal" in data:
        c.min_order_subtotal = _money(data, "min_order_subtotal")
    if "expires_at" in data:
        c.expires_at = _expiry(data)
    if "max_uses" in data:
        max_uses = _opt_int(data, "max_uses")
        if max_uses is not None and max_uses < c.usage_count:
            raise ValidationError(f"max_uses cannot be lower than current usage ({c.usage_count})")
        c.max_uses = max_uses
    if "max_uses_per_user" in data:
        c.max_uses_per_user = _opt_int(data, "max_uses_per_user")
    if "description" in data:
        c.description = _description(data)
    if "first_order_only" in data:
        c.first_order_only = parse_bool(data.get("first_order_only"), False)
    if "active" in data:
        c.active = parse_bool(data.get("active"), False)

def deactivate_coupon(code) -> Coupon:
    c = find_coupon(code)
    if not c:
        raise CouponNotFound(code)
    c.active = False
    db.session.commit()
    log.info("coupon {} deactivated", c.code)
    return c

def list_coupons(restaurant_ids=_UNSET, active=None, include_expired=False):
    """``restaurant_ids``: unset = every coupon, else only coupons scoped to those ids."""
    q = Coupon.query
    if restaurant_ids is not _UNSET:
        q = q.filter(Coupon.restaurant_id.in_(list(restaurant_ids)))
    if active is not None:
        q = q.filter(Coupon.active == active)
    if not include_expired:
        q = q.filter(Coupon.expires_at > utcnow())
    return q.order_by(Coupon.created_at.desc()).all()

def list_coupons_for(actor, restaurant_id=None, active=None):
    if actor.is_admin:
        if restaurant_id:
            return list_coupons([as_uuid(restaurant_id)], active=active, include_expired=True)
        return list_coupons(active=active, include_expired=True)
    owned = directory.owned_restaurant_ids(actor.id)
    if restaurant_id:
        rid = as_uuid(restaurant_id)
        if rid not in owned:
            raise NotOwner("access denied to this restaurant")
        owned = [rid]
    return list_coupons(owned, active=active, include_expired=True)

def list_public_coupons(restaurant_id=None):
    if restaurant_id:
        return list_coupons([as_uuid(restaurant_id)], active=True)
    return list_coupons(active=True)

def get_coupon(coupon_id, actor=None):
    """Coupon plus its most recent usages (newest first)."""
    c = db.session.get(Coupon, as_uuid(coupon_id)) if as_uuid(coupon_id) else None
    if not c:
        raise CouponNotFound(coupon_id)
    if actor is not None and c.restaurant_id is not None and not _can_manage(actor, c):
        raise NotOwner()
    limit = current_app.config.get("COUPON_RECENT_USAGES", 10)
    recent = c.usages.order_by(CouponUsage.created_at.desc()).limit(limit).all()
    return c, recent

def get_coupon_by_code(code) -> Coupon:
    c = find_coupon(code)
    if not c:
        raise CouponNotFound(code)
    return c

def most_used_coupons(limit: int = 10):
    return (Coupon.query.filter(Coupon.active.is_(True))
            .order_by(Coupon.usage_count.desc(), Coupon.code.asc())
            .limit(limit).all())

def usage_history(user_id):
    return (CouponUsage.query.filter(CouponUsage.user_id == as_uuid(user_id))
            .order_by(CouponUsage.created_at.desc(), CouponUsage.id.desc())
            .all())
