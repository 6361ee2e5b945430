# delivery_api/services/ledger.py
"""
Coupon ledger: the only place a coupon's usage counter moves.

``apply_coupon`` runs inside the caller's transaction and never commits; the
checkout commits (or rolls back) the order, the usage row and the counter
together.
"""
from __future__ import annotations
from dataclasses import dataclass
from sqlalchemy import or_, update
from sqlalchemy.exc import IntegrityError

from ..extensions import db
from ..errors import CouponInvalid
from ..logger import get_logger
from ..model import Coupon, CouponUsage
from ..model.types import as_uuid
from ..utils.money import Money
from .coupon_service import EXHAUSTED, validate_coupon

log = get_logger(__name__)


@dataclass(frozen=True)
class CouponApplication:
    coupon_id: object
    code: str
    discount: Money

    def as_api(self):
        return {"coupon_id": str(self.coupon_id), "code": self.code, "discount": float(self.discount)}


def _claim_slot(coupon_id) -> bool:
    """Increment usage_count only while it is below the cap. True when a slot was taken."""
    stmt = (
        update(Coupon)
        .where(Coupon.id == coupon_id)
        .where(or_(Coupon.max_uses.is_(None), Coupon.usage_count < Coupon.max_uses))
        .values(usage_count=Coupon.usage_count + 1)
        .execution_options(synchronize_session=False)
    )
    return db.session.execute(stmt).rowcount == 1


def apply_coupon(code, user_id, order_id, order_subtotal, restaurant_id=None) -> CouponApplication:
    """
    Record ``code`` against ``order_id`` once and bump the coupon's counter.

    Validation is repeated here: a discount quoted earlier is advisory only.
    Raises CouponInvalid when the coupon no longer qualifies, the last slot was
    taken by a concurrent order, or the order already carries a coupon.
    """
    check = validate_coupon(code, user_id, order_subtotal, restaurant_id, exclude_order_id=order_id)
    if not check.valid:
        raise CouponInvalid(check.reason, check.failure)

    coupon = check.coupon
    if not _claim_slot(coupon.id):
        log.warning("coupon {} lost the race for its last slot (order {})", coupon.code, order_id)
        raise CouponInvalid("Coupon usage limit reached", EXHAUSTED)

    usage = CouponUsage(
        coupon_id=coupon.id,
        user_id=as_uuid(user_id),
        order_id=as_uuid(order_id),
        discount=check.discount,
    )
    db.session.add(usage)
    try:
        db.session.flush()
    except IntegrityError:
        # the caller's rollback also undoes the slot claimed above
        raise CouponInvalid("A coupon was already applied to this order", "AlreadyApplied")

    # the UPDATE bypassed the identity map
    db.session.expire(coupon, ["usage_count"])
    log.info("coupon {} applied to order {} (discount {})", coupon.code, order_id, check.discount)
    return CouponApplication(coupon_id=coupon.id, code=coupon.code, discount=check.discount)
