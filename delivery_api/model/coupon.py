# --- delivery_api/model/coupon.py ---
import enum
from ..extensions import db
from ..utils.dates import utcnow, iso
from ..utils.money import to_float
from .types import GUID, new_id


class CouponKind(str, enum.Enum):
    PERCENTAGE = "PERCENTAGE"
    FIXED = "FIXED"


class Coupon(db.Model):
    __tablename__ = "coupon"

    id = db.Column(GUID(), primary_key=True, default=new_id)
    # stored upper-cased; lookups canonicalize the same way
    code = db.Column(db.String(64), unique=True, nullable=False, index=True)
    description = db.Column(db.String(255))

    kind = db.Column(db.String(16), nullable=False, default=CouponKind.PERCENTAGE.value)
    value = db.Column(db.Numeric(10, 2), nullable=False)

    # Optional constraints
    min_order_subtotal = db.Column(db.Numeric(10, 2), nullable=True)
    max_discount = db.Column(db.Numeric(10, 2), nullable=True)       # percentage only
    expires_at = db.Column(db.DateTime, nullable=False)
    max_uses = db.Column(db.Integer, nullable=True)                  # global usage cap
    max_uses_per_user = db.Column(db.Integer, nullable=True)
    restaurant_id = db.Column(GUID(), db.ForeignKey("restaurant.id"), nullable=True, index=True)
    first_order_only = db.Column(db.Boolean, nullable=False, default=False)

    active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    usage_count = db.Column(db.Integer, nullable=False, default=0)

    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    restaurant = db.relationship("Restaurant", lazy="joined")
    usages = db.relationship("CouponUsage", back_populates="coupon", lazy="dynamic")

    __table_args__ = (
        db.CheckConstraint("max_uses IS NULL OR usage_count <= max_uses", name="ck_coupon_usage_within_cap"),
    )

    def as_api(self):
        return {
            "id": str(self.id),
            "code": self.code,
            "description": self.description,
            "kind": self.kind,
            "value": to_float(self.value),
            "min_order_subtotal": to_float(self.min_order_subtotal),
            "max_discount": to_float(self.max_discount),
            "expires_at": iso(self.expires_at),
            "max_uses": self.max_uses,
            "max_uses_per_user": self.max_uses_per_user,
            "first_order_only": self.first_order_only,
            "restaurant": self.restaurant.as_dict() if self.restaurant else None,
            "active": self.active,
            "usage_count": self.usage_count,
            "created_at": iso(self.created_at),
        }


class CouponUsage(db.Model):
    __tablename__ = "coupon_usage"

    id = db.Column(db.Integer, primary_key=True)
    coupon_id = db.Column(GUID(), db.ForeignKey("coupon.id"), nullable=False, index=True)
    user_id = db.Column(GUID(), db.ForeignKey("user.id"), nullable=False, index=True)
    # one usage per order
    order_id = db.Column(GUID(), db.ForeignKey("orders.id"), nullable=False, unique=True)
    discount = db.Column(db.Numeric(12, 2), nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    coupon = db.relationship("Coupon", back_populates="usages", lazy="joined")
    order = db.relationship("Order", back_populates="coupon_usage")
    user = db.relationship("User", lazy="joined")

    __table_args__ = (
        db.UniqueConstraint("coupon_id", "order_id", name="uq_coupon_usage_coupon_order"),
        db.Index("ix_coupon_usage_coupon_user", "coupon_id", "user_id"),
    )

    def as_api(self, with_order: bool = False):
        data = {
            "id": self.id,
            "coupon": {"id": str(self.coupon_id), "code": self.coupon.code if self.coupon else None},
            "user": self.user.as_dict() if self.user else {"id": str(self.user_id)},
            "order_id": str(self.order_id),
            "discount": to_float(self.discount),
            "created_at": iso(self.created_at),
        }
        if with_order and self.order is not None:
            data["order"] = {
                "id": str(self.order.id),
                "total": to_float(self.order.total),
                "restaurant": self.order.restaurant.as_dict() if self.order.restaurant else None,
                "created_at": iso(self.order.created_at),
            }
        return data
