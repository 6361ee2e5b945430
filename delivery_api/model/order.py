import enum
from ..extensions import db
from ..utils.dates import utcnow, iso
from ..utils.money import to_float
from .types import GUID, new_id


class OrderStatus(str, enum.Enum):
    AWAITING_RESTAURANT = "AWAITING_RESTAURANT"
    CONFIRMED = "CONFIRMED"
    PREPARING = "PREPARING"
    READY = "READY"
    OUT_FOR_DELIVERY = "OUT_FOR_DELIVERY"
    DELIVERED = "DELIVERED"
    CANCELLED = "CANCELLED"

    @classmethod
    def parse(cls, value):
        """Member for ``value`` (case-insensitive); None when unknown."""
        if isinstance(value, cls):
            return value
        try:
            return cls(str(value or "").strip().upper())
        except ValueError:
            return None


# The whole lifecycle graph: current status -> statuses it may move to.
ALLOWED_TRANSITIONS = {
    OrderStatus.AWAITING_RESTAURANT: frozenset({OrderStatus.CONFIRMED, OrderStatus.CANCELLED}),
    OrderStatus.CONFIRMED: frozenset({OrderStatus.PREPARING, OrderStatus.CANCELLED}),
    OrderStatus.PREPARING: frozenset({OrderStatus.READY, OrderStatus.CANCELLED}),
    OrderStatus.READY: frozenset({OrderStatus.OUT_FOR_DELIVERY}),
    OrderStatus.OUT_FOR_DELIVERY: frozenset({OrderStatus.DELIVERED}),
    OrderStatus.DELIVERED: frozenset(),
    OrderStatus.CANCELLED: frozenset(),
}

# Milestone column stamped when an order enters a status.
MILESTONE_COLUMNS = {
    OrderStatus.CONFIRMED: "confirmed_at",
    OrderStatus.PREPARING: "preparing_at",
    OrderStatus.READY: "ready_at",
    OrderStatus.OUT_FOR_DELIVERY: "dispatched_at",
    OrderStatus.DELIVERED: "delivered_at",
    OrderStatus.CANCELLED: "cancelled_at",
}

def can_transition(current, requested) -> bool:
    current, requested = OrderStatus.parse(current), OrderStatus.parse(requested)
    if current is None or requested is None:
        return False
    return requested in ALLOWED_TRANSITIONS[current]


class Order(db.Model):
    __tablename__ = "orders"

    id = db.Column(GUID(), primary_key=True, default=new_id)
    status = db.Column(db.String(32), nullable=False, default=OrderStatus.AWAITING_RESTAURANT.value, index=True)

    customer_id = db.Column(GUID(), db.ForeignKey("user.id"), nullable=False, index=True)
    restaurant_id = db.Column(GUID(), db.ForeignKey("restaurant.id"), nullable=False, index=True)
    delivery_address_id = db.Column(GUID(), db.ForeignKey("address.id"), nullable=False)

    # Money snapshot
    subtotal = db.Column(db.Numeric(12, 2), nullable=False)
    discount = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    delivery_fee = db.Column(db.Numeric(12, 2), nullable=False)
    total = db.Column(db.Numeric(12, 2), nullable=False)

    note = db.Column(db.Text)

    # Lifecycle milestones
    confirmed_at = db.Column(db.DateTime)
    preparing_at = db.Column(db.DateTime)
    ready_at = db.Column(db.DateTime)
    dispatched_at = db.Column(db.DateTime)
    delivered_at = db.Column(db.DateTime)
    cancelled_at = db.Column(db.DateTime)

    created_at = db.Column(db.DateTime, default=utcnow, index=True)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    items = db.relationship(
        "OrderItem",
        backref="order",
        cascade="all, delete-orphan",
        lazy="selectin",
        order_by="OrderItem.position",
    )
    restaurant = db.relationship("Restaurant", lazy="joined")
    delivery_address = db.relationship("Address", lazy="joined")
    coupon_usage = db.relationship("CouponUsage", back_populates="order", uselist=False, lazy="selectin")

    def milestones(self):
        return {col: iso(getattr(self, col)) for col in MILESTONE_COLUMNS.values()}

    def as_api(self):
        usage = self.coupon_usage
        return {
            "id": str(self.id),
            "status": self.status,
            "customer_id": str(self.customer_id),
            "restaurant": self.restaurant.as_dict() if self.restaurant else {"id": str(self.restaurant_id)},
            "delivery_address": self.delivery_address.as_dict() if self.delivery_address else None,
            "money": {
                "subtotal": to_float(self.subtotal),
                "discount": to_float(self.discount or 0),
                "delivery_fee": to_float(self.delivery_fee),
                "total": to_float(self.total),
            },
            "coupon": usage.coupon.code if usage and usage.coupon else None,
            "note": self.note,
            "items": [i.as_api() for i in self.items],
            "milestones": self.milestones(),
            "created_at": iso(self.created_at),
            "updated_at": iso(self.updated_at),
        }

class OrderItem(db.Model):
    __tablename__ = "order_items"

    id = db.Column(db.Integer, primary_key=True)
    order_id = db.Column(GUID(), db.ForeignKey("orders.id"), nullable=False, index=True)
    position = db.Column(db.Integer, nullable=False, default=0)

    product_id = db.Column(GUID(), db.ForeignKey("product.id"), nullable=False, index=True)
    name = db.Column(db.String(255))

    unit_price = db.Column(db.Numeric(12, 2), nullable=False)
    quantity = db.Column(db.Integer, nullable=False)
    line_total = db.Column(db.Numeric(12, 2), nullable=False)
    note = db.Column(db.String(255))

    __table_args__ = (
        db.CheckConstraint("quantity > 0", name="ck_order_items_quantity_positive"),
    )

    def as_api(self):
        return {
            "product_id": str(self.product_id),
            "name": self.name,
            "unit_price": to_float(self.unit_price),
            "quantity": self.quantity,
            "line_total": to_float(self.line_total),
            "note": self.note,
        }
