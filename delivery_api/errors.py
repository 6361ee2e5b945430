# --- delivery_api/errors.py ---
from flask import jsonify

from .utils.api import api_error


class DomainError(Exception):
    """Base for every failure the request layer maps to a response."""
    status_code = 400

    def __init__(self, message: str, data: dict | None = None):
        super().__init__(message)
        self.message = message
        self.data = data or {}

    @property
    def error(self) -> str:
        return type(self).__name__


# ---- validation (rejected before storage access) ----
class ValidationError(DomainError):
    status_code = 400

class InvalidQuantity(ValidationError):
    def __init__(self, product_id=None, quantity=None):
        super().__init__(
            "quantity must be a positive integer",
            {"product_id": str(product_id) if product_id is not None else None, "quantity": quantity},
        )


# ---- not found / not owned ----
class OrderNotFound(DomainError):
    status_code = 404

    def __init__(self, order_id=None):
        super().__init__("order not found", {"order_id": str(order_id) if order_id else None})

class CouponNotFound(DomainError):
    status_code = 404

    def __init__(self, ref=None):
        super().__init__("coupon not found", {"coupon": str(ref) if ref else None})

class NotOwner(DomainError):
    status_code = 403

    def __init__(self, message: str = "access denied"):
        super().__init__(message)

class AddressNotOwned(DomainError):
    status_code = 403

    def __init__(self, address_id=None):
        super().__init__("delivery address not found or not yours", {"address_id": str(address_id)})

class RestaurantUnavailable(DomainError):
    status_code = 404

    def __init__(self, restaurant_id=None):
        super().__init__("restaurant not found or inactive", {"restaurant_id": str(restaurant_id)})

class ProductUnavailable(DomainError):
    status_code = 422

    def __init__(self, product_id):
        super().__init__(f"product {product_id} not found or unavailable", {"product_id": str(product_id)})
        self.product_id = product_id


# ---- state conflicts ----
class StateConflict(DomainError):
    status_code = 409

class IllegalTransition(StateConflict):
    def __init__(self, current, requested):
        current = getattr(current, "value", current)
        requested = getattr(requested, "value", requested)
        super().__init__(
            f"transition from {current} to {requested} is not allowed",
            {"from": current, "to": requested},
        )
        self.current = current
        self.requested = requested

class CannotCancelAfterConfirmation(StateConflict):
    def __init__(self, current):
        current = getattr(current, "value", current)
        super().__init__("order can no longer be cancelled by the customer", {"status": current})

class CouponInvalid(StateConflict):
    def __init__(self, reason: str, failure: str | None = None):
        super().__init__(reason, {"reason": failure} if failure else None)
        self.reason = reason
        self.failure = failure

class CouponCodeTaken(StateConflict):
    def __init__(self, code):
        super().__init__("a coupon with this code already exists", {"code": code})


def register_error_handlers(app):
    @app.errorhandler(DomainError)
    def handle_domain_error(e: DomainError):
        r = jsonify(api_error(e.message, {"error": e.error, **e.data}))
        r.status_code = e.status_code
        return r
