# --- delivery_api/model/restaurant.py ---
# Catalog records owned by the catalog/ownership services; orders only read them.
from sqlalchemy.sql import func
from ..extensions import db
from .types import GUID, new_id

class Restaurant(db.Model):
    __tablename__ = "restaurant"

    id = db.Column(GUID(), primary_key=True, default=new_id)
    owner_id = db.Column(GUID(), db.ForeignKey("user.id"), nullable=False, index=True)
    name = db.Column(db.String(180), nullable=False)
    phone = db.Column(db.String(50))
    active = db.Column(db.Boolean, nullable=False, default=True, index=True)
    delivery_fee = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    created_at = db.Column(db.DateTime, server_default=func.now())

    products = db.relationship("Product", backref="restaurant", lazy=True)

    def as_dict(self):
        return {"id": str(self.id), "name": self.name}


class Product(db.Model):
    __tablename__ = "product"

    id = db.Column(GUID(), primary_key=True, default=new_id)
    restaurant_id = db.Column(GUID(), db.ForeignKey("restaurant.id"), nullable=False, index=True)
    name = db.Column(db.String(255), nullable=False)
    price = db.Column(db.Numeric(12, 2), nullable=False, default=0)
    available = db.Column(db.Boolean, nullable=False, default=True)


class Address(db.Model):
    __tablename__ = "address"

    id = db.Column(GUID(), primary_key=True, default=new_id)
    user_id = db.Column(GUID(), db.ForeignKey("user.id"), nullable=False, index=True)
    street = db.Column(db.String(255), nullable=False)
    number = db.Column(db.String(20))
    complement = db.Column(db.String(120))
    district = db.Column(db.String(120))
    city = db.Column(db.String(120), nullable=False)
    state = db.Column(db.String(2), nullable=False)
    zip_code = db.Column(db.String(9), nullable=False)

    def as_dict(self):
        return {
            "id": str(self.id),
            "street": self.street,
            "number": self.number,
            "complement": self.complement,
            "district": self.district,
            "city": self.city,
            "state": self.state,
            "zip_code": self.zip_code,
        }
