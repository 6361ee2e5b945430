# --- delivery_api/model/user.py ---

from ..extensions import db
from .types import GUID, new_id

ROLE_CUSTOMER = "customer"
ROLE_OWNER = "restaurant_owner"
ROLE_ADMIN = "admin"
ROLES = {ROLE_CUSTOMER, ROLE_OWNER, ROLE_ADMIN}

class User(db.Model):
    __tablename__ = "user"

    id = db.Column(GUID(), primary_key=True, default=new_id)
    name = db.Column(db.String(180), nullable=True)
    email = db.Column(db.String(255), unique=True, nullable=False, index=True)
    phone = db.Column(db.String(50), nullable=True)
    role = db.Column(db.String(32), nullable=False, default=ROLE_CUSTOMER, index=True)

    @property
    def is_admin(self) -> bool:
        return self.role == ROLE_ADMIN

    def as_dict(self):
        return {
            "id": str(self.id),
            "email": self.email,
            "name": self.name,
            "role": self.role,
            }
