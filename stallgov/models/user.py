"""User model."""
import enum

from stallgov.extensions import db
from stallgov.models.columns import enum_column, utcnow


class UserRole(enum.Enum):
    CUSTOMER = 'customer'
    STALL_OWNER = 'stall_owner'
    ADMIN = 'admin'


class User(db.Model):
    __tablename__ = 'users'

    id = db.Column(db.Integer, primary_key=True)
    email = db.Column(db.String(120), unique=True, nullable=False)
    name = db.Column(db.String(100))
    role = enum_column(UserRole, 'user_role', nullable=False, default=UserRole.CUSTOMER)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    @property
    def is_admin(self):
        return self.role is UserRole.ADMIN

    def to_dict(self):
        return {
            'id': self.id,
            'email': self.email,
            'name': self.name,
            'role': self.role.value,
        }
