"""FoodStall and the entities that only exist while their stall does."""
import enum

from stallgov.extensions import db
from stallgov.models.columns import isoformat, utcnow


class FoodCategory(enum.Enum):
    BEVERAGES = 'beverages'
    RICE_MEALS = 'rice_meals'
    SNACKS = 'snacks'
    STREET_FOOD = 'street_food'
    FAST_FOOD = 'fast_food'
    PASTRIES = 'pastries'
    OTHERS = 'others'


class FoodStall(db.Model):
    __tablename__ = 'food_stalls'

    id = db.Column(db.Integer, primary_key=True)
    owner_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    categories = db.Column(db.JSON, nullable=False, default=list)
    location = db.Column(db.String(500))
    logo_path = db.Column(db.String(500))
    is_active = db.Column(db.Boolean, nullable=False, default=True)
    created_at = db.Column(db.DateTime, default=utcnow)

    owner = db.relationship('User', backref='stalls')

    def to_dict(self):
        return {
            'id': self.id,
            'owner_id': self.owner_id,
            'name': self.name,
            'description': self.description,
            'categories': list(self.categories or []),
            'location': self.location,
            'logo_path': self.logo_path,
            'is_active': self.is_active,
            'created_at': isoformat(self.created_at),
        }


class StallLocation(db.Model):
    __tablename__ = 'stall_locations'

    id = db.Column(db.Integer, primary_key=True)
    stall_id = db.Column(db.Integer, db.ForeignKey('food_stalls.id'), nullable=False, unique=True)
    address = db.Column(db.String(500), nullable=False)
    latitude = db.Column(db.Float)  # map_x on the application form
    longitude = db.Column(db.Float)
    created_at = db.Column(db.DateTime, default=utcnow)


class MenuItem(db.Model):
    __tablename__ = 'menu_items'

    id = db.Column(db.Integer, primary_key=True)
    stall_id = db.Column(db.Integer, db.ForeignKey('food_stalls.id'), nullable=False, index=True)
    name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text)
    price = db.Column(db.Numeric(10, 2))
    image_path = db.Column(db.String(500))
    created_at = db.Column(db.DateTime, default=utcnow)
