"""Column helpers shared by the models."""
from datetime import datetime, timezone

from stallgov.extensions import db


def utcnow():
    """Naive UTC timestamp, matching the timezone-less DateTime columns."""
    return datetime.now(timezone.utc).replace(tzinfo=None)


def enum_column(enum_cls, name, **kwargs):
    """Closed enumeration stored by value ('pending'), not by member name."""
    return db.Column(
        db.Enum(
            enum_cls,
            name=name,
            values_callable=lambda members: [m.value for m in members],
            validate_strings=True,
        ),
        **kwargs,
    )


def isoformat(value):
    return value.isoformat() if value else None
