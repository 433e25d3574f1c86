"""AdminLogEntry model: the append-only audit trail."""
import enum

from sqlalchemy import event

from stallgov.extensions import db
from stallgov.models.columns import enum_column, isoformat, utcnow


class AdminAction(enum.Enum):
    APPROVE_APPLICATION = 'approve_application'
    DECLINE_APPLICATION = 'decline_application'
    ARCHIVE_APPLICATION = 'archive_application'
    DISMISS_REPORTS = 'dismiss_reports'
    DELETE_REVIEW = 'delete_review'
    CONVERT_TO_ADMIN = 'convert_to_admin'


class EntityType(enum.Enum):
    APPLICATION = 'application'
    REVIEW = 'review'
    USER = 'user'


class AdminLogEntry(db.Model):
    __tablename__ = 'admin_logs'

    id = db.Column(db.Integer, primary_key=True)
    admin_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    action = enum_column(AdminAction, 'admin_action', nullable=False)
    entity_type = enum_column(EntityType, 'log_entity_type', nullable=False, index=True)
    entity_id = db.Column(db.Integer)
    details = db.Column(db.JSON)
    ip_address = db.Column(db.String(45))
    created_at = db.Column(db.DateTime, default=utcnow, index=True)

    admin = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'admin_id': self.admin_id,
            'admin_name': self.admin.name if self.admin else None,
            'admin_email': self.admin.email if self.admin else None,
            'action': self.action.value,
            'entity_type': self.entity_type.value,
            'entity_id': self.entity_id,
            'details': self.details,
            'ip_address': self.ip_address,
            'created_at': isoformat(self.created_at),
        }


class AppendOnlyViolation(RuntimeError):
    pass


@event.listens_for(AdminLogEntry, 'before_update')
def _reject_update(mapper, connection, target):
    raise AppendOnlyViolation(f'admin log entry {target.id} is append-only')


@event.listens_for(AdminLogEntry, 'before_delete')
def _reject_delete(mapper, connection, target):
    raise AppendOnlyViolation(f'admin log entry {target.id} cannot be deleted')
