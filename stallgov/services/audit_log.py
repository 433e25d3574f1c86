"""Audit log service - the accountability sink for every governance action."""
from flask import current_app
from flask_babel import gettext as _
from sqlalchemy.orm import joinedload

from stallgov.errors import PermissionDeniedError, ValidationError
from stallgov.models import AdminAction, AdminLogEntry, EntityType, User, db


def append(admin_id, action, entity_type, entity_id, details=None, ip_address=None):
    """
    Record one admin action.

    This is the only write the admin_logs table ever receives. It joins the
    caller's open transaction, so the entry commits together with the state
    change it describes and disappears with it on rollback.

    Args:
        admin_id: Admin performing the action
        action: AdminAction (or its value)
        entity_type: EntityType (or its value)
        entity_id: ID of the entity acted upon
        details: JSON-serialisable dict with action-specific context
        ip_address: Caller address, when the request carries one

    Returns:
        The pending AdminLogEntry
    """
    entry = AdminLogEntry(
        admin_id=admin_id,
        action=AdminAction(action),
        entity_type=EntityType(entity_type),
        entity_id=entity_id,
        details=details,
        ip_address=ip_address,
    )
    db.session.add(entry)
    db.session.flush()
    return entry


def require_admin(admin_id):
    """Load the acting admin, refusing anyone else.

    Every governance command calls this before writing, so an entry never
    names a user who was not an admin when it was recorded.
    """
    admin = db.session.get(User, admin_id) if admin_id is not None else None
    if admin is None:
        raise PermissionDeniedError(_('Unknown acting admin %(id)s', id=admin_id))
    if not admin.is_admin:
        raise PermissionDeniedError(_('Admin privileges required.'))
    return admin


def _filtered(admin_id=None, entity_type=None):
    query = AdminLogEntry.query
    if admin_id is not None:
        query = query.filter(AdminLogEntry.admin_id == admin_id)
    if entity_type is not None:
        try:
            query = query.filter(AdminLogEntry.entity_type == EntityType(entity_type))
        except ValueError:
            raise ValidationError(_('Unknown entity type: %(name)s', name=entity_type))
    return query


def list_entries(limit=None, offset=0, admin_id=None, entity_type=None):
    """Audit entries newest-first, with the acting admin loaded."""
    if limit is None:
        limit = current_app.config['AUDIT_LOG_PAGE_SIZE']
    if limit < 0 or offset < 0:
        raise ValidationError(_('limit and offset must not be negative'))
    limit = min(limit, current_app.config['AUDIT_LOG_MAX_PAGE_SIZE'])

    return (
        _filtered(admin_id, entity_type)
        .options(joinedload(AdminLogEntry.admin))
        .order_by(AdminLogEntry.created_at.desc(), AdminLogEntry.id.desc())
        .limit(limit)
        .offset(offset)
        .all()
    )


def count_entries(admin_id=None, entity_type=None):
    return _filtered(admin_id, entity_type).count()
