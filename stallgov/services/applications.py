"""Stall application service - vendor admission lifecycle.

Applications start PENDING and are closed exactly once, by approve, decline
or archive. Approving creates the applicant's FoodStall in the same
transaction as the status change.
"""
import structlog
from flask import current_app
from flask_babel import gettext as _
from flask_babel import lazy_gettext as _l
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from stallgov.errors import DuplicateError, NotFoundError, StateConflictError, ValidationError
from stallgov.models import (
    AdminAction,
    Application,
    ApplicationStatus,
    EntityType,
    FoodCategory,
    FoodStall,
    StallLocation,
    User,
    UserRole,
    db,
)
from stallgov.models.columns import utcnow
from stallgov.services import audit_log, notifications
from stallgov.services.transaction import atomic, guarded_update, locked_get

logger = structlog.get_logger(__name__)

REQUIRED_DOCUMENTS = {
    'registration_path': _l('Business registration'),
    'permit_path': _l('Business permit'),
    'tax_doc_path': _l('Tax document'),
    'logo_path': _l('Stall logo'),
}

_VALID_CATEGORIES = {c.value for c in FoodCategory}


def _clean(value):
    return value.strip() if isinstance(value, str) else value


def _coordinate(value, field, errors):
    if value in (None, ''):
        return None
    try:
        return float(value)
    except (TypeError, ValueError):
        errors[field] = _('Map coordinate must be a number')
        return None


def validate_details(details):
    """
    Check a submitted application form.

    Returns the cleaned column values; raises ValidationError listing every
    problem found, keyed by field.
    """
    config = current_app.config
    errors = {}

    stall_name = _clean(details.get('stall_name')) or ''
    if not stall_name:
        errors['stall_name'] = _('Stall name is required')
    elif len(stall_name) < config['MIN_STALL_NAME_LENGTH']:
        errors['stall_name'] = _(
            'Stall name must be at least %(num)s characters', num=config['MIN_STALL_NAME_LENGTH']
        )

    description = _clean(details.get('description')) or ''
    if not description:
        errors['description'] = _('Description is required')
    elif len(description) < config['MIN_DESCRIPTION_LENGTH']:
        errors['description'] = _(
            'Description must be at least %(num)s characters', num=config['MIN_DESCRIPTION_LENGTH']
        )

    location = _clean(details.get('location')) or ''
    if not location:
        errors['location'] = _('Location is required')

    categories = details.get('categories') or []
    if isinstance(categories, str):
        categories = [categories]
    unknown = sorted(set(categories) - _VALID_CATEGORIES)
    if not categories:
        errors['categories'] = _('Please select at least one food category')
    elif unknown:
        errors['categories'] = _('Unknown food categories: %(names)s', names=', '.join(unknown))

    documents = {}
    for field, label in REQUIRED_DOCUMENTS.items():
        path = _clean(details.get(field))
        if not path:
            errors[field] = _('%(label)s is required', label=label)
        documents[field] = path

    map_x = _coordinate(details.get('map_x'), 'map_x', errors)
    map_y = _coordinate(details.get('map_y'), 'map_y', errors)

    if errors:
        raise ValidationError(_('Application form is incomplete'), errors=errors)

    return dict(
        stall_name=stall_name,
        description=description,
        location=location,
        categories=sorted(set(categories)),
        map_x=map_x,
        map_y=map_y,
        **documents,
    )


def _has_pending(applicant_id):
    return db.session.query(
        Application.query.filter_by(applicant_id=applicant_id, status=ApplicationStatus.PENDING).exists()
    ).scalar()


def _has_active_stall(applicant_id):
    return db.session.query(
        FoodStall.query.filter_by(owner_id=applicant_id, is_active=True).exists()
    ).scalar()


def submit(applicant_id, details):
    """Persist a new pending application for ``applicant_id``."""
    fields = validate_details(details)

    with atomic('submit_application', applicant_id=applicant_id):
        applicant = db.session.get(User, applicant_id)
        if applicant is None:
            raise NotFoundError(_('User %(id)s not found', id=applicant_id))
        if applicant.is_admin:
            raise StateConflictError(_('Administrators cannot apply for a stall'))
        if _has_pending(applicant_id):
            raise DuplicateError(_('You already have a pending stall application'))
        if _has_active_stall(applicant_id):
            raise DuplicateError(_('You already own an active stall'))

        application = Application(applicant_id=applicant_id, status=ApplicationStatus.PENDING, **fields)
        db.session.add(application)
        try:
            db.session.flush()
        except IntegrityError:
            # Lost a race against a concurrent submit from the same applicant
            raise DuplicateError(_('You already have a pending stall application')) from None
        application_id = application.id

    logger.info('application_submitted', application_id=application_id, applicant_id=applicant_id)
    return application


def get_application(application_id):
    application = db.session.get(Application, application_id)
    if application is None:
        raise NotFoundError(_('Application %(id)s not found', id=application_id))
    return application


def list_pending():
    """Pending applications with their applicant, oldest first."""
    return (
        Application.query
        .options(joinedload(Application.applicant))
        .filter(Application.status == ApplicationStatus.PENDING)
        .order_by(Application.created_at.asc(), Application.id.asc())
        .all()
    )


def list_for_applicant(applicant_id):
    return (
        Application.query
        .filter_by(applicant_id=applicant_id)
        .order_by(Application.created_at.desc(), Application.id.desc())
        .all()
    )


def _load_for_transition(application_id, target):
    application = locked_get(Application, application_id)
    if application is None:
        raise NotFoundError(_('Application %(id)s not found', id=application_id))
    if not application.can_transition_to(target):
        raise StateConflictError(_(
            'Application %(id)s is already %(status)s',
            id=application_id, status=application.status.value,
        ))
    return application


def _claim(application, target, admin_id, notes):
    """Move a pending application to ``target``, failing if someone beat us to it."""
    claimed = guarded_update(
        Application,
        [Application.id == application.id, Application.status == ApplicationStatus.PENDING],
        {'status': target, 'review_notes': notes, 'reviewed_by': admin_id, 'reviewed_at': utcnow()},
    )
    if claimed != 1:
        raise StateConflictError(_('Application %(id)s is no longer pending', id=application.id))


def _recipient(application):
    applicant = application.applicant
    return applicant.email, applicant.name, application.stall_name


def approve(application_id, admin_id, notes=None, ip_address=None):
    """
    Approve a pending application and open the applicant's stall.

    Returns:
        ID of the new FoodStall
    """
    with atomic('approve_application', application_id=application_id, admin_id=admin_id):
        audit_log.require_admin(admin_id)
        application = _load_for_transition(application_id, ApplicationStatus.APPROVED)
        _claim(application, ApplicationStatus.APPROVED, admin_id, notes)

        # An admin cannot also be a vendor; the applicant may have been promoted since submitting
        promoted = guarded_update(
            User,
            [User.id == application.applicant_id, User.role != UserRole.ADMIN],
            {'role': UserRole.STALL_OWNER},
        )
        if promoted != 1:
            raise StateConflictError(_('The applicant is now an administrator and cannot own a stall'))

        stall = FoodStall(
            owner_id=application.applicant_id,
            name=application.stall_name,
            description=application.description,
            categories=list(application.categories or []),
            location=application.location,
            logo_path=application.logo_path,
            is_active=True,
        )
        db.session.add(stall)
        db.session.flush()

        if application.location:
            db.session.add(StallLocation(
                stall_id=stall.id,
                address=application.location,
                latitude=application.map_x,
                longitude=application.map_y,
            ))

        audit_log.append(
            admin_id,
            AdminAction.APPROVE_APPLICATION,
            EntityType.APPLICATION,
            application.id,
            details={'stall_name': application.stall_name, 'stall_id': stall.id, 'notes': notes},
            ip_address=ip_address,
        )
        stall_id = stall.id
        recipient = _recipient(application)

    logger.info('application_approved', application_id=application_id, stall_id=stall_id, admin_id=admin_id)
    notifications.application_approved(*recipient, notes=notes, application_id=application_id)
    return stall_id


def _close(application_id, admin_id, target, action, notes, ip_address):
    with atomic(action.value, application_id=application_id, admin_id=admin_id):
        audit_log.require_admin(admin_id)
        application = _load_for_transition(application_id, target)
        _claim(application, target, admin_id, notes)

        details = {'stall_name': application.stall_name}
        if notes:
            details['notes'] = notes
        audit_log.append(
            admin_id, action, EntityType.APPLICATION, application.id,
            details=details, ip_address=ip_address,
        )
        recipient = _recipient(application)

    logger.info(action.value, application_id=application_id, admin_id=admin_id)
    if target is ApplicationStatus.DECLINED:
        notifications.application_declined(*recipient, notes=notes, application_id=application_id)
    return application


def decline(application_id, admin_id, notes=None, ip_address=None):
    return _close(
        application_id, admin_id, ApplicationStatus.DECLINED,
        AdminAction.DECLINE_APPLICATION, notes, ip_address,
    )


def archive(application_id, admin_id, ip_address=None):
    """Hide a stale pending application without approving or declining it."""
    return _close(
        application_id, admin_id, ApplicationStatus.ARCHIVED,
        AdminAction.ARCHIVE_APPLICATION, None, ip_address,
    )
