"""Privilege escalation - promote a user to admin.

An admin cannot also be a vendor, so promotion removes every stall the user
owns (with its dependents) and their pending applications in the same
transaction as the role change.
"""
from dataclasses import dataclass

import structlog
from flask_babel import gettext as _
from sqlalchemy import func

from stallgov.errors import NotFoundError, StateConflictError
from stallgov.models import (
    AdminAction,
    Application,
    ApplicationStatus,
    EntityType,
    FoodStall,
    MenuItem,
    ReportResolution,
    Review,
    ReviewReaction,
    StallLocation,
    User,
    UserRole,
)
from stallgov.services import audit_log
from stallgov.services.moderation import resolve_open_reports
from stallgov.services.transaction import atomic, guarded_delete, guarded_update

logger = structlog.get_logger(__name__)

CASCADE_NOTE = 'Stall removed when its owner became an admin'


@dataclass
class ConversionResult:
    user_id: int
    prior_role: UserRole
    stalls_removed: int
    applications_removed: int


def _delete_reactions(review_ids):
    for review_id in review_ids:
        guarded_delete(ReviewReaction, [ReviewReaction.review_id == review_id])


def _delete_reviews(stall_id, review_ids, admin_id):
    for review_id in review_ids:
        resolve_open_reports(review_id, ReportResolution.REMOVED, admin_id, CASCADE_NOTE)
    guarded_delete(Review, [Review.stall_id == stall_id])


def _delete_menu_items(stall_id):
    guarded_delete(MenuItem, [MenuItem.stall_id == stall_id])


def _delete_stall_location(stall_id):
    guarded_delete(StallLocation, [StallLocation.stall_id == stall_id])


def remove_stall(stall_id, admin_id):
    """Delete a stall and everything that only exists because of it.

    Children go first so no foreign key ever points at a missing row. Must be
    called inside an open transaction.
    """
    review_ids = [
        review_id for (review_id,) in
        Review.query.with_entities(Review.id).filter(Review.stall_id == stall_id)
    ]
    _delete_reactions(review_ids)
    _delete_reviews(stall_id, review_ids, admin_id)
    _delete_menu_items(stall_id)
    _delete_stall_location(stall_id)
    return guarded_delete(FoodStall, [FoodStall.id == stall_id])


def find_user_by_email(email):
    normalized = (email or '').strip().lower()
    return User.query.filter(func.lower(User.email) == normalized).first()


def convert_to_admin(target_email, acting_admin_id, ip_address=None):
    """
    Promote the user with ``target_email`` to administrator.

    Raises:
        PermissionDeniedError: the acting user is not an admin
        NotFoundError: no user has that email
        StateConflictError: the user is already an admin, or another admin
            changed their role while this conversion was running

    Returns:
        ConversionResult
    """
    user = find_user_by_email(target_email)
    if user is None:
        raise NotFoundError(_('No user found with email %(email)s', email=target_email))
    if user.is_admin:
        raise StateConflictError(_('%(email)s is already an admin', email=user.email))

    user_id = user.id
    email = user.email
    prior_role = user.role

    with atomic('convert_to_admin', user_id=user_id, admin_id=acting_admin_id):
        audit_log.require_admin(acting_admin_id)
        stall_ids = [
            stall_id for (stall_id,) in
            FoodStall.query.with_entities(FoodStall.id)
            .filter(FoodStall.owner_id == user_id)
            .order_by(FoodStall.id)
        ]
        stalls_removed = sum(remove_stall(stall_id, acting_admin_id) for stall_id in stall_ids)

        applications_removed = guarded_delete(
            Application,
            [Application.applicant_id == user_id, Application.status == ApplicationStatus.PENDING],
        )

        promoted = guarded_update(
            User,
            [User.id == user_id, User.role == prior_role],
            {'role': UserRole.ADMIN},
        )
        if promoted != 1:
            raise StateConflictError(
                _('The role of %(email)s changed during conversion; try again', email=email)
            )

        audit_log.append(
            acting_admin_id,
            AdminAction.CONVERT_TO_ADMIN,
            EntityType.USER,
            user_id,
            details={
                'email': email,
                'name': user.name,
                'prior_role': prior_role.value,
                'stalls_removed': stalls_removed,
                'applications_removed': applications_removed,
            },
            ip_address=ip_address,
        )

    logger.info(
        'user_converted_to_admin',
        user_id=user_id,
        prior_role=prior_role.value,
        stalls_removed=stalls_removed,
        admin_id=acting_admin_id,
    )
    return ConversionResult(
        user_id=user_id,
        prior_role=prior_role,
        stalls_removed=stalls_removed,
        applications_removed=applications_removed,
    )
