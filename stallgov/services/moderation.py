"""Review moderation service.

Customers report reviews; every unresolved report against one review forms a
single moderation case. Admins close a case by dismissing the reports (review
stays) or by deleting the review.
"""
from dataclasses import dataclass, field
from datetime import datetime

import structlog
from flask_babel import gettext as _
from sqlalchemy import func
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import joinedload

from stallgov.errors import DuplicateError, NotFoundError, ValidationError
from stallgov.models import (
    AdminAction,
    EntityType,
    ReportReason,
    ReportResolution,
    Review,
    ReviewReaction,
    ReviewReport,
    User,
    db,
)
from stallgov.models.columns import isoformat, utcnow
from stallgov.services import audit_log, notifications
from stallgov.services.transaction import atomic, guarded_delete, guarded_update, locked_get

logger = structlog.get_logger(__name__)


@dataclass
class ModerationCase:
    review: Review
    total_reports: int
    first_report_date: datetime
    reports: list = field(default_factory=list)

    def to_dict(self):
        return {
            'review': self.review.to_dict(),
            'total_reports': self.total_reports,
            'first_report_date': isoformat(self.first_report_date),
            'reports': [r.to_dict() for r in self.reports],
        }


def _open(query):
    return query.filter(ReviewReport.resolved == False)  # noqa: E712


def report(review_id, reporter_id, reason, custom_reason=None):
    """File an abuse report against a review."""
    try:
        reason = ReportReason(reason)
    except ValueError:
        raise ValidationError(
            _('Unknown report reason: %(reason)s', reason=reason),
            errors={'reason': _(
                'Choose one of: %(names)s', names=', '.join(r.value for r in ReportReason)
            )},
        ) from None

    custom_reason = custom_reason.strip() if custom_reason else None
    if reason is ReportReason.OTHER and not custom_reason:
        raise ValidationError(
            _('Please describe why you are reporting this review'),
            errors={'custom_reason': _('Required when the reason is "other"')},
        )
    if reason is not ReportReason.OTHER:
        custom_reason = None

    with atomic('report_review', review_id=review_id, reporter_id=reporter_id):
        review = db.session.get(Review, review_id)
        if review is None:
            raise NotFoundError(_('Review %(id)s not found', id=review_id))
        if db.session.get(User, reporter_id) is None:
            raise NotFoundError(_('User %(id)s not found', id=reporter_id))
        if review.author_id == reporter_id:
            raise ValidationError(_('You cannot report your own review'))

        already_open = _open(ReviewReport.query.filter_by(review_id=review_id, reporter_id=reporter_id)).first()
        if already_open is not None:
            raise DuplicateError(_('You have already reported this review'))

        review_report = ReviewReport(
            review_id=review_id,
            reporter_id=reporter_id,
            reason=reason,
            custom_reason=custom_reason,
            resolved=False,
        )
        db.session.add(review_report)
        try:
            db.session.flush()
        except IntegrityError:
            raise DuplicateError(_('You have already reported this review')) from None
        report_id = review_report.id

    logger.info('review_reported', review_id=review_id, report_id=report_id, reason=reason.value)
    return review_report


def list_pending_cases():
    """
    Unresolved reports grouped by review, oldest case first.

    A case's age is the date of its first unresolved report. Reports of
    reviews that no longer exist are left out.
    """
    open_reports = (
        _open(ReviewReport.query)
        .join(Review, Review.id == ReviewReport.review_id)
        .options(joinedload(ReviewReport.reporter))
        .order_by(ReviewReport.created_at.asc(), ReviewReport.id.asc())
        .all()
    )

    grouped = {}
    for review_report in open_reports:
        grouped.setdefault(review_report.review_id, []).append(review_report)
    if not grouped:
        return []

    reviews = {
        review.id: review
        for review in Review.query
        .options(joinedload(Review.stall), joinedload(Review.author))
        .filter(Review.id.in_(list(grouped)))
    }

    return [
        ModerationCase(
            review=reviews[review_id],
            total_reports=len(reports),
            first_report_date=reports[0].created_at,
            reports=reports,
        )
        for review_id, reports in grouped.items()
    ]


def resolve_open_reports(review_id, resolution, admin_id, notes):
    """Close every unresolved report on a review; returns how many were closed."""
    return guarded_update(
        ReviewReport,
        [ReviewReport.review_id == review_id, ReviewReport.resolved == False],  # noqa: E712
        {
            'resolved': True,
            'resolution': resolution,
            'reviewed_by': admin_id,
            'review_notes': notes,
            'reviewed_at': utcnow(),
        },
    )


def dismiss(review_id, admin_id, reason=None, ip_address=None):
    """
    Dismiss the moderation case of a review, leaving the review in place.

    Dismissing a case with nothing unresolved is a no-op: it returns 0 and
    writes no audit entry, so replayed requests are harmless.

    Returns:
        Number of reports dismissed
    """
    reason = reason.strip() if reason else None

    with atomic('dismiss_reports', review_id=review_id, admin_id=admin_id):
        audit_log.require_admin(admin_id)
        review = locked_get(Review, review_id)
        if review is None:
            raise NotFoundError(_('Review %(id)s not found', id=review_id))

        dismissed = resolve_open_reports(review_id, ReportResolution.DISMISSED, admin_id, reason)
        if dismissed:
            audit_log.append(
                admin_id,
                AdminAction.DISMISS_REPORTS,
                EntityType.REVIEW,
                review_id,
                details={
                    'stall_name': review.stall.name if review.stall else None,
                    'reports_dismissed': dismissed,
                    'reason': reason,
                },
                ip_address=ip_address,
            )

    if dismissed:
        logger.info('reports_dismissed', review_id=review_id, count=dismissed, admin_id=admin_id)
    else:
        logger.info('dismiss_noop', review_id=review_id, admin_id=admin_id)
    return dismissed


def delete_review(review_id, admin_id, reason, ip_address=None):
    """Delete a review with its reactions and close its reports."""
    reason = reason.strip() if reason else ''
    if not reason:
        raise ValidationError(
            _('Please provide a reason for deleting the review'),
            errors={'reason': _('Required')},
        )

    with atomic('delete_review', review_id=review_id, admin_id=admin_id):
        audit_log.require_admin(admin_id)
        review = locked_get(Review, review_id)
        if review is None:
            raise NotFoundError(_('Review %(id)s not found', id=review_id))

        author = review.author
        recipient = (author.email, author.name) if author else (None, None)
        details = {
            'stall_id': review.stall_id,
            'stall_name': review.stall.name if review.stall else None,
            'author_id': review.author_id,
            'rating': review.rating,
            'reason': reason,
        }

        reactions = guarded_delete(ReviewReaction, [ReviewReaction.review_id == review_id])
        resolved = resolve_open_reports(review_id, ReportResolution.REMOVED, admin_id, reason)
        if guarded_delete(Review, [Review.id == review_id]) != 1:
            raise NotFoundError(_('Review %(id)s not found', id=review_id))

        details.update(reactions_removed=reactions, reports_resolved=resolved)
        audit_log.append(
            admin_id, AdminAction.DELETE_REVIEW, EntityType.REVIEW, review_id,
            details=details, ip_address=ip_address,
        )

    logger.info('review_deleted', review_id=review_id, admin_id=admin_id, reports_resolved=resolved)
    notifications.review_removed(*recipient, details['stall_name'], reason, review_id=review_id)


def report_stats():
    open_reports = _open(ReviewReport.query).join(Review, Review.id == ReviewReport.review_id)
    return {
        'pending_reports': open_reports.count(),
        'open_cases': open_reports.with_entities(func.count(func.distinct(ReviewReport.review_id))).scalar(),
    }
