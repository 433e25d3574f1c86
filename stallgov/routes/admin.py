"""Admin routes - application queue, moderation cases, user promotion, audit log."""
from flask import Blueprint, current_app, jsonify, request

from stallgov.models import Application, ApplicationStatus, FoodStall, Review, User
from stallgov.routes.auth import admin_required, client_ip, current_caller
from stallgov.services import applications, audit_log, moderation, privileges

admin_bp = Blueprint('admin', __name__, url_prefix='/admin')


def _payload():
    return request.get_json(silent=True) or request.form.to_dict()


def _admin_id():
    user_id, _role = current_caller()
    return user_id


@admin_bp.route('/dashboard')
@admin_required
def dashboard():
    stats = {
        'total_users': User.query.count(),
        'active_stalls': FoodStall.query.filter_by(is_active=True).count(),
        'total_reviews': Review.query.count(),
        'pending_applications': Application.query.filter_by(status=ApplicationStatus.PENDING).count(),
    }
    stats.update(moderation.report_stats())
    return jsonify(stats)


# ==================== APPLICATIONS ====================

@admin_bp.route('/applications/pending')
@admin_required
def pending_applications():
    pending = applications.list_pending()
    return jsonify({'applications': [a.to_dict(include_applicant=True) for a in pending]})


@admin_bp.route('/applications/<int:application_id>')
@admin_required
def application_detail(application_id):
    application = applications.get_application(application_id)
    return jsonify(application.to_dict(include_applicant=True))


@admin_bp.route('/applications/<int:application_id>/approve', methods=['POST'])
@admin_required
def approve_application(application_id):
    notes = _payload().get('notes')
    stall_id = applications.approve(application_id, _admin_id(), notes=notes, ip_address=client_ip())
    return jsonify({'application_id': application_id, 'status': 'approved', 'stall_id': stall_id})


@admin_bp.route('/applications/<int:application_id>/decline', methods=['POST'])
@admin_required
def decline_application(application_id):
    notes = _payload().get('notes')
    applications.decline(application_id, _admin_id(), notes=notes, ip_address=client_ip())
    return jsonify({'application_id': application_id, 'status': 'declined'})


@admin_bp.route('/applications/<int:application_id>/archive', methods=['POST'])
@admin_required
def archive_application(application_id):
    applications.archive(application_id, _admin_id(), ip_address=client_ip())
    return jsonify({'application_id': application_id, 'status': 'archived'})


# ==================== REVIEW MODERATION ====================

@admin_bp.route('/reports')
@admin_required
def pending_cases():
    cases = moderation.list_pending_cases()
    return jsonify({'cases': [case.to_dict() for case in cases]})


@admin_bp.route('/reports/stats')
@admin_required
def report_stats():
    return jsonify(moderation.report_stats())


@admin_bp.route('/reviews/<int:review_id>/dismiss', methods=['POST'])
@admin_required
def dismiss_reports(review_id):
    reason = _payload().get('reason')
    dismissed = moderation.dismiss(review_id, _admin_id(), reason=reason, ip_address=client_ip())
    return jsonify({'review_id': review_id, 'reports_dismissed': dismissed})


@admin_bp.route('/reviews/<int:review_id>/delete', methods=['POST'])
@admin_required
def delete_review(review_id):
    reason = _payload().get('reason')
    moderation.delete_review(review_id, _admin_id(), reason, ip_address=client_ip())
    return jsonify({'review_id': review_id, 'deleted': True})


# ==================== USER MANAGEMENT ====================

@admin_bp.route('/users/convert', methods=['POST'])
@admin_required
def convert_to_admin():
    """Promote a user to admin, removing their stalls."""
    email = _payload().get('email', '')
    result = privileges.convert_to_admin(email, _admin_id(), ip_address=client_ip())
    return jsonify({
        'user_id': result.user_id,
        'prior_role': result.prior_role.value,
        'stalls_removed': result.stalls_removed,
        'applications_removed': result.applications_removed,
    })


# ==================== AUDIT LOG ====================

@admin_bp.route('/logs')
@admin_required
def logs():
    limit = request.args.get('limit', current_app.config['AUDIT_LOG_PAGE_SIZE'], type=int)
    offset = request.args.get('offset', 0, type=int)
    admin_id = request.args.get('admin_id', type=int)
    entity_type = request.args.get('entity_type') or None

    entries = audit_log.list_entries(limit=limit, offset=offset, admin_id=admin_id, entity_type=entity_type)
    return jsonify({
        'entries': [entry.to_dict() for entry in entries],
        'total': audit_log.count_entries(admin_id=admin_id, entity_type=entity_type),
        'limit': min(limit, current_app.config['AUDIT_LOG_MAX_PAGE_SIZE']),
        'offset': offset,
    })
