"""Stall application routes for vendors."""
from flask import Blueprint, jsonify, request

from stallgov.routes.auth import current_caller, login_required
from stallgov.services import applications

applications_bp = Blueprint('applications', __name__)


@applications_bp.route('/applications', methods=['POST'])
@login_required
def submit_application():
    """Submit a stall application. Document paths come from the upload step."""
    details = request.get_json(silent=True)
    if details is None:
        details = request.form.to_dict()
        details['categories'] = request.form.getlist('categories')
    user_id, _role = current_caller()
    application = applications.submit(user_id, details)
    return jsonify(application.to_dict()), 201


@applications_bp.route('/applications/mine')
@login_required
def my_applications():
    user_id, _role = current_caller()
    return jsonify({'applications': [a.to_dict() for a in applications.list_for_applicant(user_id)]})
