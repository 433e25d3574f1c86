"""Review routes - abuse reports from customers."""
from flask import Blueprint, jsonify, request

from stallgov.routes.auth import current_caller, login_required
from stallgov.services import moderation

reviews_bp = Blueprint('reviews', __name__)


@reviews_bp.route('/reviews/<int:review_id>/report', methods=['POST'])
@login_required
def report_review(review_id):
    data = request.get_json(silent=True) or request.form.to_dict()
    user_id, _role = current_caller()
    review_report = moderation.report(
        review_id,
        user_id,
        data.get('reason', ''),
        custom_reason=data.get('custom_reason'),
    )
    return jsonify(review_report.to_dict()), 201
