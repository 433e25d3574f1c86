"""Governance error taxonomy and its JSON rendering."""
from flask import jsonify
from flask_babel import gettext as _


class GovernanceError(Exception):
    """Base for every error a governance operation reports to its caller."""

    code = 'governance_error'
    status_code = 400

    def __init__(self, message):
        super().__init__(message)
        self.message = message

    def to_dict(self):
        return {'error': self.code, 'message': self.message}


class ValidationError(GovernanceError):
    """Malformed input, e.g. missing moderation reason or a self-report."""

    code = 'validation_error'
    status_code = 400

    def __init__(self, message, errors=None):
        super().__init__(message)
        self.errors = errors or {}

    def to_dict(self):
        payload = super().to_dict()
        if self.errors:
            payload['errors'] = self.errors
        return payload


class NotFoundError(GovernanceError):
    code = 'not_found'
    status_code = 404


class StateConflictError(GovernanceError):
    """Operation invalid for the entity's current state."""

    code = 'state_conflict'
    status_code = 409


class DuplicateError(GovernanceError):
    code = 'duplicate'
    status_code = 409


class PermissionDeniedError(GovernanceError):
    """The acting user is not allowed to perform the command."""

    code = 'forbidden'
    status_code = 403


class TransactionFailedError(GovernanceError):
    """Store failure in the middle of a write; the transaction was rolled back.

    The message names only the operation. Details stay in the server log.
    """

    code = 'transaction_failed'
    status_code = 500

    def __init__(self, operation):
        super().__init__(f'{operation} could not be completed')
        self.operation = operation


def register_error_handlers(app):
    """Render governance errors as JSON responses."""

    @app.errorhandler(GovernanceError)
    def handle_governance_error(error):
        payload = error.to_dict()
        if isinstance(error, TransactionFailedError):
            payload['message'] = _('The operation could not be completed. Please try again.')
        return jsonify(payload), error.status_code

    @app.errorhandler(403)
    def handle_forbidden(error):
        return jsonify({'error': 'forbidden', 'message': _('Admin privileges required.')}), 403

    @app.errorhandler(401)
    def handle_unauthorized(error):
        return jsonify({'error': 'unauthorized', 'message': _('Please log in.')}), 401
