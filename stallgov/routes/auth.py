"""Caller identity and role decorators.

Authentication happens upstream; the session collaborator stores the
caller's ``user_id`` and ``user_role``. Routes read them here and pass them
explicitly into the services.
"""
from functools import wraps

from flask import abort, request, session

from stallgov.logging_config import bind_caller, clear_context


def current_caller():
    return session.get('user_id'), session.get('user_role')


def client_ip():
    return request.remote_addr


def bind_request_caller():
    clear_context()
    user_id, role = current_caller()
    if user_id is not None:
        bind_caller(user_id, role)


# ==================== RBAC Decorators ====================

def login_required(f):
    @wraps(f)
    def decorated_function(*args, **kwargs):
        if 'user_id' not in session:
            abort(401)
        return f(*args, **kwargs)
    return decorated_function


def role_required(roles):
    def decorator(f):
        @wraps(f)
        def decorated_function(*args, **kwargs):
            if 'user_id' not in session:
                abort(401)
            if session.get('user_role') not in roles:
                abort(403)  # Forbidden
            return f(*args, **kwargs)
        return decorated_function
    return decorator


def admin_required(f):
    return role_required(['admin'])(f)
