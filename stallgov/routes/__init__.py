"""Routes package - Blueprint registration."""
from stallgov.routes.admin import admin_bp
from stallgov.routes.applications import applications_bp
from stallgov.routes.auth import bind_request_caller
from stallgov.routes.reviews import reviews_bp


def register_blueprints(app):
    """Register all blueprints with the Flask app."""
    app.before_request(bind_request_caller)
    app.register_blueprint(applications_bp)
    app.register_blueprint(reviews_bp)
    app.register_blueprint(admin_bp)
