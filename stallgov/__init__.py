"""
stallgov - Application Factory
"""
import os

import click
from dotenv import load_dotenv
from flask import Flask, current_app, has_request_context, request

from config.settings import config
from stallgov.errors import GovernanceError, register_error_handlers
from stallgov.extensions import babel, db
from stallgov.logging_config import configure_logging
from stallgov.routes import register_blueprints
from stallgov.services.notifications import init_mailer


def get_locale():
    """Determine the best locale for the caller."""
    if not has_request_context():
        # CLI and background work fall back to BABEL_DEFAULT_LOCALE
        return None
    return request.accept_languages.best_match(current_app.config['LANGUAGES'])


def create_app(config_name=None):
    """Application Factory."""
    load_dotenv()

    if config_name is None:
        config_name = os.environ.get('FLASK_ENV', 'development')

    app = Flask(__name__)
    app.config.from_object(config.get(config_name, config['default']))

    configure_logging(app)

    # Initialize extensions
    db.init_app(app)
    babel.init_app(app, locale_selector=get_locale)
    init_mailer(app)

    register_blueprints(app)
    register_error_handlers(app)

    # CLI Commands
    register_cli_commands(app)

    return app


def register_cli_commands(app):
    """Register CLI commands."""

    @app.cli.command('init-db')
    def init_db_command():
        """Creates database tables."""
        db.create_all()
        click.echo('Initialized the database.')

    @app.cli.command('convert-to-admin')
    @click.argument('email')
    @click.option('--acting-admin', 'acting_admin_id', type=int, required=True,
                  help='ID of the admin performing the conversion.')
    def convert_to_admin_command(email, acting_admin_id):
        """Promote EMAIL to admin, removing their stalls."""
        from stallgov.services.privileges import convert_to_admin

        try:
            result = convert_to_admin(email, acting_admin_id)
        except GovernanceError as exc:
            raise click.ClickException(exc.message)

        message = f'{email} is now an admin (was {result.prior_role.value}).'
        if result.stalls_removed:
            message += f' Removed {result.stalls_removed} stall(s).'
        click.echo(message)

    @app.cli.command('admin-logs')
    @click.option('--limit', default=20, show_default=True)
    @click.option('--offset', default=0, show_default=True)
    def admin_logs_command(limit, offset):
        """Print recent admin log entries, newest first."""
        from stallgov.services.audit_log import list_entries

        for entry in list_entries(limit=limit, offset=offset):
            admin = entry.admin.email if entry.admin else entry.admin_id
            click.echo(
                f'{entry.created_at:%Y-%m-%d %H:%M:%S}  {admin}  '
                f'{entry.action.value}  {entry.entity_type.value}#{entry.entity_id}  '
                f'{entry.details or ""}'
            )
