"""Outbound notifications to applicants and review authors.

Sent after the governance transaction has committed. A failed send is logged
and never fails or undoes the action it reports on.
"""
import smtplib
from email.message import EmailMessage

import structlog
from flask import current_app
from flask_babel import gettext as _

logger = structlog.get_logger(__name__)

EXTENSION_KEY = 'stallgov.mailer'


class OutboxMailer:
    """Keeps messages in memory instead of sending them."""

    def __init__(self):
        self.sent = []

    def send(self, to, subject, body):
        self.sent.append({'to': to, 'subject': subject, 'body': body})

    def reset(self):
        self.sent.clear()


class SmtpMailer:
    def __init__(self, host, port, sender, username=None, password=None, use_tls=False, timeout=10):
        self.host = host
        self.port = port
        self.sender = sender
        self.username = username
        self.password = password
        self.use_tls = use_tls
        self.timeout = timeout

    def send(self, to, subject, body):
        message = EmailMessage()
        message['From'] = self.sender
        message['To'] = to
        message['Subject'] = subject
        message.set_content(body)

        with smtplib.SMTP(self.host, self.port, timeout=self.timeout) as smtp:
            if self.use_tls:
                smtp.starttls()
            if self.username:
                smtp.login(self.username, self.password)
            smtp.send_message(message)


def init_mailer(app):
    """Attach the configured mailer to ``app``."""
    config = app.config
    if config['MAIL_BACKEND'] == 'smtp':
        mailer = SmtpMailer(
            config['MAIL_SERVER'],
            config['MAIL_PORT'],
            config['MAIL_DEFAULT_SENDER'],
            username=config['MAIL_USERNAME'],
            password=config['MAIL_PASSWORD'],
            use_tls=config['MAIL_USE_TLS'],
        )
    else:
        mailer = OutboxMailer()
    app.extensions[EXTENSION_KEY] = mailer
    return mailer


def get_mailer():
    return current_app.extensions[EXTENSION_KEY]


def _deliver(kind, to, subject, body, **context):
    if not to:
        logger.warning('notification_skipped', kind=kind, reason='no recipient', **context)
        return False
    try:
        get_mailer().send(to, subject, body)
    except Exception as exc:
        logger.error('notification_failed', kind=kind, to=to, error=str(exc), exc_info=True, **context)
        return False
    logger.info('notification_sent', kind=kind, to=to, **context)
    return True


def application_approved(email, name, stall_name, notes=None, application_id=None):
    body = _(
        'Hello %(name)s,\n\nYour application for %(stall)s has been approved. '
        'Your stall is now listed on the marketplace.',
        name=name, stall=stall_name,
    )
    if notes:
        body += '\n\n' + _('Notes from the reviewer: %(notes)s', notes=notes)
    return _deliver(
        'application_approved', email,
        _('Your stall application was approved'), body,
        application_id=application_id,
    )


def application_declined(email, name, stall_name, notes=None, application_id=None):
    body = _(
        'Hello %(name)s,\n\nYour application for %(stall)s was not approved. '
        'You are welcome to submit a new application.',
        name=name, stall=stall_name,
    )
    if notes:
        body += '\n\n' + _('Notes from the reviewer: %(notes)s', notes=notes)
    return _deliver(
        'application_declined', email,
        _('Your stall application was declined'), body,
        application_id=application_id,
    )


def review_removed(email, name, stall_name, reason, review_id=None):
    body = _(
        'Hello %(name)s,\n\nYour review of %(stall)s has been removed by our moderation team.'
        '\n\nReason: %(reason)s',
        name=name, stall=stall_name, reason=reason,
    )
    return _deliver(
        'review_removed', email,
        _('Your review has been removed'), body,
        review_id=review_id,
    )
