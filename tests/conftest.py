import itertools

import pytest

from stallgov import create_app
from stallgov.extensions import db
from stallgov.models import (
    AdminLogEntry,
    Application,
    ApplicationStatus,
    FoodStall,
    MenuItem,
    ReactionType,
    ReportReason,
    Review,
    ReviewReaction,
    ReviewReport,
    StallLocation,
    User,
    UserRole,
)
from stallgov.services.notifications import get_mailer

_seq = itertools.count(1)


@pytest.fixture()
def app():
    app = create_app('testing')
    with app.app_context():
        db.create_all()
        yield app
        db.session.remove()
        db.drop_all()


@pytest.fixture()
def client(app):
    return app.test_client()


@pytest.fixture()
def login(client):
    """Impersonate a user the way the session collaborator would."""

    def _login(user):
        with client.session_transaction() as sess:
            sess['user_id'] = user.id
            sess['user_role'] = user.role.value

    return _login


@pytest.fixture()
def make_user(app):
    def _make_user(email=None, role=UserRole.CUSTOMER, name=None):
        n = next(_seq)
        user = User(email=email or f'user{n}@example.com', name=name or f'User {n}', role=role)
        db.session.add(user)
        db.session.commit()
        return user

    return _make_user


@pytest.fixture()
def admin(make_user):
    return make_user(email='admin@example.com', role=UserRole.ADMIN, name='Site Admin')


def application_details(**overrides):
    details = {
        'stall_name': 'Kusina ni Lola',
        'description': 'Home-style rice meals and merienda',
        'location': 'Stall 12, Riverside Bazaar',
        'categories': ['rice_meals', 'snacks'],
        'registration_path': 'uploads/applications/kusina/bir_reg.pdf',
        'permit_path': 'uploads/applications/kusina/permit.pdf',
        'tax_doc_path': 'uploads/applications/kusina/dti.pdf',
        'logo_path': 'uploads/applications/kusina/logo.png',
        'map_x': 14.5995,
        'map_y': 120.9842,
    }
    details.update(overrides)
    return details


@pytest.fixture()
def make_application(app):
    def _make_application(applicant, status=ApplicationStatus.PENDING, **overrides):
        fields = application_details(**overrides)
        application = Application(applicant_id=applicant.id, status=status, **fields)
        db.session.add(application)
        db.session.commit()
        return application

    return _make_application


@pytest.fixture()
def make_stall(app):
    def _make_stall(owner, name='Tusok-Tusok Corner', menu_items=2, with_location=True):
        stall = FoodStall(
            owner_id=owner.id,
            name=name,
            description='Fishballs, kwek-kwek and gulaman',
            categories=['street_food', 'beverages'],
            location='Lane 3, Riverside Bazaar',
            logo_path=f'uploads/stalls/{name}.png',
            is_active=True,
        )
        db.session.add(stall)
        db.session.flush()
        for i in range(menu_items):
            db.session.add(MenuItem(stall_id=stall.id, name=f'Item {i + 1}', price=25))
        if with_location:
            db.session.add(StallLocation(stall_id=stall.id, address=stall.location, latitude=14.6, longitude=121.0))
        db.session.commit()
        return stall

    return _make_stall


@pytest.fixture()
def make_review(app):
    def _make_review(stall, author, rating=4, reactions_from=()):
        review = Review(
            stall_id=stall.id,
            author_id=author.id,
            rating=rating,
            title='Worth the queue',
            comment='Crispy kwek-kwek and the sauce is just right.',
        )
        db.session.add(review)
        db.session.flush()
        for user in reactions_from:
            db.session.add(ReviewReaction(review_id=review.id, user_id=user.id, reaction=ReactionType.LIKE))
        db.session.commit()
        return review

    return _make_review


@pytest.fixture()
def make_report(app):
    def _make_report(review, reporter, reason=ReportReason.SPAM, custom_reason=None):
        review_report = ReviewReport(
            review_id=review.id,
            reporter_id=reporter.id,
            reason=reason,
            custom_reason=custom_reason,
            resolved=False,
        )
        db.session.add(review_report)
        db.session.commit()
        return review_report

    return _make_report


@pytest.fixture()
def log_count(app):
    def _log_count(**filters):
        return AdminLogEntry.query.filter_by(**filters).count()

    return _log_count


@pytest.fixture()
def outbox(app):
    """Messages the in-memory mailer has accepted."""
    return get_mailer()
