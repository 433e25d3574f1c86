"""Tests for the stall application lifecycle."""
from datetime import datetime, timedelta

import pytest

from stallgov.errors import (
    DuplicateError,
    NotFoundError,
    PermissionDeniedError,
    StateConflictError,
    ValidationError,
)
from stallgov.extensions import db
from stallgov.models import (
    AdminAction,
    AdminLogEntry,
    Application,
    ApplicationStatus,
    FoodStall,
    StallLocation,
    User,
    UserRole,
)
from stallgov.services import applications

from tests.conftest import application_details


class TestSubmit:
    def test_creates_pending_application(self, make_user):
        applicant = make_user()

        application = applications.submit(applicant.id, application_details())

        assert application.status is ApplicationStatus.PENDING
        assert application.applicant_id == applicant.id
        assert application.categories == ['rice_meals', 'snacks']
        assert application.logo_path.endswith('logo.png')

    def test_submit_is_not_audited(self, make_user, log_count):
        applicant = make_user()
        applications.submit(applicant.id, application_details())
        assert log_count() == 0

    def test_second_pending_application_rejected(self, make_user):
        applicant = make_user()
        original = applications.submit(applicant.id, application_details())

        with pytest.raises(DuplicateError):
            applications.submit(applicant.id, application_details(stall_name='Another Stall'))

        db.session.expire_all()
        assert Application.query.filter_by(applicant_id=applicant.id).count() == 1
        unchanged = db.session.get(Application, original.id)
        assert unchanged.stall_name == 'Kusina ni Lola'
        assert unchanged.status is ApplicationStatus.PENDING

    def test_owner_of_active_stall_rejected(self, make_user, make_stall):
        owner = make_user(role=UserRole.STALL_OWNER)
        make_stall(owner)

        with pytest.raises(DuplicateError):
            applications.submit(owner.id, application_details())

    def test_can_reapply_after_decline(self, make_user, make_application, admin):
        applicant = make_user()
        first = make_application(applicant)
        applications.decline(first.id, admin.id, notes='Blurry permit scan')

        second = applications.submit(applicant.id, application_details())

        assert second.id != first.id
        assert second.status is ApplicationStatus.PENDING

    def test_incomplete_form_lists_every_problem(self, make_user):
        applicant = make_user()
        details = application_details(stall_name='K', description='', categories=[], permit_path=None)

        with pytest.raises(ValidationError) as exc:
            applications.submit(applicant.id, details)

        assert set(exc.value.errors) == {'stall_name', 'description', 'categories', 'permit_path'}

    def test_unknown_category_rejected(self, make_user):
        applicant = make_user()
        with pytest.raises(ValidationError) as exc:
            applications.submit(applicant.id, application_details(categories=['rice_meals', 'sushi']))
        assert 'sushi' in exc.value.errors['categories']

    def test_unknown_applicant(self, app):
        with pytest.raises(NotFoundError):
            applications.submit(999, application_details())

    def test_admin_cannot_apply(self, make_user):
        other_admin = make_user(role=UserRole.ADMIN)

        with pytest.raises(StateConflictError):
            applications.submit(other_admin.id, application_details())

        assert Application.query.count() == 0


class TestApprove:
    def test_approve_creates_stall_and_log(self, make_user, make_application, admin, log_count):
        applicant = make_user()
        application = make_application(applicant)

        stall_id = applications.approve(application.id, admin.id, notes='Looks good')

        db.session.expire_all()
        application = db.session.get(Application, application.id)
        assert application.status is ApplicationStatus.APPROVED
        assert application.review_notes == 'Looks good'
        assert application.reviewed_by == admin.id
        assert application.reviewed_at is not None

        stall = db.session.get(FoodStall, stall_id)
        assert stall.owner_id == applicant.id
        assert stall.name == application.stall_name
        assert stall.description == application.description
        assert stall.categories == application.categories
        assert stall.location == application.location
        assert stall.logo_path == application.logo_path
        assert stall.is_active

        location = StallLocation.query.filter_by(stall_id=stall_id).one()
        assert location.address == application.location
        assert location.latitude == pytest.approx(14.5995)

        entry = AdminLogEntry.query.one()
        assert entry.action is AdminAction.APPROVE_APPLICATION
        assert entry.entity_id == application.id
        assert entry.admin_id == admin.id
        assert entry.details['stall_id'] == stall_id
        assert log_count() == 1

    def test_approve_promotes_customer_to_stall_owner(self, make_user, make_application, admin):
        applicant = make_user()
        application = make_application(applicant)

        applications.approve(application.id, admin.id)

        db.session.expire_all()
        assert applicant.role is UserRole.STALL_OWNER

    def test_scenario_a(self, make_user, make_application, admin):
        applicant = make_user()
        application = make_application(applicant)

        stall_id = applications.approve(application.id, admin.id, notes='Looks good')

        db.session.expire_all()
        assert db.session.get(Application, application.id).status is ApplicationStatus.APPROVED
        assert db.session.get(FoodStall, stall_id).owner_id == applicant.id
        entries = AdminLogEntry.query.all()
        assert [(e.action, e.entity_id) for e in entries] == [
            (AdminAction.APPROVE_APPLICATION, application.id)
        ]

    def test_double_approve_conflicts(self, make_user, make_application, admin, log_count):
        application = make_application(make_user())

        applications.approve(application.id, admin.id)
        with pytest.raises(StateConflictError):
            applications.approve(application.id, admin.id)

        assert FoodStall.query.count() == 1
        assert log_count() == 1

    def test_concurrent_approve_detected_inside_transaction(
        self, make_user, make_application, admin, log_count, monkeypatch
    ):
        application = make_application(make_user())
        applications.approve(application.id, admin.id)

        # A second admin whose read still saw the application as pending
        monkeypatch.setattr(
            applications,
            '_load_for_transition',
            lambda application_id, target: db.session.get(Application, application_id),
        )
        with pytest.raises(StateConflictError):
            applications.approve(application.id, admin.id)

        assert FoodStall.query.count() == 1
        assert log_count() == 1

    def test_missing_application(self, admin):
        with pytest.raises(NotFoundError):
            applications.approve(404, admin.id)

    def test_application_without_location_gets_no_stall_location(self, make_user, make_application, admin):
        application = make_application(make_user(), location='')

        stall_id = applications.approve(application.id, admin.id)

        assert StallLocation.query.filter_by(stall_id=stall_id).count() == 0

    def test_applicant_promoted_to_admin_before_approval(
        self, make_user, make_application, admin, log_count
    ):
        applicant = make_user()
        application = make_application(applicant)
        applicant.role = UserRole.ADMIN
        db.session.commit()

        with pytest.raises(StateConflictError):
            applications.approve(application.id, admin.id)

        db.session.expire_all()
        assert db.session.get(User, applicant.id).role is UserRole.ADMIN
        assert db.session.get(Application, application.id).status is ApplicationStatus.PENDING
        assert FoodStall.query.count() == 0
        assert log_count() == 0

    @pytest.mark.parametrize('role', [UserRole.CUSTOMER, UserRole.STALL_OWNER])
    def test_only_admins_review_applications(self, make_user, make_application, log_count, role):
        application = make_application(make_user())
        outsider = make_user(role=role)

        for transition in (applications.approve, applications.decline, applications.archive):
            with pytest.raises(PermissionDeniedError):
                transition(application.id, outsider.id)

        db.session.expire_all()
        assert db.session.get(Application, application.id).status is ApplicationStatus.PENDING
        assert log_count() == 0

    def test_unknown_admin_id_rejected(self, make_user, make_application, log_count):
        application = make_application(make_user())

        with pytest.raises(PermissionDeniedError):
            applications.approve(application.id, 4040)

        assert FoodStall.query.count() == 0
        assert log_count() == 0


class TestDeclineAndArchive:
    def test_decline_records_notes(self, make_user, make_application, admin, log_count):
        application = make_application(make_user())

        applications.decline(application.id, admin.id, notes='Missing tax document')

        db.session.expire_all()
        application = db.session.get(Application, application.id)
        assert application.status is ApplicationStatus.DECLINED
        assert application.review_notes == 'Missing tax document'
        assert FoodStall.query.count() == 0
        assert log_count(action=AdminAction.DECLINE_APPLICATION) == 1

    def test_archive(self, make_user, make_application, admin, log_count):
        application = make_application(make_user())

        applications.archive(application.id, admin.id)

        db.session.expire_all()
        assert db.session.get(Application, application.id).status is ApplicationStatus.ARCHIVED
        assert log_count(action=AdminAction.ARCHIVE_APPLICATION) == 1

    @pytest.mark.parametrize('terminal', [
        ApplicationStatus.APPROVED,
        ApplicationStatus.DECLINED,
        ApplicationStatus.ARCHIVED,
    ])
    def test_terminal_states_never_change(self, make_user, make_application, admin, log_count, terminal):
        application = make_application(make_user(), status=terminal)

        for transition in (applications.approve, applications.decline, applications.archive):
            with pytest.raises(StateConflictError):
                transition(application.id, admin.id)

        db.session.expire_all()
        assert db.session.get(Application, application.id).status is terminal
        assert FoodStall.query.count() == 0
        assert log_count() == 0


class TestListPending:
    def test_oldest_first_with_applicant(self, make_user, make_application, admin):
        now = datetime(2025, 11, 23, 9, 0, 0)
        newer = make_application(make_user(name='Newer'), created_at=now)
        older = make_application(make_user(name='Older'), created_at=now - timedelta(days=2))
        middle = make_application(make_user(name='Middle'), created_at=now - timedelta(days=1))
        closed = make_application(make_user(), status=ApplicationStatus.ARCHIVED)

        pending = applications.list_pending()

        assert [a.id for a in pending] == [older.id, middle.id, newer.id]
        assert closed.id not in [a.id for a in pending]
        assert pending[0].applicant.name == 'Older'
