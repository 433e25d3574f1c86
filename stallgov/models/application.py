"""Stall Application model and its lifecycle.

    PENDING -> APPROVED | DECLINED | ARCHIVED

Every state other than PENDING is terminal.
"""
import enum

from stallgov.extensions import db
from stallgov.models.columns import enum_column, isoformat, utcnow


class ApplicationStatus(enum.Enum):
    PENDING = 'pending'
    APPROVED = 'approved'
    DECLINED = 'declined'
    ARCHIVED = 'archived'


_VALID_TRANSITIONS = {
    ApplicationStatus.PENDING: {
        ApplicationStatus.APPROVED,
        ApplicationStatus.DECLINED,
        ApplicationStatus.ARCHIVED,
    },
    ApplicationStatus.APPROVED: set(),
    ApplicationStatus.DECLINED: set(),
    ApplicationStatus.ARCHIVED: set(),
}


class Application(db.Model):
    __tablename__ = 'applications'
    __table_args__ = (
        # At most one pending application per applicant, also under concurrent submits
        db.Index(
            'uq_applications_one_pending',
            'applicant_id',
            unique=True,
            postgresql_where=db.text("status = 'pending'"),
            sqlite_where=db.text("status = 'pending'"),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    applicant_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    stall_name = db.Column(db.String(200), nullable=False)
    description = db.Column(db.Text, nullable=False)
    location = db.Column(db.String(500), nullable=False)
    map_x = db.Column(db.Float)
    map_y = db.Column(db.Float)
    categories = db.Column(db.JSON, nullable=False, default=list)

    # Document references, already stored by the upload collaborator
    registration_path = db.Column(db.String(500))
    permit_path = db.Column(db.String(500))
    tax_doc_path = db.Column(db.String(500))
    logo_path = db.Column(db.String(500))

    status = enum_column(
        ApplicationStatus, 'application_status',
        nullable=False, default=ApplicationStatus.PENDING, index=True,
    )
    review_notes = db.Column(db.Text)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    reviewed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    applicant = db.relationship('User', foreign_keys=[applicant_id])

    def can_transition_to(self, target):
        return target in _VALID_TRANSITIONS[self.status]

    def to_dict(self, include_applicant=False):
        data = {
            'id': self.id,
            'applicant_id': self.applicant_id,
            'stall_name': self.stall_name,
            'description': self.description,
            'location': self.location,
            'map_x': self.map_x,
            'map_y': self.map_y,
            'categories': list(self.categories or []),
            'documents': {
                'registration': self.registration_path,
                'permit': self.permit_path,
                'tax_doc': self.tax_doc_path,
                'logo': self.logo_path,
            },
            'status': self.status.value,
            'review_notes': self.review_notes,
            'reviewed_by': self.reviewed_by,
            'reviewed_at': isoformat(self.reviewed_at),
            'created_at': isoformat(self.created_at),
            'updated_at': isoformat(self.updated_at),
        }
        if include_applicant and self.applicant is not None:
            data['applicant'] = {
                'id': self.applicant.id,
                'name': self.applicant.name,
                'email': self.applicant.email,
            }
        return data
