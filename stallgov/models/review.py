"""Review, ReviewReaction and ReviewReport models."""
import enum

from stallgov.extensions import db
from stallgov.models.columns import enum_column, isoformat, utcnow


class ReactionType(enum.Enum):
    LIKE = 'like'
    DISLIKE = 'dislike'


class ReportReason(enum.Enum):
    SPAM = 'spam'
    OFFENSIVE = 'offensive'
    HARASSMENT = 'harassment'
    MISLEADING = 'misleading'
    IRRELEVANT = 'irrelevant'
    OTHER = 'other'


class ReportResolution(enum.Enum):
    DISMISSED = 'dismissed'
    REMOVED = 'removed'


class Review(db.Model):
    __tablename__ = 'reviews'

    id = db.Column(db.Integer, primary_key=True)
    stall_id = db.Column(db.Integer, db.ForeignKey('food_stalls.id'), nullable=False, index=True)
    author_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False, index=True)
    rating = db.Column(db.Integer, nullable=False)
    title = db.Column(db.String(200))
    comment = db.Column(db.Text)
    is_anonymous = db.Column(db.Boolean, nullable=False, default=False)
    created_at = db.Column(db.DateTime, default=utcnow)
    updated_at = db.Column(db.DateTime, default=utcnow, onupdate=utcnow)

    __table_args__ = (
        db.CheckConstraint('rating BETWEEN 1 AND 5', name='ck_reviews_rating_range'),
    )

    stall = db.relationship('FoodStall')
    author = db.relationship('User')

    def to_dict(self):
        return {
            'id': self.id,
            'stall_id': self.stall_id,
            'stall_name': self.stall.name if self.stall else None,
            'author_id': self.author_id,
            'author_name': None if self.is_anonymous or not self.author else self.author.name,
            'rating': self.rating,
            'title': self.title,
            'comment': self.comment,
            'is_anonymous': self.is_anonymous,
            'created_at': isoformat(self.created_at),
        }


class ReviewReaction(db.Model):
    __tablename__ = 'review_reactions'
    __table_args__ = (
        db.UniqueConstraint('review_id', 'user_id', name='uq_review_reactions_user'),
    )

    id = db.Column(db.Integer, primary_key=True)
    review_id = db.Column(db.Integer, db.ForeignKey('reviews.id'), nullable=False, index=True)
    user_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reaction = enum_column(ReactionType, 'reaction_type', nullable=False)
    created_at = db.Column(db.DateTime, default=utcnow)


class ReviewReport(db.Model):
    __tablename__ = 'review_reports'
    __table_args__ = (
        # One open report per reporter and review
        db.Index(
            'uq_review_reports_one_open',
            'review_id', 'reporter_id',
            unique=True,
            postgresql_where=db.text('resolved = false'),
            sqlite_where=db.text('resolved = 0'),
        ),
    )

    id = db.Column(db.Integer, primary_key=True)
    # No foreign key: reports outlive the review they point at
    review_id = db.Column(db.Integer, nullable=False, index=True)
    reporter_id = db.Column(db.Integer, db.ForeignKey('users.id'), nullable=False)
    reason = enum_column(ReportReason, 'report_reason', nullable=False)
    custom_reason = db.Column(db.Text)
    resolved = db.Column(db.Boolean, nullable=False, default=False)
    resolution = enum_column(ReportResolution, 'report_resolution', nullable=True)
    reviewed_by = db.Column(db.Integer, db.ForeignKey('users.id'))
    review_notes = db.Column(db.Text)
    reviewed_at = db.Column(db.DateTime)
    created_at = db.Column(db.DateTime, default=utcnow)

    reporter = db.relationship('User', foreign_keys=[reporter_id])

    def to_dict(self):
        return {
            'id': self.id,
            'review_id': self.review_id,
            'reporter_id': self.reporter_id,
            'reporter_name': self.reporter.name if self.reporter else None,
            'reason': self.reason.value,
            'custom_reason': self.custom_reason,
            'resolved': self.resolved,
            'resolution': self.resolution.value if self.resolution else None,
            'created_at': isoformat(self.created_at),
        }
