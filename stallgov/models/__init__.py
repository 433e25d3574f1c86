"""Models package - Re-exports all models for convenient importing."""
from stallgov.extensions import db
from stallgov.models.user import User, UserRole
from stallgov.models.stall import FoodCategory, FoodStall, MenuItem, StallLocation
from stallgov.models.application import Application, ApplicationStatus
from stallgov.models.review import (
    ReactionType,
    ReportReason,
    ReportResolution,
    Review,
    ReviewReaction,
    ReviewReport,
)
from stallgov.models.admin_log import AdminAction, AdminLogEntry, AppendOnlyViolation, EntityType

__all__ = [
    'db',
    'User', 'UserRole',
    'FoodCategory', 'FoodStall', 'MenuItem', 'StallLocation',
    'Application', 'ApplicationStatus',
    'ReactionType', 'ReportReason', 'ReportResolution', 'Review', 'ReviewReaction', 'ReviewReport',
    'AdminAction', 'AdminLogEntry', 'AppendOnlyViolation', 'EntityType',
]
