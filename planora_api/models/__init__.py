# Database Models
from planora_api.models.account_deletion_request import (
    AccountDeletionRequest,
    DeletionStatus,
)
from planora_api.models.base import Base, TimestampMixin
from planora_api.models.profile import Profile
from planora_api.models.role import Role, UserRoleAssignment
from planora_api.models.travel_preferences import TravelPreferences
from planora_api.models.user import User
from planora_api.models.verification_code import EMAIL_VERIFICATION, VerificationCode

__all__ = [
    "AccountDeletionRequest",
    "Base",
    "DeletionStatus",
    "EMAIL_VERIFICATION",
    "Profile",
    "Role",
    "TimestampMixin",
    "TravelPreferences",
    "User",
    "UserRoleAssignment",
    "VerificationCode",
]
