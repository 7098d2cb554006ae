"""Account lifecycle error types.

Signup handlers raise these directly to the caller; the purge worker
folds them into per-user report entries.
"""

import uuid


class AccountLifecycleError(Exception):
    """Base class for every handled signup or purge failure."""

    default_message = "Account operation failed."

    def __init__(self, message: str | None = None):
        self.message = message or self.default_message
        super().__init__(self.message)


class ValidationError(AccountLifecycleError):
    default_message = "Invalid request."


class NotFoundError(AccountLifecycleError):
    default_message = "Invalid verification code."


class AlreadyUsedError(AccountLifecycleError):
    default_message = "Verification code has already been used."


class ExpiredError(AccountLifecycleError):
    default_message = "Verification code has expired."


class IdentityCreationError(AccountLifecycleError):
    default_message = "Failed to create user."


class ConfigurationError(AccountLifecycleError):
    """Deployment invariant violated (missing role, unusable key)."""

    default_message = "Service is misconfigured."


class RoleAssignmentError(AccountLifecycleError):
    default_message = "Failed to assign default role to user."


class DeliveryError(AccountLifecycleError):
    default_message = "Failed to send verification email."


class DatastoreError(AccountLifecycleError):
    default_message = "Datastore operation failed."


class IdentityDeletionError(AccountLifecycleError):
    default_message = "Failed to delete user."


class PartialFailure(AccountLifecycleError):
    """A hard purge step failed; the user's remaining steps were skipped."""

    def __init__(self, user_id: uuid.UUID, step: str, cause: Exception):
        self.user_id = user_id
        self.step = step
        self.cause = cause
        super().__init__(f"{step}: {cause}")
