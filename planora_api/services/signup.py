"""Verification-code gated signup.

initiate_signup stores a pending request and e-mails a 6-digit code;
complete_signup redeems the code, provisions the identity and assigns
the default role.

A verification request is single-use and time-boxed:

    pending --(matching, unexpired, unused)--> used

Expiry is evaluated on read, never stored.
"""

import secrets
import uuid
from datetime import timedelta

from planora_api.config import settings
from planora_api.core.encryption import (
    CredentialDecryptionError,
    decrypt_credential,
    encrypt_credential,
)
from planora_api.core.errors import (
    AccountLifecycleError,
    AlreadyUsedError,
    ConfigurationError,
    DatastoreError,
    DeliveryError,
    ExpiredError,
    NotFoundError,
    RoleAssignmentError,
    ValidationError,
)
from planora_api.logging_config import get_logger
from planora_api.services.account_context import AccountContext

logger = get_logger(__name__)

CODE_LENGTH = 6


def generate_verification_code() -> str:
    """Uniformly random code over "000000"-"999999"."""
    return f"{secrets.randbelow(10**CODE_LENGTH):0{CODE_LENGTH}d}"


def _normalize_email(email: str | None) -> str:
    return (email or "").strip().lower()


async def initiate_signup(
    ctx: AccountContext,
    email: str | None,
    password: str | None,
) -> None:
    """Create a pending verification request and send its code.

    Any earlier unused code for the same address is discarded, so only
    the most recently delivered code can complete the signup.

    Raises:
        ValidationError: If email or password is empty.
        DatastoreError: If the request could not be stored.
        DeliveryError: If the code could not be sent. The request stays
            stored; calling again issues a fresh code.
    """
    email = _normalize_email(email)
    if not email or not password:
        raise ValidationError("Email and password are required.")

    code = generate_verification_code()
    expires_at = ctx.clock() + timedelta(minutes=settings.verification_code_ttl_minutes)

    await ctx.datastore.replace_verification_request(
        email=email,
        code=code,
        expires_at=expires_at,
        pending_credential=encrypt_credential(password),
    )
    logger.info(
        "Verification request stored",
        email=email,
        expires_at=expires_at.isoformat(),
    )

    try:
        await ctx.notifier.send_verification_code(email, code)
    except DeliveryError as e:
        logger.warning("Verification code delivery failed", email=email, error=e.message)
        raise


async def complete_signup(
    ctx: AccountContext,
    email: str | None,
    code: str | None,
) -> uuid.UUID:
    """Redeem a verification code and provision the account.

    Lookup, used and expiry checks happen before any side effect. If the
    default role cannot be assigned, the identity created a moment earlier
    is deleted again before the error propagates.

    Returns:
        The new user's id.

    Raises:
        ValidationError, NotFoundError, AlreadyUsedError, ExpiredError,
        IdentityCreationError, ConfigurationError, RoleAssignmentError
    """
    email = _normalize_email(email)
    code = (code or "").strip()
    if not email or not code:
        raise ValidationError("Email and verification code are required.")

    record = await ctx.datastore.find_verification_request(email, code)
    if record is None:
        raise NotFoundError()
    if record.used:
        raise AlreadyUsedError()
    if ctx.clock() > record.expires_at:
        raise ExpiredError()

    try:
        password = decrypt_credential(record.pending_credential)
    except CredentialDecryptionError as e:
        logger.error("Pending credential unreadable", request_id=str(record.id))
        raise ConfigurationError("Pending credential could not be read.") from e

    user_id = await ctx.identity.create_user(email, password, email_confirmed=True)

    try:
        await _assign_default_role(ctx, user_id)
    except AccountLifecycleError:
        await _discard_identity(ctx, user_id)
        raise

    try:
        await ctx.datastore.mark_verification_used(record.id)
    except DatastoreError as e:
        # The account exists and works; the code simply stays redeemable
        # until it expires, and a replay fails at identity creation.
        logger.error(
            "Failed to mark verification code used",
            request_id=str(record.id),
            user_id=str(user_id),
            error=e.message,
        )

    logger.info("Signup completed", user_id=str(user_id))
    return user_id


async def _assign_default_role(ctx: AccountContext, user_id: uuid.UUID) -> None:
    role_id = await ctx.datastore.find_role_id(settings.default_role_name)
    if role_id is None:
        logger.error("Default role missing", role=settings.default_role_name)
        raise ConfigurationError("Default user role not found.")

    try:
        await ctx.datastore.assign_role(user_id, role_id)
    except DatastoreError as e:
        raise RoleAssignmentError() from e


async def _discard_identity(ctx: AccountContext, user_id: uuid.UUID) -> None:
    """Compensate a half-finished signup by deleting its identity."""
    try:
        await ctx.identity.delete_user(user_id)
    except AccountLifecycleError as e:
        logger.error(
            "Orphaned identity: compensation after role failure did not succeed",
            user_id=str(user_id),
            error=e.message,
        )
        return
    logger.warning("Identity removed after role assignment failure", user_id=str(user_id))
