"""Verification-code signup endpoint.

POST body: ``{"action": "initiate-signup" | "complete-signup", "payload": {...}}``.
Every handled failure is a 400 with ``{"error": "<message>"}``.
"""

from typing import assert_never

from fastapi import APIRouter, Depends, Request, Response
from pydantic import TypeAdapter
from pydantic import ValidationError as PydanticValidationError

from planora_api.config import settings
from planora_api.core.cors import cors_json, preflight_response
from planora_api.core.errors import AccountLifecycleError
from planora_api.logging_config import get_logger
from planora_api.middleware.rate_limit import limiter
from planora_api.schemas.signup import (
    SIGNUP_ACTIONS,
    CompleteSignupRequest,
    ErrorResponse,
    InitiateSignupRequest,
    SignupCompletedResponse,
    SignupInitiatedResponse,
    SignupRequest,
)
from planora_api.services.account_context import AccountContext, get_account_context
from planora_api.services.signup import complete_signup, initiate_signup

logger = get_logger(__name__)

router = APIRouter(prefix="/functions/v1", tags=["Signup"])

SIGNUP_PATH = "/verification-code-handler"

_signup_request_adapter: TypeAdapter[SignupRequest] = TypeAdapter(SignupRequest)


def _bad_request(message: str) -> Response:
    return cors_json(ErrorResponse(error=message).model_dump(), status_code=400)


@router.options(SIGNUP_PATH)
async def signup_preflight() -> Response:
    return preflight_response()


@router.post(SIGNUP_PATH, response_model=None)
@limiter.limit(settings.signup_rate_limit)
async def verification_code_handler(
    request: Request,
    ctx: AccountContext = Depends(get_account_context),
) -> Response:
    """Dispatch an initiate-signup or complete-signup action."""
    try:
        body = await request.json()
    except ValueError:
        return _bad_request("Invalid action")

    try:
        signup_request = _signup_request_adapter.validate_python(body)
    except PydanticValidationError:
        if isinstance(body, dict) and body.get("action") in SIGNUP_ACTIONS:
            return _bad_request("Invalid request payload.")
        return _bad_request("Invalid action")

    try:
        return await _dispatch(ctx, signup_request)
    except AccountLifecycleError as e:
        logger.info(
            "Signup request rejected",
            action=signup_request.action,
            error_type=type(e).__name__,
            error=e.message,
        )
        return _bad_request(e.message)


async def _dispatch(
    ctx: AccountContext,
    signup_request: InitiateSignupRequest | CompleteSignupRequest,
) -> Response:
    match signup_request:
        case InitiateSignupRequest(payload=payload):
            await initiate_signup(ctx, payload.email, payload.password)
            return cors_json(SignupInitiatedResponse().model_dump())
        case CompleteSignupRequest(payload=payload):
            user_id = await complete_signup(ctx, payload.email, payload.code)
            body = SignupCompletedResponse(user_id=user_id)
            return cors_json(body.model_dump(mode="json", by_alias=True))
        case _:
            assert_never(signup_request)
