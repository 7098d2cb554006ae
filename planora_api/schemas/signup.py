"""Signup request/response schemas.

The endpoint body is a tagged union on ``action``; each variant carries
its own payload type.
"""

import uuid
from typing import Annotated, Literal

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel


class InitiateSignupPayload(BaseModel):
    email: str | None = None
    password: str | None = None


class CompleteSignupPayload(BaseModel):
    email: str | None = None
    code: str | None = None


class InitiateSignupRequest(BaseModel):
    action: Literal["initiate-signup"]
    payload: InitiateSignupPayload = Field(default_factory=InitiateSignupPayload)


class CompleteSignupRequest(BaseModel):
    action: Literal["complete-signup"]
    payload: CompleteSignupPayload = Field(default_factory=CompleteSignupPayload)


SignupRequest = Annotated[
    InitiateSignupRequest | CompleteSignupRequest,
    Field(discriminator="action"),
]

SIGNUP_ACTIONS = ("initiate-signup", "complete-signup")


class SignupInitiatedResponse(BaseModel):
    message: str = "Signup initiated. Please check your email."


class SignupCompletedResponse(BaseModel):
    model_config = ConfigDict(alias_generator=to_camel, populate_by_name=True)

    message: str = "Signup successful!"
    user_id: uuid.UUID


class ErrorResponse(BaseModel):
    error: str
