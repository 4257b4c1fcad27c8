from __future__ import annotations

import logging
from typing import Optional

from fastapi import APIRouter, Depends

from ..auth import AuthService, get_auth_service
from ..dependencies import get_user_repository
from ..errors import DuplicateUsername, ValidationError
from ..repositories import UserRepository
from ..schemas import Credentials, MessageOut, TokenOut

logger = logging.getLogger(__name__)

router = APIRouter(tags=["auth"])


# PUBLIC_INTERFACE
@router.post(
    "/register",
    response_model=MessageOut,
    summary="Register",
    description="Create a user account. The password is stored as a bcrypt hash and never returned.",
    responses={
        200: {"description": "User registered"},
        400: {"description": "Missing fields or username already taken", "model": MessageOut},
    },
)
def register(
    payload: Optional[Credentials] = None,
    users: UserRepository = Depends(get_user_repository),
    auth_service: AuthService = Depends(get_auth_service),
) -> MessageOut:
    """
    Register a new user.
    """
    if payload is None or not payload.is_complete():
        raise ValidationError()

    # bcrypt is slow; reject a taken name before paying for it. create() still
    # enforces uniqueness atomically against concurrent registrations.
    if users.find_by_username(payload.username) is not None:  # type: ignore[arg-type]
        raise DuplicateUsername()

    users.create(payload.username, auth_service.hash_password(payload.password))  # type: ignore[arg-type]
    logger.info("Registered user %r", payload.username)
    return MessageOut(message="User registered successfully")


# PUBLIC_INTERFACE
@router.post(
    "/login",
    response_model=TokenOut,
    summary="Login",
    description=(
        "Exchange a username and password for a session token. Unknown usernames and wrong "
        "passwords produce the same 400 response."
    ),
    responses={
        200: {"description": "Token issued"},
        400: {"description": "Missing fields or invalid credentials", "model": MessageOut},
    },
)
def login(
    payload: Optional[Credentials] = None,
    users: UserRepository = Depends(get_user_repository),
    auth_service: AuthService = Depends(get_auth_service),
) -> TokenOut:
    """
    Authenticate and return a token valid for 24 hours.
    """
    if payload is None or not payload.is_complete():
        raise ValidationError()

    user = auth_service.authenticate(users, payload.username, payload.password)  # type: ignore[arg-type]
    return TokenOut(token=auth_service.issue_token(user["id"]))
