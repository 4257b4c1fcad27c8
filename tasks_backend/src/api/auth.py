from __future__ import annotations

import logging
from datetime import datetime, timedelta, timezone
from typing import Optional

from fastapi import Header, Request
from jose import JWTError, jwt
from passlib.context import CryptContext

from .errors import InvalidCredentials, Unauthorized
from .models import UserEntity
from .repositories import UserRepository
from .settings import Settings

logger = logging.getLogger(__name__)

_BEARER_SCHEME = "bearer"


# PUBLIC_INTERFACE
class AuthService:
    """
    Password hashing and session token handling.

    Passwords are hashed with bcrypt through passlib. Session tokens are
    self-contained JWTs carrying the user id and an expiry; there is no
    server-side revocation, so a token stays valid until it expires.
    """

    def __init__(
        self,
        secret: str,
        algorithm: str = "HS256",
        expiration: timedelta = timedelta(hours=24),
        bcrypt_rounds: int = 10,
    ) -> None:
        self._secret = secret
        self._algorithm = algorithm
        self._expiration = expiration
        self._pwd_context = CryptContext(
            schemes=["bcrypt"], deprecated="auto", bcrypt__rounds=bcrypt_rounds
        )

    @classmethod
    def from_settings(cls, settings: Settings) -> "AuthService":
        return cls(
            secret=settings.jwt_secret,
            algorithm=settings.jwt_algorithm,
            expiration=timedelta(hours=settings.token_expiration_hours),
            bcrypt_rounds=settings.bcrypt_rounds,
        )

    def hash_password(self, plaintext: str) -> str:
        """Return a salted bcrypt hash of ``plaintext``."""
        return self._pwd_context.hash(plaintext)

    def verify_password(self, plaintext: str, password_hash: str) -> bool:
        """Check ``plaintext`` against a stored hash; unrecognised hashes never match."""
        try:
            return self._pwd_context.verify(plaintext, password_hash)
        except ValueError:
            return False

    def issue_token(self, user_id: str, now: Optional[datetime] = None) -> str:
        """Return a signed token for ``user_id`` expiring after the configured lifetime."""
        issued_at = now or datetime.now(timezone.utc)
        claims = {
            "userId": user_id,
            "iat": issued_at,
            "exp": issued_at + self._expiration,
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify_token(self, token: str) -> str:
        """
        Return the user id carried by ``token``.

        Raises:
            Unauthorized("Invalid token") if the token is malformed, its
            signature does not match, it has expired, or it carries no user id.
        """
        try:
            payload = jwt.decode(token, self._secret, algorithms=[self._algorithm])
        except JWTError as e:
            logger.debug("Rejected session token: %s", e)
            raise Unauthorized("Invalid token") from e

        user_id = payload.get("userId")
        if not isinstance(user_id, str) or not user_id:
            raise Unauthorized("Invalid token")
        return user_id

    def authenticate(self, users: UserRepository, username: str, password: str) -> UserEntity:
        """
        Return the user matching ``username``/``password``.

        Raises:
            InvalidCredentials for an unknown username and for a wrong
            password alike.
        """
        user = users.find_by_username(username)
        if user is None or not self.verify_password(password, user["password_hash"]):
            logger.info("Failed login for username %r", username)
            raise InvalidCredentials()
        return user


def _extract_token(authorization: str) -> str:
    """
    Accept either the raw token or ``Bearer <token>`` (case-insensitive scheme).
    """
    parts = authorization.split(None, 1)
    if not parts:
        return ""
    if parts[0].lower() == _BEARER_SCHEME:
        return parts[1].strip() if len(parts) > 1 else ""
    return authorization.strip()


# PUBLIC_INTERFACE
def resolve_user_id(authorization: Optional[str], auth_service: AuthService) -> str:
    """
    Auth gate: turn an Authorization header value into the caller's user id.

    Raises:
        Unauthorized("Unauthorized") when no token is present.
        Unauthorized("Invalid token") when the token does not verify.
    """
    if authorization is None:
        raise Unauthorized()
    token = _extract_token(authorization)
    if not token:
        raise Unauthorized()
    return auth_service.verify_token(token)


# PUBLIC_INTERFACE
def get_auth_service(request: Request) -> AuthService:
    """FastAPI dependency returning the AuthService wired by the app factory."""
    return request.app.state.auth_service


# PUBLIC_INTERFACE
def get_current_user_id(
    request: Request,
    authorization: Optional[str] = Header(default=None),
) -> str:
    """
    FastAPI dependency enforcing the auth gate on protected routes.

    Usage:
        router = APIRouter(dependencies=[Depends(get_current_user_id)])
        def handler(user_id: str = Depends(get_current_user_id)) ...
    """
    return resolve_user_id(authorization, get_auth_service(request))
