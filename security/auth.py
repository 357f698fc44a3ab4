from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Optional

import jwt
from fastapi import Request

from exceptions import FeatureUnavailableError, ForbiddenError, UnauthorizedError
from utils.logging import get_logger

logger = get_logger("auth")


@dataclass(frozen=True)
class Identity:
    """Claims carried by a verified bearer token."""

    user_id: int
    username: str
    email: str
    role: str = "user"


class TokenService:
    """Signs and verifies HS256 bearer tokens."""

    def __init__(self, secret: str, ttl_seconds: int, algorithm: str = "HS256"):
        self._secret = secret
        self._ttl = ttl_seconds
        self._algorithm = algorithm

    @property
    def enabled(self) -> bool:
        return bool(self._secret)

    def require_enabled(self) -> None:
        if not self._secret:
            raise FeatureUnavailableError("Authentication is not configured (JWT_SECRET unset)")

    def issue(self, identity: Identity) -> str:
        self.require_enabled()
        now = datetime.now(timezone.utc)
        claims = {
            "sub": str(identity.user_id),
            "username": identity.username,
            "email": identity.email,
            "role": identity.role,
            "iat": now,
            "exp": now + timedelta(seconds=self._ttl),
        }
        return jwt.encode(claims, self._secret, algorithm=self._algorithm)

    def verify(self, token: str) -> Identity:
        """Decode a token.

        Raises:
            ForbiddenError: Signature invalid, token expired or claims malformed.
            FeatureUnavailableError: No signing secret configured.
        """
        self.require_enabled()
        try:
            claims = jwt.decode(token, self._secret, algorithms=[self._algorithm])
            return Identity(
                user_id=int(claims["sub"]),
                username=claims["username"],
                email=claims["email"],
                role=claims.get("role", "user"),
            )
        except (jwt.InvalidTokenError, KeyError, TypeError, ValueError):
            raise ForbiddenError("Invalid or expired token")


def bearer_token(request: Request) -> Optional[str]:
    """Extract the token from "Authorization: Bearer <token>", if any."""
    auth_header = request.headers.get("Authorization", "")
    scheme, _, token = auth_header.partition(" ")
    if scheme.lower() != "bearer" or not token.strip():
        return None
    return token.strip()


def require_user(request: Request) -> Identity:
    """Dependency: reject requests without a valid bearer token.

    Raises:
        UnauthorizedError: No token (401).
        ForbiddenError: Invalid or expired token (403).
    """
    token = bearer_token(request)
    if token is None:
        raise UnauthorizedError("Access token required")
    identity = request.app.state.tokens.verify(token)
    request.state.identity = identity
    return identity


def optional_user(request: Request) -> Optional[Identity]:
    """Dependency: attach identity when a valid token is present, never reject."""
    token = bearer_token(request)
    if token is None:
        return None
    tokens: TokenService = request.app.state.tokens
    if not tokens.enabled:
        return None
    try:
        identity = tokens.verify(token)
    except ForbiddenError:
        logger.debug("Ignoring invalid token on optional-auth route")
        return None
    request.state.identity = identity
    return identity
