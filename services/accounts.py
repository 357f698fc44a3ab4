from typing import Optional

from exceptions import AuthError, ConflictError, NotFoundError, ValidationError
from schemas import PublicUser, UserCounters, UserProfile
from security.auth import Identity, TokenService
from security.passwords import PasswordHasher
from storage.database import User
from storage.repository import Storage
from utils.logging import get_logger

logger = get_logger("accounts")

MIN_PASSWORD_LENGTH = 6
MIN_USERNAME_LENGTH = 3
MAX_USERNAME_LENGTH = 30


def to_public_user(user: User) -> PublicUser:
    return PublicUser(id=user.id, username=user.username, email=user.email, role=user.role)


def to_counters(user: User) -> UserCounters:
    return UserCounters(
        total_compressions=user.total_compressions or 0,
        total_size_saved=user.total_size_saved or 0,
        last_compression=user.last_compression,
    )


def to_profile(user: User) -> UserProfile:
    return UserProfile(
        id=user.id,
        username=user.username,
        email=user.email,
        role=user.role,
        compression_stats=to_counters(user),
        created_at=user.created_at,
    )


def _check_username(username: str) -> None:
    if not MIN_USERNAME_LENGTH <= len(username) <= MAX_USERNAME_LENGTH:
        raise ValidationError(
            f"Username must be between {MIN_USERNAME_LENGTH} and "
            f"{MAX_USERNAME_LENGTH} characters long"
        )


class AccountService:
    """Registration, login and profile management."""

    def __init__(self, storage: Storage, hasher: PasswordHasher, tokens: TokenService):
        self.storage = storage
        self.hasher = hasher
        self.tokens = tokens

    def _issue(self, user: User) -> str:
        return self.tokens.issue(
            Identity(user_id=user.id, username=user.username, email=user.email, role=user.role)
        )

    def register(
        self,
        username: Optional[str],
        email: Optional[str],
        password: Optional[str],
    ) -> tuple[str, User]:
        """Create an account and return (token, user).

        Raises:
            ValidationError: Missing field, short password or bad username length.
            ConflictError: Username or email already registered.
        """
        self.tokens.require_enabled()
        username = (username or "").strip()
        email = (email or "").strip().lower()
        if not username or not email or not password:
            raise ValidationError("All fields are required")
        if len(password) < MIN_PASSWORD_LENGTH:
            raise ValidationError(
                f"Password must be at least {MIN_PASSWORD_LENGTH} characters long"
            )
        _check_username(username)

        if self.storage.find_conflicting_user(username, email) is not None:
            raise ConflictError("User already exists with this email or username")

        user = self.storage.create_user(
            username=username,
            email=email,
            password_hash=self.hasher.hash(password),
        )
        logger.info("User registered", extra={"context": {"user_id": user.id}})
        return self._issue(user), user

    def login(self, email: Optional[str], password: Optional[str]) -> tuple[str, User]:
        """Authenticate by email and password.

        Unknown email and wrong password fail identically.

        Raises:
            ValidationError: Missing email or password.
            AuthError: Invalid credentials.
        """
        self.tokens.require_enabled()
        email = (email or "").strip().lower()
        if not email or not password:
            raise ValidationError("Email and password are required")

        user = self.storage.get_user_by_email(email)
        if user is None or not self.hasher.verify(password, user.password_hash):
            raise AuthError("Invalid credentials")

        return self._issue(user), user

    def get_user(self, identity: Identity) -> User:
        user = self.storage.get_user(identity.user_id)
        if user is None:
            raise NotFoundError("User not found")
        return user

    def update_profile(self, identity: Identity, username: Optional[str]) -> User:
        """Change the caller's username; a missing username is a no-op.

        Raises:
            ValidationError: Bad username length.
            ConflictError: Username taken by another user.
            NotFoundError: Caller's account no longer exists.
        """
        username = (username or "").strip()
        if not username:
            return self.get_user(identity)
        _check_username(username)
        return self.storage.update_username(identity.user_id, username)
